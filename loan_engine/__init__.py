"""
Installment Loan Engine

Generates integer amortization schedules at disbursement and applies incoming
repayments to them oldest-first, keeping installment and loan balances exact
in minor currency units.
"""

__version__ = "1.0.0"
