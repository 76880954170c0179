"""
Exception Hierarchy Module

Every error raised by the loan engine derives from LoanEngineError so callers
can catch the whole family. Validation errors also subclass ValueError.
"""


class LoanEngineError(Exception):
    """Base exception for all loan engine errors"""


class InvalidScheduleParameters(LoanEngineError, ValueError):
    """Raised when principal, term count or start date cannot produce a schedule"""


class InvalidRepaymentAmount(LoanEngineError, ValueError):
    """Raised when an incoming repayment amount is negative or not an integer"""


class InvalidCurrencyCode(LoanEngineError, ValueError):
    """Raised when a currency code is not a three-letter ISO 4217 code"""


class CurrencyMismatchError(LoanEngineError, ValueError):
    """Raised when a repayment currency differs from the loan currency"""


class OverpaymentError(LoanEngineError, ValueError):
    """Raised when a repayment exceeds the total outstanding and overpayments are rejected"""

    def __init__(self, message: str, offered_amount: int, outstanding_amount: int):
        super().__init__(message)
        self.offered_amount = offered_amount
        self.outstanding_amount = outstanding_amount


class InvalidLoanStateError(LoanEngineError, ValueError):
    """Raised when a loan record violates its balance/status invariants"""


class InvalidInstallmentStateError(InvalidLoanStateError):
    """Raised when a scheduled repayment violates its balance/status invariants"""


class LoanNotFoundError(LoanEngineError, LookupError):
    """Raised when a referenced loan does not exist"""


class ConfigurationError(LoanEngineError):
    """Raised when configuration is invalid"""
