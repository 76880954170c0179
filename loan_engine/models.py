"""
Loan Domain Models

Loans, their scheduled repayments (installments) and received repayments
(receipts). All amounts are integers in minor currency units.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict

from .exceptions import InvalidInstallmentStateError, InvalidLoanStateError
from .storage import StorageRecord


class LoanStatus(Enum):
    """Whole-loan repayment status"""
    DUE = "due"
    REPAID = "repaid"


class RepaymentStatus(Enum):
    """Status of a single scheduled repayment"""
    DUE = "due"           # Nothing paid yet
    PARTIAL = "partial"   # Some, but not all, of the installment paid
    REPAID = "repaid"     # Fully settled


def _parse_dates(data: Dict[str, Any], *names: str) -> Dict[str, Any]:
    for name in names:
        if isinstance(data.get(name), str):
            data[name] = date.fromisoformat(data[name])
    return data


@dataclass
class Loan(StorageRecord):
    """A disbursed installment loan"""
    owner_id: str
    principal_amount: int
    currency_code: str
    terms: int
    outstanding_amount: int
    disbursed_date: date
    status: LoanStatus = LoanStatus.DUE

    def __post_init__(self):
        if not 0 <= self.outstanding_amount <= self.principal_amount:
            raise InvalidLoanStateError(
                f"Loan {self.id} outstanding amount {self.outstanding_amount} "
                f"outside 0..{self.principal_amount}"
            )
        if (self.outstanding_amount == 0) != (self.status == LoanStatus.REPAID):
            raise InvalidLoanStateError(
                f"Loan {self.id} has status {self.status.value} "
                f"with outstanding amount {self.outstanding_amount}"
            )

    @property
    def is_repaid(self) -> bool:
        return self.status == LoanStatus.REPAID

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = _parse_dates(dict(data), 'disbursed_date')
        data['status'] = LoanStatus(data['status'])
        return super().from_dict(data)


@dataclass
class ScheduledRepayment(StorageRecord):
    """
    One installment of a loan's repayment schedule

    ``amount`` is the installment's original size and never changes;
    ``outstanding_amount`` is what is still unpaid. The status always agrees
    with the balance:

        DUE      outstanding == amount
        PARTIAL  0 < outstanding < amount
        REPAID   outstanding == 0
    """
    loan_id: str
    installment_number: int
    amount: int
    outstanding_amount: int
    currency_code: str
    due_date: date
    status: RepaymentStatus = RepaymentStatus.DUE

    def __post_init__(self):
        if self.amount <= 0:
            raise InvalidInstallmentStateError(
                f"Installment {self.installment_number} of loan {self.loan_id} "
                f"has non-positive amount {self.amount}"
            )
        if not 0 <= self.outstanding_amount <= self.amount:
            raise InvalidInstallmentStateError(
                f"Installment {self.installment_number} of loan {self.loan_id} "
                f"outstanding amount {self.outstanding_amount} outside 0..{self.amount}"
            )

        if self.outstanding_amount == 0:
            expected = RepaymentStatus.REPAID
        elif self.outstanding_amount == self.amount:
            expected = RepaymentStatus.DUE
        else:
            expected = RepaymentStatus.PARTIAL
        if self.status != expected:
            raise InvalidInstallmentStateError(
                f"Installment {self.installment_number} of loan {self.loan_id} "
                f"has status {self.status.value}, expected {expected.value} "
                f"for outstanding {self.outstanding_amount} of {self.amount}"
            )

    @property
    def is_settled(self) -> bool:
        return self.status == RepaymentStatus.REPAID

    @property
    def paid_amount(self) -> int:
        return self.amount - self.outstanding_amount

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduledRepayment':
        data = _parse_dates(dict(data), 'due_date')
        data['status'] = RepaymentStatus(data['status'])
        return super().from_dict(data)


@dataclass
class ReceivedRepayment(StorageRecord):
    """Receipt for one incoming payment; ``amount`` is what was applied to the loan"""
    loan_id: str
    amount: int
    currency_code: str
    received_date: date

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReceivedRepayment':
        data = _parse_dates(dict(data), 'received_date')
        return super().from_dict(data)
