"""
Repayment Allocation Module

Applies an incoming payment to a loan's installments, oldest due date first.
Everything here is pure: inputs are never mutated, new records are returned,
and the caller persists the result in one transaction.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import uuid

from .currency import normalize_currency_code
from .exceptions import (
    CurrencyMismatchError, InvalidLoanStateError, InvalidRepaymentAmount,
    OverpaymentError
)
from .models import (
    Loan, LoanStatus, ReceivedRepayment, RepaymentStatus, ScheduledRepayment
)
from .schedule import DateLike, coerce_date


class OverpaymentPolicy(Enum):
    """What to do with the part of a payment that exceeds the total outstanding"""
    IGNORE = "ignore"   # Apply what fits, receipt records only the applied amount
    REJECT = "reject"   # Raise OverpaymentError, change nothing


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of spreading one payment over a schedule"""
    installments: List[ScheduledRepayment]
    applied_amount: int
    unapplied_amount: int
    outstanding_before: int


@dataclass(frozen=True)
class RepaymentOutcome:
    """Updated loan, installments and receipt for one repayment event"""
    loan: Loan
    installments: List[ScheduledRepayment]
    receipt: ReceivedRepayment
    unapplied_amount: int
    changed: List[ScheduledRepayment]


def _check_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidRepaymentAmount(f"Repayment amount must be an integer, got {amount!r}")
    if amount < 0:
        raise InvalidRepaymentAmount(f"Repayment amount must not be negative, got {amount}")


def next_state(
    installment: ScheduledRepayment,
    incoming: int,
    now: Optional[datetime] = None
) -> Tuple[ScheduledRepayment, int]:
    """
    Apply up to ``incoming`` to a single installment

    Args:
        installment: Installment in its current state
        incoming: Amount still available from the payment
        now: Timestamp for the updated record

    Returns:
        (installment after the transition, amount consumed). The installment
        is returned unchanged when it is already repaid or nothing is left.
    """
    _check_amount(incoming)

    if installment.status == RepaymentStatus.REPAID or incoming == 0:
        return installment, 0

    consumed = min(incoming, installment.outstanding_amount)
    outstanding = installment.outstanding_amount - consumed
    status = RepaymentStatus.REPAID if outstanding == 0 else RepaymentStatus.PARTIAL

    updated = replace(
        installment,
        outstanding_amount=outstanding,
        status=status,
        updated_at=now or datetime.now(timezone.utc)
    )
    return updated, consumed


def _schedule_order(installment: ScheduledRepayment):
    return installment.due_date, installment.installment_number


def allocate_repayment(
    installments: Sequence[ScheduledRepayment],
    incoming_amount: int,
    now: Optional[datetime] = None
) -> AllocationResult:
    """
    Spread a payment over installments, earliest due date first

    Every installment is visited once; a later installment only receives
    money after all earlier ones are fully repaid.
    """
    _check_amount(incoming_amount)
    now = now or datetime.now(timezone.utc)

    ordered = sorted(installments, key=_schedule_order)
    outstanding_before = sum(i.outstanding_amount for i in ordered)

    remaining = incoming_amount
    applied = 0
    result = []
    for installment in ordered:
        updated, consumed = next_state(installment, remaining, now)
        remaining -= consumed
        applied += consumed
        result.append(updated)

    return AllocationResult(
        installments=result,
        applied_amount=applied,
        unapplied_amount=remaining,
        outstanding_before=outstanding_before
    )


def apply_repayment(
    loan: Loan,
    installments: Sequence[ScheduledRepayment],
    incoming_amount: int,
    currency_code: str,
    received_date: DateLike,
    overpayment_policy: OverpaymentPolicy = OverpaymentPolicy.IGNORE,
    now: Optional[datetime] = None
) -> RepaymentOutcome:
    """
    Apply one incoming payment to a loan

    Args:
        loan: Loan being repaid
        installments: All installments of the loan
        incoming_amount: Amount offered, in minor units
        currency_code: Currency of the payment; must match the loan
        received_date: Date the payment was received
        overpayment_policy: Handling of amounts above the total outstanding
        now: Timestamp for updated records

    Returns:
        RepaymentOutcome with the new loan, installments and receipt

    Raises:
        InvalidRepaymentAmount: If the amount is negative or not an integer
        CurrencyMismatchError: If the payment currency differs from the loan's
        OverpaymentError: If the amount exceeds the outstanding total under
            OverpaymentPolicy.REJECT
        InvalidLoanStateError: If the loan balance disagrees with its installments
    """
    _check_amount(incoming_amount)
    currency_code = normalize_currency_code(currency_code)
    if currency_code != loan.currency_code:
        raise CurrencyMismatchError(
            f"Repayment in {currency_code} for loan {loan.id} in {loan.currency_code}"
        )
    received = coerce_date(received_date)

    foreign = [i for i in installments if i.loan_id != loan.id]
    if foreign:
        raise InvalidLoanStateError(
            f"Installment {foreign[0].id} does not belong to loan {loan.id}"
        )
    scheduled_outstanding = sum(i.outstanding_amount for i in installments)
    if scheduled_outstanding != loan.outstanding_amount:
        raise InvalidLoanStateError(
            f"Loan {loan.id} outstanding amount {loan.outstanding_amount} does not "
            f"match its installments ({scheduled_outstanding})"
        )

    if overpayment_policy == OverpaymentPolicy.REJECT and incoming_amount > scheduled_outstanding:
        raise OverpaymentError(
            f"Repayment of {incoming_amount} exceeds outstanding amount "
            f"{scheduled_outstanding} of loan {loan.id}",
            offered_amount=incoming_amount,
            outstanding_amount=scheduled_outstanding
        )

    now = now or datetime.now(timezone.utc)
    allocation = allocate_repayment(installments, incoming_amount, now)

    outstanding = loan.outstanding_amount - allocation.applied_amount
    status = LoanStatus.REPAID if outstanding == 0 else LoanStatus.DUE
    updated_loan = replace(loan, outstanding_amount=outstanding, status=status, updated_at=now)

    receipt = ReceivedRepayment(
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        loan_id=loan.id,
        amount=allocation.applied_amount,
        currency_code=currency_code,
        received_date=received
    )

    before = {i.id: i for i in installments}
    changed = [
        i for i in allocation.installments
        if i.outstanding_amount != before[i.id].outstanding_amount
    ]

    return RepaymentOutcome(
        loan=updated_loan,
        installments=allocation.installments,
        receipt=receipt,
        unapplied_amount=allocation.unapplied_amount,
        changed=changed
    )
