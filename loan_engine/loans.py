"""
Loan Module

Entry points for the loan lifecycle: creating a loan with its repayment
schedule and applying incoming repayments. Schedule generation and payment
allocation are pure functions (see schedule.py and allocation.py); this
module loads and persists records around them inside one storage transaction.
"""

from typing import List, Optional

from .allocation import OverpaymentPolicy, apply_repayment
from .audit import AuditTrail, AuditEventType
from .config import LoanEngineConfig
from .currency import format_minor_units
from .exceptions import LoanEngineError, LoanNotFoundError
from .logging_config import get_logger, log_action
from .models import Loan, ReceivedRepayment, ScheduledRepayment
from .schedule import DateLike, generate_schedule
from .storage import StorageInterface, create_storage


class LoanManager:
    """
    Creates loans and applies repayments against their schedules
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        overpayment_policy: OverpaymentPolicy = OverpaymentPolicy.IGNORE
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.overpayment_policy = overpayment_policy
        self.logger = get_logger("loan_engine.loans")

        self.loans_table = "loans"
        self.scheduled_table = "scheduled_repayments"
        self.received_table = "received_repayments"

    @classmethod
    def from_config(cls, config: LoanEngineConfig) -> 'LoanManager':
        """Build a manager with the storage backend and audit settings from config"""
        storage = create_storage(config.database_url)
        audit_trail = AuditTrail(storage) if config.enable_audit_logging else None
        return cls(
            storage,
            audit_trail=audit_trail,
            overpayment_policy=OverpaymentPolicy(config.overpayment_policy)
        )

    def create_loan(
        self,
        owner_id: str,
        amount: int,
        currency_code: str,
        terms: int,
        processed_at: DateLike
    ) -> Loan:
        """
        Create a loan and persist its repayment schedule

        Args:
            owner_id: Borrower reference
            amount: Principal in minor currency units
            currency_code: ISO 4217 currency code
            terms: Number of monthly installments
            processed_at: Disbursement date

        Returns:
            Created Loan

        Raises:
            InvalidScheduleParameters: If the loan cannot be scheduled
        """
        try:
            loan, installments = generate_schedule(
                owner_id, amount, currency_code, terms, processed_at
            )
        except LoanEngineError as e:
            log_action(
                self.logger, "warning", f"Loan creation rejected: {e}",
                action="create_loan", resource=f"owner:{owner_id}",
                extra={"amount": amount, "terms": terms, "error": type(e).__name__}
            )
            raise

        with self.storage.atomic():
            self.storage.save(self.loans_table, loan.id, loan.to_dict())
            for installment in installments:
                self.storage.save(self.scheduled_table, installment.id, installment.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_CREATED,
                    entity_type="loan",
                    entity_id=loan.id,
                    metadata={
                        "owner_id": owner_id,
                        "principal_amount": loan.principal_amount,
                        "currency_code": loan.currency_code,
                        "terms": loan.terms,
                        "disbursed_date": loan.disbursed_date.isoformat(),
                        "installments": [i.amount for i in installments]
                    }
                )

        log_action(
            self.logger, "info",
            f"Loan created: {format_minor_units(loan.principal_amount, loan.currency_code)} "
            f"over {loan.terms} months",
            action="create_loan", resource=f"loan:{loan.id}",
            extra={
                "owner_id": owner_id,
                "principal_amount": loan.principal_amount,
                "currency_code": loan.currency_code,
                "terms": loan.terms,
                "first_due_date": installments[0].due_date.isoformat(),
                "last_due_date": installments[-1].due_date.isoformat()
            }
        )

        return loan

    def repay_loan(
        self,
        loan_id: str,
        amount: int,
        currency_code: str,
        received_at: DateLike
    ) -> Loan:
        """
        Apply an incoming repayment to a loan's schedule

        Installments are settled oldest first. Reading the loan and its
        schedule, allocating, and writing the updated installments, the
        receipt and the loan all happen in one storage transaction, so
        concurrent repayments of the same loan are applied one after another.

        Args:
            loan_id: Loan being repaid
            amount: Amount received, in minor currency units
            currency_code: Currency of the payment
            received_at: Date the payment was received

        Returns:
            Updated Loan

        Raises:
            LoanNotFoundError: If the loan does not exist
            InvalidRepaymentAmount, CurrencyMismatchError, OverpaymentError:
                If the repayment is rejected
        """
        with self.storage.atomic():
            loan = self.get_loan(loan_id)
            if not loan:
                raise LoanNotFoundError(f"Loan {loan_id} not found")

            installments = self.get_scheduled_repayments(loan_id)
            try:
                outcome = apply_repayment(
                    loan, installments, amount, currency_code, received_at,
                    overpayment_policy=self.overpayment_policy
                )
            except LoanEngineError as e:
                log_action(
                    self.logger, "warning", f"Repayment rejected: {e}",
                    action="repay_loan", resource=f"loan:{loan_id}",
                    extra={"amount": amount, "currency_code": currency_code,
                           "error": type(e).__name__}
                )
                raise

            updated = outcome.loan
            receipt = outcome.receipt

            for installment in outcome.changed:
                self.storage.save(self.scheduled_table, installment.id, installment.to_dict())
            self.storage.save(self.received_table, receipt.id, receipt.to_dict())
            self.storage.save(self.loans_table, updated.id, updated.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_REPAYMENT_RECEIVED,
                    entity_type="loan",
                    entity_id=loan_id,
                    metadata={
                        "receipt_id": receipt.id,
                        "offered_amount": amount,
                        "applied_amount": receipt.amount,
                        "currency_code": receipt.currency_code,
                        "received_date": receipt.received_date.isoformat(),
                        "outstanding_amount": updated.outstanding_amount,
                        "installments": {
                            str(i.installment_number): i.status.value
                            for i in outcome.changed
                        }
                    }
                )
                if updated.is_repaid and not loan.is_repaid:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.LOAN_REPAID,
                        entity_type="loan",
                        entity_id=loan_id,
                        metadata={"received_date": receipt.received_date.isoformat()}
                    )

        if outcome.unapplied_amount:
            log_action(
                self.logger, "warning",
                f"Repayment exceeded outstanding amount by "
                f"{format_minor_units(outcome.unapplied_amount, receipt.currency_code)}",
                action="repay_loan", resource=f"loan:{loan_id}",
                extra={"offered_amount": amount, "applied_amount": receipt.amount,
                       "unapplied_amount": outcome.unapplied_amount}
            )

        log_action(
            self.logger, "info",
            f"Repayment applied: {format_minor_units(receipt.amount, receipt.currency_code)}",
            action="repay_loan", resource=f"loan:{loan_id}",
            extra={
                "receipt_id": receipt.id,
                "applied_amount": receipt.amount,
                "outstanding_amount": updated.outstanding_amount,
                "status": updated.status.value,
                "installments_changed": len(outcome.changed)
            }
        )

        return updated

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        loan_dict = self.storage.load(self.loans_table, loan_id)
        if loan_dict:
            return Loan.from_dict(loan_dict)
        return None

    def get_owner_loans(self, owner_id: str) -> List[Loan]:
        """All loans of one borrower, oldest disbursement first"""
        loans_data = self.storage.find(
            self.loans_table, {"owner_id": owner_id}, order_by="disbursed_date"
        )
        return [Loan.from_dict(data) for data in loans_data]

    def get_scheduled_repayments(self, loan_id: str) -> List[ScheduledRepayment]:
        """Installments of a loan ordered by due date"""
        data = self.storage.find(self.scheduled_table, {"loan_id": loan_id}, order_by="due_date")
        return [ScheduledRepayment.from_dict(item) for item in data]

    def get_received_repayments(self, loan_id: str) -> List[ReceivedRepayment]:
        """Receipts of a loan ordered by received date, then arrival"""
        data = self.storage.find(self.received_table, {"loan_id": loan_id}, order_by="received_date")
        return [ReceivedRepayment.from_dict(item) for item in data]
