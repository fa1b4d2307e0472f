"""
Credit ledger: atomic balance operations on accounts.credits.

Every mutation is a single conditional UPDATE plus one append-only journal row
(credit_ledger). Operations flush inside the caller's transaction; the caller
owns commit/rollback so a debit can share a transaction with the job insert.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.account import Account
from app.models.credit_ledger import CreditLedgerEntry, LedgerOperation
from app.services.generations.errors import AccountNotFound, InsufficientCredits
from app.utils.metrics import balance_rejected_total, credit_operations_total

logger = logging.getLogger(__name__)


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def debit(self, account_id: str, amount: int, reference: str, job_id: str | None = None) -> None:
        """
        Atomically take `amount` credits: UPDATE ... WHERE credits >= amount.
        Raises InsufficientCredits (no side effects) or AccountNotFound.
        """
        if amount <= 0:
            raise ValueError("debit amount must be positive")
        result = self.db.execute(
            update(Account)
            .where(Account.id == account_id, Account.credits >= amount)
            .values(credits=Account.credits - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if not self._account_exists(account_id):
                raise AccountNotFound(f"Account {account_id} not found", detail={"account_id": account_id})
            balance_rejected_total.inc()
            logger.info(
                "credit_debit_rejected",
                extra={"account_id": account_id, "amount": amount, "reference": reference},
            )
            raise InsufficientCredits(account_id, amount)

        self.db.add(
            CreditLedgerEntry(
                account_id=account_id,
                job_id=job_id,
                reference=reference,
                operation=LedgerOperation.DEBIT,
                amount=amount,
            )
        )
        self.db.flush()
        credit_operations_total.labels(operation=LedgerOperation.DEBIT).inc()
        logger.info(
            "credit_debited",
            extra={"account_id": account_id, "amount": amount, "reference": reference, "job_id": job_id},
        )

    def credit(
        self,
        account_id: str,
        amount: int,
        reference: str,
        operation: str = LedgerOperation.REFUND,
        job_id: str | None = None,
    ) -> bool:
        """
        Unconditionally add `amount` credits.
        Idempotent per (account_id, reference, operation): returns False and
        changes nothing if that journal entry already exists.
        """
        if amount <= 0:
            raise ValueError("credit amount must be positive")
        if self._entry_exists(account_id, reference, operation):
            logger.info(
                "credit_already_applied",
                extra={"account_id": account_id, "reference": reference, "operation": operation},
            )
            return False

        result = self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(credits=Account.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AccountNotFound(f"Account {account_id} not found", detail={"account_id": account_id})

        self.db.add(
            CreditLedgerEntry(
                account_id=account_id,
                job_id=job_id,
                reference=reference,
                operation=operation,
                amount=amount,
            )
        )
        self.db.flush()
        credit_operations_total.labels(operation=operation).inc()
        logger.info(
            "credit_applied",
            extra={
                "account_id": account_id,
                "amount": amount,
                "reference": reference,
                "operation": operation,
                "job_id": job_id,
            },
        )
        return True

    def record_purchase(self, account_id: str, amount: int, payment_reference: str) -> bool:
        """
        Consume a "purchase completed" event from the payment processor.
        Idempotent per payment reference; commits its own transaction.
        """
        reference = f"payment:{payment_reference}"
        try:
            applied = self.credit(account_id, amount, reference, operation=LedgerOperation.PURCHASE)
            self.db.commit()
            return applied
        except IntegrityError:
            # Concurrent delivery of the same event won the unique journal key.
            self.db.rollback()
            logger.warning(
                "purchase_duplicate",
                extra={"account_id": account_id, "reference": reference},
            )
            return False

    def get_balance(self, account_id: str) -> int:
        balance = self.db.execute(
            select(Account.credits).where(Account.id == account_id)
        ).scalar_one_or_none()
        if balance is None:
            raise AccountNotFound(f"Account {account_id} not found", detail={"account_id": account_id})
        return balance

    def _account_exists(self, account_id: str) -> bool:
        stmt = select(Account.id).where(Account.id == account_id).exists()
        return self.db.query(stmt).scalar() or False

    def _entry_exists(self, account_id: str, reference: str, operation: str) -> bool:
        stmt = (
            select(CreditLedgerEntry.id)
            .where(
                CreditLedgerEntry.account_id == account_id,
                CreditLedgerEntry.reference == reference,
                CreditLedgerEntry.operation == operation,
            )
            .exists()
        )
        return self.db.query(stmt).scalar() or False
