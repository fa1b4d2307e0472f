from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.db.base import Base


class LedgerOperation:
    DEBIT = "DEBIT"
    REFUND = "REFUND"
    PURCHASE = "PURCHASE"
    GRANT = "GRANT"


class CreditLedgerEntry(Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (UniqueConstraint("account_id", "reference", "operation", name="uq_credit_ledger_idempotency"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    account_id = Column(String, nullable=False, index=True)
    job_id = Column(String, nullable=True, index=True)
    reference = Column(String, nullable=False)  # e.g. job:<id>, refund:<id>, payment:<charge id>
    operation = Column(String, nullable=False)  # DEBIT, REFUND, PURCHASE, GRANT
    amount = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
