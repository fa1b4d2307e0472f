from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


class CompensationLog(Base):
    __tablename__ = "compensation_log"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    job_id = Column(String, unique=True, nullable=False)  # at most one refund per generation job
    account_id = Column(String, nullable=False, index=True)
    mode = Column(String, nullable=False)
    reason = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
