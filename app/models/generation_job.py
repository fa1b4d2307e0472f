from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base import Base


class JobStatus:
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


class GenerationJob(Base):
    __tablename__ = "generation_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    account_id = Column(String, nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    prompt = Column(Text, nullable=False)
    enhanced_prompt = Column(Text, nullable=True)
    mode = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    cost = Column(Integer, nullable=False)  # credits debited for this attempt
    status = Column(String, nullable=False, default=JobStatus.PROCESSING, index=True)
    provider_job_id = Column(String, unique=True, nullable=True)
    video_url = Column(Text, nullable=True)
    gif_url = Column(Text, nullable=True)
    error_detail = Column(Text, nullable=True)  # internal only, never shown to the account
    # Success-path ownership lease; see JobService.claim_transcode.
    transcode_claimed_at = Column(DateTime(timezone=True), nullable=True)
    last_polled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
