from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class UserDataRecord(Base):
	__tablename__ = "user_data"
	# One row per local learner profile
	profile_key = Column(String(128), primary_key=True, index=True)
	payload_json = Column(Text, nullable=False)  # JSON snapshot of UserData
	created_at = Column(DateTime, default=_utcnow, nullable=False)
	updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
