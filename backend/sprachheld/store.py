from __future__ import annotations

import json
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .models import UserDataRecord
from .progress import ensure_structure, initial_user_data
from .schemas import UserData


logger = logging.getLogger(__name__)


def load_user_data(db: Session, profile_key: str) -> UserData:
    row = db.get(UserDataRecord, profile_key)
    if row is None:
        return initial_user_data()
    try:
        data = UserData.model_validate(json.loads(row.payload_json))
    except (ValueError, ValidationError) as exc:
        logger.error("Failed to load user data for %s, starting fresh: %s", profile_key, exc)
        return initial_user_data()
    return ensure_structure(data)


def save_user_data(db: Session, profile_key: str, data: UserData) -> None:
    payload = data.model_dump_json()
    try:
        row = db.get(UserDataRecord, profile_key)
        if row is None:
            db.add(UserDataRecord(profile_key=profile_key, payload_json=payload))
        else:
            row.payload_json = payload
            db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to save user data for %s", profile_key)
        raise

