from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from .db import get_db
from .learner import Learner


def get_learner(db: Session = Depends(get_db)) -> Learner:
    return Learner(db)
