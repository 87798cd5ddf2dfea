from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.user import UserOut


class UserDirectory:
    """Read-only lookups over the ``users`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_user_by_id(self, user_id: str) -> Optional[UserOut]:
        db = self._session_factory()
        try:
            row = db.get(User, user_id)
            return UserOut.model_validate(row) if row else None
        finally:
            db.close()

    def get_user_by_email(self, email: str) -> Optional[UserOut]:
        db = self._session_factory()
        try:
            row = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
            return UserOut.model_validate(row) if row else None
        finally:
            db.close()

    def list_active_users(self) -> List[UserOut]:
        db = self._session_factory()
        try:
            rows = db.query(User).filter(User.active.is_(True)).order_by(User.name).all()
            return [UserOut.model_validate(r) for r in rows]
        finally:
            db.close()
