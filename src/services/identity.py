"""Resolves notification recipients to contact addresses."""

from sqlalchemy.orm import Session

from src.exceptions import RecipientUnknownError
from src.models.user import User


class IdentityProvider:
    """Looks up a user's registered email address."""

    def __init__(self, db: Session):
        self.db = db

    def get_email_for_user(self, user_id: int) -> str:
        """Return the user's email address.

        Raises:
            RecipientUnknownError: the user does not exist or has no address
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not (user.email or "").strip():
            raise RecipientUnknownError(user_id)
        return user.email
