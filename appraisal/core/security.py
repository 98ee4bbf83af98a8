import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from appraisal.db.session import get_db
from appraisal.models.user import User

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    Dev auth: the caller names themselves with `X-User-Email: hr@local.test`.
    Lookup is case-insensitive; unknown and deactivated users get 401.
    """
    email = (x_user_email or "").strip()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    user = db.query(User).filter(func.lower(User.email) == email.lower()).one_or_none()
    if user is None or not user.is_active:
        logger.info("Rejected dev auth for %s", email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")
    return user
