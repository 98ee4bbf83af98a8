from enum import Enum

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from appraisal.core.security import get_current_user
from appraisal.db.session import get_db
from appraisal.models.rbac import Role, UserRole
from appraisal.models.user import User


class RoleName(str, Enum):
    HR = "HR"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


def get_user_role_names(db: Session, user: User) -> set[str]:
    rows = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user.id)
        .all()
    )
    return {name for (name,) in rows}


def has_role(db: Session, user: User, role: RoleName) -> bool:
    return role.value in get_user_role_names(db, user)


def require_roles(*required: RoleName):
    """
    Dependency factory; the caller needs any one of `required`.

      Depends(require_roles(RoleName.HR))
    """
    required_names = {r.value for r in required}

    def _dep(
        db: Session = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> User:
        if not (get_user_role_names(db, user) & required_names):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Requires one of: {sorted(required_names)}",
            )
        return user

    return _dep


require_hr = require_roles(RoleName.HR)
