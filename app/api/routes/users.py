"""
User administration endpoints.

Listing and profile edits need ``users.view`` (or ``*``). Changing a role
needs ``*``, so staff with user access cannot grant themselves more rights.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import require_permission
from app.config.database import get_db
from app.models.domain import User
from app.models.schemas import ProfileUpdate, RoleChange
from app.services.auth.permissions import role_label
from app.services.auth.session import SessionContext
from app.services.auth.users import UserDirectory, user_stats

router = APIRouter()

USER_ACCESS = ("users.view", "*")


def _user_item(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": user.role.value,
        "role_label": role_label(user.role),
        "roles": [role.value for role in user.roles],
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("/users")
def list_users(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_permission(*USER_ACCESS)),
):
    """All users with their primary role, plus counts per role."""
    users = UserDirectory(db).list_users()
    return {"items": [_user_item(user) for user in users], "stats": user_stats(users)}


@router.put("/users/{user_id}/role")
def change_user_role(
    user_id: str,
    change: RoleChange,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_permission("*")),
):
    """
    Replace every role of the user with `role`.

    **Errors:**
    - 400 when changing your own role
    - 404 for an unknown user
    """
    user = UserDirectory(db).update_role(user_id, change.role, acting_user_id=session.user.id)
    return _user_item(user)


@router.patch("/users/{user_id}")
def update_user_profile(
    user_id: str,
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_permission(*USER_ACCESS)),
):
    """Edit a user's name and/or phone."""
    user = UserDirectory(db).update_profile(user_id, name=update.name, phone=update.phone)
    return _user_item(user)
