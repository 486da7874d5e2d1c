from fastapi import HTTPException, status

from devcamper.models.user import User


def is_owner_or_admin(resource, user: User) -> bool:
    return resource.user_id == user.id or user.role == 'admin'


def ensure_owner(resource, user: User, action: str) -> None:
    """Reject mutation of ``resource`` by anyone but its owner or an admin.

    ``action`` completes the message, e.g. ``"update this course"``.
    """
    if not is_owner_or_admin(resource, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'User {user.id} is not authorized to {action}',
        )
