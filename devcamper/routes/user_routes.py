"""Admin-only user management."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from devcamper.auth import passwords
from devcamper.auth.dependencies import authorize
from devcamper.core.query_builder import advanced_results
from devcamper.database import get_db
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.models.review import Review
from devcamper.models.user import USER_ROLES, User
from devcamper.routes.auth_routes import MIN_PASSWORD_LENGTH, ensure_email_available, serialize_user

router = APIRouter(tags=['users'])

HIDDEN_USER_FIELDS = ('hashed_password', 'reset_password_token', 'reset_password_expire')


def _normalize_role(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in USER_ROLES:
        raise ValueError('Role must be user, publisher or admin')
    return normalized


class UpdateUserRequest(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    role: str | None = None

    @field_validator('name', 'email', 'role')
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError('Value cannot be null.')
        return value

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please add a name')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        return _normalize_role(value)


class CreateUserRequest(UpdateUserRequest):
    name: str
    email: EmailStr
    role: str = 'user'
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'No user with the id of {user_id}',
        )
    return user


@router.get('')
def list_users(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('admin')),
):
    return advanced_results(
        db,
        User,
        request.query_params.multi_items(),
        serialize_user,
        hidden_fields=HIDDEN_USER_FIELDS,
    )


@router.get('/{user_id}')
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('admin')),
):
    return {'success': True, 'data': serialize_user(get_user_or_404(db, user_id))}


@router.post('', status_code=status.HTTP_201_CREATED)
def create_user(
    data: CreateUserRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('admin')),
):
    ensure_email_available(db, data.email)

    user = User(
        name=data.name,
        email=data.email,
        role=data.role,
        hashed_password=passwords.hash_password(data.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    return {'success': True, 'data': serialize_user(user)}


@router.put('/{user_id}')
def update_user(
    user_id: int,
    data: UpdateUserRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('admin')),
):
    user = get_user_or_404(db, user_id)

    fields = data.model_dump(exclude_unset=True)
    if 'email' in fields and fields['email'] != user.email:
        ensure_email_available(db, fields['email'])

    for name, value in fields.items():
        setattr(user, name, value)
    db.commit()
    db.refresh(user)

    return {'success': True, 'data': serialize_user(user)}


@router.delete('/{user_id}')
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('admin')),
):
    user = get_user_or_404(db, user_id)

    for model in (Bootcamp, Course, Review):
        if db.scalar(select(model.id).where(model.user_id == user.id)) is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'User {user_id} still owns {model.__tablename__}; remove them first.',
            )

    db.delete(user)
    db.commit()

    return {'success': True, 'data': {}}
