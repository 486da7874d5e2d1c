import logging
import smtplib
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from devcamper.auth import jwt_handler, passwords
from devcamper.auth.dependencies import get_current_user
from devcamper.core import config
from devcamper.database import get_db
from devcamper.models.user import User
from devcamper.services import mailer

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

TOKEN_COOKIE = 'token'
LOGOUT_COOKIE_SECONDS = 10
SELF_REGISTER_ROLES = ('user', 'publisher')
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    role: str = 'user'

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please add a name')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SELF_REGISTER_ROLES:
            raise ValueError('Role must be user or publisher')
        return normalized


class LoginRequest(BaseModel):
    email: str = ''
    password: str = ''


class UpdateDetailsRequest(BaseModel):
    name: str | None = None
    email: EmailStr | None = None

    @field_validator('name', 'email')
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


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


def serialize_user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode='json')


def send_token_response(user: User, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    token = jwt_handler.create_access_token(user.id)
    response = JSONResponse(status_code=status_code, content={'success': True, 'token': token})
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=token,
        max_age=config.JWT_COOKIE_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='lax',
    )
    return response


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.strip().lower()))


def ensure_email_available(db: Session, email: str) -> None:
    if find_user_by_email(db, email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='A user with that email already exists.',
        )


@router.post('/register')
def register(data: RegisterRequest, db: Session = Depends(get_db)):
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

    return send_token_response(user)


@router.post('/login')
def login(data: LoginRequest, db: Session = Depends(get_db)):
    if not data.email.strip() or not data.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Please provide an email and password',
        )

    user = find_user_by_email(db, data.email)
    hashed_password = user.hashed_password if user is not None else passwords.dummy_hash()
    if not passwords.verify_password(data.password, hashed_password) or user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')

    return send_token_response(user)


@router.post('/logout')
def logout():
    response = JSONResponse(content={'success': True, 'data': {}})
    response.set_cookie(
        key=TOKEN_COOKIE,
        value='none',
        max_age=LOGOUT_COOKIE_SECONDS,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='lax',
    )
    return response


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return {'success': True, 'data': serialize_user(current_user)}


@router.put('/updatedetails')
def update_details(
    data: UpdateDetailsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    fields = data.model_dump(exclude_unset=True)
    if 'email' in fields and fields['email'] != current_user.email:
        ensure_email_available(db, fields['email'])

    for name, value in fields.items():
        setattr(current_user, name, value)
    db.commit()
    db.refresh(current_user)

    return {'success': True, 'data': serialize_user(current_user)}


@router.put('/updatepassword')
def update_password(
    data: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not passwords.verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Password is incorrect')

    current_user.hashed_password = passwords.hash_password(data.new_password)
    db.commit()

    return send_token_response(current_user)


@router.post('/forgotpassword')
def forgot_password(data: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    user = find_user_by_email(db, data.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='There is no user with that email')

    reset_token, token_hash, expire = passwords.generate_reset_token()
    user.reset_password_token = token_hash
    user.reset_password_expire = expire
    db.commit()

    reset_url = f"{str(request.base_url).rstrip('/')}/api/v1/auth/resetpassword/{reset_token}"
    message = (
        'You are receiving this email because you (or someone else) has requested '
        f'the reset of a password. Please make a PUT request to:\n\n{reset_url}'
    )

    try:
        mailer.send_email(to=user.email, subject='Password reset token', message=message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning('Password reset email to %s failed: %s', user.email, exc)
        user.reset_password_token = None
        user.reset_password_expire = None
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Email could not be sent',
        ) from exc

    return {'success': True, 'data': 'Email sent'}


@router.put('/resetpassword/{resettoken}')
def reset_password(resettoken: str, data: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.scalar(
        select(User).where(
            User.reset_password_token == passwords.hash_reset_token(resettoken),
            User.reset_password_expire > datetime.now(),
        )
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid token')

    user.hashed_password = passwords.hash_password(data.password)
    user.reset_password_token = None
    user.reset_password_expire = None
    db.commit()

    return send_token_response(user)
