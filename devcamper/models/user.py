"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from devcamper.database import Base

USER_ROLES = ('user', 'publisher', 'admin')


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, nullable=False, default='user')  # user/publisher/admin
    hashed_password = Column(String, nullable=False)
    reset_password_token = Column(String, index=True)
    reset_password_expire = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
