"""Review model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from devcamper.database import Base


class Review(Base):
    """A user's rating of a bootcamp. One per user per bootcamp."""
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint('bootcamp_id', 'user_id', name='uq_reviews_bootcamp_user'),)

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    text = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    bootcamp_id = Column(Integer, ForeignKey("bootcamps.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
