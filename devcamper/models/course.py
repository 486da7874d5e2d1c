"""Course model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from devcamper.database import Base

SKILL_LEVELS = ('beginner', 'intermediate', 'advanced')


class Course(Base):
    """Represents a course offered by a bootcamp."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    weeks = Column(Integer, nullable=False)
    tuition = Column(Integer, nullable=False)
    minimum_skill = Column(String, nullable=False)
    scholarship_available = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    bootcamp_id = Column(Integer, ForeignKey("bootcamps.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    bootcamp = relationship("Bootcamp", back_populates="courses", viewonly=True)
