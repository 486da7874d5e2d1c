"""Bootcamp model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from devcamper.database import Base

CAREERS = (
    'Web Development',
    'Mobile Development',
    'UI/UX',
    'Data Science',
    'Business',
    'Other',
)
DEFAULT_PHOTO = 'no-photo.jpg'


class Bootcamp(Base):
    """Represents a bootcamp listing owned by a publisher."""
    __tablename__ = "bootcamps"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String, index=True)
    description = Column(String(500), nullable=False)
    website = Column(String)
    phone = Column(String(20))
    email = Column(String)

    # Geocoded from the submitted address; the address itself is not stored.
    latitude = Column(Float)
    longitude = Column(Float)
    formatted_address = Column(String)
    street = Column(String)
    city = Column(String)
    state = Column(String)
    zipcode = Column(String, index=True)
    country = Column(String)

    careers = Column(JSON, nullable=False, default=list)
    average_rating = Column(Float)
    average_cost = Column(Float)
    photo = Column(String, nullable=False, default=DEFAULT_PHOTO)
    housing = Column(Boolean, nullable=False, default=False)
    job_assistance = Column(Boolean, nullable=False, default=False)
    job_guarantee = Column(Boolean, nullable=False, default=False)
    accept_gi = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    courses = relationship("Course", back_populates="bootcamp", order_by="Course.created_at", viewonly=True)

    @property
    def location(self) -> dict | None:
        if self.latitude is None or self.longitude is None:
            return None
        return {
            'type': 'Point',
            'coordinates': [self.longitude, self.latitude],
            'formatted_address': self.formatted_address,
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'zipcode': self.zipcode,
            'country': self.country,
        }
