"""Bootcamp persistence steps run explicitly by the controllers.

Saving a bootcamp derives its slug and geocodes its address before the
write; deleting one removes its reviews and courses in the same transaction.
"""

import logging
import math
import re
import unicodedata

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.models.review import Review
from devcamper.services import geocoder

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3963.0
MILES_PER_DEGREE_LATITUDE = 69.0


def slugify(value: str) -> str:
    normalized = unicodedata.normalize('NFKD', value).encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^a-z0-9]+', '-', normalized.lower()).strip('-')


async def apply_location(bootcamp: Bootcamp, address: str) -> None:
    """Replace ``address`` with its geocoded location on ``bootcamp``.

    Raises ``geocoder.GeocodingError`` and leaves the bootcamp untouched when
    the lookup fails.
    """
    location = await geocoder.geocode(address)
    bootcamp.latitude = location.latitude
    bootcamp.longitude = location.longitude
    bootcamp.formatted_address = location.formatted_address
    bootcamp.street = location.street
    bootcamp.city = location.city
    bootcamp.state = location.state
    bootcamp.zipcode = location.zipcode
    bootcamp.country = location.country


def delete_bootcamp(db: Session, bootcamp: Bootcamp) -> None:
    bootcamp_id = bootcamp.id
    try:
        reviews = db.execute(delete(Review).where(Review.bootcamp_id == bootcamp_id)).rowcount
        courses = db.execute(delete(Course).where(Course.bootcamp_id == bootcamp_id)).rowcount
        db.delete(bootcamp)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info('Deleted bootcamp %s with %s courses and %s reviews', bootcamp_id, courses, reviews)


def update_average_cost(db: Session, bootcamp_id: int) -> None:
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        return
    average = db.scalar(select(func.avg(Course.tuition)).where(Course.bootcamp_id == bootcamp_id))
    bootcamp.average_cost = math.ceil(average / 10) * 10 if average is not None else None
    db.commit()


def update_average_rating(db: Session, bootcamp_id: int) -> None:
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        return
    average = db.scalar(select(func.avg(Review.rating)).where(Review.bootcamp_id == bootcamp_id))
    bootcamp.average_rating = round(float(average), 1) if average is not None else None
    db.commit()


def distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)
    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(a)))


def find_within_radius(db: Session, latitude: float, longitude: float, radius_miles: float) -> list[Bootcamp]:
    lat_delta = radius_miles / MILES_PER_DEGREE_LATITUDE
    cos_lat = math.cos(math.radians(latitude))
    lng_delta = 180.0 if cos_lat < 1e-6 else radius_miles / (MILES_PER_DEGREE_LATITUDE * cos_lat)

    # Bounding box in SQL, exact great-circle distance here.
    candidates = db.scalars(
        select(Bootcamp).where(
            Bootcamp.latitude.is_not(None),
            Bootcamp.longitude.is_not(None),
            Bootcamp.latitude.between(latitude - lat_delta, latitude + lat_delta),
            Bootcamp.longitude.between(longitude - lng_delta, longitude + lng_delta),
        )
    ).all()

    return [
        bootcamp
        for bootcamp in candidates
        if distance_miles(latitude, longitude, bootcamp.latitude, bootcamp.longitude) <= radius_miles
    ]
