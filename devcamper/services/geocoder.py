"""Address lookup against a MapQuest-compatible geocoding endpoint."""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

from devcamper.core import config

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """Raised when an address cannot be resolved to coordinates."""


@dataclass
class GeocodedLocation:
    latitude: float
    longitude: float
    formatted_address: str
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None


def parse_location(payload: dict) -> GeocodedLocation:
    try:
        location = payload['results'][0]['locations'][0]
        lat_lng = location['latLng']
        latitude = float(lat_lng['lat'])
        longitude = float(lat_lng['lng'])
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise GeocodingError('No location found for address') from exc

    street = location.get('street') or None
    city = location.get('adminArea5') or None
    state = location.get('adminArea3') or None
    zipcode = location.get('postalCode') or None
    country = location.get('adminArea1') or None
    region = ' '.join(part for part in (state, zipcode) if part)
    formatted_address = ', '.join(part for part in (street, city, region, country) if part)

    return GeocodedLocation(
        latitude=latitude,
        longitude=longitude,
        formatted_address=formatted_address,
        street=street,
        city=city,
        state=state,
        zipcode=zipcode,
        country=country,
    )


async def geocode(address: str) -> GeocodedLocation:
    if not config.GEOCODER_API_KEY:
        raise GeocodingError('GEOCODER_API_KEY is not configured')

    params = {'key': config.GEOCODER_API_KEY, 'location': address, 'maxResults': '1'}
    timeout = aiohttp.ClientTimeout(total=config.GEOCODER_TIMEOUT_SECONDS)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(config.GEOCODER_URL, params=params) as response:
                response.raise_for_status()
                payload = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning('Geocoding request failed for %r: %s', address, exc)
        raise GeocodingError('Geocoding service unavailable') from exc

    return parse_location(payload)
