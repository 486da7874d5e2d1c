import re
from datetime import datetime
from pathlib import Path

import aiofiles
from fastapi import APIRouter, Depends, File, HTTPException, Path as PathParam, Request, UploadFile, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from devcamper.auth.dependencies import authorize
from devcamper.auth.permissions import ensure_owner
from devcamper.core import config
from devcamper.core.query_builder import advanced_results
from devcamper.database import get_db
from devcamper.models.bootcamp import CAREERS, Bootcamp
from devcamper.models.user import User
from devcamper.services import bootcamps as bootcamp_service
from devcamper.services import geocoder

router = APIRouter(tags=['bootcamps'])

WEBSITE_PATTERN = re.compile(
    r'^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b([-a-zA-Z0-9()@:%_+.~#?&/=]*)$'
)
PHOTO_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp')


class BootcampUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    website: str | None = None
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    address: str | None = None
    careers: list[str] | None = None
    housing: bool | None = None
    job_assistance: bool | None = None
    job_guarantee: bool | None = None
    accept_gi: bool | None = None

    @field_validator(
        'name',
        'description',
        'address',
        'careers',
        'housing',
        'job_assistance',
        'job_guarantee',
        'accept_gi',
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError('Value cannot be null.')
        return value

    @field_validator('name', 'description', 'address')
    @classmethod
    def validate_required_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value cannot be blank.')
        return normalized

    @field_validator('website')
    @classmethod
    def validate_website(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not WEBSITE_PATTERN.match(value.strip()):
            raise ValueError('Please use a valid URL with HTTP or HTTPS')
        return value.strip()

    @field_validator('careers')
    @classmethod
    def validate_careers(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        if not value:
            raise ValueError('Please add at least one career.')
        invalid = [career for career in value if career not in CAREERS]
        if invalid:
            raise ValueError(f"Invalid careers: {', '.join(invalid)}")
        return list(dict.fromkeys(value))


class BootcampCreateRequest(BootcampUpdateRequest):
    name: str = Field(max_length=50)
    description: str = Field(max_length=500)
    address: str
    careers: list[str]
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False


class LocationResponse(BaseModel):
    type: str
    coordinates: list[float]
    formatted_address: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None


class CourseSummaryResponse(BaseModel):
    id: int
    title: str
    weeks: int
    tuition: int
    minimum_skill: str

    class Config:
        from_attributes = True


class BootcampResponse(BaseModel):
    id: int
    name: str
    slug: str | None = None
    description: str
    website: str | None = None
    phone: str | None = None
    email: str | None = None
    location: LocationResponse | None = None
    careers: list[str]
    average_rating: float | None = None
    average_cost: float | None = None
    photo: str
    housing: bool
    job_assistance: bool
    job_guarantee: bool
    accept_gi: bool
    created_at: datetime
    user_id: int
    courses: list[CourseSummaryResponse] = []

    class Config:
        from_attributes = True


def serialize_bootcamp(bootcamp: Bootcamp) -> dict:
    return BootcampResponse.model_validate(bootcamp).model_dump(mode='json')


def get_bootcamp_or_404(db: Session, bootcamp_id: int) -> Bootcamp:
    bootcamp = db.get(Bootcamp, bootcamp_id)
    if bootcamp is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'No bootcamp with the id of {bootcamp_id}',
        )
    return bootcamp


def ensure_name_available(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = select(Bootcamp.id).where(Bootcamp.name == name)
    if exclude_id is not None:
        query = query.where(Bootcamp.id != exclude_id)
    if db.scalar(query) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='A bootcamp with that name already exists.',
        )


async def locate(bootcamp: Bootcamp, address: str) -> None:
    try:
        await bootcamp_service.apply_location(bootcamp, address)
    except geocoder.GeocodingError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Address could not be geocoded',
        ) from exc


def ensure_can_publish(db: Session, user: User) -> None:
    if user.role == 'admin':
        return
    published = db.scalar(select(Bootcamp.id).where(Bootcamp.user_id == user.id))
    if published is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'The user with ID {user.id} has already published a bootcamp',
        )


def save_bootcamp(db: Session, bootcamp: Bootcamp) -> dict:
    db.add(bootcamp)
    db.commit()
    db.refresh(bootcamp)
    return serialize_bootcamp(bootcamp)


def bootcamps_near(db: Session, latitude: float, longitude: float, distance: float) -> dict:
    bootcamps = bootcamp_service.find_within_radius(db, latitude, longitude, distance)
    return {
        'success': True,
        'count': len(bootcamps),
        'data': [serialize_bootcamp(bootcamp) for bootcamp in bootcamps],
    }


@router.get('')
def list_bootcamps(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Bootcamp, request.query_params.multi_items(), serialize_bootcamp)


@router.get('/radius/{zipcode}/{distance}')
async def list_bootcamps_in_radius(
    zipcode: str,
    distance: float = PathParam(gt=0),
    db: Session = Depends(get_db),
):
    try:
        origin = await geocoder.geocode(zipcode)
    except geocoder.GeocodingError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Zipcode could not be geocoded',
        ) from exc

    return await run_in_threadpool(bootcamps_near, db, origin.latitude, origin.longitude, distance)


@router.get('/{bootcamp_id}')
def get_bootcamp(bootcamp_id: int, db: Session = Depends(get_db)):
    return {'success': True, 'data': serialize_bootcamp(get_bootcamp_or_404(db, bootcamp_id))}


@router.post('', status_code=status.HTTP_201_CREATED)
async def create_bootcamp(
    data: BootcampCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    await run_in_threadpool(ensure_can_publish, db, current_user)
    await run_in_threadpool(ensure_name_available, db, data.name)

    fields = data.model_dump(exclude={'address'})
    bootcamp = Bootcamp(**fields, slug=bootcamp_service.slugify(data.name), user_id=current_user.id)
    await locate(bootcamp, data.address)

    return {'success': True, 'data': await run_in_threadpool(save_bootcamp, db, bootcamp)}


@router.put('/{bootcamp_id}')
async def update_bootcamp(
    bootcamp_id: int,
    data: BootcampUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    bootcamp = await run_in_threadpool(get_bootcamp_or_404, db, bootcamp_id)
    ensure_owner(bootcamp, current_user, f'update bootcamp {bootcamp_id}')

    fields = data.model_dump(exclude_unset=True)
    address = fields.pop('address', None)

    if 'name' in fields and fields['name'] != bootcamp.name:
        await run_in_threadpool(ensure_name_available, db, fields['name'], bootcamp.id)
        bootcamp.slug = bootcamp_service.slugify(fields['name'])

    if address is not None:
        await locate(bootcamp, address)

    for name, value in fields.items():
        setattr(bootcamp, name, value)

    return {'success': True, 'data': await run_in_threadpool(save_bootcamp, db, bootcamp)}


@router.delete('/{bootcamp_id}')
def delete_bootcamp(
    bootcamp_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)
    ensure_owner(bootcamp, current_user, f'delete bootcamp {bootcamp_id}')

    bootcamp_service.delete_bootcamp(db, bootcamp)

    return {'success': True, 'data': {}}


@router.put('/{bootcamp_id}/photo')
async def upload_bootcamp_photo(
    bootcamp_id: int,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    bootcamp = await run_in_threadpool(get_bootcamp_or_404, db, bootcamp_id)
    ensure_owner(bootcamp, current_user, f'update bootcamp {bootcamp_id}')

    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Please upload a file')

    extension = Path(file.filename).suffix.lower()
    if not (file.content_type or '').startswith('image') or extension not in PHOTO_EXTENSIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Please upload an image file')

    contents = await file.read(config.MAX_FILE_UPLOAD + 1)
    if len(contents) > config.MAX_FILE_UPLOAD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Please upload an image less than {config.MAX_FILE_UPLOAD} bytes',
        )

    filename = f'photo_{bootcamp.id}{extension}'
    upload_dir = Path(config.FILE_UPLOAD_PATH)
    upload_dir.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(upload_dir / filename, 'wb') as output:
        await output.write(contents)

    bootcamp.photo = filename
    await run_in_threadpool(db.commit)

    return {'success': True, 'data': filename}
