import asyncio
import io
import threading

import pytest
from fastapi import HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy import func, select
from starlette.datastructures import Headers

from devcamper.core import config
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.models.review import Review
from devcamper.routes import bootcamp_routes
from devcamper.routes.bootcamp_routes import BootcampCreateRequest, BootcampUpdateRequest
from devcamper.services import geocoder
from devcamper.services.geocoder import GeocodedLocation, GeocodingError

BOSTON = GeocodedLocation(
    latitude=42.3505,
    longitude=-71.1054,
    formatted_address='233 Bay State Rd, Boston, MA 02215, US',
    street='233 Bay State Rd',
    city='Boston',
    state='MA',
    zipcode='02215',
    country='US',
)


def _create_request(**overrides) -> BootcampCreateRequest:
    fields = {
        'name': 'Devworks Bootcamp',
        'description': 'Devworks is a full stack JavaScript bootcamp.',
        'website': 'https://devworks.com',
        'phone': '(111) 111-1111',
        'email': 'enroll@devworks.com',
        'address': '233 Bay State Rd Boston MA 02215',
        'careers': ['Web Development', 'UI/UX', 'Business'],
        'housing': True,
    }
    fields.update(overrides)
    return BootcampCreateRequest(**fields)


def _upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


@pytest.fixture
def geocoded(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lookups: list[str] = []

    async def fake_geocode(address: str) -> GeocodedLocation:
        lookups.append(address)
        return BOSTON

    monkeypatch.setattr(geocoder, 'geocode', fake_geocode)
    return lookups


def test_create_request_rejects_unknown_career() -> None:
    with pytest.raises(ValidationError):
        _create_request(careers=['Underwater Basket Weaving'])


def test_create_request_rejects_invalid_website() -> None:
    with pytest.raises(ValidationError):
        _create_request(website='devworks.com')


def test_create_request_rejects_long_name() -> None:
    with pytest.raises(ValidationError):
        _create_request(name='x' * 51)


def test_create_bootcamp_derives_slug_and_location(db, make_user, geocoded) -> None:
    publisher = make_user(role='publisher')

    result = asyncio.run(bootcamp_routes.create_bootcamp(_create_request(), db=db, current_user=publisher))
    data = result['data']

    assert geocoded == ['233 Bay State Rd Boston MA 02215']
    assert data['slug'] == 'devworks-bootcamp'
    assert data['user_id'] == publisher.id
    assert data['location']['type'] == 'Point'
    assert data['location']['coordinates'] == [BOSTON.longitude, BOSTON.latitude]
    assert data['location']['zipcode'] == '02215'
    assert 'address' not in data
    assert 'address' not in Bootcamp.__table__.columns


def test_create_bootcamp_aborts_when_geocoding_fails(db, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
    publisher = make_user(role='publisher')

    async def failing_geocode(address: str) -> GeocodedLocation:
        raise GeocodingError('Geocoding service unavailable')

    monkeypatch.setattr(geocoder, 'geocode', failing_geocode)

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(bootcamp_routes.create_bootcamp(_create_request(), db=db, current_user=publisher))

    assert exception_info.value.status_code == 500
    assert exception_info.value.detail == 'Address could not be geocoded'
    assert db.scalar(select(func.count()).select_from(Bootcamp)) == 0


def test_publisher_can_only_publish_one_bootcamp(db, make_user, make_bootcamp, geocoded) -> None:
    publisher = make_user(role='publisher')
    make_bootcamp(publisher)

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(bootcamp_routes.create_bootcamp(_create_request(), db=db, current_user=publisher))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == f'The user with ID {publisher.id} has already published a bootcamp'


def test_create_bootcamp_rejects_duplicate_name(db, make_user, make_bootcamp, geocoded) -> None:
    admin = make_user(role='admin')
    make_bootcamp(admin, name='Devworks Bootcamp')

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(bootcamp_routes.create_bootcamp(_create_request(), db=db, current_user=admin))

    assert exception_info.value.status_code == 400


def test_get_bootcamp_returns_404_for_unknown_id(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        bootcamp_routes.get_bootcamp(42, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'No bootcamp with the id of 42'


def test_get_bootcamp_embeds_courses(db, make_user, make_bootcamp, make_course) -> None:
    bootcamp = make_bootcamp(make_user(role='publisher'))
    course = make_course(bootcamp, title='Front End Web Development')

    data = bootcamp_routes.get_bootcamp(bootcamp.id, db=db)['data']

    assert [embedded['title'] for embedded in data['courses']] == [course.title]


def test_list_bootcamps_applies_query_string(db, make_user, make_bootcamp, make_request) -> None:
    owner = make_user(role='admin')
    make_bootcamp(owner, careers=['Business'])
    web = make_bootcamp(owner, careers=['Web Development'], housing=True)

    result = bootcamp_routes.list_bootcamps(make_request('careers=Web Development&select=name,housing'), db=db)

    assert result['count'] == 1
    assert result['data'] == [{'id': web.id, 'name': web.name, 'housing': True}]


def test_update_bootcamp_reslugs_and_regeocodes(db, make_user, make_bootcamp, geocoded) -> None:
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher, latitude=None, longitude=None)

    result = asyncio.run(
        bootcamp_routes.update_bootcamp(
            bootcamp.id,
            BootcampUpdateRequest(name='ModernTech Bootcamp', address='220 Pawtucket St Lowell MA'),
            db=db,
            current_user=publisher,
        )
    )

    assert result['data']['slug'] == 'moderntech-bootcamp'
    assert result['data']['location']['city'] == 'Boston'
    assert geocoded == ['220 Pawtucket St Lowell MA']


def test_update_bootcamp_rejects_non_owner(db, make_user, make_bootcamp, geocoded) -> None:
    bootcamp = make_bootcamp(make_user(role='publisher'), name='Original')
    intruder = make_user(role='publisher')

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(
            bootcamp_routes.update_bootcamp(
                bootcamp.id, BootcampUpdateRequest(name='Hijacked'), db=db, current_user=intruder
            )
        )
    db.refresh(bootcamp)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == f'User {intruder.id} is not authorized to update bootcamp {bootcamp.id}'
    assert bootcamp.name == 'Original'


def test_admin_can_update_any_bootcamp(db, make_user, make_bootcamp) -> None:
    bootcamp = make_bootcamp(make_user(role='publisher'))
    admin = make_user(role='admin')

    result = asyncio.run(
        bootcamp_routes.update_bootcamp(
            bootcamp.id, BootcampUpdateRequest(housing=True), db=db, current_user=admin
        )
    )

    assert result['data']['housing'] is True


def test_delete_bootcamp_cascades_to_courses_and_reviews(
    db, make_user, make_bootcamp, make_course, make_review
) -> None:
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher)
    other = make_bootcamp(make_user(role='publisher'))
    for _ in range(3):
        make_course(bootcamp)
    make_course(other)
    make_review(bootcamp, make_user())
    bootcamp_id = bootcamp.id

    result = bootcamp_routes.delete_bootcamp(bootcamp_id, db=db, current_user=publisher)

    assert result == {'success': True, 'data': {}}
    assert db.get(Bootcamp, bootcamp_id) is None
    assert db.scalar(select(func.count()).select_from(Course).where(Course.bootcamp_id == bootcamp_id)) == 0
    assert db.scalar(select(func.count()).select_from(Review).where(Review.bootcamp_id == bootcamp_id)) == 0
    assert db.scalar(select(func.count()).select_from(Course).where(Course.bootcamp_id == other.id)) == 1


def test_delete_bootcamp_rejects_non_owner(db, make_user, make_bootcamp, make_course) -> None:
    bootcamp = make_bootcamp(make_user(role='publisher'))
    make_course(bootcamp)

    with pytest.raises(HTTPException) as exception_info:
        bootcamp_routes.delete_bootcamp(bootcamp.id, db=db, current_user=make_user(role='publisher'))

    assert exception_info.value.status_code == 403
    assert db.get(Bootcamp, bootcamp.id) is not None


def test_list_bootcamps_in_radius(db, make_user, make_bootcamp, geocoded) -> None:
    owner = make_user(role='admin')
    nearby = make_bootcamp(owner, latitude=42.36, longitude=-71.09)
    make_bootcamp(owner, latitude=34.05, longitude=-118.24)

    result = asyncio.run(bootcamp_routes.list_bootcamps_in_radius('02215', 10, db=db))

    assert geocoded == ['02215']
    assert result['count'] == 1
    assert result['data'][0]['id'] == nearby.id


def test_upload_photo_saves_image(db, make_user, make_bootcamp, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'FILE_UPLOAD_PATH', str(tmp_path))
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher)

    result = asyncio.run(
        bootcamp_routes.upload_bootcamp_photo(
            bootcamp.id,
            file=_upload(b'\x89PNG fake image', 'Campus.PNG', 'image/png'),
            db=db,
            current_user=publisher,
        )
    )
    db.refresh(bootcamp)

    assert result == {'success': True, 'data': f'photo_{bootcamp.id}.png'}
    assert bootcamp.photo == f'photo_{bootcamp.id}.png'
    assert (tmp_path / bootcamp.photo).read_bytes() == b'\x89PNG fake image'


@pytest.mark.parametrize(
    ('upload', 'error_detail'),
    [
        (None, 'Please upload a file'),
        (('notes.txt', 'text/plain', b'hello'), 'Please upload an image file'),
        (('x.html', 'image/png', b'<script>alert(1)</script>'), 'Please upload an image file'),
        (('photo', 'image/jpeg', b'jpeg bytes'), 'Please upload an image file'),
        (('huge.jpg', 'image/jpeg', b'x' * 11), 'Please upload an image less than 10 bytes'),
    ],
)
def test_upload_photo_rejects_invalid_files(
    db, make_user, make_bootcamp, tmp_path, monkeypatch: pytest.MonkeyPatch, upload, error_detail: str
) -> None:
    monkeypatch.setattr(config, 'FILE_UPLOAD_PATH', str(tmp_path))
    monkeypatch.setattr(config, 'MAX_FILE_UPLOAD', 10)
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher)
    file = None if upload is None else _upload(upload[2], upload[0], upload[1])

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(bootcamp_routes.upload_bootcamp_photo(bootcamp.id, file=file, db=db, current_user=publisher))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == error_detail


def test_upload_photo_does_not_store_rejected_files(
    db, make_user, make_bootcamp, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(config, 'FILE_UPLOAD_PATH', str(tmp_path))
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher)

    with pytest.raises(HTTPException):
        asyncio.run(
            bootcamp_routes.upload_bootcamp_photo(
                bootcamp.id,
                file=_upload(b'<script>alert(1)</script>', 'x.html', 'image/png'),
                db=db,
                current_user=publisher,
            )
        )
    db.refresh(bootcamp)

    assert list(tmp_path.iterdir()) == []
    assert bootcamp.photo == 'no-photo.jpg'


def test_update_bootcamp_clears_optional_fields_sent_as_null(db, make_user, make_bootcamp) -> None:
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher, website='https://devworks.com', phone='(111) 111-1111')

    result = asyncio.run(
        bootcamp_routes.update_bootcamp(
            bootcamp.id,
            BootcampUpdateRequest(website=None, phone=None),
            db=db,
            current_user=publisher,
        )
    )

    assert result['data']['website'] is None
    assert result['data']['phone'] is None
    assert result['data']['name'] == bootcamp.name


def test_update_bootcamp_keeps_fields_that_were_not_sent(db, make_user, make_bootcamp) -> None:
    publisher = make_user(role='publisher')
    bootcamp = make_bootcamp(publisher, website='https://devworks.com')

    result = asyncio.run(
        bootcamp_routes.update_bootcamp(
            bootcamp.id, BootcampUpdateRequest(housing=True), db=db, current_user=publisher
        )
    )

    assert result['data']['website'] == 'https://devworks.com'


@pytest.mark.parametrize('field', ['name', 'description', 'careers', 'housing'])
def test_update_request_rejects_null_for_required_fields(field: str) -> None:
    with pytest.raises(ValidationError):
        BootcampUpdateRequest(**{field: None})


def test_radius_search_queries_outside_the_event_loop_thread(
    db, make_user, make_bootcamp, geocoded, monkeypatch: pytest.MonkeyPatch
) -> None:
    make_bootcamp(make_user(role='admin'))
    query_threads: list[threading.Thread] = []
    find_within_radius = bootcamp_routes.bootcamp_service.find_within_radius

    def recording_find(*args):
        query_threads.append(threading.current_thread())
        return find_within_radius(*args)

    monkeypatch.setattr(bootcamp_routes.bootcamp_service, 'find_within_radius', recording_find)

    result = asyncio.run(bootcamp_routes.list_bootcamps_in_radius('02215', 10, db=db))

    assert result['count'] == 1
    assert query_threads and query_threads[0] is not threading.main_thread()
