from functools import lru_cache
from itertools import count
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.datastructures import QueryParams

from devcamper.auth import passwords
from devcamper.database import Base
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.models.review import Review
from devcamper.models.user import User

DEFAULT_PASSWORD = '123456'


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    return passwords.hash_password(password)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db):
    sequence = count(1)

    def factory(role: str = 'user', password: str = DEFAULT_PASSWORD, **overrides) -> User:
        number = next(sequence)
        user = User(
            name=overrides.pop('name', f'User {number}'),
            email=overrides.pop('email', f'user{number}@example.com'),
            role=role,
            hashed_password=_hashed(password),
            **overrides,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_bootcamp(db):
    sequence = count(1)

    def factory(owner: User, **overrides) -> Bootcamp:
        number = next(sequence)
        fields = {
            'name': f'Bootcamp {number}',
            'slug': f'bootcamp-{number}',
            'description': 'Full stack web development.',
            'careers': ['Web Development'],
            'latitude': 42.35,
            'longitude': -71.06,
            'city': 'Boston',
            'state': 'MA',
            'zipcode': '02118',
            'country': 'US',
        }
        fields.update(overrides)
        bootcamp = Bootcamp(user_id=owner.id, **fields)
        db.add(bootcamp)
        db.commit()
        db.refresh(bootcamp)
        return bootcamp

    return factory


@pytest.fixture
def make_course(db):
    sequence = count(1)

    def factory(bootcamp: Bootcamp, owner: User | None = None, **overrides) -> Course:
        number = next(sequence)
        fields = {
            'title': f'Course {number}',
            'description': 'Learn things.',
            'weeks': 8,
            'tuition': 5000,
            'minimum_skill': 'beginner',
        }
        fields.update(overrides)
        course = Course(
            bootcamp_id=bootcamp.id,
            user_id=owner.id if owner else bootcamp.user_id,
            **fields,
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return factory


@pytest.fixture
def make_review(db):
    def factory(bootcamp: Bootcamp, author: User, rating: int = 8, **overrides) -> Review:
        review = Review(
            title=overrides.pop('title', 'Great bootcamp'),
            text=overrides.pop('text', 'Learned a lot.'),
            rating=rating,
            bootcamp_id=bootcamp.id,
            user_id=author.id,
            **overrides,
        )
        db.add(review)
        db.commit()
        db.refresh(review)
        return review

    return factory


@pytest.fixture
def make_request():
    def factory(query: str = '', base_url: str = 'http://testserver/'):
        return SimpleNamespace(query_params=QueryParams(query), base_url=base_url)

    return factory
