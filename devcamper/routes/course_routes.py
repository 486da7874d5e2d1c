from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from devcamper.auth.dependencies import authorize
from devcamper.auth.permissions import ensure_owner
from devcamper.core.query_builder import advanced_results
from devcamper.database import get_db
from devcamper.models.course import SKILL_LEVELS, Course
from devcamper.models.user import User
from devcamper.routes.bootcamp_routes import get_bootcamp_or_404
from devcamper.services import bootcamps as bootcamp_service

router = APIRouter(tags=['courses'])


class CourseUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    weeks: int | None = Field(default=None, gt=0)
    tuition: int | None = Field(default=None, ge=0)
    minimum_skill: str | None = None
    scholarship_available: bool | None = None

    @field_validator(
        'title', 'description', 'weeks', 'tuition', 'minimum_skill', 'scholarship_available'
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError('Value cannot be null.')
        return value

    @field_validator('title', 'description')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value cannot be blank.')
        return normalized

    @field_validator('minimum_skill')
    @classmethod
    def validate_minimum_skill(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in SKILL_LEVELS:
            raise ValueError('Minimum skill must be beginner, intermediate or advanced.')
        return normalized


class CourseCreateRequest(CourseUpdateRequest):
    title: str
    description: str
    weeks: int = Field(gt=0)
    tuition: int = Field(ge=0)
    minimum_skill: str
    scholarship_available: bool = False


class BootcampSummaryResponse(BaseModel):
    id: int
    name: str
    description: str

    class Config:
        from_attributes = True


class CourseResponse(BaseModel):
    id: int
    title: str
    description: str
    weeks: int
    tuition: int
    minimum_skill: str
    scholarship_available: bool
    created_at: datetime
    bootcamp_id: int
    user_id: int
    bootcamp: BootcampSummaryResponse | None = None

    class Config:
        from_attributes = True


def serialize_course(course: Course) -> dict:
    return CourseResponse.model_validate(course).model_dump(mode='json')


def get_course_or_404(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'No course with the id of {course_id}',
        )
    return course


@router.get('/courses')
def list_courses(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Course, request.query_params.multi_items(), serialize_course)


@router.get('/bootcamps/{bootcamp_id}/courses')
def list_bootcamp_courses(bootcamp_id: int, db: Session = Depends(get_db)):
    get_bootcamp_or_404(db, bootcamp_id)
    courses = db.scalars(
        select(Course).where(Course.bootcamp_id == bootcamp_id).order_by(Course.created_at.desc())
    ).all()

    return {
        'success': True,
        'count': len(courses),
        'data': [serialize_course(course) for course in courses],
    }


@router.get('/courses/{course_id}')
def get_course(course_id: int, db: Session = Depends(get_db)):
    return {'success': True, 'data': serialize_course(get_course_or_404(db, course_id))}


@router.post('/bootcamps/{bootcamp_id}/courses', status_code=status.HTTP_201_CREATED)
def add_course(
    bootcamp_id: int,
    data: CourseCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)
    ensure_owner(bootcamp, current_user, f'add a course to bootcamp {bootcamp_id}')

    course = Course(**data.model_dump(), bootcamp_id=bootcamp.id, user_id=current_user.id)
    db.add(course)
    db.commit()
    bootcamp_service.update_average_cost(db, bootcamp.id)
    db.refresh(course)

    return {'success': True, 'data': serialize_course(course)}


@router.put('/courses/{course_id}')
def update_course(
    course_id: int,
    data: CourseUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    course = get_course_or_404(db, course_id)
    ensure_owner(course, current_user, f'update course {course_id}')

    for name, value in data.model_dump(exclude_unset=True).items():
        setattr(course, name, value)
    db.commit()
    bootcamp_service.update_average_cost(db, course.bootcamp_id)
    db.refresh(course)

    return {'success': True, 'data': serialize_course(course)}


@router.delete('/courses/{course_id}')
def delete_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('publisher', 'admin')),
):
    course = get_course_or_404(db, course_id)
    ensure_owner(course, current_user, f'delete course {course_id}')

    bootcamp_id = course.bootcamp_id
    db.delete(course)
    db.commit()
    bootcamp_service.update_average_cost(db, bootcamp_id)

    return {'success': True, 'data': {}}
