from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from devcamper.auth.dependencies import authorize
from devcamper.auth.permissions import ensure_owner
from devcamper.core.query_builder import advanced_results
from devcamper.database import get_db
from devcamper.models.review import Review
from devcamper.models.user import User
from devcamper.routes.bootcamp_routes import get_bootcamp_or_404
from devcamper.services import bootcamps as bootcamp_service

router = APIRouter(tags=['reviews'])

MIN_RATING = 1
MAX_RATING = 10


class ReviewUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=100)
    text: str | None = None
    rating: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)

    @field_validator('title', 'text', 'rating')
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError('Value cannot be null.')
        return value

    @field_validator('title', 'text')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value cannot be blank.')
        return normalized


class ReviewCreateRequest(ReviewUpdateRequest):
    title: str = Field(max_length=100)
    text: str
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING)


class ReviewResponse(BaseModel):
    id: int
    title: str
    text: str
    rating: int
    created_at: datetime
    bootcamp_id: int
    user_id: int

    class Config:
        from_attributes = True


def serialize_review(review: Review) -> dict:
    return ReviewResponse.model_validate(review).model_dump(mode='json')


def get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'No review with the id of {review_id}',
        )
    return review


@router.get('/reviews')
def list_reviews(request: Request, db: Session = Depends(get_db)):
    return advanced_results(db, Review, request.query_params.multi_items(), serialize_review)


@router.get('/bootcamps/{bootcamp_id}/reviews')
def list_bootcamp_reviews(bootcamp_id: int, db: Session = Depends(get_db)):
    get_bootcamp_or_404(db, bootcamp_id)
    reviews = db.scalars(
        select(Review).where(Review.bootcamp_id == bootcamp_id).order_by(Review.created_at.desc())
    ).all()

    return {
        'success': True,
        'count': len(reviews),
        'data': [serialize_review(review) for review in reviews],
    }


@router.get('/reviews/{review_id}')
def get_review(review_id: int, db: Session = Depends(get_db)):
    return {'success': True, 'data': serialize_review(get_review_or_404(db, review_id))}


@router.post('/bootcamps/{bootcamp_id}/reviews', status_code=status.HTTP_201_CREATED)
def add_review(
    bootcamp_id: int,
    data: ReviewCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('user', 'admin')),
):
    bootcamp = get_bootcamp_or_404(db, bootcamp_id)

    existing = db.scalar(
        select(Review.id).where(Review.bootcamp_id == bootcamp.id, Review.user_id == current_user.id)
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='You have already reviewed this bootcamp.',
        )

    review = Review(**data.model_dump(), bootcamp_id=bootcamp.id, user_id=current_user.id)
    db.add(review)
    db.commit()
    bootcamp_service.update_average_rating(db, bootcamp.id)
    db.refresh(review)

    return {'success': True, 'data': serialize_review(review)}


@router.put('/reviews/{review_id}')
def update_review(
    review_id: int,
    data: ReviewUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('user', 'admin')),
):
    review = get_review_or_404(db, review_id)
    ensure_owner(review, current_user, f'update review {review_id}')

    for name, value in data.model_dump(exclude_unset=True).items():
        setattr(review, name, value)
    db.commit()
    bootcamp_service.update_average_rating(db, review.bootcamp_id)
    db.refresh(review)

    return {'success': True, 'data': serialize_review(review)}


@router.delete('/reviews/{review_id}')
def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(authorize('user', 'admin')),
):
    review = get_review_or_404(db, review_id)
    ensure_owner(review, current_user, f'delete review {review_id}')

    bootcamp_id = review.bootcamp_id
    db.delete(review)
    db.commit()
    bootcamp_service.update_average_rating(db, bootcamp_id)

    return {'success': True, 'data': {}}
