import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from devcamper.core import config
from devcamper.core.errors import register_exception_handlers
from devcamper.database import Base, engine
from devcamper.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from devcamper.models import bootcamp, course, review, user  # noqa: F401
from devcamper.routes import auth_routes, bootcamp_routes, course_routes, review_routes, user_routes

app = FastAPI(title='DevCamper API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    limit=config.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=config.RATE_LIMIT_WINDOW_MINUTES * 60,
)

register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'success': True, 'data': 'DevCamper API Running'}


app.include_router(auth_routes.router, prefix='/api/v1/auth')
app.include_router(bootcamp_routes.router, prefix='/api/v1/bootcamps')
app.include_router(course_routes.router, prefix='/api/v1')
app.include_router(review_routes.router, prefix='/api/v1')
app.include_router(user_routes.router, prefix='/api/v1/users')
app.mount('/uploads', StaticFiles(directory=config.FILE_UPLOAD_PATH, check_dir=False), name='uploads')


if __name__ == '__main__':
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host='0.0.0.0', port=config.PORT)
