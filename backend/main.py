import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.auth.errors import AuthError, ExternalProviderError
from backend.core import config
from backend.database import engine
from backend.models import user
from backend.routes import auth_routes


def setup_logging(log_level: str = 'INFO') -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


setup_logging(config.LOG_LEVEL)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    # InternalError is logged at its raise site
    if isinstance(exc, ExternalProviderError):
        logger.error(
            '%s on %s %s: %s',
            exc.__class__.__name__,
            request.method,
            request.url.path,
            exc.detail,
            exc_info=exc.__cause__,
        )
    return JSONResponse(status_code=exc.status_code, content={'success': False, 'error': exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={'success': False, 'error': 'Invalid request body'})


@app.on_event('startup')
def initialize() -> None:
    config.validate_runtime_config()
    try:
        user.Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/')
def root():
    return {'status': 'Classroom Auth API Running'}


app.include_router(auth_routes.router, prefix='/api/auth')


def run() -> None:
    config.validate_runtime_config()
    uvicorn.run(app, host='0.0.0.0', port=config.PORT)


if __name__ == '__main__':
    run()
