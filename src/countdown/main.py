import logging
from contextlib import asynccontextmanager
from importlib import metadata

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from countdown.api.v1 import arrivals, events, health
from countdown.core import errors
from countdown.core.app_config import load_app_config
from countdown.core.config import get_settings
from countdown.core.logging import setup_logging
from countdown.services.orchestrator import get_orchestrator

setup_logging()
settings = get_settings()
app_config = load_app_config()
logger = logging.getLogger(__name__)

try:
    app_version = metadata.version("countdown")
except metadata.PackageNotFoundError:
    app_version = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = get_orchestrator()
    orchestrator.scheduler.start()
    if app_config.default_stop_code:
        await orchestrator.get_stop_by_code(app_config.default_stop_code)
        orchestrator.start_arrivals_update()
    logger.info("Countdown started")

    yield

    if orchestrator.scheduler.running:
        orchestrator.scheduler.shutdown(wait=False)
    await orchestrator.aclose()
    logger.info("Countdown shut down")


app = FastAPI(title=settings.api_title, version=app_version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(arrivals.router)
app.include_router(events.router)

app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
app.add_exception_handler(RequestValidationError, errors.validation_exception_handler)
app.add_exception_handler(errors.FeedError, errors.feed_exception_handler)
app.add_exception_handler(errors.NoCurrentStopError, errors.no_current_stop_handler)
app.add_exception_handler(Exception, errors.unhandled_exception_handler)
