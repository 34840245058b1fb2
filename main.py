import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from dal.factory import build_dal
from routes.annotation_route import router as annotation_router
from routes.dataset_route import router as dataset_router
from routes.review_route import router as review_router
from routes.user_route import router as user_router
from services.annotation_ledger import AnnotationLedger
from services.navigation import NavigationPolicy
from services.progress import ProgressAggregator
from services.record_store import RecordStore
from services.review import ReviewProjection
from services.sample_data import seed_sample_data
from services.user_directory import UserDirectory
from utils.config import Settings

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the configured storage backend (SQLite, JSON blobs or memory)
      - the annotation core services built on top of it
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    dal = build_dal(settings)
    await dal.initialize()

    users = UserDirectory(dal, registration_code=settings.registration_code)
    records = RecordStore(dal)
    ledger = AnnotationLedger(dal, records)

    app.state.dal = dal
    app.state.users = users
    app.state.records = records
    app.state.ledger = ledger
    app.state.progress = ProgressAggregator(dal, records)
    app.state.navigation = NavigationPolicy(dal, records)
    app.state.review = ReviewProjection(ledger, records)

    if settings.seed_sample_data:
        await seed_sample_data(users, records)

    LOGGER.info("Annotation service started with %s storage", settings.storage_backend)
    try:
        yield
    finally:
        await dal.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Settings are read from the environment when not given explicitly.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="ECG Annotation Ledger", lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting whether storage is attached and which backend is in use.
        """
        return {
            "ok": True,
            "storage_initialized": hasattr(request.app.state, "dal"),
            "storage_backend": request.app.state.settings.storage_backend,
        }

    # Register application routers
    app.include_router(user_router)
    app.include_router(dataset_router)
    app.include_router(annotation_router)
    app.include_router(review_router)

    return app
