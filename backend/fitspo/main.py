import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contextlib import asynccontextmanager

from fitspo.routes.chats import router as chats_router
from fitspo.routes.posts import router as posts_router
from fitspo.routes.scans import router as scans_router
from fitspo.routes.users import router as users_router
from fitspo.logging_config import setup_logging
from fitspo.scan_client import ScanClient
from fitspo.scanner import OutfitScanner
from fitspo.storage import PostImageStore
from fitspo.settings import settings
from fitspo.db import SessionLocal, init_db


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    image_store = PostImageStore.from_settings(settings)
    image_store.ensure_dir()
    app.state.image_store = image_store
    init_db()

    client = ScanClient.from_settings(settings)
    app.state.scanner = OutfitScanner.from_settings(settings, client, SessionLocal)
    logger.info("fitspo api started functions=%s", settings.functions_base_url)
    try:
        yield
    finally:
        await client.aclose()


app = FastAPI(title="FitSpo API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(posts_router)
app.include_router(scans_router)
app.include_router(users_router)
app.include_router(chats_router)
