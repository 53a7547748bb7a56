"""Shared fixtures: isolated settings, an in-memory database, post factory."""

from __future__ import annotations

import os
import tempfile

from pathlib import Path

_DATA_DIR = Path(tempfile.mkdtemp(prefix="fitspo-tests-"))
os.environ.setdefault("FITSPO_DATA_DIR", str(_DATA_DIR))
os.environ.setdefault("FITSPO_INPUTS_DIR", str(_DATA_DIR / "post_images"))
os.environ.setdefault("FITSPO_DATABASE_URL", f"sqlite:///{(_DATA_DIR / 'fitspo.db').as_posix()}")
os.environ.setdefault("FITSPO_FUNCTIONS_BASE_URL", "http://functions.test")

import pytest  # noqa: E402

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fitspo.db import init_db  # noqa: E402
from fitspo.models import Post, ScanState  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_post(session_factory):
    counter = {"n": 0}

    def _make(**overrides) -> str:
        counter["n"] += 1
        fields = {
            "user_id": "alice",
            "image_path": f"/tmp/post-{counter['n']}.jpg",
            "image_url": f"https://img.test/post-{counter['n']}.jpg",
            "content_type": "image/jpeg",
            "caption": "fit check",
            "hashtags": [],
            "likes": 0,
            "scan_state": ScanState.idle,
        }
        fields.update(overrides)
        with session_factory() as session:
            post = Post(**fields)
            session.add(post)
            session.commit()
            return post.id

    return _make
