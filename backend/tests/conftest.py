import os
import sys
from pathlib import Path

import pytest


# Allow `from app...` imports when running tests from repo root.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Settings are validated at import time of app.main, so seed them first.
os.environ.setdefault("IMAGEKIT_PUBLIC_KEY", "public_test_key")
os.environ.setdefault("IMAGEKIT_PRIVATE_KEY", "private_test_key")
os.environ.setdefault("IMAGEKIT_URL_ENDPOINT", "https://ik.imagekit.io/library")
os.environ.setdefault("API_ENDPOINT", "http://api.test")
os.environ.setdefault("CORS_ALLOW_ORIGINS", "https://library.example.com,http://localhost:3000")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")


@pytest.fixture
def settings():
    from app.core.config import load_settings

    return load_settings(_env_file=None)


@pytest.fixture
def imagekit_service(settings):
    from app.services.imagekit import ImageKitService

    return ImageKitService.from_settings(settings)


@pytest.fixture
def db():
    from app.core.db import Base, create_all, get_engine

    create_all()
    yield
    Base.metadata.drop_all(bind=get_engine())


@pytest.fixture
def api(settings, imagekit_service, db):
    from fastapi.testclient import TestClient

    from app.main import create_app

    with TestClient(create_app(settings, imagekit_service=imagekit_service)) as client:
        yield client
