import os

# 必须在导入 vca_api 之前设置，应用在导入时即校验签名密钥并创建引擎。
os.environ.setdefault("VCA_AUTH_JWT_SECRET", "unit-test-secret")
os.environ.setdefault("VCA_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("VCA_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("VCA_MAIL_SUPPRESS_SEND", "true")

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import vca_api.models  # noqa: F401
from vca_api.core.config import get_settings
from vca_api.db.session import get_db
from vca_api.models.base import Base


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    from vca_api.main import app

    def _override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as api_client:
            yield api_client
    finally:
        app.dependency_overrides.clear()
