import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Settings
from db.database import init_db
from db.models import User


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
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        openai_api_key="sk-test-key",
        crm_webhook_url="https://crm.example.com/hooks/contact",
        session_secret="test-secret",
        max_audio_bytes=1024,
    )


@pytest.fixture
def user(db_session):
    user = User(email="jane@example.com", name="Jane")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user
