import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fraudshield.core.advisor_resolver import AdvisorRecord, InMemoryAdvisorRegistry
from fraudshield.core.ml_classifier import MockFraudClassifier
from fraudshield.database import Base, get_db
from fraudshield import models  # noqa: F401  (registers tables on Base)
from seed_advisors import SAMPLE_ADVISORS, seed_advisors


# Minimal files with real headers, enough for libmagic to identify them
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n"
    b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde"
    b"\x00\x00\x00\x00IEND\xaeB`\x82"
)
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 32 + b"\xff\xd9"
WEBP_BYTES = b"RIFF\x1a\x00\x00\x00WEBPVP8 \x0e\x00\x00\x00" + b"\x00" * 14
WAV_BYTES = b"RIFF\x24\x08\x00\x00WAVEfmt \x10\x00\x00\x00\x01\x00\x01\x00\x44\xac\x00\x00" + b"\x00" * 32


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def webp_bytes():
    return WEBP_BYTES


@pytest.fixture
def wav_bytes():
    return WAV_BYTES


@pytest.fixture
def sample_records():
    return [
        AdvisorRecord(
            id=index,
            name=data["name"],
            registration_number=data["registration_number"],
            status=data["status"],
            firm=data["firm"],
            specializations=tuple(data["specializations"]),
            certifications=tuple(data["certifications"]),
            registration_date=data["registration_date"],
            email=data["email"],
            phone=data["phone"],
            address={"city": data["city"], "state": data["state"]},
        )
        for index, data in enumerate(SAMPLE_ADVISORS, start=1)
    ]


@pytest.fixture
def memory_registry(sample_records):
    return InMemoryAdvisorRegistry(sample_records)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def seeded_db(db_session):
    seed_advisors(db_session)
    return db_session


@pytest.fixture
def client(seeded_db):
    from fraudshield.main import app
    from fraudshield.api.routes import get_scan_service
    from fraudshield.services.scan_service import ScanService

    def override_get_db():
        yield seeded_db

    def override_scan_service():
        return ScanService(seeded_db, classifier=MockFraudClassifier(), ocr_engine=None)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scan_service] = override_scan_service
    # Not used as a context manager: the lifespan would create tables on the default engine
    yield TestClient(app)
    app.dependency_overrides.clear()
