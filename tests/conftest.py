import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["SMS_BACKEND"] = "console"
os.environ["MAPBOX_ACCESS_TOKEN"] = ""
os.environ["IP_HASH_SALT"] = "test-salt"
os.environ["UPLOAD_FOLDER"] = tempfile.mkdtemp(prefix="migralert-uploads-")

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import migralert.models  # noqa: E402,F401
from migralert.core.database import Base, get_db  # noqa: E402
from migralert.core.exceptions import TransportError  # noqa: E402
from migralert.core.security import create_access_token  # noqa: E402
from migralert.main import app  # noqa: E402
from migralert.models.user import User  # noqa: E402
from migralert.services.geocoding_service import GeocodingResult, get_geocoder  # noqa: E402
from migralert.services.image_storage import ImageStorage, get_image_storage  # noqa: E402
from migralert.services.realtime import ChangeBroker, get_broker  # noqa: E402
from migralert.services.sms_service import SmsTransport, get_sms_transport  # noqa: E402


class FakeGeocoder:
    def __init__(self, city="Austin", region="Texas"):
        self.result = GeocodingResult(city=city, region=region, country="United States")
        self.calls = []

    async def resolve_or_placeholder(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return self.result


class FakeSmsTransport(SmsTransport):
    name = "fake"

    def __init__(self, fail_numbers=(), fail_all=False):
        self.fail_numbers = set(fail_numbers)
        self.fail_all = fail_all
        self.sent = []

    async def send(self, to, body):
        if self.fail_all or to in self.fail_numbers:
            raise TransportError(f"Undeliverable: {to[-4:]}")
        self.sent.append((to, body))
        return f"SM{len(self.sent):04d}"


class Clock:
    """Controllable clock for expiry tests"""

    def __init__(self, now=None):
        self.now = now or datetime(2025, 1, 15, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(upload_dir=str(tmp_path / "uploads"), url_prefix="/static/uploads/reports")


@pytest.fixture
def broker():
    return ChangeBroker()


@pytest.fixture
def sms():
    return FakeSmsTransport()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def make_user(db):
    def _make_user(user_id="user-1", phone=None, phone_verified=False, role="user"):
        user = User(id=user_id, phone=phone, phone_verified=phone_verified, role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def client(session_factory, geocoder, storage, broker, sms):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_image_storage] = lambda: storage
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_sms_transport] = lambda: sms

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_token(user_id="user-1", **claims):
    return create_access_token({"sub": user_id, **claims})


def auth_headers(user_id="user-1", **claims):
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


@pytest.fixture
def auth():
    return auth_headers


@pytest.fixture
def token():
    return make_token
