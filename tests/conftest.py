"""
Shared fixtures: an in-memory SQLite database per test, a TestClient wired to
it, an outbox that captures every email instead of talking to SMTP and an
in-memory bucket in place of S3.
"""
import io
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENV", "dev")

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from property_crm.api.deps import get_db
from property_crm.core.database import Base
from property_crm.core.email import EmailResult
from property_crm.core.security import create_access_token, hash_password
from property_crm.main import app
from property_crm.models.user import User

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}

EMAIL_SENDERS = [
    "property_crm.services.payments",
    "property_crm.services.messaging",
    "property_crm.services.maintenance",
    "property_crm.api.routes.auth",
    "property_crm.api.routes.tenants",
    "property_crm.api.routes.contact",
]


@pytest.fixture()
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


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class Outbox:
    def __init__(self):
        self.messages = []
        self.fail = False

    def send(self, to, subject, text_body, html_body=None, attachments=None, reply_to=None):
        self.messages.append({"to": to, "subject": subject, "text": text_body, "reply_to": reply_to})
        if self.fail:
            return EmailResult(success=False, error="SMTP unavailable")
        return EmailResult(success=True, message_id=f"<msg-{len(self.messages)}@test>")

    def to(self, address):
        return [m for m in self.messages if m["to"] == address]


@pytest.fixture()
def outbox(monkeypatch):
    box = Outbox()
    for module in EMAIL_SENDERS:
        monkeypatch.setattr(f"{module}.send_email", box.send)
    return box


class Bucket:
    """In-memory stand-in for the S3 client used by property_crm.core.storage."""

    def __init__(self):
        self.objects = {}
        self.fail = False

    def _check(self, operation):
        if self.fail:
            raise ClientError({"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, operation)

    def put_object(self, Bucket, Key, Body, ContentType=None, Metadata=None):
        self._check("PutObject")
        self.objects[Key] = {"body": Body, "content_type": ContentType, "metadata": Metadata or {}}

    def get_object(self, Bucket, Key):
        self._check("GetObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        body = self.objects[Key]["body"]
        return {"Body": StreamingBody(io.BytesIO(body), len(body)), "ContentLength": len(body)}

    def delete_object(self, Bucket, Key):
        self._check("DeleteObject")
        self.objects.pop(Key, None)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://{Params['Bucket']}.storage.test/{Params['Key']}?expires={ExpiresIn}"


@pytest.fixture(autouse=True)
def bucket(monkeypatch):
    store = Bucket()
    monkeypatch.setattr("property_crm.core.storage.get_s3_client", lambda: store)
    return store


def make_user(db, email="landlord@example.com", role="landlord", rental_due_day=1, **extra):
    user = User(
        email=email,
        hashed_password=hash_password("Secret123"),
        first_name=extra.pop("first_name", "Lee"),
        last_name=extra.pop("last_name", "Landlord"),
        role=role,
        rental_due_day=rental_due_day,
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture()
def landlord(db):
    return make_user(db)


@pytest.fixture()
def headers(landlord):
    return auth_headers(landlord)


@pytest.fixture()
def other_headers(db):
    return auth_headers(make_user(db, email="other@example.com", first_name="Olive"))


@pytest.fixture()
def property_id(client, headers):
    r = client.post(
        "/properties",
        json={"name": "Sea View Cottage", "address": "12 Beach Road", "monthly_rent": "8000", "nightly_rate": "1200"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


@pytest.fixture()
def tenant_id(client, headers, property_id, outbox):
    r = client.post(
        "/tenants",
        json={
            "first_name": "Tom",
            "last_name": "Tenant",
            "email": "Tom@Example.com",
            "monthly_rent": "8000",
            "property_id": property_id,
            "lease_start_date": "2026-01-01",
            "lease_end_date": "2026-12-31",
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]
