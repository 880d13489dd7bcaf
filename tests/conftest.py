import os
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AWS_S3_BUCKET_NAME", "test-imports")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("IMPORT_SAMPLE_ROWS", "10")

from io import BytesIO

import pytest
from openpyxl import Workbook
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ObjectNotFoundError, StorageError
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models import Client, FieldMapping, User
from app.models.enums import RoleTypeEnum
from app.services.imports.import_service import ImportService, IncomingFile

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ORDER_MAPPING = {
    "order_number": {"field": "Order #", "is_required": True, "is_identifier": True},
    "revenue": {"field": "Revenue", "is_required": True},
    "quantity": {"field": "Qty", "default_value": "1"},
    "order_date": {"field": "Date", "processing": {"function": "EXTRACT_DATETIME", "params": {}}},
    "city": {"field": "City", "processing": {"function": "toUpperCase"}},
}


class MemoryObjectStore:
    """Object store fake keeping blobs in a dict, with switchable failures."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_put = None  # predicate on the key
        self.fail_delete = False

    def location(self, key):
        return f"memory://test-imports/{key}"

    def put(self, key, data, content_type="application/octet-stream"):
        if self.fail_put is not None and self.fail_put(key):
            raise StorageError(f"put refused for {key}")
        self.objects[key] = (bytes(data), content_type)
        return self.location(key)

    def get(self, key):
        if key not in self.objects:
            raise ObjectNotFoundError(f"Object {key} not found")
        return self.objects[key][0]

    def delete(self, key):
        if self.fail_delete:
            raise StorageError(f"delete refused for {key}")
        self.objects.pop(key, None)
        self.deleted.append(key)


def build_xlsx(rows):
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def xlsx_file(rows, name="orders.xlsx"):
    return IncomingFile(file_name=name, content_type=XLSX_TYPE, content=build_xlsx(rows))


def csv_file(text, name="orders.csv"):
    return IncomingFile(file_name=name, content_type="text/csv", content=text.encode("utf-8"))


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store():
    return MemoryObjectStore()


@pytest.fixture
def service(db, store):
    return ImportService(db, store)


@pytest.fixture
def client(db):
    record = Client(name="Acme Retail")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def other_client(db):
    record = Client(name="Globex")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def user(db):
    record = User(full_name="Anna Manager", email="anna@example.com", password="x", role=RoleTypeEnum.MANAGER.value)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def client_user(db, client):
    record = User(
        full_name="Carl Client",
        email="carl@example.com",
        password="x",
        role=RoleTypeEnum.CLIENT.value,
        client_id=client.id,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def mapping(db, client):
    record = FieldMapping(client_id=client.id, name="Orders", mapping=ORDER_MAPPING)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def other_mapping(db, other_client):
    record = FieldMapping(client_id=other_client.id, name="Globex orders", mapping=ORDER_MAPPING)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def initiated(service, client, mapping, user):
    return service.initiate(client.id, mapping.id, user.id, custom_name="May orders")


@pytest.fixture
def fail_commit(db, monkeypatch):
    """Make the session's Nth commit (counted from install) raise OperationalError."""
    def _install(on_call=1):
        original = db.commit
        calls = {"count": 0}

        def commit():
            calls["count"] += 1
            if calls["count"] == on_call:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return original()

        monkeypatch.setattr(db, "commit", commit)
        return calls
    return _install
