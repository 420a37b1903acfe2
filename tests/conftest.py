"""
Shared fixtures: in-memory Firestore and Storage stand-ins, a scripted
classifier, and a TestClient wired to them through dependency overrides.
"""

import copy
import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from civic_console.core.errors import ClassificationError
from civic_console.main import app
from civic_console.services.auth_resolver import AuthResolver, get_auth_resolver
from civic_console.services.classifier import Prediction
from civic_console.services.lifecycle_service import LifecycleService, get_lifecycle_service
from civic_console.services.notification_service import NotificationService
from civic_console.services.report_store import ReportStore, get_report_store


# Firestore

class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def _docs(self):
        self._db.check(self._collection)
        return self._db.data.setdefault(self._collection, {})

    def get(self):
        return FakeSnapshot(self.id, self._docs().get(self.id))

    def set(self, data):
        self._docs()[self.id] = copy.deepcopy(data)

    def update(self, data):
        docs = self._docs()
        if self.id not in docs:
            raise KeyError(f"No document to update: {self._collection}/{self.id}")
        docs[self.id].update(copy.deepcopy(data))


class FakeQuery:
    def __init__(self, db, collection, filters=(), max_results=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._max_results = max_results

    def where(self, field, op, value):
        assert op == "==", f"unsupported operator {op}"
        return FakeQuery(self._db, self._collection, self._filters + ((field, value),), self._max_results)

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, count)

    def stream(self):
        self._db.check(self._collection)
        docs = self._db.data.get(self._collection, {})
        matched = [
            FakeSnapshot(doc_id, data)
            for doc_id, data in docs.items()
            if all(data.get(field) == value for field, value in self._filters)
        ]
        if self._max_results is not None:
            matched = matched[:self._max_results]
        return iter(matched)


class FakeCollection(FakeQuery):
    _ids = itertools.count(1)

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, self._collection, doc_id or f"auto-{next(self._ids)}")

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeFirestore:
    """Dict-backed subset of google.cloud.firestore.Client."""

    def __init__(self):
        self.data = {}
        self.broken = set()

    def check(self, collection):
        if collection in self.broken:
            raise RuntimeError(f"permission denied on {collection}")

    def collection(self, name):
        return FakeCollection(self, name)

    def docs(self, collection):
        return self.data.get(collection, {})


# Storage

class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.cache_control = None
        self.public = False

    def upload_from_string(self, data, content_type=None, if_generation_match=None):
        if self.bucket.fail_uploads:
            raise RuntimeError("storage unavailable")
        if if_generation_match == 0 and self.name in self.bucket.objects:
            raise RuntimeError("precondition failed: object exists")
        self.bucket.objects[self.name] = {"data": data, "content_type": content_type}

    def make_public(self):
        self.public = True

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"


class FakeBucket:
    def __init__(self, name="civic-test.appspot.com"):
        self.name = name
        self.objects = {}
        self.fail_uploads = False

    def blob(self, name):
        return FakeBlob(self, name)


# Classifier

class FakeClassifier:
    """Answers every image with a fixed label and records what it saw."""

    def __init__(self, label="NoPotHole", confidence=0.93):
        self.label = label
        self.confidence = confidence
        self.error = None
        self.images = []
        self.urls = []

    def predict(self, image, filename="evidence.jpg", content_type="image/jpeg"):
        self.images.append(filename)
        if self.error:
            raise ClassificationError(self.error)
        return Prediction(self.label, self.confidence)

    def predict_url(self, image_url):
        self.urls.append(image_url)
        if self.error:
            raise ClassificationError(self.error)
        return Prediction(self.label, self.confidence)


# Identities

TOKENS = {
    "admin-token": {"uid": "admin-1", "email": "admin@example.org"},
    "legacy-admin-token": {"uid": "legacy-admin", "email": "old@example.org"},
    "supervisor-token": {"uid": "sup-1", "email": "sup@example.org"},
    "citizen-token": {"uid": "citizen-1", "email": "citizen@example.org"},
}


def fake_verify_token(token):
    if token not in TOKENS:
        raise ValueError("Token expired or revoked")
    return dict(TOKENS[token])


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def seed_report(db, report_id, **fields):
    data = {
        "user_id": "citizen-1",
        "title": f"Report {report_id}",
        "description": "Pothole on the main road",
        "status": "Pending",
        "coords": "12.9716,77.5946",
        "created_at": "2024-01-15T10:30:00Z",
    }
    data.update(fields)
    db.collection("reports").document(report_id).set(data)
    return data


JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


@pytest.fixture
def db():
    firestore = FakeFirestore()
    firestore.collection("admins").document("admin-1").set({"role": "ADMIN"})
    firestore.collection("supervisors").document("sup-1").set({"role": "SUPERVISOR", "block_id": "block-7"})
    firestore.collection("users").document("legacy-admin").set({"isAdmin": True})
    firestore.collection("users").document("citizen-1").set({"name": "Asha"})
    return firestore


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def revoked():
    return []


@pytest.fixture
def resolver(db, revoked):
    return AuthResolver(
        db=db,
        verify_token=fake_verify_token,
        revoke_tokens=revoked.append,
        sign_out_on_failure=False,
    )


@pytest.fixture
def store(db, bucket):
    return ReportStore(db=db, bucket=bucket)


@pytest.fixture
def notifier(db):
    return NotificationService(db=db)


@pytest.fixture
def lifecycle(store, classifier, notifier):
    return LifecycleService(store=store, classifier=classifier, notifier=notifier, ml_gated=True)


@pytest.fixture
def client(resolver, store, lifecycle):
    app.dependency_overrides[get_auth_resolver] = lambda: resolver
    app.dependency_overrides[get_report_store] = lambda: store
    app.dependency_overrides[get_lifecycle_service] = lambda: lifecycle
    # Not entered as a context manager: startup would try to reach Firebase
    yield TestClient(app)
    app.dependency_overrides.clear()
