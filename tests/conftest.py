from typing import Generator

import mongomock
import pytest
from fastapi.testclient import TestClient

from tuition_admin.db.mongodb import get_student_collection
from tuition_admin.main import app


@pytest.fixture()
def students_collection() -> Generator:
    """In-memory students collection with the unique email index in place."""
    client = mongomock.MongoClient()
    collection = client["tuitionadmin_test"]["students"]
    collection.create_index("email", unique=True)
    yield collection
    client.close()


@pytest.fixture()
def client(students_collection) -> Generator[TestClient, None, None]:
    """HTTP client bound to the FastAPI app, backed by the in-memory collection."""
    app.dependency_overrides[get_student_collection] = lambda: students_collection
    # Not used as a context manager, so startup (real MongoDB) never runs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def student_payload():
    """Build a valid create payload; keyword overrides replace fields."""

    def _build(**overrides):
        payload = {
            "name": "Rahul Sharma",
            "email": "rahul.sharma@email.com",
            "phone": "+919876543210",
            "address": "123 Main Street, Delhi",
            "course": "Mathematics - Class 12",
            "batchTime": "10:00 AM - 12:00 PM",
            "feeAmount": 5000,
            "guardianName": "Mr. Suresh Sharma",
            "guardianPhone": "+919876543211",
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture()
def create_student(client, student_payload):
    """POST a student and return the created record."""
    counter = {"n": 0}

    def _create(**overrides):
        counter["n"] += 1
        overrides.setdefault("email", f"student{counter['n']}@email.com")
        response = client.post("/api/students", json=student_payload(**overrides))
        assert response.status_code == 201, response.json()
        return response.json()["data"]

    return _create
