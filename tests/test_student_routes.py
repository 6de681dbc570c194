from datetime import datetime, timedelta, timezone

import mongomock
from bson import ObjectId
from pymongo.errors import PyMongoError

from tuition_admin.schemas.schemas import StudentUpdate
from tuition_admin.services.student_service import StudentService


def parse_dt(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ============================================================
# CREATE
# ============================================================

def test_create_student_returns_derived_and_virtual_fields(client, student_payload):
    response = client.post(
        "/api/students",
        json=student_payload(email="Priya.Patel@Email.com", joinDate="2024-01-15T00:00:00Z"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Student created successfully"

    student = body["data"]
    assert student["email"] == "priya.patel@email.com"
    assert student["feeStatus"] == "pending"
    assert student["isActive"] is True
    assert student["id"] == student["_id"]
    assert parse_dt(student["nextFeePayment"]) == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert student["displayName"] == "Rahul Sharma (Mathematics - Class 12)"
    assert student["formattedJoinDate"] == "15 January 2024"
    assert student["feeStatusColor"] == "orange"
    assert student["subject"] == "Mathematics"
    assert student["classLevel"] == "Class 12"
    assert student["createdAt"] is not None


def test_create_paid_student_stamps_last_payment(client, student_payload):
    response = client.post(
        "/api/students", json=student_payload(feeStatus="paid", joinDate="2024-01-15")
    )

    student = response.json()["data"]
    last_payment = parse_dt(student["lastFeePayment"])
    assert datetime.now(timezone.utc) - last_payment < timedelta(minutes=1)
    assert parse_dt(student["nextFeePayment"]).date() > last_payment.date()
    assert student["feeStatusColor"] == "green"


def test_create_rejects_fee_above_limit(client, student_payload):
    response = client.post("/api/students", json=student_payload(feeAmount=60000))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert {"field": "feeAmount", "message": "Fee amount cannot exceed ₹50,000"} in body["errors"]


def test_create_rejects_unknown_course(client, student_payload):
    response = client.post("/api/students", json=student_payload(course="Astrology - Class 5"))

    assert response.status_code == 400
    assert {"field": "course", "message": "Please select a valid course"} in response.json()["errors"]


def test_create_reports_every_invalid_field(client, student_payload):
    payload = student_payload(name="A", phone="abc", feeStatus="late")
    del payload["address"]

    response = client.post("/api/students", json=payload)

    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert fields == {"name", "phone", "feeStatus", "address"}


def test_duplicate_email_conflicts_and_keeps_original(client, student_payload):
    first = client.post("/api/students", json=student_payload(email="x@y.com", name="Student A"))
    second = client.post("/api/students", json=student_payload(email="X@Y.com", name="Student B"))

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json() == {"success": False, "message": "Student with this email already exists"}

    original = client.get(f"/api/students/{first.json()['data']['_id']}").json()["data"]
    assert original["name"] == "Student A"


def test_store_level_duplicate_is_reported_as_conflict(client, student_payload, monkeypatch):
    assert client.post("/api/students", json=student_payload(email="x@y.com")).status_code == 201

    # Simulate a concurrent create that passed the pre-check
    monkeypatch.setattr(StudentService, "email_exists", lambda self, email, exclude_id=None: False)
    response = client.post("/api/students", json=student_payload(email="x@y.com"))

    assert response.status_code == 409
    assert response.json()["message"] == "Student with this email already exists"


# ============================================================
# READ
# ============================================================

def test_get_student_with_invalid_id(client):
    response = client.get("/api/students/not-an-id")

    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "id", "message": "Invalid student ID format"}]


def test_get_missing_student(client):
    response = client.get(f"/api/students/{ObjectId()}")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Student not found"}


def test_list_pagination_by_course(client, create_student):
    for _ in range(5):
        create_student(course="Physics - Class 12")
    create_student(course="Physics - Class 11")

    response = client.get(
        "/api/students", params={"course": "Physics - Class 12", "page": 1, "limit": 2}
    )

    data = response.json()["data"]
    assert len(data["students"]) == 2
    assert data["pagination"] == {
        "currentPage": 1,
        "totalPages": 3,
        "totalStudents": 5,
        "studentsPerPage": 2,
        "hasNextPage": True,
        "hasPrevPage": False,
    }


def test_list_page_beyond_range_is_empty(client, create_student):
    for _ in range(3):
        create_student()

    response = client.get("/api/students", params={"page": 5, "limit": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["students"] == []
    assert data["pagination"]["totalPages"] == 2
    assert data["pagination"]["hasNextPage"] is False
    assert data["pagination"]["hasPrevPage"] is True


def test_list_pages_are_stable_when_sort_keys_tie(client, create_student, students_collection):
    created = {create_student()["_id"] for _ in range(5)}
    students_collection.update_many({}, {"$set": {"createdAt": datetime(2024, 1, 1)}})

    seen = []
    for page in (1, 2, 3):
        students = client.get("/api/students", params={"page": page, "limit": 2}).json()["data"]["students"]
        seen.extend(s["_id"] for s in students)

    assert len(seen) == 5
    assert set(seen) == created


def test_list_sorting(client, create_student):
    create_student(name="Charlie")
    create_student(name="Alice")
    create_student(name="Bob")

    response = client.get("/api/students", params={"sortBy": "name", "sortOrder": "asc"})

    names = [s["name"] for s in response.json()["data"]["students"]]
    assert names == ["Alice", "Bob", "Charlie"]


def test_list_is_active_filter(client, create_student):
    active = create_student()
    inactive = create_student()
    client.put(f"/api/students/{inactive['_id']}/deactivate")

    def ids(params):
        students = client.get("/api/students", params=params).json()["data"]["students"]
        return {s["_id"] for s in students}

    assert ids({}) == {active["_id"]}
    assert ids({"isActive": "false"}) == {inactive["_id"]}
    assert ids({"isActive": "all"}) == {active["_id"], inactive["_id"]}


def test_list_search_overrides_other_filters(client, create_student):
    create_student(name="Neha Verma", course="Chemistry - Class 10", feeStatus="paid")
    create_student(name="Arjun Rao", course="Physics - Class 12")

    response = client.get(
        "/api/students", params={"search": "neha", "course": "Physics - Class 12", "feeStatus": "pending"}
    )

    data = response.json()["data"]
    assert [s["name"] for s in data["students"]] == ["Neha Verma"]
    assert data["pagination"]["totalStudents"] == 1


def test_list_rejects_bad_paging(client):
    assert client.get("/api/students", params={"page": 0}).status_code == 400
    assert client.get("/api/students", params={"limit": "ten"}).status_code == 400
    assert client.get("/api/students", params={"isActive": "maybe"}).status_code == 400


def test_search_route_matches_any_field(client, create_student):
    create_student(name="Karan Singh", phone="+919800000001")
    create_student(name="Sneha Gupta", email="sneha@email.com")
    create_student(name="Meera Iyer", course="Biology - Class 11")

    def names(term):
        data = client.get(f"/api/students/search/{term}").json()["data"]
        return sorted(s["name"] for s in data["students"])

    assert names("KARAN") == ["Karan Singh"]
    assert names("sneha@") == ["Sneha Gupta"]
    assert names("biology") == ["Meera Iyer"]
    assert names("+9198000") == ["Karan Singh"]
    assert names("nobody") == []


def test_search_route_message_and_pagination(client, create_student):
    for i in range(3):
        create_student(name=f"Batch Student {i}")

    body = client.get("/api/students/search/Batch", params={"limit": 2, "page": 2}).json()

    assert body["message"] == 'Search results for "Batch"'
    assert len(body["data"]["students"]) == 1
    assert body["data"]["pagination"]["totalPages"] == 2


def test_students_by_course_route(client, create_student):
    create_student(course="English - Class 9")
    create_student(course="English - Class 9")
    create_student(course="English - Class 10")

    body = client.get("/api/students/course/English - Class 9").json()

    assert body["message"] == "Students enrolled in English - Class 9"
    assert body["data"]["pagination"]["totalStudents"] == 2


def test_students_by_fee_status_route(client, create_student):
    create_student(feeStatus="paid")
    create_student(feeStatus="pending")

    body = client.get("/api/students/fees/status/paid").json()

    assert body["data"]["pagination"]["totalStudents"] == 1
    assert body["data"]["students"][0]["feeStatus"] == "paid"


def test_students_by_fee_status_rejects_unknown_status(client):
    response = client.get("/api/students/fees/status/late")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid fee status. Must be paid, pending, or overdue"


def test_overdue_listing(client, create_student):
    flagged = create_student(feeStatus="overdue")
    past_due = create_student(feeStatus="pending", joinDate="2020-01-01")
    create_student(feeStatus="pending")  # due next month
    create_student(feeStatus="paid", joinDate="2020-01-01")

    body = client.get("/api/students/fees/overdue").json()

    ids = [s["_id"] for s in body["data"]["students"]]
    assert set(ids) == {flagged["_id"], past_due["_id"]}
    # earliest due date first
    assert ids[0] == past_due["_id"]


def test_dashboard_stats(client, create_student):
    create_student(feeStatus="paid", feeAmount=5000, course="Physics - Class 12")
    create_student(feeStatus="paid", feeAmount=4500, course="Physics - Class 12")
    create_student(feeStatus="pending", course="Chemistry - Class 11")
    create_student(feeStatus="overdue", course="Physics - Class 12")
    inactive = create_student(feeStatus="paid", feeAmount=9000, course="English - Class 9")
    client.put(f"/api/students/{inactive['_id']}/deactivate")

    body = client.get("/api/students/dashboard/stats").json()

    assert body["message"] == "Dashboard statistics retrieved successfully"
    assert body["data"] == {
        "totalStudents": 4,
        "paidFees": 2,
        "pendingFees": 1,
        "overdueFees": 1,
        "totalRevenue": 9500,
        "courseDistribution": [
            {"course": "Physics - Class 12", "count": 3},
            {"course": "Chemistry - Class 11", "count": 1},
        ],
    }


def test_dashboard_stats_on_empty_store(client):
    data = client.get("/api/students/dashboard/stats").json()["data"]

    assert data["totalStudents"] == 0
    assert data["totalRevenue"] == 0
    assert data["courseDistribution"] == []


# ============================================================
# UPDATE / DELETE / MUTATORS
# ============================================================

def test_update_is_partial(client, create_student):
    student = create_student(notes="Needs extra practice")

    response = client.put(f"/api/students/{student['_id']}", json={"batchTime": "6:00 PM - 8:00 PM"})

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["batchTime"] == "6:00 PM - 8:00 PM"
    assert updated["name"] == student["name"]
    assert updated["notes"] == "Needs extra practice"
    assert updated["nextFeePayment"] == student["nextFeePayment"]


def test_update_validates_supplied_fields_only(client, create_student):
    student = create_student()

    response = client.put(f"/api/students/{student['_id']}", json={"feeAmount": -5, "guardianPhone": "12ab"})

    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert fields == {"feeAmount", "guardianPhone"}


def test_update_keeps_fields_written_concurrently(students_collection, create_student, monkeypatch):
    student = create_student(notes="Old note")
    oid = ObjectId(student["_id"])
    paid_at = datetime(2024, 3, 1, 9, 30)
    load = StudentService._load

    def load_then_pay(self, student_id, action):
        previous = load(self, student_id, action)
        # Another request records a payment after this one has read the record
        students_collection.update_one(
            {"_id": student_id},
            {"$set": {"feeStatus": "paid", "lastFeePayment": paid_at}}
        )
        return previous

    monkeypatch.setattr(StudentService, "_load", load_then_pay)
    StudentService(students_collection).update_student(
        student["_id"], StudentUpdate.model_validate({"notes": "New note"})
    )

    stored = students_collection.find_one({"_id": oid})
    assert stored["notes"] == "New note"
    assert stored["feeStatus"] == "paid"
    assert stored["lastFeePayment"] == paid_at


def test_fee_amount_keeps_whole_numbers_integral(client, create_student):
    whole = create_student(feeAmount=5000)
    fractional = create_student(feeAmount=4999.5)

    assert whole["feeAmount"] == 5000
    assert isinstance(whole["feeAmount"], int)
    assert fractional["feeAmount"] == 4999.5

    updated = client.put(f"/api/students/{whole['_id']}", json={"feeAmount": "4500"}).json()["data"]
    assert isinstance(updated["feeAmount"], int)


def test_update_email_conflict(client, create_student):
    create_student(email="taken@email.com")
    student = create_student(email="mine@email.com")

    response = client.put(f"/api/students/{student['_id']}", json={"email": "TAKEN@email.com"})

    assert response.status_code == 409


def test_update_keeping_own_email_is_allowed(client, create_student):
    student = create_student(email="mine@email.com")

    response = client.put(f"/api/students/{student['_id']}", json={"email": "Mine@Email.com", "name": "New Name"})

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "New Name"


def test_update_last_payment_recomputes_next_payment(client, create_student):
    student = create_student(joinDate="2024-01-15")

    response = client.put(f"/api/students/{student['_id']}", json={"lastFeePayment": "2024-04-30"})

    assert parse_dt(response.json()["data"]["nextFeePayment"]) == datetime(2024, 5, 30, tzinfo=timezone.utc)


def test_update_to_paid_stamps_last_payment(client, create_student):
    student = create_student()
    assert student["lastFeePayment"] is None

    updated = client.put(f"/api/students/{student['_id']}", json={"feeStatus": "paid"}).json()["data"]

    assert updated["lastFeePayment"] is not None


def test_update_missing_student(client):
    response = client.put(f"/api/students/{ObjectId()}", json={"name": "Nobody"})

    assert response.status_code == 404


def test_delete_returns_snapshot(client, create_student):
    student = create_student()

    response = client.delete(f"/api/students/{student['_id']}")

    assert response.status_code == 200
    assert response.json()["data"]["email"] == student["email"]
    assert client.get(f"/api/students/{student['_id']}").status_code == 404
    assert client.delete(f"/api/students/{student['_id']}").status_code == 404


def test_deactivated_student_is_hidden_but_retrievable(client, create_student):
    student = create_student(name="Hidden Student", course="Physics - Class 12", feeStatus="overdue")

    response = client.put(f"/api/students/{student['_id']}/deactivate")
    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False

    assert client.get("/api/students").json()["data"]["students"] == []
    assert client.get("/api/students/search/Hidden").json()["data"]["students"] == []
    assert client.get("/api/students/course/Physics - Class 12").json()["data"]["students"] == []
    assert client.get("/api/students/fees/status/overdue").json()["data"]["students"] == []
    assert client.get("/api/students/fees/overdue").json()["data"]["students"] == []

    direct = client.get(f"/api/students/{student['_id']}")
    assert direct.status_code == 200
    assert direct.json()["data"]["isActive"] is False


def test_mark_fee_paid(client, create_student):
    student = create_student(feeStatus="pending", joinDate="2024-01-15")

    response = client.put(f"/api/students/{student['_id']}/fee-paid")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Student fee marked as paid successfully"
    paid = body["data"]
    assert paid["feeStatus"] == "paid"
    last_payment = parse_dt(paid["lastFeePayment"])
    assert datetime.now(timezone.utc) - last_payment < timedelta(minutes=1)
    assert parse_dt(paid["nextFeePayment"]) > last_payment + timedelta(days=27)


def test_mark_fee_overdue(client, create_student):
    student = create_student(feeStatus="pending")

    response = client.put(f"/api/students/{student['_id']}/fee-overdue")

    assert response.json()["data"]["feeStatus"] == "overdue"
    assert response.json()["data"]["feeStatusColor"] == "red"


def test_mutators_on_missing_student(client):
    missing = ObjectId()
    assert client.put(f"/api/students/{missing}/deactivate").status_code == 404
    assert client.put(f"/api/students/{missing}/fee-paid").status_code == 404
    assert client.put(f"/api/students/bad-id/fee-paid").status_code == 400


# ============================================================
# STORE FAILURES
# ============================================================

def test_store_failure_is_internal_error(client, monkeypatch):
    def failing_count(self, *args, **kwargs):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(mongomock.collection.Collection, "count_documents", failing_count)

    response = client.get("/api/students")

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "Failed to retrieve students",
        "error": "connection reset",
    }
