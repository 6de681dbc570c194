"""
Student Service - persistence operations for the students collection.

Every write goes through _write_new / _write_existing, which run
apply_fee_schedule() before the document reaches MongoDB, so derived fee
dates can never be skipped by a caller.

Email uniqueness is checked here first, but the unique index is the real
guarantee: a DuplicateKeyError from the store is reported exactly like a
failed pre-check.
"""

import logging
import math
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi import Depends
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from tuition_admin.core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from tuition_admin.db.mongodb import get_student_collection
from tuition_admin.models import student as model
from tuition_admin.models.student import FeeStatus
from tuition_admin.schemas.schemas import DashboardStats, Pagination, StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)


# ============================================================
# HELPERS
# ============================================================

def serialize_student(doc: dict) -> Optional[dict]:
    """Convert a stored document to its JSON form, virtual fields included."""
    if doc is None:
        return None
    return StudentResponse.model_validate(doc).model_dump(by_alias=True, mode="json")


def serialize_students(docs: list) -> list:
    return [serialize_student(doc) for doc in docs]


def parse_object_id(student_id: str) -> ObjectId:
    if not ObjectId.is_valid(student_id):
        raise ValidationError([{"field": "id", "message": "Invalid student ID format"}])
    return ObjectId(student_id)


def build_pagination(total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit)
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_students=total,
        students_per_page=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1
    ).model_dump(by_alias=True)


@contextmanager
def store_errors(action: str):
    """
    Turn driver failures into InternalError.
    Usage:
        with store_errors("Failed to retrieve students"):
            collection.find(...)
    """
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.exception("%s", action)
        raise InternalError(action, detail=str(e))


# ============================================================
# STUDENT SERVICE
# ============================================================

class StudentService:
    """
    Handles the students collection.
    Query methods only see active students unless noted.
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    # ---------- reads ----------

    def _paginate(
        self,
        filter_: Dict[str, Any],
        page: int,
        limit: int,
        sort: List[Tuple[str, int]],
        action: str
    ) -> dict:
        if all(key != "_id" for key, _ in sort):
            # Stable order across pages when the sort key ties
            sort = sort + [("_id", sort[-1][1])]
        with store_errors(action):
            cursor = (
                self.collection.find(filter_)
                .sort(sort)
                .skip((page - 1) * limit)
                .limit(limit)
            )
            students = list(cursor)
            total = self.collection.count_documents(filter_)

        return {
            "students": serialize_students(students),
            "pagination": build_pagination(total, page, limit)
        }

    def list_students(
        self,
        page: int = 1,
        limit: int = 10,
        course: Optional[str] = None,
        fee_status: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        is_active: str = "true"
    ) -> dict:
        """
        List with filters. A search term replaces the course/feeStatus/isActive
        filters instead of narrowing them.
        """
        if search:
            filter_ = model.search_students(search)
        else:
            filter_ = {}
            if is_active != "all":
                filter_["isActive"] = is_active == "true"
            if course:
                filter_["course"] = course
            if fee_status:
                filter_["feeStatus"] = fee_status

        direction = ASCENDING if sort_order == "asc" else DESCENDING
        return self._paginate(filter_, page, limit, [(sort_by, direction)], "Failed to retrieve students")

    def get_student(self, student_id: str) -> dict:
        """Direct lookup; inactive students are returned too."""
        oid = parse_object_id(student_id)
        with store_errors("Failed to retrieve student"):
            doc = self.collection.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError()
        return serialize_student(doc)

    def email_exists(self, email: str, exclude_id: Optional[ObjectId] = None) -> bool:
        query: Dict[str, Any] = {"email": email}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return self.collection.find_one(query, {"_id": 1}) is not None

    def search(self, term: str, page: int = 1, limit: int = 10) -> dict:
        return self._paginate(
            model.search_students(term), page, limit,
            [("createdAt", DESCENDING)], "Failed to search students"
        )

    def by_course(self, course: str, page: int = 1, limit: int = 10) -> dict:
        return self._paginate(
            model.by_course(course), page, limit,
            [("createdAt", DESCENDING)], "Failed to retrieve students by course"
        )

    def by_fee_status(self, status: str, page: int = 1, limit: int = 10) -> dict:
        if status not in model.FEE_STATUSES:
            raise ValidationError(
                [{"field": "status", "message": "Fee status must be paid, pending, or overdue"}],
                message="Invalid fee status. Must be paid, pending, or overdue"
            )
        return self._paginate(
            model.by_fee_status(status), page, limit,
            [("createdAt", DESCENDING)], "Failed to retrieve students by fee status"
        )

    def overdue(self, page: int = 1, limit: int = 10) -> dict:
        return self._paginate(
            model.overdue_students(), page, limit,
            [("nextFeePayment", ASCENDING)], "Failed to retrieve overdue students"
        )

    def dashboard_stats(self) -> dict:
        active = model.active_students()
        with store_errors("Failed to retrieve dashboard statistics"):
            total = self.collection.count_documents(active)
            counts = {
                status: self.collection.count_documents(model.by_fee_status(status))
                for status in model.FEE_STATUSES
            }
            revenue = list(self.collection.aggregate(model.REVENUE_PIPELINE))
            distribution = list(self.collection.aggregate(model.COURSE_DISTRIBUTION_PIPELINE))

        return DashboardStats(
            total_students=total,
            paid_fees=counts[FeeStatus.paid.value],
            pending_fees=counts[FeeStatus.pending.value],
            overdue_fees=counts[FeeStatus.overdue.value],
            total_revenue=revenue[0]["total"] if revenue else 0,
            course_distribution=distribution
        ).model_dump(by_alias=True)

    # ---------- writes ----------

    def _write_new(self, document: Dict[str, Any]) -> dict:
        now = model.utc_now()
        doc = model.apply_fee_schedule(document, previous=None, now=now)
        doc["createdAt"] = now
        doc["updatedAt"] = now
        try:
            with store_errors("Failed to create student"):
                result = self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError()
        doc["_id"] = result.inserted_id
        return doc

    def _write_existing(self, previous: Dict[str, Any], changes: Dict[str, Any], action: str) -> dict:
        now = model.utc_now()
        merged = {**previous, **changes}
        doc = model.apply_fee_schedule(merged, previous=previous, now=now)
        # Only requested and re-derived fields; concurrent writes to others survive
        fields = {
            k: v for k, v in doc.items()
            if k != "_id" and (k in changes or previous.get(k) != v)
        }
        fields["updatedAt"] = now
        try:
            with store_errors(action):
                updated = self.collection.find_one_and_update(
                    {"_id": previous["_id"]},
                    {"$set": fields},
                    return_document=ReturnDocument.AFTER
                )
        except DuplicateKeyError:
            raise ConflictError()
        if updated is None:
            # Removed between read and write
            raise NotFoundError()
        return updated

    def _load(self, oid: ObjectId, action: str) -> dict:
        with store_errors(action):
            doc = self.collection.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError()
        return doc

    def create_student(self, data: StudentCreate) -> dict:
        document = data.to_document()
        with store_errors("Failed to create student"):
            taken = self.email_exists(document["email"])
        if taken:
            raise ConflictError()
        return serialize_student(self._write_new(document))

    def create_many(self, items: List[StudentCreate]) -> int:
        """Used for seeding. Inserts one record at a time through the normal write path."""
        for item in items:
            self._write_new(item.to_document())
        return len(items)

    def update_student(self, student_id: str, data: StudentUpdate) -> dict:
        oid = parse_object_id(student_id)
        action = "Failed to update student"
        previous = self._load(oid, action)
        changes = data.to_changes()

        new_email = changes.get("email")
        if new_email and new_email != previous.get("email"):
            with store_errors(action):
                taken = self.email_exists(new_email, exclude_id=oid)
            if taken:
                raise ConflictError()

        return serialize_student(self._write_existing(previous, changes, action))

    def delete_student(self, student_id: str) -> dict:
        """Physically remove; returns the deleted snapshot."""
        oid = parse_object_id(student_id)
        with store_errors("Failed to delete student"):
            doc = self.collection.find_one_and_delete({"_id": oid})
        if doc is None:
            raise NotFoundError()
        return serialize_student(doc)

    # ---------- per-record mutators ----------

    def deactivate(self, student_id: str) -> dict:
        action = "Failed to deactivate student"
        previous = self._load(parse_object_id(student_id), action)
        return serialize_student(self._write_existing(previous, {"isActive": False}, action))

    def mark_fee_paid(self, student_id: str) -> dict:
        action = "Failed to update fee status"
        previous = self._load(parse_object_id(student_id), action)
        changes = {"feeStatus": FeeStatus.paid.value, "lastFeePayment": model.utc_now()}
        return serialize_student(self._write_existing(previous, changes, action))

    def mark_fee_overdue(self, student_id: str) -> dict:
        action = "Failed to update fee status"
        previous = self._load(parse_object_id(student_id), action)
        return serialize_student(
            self._write_existing(previous, {"feeStatus": FeeStatus.overdue.value}, action)
        )

    def count(self) -> int:
        with store_errors("Failed to count students"):
            return self.collection.count_documents({})


def get_student_service(collection: Collection = Depends(get_student_collection)) -> StudentService:
    """FastAPI dependency - StudentService bound to the students collection."""
    return StudentService(collection)
