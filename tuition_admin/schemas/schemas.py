"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Field names are snake_case in Python and camelCase on the wire
(batchTime, feeAmount, ...), matching the stored documents.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from tuition_admin.models import student as rules
from tuition_admin.models.student import FeeStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# STUDENT REQUEST SCHEMAS
# ============================================================

class StudentCreate(CamelModel):
    name: str
    email: str
    phone: str
    address: str
    course: str
    batch_time: str
    fee_amount: Union[int, float]
    fee_status: FeeStatus = FeeStatus.pending
    join_date: Optional[datetime] = None
    guardian_name: str
    guardian_phone: str
    notes: Optional[str] = None
    is_active: bool = True
    last_fee_payment: Optional[datetime] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return rules.check_name(v)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return rules.check_email(v)

    @field_validator("phone", mode="before")
    @classmethod
    def _phone(cls, v):
        return rules.check_phone(v)

    @field_validator("guardian_phone", mode="before")
    @classmethod
    def _guardian_phone(cls, v):
        return rules.check_phone(v, "guardian phone number")

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v):
        return rules.check_address(v)

    @field_validator("course", mode="before")
    @classmethod
    def _course(cls, v):
        return rules.check_course(v)

    @field_validator("batch_time", mode="before")
    @classmethod
    def _batch_time(cls, v):
        return rules.check_batch_time(v)

    @field_validator("fee_amount", mode="before")
    @classmethod
    def _fee_amount(cls, v):
        return rules.check_fee_amount(v)

    @field_validator("fee_status", mode="before")
    @classmethod
    def _fee_status(cls, v):
        return rules.check_fee_status(v)

    @field_validator("guardian_name", mode="before")
    @classmethod
    def _guardian_name(cls, v):
        return rules.check_guardian_name(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v):
        return rules.check_notes(v)

    @field_validator("join_date", mode="before")
    @classmethod
    def _join_date(cls, v):
        return None if v is None else rules.check_date(v, "Join date")

    @field_validator("last_fee_payment", mode="before")
    @classmethod
    def _last_fee_payment(cls, v):
        return None if v is None else rules.check_date(v, "Last fee payment")

    def to_document(self) -> Dict[str, Any]:
        """Stored form: camelCase keys, enum values, unset optional dates dropped."""
        doc = self.model_dump(by_alias=True, mode="python")
        doc["feeStatus"] = self.fee_status.value
        for key in ("joinDate", "lastFeePayment", "notes"):
            if doc.get(key) is None:
                doc.pop(key, None)
        return doc


class StudentUpdate(StudentCreate):
    """Every field optional; supplied fields obey the same rules as on create."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    course: Optional[str] = None
    batch_time: Optional[str] = None
    fee_amount: Optional[Union[int, float]] = None
    fee_status: Optional[FeeStatus] = None
    join_date: Optional[datetime] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("join_date", mode="before")
    @classmethod
    def _join_date(cls, v):
        # joinDate anchors the fee schedule, so it can't be cleared
        return rules.check_date(v, "Join date")

    @field_validator("is_active", mode="before")
    @classmethod
    def _is_active(cls, v):
        if v is None:
            raise ValueError("Active flag cannot be empty")
        return v

    def to_changes(self) -> Dict[str, Any]:
        """Only the fields the client sent. notes/lastFeePayment may be null."""
        changes = self.model_dump(by_alias=True, exclude_unset=True, mode="python")
        if isinstance(changes.get("feeStatus"), FeeStatus):
            changes["feeStatus"] = changes["feeStatus"].value
        return changes


# ============================================================
# STUDENT RESPONSE SCHEMAS
# ============================================================

class StudentResponse(CamelModel):
    object_id: str = Field(alias="_id")
    name: str
    email: str
    phone: str
    address: str
    course: str
    batch_time: str
    fee_amount: Union[int, float]
    fee_status: str
    join_date: datetime
    guardian_name: str
    guardian_phone: str
    notes: Optional[str] = None
    is_active: bool = True
    last_fee_payment: Optional[datetime] = None
    next_fee_payment: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("object_id", mode="before")
    @classmethod
    def _object_id(cls, v):
        return str(v)

    @field_validator(
        "join_date", "last_fee_payment", "next_fee_payment", "created_at", "updated_at",
        mode="after"
    )
    @classmethod
    def _as_utc(cls, v):
        # The store returns naive UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @computed_field(alias="id")
    @property
    def id(self) -> str:
        return self.object_id

    @computed_field(alias="displayName")
    @property
    def display_name(self) -> str:
        return rules.display_name(self.name, self.course)

    @computed_field(alias="formattedJoinDate")
    @property
    def formatted_join_date(self) -> Optional[str]:
        return rules.format_join_date(self.join_date)

    @computed_field(alias="feeStatusColor")
    @property
    def fee_status_color(self) -> str:
        return rules.fee_status_color(self.fee_status)

    @computed_field(alias="subject")
    @property
    def subject(self) -> Optional[str]:
        return rules.split_course(self.course)[0]

    @computed_field(alias="classLevel")
    @property
    def class_level(self) -> Optional[str]:
        return rules.split_course(self.course)[1]


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_students: int
    students_per_page: int
    has_next_page: bool
    has_prev_page: bool


class CourseCount(BaseModel):
    course: str
    count: int


class DashboardStats(CamelModel):
    total_students: int
    paid_fees: int
    pending_fees: int
    overdue_fees: int
    total_revenue: Union[int, float]
    course_distribution: List[CourseCount] = []


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class FieldError(BaseModel):
    field: str
    message: str


class APIResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None
    errors: Optional[List[FieldError]] = None
