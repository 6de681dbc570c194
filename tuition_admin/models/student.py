"""
Student Record Model

Everything that defines a student document independently of HTTP:
- Course catalog and fee status values
- Field rules shared by the create and update schemas
- The fee-schedule derivation applied on every write
- Virtual (read-only) attributes
- Query filters and the dashboard aggregation

Documents are stored with camelCase keys (batchTime, feeAmount, ...), the
same names the API exposes.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from dateutil.relativedelta import relativedelta
from email_validator import EmailNotValidError, validate_email


# ============================================================
# CONSTANTS
# ============================================================

class FeeStatus(str, Enum):
    paid = "paid"
    pending = "pending"
    overdue = "overdue"


FEE_STATUSES = [s.value for s in FeeStatus]

FEE_STATUS_COLORS = {
    FeeStatus.paid.value: "green",
    FeeStatus.pending.value: "orange",
    FeeStatus.overdue.value: "red",
}

SUBJECT_GRADES = {
    "Mathematics": (9, 10, 11, 12),
    "Physics": (9, 10, 11, 12),
    "Chemistry": (9, 10, 11, 12),
    "Biology": (11, 12),
    "English": (9, 10, 11, 12),
    "Computer Science": (11, 12),
}

COURSE_CATALOG: List[str] = [
    f"{subject} - Class {grade}"
    for subject, grades in SUBJECT_GRADES.items()
    for grade in grades
]

COURSE_SEPARATOR = " - "

MIN_FEE_AMOUNT = 0
MAX_FEE_AMOUNT = 50000

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")


# ============================================================
# FIELD RULES
# Raise ValueError with the message returned to the client.
# ============================================================

def _required_text(value: Any, label: str) -> str:
    if value is None:
        raise ValueError(f"{label} is required")
    if not isinstance(value, str):
        raise ValueError(f"{label} must be text")
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


def check_name(value: Any) -> str:
    value = _required_text(value, "Name")
    if not 2 <= len(value) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    return value


def check_email(value: Any) -> str:
    value = _required_text(value, "Email")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Please enter a valid email address")
    return value.lower()


def check_phone(value: Any, label: str = "phone number") -> str:
    if value is None or not isinstance(value, str) or not PHONE_PATTERN.match(value.strip()):
        raise ValueError(f"Please enter a valid {label}")
    return value.strip()


def check_address(value: Any) -> str:
    value = _required_text(value, "Address")
    if len(value) > 500:
        raise ValueError("Address cannot exceed 500 characters")
    return value


def check_course(value: Any) -> str:
    value = _required_text(value, "Course")
    if value not in COURSE_CATALOG:
        raise ValueError("Please select a valid course")
    return value


def check_batch_time(value: Any) -> str:
    return _required_text(value, "Batch time")


def check_fee_amount(value: Any) -> Union[int, float]:
    if isinstance(value, bool) or value is None:
        raise ValueError("Fee amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError("Fee amount must be a number")
    if amount != amount:  # NaN
        raise ValueError("Fee amount must be a number")
    if amount < MIN_FEE_AMOUNT:
        raise ValueError("Fee amount cannot be negative")
    if amount > MAX_FEE_AMOUNT:
        raise ValueError("Fee amount cannot exceed ₹50,000")
    # Whole rupee amounts are stored as integers
    return int(amount) if amount.is_integer() else amount


def check_fee_status(value: Any) -> str:
    if isinstance(value, FeeStatus):
        return value.value
    if value not in FEE_STATUSES:
        raise ValueError("Fee status must be paid, pending, or overdue")
    return value


def check_guardian_name(value: Any) -> str:
    value = _required_text(value, "Guardian name")
    if len(value) > 100:
        raise ValueError("Guardian name cannot exceed 100 characters")
    return value


def check_date(value: Any, label: str) -> datetime:
    """Accept datetimes, dates or ISO-8601 strings ('2024-01-15', '...Z')."""
    if isinstance(value, datetime):
        return to_store_datetime(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_store_datetime(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValueError(f"{label} must be a valid date")


def check_notes(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Notes must be text")
    value = value.strip()
    if len(value) > 1000:
        raise ValueError("Notes cannot exceed 1000 characters")
    return value


# ============================================================
# DATES
# ============================================================

def to_store_datetime(value: datetime) -> datetime:
    """
    Normalize to naive UTC with millisecond precision, which is what
    MongoDB hands back on read.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utc_now() -> datetime:
    return to_store_datetime(datetime.now(timezone.utc))


def add_one_month(value: datetime) -> datetime:
    """Same day next month, clamped to month end (Jan 31 -> Feb 28/29)."""
    return value + relativedelta(months=1)


# ============================================================
# DERIVATION HOOK
# ============================================================

def apply_fee_schedule(
    document: Dict[str, Any],
    previous: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Produce the fully derived document to be written.

    Args:
        document: the record as it will be stored (merged with any changes)
        previous: the stored record before this write, or None for a new one
        now: clock override

    Rules:
        - paid with no lastFeePayment -> lastFeePayment = now
        - new record, or lastFeePayment changed -> nextFeePayment =
          (lastFeePayment or joinDate) + 1 month
    """
    now = now or utc_now()
    derived = dict(document)

    if derived.get("joinDate") is None:
        derived["joinDate"] = now

    if derived.get("feeStatus") == FeeStatus.paid.value and not derived.get("lastFeePayment"):
        derived["lastFeePayment"] = now

    is_new = previous is None
    payment_changed = not is_new and previous.get("lastFeePayment") != derived.get("lastFeePayment")

    if is_new or payment_changed:
        base_date = derived.get("lastFeePayment") or derived["joinDate"]
        derived["nextFeePayment"] = add_one_month(base_date)

    return derived


# ============================================================
# VIRTUAL ATTRIBUTES
# ============================================================

def display_name(name: str, course: str) -> str:
    return f"{name} ({course})"


def format_join_date(join_date: Optional[datetime]) -> Optional[str]:
    """Long en-IN style date, e.g. '15 January 2024'."""
    if join_date is None:
        return None
    return f"{join_date.day} {join_date.strftime('%B %Y')}"


def fee_status_color(fee_status: Optional[str]) -> str:
    return FEE_STATUS_COLORS.get(fee_status, "gray")


def split_course(course: str) -> List[Optional[str]]:
    """['Physics', 'Class 12'] for 'Physics - Class 12'."""
    parts = course.split(COURSE_SEPARATOR)
    return [parts[0], parts[1] if len(parts) > 1 else None]


# ============================================================
# QUERY FILTERS
# ============================================================

def active_students() -> Dict[str, Any]:
    return {"isActive": True}


def by_course(course: str) -> Dict[str, Any]:
    return {"course": course, "isActive": True}


def by_fee_status(status: str) -> Dict[str, Any]:
    return {"feeStatus": status, "isActive": True}


def search_students(term: str) -> Dict[str, Any]:
    """Active students whose name, email, course or phone contains the term."""
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {
        "$and": [
            {"isActive": True},
            {"$or": [
                {"name": pattern},
                {"email": pattern},
                {"course": pattern},
                {"phone": pattern},
            ]},
        ]
    }


def overdue_students(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Flagged overdue, or pending with the due date already passed."""
    now = now or utc_now()
    return {
        "isActive": True,
        "$or": [
            {"feeStatus": FeeStatus.overdue.value},
            {"feeStatus": FeeStatus.pending.value, "nextFeePayment": {"$lt": now}},
        ]
    }


# ============================================================
# DASHBOARD AGGREGATION
# ============================================================

REVENUE_PIPELINE = [
    {"$match": {"feeStatus": FeeStatus.paid.value, "isActive": True}},
    {"$group": {"_id": None, "total": {"$sum": "$feeAmount"}}},
]

COURSE_DISTRIBUTION_PIPELINE = [
    {"$match": {"isActive": True}},
    {"$group": {"_id": "$course", "count": {"$sum": 1}}},
    {"$sort": {"count": -1, "_id": 1}},
    {"$project": {"_id": 0, "course": "$_id", "count": 1}},
]
