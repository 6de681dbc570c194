"""
Student Routes

GET /students - List students with filters, search and pagination
GET /students/{id} - Get one student (active or not)
POST /students - Create student
PUT /students/{id} - Update student (partial)
DELETE /students/{id} - Delete student
PUT /students/{id}/deactivate - Soft-delete student
PUT /students/{id}/fee-paid - Mark fee paid
PUT /students/{id}/fee-overdue - Mark fee overdue
GET /students/search/{term} - Search students
GET /students/course/{course} - Students in a course
GET /students/fees/status/{status} - Students by fee status
GET /students/fees/overdue - Students with overdue fees
GET /students/dashboard/stats - Dashboard statistics
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from tuition_admin.core.config import get_settings
from tuition_admin.schemas.schemas import StudentCreate, StudentUpdate
from tuition_admin.services.student_service import StudentService, get_student_service

router = APIRouter(prefix="/students", tags=["Students"])

settings = get_settings()


def respond(message: str, data=None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


# ---------- collection-level routes (declared before /{student_id}) ----------

@router.get("/search/{term}")
def search_students(
    term: str,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: StudentService = Depends(get_student_service)
):
    """Search active students by name, email, course or phone."""
    return respond(f'Search results for "{term}"', service.search(term, page, limit))


@router.get("/course/{course}")
def students_by_course(
    course: str,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: StudentService = Depends(get_student_service)
):
    return respond(f"Students enrolled in {course}", service.by_course(course, page, limit))


@router.get("/fees/status/{status}")
def students_by_fee_status(
    status: str,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: StudentService = Depends(get_student_service)
):
    """Status must be paid, pending or overdue."""
    return respond(f"Students with {status} fee status", service.by_fee_status(status, page, limit))


@router.get("/fees/overdue")
def overdue_students(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: StudentService = Depends(get_student_service)
):
    """Overdue, or pending past the next payment date. Earliest due first."""
    return respond("Students with overdue fees", service.overdue(page, limit))


@router.get("/dashboard/stats")
def dashboard_stats(service: StudentService = Depends(get_student_service)):
    return respond("Dashboard statistics retrieved successfully", service.dashboard_stats())


@router.get("")
def list_students(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    course: Optional[str] = Query(None, description="Filter by course"),
    fee_status: Optional[str] = Query(None, alias="feeStatus", description="Filter by fee status"),
    search: Optional[str] = Query(None, description="Search term; overrides the other filters"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    is_active: Literal["true", "false", "all"] = Query("true", alias="isActive"),
    service: StudentService = Depends(get_student_service)
):
    """
    List students with filtering, sorting and pagination.

    By default only active students are returned; isActive=all includes
    deactivated ones. When `search` is given, course/feeStatus/isActive
    are ignored and only active matches are returned.
    """
    data = service.list_students(
        page=page,
        limit=limit,
        course=course,
        fee_status=fee_status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        is_active=is_active
    )
    return respond("Students retrieved successfully", data)


@router.post("", status_code=201)
def create_student(data: StudentCreate, service: StudentService = Depends(get_student_service)):
    """Create a student. Email must not belong to any existing record."""
    return respond("Student created successfully", service.create_student(data))


# ---------- record-level routes ----------

@router.get("/{student_id}")
def get_student(student_id: str, service: StudentService = Depends(get_student_service)):
    return respond("Student retrieved successfully", service.get_student(student_id))


@router.put("/{student_id}")
def update_student(
    student_id: str,
    data: StudentUpdate,
    service: StudentService = Depends(get_student_service)
):
    """Update a student. Only provided fields are changed."""
    return respond("Student updated successfully", service.update_student(student_id, data))


@router.delete("/{student_id}")
def delete_student(student_id: str, service: StudentService = Depends(get_student_service)):
    """Permanently delete a student; the response carries the deleted record."""
    return respond("Student deleted successfully", service.delete_student(student_id))


@router.put("/{student_id}/deactivate")
def deactivate_student(student_id: str, service: StudentService = Depends(get_student_service)):
    return respond("Student deactivated successfully", service.deactivate(student_id))


@router.put("/{student_id}/fee-paid")
def mark_fee_paid(student_id: str, service: StudentService = Depends(get_student_service)):
    return respond("Student fee marked as paid successfully", service.mark_fee_paid(student_id))


@router.put("/{student_id}/fee-overdue")
def mark_fee_overdue(student_id: str, service: StudentService = Depends(get_student_service)):
    return respond("Student fee marked as overdue successfully", service.mark_fee_overdue(student_id))
