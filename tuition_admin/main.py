"""
Tuition Admin API - Main Application

FastAPI backend with:
- MongoDB for student records
- Student CRUD, fee tracking and dashboard statistics
- Uniform {success, message, data} response envelope

Run: uvicorn tuition_admin.main:app --reload
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tuition_admin.api.routes import api_router
from tuition_admin.core.config import configure_logging, get_settings
from tuition_admin.core.exceptions import InternalError, ServiceError, ValidationError
from tuition_admin.db.mongodb import (
    check_mongo_connection,
    close_mongo_connection,
    connect_mongo,
    get_student_collection,
    init_mongo_indexes,
)
from tuition_admin.db.seed import seed_sample_students

settings = get_settings()
logger = logging.getLogger(__name__)


ENDPOINT_CATALOG = {
    "students": {
        "GET /api/students": "Get all students with pagination and filtering",
        "GET /api/students/{id}": "Get specific student by ID",
        "POST /api/students": "Create new student",
        "PUT /api/students/{id}": "Update student by ID",
        "DELETE /api/students/{id}": "Delete student by ID",
        "PUT /api/students/{id}/deactivate": "Deactivate student",
        "PUT /api/students/{id}/fee-paid": "Mark student fee as paid",
        "PUT /api/students/{id}/fee-overdue": "Mark student fee as overdue",
        "GET /api/students/search/{term}": "Search students by name, email, course or phone",
        "GET /api/students/course/{course}": "Get students by course",
        "GET /api/students/fees/status/{status}": "Get students by fee status",
        "GET /api/students/fees/overdue": "Get students with overdue fees",
        "GET /api/students/dashboard/stats": "Get dashboard statistics",
    },
    "utility": {
        "GET /api/health": "Check API health status",
        "GET /api": "API documentation",
    },
}

LIST_QUERY_PARAMETERS = {
    "GET /api/students": {
        "page": "Page number (default: 1)",
        "limit": "Items per page (default: 10)",
        "sortBy": "Sort field (default: createdAt)",
        "sortOrder": "Sort order: asc or desc (default: desc)",
        "course": "Filter by course",
        "feeStatus": "Filter by fee status (paid, pending, overdue)",
        "search": "Search by name, email, course or phone (ignores other filters)",
        "isActive": "true, false or all (default: true)",
    }
}


def _field_errors(exc: RequestValidationError) -> list:
    """Flatten pydantic errors to [{field, message}] using our own messages."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        if err.get("type") == "missing":
            message = f"{field} is required"
        elif err.get("type") == "value_error":
            message = err.get("msg", "").removeprefix("Value error, ")
        else:
            message = err.get("msg", "Invalid value")
        errors.append({"field": field, "message": message})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message, "errors": exc.errors}
        )

    @app.exception_handler(InternalError)
    async def internal_error_handler(request: Request, exc: InternalError):
        content = {"success": False, "message": exc.message}
        content["error"] = "Internal server error" if settings.is_production else exc.detail
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message}
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Validation failed", "errors": _field_errors(exc)}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": message},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Something went wrong!",
                "error": "Internal server error" if settings.is_production else str(exc)
            }
        )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="""
        Administration API for a tuition business.

        ## Features
        - **Students**: create, update, deactivate and delete student records
        - **Fees**: track paid / pending / overdue fees and next payment dates
        - **Search**: filter by course or fee status, free-text search
        - **Dashboard**: fee and course statistics

        ## Database
        - MongoDB: one `students` collection
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    def startup_event():
        """Connect to MongoDB, create indexes and seed an empty database."""
        configure_logging(settings)
        connect_mongo()
        try:
            collection = get_student_collection()
            init_mongo_indexes(collection)
            if settings.seed_sample_data:
                seed_sample_students(collection)
            logger.info("✅ MongoDB ready (%s)", settings.mongodb_db)
        except Exception as e:
            logger.warning("⚠️ MongoDB initialization failed: %s", e)

    @app.on_event("shutdown")
    def shutdown_event():
        close_mongo_connection()

    @app.get("/api/health", tags=["Health"])
    def health_check():
        """Liveness plus database connectivity."""
        return {
            "success": True,
            "message": "Tuition Admin API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "database": "connected" if check_mongo_connection() else "disconnected"
        }

    @app.get("/api", tags=["Health"])
    def api_catalog():
        """Machine-readable endpoint catalog."""
        return {
            "message": "Tuition Class Admin Panel API",
            "version": settings.app_version,
            "endpoints": ENDPOINT_CATALOG,
            "queryParameters": LIST_QUERY_PARAMETERS
        }

    return app


app = create_app()
