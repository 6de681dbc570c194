"""
Sample data for an empty students collection.

Runs at startup when SEED_SAMPLE_DATA is enabled. Records go through the
normal StudentService write path, so fee dates are derived as usual.
"""
import logging

from pymongo.collection import Collection

from tuition_admin.schemas.schemas import StudentCreate
from tuition_admin.services.student_service import StudentService

logger = logging.getLogger(__name__)


SAMPLE_STUDENTS = [
    {
        "name": "Rahul Sharma",
        "email": "rahul.sharma@email.com",
        "phone": "+919876543210",
        "address": "123 Main Street, Delhi",
        "course": "Mathematics - Class 12",
        "batchTime": "10:00 AM - 12:00 PM",
        "feeAmount": 5000,
        "feeStatus": "paid",
        "joinDate": "2024-01-15",
        "guardianName": "Mr. Suresh Sharma",
        "guardianPhone": "+919876543211",
    },
    {
        "name": "Priya Patel",
        "email": "priya.patel@email.com",
        "phone": "+919876543212",
        "address": "456 Park Avenue, Mumbai",
        "course": "Physics - Class 11",
        "batchTime": "2:00 PM - 4:00 PM",
        "feeAmount": 4500,
        "feeStatus": "pending",
        "joinDate": "2024-02-01",
        "guardianName": "Mrs. Sita Patel",
        "guardianPhone": "+919876543213",
    },
    {
        "name": "Amit Kumar",
        "email": "amit.kumar@email.com",
        "phone": "+919876543214",
        "address": "789 Hill Road, Bangalore",
        "course": "Chemistry - Class 12",
        "batchTime": "4:00 PM - 6:00 PM",
        "feeAmount": 5500,
        "feeStatus": "paid",
        "joinDate": "2024-01-20",
        "guardianName": "Mr. Raj Kumar",
        "guardianPhone": "+919876543215",
    },
    {
        "name": "Sneha Gupta",
        "email": "sneha.gupta@email.com",
        "phone": "+919876543216",
        "address": "321 Lake View, Pune",
        "course": "Mathematics - Class 11",
        "batchTime": "8:00 AM - 10:00 AM",
        "feeAmount": 4000,
        "feeStatus": "overdue",
        "joinDate": "2024-03-10",
        "guardianName": "Dr. Mohan Gupta",
        "guardianPhone": "+919876543217",
    },
    {
        "name": "Karan Singh",
        "email": "karan.singh@email.com",
        "phone": "+919876543218",
        "address": "654 Garden Street, Chennai",
        "course": "Physics - Class 12",
        "batchTime": "6:00 PM - 8:00 PM",
        "feeAmount": 5200,
        "feeStatus": "paid",
        "joinDate": "2024-02-15",
        "guardianName": "Mrs. Kavita Singh",
        "guardianPhone": "+919876543219",
    },
]


def seed_sample_students(collection: Collection) -> int:
    """Insert SAMPLE_STUDENTS if the collection is empty. Returns how many were added."""
    service = StudentService(collection)

    existing = service.count()
    if existing:
        logger.info("Database already has %d students", existing)
        return 0

    logger.info("Creating sample student data...")
    created = service.create_many([StudentCreate.model_validate(s) for s in SAMPLE_STUDENTS])
    logger.info("Created %d sample students", created)
    return created
