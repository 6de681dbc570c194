"""
Tuition Admin API
Student, course and fee administration for a tuition business.

Architecture:
- MongoDB: one students collection (the source of truth)
- FastAPI: thin HTTP layer with a uniform JSON envelope
"""

__version__ = "1.0.0"
