"""
Schemas module - Request/Response schemas for API endpoints.

Difference from models:
- Models: stored document rules and queries
- Schemas: API contract (what client sends/receives)
"""
