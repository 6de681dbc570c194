"""Services module - persistence operations used by the routes."""
