"""Core module - settings and service-layer errors."""
