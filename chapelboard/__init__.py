"""
Backend package for the community bulletin service.

This package provides a FastAPI application for the church bulletin,
calendar and gallery, with repository and storage abstractions so the
SQLite database and the uploads directory can be swapped for in-memory
doubles in tests.
"""
