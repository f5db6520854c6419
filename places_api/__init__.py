"""
Backend package for the places API.

This package provides a FastAPI application that stores places and the
users who created them, with database and storage abstractions so the
same handlers run against Postgres/S3 in production and in-memory
clients in tests.
"""
