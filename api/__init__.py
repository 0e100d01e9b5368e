"""
API Layer for the Face Authentication Service

This package provides the FastAPI-based API layer that exposes:
- REST endpoints for enrollment and re-enrollment
- REST endpoint for authentication
- REST endpoints for status, disable and audit logs
- Health check endpoint
"""
