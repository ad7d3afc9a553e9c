"""
HTTP application layer.

- app.py: FastAPI application factory, lifespan and exception handlers
- api/: routes, request/response models, dependencies, middleware
"""
