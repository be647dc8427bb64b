"""
FastAPI application for the fleet registry.

The package is split into ``core`` (configuration, storage, errors and
filters), ``schemas`` (pydantic models), ``services`` (business logic
and the lookup/pagination/export pipeline) and ``api`` (routers).
"""
