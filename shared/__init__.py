"""
Shared utilities for the report gateway.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for transport-level failures
- base_service: FastAPI service shell (middleware, health, error handlers)

Do not import from service packages into shared/.
"""
