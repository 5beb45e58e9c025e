"""
User service API package.

Modules:
- db: PostgreSQL connection pooling + query helpers
- config: environment-driven settings
- auth_utils: password hashing and JWT auth helpers
- schemas: Pydantic models for the REST API
- startup: database readiness wait, admin seeding, startup sequence
- metrics: Prometheus request metrics middleware and scrape endpoint
- auth_routes / user_routes: the /api/auth and /api/users route groups
- main: app factory
- server: process entry point
"""
