"""
Feature modules live under this package.

Each module owns its models, input schemas, service functions and blueprint,
and reuses the platform primitives (auth, RBAC, audit, revalidation, DB session).
"""
