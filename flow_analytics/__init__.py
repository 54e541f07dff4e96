"""
Flow Analytics Backend Package.

FastAPI service that aggregates email flow performance from a rate-limited,
paginated reporting API and scores each flow step.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, errors and dependencies
    - models: Pydantic schemas and enums
    - services: Client, identity resolution, aggregation and scoring
"""

__version__ = "1.0.0"
