"""
Callboard Package.

Live-update engine and FastAPI service for call-center agent/campaign
statistics dashboards. Decides when to fetch fresh aggregate statistics,
normalizes raw call records, detects counter increases between snapshots and
sequences them as one-at-a-time alerts.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, errors, and dependencies
    - models: Pydantic schemas and enums
    - services: The live-update engine
"""

__version__ = "1.0.0"
