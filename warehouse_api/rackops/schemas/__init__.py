"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by domain module (label, picking, inventory, etc.) and also
include common reusable models such as alerts and standard responses.
"""

from .common import Alert, MessageResponse  # noqa: F401
