"""HTTP layer: the FastAPI app exposing the expenses and notification endpoints."""

from family_budget.api.server import app, create_app, get_components

__all__ = ["app", "create_app", "get_components"]
