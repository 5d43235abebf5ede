"""HTTP API package."""

from expense_tracker.api.server import TransactionRequest, create_app, create_router

__all__ = ["TransactionRequest", "create_app", "create_router"]
