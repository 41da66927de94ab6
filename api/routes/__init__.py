"""API Routes Package."""

from api.routes import health, integration, invoices, logs, metrics

__all__ = [
    "health",
    "integration",
    "invoices",
    "logs",
    "metrics",
]
