"""Core module - configuration, models, errors, step logs and observability.

Shared by the sagas, the connectors and the Temporal/HTTP entry points.
System-specific HTTP clients belong in /connectors/.
"""

__version__ = "1.0.0"
