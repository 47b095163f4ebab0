"""
Configuration Schemas for actionhost.

Pydantic models for settings read from the environment.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from actionhost.runtime.sandbox import DEFAULT_DENIED_EVENTS


class AppSettings(BaseModel):
    """
    Application settings model.

    Used for type-safe settings access. Populated from ``ACTIONHOST_*``
    environment variables by ``get_settings()``.
    """

    # Service identity
    service_name: str = "actionhost"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)

    # Request handling
    spool_max_memory: int = Field(
        1024 * 1024, ge=0, description="Request body bytes held in memory before spilling to disk"
    )
    archive_dir: str | None = Field(None, description="Directory for extracted archives")

    # Sandbox
    denied_events: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_DENIED_EVENTS),
        description="Audit events loaded code may not raise",
    )

    # Activation log
    sentinel_stdout: bool = Field(False, description="Also write the activation sentinel to stdout")
