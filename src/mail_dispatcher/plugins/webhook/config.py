"""Webhook provider configuration schema."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookConfig(BaseModel):
    """Pydantic schema for webhook endpoint configuration."""

    model_config = ConfigDict(extra="forbid")

    url: Annotated[
        str,
        Field(
            description="Endpoint receiving the message as a JSON POST body",
        ),
    ]
    headers: Annotated[
        dict[str, str],
        Field(
            description="Extra request headers, e.g. an Authorization header",
        ),
    ] = {}
    timeout_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Request timeout for a single POST",
        ),
    ] = 10.0

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Validate URL scheme and host."""
        cleaned = value.strip()
        parsed = urlparse(cleaned)
        if parsed.scheme.lower() not in {"http", "https"}:
            msg = "Webhook URL must use http or https"
            raise ValueError(msg)
        if not parsed.hostname:
            msg = "Webhook URL must include a host"
            raise ValueError(msg)
        return cleaned
