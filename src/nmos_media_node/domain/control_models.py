"""Pydantic models for the node control API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ControlModel(BaseModel):
    """Base model for control API messages."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class SessionDescriptionRequest(ControlModel):
    """Create a sender or receiver from session description text."""

    sdp: str = Field(min_length=1)


class ActivationRequest(ControlModel):
    """Activate with session description text, or deactivate with `null`."""

    sdp: str | None = None


class ResourceCreatedResponse(ControlModel):
    """Identifiers of a created sender or receiver."""

    internal_id: str = Field(alias="internalId")
    id: str


__all__ = [
    "ActivationRequest",
    "ResourceCreatedResponse",
    "SessionDescriptionRequest",
]
