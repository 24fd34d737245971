"""Presentation schemas"""

from pydantic import BaseModel, Field

from .enums import SessionState


class SessionSummary(BaseModel):
    """Read-only view of one session for tab lists and status bars"""

    id: str = Field(..., description="Opaque session identifier")
    display_name: str = Field(..., description="Human label, e.g. 'Session 3'")
    is_active: bool = Field(..., description="Whether this session receives input by default")
    state: SessionState = Field(..., description="Current connection state")
    reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Automatic reconnect attempts since the last successful open"
    )

    model_config = {"frozen": True}
