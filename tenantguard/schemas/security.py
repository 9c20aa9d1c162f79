"""Pydantic schemas for the security read surface."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class AuditEventResponse(BaseModel):
    id: int
    organization_id: int | None = None
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    # Stored on the model as event_metadata
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SecurityMetricResponse(BaseModel):
    metric_name: str
    metric_value: int
    last_updated: datetime

    model_config = {"from_attributes": True}


class SuspiciousActivityResponse(BaseModel):
    alert_type: str
    organization_id: int | None = None
    user_id: str | None = None
    event_count: int
    first_seen: datetime
    last_seen: datetime

    model_config = {"from_attributes": True}
