"""
Channel Integration Schemas

Pydantic models for channel mapping and sync API requests and responses.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


# ==================
# Room mappings
# ==================

class ChannelMappingCreate(BaseModel):
    room_type_id: str
    provider: str = Field(default="beds24", description="Channel provider name")
    external_room_code: str = Field(..., min_length=1, max_length=100)


class ChannelMappingResponse(BaseModel):
    id: str
    room_type_id: str
    provider: str
    external_room_code: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ==================
# Sync requests / results
# ==================

class PushRequest(BaseModel):
    """Date range to push; defaults to today + sync horizon"""
    start: Optional[date] = None
    end: Optional[date] = None
    room_type_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_range(self):
        if self.start and self.end and self.end < self.start:
            raise ValueError('end must not be before start')
        return self


class PullRequest(BaseModel):
    since: Optional[datetime] = None


class SyncResultResponse(BaseModel):
    success: bool
    message: str
    records_processed: Optional[int] = None
    errors: Optional[List[str]] = None

    class Config:
        from_attributes = True


class PullSummaryResponse(BaseModel):
    success: bool
    message: str
    since: datetime
    fetched: int
    created: int
    cancelled: int
    unchanged: int
    skipped: List[str]
    errors: List[str]

    class Config:
        from_attributes = True


class ProviderPayloadResponse(BaseModel):
    id: str
    provider: str
    operation: str
    direction: str
    request_payload: Optional[Any] = None
    response_payload: Optional[Any] = None
    success: bool
    error_message: Optional[str] = None
    attempt: int
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProviderInfo(BaseModel):
    name: str
    configured: bool
    mappings: int


class SchedulerStatus(BaseModel):
    running: bool
    enabled: bool
    providers: List[str]
    jobs: List[Dict[str, Any]]
    last_runs: Dict[str, Any]
