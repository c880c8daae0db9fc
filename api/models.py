from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


# Response Models
class Product(BaseModel):
    """API representation of a catalog product."""

    id: int
    name: str
    sku: Optional[str] = None
    description: str = ""
    image_id: Optional[int] = None
    status: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RunResponse(BaseModel):
    """Response for a manual update run."""

    message: str
    processed: int = 0
    updated: int = 0
    failed: int = 0
    skipped_no_sku: int = 0
    next_run_at: Optional[int] = None


class ScheduleInfo(BaseModel):
    """The pending scheduled run, if any."""

    hook: str
    next_run_at: Optional[int] = None
    next_run: Optional[datetime] = Field(
        default=None, description="next_run_at as a local datetime"
    )


class UnscheduleResponse(BaseModel):
    removed: int


class LogResponse(BaseModel):
    """Latest lines of the update log, oldest first."""

    lines: List[str]
    count: int


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str
