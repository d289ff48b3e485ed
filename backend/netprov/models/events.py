from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProgressEvent(BaseModel):
    operation_id: str
    timestamp: datetime
    operation: str  # "apply" or "teardown"
    kind: str
    key: str
    state: str
    message: str
    level: str = Field(default="info")
    step: Optional[str] = None


class RecentEventsResponse(BaseModel):
    events: list[ProgressEvent]
