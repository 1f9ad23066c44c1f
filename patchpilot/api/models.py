"""
API Request/Response Models
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class AcceptedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    status: str = Field(default="accepted", description="Work was scheduled in the background")
    message: str


class HealthResponse(BaseModel):
    status: str
    active_runs: Dict[str, str] = Field(default_factory=dict)
