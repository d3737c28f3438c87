"""
Pydantic schemas for the worker health endpoints.
"""
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

class JobFailure(BaseModel):
    job: str
    args: Dict[str, Any]
    error: str
    type: str = Field(description="Exception class name")
    at: float = Field(description="Unix timestamp of the failure")

class DetailedHealth(BaseModel):
    """
    Detailed health report: database reachability, redis liveness and queue state.
    """
    status: str = Field(description="healthy or degraded")
    service: str
    version: str
    timestamp: float
    checks: Dict[str, Any] = Field(default_factory=dict)
    recent_failures: Optional[List[JobFailure]] = None
