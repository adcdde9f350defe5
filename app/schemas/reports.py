from typing import Dict, List
from pydantic import BaseModel, Field


class DayCount(BaseModel):
    date: str
    count: int


class ResolutionRate(BaseModel):
    resolved: int
    total: int
    percentage: float = Field(..., description="Resolved or closed over total, in percent")


class OverviewResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    avg_first_response_hours: float
    avg_resolution_hours: float
    tickets_per_day: List[DayCount]
    resolution_rate: ResolutionRate


class SLAPriorityRow(BaseModel):
    priority: str
    response_time_hours: int
    resolution_time_hours: int
    total: int
    within_sla: int
    breached: int
    compliance: float


class SLAOverall(BaseModel):
    total: int
    within_sla: int
    breached: int
    compliance: float


class SLAResponse(BaseModel):
    by_priority: List[SLAPriorityRow]
    overall: SLAOverall


class TechnicianStats(BaseModel):
    id: int
    name: str
    email: str
    role: str
    total_tickets: int
    resolved_tickets: int
    closed_tickets: int
    in_progress_tickets: int
    avg_resolution_hours: float
    resolution_rate: float


class TrendPoint(BaseModel):
    bucket: str = Field(..., description="ISO date, or YYYY-MM for monthly series")
    created: int
    resolved: int


class TrendsResponse(BaseModel):
    period: str
    granularity: str
    series: List[TrendPoint]
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
