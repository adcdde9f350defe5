from __future__ import annotations
import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationContext, Permission, require_permission
from app.core.exceptions import BusinessLogicError, business_exception_to_http
from app.core.ticket_workflow import TicketPriority, TicketStatus
from app.core.timeutils import utc_now
from app.db.session import get_db
from app.schemas.common import COMMON_RESPONSES
from app.schemas.reports import OverviewResponse, SLAResponse, TechnicianStats, TrendsResponse
from app.services.reports import ReportService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/reports", tags=["reports"])

view_reports = require_permission(Permission.VIEW_REPORTS)


@router.get("/stats/overview", response_model=OverviewResponse, responses=COMMON_RESPONSES, summary="Ticket overview")
async def overview(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_reports),
) -> OverviewResponse:
    try:
        return OverviewResponse(**await ReportService().overview(session, date_from, date_to))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.get("/stats/sla", response_model=SLAResponse, responses=COMMON_RESPONSES, summary="SLA compliance by priority")
async def sla(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_reports),
) -> SLAResponse:
    try:
        return SLAResponse(**await ReportService().sla(session, date_from, date_to))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.get(
    "/stats/technicians",
    response_model=List[TechnicianStats],
    responses=COMMON_RESPONSES,
    summary="Technician performance",
)
async def technicians(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_reports),
) -> List[TechnicianStats]:
    try:
        rows = await ReportService().technicians(session, date_from, date_to)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return [TechnicianStats(**r) for r in rows]


@router.get("/stats/trends", response_model=TrendsResponse, responses=COMMON_RESPONSES, summary="Ticket trends")
async def trends(
    period: str = Query("30days", description="7days, 30days, 90days or 12months"),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_reports),
) -> TrendsResponse:
    try:
        return TrendsResponse(**await ReportService().trends(session, period))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.get(
    "/export/tickets",
    responses={**COMMON_RESPONSES, 200: {"content": {"application/json": {}, "text/csv": {}}}},
    summary="Export tickets as JSON or CSV",
)
async def export_tickets(
    format: str = Query("json", pattern="^(json|csv)$"),
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    assigned_to_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_reports),
) -> Response:
    svc = ReportService()
    try:
        rows = await svc.export_rows(
            session,
            status=status,
            priority=priority,
            date_from=date_from,
            date_to=date_to,
            assigned_to_id=assigned_to_id,
        )
    except BusinessLogicError as e:
        raise business_exception_to_http(e)

    logger.info(f"User {auth_context.user_id} exported {len(rows)} tickets as {format}")
    if format == "csv":
        filename = f"tickets-{utc_now():%Y%m%d-%H%M%S}.csv"
        return StreamingResponse(
            svc.iter_csv(rows),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return JSONResponse(content=jsonable_encoder({"total": len(rows), "tickets": rows}))
