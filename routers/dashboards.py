"""
Dashboard API, routed by the caller's role.
"""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.dependencies import get_db_session, get_current_principal
from services.policy import Principal
from services.identity_service import IdentityService
from services.complaint_service import ComplaintService
from services.dashboard_composer import (
    DashboardVariant, SortKey, StaffMember, build_views, route_view,
    compose_student, compose_staff, compose_admin
)
from routers.complaints import parse_filter
from core.logger import logger
import config


router = APIRouter(prefix="/api/dashboard", tags=["dashboards"])


@router.get("")
def dashboard(
    search: Optional[str] = Query(None, description="Admin: match title or student name"),
    status_filter: Optional[str] = Query(None, alias="status", description="Admin: filter by status"),
    assignee: Optional[str] = Query(None, description="Admin: filter by assigned staff id"),
    sort: SortKey = Query(SortKey.NEWEST, description="Admin: newest, oldest, student or title"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Dashboard for the current user.

    Students get their own complaints, staff their assigned ones, admins
    the full triage view with analytics. Filter and sort params only
    apply to the admin view.
    """
    variant = route_view(principal.role)
    names = IdentityService.name_map(db)

    if variant == DashboardVariant.ADMIN:
        views = build_views(ComplaintService.list_visible(db, principal), names)
        staff = [
            StaffMember(id=p.id, full_name=p.full_name, email=p.email)
            for p in IdentityService.list_staff(db, principal)
        ]
        result = compose_admin(
            views,
            now=datetime.utcnow(),
            criteria=parse_filter(search, status_filter, assignee),
            sort_key=sort,
            staff=staff,
            overdue_threshold=timedelta(days=config.OVERDUE_THRESHOLD_DAYS),
            histogram_days=config.HISTOGRAM_DAYS
        )
    elif variant == DashboardVariant.STAFF:
        result = compose_staff(build_views(ComplaintService.list_assigned(db, principal), names))
    else:
        result = compose_student(build_views(ComplaintService.list_owned(db, principal), names))

    logger.debug(f"Dashboard {variant.value} composed for {principal.id}")
    return result.to_dict()
