"""
Dashboard view composition.

Pure functions over complaint snapshots that were already scoped by the
row policy upstream. Nothing in this module reads the database or checks
access; every dashboard is recomputed from scratch on each request.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import enum
import unicodedata

from database.models import AppRole, Complaint, ComplaintCategory, ComplaintStatus

STATUS_LABELS = {
    ComplaintStatus.PENDING: "Pending",
    ComplaintStatus.IN_PROGRESS: "In Progress",
    ComplaintStatus.RESOLVED: "Resolved",
}

UNKNOWN_NAME = "Unknown"


class DashboardVariant(str, enum.Enum):
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


class SortKey(str, enum.Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    STUDENT = "student"
    TITLE = "title"


@dataclass(frozen=True)
class ComplaintView:
    """Read-only complaint snapshot joined with owner and assignee names."""
    id: str
    student_id: str
    title: str
    description: str
    category: ComplaintCategory
    status: ComplaintStatus
    assigned_to: Optional[str]
    created_at: datetime
    updated_at: datetime
    student_name: str = UNKNOWN_NAME
    assignee_name: Optional[str] = None
    student_email: Optional[str] = None

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, str(self.status))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "studentEmail": self.student_email,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "status": self.status.value,
            "statusLabel": self.status_label,
            "assignedTo": self.assigned_to,
            "assigneeName": self.assignee_name,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class ComplaintFilter:
    """Conjunction of optional criteria; an unset criterion matches everything."""
    search: Optional[str] = None
    status: Optional[ComplaintStatus] = None
    assignee: Optional[str] = None


def build_view(
    complaint: Complaint,
    names: Mapping[str, str],
    emails: Optional[Mapping[str, str]] = None
) -> ComplaintView:
    """Snapshot one complaint; ``emails`` adds the owner's contact for detail views."""
    return ComplaintView(
        id=complaint.id,
        student_id=complaint.student_id,
        title=complaint.title,
        description=complaint.description,
        category=complaint.category,
        status=complaint.status,
        assigned_to=complaint.assigned_to,
        created_at=complaint.created_at,
        updated_at=complaint.updated_at,
        student_name=names.get(complaint.student_id, UNKNOWN_NAME),
        assignee_name=names.get(complaint.assigned_to) if complaint.assigned_to else None,
        student_email=emails.get(complaint.student_id) if emails else None,
    )


def build_views(complaints: Iterable[Complaint], names: Mapping[str, str]) -> List[ComplaintView]:
    return [build_view(c, names) for c in complaints]


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def route_view(role) -> DashboardVariant:
    """
    Select the dashboard variant for a role.

    Total over any input: anything that is not staff or admin gets the
    least-privileged student variant.
    """
    value = role.value if isinstance(role, enum.Enum) else role
    if value == AppRole.ADMIN.value:
        return DashboardVariant.ADMIN
    if value == AppRole.STAFF.value:
        return DashboardVariant.STAFF
    return DashboardVariant.STUDENT


# ---------------------------------------------------------------------------
# Filter / sort / partition
# ---------------------------------------------------------------------------

def _matches(view: ComplaintView, criteria: ComplaintFilter) -> bool:
    if criteria.search:
        needle = criteria.search.casefold()
        if needle not in view.title.casefold() and needle not in (view.student_name or "").casefold():
            return False
    if criteria.status is not None and view.status != criteria.status:
        return False
    if criteria.assignee is not None and view.assigned_to != criteria.assignee:
        return False
    return True


def filter_complaints(views: Sequence[ComplaintView], criteria: Optional[ComplaintFilter] = None) -> List[ComplaintView]:
    if criteria is None:
        return list(views)
    return [v for v in views if _matches(v, criteria)]


def collation_key(text: Optional[str]) -> Tuple[str, str]:
    """
    Accent- and case-insensitive sort key.

    Accented letters sort with their base letter ("Émile" next to "Emma");
    the casefolded original breaks ties between otherwise equal strings.
    """
    folded = (text or "").casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base, folded


def sort_complaints(views: Sequence[ComplaintView], key: SortKey = SortKey.NEWEST) -> List[ComplaintView]:
    """
    Order views by a single key. ``sorted`` is stable, so ties keep their
    input order.
    """
    key = SortKey(key)
    if key == SortKey.NEWEST:
        return sorted(views, key=lambda v: v.created_at, reverse=True)
    if key == SortKey.OLDEST:
        return sorted(views, key=lambda v: v.created_at)
    if key == SortKey.STUDENT:
        return sorted(views, key=lambda v: collation_key(v.student_name))
    return sorted(views, key=lambda v: collation_key(v.title))


def partition_by_assignment(views: Sequence[ComplaintView]) -> Tuple[List[ComplaintView], List[ComplaintView]]:
    """Split into (unassigned, assigned), preserving order."""
    unassigned = [v for v in views if v.assigned_to is None]
    assigned = [v for v in views if v.assigned_to is not None]
    return unassigned, assigned


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def count_by_status(views: Iterable[ComplaintView]) -> Dict[str, int]:
    counts = OrderedDict((s.value, 0) for s in ComplaintStatus)
    for v in views:
        counts[v.status.value] += 1
    return dict(counts)


def count_by_category(views: Iterable[ComplaintView]) -> Dict[str, int]:
    counts = OrderedDict((c.value, 0) for c in ComplaintCategory)
    for v in views:
        counts[v.category.value] += 1
    return dict(counts)


@dataclass(frozen=True)
class HistogramBucket:
    day: date
    count: int

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "label": f"{self.day.strftime('%b')} {self.day.day}",
            "count": self.count,
        }


def daily_histogram(views: Iterable[ComplaintView], now: datetime, days: int = 7) -> List[HistogramBucket]:
    """
    Complaints per calendar day of ``created_at`` for the trailing window
    ending today, oldest day first. Days without complaints are kept as zero.

    Args:
        views: Complaint snapshots (UTC timestamps)
        now: Reference time
        days: Window length

    Returns:
        Exactly ``days`` buckets
    """
    today = now.date()
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    counts = {d: 0 for d in window}
    for v in views:
        created = v.created_at.date()
        if created in counts:
            counts[created] += 1
    return [HistogramBucket(day=d, count=counts[d]) for d in window]


def overdue(views: Iterable[ComplaintView], now: datetime, threshold: timedelta = timedelta(days=3)) -> List[ComplaintView]:
    """Pending, unassigned complaints created before ``now - threshold``."""
    cutoff = now - threshold
    return [
        v for v in views
        if v.status == ComplaintStatus.PENDING and v.assigned_to is None and v.created_at < cutoff
    ]


# ---------------------------------------------------------------------------
# Role dashboards
# ---------------------------------------------------------------------------

@dataclass
class StaffMember:
    id: str
    full_name: str
    email: str

    def to_dict(self) -> dict:
        return {"id": self.id, "fullName": self.full_name, "email": self.email}


@dataclass
class Dashboard:
    variant: DashboardVariant
    complaints: List[ComplaintView]
    status_counts: Dict[str, int]
    unassigned: List[ComplaintView] = field(default_factory=list)
    assigned: List[ComplaintView] = field(default_factory=list)
    category_counts: Dict[str, int] = field(default_factory=dict)
    histogram: List[HistogramBucket] = field(default_factory=list)
    overdue: List[ComplaintView] = field(default_factory=list)
    unassigned_count: int = 0
    staff: List[StaffMember] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "variant": self.variant.value,
            "complaints": [v.to_dict() for v in self.complaints],
            "statusCounts": self.status_counts,
        }
        if self.variant == DashboardVariant.ADMIN:
            data.update({
                "unassigned": [v.to_dict() for v in self.unassigned],
                "assigned": [v.to_dict() for v in self.assigned],
                "categoryCounts": self.category_counts,
                "last7Days": [b.to_dict() for b in self.histogram],
                "overdue": [v.to_dict() for v in self.overdue],
                "unassignedCount": self.unassigned_count,
                "staff": [s.to_dict() for s in self.staff],
            })
        return data


def compose_student(views: Sequence[ComplaintView]) -> Dashboard:
    """Own complaints, newest first, with status counts."""
    return Dashboard(
        variant=DashboardVariant.STUDENT,
        complaints=sort_complaints(views, SortKey.NEWEST),
        status_counts=count_by_status(views),
    )


def compose_staff(views: Sequence[ComplaintView]) -> Dashboard:
    """Assigned complaints, newest first, with status counts."""
    return Dashboard(
        variant=DashboardVariant.STAFF,
        complaints=sort_complaints(views, SortKey.NEWEST),
        status_counts=count_by_status(views),
    )


def compose_admin(
    views: Sequence[ComplaintView],
    now: datetime,
    criteria: Optional[ComplaintFilter] = None,
    sort_key: SortKey = SortKey.NEWEST,
    staff: Sequence[StaffMember] = (),
    overdue_threshold: timedelta = timedelta(days=3),
    histogram_days: int = 7,
) -> Dashboard:
    """
    Admin triage view.

    The filtered and sorted list feeds the unassigned/assigned partition;
    counts, histogram and overdue set always cover the full snapshot.
    """
    listed = sort_complaints(filter_complaints(views, criteria), sort_key)
    unassigned, assigned = partition_by_assignment(listed)
    return Dashboard(
        variant=DashboardVariant.ADMIN,
        complaints=listed,
        status_counts=count_by_status(views),
        unassigned=unassigned,
        assigned=assigned,
        category_counts=count_by_category(views),
        histogram=daily_histogram(views, now, histogram_days),
        overdue=overdue(views, now, overdue_threshold),
        unassigned_count=sum(1 for v in views if v.assigned_to is None),
        staff=list(staff),
    )
