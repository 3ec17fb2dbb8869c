"""
Pure dashboard derivations over hand-built snapshots.
"""
from datetime import datetime, timedelta

import pytest

from database.models import AppRole, Complaint, ComplaintCategory, ComplaintStatus
from services.dashboard_composer import (
    ComplaintFilter, ComplaintView, DashboardVariant, SortKey, StaffMember,
    build_view, collation_key, compose_admin, compose_staff, compose_student,
    count_by_category, count_by_status, daily_histogram, filter_complaints,
    overdue, partition_by_assignment, route_view, sort_complaints
)

NOW = datetime(2025, 3, 10, 15, 30, 0)


def view(id, created_at=NOW, title="Complaint", student_name="Asha", status=ComplaintStatus.PENDING,
         assigned_to=None, category=ComplaintCategory.OTHER):
    return ComplaintView(
        id=id,
        student_id=f"student-{student_name}",
        title=title,
        description="details",
        category=category,
        status=status,
        assigned_to=assigned_to,
        created_at=created_at,
        updated_at=created_at,
        student_name=student_name,
        assignee_name="Chen" if assigned_to else None,
    )


@pytest.mark.parametrize("role, expected", [
    (AppRole.STUDENT, DashboardVariant.STUDENT),
    (AppRole.STAFF, DashboardVariant.STAFF),
    (AppRole.ADMIN, DashboardVariant.ADMIN),
    ("admin", DashboardVariant.ADMIN),
    ("superuser", DashboardVariant.STUDENT),
    (None, DashboardVariant.STUDENT),
])
def test_route_view_is_total(role, expected):
    assert route_view(role) == expected


def test_filter_is_a_conjunction():
    views = [
        view("a", title="Broken chair", student_name="Asha", status=ComplaintStatus.PENDING),
        view("b", title="Wi-Fi", student_name="Ben Chairman", status=ComplaintStatus.RESOLVED, assigned_to="s1"),
        view("c", title="Exam clash", student_name="Cara", status=ComplaintStatus.PENDING, assigned_to="s1"),
    ]
    assert [v.id for v in filter_complaints(views, ComplaintFilter())] == ["a", "b", "c"]
    assert [v.id for v in filter_complaints(views, ComplaintFilter(search="CHAIR"))] == ["a", "b"]
    assert [v.id for v in filter_complaints(views, ComplaintFilter(search="chair", status=ComplaintStatus.PENDING))] == ["a"]
    assert [v.id for v in filter_complaints(views, ComplaintFilter(assignee="s1"))] == ["b", "c"]
    assert filter_complaints(views, ComplaintFilter(search="chair", assignee="s1", status=ComplaintStatus.PENDING)) == []


def test_sort_keys():
    views = [
        view("a", created_at=NOW - timedelta(days=2), title="banana", student_name="zoe"),
        view("b", created_at=NOW, title="Apple", student_name="Ann"),
        view("c", created_at=NOW - timedelta(days=1), title="cherry", student_name="mike"),
    ]
    assert [v.id for v in sort_complaints(views, SortKey.NEWEST)] == ["b", "c", "a"]
    assert [v.id for v in sort_complaints(views, SortKey.OLDEST)] == ["a", "c", "b"]
    assert [v.id for v in sort_complaints(views, SortKey.STUDENT)] == ["b", "c", "a"]
    assert [v.id for v in sort_complaints(views, SortKey.TITLE)] == ["b", "a", "c"]


def test_sort_is_stable():
    same_time = NOW - timedelta(hours=3)
    views = [
        view("a", created_at=NOW),
        view("b", created_at=same_time, title="same"),
        view("c", created_at=same_time, title="same"),
        view("d", created_at=same_time - timedelta(days=1)),
    ]
    newest = sort_complaints(views, SortKey.NEWEST)
    assert sort_complaints(newest, SortKey.NEWEST) == newest
    assert [v.id for v in sort_complaints(views, SortKey.TITLE)][-2:] == ["b", "c"]


def test_partition_preserves_order():
    views = [view("a"), view("b", assigned_to="s1"), view("c"), view("d", assigned_to="s2")]
    unassigned, assigned = partition_by_assignment(views)
    assert [v.id for v in unassigned] == ["a", "c"]
    assert [v.id for v in assigned] == ["b", "d"]


def test_counts_include_every_member():
    views = [
        view("a", status=ComplaintStatus.RESOLVED, category=ComplaintCategory.ACADEMIC),
        view("b", status=ComplaintStatus.RESOLVED, category=ComplaintCategory.ACADEMIC),
        view("c", status=ComplaintStatus.PENDING, category=ComplaintCategory.TECHNICAL),
    ]
    assert count_by_status(views) == {"pending": 1, "in_progress": 0, "resolved": 2}
    assert count_by_category(views) == {
        "academic": 2, "infrastructure": 0, "administrative": 0, "technical": 1, "other": 0
    }
    assert count_by_status([]) == {"pending": 0, "in_progress": 0, "resolved": 0}


def test_histogram_keeps_empty_days():
    views = [
        view("t0a", created_at=NOW.replace(hour=0, minute=5)),
        view("t0b", created_at=NOW.replace(hour=23, minute=59)),
        view("t2", created_at=NOW - timedelta(days=2)),
        view("t6", created_at=NOW - timedelta(days=6)),
        view("t7", created_at=NOW - timedelta(days=7)),
    ]
    buckets = daily_histogram(views, NOW)
    assert [b.count for b in buckets] == [1, 0, 0, 0, 1, 0, 2]
    assert buckets[0].day == (NOW - timedelta(days=6)).date()
    assert buckets[-1].day == NOW.date()
    assert buckets[-1].to_dict() == {"date": "2025-03-10", "label": "Mar 10", "count": 2}


def test_overdue_threshold():
    old = view("old", created_at=NOW - timedelta(days=4))
    fresh = view("fresh", created_at=NOW - timedelta(days=2))
    old_assigned = view("old-assigned", created_at=NOW - timedelta(days=4), assigned_to="s1")
    old_resolved = view("old-resolved", created_at=NOW - timedelta(days=4), status=ComplaintStatus.RESOLVED)

    assert [v.id for v in overdue([old, fresh, old_assigned, old_resolved], NOW)] == ["old"]


def test_student_and_staff_dashboards():
    views = [view("a", created_at=NOW - timedelta(days=1)), view("b", status=ComplaintStatus.RESOLVED)]

    student = compose_student(views)
    assert student.variant == DashboardVariant.STUDENT
    assert [v.id for v in student.complaints] == ["b", "a"]
    assert student.status_counts["resolved"] == 1
    assert "last7Days" not in student.to_dict()

    staff = compose_staff(views)
    assert staff.variant == DashboardVariant.STAFF
    assert staff.to_dict()["statusCounts"] == {"pending": 1, "in_progress": 0, "resolved": 1}


def test_admin_dashboard_filters_list_but_not_analytics():
    views = [
        view("a", created_at=NOW - timedelta(days=5), title="Old leak", student_name="Asha"),
        view("b", created_at=NOW - timedelta(hours=1), title="Projector", student_name="Ben", assigned_to="s1",
             status=ComplaintStatus.IN_PROGRESS),
        view("c", created_at=NOW - timedelta(hours=2), title="Leak again", student_name="Cara"),
    ]
    staff = [StaffMember(id="s1", full_name="Chen", email="chen@campus.edu")]

    dashboard = compose_admin(views, NOW, criteria=ComplaintFilter(search="leak"), sort_key=SortKey.OLDEST, staff=staff)

    assert [v.id for v in dashboard.complaints] == ["a", "c"]
    assert [v.id for v in dashboard.unassigned] == ["a", "c"]
    assert dashboard.assigned == []
    assert dashboard.status_counts == {"pending": 2, "in_progress": 1, "resolved": 0}
    assert dashboard.unassigned_count == 2
    assert [v.id for v in dashboard.overdue] == ["a"]
    assert sum(b.count for b in dashboard.histogram) == 3

    data = dashboard.to_dict()
    assert data["variant"] == "admin"
    assert data["staff"] == [{"id": "s1", "fullName": "Chen", "email": "chen@campus.edu"}]
    assert len(data["last7Days"]) == 7


def test_text_sorts_ignore_accents_and_case():
    views = [
        view("zoe", student_name="Zoe", title="Zebra crossing"),
        view("emile", student_name="Émile", title="Éclairage cassé"),
        view("aaron", student_name="aaron", title="Ascenseur"),
        view("emma", student_name="Emma", title="escalier"),
    ]
    assert [v.id for v in sort_complaints(views, SortKey.STUDENT)] == ["aaron", "emile", "emma", "zoe"]
    assert [v.id for v in sort_complaints(views, SortKey.TITLE)] == ["aaron", "emile", "emma", "zoe"]


def test_collation_key_groups_accented_letters_with_base_letter():
    assert collation_key("Émile")[0] == "emile"
    assert collation_key("Ñandú") < collation_key("Oscar")
    assert collation_key(None) == ("", "")


def test_owner_email_only_when_supplied():
    complaint = Complaint(
        id="c-1", student_id="s-1", title="Leak", description="Hall B",
        category=ComplaintCategory.INFRASTRUCTURE, status=ComplaintStatus.PENDING,
        assigned_to=None, created_at=NOW, updated_at=NOW,
    )
    names = {"s-1": "Asha"}
    assert build_view(complaint, names).to_dict()["studentEmail"] is None
    detail = build_view(complaint, names, {"s-1": "asha@campus.edu"}).to_dict()
    assert detail["studentEmail"] == "asha@campus.edu"
    assert detail["studentName"] == "Asha"
