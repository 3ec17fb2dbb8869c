"""
Complaint lifecycle against an in-memory database.
"""
import pytest

import config

from database.models import AppRole, Comment, Complaint, ComplaintStatus
from services.complaint_service import ComplaintService
from services.comment_service import CommentService
from core.exceptions import AccessDenied, NotFound, ValidationError


@pytest.fixture
def cast(make_user):
    return {
        "student": make_user(AppRole.STUDENT, "Asha Student"),
        "other_student": make_user(AppRole.STUDENT, "Ben Student"),
        "staff": make_user(AppRole.STAFF, "Chen Staff"),
        "other_staff": make_user(AppRole.STAFF, "Dara Staff"),
        "admin": make_user(AppRole.ADMIN, "Eve Admin"),
    }


@pytest.fixture
def filed(db, cast):
    return ComplaintService.create(
        db, cast["student"], title="Wi-Fi down", description="Library floor 2", category="technical"
    )


def test_create_sets_owner_and_defaults(filed, cast):
    assert filed.student_id == cast["student"].id
    assert filed.status == ComplaintStatus.PENDING
    assert filed.assigned_to is None
    assert filed.created_at is not None


@pytest.mark.parametrize("title, description, category", [
    ("   ", "desc", "academic"),
    ("title", "", "academic"),
    ("title", "desc", "cafeteria"),
])
def test_create_rejects_invalid_input(db, cast, title, description, category):
    with pytest.raises(ValidationError):
        ComplaintService.create(db, cast["student"], title=title, description=description, category=category)
    assert db.query(Complaint).count() == 0


def test_get_hides_absent_and_invisible_rows_alike(db, cast, filed):
    with pytest.raises(NotFound) as hidden:
        ComplaintService.get(db, cast["other_student"], filed.id)
    with pytest.raises(NotFound) as missing:
        ComplaintService.get(db, cast["admin"], "no-such-id")
    assert str(hidden.value) == str(missing.value)


def test_list_visible_per_role(db, cast, filed):
    ComplaintService.create(db, cast["other_student"], "Leaking tap", "Hostel B", "infrastructure")

    assert [c.id for c in ComplaintService.list_visible(db, cast["student"])] == [filed.id]
    assert len(ComplaintService.list_visible(db, cast["staff"])) == 2
    assert len(ComplaintService.list_visible(db, cast["admin"])) == 2


def test_unassigned_staff_can_read_but_not_update(db, cast, filed):
    assert ComplaintService.get(db, cast["staff"], filed.id).id == filed.id
    with pytest.raises(AccessDenied):
        ComplaintService.update_status(db, cast["staff"], filed.id, "resolved")


def test_assign_sets_assignee_and_in_progress(db, cast, filed):
    assigned = ComplaintService.assign(db, cast["admin"], filed.id, cast["staff"].id)
    assert assigned.assigned_to == cast["staff"].id
    assert assigned.status == ComplaintStatus.IN_PROGRESS
    assert [c.id for c in ComplaintService.list_assigned(db, cast["staff"])] == [filed.id]


def test_assign_twice_is_idempotent(db, cast, filed):
    first = ComplaintService.assign(db, cast["admin"], filed.id, cast["staff"].id)
    snapshot = (first.assigned_to, first.status, first.title, first.description, first.category)
    second = ComplaintService.assign(db, cast["admin"], filed.id, cast["staff"].id)
    assert (second.assigned_to, second.status, second.title, second.description, second.category) == snapshot


def test_assign_rejects_non_staff_target(db, cast, filed):
    with pytest.raises(ValidationError):
        ComplaintService.assign(db, cast["admin"], filed.id, cast["other_student"].id)
    db.refresh(filed)
    assert filed.assigned_to is None


def test_assign_by_student_is_denied(db, cast, filed):
    with pytest.raises(AccessDenied):
        ComplaintService.assign(db, cast["student"], filed.id, cast["staff"].id)


def test_status_and_assignment_can_diverge(db, cast, filed):
    ComplaintService.assign(db, cast["admin"], filed.id, cast["staff"].id)
    updated = ComplaintService.update(
        db, cast["admin"], filed.id, {"status": "resolved", "assigned_to": None}
    )
    assert updated.status == ComplaintStatus.RESOLVED
    assert updated.assigned_to is None


def test_any_status_may_follow_any_other(db, cast, filed):
    for status in ("resolved", "pending", "in_progress", "resolved"):
        assert ComplaintService.update_status(db, cast["admin"], filed.id, status).status.value == status


def test_last_write_wins(db, cast, filed):
    ComplaintService.assign(db, cast["admin"], filed.id, cast["staff"].id)
    ComplaintService.update(db, cast["staff"], filed.id, {"title": "Wi-Fi down again"})
    ComplaintService.update(db, cast["admin"], filed.id, {"title": "Library Wi-Fi outage"})
    assert ComplaintService.get(db, cast["student"], filed.id).title == "Library Wi-Fi outage"


def test_update_refreshes_updated_at(db, cast, filed):
    before = filed.updated_at
    updated = ComplaintService.update(db, cast["admin"], filed.id, {"category": "academic"})
    assert updated.updated_at >= before


def test_update_rejects_unknown_fields_and_bad_enums(db, cast, filed):
    with pytest.raises(ValidationError):
        ComplaintService.update(db, cast["admin"], filed.id, {"student_id": cast["admin"].id})
    with pytest.raises(ValidationError):
        ComplaintService.update(db, cast["admin"], filed.id, {"status": "closed"})


def test_mutating_missing_complaint_is_access_denied(db, cast):
    with pytest.raises(AccessDenied):
        ComplaintService.update(db, cast["admin"], "no-such-id", {"status": "resolved"})
    with pytest.raises(AccessDenied):
        ComplaintService.delete(db, cast["admin"], "no-such-id")


def test_delete_is_admin_only_and_cascades_comments(db, cast, filed):
    CommentService.add(db, cast["student"], filed.id, "Any update?")

    with pytest.raises(AccessDenied):
        ComplaintService.delete(db, cast["student"], filed.id)

    ComplaintService.delete(db, cast["admin"], filed.id)
    db.expire_all()
    assert db.query(Complaint).count() == 0
    assert db.query(Comment).count() == 0


def test_overlong_text_is_rejected(db, cast, filed):
    with pytest.raises(ValidationError):
        ComplaintService.create(db, cast["student"], "x" * (config.TITLE_MAX_LENGTH + 1), "desc", "other")
    with pytest.raises(ValidationError):
        ComplaintService.update(
            db, cast["admin"], filed.id, {"description": "x" * (config.DESCRIPTION_MAX_LENGTH + 1)}
        )
    assert db.query(Complaint).count() == 1


def test_malformed_ids_behave_like_absent_rows(db, cast, filed):
    with pytest.raises(NotFound):
        ComplaintService.get(db, cast["admin"], "' OR 1=1 --")
    with pytest.raises(AccessDenied):
        ComplaintService.update_status(db, cast["admin"], "not-a-uuid", "resolved")
    with pytest.raises(ValidationError):
        ComplaintService.assign(db, cast["admin"], filed.id, "not-a-uuid")
