"""
Profiles, role records and the admin directory.
"""
import random

import pytest

import config

from database.models import AppRole, Comment, Complaint, Profile, User, UserRoleRecord
from services.auth_service import AuthService
from services.identity_service import IdentityService
from services.complaint_service import ComplaintService
from services.comment_service import CommentService
from core.exceptions import AccessDenied, NotFound, ValidationError


def test_sign_up_creates_profile_and_student_role(db):
    user = AuthService.sign_up(db, "Asha@Campus.edu", "secret123", "  ")

    assert user.email == "asha@campus.edu"
    assert user.profile.full_name == "User"
    roles = db.query(UserRoleRecord).filter(UserRoleRecord.user_id == user.id).all()
    assert [r.role for r in roles] == [AppRole.STUDENT]
    assert AuthService.resolve_principal(db, user).role == AppRole.STUDENT


def test_sign_up_rejects_duplicates_and_weak_passwords(db):
    AuthService.sign_up(db, "asha@campus.edu", "secret123", "Asha")
    with pytest.raises(ValidationError):
        AuthService.sign_up(db, "ASHA@campus.edu", "secret456", "Asha again")
    with pytest.raises(ValidationError):
        AuthService.sign_up(db, "ben@campus.edu", "nodigits", "Ben")
    assert db.query(User).count() == 1


def test_authenticate(db):
    AuthService.sign_up(db, "asha@campus.edu", "secret123", "Asha")
    assert AuthService.authenticate_user(db, "asha@campus.edu", "wrong123") is None
    user = AuthService.authenticate_user(db, "asha@campus.edu", "secret123")
    assert user is not None and user.last_login is not None


def test_missing_role_row_resolves_to_student(db, make_user):
    admin = make_user(AppRole.ADMIN)
    db.query(UserRoleRecord).filter(UserRoleRecord.user_id == admin.id).delete()
    db.commit()
    assert AuthService.resolve_role(db, admin.id) == AppRole.STUDENT


def test_profiles_readable_by_everyone_editable_by_owner(db, make_user):
    asha = make_user(AppRole.STUDENT, "Asha")
    admin = make_user(AppRole.ADMIN, "Eve")

    assert len(IdentityService.list_profiles(db, asha)) == 2
    assert IdentityService.get_profile(db, asha, admin.id).full_name == "Eve"
    with pytest.raises(NotFound):
        IdentityService.get_profile(db, asha, "no-such-id")

    updated = IdentityService.update_profile(db, asha, asha.id, full_name="Asha K")
    assert updated.full_name == "Asha K"
    with pytest.raises(AccessDenied):
        IdentityService.update_profile(db, admin, asha.id, full_name="Hacked")


def test_role_record_visible_to_owner_and_admin_only(db, make_user):
    asha = make_user(AppRole.STUDENT)
    staff = make_user(AppRole.STAFF)
    admin = make_user(AppRole.ADMIN)

    assert IdentityService.get_role(db, asha, asha.id).role == AppRole.STUDENT
    assert IdentityService.get_role(db, admin, asha.id).role == AppRole.STUDENT
    with pytest.raises(NotFound):
        IdentityService.get_role(db, staff, asha.id)


def test_only_admin_sets_roles(db, make_user):
    asha = make_user(AppRole.STUDENT)
    staff = make_user(AppRole.STAFF)
    with pytest.raises(AccessDenied):
        IdentityService.set_role(db, staff, asha.id, AppRole.STAFF)
    with pytest.raises(AccessDenied):
        IdentityService.set_role(db, asha, asha.id, AppRole.ADMIN)
    assert AuthService.resolve_role(db, asha.id) == AppRole.STUDENT


def test_every_user_keeps_exactly_one_role_row(db, make_user):
    admin = make_user(AppRole.ADMIN)
    users = [make_user(AppRole.STUDENT) for _ in range(3)]
    rng = random.Random(7)

    for _ in range(25):
        target = rng.choice(users)
        role = rng.choice([AppRole.STUDENT, AppRole.STAFF, AppRole.ADMIN])
        IdentityService.set_role(db, admin, target.id, role)
        assert AuthService.resolve_role(db, target.id) == role

    for user in users + [admin]:
        count = db.query(UserRoleRecord).filter(UserRoleRecord.user_id == user.id).count()
        assert count == 1


def test_set_role_on_missing_user_is_denied(db, make_user):
    admin = make_user(AppRole.ADMIN)
    with pytest.raises(AccessDenied):
        IdentityService.set_role(db, admin, "no-such-id", AppRole.STAFF)


def test_directory_is_admin_only(db, make_user):
    student = make_user(AppRole.STUDENT, "Asha")
    staff = make_user(AppRole.STAFF, "Chen")
    admin = make_user(AppRole.ADMIN, "Eve")

    with pytest.raises(AccessDenied):
        IdentityService.list_users(db, student)
    with pytest.raises(AccessDenied):
        IdentityService.list_staff(db, staff)

    roles = {profile.id: role for profile, role in IdentityService.list_users(db, admin)}
    assert roles == {student.id: AppRole.STUDENT, staff.id: AppRole.STAFF, admin.id: AppRole.ADMIN}
    assert [p.id for p in IdentityService.list_staff(db, admin)] == [staff.id]


def test_delete_user_cascades_and_unassigns(db, make_user):
    student = make_user(AppRole.STUDENT, "Asha")
    staff = make_user(AppRole.STAFF, "Chen")
    admin = make_user(AppRole.ADMIN, "Eve")

    own = ComplaintService.create(db, student, "Lab PCs", "Slow", "technical")
    CommentService.add(db, student, own.id, "Still slow")
    other = ComplaintService.create(db, admin, "Parking", "No spots", "other")
    ComplaintService.assign(db, admin, other.id, staff.id)
    other_id = other.id

    IdentityService.delete_user(db, admin, student.id)
    IdentityService.delete_user(db, admin, staff.id)
    db.expire_all()

    assert db.query(Profile).filter(Profile.id == student.id).first() is None
    assert db.query(UserRoleRecord).filter(UserRoleRecord.user_id == student.id).count() == 0
    assert db.query(Complaint).filter(Complaint.student_id == student.id).count() == 0
    assert db.query(Comment).count() == 0
    assert db.query(Complaint).filter(Complaint.id == other_id).one().assigned_to is None


def test_delete_user_guards(db, make_user):
    student = make_user(AppRole.STUDENT)
    admin = make_user(AppRole.ADMIN)
    with pytest.raises(AccessDenied):
        IdentityService.delete_user(db, student, admin.id)
    with pytest.raises(ValidationError):
        IdentityService.delete_user(db, admin, admin.id)
    with pytest.raises(AccessDenied):
        IdentityService.delete_user(db, admin, "no-such-id")


def test_bootstrap_admin_promotes_existing_account(db):
    user = AuthService.sign_up(db, "eve@campus.edu", "secret123", "Eve")
    IdentityService.bootstrap_admin(db, "eve@campus.edu", "ignored1", None)
    assert AuthService.resolve_role(db, user.id) == AppRole.ADMIN
    assert db.query(UserRoleRecord).filter(UserRoleRecord.user_id == user.id).count() == 1


def test_names_are_length_bounded(db, make_user):
    asha = make_user(AppRole.STUDENT, "Asha")
    long_name = "x" * (config.NAME_MAX_LENGTH + 1)
    with pytest.raises(ValidationError):
        AuthService.sign_up(db, "ben@campus.edu", "secret123", long_name)
    with pytest.raises(ValidationError):
        IdentityService.update_profile(db, asha, asha.id, full_name=long_name)


def test_malformed_user_ids_match_nothing(db, make_user):
    admin = make_user(AppRole.ADMIN)
    assert AuthService.get_user_by_id(db, "not-a-uuid") is None
    with pytest.raises(NotFound):
        IdentityService.get_role(db, admin, "not-a-uuid")
    with pytest.raises(AccessDenied):
        IdentityService.delete_user(db, admin, "not-a-uuid")
