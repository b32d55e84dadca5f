"""
Role-scope resolution tests.

    student → OWN (own student id)
    advisor → ADVISEES (ids of students they advise)
    admin   → ALL
    anything else, or a role without its profile → AccessDeniedError
"""

import pytest

from app.core.exceptions import AccessDeniedError
from app.services.principal import Principal, RoleKind, role_kind_for
from app.services.scope_resolver import ScopeKind, ensure_student_in_scope, resolve_scope


class TestRoleKind:

    @pytest.mark.parametrize("name, kind", [
        ("student", RoleKind.STUDENT),
        ("Mahasiswa", RoleKind.STUDENT),
        ("advisor", RoleKind.ADVISOR),
        ("Lecturer", RoleKind.ADVISOR),
        ("Dosen Wali", RoleKind.ADVISOR),
        ("ADMIN", RoleKind.ADMIN),
        ("auditor", RoleKind.UNKNOWN),
        ("", RoleKind.UNKNOWN),
        (None, RoleKind.UNKNOWN),
    ])
    def test_role_names_map_to_kinds(self, name, kind):
        assert role_kind_for(name) is kind

    def test_admin_has_every_permission(self):
        admin = Principal(user_id="u1", role_name="admin")
        assert admin.has_permission("achievement:verify")
        assert admin.has_permission("anything:at-all")

    def test_non_admin_needs_explicit_permission(self):
        student = Principal(user_id="u2", role_name="student", permissions=frozenset({"achievement:read"}))
        assert student.has_permission("achievement:read")
        assert not student.has_permission("achievement:verify")


class TestResolveScope:

    def test_student_sees_only_self(self, services, cast):
        scope = resolve_scope(cast.p_alice, services.directory)
        assert scope.kind is ScopeKind.OWN
        assert scope.student_ids == (cast.alice.id,)
        assert scope.allows(cast.alice.id)
        assert not scope.allows(cast.bob.id)

    def test_advisor_sees_advisees(self, services, cast):
        scope = resolve_scope(cast.p_advisor_a, services.directory)
        assert scope.kind is ScopeKind.ADVISEES
        assert scope.lecturer_id == cast.advisor_a.id
        assert set(scope.student_ids) == {cast.alice.id, cast.bob.id}
        assert not scope.allows(cast.carol.id)
        assert not scope.allows(cast.dave.id)

    def test_advisor_without_advisees_sees_nothing(self, services, make_lecturer, principal_for):
        lonely = make_lecturer("lonely")
        scope = resolve_scope(principal_for(lonely), services.directory)
        assert scope.kind is ScopeKind.ADVISEES
        assert scope.student_ids == ()

    def test_admin_sees_all(self, services, cast):
        scope = resolve_scope(cast.p_admin, services.directory)
        assert scope.kind is ScopeKind.ALL
        assert scope.is_global
        assert scope.allows(cast.dave.id)

    def test_unknown_role_denied(self, services, cast):
        stranger = Principal(user_id=cast.admin.id, role_name="auditor")
        with pytest.raises(AccessDeniedError):
            resolve_scope(stranger, services.directory)

    def test_student_role_without_profile_denied(self, services, make_user, principal_for):
        user = make_user("student", "no_profile")
        with pytest.raises(AccessDeniedError):
            resolve_scope(principal_for(user), services.directory)

    def test_advisor_role_without_profile_denied(self, services, make_user, principal_for):
        user = make_user("advisor", "no_lecturer_row")
        with pytest.raises(AccessDeniedError):
            resolve_scope(principal_for(user), services.directory)


class TestEnsureStudentInScope:

    def test_advisor_blocked_from_foreign_student(self, services, cast):
        with pytest.raises(AccessDeniedError):
            ensure_student_in_scope(cast.p_advisor_b, services.directory, cast.alice.id)

    def test_student_blocked_from_peer(self, services, cast):
        with pytest.raises(AccessDeniedError):
            ensure_student_in_scope(cast.p_bob, services.directory, cast.alice.id)

    @pytest.mark.parametrize("principal_attr", ["p_alice", "p_advisor_a", "p_admin"])
    def test_allowed_viewers(self, services, cast, principal_attr):
        scope = ensure_student_in_scope(getattr(cast, principal_attr), services.directory, cast.alice.id)
        assert scope.allows(cast.alice.id)


class TestListingContainment:
    """Every listed achievement belongs to a student in the caller's scope."""

    def test_listing_never_escapes_scope(self, services, cast):
        lifecycle = services.lifecycle
        for student, principal in (
            (cast.alice, cast.p_alice), (cast.bob, cast.p_bob),
            (cast.carol, cast.p_carol), (cast.dave, cast.p_dave),
        ):
            lifecycle.create(principal, {"title": f"Award for {student.student_number}"})

        expected = {
            "p_alice": {cast.alice.id},
            "p_bob": {cast.bob.id},
            "p_advisor_a": {cast.alice.id, cast.bob.id},
            "p_advisor_b": {cast.carol.id},
            "p_admin": {cast.alice.id, cast.bob.id, cast.carol.id, cast.dave.id},
        }
        for attr, students in expected.items():
            page = lifecycle.list_for_principal(getattr(cast, attr), limit=100)
            assert {ref.student_id for ref in page.items} == students
            assert page.total == len(students)

    def test_detail_outside_scope_denied(self, services, cast):
        ref = services.lifecycle.create(cast.p_carol, {"title": "Debate champion"})
        with pytest.raises(AccessDeniedError):
            services.lifecycle.get_detail(ref.id, cast.p_advisor_a)
        with pytest.raises(AccessDeniedError):
            services.lifecycle.get_history(ref.id, cast.p_alice)
        assert services.lifecycle.get_detail(ref.id, cast.p_advisor_b).reference.id == ref.id
