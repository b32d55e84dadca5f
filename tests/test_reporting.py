"""
Reporting aggregator tests (frozen clock).

Fixture timeline, "now" = 2026-06-15 12:00 UTC:
    alice  competition/national  40 pts  2026-05-10  verified
    alice  academic/(no level)   10 pts  2026-06-01  verified
    alice  publication           99 pts  2026-06-02  submitted only
    bob    competition/intl      50 pts  2025-03-01  verified (outside 12 months)
    carol  organization/regional  5 pts  2026-01-20  verified
"""

from datetime import datetime, timezone

import pytest

from app.core.exceptions import AccessDeniedError, NotFoundError
from app.services.achievement_lifecycle import AchievementLifecycle
from app.services.report_service import ReportService, TOP_STUDENTS_LIMIT, one_year_before

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _lifecycle_at(services, moment):
    return AchievementLifecycle(
        services.references, services.contents, services.directory, clock=lambda: moment,
    )


def _achievement(services, owner, verifier, created, verify=True, **content):
    lifecycle = _lifecycle_at(services, created)
    ref = lifecycle.create(owner, content)
    lifecycle.submit(ref.id, owner)
    if verify:
        lifecycle.verify(ref.id, verifier)
    return ref


@pytest.fixture()
def reports(services):
    return ReportService(services.references, services.contents, services.directory, clock=lambda: NOW)


@pytest.fixture()
def timeline(services, cast):
    def at(*args):
        return datetime(*args, tzinfo=timezone.utc)

    _achievement(services, cast.p_alice, cast.p_advisor_a, at(2026, 5, 10),
                 title="Robotics", achievement_type="competition", level="national", points=40)
    _achievement(services, cast.p_alice, cast.p_advisor_a, at(2026, 6, 1),
                 title="Dean's list", achievement_type="academic", points=10)
    _achievement(services, cast.p_alice, cast.p_advisor_a, at(2026, 6, 2), verify=False,
                 title="Journal paper", achievement_type="publication", points=99)
    _achievement(services, cast.p_bob, cast.p_advisor_a, at(2025, 3, 1),
                 title="ICPC", achievement_type="competition", level="international", points=50)
    _achievement(services, cast.p_carol, cast.p_advisor_b, at(2026, 1, 20),
                 title="Student union", achievement_type="organization", level="regional", points=5)
    return cast


class TestAdminStatistics:

    def test_global_breakdowns(self, reports, timeline):
        stats = reports.statistics_for(timeline.p_admin)

        assert stats["total_per_type"] == {"competition": 1, "academic": 1, "organization": 1}
        assert stats["total_per_period"] == {"2026-01": 1, "2026-05": 1, "2026-06": 1}
        assert list(stats["total_per_period"]) == ["2026-01", "2026-05", "2026-06"]
        assert stats["distribution"] == {"national": 1, "unknown": 1, "regional": 1}
        assert stats["total_verified"] == 4

    def test_top_students_ranked_by_points_then_count(self, reports, timeline):
        top = reports.statistics_for(timeline.p_admin)["top_students"]

        assert [(e["student_id"], e["points"], e["count"]) for e in top] == [
            (timeline.alice.id, 50, 2),
            (timeline.bob.id, 50, 1),
            (timeline.carol.id, 5, 1),
        ]
        assert top[0]["full_name"] == "Alice Anders"

    def test_top_students_capped(self, services, reports, cast, make_student, principal_for):
        for i in range(TOP_STUDENTS_LIMIT + 2):
            student = make_student(f"extra_{i:02d}", cast.advisor_a)
            _achievement(services, principal_for(student), cast.p_advisor_a, NOW, title="Award", points=i)

        top = reports.statistics_for(cast.p_admin)["top_students"]
        assert len(top) == TOP_STUDENTS_LIMIT
        assert top[0]["points"] == TOP_STUDENTS_LIMIT + 1


class TestScopedStatistics:

    def test_advisor_sums_over_advisees(self, reports, timeline):
        stats = reports.statistics_for(timeline.p_advisor_a)

        assert stats["total_per_type"] == {"competition": 1, "academic": 1}
        assert stats["total_verified"] == 3
        assert [e["student_id"] for e in stats["top_students"]] == [timeline.alice.id, timeline.bob.id]

    def test_student_gets_single_self_entry(self, reports, timeline):
        stats = reports.statistics_for(timeline.p_alice)

        assert stats["top_students"] == [{
            "student_id": timeline.alice.id,
            "full_name": "Alice Anders",
            "points": 50,
            "count": 2,
        }]
        assert stats["total_per_type"] == {"competition": 1, "academic": 1}

    def test_student_without_achievements(self, reports, timeline):
        stats = reports.statistics_for(timeline.p_dave)

        assert stats["total_per_type"] == {}
        assert stats["total_per_period"] == {}
        assert stats["distribution"] == {}
        assert stats["total_verified"] == 0
        assert stats["top_students"][0]["points"] == 0
        assert stats["top_students"][0]["count"] == 0

    def test_unknown_role_denied(self, reports, timeline):
        from app.services.principal import Principal
        with pytest.raises(AccessDeniedError):
            reports.statistics_for(Principal(user_id=timeline.admin.id, role_name="guest"))


class TestStudentStatistics:

    def test_single_student_totals(self, reports, timeline):
        stats = reports.student_statistics(timeline.alice.id, timeline.p_advisor_a)

        assert stats["student_id"] == timeline.alice.id
        assert stats["total_achievements"] == 2
        assert stats["total_points"] == 50
        assert stats["per_type"] == {"competition": 1, "academic": 1}
        assert stats["per_period"] == {"2026-05": 1, "2026-06": 1}

    def test_old_achievements_count_in_totals_only(self, reports, timeline):
        stats = reports.student_statistics(timeline.bob.id, timeline.p_admin)
        assert stats["total_achievements"] == 1
        assert stats["total_points"] == 50
        assert stats["per_type"] == {}

    def test_foreign_advisor_denied(self, reports, timeline):
        with pytest.raises(AccessDeniedError):
            reports.student_statistics(timeline.bob.id, timeline.p_advisor_b)

    def test_unknown_student(self, reports, timeline):
        with pytest.raises(NotFoundError):
            reports.student_statistics("no-such-student", timeline.p_admin)


class TestWindow:

    def test_cutoff_is_inclusive(self, services, reports, cast):
        _achievement(services, cast.p_alice, cast.p_admin, one_year_before(NOW), title="Edge", points=1)
        assert reports.statistics_for(cast.p_admin)["total_per_type"] == {"other": 1}

    @pytest.mark.parametrize("moment, expected", [
        (datetime(2024, 2, 29, tzinfo=timezone.utc), datetime(2023, 2, 28, tzinfo=timezone.utc)),
        (datetime(2026, 6, 15, tzinfo=timezone.utc), datetime(2025, 6, 15, tzinfo=timezone.utc)),
    ])
    def test_one_year_before(self, moment, expected):
        assert one_year_before(moment) == expected
