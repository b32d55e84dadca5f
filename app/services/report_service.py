"""
Report Service — achievement statistics per role scope.

Only verified achievements are counted. Type, period (YYYY-MM) and level
breakdowns cover achievements created in the trailing twelve months;
totals and the top-students ranking cover every verified achievement.

    STUDENT  → own stats, top list holds a single entry (themselves)
    ADVISOR  → stats over all advisees, top list capped at 10
    ADMIN    → global stats, top list capped at 10

Usage:
    stats = get_services().reports.statistics_for(principal)
"""

import logging
from collections import Counter, defaultdict

from app.services.principal import Principal
from app.services.scope_resolver import ScopeKind, ensure_student_in_scope, resolve_scope
from app.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)

TOP_STUDENTS_LIMIT = 10
UNKNOWN_LEVEL = "unknown"
OWN_PROFILE_NAME = "Own Profile"


def one_year_before(moment):
    try:
        return moment.replace(year=moment.year - 1)
    except ValueError:  # 29 February
        return moment.replace(year=moment.year - 1, day=28)


class ReportService:
    """Read-only aggregation over the reference store and content store."""

    def __init__(self, references, contents, directory, clock=utcnow):
        self.references = references
        self.contents = contents
        self.directory = directory
        self.clock = clock

    # ── Public API ────────────────────────────────────────────────────────

    def statistics_for(self, principal: Principal) -> dict:
        scope = resolve_scope(principal, self.directory)
        student_ids = None if scope.is_global else list(scope.student_ids)
        pairs = self._verified(student_ids)

        stats = self._breakdown(pairs)
        if scope.kind is ScopeKind.OWN:
            stats["top_students"] = [self._own_entry(scope.student_id, pairs)]
        else:
            stats["top_students"] = self._top_students(pairs)
        stats["total_verified"] = len(pairs)
        logger.debug("Statistics for %s (%s): %d verified", principal.user_id, scope.kind.value, len(pairs))
        return stats

    def student_statistics(self, student_id: str, principal: Principal) -> dict:
        self.directory.get_student(student_id)
        ensure_student_in_scope(principal, self.directory, student_id)
        pairs = self._verified([student_id])
        breakdown = self._breakdown(pairs)
        return {
            "student_id": student_id,
            "total_achievements": len(pairs),
            "total_points": sum(_points(doc) for _, doc in pairs),
            "per_type": breakdown["total_per_type"],
            "per_period": breakdown["total_per_period"],
            "distribution": breakdown["distribution"],
        }

    # ── Aggregation ───────────────────────────────────────────────────────

    def _verified(self, student_ids):
        references = self.references.find_verified_references(student_ids=student_ids)
        documents = self.contents.find_content_by_ids([r.content_ref for r in references])
        pairs = []
        for reference in references:
            document = documents.get(reference.content_ref)
            if document is None:
                logger.warning("Verified achievement %s has no content; skipped in report", reference.id)
                continue
            pairs.append((reference, document))
        return pairs

    def _breakdown(self, pairs) -> dict:
        cutoff = one_year_before(self.clock())
        per_type, per_period, per_level = Counter(), Counter(), Counter()
        for reference, document in pairs:
            created_at = as_utc(document.get("created_at") or reference.created_at)
            if created_at < cutoff:
                continue
            per_type[document.get("achievement_type") or "other"] += 1
            per_period[created_at.strftime("%Y-%m")] += 1
            per_level[document.get("level") or UNKNOWN_LEVEL] += 1
        return {
            "total_per_type": dict(per_type),
            "total_per_period": dict(sorted(per_period.items())),
            "distribution": dict(per_level),
        }

    def _top_students(self, pairs) -> list[dict]:
        totals = defaultdict(lambda: {"points": 0, "count": 0})
        for reference, document in pairs:
            totals[reference.student_id]["points"] += _points(document)
            totals[reference.student_id]["count"] += 1

        students = self.directory.get_students(totals.keys())
        ranking = [
            {
                "student_id": sid,
                "full_name": _full_name(students.get(sid)) or "Unknown",
                "points": data["points"],
                "count": data["count"],
            }
            for sid, data in totals.items()
        ]
        ranking.sort(key=lambda e: (-e["points"], -e["count"], e["full_name"]))
        return ranking[:TOP_STUDENTS_LIMIT]

    def _own_entry(self, student_id, pairs) -> dict:
        student = self.directory.get_students([student_id]).get(student_id)
        return {
            "student_id": student_id,
            "full_name": _full_name(student) or OWN_PROFILE_NAME,
            "points": sum(_points(doc) for _, doc in pairs),
            "count": len(pairs),
        }


def _points(document) -> int:
    points = document.get("points") or 0
    return points if isinstance(points, int) else 0


def _full_name(student):
    if student is None or student.user is None:
        return None
    return student.user.full_name
