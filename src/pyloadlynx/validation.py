"""Validation engine: aggregate issues over one or more curves without raising."""

import logging
from typing import Any, Iterable, Mapping, Sequence

from .normalize import normalize_curve
from .profile import CalibrationProfile
from .types import DEFAULT_MAX_POINTS, CurveKind, ValidationIssue

logger = logging.getLogger(__name__)


def validate_curve(
    kind: CurveKind | str,
    points: Sequence[Any],
    max_points: int = DEFAULT_MAX_POINTS,
) -> list[ValidationIssue]:
    """Issues for one curve, exactly as Apply/Commit would report them."""
    return list(normalize_curve(kind, points, max_points).issues)


def validate_curves(
    curves: Mapping[CurveKind | str, Sequence[Any]],
    max_points: int = DEFAULT_MAX_POINTS,
    *,
    skip_empty: bool = False,
) -> list[ValidationIssue]:
    """
    Flat issue list over several curves, in curve order.

    With ``skip_empty`` an empty curve is not an issue; that is how a Draft is
    pre-flighted, since an empty draft curve simply means "not captured yet".
    """
    issues: list[ValidationIssue] = []
    by_kind = {CurveKind(k): v for k, v in curves.items()}
    for kind in CurveKind:
        if kind not in by_kind:
            continue
        points = by_kind[kind]
        if skip_empty and not points:
            continue
        issues.extend(validate_curve(kind, points, max_points))
    logger.debug("validated %d curve(s): %d issue(s)", len(by_kind), len(issues))
    return issues


def validate_profile(profile: CalibrationProfile, max_points: int = DEFAULT_MAX_POINTS) -> list[ValidationIssue]:
    """At-rest check: all four curves must be non-empty, in range and monotonic."""
    return validate_curves(dict(profile.curves()), max_points)


def issues_to_dicts(issues: Iterable[ValidationIssue]) -> list[dict[str, str]]:
    return [{"path": i.path, "message": i.message} for i in issues]


def format_issues(issues: Iterable[ValidationIssue]) -> str:
    return "\n".join(str(i) for i in issues)
