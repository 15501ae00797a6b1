"""Compare two persisted audits feature by feature.

Features are matched by normalized name, since feature ids of different
runs are not guaranteed to line up. Every feature in the union of both
audits is classified exactly once.

Typical usage:
  python -m feature_reacher.diff \
    --base data/audits/<old>.json \
    --compare data/audits/<new>.json \
    --out-json data/reports/audit_diff.json \
    --out-md data/reports/audit_diff.md
"""

from __future__ import annotations

import argparse
import re
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import RISK_LEVEL_VALUES
from .ranking import RankedFeature
from .storage import PersistedAudit
from .utils import read_json, safe_write_file, setup_logging, write_json


logger = setup_logging(__name__)


CHANGE_TYPES = (
    "added",
    "removed",
    "risk_increased",
    "risk_decreased",
    "diagnosis_changed",
    "unchanged",
)

ELEVATED_LEVELS = ("high", "critical")
BIGGEST_MOVERS_LIMIT = 5

_NAME_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class FeatureState:
    risk_level: str
    score: float
    diagnosis: str

    @staticmethod
    def from_ranked(rf: RankedFeature) -> "FeatureState":
        diagnosis = rf.primary_diagnosis.type if rf.primary_diagnosis else "healthy"
        return FeatureState(risk_level=rf.risk_level, score=rf.risk_score, diagnosis=diagnosis)

    @property
    def is_elevated(self) -> bool:
        return self.risk_level in ELEVATED_LEVELS

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FeatureDiff:
    feature_id: str
    feature_name: str
    change_type: str
    before: Optional[FeatureState]
    after: Optional[FeatureState]
    risk_delta: int
    change_summary: str

    @property
    def is_new_risk(self) -> bool:
        if self.change_type == "added":
            return self.after is not None and self.after.is_elevated
        if self.change_type == "risk_increased":
            return (
                self.after is not None and self.after.is_elevated
                and self.before is not None and not self.before.is_elevated
            )
        return False

    @property
    def is_resolved_risk(self) -> bool:
        if self.change_type == "removed":
            return self.before is not None and self.before.is_elevated
        if self.change_type == "risk_decreased":
            return (
                self.before is not None and self.before.is_elevated
                and self.after is not None and self.after.risk_level == "low"
            )
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_id": self.feature_id,
            "feature_name": self.feature_name,
            "change_type": self.change_type,
            "before": self.before.to_dict() if self.before else None,
            "after": self.after.to_dict() if self.after else None,
            "risk_delta": self.risk_delta,
            "change_summary": self.change_summary,
        }


@dataclass
class DiffSummary:
    new_risks: int = 0
    resolved_risks: int = 0
    added_features: int = 0
    removed_features: int = 0
    risk_increases: int = 0
    risk_decreases: int = 0
    diagnosis_changes: int = 0
    unchanged_features: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class AuditDiff:
    base_audit_id: str
    compare_audit_id: str
    base_audit_name: str
    compare_audit_name: str
    base_created_at: str
    compare_created_at: str
    summary: DiffSummary
    biggest_movers: List[FeatureDiff] = field(default_factory=list)
    all_changes: List[FeatureDiff] = field(default_factory=list)
    headline: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_audit_id": self.base_audit_id,
            "compare_audit_id": self.compare_audit_id,
            "base_audit_name": self.base_audit_name,
            "compare_audit_name": self.compare_audit_name,
            "base_created_at": self.base_created_at,
            "compare_created_at": self.compare_created_at,
            "summary": self.summary.to_dict(),
            "biggest_movers": [d.to_dict() for d in self.biggest_movers],
            "all_changes": [d.to_dict() for d in self.all_changes],
            "headline": self.headline,
        }


def normalize_name(name: str) -> str:
    return _NAME_RE.sub("-", name.lower().strip())


def format_diagnosis(diagnosis_type: str) -> str:
    return diagnosis_type.replace("_", " ")


def _index_by_name(ranked: List[RankedFeature]) -> Dict[str, RankedFeature]:
    out: Dict[str, RankedFeature] = {}
    for rf in ranked:
        out[normalize_name(rf.feature.name)] = rf
    return out


def compare_feature(base: Optional[RankedFeature], compare: Optional[RankedFeature]) -> FeatureDiff:
    """Classify one feature's change between two audits.

    Raises:
        RuntimeError: Both sides are missing, which callers never produce
    """
    if base is None and compare is not None:
        after = FeatureState.from_ranked(compare)
        return FeatureDiff(
            feature_id=compare.feature.id,
            feature_name=compare.feature.name,
            change_type="added",
            before=None,
            after=after,
            risk_delta=RISK_LEVEL_VALUES[after.risk_level],
            change_summary=f"New feature detected: {compare.feature.name} ({after.risk_level} risk)",
        )

    if base is not None and compare is None:
        before = FeatureState.from_ranked(base)
        return FeatureDiff(
            feature_id=base.feature.id,
            feature_name=base.feature.name,
            change_type="removed",
            before=before,
            after=None,
            risk_delta=-RISK_LEVEL_VALUES[before.risk_level],
            change_summary=f"Feature no longer detected: {base.feature.name}",
        )

    if base is not None and compare is not None:
        before = FeatureState.from_ranked(base)
        after = FeatureState.from_ranked(compare)
        delta = RISK_LEVEL_VALUES[after.risk_level] - RISK_LEVEL_VALUES[before.risk_level]
        name = compare.feature.name

        if delta > 0:
            change_type = "risk_increased"
            summary = f"{name}: risk increased from {before.risk_level} to {after.risk_level}"
        elif delta < 0:
            change_type = "risk_decreased"
            summary = f"{name}: risk decreased from {before.risk_level} to {after.risk_level}"
        elif before.diagnosis != after.diagnosis:
            change_type = "diagnosis_changed"
            summary = (
                f'{name}: diagnosis changed from "{format_diagnosis(before.diagnosis)}" '
                f'to "{format_diagnosis(after.diagnosis)}"'
            )
        else:
            change_type = "unchanged"
            summary = f"{name}: no significant changes"

        return FeatureDiff(
            feature_id=compare.feature.id,
            feature_name=name,
            change_type=change_type,
            before=before,
            after=after,
            risk_delta=delta,
            change_summary=summary,
        )

    raise RuntimeError("Invalid comparison state")


def _significance(diff: FeatureDiff) -> tuple:
    if diff.change_type == "added":
        group = 0
    elif diff.change_type == "removed":
        group = 1
    else:
        group = 2
    return (group, -abs(diff.risk_delta))


def summarize_changes(changes: List[FeatureDiff]) -> DiffSummary:
    summary = DiffSummary()
    for diff in changes:
        if diff.change_type == "added":
            summary.added_features += 1
        elif diff.change_type == "removed":
            summary.removed_features += 1
        elif diff.change_type == "risk_increased":
            summary.risk_increases += 1
        elif diff.change_type == "risk_decreased":
            summary.risk_decreases += 1
        elif diff.change_type == "diagnosis_changed":
            summary.diagnosis_changes += 1
        else:
            summary.unchanged_features += 1

        if diff.is_new_risk:
            summary.new_risks += 1
        if diff.is_resolved_risk:
            summary.resolved_risks += 1
    return summary


def generate_diff_headline(summary: DiffSummary) -> str:
    parts: List[str] = []
    if summary.new_risks:
        parts.append(f"{summary.new_risks} new risk{'s' if summary.new_risks != 1 else ''}")
    if summary.resolved_risks:
        parts.append(f"{summary.resolved_risks} resolved")
    if summary.added_features:
        parts.append(f"{summary.added_features} added")
    if summary.removed_features:
        parts.append(f"{summary.removed_features} removed")

    if not parts:
        if summary.diagnosis_changes:
            plural = "s" if summary.diagnosis_changes != 1 else ""
            return f"{summary.diagnosis_changes} diagnosis change{plural}, no risk level changes"
        return "No significant changes detected"

    return " • ".join(parts)


def compare_audits(base: PersistedAudit, compare: PersistedAudit) -> AuditDiff:
    """Diff two persisted audits.

    Args:
        base: The earlier (reference) audit
        compare: The later audit

    Returns:
        AuditDiff with added/removed changes first, then by risk-level movement
    """
    base_by_name = _index_by_name(base.ranked_features)
    compare_by_name = _index_by_name(compare.ranked_features)

    names = list(base_by_name)
    names.extend(n for n in compare_by_name if n not in base_by_name)

    changes = [compare_feature(base_by_name.get(n), compare_by_name.get(n)) for n in names]
    changes.sort(key=_significance)

    summary = summarize_changes(changes)
    logger.debug(
        "Diff %s -> %s: %d change(s), %d new risk(s)",
        base.audit_id, compare.audit_id, len(changes), summary.new_risks,
    )

    return AuditDiff(
        base_audit_id=base.audit_id,
        compare_audit_id=compare.audit_id,
        base_audit_name=base.name,
        compare_audit_name=compare.name,
        base_created_at=base.created_at,
        compare_created_at=compare.created_at,
        summary=summary,
        biggest_movers=[d for d in changes if d.change_type != "unchanged"][:BIGGEST_MOVERS_LIMIT],
        all_changes=changes,
        headline=generate_diff_headline(summary),
    )


def get_new_risks(diff: AuditDiff) -> List[FeatureDiff]:
    return [d for d in diff.all_changes if d.is_new_risk]


def get_resolved_risks(diff: AuditDiff) -> List[FeatureDiff]:
    return [d for d in diff.all_changes if d.is_resolved_risk]


def main(argv: Optional[List[str]] = None) -> int:
    from .report import render_diff_markdown

    parser = argparse.ArgumentParser(description="Compare two persisted audits")
    parser.add_argument("--base", required=True, help="Path to the earlier persisted audit JSON")
    parser.add_argument("--compare", required=True, help="Path to the later persisted audit JSON")
    parser.add_argument("--out-json", default="data/reports/audit_diff.json", help="Output JSON path")
    parser.add_argument("--out-md", default="data/reports/audit_diff.md", help="Output Markdown path")
    args = parser.parse_args(argv)

    for path in (args.base, args.compare):
        if not Path(path).exists():
            logger.error(f"Persisted audit not found: {path}")
            return 2

    try:
        base = PersistedAudit.from_dict(read_json(args.base))
        compare = PersistedAudit.from_dict(read_json(args.compare))
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Failed to read persisted audits: {e}", exc_info=True)
        return 1

    diff = compare_audits(base, compare)

    ok = write_json(args.out_json, diff.to_dict(), logger)
    ok = safe_write_file(args.out_md, render_diff_markdown(diff), logger) and ok
    if not ok:
        return 1

    print(diff.headline)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
