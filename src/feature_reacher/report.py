"""Report generation for adoption risk audits, diffs and trends."""
import os
from typing import Any, Dict, List, Optional

from .actions import get_actions_for_diagnosis, get_top_actions
from .diff import AuditDiff
from .ranking import Audit, RankedFeature, generate_headline
from .trend import TrendSummary, sparkline
from .utils import safe_write_file, setup_logging, write_json


logger = setup_logging(__name__)


DEFAULT_OUTPUT_DIR = "data/reports"
DEFAULT_FORMATS = ("json", "markdown", "text")
MAX_MARKDOWN_FEATURES = 20

RULE = "═" * 60
THIN_RULE = "─" * 40


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 3] + "..."


def _pct(value: float) -> str:
    return f"{round(value * 100)}%"


def _format_feature_section(rf: RankedFeature) -> List[str]:
    lines = [f"[{rf.risk_level.upper()}] {rf.feature.name}", f"Risk Score: {_pct(rf.risk_score)}", ""]

    diagnosis = rf.primary_diagnosis
    if diagnosis:
        lines.append(f"Diagnosis: {diagnosis.title}")
        lines.append(diagnosis.explanation)
        lines.append("")

        if diagnosis.triggering_signals:
            lines.append("Why Flagged:")
            lines.extend(f"  • {signal}" for signal in diagnosis.triggering_signals)
            lines.append("")

        actions = get_actions_for_diagnosis(diagnosis.type, diagnosis.severity)[:2]
        if actions:
            lines.append("Recommended Actions:")
            for action in actions:
                lines.append(f"  [{action.priority.upper()}] {action.title}")
                lines.append(f"    {action.description}")
            lines.append("")

    if rf.evidence:
        lines.append(f"Evidence ({len(rf.evidence)} total):")
        for item in rf.evidence[:2]:
            lines.append(f"  [{item.location or item.signal_type}]")
            lines.append(f'  "{truncate(item.excerpt, 100)}"')

    lines.append(THIN_RULE)
    return lines


def generate_text_summary(audit: Audit) -> str:
    """Plain-text audit summary suitable for pasting into tickets or email."""
    summary = audit.summary
    levels = summary.by_risk_level

    lines = [RULE, "FEATURE ADOPTION RISK AUDIT", f"Audit ID: {summary.audit_id}", RULE, ""]
    lines.append("SCOPE: This audit is based on provided artifacts only")
    lines.append("       (no live usage telemetry).")
    lines.append("")
    lines.append(generate_headline(audit).upper())
    lines.append("")

    lines.append("SUMMARY")
    lines.append(THIN_RULE)
    lines.append(f"Features Analyzed: {summary.total_features}")
    lines.append(f"Artifacts Analyzed: {summary.artifacts_analyzed}")
    lines.append(f"Evidence Points: {summary.total_evidence}")
    lines.append("")
    lines.append("Risk Breakdown:")
    for level in ("critical", "high", "medium", "low"):
        lines.append(f"  {level.capitalize()}: {levels.get(level, 0)}")
    lines.append("")

    if summary.top_risk_factors:
        lines.append("Top Risk Factors:")
        lines.extend(f"  • {factor}" for factor in summary.top_risk_factors)
        lines.append("")

    at_risk = [rf for rf in audit.ranked_features if rf.risk_level != "low"]
    if at_risk:
        lines.extend([RULE, "AT-RISK FEATURES", RULE, ""])
        for rf in at_risk:
            lines.extend(_format_feature_section(rf))
            lines.append("")

    if audit.ambiguities:
        lines.append("EXTRACTION NOTES")
        lines.append(THIN_RULE)
        lines.extend(f"• {note}" for note in audit.ambiguities)
        lines.append("")

    lines.append("─" * 60)
    lines.append(f"Generated: {summary.analyzed_at}")
    lines.append("")
    lines.append("HOW TO INTERPRET THIS REPORT")
    lines.append(THIN_RULE)
    lines.append("• Risk scores combine recency, visibility, and documentation signals")
    lines.append("• Higher risk = feature is likely undiscoverable by users")
    lines.append("• Each diagnosis includes cited evidence from your artifacts")
    lines.append("• Recommended actions are suggestions; use your judgment")
    lines.append("")
    lines.append("CONFIDENCE DISCLAIMER")
    lines.append(THIN_RULE)
    lines.append("This analysis is based on text patterns in your documentation.")
    lines.append("It does not have access to actual usage analytics.")
    lines.append("Combine these insights with real user data when available.")

    return "\n".join(lines) + "\n"


def generate_markdown_report(audit: Audit) -> str:
    """Markdown audit report."""
    summary = audit.summary
    levels = summary.by_risk_level

    md = "# Feature Adoption Risk Audit\n\n"
    md += f"**Audit ID:** {summary.audit_id}  \n"
    md += f"**Analyzed:** {summary.analyzed_at}\n\n"
    md += f"> {generate_headline(audit)}\n\n"

    md += "## Summary\n\n"
    md += f"- **Features analyzed:** {summary.total_features}\n"
    md += f"- **Artifacts analyzed:** {summary.artifacts_analyzed}\n"
    md += f"- **Evidence points:** {summary.total_evidence}\n"

    md += "\n### Risk Breakdown\n\n"
    md += "| Critical | High | Medium | Low |\n"
    md += "|---|---|---|---|\n"
    md += f"| {levels.get('critical', 0)} | {levels.get('high', 0)} | {levels.get('medium', 0)} | {levels.get('low', 0)} |\n"

    if summary.top_risk_factors:
        md += "\n### Top Risk Factors\n\n"
        for factor in summary.top_risk_factors:
            md += f"- {factor}\n"

    actions = get_top_actions(d for rf in audit.ranked_features for d in rf.all_diagnoses)
    if actions:
        md += "\n### Recommended Actions\n\n"
        for action in actions:
            md += f"- **[{action.priority.upper()}] {action.title}** ({action.category}, {action.effort} effort): {action.description}\n"

    md += "\n## Ranked Features\n\n"
    if not audit.ranked_features:
        md += "_No features extracted._\n"
    for rf in audit.ranked_features[:MAX_MARKDOWN_FEATURES]:
        md += f"### {rf.rank}. {rf.feature.name} ({rf.risk_level}, {_pct(rf.risk_score)})\n\n"
        if rf.primary_diagnosis:
            md += f"**{rf.primary_diagnosis.title}** ({rf.primary_diagnosis.severity}, "
            md += f"confidence {_pct(rf.primary_diagnosis.confidence)}): {rf.primary_diagnosis.explanation}\n\n"
        for item in rf.evidence[:3]:
            md += f"- `{item.location or item.signal_type}`: {truncate(item.excerpt, 120)}\n"
        md += "\n"

    if len(audit.ranked_features) > MAX_MARKDOWN_FEATURES:
        md += f"*... and {len(audit.ranked_features) - MAX_MARKDOWN_FEATURES} more features*\n\n"

    if audit.ambiguities:
        md += "## Extraction Notes\n\n"
        for note in audit.ambiguities:
            md += f"- {note}\n"

    return md


def render_diff_markdown(diff: AuditDiff) -> str:
    s = diff.summary
    lines: List[str] = []
    lines.append("# Audit Comparison")
    lines.append("")
    lines.append(f"**Baseline:** {diff.base_audit_name} ({diff.base_audit_id}, {diff.base_created_at})")
    lines.append(f"**Compared:** {diff.compare_audit_name} ({diff.compare_audit_id}, {diff.compare_created_at})")
    lines.append("")
    lines.append(f"> {diff.headline}")
    lines.append("")

    lines.append("## Key changes")
    lines.append("")
    lines.append(f"- **New risks:** {s.new_risks}")
    lines.append(f"- **Resolved risks:** {s.resolved_risks}")
    lines.append(f"- **Features added:** {s.added_features}")
    lines.append(f"- **Features removed:** {s.removed_features}")
    lines.append(f"- **Risk increases:** {s.risk_increases}")
    lines.append(f"- **Risk decreases:** {s.risk_decreases}")
    lines.append(f"- **Diagnosis changes:** {s.diagnosis_changes}")
    lines.append(f"- **Unchanged:** {s.unchanged_features}")
    lines.append("")

    if diff.biggest_movers:
        lines.append("## Biggest movers")
        lines.append("")
        for change in diff.biggest_movers:
            lines.append(f"- {change.change_summary}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def render_trend_markdown(summary: TrendSummary) -> str:
    lines: List[str] = []
    lines.append("# Feature Risk Trends")
    lines.append("")
    if not summary.audits_analyzed:
        lines.append("_No saved audits._")
        return "\n".join(lines) + "\n"

    lines.append(f"**Audits analyzed:** {summary.audits_analyzed} ({summary.date_from} to {summary.date_to})")
    lines.append("")
    lines.append(
        f"- **Improving:** {summary.improving}  **Worsening:** {summary.worsening}  "
        f"**Stable:** {summary.stable}  **New:** {summary.new_features}"
    )
    lines.append("")
    lines.append("| Feature | Trend | Current | Direction | Diagnosis changes |")
    lines.append("|---|---|---|---|---|")
    for trend in summary.feature_trends:
        lines.append(
            f"| {trend.feature_name} | `{sparkline(trend.points)}` | {trend.current_risk_level} "
            f"| {trend.direction} | {trend.diagnosis_changes} |"
        )

    return "\n".join(lines).rstrip() + "\n"


class ReportGenerator:
    """Write audit reports in the formats listed in the configuration."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize with the ``report`` section of a loaded configuration."""
        self.report_config = (config or {}).get('report') or {}
        self.output_dir = self.report_config.get('output_dir', DEFAULT_OUTPUT_DIR)
        self.formats = self.report_config.get('formats', list(DEFAULT_FORMATS))

    def save_reports(self, audit: Audit) -> Optional[List[str]]:
        """Generate and save all configured report formats.

        Args:
            audit: Completed audit

        Returns:
            Paths written (empty when no formats are configured), or None
            when a write failed
        """
        written: List[str] = []
        base = os.path.join(self.output_dir, audit.summary.audit_id)

        if 'json' in self.formats:
            path = f"{base}.json"
            if not write_json(path, audit.to_dict(), logger):
                return None
            written.append(path)

        if 'markdown' in self.formats:
            path = f"{base}.md"
            if not safe_write_file(path, generate_markdown_report(audit), logger):
                return None
            written.append(path)

        if 'text' in self.formats:
            path = f"{base}.txt"
            if not safe_write_file(path, generate_text_summary(audit), logger):
                return None
            written.append(path)

        logger.info(f"Saved {len(written)} report(s) to {self.output_dir}")
        return written
