"""Command-line interface for feature-reacher."""

from __future__ import annotations

import argparse
import json
import os
from typing import Any, Dict, List, Optional

from .config import CONFIG_ENV_VAR, load_config, resolve_config_path
from .diff import compare_audits
from .ingestion import IngestionError, ingest_file
from .models import ARTIFACT_TYPES, Artifact
from .pipeline import AuditRunner
from .report import generate_markdown_report, generate_text_summary, render_diff_markdown, render_trend_markdown
from .trend import generate_trend_data, get_feature_trend, sparkline
from .utils import setup_logging


log = setup_logging(__name__)


def _load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load the configuration; an absent default config means an empty one.

    A path passed explicitly (flag or $FR_CONFIG_PATH) must exist.
    """
    explicit = path or os.getenv(CONFIG_ENV_VAR)
    resolved = resolve_config_path(path)
    if not explicit and not os.path.exists(resolved):
        log.info("No %s found; using built-in defaults", resolved)
        return {}
    return load_config(resolved)


def _read_artifacts(paths: List[str], artifact_type: Optional[str]) -> List[Artifact]:
    artifacts: List[Artifact] = []
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
            result = ingest_file(content, os.path.basename(path), artifact_type)
        except OSError as e:
            log.error("Failed to read %s: %s", path, e)
            continue
        except IngestionError as e:
            log.error("Skipping %s: %s", path, e)
            continue
        artifacts.append(result.artifact)
    return artifacts


def cmd_audit(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    runner = AuditRunner(config_path=args.config, config=config)
    artifacts = _read_artifacts(args.files, args.type) if args.files else None

    persisted = runner.run(
        artifacts=artifacts,
        name=args.name,
        save=not args.no_save,
        write_reports=not args.no_reports,
    )
    if persisted is None:
        return 1

    audit = persisted.audit
    if args.format == "json":
        print(json.dumps(audit.to_dict(), indent=2))
    elif args.format == "markdown":
        print(generate_markdown_report(audit))
    else:
        print(generate_text_summary(audit))

    if not args.no_save:
        log.info("Saved audit %s (storage id %s)", persisted.audit_id, persisted.id)
    return 0


def cmd_diff(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    store = AuditRunner(config=config).store
    base = store.find_audit(args.base)
    compare = store.find_audit(args.compare)
    for ref, audit in ((args.base, base), (args.compare, compare)):
        if audit is None:
            log.error("Audit not found: %s", ref)
            return 2

    diff = compare_audits(base, compare)
    if args.format == "json":
        print(json.dumps(diff.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_diff_markdown(diff))
    return 0


def cmd_trend(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    audits = AuditRunner(config=config).store.load_all()

    if args.feature:
        trend = get_feature_trend(args.feature, audits)
        if trend is None:
            log.error("No history for feature: %s", args.feature)
            return 1
        if args.format == "json":
            print(json.dumps(trend.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(f"{trend.feature_name}: {sparkline(trend.points)} {trend.direction} "
                  f"(now {trend.current_risk_level}, {trend.risk_level_changes} risk level change(s))")
        return 0

    summary = generate_trend_data(audits)
    if args.format == "json":
        print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_trend_markdown(summary))
    return 0


def cmd_list(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    items = AuditRunner(config=config).store.list_audits()
    if not items:
        print("No saved audits")
        return 0
    for item in items:
        print(f"{item.id}  {item.audit_id}  {item.created_at}  {item.name}  "
              f"features={item.feature_count} critical={item.critical_risk_count} high={item.high_risk_count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feature-reacher", description="Feature adoption risk auditing CLI")
    parser.add_argument("--config", default=None, help=f"Path to config.yaml (default: ${CONFIG_ENV_VAR} or ./config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="Run an audit over files or the configured sources")
    audit.add_argument("files", nargs="*", help="Documentation files to audit")
    audit.add_argument("--type", choices=ARTIFACT_TYPES, default=None, help="Artifact type for all files")
    audit.add_argument("--name", default=None, help="Name of the saved audit")
    audit.add_argument("--format", choices=["text", "markdown", "json"], default="text")
    audit.add_argument("--no-save", action="store_true", help="Do not persist the audit")
    audit.add_argument("--no-reports", action="store_true", help="Do not write report files")

    diff = sub.add_parser("diff", help="Compare two saved audits")
    diff.add_argument("base", help="Storage id or AUD- id of the earlier audit")
    diff.add_argument("compare", help="Storage id or AUD- id of the later audit")
    diff.add_argument("--format", choices=["markdown", "json"], default="markdown")

    trend = sub.add_parser("trend", help="Show feature risk trends across saved audits")
    trend.add_argument("--feature", default=None, help="Show a single feature's history")
    trend.add_argument("--format", choices=["markdown", "json"], default="markdown")

    sub.add_parser("list", help="List saved audits")
    return parser


COMMANDS = {
    "audit": cmd_audit,
    "diff": cmd_diff,
    "trend": cmd_trend,
    "list": cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = _load_config(args.config)
    except (FileNotFoundError, RuntimeError) as e:
        log.error("%s", e)
        return 2

    try:
        return COMMANDS[args.command](args, config)
    except Exception as e:
        log.error("Command %s failed: %s", args.command, e, exc_info=True)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
