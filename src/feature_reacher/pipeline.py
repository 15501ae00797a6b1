"""End-to-end audit pipeline."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .config import ScoringConfig, load_config, resolve_config_path, scoring_config_from
from .diagnosis import diagnose_all_features
from .extractor import extract_features
from .ingestion import ArtifactIngestion
from .models import Artifact
from .ranking import Audit, generate_audit
from .report import ReportGenerator
from .scoring import score_all_features
from .storage import DEFAULT_AUDITS_DIR, AuditStore, PersistedAudit
from .utils import as_utc, setup_logging, utc_now


logger = setup_logging(__name__)


def run_audit(
    artifacts: Sequence[Artifact],
    config: Optional[ScoringConfig] = None,
    now: Optional[datetime] = None,
) -> Audit:
    """Extract, score, diagnose and rank features across artifacts.

    Args:
        artifacts: Ingested artifacts
        config: Scoring configuration (default: DEFAULT_SCORING_CONFIG)
        now: Analysis time; captured once here when omitted

    Returns:
        Complete Audit
    """
    now = as_utc(now) if now else utc_now()
    artifacts = list(artifacts)

    extraction = extract_features(artifacts)
    scores = score_all_features(extraction.features, extraction.evidence, artifacts, now, config)
    diagnoses = diagnose_all_features(extraction.features, scores, extraction.evidence, now.isoformat())

    return generate_audit(
        extraction.features,
        scores,
        diagnoses,
        extraction.evidence,
        len(artifacts),
        now,
        ambiguities=extraction.ambiguities,
    )


class AuditRunner:
    """Wires configuration, ingestion, the pipeline, storage and reports."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config_path = resolve_config_path(config_path)
            config = load_config(config_path)
        self.config_path = config_path
        self.config = config
        self.scoring_config = scoring_config_from(self.config)
        storage_config = self.config.get('storage') or {}
        self.store = AuditStore(storage_config.get('audits_dir', DEFAULT_AUDITS_DIR))
        self.reports = ReportGenerator(self.config)

    def run(
        self,
        artifacts: Optional[List[Artifact]] = None,
        name: Optional[str] = None,
        save: bool = True,
        write_reports: bool = True,
    ) -> Optional[PersistedAudit]:
        """Run one audit.

        Args:
            artifacts: Artifacts to audit (default: the configured sources)
            name: Display name of the persisted audit
            save: Persist the audit to the store
            write_reports: Write the configured report formats

        Returns:
            The persisted audit, or None when there was nothing to audit or
            a write failed
        """
        if artifacts is None:
            if self.config_path:
                ingestion = ArtifactIngestion(config_path=self.config_path)
            else:
                ingestion = ArtifactIngestion(config=self.config)
            ingestion.ingest_all()
            artifacts = ingestion.artifacts

        if not artifacts:
            logger.error("No artifacts to audit")
            return None

        audit = run_audit(artifacts, self.scoring_config)
        persisted = PersistedAudit.from_audit(audit, artifacts, name=name)

        if save and self.store.save_audit(persisted) is None:
            return None
        if write_reports and self.reports.save_reports(audit) is None:
            logger.error("Failed to write reports")
            return None

        return persisted
