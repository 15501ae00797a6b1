"""Feature adoption risk auditing package."""

__version__ = "1.0.0"

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .diff import compare_audits
from .ingestion import IngestionError, ingest_file, ingest_text
from .models import Artifact, Diagnosis, Evidence, Feature
from .pipeline import AuditRunner, run_audit
from .ranking import Audit
from .trend import generate_trend_data
from .utils import setup_logging

__all__ = [
    'Artifact',
    'Audit',
    'AuditRunner',
    'DEFAULT_SCORING_CONFIG',
    'Diagnosis',
    'Evidence',
    'Feature',
    'IngestionError',
    'ScoringConfig',
    'compare_audits',
    'generate_trend_data',
    'ingest_file',
    'ingest_text',
    'run_audit',
    'setup_logging',
]
