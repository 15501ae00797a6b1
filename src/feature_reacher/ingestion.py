"""Artifact ingestion: validation, normalization and source loading."""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import load_config
from .content_checks import check_content_quality
from .models import ARTIFACT_TYPES, Artifact
from .normalizer import detect_timestamp, extract_headings, normalize_text, parse_timestamp
from .utils import fetch_text, setup_logging, sha256_hex, utc_now


logger = setup_logging(__name__)


SHORT_CONTENT_WORDS = 20
SUPPORTED_EXTENSIONS = ("txt", "md", "markdown")


class IngestionError(ValueError):
    """Raised when content cannot be turned into an artifact."""


@dataclass
class IngestResult:
    artifact: Artifact
    warnings: List[str] = field(default_factory=list)


def generate_artifact_id(name: str, content: str) -> str:
    digest = sha256_hex(name + "\n" + content)
    return f"artifact_{digest[:12]}"


def infer_artifact_type(filename: str, content: str) -> str:
    """Guess the artifact type from its filename, then its content."""
    name = (filename or "").lower()
    text = (content or "").lower()

    if any(k in name for k in ("changelog", "release", "whatsnew")):
        return "release_notes"
    if any(k in name for k in ("faq", "help", "questions")):
        return "faq"
    if any(k in name for k in ("quickstart", "getting-started", "onboarding")):
        return "onboarding"

    if "version " in text and any(k in text for k in ("fixed", "added", "changed")):
        return "release_notes"
    if "frequently asked" in text or "q:" in text:
        return "faq"
    if any(k in text for k in ("getting started", "first steps", "quick start")):
        return "onboarding"
    if any(k in text for k in ("documentation", "api reference", "## usage")):
        return "documentation"

    return "unknown"


def validate_artifact(artifact: Artifact) -> List[str]:
    """Soft quality issues that may limit analysis of an artifact."""
    issues: List[str] = []
    if artifact.word_count < 10:
        issues.append("Content is too short for meaningful analysis")
    if not artifact.headings and artifact.word_count > 100:
        issues.append("No headings detected. Consider adding section headers for better analysis.")
    if artifact.type == "unknown":
        issues.append("Could not determine content type. Manual classification may improve results.")
    return issues


def _build_artifact(
    content: str,
    name: str,
    artifact_type: Optional[str],
    uploaded_at: Optional[str],
    empty_message: str,
    short_message: str,
) -> IngestResult:
    if not content or not content.strip():
        raise IngestionError(empty_message)

    warnings: List[str] = []
    if len(content.split()) < SHORT_CONTENT_WORDS:
        warnings.append(short_message)

    quality = check_content_quality(content)
    warnings.extend(quality.reasons)

    normalized = normalize_text(content)
    if artifact_type and artifact_type not in ARTIFACT_TYPES:
        warnings.append(f"Unknown artifact type '{artifact_type}'; inferring from content")
        artifact_type = None

    artifact = Artifact.create(
        id=generate_artifact_id(name, content),
        name=name,
        type=artifact_type or infer_artifact_type(name, normalized),
        raw_content=content,
        normalized_content=normalized,
        uploaded_at=uploaded_at or utc_now().isoformat(),
        headings=extract_headings(normalized),
        content_timestamp=parse_timestamp(detect_timestamp(normalized)),
        is_code_like=quality.should_gate_extraction,
    )

    for warning in warnings:
        logger.warning(f"{name}: {warning}")
    return IngestResult(artifact=artifact, warnings=warnings)


def ingest_text(
    content: str,
    name: Optional[str] = None,
    artifact_type: Optional[str] = None,
    uploaded_at: Optional[str] = None,
) -> IngestResult:
    """Turn pasted text into an Artifact.

    Args:
        content: Raw text
        name: Display name (default: "Pasted content")
        artifact_type: One of ARTIFACT_TYPES; inferred when omitted
        uploaded_at: ISO timestamp (default: now)

    Returns:
        IngestResult with the artifact and any soft-quality warnings

    Raises:
        IngestionError: The content is empty or whitespace only
    """
    return _build_artifact(
        content,
        name or "Pasted content",
        artifact_type,
        uploaded_at,
        "Content cannot be empty",
        "Content is very short. Analysis may be limited.",
    )


def ingest_file(
    content: str,
    filename: str,
    artifact_type: Optional[str] = None,
    uploaded_at: Optional[str] = None,
) -> IngestResult:
    """Turn the content of an uploaded file into an Artifact.

    Same as ``ingest_text`` plus a warning for unsupported extensions.
    """
    result = _build_artifact(
        content,
        filename,
        artifact_type,
        uploaded_at,
        "File content cannot be empty",
        "File content is very short. Analysis may be limited.",
    )

    _, ext = os.path.splitext(filename)
    ext = ext.lstrip(".").lower()
    if ext and ext not in SUPPORTED_EXTENSIONS:
        warning = f"File type .{ext} may not be fully supported. Best results with .txt or .md files."
        logger.warning(f"{filename}: {warning}")
        result.warnings.insert(0, warning)

    return result


class ArtifactIngestion:
    """Loads the artifacts listed under ``sources`` in the configuration."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        """Initialize with configuration.

        Relative source paths resolve against the configuration file's
        directory, or the working directory when a mapping is passed.
        """
        if config is None:
            config = load_config(config_path)
            self.base_dir = os.path.dirname(os.path.abspath(config_path)) if config_path else os.getcwd()
        else:
            self.base_dir = os.getcwd()

        self.config = config
        self.sources = config.get('sources') or []
        self.results: List[IngestResult] = []

    def load_source(self, source: Dict[str, Any]) -> Optional[IngestResult]:
        """Ingest one configured source.

        Returns:
            IngestResult, or None when the source cannot be read or is empty
        """
        artifact_type = source.get('type')

        if source.get('path'):
            path = source['path']
            if not os.path.isabs(path):
                path = os.path.join(self.base_dir, path)
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    content = f.read()
            except OSError as e:
                logger.error(f"Failed to read source {path}: {e}")
                return None
            name = source.get('name') or os.path.basename(path)
            try:
                return ingest_file(content, name, artifact_type)
            except IngestionError as e:
                logger.error(f"Skipping {path}: {e}")
                return None

        if source.get('url'):
            url = source['url']
            content = fetch_text(url, logger=logger, timeout=int(source.get('timeout', 30)))
            if content is None:
                return None
            try:
                return ingest_text(content, source.get('name') or url, artifact_type)
            except IngestionError as e:
                logger.error(f"Skipping {url}: {e}")
                return None

        logger.error(f"Source entry has neither 'path' nor 'url': {source}")
        return None

    def ingest_all(self) -> List[IngestResult]:
        """Ingest every configured source, skipping the ones that fail."""
        logger.info(f"Ingesting {len(self.sources)} configured source(s)")

        results: List[IngestResult] = []
        for source in self.sources:
            if not isinstance(source, dict):
                logger.error(f"Ignoring malformed source entry: {source!r}")
                continue
            result = self.load_source(source)
            if result is not None:
                results.append(result)

        logger.info(f"Ingested {len(results)} artifact(s)")
        self.results = results
        return results

    @property
    def artifacts(self) -> List[Artifact]:
        return [r.artifact for r in self.results]
