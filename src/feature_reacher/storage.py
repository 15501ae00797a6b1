"""File-backed persistence for completed audits.

Each audit is stored as one JSON document named after its storage id under
the configured audits directory. Writes go through ``safe_write_file`` and
are atomic.
"""
import os
import uuid
from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Optional

from .models import Artifact, Feature
from .ranking import Audit, AuditSummary, RankedFeature
from .utils import read_json, setup_logging, sha256_hex, utc_now, write_json


logger = setup_logging(__name__)


DEFAULT_AUDITS_DIR = "data/audits"


def generate_storage_id() -> str:
    return uuid.uuid4().hex[:12]


def generate_content_hash(content: str) -> str:
    return sha256_hex(content)[:16]


@dataclass(frozen=True)
class SavedArtifactRef:
    """An artifact reference kept with an audit instead of its full content."""

    id: str
    name: str
    type: str
    char_count: int
    hash: str

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> 'SavedArtifactRef':
        return cls(
            id=artifact.id,
            name=artifact.name,
            type=artifact.type,
            char_count=len(artifact.raw_content),
            hash=generate_content_hash(artifact.raw_content),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'SavedArtifactRef':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class PersistedAudit:
    id: str
    audit_id: str
    name: str
    created_at: str
    updated_at: str
    artifact_refs: List[SavedArtifactRef] = field(default_factory=list)
    features: List[Feature] = field(default_factory=list)
    ranked_features: List[RankedFeature] = field(default_factory=list)
    summary: Optional[AuditSummary] = None
    ambiguities: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_audit(
        cls,
        audit: Audit,
        artifacts: Iterable[Artifact],
        name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        notes: str = "",
        created_at: Optional[str] = None,
    ) -> 'PersistedAudit':
        """Wrap a finished audit with its storage identity and artifact refs."""
        created_at = created_at or audit.summary.analyzed_at or utc_now().isoformat()
        return cls(
            id=generate_storage_id(),
            audit_id=audit.summary.audit_id,
            name=name or f"Audit {created_at[:10]}",
            created_at=created_at,
            updated_at=created_at,
            artifact_refs=[SavedArtifactRef.from_artifact(a) for a in artifacts],
            features=[rf.feature for rf in audit.ranked_features],
            ranked_features=list(audit.ranked_features),
            summary=audit.summary,
            ambiguities=list(audit.ambiguities),
            tags=list(tags or []),
            notes=notes,
        )

    @property
    def audit(self) -> Audit:
        return Audit(
            summary=self.summary,
            ranked_features=list(self.ranked_features),
            ambiguities=list(self.ambiguities),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "audit_id": self.audit_id,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "artifact_refs": [a.to_dict() for a in self.artifact_refs],
            "features": [f.to_dict() for f in self.features],
            "ranked_features": [rf.to_dict() for rf in self.ranked_features],
            "summary": self.summary.to_dict() if self.summary else None,
            "ambiguities": list(self.ambiguities),
            "tags": list(self.tags),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PersistedAudit':
        summary = data.get("summary")
        return cls(
            id=data["id"],
            audit_id=data["audit_id"],
            name=data.get("name", ""),
            created_at=data["created_at"],
            updated_at=data.get("updated_at", data["created_at"]),
            artifact_refs=[SavedArtifactRef.from_dict(a) for a in data.get("artifact_refs", [])],
            features=[Feature.from_dict(f) for f in data.get("features", [])],
            ranked_features=[RankedFeature.from_dict(rf) for rf in data.get("ranked_features", [])],
            summary=AuditSummary.from_dict(summary) if summary else None,
            ambiguities=list(data.get("ambiguities", [])),
            tags=list(data.get("tags", [])),
            notes=data.get("notes", ""),
        )


@dataclass(frozen=True)
class AuditListItem:
    """Lightweight audit reference for listings."""

    id: str
    audit_id: str
    name: str
    created_at: str
    artifact_count: int
    feature_count: int
    high_risk_count: int
    critical_risk_count: int

    @classmethod
    def from_persisted(cls, audit: PersistedAudit) -> 'AuditListItem':
        levels = audit.summary.by_risk_level if audit.summary else {}
        return cls(
            id=audit.id,
            audit_id=audit.audit_id,
            name=audit.name,
            created_at=audit.created_at,
            artifact_count=len(audit.artifact_refs),
            feature_count=len(audit.ranked_features),
            high_risk_count=levels.get("high", 0),
            critical_risk_count=levels.get("critical", 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class AuditStore:
    """Save, load and list persisted audits in a directory of JSON files."""

    def __init__(self, audits_dir: str = DEFAULT_AUDITS_DIR):
        self.audits_dir = audits_dir

    def _path(self, storage_id: str) -> str:
        return os.path.join(self.audits_dir, f"{storage_id}.json")

    def save_audit(self, audit: PersistedAudit) -> Optional[str]:
        """Write an audit to disk.

        Returns:
            The storage id on success, None on failure
        """
        if not write_json(self._path(audit.id), audit.to_dict(), logger):
            logger.error(f"Failed to save audit {audit.audit_id}")
            return None
        logger.info(f"Saved audit {audit.audit_id} as {audit.id}")
        return audit.id

    def get_audit(self, storage_id: str) -> Optional[PersistedAudit]:
        path = self._path(storage_id)
        if not os.path.exists(path):
            return None
        try:
            return PersistedAudit.from_dict(read_json(path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load audit {path}: {e}")
            return None

    def load_all(self) -> List[PersistedAudit]:
        """Every readable audit, oldest first."""
        if not os.path.isdir(self.audits_dir):
            return []

        audits: List[PersistedAudit] = []
        for filename in sorted(os.listdir(self.audits_dir)):
            if not filename.endswith(".json"):
                continue
            audit = self.get_audit(filename[:-len(".json")])
            if audit is not None:
                audits.append(audit)

        audits.sort(key=lambda a: a.created_at)
        return audits

    def list_audits(self) -> List[AuditListItem]:
        """Listing entries, newest first."""
        return [AuditListItem.from_persisted(a) for a in reversed(self.load_all())]

    def find_audit(self, ref: str) -> Optional[PersistedAudit]:
        """Resolve a storage id, or the newest audit carrying an ``AUD-`` id."""
        audit = self.get_audit(ref)
        if audit is not None:
            return audit
        matches = [a for a in self.load_all() if a.audit_id == ref]
        return matches[-1] if matches else None

    def delete_audit(self, storage_id: str) -> bool:
        path = self._path(storage_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        logger.info(f"Deleted audit {storage_id}")
        return True

    def update_audit_name(self, storage_id: str, name: str) -> bool:
        audit = self.get_audit(storage_id)
        if audit is None:
            return False
        audit.name = name
        audit.updated_at = utc_now().isoformat()
        return self.save_audit(audit) is not None
