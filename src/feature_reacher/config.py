"""Configuration loading and the scoring configuration record."""
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import yaml

from .utils import setup_logging


logger = setup_logging(__name__)

CONFIG_ENV_VAR = "FR_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "config.yaml"


@dataclass(frozen=True)
class ScoringConfig:
    """Tunable inputs of the scorer.

    Defaults: a feature goes stale after 180 days; adoption risk weights
    recency 0.4, visibility 0.35 and documentation density 0.25.
    """

    stale_days: int = 180
    recency_weight: float = 0.4
    visibility_weight: float = 0.35
    density_weight: float = 0.25

    def __post_init__(self):
        if self.stale_days <= 0:
            raise ValueError(f"stale_days must be positive, got {self.stale_days}")
        for name in ("recency_weight", "visibility_weight", "density_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
        total = self.recency_weight + self.visibility_weight + self.density_weight
        if total > 1.0 + 1e-9:
            raise ValueError(f"adoption risk weights must sum to at most 1, got {total:g}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ScoringConfig':
        """Build a config from a mapping; missing keys fall back to the defaults."""
        data = data or {}
        defaults = cls()
        return cls(
            stale_days=int(data.get("stale_days", defaults.stale_days)),
            recency_weight=float(data.get("recency_weight", defaults.recency_weight)),
            visibility_weight=float(data.get("visibility_weight", defaults.visibility_weight)),
            density_weight=float(data.get("density_weight", defaults.density_weight)),
        )


DEFAULT_SCORING_CONFIG = ScoringConfig()


def resolve_config_path(config_path: Optional[str] = None) -> str:
    return config_path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML configuration file.

    Args:
        config_path: Path to the file (default: $FR_CONFIG_PATH or config.yaml)

    Returns:
        Parsed configuration mapping

    Raises:
        FileNotFoundError: The file does not exist
        RuntimeError: The file cannot be read or is not valid YAML
    """
    path = resolve_config_path(config_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        logger.error("Configuration file not found: %s", path)
        raise FileNotFoundError(f"Configuration file not found: {path}") from exc
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load configuration from %s: %s", path, exc)
        raise RuntimeError(f"Failed to load configuration from {path}") from exc

    if not isinstance(config, dict):
        raise RuntimeError(f"Configuration in {path} must be a mapping")
    return config


def scoring_config_from(config: Optional[Dict[str, Any]]) -> ScoringConfig:
    """Extract the ``scoring`` section of a loaded configuration."""
    section = (config or {}).get("scoring") or {}
    if not isinstance(section, dict):
        logger.warning("Ignoring malformed scoring section; using defaults")
        return DEFAULT_SCORING_CONFIG
    return ScoringConfig.from_dict(section)
