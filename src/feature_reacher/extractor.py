"""Feature extraction from normalized artifacts.

Three independent strategies propose candidate mentions:

* headings: non-generic section headings of at most six words
* bullets: short leading phrases of bullet and numbered list items
* repetition: capitalized phrases that recur at least three times

Mentions are deduplicated per strategy, then folded into Feature records.
Every surviving mention produces exactly one Evidence record, so a feature
found by several strategies carries one piece of evidence per strategy.
"""
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Tuple

from .models import Artifact, Evidence, Feature
from .utils import setup_logging, sha256_hex, slugify


logger = setup_logging(__name__)


HEADING_CONFIDENCE = 0.85
BULLET_CONFIDENCE = 0.7
REPETITION_BASE_CONFIDENCE = 0.6
REPETITION_STEP = 0.05
REPETITION_MAX_CONFIDENCE = 0.8
MIN_REPETITIONS = 3
MAX_HEADING_WORDS = 6
MAX_BULLET_LENGTH = 100
MAX_PHRASE_WORDS = 4
EXCERPT_WINDOW = 30
MAX_EXCERPTS = 3
CONTEXT_WINDOW = 5

GENERIC_HEADINGS = frozenset([
    "introduction",
    "overview",
    "getting started",
    "quick start",
    "quickstart",
    "installation",
    "setup",
    "requirements",
    "prerequisites",
    "contents",
    "table of contents",
    "summary",
    "conclusion",
    "appendix",
    "references",
    "changelog",
    "release notes",
    "version history",
    "about",
    "license",
    "contributing",
    "support",
    "contact",
    "faq",
    "frequently asked questions",
    "features",
    "known issues",
    "next steps",
])

COMMON_WORDS = frozenset([
    "the", "and", "for", "with", "you", "your", "this", "that", "from",
    "have", "will", "can", "more", "new", "now", "see", "use", "using",
    "used", "also", "just", "like", "make", "made", "when", "what", "how",
    "why", "all", "any", "some", "each", "other", "here", "there", "note",
    "important", "example", "examples", "version", "please", "learn",
    "read", "check", "if", "it", "its", "we", "our", "they", "then",
    "to", "in", "on", "of", "or", "is", "are", "a", "an", "by", "at",
    "click", "open", "select", "go", "yes", "no",
])

# Legal boilerplate and code identifiers that are never features.
BOILERPLATE_PHRASES = frozenset([
    "copyright", "all rights reserved", "license", "licensed", "permission",
    "warranty", "liability", "redistribution", "disclaimer", "contributors",
    "authors", "maintainers", "software", "provided", "express", "implied",
    "damages", "holders", "copyright holders", "source code", "binary form",
    "modified", "unmodified", "third party", "third parties", "open source",
    "apache", "mit license", "gnu", "bsd", "mozilla", "creative commons",
    "inc", "llc", "corp", "ltd", "google", "microsoft", "facebook", "meta",
    "amazon", "github",
    "null", "undefined", "true", "false", "none", "string", "number",
    "boolean", "object", "array", "function", "class", "interface", "type",
    "const", "return", "export", "import", "default", "module", "require",
    "self", "def", "void",
])

# Leading changelog verbs dropped from bullet feature names.
CHANGE_VERBS = (
    "added", "adds", "add", "new", "improved", "improves", "fixed", "fixes",
    "changed", "updated", "removed", "deprecated", "introduced", "introducing",
)

_BULLET_RE = re.compile(r"^[ \t]*(?:[-*•+][ \t]+(.+)|\d+[.)][ \t]+(.+))$", re.MULTILINE)
_COPULA_RE = re.compile(r"\s(?:is|are)\s", re.IGNORECASE)
_LEADING_LABEL_RE = re.compile(r"^([^:-]+?)\s*(?:[:]|\s-|\s–)\s+(.*)$")
_CHANGE_VERB_RE = re.compile(r"^(?:%s)\b[\s:]*" % "|".join(CHANGE_VERBS), re.IGNORECASE)
_TRAILING_FEATURE_RE = re.compile(r"\s+features?$", re.IGNORECASE)
_CAPITALIZED_PHRASE_RE = re.compile(r"\b([A-Z][a-zA-Z]+(?:[ \t]+[A-Z][a-zA-Z]+)*)\b")
_CODE_CONTEXT_RE = re.compile(r"[{}()<>;\[\]=+*&|^~`]")
_ARTICLE_RE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)
_SPECIAL_CHARS_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_UPDATE_KEYWORDS_RE = re.compile(r"\b(?:new|added)\b", re.IGNORECASE)
_DEPRECATION_KEYWORDS_RE = re.compile(r"\b(?:deprecated|removed)\b", re.IGNORECASE)


@dataclass(frozen=True)
class FeatureMention:
    """A candidate feature mention proposed by one strategy."""

    name: str
    excerpt: str
    location: str
    confidence: float
    signal_type: str
    strategy: str


@dataclass
class ExtractionResult:
    features: List[Feature] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)
    ambiguities: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "features": [f.to_dict() for f in self.features],
            "evidence": [e.to_dict() for e in self.evidence],
            "ambiguities": list(self.ambiguities),
        }


def normalize_feature_name(name: str) -> str:
    """Trim, drop a leading article, collapse whitespace, strip punctuation."""
    name = _ARTICLE_RE.sub("", (name or "").strip())
    name = _WHITESPACE_RE.sub(" ", name)
    return _SPECIAL_CHARS_RE.sub("", name).strip()


def generate_feature_id(name: str) -> str:
    slug = slugify(name).strip("_")
    if not slug:
        slug = sha256_hex(name)[:12]
    return f"feature_{slug}"


def is_generic_heading(heading: str) -> bool:
    return heading.lower().strip().rstrip(":") in GENERIC_HEADINGS


def is_common_word(phrase: str) -> bool:
    return phrase.lower() in COMMON_WORDS


def is_boilerplate_phrase(phrase: str) -> bool:
    return phrase.lower() in BOILERPLATE_PHRASES


def has_word_like_context(content: str, index: int, length: int) -> bool:
    """False when the phrase is wrapped in code syntax on both sides."""
    before = content[max(0, index - CONTEXT_WINDOW):index]
    after = content[index + length:index + length + CONTEXT_WINDOW]
    return not (_CODE_CONTEXT_RE.search(before) and _CODE_CONTEXT_RE.search(after))


def infer_signal_type(artifact_type: str, text: str) -> str:
    """Infer a bullet's signal type from keywords, then from the artifact type."""
    if _UPDATE_KEYWORDS_RE.search(text):
        return "update"
    if _DEPRECATION_KEYWORDS_RE.search(text):
        return "deprecation"
    if artifact_type == "release_notes":
        return "release_note"
    if artifact_type == "faq":
        return "faq"
    if artifact_type == "onboarding":
        return "onboarding"
    return "documentation"


def _clean_bullet_name(name: str) -> str:
    stripped = _CHANGE_VERB_RE.sub("", name.strip())
    if stripped != name.strip():
        name = stripped[:1].upper() + stripped[1:]
    name = _TRAILING_FEATURE_RE.sub("", name)
    return normalize_feature_name(name.rstrip(".!?"))


def extract_feature_from_bullet(text: str) -> str:
    """Pull a short feature name out of a bullet item.

    Handles "Name: description" and "Name - description" labels, changelog
    labels such as "Added: Name", and short capitalized items.

    Returns:
        The normalized name, or "" when the bullet does not name a feature
    """
    match = _LEADING_LABEL_RE.match(text)
    if match:
        label, rest = match.group(1).strip(), match.group(2).strip()
        if label.lower() in CHANGE_VERBS:
            # "Added: New chart types" names the feature after the label
            text = rest
        elif len(label) >= 3 and len(label.split()) <= MAX_PHRASE_WORDS:
            name = _clean_bullet_name(label)
            if len(name) >= 3:
                return name

    if len(text) <= 40 and text[:1].isupper():
        name = _clean_bullet_name(text)
        if len(name) >= 3 and len(name.split()) <= MAX_PHRASE_WORDS:
            return name

    return ""


def extract_from_headings(artifact: Artifact) -> List[FeatureMention]:
    mentions: List[FeatureMention] = []

    for heading in artifact.headings:
        if is_generic_heading(heading):
            continue
        if len(heading.split()) > MAX_HEADING_WORDS:
            continue

        name = normalize_feature_name(heading)
        if not name:
            continue

        mentions.append(FeatureMention(
            name=name,
            excerpt=heading,
            location=f'Heading: "{heading}"',
            confidence=HEADING_CONFIDENCE,
            signal_type="documentation",
            strategy="heading",
        ))

    return mentions


def extract_from_bullets(artifact: Artifact) -> List[FeatureMention]:
    mentions: List[FeatureMention] = []

    for match in _BULLET_RE.finditer(artifact.normalized_content):
        bullet_text = (match.group(1) or match.group(2)).strip()

        if len(bullet_text) > MAX_BULLET_LENGTH:
            continue
        # "X is ..." describes rather than names
        if _COPULA_RE.search(f" {bullet_text} "):
            continue

        name = extract_feature_from_bullet(bullet_text)
        if not name:
            continue

        mentions.append(FeatureMention(
            name=name,
            excerpt=bullet_text,
            location=f'Bullet: "{bullet_text[:50]}"',
            confidence=BULLET_CONFIDENCE,
            signal_type=infer_signal_type(artifact.type, bullet_text),
            strategy="bullet",
        ))

    return mentions


def extract_from_repeated_phrases(artifact: Artifact) -> List[FeatureMention]:
    """Capitalized phrases mentioned three or more times.

    Disabled for code-like artifacts, where capitalized identifiers would
    flood the result.
    """
    if artifact.is_code_like:
        return []

    content = artifact.normalized_content
    counts: Dict[str, int] = {}
    spellings: Dict[str, str] = {}
    excerpts: Dict[str, List[str]] = {}

    for match in _CAPITALIZED_PHRASE_RE.finditer(content):
        phrase = match.group(1)
        if is_common_word(phrase) or is_boilerplate_phrase(phrase):
            continue
        if len(phrase) < 3 or len(phrase.split()) > MAX_PHRASE_WORDS:
            continue
        if not has_word_like_context(content, match.start(), len(phrase)):
            continue

        name = normalize_feature_name(phrase)
        if len(name) < 3 or is_common_word(name) or is_boilerplate_phrase(name):
            continue

        key = name.lower()
        counts[key] = counts.get(key, 0) + 1
        spellings.setdefault(key, name)

        windows = excerpts.setdefault(key, [])
        if len(windows) < MAX_EXCERPTS:
            start = max(0, match.start() - EXCERPT_WINDOW)
            end = min(len(content), match.end() + EXCERPT_WINDOW)
            windows.append(content[start:end].strip())

    mentions: List[FeatureMention] = []
    for key, count in counts.items():
        if count < MIN_REPETITIONS:
            continue
        mentions.append(FeatureMention(
            name=spellings[key],
            excerpt=" | ".join(excerpts[key]),
            location=f"Repeated {count} times",
            confidence=min(REPETITION_BASE_CONFIDENCE + count * REPETITION_STEP, REPETITION_MAX_CONFIDENCE),
            signal_type="documentation",
            strategy="repetition",
        ))

    return mentions


def deduplicate_mentions(mentions: Iterable[FeatureMention]) -> List[FeatureMention]:
    """Keep the highest-confidence mention per (strategy, name) pair.

    Ties keep the first mention seen.
    """
    seen: Dict[Tuple[str, str], FeatureMention] = {}
    for mention in mentions:
        key = (mention.strategy, mention.name.lower())
        existing = seen.get(key)
        if existing is None or mention.confidence > existing.confidence:
            seen[key] = mention
    return list(seen.values())


def _evidence_id(feature_id: str, artifact_id: str, mention: FeatureMention) -> str:
    digest = sha256_hex(f"{mention.location}\n{mention.excerpt}")[:8]
    return f"evidence_{feature_id}_{artifact_id}_{mention.strategy}_{digest}"


def extract_features_from_artifact(artifact: Artifact) -> ExtractionResult:
    """Extract candidate features and their evidence from one artifact."""
    mentions = (
        extract_from_headings(artifact)
        + extract_from_bullets(artifact)
        + extract_from_repeated_phrases(artifact)
    )
    deduped = deduplicate_mentions(mentions)

    ambiguities: List[str] = []
    if not deduped:
        ambiguities.append(
            f'No features extracted from "{artifact.name}". '
            "Content may be too generic or unstructured."
        )

    timestamp = artifact.effective_timestamp
    features: Dict[str, Feature] = {}
    best_confidence: Dict[str, float] = {}
    evidence: List[Evidence] = []

    for mention in deduped:
        feature_id = generate_feature_id(mention.name)
        feature = features.get(feature_id)

        if feature is None:
            features[feature_id] = Feature.create(feature_id, mention.name, artifact.id, timestamp)
            best_confidence[feature_id] = mention.confidence
        else:
            feature = feature.merge_mention(artifact.id, timestamp, alias=mention.name)
            if mention.confidence > best_confidence[feature_id] and mention.name != feature.name:
                # Highest-confidence spelling becomes canonical
                feature = _rename(feature, mention.name)
                best_confidence[feature_id] = mention.confidence
            features[feature_id] = feature

        evidence.append(Evidence(
            id=_evidence_id(feature_id, artifact.id, mention),
            artifact_id=artifact.id,
            feature_id=feature_id,
            excerpt=mention.excerpt,
            signal_type=mention.signal_type,
            timestamp=timestamp,
            location=mention.location,
            confidence=mention.confidence,
        ))

    logger.debug(
        "Extracted %d feature(s) and %d evidence record(s) from %s",
        len(features), len(evidence), artifact.name,
    )
    return ExtractionResult(
        features=list(features.values()),
        evidence=evidence,
        ambiguities=ambiguities,
    )


def _best_confidence(evidence: Iterable[Evidence]) -> Dict[str, float]:
    best: Dict[str, float] = {}
    for item in evidence:
        best[item.feature_id] = max(best.get(item.feature_id, 0.0), item.confidence)
    return best


def _rename(feature: Feature, name: str) -> Feature:
    aliases = [a for a in feature.aliases if a != name] + [feature.name]
    return replace(feature, name=name, aliases=aliases)


def merge_extraction_results(results: Iterable[ExtractionResult]) -> ExtractionResult:
    """Combine per-artifact results without losing any evidence.

    The spelling backed by the highest-confidence evidence stays canonical;
    ties keep the earlier artifact's name.
    """
    features: Dict[str, Feature] = {}
    best_confidence: Dict[str, float] = {}
    evidence: List[Evidence] = []
    ambiguities: List[str] = []

    for result in results:
        ambiguities.extend(result.ambiguities)
        evidence.extend(result.evidence)
        confidence = _best_confidence(result.evidence)
        for feature in result.features:
            incoming = confidence.get(feature.id, 0.0)
            existing = features.get(feature.id)
            if existing is None:
                features[feature.id] = feature
                best_confidence[feature.id] = incoming
                continue
            merged = existing.merge(feature)
            if incoming > best_confidence[feature.id]:
                if feature.name != merged.name:
                    merged = _rename(merged, feature.name)
                best_confidence[feature.id] = incoming
            features[feature.id] = merged

    return ExtractionResult(
        features=list(features.values()),
        evidence=evidence,
        ambiguities=ambiguities,
    )


def extract_features(artifacts: Iterable[Artifact]) -> ExtractionResult:
    """Run extraction over every artifact and merge the results."""
    artifacts = list(artifacts)
    merged = merge_extraction_results(extract_features_from_artifact(a) for a in artifacts)
    logger.info(
        "Extracted %d feature(s) with %d evidence record(s) from %d artifact(s)",
        len(merged.features), len(merged.evidence), len(artifacts),
    )
    return merged
