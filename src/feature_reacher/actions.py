"""Recommended actions for diagnoses."""
from dataclasses import dataclass, asdict, replace
from typing import Dict, Iterable, List, Tuple

from .models import Diagnosis


PRIORITIES = ("urgent", "high", "medium", "low")
PRIORITY_ORDER = {p: i for i, p in enumerate(PRIORITIES)}

# Priority shifts applied for critical and low severity diagnoses.
_RAISE = {"medium": "high", "low": "medium"}
_LOWER = {"urgent": "high", "high": "medium"}


@dataclass(frozen=True)
class RecommendedAction:
    title: str
    description: str
    priority: str
    category: str
    effort: str

    def to_dict(self) -> dict:
        return asdict(self)


_ADD_TO_DOCS_LANDING = RecommendedAction(
    "Add to documentation landing page",
    "Feature this prominently in the docs homepage or feature index. Don't bury it in a subpage.",
    "high", "documentation", "minimal",
)

ACTION_TEMPLATES: Dict[str, Tuple[RecommendedAction, ...]] = {
    "dormant_but_documented": (
        RecommendedAction(
            "Add to onboarding flow",
            "Include this feature in the getting-started guide or new user onboarding sequence. "
            "Users who don't discover features during onboarding rarely find them later.",
            "high", "onboarding", "moderate",
        ),
        RecommendedAction(
            "Create feature spotlight",
            "Write a dedicated blog post or changelog entry highlighting this feature's value. "
            "Re-introduce it to existing users who may have missed it.",
            "medium", "communication", "moderate",
        ),
        RecommendedAction(
            "Add contextual discovery",
            "Surface this feature at the moment users would benefit from it. Use tooltips, "
            "inline suggestions, or smart recommendations.",
            "high", "ui", "significant",
        ),
    ),
    "likely_invisible": (
        RecommendedAction(
            "Improve feature discoverability",
            "Add this feature to the navigation, command palette, or feature discovery surfaces. "
            "Users can't use what they can't find.",
            "urgent", "ui", "moderate",
        ),
        _ADD_TO_DOCS_LANDING,
        RecommendedAction(
            "Create tutorial or walkthrough",
            "Build an interactive tutorial that guides users through using this feature. "
            "Learning by doing increases retention.",
            "medium", "onboarding", "significant",
        ),
    ),
    "over_referenced_but_stale": (
        RecommendedAction(
            "Audit for relevance",
            "Review whether this feature is still valuable to users. If yes, update documentation. "
            "If no, consider deprecation.",
            "high", "product", "moderate",
        ),
        RecommendedAction(
            "Update release notes",
            "If the feature was recently improved, announce it. Users may have written it off "
            "based on outdated information.",
            "medium", "communication", "minimal",
        ),
        RecommendedAction(
            "Refresh documentation",
            "Update all references to this feature with current screenshots, examples, and best practices.",
            "medium", "documentation", "moderate",
        ),
    ),
    "deprecated_candidate": (
        RecommendedAction(
            "Evaluate for deprecation",
            "Analyze usage data (if available) to determine if this feature should be deprecated. "
            "Maintaining unused features has real costs.",
            "high", "product", "moderate",
        ),
        RecommendedAction(
            "Survey users",
            "Before removing, survey users to understand if there's a vocal minority depending on this feature.",
            "medium", "communication", "moderate",
        ),
        RecommendedAction(
            "Create migration path",
            "If deprecating, document how users can achieve the same outcome with other features or workflows.",
            "high", "documentation", "significant",
        ),
    ),
    "undiscoverable": (
        RecommendedAction(
            "Add prominent entry point",
            "Create a clear, visible way to access this feature from the main navigation or a relevant context.",
            "urgent", "ui", "moderate",
        ),
        RecommendedAction(
            "Include in search results",
            "Ensure this feature appears in in-app search, help search, and documentation search "
            "with appropriate keywords.",
            "high", "ui", "minimal",
        ),
        RecommendedAction(
            "Add to feature index",
            "Create or update a comprehensive feature index/directory that includes this feature "
            "with clear descriptions.",
            "medium", "documentation", "minimal",
        ),
        RecommendedAction(
            "Announce to users",
            "Send an email, in-app notification, or changelog entry specifically highlighting this "
            "feature's existence and value.",
            "high", "communication", "minimal",
        ),
    ),
    "moderate_risk": (
        RecommendedAction(
            "Review score breakdown",
            "Check which recency, visibility or documentation factors are weakest and address that gap first.",
            "medium", "product", "minimal",
        ),
        _ADD_TO_DOCS_LANDING,
    ),
    "healthy": (
        RecommendedAction(
            "Maintain current visibility",
            "This feature appears well-surfaced. Continue monitoring for any changes in "
            "documentation or user flows.",
            "low", "documentation", "minimal",
        ),
    ),
}


def get_actions_for_diagnosis(diagnosis_type: str, severity: str) -> List[RecommendedAction]:
    """Templates for a diagnosis type, with priorities shifted by severity.

    Critical diagnoses raise medium/low priorities one step; low severity
    lowers urgent/high one step.
    """
    actions = ACTION_TEMPLATES.get(diagnosis_type, ())
    if severity == "critical":
        return [replace(a, priority=_RAISE.get(a.priority, a.priority)) for a in actions]
    if severity == "low":
        return [replace(a, priority=_LOWER.get(a.priority, a.priority)) for a in actions]
    return list(actions)


def get_top_actions(diagnoses: Iterable[Diagnosis], limit: int = 5) -> List[RecommendedAction]:
    """Deduplicated actions across diagnoses, most urgent first."""
    unique: Dict[str, RecommendedAction] = {}
    for diagnosis in diagnoses:
        for action in get_actions_for_diagnosis(diagnosis.type, diagnosis.severity):
            existing = unique.get(action.title)
            if existing is None or PRIORITY_ORDER[action.priority] < PRIORITY_ORDER[existing.priority]:
                unique[action.title] = action

    ordered = sorted(unique.values(), key=lambda a: PRIORITY_ORDER[a.priority])
    return ordered[:limit]


def format_action_as_text(action: RecommendedAction) -> str:
    return f"[{action.priority.upper()}] {action.title}\n{action.description}"


def format_actions_as_text(actions: Iterable[RecommendedAction]) -> str:
    return "\n\n".join(f"{i}. {format_action_as_text(a)}" for i, a in enumerate(actions, 1))
