"""Compatibility table between app types, targets and assignment intents.

Microsoft Graph rejects some intent/target combinations outright (for
example ``availableWithoutEnrollment`` on a device group). Validating up
front lets the planner substitute or report instead of submitting a
request that is guaranteed to fail.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from intune_reconciler.data.models import (
    AppCategory,
    AssignmentIntent,
    AssignmentTargetKind,
)
from intune_reconciler.utils import get_logger


logger = get_logger(__name__)

CANONICAL_INTENT_ORDER: tuple[AssignmentIntent, ...] = tuple(AssignmentIntent)

_AWE_CATEGORIES = frozenset(
    {AppCategory.WEB, AppCategory.WINDOWS_WEB, AppCategory.IOS_STORE}
)
_AWE_TARGETS = frozenset(
    {AssignmentTargetKind.ALL_USERS, AssignmentTargetKind.ALL_LICENSED_USERS}
)
_NO_UNINSTALL_CATEGORIES = _AWE_CATEGORIES


class NoValidIntentError(ValueError):
    """Raised when no intent is valid for an app type and target."""

    def __init__(
        self,
        categories: Sequence[AppCategory],
        kind: AssignmentTargetKind,
    ) -> None:
        self.categories = tuple(categories)
        self.kind = kind
        names = ", ".join(category.value for category in self.categories) or "none"
        super().__init__(
            f"No valid assignment intent for app type(s) {names} targeting {kind.display_name}"
        )


@dataclass(frozen=True, slots=True)
class IntentResolution:
    intent: AssignmentIntent
    substituted: bool = False


def is_valid(
    intent: AssignmentIntent,
    category: AppCategory,
    kind: AssignmentTargetKind,
) -> bool:
    match intent:
        case AssignmentIntent.REQUIRED:
            return True
        case AssignmentIntent.AVAILABLE:
            if kind is AssignmentTargetKind.ALL_DEVICES:
                return category.is_vpp
            return True
        case AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT:
            return category in _AWE_CATEGORIES and kind in _AWE_TARGETS
        case AssignmentIntent.UNINSTALL:
            return category not in _NO_UNINSTALL_CATEGORIES
    return False


def valid_intents(
    category: AppCategory,
    kind: AssignmentTargetKind,
) -> list[AssignmentIntent]:
    """Intents allowed for the pair, in canonical order."""

    return [intent for intent in CANONICAL_INTENT_ORDER if is_valid(intent, category, kind)]


def valid_intents_for_categories(
    categories: Iterable[AppCategory],
    kind: AssignmentTargetKind,
) -> list[AssignmentIntent]:
    """Intents allowed for every category at once (ordered intersection)."""

    unique = list(dict.fromkeys(categories))
    if not unique:
        return []
    return [
        intent
        for intent in CANONICAL_INTENT_ORDER
        if all(is_valid(intent, category, kind) for category in unique)
    ]


def suggest(
    category: AppCategory,
    kind: AssignmentTargetKind,
    preferred: AssignmentIntent,
) -> AssignmentIntent:
    return suggest_for_categories([category], kind, preferred)


def suggest_for_categories(
    categories: Iterable[AppCategory],
    kind: AssignmentTargetKind,
    preferred: AssignmentIntent,
) -> AssignmentIntent:
    """Return ``preferred`` when valid, otherwise the first valid intent.

    Raises :class:`NoValidIntentError` when nothing is valid.
    """

    unique = list(dict.fromkeys(categories))
    allowed = valid_intents_for_categories(unique, kind)
    if preferred in allowed:
        return preferred
    if allowed:
        return allowed[0]
    raise NoValidIntentError(unique, kind)


def resolve_intent(
    categories: Iterable[AppCategory],
    kind: AssignmentTargetKind,
    preferred: AssignmentIntent,
    *,
    context: str | None = None,
) -> IntentResolution:
    unique = list(dict.fromkeys(categories))
    intent = suggest_for_categories(unique, kind, preferred)
    if intent is preferred:
        return IntentResolution(intent=intent)
    logger.warning(
        "Substituted assignment intent",
        requested=preferred.value,
        resolved=intent.value,
        target_kind=kind.value,
        categories=[category.value for category in unique],
        context=context,
    )
    return IntentResolution(intent=intent, substituted=True)


def validation_message(
    intent: AssignmentIntent,
    category: AppCategory,
    kind: AssignmentTargetKind,
) -> str | None:
    """Human explanation of why ``intent`` is invalid, or ``None`` if it is valid."""

    if is_valid(intent, category, kind):
        return None
    match intent:
        case AssignmentIntent.AVAILABLE:
            return (
                "'Available' assignments to All Devices are only supported for "
                "VPP apps. Use 'Required' or target a group instead."
            )
        case AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT:
            if category not in _AWE_CATEGORIES:
                return (
                    "'Available without enrollment' is only supported for web apps "
                    "and iOS store apps."
                )
            return (
                "'Available without enrollment' can only target users "
                f"(All Users or All Licensed Users), not {kind.display_name}."
            )
        case AssignmentIntent.UNINSTALL:
            return f"'Uninstall' is not supported for {category.value} apps."
    return f"'{intent.display_name}' is not supported for this target."


def suggested_intents(
    category: AppCategory,
    kind: AssignmentTargetKind,
    preferred: AssignmentIntent | None = None,
) -> list[AssignmentIntent]:
    """Valid intents ordered for presentation.

    The preferred intent comes first when valid; otherwise its closest
    valid alternative (``availableWithoutEnrollment`` falls back to
    ``available``, ``available`` falls back to ``required``) is promoted.
    """

    allowed = valid_intents(category, kind)
    if preferred is None:
        return allowed

    lead: AssignmentIntent | None = None
    if preferred in allowed:
        lead = preferred
    else:
        fallback = {
            AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT: AssignmentIntent.AVAILABLE,
            AssignmentIntent.AVAILABLE: AssignmentIntent.REQUIRED,
        }.get(preferred)
        if fallback in allowed:
            lead = fallback
    if lead is None:
        return allowed
    return [lead, *(intent for intent in allowed if intent is not lead)]


__all__ = [
    "CANONICAL_INTENT_ORDER",
    "IntentResolution",
    "NoValidIntentError",
    "is_valid",
    "resolve_intent",
    "suggest",
    "suggest_for_categories",
    "suggested_intents",
    "valid_intents",
    "valid_intents_for_categories",
    "validation_message",
]
