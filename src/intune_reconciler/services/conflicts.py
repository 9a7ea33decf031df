"""Advisory conflict detection over the projected (post-save) assignment state.

Conflicts never block a save; they are surfaced so the operator can
reconsider before committing. Detection is pure and deterministic: the
same entries always produce the same, identically ordered result.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Iterable, Sequence

from intune_reconciler.data.directories import GroupDirectory
from intune_reconciler.data.models import (
    AssignmentIntent,
    AssignmentTargetKind,
    target_identity,
)
from intune_reconciler.services.intent_validator import CANONICAL_INTENT_ORDER

if TYPE_CHECKING:  # pragma: no cover
    from intune_reconciler.services.edit_session import EditSession


class ConflictType(StrEnum):
    CONFLICTING_INTENTS = "conflictingIntents"
    LOGICAL_CONFLICT = "logicalConflict"
    EMPTY_GROUP = "emptyGroup"
    REDUNDANT_ASSIGNMENT = "redundantAssignment"


class ConflictSeverity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ConflictEntry:
    """One assignment as it will exist after the save."""

    app_id: str
    app_name: str
    target_kind: AssignmentTargetKind
    intent: AssignmentIntent
    group_id: str | None = None
    group_name: str | None = None
    is_existing: bool = True

    @property
    def identity(self) -> str:
        return target_identity(self.group_id, self.target_kind)


@dataclass(frozen=True, slots=True)
class ConflictingAssignment:
    application_id: str
    application_name: str
    intent: AssignmentIntent
    is_existing: bool


@dataclass(frozen=True, slots=True)
class AssignmentConflict:
    group_id: str
    group_name: str
    target_kind: AssignmentTargetKind
    conflict_type: ConflictType
    severity: ConflictSeverity
    assignments: tuple[ConflictingAssignment, ...]
    resolution: str

    @property
    def description(self) -> str:
        match self.conflict_type:
            case ConflictType.CONFLICTING_INTENTS:
                return f"'{self.group_name}' has both Required and Uninstall assignments"
            case ConflictType.LOGICAL_CONFLICT:
                return (
                    f"'{self.group_name}' mixes Required with Available without enrollment"
                )
            case ConflictType.EMPTY_GROUP:
                return f"'{self.group_name}' has no members"
            case ConflictType.REDUNDANT_ASSIGNMENT:
                return f"'{self.group_name}' receives both Required and Available"


_INTENT_RANK = {intent: index for index, intent in enumerate(CANONICAL_INTENT_ORDER)}


def detect_conflicts(
    entries: Iterable[ConflictEntry],
    *,
    groups: GroupDirectory | None = None,
) -> list[AssignmentConflict]:
    buckets: dict[tuple[str, AssignmentTargetKind], list[ConflictEntry]] = defaultdict(list)
    for entry in entries:
        buckets[(entry.identity, entry.target_kind)].append(entry)

    conflicts: list[AssignmentConflict] = []
    for (identity, kind), members in buckets.items():
        group_name = _group_name(identity, kind, members, groups)
        assignments = _members(members)
        app_ids = {entry.app_id for entry in members}
        intents = {entry.intent for entry in members}

        if len(app_ids) > 1 and {
            AssignmentIntent.REQUIRED,
            AssignmentIntent.UNINSTALL,
        } <= intents:
            conflicts.append(
                AssignmentConflict(
                    group_id=identity,
                    group_name=group_name,
                    target_kind=kind,
                    conflict_type=ConflictType.CONFLICTING_INTENTS,
                    severity=ConflictSeverity.ERROR,
                    assignments=assignments,
                    resolution=(
                        "Choose either Required or Uninstall for this group; "
                        "devices cannot be asked to install and remove apps at once."
                    ),
                )
            )

        if len(app_ids) > 1 and {
            AssignmentIntent.REQUIRED,
            AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
        } <= intents:
            conflicts.append(
                AssignmentConflict(
                    group_id=identity,
                    group_name=group_name,
                    target_kind=kind,
                    conflict_type=ConflictType.LOGICAL_CONFLICT,
                    severity=ConflictSeverity.ERROR,
                    assignments=assignments,
                    resolution=(
                        "Available without enrollment targets unmanaged users; "
                        "use Available or Required instead."
                    ),
                )
            )

        redundant = _redundant_members(members)
        if redundant:
            conflicts.append(
                AssignmentConflict(
                    group_id=identity,
                    group_name=group_name,
                    target_kind=kind,
                    conflict_type=ConflictType.REDUNDANT_ASSIGNMENT,
                    severity=ConflictSeverity.WARNING,
                    assignments=_members(redundant),
                    resolution=(
                        f"'Required' makes 'Available' redundant for '{redundant[0].app_name}'. "
                        "Keep only Required for this group."
                    ),
                )
            )

        if kind.requires_group_id and groups is not None:
            if groups.member_count(identity) == 0:
                conflicts.append(
                    AssignmentConflict(
                        group_id=identity,
                        group_name=group_name,
                        target_kind=kind,
                        conflict_type=ConflictType.EMPTY_GROUP,
                        severity=ConflictSeverity.WARNING,
                        assignments=assignments,
                        resolution="Add members to the group or pick a different target.",
                    )
                )

    conflicts.sort(
        key=lambda conflict: (
            conflict.group_id,
            conflict.target_kind.value,
            conflict.conflict_type.value,
        )
    )
    return conflicts


def project_session_entries(session: "EditSession") -> list[ConflictEntry]:
    """Entries describing what the session would leave behind after a save.

    Current assignments minus deletions (with edited intents applied), plus
    every pending assignment fanned out across the session's applications.
    """

    entries: list[ConflictEntry] = []
    for record in session.records:
        if session.is_marked_for_deletion(record):
            continue
        entries.append(
            ConflictEntry(
                app_id=record.app_id,
                app_name=record.app_name,
                target_kind=record.target_kind,
                intent=session.effective_intent(record),
                group_id=record.group_id,
                group_name=record.group_name,
                is_existing=True,
            )
        )
    for pending in session.pending_assignments:
        for app in session.applications:
            entries.append(
                ConflictEntry(
                    app_id=app.id,
                    app_name=app.display_name,
                    target_kind=pending.target_kind,
                    intent=pending.intent,
                    group_id=pending.group_id,
                    group_name=pending.group_name,
                    is_existing=False,
                )
            )
    return entries


def would_cause_conflict(
    new_intent: AssignmentIntent,
    existing_intents: Sequence[AssignmentIntent],
) -> tuple[bool, str | None]:
    """Quick check of one intent against what a group already receives.

    Returns ``(has_conflict, message)``; a message without a conflict is a
    redundancy warning.
    """

    existing = set(existing_intents)
    if new_intent is AssignmentIntent.REQUIRED and AssignmentIntent.UNINSTALL in existing:
        return True, "Cannot assign 'Required' when 'Uninstall' is already assigned to this group"
    if new_intent is AssignmentIntent.UNINSTALL and AssignmentIntent.REQUIRED in existing:
        return True, "Cannot assign 'Uninstall' when 'Required' is already assigned to this group"
    if (
        new_intent is AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT
        and AssignmentIntent.REQUIRED in existing
    ):
        return True, "Cannot use 'Available without enrollment' when 'Required' is already assigned"
    if (
        new_intent is AssignmentIntent.REQUIRED
        and AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT in existing
    ):
        return True, "Cannot assign 'Required' when 'Available without enrollment' is already assigned"
    if new_intent is AssignmentIntent.AVAILABLE and AssignmentIntent.REQUIRED in existing:
        return False, "'Available' is redundant when 'Required' is already assigned"
    return False, None


def _members(members: Sequence[ConflictEntry]) -> tuple[ConflictingAssignment, ...]:
    ordered = sorted(
        members,
        key=lambda entry: (
            entry.app_name,
            entry.app_id,
            _INTENT_RANK[entry.intent],
            not entry.is_existing,
        ),
    )
    return tuple(
        ConflictingAssignment(
            application_id=entry.app_id,
            application_name=entry.app_name,
            intent=entry.intent,
            is_existing=entry.is_existing,
        )
        for entry in ordered
    )


def _redundant_members(members: Sequence[ConflictEntry]) -> list[ConflictEntry]:
    """Required and Available entries of the first app that carries both."""

    by_app: dict[str, list[ConflictEntry]] = defaultdict(list)
    for entry in members:
        by_app[entry.app_id].append(entry)
    for app_id in sorted(by_app, key=lambda key: (by_app[key][0].app_name, key)):
        pair = [
            entry
            for entry in by_app[app_id]
            if entry.intent in (AssignmentIntent.REQUIRED, AssignmentIntent.AVAILABLE)
        ]
        if {entry.intent for entry in pair} == {AssignmentIntent.REQUIRED, AssignmentIntent.AVAILABLE}:
            return pair
    return []


def _group_name(
    identity: str,
    kind: AssignmentTargetKind,
    members: Sequence[ConflictEntry],
    groups: GroupDirectory | None,
) -> str:
    names = sorted(entry.group_name for entry in members if entry.group_name)
    if names:
        return names[0]
    if kind.requires_group_id and groups is not None:
        name = groups.display_name(identity)
        if name:
            return name
    return kind.display_name if kind.is_builtin else identity


__all__ = [
    "AssignmentConflict",
    "ConflictEntry",
    "ConflictSeverity",
    "ConflictType",
    "ConflictingAssignment",
    "detect_conflicts",
    "project_session_entries",
    "would_cause_conflict",
]
