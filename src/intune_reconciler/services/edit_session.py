from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable

from intune_reconciler.data.directories import FilterDirectory, GroupDirectory
from intune_reconciler.data.models import (
    AppCategory,
    AssignmentFilterMode,
    AssignmentIntent,
    AssignmentTargetKind,
    DirectoryGroup,
    MobileApp,
    MobileAppAssignment,
    target_identity,
)
from intune_reconciler.services.base import EventHook
from intune_reconciler.services.conflicts import (
    AssignmentConflict,
    detect_conflicts,
    project_session_entries,
)
from intune_reconciler.services.filter_overrides import (
    NO_FILTER,
    AssignmentKey,
    FilterOverrideStore,
    FilterSelection,
)
from intune_reconciler.utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AssignmentRecord:
    """A fetched assignment paired with the application that owns it."""

    app_id: str
    app_name: str
    assignment: MobileAppAssignment
    category: AppCategory = AppCategory.UNKNOWN
    group_name: str | None = None

    @property
    def key(self) -> AssignmentKey:
        return AssignmentKey(self.app_id, self.assignment.id)

    @property
    def intent(self) -> AssignmentIntent:
        return self.assignment.intent

    @property
    def target_kind(self) -> AssignmentTargetKind:
        return self.assignment.target.kind

    @property
    def group_id(self) -> str | None:
        return self.assignment.target.group_id

    @property
    def identity(self) -> str:
        return self.assignment.target.identity

    @property
    def display_group_name(self) -> str:
        return self.group_name or self.assignment.target.display_name

    @property
    def original_filter(self) -> FilterSelection:
        return FilterSelection.from_target(self.assignment.target)


@dataclass(slots=True)
class PendingAssignment:
    """A new assignment to be created for every application in the session."""

    group_id: str
    group_name: str
    target_kind: AssignmentTargetKind
    intent: AssignmentIntent = AssignmentIntent.REQUIRED
    filter: FilterSelection = NO_FILTER
    copied_from_assignment_id: str | None = None
    copy_settings: bool = False
    settings: dict[str, Any] | None = None
    local_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def identity(self) -> str:
        return target_identity(self.group_id, self.target_kind)

    @property
    def target_group_id(self) -> str | None:
        return self.group_id if self.target_kind.requires_group_id else None


@dataclass(frozen=True, slots=True)
class SessionChangedEvent:
    action: str
    has_changes: bool
    conflicts: tuple[AssignmentConflict, ...]


RecordOrKey = AssignmentRecord | AssignmentKey


class EditSession:
    def __init__(
        self,
        applications: Iterable[MobileApp],
        *,
        groups: GroupDirectory,
        filters: FilterDirectory | None = None,
    ) -> None:
        self.applications: tuple[MobileApp, ...] = tuple(applications)
        self.groups = groups
        self.filters = filters or FilterDirectory()

        records: list[AssignmentRecord] = []
        for app in self.applications:
            category = app.category
            for assignment in app.assignments or []:
                group_name = assignment.target.group_name or groups.display_name(
                    assignment.target.group_id
                )
                records.append(
                    AssignmentRecord(
                        app_id=app.id,
                        app_name=app.display_name,
                        assignment=assignment,
                        category=category,
                        group_name=group_name,
                    )
                )
        records.sort(key=lambda record: (record.app_name, record.display_group_name))
        self.records: tuple[AssignmentRecord, ...] = tuple(records)
        self._records_by_key = {record.key: record for record in self.records}

        self.assignments_to_delete: set[AssignmentKey] = set()
        self.assignments_to_update: dict[AssignmentKey, AssignmentIntent] = {}
        self.filter_overrides = FilterOverrideStore()
        self.pending_assignments: list[PendingAssignment] = []
        self.conflicts: list[AssignmentConflict] = []

        self.changed: EventHook[SessionChangedEvent] = EventHook()
        self.conflicts = detect_conflicts(project_session_entries(self), groups=self.groups)

    # ------------------------------------------------------------- Lookups

    @property
    def application_names(self) -> list[str]:
        return [app.display_name for app in self.applications]

    @property
    def application_ids(self) -> list[str]:
        return [app.id for app in self.applications]

    def record(self, key: AssignmentKey) -> AssignmentRecord | None:
        return self._records_by_key.get(key)

    def is_marked_for_deletion(self, item: RecordOrKey) -> bool:
        return _key_of(item) in self.assignments_to_delete

    def has_pending_update(self, item: RecordOrKey) -> bool:
        key = _key_of(item)
        return key in self.assignments_to_update or key in self.filter_overrides

    def effective_intent(self, record: AssignmentRecord) -> AssignmentIntent:
        return self.assignments_to_update.get(record.key, record.intent)

    def effective_filter(self, record: AssignmentRecord) -> FilterSelection:
        return self.filter_overrides.effective(record.key, record.original_filter)

    @property
    def recreation_keys(self) -> set[AssignmentKey]:
        """Keys whose assignment must be deleted and recreated to apply an edit."""

        keys = set(self.assignments_to_update) | self.filter_overrides.keys()
        return keys - self.assignments_to_delete

    @property
    def has_changes(self) -> bool:
        return bool(
            self.assignments_to_delete
            or self.assignments_to_update
            or len(self.filter_overrides)
            or self.pending_assignments
        )

    @property
    def confirmation_message(self) -> str:
        messages: list[str] = []
        if self.assignments_to_delete:
            messages.append(f"{len(self.assignments_to_delete)} assignment(s) will be removed")
        recreations = self.recreation_keys
        if recreations:
            messages.append(f"{len(recreations)} assignment(s) will be updated")
        if self.pending_assignments:
            total_new = len(self.pending_assignments) * len(self.applications)
            messages.append(f"{total_new} new assignment(s) will be created")
        if not messages:
            return "No changes to save"
        return "\n".join(messages) + "\n\nThis action cannot be undone."

    # ------------------------------------------------------------ Deletions

    def toggle_deletion(self, record: RecordOrKey) -> bool:
        """Mark a record for deletion, or restore it when already marked.

        Returns ``True`` when the record is now marked for deletion.
        """

        key = _key_of(record)
        if key in self.assignments_to_delete:
            self.assignments_to_delete.discard(key)
            marked = False
        else:
            self._mark_deleted(key)
            marked = True
        self._refresh("toggle_deletion")
        return marked

    def mark_for_deletion(self, records: Iterable[RecordOrKey]) -> None:
        for record in records:
            self._mark_deleted(_key_of(record))
        self._refresh("mark_for_deletion")

    def mark_all_for_deletion(self) -> None:
        for record in self.records:
            self._mark_deleted(record.key)
        self._refresh("mark_all_for_deletion")

    def _mark_deleted(self, key: AssignmentKey) -> None:
        self.assignments_to_delete.add(key)
        self.assignments_to_update.pop(key, None)
        self.filter_overrides.discard(key)

    # -------------------------------------------------------------- Intents

    def update_intent(self, record: AssignmentRecord, intent: AssignmentIntent) -> bool:
        changed = self._set_intent(record, intent)
        self._refresh("update_intent")
        return changed

    def bulk_update_intent(
        self,
        keys: Iterable[AssignmentKey],
        intent: AssignmentIntent,
    ) -> int:
        changed = 0
        for key in keys:
            record = self._records_by_key.get(key)
            if record is None:
                logger.debug("Ignoring intent update for unknown assignment", key=str(key))
                continue
            if self._set_intent(record, intent):
                changed += 1
        self._refresh("bulk_update_intent")
        return changed

    def change_all_intents(self, intent: AssignmentIntent) -> int:
        changed = sum(1 for record in self.records if self._set_intent(record, intent))
        self._refresh("change_all_intents")
        return changed

    def _set_intent(self, record: AssignmentRecord, intent: AssignmentIntent) -> bool:
        key = record.key
        if key in self.assignments_to_delete:
            return False
        if intent == record.intent:
            return self.assignments_to_update.pop(key, None) is not None
        if self.assignments_to_update.get(key) == intent:
            return False
        self.assignments_to_update[key] = intent
        return True

    # -------------------------------------------------------------- Filters

    def update_filter(
        self,
        record: AssignmentRecord,
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None = None,
    ) -> bool:
        changed = self._set_filter(record, filter_id, mode)
        if changed:
            self._refresh("update_filter")
        return changed

    def update_filters(
        self,
        records: Iterable[AssignmentRecord],
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None = None,
    ) -> bool:
        changed = False
        for record in records:
            changed = self._set_filter(record, filter_id, mode) or changed
        if changed:
            self._refresh("update_filters")
        return changed

    def _set_filter(
        self,
        record: AssignmentRecord,
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None,
    ) -> bool:
        if record.key in self.assignments_to_delete:
            return False
        return self.filter_overrides.set_override(
            record.key,
            record.original_filter,
            filter_id,
            mode,
        )

    # -------------------------------------------------------------- Pending

    def add_pending_assignments(
        self,
        groups: Iterable[DirectoryGroup],
        intent: AssignmentIntent = AssignmentIntent.REQUIRED,
    ) -> list[PendingAssignment]:
        added: list[PendingAssignment] = []
        for group in groups:
            identity = target_identity(group.id, group.target_kind)
            if self._is_targeted(identity):
                continue
            pending = PendingAssignment(
                group_id=group.id,
                group_name=group.display_name,
                target_kind=group.target_kind,
                intent=intent,
            )
            self.pending_assignments.append(pending)
            added.append(pending)
        self._refresh("add_pending_assignments")
        return added

    def add_copied_assignments(
        self,
        sources: Iterable[MobileAppAssignment],
        *,
        copy_intent: bool = True,
        copy_settings: bool = False,
    ) -> list[PendingAssignment]:
        """Queue copies of assignments taken from other applications.

        Sources without a group id (built-in targets) are skipped, as are
        groups this session already targets.
        """

        added: list[PendingAssignment] = []
        for source in sources:
            target = source.target
            if not target.group_id:
                continue
            if self._is_targeted(target.identity):
                continue
            filter_selection = FilterSelection.normalized(
                target.assignment_filter_id,
                target.assignment_filter_type,
            )
            pending = PendingAssignment(
                group_id=target.group_id,
                group_name=(
                    target.group_name
                    or self.groups.display_name(target.group_id)
                    or target.group_id
                ),
                target_kind=target.kind,
                intent=source.intent if copy_intent else AssignmentIntent.REQUIRED,
                filter=filter_selection,
                copied_from_assignment_id=source.id,
                copy_settings=copy_settings,
                settings=source.settings if copy_settings else None,
            )
            self.pending_assignments.append(pending)
            added.append(pending)
        self._refresh("add_copied_assignments")
        return added

    def remove_pending(self, pending: PendingAssignment | str) -> bool:
        local_id = pending if isinstance(pending, str) else pending.local_id
        before = len(self.pending_assignments)
        self.pending_assignments = [
            item for item in self.pending_assignments if item.local_id != local_id
        ]
        self._refresh("remove_pending")
        return len(self.pending_assignments) != before

    def update_pending_intent(
        self,
        pending: PendingAssignment | str,
        intent: AssignmentIntent,
    ) -> bool:
        item = self._pending(pending)
        if item is None:
            return False
        item.intent = intent
        self._refresh("update_pending_intent")
        return True

    def update_pending_filter(
        self,
        pending: PendingAssignment | str,
        filter_id: str | None,
        mode: AssignmentFilterMode | str | None = None,
    ) -> bool:
        item = self._pending(pending)
        if item is None:
            return False
        item.filter = FilterSelection.normalized(filter_id, mode)
        self._refresh("update_pending_filter")
        return True

    def apply_intent_to_all_pending(self, intent: AssignmentIntent) -> None:
        for item in self.pending_assignments:
            item.intent = intent
        self._refresh("apply_intent_to_all_pending")

    def _pending(self, pending: PendingAssignment | str) -> PendingAssignment | None:
        local_id = pending if isinstance(pending, str) else pending.local_id
        for item in self.pending_assignments:
            if item.local_id == local_id:
                return item
        return None

    def _is_targeted(self, identity: str) -> bool:
        for record in self.records:
            if record.identity == identity and record.key not in self.assignments_to_delete:
                return True
        return any(item.identity == identity for item in self.pending_assignments)

    # --------------------------------------------------------------- Common

    def discard_changes(self) -> None:
        self.assignments_to_delete.clear()
        self.assignments_to_update.clear()
        self.filter_overrides.clear()
        self.pending_assignments.clear()
        self._refresh("discard_changes")

    def _refresh(self, action: str) -> None:
        self.conflicts = detect_conflicts(project_session_entries(self), groups=self.groups)
        self.changed.emit(
            SessionChangedEvent(
                action=action,
                has_changes=self.has_changes,
                conflicts=tuple(self.conflicts),
            )
        )


def _key_of(item: RecordOrKey) -> AssignmentKey:
    return item.key if isinstance(item, AssignmentRecord) else item


__all__ = [
    "AssignmentRecord",
    "EditSession",
    "PendingAssignment",
    "SessionChangedEvent",
]
