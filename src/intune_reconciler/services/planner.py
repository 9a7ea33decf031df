"""Turn an :class:`EditSession` into an immutable plan of Graph operations."""

from __future__ import annotations

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from intune_reconciler.data.models import (
    AssignmentIntent,
    AssignmentTargetKind,
)
from intune_reconciler.graph.requests import (
    GraphRequest,
    mobile_app_assign_body,
    mobile_app_assign_path,
    mobile_app_assignment_delete_request,
)
from intune_reconciler.services.edit_session import AssignmentRecord, EditSession
from intune_reconciler.services.filter_overrides import AssignmentKey, FilterSelection
from intune_reconciler.services.intent_validator import (
    NoValidIntentError,
    resolve_intent,
)
from intune_reconciler.utils import get_logger


logger = get_logger(__name__)


class OperationPhase(StrEnum):
    DELETE = "delete"
    RECREATE = "recreate"
    CREATE = "create"


@dataclass(frozen=True, slots=True)
class CreateOperation:
    app_id: str
    app_name: str
    group_name: str
    target_kind: AssignmentTargetKind
    intent: AssignmentIntent
    group_id: str | None = None
    filter: FilterSelection = field(default_factory=FilterSelection)
    phase: OperationPhase = OperationPhase.CREATE
    source_key: AssignmentKey | None = None
    settings: dict[str, Any] | None = None
    intent_substituted: bool = False
    local_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_recreation(self) -> bool:
        return self.phase is OperationPhase.RECREATE

    def to_graph(self) -> dict[str, Any]:
        """Body of one entry in the ``mobileAppAssignments`` array."""

        target: dict[str, Any] = {"@odata.type": self.target_kind.value}
        if self.target_kind.requires_group_id and self.group_id:
            target["groupId"] = self.group_id
        if self.filter.filter_id and self.filter.mode is not None:
            target["deviceAndAppManagementAssignmentFilterId"] = self.filter.filter_id
            target["deviceAndAppManagementAssignmentFilterType"] = self.filter.mode.value
        body: dict[str, Any] = {
            "id": self.local_id,
            "intent": self.intent.value,
            "target": target,
        }
        # Graph rejects install settings on uninstall assignments.
        if self.settings and self.intent is not AssignmentIntent.UNINSTALL:
            body["settings"] = self.settings
        return body


@dataclass(frozen=True, slots=True)
class DeleteOperation:
    key: AssignmentKey
    app_name: str
    group_name: str
    recreate_after: bool = False
    recreation: CreateOperation | None = None
    recreation_error: str | None = None

    @property
    def app_id(self) -> str:
        return self.key.app_id

    @property
    def assignment_id(self) -> str:
        return self.key.assignment_id

    def to_request(self, request_id: str) -> GraphRequest:
        return mobile_app_assignment_delete_request(
            self.app_id,
            self.assignment_id,
            request_id=request_id,
        )


@dataclass(frozen=True, slots=True)
class PlanIssue:
    """A planned creation that cannot be submitted (reported as a failure)."""

    app_id: str
    app_name: str
    group_name: str
    message: str
    phase: OperationPhase = OperationPhase.CREATE


@dataclass(frozen=True, slots=True)
class AssignBatch:
    """One ``assign`` call: every create body for a single application."""

    app_id: str
    app_name: str
    operations: tuple[CreateOperation, ...]

    @property
    def endpoint(self) -> str:
        return mobile_app_assign_path(self.app_id)

    def to_graph(self) -> dict[str, Any]:
        return mobile_app_assign_body([operation.to_graph() for operation in self.operations])


@dataclass(frozen=True, slots=True)
class Plan:
    deletes: tuple[DeleteOperation, ...] = ()
    creations: tuple[CreateOperation, ...] = ()
    issues: tuple[PlanIssue, ...] = ()

    @property
    def plain_deletes(self) -> tuple[DeleteOperation, ...]:
        return tuple(operation for operation in self.deletes if not operation.recreate_after)

    @property
    def tagged_deletes(self) -> tuple[DeleteOperation, ...]:
        return tuple(operation for operation in self.deletes if operation.recreate_after)

    @property
    def recreations(self) -> tuple[CreateOperation, ...]:
        return tuple(
            operation.recreation
            for operation in self.deletes
            if operation.recreate_after and operation.recreation is not None
        )

    @property
    def create_operations(self) -> tuple[CreateOperation, ...]:
        """Recreations followed by new creations."""
        return self.recreations + self.creations

    @property
    def total_operations(self) -> int:
        return len(self.deletes) + len(self.tagged_deletes) + len(self.creations) + len(self.issues)

    @property
    def is_empty(self) -> bool:
        return not (self.deletes or self.creations or self.issues)

    def assign_batches(
        self,
        operations: tuple[CreateOperation, ...] | None = None,
    ) -> list[AssignBatch]:
        """Group create operations per application, preserving plan order."""

        grouped: OrderedDict[str, list[CreateOperation]] = OrderedDict()
        names: dict[str, str] = {}
        for operation in self.create_operations if operations is None else operations:
            grouped.setdefault(operation.app_id, []).append(operation)
            names.setdefault(operation.app_id, operation.app_name)
        return [
            AssignBatch(app_id=app_id, app_name=names[app_id], operations=tuple(items))
            for app_id, items in grouped.items()
        ]


def build_plan(session: EditSession) -> Plan:
    deletes: list[DeleteOperation] = []
    creations: list[CreateOperation] = []
    issues: list[PlanIssue] = []

    for record in session.records:
        if record.key in session.assignments_to_delete:
            deletes.append(
                DeleteOperation(
                    key=record.key,
                    app_name=record.app_name,
                    group_name=record.display_group_name,
                )
            )

    recreation_keys = session.recreation_keys
    for record in session.records:
        if record.key not in recreation_keys:
            continue
        deletes.append(_tagged_delete(session, record))

    categories = [app.category for app in session.applications]
    for pending in session.pending_assignments:
        try:
            resolution = resolve_intent(
                categories,
                pending.target_kind,
                pending.intent,
                context=pending.group_name,
            )
        except NoValidIntentError as exc:
            logger.warning(
                "Skipping new assignment with no valid intent",
                group=pending.group_name,
                requested=pending.intent.value,
                error=str(exc),
            )
            for app in session.applications:
                issues.append(
                    PlanIssue(
                        app_id=app.id,
                        app_name=app.display_name,
                        group_name=pending.group_name,
                        message=str(exc),
                    )
                )
            continue

        for app in session.applications:
            creations.append(
                CreateOperation(
                    app_id=app.id,
                    app_name=app.display_name,
                    group_name=pending.group_name,
                    group_id=pending.target_group_id,
                    target_kind=pending.target_kind,
                    intent=resolution.intent,
                    intent_substituted=resolution.substituted,
                    filter=pending.filter,
                    settings=pending.settings if pending.copy_settings else None,
                )
            )

    plan = Plan(deletes=tuple(deletes), creations=tuple(creations), issues=tuple(issues))
    logger.debug(
        "Built assignment plan",
        deletes=len(plan.plain_deletes),
        updates=len(plan.tagged_deletes),
        creations=len(plan.creations),
        issues=len(plan.issues),
        total=plan.total_operations,
    )
    return plan


def _tagged_delete(session: EditSession, record: AssignmentRecord) -> DeleteOperation:
    requested = session.effective_intent(record)
    try:
        resolution = resolve_intent(
            [record.category],
            record.target_kind,
            requested,
            context=f"{record.app_name} / {record.display_group_name}",
        )
    except NoValidIntentError as exc:
        return DeleteOperation(
            key=record.key,
            app_name=record.app_name,
            group_name=record.display_group_name,
            recreate_after=True,
            recreation_error=str(exc),
        )

    recreation = CreateOperation(
        app_id=record.app_id,
        app_name=record.app_name,
        group_name=record.display_group_name,
        group_id=record.group_id,
        target_kind=record.target_kind,
        intent=resolution.intent,
        intent_substituted=resolution.substituted,
        filter=session.effective_filter(record),
        phase=OperationPhase.RECREATE,
        source_key=record.key,
        settings=record.assignment.settings,
    )
    return DeleteOperation(
        key=record.key,
        app_name=record.app_name,
        group_name=record.display_group_name,
        recreate_after=True,
        recreation=recreation,
    )


__all__ = [
    "AssignBatch",
    "CreateOperation",
    "DeleteOperation",
    "OperationPhase",
    "Plan",
    "PlanIssue",
    "build_plan",
]
