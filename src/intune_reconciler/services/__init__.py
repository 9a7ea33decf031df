"""Reconciliation services: edit, validate, plan, execute and report."""

from .assignments import AssignmentService, AssignmentsSavedEvent
from .base import EventHook, MutationStatus
from .conflicts import (
    AssignmentConflict,
    ConflictEntry,
    ConflictSeverity,
    ConflictType,
    ConflictingAssignment,
    detect_conflicts,
    project_session_entries,
    would_cause_conflict,
)
from .edit_session import (
    AssignmentRecord,
    EditSession,
    PendingAssignment,
    SessionChangedEvent,
)
from .executor import BatchExecutor, ExecutorState
from .filter_overrides import AssignmentKey, FilterOverrideStore, FilterSelection
from .intent_validator import IntentResolution, NoValidIntentError
from .planner import (
    AssignBatch,
    CreateOperation,
    DeleteOperation,
    OperationPhase,
    Plan,
    PlanIssue,
    build_plan,
)
from .report import OperationFailure, PhaseCounts, SaveReport

__all__ = [
    "AssignmentService",
    "AssignmentsSavedEvent",
    "EventHook",
    "MutationStatus",
    "AssignmentConflict",
    "ConflictEntry",
    "ConflictSeverity",
    "ConflictType",
    "ConflictingAssignment",
    "detect_conflicts",
    "project_session_entries",
    "would_cause_conflict",
    "AssignmentRecord",
    "EditSession",
    "PendingAssignment",
    "SessionChangedEvent",
    "BatchExecutor",
    "ExecutorState",
    "AssignmentKey",
    "FilterOverrideStore",
    "FilterSelection",
    "IntentResolution",
    "NoValidIntentError",
    "AssignBatch",
    "CreateOperation",
    "DeleteOperation",
    "OperationPhase",
    "Plan",
    "PlanIssue",
    "build_plan",
    "OperationFailure",
    "PhaseCounts",
    "SaveReport",
]
