from __future__ import annotations

import pytest

from intune_reconciler.data.models import AssignmentIntent
from intune_reconciler.graph.errors import GraphAPIError
from intune_reconciler.services import AssignmentService, AssignmentsSavedEvent, MutationStatus
from intune_reconciler.utils import ProgressUpdate

from tests.factories import make_app, make_assignment, make_group, make_session, make_settings
from tests.stubs import FakeTransport


def _session():
    app = make_app(
        app_id="app-1",
        display_name="Company Portal",
        assignments=[make_assignment(assignment_id="a1", group_id="group-a")],
    )
    return make_session([app], groups=[make_group("group-a", "Pilot"), make_group("group-b", "Sales")])


@pytest.mark.asyncio
async def test_save_without_changes_is_noop() -> None:
    transport = FakeTransport()
    service = AssignmentService(transport, make_settings())
    events: list[AssignmentsSavedEvent] = []
    service.saved.subscribe(events.append)

    report = await service.save(_session())

    assert transport.batches == [] and transport.posts == []
    assert report.succeeded
    assert events[0].status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_save_executes_plan_and_reports_progress() -> None:
    session = _session()
    session.update_intent(session.records[0], AssignmentIntent.AVAILABLE)
    session.add_pending_assignments([session.groups.get("group-b")])
    transport = FakeTransport()
    service = AssignmentService(transport, make_settings())
    events: list[AssignmentsSavedEvent] = []
    updates: list[ProgressUpdate] = []
    service.saved.subscribe(events.append)

    report = await service.save(session, progress=updates.append)

    assert transport.deleted_ids == ["a1"]
    intents = sorted(entry["intent"] for entry in transport.posted_assignments("app-1"))
    assert intents == ["available", "required"]
    assert report.completed == 3
    assert updates[-1].percent_complete == 100.0
    (event,) = events
    assert event.app_ids == ("app-1",)
    assert event.status is MutationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_partial_failure_status() -> None:
    session = _session()
    session.add_pending_assignments([session.groups.get("group-b")])
    session.toggle_deletion(session.records[0])
    transport = FakeTransport(post_errors={"app-1": GraphAPIError(message="Bad request", status_code=400)})
    service = AssignmentService(transport, make_settings())
    events: list[AssignmentsSavedEvent] = []
    service.saved.subscribe(events.append)

    report = await service.save(session)

    assert report.failed == 1
    assert report.completed == 1
    assert events[0].status is MutationStatus.PARTIAL


@pytest.mark.asyncio
async def test_total_failure_status() -> None:
    session = _session()
    session.toggle_deletion(session.records[0])
    transport = FakeTransport(delete_statuses={"a1": 403})
    service = AssignmentService(transport, make_settings())
    events: list[AssignmentsSavedEvent] = []
    service.saved.subscribe(events.append)

    report = await service.save(session)

    assert report.failures[0].status_code == 403
    assert events[0].status is MutationStatus.FAILED


def test_plan_preview_does_not_touch_transport() -> None:
    session = _session()
    session.toggle_deletion(session.records[0])
    transport = FakeTransport()

    plan = AssignmentService(transport).plan(session)

    assert len(plan.plain_deletes) == 1
    assert transport.batches == []
