from __future__ import annotations

import pytest

from intune_reconciler.data.models import AppCategory, AssignmentIntent, AssignmentTargetKind
from intune_reconciler.services.intent_validator import (
    NoValidIntentError,
    is_valid,
    resolve_intent,
    suggest,
    suggest_for_categories,
    suggested_intents,
    valid_intents,
    valid_intents_for_categories,
    validation_message,
)


def test_required_is_valid_everywhere() -> None:
    for category in AppCategory:
        for kind in AssignmentTargetKind:
            assert is_valid(AssignmentIntent.REQUIRED, category, kind)


def test_valid_intents_follow_canonical_order() -> None:
    intents = valid_intents(AppCategory.WIN32_LOB, AssignmentTargetKind.GROUP)

    assert intents == [
        AssignmentIntent.AVAILABLE,
        AssignmentIntent.REQUIRED,
        AssignmentIntent.UNINSTALL,
    ]


def test_available_on_all_devices_only_for_vpp_apps() -> None:
    assert not is_valid(
        AssignmentIntent.AVAILABLE, AppCategory.WIN32_LOB, AssignmentTargetKind.ALL_DEVICES
    )
    assert is_valid(
        AssignmentIntent.AVAILABLE, AppCategory.IOS_VPP, AssignmentTargetKind.ALL_DEVICES
    )
    assert is_valid(
        AssignmentIntent.AVAILABLE, AppCategory.MACOS_VPP, AssignmentTargetKind.ALL_DEVICES
    )


@pytest.mark.parametrize(
    "kind, expected",
    [
        (AssignmentTargetKind.ALL_USERS, True),
        (AssignmentTargetKind.ALL_LICENSED_USERS, True),
        (AssignmentTargetKind.ALL_DEVICES, False),
        (AssignmentTargetKind.GROUP, False),
        (AssignmentTargetKind.EXCLUSION_GROUP, False),
    ],
)
def test_available_without_enrollment_requires_user_targets(
    kind: AssignmentTargetKind, expected: bool
) -> None:
    assert (
        is_valid(AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT, AppCategory.WEB, kind)
        is expected
    )


def test_available_without_enrollment_limited_to_web_and_ios_store() -> None:
    assert is_valid(
        AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
        AppCategory.IOS_STORE,
        AssignmentTargetKind.ALL_USERS,
    )
    assert not is_valid(
        AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
        AppCategory.WIN32_LOB,
        AssignmentTargetKind.ALL_USERS,
    )


def test_uninstall_not_offered_for_web_apps() -> None:
    assert AssignmentIntent.UNINSTALL not in valid_intents(
        AppCategory.WEB, AssignmentTargetKind.GROUP
    )
    assert AssignmentIntent.UNINSTALL not in valid_intents(
        AppCategory.WINDOWS_WEB, AssignmentTargetKind.GROUP
    )


def test_suggest_returns_preferred_when_valid() -> None:
    intent = suggest(AppCategory.WIN32_LOB, AssignmentTargetKind.GROUP, AssignmentIntent.UNINSTALL)
    assert intent is AssignmentIntent.UNINSTALL


def test_suggest_falls_back_to_first_valid_intent() -> None:
    intent = suggest(
        AppCategory.WIN32_LOB,
        AssignmentTargetKind.ALL_DEVICES,
        AssignmentIntent.AVAILABLE,
    )
    assert intent is AssignmentIntent.REQUIRED


def test_multi_app_intersection_drops_intents_any_app_rejects() -> None:
    intents = valid_intents_for_categories(
        [AppCategory.WIN32_LOB, AppCategory.WEB],
        AssignmentTargetKind.GROUP,
    )
    assert intents == [AssignmentIntent.AVAILABLE, AssignmentIntent.REQUIRED]

    chosen = suggest_for_categories(
        [AppCategory.WIN32_LOB, AppCategory.WEB],
        AssignmentTargetKind.GROUP,
        AssignmentIntent.UNINSTALL,
    )
    assert chosen is AssignmentIntent.AVAILABLE


def test_suggest_raises_when_no_categories_supplied() -> None:
    with pytest.raises(NoValidIntentError):
        suggest_for_categories([], AssignmentTargetKind.GROUP, AssignmentIntent.REQUIRED)


def test_resolve_intent_flags_substitution() -> None:
    unchanged = resolve_intent(
        [AppCategory.WIN32_LOB], AssignmentTargetKind.GROUP, AssignmentIntent.REQUIRED
    )
    assert unchanged.intent is AssignmentIntent.REQUIRED
    assert not unchanged.substituted

    substituted = resolve_intent(
        [AppCategory.WIN32_LOB],
        AssignmentTargetKind.GROUP,
        AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
    )
    assert substituted.intent is AssignmentIntent.AVAILABLE
    assert substituted.substituted


def test_validation_message_explains_rejection() -> None:
    assert (
        validation_message(
            AssignmentIntent.REQUIRED, AppCategory.WIN32_LOB, AssignmentTargetKind.GROUP
        )
        is None
    )
    message = validation_message(
        AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
        AppCategory.WEB,
        AssignmentTargetKind.GROUP,
    )
    assert message is not None
    assert "Group" in message


def test_suggested_intents_promote_closest_alternative() -> None:
    ordered = suggested_intents(
        AppCategory.WIN32_LOB,
        AssignmentTargetKind.GROUP,
        AssignmentIntent.AVAILABLE_WITHOUT_ENROLLMENT,
    )
    assert ordered[0] is AssignmentIntent.AVAILABLE

    on_devices = suggested_intents(
        AppCategory.WIN32_LOB,
        AssignmentTargetKind.ALL_DEVICES,
        AssignmentIntent.AVAILABLE,
    )
    assert on_devices[0] is AssignmentIntent.REQUIRED
    assert AssignmentIntent.AVAILABLE not in on_devices
