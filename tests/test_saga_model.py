import json
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from saga_orchestrator.saga.model import (
    Action,
    Saga,
    SagaStateError,
    SagaType,
    Status,
    Step,
)
from saga_orchestrator.saga.payloads import (
    AwardItemActionPayload,
    CreateAndEquipAssetPayload,
    EquipAssetPayload,
    ItemPayload,
    PayloadError,
)

PAST = datetime(2023, 1, 1, tzinfo=timezone.utc)


def make_step(step_id, status, action=Action.AWARD_INVENTORY, payload=None):
    return Step(
        step_id=step_id,
        status=status,
        action=action,
        payload=payload if payload is not None else AwardItemActionPayload(),
        created_at=PAST,
        updated_at=PAST,
    )


def make_saga(*steps):
    return Saga(
        transaction_id=uuid4(),
        saga_type=SagaType.INVENTORY_TRANSACTION,
        initiated_by="test",
        steps=list(steps),
    )


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], False),
        ([Status.PENDING, Status.COMPLETED], False),
        ([Status.COMPLETED, Status.FAILED], True),
    ],
)
def test_failing(statuses, expected):
    saga = make_saga(*(make_step(f"step{i + 1}", s) for i, s in enumerate(statuses)))
    assert saga.failing() is expected


@pytest.mark.parametrize(
    "statuses, expected_id",
    [
        ([], None),
        ([Status.COMPLETED, Status.COMPLETED], None),
        ([Status.COMPLETED, Status.PENDING, Status.PENDING], "step2"),
    ],
)
def test_current_step(statuses, expected_id):
    saga = make_saga(*(make_step(f"step{i + 1}", s) for i, s in enumerate(statuses)))
    step = saga.current_step()
    if expected_id is None:
        assert step is None
    else:
        assert step.step_id == expected_id


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], -1),
        ([Status.PENDING, Status.PENDING], -1),
        ([Status.COMPLETED, Status.COMPLETED, Status.PENDING], 1),
        ([Status.COMPLETED, Status.FAILED, Status.COMPLETED, Status.PENDING], 2),
    ],
)
def test_find_furthest_completed_step_index(statuses, expected):
    saga = make_saga(*(make_step(f"step{i + 1}", s) for i, s in enumerate(statuses)))
    assert saga.find_furthest_completed_step_index() == expected


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], -1),
        ([Status.COMPLETED, Status.COMPLETED], -1),
        ([Status.COMPLETED, Status.PENDING, Status.PENDING], 1),
        ([Status.FAILED, Status.COMPLETED, Status.PENDING, Status.PENDING], 2),
    ],
)
def test_find_earliest_pending_step_index(statuses, expected):
    saga = make_saga(*(make_step(f"step{i + 1}", s) for i, s in enumerate(statuses)))
    assert saga.find_earliest_pending_step_index() == expected


def test_find_failed_step_index():
    saga = make_saga(
        make_step("a", Status.COMPLETED), make_step("b", Status.FAILED), make_step("c", Status.PENDING)
    )
    assert saga.find_failed_step_index() == 1
    assert make_saga(make_step("a", Status.PENDING)).find_failed_step_index() == -1


def test_saga_fields_and_step_order():
    transaction_id = uuid4()
    payload = AwardItemActionPayload(character_id=12345, item=ItemPayload(67890, 5))
    saga = Saga(
        transaction_id=transaction_id,
        saga_type=SagaType.INVENTORY_TRANSACTION,
        initiated_by="test-initiator",
        steps=[make_step("step1", Status.PENDING, payload=payload),
               make_step("step2", Status.COMPLETED, payload=payload)],
    )
    assert saga.transaction_id == transaction_id
    assert saga.initiated_by == "test-initiator"
    assert [(s.step_id, s.status) for s in saga.steps] == [
        ("step1", Status.PENDING),
        ("step2", Status.COMPLETED),
    ]
    assert saga.completed_step_count() == 1
    assert saga.pending_step_count() == 1


@pytest.mark.parametrize(
    "current, new",
    [
        (Status.PENDING, Status.COMPLETED),
        (Status.PENDING, Status.FAILED),
        (Status.COMPLETED, Status.FAILED),
        (Status.FAILED, Status.PENDING),
    ],
)
def test_valid_state_transitions(current, new):
    saga = make_saga(make_step("step1", current, Action.AWARD_ASSET))
    saga.validate_state_transition(0, new)
    saga.set_step_status(0, new)
    assert saga.steps[0].status == new


@pytest.mark.parametrize(
    "current, new, message",
    [
        (Status.PENDING, Status.PENDING, "invalid transition from pending to pending"),
        (Status.COMPLETED, Status.PENDING, "invalid transition from completed to pending"),
    ],
)
def test_invalid_state_transitions(current, new, message):
    saga = make_saga(make_step("step1", current, Action.AWARD_ASSET))
    with pytest.raises(SagaStateError, match=message):
        saga.validate_state_transition(0, new)


def test_invalid_step_index():
    saga = make_saga(make_step("step1", Status.PENDING, Action.AWARD_ASSET))
    with pytest.raises(SagaStateError, match="invalid step index"):
        saga.validate_state_transition(5, Status.COMPLETED)
    with pytest.raises(SagaStateError, match="invalid step index: -1"):
        saga.set_step_status(-1, Status.COMPLETED)


def test_unknown_current_status_is_rejected():
    saga = make_saga(make_step("step1", "weird", Action.AWARD_ASSET))
    with pytest.raises(SagaStateError, match="unknown status: weird"):
        saga.validate_state_transition(0, Status.COMPLETED)


def test_set_step_status_updates_timestamp():
    saga = make_saga(make_step("step1", Status.PENDING, Action.AWARD_ASSET))
    saga.set_step_status(0, Status.COMPLETED)
    assert saga.steps[0].status == Status.COMPLETED
    assert saga.steps[0].updated_at > PAST


def test_set_step_status_invalid_leaves_step_unchanged():
    saga = make_saga(make_step("step1", Status.COMPLETED, Action.AWARD_ASSET))
    with pytest.raises(SagaStateError):
        saga.set_step_status(0, Status.PENDING)
    assert saga.steps[0].status == Status.COMPLETED
    assert saga.steps[0].updated_at == PAST


def test_set_step_status_unchecked():
    saga = make_saga(make_step("step1", Status.COMPLETED))
    saga.set_step_status_unchecked(0, Status.PENDING)
    assert saga.steps[0].status == Status.PENDING
    assert saga.steps[0].updated_at > PAST
    saga.set_step_status_unchecked(7, Status.FAILED)
    saga.set_step_status_unchecked(-1, Status.FAILED)
    assert [s.status for s in saga.steps] == [Status.PENDING]


def test_validate_step_ordering():
    good = make_saga(make_step("a", Status.COMPLETED), make_step("b", Status.PENDING))
    bad = make_saga(make_step("a", Status.PENDING), make_step("b", Status.COMPLETED))
    assert good.validate_step_ordering() is True
    assert bad.validate_step_ordering() is False


def test_valid_saga_state():
    saga = make_saga(
        make_step("step1", Status.COMPLETED, Action.AWARD_ASSET),
        make_step("step2", Status.PENDING, Action.AWARD_ASSET),
    )
    saga.validate_state_consistency()
    assert saga.validate_step_ordering() is True


@pytest.mark.parametrize(
    "steps, message",
    [
        (
            [("step1", Status.PENDING, Action.AWARD_ASSET), ("step2", Status.COMPLETED, Action.AWARD_ASSET)],
            "invalid step ordering",
        ),
        (
            [("step1", Status.PENDING, Action.AWARD_ASSET), ("step1", Status.PENDING, Action.AWARD_ASSET)],
            "duplicate step ID 'step1' found at index 1",
        ),
        (
            [("step1", Status.FAILED, Action.AWARD_ASSET), ("step2", Status.FAILED, Action.AWARD_ASSET)],
            "saga is failing but has 2 failed steps, expected exactly 1",
        ),
        ([("step1", Status.PENDING, "")], "empty action at step index 0"),
        ([("step1", "bogus", Action.AWARD_ASSET)], "invalid status 'bogus' at step index 0"),
    ],
)
def test_invalid_saga_state(steps, message):
    saga = make_saga(*(make_step(i, s, a) for i, s, a in steps))
    with pytest.raises(SagaStateError, match=message):
        saga.validate_state_consistency()


def test_step_to_json_contains_fields():
    step = Step(
        step_id="create_and_equip_1",
        status=Status.PENDING,
        action=Action.CREATE_AND_EQUIP_ASSET,
        payload=CreateAndEquipAssetPayload(character_id=12345, item=ItemPayload(1302000, 1)),
        created_at=PAST,
        updated_at=PAST,
    )
    text = step.to_json()
    assert "create_and_equip_asset" in text
    assert "12345" in text
    assert "1302000" in text
    data = json.loads(text)
    assert data["payload"] == {"characterId": 12345, "item": {"templateId": 1302000, "quantity": 1}}
    assert data["createdAt"] == "2023-01-01T00:00:00Z"


def test_step_from_json():
    text = """{
        "stepId": "create_and_equip_1",
        "status": "pending",
        "action": "create_and_equip_asset",
        "payload": {"characterId": 12345, "item": {"templateId": 1302000, "quantity": 1}},
        "createdAt": "2023-01-01T00:00:00Z",
        "updatedAt": "2023-01-01T00:00:00Z"
    }"""
    step = Step.from_json(text)
    assert step.step_id == "create_and_equip_1"
    assert step.status == Status.PENDING
    assert step.action == Action.CREATE_AND_EQUIP_ASSET
    assert step.payload == CreateAndEquipAssetPayload(character_id=12345, item=ItemPayload(1302000, 1))
    assert step.created_at == PAST


def test_step_round_trip():
    step = make_step(
        "equip", Status.COMPLETED, Action.EQUIP_ASSET,
        EquipAssetPayload(character_id=12345, inventory_type=1, source=5, destination=-1),
    )
    assert Step.from_json(step.to_json()) == step


def test_award_inventory_and_asset_share_payload():
    for action in ("award_inventory", "award_asset"):
        step = Step.from_dict({"stepId": "s", "status": "pending", "action": action,
                               "payload": {"characterId": 1, "item": {"templateId": 2, "quantity": 3}}})
        assert step.payload == AwardItemActionPayload(character_id=1, item=ItemPayload(2, 3))


def test_unknown_action_is_rejected():
    with pytest.raises(PayloadError, match="unknown action: validate_character_state"):
        Step.from_dict({"stepId": "s", "status": "pending",
                        "action": "validate_character_state", "payload": {}})
    with pytest.raises(PayloadError, match="unknown action: nope"):
        Step.from_dict({"stepId": "s", "status": "pending", "action": "nope", "payload": {}})


def test_bad_payload_is_reported_with_action():
    with pytest.raises(PayloadError, match="failed to unmarshal payload for action award_level"):
        Step.from_dict({"stepId": "s", "status": "pending", "action": "award_level",
                        "payload": {"characterId": "not-a-number"}})


@pytest.mark.parametrize(
    "first, second",
    [
        (Status.COMPLETED, Status.PENDING),
        (Status.FAILED, None),
        (Status.COMPLETED, Status.FAILED),
    ],
)
def test_create_and_equip_state_consistency(first, second):
    steps = [make_step("create_and_equip_1", first, Action.CREATE_AND_EQUIP_ASSET,
                       CreateAndEquipAssetPayload(12345, ItemPayload(1001, 1)))]
    if second is not None:
        steps.append(make_step("auto_equip_step_1234567890", second, Action.EQUIP_ASSET,
                               EquipAssetPayload(12345, 1, 5, -1)))
    saga = make_saga(*steps)
    saga.validate_state_consistency()
    assert saga.validate_step_ordering() is True
    assert saga.failing() is (Status.FAILED in (first, second))