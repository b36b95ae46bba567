# saga-orchestrator

This package provides data models and helpers for multi-step transactions
organised as sagas. A saga is an ordered list of steps. Each step is `pending`,
`completed` or `failed`, and it carries a typed payload chosen by its action.
The package has no dependencies beyond the standard library.

## Modules

### `saga_orchestrator.saga.model`

- `Saga` has the fields `transaction_id`, `saga_type`, `initiated_by` and
  `steps`. Its methods are:
  - `failing()`
  - `current_step()`, which returns the earliest pending step or `None`
  - `find_furthest_completed_step_index()`, `find_earliest_pending_step_index()`
    and `find_failed_step_index()`, each of which returns `-1` when nothing matches
  - `completed_step_count()` and `pending_step_count()`
- `Saga.set_step_status(index, status)` checks the transition first, then sets
  the status and updates the step's `updated_at`. The allowed transitions are:
  - pending → completed or failed
  - completed → failed
  - failed → pending

  `set_step_status_unchecked` skips the check.
- `Saga.validate_state_consistency()` raises `SagaStateError` in these cases:
  - a completed step comes after a pending one
  - two steps share an ID
  - a status is unknown
  - an action is empty
  - a failing saga does not have exactly one failed step
- `Step` is read from a dict or JSON with `from_dict` and `from_json`. Its
  `payload` is decoded into the dataclass that belongs to its `action`. An
  unknown action, a missing payload or a malformed payload raises
  `PayloadError`. `to_dict` and `to_json` write a step back out.
- The enums are `SagaType`, `Status` and `Action`.

### `saga_orchestrator.saga.payloads`

This module has one dataclass for each kind of payload, for example:

- `AwardItemActionPayload`
- `AwardExperiencePayload`
- `EquipAssetPayload`
- `CharacterCreatePayload`
- `CreateAndEquipAssetPayload`

`decode_payload(payload_type, data)` builds a payload from JSON-style data. It
checks the types and integer ranges of the fields, and it raises `PayloadError`
when a value does not fit. `encode_payload(payload)` turns a payload back into
JSON-style data.

### `saga_orchestrator.saga.rest`

`RestModel` and `StepRestModel` are the wire form of a saga. Timestamps in this
form are RFC 3339 strings.

- `transform(saga)` converts a saga to the wire form.
- `extract(rest_model)` converts the wire form back to a saga.
- `unmarshal_payload(action, raw_payload)` decodes the payloads of the
  award-inventory, award-experience, award-level, award-mesos, warp and
  destroy-asset actions. Payloads of any other action are passed through
  unchanged.
- `parse_time(text)` falls back to the current time when the text is not a
  valid timestamp.

### `saga_orchestrator.validation.model` and `saga_orchestrator.validation.rest`

- `ConditionBuilder` builds a `Condition` from a type (`ConditionType`), an
  `Operator`, a value and, for item conditions, an item ID. `build()` raises
  `ConditionError` on the first problem it found.
- `ValidationResult` collects `ConditionResult`s together with readable
  details.
- `validation.rest.RestModel` is the wire form of a validation request or
  response.
  - `transform` converts a `ValidationResult` to the wire form.
  - `extract` returns the character ID and the conditions of a request. It
    rejects a request that has a zero ID or no conditions.

### `saga_orchestrator.teardown`

`get_teardown_manager()` returns the single `TeardownManager` for the process.
When it is first created on the main thread, it installs handlers for
SIGINT, SIGTERM and SIGHUP.

- `register(func)` adds a callback to be run at shutdown. If shutdown has
  already happened, the callback runs at once.
- `shutdown()` sets `stop_event`, then runs every registered callback
  concurrently and waits for all of them to finish.
- `wait()` blocks until a termination signal arrives, then calls `shutdown()`.

### `saga_orchestrator.tasks`

Subclass `Task` and provide a `sleep_time` property and a `run()` method.
`register(task, stop_event)` starts a daemon thread that waits `sleep_time`
seconds and then calls `run()`, over and over. The thread stops once
`stop_event` is set.

## Example

```python
import uuid

from saga_orchestrator.saga.model import Action, Saga, SagaType, Status, Step
from saga_orchestrator.saga.payloads import AwardItemActionPayload, ItemPayload

saga = Saga(
    transaction_id=uuid.uuid4(),
    saga_type=SagaType.INVENTORY_TRANSACTION,
    initiated_by="npc-9000",
    steps=[
        Step(
            step_id="award",
            status=Status.PENDING,
            action=Action.AWARD_ASSET,
            payload=AwardItemActionPayload(
                character_id=12345,
                item=ItemPayload(template_id=2000000, quantity=5),
            ),
        ),
    ],
)

saga.validate_state_consistency()
saga.set_step_status(0, Status.COMPLETED)
assert saga.current_step() is None
```

## What it does not do

This package only models sagas and checks their state. It does not:

- store sagas
- carry out step actions or run compensation
- serve an HTTP API
- publish or consume events

Those tasks are left to the application that uses these models.

## Installing and testing

```
pip install .[test]
pytest
```