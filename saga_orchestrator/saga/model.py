"""Sagas, their steps, and the rules that keep step states consistent."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from .payloads import (
    _ZERO_TIME,
    AwardExperiencePayload,
    AwardItemActionPayload,
    AwardLevelPayload,
    AwardMesosPayload,
    ChangeJobPayload,
    CharacterCreatePayload,
    CreateAndEquipAssetPayload,
    CreateInvitePayload,
    CreateSkillPayload,
    DestroyAssetPayload,
    EquipAssetPayload,
    PayloadError,
    UnequipAssetPayload,
    UpdateSkillPayload,
    WarpToPortalPayload,
    WarpToRandomPortalPayload,
    _format_time,
    _parse_time,
    decode_payload,
    encode_payload,
)


class SagaStateError(ValueError):
    """Raised when a saga's step states are invalid or a transition is not allowed."""


class SagaType(str, Enum):
    """Kind of saga."""

    INVENTORY_TRANSACTION = "inventory_transaction"
    QUEST_REWARD = "quest_reward"
    TRADE_TRANSACTION = "trade_transaction"
    CHARACTER_CREATION = "character_creation"


class Status(str, Enum):
    """Status of a single step."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Action(str, Enum):
    """Action a step performs."""

    AWARD_INVENTORY = "award_inventory"  # deprecated in favour of AWARD_ASSET
    AWARD_ASSET = "award_asset"
    AWARD_EXPERIENCE = "award_experience"
    AWARD_LEVEL = "award_level"
    AWARD_MESOS = "award_mesos"
    WARP_TO_RANDOM_PORTAL = "warp_to_random_portal"
    WARP_TO_PORTAL = "warp_to_portal"
    DESTROY_ASSET = "destroy_asset"
    EQUIP_ASSET = "equip_asset"
    UNEQUIP_ASSET = "unequip_asset"
    CHANGE_JOB = "change_job"
    CREATE_SKILL = "create_skill"
    UPDATE_SKILL = "update_skill"
    VALIDATE_CHARACTER_STATE = "validate_character_state"
    REQUEST_GUILD_NAME = "request_guild_name"
    REQUEST_GUILD_EMBLEM = "request_guild_emblem"
    REQUEST_GUILD_DISBAND = "request_guild_disband"
    REQUEST_GUILD_CAPACITY_INCREASE = "request_guild_capacity_increase"
    CREATE_INVITE = "create_invite"
    CREATE_CHARACTER = "create_character"
    CREATE_AND_EQUIP_ASSET = "create_and_equip_asset"


_STEP_PAYLOAD_TYPES: dict[Action, type] = {
    Action.AWARD_INVENTORY: AwardItemActionPayload,
    Action.AWARD_ASSET: AwardItemActionPayload,
    Action.AWARD_EXPERIENCE: AwardExperiencePayload,
    Action.AWARD_LEVEL: AwardLevelPayload,
    Action.AWARD_MESOS: AwardMesosPayload,
    Action.WARP_TO_RANDOM_PORTAL: WarpToRandomPortalPayload,
    Action.WARP_TO_PORTAL: WarpToPortalPayload,
    Action.DESTROY_ASSET: DestroyAssetPayload,
    Action.EQUIP_ASSET: EquipAssetPayload,
    Action.UNEQUIP_ASSET: UnequipAssetPayload,
    Action.CHANGE_JOB: ChangeJobPayload,
    Action.CREATE_SKILL: CreateSkillPayload,
    Action.UPDATE_SKILL: UpdateSkillPayload,
    Action.CREATE_INVITE: CreateInvitePayload,
    Action.CREATE_CHARACTER: CharacterCreatePayload,
    Action.CREATE_AND_EQUIP_ASSET: CreateAndEquipAssetPayload,
}

_MISSING = object()


def _text(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _lookup(data: Mapping, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == folded:
            return value
    return _MISSING


def _read_str(data: Mapping, key: str) -> str:
    value = _lookup(data, key)
    if value is _MISSING or value is None:
        return ""
    if not isinstance(value, str):
        raise PayloadError(f"field {key} must be a string, got {value!r}")
    return value


def _read_time(data: Mapping, key: str) -> datetime:
    value = _lookup(data, key)
    if value is _MISSING or value is None:
        return _ZERO_TIME
    if not isinstance(value, str):
        raise PayloadError(f"field {key} must be a time string, got {value!r}")
    try:
        return _parse_time(value)
    except ValueError as exc:
        raise PayloadError(f"cannot parse time {value!r} for field {key}") from exc


def _as_status(value: str) -> Union[Status, str]:
    try:
        return Status(value)
    except ValueError:
        return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Step:
    """One step within a saga."""

    step_id: str
    status: Union[Status, str]
    action: Union[Action, str]
    payload: Any = None
    created_at: datetime = _ZERO_TIME
    updated_at: datetime = _ZERO_TIME

    @classmethod
    def from_dict(cls, data: Mapping) -> "Step":
        """Decode a step, choosing the payload type from its action."""
        if not isinstance(data, Mapping):
            raise PayloadError("step must be an object")
        action_text = _read_str(data, "action")
        try:
            action = Action(action_text)
        except ValueError:
            raise PayloadError(f"unknown action: {action_text}") from None
        payload_type = _STEP_PAYLOAD_TYPES.get(action)
        if payload_type is None:
            raise PayloadError(f"unknown action: {action_text}")
        raw_payload = _lookup(data, "payload")
        if raw_payload is _MISSING:
            raise PayloadError(
                f"failed to unmarshal payload for action {action_text}: payload is missing"
            )
        try:
            payload = decode_payload(payload_type, raw_payload)
        except PayloadError as exc:
            raise PayloadError(
                f"failed to unmarshal payload for action {action_text}: {exc}"
            ) from exc
        return cls(
            step_id=_read_str(data, "stepId"),
            status=_as_status(_read_str(data, "status")),
            action=action,
            payload=payload,
            created_at=_read_time(data, "createdAt"),
            updated_at=_read_time(data, "updatedAt"),
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Step":
        return cls.from_dict(json.loads(text))

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "status": _text(self.status),
            "action": _text(self.action),
            "payload": encode_payload(self.payload),
            "createdAt": _format_time(self.created_at),
            "updatedAt": _format_time(self.updated_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class Saga:
    """A saga transaction made of ordered steps."""

    transaction_id: UUID
    saga_type: Union[SagaType, str]
    initiated_by: str = ""
    steps: list[Step] = field(default_factory=list)

    def failing(self) -> bool:
        """True when any step has failed."""
        return any(step.status == Status.FAILED for step in self.steps)

    def current_step(self) -> Optional[Step]:
        """The earliest pending step, or None."""
        return next((step for step in self.steps if step.status == Status.PENDING), None)

    def find_furthest_completed_step_index(self) -> int:
        """Index of the last completed step, or -1."""
        for index in reversed(range(len(self.steps))):
            if self.steps[index].status == Status.COMPLETED:
                return index
        return -1

    def find_earliest_pending_step_index(self) -> int:
        """Index of the first pending step, or -1."""
        return self._first_index(Status.PENDING)

    def find_failed_step_index(self) -> int:
        """Index of the first failed step, or -1."""
        return self._first_index(Status.FAILED)

    def _first_index(self, status: Status) -> int:
        return next(
            (index for index, step in enumerate(self.steps) if step.status == status), -1
        )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.steps):
            raise SagaStateError(f"invalid step index: {index}")

    def set_step_status(self, index: int, status: Status) -> None:
        """Change a step's status after checking the transition is allowed."""
        self._check_index(index)
        self.validate_state_transition(index, status)
        step = self.steps[index]
        step.status = status
        step.updated_at = _now()

    def set_step_status_unchecked(self, index: int, status: Status) -> None:
        """Change a step's status without validation; out-of-range indexes are ignored."""
        if 0 <= index < len(self.steps):
            step = self.steps[index]
            step.status = status
            step.updated_at = _now()

    def validate_step_ordering(self) -> bool:
        """True when no completed step follows a pending one."""
        found_pending = False
        for step in self.steps:
            if step.status == Status.PENDING:
                found_pending = True
            elif step.status == Status.COMPLETED and found_pending:
                return False
        return True

    def validate_state_consistency(self) -> None:
        """Raise SagaStateError if the saga's steps are inconsistent."""
        if not self.validate_step_ordering():
            raise SagaStateError("invalid step ordering detected")

        seen: set[str] = set()
        for index, step in enumerate(self.steps):
            if step.step_id in seen:
                raise SagaStateError(
                    f"duplicate step ID '{step.step_id}' found at index {index}"
                )
            seen.add(step.step_id)

        valid = {Status.PENDING, Status.COMPLETED, Status.FAILED}
        for index, step in enumerate(self.steps):
            if step.status not in valid:
                raise SagaStateError(
                    f"invalid status '{_text(step.status)}' at step index {index}"
                )

        for index, step in enumerate(self.steps):
            if _text(step.action) == "":
                raise SagaStateError(f"empty action at step index {index}")

        if self.failing():
            failed = sum(1 for step in self.steps if step.status == Status.FAILED)
            if failed != 1:
                raise SagaStateError(
                    f"saga is failing but has {failed} failed steps, expected exactly 1"
                )

    def validate_state_transition(self, step_index: int, new_status: Status) -> None:
        """Raise SagaStateError unless the step may move to the new status."""
        self._check_index(step_index)
        current = self.steps[step_index].status
        allowed = {
            Status.PENDING: {Status.COMPLETED, Status.FAILED},
            Status.COMPLETED: {Status.FAILED},
            Status.FAILED: {Status.PENDING},
        }
        if current not in allowed:
            raise SagaStateError(f"unknown status: {_text(current)}")
        if new_status not in allowed[Status(current)]:
            raise SagaStateError(
                f"invalid transition from {_text(current)} to {_text(new_status)}"
            )

    def completed_step_count(self) -> int:
        return sum(1 for step in self.steps if step.status == Status.COMPLETED)

    def pending_step_count(self) -> int:
        return sum(1 for step in self.steps if step.status == Status.PENDING)