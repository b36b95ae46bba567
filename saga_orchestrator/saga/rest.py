"""Wire model for sagas and its conversion to and from the domain model."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from uuid import UUID

from .model import Action, Saga, SagaType, Status, Step
from .payloads import (
    AwardExperiencePayload,
    AwardItemActionPayload,
    AwardLevelPayload,
    AwardMesosPayload,
    DestroyAssetPayload,
    PayloadError,
    WarpToPortalPayload,
    WarpToRandomPortalPayload,
    _format_time,
    _parse_time,
    decode_payload,
    encode_payload,
)

RESOURCE = "sagas"

_NIL_UUID = UUID(int=0)
_MISSING = object()

# Actions whose payloads are decoded into typed payloads; others pass through as given.
_PAYLOAD_TYPES: dict[Action, type] = {
    Action.AWARD_INVENTORY: AwardItemActionPayload,
    Action.AWARD_EXPERIENCE: AwardExperiencePayload,
    Action.AWARD_LEVEL: AwardLevelPayload,
    Action.AWARD_MESOS: AwardMesosPayload,
    Action.WARP_TO_RANDOM_PORTAL: WarpToRandomPortalPayload,
    Action.WARP_TO_PORTAL: WarpToPortalPayload,
    Action.DESTROY_ASSET: DestroyAssetPayload,
}


def _text(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _field(data: Mapping, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == folded:
            return value
    return _MISSING


def _read_str(data: Mapping, key: str) -> str:
    value = _field(data, key)
    if value is _MISSING or value is None:
        return ""
    if not isinstance(value, str):
        raise PayloadError(f"field {key} must be a string, got {value!r}")
    return value


def _to_enum(enum_type: type, value: Any) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        return value


def _format_rfc3339(moment: datetime) -> str:
    return _format_time(moment.replace(microsecond=0))


@dataclass
class StepRestModel:
    """A saga step as it travels over the wire."""

    step_id: str = ""
    status: Union[Status, str] = ""
    action: Union[Action, str] = ""
    payload: Any = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Mapping) -> "StepRestModel":
        if not isinstance(data, Mapping):
            raise PayloadError("step must be an object")
        payload = _field(data, "payload")
        return cls(
            step_id=_read_str(data, "stepId"),
            status=_to_enum(Status, _read_str(data, "status")),
            action=_to_enum(Action, _read_str(data, "action")),
            payload=None if payload is _MISSING else payload,
            created_at=_read_str(data, "createdAt"),
            updated_at=_read_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "status": _text(self.status),
            "action": _text(self.action),
            "payload": encode_payload(self.payload),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class RestModel:
    """A saga as it travels over the wire."""

    transaction_id: UUID = _NIL_UUID
    saga_type: Union[SagaType, str] = ""
    initiated_by: str = ""
    steps: list[StepRestModel] = field(default_factory=list)

    @property
    def id(self) -> str:
        return str(self.transaction_id)

    @classmethod
    def from_dict(cls, data: Mapping) -> "RestModel":
        if not isinstance(data, Mapping):
            raise PayloadError("saga must be an object")
        raw_id = _field(data, "transactionId")
        if raw_id is _MISSING or raw_id is None:
            transaction_id = _NIL_UUID
        elif isinstance(raw_id, str):
            try:
                transaction_id = UUID(raw_id)
            except ValueError as exc:
                raise PayloadError(f"invalid transaction id: {raw_id!r}") from exc
        else:
            raise PayloadError(f"field transactionId must be a string, got {raw_id!r}")
        raw_steps = _field(data, "steps")
        if raw_steps is _MISSING or raw_steps is None:
            raw_steps = []
        if not isinstance(raw_steps, list):
            raise PayloadError("field steps must be an array")
        return cls(
            transaction_id=transaction_id,
            saga_type=_to_enum(SagaType, _read_str(data, "sagaType")),
            initiated_by=_read_str(data, "initiatedBy"),
            steps=[StepRestModel.from_dict(step) for step in raw_steps],
        )

    def to_dict(self) -> dict:
        return {
            "transactionId": str(self.transaction_id),
            "sagaType": _text(self.saga_type),
            "initiatedBy": self.initiated_by,
            "steps": [step.to_dict() for step in self.steps],
        }


def parse_time(text: str) -> datetime:
    """Parse an RFC 3339 time, falling back to the current time."""
    try:
        return _parse_time(text)
    except (ValueError, TypeError):
        return datetime.now(timezone.utc)


def unmarshal_payload(action: Union[Action, str], raw_payload: Any) -> Any:
    """Decode a raw payload into the typed payload its action expects.

    Actions without a typed payload get the raw payload back unchanged.
    """
    try:
        known = Action(action)
    except ValueError:
        return raw_payload
    payload_type = _PAYLOAD_TYPES.get(known)
    if payload_type is None:
        return raw_payload
    return decode_payload(payload_type, encode_payload(raw_payload))


def transform(saga: Saga) -> RestModel:
    """Turn a saga into its wire model."""
    return RestModel(
        transaction_id=saga.transaction_id,
        saga_type=saga.saga_type,
        initiated_by=saga.initiated_by,
        steps=[
            StepRestModel(
                step_id=step.step_id,
                status=step.status,
                action=step.action,
                payload=step.payload,
                created_at=_format_rfc3339(step.created_at),
                updated_at=_format_rfc3339(step.updated_at),
            )
            for step in saga.steps
        ],
    )


def extract(rest_model: RestModel) -> Saga:
    """Turn a wire model into a saga, decoding payloads by action."""
    steps = [
        Step(
            step_id=step.step_id,
            status=_to_enum(Status, step.status),
            action=_to_enum(Action, step.action),
            payload=unmarshal_payload(step.action, step.payload),
            created_at=parse_time(step.created_at),
            updated_at=parse_time(step.updated_at),
        )
        for step in rest_model.steps
    ]
    return Saga(
        transaction_id=rest_model.transaction_id,
        saga_type=rest_model.saga_type,
        initiated_by=rest_model.initiated_by,
        steps=steps,
    )