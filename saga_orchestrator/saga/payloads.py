"""Typed payloads carried by saga steps, with JSON encoding and decoding."""

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, get_args, get_origin

from ..validation.model import ConditionInput

_BYTE = (0, 0xFF)
_UINT16 = (0, 0xFFFF)
_UINT32 = (0, 0xFFFFFFFF)
_INT16 = (-0x8000, 0x7FFF)
_INT32 = (-0x80000000, 0x7FFFFFFF)

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})\Z"
)


class PayloadError(ValueError):
    """Raised when a payload cannot be decoded."""


def _num(bounds: tuple[int, int]) -> Any:
    return field(default=0, metadata={"bounds": bounds})


@dataclass
class ItemPayload:
    template_id: int = _num(_UINT32)
    quantity: int = _num(_UINT32)


@dataclass
class AwardItemActionPayload:
    character_id: int = _num(_UINT32)
    item: ItemPayload = field(default_factory=ItemPayload)


@dataclass
class WarpToRandomPortalPayload:
    character_id: int = _num(_UINT32)
    field_id: str = ""


@dataclass
class WarpToPortalPayload:
    character_id: int = _num(_UINT32)
    field_id: str = ""
    portal_id: int = _num(_UINT32)


@dataclass
class ExperienceDistributions:
    experience_type: str = ""
    amount: int = _num(_UINT32)
    attr1: int = _num(_UINT32)


@dataclass
class AwardExperiencePayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)
    distributions: list[ExperienceDistributions] = field(default_factory=list)


@dataclass
class AwardLevelPayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)
    amount: int = _num(_BYTE)


@dataclass
class AwardMesosPayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)
    actor_id: int = _num(_UINT32)
    actor_type: str = ""
    amount: int = _num(_INT32)


@dataclass
class DestroyAssetPayload:
    character_id: int = _num(_UINT32)
    template_id: int = _num(_UINT32)
    quantity: int = _num(_UINT32)


@dataclass
class EquipAssetPayload:
    character_id: int = _num(_UINT32)
    inventory_type: int = _num(_UINT32)
    source: int = _num(_INT16)
    destination: int = _num(_INT16)


@dataclass
class UnequipAssetPayload:
    character_id: int = _num(_UINT32)
    inventory_type: int = _num(_UINT32)
    source: int = _num(_INT16)
    destination: int = _num(_INT16)


@dataclass
class ChangeJobPayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)
    job_id: int = _num(_UINT16)


@dataclass
class CreateSkillPayload:
    character_id: int = _num(_UINT32)
    skill_id: int = _num(_UINT32)
    level: int = _num(_BYTE)
    master_level: int = _num(_BYTE)
    expiration: datetime = _ZERO_TIME


@dataclass
class UpdateSkillPayload:
    character_id: int = _num(_UINT32)
    skill_id: int = _num(_UINT32)
    level: int = _num(_BYTE)
    master_level: int = _num(_BYTE)
    expiration: datetime = _ZERO_TIME


@dataclass
class ValidateCharacterStatePayload:
    character_id: int = _num(_UINT32)
    conditions: list[ConditionInput] = field(default_factory=list)


@dataclass
class RequestGuildNamePayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)


@dataclass
class RequestGuildEmblemPayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)


@dataclass
class RequestGuildDisbandPayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)


@dataclass
class RequestGuildCapacityIncreasePayload:
    character_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    channel_id: int = _num(_BYTE)


@dataclass
class CreateInvitePayload:
    invite_type: str = ""
    originator_id: int = _num(_UINT32)
    target_id: int = _num(_UINT32)
    reference_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)


@dataclass
class CharacterCreatePayload:
    """Character creation request; attributes beyond these come from the character service."""

    account_id: int = _num(_UINT32)
    world_id: int = _num(_BYTE)
    name: str = ""
    gender: int = _num(_BYTE)
    level: int = _num(_BYTE)
    strength: int = _num(_UINT16)
    dexterity: int = _num(_UINT16)
    intelligence: int = _num(_UINT16)
    luck: int = _num(_UINT16)
    job_id: int = _num(_UINT16)
    hp: int = _num(_UINT16)
    mp: int = _num(_UINT16)
    face: int = _num(_UINT32)
    hair: int = _num(_UINT32)
    skin: int = _num(_BYTE)
    top: int = _num(_UINT32)
    bottom: int = _num(_UINT32)
    shoes: int = _num(_UINT32)
    weapon: int = _num(_UINT32)
    map_id: int = _num(_UINT32)


@dataclass
class CreateAndEquipAssetPayload:
    character_id: int = _num(_UINT32)
    item: ItemPayload = field(default_factory=ItemPayload)


def _json_key(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", str(tp))


def _mismatch(value: Any, where: str, tp: Any) -> PayloadError:
    return PayloadError(f"cannot unmarshal {_kind(value)} into field {where} of type {_type_name(tp)}")


def _zero(tp: Any) -> Any:
    if get_origin(tp) is list:
        return []
    if dataclasses.is_dataclass(tp):
        return tp()
    if tp is datetime:
        return _ZERO_TIME
    return tp()


def _parse_time(text: str) -> datetime:
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"not an RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _decode(tp: Any, value: Any, where: str, bounds: Optional[tuple[int, int]]) -> Any:
    if value is None:
        return _zero(tp)
    if get_origin(tp) is list:
        if not isinstance(value, (list, tuple)):
            raise _mismatch(value, where, tp)
        (item_type,) = get_args(tp)
        return [_decode(item_type, item, f"{where}[{i}]", None) for i, item in enumerate(value)]
    if dataclasses.is_dataclass(tp):
        return _decode_object(tp, value)
    if tp is bool:
        if not isinstance(value, bool):
            raise _mismatch(value, where, tp)
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(value, where, tp)
        if isinstance(value, float):
            if not value.is_integer():
                raise PayloadError(f"cannot unmarshal number {value} into field {where} of type int")
            value = int(value)
        if bounds is not None and not bounds[0] <= value <= bounds[1]:
            raise PayloadError(
                f"cannot unmarshal number {value} into field {where}: out of range {bounds[0]}..{bounds[1]}"
            )
        return value
    if tp is str:
        if not isinstance(value, str):
            raise _mismatch(value, where, tp)
        return value
    if tp is datetime:
        if not isinstance(value, str):
            raise _mismatch(value, where, tp)
        try:
            return _parse_time(value)
        except ValueError as exc:
            raise PayloadError(f"cannot parse time {value!r} for field {where}") from exc
    raise TypeError(f"unsupported payload field type {tp!r}")


def _decode_object(payload_type: type, value: Any) -> Any:
    if value is None:
        return payload_type()
    if not isinstance(value, Mapping):
        raise PayloadError(f"cannot unmarshal {_kind(value)} into value of type {payload_type.__name__}")
    folded: dict[str, Any] = {}
    for key in value:
        if isinstance(key, str):
            folded.setdefault(key.lower(), key)
    kwargs = {}
    for f in dataclasses.fields(payload_type):
        key = _json_key(f.name)
        actual = key if key in value else folded.get(key.lower())
        if actual is None or value[actual] is None:
            continue
        kwargs[f.name] = _decode(
            f.type, value[actual], f"{payload_type.__name__}.{key}", f.metadata.get("bounds")
        )
    return payload_type(**kwargs)


def decode_payload(payload_type: type, data: Any) -> Any:
    """Build a payload of the given dataclass type from decoded JSON data."""
    if not dataclasses.is_dataclass(payload_type):
        raise TypeError(f"{payload_type!r} is not a payload type")
    return _decode_object(payload_type, data)


def encode_payload(payload: Any) -> Any:
    """Turn a payload into JSON-ready data; other values pass through."""
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        out = {}
        for f in dataclasses.fields(payload):
            value = getattr(payload, f.name)
            if f.metadata.get("omitempty") and not value:
                continue
            out[_json_key(f.name)] = encode_payload(value)
        return out
    if isinstance(payload, datetime):
        return _format_time(payload)
    if isinstance(payload, Enum):
        return payload.value
    if isinstance(payload, Mapping):
        return {key: encode_payload(value) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [encode_payload(value) for value in payload]
    return payload