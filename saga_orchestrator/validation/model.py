"""Character-state validation conditions and their results."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

_UINT32 = (0, 0xFFFFFFFF)


class ConditionError(ValueError):
    """Raised when a condition cannot be built or read."""


class ConditionType(str, Enum):
    """Kind of character attribute a condition checks."""

    JOB = "jobId"
    MESO = "meso"
    MAP = "mapId"
    FAME = "fame"
    ITEM = "item"


class Operator(str, Enum):
    """Comparison operator of a condition."""

    EQUALS = "="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _lookup(data: Mapping, key: str) -> tuple[bool, Any]:
    """Find a key exactly, falling back to a case-insensitive match."""
    if key in data:
        return True, data[key]
    folded = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == folded:
            return True, value
    return False, None


def _read_str(data: Mapping, key: str) -> str:
    found, value = _lookup(data, key)
    if not found or value is None:
        return ""
    if not isinstance(value, str):
        raise ConditionError(f"field {key} must be a string, got {value!r}")
    return value


def _read_int(data: Mapping, key: str, bounds: Optional[tuple[int, int]] = None) -> int:
    found, value = _lookup(data, key)
    if not found or value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConditionError(f"field {key} must be a number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ConditionError(f"field {key} must be an integer, got {value!r}")
        value = int(value)
    if bounds is not None and not bounds[0] <= value <= bounds[1]:
        raise ConditionError(f"field {key} out of range: {value}")
    return value


def _read_bool(data: Mapping, key: str) -> bool:
    found, value = _lookup(data, key)
    if not found or value is None:
        return False
    if not isinstance(value, bool):
        raise ConditionError(f"field {key} must be a boolean, got {value!r}")
    return value


@dataclass
class ConditionInput:
    """Structured input describing one condition to check."""

    type: str = ""
    operator: str = ""
    value: int = 0
    item_id: int = field(default=0, metadata={"bounds": _UINT32, "omitempty": True})

    @classmethod
    def from_dict(cls, data: Mapping) -> "ConditionInput":
        if not isinstance(data, Mapping):
            raise ConditionError("condition input must be an object")
        return cls(
            type=_read_str(data, "type"),
            operator=_read_str(data, "operator"),
            value=_read_int(data, "value"),
            item_id=_read_int(data, "itemId", _UINT32),
        )

    def to_dict(self) -> dict:
        out = {
            "type": _plain(self.type),
            "operator": _plain(self.operator),
            "value": self.value,
        }
        if self.item_id:
            out["itemId"] = self.item_id
        return out


@dataclass
class ConditionResult:
    """Outcome of evaluating one condition."""

    passed: bool = False
    description: str = ""
    type: str = ""
    operator: str = ""
    value: int = 0
    item_id: int = 0
    actual_value: int = 0

    @classmethod
    def from_dict(cls, data: Mapping) -> "ConditionResult":
        if not isinstance(data, Mapping):
            raise ConditionError("condition result must be an object")
        return cls(
            passed=_read_bool(data, "Passed"),
            description=_read_str(data, "Description"),
            type=_read_str(data, "Type"),
            operator=_read_str(data, "Operator"),
            value=_read_int(data, "Value"),
            item_id=_read_int(data, "ItemId", _UINT32),
            actual_value=_read_int(data, "ActualValue"),
        )

    def to_dict(self) -> dict:
        return {
            "Passed": self.passed,
            "Description": self.description,
            "Type": _plain(self.type),
            "Operator": _plain(self.operator),
            "Value": self.value,
            "ItemId": self.item_id,
            "ActualValue": self.actual_value,
        }


@dataclass(frozen=True)
class Condition:
    """A validated condition."""

    condition_type: ConditionType
    operator: Operator
    value: int
    item_id: int = 0


class ConditionBuilder:
    """Assembles a Condition, remembering the first problem it meets."""

    def __init__(self) -> None:
        self._condition_type: Optional[ConditionType] = None
        self._operator: Optional[Operator] = None
        self._value = 0
        self._item_id: Optional[int] = None
        self.error: Optional[ConditionError] = None

    def set_type(self, cond_type: str) -> "ConditionBuilder":
        if self.error is not None:
            return self
        try:
            self._condition_type = ConditionType(cond_type)
        except ValueError:
            self.error = ConditionError(f"unsupported condition type: {_plain(cond_type)}")
        return self

    def set_operator(self, op: str) -> "ConditionBuilder":
        if self.error is not None:
            return self
        try:
            self._operator = Operator(op)
        except ValueError:
            self.error = ConditionError(f"unsupported operator: {_plain(op)}")
        return self

    def set_value(self, value: int) -> "ConditionBuilder":
        if self.error is None:
            self._value = value
        return self

    def set_item_id(self, item_id: int) -> "ConditionBuilder":
        if self.error is None:
            self._item_id = item_id
        return self

    def from_input(self, condition_input: ConditionInput) -> "ConditionBuilder":
        self.set_type(condition_input.type)
        self.set_operator(condition_input.operator)
        self.set_value(condition_input.value)
        if condition_input.item_id != 0:
            self.set_item_id(condition_input.item_id)
        elif condition_input.type == ConditionType.ITEM.value:
            self.error = ConditionError("itemId is required for item conditions")
        return self

    def validate(self) -> "ConditionBuilder":
        if self.error is not None:
            return self
        if self._condition_type is None:
            self.error = ConditionError("condition type is required")
        elif self._operator is None:
            self.error = ConditionError("operator is required")
        elif self._condition_type is ConditionType.ITEM and self._item_id is None:
            self.error = ConditionError("itemId is required for item conditions")
        return self

    def build(self) -> Condition:
        self.validate()
        if self.error is not None:
            raise self.error
        return Condition(
            condition_type=self._condition_type,
            operator=self._operator,
            value=self._value,
            item_id=self._item_id or 0,
        )


@dataclass
class ValidationResult:
    """Aggregate result of validating a character against conditions."""

    character_id: int
    passed: bool = True
    details: list[str] = field(default_factory=list)
    results: list[ConditionResult] = field(default_factory=list)

    def add_condition_result(self, result: ConditionResult) -> None:
        if not result.passed:
            self.passed = False
        status = "Passed" if result.passed else "Failed"
        self.details.append(f"{status}: {result.description}")
        self.results.append(result)