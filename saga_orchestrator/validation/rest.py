"""Wire model for validation requests and responses."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from .model import ConditionError, ConditionInput, ConditionResult, ValidationResult

RESOURCE = "validations"


@dataclass
class RestModel:
    """A validation request or response; the id travels outside the body."""

    id: int = 0
    conditions: list[ConditionInput] = field(default_factory=list)
    passed: bool = False
    results: list[ConditionResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping) -> "RestModel":
        if not isinstance(data, Mapping):
            raise ConditionError("validation body must be an object")
        passed = data.get("passed")
        if passed is not None and not isinstance(passed, bool):
            raise ConditionError(f"field passed must be a boolean, got {passed!r}")
        conditions = data.get("conditions") or []
        results = data.get("results") or []
        if not isinstance(conditions, list) or not isinstance(results, list):
            raise ConditionError("conditions and results must be arrays")
        return cls(
            conditions=[ConditionInput.from_dict(c) for c in conditions],
            passed=bool(passed),
            results=[ConditionResult.from_dict(r) for r in results],
        )

    def to_dict(self) -> dict:
        out: dict = {}
        if self.conditions:
            out["conditions"] = [c.to_dict() for c in self.conditions]
        out["passed"] = self.passed
        if self.results:
            out["results"] = [r.to_dict() for r in self.results]
        return out


def transform(result: ValidationResult) -> RestModel:
    """Turn a validation result into its wire model."""
    return RestModel(id=result.character_id, passed=result.passed, results=list(result.results))


def extract(rest_model: RestModel) -> tuple[int, list[ConditionInput]]:
    """Return the character id and conditions of a validation request."""
    if rest_model.id == 0:
        raise ConditionError("Id is required")
    if not rest_model.conditions:
        raise ConditionError("at least one condition is required")
    return rest_model.id, rest_model.conditions