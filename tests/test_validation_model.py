import pytest

from saga_orchestrator.validation.model import (
    Condition,
    ConditionBuilder,
    ConditionError,
    ConditionInput,
    ConditionResult,
    ConditionType,
    Operator,
    ValidationResult,
)


def test_build_meso_condition():
    condition = ConditionBuilder().set_type("meso").set_operator(">=").set_value(1000).build()
    assert condition == Condition(ConditionType.MESO, Operator.GREATER_EQUAL, 1000, 0)


def test_build_item_condition_keeps_item_id():
    condition = (
        ConditionBuilder().set_type("item").set_operator("=").set_value(3).set_item_id(2000000).build()
    )
    assert condition.condition_type is ConditionType.ITEM
    assert condition.item_id == 2000000
    assert condition.value == 3


@pytest.mark.parametrize(
    "builder, message",
    [
        (lambda: ConditionBuilder().set_type("level").set_operator("="), "unsupported condition type: level"),
        (lambda: ConditionBuilder().set_type("jobId").set_operator("!="), "unsupported operator: !="),
        (lambda: ConditionBuilder().set_operator("="), "condition type is required"),
        (lambda: ConditionBuilder().set_type("fame"), "operator is required"),
        (lambda: ConditionBuilder().set_type("item").set_operator("<"), "itemId is required for item conditions"),
    ],
)
def test_build_errors(builder, message):
    with pytest.raises(ConditionError) as excinfo:
        builder().build()
    assert str(excinfo.value) == message


def test_first_error_is_kept():
    builder = ConditionBuilder().set_type("bogus").set_operator("bogus-op")
    assert str(builder.error) == "unsupported condition type: bogus"


def test_setters_ignored_after_error():
    builder = ConditionBuilder().set_type("bogus").set_value(5)
    with pytest.raises(ConditionError, match="unsupported condition type"):
        builder.build()


def test_from_input_builds_condition():
    condition = ConditionBuilder().from_input(ConditionInput(type="mapId", operator="<=", value=100000000)).build()
    assert condition == Condition(ConditionType.MAP, Operator.LESS_EQUAL, 100000000)


def test_from_input_item_requires_item_id():
    builder = ConditionBuilder().from_input(ConditionInput(type="item", operator="=", value=1))
    with pytest.raises(ConditionError, match="itemId is required for item conditions"):
        builder.build()


def test_from_input_item_error_replaces_earlier_error():
    builder = ConditionBuilder().from_input(ConditionInput(type="item", operator="!!", value=1))
    assert str(builder.error) == "itemId is required for item conditions"


def test_validation_result_collects_details():
    result = ValidationResult(character_id=12345)
    assert result.passed is True
    result.add_condition_result(ConditionResult(passed=True, description="Job check"))
    assert result.passed is True
    result.add_condition_result(ConditionResult(passed=False, description="Meso check"))
    assert result.passed is False
    assert result.details == ["Passed: Job check", "Failed: Meso check"]
    assert [r.description for r in result.results] == ["Job check", "Meso check"]


def test_validation_result_stays_failed():
    result = ValidationResult(character_id=1)
    result.add_condition_result(ConditionResult(passed=False, description="a"))
    result.add_condition_result(ConditionResult(passed=True, description="b"))
    assert result.passed is False


def test_condition_input_round_trip():
    original = ConditionInput(type="item", operator=">=", value=10, item_id=2000000)
    assert ConditionInput.from_dict(original.to_dict()) == original


def test_condition_input_omits_zero_item_id():
    data = ConditionInput(type="meso", operator="=", value=5).to_dict()
    assert "itemId" not in data
    assert data["type"] == "meso"


def test_condition_input_case_insensitive_keys():
    parsed = ConditionInput.from_dict({"Type": "item", "OPERATOR": "=", "Value": 2.0, "ItemId": 4000000})
    assert parsed == ConditionInput(type="item", operator="=", value=2, item_id=4000000)


def test_condition_input_rejects_wrong_types():
    with pytest.raises(ConditionError):
        ConditionInput.from_dict({"type": "meso", "value": "lots"})
    with pytest.raises(ConditionError):
        ConditionInput.from_dict(["not", "an", "object"])


def test_condition_result_round_trip_uses_field_names():
    original = ConditionResult(
        passed=True, description="Fame check", type="fame", operator=">", value=10, item_id=0, actual_value=12
    )
    data = original.to_dict()
    assert set(data) == {"Passed", "Description", "Type", "Operator", "Value", "ItemId", "ActualValue"}
    assert ConditionResult.from_dict(data) == original


def test_condition_result_to_dict_plain_enum_values():
    data = ConditionResult(type=ConditionType.JOB, operator=Operator.EQUALS).to_dict()
    assert data["Type"] == "jobId"
    assert type(data["Operator"]) is str