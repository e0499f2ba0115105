from alertengine.evaluation.conditions import (
    evaluate,
    evaluate_rule,
    matched_conditions,
    trigger_severity,
)
from alertengine.models.alert import AlertSeverity
from alertengine.models.rule import AlertCondition
from alertengine.models.telemetry import coerce_to_float, normalize_snapshot

from conftest import make_rule


def cond(operator, value, second_value=None, field="temperature", level=None):
    return AlertCondition(
        field=field, operator=operator, value=value, second_value=second_value, level=level
    )


def test_missing_field_is_false():
    assert evaluate(cond("GreaterThan", 10), {"humidity": 99}) is False


def test_greater_and_less_than():
    assert evaluate(cond("GreaterThan", 80), {"temperature": 85}) is True
    assert evaluate(cond("GreaterThan", 80), {"temperature": 80}) is False
    assert evaluate(cond("LessThan", 80), {"temperature": 79.9}) is True


def test_equality_uses_epsilon():
    assert evaluate(cond("Equal", 10), {"temperature": 10.00005}) is True
    assert evaluate(cond("NotEqual", 10), {"temperature": 10.00005}) is False
    assert evaluate(cond("Equal", 10), {"temperature": 10.001}) is False
    assert evaluate(cond("NotEqual", 10), {"temperature": 10.001}) is True


def test_between_is_inclusive_and_outside_is_its_negation():
    between = cond("Between", 5, 10)
    outside = cond("Outside", 5, 10)

    for reading, inside in [(7, True), (5, True), (10, True), (12, False), (4.9, False)]:
        assert evaluate(between, {"temperature": reading}) is inside
        assert evaluate(outside, {"temperature": reading}) is not inside


def test_range_without_second_value_is_false():
    assert evaluate(cond("Between", 5), {"temperature": 7}) is False
    assert evaluate(cond("Outside", 5), {"temperature": 100}) is False


def test_unparsable_values_are_false():
    assert evaluate(cond("GreaterThan", 10), {"temperature": "hot"}) is False
    assert evaluate(cond("GreaterThan", 10), {"temperature": None}) is False
    assert evaluate(cond("GreaterThan", "ten"), {"temperature": 50}) is False


def test_numeric_strings_and_bools_are_coerced():
    assert evaluate(cond("GreaterThan", "10"), {"temperature": " 12.5 "}) is True
    assert evaluate(cond("Equal", 1, field="door_open"), {"door_open": True}) is True
    assert evaluate(cond("Equal", 0, field="door_open"), {"door_open": False}) is True


def test_coerce_to_float_edge_cases():
    assert coerce_to_float("") is None
    assert coerce_to_float("nan") is None
    assert coerce_to_float([1, 2]) is None
    assert coerce_to_float(3) == 3.0
    assert coerce_to_float(10**400) is None
    assert coerce_to_float(float("nan")) is None


def test_out_of_range_and_nan_readings_fail_closed():
    assert evaluate(cond("GreaterThan", 1), {"temperature": 10**400}) is False
    assert evaluate(cond("Outside", 5, 10), {"temperature": float("nan")}) is False
    assert evaluate(cond("LessThan", 10**400), {"temperature": 5}) is False


def test_normalize_snapshot_drops_containers():
    snapshot = normalize_snapshot({"t": 1, "s": "ok", "n": None, "nested": {"a": 1}, "l": [1]})
    assert snapshot == {"t": 1, "s": "ok", "n": None}


def test_and_or_reduction():
    conditions = [
        cond("GreaterThan", 80),
        cond("LessThan", 20, field="humidity"),
    ]
    reading = {"temperature": 85, "humidity": 50}

    assert evaluate_rule(make_rule(conditions=conditions, condition_logic="AND"), reading) is False
    assert evaluate_rule(make_rule(conditions=conditions, condition_logic="or"), reading) is True
    assert len(matched_conditions(make_rule(conditions=conditions), reading)) == 1


def test_rule_without_conditions_never_fires():
    rule = make_rule(conditions=[], is_enabled=False)
    assert evaluate_rule(rule, {"temperature": 1000}) is False


def test_severity_override_picks_highest_matching_level():
    rule = make_rule(
        severity="Info",
        condition_logic="OR",
        conditions=[
            cond("GreaterThan", 80, level="Warning"),
            cond("GreaterThan", 95, level="Critical"),
            cond("LessThan", 0),
        ],
    )

    assert trigger_severity(rule, {"temperature": 85}) == AlertSeverity.WARNING
    assert trigger_severity(rule, {"temperature": 99}) == AlertSeverity.CRITICAL
    assert trigger_severity(rule, {"temperature": -5}) == AlertSeverity.INFO
