import pytest

from scenariosignal.engine import condition_contribution, evaluate, evaluate_scenario, select_output
from scenariosignal.engine.evaluate import REASON_INTERNAL, REASON_NOT_FOUND
from scenariosignal.models import (
    CollectedCondition,
    Condition,
    Option,
    Output,
    Scenario,
)


def _make_scenario(outputs: dict[str, Output] | None = None) -> Scenario:
    return Scenario(
        id="breakout",
        name="Breakout",
        conditions={
            "trend": Condition(
                label="Trend",
                kind="radio",
                weight=99.0,
                options=(
                    Option(value="up", label="Up", weight=3.0),
                    Option(value="down", label="Down", weight=-3.0),
                ),
            ),
            "volume": Condition(
                label="Volume",
                kind="select",
                options=(
                    Option(value="high", weight=2.0),
                    Option(value="low", weight=-2.0),
                ),
            ),
            "closeAbove": Condition(label="Close above", kind="checkbox", weight=4.0),
            "note": Condition(label="Note", kind="text", weight=1.5),
        },
        outputs=outputs
        if outputs is not None
        else {
            "strong": Output(threshold=7.0, message="Strong", kind="bullish"),
            "weak": Output(threshold=3.0, message="Weak"),
            "failed": Output(threshold=-10.0, message="Failed", kind="bearish"),
        },
    )


def _collected(kind: str, value) -> CollectedCondition:
    return CollectedCondition(label="x", kind=kind, value=value)


def test_checkbox_true_adds_condition_weight() -> None:
    scenario = Scenario(
        id="s", name="S", conditions={"c1": Condition(label="c1", kind="checkbox", weight=5.0)}
    )

    result = evaluate(scenario, {"c1": _collected("checkbox", True)})

    assert result.score == 5
    assert result.kind == "neutral"
    assert result.message == "Neutral signal"


def test_select_option_weight_picks_bullish_output() -> None:
    scenario = Scenario(
        id="s",
        name="S",
        conditions={
            "c1": Condition(
                label="c1",
                kind="select",
                weight=0.0,
                options=(Option(value="up", weight=10.0), Option(value="down", weight=-10.0)),
            )
        },
        outputs={"o1": Output(threshold=5.0, message="Bullish")},
    )

    result = evaluate(scenario, {"c1": {"type": "select", "value": "up"}})

    assert result.message == "Bullish"
    assert result.score == 10
    assert result.kind == "neutral"


def test_all_condition_kinds_sum_into_score() -> None:
    collected = {
        "trend": _collected("radio", "up"),
        "volume": _collected("select", "high"),
        "closeAbove": _collected("checkbox", True),
        "note": _collected("text", "earnings beat"),
    }

    result = evaluate(_make_scenario(), collected)

    assert result.score == pytest.approx(3.0 + 2.0 + 4.0 + 1.5)
    assert result.message == "Strong"
    assert result.kind == "bullish"
    assert result.contributions == {
        "closeAbove": 4.0,
        "note": 1.5,
        "trend": 3.0,
        "volume": 2.0,
    }


def test_key_order_does_not_change_score() -> None:
    items = [
        ("note", _collected("text", "")),
        ("trend", _collected("radio", "down")),
        ("volume", _collected("select", "low")),
        ("closeAbove", _collected("checkbox", True)),
    ]
    scenario = _make_scenario()

    forward = evaluate(scenario, dict(items))
    backward = evaluate(scenario, dict(reversed(items)))

    assert forward.score == backward.score
    assert forward.to_dict() == backward.to_dict()


def test_score_matches_independent_contributions() -> None:
    scenario = _make_scenario()
    collected = {
        "trend": _collected("radio", "down"),
        "closeAbove": _collected("checkbox", False),
        "note": _collected("text", "x"),
    }

    expected = sum(
        condition_contribution(key, scenario.conditions[key], item)
        for key, item in collected.items()
    )

    assert evaluate(scenario, collected).score == expected == -1.5


def test_radio_ignores_condition_weight() -> None:
    scenario = _make_scenario()

    result = evaluate(scenario, {"trend": _collected("radio", "up")})

    assert result.score == 3.0


def test_empty_text_answer_still_counts() -> None:
    result = evaluate(_make_scenario(outputs={}), {"note": _collected("text", "")})

    assert result.score == 1.5


def test_unchecked_checkbox_adds_nothing() -> None:
    result = evaluate(_make_scenario(outputs={}), {"closeAbove": _collected("checkbox", False)})

    assert result.score == 0.0


def test_missing_values_and_unknown_keys_are_skipped() -> None:
    collected = {
        "trend": _collected("radio", None),
        "renamedCondition": _collected("checkbox", True),
    }

    result = evaluate(_make_scenario(outputs={}), collected)

    assert result.score == 0.0
    assert result.contributions == {"trend": 0.0}
    assert result.kind == "neutral"


def test_unmatched_option_and_unknown_kind_contribute_zero() -> None:
    collected = {
        "trend": _collected("radio", "sideways"),
        "closeAbove": _collected("slider", 7),
    }

    result = evaluate(_make_scenario(outputs={}), collected)

    assert result.score == 0.0
    assert result.kind == "neutral"
    assert result.reason is None


def test_options_on_checkbox_are_not_read() -> None:
    scenario = Scenario(
        id="s",
        name="S",
        conditions={
            "c1": Condition(
                label="c1",
                kind="checkbox",
                weight=2.0,
                options=(Option(value="True", weight=50.0),),
            )
        },
    )

    assert evaluate(scenario, {"c1": _collected("checkbox", True)}).score == 2.0


def test_duplicate_option_values_use_first_match() -> None:
    scenario = Scenario(
        id="s",
        name="S",
        conditions={
            "c1": Condition(
                label="c1",
                kind="select",
                options=(Option(value="up", weight=1.0), Option(value="up", weight=9.0)),
            )
        },
    )

    assert evaluate(scenario, {"c1": _collected("select", "up")}).score == 1.0


def test_empty_options_score_zero() -> None:
    scenario = Scenario(
        id="s", name="S", conditions={"c1": Condition(label="c1", kind="radio", weight=8.0)}
    )

    assert evaluate(scenario, {"c1": _collected("radio", "up")}).score == 0.0


def test_negative_weights_are_not_clamped() -> None:
    result = evaluate(
        _make_scenario(),
        {"trend": _collected("radio", "down"), "volume": _collected("select", "low")},
    )

    assert result.score == -5.0
    assert result.message == "Failed"
    assert result.kind == "bearish"


def test_empty_collection_picks_highest_threshold_at_or_below_zero() -> None:
    outputs = {
        "low": Output(threshold=-5.0, message="Low"),
        "zero": Output(threshold=0.0, message="Zero", kind="neutral"),
        "high": Output(threshold=1.0, message="High"),
    }

    result = evaluate(_make_scenario(outputs=outputs), {})

    assert result.score == 0
    assert result.message == "Zero"


def test_empty_collection_without_qualifying_output_is_neutral_default() -> None:
    outputs = {"high": Output(threshold=1.0, message="High")}

    result = evaluate(_make_scenario(outputs=outputs), {})

    assert (result.kind, result.message, result.score) == ("neutral", "Neutral signal", 0.0)


def test_equal_thresholds_pick_first_in_mapping_order() -> None:
    outputs = {
        "a": Output(threshold=0.0, message="A"),
        "b": Output(threshold=0.0, message="B"),
    }
    flipped = {"b": outputs["b"], "a": outputs["a"]}

    assert select_output(outputs, 0.0).message == "A"
    assert select_output(flipped, 0.0).message == "B"
    assert evaluate(_make_scenario(outputs=outputs), {}).message == "A"


def test_output_without_message_or_threshold() -> None:
    outputs = {
        "blank": Output(threshold=0.0, message=""),
        "unset": Output(threshold=None, message="Never"),
    }

    result = evaluate(_make_scenario(outputs=outputs), {})

    assert result.message == "Unknown result"
    assert result.kind == "neutral"


def test_missing_scenario_returns_error_result() -> None:
    result = evaluate_scenario({}, "nope", {"c1": _collected("checkbox", True)})

    assert result.kind == "error"
    assert result.message == "Analysis error"
    assert result.score == 0
    assert result.reason == REASON_NOT_FOUND
    assert result.is_error


def test_malformed_collected_input_returns_error_result() -> None:
    result = evaluate(_make_scenario(), {"trend": "not-a-mapping"})

    assert result.kind == "error"
    assert result.message == "Analysis error"
    assert result.score == 0
    assert result.reason == REASON_INTERNAL


def test_evaluation_is_deterministic() -> None:
    collected = {"trend": _collected("radio", "up"), "closeAbove": _collected("checkbox", True)}

    first = evaluate(_make_scenario(), collected)
    second = evaluate(_make_scenario(), collected)

    assert first == second


def test_definition_mapping_is_evaluated_like_a_scenario() -> None:
    definition = {
        "conditions": {"c1": {"type": "checkbox", "weight": 5}},
        "outputs": {"o1": {"threshold": 5, "message": "Bullish", "type": "bullish"}},
    }

    result = evaluate(definition, {"c1": {"type": "checkbox", "value": True}})

    assert result.score == 5
    assert result.message == "Bullish"
    assert result.kind == "bullish"


def test_empty_definition_mapping_is_neutral() -> None:
    result = evaluate({"conditions": {}, "outputs": {}}, {})

    assert (result.kind, result.message, result.score) == ("neutral", "Neutral signal", 0.0)


def test_malformed_scenario_argument_returns_error_result() -> None:
    broken_mapping = evaluate({"conditions": ["not", "a", "map"]}, {})
    wrong_type = evaluate(42, {})

    assert broken_mapping.kind == "error"
    assert broken_mapping.reason == REASON_INTERNAL
    assert wrong_type.kind == "error"
    assert wrong_type.reason == REASON_INTERNAL
