"""Tests for targeting trees."""

import numpy as np
import pytest

from flit_experiments import (
    TargetingNodeError,
    UnknownTargetingOperatorError,
    parse_targeting,
)
from flit_experiments.targeting import AllNode, ComparisonNode, EqualNode, NotNode

TARGETING_CONFIG = """{
    "ALL":[
        {"ANY":[
            {"EQ":{"field":"is_mod", "value":true}},
            {"EQ":{"field":"user_id", "values":["t2_1","t2_2","t2_3","t2_4"]}}
        ]},
        {"NOT":{
            "EQ":{"field":"is_pita", "value":true}}},
        {"EQ":{"field":"is_logged_in", "values":[true, false]}},
        {"NOT":{
            "EQ":{"field":"subreddit_id", "values":["t5_1","t5_2"]}}},
        {"ALL":[
            {"EQ":{"field":"random_numeric","values":[1,2,3,4,5]}},
            {"EQ":{"field":"random_numeric","value":5}}
        ]}
    ]
}"""


class TestParseTargeting:
    def test_nominal(self):
        targeting = parse_targeting(TARGETING_CONFIG)
        inputs = {"user_id": "t2_1", "is_mod": False, "is_pita": False, "random_numeric": 5}
        assert targeting.evaluate(inputs) is False

        inputs["is_logged_in"] = True
        assert targeting.evaluate(inputs) is True

    def test_accepts_decoded_mapping(self):
        targeting = parse_targeting({"EQ": {"field": "str_field", "value": "string_value"}})
        assert targeting.evaluate({"str_field": "string_value"})

    def test_builds_tree_of_nodes(self):
        targeting = parse_targeting(
            '{"ALL": [{"NOT": {"EQ": {"field": "A", "value": 1}}}, {"GT": {"field": "b", "value": 2}}]}'
        )
        assert isinstance(targeting.root, AllNode)
        not_node, comparison = targeting.root.children
        assert isinstance(not_node, NotNode)
        assert isinstance(not_node.child, EqualNode)
        assert not_node.child.field == "a"
        assert isinstance(comparison, ComparisonNode)
        assert comparison.op_name == "gt"

    def test_multiple_top_level_keys(self):
        config = {
            "ALL": [{"EQ": {"field": "is_mod", "value": True}}],
            "ANY": [{"EQ": {"field": "is_mod", "value": True}}],
        }
        with pytest.raises(TargetingNodeError):
            parse_targeting(config)

    def test_empty_document(self):
        with pytest.raises(TargetingNodeError):
            parse_targeting("{}")

    def test_invalid_json(self):
        with pytest.raises(TargetingNodeError, match="invalid targeting JSON"):
            parse_targeting('{"EQ": ')

    def test_not_a_mapping(self):
        with pytest.raises(TargetingNodeError):
            parse_targeting("[1, 2]")

    def test_nested_node_with_multiple_operators(self):
        config = {"ALL": [{"EQ": {"field": "a", "value": 1}, "NE": {"field": "b", "value": 2}}]}
        with pytest.raises(TargetingNodeError):
            parse_targeting(config)

    def test_unknown_operator(self):
        config = '{"UNKNOWN": [{"EQ": {"field": "is_mod", "value": true}}]}'
        with pytest.raises(UnknownTargetingOperatorError) as exc_info:
            parse_targeting(config)
        assert exc_info.value.operator == "unknown"
        assert not isinstance(exc_info.value, TargetingNodeError)

    def test_unknown_nested_operator(self):
        with pytest.raises(UnknownTargetingOperatorError):
            parse_targeting({"ANY": [{"BETWEEN": {"field": "a", "value": [1, 2]}}]})

    def test_operators_are_case_insensitive(self):
        targeting = parse_targeting('{"any": [{"Eq": {"field": "num_field", "value": 5}}]}')
        assert targeting.evaluate({"num_field": 5})


class TestEqualNode:
    @pytest.mark.parametrize("config", [
        '{"EQ":{"field":"bool_field", "value":true}}',
        '{"EQ":{"field":"num_field", "value":5}}',
        '{"EQ":{"field":"str_field", "value":"string_value"}}',
        '{"EQ":{"field":"explicit_nil_field", "value":null}}',
        '{"EQ":{"field":"implicit_nil_field", "value":null}}',
        '{"EQ":{"field":"bool_field", "values":[true, false]}}',
        '{"EQ":{"field":"num_field", "values":[5, 6, 7, 8, 9]}}',
        '{"EQ":{"field":"str_field", "values":["string_value", "string_value_2", "string_value_3"]}}',
        '{"EQ":{"field":"explicit_nil_field", "values":[null, true]}}',
        '{"EQ":{"field":"implicit_nil_field", "values":[null]}}',
    ], ids=[
        "bool", "number", "string", "nil", "field missing",
        "bool list", "number list", "string list", "nil list", "field missing list",
    ])
    def test_matches(self, config, input_set):
        assert parse_targeting(config).evaluate(input_set) is True

    @pytest.mark.parametrize("config", [
        '{"EQ":{"field":"str_field", "value":"other"}}',
        '{"EQ":{"field":"num_field", "values":[6, 7]}}',
        '{"EQ":{"field":"str_field", "value":null}}',
        '{"EQ":{"field":"implicit_nil_field", "value":"something"}}',
    ], ids=["string", "number list", "null against value", "missing field"])
    def test_misses(self, config, input_set):
        assert parse_targeting(config).evaluate(input_set) is False

    def test_booleans_are_not_numbers(self):
        assert not parse_targeting('{"EQ":{"field":"flag", "value":true}}').evaluate({"flag": 1})
        assert not parse_targeting('{"EQ":{"field":"count", "value":1}}').evaluate({"count": True})
        assert not parse_targeting('{"EQ":{"field":"count", "value":0}}').evaluate({"count": False})

    def test_numbers_match_across_int_and_float(self):
        assert parse_targeting('{"EQ":{"field":"n", "value":5}}').evaluate({"n": 5.0})
        assert parse_targeting('{"EQ":{"field":"n", "value":5.0}}').evaluate({"n": 5})
        assert parse_targeting('{"EQ":{"field":"n", "value":2.5}}').evaluate({"n": 2.5})
        assert not parse_targeting('{"EQ":{"field":"n", "value":2.5}}').evaluate({"n": 2})

    def test_numbers_do_not_match_strings(self):
        assert not parse_targeting('{"EQ":{"field":"n", "value":5}}').evaluate({"n": "5"})

    def test_field_names_are_case_insensitive(self):
        targeting = parse_targeting('{"EQ":{"field":"User_Id", "value":"t2_1"}}')
        assert targeting.evaluate({"USER_ID": "t2_1"})
        assert targeting.evaluate({"user_id": "t2_1"})

    def test_unhashable_candidate_does_not_match(self):
        assert not parse_targeting('{"EQ":{"field":"tags", "value":"a"}}').evaluate({"tags": ["a"]})

    @pytest.mark.parametrize("config", [
        '{"EQ":{}}',
        '{"EQ":{"field": "some_field"}}',
        '{"EQ":{"field": "some_field", "values": ["one", true], "value": "str_arg"}}',
        '{"EQ":{"fields": "some_field", "value": "str_arg"}}',
        '{"EQ":{"field": "some_field", "valu": "str_arg"}}',
        '{"EQ":{"field": "some_field", "values": "not a list"}}',
        '{"EQ":{"field": 5, "value": "str_arg"}}',
        '{"EQ":["field", "value"]}',
    ], ids=[
        "empty config", "one argument", "three arguments", "no field", "no value",
        "values not a list", "field not a string", "not a mapping",
    ])
    def test_bad_inputs(self, config):
        with pytest.raises(TargetingNodeError):
            parse_targeting(config)


class TestNotNode:
    @pytest.mark.parametrize("inputs, expected", [
        ({"str_field": "string_value"}, False),
        ({"str_field": "str_value"}, True),
    ], ids=["target hit", "target miss"])
    def test_negates_child(self, inputs, expected):
        targeting = parse_targeting('{"NOT":{"EQ":{"field": "str_field", "value": "string_value"}}}')
        assert targeting.evaluate(inputs) is expected

    @pytest.mark.parametrize("config", [
        '{"NOT":{}}',
        '{"NOT":{"EQ": {"field": "is_mod", "value": true}, "ALL": []}}',
        '{"NOT":[{"EQ": {"field": "is_mod", "value": true}}]}',
    ], ids=["empty config", "multiple arguments", "list"])
    def test_bad_inputs(self, config):
        with pytest.raises(TargetingNodeError):
            parse_targeting(config)


class TestOverrideNode:
    @pytest.mark.parametrize("config, expected", [
        ('{"OVERRIDE": true}', True),
        ('{"OVERRIDE": false}', False),
        ('{"OVERRIDE": "string"}', False),
        ('{"OVERRIDE": {"key": "value"}}', False),
        ('{"OVERRIDE": 1}', False),
    ], ids=["true", "false", "string", "object", "number"])
    def test_returns_literal(self, config, expected, input_set):
        assert parse_targeting(config).evaluate(input_set) is expected


class TestAnyNode:
    def test_one_match(self, input_set):
        targeting = parse_targeting({"ANY": [
            {"EQ": {"field": "num_field", "value": 5}},
            {"EQ": {"field": "str_field", "value": "str_value_1"}},
            {"EQ": {"field": "bool_field", "value": False}},
        ]})
        assert targeting.evaluate(input_set) is True

    def test_empty_list_is_false(self, input_set):
        assert parse_targeting('{"ANY": []}').evaluate(input_set) is False

    def test_requires_list(self):
        with pytest.raises(TargetingNodeError, match="array"):
            parse_targeting('{"ANY": {"field": "fieldname", "value": "notalist"}}')


class TestAllNode:
    @pytest.mark.parametrize("children, expected", [
        ([
            {"EQ": {"field": "num_field", "value": 6}},
            {"EQ": {"field": "str_field", "value": "str_value_1"}},
            {"EQ": {"field": "bool_field", "value": False}},
        ], False),
        ([
            {"EQ": {"field": "num_field", "value": 5}},
            {"EQ": {"field": "str_field", "value": "str_value_1"}},
            {"EQ": {"field": "bool_field", "value": False}},
        ], False),
        ([
            {"EQ": {"field": "num_field", "value": 5}},
            {"EQ": {"field": "str_field", "value": "string_value"}},
            {"EQ": {"field": "bool_field", "value": True}},
        ], True),
        ([], True),
    ], ids=["no match", "some match", "all match", "empty list"])
    def test_evaluate(self, children, expected, input_set):
        assert parse_targeting({"ALL": children}).evaluate(input_set) is expected

    def test_requires_list(self):
        with pytest.raises(TargetingNodeError, match="array"):
            parse_targeting('{"ALL": {"field": "fieldname", "value": "notalist"}}')


class TestComparisonNode:
    @pytest.mark.parametrize("operator, value, expected", [
        ("GT", 5, False), ("GT", 4, True), ("GT", 6, False),
        ("LT", 5, False), ("LT", 4, False), ("LT", 6, True),
        ("GE", 5, True), ("GE", 4, True), ("GE", 6, False),
        ("LE", 5, True), ("LE", 4, False), ("LE", 6, True),
        ("NE", 5, False), ("NE", 4, True), ("NE", 6, True),
    ])
    def test_compares_against_threshold(self, operator, value, expected, input_set):
        config = {operator: {"field": "num_field", "value": value}}
        assert parse_targeting(config).evaluate(input_set) is expected

    @pytest.mark.parametrize("operator", ["GT", "GE", "LT", "LE", "NE"])
    @pytest.mark.parametrize("field", ["explicit_nil_field", "implicit nil field"])
    def test_nil_is_never_compared(self, operator, field, input_set):
        config = {operator: {"field": field, "value": None}}
        assert parse_targeting(config).evaluate(input_set) is False

    @pytest.mark.parametrize("operator", ["GT", "GE", "LT", "LE", "NE"])
    def test_missing_field_with_numeric_threshold(self, operator, input_set):
        config = {operator: {"field": "implicit_nil_field", "value": 0}}
        assert parse_targeting(config).evaluate(input_set) is False

    def test_non_numeric_candidates_never_match(self):
        targeting = parse_targeting('{"NE": {"field": "x", "value": 5}}')
        assert targeting.evaluate({"x": "4"}) is False
        assert targeting.evaluate({"x": True}) is False

    def test_float_candidates(self):
        assert parse_targeting('{"GT": {"field": "x", "value": 5}}').evaluate({"x": 5.5})
        assert parse_targeting('{"LT": {"field": "x", "value": 5.25}}').evaluate({"x": 5.2})

    def test_field_names_are_case_insensitive(self):
        assert parse_targeting('{"GE": {"field": "Karma", "value": 10}}').evaluate({"KARMA": 11})

    @pytest.mark.parametrize("config", [
        '{"LE": {}}',
        '{"LE": {"field": "some_field"}}',
        '{"LE": {"field": "some_field", "values": ["one", true], "value": "str_arg"}}',
        '{"LE": {"fields": "some_field", "value": "str_arg"}}',
        '{"LE": {"field": "some_field", "valu": "str_arg"}}',
        '{"LE": {"field": "some_field", "values": [1, 2]}}',
    ], ids=[
        "config empty", "config one argument", "config three arguments",
        "config no field", "config no value", "values instead of value",
    ])
    def test_bad_inputs(self, config):
        with pytest.raises(TargetingNodeError):
            parse_targeting(config)


NUMBER_TYPES = [
    int, float,
    np.int8, np.int16, np.int32, np.int64,
    np.uint8, np.uint16, np.uint32, np.uint64,
    np.float32, np.float64,
]


class TestNumberTypes:
    @pytest.mark.parametrize("number_type", NUMBER_TYPES, ids=lambda t: t.__name__)
    @pytest.mark.parametrize("config", [
        '{"GE": {"field": "num_field", "value": 5}}',
        '{"EQ": {"field": "num_field", "value": 5}}',
        '{"EQ": {"field": "num_field", "value": 5.0}}',
        '{"EQ": {"field": "num_field", "values": [1, 5]}}',
    ], ids=["ge", "eq-int", "eq-float", "eq-values"])
    def test_all_widths_match(self, config, number_type):
        assert parse_targeting(config).evaluate({"num_field": number_type(5)}) is True

    @pytest.mark.parametrize("number_type", NUMBER_TYPES, ids=lambda t: t.__name__)
    def test_all_widths_compare(self, number_type):
        assert parse_targeting('{"LT": {"field": "num_field", "value": 6}}').evaluate(
            {"num_field": number_type(5)}
        ) is True
        assert parse_targeting('{"GT": {"field": "num_field", "value": 6}}').evaluate(
            {"num_field": number_type(5)}
        ) is False

    @pytest.mark.parametrize("number_type", [float, np.float16, np.float32, np.float64],
                             ids=lambda t: t.__name__)
    @pytest.mark.parametrize("value", [0.1, 2.5, -0.3])
    def test_fractional_floats_match_at_their_own_precision(self, number_type, value):
        config = {"EQ": {"field": "ratio", "value": value}}
        assert parse_targeting(config).evaluate({"ratio": number_type(value)}) is True

    def test_fractional_float32_keeps_distinct_values_apart(self):
        config = {"EQ": {"field": "ratio", "value": 0.2}}
        assert parse_targeting(config).evaluate({"ratio": np.float32(0.1)}) is False
