"""
Targeting trees

A targeting configuration is a small predicate language stored in the
manifest as JSON, for example:

    {"ALL": [
        {"EQ": {"field": "is_logged_in", "value": true}},
        {"NOT": {"EQ": {"field": "country", "values": ["DE", "FR"]}}},
        {"GE": {"field": "account_age_days", "value": 30}}
    ]}

parse_targeting() compiles such a document into an immutable tree of
nodes. Every node answers evaluate(inputs) for a mapping of lower-cased
field names to values; the Targeting root takes care of lower-casing the
caller's keys.

Operators (case-insensitive): ALL, ANY, NOT, EQ, GT, GE, LT, LE, NE and
OVERRIDE.
"""

import json
import math
import numbers
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Tuple, Union

from .errors import TargetingNodeError, UnknownTargetingOperatorError


def _is_number(value: Any) -> bool:
    # bool is an Integral in Python but never a number for targeting
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _canonical_number(value: Any) -> str:
    if isinstance(value, numbers.Integral):
        return str(int(value))
    number = float(value)
    if math.isfinite(number) and number.is_integer():
        return str(int(number))
    # Shortest form at the value's own precision, so a float32 0.1 reads "0.1"
    return str(value)


def _typed(value: Any) -> Tuple[str, Any]:
    """Key used by EQ so that 5 == 5.0 but True != 1"""
    if value is None:
        return ("null", None)
    if isinstance(value, bool):
        return ("bool", value)
    if _is_number(value):
        return ("number", _canonical_number(value))
    if isinstance(value, str):
        return ("str", value)
    return (type(value).__name__, value)


def lower_keys(inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {key.lower(): value for key, value in inputs.items()}


@dataclass(frozen=True)
class AllNode:
    """True if every child is true (and for an empty list)"""
    children: Tuple["Node", ...]

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        return all(child.evaluate(inputs) for child in self.children)


@dataclass(frozen=True)
class AnyNode:
    """True if at least one child is true (never for an empty list)"""
    children: Tuple["Node", ...]

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        return any(child.evaluate(inputs) for child in self.children)


@dataclass(frozen=True)
class NotNode:
    child: "Node"

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        return not self.child.evaluate(inputs)


@dataclass(frozen=True)
class EqualNode:
    """
    True if a field equals one of the accepted values

    A missing field compares as null, so {"value": null} matches both an
    explicit None and an absent field.
    """
    field: str
    accepted: frozenset

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        try:
            return _typed(inputs.get(self.field)) in self.accepted
        except TypeError:
            # unhashable candidate, e.g. a list
            return False


@dataclass(frozen=True)
class ComparisonNode:
    """
    Numeric comparison of a field against a threshold

    Only numeric candidates can match; a missing, null or non-numeric
    field (or threshold) makes the node false.
    """
    field: str
    value: Any
    op_name: str
    compare: Callable[[float, float], bool]

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        candidate = inputs.get(self.field)
        if not _is_number(candidate) or not _is_number(self.value):
            return False
        return self.compare(float(candidate), float(self.value))


@dataclass(frozen=True)
class OverrideNode:
    """Constant result; anything but a JSON boolean counts as false"""
    return_value: bool

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        return self.return_value


Node = Union[AllNode, AnyNode, NotNode, EqualNode, ComparisonNode, OverrideNode]


@dataclass(frozen=True)
class Targeting:
    """Root of a compiled targeting tree"""
    root: Node

    def evaluate(self, inputs: Mapping[str, Any]) -> bool:
        return self.root.evaluate(lower_keys(inputs))


COMPARISONS: Dict[str, Callable[[float, float], bool]] = {
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
    "ne": operator.ne,
}


def _single_operator(node: Any) -> Tuple[str, Any]:
    if not isinstance(node, Mapping):
        raise TargetingNodeError(f"node type {type(node).__name__} unknown")
    if len(node) != 1:
        raise TargetingNodeError(f"targeting node expects a single operator key, got {len(node)}")
    key, value = next(iter(node.items()))
    if not isinstance(key, str):
        raise TargetingNodeError(f"unknown key type {type(key).__name__}")
    return key, value


def _children(name: str, value: Any) -> Tuple[Node, ...]:
    if not isinstance(value, list):
        raise TargetingNodeError(f"input to {name} expects an array")
    return tuple(_parse_node(child) for child in value)


def _field(name: str, inputs: Mapping[str, Any]) -> str:
    if "field" not in inputs:
        raise TargetingNodeError(f"{name} expects input key 'field'")
    field = inputs["field"]
    if not isinstance(field, str):
        raise TargetingNodeError(f"{name} expects 'field' to be a string")
    return field.lower()


def _equal_node(inputs: Any) -> EqualNode:
    if not isinstance(inputs, Mapping) or len(inputs) != 2:
        raise TargetingNodeError("EqualNode expects exactly two fields")
    field = _field("EqualNode", inputs)
    if "values" in inputs:
        values = inputs["values"]
        if not isinstance(values, list):
            raise TargetingNodeError("EqualNode expects 'values' to be an array")
    elif "value" in inputs:
        values = [inputs["value"]]
    else:
        raise TargetingNodeError("EqualNode expects input key 'value' or 'values'")
    try:
        accepted = frozenset(_typed(value) for value in values)
    except TypeError:
        raise TargetingNodeError("EqualNode expects scalar values")
    return EqualNode(field=field, accepted=accepted)


def _comparison_node(op_name: str, inputs: Any) -> ComparisonNode:
    if not isinstance(inputs, Mapping) or len(inputs) != 2:
        raise TargetingNodeError("ComparisonNode expects exactly two fields")
    field = _field("ComparisonNode", inputs)
    if "value" not in inputs:
        raise TargetingNodeError("ComparisonNode expects input key 'value'")
    return ComparisonNode(
        field=field,
        value=inputs["value"],
        op_name=op_name,
        compare=COMPARISONS[op_name],
    )


def _not_node(inputs: Any) -> NotNode:
    if not isinstance(inputs, Mapping) or len(inputs) != 1:
        raise TargetingNodeError("NotNode expects exactly one field")
    return NotNode(child=_parse_node(inputs))


def _parse_node(node: Any) -> Node:
    key, value = _single_operator(node)
    op_name = key.lower()
    if op_name == "all":
        return AllNode(children=_children("AllNode", value))
    if op_name == "any":
        return AnyNode(children=_children("AnyNode", value))
    if op_name == "not":
        return _not_node(value)
    if op_name == "eq":
        return _equal_node(value)
    if op_name == "override":
        return OverrideNode(return_value=value is True)
    if op_name in COMPARISONS:
        return _comparison_node(op_name, value)
    raise UnknownTargetingOperatorError(op_name)


def parse_targeting(config: Union[str, bytes, Mapping[str, Any]]) -> Targeting:
    """
    Compile a targeting configuration into a Targeting tree

    Args:
        config: The predicate document, either as JSON text or already decoded

    Returns:
        Immutable Targeting tree

    Raises:
        TargetingNodeError: If the document or one of its nodes is malformed
        UnknownTargetingOperatorError: If an operator is not recognized
    """
    if isinstance(config, (str, bytes, bytearray)):
        try:
            config = json.loads(config)
        except ValueError as e:
            raise TargetingNodeError(f"invalid targeting JSON: {e}") from e
    if not isinstance(config, Mapping) or len(config) != 1:
        raise TargetingNodeError("call to create targeting tree expects single input key")
    return Targeting(root=_parse_node(config))
