"""
Conversion of decoded return values into display trees.

Rendering is a pure function of the value and the declared output metadata;
the resulting nodes carry no presentation details.
:py:func:`format_tree` turns a tree into indented plain text.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ._catalog import FunctionOutput

NO_VALUE_TEXT = "No return value"
EMPTY_SEQUENCE_TEXT = "[]"
ZERO_SALT = "0x" + "0" * 64
ZERO_SALT_PLACEHOLDER = "0x000...000"


@dataclass(frozen=True)
class Leaf:
    """A formatted primitive value."""

    text: str
    type_name: None | str = None


@dataclass(frozen=True)
class NoValue:
    """Stands for an absent return value."""


@dataclass(frozen=True)
class EmptySequence:
    """Stands for an empty list, as opposed to an absent value."""


@dataclass(frozen=True)
class Labeled:
    """A named field of a record."""

    label: str
    type_name: str
    child: "Node"


@dataclass(frozen=True)
class Items:
    """Renderings of sequence elements, in order."""

    children: tuple["Node", ...]


@dataclass(frozen=True)
class Record:
    """Fields of a keyed structure."""

    entries: tuple[Labeled, ...]
    domain_separator: bool = False
    """``True`` if the structure was recognized as an EIP-712 domain separator."""


Node = Leaf | NoValue | EmptySequence | Labeled | Items | Record


DOMAIN_SEPARATOR_FIELDS = (
    ("name", "Name", "string"),
    ("version", "Version", "string"),
    ("chainId", "Chain ID", "uint256"),
    ("verifyingContract", "Verifying Contract", "address"),
    ("salt", "Salt", "bytes32"),
    ("extensions", "Extensions", "uint256[]"),
)

_DOMAIN_SEPARATOR_REQUIRED = frozenset(
    {"name", "version", "chainId", "verifyingContract", "salt"}
)


def _is_integer_key(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return True
    if not isinstance(key, str):
        return False
    try:
        int(key)
    except ValueError:
        return False
    return True


def _named_keys(value: Mapping[Any, Any]) -> list[Any]:
    # Array-style decoders may attach positional aliases alongside the named fields.
    return [key for key in value if not _is_integer_key(key)]


def is_domain_separator(value: Mapping[Any, Any]) -> bool:
    """
    Checks if the keys of ``value`` (ignoring integer-like ones)
    are exactly those of an EIP-712 domain, with an optional ``extensions``.
    """
    named = set(_named_keys(value))
    named.discard("extensions")
    return named == _DOMAIN_SEPARATOR_REQUIRED


def _member_outputs(outputs: Sequence[FunctionOutput]) -> Sequence[FunctionOutput]:
    # A single tuple descriptor describes the members of the value, not the value itself.
    if len(outputs) == 1 and outputs[0].is_tuple:
        return outputs[0].components
    return outputs


def _element_outputs(
    outputs: None | Sequence[FunctionOutput], index: int
) -> None | list[FunctionOutput]:
    if not outputs:
        return None
    if len(outputs) == 1 and outputs[0].is_array:
        return [outputs[0].element()]
    members = _member_outputs(outputs)
    if index < len(members):
        return [members[index]]
    return None


def _field_output(
    outputs: None | Sequence[FunctionOutput], key: str, position: int
) -> None | FunctionOutput:
    if not outputs:
        return None
    members = _member_outputs(outputs)
    for output in members:
        if output.name == key:
            return output
    if position < len(members):
        return members[position]
    return None


def _runtime_type_name(value: Any) -> str:
    return type(value).__name__


def format_value(value: Any, type_name: None | str = None) -> str:
    """Formats a primitive value according to its declared type, or its runtime type."""
    if type_name == "address" or (
        isinstance(value, str) and value.startswith("0x") and len(value) == 42  # noqa: PLR2004
    ):
        return str(value)

    if type_name is not None:
        if "int" in type_name and isinstance(value, (int, str)):
            return str(value)
        if type_name == "bool":
            return "true" if value else "false"

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, indent=2, default=str)
    return str(value)


def _render_domain_separator(value: Mapping[Any, Any]) -> Record:
    entries = []
    for key, label, type_name in DOMAIN_SEPARATOR_FIELDS:
        if key not in value or value[key] is None:
            continue
        child = render(value[key], [FunctionOutput(type=type_name)])
        if key == "salt" and isinstance(child, Leaf) and child.text.lower() == ZERO_SALT:
            child = Leaf(ZERO_SALT_PLACEHOLDER, type_name)
        entries.append(Labeled(label, type_name, child))
    return Record(tuple(entries), domain_separator=True)


def _render_record(
    value: Mapping[Any, Any], outputs: None | Sequence[FunctionOutput]
) -> Record:
    entries = []
    for position, key in enumerate(_named_keys(value)):
        field_value = value[key]
        output = _field_output(outputs, str(key), position)
        if output is None:
            type_name = _runtime_type_name(field_value)
            child = render(field_value)
        else:
            type_name = output.type
            child = render(field_value, [output])
        entries.append(Labeled(str(key), type_name, child))
    return Record(tuple(entries))


def render(value: Any, outputs: None | Sequence[FunctionOutput] = None) -> Node:
    """
    Builds the display tree of a decoded return value.

    ``outputs`` are the declared outputs describing ``value``: either the function's outputs
    (for the top-level value) or a single descriptor (for nested values).
    Without them, values are rendered according to their runtime types.
    """
    if value is None:
        return NoValue()

    if isinstance(value, (list, tuple)):
        if not value:
            return EmptySequence()
        return Items(
            tuple(
                render(item, _element_outputs(outputs, index)) for index, item in enumerate(value)
            )
        )

    # The domain separator check must precede the generic keyed structure one.
    if isinstance(value, Mapping):
        if is_domain_separator(value):
            return _render_domain_separator(value)
        return _render_record(value, outputs)

    type_name = outputs[0].type if outputs and len(outputs) == 1 else None
    return Leaf(format_value(value, type_name), type_name)


def _attach(head: str, lines: list[str]) -> list[str]:
    if len(lines) == 1:
        return [f"{head} {lines[0]}"]
    return [head] + ["  " + line for line in lines]


def _lines(node: Node) -> list[str]:
    if isinstance(node, NoValue):
        return [NO_VALUE_TEXT]
    if isinstance(node, EmptySequence):
        return [EMPTY_SEQUENCE_TEXT]
    if isinstance(node, Leaf):
        return node.text.splitlines() or [""]
    if isinstance(node, Labeled):
        return _attach(f"{node.label} ({node.type_name}):", _lines(node.child))
    if isinstance(node, Items):
        lines = []
        for index, child in enumerate(node.children):
            lines.extend(_attach(f"[{index}]", _lines(child)))
        return lines
    if isinstance(node, Record):
        lines = []
        for entry in node.entries:
            lines.extend(_lines(entry))
        return lines or ["{}"]
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def format_tree(node: Node) -> str:
    """Formats a display tree as indented text."""
    return "\n".join(_lines(node))
