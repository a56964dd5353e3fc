import json
import logging
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import cast

from ._errors import (
    EmptyInputError,
    MalformedEntryError,
    MalformedJsonError,
    NoFunctionsError,
    NotArrayError,
    UnknownFunctionError,
    UnknownInputError,
)

logger = logging.getLogger(__name__)

ABI_JSON = None | bool | int | float | str | Sequence["ABI_JSON"] | Mapping[str, "ABI_JSON"]
"""A JSON ABI, or any of its parts."""


class Mutability(Enum):
    """Possible states of a contract function's mutability."""

    PURE = "pure"
    """Solidity's ``pure`` (does not read or write the contract state)."""
    VIEW = "view"
    """Solidity's ``view`` (may read the contract state)."""
    NONPAYABLE = "nonpayable"
    """Solidity's ``nonpayable`` (may write the contract state)."""
    PAYABLE = "payable"
    """
    Solidity's ``payable`` (may write the contract state
    and accept associated funds with transactions).
    """

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "Mutability":
        values = {mutability.value: mutability for mutability in cls}
        if not isinstance(entry, str) or entry not in values:
            raise MalformedEntryError(f"Unknown mutability identifier: {entry!r}")
        return values[entry]

    @property
    def payable(self) -> bool:
        return self == Mutability.PAYABLE

    @property
    def mutating(self) -> bool:
        return self in {Mutability.PAYABLE, Mutability.NONPAYABLE}


def _split_array_suffix(abi_type: str) -> tuple[str, str]:
    """Splits ``tuple[2][]`` into ``("tuple", "[2][]")``."""
    bracket = abi_type.find("[")
    if bracket == -1:
        return abi_type, ""
    return abi_type[:bracket], abi_type[bracket:]


def _entry_mapping(entry: ABI_JSON, what: str) -> Mapping[str, ABI_JSON]:
    if not isinstance(entry, Mapping):
        raise MalformedEntryError(f"{what} must be a JSON object, got {entry!r}")
    return cast("Mapping[str, ABI_JSON]", entry)


def _entry_name(entry: Mapping[str, ABI_JSON]) -> None | str:
    name = entry.get("name")
    if name is None or name == "":
        return None
    if not isinstance(name, str):
        raise MalformedEntryError(f"Parameter name must be a string, got {name!r}")
    return name


def _entry_type(entry: Mapping[str, ABI_JSON]) -> str:
    abi_type = entry.get("type")
    if not isinstance(abi_type, str) or not abi_type:
        raise MalformedEntryError(f"Parameter type must be a non-empty string, got {abi_type!r}")
    return abi_type


def _entry_list(entry: Mapping[str, ABI_JSON], key: str) -> Sequence[ABI_JSON]:
    value = entry.get(key, [])
    if not isinstance(value, list):
        raise MalformedEntryError(f"`{key}` must be a list, got {value!r}")
    return value


@dataclass(frozen=True)
class FunctionOutput:
    """A declared return value (or a component of a tuple type)."""

    type: str
    name: None | str = None
    components: tuple["FunctionOutput", ...] = ()

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "FunctionOutput":
        entry_typed = _entry_mapping(entry, "An output entry")
        components = tuple(cls.from_json(c) for c in _entry_list(entry_typed, "components"))
        return cls(
            type=_entry_type(entry_typed), name=_entry_name(entry_typed), components=components
        )

    @property
    def canonical_type(self) -> str:
        """The type with tuples expanded, as used in function signatures."""
        return _canonical_type(self.type, self.components)

    def element(self) -> "FunctionOutput":
        """For an array type, returns the descriptor of its elements."""
        base, suffix = _split_array_suffix(self.type)
        if not suffix:
            raise ValueError(f"`{self.type}` is not an array type")
        last_bracket = suffix.rfind("[")
        return FunctionOutput(
            type=base + suffix[:last_bracket], name=self.name, components=self.components
        )

    @property
    def is_array(self) -> bool:
        return self.type.endswith("]")

    @property
    def is_tuple(self) -> bool:
        return self.type == "tuple"


@dataclass(frozen=True)
class FunctionInput:
    """A declared function parameter."""

    type: str
    name: None | str = None
    internal_type: None | str = None
    components: tuple[FunctionOutput, ...] = ()

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "FunctionInput":
        entry_typed = _entry_mapping(entry, "An input entry")
        internal_type = entry_typed.get("internalType")
        components = tuple(
            FunctionOutput.from_json(c) for c in _entry_list(entry_typed, "components")
        )
        return cls(
            type=_entry_type(entry_typed),
            name=_entry_name(entry_typed),
            internal_type=internal_type if isinstance(internal_type, str) else None,
            components=components,
        )

    @property
    def canonical_type(self) -> str:
        return _canonical_type(self.type, self.components)


def _canonical_type(abi_type: str, components: Sequence[FunctionOutput]) -> str:
    base, suffix = _split_array_suffix(abi_type)
    if base != "tuple":
        return abi_type
    return "(" + ",".join(c.canonical_type for c in components) + ")" + suffix


def synthesized_name(index: int) -> str:
    """The name given to an unnamed input at the given position."""
    return f"param_{index}"


@dataclass(frozen=True)
class FunctionDescriptor:
    """A contract function, as declared in the ABI."""

    name: str
    mutability: Mutability
    inputs: tuple[FunctionInput, ...] = ()
    outputs: tuple[FunctionOutput, ...] = ()
    kind: str = "function"

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "FunctionDescriptor":
        """Creates this object from a JSON ABI entry with ``type == "function"``."""
        entry_typed = _entry_mapping(entry, "A function entry")
        if entry_typed.get("type") != "function":
            raise MalformedEntryError("Expected a JSON entry with type='function'")

        name = entry_typed.get("name")
        if not isinstance(name, str) or not name:
            raise MalformedEntryError(f"Function entry has an invalid name: {name!r}")
        if "inputs" not in entry_typed:
            raise MalformedEntryError(f"Function `{name}` has no `inputs` field")
        if "stateMutability" not in entry_typed:
            raise MalformedEntryError(f"Function `{name}` has no `stateMutability` field")

        return cls(
            name=name,
            mutability=Mutability.from_json(entry_typed["stateMutability"]),
            inputs=tuple(FunctionInput.from_json(i) for i in _entry_list(entry_typed, "inputs")),
            outputs=tuple(
                FunctionOutput.from_json(o) for o in _entry_list(entry_typed, "outputs")
            ),
        )

    @cached_property
    def signature(self) -> str:
        """The canonical signature, e.g. ``transfer(address,uint256)``."""
        return self.name + "(" + ",".join(i.canonical_type for i in self.inputs) + ")"

    @cached_property
    def input_names(self) -> tuple[str, ...]:
        """
        Input names in declaration order,
        with ``param_<index>`` substituted for unnamed inputs.
        """
        return tuple(
            inp.name if inp.name is not None else synthesized_name(index)
            for index, inp in enumerate(self.inputs)
        )

    @property
    def is_read(self) -> bool:
        """``True`` for ``view`` and ``pure`` functions, which never need a signer."""
        return not self.mutability.mutating

    @property
    def has_return_value(self) -> bool:
        """
        ``False`` if the function declares no outputs,
        or a single tuple output with no components.
        """
        if not self.outputs:
            return False
        return not (
            len(self.outputs) == 1
            and self.outputs[0].type == "tuple"
            and not self.outputs[0].components
        )

    def __str__(self) -> str:
        outputs = ",".join(o.canonical_type for o in self.outputs)
        returns = f" returns ({outputs})" if self.outputs else ""
        return f"function {self.signature} {self.mutability.value}{returns}"


class FunctionCatalog(Mapping[str, FunctionDescriptor]):
    """
    An ordered mapping from a function key to its descriptor.

    The key is the function name, unless the ABI overloads that name,
    in which case every overload is keyed by its full signature.
    """

    json_abi: Sequence[ABI_JSON]
    """The ABI this catalog was parsed from."""

    def __init__(
        self, functions: Sequence[FunctionDescriptor], json_abi: Sequence[ABI_JSON] = ()
    ):
        name_counts = Counter(function.name for function in functions)
        entries: dict[str, FunctionDescriptor] = {}
        for function in functions:
            key = function.name if name_counts[function.name] == 1 else function.signature
            if key in entries:
                raise MalformedEntryError(f"Function `{key}` is declared more than once")
            entries[key] = function
        self._functions = entries
        self.json_abi = json_abi

    def __getitem__(self, key: str) -> FunctionDescriptor:
        return self._functions[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def lookup(self, key: str) -> FunctionDescriptor:
        """Same as indexing, but raises :py:class:`UnknownFunctionError`."""
        try:
            return self._functions[key]
        except KeyError:
            raise UnknownFunctionError(key) from None

    def __str__(self) -> str:
        indent = "    "
        lines = [f"{indent}{key}: {function}" for key, function in self._functions.items()]
        return "{\n" + "\n".join(lines) + "\n}"


def parse(raw_text: str) -> FunctionCatalog:
    """
    Parses ABI JSON text into a function catalog.
    Only entries with ``type == "function"`` are kept, everything else is dropped.
    """
    if not raw_text.strip():
        raise EmptyInputError

    try:
        json_abi = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise MalformedJsonError(f"Invalid ABI JSON: {exc}") from exc

    if not isinstance(json_abi, list):
        raise NotArrayError

    function_entries = [
        entry for entry in json_abi if isinstance(entry, Mapping) and entry.get("type") == "function"
    ]
    if not function_entries:
        raise NoFunctionsError

    functions = [FunctionDescriptor.from_json(entry) for entry in function_entries]
    logger.debug(
        "Parsed %d functions (%d ABI entries dropped)",
        len(functions),
        len(json_abi) - len(functions),
    )
    return FunctionCatalog(functions, json_abi)


class InputValueTable:
    """Raw text values of every function input, keyed by function key and input name."""

    def __init__(self, catalog: Mapping[str, FunctionDescriptor]):
        self._values: dict[str, dict[str, str]] = {
            key: dict.fromkeys(function.input_names, "") for key, function in catalog.items()
        }

    def set(self, function_key: str, input_name: str, value: str) -> None:
        """Sets the raw value of an input."""
        row = self._row(function_key)
        if input_name not in row:
            raise UnknownInputError(function_key, input_name)
        row[input_name] = value

    def row(self, function_key: str) -> Mapping[str, str]:
        """Returns a read-only view of the values of the function's inputs."""
        return dict(self._row(function_key))

    def _row(self, function_key: str) -> dict[str, str]:
        try:
            return self._values[function_key]
        except KeyError:
            raise UnknownFunctionError(function_key) from None

    def __contains__(self, function_key: object) -> bool:
        return function_key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def as_dict(self) -> dict[str, dict[str, str]]:
        return {key: dict(row) for key, row in self._values.items()}
