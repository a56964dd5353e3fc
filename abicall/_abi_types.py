import json
import re
import string
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from functools import cached_property
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from ethereum_rpc import Address

from ._catalog import FunctionInput, FunctionOutput


class ABIEncodingError(Exception):
    """Raised when call arguments cannot be encoded according to the declared types."""


class ABIDecodingError(Exception):
    """Raised on an error when decoding a value in an Eth ABI encoded bytestring."""


def _from_json_text(val: Any, what: str) -> Any:
    # Arrays and tuples arrive from the input table as raw text.
    if not isinstance(val, str):
        return val
    try:
        return json.loads(val)
    except json.JSONDecodeError as exc:
        raise ValueError(f"`{what}` value must be a JSON array, got {val!r}") from exc


class Type(ABC):
    """The base type for Solidity types."""

    @property
    @abstractmethod
    def canonical_form(self) -> str:
        """Returns the type as a string in the canonical form (for ``eth_abi`` consumption)."""

    @abstractmethod
    def normalize(self, val: Any) -> Any:
        """
        Checks and possibly normalizes the value making it ready to be passed
        to ``eth_abi`` for encoding.
        """

    @abstractmethod
    def denormalize(self, val: Any) -> Any:
        """
        Converts the result of ``eth_abi`` decoding into a plain value
        (integers, booleans, strings, hex strings, lists and dicts).
        """

    def __str__(self) -> str:
        return self.canonical_form

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.canonical_form == str(other)

    def __hash__(self) -> int:
        return hash(self.canonical_form)


class _Integer(Type):
    _signed: bool
    _name: str

    def __init__(self, bits: int = 256):
        if bits <= 0 or bits > 256 or bits % 8 != 0:  # noqa: PLR2004
            raise ValueError(f"Incorrect `{self._name}` bit size: {bits}")
        self.bits = bits

    @property
    def canonical_form(self) -> str:
        return f"{self._name}{self.bits}"

    @property
    def min_value(self) -> int:
        return -(1 << (self.bits - 1)) if self._signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self._signed else (1 << self.bits) - 1

    def check_range(self, val: int) -> int:
        if not self.min_value <= val <= self.max_value:
            raise ValueError(
                f"`{self.canonical_form}` must be in range "
                f"[{self.min_value}, {self.max_value}], got {val}"
            )
        return val

    def normalize(self, val: Any) -> int:
        # `bool` is a subclass of `int`, but we would rather be more strict
        # and prevent possible bugs.
        if isinstance(val, bool):
            raise TypeError(f"`{self.canonical_form}` must correspond to an integer, got bool")
        if isinstance(val, str):
            val = parse_integer(val)
        if not isinstance(val, int):
            raise TypeError(
                f"`{self.canonical_form}` must correspond to an integer, got {type(val).__name__}"
            )
        return self.check_range(val)

    def denormalize(self, val: Any) -> int:
        return self.check_range(val)


class UInt(_Integer):
    """Corresponds to the Solidity ``uint<bits>`` type."""

    _signed = False
    _name = "uint"


class Int(_Integer):
    """Corresponds to the Solidity ``int<bits>`` type."""

    _signed = True
    _name = "int"


def parse_integer(text: str) -> int:
    """
    Parses a decimal or a ``0x``-prefixed hexadecimal integer
    (optionally with a sign and surrounding whitespace).
    Raises ``ValueError`` on anything else.
    """
    stripped = text.strip()
    sign = 1
    if stripped[:1] in ("-", "+"):
        sign = -1 if stripped[0] == "-" else 1
        stripped = stripped[1:]
    if stripped[:2].lower() == "0x":
        digits = stripped[2:]
        if not digits or any(char not in string.hexdigits for char in digits):
            raise ValueError(f"Not an integer: {text!r}")
        return sign * int(digits, 16)
    if not stripped.isascii() or not stripped.isdigit():
        raise ValueError(f"Not an integer: {text!r}")
    return sign * int(stripped, 10)


class Bytes(Type):
    """Corresponds to the Solidity ``bytes<size>`` type."""

    def __init__(self, size: None | int = None):
        if size is not None and (size <= 0 or size > 32):  # noqa: PLR2004
            raise ValueError(f"Incorrect `bytes` size: {size}")
        self.size = size

    @property
    def canonical_form(self) -> str:
        return f"bytes{self.size if self.size else ''}"

    def normalize(self, val: Any) -> bytes:
        if isinstance(val, str):
            if not val.startswith("0x"):
                raise ValueError(f"`{self.canonical_form}` must be a 0x-prefixed hex string")
            val = bytes.fromhex(val[2:])
        if not isinstance(val, bytes):
            raise TypeError(
                f"`{self.canonical_form}` must correspond to a bytestring, "
                f"got {type(val).__name__}"
            )
        if self.size is not None and len(val) != self.size:
            raise ValueError(f"Expected {self.size} bytes, got {len(val)}")
        return val

    def denormalize(self, val: Any) -> str:
        return "0x" + bytes(val).hex()


class AddressType(Type):
    """
    Corresponds to the Solidity ``address`` type.
    Not to be confused with ``ethereum_rpc.Address`` which represents an address value.
    """

    @property
    def canonical_form(self) -> str:
        return "address"

    def normalize(self, val: Any) -> bytes:
        if isinstance(val, str):
            val = Address.from_hex(val)
        if not isinstance(val, Address):
            raise TypeError(
                f"`address` must correspond to an `Address` or a hex string, "
                f"got {type(val).__name__}"
            )
        return bytes(val)

    def denormalize(self, val: Any) -> str:
        return Address.from_hex(val).checksum


class String(Type):
    """Corresponds to the Solidity ``string`` type."""

    @property
    def canonical_form(self) -> str:
        return "string"

    def normalize(self, val: Any) -> str:
        if not isinstance(val, str):
            raise TypeError(
                f"`string` must correspond to a `str`-type value, got {type(val).__name__}"
            )
        return val

    def denormalize(self, val: Any) -> str:
        return self.normalize(val)


class Bool(Type):
    """Corresponds to the Solidity ``bool`` type."""

    @property
    def canonical_form(self) -> str:
        return "bool"

    def normalize(self, val: Any) -> bool:
        if not isinstance(val, bool):
            raise TypeError(
                f"`bool` must correspond to a `bool`-type value, got {type(val).__name__}"
            )
        return val

    def denormalize(self, val: Any) -> bool:
        return self.normalize(val)


class Array(Type):
    """Corresponds to the Solidity array (``[<size>]``) type."""

    def __init__(self, element_type: Type, size: None | int = None):
        self.element_type = element_type
        self.size = size

    @cached_property
    def canonical_form(self) -> str:
        return self.element_type.canonical_form + "[" + (str(self.size) if self.size else "") + "]"

    def _check_val(self, val: Any) -> Sequence[Any]:
        if isinstance(val, (str, bytes, Mapping)) or not isinstance(val, Iterable):
            raise TypeError(f"Expected a list, got {type(val).__name__}")
        val = list(val)
        if self.size is not None and len(val) != self.size:
            raise ValueError(f"Expected {self.size} elements, got {len(val)}")
        return val

    def normalize(self, val: Any) -> list[Any]:
        val = self._check_val(_from_json_text(val, self.canonical_form))
        return [self.element_type.normalize(item) for item in val]

    def denormalize(self, val: Any) -> list[Any]:
        return [self.element_type.denormalize(item) for item in self._check_val(val)]


class Struct(Type):
    """Corresponds to the Solidity struct (tuple) type."""

    def __init__(self, fields: Sequence[tuple[None | str, Type]]):
        self.fields = tuple(fields)

    @cached_property
    def canonical_form(self) -> str:
        return "(" + ",".join(tp.canonical_form for _name, tp in self.fields) + ")"

    @property
    def named(self) -> bool:
        return all(name is not None for name, _tp in self.fields)

    def normalize(self, val: Any) -> tuple[Any, ...]:
        val = _from_json_text(val, self.canonical_form)
        if isinstance(val, Mapping):
            names = [name for name, _tp in self.fields]
            if not self.named or set(val) != set(names):
                raise ValueError(f"Expected fields {names}, got {list(val)}")
            return tuple(tp.normalize(val[name]) for name, tp in self.fields)

        if isinstance(val, (str, bytes)) or not isinstance(val, Iterable):
            raise TypeError(f"Expected a list or a dict, got {type(val).__name__}")
        val = list(val)
        if len(val) != len(self.fields):
            raise ValueError(f"Expected {len(self.fields)} elements, got {len(val)}")
        return tuple(tp.normalize(item) for item, (_name, tp) in zip(val, self.fields, strict=True))

    def denormalize(self, val: Any) -> dict[str, Any] | list[Any]:
        values = [tp.denormalize(item) for item, (_name, tp) in zip(val, self.fields, strict=True)]
        if self.named:
            return {
                name: value for (name, _tp), value in zip(self.fields, values, strict=True) if name
            }
        return values


_INTEGER_RE = re.compile(r"^(u?)int(\d*)$")
_BYTES_RE = re.compile(r"^bytes(\d*)$")
_ARRAY_RE = re.compile(r"^(.+)\[(\d*)\]$")

_NO_PARAMS: dict[str, Type] = {
    "address": AddressType(),
    "string": String(),
    "bool": Bool(),
}


def type_from_abi_string(abi_string: str) -> Type:
    """Returns the type corresponding to an elementary (non-array, non-tuple) ABI type."""
    if match := _INTEGER_RE.match(abi_string):
        bits = int(match.group(2)) if match.group(2) else 256
        return UInt(bits) if match.group(1) else Int(bits)
    if match := _BYTES_RE.match(abi_string):
        size = match.group(1)
        return Bytes(int(size) if size else None)
    if abi_string in _NO_PARAMS:
        return _NO_PARAMS[abi_string]
    raise ValueError(f"Unknown type: {abi_string}")


def dispatch_type(parameter: FunctionInput | FunctionOutput) -> Type:
    """Builds the type object for a declared parameter, recursing into arrays and tuples."""
    return _dispatch(parameter.type, parameter.components)


def _dispatch(abi_type: str, components: Sequence[FunctionOutput]) -> Type:
    if match := _ARRAY_RE.match(abi_type):
        size = match.group(2)
        return Array(_dispatch(match.group(1), components), int(size) if size else None)
    if abi_type == "tuple":
        return Struct([(component.name, dispatch_type(component)) for component in components])
    return type_from_abi_string(abi_type)


def canonical_signature(types: Iterable[Type]) -> list[str]:
    return [tp.canonical_form for tp in types]


def encode_args(types: Sequence[Type], args: Sequence[Any]) -> bytes:
    """Normalizes and encodes the arguments according to the given types."""
    if len(types) != len(args):
        raise ABIEncodingError(f"Expected {len(types)} arguments, got {len(args)}")
    try:
        normalized = [tp.normalize(arg) for tp, arg in zip(types, args, strict=True)]
        return encode(canonical_signature(types), normalized)
    except (TypeError, ValueError, EncodingError) as exc:
        raise ABIEncodingError(f"Could not encode the arguments: {exc}") from exc


def decode_args(types: Sequence[Type], data: bytes) -> tuple[Any, ...]:
    """Decodes the packed bytestring and converts the values into plain Python values."""
    try:
        values = decode(canonical_signature(types), data)
    except DecodingError as exc:
        # wrap possible `eth_abi` errors
        message = (
            f"Could not decode the return value "
            f"with the expected signature {canonical_signature(types)}: {exc}"
        )
        raise ABIDecodingError(message) from exc
    return tuple(tp.denormalize(value) for tp, value in zip(types, values, strict=True))
