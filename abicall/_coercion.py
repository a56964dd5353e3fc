"""Conversion of raw input text into typed call arguments."""

import logging
import re
from collections.abc import Mapping
from typing import Any

from eth_utils import is_checksum_address

from ._abi_types import parse_integer, type_from_abi_string
from ._catalog import FunctionDescriptor, FunctionInput
from ._errors import InvalidAddressArgumentError, InvalidArgumentError

logger = logging.getLogger(__name__)

_INTEGER_TYPE_RE = re.compile(r"^u?int\d*$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(text: str) -> bool:
    """
    Checks that ``text`` is a ``0x``-prefixed 20-byte hex string.
    Mixed-case values must carry a valid EIP-55 checksum.
    """
    if not _ADDRESS_RE.match(text):
        return False
    digits = text[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return is_checksum_address(text)


def coerce_value(field: str, function_input: FunctionInput, text: str) -> Any:
    """Converts the raw text of a single input according to its declared type."""
    abi_type = function_input.type

    if _INTEGER_TYPE_RE.match(abi_type):
        try:
            integer_type = type_from_abi_string(abi_type)
            return integer_type.normalize(parse_integer(text))
        except ValueError as exc:
            raise InvalidArgumentError(field, abi_type, text, str(exc)) from exc

    if abi_type == "bool":
        return text.strip().lower() == "true"

    if abi_type == "address":
        if not is_address(text):
            raise InvalidAddressArgumentError(field, abi_type, text, f"Invalid address: {text}")
        return text

    # `bytes`, `string`, arrays and tuples are validated by the transport when encoding.
    return text


def coerce(function: FunctionDescriptor, row: Mapping[str, str]) -> list[Any]:
    """
    Builds the positional argument list for ``function`` from the raw input values in ``row``.
    Missing values are treated as empty text.
    Either every input converts, or the first failing one raises a
    :py:class:`~abicall.CoercionError` naming it.
    """
    args = []
    for field, function_input in zip(function.input_names, function.inputs, strict=True):
        args.append(coerce_value(field, function_input, row.get(field, "")))
    logger.debug("Coerced arguments for `%s`: %r", function.signature, args)
    return args
