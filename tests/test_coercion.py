import pytest

from abicall import (
    CoercionError,
    FunctionCatalog,
    FunctionDescriptor,
    FunctionInput,
    InvalidAddressArgumentError,
    InvalidAddressError,
    InvalidArgumentError,
    Mutability,
    coerce,
    coerce_value,
    is_address,
)

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def test_is_address() -> None:
    assert is_address("0x" + "ab" * 20)
    assert is_address("0x" + "AB" * 20)
    assert is_address(CHECKSUMMED)
    # Mixed case must carry a valid checksum
    assert not is_address(CHECKSUMMED.replace("a", "A", 1))
    assert not is_address("0x" + "ab" * 19)
    assert not is_address("ab" * 20)
    assert not is_address("0x" + "zz" * 20)


@pytest.mark.parametrize(
    ("abi_type", "text", "expected"),
    [
        ("uint256", "1000", 1000),
        ("uint256", " 42 ", 42),
        ("uint256", "0xff", 255),
        ("uint8", "255", 255),
        ("int16", "-32768", -32768),
        ("int", "-1", -1),
        ("uint", str(2**256 - 1), 2**256 - 1),
    ],
)
def test_integers(abi_type: str, text: str, expected: int) -> None:
    assert coerce_value("x", FunctionInput(type=abi_type), text) == expected


@pytest.mark.parametrize(
    ("abi_type", "text"),
    [
        ("uint256", ""),
        ("uint256", "abc"),
        ("uint256", "1.5"),
        ("uint256", "0x"),
        ("uint256", "-1"),
        ("uint8", "256"),
        ("int8", "128"),
    ],
)
def test_invalid_integers(abi_type: str, text: str) -> None:
    message = rf"Invalid value for amount \({abi_type}\)"
    with pytest.raises(InvalidArgumentError, match=message) as exc:
        coerce_value("amount", FunctionInput(type=abi_type), text)
    assert exc.value.field == "amount"
    assert exc.value.abi_type == abi_type
    assert exc.value.value == text


def test_bool() -> None:
    function_input = FunctionInput(type="bool")
    assert coerce_value("flag", function_input, "true") is True
    assert coerce_value("flag", function_input, " TRUE ") is True
    assert coerce_value("flag", function_input, "True") is True
    assert coerce_value("flag", function_input, "yes") is False
    assert coerce_value("flag", function_input, "") is False


def test_address() -> None:
    function_input = FunctionInput(type="address")
    # Passed through unchanged
    assert coerce_value("to", function_input, CHECKSUMMED) == CHECKSUMMED

    with pytest.raises(InvalidAddressArgumentError, match=r"Invalid value for to \(address\)"):
        coerce_value("to", function_input, "0x1234")

    # Also an invalid address error, naming the field
    with pytest.raises(InvalidAddressError) as exc:
        coerce_value("owner", function_input, "not-an-address")
    assert isinstance(exc.value, CoercionError)
    assert exc.value.field == "owner"
    assert exc.value.address == "not-an-address"
    assert str(exc.value) == "Invalid value for owner (address): Invalid address: not-an-address"


def test_passthrough() -> None:
    assert coerce_value("data", FunctionInput(type="bytes"), "0xdeadbeef") == "0xdeadbeef"
    assert coerce_value("ids", FunctionInput(type="uint256[]"), "[1, 2]") == "[1, 2]"
    assert coerce_value("s", FunctionInput(type="string"), "anything") == "anything"


def test_coerce(catalog: FunctionCatalog) -> None:
    args = coerce(catalog["transfer"], {"to": CHECKSUMMED, "amount": "0x10"})
    assert args == [CHECKSUMMED, 16]

    # Missing values are empty text
    with pytest.raises(InvalidAddressArgumentError) as exc:
        coerce(catalog["transfer"], {"amount": "1"})
    assert exc.value.field == "to"


def test_coerce_unnamed_inputs() -> None:
    function = FunctionDescriptor(
        name="f",
        mutability=Mutability.NONPAYABLE,
        inputs=(FunctionInput(type="uint256"), FunctionInput(type="bool")),
    )
    assert coerce(function, {"param_0": "7", "param_1": "true"}) == [7, True]

    # The first failing input aborts the whole list
    with pytest.raises(InvalidArgumentError) as exc:
        coerce(function, {"param_0": "seven", "param_1": "true"})
    assert exc.value.field == "param_0"
