class InteractError(Exception):
    """The base class for all errors raised by the invocation engine."""


class ChainNotFound(InteractError):
    """Raised when a chain id is not present in the registry."""

    chain_id: str
    """The requested id."""

    def __init__(self, chain_id: str):
        super().__init__(f"Unknown chain: `{chain_id}`")
        self.chain_id = chain_id


class ParseError(InteractError):
    """
    Raised when the submitted ABI text cannot be turned into a function catalog.
    The catalog is never partially applied.
    """


class EmptyInputError(ParseError):
    """The ABI text is blank."""

    def __init__(self) -> None:
        super().__init__("ABI cannot be empty")


class MalformedJsonError(ParseError):
    """The ABI text is not valid JSON."""


class NotArrayError(ParseError):
    """The ABI JSON is not an array."""

    def __init__(self) -> None:
        super().__init__("ABI must be an array")


class NoFunctionsError(ParseError):
    """The ABI contains no entries of type ``function``."""

    def __init__(self) -> None:
        super().__init__("No functions found in ABI")


class MalformedEntryError(ParseError):
    """A ``function`` entry is missing a required field or has an invalid one."""


class ValidationError(InteractError):
    """Raised when a dispatch precondition does not hold. No network I/O has been performed."""


class MissingAddressError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Contract address is required")


class InvalidAddressError(ValidationError):
    """Raised for a malformed contract address, or a malformed ``address`` argument."""

    address: str
    """The offending text."""

    def __init__(self, address: str, message: None | str = None):
        super().__init__(message or f"Invalid contract address: `{address}`")
        self.address = address


class NoChainSelectedError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Please select a network")


class NoSignerError(ValidationError):
    def __init__(self, function_name: str):
        super().__init__(
            f"Please connect your wallet to execute `{function_name}` (it is not a read function)"
        )


class UnknownFunctionError(ValidationError):
    function_name: str

    def __init__(self, function_name: str):
        super().__init__(f"Function `{function_name}` is not present in the parsed ABI")
        self.function_name = function_name


class UnknownInputError(ValidationError):
    """Raised when editing an input that the function does not declare."""

    def __init__(self, function_name: str, input_name: str):
        super().__init__(f"Function `{function_name}` has no input named `{input_name}`")
        self.function_name = function_name
        self.input_name = input_name


def _coercion_message(field: str, abi_type: str, reason: str) -> str:
    return f"Invalid value for {field} ({abi_type}): {reason}"


class CoercionError(InteractError):
    """Raised when a raw input value cannot be converted to its declared ABI type."""

    field: str
    """The name of the offending input."""

    abi_type: str
    """The declared ABI type of the input."""

    value: str
    """The raw text that failed to convert."""

    def __init__(self, field: str, abi_type: str, value: str, reason: str):
        super().__init__(_coercion_message(field, abi_type, reason))
        self.field = field
        self.abi_type = abi_type
        self.value = value


class InvalidArgumentError(CoercionError):
    pass


class InvalidAddressArgumentError(CoercionError, InvalidAddressError):
    """
    An ``address`` argument that is not a valid address.
    Caught by both ``except CoercionError`` and ``except InvalidAddressError``.
    """

    def __init__(self, field: str, abi_type: str, value: str, reason: str):
        InvalidAddressError.__init__(self, value, _coercion_message(field, abi_type, reason))
        self.field = field
        self.abi_type = abi_type
        self.value = value


class TransportError(InteractError):
    """
    Raised when a call, a simulation, or a transaction fails on the remote side.
    The underlying transport failure is available as ``__cause__``.
    """


class CallError(TransportError):
    pass


class SimulationError(TransportError):
    revert_reason: None | str
    """The revert reason, if the node supplied one."""

    def __init__(self, message: str, revert_reason: None | str = None):
        super().__init__(message)
        self.revert_reason = revert_reason


class TransactionError(TransportError):
    pass
