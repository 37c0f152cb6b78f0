"""Exceptions raised by the Safe protocol engine.

Signature validation failures are not exceptions: validators return a
result object carrying `valid=False` and, where relevant, the captured error.
"""


class SafeError(Exception):
    """Base class for all minisafe errors."""


class EncodingError(SafeError, ValueError):
    """Structurally invalid input to an encoder."""


class ConfigurationError(SafeError, ValueError):
    """Invalid Safe deployment configuration."""


class SafeLookupError(SafeError, LookupError):
    """An entry is missing from one of the Safe's linked lists."""


class OwnerNotFoundError(SafeLookupError):
    def __init__(self, owner: str, safe_address: str):
        super().__init__(f"Owner {owner} not found in Safe {safe_address}")
        self.owner = owner
        self.safe_address = safe_address


class ModuleNotFoundError(SafeLookupError):
    def __init__(self, module: str, safe_address: str):
        super().__init__(f"Module {module} not found in Safe {safe_address}")
        self.module = module
        self.safe_address = safe_address


class UnknownSignatureTypeError(SafeError):
    """Signature type byte is not one the Safe contract understands."""

    def __init__(self, vbyte: int):
        super().__init__(f"Unknown signature type: v-byte {vbyte}")
        self.vbyte = vbyte


class ProviderError(SafeError):
    """JSON-RPC provider returned an error or an unusable result."""

    def __init__(
        self, message: str, code: int | None = None, data: str | None = None
    ):
        super().__init__(message)
        self.code = code
        self.data = data
