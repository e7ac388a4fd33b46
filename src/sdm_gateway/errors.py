"""Exceptions for sdm-gateway: unknown registers, connect failures and register read errors."""


class SdmGatewayError(Exception):
    """Base exception for sdm-gateway."""

    pass


class UnknownRegisterError(SdmGatewayError):
    """Raised when a register id or name is not in the catalog."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        self._msg = message or f"Unknown register: {key!r}"
        super().__init__(self._msg)


class HostLookupError(SdmGatewayError):
    """Raised when the downstream hostname cannot be resolved."""

    def __init__(self, host: str, *, cause: BaseException | None = None) -> None:
        self.host = host
        self.cause = cause
        super().__init__(f"lookup {host}")


class ConnectError(SdmGatewayError):
    """Raised when the downstream TCP socket or serial device cannot be opened."""

    def __init__(self, target: str, *, cause: BaseException | None = None) -> None:
        self.target = target
        self.cause = cause
        super().__init__(f"connect {target}")


class RegisterReadError(SdmGatewayError):
    """Raised when a single register transaction fails (timeout, exception PDU, short response)."""

    def __init__(
        self,
        message: str,
        *,
        register_class: str | None = None,
        address: int | None = None,
        register: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.register_class = register_class
        self.address = address
        self.register = register
        self.cause = cause
        super().__init__(message)
