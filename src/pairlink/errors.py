"""Base exceptions for pairlink."""


class PairlinkError(Exception):
    """Base exception for all pairlink errors."""

    pass


class CryptoError(PairlinkError):
    """Cryptographic operation failed."""

    pass


class TransportError(PairlinkError):
    """Relay request failed (network, HTTP status, or malformed body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(PairlinkError):
    """Invalid configuration value."""

    pass


class PairingLinkError(PairlinkError):
    """Pairing link could not be parsed."""

    pass
