"""Relay response types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pairlink.errors import TransportError


class PairingStatus(Enum):
    """Server-side state of a pairing request."""

    NOT_FOUND = "not_found"
    PENDING = "pending"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class RequestStatus:
    """Response of the status check.

    Attributes:
        status: Pairing request state, None if the relay sent a value
            this client does not know.
        supports_v2: Whether the waiting client understands version 0 payloads.
    """

    status: PairingStatus | None
    supports_v2: bool = False

    @classmethod
    def from_json(cls, data: Any) -> "RequestStatus":
        """Parse the relay's JSON body.

        Raises:
            TransportError: If the body is not a status object.
        """
        if not isinstance(data, dict):
            raise TransportError("Malformed status response")
        try:
            status = PairingStatus(data.get("status"))
        except ValueError:
            status = None
        return cls(status=status, supports_v2=bool(data.get("supportsV2", False)))


@dataclass(frozen=True)
class AccountRequestState:
    """Response of the approval poll.

    `state` is kept verbatim; anything other than "authorized" means the
    client should keep polling.
    """

    state: str
    token: str | None = None
    response: str | None = field(default=None, repr=False)

    @property
    def authorized(self) -> bool:
        return self.state == "authorized"

    @classmethod
    def from_json(cls, data: Any) -> "AccountRequestState":
        """Parse the relay's JSON body.

        Raises:
            TransportError: If the body is not an object, or an authorized
                state lacks token or response.
        """
        if not isinstance(data, dict):
            raise TransportError("Malformed poll response")

        state = cls(
            state=str(data.get("state", "")),
            token=data.get("token"),
            response=data.get("response"),
        )
        if state.authorized and (
            not isinstance(state.token, str) or not isinstance(state.response, str)
        ):
            raise TransportError("Authorized response missing token or response")
        return state


@dataclass(frozen=True)
class AuthCredentials:
    """Terminal result of a successful pairing.

    Attributes:
        secret: Seed for later key derivation (32 bytes, or legacy length).
        token: Bearer token for authenticated relay calls.
    """

    secret: bytes = field(repr=False)
    token: str = field(repr=False)
