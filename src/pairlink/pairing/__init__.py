"""Pairing module for pairlink.

Pairs a controlling client with an agent through the relay:
- Ephemeral key pair and pairing link/QR (client)
- Approval of a pending request (agent)
- Polling for the approval and extracting credentials (client)
"""

from .approver import ApprovalOutcome, PairingApprover, approve_pairing
from .keys import KeyPair, generate_keypair, pairing_link, parse_pairing_link
from .payload import Answers, build_answers, extract_secret
from .poller import PairingPoller, PollOutcome, PollResult, wait_for_pairing
from .qr import PairingQr
from .status import AccountRequestState, AuthCredentials, PairingStatus, RequestStatus
from .transport import RelayClient

__all__ = [
    "AccountRequestState",
    "Answers",
    "ApprovalOutcome",
    "AuthCredentials",
    "KeyPair",
    "PairingApprover",
    "PairingPoller",
    "PairingQr",
    "PairingStatus",
    "PollOutcome",
    "PollResult",
    "RelayClient",
    "RequestStatus",
    "approve_pairing",
    "build_answers",
    "extract_secret",
    "generate_keypair",
    "pairing_link",
    "parse_pairing_link",
    "wait_for_pairing",
]
