"""Packaging: deterministic archive, checksum, final copy, remote URL check."""

from .archive import archive_tree, destination_conflict, finalize
from .verify import (
    HttpVerifier,
    RemoteVerifier,
    VerifyOutcome,
    start_verification,
    verification_warning,
)

__all__ = [
    "HttpVerifier",
    "RemoteVerifier",
    "VerifyOutcome",
    "archive_tree",
    "destination_conflict",
    "finalize",
    "start_verification",
    "verification_warning",
]
