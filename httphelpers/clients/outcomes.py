"""
httphelpers/clients/outcomes.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single canonical rule* for turning the result of
one HTTP call into an outcome the client variants can act on.

Every call ends in exactly one of:

- Success(status_code, body)           HTTP status < 400
- Failure(status_code, reason, body)   HTTP status >= 400
- TimedOut(message)                    the per-call deadline expired

CLASSIFICATION RULE
-------------------
- HTTP status <  400 -> Success
- HTTP status >= 400 -> Failure

3xx counts as Success: the transport follows redirects before a response
reaches classification, so a 3xx seen here is final.

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT:
- Raise, log or retry
- Decide whether a TimedOut is an error (each client decides that)
- Decode bodies

It performs **pure, deterministic mapping only**.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

FAILURE_STATUS_THRESHOLD = 400


@dataclass(frozen=True)
class Success:
    status_code: int
    body: bytes = b""


@dataclass(frozen=True)
class Failure:
    status_code: int
    reason: str
    body: bytes = b""


@dataclass(frozen=True)
class TimedOut:
    message: str


ResponseOutcome = Union[Success, Failure, TimedOut]


def is_failure_status(status_code: int) -> bool:
    return status_code >= FAILURE_STATUS_THRESHOLD


def classify_status(
    *,
    status_code: int,
    reason: Optional[str] = None,
    body: bytes = b"",
) -> Union[Success, Failure]:
    """
    Contract:
      - status < 400  -> Success
      - status >= 400 -> Failure(status, reason, body)
    """
    if is_failure_status(status_code):
        return Failure(status_code=status_code, reason=reason or "", body=body)
    return Success(status_code=status_code, body=body)
