"""Map raw provider and signer failures onto tagged error variants."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from .exceptions import NetworkError, StakeOpsError, ValidationError
from .types import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

USER_REJECTED_CODE = 4001

_USER_REJECTED_FRAGMENTS = (
    "user rejected",
    "user denied",
    "rejected the request",
    "request rejected",
    "user cancelled",
)
_BELOW_MINIMUM_FRAGMENTS = ("below minimum",)
_EXCEEDS_MAXIMUM_FRAGMENTS = ("exceeds maximum",)
_INSUFFICIENT_BALANCE_FRAGMENTS = (
    "insufficient funds",
    "insufficient balance",
    "exceeds balance",
)
_REVERT_FRAGMENTS = ("execution reverted", "reverted", "revert")

_REVERT_REASON = re.compile(r"(?:execution reverted|reverted|revert)[:\s]+(?P<reason>.+)", re.I)

_MESSAGES = {
    ErrorKind.USER_REJECTED: "Transaction rejected by user",
    ErrorKind.INSUFFICIENT_BALANCE: "Insufficient balance to cover the amount and gas",
    ErrorKind.BELOW_MINIMUM: "Amount is below the pool minimum",
    ErrorKind.EXCEEDS_MAXIMUM: "Amount exceeds the pool maximum",
}


def classify_error(error: BaseException | str | Mapping[str, Any]) -> ClassifiedError:
    """Classify a raw error by matching known provider message fragments.

    Unmatched errors become ``ErrorKind.UNKNOWN`` carrying the raw text.
    """

    raw_message = extract_message(error)
    lowered = raw_message.lower()

    if extract_code(error) == USER_REJECTED_CODE or _contains(lowered, _USER_REJECTED_FRAGMENTS):
        kind = ErrorKind.USER_REJECTED
    elif _contains(lowered, _BELOW_MINIMUM_FRAGMENTS):
        kind = ErrorKind.BELOW_MINIMUM
    elif _contains(lowered, _EXCEEDS_MAXIMUM_FRAGMENTS):
        kind = ErrorKind.EXCEEDS_MAXIMUM
    elif _contains(lowered, _INSUFFICIENT_BALANCE_FRAGMENTS):
        kind = ErrorKind.INSUFFICIENT_BALANCE
    elif _contains(lowered, _REVERT_FRAGMENTS):
        reason = _revert_reason(raw_message)
        return ClassifiedError(
            kind=ErrorKind.CONTRACT_REVERT,
            message=f"Contract reverted: {reason}" if reason else "Contract reverted",
            reason=reason,
            raw_message=raw_message,
        )
    else:
        logger.debug("Unclassified provider error: %s", raw_message)
        return ClassifiedError(
            kind=ErrorKind.UNKNOWN,
            message=raw_message or "Unknown error",
            raw_message=raw_message,
        )

    return ClassifiedError(kind=kind, message=_MESSAGES[kind], raw_message=raw_message)


def classify_local_failure(error: StakeOpsError) -> ClassifiedError:
    """Wrap failures raised before anything was broadcast."""

    if isinstance(error, ValidationError):
        return ClassifiedError(
            kind=ErrorKind.VALIDATION_FAILED,
            message=error.message,
            reason=error.field,
            raw_message=error.message,
        )
    if isinstance(error, NetworkError):
        return ClassifiedError(
            kind=ErrorKind.NETWORK_UNAVAILABLE,
            message=f"Network unavailable: {error.message}",
            raw_message=str(error.details.get("error", error.message)),
        )
    return ClassifiedError(kind=ErrorKind.UNKNOWN, message=error.message, raw_message=str(error))


def extract_message(error: BaseException | str | Mapping[str, Any]) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        return str(error.get("message") or error)

    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message

    if error.args:
        first = error.args[0]
        if isinstance(first, Mapping):
            return str(first.get("message") or first)
        return str(first)

    return str(error) or type(error).__name__


def extract_code(error: BaseException | str | Mapping[str, Any]) -> int | None:
    if isinstance(error, str):
        return None
    if isinstance(error, Mapping):
        return _coerce_code(error.get("code"))

    code = _coerce_code(getattr(error, "code", None))
    if code is not None:
        return code
    if error.args and isinstance(error.args[0], Mapping):
        return _coerce_code(error.args[0].get("code"))
    return None


def _coerce_code(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _contains(text: str, fragments: tuple[str, ...]) -> bool:
    return any(fragment in text for fragment in fragments)


def _revert_reason(raw_message: str) -> str | None:
    match = _REVERT_REASON.search(raw_message)
    if match is None:
        return None
    reason = match.group("reason").strip().strip("'\"")
    return reason or None
