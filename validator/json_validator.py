"""
validator/json_validator.py
---------------------------
Request-body parsing and response schema enforcement for the concierge.

Defines the canonical AskResponse TypedDict and validates every payload
against it before it leaves the service. Raises a typed ValidationError on
any violation — no silent failures. The same error type marks malformed
client input (bad JSON bodies, missing uploads), which the HTTP layer maps
to 400.
"""

import json
from typing import Any, Dict

from typing_extensions import NotRequired, TypedDict

from concierge.logging_config import get_logger

log = get_logger(__name__)


# ── Schema definition ──────────────────────────────────────────────────────────

class ErrorDetail(TypedDict):
    """Failure details, exposed only in debug mode."""
    stage:  str   # pipeline step that failed, e.g. "embedding"
    detail: str   # the underlying error message


class AskResponse(TypedDict):
    """Canonical output contract for the /ask endpoint."""
    text:  str                            # guest-facing answer or fixed message
    error: NotRequired[ErrorDetail]       # debug mode, failures only
    debug: NotRequired[Dict[str, Any]]    # debug mode, retrieval details


# ── Custom exception ───────────────────────────────────────────────────────────

class ValidationError(ValueError):
    """Raised when a request body or an AskResponse fails validation."""


# ── Validators ─────────────────────────────────────────────────────────────────

def validate_json_string(raw: str) -> Dict[str, Any]:
    """
    Parses a JSON request body into a dict.

    An empty body reads as {}.

    Args:
        raw: A JSON-encoded string.

    Returns:
        Decoded Python dict.

    Raises:
        ValidationError: If the string is not valid JSON or not an object.
    """
    if not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise ValidationError(
            f"JSON body must be an object, got {type(decoded).__name__}."
        )
    return decoded


def validate(response: Dict[str, Any]) -> AskResponse:
    """
    Validates a dict against the AskResponse schema.

    Checks:
      - 'text' is present and a non-empty string
      - 'error', when present, holds string 'stage' and 'detail' fields
      - 'debug', when present, is a dict
      - no other keys

    Args:
        response: Dict to validate.

    Returns:
        The same dict cast as a typed AskResponse.

    Raises:
        ValidationError: If any field is missing, wrong type, or blank.
    """
    unknown = response.keys() - {"text", "error", "debug"}
    if unknown:
        log.error("Validation failed — unexpected keys: %s", unknown)
        raise ValidationError(f"AskResponse has unexpected keys: {unknown}")

    text = response.get("text")
    if not isinstance(text, str) or not text.strip():
        log.error("Validation failed — field 'text' is empty or wrong type")
        raise ValidationError("AskResponse field 'text' must be a non-empty string.")

    if "error" in response:
        error = response["error"]
        if not isinstance(error, dict) or not all(
            isinstance(error.get(k), str) for k in ("stage", "detail")
        ):
            log.error("Validation failed — 'error' is malformed")
            raise ValidationError(
                "AskResponse 'error' must carry string 'stage' and 'detail' fields."
            )

    if "debug" in response and not isinstance(response["debug"], dict):
        log.error("Validation failed — 'debug' is not a dict")
        raise ValidationError("AskResponse 'debug' must be a dict.")

    log.debug("Validation succeeded — text length %d", len(text))
    return AskResponse(**response)  # type: ignore[typeddict-item]
