"""Small stateless helpers shared by the login flow.

Two JSON parsing policies live side by side here and must not be merged:

* **Lenient** -- :func:`parse_json`, :func:`parse_config` and
  :func:`string_to_json` never raise. They are used for loosely typed
  config values and for the round-tripped OAuth ``state`` parameter, where
  garbage simply fails session correlation later on.
* **Strict** -- :func:`code_transform` parses ``access_token`` payloads and
  raises :class:`~loopauth.exceptions.MalformedCredentialError` on bad
  input, because a silently substituted empty token is worse than an error.
"""

from __future__ import annotations

import json
import secrets
import string
from typing import Any, Mapping

from loopauth.exceptions import MalformedCredentialError

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 8

CODE_TYPE_ACCESS_TOKEN = "access_token"


def random_id() -> str:
    """Return an 8-character alphanumeric session correlator.

    Characters are drawn with :mod:`secrets`, so ids are unpredictable and
    safe to embed in a URL without escaping.
    """
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def parse_json(value: Any) -> Any:
    """Best-effort JSON decode.

    Strings holding valid JSON are decoded; anything else (plain strings,
    already-decoded objects, ``None``) is returned unchanged.

    Example::

        parse_json('["a", "b"]')   # ['a', 'b']
        parse_json("plain text")   # 'plain text'
        parse_json({"a": 1})       # {'a': 1}
    """
    if not isinstance(value, (str, bytes, bytearray)):
        return value
    try:
        return json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return value


def parse_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Apply :func:`parse_json` to every value of *config*."""
    return {key: parse_json(value) for key, value in config.items()}


def string_to_json(value: Any) -> dict[str, Any]:
    """Decode *value* into a dict, returning ``{}`` on any failure.

    Used for the ``state`` parameter: a missing, truncated or non-object
    state decodes to an empty dict and therefore has no ``id``.
    """
    if not isinstance(value, (str, bytes, bytearray)):
        return {}
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def code_transform(code: str, code_type: str | None) -> str | dict[str, Any]:
    """Normalise a captured credential according to its grant type.

    Args:
        code: The raw ``code`` field from the callback.
        code_type: ``"access_token"`` for a JSON token payload; any other
            value (usually ``"auth_code"``) means a bare authorization code.

    Returns:
        The raw string for an authorization code, or the decoded dict for a
        token payload.

    Raises:
        MalformedCredentialError: If a token payload is not a JSON object.
    """
    if code_type != CODE_TYPE_ACCESS_TOKEN:
        return code
    try:
        payload = json.loads(code)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedCredentialError(
            f"access_token payload is not valid JSON: {exc}"
        ) from exc
    if not isinstance(payload, dict):
        raise MalformedCredentialError(
            f"access_token payload must be a JSON object, got {type(payload).__name__}"
        )
    return payload
