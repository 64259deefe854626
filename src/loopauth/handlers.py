"""Request handling for the loopback callback server.

The identity provider hands the credential back to the CLI through the
user's browser, either as a redirect (``GET /?code=...``) or as a form post
(``POST /`` with a url-encoded body). Both carry the same fields:

* ``code`` -- the authorization code, or a JSON token payload;
* ``code_type`` -- ``auth_code`` or ``access_token``;
* ``state`` -- a JSON object whose ``id`` must equal the session id.

The first GET or completed POST settles the login's :class:`Completion`,
successfully or not. CORS pre-flights and unsupported methods are answered
but leave the login pending, so the caller keeps waiting until the timeout.

See Also:
    :mod:`loopauth.server` for the listener that dispatches to
    :class:`CallbackHandler`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl

from aiohttp import web

from loopauth.environments import EnvironmentLike, get_endpoints, origin_of, resolve_environment
from loopauth.exceptions import CorrelationMismatchError, LoopAuthError
from loopauth.helpers import code_transform, string_to_json

logger = logging.getLogger(__name__)

ALLOW_ORIGIN_HEADER = "Access-Control-Allow-Origin"
ALLOWED_METHODS = "GET, POST, OPTIONS"

SUCCESS_TEXT = "You are now signed in, please close this window.\n"
FAILURE_TEXT = "Sign in failed, please close this window and try again.\n"
SETTLED_TEXT = "This sign in has already finished, please close this window.\n"
TOO_LARGE_TEXT = "Sign in request too large, please close this window and try again.\n"

MAX_BODY_SIZE = 64 * 1024


# ------------------------------------------------------------------ #
# One-shot completion
# ------------------------------------------------------------------ #


class Completion:
    """A result that can be settled exactly once.

    Wraps an :class:`asyncio.Future` created on the running loop. The first
    call to :meth:`resolve` or :meth:`reject` wins; later calls return
    ``False`` and change nothing, so a callback racing the timeout is
    harmless.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        """Whether the completion has been settled."""
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        """Settle with *value*. Returns ``True`` if this call settled it."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def reject(self, exc: BaseException) -> bool:
        """Settle with *exc*. Returns ``True`` if this call settled it."""
        if self._future.done():
            return False
        self._future.set_exception(exc)
        return True

    def exception(self) -> Optional[BaseException]:
        """Return the rejection, or ``None`` if pending or resolved."""
        if not self._future.done():
            return None
        return self._future.exception()

    async def wait(self) -> Any:
        """Wait for the outcome; raises the rejection if there was one.

        Cancelling the waiter does not cancel the completion itself.
        """
        return await asyncio.shield(self._future)


# ------------------------------------------------------------------ #
# POST body accumulation
# ------------------------------------------------------------------ #


class BodyState(str, enum.Enum):
    """Lifecycle of a streamed request body."""

    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"


class BodyAccumulator:
    """Buffers a request body delivered in any number of chunks.

    Driven by two signals: :meth:`feed` for each chunk and :meth:`finish`
    at end of stream. The body can only be read once it is complete.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self.size = 0
        self.state = BodyState.EMPTY

    def feed(self, chunk: bytes) -> None:
        if self.state is BodyState.COMPLETE:
            raise RuntimeError("Cannot feed a completed body")
        if chunk:
            self._chunks.append(chunk)
            self.size += len(chunk)
            self.state = BodyState.ACCUMULATING

    def finish(self) -> None:
        self.state = BodyState.COMPLETE

    def text(self, encoding: str = "utf-8") -> str:
        if self.state is not BodyState.COMPLETE:
            raise RuntimeError(f"Body is not complete (state: {self.state.value})")
        return b"".join(self._chunks).decode(encoding, errors="replace")


# ------------------------------------------------------------------ #
# Protocol helpers
# ------------------------------------------------------------------ #


def parse_query_data(query: str) -> dict[str, str]:
    """Decode a query string or url-encoded body, keeping the first value of each key."""
    data: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        data.setdefault(key, value)
    return data


def validate_query_data(query_data: Mapping[str, str], session_id: str) -> str | dict[str, Any]:
    """Check a callback against the session and return the captured credential.

    Succeeds only when ``code`` is non-empty and the ``state`` JSON carries
    ``id == session_id``.

    Raises:
        CorrelationMismatchError: Missing code, missing or malformed state,
            or a state id from another session.
        MalformedCredentialError: An ``access_token`` payload that is not
            a JSON object.
    """
    code = query_data.get("code")
    state = string_to_json(query_data.get("state"))
    logger.debug("Callback fields: %s, state: %s", sorted(query_data), state)

    if not code or state.get("id") != session_id:
        raise CorrelationMismatchError(code)
    return code_transform(code, query_data.get("code_type"))


def apply_cors(response: web.StreamResponse, environment: Optional[EnvironmentLike] = None) -> None:
    """Allow the environment's login site, and only it, to read *response*."""
    response.headers[ALLOW_ORIGIN_HEADER] = origin_of(get_endpoints(environment).auth_url)


# ------------------------------------------------------------------ #
# Handler
# ------------------------------------------------------------------ #


class CallbackHandler:
    """Dispatches callback requests by HTTP method and settles the login.

    Args:
        session_id: The id embedded in the authorization URL's ``state``.
        completion: Settled by the first GET or completed POST.
        environment: Decides the CORS origin; ``prod`` when omitted.
        max_body_size: POST bodies larger than this many bytes get a 413
            and leave the login pending.

    Attributes:
        code_type: The ``code_type`` of the callback that settled the login
            successfully, as sent; ``None`` until then or when absent.
    """

    def __init__(
        self,
        session_id: str,
        completion: Completion,
        environment: Optional[EnvironmentLike] = None,
        max_body_size: int = MAX_BODY_SIZE,
    ) -> None:
        self.session_id = session_id
        self.completion = completion
        self.environment = resolve_environment(environment)
        self.max_body_size = max_body_size
        self.code_type: Optional[str] = None

    async def __call__(self, request: web.Request) -> web.StreamResponse:
        method = request.method.upper()
        if method == "GET":
            return await self.handle_get(request)
        if method == "POST":
            return await self.handle_post(request)
        if method == "OPTIONS":
            return await self.handle_options(request)
        return await self.handle_unsupported(request)

    async def handle_get(self, request: web.Request) -> web.StreamResponse:
        # the raw query, so values are percent-decoded exactly once, as for POST
        return self._finalize(parse_query_data(request.rel_url.raw_query_string))

    async def handle_post(self, request: web.Request) -> web.StreamResponse:
        accumulator = BodyAccumulator()
        async for chunk in request.content.iter_any():
            accumulator.feed(chunk)
            if accumulator.size > self.max_body_size:
                logger.debug("POST body over %s bytes, rejecting", self.max_body_size)
                return self._respond(413, TOO_LARGE_TEXT)
        accumulator.finish()
        return self._finalize(parse_query_data(accumulator.text()))

    async def handle_options(self, request: web.Request) -> web.StreamResponse:
        response = web.Response(status=204)
        apply_cors(response, self.environment)
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        requested = request.headers.get("Access-Control-Request-Headers")
        if requested:
            response.headers["Access-Control-Allow-Headers"] = requested
        return response

    async def handle_unsupported(self, request: web.Request) -> web.StreamResponse:
        logger.debug("Unsupported method %s", request.method)
        response = web.Response(status=405, headers={"Allow": ALLOWED_METHODS})
        apply_cors(response, self.environment)
        return response

    def _finalize(self, query_data: Mapping[str, str]) -> web.StreamResponse:
        if self.completion.done:
            logger.debug("Login already settled, ignoring callback")
            return self._respond(200, SETTLED_TEXT)

        try:
            credential = validate_query_data(query_data, self.session_id)
        except LoopAuthError as exc:
            self.completion.reject(exc)
            return self._respond(400, FAILURE_TEXT)

        self.code_type = query_data.get("code_type")
        logger.debug("Got %s", self.code_type)
        self.completion.resolve(credential)
        return self._respond(200, SUCCESS_TEXT)

    def _respond(self, status: int, text: str) -> web.StreamResponse:
        response = web.Response(status=status, text=text, content_type="text/plain")
        apply_cors(response, self.environment)
        return response
