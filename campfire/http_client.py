"""
HTTP request executor.

send() turns one RequestData into one outbound call and always returns an
HTTPResponse envelope; every failure is reported through its `error` field.
"""
import asyncio
import base64
import logging
import re
import threading
import time
from urllib.parse import urlsplit

import httpx

from campfire.errors import (
    ExecutionError,
    InvalidURLError,
    ReadError,
    RequestCancelled,
    RequestValidationError,
    TransportError,
)
from campfire.models import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    HTTPResponse,
    KeyValuePair,
    RequestData,
    ResponseHeader,
)
from campfire.settings import Settings

log = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
# RFC 9110 token characters
_METHOD_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_POLL_SECONDS = 0.05


def _enabled(pairs: list[KeyValuePair]) -> list[KeyValuePair]:
    return [p for p in pairs if p.enabled and p.key]


def build_url(raw_url: str, params: list[KeyValuePair], auth: AuthConfig | None = None) -> httpx.URL:
    """Normalize the scheme, then merge the URL's own query with enabled params and query API keys."""
    if not _SCHEME_RE.match(raw_url):
        raw_url = "https://" + raw_url

    try:
        url = httpx.URL(raw_url)
    except (httpx.InvalidURL, ValueError) as exc:
        raise InvalidURLError(f"Invalid URL: {exc}") from exc
    if not url.host:
        raise InvalidURLError(f"Invalid URL: no host in {raw_url!r}")
    if not urlsplit(raw_url).path:
        url = url.copy_with(path="/")

    query = httpx.QueryParams(url.query.decode("ascii"))
    for p in _enabled(params):
        query = query.add(p.key, p.value)
    if isinstance(auth, ApiKeyAuth) and auth.location == "query" and auth.key:
        query = query.set(auth.key, auth.value)
    return url.copy_with(params=query)


def apply_auth(headers: httpx.Headers, auth: AuthConfig | None) -> None:
    if isinstance(auth, BasicAuth):
        if auth.username or auth.password:
            credentials = f"{auth.username}:{auth.password}"
            encoded = base64.b64encode(credentials.encode()).decode()
            headers["Authorization"] = f"Basic {encoded}"
    elif isinstance(auth, BearerAuth):
        if auth.token:
            headers["Authorization"] = f"{auth.prefix or 'Bearer'} {auth.token}"
    elif isinstance(auth, ApiKeyAuth):
        # query placement is handled in build_url()
        if auth.location != "query" and auth.key:
            headers[auth.key] = auth.value


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class HTTPClient:
    """
    Sends single requests over pooled httpx clients.

    The sync client is built once; the async one on first use. Both are safe to
    share between concurrent calls.
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.settings = settings or Settings()
        self._transport = transport
        self._client = httpx.Client(**self._client_options())
        self._async_client: httpx.AsyncClient | None = None
        self._async_lock = threading.Lock()

    def _client_options(self) -> dict:
        options = {
            "follow_redirects": True,
            "max_redirects": self.settings.max_redirects,
            "timeout": self.settings.timeout_seconds,
            "verify": self.settings.ssl_verify,
        }
        if self._transport is not None:
            options["transport"] = self._transport
        return options

    def _get_async_client(self) -> httpx.AsyncClient:
        with self._async_lock:
            if self._async_client is None:
                self._async_client = httpx.AsyncClient(**self._client_options())
            return self._async_client

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        if self._async_client is not None:
            await self._async_client.aclose()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ── Request construction ──────────────────────────────────────────────────

    def build_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        request: RequestData,
        auth: AuthConfig | None,
        timeout: float,
    ) -> httpx.Request:
        if not request.url:
            raise RequestValidationError("URL is required")
        url = build_url(request.url, request.params, auth)

        headers = httpx.Headers({"User-Agent": self.settings.user_agent})
        for h in _enabled(request.headers):
            headers[h.key] = h.value
        apply_auth(headers, auth)

        method = request.method.upper() or "GET"
        if not _METHOD_RE.match(method):
            raise RequestValidationError(f"Invalid method: {request.method!r}")

        content = request.body.encode("utf-8") if request.body else None
        try:
            return client.build_request(
                method, url, headers=headers, content=content, timeout=timeout
            )
        except (httpx.InvalidURL, ValueError) as exc:
            raise InvalidURLError(f"Invalid URL: {exc}") from exc

    # ── Envelopes ─────────────────────────────────────────────────────────────

    @staticmethod
    def _failure(exc: ExecutionError, started: float) -> HTTPResponse:
        log.info("Request not completed: %s", exc)
        return HTTPResponse(
            status=exc.status,
            status_text=exc.status_text,
            error=str(exc),
            elapsed_ms=_elapsed_ms(started),
        )

    @staticmethod
    def _success(response: httpx.Response, content: bytes, started: float) -> HTTPResponse:
        encoding = response.headers.encoding
        headers = [
            ResponseHeader(key=k.decode(encoding), value=v.decode(encoding))
            for k, v in response.headers.raw
        ]
        return HTTPResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=headers,
            body=content.decode(response.encoding or "utf-8", errors="replace"),
            elapsed_ms=_elapsed_ms(started),
            size_bytes=len(content),
        )

    # ── Sending ───────────────────────────────────────────────────────────────

    def send(
        self,
        request: RequestData,
        auth: AuthConfig | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> HTTPResponse:
        """
        Execute `request` and return its envelope. Never raises.

        `auth` defaults to request.auth. `timeout` bounds the whole call,
        from connect to the last body byte. Setting `cancel_event` makes the
        call return a "Request cancelled" envelope at once, whatever stage
        the exchange is in.
        """
        started = time.monotonic()
        auth = auth if auth is not None else request.auth
        timeout = timeout if timeout is not None else self.settings.timeout_seconds
        deadline = started + timeout

        try:
            outbound = self.build_request(self._client, request, auth, timeout)
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelled()
            log.debug("%s %s", outbound.method, outbound.url)
            exchange = _Exchange(self._client, outbound, cancel_event)
            threading.Thread(target=exchange.run, name="campfire-send", daemon=True).start()
            self._wait(exchange, deadline, cancel_event)
        except ExecutionError as exc:
            return self._failure(exc, started)
        return self._success(exchange.response, exchange.content, started)

    @staticmethod
    def _wait(exchange: "_Exchange", deadline: float, cancel_event: threading.Event | None) -> None:
        """Block until the exchange finishes, the deadline passes or the call is cancelled."""
        while not exchange.done.wait(min(_POLL_SECONDS, max(deadline - time.monotonic(), 0))):
            if cancel_event is not None and cancel_event.is_set():
                exchange.abandon()
                raise RequestCancelled(*exchange.status_line())
            if time.monotonic() >= deadline:
                exchange.abandon()
                raise TransportError("Request failed: timed out", *exchange.status_line())
        if exchange.failure is not None:
            raise exchange.failure
        if exchange.error is not None:
            raise exchange.error

    async def send_async(
        self,
        request: RequestData,
        auth: AuthConfig | None = None,
        timeout: float | None = None,
    ) -> HTTPResponse:
        """
        Async counterpart of send(). Cancelling the awaiting task aborts the
        network call and yields a "Request cancelled" envelope.
        """
        started = time.monotonic()
        auth = auth if auth is not None else request.auth
        timeout = timeout if timeout is not None else self.settings.timeout_seconds
        client = self._get_async_client()
        exchange = None

        try:
            outbound = self.build_request(client, request, auth, timeout)
            log.debug("%s %s", outbound.method, outbound.url)
            exchange = _Exchange(client, outbound)
            try:
                await asyncio.wait_for(exchange.run_async(), max(started + timeout - time.monotonic(), 0))
            except asyncio.TimeoutError:
                raise TransportError("Request failed: timed out", *exchange.status_line()) from None
        except asyncio.CancelledError:
            status = exchange.status_line() if exchange is not None else (0, "")
            return self._failure(RequestCancelled(*status), started)
        except ExecutionError as exc:
            return self._failure(exc, started)
        return self._success(exchange.response, exchange.content, started)


class _Exchange:
    """
    One outbound call: send, then stream the body.

    For sync calls run() executes on a worker thread so the caller can give up
    on a deadline or a cancel event while the socket is still blocked;
    abandon() then closes whatever response has arrived.
    """

    def __init__(
        self,
        client: httpx.Client | httpx.AsyncClient,
        outbound: httpx.Request,
        cancel_event: threading.Event | None = None,
    ):
        self.client = client
        self.outbound = outbound
        self.cancel_event = cancel_event
        self.done = threading.Event()
        self.response: httpx.Response | None = None
        self.content = b""
        self.error: ExecutionError | None = None
        # unexpected exceptions are handed back to the caller's thread
        self.failure: Exception | None = None
        self._abandoned = False
        self._lock = threading.Lock()

    def status_line(self) -> tuple[int, str]:
        response = self.response
        if response is None:
            return 0, ""
        return response.status_code, response.reason_phrase

    def abandon(self) -> None:
        with self._lock:
            self._abandoned = True
            response = self.response
        if response is not None:
            response.close()

    def run(self) -> None:
        try:
            self._run()
        except ExecutionError as exc:
            self.error = exc
        except Exception as exc:
            self.failure = exc
        finally:
            self.done.set()

    def _run(self) -> None:
        try:
            response = self.client.send(self.outbound, stream=True)
        except (httpx.HTTPError, TypeError, ValueError) as exc:
            # httpcore raises TypeError/ValueError unwrapped for some malformed requests
            raise TransportError(f"Request failed: {exc}") from exc
        with self._lock:
            self.response = response
            abandoned = self._abandoned
        try:
            if abandoned:
                return
            chunks = []
            for chunk in response.iter_bytes():
                if self._abandoned or (self.cancel_event is not None and self.cancel_event.is_set()):
                    raise RequestCancelled(*self.status_line())
                chunks.append(chunk)
            self.content = b"".join(chunks)
        except httpx.HTTPError as exc:
            raise ReadError(f"Failed to read response: {exc}", *self.status_line()) from exc
        finally:
            response.close()

    async def run_async(self) -> None:
        try:
            response = await self.client.send(self.outbound, stream=True)
        except (httpx.HTTPError, TypeError, ValueError) as exc:
            raise TransportError(f"Request failed: {exc}") from exc
        self.response = response
        try:
            chunks = []
            async for chunk in response.aiter_bytes():
                chunks.append(chunk)
            self.content = b"".join(chunks)
        except httpx.HTTPError as exc:
            raise ReadError(f"Failed to read response: {exc}", *self.status_line()) from exc
        finally:
            await response.aclose()
