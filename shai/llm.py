"""Chat-completions adapter: request building, SSE decoding, background streaming."""

import json
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Union

import requests

from .config import ModelPreset
from .errors import (
    AuthenticationError,
    DeserializationError,
    StreamError,
    StreamInterruptedError,
    TransportError,
    UnknownError,
)
from .logger import get_logger
from .prompts import Task, build_context_request, system_prompt

log = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass
class SseEvent:
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


def iter_sse_events(lines: Iterable[str]) -> Iterator[SseEvent]:
    """Group decoded lines of an event stream into events.

    Consecutive ``data:`` lines are joined with newlines and dispatched on a
    blank line. Comment lines (leading ``:``) are skipped; an event still
    being collected when the input ends is dropped.
    """
    data_lines = []
    event_type = ""
    last_id: Optional[str] = None
    retry: Optional[int] = None
    first = True

    for line in lines:
        if first:
            line = line.lstrip("\ufeff")
            first = False
        if not line:
            data = "\n".join(data_lines)
            if data:
                yield SseEvent(data=data, event=event_type or "message", id=last_id, retry=retry)
            data_lines = []
            event_type = ""
            continue
        if line.startswith(":"):
            continue

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            data_lines.append(value)
        elif name == "event":
            event_type = value
        elif name == "id":
            if "\0" not in value:
                last_id = value
        elif name == "retry":
            if value.isdigit():
                retry = int(value)


def decode_chat_chunk(data: str) -> str:
    """Return the content delta carried by one streamed chunk ("" if none).

    Role-only preambles, empty stop deltas, ``content: null`` and usage-only
    chunks without choices carry no text.
    """
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError as e:
        raise DeserializationError(f"invalid JSON in event ({e.msg})", data) from e
    if not isinstance(chunk, dict):
        raise DeserializationError("chunk is not a JSON object", data)

    if "error" in chunk:
        error = chunk["error"]
        message = error.get("message") if isinstance(error, dict) else None
        raise UnknownError(message or str(error))

    choices = chunk.get("choices")
    if not isinstance(choices, list):
        raise DeserializationError("chunk has no choices list", data)
    if not choices:
        return ""

    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    if not isinstance(delta, dict):
        raise DeserializationError("choice has no delta object", data)

    content = delta.get("content")
    if content is None:
        return ""
    if not isinstance(content, str):
        raise DeserializationError("delta content is not a string", data)
    return content


def decode_chat_stream(events: Iterable[SseEvent]) -> Iterator[str]:
    """Yield non-empty text fragments in arrival order until ``[DONE]``."""
    for event in events:
        if event.data == DONE_SENTINEL:
            return
        fragment = decode_chat_chunk(event.data)
        if fragment:
            yield fragment
    log.info("Event stream closed without %s", DONE_SENTINEL)


def _decode_lines(raw_lines: Iterable[bytes]) -> Iterator[str]:
    for raw in raw_lines:
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DeserializationError("payload is not valid UTF-8", repr(raw[:80])) from e


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return str(message)
    text = (response.text or "").strip()
    return text[:200] if text else (response.reason or "no details")


def _check_response(response: requests.Response) -> None:
    if response.status_code < 400:
        return
    detail = _error_detail(response)
    response.close()
    if response.status_code in (401, 403):
        raise AuthenticationError(detail)
    raise UnknownError(f"HTTP {response.status_code}: {detail}")


def _post(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    try:
        response = session.post(url, **kwargs)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransportError(str(e)) from e
    except requests.RequestException as e:
        raise UnknownError(f"{type(e).__name__}: {e}") from e
    _check_response(response)
    return response


class ChatStream:
    """Lazy, single-use iterator over the fragments of one streamed completion.

    Nothing is sent until the first ``next()``. ``close()`` may be called
    from another thread; it closes the response and the HTTP session, which
    aborts a read in progress.
    """

    def __init__(self, session: requests.Session, url: str, headers: Dict[str, str],
                 body: Dict[str, Any], timeout: float):
        self._session = session
        self._url = url
        self._headers = headers
        self._body = body
        self._timeout = timeout
        self._response: Optional[requests.Response] = None
        self._fragments: Optional[Iterator[str]] = None
        self._closed = False

    def __iter__(self) -> "ChatStream":
        return self

    def __next__(self) -> str:
        if self._fragments is None:
            self._fragments = self._generate()
        return next(self._fragments)

    @property
    def closed(self) -> bool:
        return self._closed

    def _generate(self) -> Iterator[str]:
        if self._closed:
            return
        response = _post(
            self._session, self._url,
            headers=self._headers, json=self._body,
            stream=True, timeout=self._timeout,
        )
        self._response = response
        if self._closed:
            # Cancelled while the request was being accepted.
            response.close()
            return
        try:
            lines = _decode_lines(response.iter_lines())
            yield from decode_chat_stream(iter_sse_events(lines))
        except requests.RequestException as e:
            raise StreamInterruptedError(f"{type(e).__name__}: {e}") from e
        finally:
            response.close()

    def close(self) -> None:
        self._closed = True
        response = self._response
        if response is not None:
            response.close()
        self._session.close()


_END = object()
StreamItem = Union[str, StreamError]


class RequestHandle:
    """A ChatStream drained on a daemon thread.

    The worker only talks to the foreground through a queue: fragments in
    order, then either one StreamError or the end marker. ``poll()`` never
    blocks and returns None when nothing new has arrived; ``finished`` turns
    True once the end marker or an error has been consumed.
    """

    def __init__(self, stream: ChatStream):
        self._stream = stream
        self._items: "queue.Queue[object]" = queue.Queue()
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="shai-request", daemon=True)
        self.finished = False

    def start(self) -> "RequestHandle":
        self._thread.start()
        return self

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def pending(self) -> bool:
        return not self._items.empty()

    def _run(self) -> None:
        try:
            for fragment in self._stream:
                if self._cancelled.is_set():
                    return
                self._items.put(fragment)
        except StreamError as e:
            if not self._cancelled.is_set():
                log.warning("Request failed: %s", e)
                self._items.put(e)
            return
        except Exception as e:
            if self._cancelled.is_set():
                log.debug("Dropping error from cancelled request: %s", e)
                return
            log.exception("Unexpected failure while streaming")
            self._items.put(UnknownError(f"{type(e).__name__}: {e}"))
            return
        finally:
            self._stream.close()
        self._items.put(_END)

    def poll(self) -> Optional[StreamItem]:
        if self.finished:
            return None
        try:
            item = self._items.get_nowait()
        except queue.Empty:
            return None
        if item is _END:
            self.finished = True
            return None
        if isinstance(item, StreamError):
            self.finished = True
        return item

    def cancel(self) -> None:
        """Stop waiting and abort the connection; later items are discarded."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self.finished = True
        self._stream.close()


class ChatClient:
    """Chat-completions client for one model preset.

    Credentials come from the preset's environment variable and are checked
    before anything is sent.
    """

    def __init__(self, preset: ModelPreset, timeout: float = 60,
                 session_factory: Callable[[], requests.Session] = requests.Session):
        self.preset = preset
        self.timeout = timeout
        self._session_factory = session_factory

    def build_headers(self, stream: bool) -> Dict[str, str]:
        api_key = self.preset.resolve_api_key()
        if not api_key:
            raise AuthenticationError(
                f"You need to set {self.preset.api_key_env} to use {self.preset.name}"
            )
        if not api_key.isprintable() or not api_key.isascii():
            raise AuthenticationError(f"{self.preset.api_key_env} contains invalid characters")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def build_body(self, message: str, context: str, task: Task, stream: bool) -> Dict[str, Any]:
        return {
            "model": self.preset.model,
            "messages": [
                {"role": "system", "content": system_prompt(task)},
                {"role": "user", "content": build_context_request(message, context)},
            ],
            "temperature": 0,
            "stream": stream,
        }

    def stream(self, message: str, context: str, task: Task) -> ChatStream:
        """Validate the request now; send it lazily when iteration starts."""
        headers = self.build_headers(stream=True)
        body = self.build_body(message, context, task, stream=True)
        log.info("Streaming %s request to %s (model=%s)",
                 task.value, self.preset.endpoint, self.preset.model)
        return ChatStream(self._session_factory(), self.preset.endpoint, headers, body, self.timeout)

    def open_stream(self, message: str, context: str, task: Task) -> RequestHandle:
        """Prepare a background request. Setup errors raise immediately."""
        return RequestHandle(self.stream(message, context, task))

    def send(self, message: str, context: str, task: Task) -> str:
        """Blocking, non-streaming request returning the whole answer."""
        headers = self.build_headers(stream=False)
        body = self.build_body(message, context, task, stream=False)
        log.info("Sending %s request to %s (model=%s)",
                 task.value, self.preset.endpoint, self.preset.model)
        session = self._session_factory()
        try:
            response = _post(session, self.preset.endpoint,
                             headers=headers, json=body, timeout=self.timeout)
            try:
                data = response.json()
            except ValueError as e:
                raise DeserializationError("response is not JSON", response.text[:200]) from e
        finally:
            session.close()

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise DeserializationError("response has no choices[0].message.content",
                                       json.dumps(data)[:200]) from e
        return content or ""
