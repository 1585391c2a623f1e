"""
Server-Sent-Events parsing and aggregation for the Constructor agents.

One decoder serves both consumption modes. In buffered mode the whole body
is fed at once and flushed, so the final block counts even without a
trailing blank line. In streaming mode chunks are fed as they arrive and a
trailing partial block is discarded when the stream closes.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from core.logging import get_logger
from services.constructor.normalizers import as_text, normalize_products, resolve
from services.constructor.types import CanonicalProduct

logger = get_logger(__name__)

EVENT_PREFIX = "event: "
DATA_PREFIX = "data: "
BLOCK_DELIMITER = "\n\n"

START_EVENTS = frozenset({"start"})
MESSAGE_EVENTS = frozenset({"message"})
PRODUCT_EVENTS = frozenset({"search_result", "search_results"})
FOLLOW_UP_EVENTS = frozenset({"suggestions", "follow_up", "follow_up_questions"})
END_EVENTS = frozenset({"end"})

# Where product batches sit in a search_result payload, in order of preference
PRODUCT_BATCH_PATHS = (("response", "results"), ("data",), ("products",), ("results",))
FOLLOW_UP_PATHS = (("questions",), ("suggestions",))
END_FOLLOW_UP_PATHS = (("follow_up_questions",), ("suggestions",))

# Names of the events passed to live callbacks
CALLBACK_START = "start"
CALLBACK_MESSAGE = "message"
CALLBACK_PRODUCTS = "products"
CALLBACK_FOLLOW_UP = "follow_up"
CALLBACK_END = "end"
CALLBACK_COMPLETE = "complete"

type EventCallback = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True, slots=True)
class SseEvent:
    """One decoded event: its type and JSON payload."""

    type: str
    data: Any


def parse_event_block(block: str) -> SseEvent | None:
    """
    Parse one blank-line-delimited block.

    Returns:
        The event, or None when the block lacks an event line or a
        JSON data line.
    """
    event_type: str | None = None
    data: Any = None
    for line in block.strip().split("\n"):
        if line.startswith(EVENT_PREFIX):
            event_type = line[len(EVENT_PREFIX) :].strip()
        elif line.startswith(DATA_PREFIX):
            try:
                data = json.loads(line[len(DATA_PREFIX) :].strip())
            except ValueError:
                data = None
    if event_type is None or data is None:
        return None
    return SseEvent(type=event_type, data=data)


class SseDecoder:
    """
    Incremental block decoder.

    Accepts text or bytes in chunks of any size, normalizes line endings
    and yields events for every complete block.
    """

    def __init__(self) -> None:
        """Initialize an empty decoder."""
        self._buffer = ""
        self._pending_cr = False
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _normalize(self, text: str) -> str:
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        # A trailing CR may be the first half of a CRLF split across chunks
        if text.endswith("\r"):
            text = text[:-1]
            self._pending_cr = True
        return text.replace("\r\n", "\n").replace("\r", "\n")

    def feed(self, chunk: str | bytes) -> list[SseEvent]:
        """
        Add a chunk and return the events completed by it.

        Args:
            chunk: Raw text or bytes.

        Returns:
            Events in arrival order.
        """
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += self._normalize(text)

        events: list[SseEvent] = []
        while BLOCK_DELIMITER in self._buffer:
            block, self._buffer = self._buffer.split(BLOCK_DELIMITER, 1)
            event = parse_event_block(block)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SseEvent]:
        """Parse whatever is left as a final block (the body is known to be complete)."""
        tail = self._utf8.decode(b"", final=True)
        if self._pending_cr:
            tail += "\n"
            self._pending_cr = False
        block = self._buffer + tail.replace("\r\n", "\n").replace("\r", "\n")
        self._buffer = ""
        event = parse_event_block(block)
        return [event] if event is not None else []

    def close(self) -> str:
        """
        Discard any partial block left at the end of a stream.

        Returns:
            The discarded text.
        """
        discarded = self._buffer
        self._buffer = ""
        self._pending_cr = False
        self._utf8.reset()
        return discarded


def _list_at(data: Any, paths: tuple[tuple[str, ...], ...]) -> list[Any] | None:
    value = resolve(data, paths)
    return value if isinstance(value, list) else None


@dataclass(slots=True)
class AgentConversationState:
    """
    Aggregate of one agent call.

    Lives for a single call. Text, products and follow-up questions are only
    appended to, in arrival order, without de-duplication.
    """

    thread_id: str | None = None
    text: str = ""
    products: list[CanonicalProduct] = field(default_factory=list)
    follow_up_questions: list[Any] = field(default_factory=list)

    def apply(self, event: SseEvent) -> tuple[str, dict[str, Any]] | None:
        """
        Fold one event into the aggregate.

        Returns:
            The live-callback name and payload, or None for ignored events.
        """
        data = event.data

        if event.type in START_EVENTS:
            self.thread_id = as_text(data.get("thread_id")) if isinstance(data, Mapping) else None
            return CALLBACK_START, {"thread_id": self.thread_id}

        if event.type in MESSAGE_EVENTS:
            delta = data.get("text") if isinstance(data, Mapping) else None
            delta = delta if isinstance(delta, str) else ""
            self.text += delta
            return CALLBACK_MESSAGE, {"text": delta, "accumulated": self.text}

        if event.type in PRODUCT_EVENTS:
            batch: Any = []
            if isinstance(data, Mapping):
                for path in PRODUCT_BATCH_PATHS:
                    value = resolve(data, (path,))
                    if value is None:
                        continue
                    batch = [value] if path == ("data",) else value
                    break
            products = normalize_products(batch)
            self.products.extend(products)
            return CALLBACK_PRODUCTS, {"products": products}

        if event.type in FOLLOW_UP_EVENTS:
            if isinstance(data, Mapping):
                questions = _list_at(data, FOLLOW_UP_PATHS) or []
            else:
                questions = data if isinstance(data, list) else []
            self.follow_up_questions.extend(questions)
            return CALLBACK_FOLLOW_UP, {"questions": list(questions)}

        if event.type in END_EVENTS:
            if isinstance(data, Mapping):
                self.follow_up_questions.extend(_list_at(data, END_FOLLOW_UP_PATHS) or [])
                return CALLBACK_END, dict(data)
            return CALLBACK_END, {}

        return None

    def snapshot(self) -> dict[str, Any]:
        """Return the aggregate as a plain mapping."""
        return {
            "thread_id": self.thread_id,
            "text": self.text,
            "products": list(self.products),
            "follow_up_questions": list(self.follow_up_questions),
        }

    def to_dict(self) -> dict[str, Any]:
        """Return the aggregate with products serialized."""
        snapshot = self.snapshot()
        snapshot["products"] = [product.to_dict() for product in self.products]
        return snapshot


def aggregate_events(
    events: list[SseEvent],
    state: AgentConversationState,
    on_event: EventCallback | None = None,
) -> None:
    """Apply events to the state, forwarding each emitted payload to on_event."""
    for event in events:
        emitted = state.apply(event)
        if emitted is not None and on_event is not None:
            on_event(*emitted)


def aggregate_sse_body(body: str) -> AgentConversationState:
    """
    Aggregate a complete SSE body (buffered mode).

    Args:
        body: The full response body.

    Returns:
        The conversation state after every event.
    """
    decoder = SseDecoder()
    state = AgentConversationState()
    aggregate_events(decoder.feed(body), state)
    aggregate_events(decoder.flush(), state)
    return state


async def aggregate_sse_stream(
    chunks: AsyncIterable[bytes | str],
    on_event: EventCallback | None = None,
) -> AgentConversationState:
    """
    Aggregate an SSE stream (streaming mode).

    on_event runs synchronously for every decoded event, in arrival order,
    on the task reading the stream; a slow callback stalls the stream. A
    final ``complete`` callback carries the aggregate.

    Args:
        chunks: Raw chunks in arrival order.
        on_event: Live callback receiving (event name, payload).

    Returns:
        The conversation state after the stream ended.
    """
    decoder = SseDecoder()
    state = AgentConversationState()
    async for chunk in chunks:
        aggregate_events(decoder.feed(chunk), state, on_event)

    discarded = decoder.close()
    if discarded.strip():
        logger.debug("Discarded partial SSE block", length=len(discarded))

    if on_event is not None:
        on_event(CALLBACK_COMPLETE, state.snapshot())
    return state
