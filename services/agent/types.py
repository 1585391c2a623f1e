"""Result contracts returned by the AI agents."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from services.agent.sse import AgentConversationState, aggregate_sse_body
from services.constructor.client import ResponseBody, SseBody
from services.constructor.normalizers import (
    FOLLOW_UP_TEXT_KEYS,
    as_text,
    normalize_products,
    normalize_question_list,
    resolve,
)
from services.constructor.types import CanonicalProduct

MESSAGE_PATHS = (("message",), ("response", "message"), ("text",))
PRODUCT_LIST_PATHS = (("products",), ("response", "results"), ("results",))
ANSWER_PATHS = (("value",), ("answer",), ("response", "answer"), ("text",))
FOLLOW_UP_LIST_PATHS = (
    ("follow_up_questions",),
    ("response", "follow_up_questions"),
    ("suggestions",),
)
QUESTION_LIST_PATHS = (("questions",), ("response", "questions"), ("items",))


def _payload(body: ResponseBody) -> dict[str, Any] | AgentConversationState:
    if isinstance(body, SseBody):
        return aggregate_sse_body(body.text)
    return body.as_mapping()


@dataclass(frozen=True, slots=True)
class AgentResponse:
    """
    Answer of the shopping agent.

    Attributes:
        message: Assistant text.
        products: Products the agent surfaced, in arrival order.
        thread_id: Conversation thread for follow-up turns.
        follow_up_questions: Suggested next questions.
        raw: Upstream payload, or the aggregated stream.
    """

    message: str = ""
    products: tuple[CanonicalProduct, ...] = ()
    thread_id: str | None = None
    follow_up_questions: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> AgentResponse:
        """Build from a JSON answer."""
        return cls(
            message=as_text(resolve(payload, MESSAGE_PATHS)) or "",
            products=normalize_products(resolve(payload, PRODUCT_LIST_PATHS)),
            thread_id=as_text(payload.get("thread_id")),
            follow_up_questions=normalize_question_list(
                resolve(payload, FOLLOW_UP_LIST_PATHS), FOLLOW_UP_TEXT_KEYS
            ),
            raw=dict(payload),
        )

    @classmethod
    def from_state(cls, state: AgentConversationState) -> AgentResponse:
        """Build from an aggregated event stream."""
        return cls(
            message=state.text,
            products=tuple(state.products),
            thread_id=state.thread_id,
            follow_up_questions=normalize_question_list(
                state.follow_up_questions, FOLLOW_UP_TEXT_KEYS
            ),
            raw=state.to_dict(),
        )

    @classmethod
    def from_body(cls, body: ResponseBody) -> AgentResponse:
        """Build from either response shape."""
        payload = _payload(body)
        if isinstance(payload, AgentConversationState):
            return cls.from_state(payload)
        return cls.from_payload(payload)

    def has_products(self) -> bool:
        """Check if the agent surfaced products."""
        return bool(self.products)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "message": self.message,
            "products": [product.to_dict() for product in self.products],
            "thread_id": self.thread_id,
            "follow_up_questions": list(self.follow_up_questions),
            "raw": self.raw,
        }


@dataclass(frozen=True, slots=True)
class ProductQuestions:
    """Suggested questions about a product."""

    questions: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> ProductQuestions:
        """Return a result with no questions."""
        return cls()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ProductQuestions:
        """Build from the suggested-questions endpoint."""
        return cls(
            questions=normalize_question_list(resolve(payload, QUESTION_LIST_PATHS)),
            raw=dict(payload),
        )

    def is_empty(self) -> bool:
        """Check if there are no questions."""
        return not self.questions

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {"questions": list(self.questions), "raw": self.raw}


@dataclass(frozen=True, slots=True)
class ProductAnswer:
    """
    Answer to a question about a product.

    Attributes:
        answer: Answer text.
        follow_up_questions: Suggested next questions, empties dropped.
        thread_id: Conversation thread for follow-up questions.
        raw: Upstream payload, or the aggregated stream.
    """

    answer: str = ""
    follow_up_questions: tuple[str, ...] = ()
    thread_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ProductAnswer:
        """Build from a JSON answer."""
        return cls(
            answer=as_text(resolve(payload, ANSWER_PATHS)) or "",
            follow_up_questions=normalize_question_list(
                resolve(payload, FOLLOW_UP_LIST_PATHS), FOLLOW_UP_TEXT_KEYS
            ),
            thread_id=as_text(payload.get("thread_id")),
            raw=dict(payload),
        )

    @classmethod
    def from_body(cls, body: ResponseBody) -> ProductAnswer:
        """Build from either response shape."""
        payload = _payload(body)
        if isinstance(payload, AgentConversationState):
            return cls(
                answer=payload.text,
                follow_up_questions=normalize_question_list(
                    payload.follow_up_questions, FOLLOW_UP_TEXT_KEYS
                ),
                thread_id=payload.thread_id,
                raw=payload.to_dict(),
            )
        return cls.from_payload(payload)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "answer": self.answer,
            "follow_up_questions": list(self.follow_up_questions),
            "thread_id": self.thread_id,
            "raw": self.raw,
        }
