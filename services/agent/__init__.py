"""Constructor Shopping Agent and Product Insights Agent package."""

from services.agent.service import AgentOptions, AgentService, UserContext
from services.agent.sse import AgentConversationState, SseDecoder, SseEvent
from services.agent.types import AgentResponse, ProductAnswer, ProductQuestions

__all__ = [
    "AgentConversationState",
    "AgentOptions",
    "AgentResponse",
    "AgentService",
    "ProductAnswer",
    "ProductQuestions",
    "SseDecoder",
    "SseEvent",
    "UserContext",
]
