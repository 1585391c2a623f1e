"""
Shopping Agent and Product Insights Agent client for Constructor.

Asking the agent is an action: failures propagate as typed errors.
Suggested questions and complementary products are cosmetic and degrade
to empty values instead.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core.logging import get_logger, log_context
from core.result import Failure
from services.agent.prompts import complementary_products_prompt
from services.agent.sse import EventCallback, aggregate_sse_stream
from services.agent.types import AgentResponse, ProductAnswer, ProductQuestions
from services.constructor.client import ConstructorHttpClient, encode_path_segment
from services.constructor.errors import ConfigurationError, ConstructorError

if TYPE_CHECKING:
    from core.config import ConstructorSettings
    from services.constructor.context import BackendContext
    from services.constructor.types import CanonicalProduct

logger = get_logger(__name__)

# Client identifier sent as 'c' when the caller gives none
DEFAULT_AGENT_CLIENT = "cio-python-1.0"

DEFAULT_QUESTIONS_LIMIT = 5
DEFAULT_ANSWER_RESULTS = 3
DEFAULT_COMPLEMENTARY_LIMIT = 4


@dataclass(frozen=True, slots=True)
class UserContext:
    """
    End-user identifiers forwarded to the agents.

    Attributes:
        client: Client identifier (``c``).
        user_segments: Segments (``us``), joined with commas.
        user_id: End-user id (``ui``).
        session_id: Session id (``s``).
        instance_id: Client instance id (``i``).
    """

    client: str = DEFAULT_AGENT_CLIENT
    user_segments: Sequence[str] | str | None = None
    user_id: str | None = None
    session_id: str | None = None
    instance_id: str | None = None

    def to_params(self) -> dict[str, Any]:
        """Return the query parameters that are set."""
        params: dict[str, Any] = {"c": self.client or DEFAULT_AGENT_CLIENT}
        if self.user_segments:
            segments = self.user_segments
            params["us"] = segments if isinstance(segments, str) else ",".join(segments)
        if self.user_id is not None:
            params["ui"] = self.user_id
        if self.session_id is not None:
            params["s"] = self.session_id
        if self.instance_id is not None:
            params["i"] = self.instance_id
        return params


@dataclass(frozen=True, slots=True)
class AgentOptions:
    """
    Per-call knobs for the shopping agent.

    Unset knobs fall back to the service defaults. pre_filter_expression is
    sent verbatim when it is a string and JSON-encoded when it is an object.
    """

    guard: bool | None = None
    num_result_events: int | None = None
    num_results_per_event: int | None = None
    pre_filter_expression: str | Mapping[str, Any] | None = None
    user: UserContext = field(default_factory=UserContext)


class AgentService:
    """
    Client for the Constructor AI agents.

    Attributes:
        client: HTTP client for the agent host.
        domain: Shopping Agent domain; the shopping agent is unusable without it.
        guard: Default content moderation flag.
        num_result_events: Default maximum of result events.
        num_results_per_event: Default products per result event.
    """

    def __init__(
        self,
        client: ConstructorHttpClient,
        domain: str | None = None,
        *,
        guard: bool = True,
        num_result_events: int = 5,
        num_results_per_event: int = 4,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: HTTP client bound to the agent API host.
            domain: Shopping Agent domain.
            guard: Default content moderation flag.
            num_result_events: Default maximum of result events.
            num_results_per_event: Default products per result event.
        """
        self.client = client
        self.domain = domain or None
        self.guard = guard
        self.num_result_events = num_result_events
        self.num_results_per_event = num_results_per_event

    @classmethod
    def from_settings(
        cls,
        settings: ConstructorSettings,
        context: BackendContext | None = None,
    ) -> AgentService:
        """Create a service with its own HTTP client."""
        client = ConstructorHttpClient(
            base_url=settings.agent_base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            retry_times=settings.retry_times,
            retry_sleep_ms=settings.retry_sleep,
            context=context,
        )
        return cls(
            client,
            settings.agent_domain,
            guard=settings.agent_guard,
            num_result_events=settings.agent_num_result_events,
            num_results_per_event=settings.agent_num_results_per_event,
        )

    @property
    def has_domain(self) -> bool:
        """Check if the Shopping Agent domain is configured."""
        return self.domain is not None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.close()

    def _require_domain(self) -> str:
        if self.domain is None:
            msg = "Shopping Agent domain is not configured"
            raise ConfigurationError(msg)
        return self.domain

    def build_intent_params(
        self, thread_id: str | None = None, options: AgentOptions | None = None
    ) -> dict[str, Any]:
        """
        Build shopping agent query parameters.

        Raises:
            ConfigurationError: If no agent domain is configured.
        """
        options = options or AgentOptions()
        params: dict[str, Any] = {
            "domain": self._require_domain(),
            "guard": self.guard if options.guard is None else options.guard,
            "num_result_events": options.num_result_events or self.num_result_events,
            "num_results_per_event": options.num_results_per_event or self.num_results_per_event,
        }
        if thread_id:
            params["thread_id"] = thread_id
        if options.pre_filter_expression:
            params["pre_filter_expression"] = options.pre_filter_expression
        params.update(options.user.to_params())
        return params

    @staticmethod
    def _intent_path(query: str) -> str:
        return f"/v1/intent/{encode_path_segment(query)}"

    async def ask_shopping_agent(
        self,
        query: str,
        thread_id: str | None = None,
        options: AgentOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> AgentResponse:
        """
        Ask the shopping agent a natural-language question.

        Args:
            query: The shopper's request.
            thread_id: Thread of a previous answer, to continue the conversation.
            options: Per-call knobs.
            context: End user the call is made for; the client default when None.

        Returns:
            The agent's answer.

        Raises:
            ConfigurationError: If no agent domain is configured.
            ConstructorError: If the request fails.
        """
        params = self.build_intent_params(thread_id, options)

        logger.info("Asking shopping agent", query=query, thread_id=thread_id)
        result = await self.client.request(
            "GET", self._intent_path(query), params=params, context=context
        )

        if isinstance(result, Failure):
            logger.error(
                "Shopping agent request failed",
                query=query,
                thread_id=thread_id,
                error=str(result.error),
            )
            raise result.error

        response = AgentResponse.from_body(result.value)
        logger.info(
            "Shopping agent answered",
            thread_id=response.thread_id,
            products_count=len(response.products),
        )
        return response

    async def ask_shopping_agent_streaming(
        self,
        query: str,
        on_event: EventCallback,
        thread_id: str | None = None,
        options: AgentOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> AgentResponse:
        """
        Ask the shopping agent and receive its answer as it is produced.

        on_event is called synchronously for each event (``start``,
        ``message``, ``products``, ``follow_up``, ``end``) and finally with
        ``complete``. It runs on the task reading the stream, so a slow
        callback stalls the stream.

        Args:
            query: The shopper's request.
            on_event: Live callback receiving (event name, payload).
            thread_id: Thread of a previous answer.
            options: Per-call knobs.
            context: End user the call is made for; the client default when None.

        Returns:
            The aggregated answer.

        Raises:
            ConfigurationError: If no agent domain is configured.
            RateLimitError: On 429.
            AuthenticationError: On 401/403.
            ConstructorError: If the stream fails otherwise.
        """
        params = self.build_intent_params(thread_id, options)

        with log_context(agent_domain=params["domain"], thread_id=thread_id):
            logger.info("Streaming shopping agent", query=query)
            try:
                async with self.client.stream(
                    self._intent_path(query), params, context
                ) as response:
                    state = await aggregate_sse_stream(response.aiter_bytes(), on_event)
            except ConstructorError as e:
                logger.error("Shopping agent stream failed", query=query, error=str(e))
                raise

        return AgentResponse.from_state(state)

    async def get_product_questions(
        self,
        item_id: str,
        *,
        num_results: int = DEFAULT_QUESTIONS_LIMIT,
        variation_id: str | None = None,
        user: UserContext | None = None,
        context: BackendContext | None = None,
    ) -> ProductQuestions:
        """
        Get suggested questions about a product.

        Returns:
            The questions, or an empty result if the request fails.
        """
        params: dict[str, Any] = {"item_id": item_id, "num_results": num_results}
        if variation_id:
            params["variation_id"] = variation_id
        params.update((user or UserContext()).to_params())

        try:
            result = await self.client.get_json("/v1/item_questions", params, context=context)
        except Exception as e:
            logger.warning("Product questions failed", item_id=item_id, error=str(e))
            return ProductQuestions.empty()

        if isinstance(result, Failure):
            logger.warning("Product questions failed", item_id=item_id, error=str(result.error))
            return ProductQuestions.empty()

        return ProductQuestions.from_payload(result.value)

    async def ask_product_question(
        self,
        question: str,
        item_id: str,
        thread_id: str | None = None,
        *,
        num_results: int = DEFAULT_ANSWER_RESULTS,
        variation_id: str | None = None,
        guard: bool | None = None,
        user: UserContext | None = None,
        context: BackendContext | None = None,
    ) -> ProductAnswer:
        """
        Ask the Product Insights Agent a question about a product.

        Raises:
            ConstructorError: If the request fails.
        """
        params: dict[str, Any] = {
            "item_id": item_id,
            "guard": self.guard if guard is None else guard,
            "num_results": num_results,
        }
        if thread_id:
            params["thread_id"] = thread_id
        if variation_id:
            params["variation_id"] = variation_id
        params.update((user or UserContext()).to_params())

        path = f"/v1/item_questions/{encode_path_segment(question)}/answer"
        result = await self.client.request("GET", path, params=params, context=context)

        if isinstance(result, Failure):
            logger.error(
                "Product question failed",
                item_id=item_id,
                thread_id=thread_id,
                error=str(result.error),
            )
            raise result.error

        return ProductAnswer.from_body(result.value)

    async def search_complementary_products(
        self,
        product_name: str,
        limit: int = DEFAULT_COMPLEMENTARY_LIMIT,
        category: str | None = None,
        *,
        context: BackendContext | None = None,
    ) -> tuple[CanonicalProduct, ...]:
        """
        Find products that complete an outfit with the given product.

        Returns:
            Up to limit products, or empty if the agent is unavailable.
        """
        if not self.has_domain:
            return ()

        prompt = complementary_products_prompt(product_name, limit, category)
        options = AgentOptions(num_result_events=1, num_results_per_event=limit)

        try:
            response = await self.ask_shopping_agent(prompt, options=options, context=context)
        except Exception as e:
            logger.warning(
                "Complementary products search failed",
                product_name=product_name,
                error=str(e),
            )
            return ()

        return response.products[:limit]
