"""
Phrasing gateway

Turns an intent plus supporting facts into the text shown to the traveler.
The dialogue never depends on the wording, only on getting *some* string
back: any failure (non-2xx, timeout, malformed body, open breaker) falls back
to a canned phrase for the intent and the turn proceeds as normal.
"""

from typing import Any, Dict, List, Optional, Protocol
import json
import time

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_openai import ChatOpenAI

from planner.config import settings
from planner.conversation.prompts import SYSTEM_PROMPT, fallback_for, instruction_for
from planner.errors import CircuitOpenError, PhrasingError
from planner.infrastructure.resilience import CircuitBreaker
from planner.obs.logger import log_event
from planner.obs.metrics import inc_counter, record_timing
from planner.types import ConversationTurn, PhrasingRequest, PhrasingResponse


class PhrasingGateway(Protocol):
    def compose(self, request: PhrasingRequest, timeout: float) -> PhrasingResponse:
        ...


USER = """{instruction}

Facts (JSON): {facts}"""


def _history_messages(turns: List[ConversationTurn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for t in turns:
        if t.role == "assistant":
            messages.append(AIMessage(content=t.text))
        else:
            messages.append(HumanMessage(content=t.text))
    return messages


class LLMPhrasingGateway:
    """Phrases intents with an OpenAI chat model through LangChain."""

    def __init__(self, llm: ChatOpenAI):
        self.llm = llm
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", SYSTEM_PROMPT),
                MessagesPlaceholder("history"),
                ("user", USER),
            ]
        )

    def compose(self, request: PhrasingRequest, timeout: float) -> PhrasingResponse:
        msgs = self.prompt.format_messages(
            history=_history_messages(request.recent_turns),
            instruction=instruction_for(request.intent, request.facts),
            facts=json.dumps(request.facts, ensure_ascii=False, default=str),
        )
        res = self.llm.invoke(msgs, timeout=timeout)
        content = getattr(res, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise PhrasingError(f"empty completion for intent {request.intent}")
        return PhrasingResponse(text=content.strip())


class HttpPhrasingGateway:
    """Posts ``{intent, facts, recentTurns}`` to an external phrasing service."""

    def __init__(self, url: str, client: Optional[httpx.Client] = None):
        self.url = url
        self._http = client or httpx.Client(
            timeout=httpx.Timeout(connect=2.0, read=settings.PHRASING_TIMEOUT_SECONDS,
                                  write=settings.PHRASING_TIMEOUT_SECONDS, pool=2.0),
        )

    def compose(self, request: PhrasingRequest, timeout: float) -> PhrasingResponse:
        try:
            r = self._http.post(
                self.url,
                json=request.model_dump(mode="json", by_alias=True),
                headers={"Accept": "application/json"},
                timeout=timeout,
            )
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PhrasingError(f"phrasing service error: {type(e).__name__}: {e}") from e

        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise PhrasingError("phrasing service returned no text")
        return PhrasingResponse(text=text.strip())

    def close(self) -> None:
        self._http.close()


class Phraser:
    """Calls the gateway with one short retry, then falls back to canned text."""

    def __init__(
        self,
        gateway: Optional[PhrasingGateway] = None,
        retries: int = settings.PHRASING_RETRIES,
        timeout: float = settings.PHRASING_TIMEOUT_SECONDS,
        retry_timeout: float = settings.PHRASING_RETRY_TIMEOUT_SECONDS,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.gateway = gateway
        self.retries = max(0, retries)
        self.timeout = timeout
        self.retry_timeout = retry_timeout
        self.breaker = breaker or CircuitBreaker(
            name="phrasing_gateway",
            failure_threshold=settings.PHRASING_BREAKER_THRESHOLD,
            recovery_timeout=settings.PHRASING_BREAKER_RECOVERY_SECONDS,
        )

    def phrase(
        self,
        intent: str,
        facts: Optional[Dict[str, Any]] = None,
        recent_turns: Optional[List[ConversationTurn]] = None,
    ) -> str:
        facts = facts or {}
        if self.gateway is None:
            inc_counter("phrasing_requests_total", {"outcome": "offline"})
            return fallback_for(intent, facts)

        request = PhrasingRequest(intent=intent, facts=facts, recent_turns=list(recent_turns or []))
        last_error: Optional[Exception] = None

        for attempt in range(1 + self.retries):
            timeout = self.timeout if attempt == 0 else self.retry_timeout
            start = time.monotonic()
            try:
                response = self.breaker.call(self.gateway.compose, request, timeout)
            except CircuitOpenError as e:
                last_error = e
                break
            except Exception as e:
                last_error = e
                log_event(
                    "phrasing_retry" if attempt < self.retries else "phrasing_failed",
                    level="WARNING",
                    intent=intent,
                    attempt=attempt + 1,
                    error=f"{type(e).__name__}: {e}",
                )
                continue
            finally:
                record_timing("phrasing_latency_ms", (time.monotonic() - start) * 1000.0)

            inc_counter("phrasing_requests_total", {"outcome": "ok"})
            return response.text

        inc_counter("phrasing_requests_total", {"outcome": "fallback"})
        log_event(
            "phrasing_fallback",
            level="WARNING",
            intent=intent,
            error=type(last_error).__name__ if last_error else None,
        )
        return fallback_for(intent, facts)

    def close(self) -> None:
        """Release the gateway's connections, if it holds any."""
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()


def create_phraser() -> Phraser:
    """Build the phraser from settings: HTTP service, else OpenAI, else canned text only."""
    gateway: Optional[PhrasingGateway] = None
    if settings.PHRASING_URL:
        gateway = HttpPhrasingGateway(settings.PHRASING_URL)
    elif settings.OPENAI_API_KEY:
        gateway = LLMPhrasingGateway(
            ChatOpenAI(
                model=settings.OPENAI_MODEL,
                temperature=0.5,
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.PHRASING_TIMEOUT_SECONDS,
                max_retries=0,
            )
        )
    log_event("phraser_configured", backend=type(gateway).__name__ if gateway else "fallback_only")
    return Phraser(gateway)
