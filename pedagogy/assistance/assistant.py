"""Assistance coordinator - one in-flight request per conversation."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Optional, Protocol

from assistant.llm_client import clean_response
from assistant.prompts import RETRY_MESSAGE, UNAVAILABLE_MESSAGE
from pedagogy.assistance.context_injector import ContextInjector
from pedagogy.assistance.requests import (
    AssistanceRequest,
    AssistanceResponse,
    CancellationToken,
    RequestState,
    Turn,
)
from pedagogy.assistance.safety_filter import sanitize
from pedagogy.config import REQUEST_POLICIES
from pedagogy.exceptions import AssistanceError, ConfigurationError

logger = logging.getLogger(__name__)


class AssistanceGenerator(Protocol):
    """Protocol for the assistance generator (any LLM client)."""

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate a response from the LLM."""
        ...


class AssistanceCoordinator:
    """
    Drive requests through idle -> awaiting -> fulfilled/cancelled/timed_out/failed.

    Policy "cancel" abandons the outstanding request when a new one arrives;
    policy "queue" serves requests first-in first-out. An abandoned request,
    or one whose cell is no longer active, never touches the history.
    """

    def __init__(
        self,
        generator: AssistanceGenerator,
        injector: Optional[ContextInjector] = None,
        timeout: float = 30.0,
        history_window: int = 6,
        policy: str = "cancel",
    ):
        """
        Initialize the coordinator.

        Args:
            generator: Client producing response text.
            injector: Prompt builder.
            timeout: Seconds before a generation is abandoned as timed out.
            history_window: Number of turns kept in the conversation history.
            policy: "cancel" or "queue".
        """
        if policy not in REQUEST_POLICIES:
            raise ConfigurationError(f"Unknown request policy: {policy}", config_key="request_policy")

        self.generator = generator
        self.injector = injector or ContextInjector()
        self.timeout = timeout
        self.policy = policy
        self.history: deque[Turn] = deque(maxlen=history_window)
        self.state = RequestState.IDLE
        self._active_token: Optional[CancellationToken] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def history_snapshot(self) -> tuple[Turn, ...]:
        """Immutable copy of the current history window."""
        return tuple(self.history)

    def clear_history(self) -> None:
        """Forget the conversation."""
        self.history.clear()

    def cancel_pending(self) -> None:
        """Abandon the outstanding request, if any."""
        if self._active_token is not None and not self._active_token.cancelled:
            logger.info("Cancelling outstanding assistance request")
            self._active_token.cancel()

    def _get_lock(self) -> asyncio.Lock:
        """FIFO lock bound to the running event loop."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def submit(
        self,
        request: AssistanceRequest,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> AssistanceResponse:
        """
        Submit a request and wait for its response.

        Args:
            request: The assembled request.
            is_current: Returns False once the request's cell or session is no
                longer active.

        Returns:
            AssistanceResponse with the final state and text.
        """
        if self.policy == "queue":
            async with self._get_lock():
                self._active_token = request.token
                return await self._process(request, is_current)

        self.cancel_pending()
        self._active_token = request.token
        return await self._process(request, is_current)

    def _respond(self, request: AssistanceRequest, state: RequestState, text: str) -> AssistanceResponse:
        if request.token is self._active_token:
            self.state = state
        return AssistanceResponse(
            state=state,
            text=text,
            query_type=request.query_type,
            tier=request.tier,
            cell_index=request.cell_index,
        )

    def _call_generator(self, prompt: str, system_prompt: str, token: CancellationToken) -> Optional[str]:
        """Run the generator unless the request was abandoned while waiting for a thread."""
        if token.cancelled:
            return None
        try:
            return self.generator.generate(prompt, system_prompt)
        except TimeoutError as e:
            # asyncio.TimeoutError is TimeoutError on 3.11+; only our own deadline is a timeout.
            raise AssistanceError(f"Provider timed out: {e}", cause=e) from e

    def _is_stale(self, request: AssistanceRequest, is_current: Optional[Callable[[], bool]]) -> bool:
        return request.token.cancelled or (is_current is not None and not is_current())

    async def _process(
        self,
        request: AssistanceRequest,
        is_current: Optional[Callable[[], bool]],
    ) -> AssistanceResponse:
        if self._is_stale(request, is_current):
            return self._respond(request, RequestState.CANCELLED, "")

        self.state = RequestState.AWAITING
        prompt = self.injector.build_prompt(request)
        system_prompt = self.injector.build_system_prompt()
        logger.debug(f"Requesting {request.query_type.value} assistance for cell {request.cell_index}")

        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._call_generator, prompt, system_prompt, request.token),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            if self._is_stale(request, is_current):
                return self._respond(request, RequestState.CANCELLED, "")
            logger.warning(f"Assistance generation timed out after {self.timeout}s")
            return self._respond(request, RequestState.TIMED_OUT, UNAVAILABLE_MESSAGE)
        except Exception as e:
            # Provider SDKs raise their own error types; all degrade the same way.
            if self._is_stale(request, is_current):
                return self._respond(request, RequestState.CANCELLED, "")
            logger.warning(f"Assistance generation failed: {e}")
            return self._respond(request, RequestState.FAILED, RETRY_MESSAGE)

        if raw is None or self._is_stale(request, is_current):
            logger.info("Discarding response for an abandoned request")
            return self._respond(request, RequestState.CANCELLED, "")

        text = sanitize(clean_response(raw), request.query_type, request.tier)

        self.history.append(
            Turn(role="learner", content=request.message or f"Asked for {request.query_type.value} help")
        )
        self.history.append(Turn(role="mentor", content=text))
        return self._respond(request, RequestState.FULFILLED, text)
