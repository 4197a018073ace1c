"""
Query-to-report orchestrator.

An explicit state machine: each handler receives the current frozen
PipelineContext and returns the next state with a new context. Every path
ends in RESPOND, which appends the assistant message to the conversation log.
"""
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .aggregation import NON_WEB3_RESPONSE, TOKEN_NOT_FOUND_RESPONSE, build_report, run_analysis
from .classification import Classifier
from .config import CONFIDENCE_THRESHOLD
from .connection import ConnectionManager
from .detection import detect
from .models import ChatMessage, ClassificationResult, DetectedEntities, PipelineContext, PipelineResult, Query
from .reporting import render_json

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    CLASSIFY = "classify"
    DETECT = "detect"
    ANALYZE = "analyze"
    REJECT_NON_WEB3 = "reject_non_web3"
    REJECT_NO_ENTITIES = "reject_no_entities"
    RESPOND = "respond"
    DONE = "done"


class PipelineEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: PipelineState
    context: PipelineContext


Transition = Tuple[PipelineState, PipelineContext]


def route_after_classification(classification: ClassificationResult) -> PipelineState:
    if classification.is_web3 and classification.confidence > CONFIDENCE_THRESHOLD:
        return PipelineState.DETECT
    if classification.is_web3:
        return PipelineState.REJECT_NO_ENTITIES
    return PipelineState.REJECT_NON_WEB3


def route_after_detection(detected: DetectedEntities) -> PipelineState:
    if detected.is_empty:
        return PipelineState.REJECT_NO_ENTITIES
    return PipelineState.ANALYZE


class ScoutPipeline:
    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        manager_factory: Optional[Callable[[], ConnectionManager]] = None,
    ):
        self.classifier = classifier or Classifier()
        self.manager_factory = manager_factory or ConnectionManager
        self._handlers: Dict[PipelineState, Callable[[PipelineContext], Awaitable[Transition]]] = {
            PipelineState.CLASSIFY: self._classify,
            PipelineState.DETECT: self._detect,
            PipelineState.ANALYZE: self._analyze,
            PipelineState.REJECT_NON_WEB3: self._reject_non_web3,
            PipelineState.REJECT_NO_ENTITIES: self._reject_no_entities,
            PipelineState.RESPOND: self._respond,
        }

    async def _classify(self, ctx: PipelineContext) -> Transition:
        classification = await self.classifier.classify(ctx.query.text)
        next_state = route_after_classification(classification)
        logger.info(
            f"🔀 Routing after classification: {classification.classification} "
            f"(confidence: {classification.confidence}) -> {next_state.value}"
        )
        return next_state, ctx.model_copy(update={"classification": classification})

    async def _detect(self, ctx: PipelineContext) -> Transition:
        detected = detect(ctx.query.text)
        next_state = route_after_detection(detected)
        logger.info(
            f"🔀 Routing after detection: found {len(detected.tokens)} tokens, "
            f"{len(detected.contracts)} contracts, {len(detected.wallets)} wallets -> {next_state.value}"
        )
        return next_state, ctx.model_copy(update={"detected": detected})

    async def _analyze(self, ctx: PipelineContext) -> Transition:
        # A fresh manager per run; never shared between requests
        manager = self.manager_factory()
        outcome = await run_analysis(ctx.detected, manager)
        report = build_report(ctx.query.text, ctx.classification, ctx.detected, outcome)
        logger.info(f"🔗 MCP Connection Status: {report.mcp_connected}")
        return PipelineState.RESPOND, ctx.model_copy(update={"report": report, "output": render_json(report)})

    async def _reject_non_web3(self, ctx: PipelineContext) -> Transition:
        logger.info("❌ Non-Web3 query detected, providing redirect response")
        return PipelineState.RESPOND, ctx.model_copy(update={"output": NON_WEB3_RESPONSE})

    async def _reject_no_entities(self, ctx: PipelineContext) -> Transition:
        logger.info("🔍 Web3 query but nothing to analyze, providing fallback response")
        return PipelineState.RESPOND, ctx.model_copy(update={"output": TOKEN_NOT_FOUND_RESPONSE})

    async def _respond(self, ctx: PipelineContext) -> Transition:
        messages = [*ctx.messages, ChatMessage(role="assistant", content=ctx.output or "")]
        return PipelineState.DONE, ctx.model_copy(update={"messages": messages})

    async def stream(self, query: Union[Query, str]) -> AsyncIterator[PipelineEvent]:
        """Run the pipeline, yielding the context after each state."""
        if isinstance(query, str):
            query = Query(text=query)

        ctx = PipelineContext(
            query=query,
            messages=[*query.history, ChatMessage(role="user", content=query.text)],
        )
        state = PipelineState.CLASSIFY
        while state != PipelineState.DONE:
            next_state, ctx = await self._handlers[state](ctx)
            yield PipelineEvent(state=state, context=ctx)
            state = next_state

    async def run(self, query: Union[Query, str]) -> PipelineResult:
        ctx: Optional[PipelineContext] = None
        async for event in self.stream(query):
            ctx = event.context

        return PipelineResult(
            output=ctx.output or "",
            messages=ctx.messages,
            report=ctx.report,
            classification=ctx.classification,
        )
