"""
Generation Gateway Module - The streaming question-answering pipeline.
=====================================================================

Runs one question through:

    EXPANDING → RETRIEVING → RERANKING → PROMPTING → QUEUED → STREAMING → DONE

and yields AskChunk objects. Any failure moves the pipeline to FAILED and
produces a terminal error chunk instead. Whatever happens, a request yields
exactly one chunk with ``done=True``, and it is the last one.

Closing the generator (client disconnect) or cancelling the consuming task
closes the provider stream and aborts the in-flight HTTP call.
"""

import uuid
from enum import Enum
from typing import AsyncIterator, Optional

from su_advisor.rag.chain_of_thought import wrap_system_prompt
from su_advisor.rag.local_context import LocalContextResolver, merge_context
from su_advisor.rag.prompts import PromptBuilder
from su_advisor.rag.providers.base import ChatStream, GenerationProvider, get_generation_provider
from su_advisor.rag.query_expander import QueryExpander
from su_advisor.rag.rate_limiter import IntervalRateLimiter
from su_advisor.rag.retriever import HybridRetriever
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import AskChunk, AskRequest, Passage

logger = get_logger(__name__)

ERROR_PREFIX = "Hata: "
EMPTY_QUESTION_ANSWER = "Lütfen bir soru yazın."


class PipelineState(str, Enum):
    EXPANDING = "expanding"
    RETRIEVING = "retrieving"
    RERANKING = "reranking"
    PROMPTING = "prompting"
    QUEUED = "queued"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


class GenerationGateway:
    """
    Streams grounded answers for AskRequests.

    Example:
        >>> gateway = GenerationGateway(expander, retriever, resolver, builder, limiter)
        >>> async for chunk in gateway.ask(AskRequest(question="CS412 zor mu?")):
        ...     print(chunk.chunk, end="")
    """

    def __init__(
        self,
        expander: QueryExpander,
        retriever: HybridRetriever,
        local_context: Optional[LocalContextResolver],
        prompt_builder: PromptBuilder,
        rate_limiter: IntervalRateLimiter,
        provider: Optional[GenerationProvider] = None,
        collection: Optional[str] = None,
        hybrid_top_k: Optional[int] = None,
        rerank_top_n: Optional[int] = None,
        max_context_passages: Optional[int] = None,
    ):
        """
        Initialize the gateway.

        Args:
            expander: Query expander
            retriever: Hybrid retriever over the vector store
            local_context: Local structured context resolver (skipped if None)
            prompt_builder: Prompt builder with preloaded templates
            rate_limiter: Process-wide admission gate for generation calls
            provider: Generation provider (configured provider, resolved
                on first request, if None)
            collection: Collection searched for context (reviews by default)
            hybrid_top_k: Passages kept after hybrid search
            rerank_top_n: Passages kept after rerank
            max_context_passages: Joint cap for local and retrieved passages
        """
        settings = get_settings()
        retrieval = settings.retrieval

        self.expander = expander
        self.retriever = retriever
        self.local_context = local_context
        self.prompt_builder = prompt_builder
        self.rate_limiter = rate_limiter
        self._provider = provider

        self.collection = collection or settings.vector_store.collections.reviews
        self.hybrid_top_k = hybrid_top_k or retrieval.hybrid_top_k
        self.rerank_top_n = rerank_top_n or retrieval.rerank_top_n
        self.max_context_passages = max_context_passages or retrieval.max_context_passages

    @property
    def provider(self) -> GenerationProvider:
        if self._provider is None:
            self._provider = get_generation_provider()
        return self._provider

    @property
    def model_name(self) -> str:
        if self._provider is not None:
            return self._provider.model_name
        return ""

    async def ask(self, request: AskRequest) -> AsyncIterator[AskChunk]:
        """
        Answer a question as a stream of chunks.

        Yields:
            Non-terminal chunks with incremental text, then one terminal chunk
            carrying the full answer, source passage ids and token usage
        """
        request_id = uuid.uuid4().hex[:8]
        context_type = request.context_type

        if not request.question:
            yield AskChunk(done=True, answer=EMPTY_QUESTION_ANSWER, context_type=context_type)
            return

        state = PipelineState.EXPANDING
        stream: Optional[ChatStream] = None
        answer_parts: list[str] = []

        def transition(new_state: PipelineState) -> None:
            nonlocal state
            logger.debug(f"[{request_id}] {state.value} → {new_state.value}")
            state = new_state

        try:
            queries = self.expander.expand(request.question)

            transition(PipelineState.RETRIEVING)
            retrieved = await self.retriever.hybrid_search(
                self.collection, queries, self.hybrid_top_k
            )

            transition(PipelineState.RERANKING)
            reranked = self.retriever.rerank(request.question, retrieved, self.rerank_top_n)
            local = await self._resolve_local(request.question, request_id)
            passages = merge_context(local, reranked, self.max_context_passages)
            source_ids = [p.id for p in passages]

            transition(PipelineState.PROMPTING)
            messages = self._build_messages(request, passages)

            transition(PipelineState.QUEUED)
            provider = self.provider
            await self.rate_limiter.acquire()

            transition(PipelineState.STREAMING)
            stream = provider.stream_chat(messages)
            async for token in stream:
                if not token:
                    continue
                answer_parts.append(token)
                yield AskChunk(chunk=token, model=provider.model_name, context_type=context_type)

            if not stream.completed:
                logger.warning(
                    f"[{request_id}] Stream ended without completion signal; "
                    f"returning partial answer"
                )

            terminal = AskChunk(
                done=True,
                answer="".join(answer_parts),
                source_chunks=source_ids,
                model=provider.model_name,
                prompt_tokens=stream.usage.prompt_tokens,
                completion_tokens=stream.usage.completion_tokens,
                context_type=context_type,
            )
            transition(PipelineState.DONE)

        except Exception as e:
            logger.error(f"[{request_id}] RAG pipeline failed in {state.value}: {e}")
            transition(PipelineState.FAILED)
            terminal = AskChunk(
                chunk=f"{ERROR_PREFIX}{e}",
                done=True,
                answer="",
                model=self.model_name,
                context_type=context_type,
            )

        finally:
            if stream is not None:
                await stream.aclose()

        yield terminal

    async def aclose(self) -> None:
        if self._provider is not None:
            await self._provider.aclose()

    async def _resolve_local(self, question: str, request_id: str) -> list[Passage]:
        if self.local_context is None:
            return []
        try:
            return await self.local_context.resolve(question)
        except Exception as e:
            logger.warning(f"[{request_id}] Local context skipped: {e}")
            return []

    def _build_messages(self, request: AskRequest, passages: list[Passage]) -> list[dict[str, str]]:
        prompt = self.prompt_builder.build(
            context_type=request.context_type,
            question=request.question,
            passages=passages,
            major=request.major,
            completed_courses=request.completed_courses,
            current_semester=request.current_semester,
            extra_context=request.extra_context,
        )
        return [
            {"role": "system", "content": wrap_system_prompt(prompt)},
            {"role": "user", "content": request.question},
        ]
