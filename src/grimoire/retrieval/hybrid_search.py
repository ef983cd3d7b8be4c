"""
Hybrid search over campaign assets.

Runs the vector and keyword channels concurrently, fuses their ranked
lists with reciprocal rank fusion, filters by min_score and turns the
surviving store documents into CampaignAssets. Telemetry is recorded
by a detached task once the payload is ready.
"""

import asyncio
import time
from typing import Any, List, Optional, Sequence, Set

from grimoire.core.config import SearchConfig
from grimoire.core.exceptions import (
    ConfigurationError,
    EmbeddingError,
    RetrievalError,
    ValidationError,
)
from grimoire.core.logging import logger, SensitiveDataMasker
from grimoire.core.tracing import tracer
from grimoire.embeddings.query_embedder import QueryEmbedder
from grimoire.models.campaign_asset import RecordType
from grimoire.models.search import (
    Channel,
    RankedResult,
    SearchCandidate,
    SearchMode,
    SearchPayload,
    SearchRequest,
    SearchTimings,
)
from grimoire.models.search_metric import CaptureSearchMetricsInput
from grimoire.retrieval.fusion import reciprocal_rank_fusion
from grimoire.retrieval.intent import route_query
from grimoire.retrieval.materializer import try_materialize
from grimoire.retrieval.metrics import SearchMetricsSampler
from grimoire.retrieval.primitives import KeywordSearchFn, VectorSearchFn, coerce_hits


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _blank_to_none(text: Optional[str]) -> Optional[str]:
    if text is None or not text.strip():
        return None
    return text


class HybridSearch:
    """
    Vector + keyword search for one campaign at a time.

    Collaborators are injected; nothing in here reads settings or
    environment while searching.

    Args:
        vector_search: k-NN primitive of the asset store
        keyword_search: full-text primitive of the asset store
        config: frozen search configuration
        embedder: needed only to search with free-form query text
        sampler: records telemetry for every search when given
    """

    def __init__(
        self,
        vector_search: VectorSearchFn,
        keyword_search: KeywordSearchFn,
        config: Optional[SearchConfig] = None,
        embedder: Optional[QueryEmbedder] = None,
        sampler: Optional[SearchMetricsSampler] = None,
    ) -> None:
        self.vector_search = vector_search
        self.keyword_search = keyword_search
        self.config = config or SearchConfig()
        self.embedder = embedder
        self.sampler = sampler
        self._metric_tasks: Set["asyncio.Task[None]"] = set()
        self._masker = SensitiveDataMasker()

        if sampler is not None:
            sampler.bind_search(self._replay_search)

        logger.info(
            "HybridSearch initialized",
            rrf_k=self.config.rrf_k,
            over_fetch_multiplier=self.config.over_fetch_multiplier,
            metrics="enabled" if sampler is not None and self.config.metrics_enabled else "disabled",
        )

    @staticmethod
    def _validate_limits(limit: int, min_score: float) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(
                "limit must be a positive integer",
                context={"field": "limit", "value": limit, "reason": "must_be_positive"},
            )
        if not 0.0 <= min_score <= 1.0:
            raise ValidationError(
                "min_score must be within [0, 1]",
                context={"field": "min_score", "value": min_score, "reason": "out_of_range"},
            )

    async def _run_channel(
        self,
        channel: Channel,
        primitive: Any,
        channel_input: Any,
        campaign_id: str,
        candidate_limit: int,
        record_type: Optional[str],
    ) -> tuple[List[SearchCandidate], float]:
        start = time.perf_counter()
        try:
            hits = await primitive(channel_input, campaign_id, candidate_limit, record_type)
        except Exception as e:
            error = RetrievalError(
                f"{channel.value} search failed: {e}",
                context={"channel": channel.value, "campaign_id": campaign_id},
                cause=e,
            )
            logger.error("Retrieval channel failed", channel=channel.value, error=str(e))
            raise error from e
        return coerce_hits(hits, channel), _elapsed_ms(start)

    @staticmethod
    async def _skipped() -> tuple[List[SearchCandidate], float]:
        return [], 0.0

    async def execute(
        self,
        query_vector: Optional[Sequence[float]],
        keywords: Optional[str],
        campaign_id: str,
        limit: int,
        min_score: float,
        record_type: Optional[RecordType] = None,
    ) -> SearchPayload:
        """
        Core search on pre-vectorized input.

        A channel whose input is missing (empty vector, blank keywords)
        is not called and its timing stays 0. Malformed store documents
        are dropped and logged.

        Raises:
            ValidationError: limit <= 0 or min_score outside [0, 1]
            RetrievalError: a channel call failed
        """
        self._validate_limits(limit, min_score)
        if not campaign_id:
            raise ValidationError("campaign_id is required", context={"field": "campaign_id"})

        record_type_value = RecordType(record_type).value if record_type is not None else None
        candidate_limit = self.config.candidate_limit(limit)
        use_vector = bool(query_vector)
        use_keyword = _blank_to_none(keywords) is not None

        vector_task = (
            self._run_channel(
                Channel.VECTOR,
                self.vector_search,
                list(query_vector or []),
                campaign_id,
                candidate_limit,
                record_type_value,
            )
            if use_vector
            else self._skipped()
        )
        keyword_task = (
            self._run_channel(
                Channel.KEYWORD,
                self.keyword_search,
                keywords,
                campaign_id,
                candidate_limit,
                record_type_value,
            )
            if use_keyword
            else self._skipped()
        )

        (vector_hits, vector_ms), (keyword_hits, keyword_ms) = await asyncio.gather(
            vector_task, keyword_task
        )

        search_mode: SearchMode
        if use_vector and use_keyword:
            search_mode = "hybrid"
        elif use_vector:
            search_mode = "vector"
        elif use_keyword:
            search_mode = "keyword"
        else:
            search_mode = "none"

        if not vector_hits and not keyword_hits:
            return SearchPayload(
                assets=[],
                timings=SearchTimings(vector_search=vector_ms, text_search=keyword_ms),
                search_mode=search_mode,
            )

        fusion_start = time.perf_counter()
        fused = reciprocal_rank_fusion(vector_hits, keyword_hits, k=self.config.rrf_k)
        fusion_ms = _elapsed_ms(fusion_start)

        conversion_start = time.perf_counter()
        results: List[RankedResult] = []
        dropped = 0
        for candidate in fused:
            if len(results) >= limit:
                break
            if candidate.score < min_score:
                # fused is sorted, nothing further can pass
                break
            asset = try_materialize(candidate.payload or {}, item_id=candidate.item_id)
            if asset is None:
                dropped += 1
                continue
            results.append(RankedResult(asset=asset, score=candidate.score))
        conversion_ms = _elapsed_ms(conversion_start)

        logger.debug(
            "Hybrid search executed",
            campaign_id=campaign_id,
            mode=search_mode,
            vector_hits=len(vector_hits),
            keyword_hits=len(keyword_hits),
            fused=len(fused),
            returned=len(results),
            dropped=dropped,
        )

        return SearchPayload(
            assets=results,
            timings=SearchTimings(
                vector_search=vector_ms,
                text_search=keyword_ms,
                fusion=fusion_ms,
                conversion=conversion_ms,
            ),
            search_mode=search_mode,
        )

    async def _embed(self, query: str, has_keywords: bool) -> List[float]:
        if self.embedder is None:
            raise ConfigurationError("Searching by query text requires a QueryEmbedder")
        try:
            return await self.embedder.embed_query(query)
        except EmbeddingError as e:
            if not has_keywords:
                raise
            logger.warning(
                "Query embedding failed, falling back to keyword search",
                error=e.message,
                query_preview=self._masker.preview(query),
            )
            return []

    async def search(
        self,
        campaign_id: str,
        query: Optional[str] = None,
        keywords: Optional[str] = None,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        record_type: Optional[RecordType] = None,
        record_metrics: bool = True,
    ) -> SearchPayload:
        """
        Searches one campaign by free-form query text, keywords or both.

        When query and keywords are the same text, intent routing keeps
        only one channel. If embedding fails and keywords were given the
        search continues on the keyword channel alone.

        Raises:
            ValidationError: neither query nor keywords, bad limit or min_score
            EmbeddingError: embedding failed and there were no keywords
            RetrievalError: a channel call failed
        """
        start = time.perf_counter()
        query = _blank_to_none(query)
        keywords = _blank_to_none(keywords)
        if query is None and keywords is None:
            raise ValidationError(
                "At least one of query or keywords is required",
                context={"field": "query", "reason": "missing"},
            )

        limit = self.config.default_limit if limit is None else limit
        min_score = self.config.default_min_score if min_score is None else min_score
        self._validate_limits(limit, min_score)

        request = SearchRequest(
            query=query,
            keywords=keywords,
            campaign_id=campaign_id,
            limit=limit,
            min_score=min_score,
            record_type=record_type,
        )

        routed_query, routed_keywords = (
            route_query(query, keywords) if self.config.intent_routing else (query, keywords)
        )

        with tracer.span("hybrid_search", {"campaign_id": campaign_id, "limit": limit}):
            embedding_ms = 0.0
            query_vector: List[float] = []
            if routed_query is not None:
                embedding_start = time.perf_counter()
                query_vector = await self._embed(routed_query, has_keywords=routed_keywords is not None)
                embedding_ms = _elapsed_ms(embedding_start)

            payload = await self.execute(
                query_vector=query_vector,
                keywords=routed_keywords,
                campaign_id=campaign_id,
                limit=limit,
                min_score=min_score,
                record_type=record_type,
            )

        payload.timings = payload.timings.model_copy(
            update={"embedding": embedding_ms, "total": _elapsed_ms(start)}
        )

        if record_metrics and self.sampler is not None and self.config.metrics_enabled:
            self._schedule_metrics(
                CaptureSearchMetricsInput(
                    search_input=request,
                    result_scores=payload.scores,
                    timings=payload.timings,
                    search_mode=payload.search_mode,
                )
            )

        return payload

    async def _replay_search(self, request: SearchRequest) -> SearchPayload:
        """Expanded search for the sampler; never records metrics itself."""
        return await self.search(
            campaign_id=request.campaign_id,
            query=request.query,
            keywords=request.keywords,
            limit=request.limit,
            min_score=request.min_score,
            record_type=request.record_type,
            record_metrics=False,
        )

    def _schedule_metrics(self, capture_input: CaptureSearchMetricsInput) -> None:
        if self.sampler is None:
            return
        task = asyncio.create_task(self.sampler.capture(capture_input))
        self._metric_tasks.add(task)
        task.add_done_callback(self._metric_tasks.discard)

    @property
    def pending_metrics(self) -> int:
        return len(self._metric_tasks)

    async def drain_metrics(self) -> None:
        """Waits for every detached metrics task. Never raises."""
        while self._metric_tasks:
            await asyncio.gather(*list(self._metric_tasks), return_exceptions=True)
