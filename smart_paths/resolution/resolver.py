"""
Path Resolver
=============

Turns fuzzy, locale-sensitive location text ("바탕화면에 프로젝트 폴더",
"downloads", "~/notes") into ordered candidate paths.

Resolution runs the stage pipeline from ``stages.py``. Results are memoized
per (input, locale, context) for a few minutes; a cache hit performs no disk
access at all.
"""

import os
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple, Union

from smart_paths.config.environment import PlatformEnvironment
from smart_paths.config.settings import ResolverConfig
from smart_paths.resolution.aliases import MappingTable
from smart_paths.resolution.learning import InMemoryLearningStore, LearningStore
from smart_paths.resolution.stages import (
    ResolutionStage,
    ResolveContext,
    build_default_stages,
    run_pipeline,
)
from smart_paths.utils.logging_config import get_logger
from smart_paths.utils.ttl_cache import TTLCache

logger = get_logger(__name__)

LATENCY_WINDOW = 100


@dataclass
class ResolvedPath:
    """Outcome of one resolution.

    Attributes:
        candidates: Ordered candidate paths; never empty.
        stage: Pipeline stage that produced them.
        confidence: Stage confidence in [0, 1].
        warnings: Human-readable notes (fallback used, stage failures).
        cached: True when served from the resolver cache.
    """
    candidates: List[str]
    stage: ResolutionStage
    confidence: float
    warnings: List[str] = field(default_factory=list)
    cached: bool = False

    @property
    def first(self) -> str:
        return self.candidates[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidates": list(self.candidates),
            "stage": self.stage.value,
            "confidence": self.confidence,
            "warnings": list(self.warnings),
            "cached": self.cached,
        }


class ResolverMetrics:
    """Running counters for the resolver."""

    def __init__(self, window: int = LATENCY_WINDOW):
        self._lock = threading.Lock()
        self.total_calls = 0
        self.cache_hits = 0
        self.fallbacks = 0
        self.stage_counts: Counter = Counter()
        self._latencies: Deque[float] = deque(maxlen=window)

    def record(self, stage: ResolutionStage, latency_ms: float, cache_hit: bool) -> None:
        with self._lock:
            self.total_calls += 1
            if cache_hit:
                self.cache_hits += 1
            else:
                self.stage_counts[stage.value] += 1
                if stage is ResolutionStage.FALLBACK:
                    self.fallbacks += 1
            self._latencies.append(latency_ms)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            total = self.total_calls
            latencies = list(self._latencies)
            return {
                "total_calls": total,
                "cache_hits": self.cache_hits,
                "cache_hit_ratio": round(self.cache_hits / total, 4) if total else 0.0,
                "fallbacks": self.fallbacks,
                "fallback_ratio": round(self.fallbacks / total, 4) if total else 0.0,
                "average_latency_ms": (
                    round(sum(latencies) / len(latencies), 3) if latencies else 0.0
                ),
                "stage_counts": dict(self.stage_counts),
            }


def _valid_resolution(value: Any) -> bool:
    return isinstance(value, ResolvedPath) and bool(value.candidates)


class PathResolver:
    """Multi-stage resolver with memoization and metrics.

    Never raises from ``resolve``: the worst outcome is the input itself,
    absolutized, with a warning attached.
    """

    def __init__(
        self,
        env: PlatformEnvironment,
        mapping: MappingTable,
        learning: Optional[LearningStore] = None,
        config: Optional[ResolverConfig] = None,
        path_exists: Callable[[str], bool] = os.path.exists,
        stages: Optional[Sequence[Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the resolver.

        Args:
            env: Platform environment paths are rendered for.
            mapping: Alias table.
            learning: Learned-intent store (in-memory if omitted).
            config: Thresholds and cache TTL.
            path_exists: Existence probe (injectable for tests).
            stages: Custom pipeline; defaults to the standard six stages.
            clock: Time source for the result cache.
        """
        self.env = env
        self.mapping = mapping
        self.config = config or ResolverConfig()
        self.learning = learning if learning is not None else InMemoryLearningStore()
        self.path_exists = path_exists
        self.stages = list(stages) if stages is not None else build_default_stages(
            env, mapping, self.learning, self.config, path_exists
        )
        self.metrics = ResolverMetrics()
        self._cache: TTLCache[Tuple[str, str, str], ResolvedPath] = TTLCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            clock=clock,
            validator=_valid_resolution,
            name="resolver-cache",
        )

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def resolve(
        self,
        text: str,
        context: Union[ResolveContext, Dict[str, Any], None] = None,
    ) -> ResolvedPath:
        """Resolve text into ordered candidate paths."""
        start = time.perf_counter()
        text = "" if text is None else str(text)
        ctx = ResolveContext.coerce(context, self.config.default_locale)
        key = (text, ctx.locale or "", ctx.cache_key())

        cached = self._cache.get(key)
        if cached is not None:
            self.metrics.record(cached.stage, _elapsed_ms(start), cache_hit=True)
            return replace(
                cached,
                candidates=list(cached.candidates),
                warnings=list(cached.warnings),
                cached=True,
            )

        try:
            stage, result, failures = run_pipeline(self.stages, text, ctx)
            resolved = ResolvedPath(
                candidates=list(result.candidates),
                stage=stage,
                confidence=result.confidence,
                warnings=failures + list(result.warnings),
            )
        except Exception as e:
            logger.error(f"Resolution failed for {text!r}: {e}")
            resolved = ResolvedPath(
                candidates=[self.env.absolutize(text.strip() or ".")],
                stage=ResolutionStage.FALLBACK,
                confidence=0.0,
                warnings=[str(e)],
            )

        self._cache.set(key, resolved)
        self.learning.record_resolution(
            ctx.user_id, text, resolved.candidates, resolved.stage.value
        )
        latency = _elapsed_ms(start)
        self.metrics.record(resolved.stage, latency, cache_hit=False)
        logger.debug(
            f"Resolved {text!r} via {resolved.stage.value} "
            f"({resolved.confidence:.2f}) -> {resolved.candidates[:3]}",
            extra={"stage": resolved.stage.value, "duration_ms": latency},
        )
        return replace(
            resolved,
            candidates=list(resolved.candidates),
            warnings=list(resolved.warnings),
        )

    def resolve_path(
        self,
        text: str,
        context: Union[ResolveContext, Dict[str, Any], None] = None,
    ) -> List[str]:
        """Candidate paths only; never empty."""
        return self.resolve(text, context).candidates

    def record_user_feedback(self, user_id: Optional[str], original_input: str, chosen_path: str) -> None:
        """Store a correction and drop memoized results so it takes effect."""
        self.learning.record_feedback(user_id, original_input, chosen_path)
        self.invalidate_cache()

    def determine_search_paths(
        self,
        query: str,
        base_path: Optional[str] = None,
        context: Union[ResolveContext, Dict[str, Any], None] = None,
    ) -> List[str]:
        """Where to look for ``query``: base path, the query itself, then
        Downloads, Documents and Desktop."""
        paths: List[str] = []
        if base_path:
            paths.extend(self.resolve_path(base_path, context))
        paths.extend(self.resolve_path(query, context))

        ctx = ResolveContext.coerce(context, self.config.default_locale)
        for key in ("downloads", "documents", "desktop"):
            base = self.mapping.get_base_paths(key, ctx.locale)
            if base:
                paths.append(base[0])

        seen = set()
        return [p for p in paths if not (p in seen or seen.add(p))]

    def invalidate_cache(self) -> None:
        self._cache.clear()

    def get_metrics(self) -> Dict[str, Any]:
        """Resolver counters plus cache statistics."""
        metrics = self.metrics.snapshot()
        metrics["cache_size"] = len(self._cache)
        metrics["cache"] = self._cache.stats().to_dict()
        return metrics


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)
