"""
Resolution Stages
=================

Each stage turns free-form location text into candidate paths, or declines.
Stages share one contract::

    stage(text, context) -> Optional[StageResult]

and are run in order by ``run_pipeline``; the first stage that answers wins.
A stage that raises is logged and treated as "no match".
"""

import json
import os
import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from smart_paths.config.environment import PlatformEnvironment
from smart_paths.config.settings import ResolverConfig
from smart_paths.resolution.aliases import NEAR, MappingTable
from smart_paths.resolution.learning import LearningStore
from smart_paths.utils.exceptions import PathNotFoundError, ResolutionStageError
from smart_paths.utils.logging_config import get_logger

logger = get_logger(__name__)


class ResolutionStage(Enum):
    """Pipeline stages, in execution order."""
    PASSTHROUGH = "passthrough"
    LEARNED = "learned"
    CONTEXTUAL = "contextual"
    DIRECT = "direct"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ResolveContext:
    """Caller-supplied hints for one resolution.

    Attributes:
        locale: Preferred locale for alias names ("ko", "en", ...).
        previous_path: Path the caller was last looking at.
        user_id: Whose learned intents apply.
    """
    locale: Optional[str] = None
    previous_path: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def coerce(
        cls,
        value: Union["ResolveContext", Dict[str, Any], None],
        default_locale: str,
    ) -> "ResolveContext":
        """Build a context from a dict (camelCase keys accepted) or None."""
        if isinstance(value, cls):
            ctx = value
        elif not value:
            ctx = cls()
        else:
            ctx = cls(
                locale=value.get("locale") or value.get("language"),
                previous_path=value.get("previous_path") or value.get("previousPath"),
                user_id=value.get("user_id") or value.get("userId"),
            )
        if ctx.locale is None:
            ctx = cls(default_locale, ctx.previous_path, ctx.user_id)
        return ctx

    def cache_key(self) -> str:
        """Deterministic serialization for memoization."""
        return json.dumps(asdict(self), sort_keys=True, ensure_ascii=False)


@dataclass
class StageResult:
    """A stage's answer."""
    candidates: List[str]
    confidence: float
    warnings: List[str] = field(default_factory=list)
    detail: Dict[str, Any] = field(default_factory=dict)


StageFunction = Callable[[str, ResolveContext], Optional[StageResult]]


def _dedupe(paths: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            result.append(path)
    return result


class PassthroughStage:
    """Absolute input, ``~`` input, or a relative path that exists."""

    stage = ResolutionStage.PASSTHROUGH

    def __init__(self, env: PlatformEnvironment, path_exists: Callable[[str], bool]):
        self.env = env
        self.path_exists = path_exists

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        text = text.strip()
        if not text:
            return None
        if text.startswith("~"):
            expanded = self.env.expand_user(text)
            if expanded != text:
                return StageResult([self.env.absolutize(expanded)], 1.0)
        if self.env.is_absolute(text):
            return StageResult([text], 1.0)

        candidate = self.env.absolutize(text)
        if self.path_exists(candidate):
            return StageResult([candidate], 1.0, detail={"relative": True})
        return None


class LearnedStage:
    """Per-user corrections and history.

    Explicit corrections always apply. A history recall is only an echo of an
    earlier answer, so it never overrides a name the alias table knows.
    """

    stage = ResolutionStage.LEARNED

    def __init__(
        self,
        store: LearningStore,
        threshold: float = 0.6,
        mapping: Optional[MappingTable] = None,
    ):
        self.store = store
        self.threshold = threshold
        self.mapping = mapping

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        intent = self.store.analyze(context.user_id, text)
        if intent is None or intent.confidence < self.threshold:
            return None
        if (
            intent.source == "history"
            and self.mapping is not None
            and self.mapping.lookup(text, context.locale)
        ):
            logger.debug(f"Ignoring history recall for alias {text!r}")
            return None
        return StageResult(
            list(intent.paths), intent.confidence, detail={"source": intent.source}
        )


# "바탕화면에 프로젝트 폴더", "문서 안에 보고서", "다운로드의 사진"
_KO_CONTEXT = re.compile(r"^(?P<base>.+?)\s*(?:안의|안에|에서|의|에)\s+(?P<sub>.+)$")
# "reports in documents", "photos under my pictures"
_EN_CONTEXT = re.compile(
    r"^(?P<sub>.+?)\s+(?:in|inside|under)\s+(?:the\s+|my\s+)?(?P<base>.+)$",
    re.IGNORECASE,
)
# "downloads/reports"
_SLASH_CONTEXT = re.compile(r"^(?P<base>[^/\\]+)[/\\]+(?P<sub>.+)$")

_SUBFOLDER_SUFFIX = re.compile(r"\s*(?:폴더|folder|directory|안에|에서)$", re.IGNORECASE)
_INVALID_CHARS = set('<>:"|?*')


def sanitize_subfolder(name: str) -> Optional[List[str]]:
    """Clean a subfolder phrase into path segments.

    Trailing "폴더"/"folder"/particles are removed and separators normalized.
    Returns None when nothing usable remains or the name is unsafe
    (``..`` segments, reserved characters).
    """
    name = name.strip().strip("'\"")
    previous = None
    while previous != name:
        previous = name
        name = _SUBFOLDER_SUFFIX.sub("", name).strip()

    parts = [p.strip() for p in re.split(r"[/\\]+", name) if p.strip()]
    if not parts:
        return None
    for part in parts:
        if part in (".", ".."):
            return None
        if any(ch in _INVALID_CHARS for ch in part):
            return None
    return parts


class ContextualStage:
    """"<base> 안에 <sub>" style phrases joined under a resolved alias."""

    stage = ResolutionStage.CONTEXTUAL
    CONFIDENCE = 0.85

    def __init__(self, env: PlatformEnvironment, mapping: MappingTable):
        self.env = env
        self.mapping = mapping

    def _base_paths(self, base: str, locale: Optional[str]) -> Tuple[Optional[str], List[str]]:
        matches = [m for m in self.mapping.lookup(base, locale) if m.kind != NEAR]
        if not matches:
            return None, []
        key = matches[0].key
        return key, self.mapping.get_base_paths(key, locale)

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        text = text.strip()
        for pattern in (_KO_CONTEXT, _EN_CONTEXT, _SLASH_CONTEXT):
            match = pattern.match(text)
            if not match:
                continue
            key, bases = self._base_paths(match.group("base"), context.locale)
            if not bases:
                continue

            parts = sanitize_subfolder(match.group("sub"))
            warnings = []
            if parts is None:
                candidates = bases
                warnings.append(f"Ignored invalid subfolder name: {match.group('sub')!r}")
            else:
                candidates = [self.env.join(base, *parts) for base in bases]
            return StageResult(
                _dedupe(candidates), self.CONFIDENCE, warnings,
                detail={"alias": key, "subfolder": parts},
            )
        return None


class DirectAliasStage:
    """Exact, case-insensitive, compacted, then near-exact alias lookup."""

    stage = ResolutionStage.DIRECT

    def __init__(self, mapping: MappingTable):
        self.mapping = mapping

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        matches = self.mapping.lookup(text, context.locale)
        if not matches:
            return None
        best = matches[0]
        candidates = list(self.mapping.get_base_paths(best.key, context.locale))
        for other in matches[1:]:
            if other.score < best.score:
                break
            candidates.extend(self.mapping.get_base_paths(other.key, context.locale))
        candidates = _dedupe(candidates)
        if not candidates:
            return None
        return StageResult(
            candidates, best.score,
            detail={"alias": best.key, "name": best.name, "match": best.kind},
        )


@dataclass
class _IntentPattern:
    pattern: "re.Pattern"
    intent: str
    confidence: float
    alias: str


_INTENT_PATTERNS = [
    _IntentPattern(re.compile(r"카카오톡.*(받은|파일|다운로드)"), "kakao_received_files", 0.95, "kakaotalk"),
    _IntentPattern(re.compile(r"카톡.*(받은|파일|다운로드)"), "kakao_received_files", 0.90, "kakaotalk"),
    _IntentPattern(
        re.compile(r"kakao\s*talk.*(received|files|download)", re.IGNORECASE),
        "kakao_received_files", 0.90, "kakaotalk",
    ),
    _IntentPattern(re.compile(r"받은.*파일"), "received_files", 0.60, "downloads"),
    _IntentPattern(re.compile(r"received.*files", re.IGNORECASE), "received_files", 0.60, "downloads"),
    _IntentPattern(re.compile(r"다운로드"), "downloads", 0.85, "downloads"),
    _IntentPattern(re.compile(r"download", re.IGNORECASE), "downloads", 0.85, "downloads"),
]

_MESSENGER_KEYWORDS = ("카카오톡", "카톡", "kakao")

CATEGORY_CONFIDENCE = 0.75
CONFLICT_PENALTY = 0.05
PREVIOUS_PATH_BOOST = 0.05

# category -> trigger keywords
_CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "development": ("개발", "코딩", "프로그래밍", "development", "coding", "programming"),
    "media": ("미디어", "media"),
    "backup": ("백업", "backup"),
    "temp": ("임시", "temporary", "temp"),
}

# category -> alias keys whose paths it suggests
_CATEGORY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "media": ("pictures", "videos"),
    "backup": ("documents", "downloads"),
    "temp": ("temp", "downloads"),
}


@dataclass
class _Hypothesis:
    name: str
    confidence: float
    candidates: List[str]


class HeuristicStage:
    """Keyword categories combined with fixed-confidence intent patterns."""

    stage = ResolutionStage.HEURISTIC

    def __init__(
        self,
        env: PlatformEnvironment,
        mapping: MappingTable,
        threshold: float = 0.7,
        development_roots: Optional[List[str]] = None,
    ):
        self.env = env
        self.mapping = mapping
        self.threshold = threshold
        self.development_roots = list(development_roots or [])

    def _dev_paths(self) -> List[str]:
        paths = []
        for root in self.development_roots:
            root = self.env.expand_user(root)
            if self.env.is_absolute(root):
                paths.append(self.env.pathmod.normpath(root))
        return paths

    def _category_paths(self, category: str, locale: Optional[str]) -> List[str]:
        if category == "development":
            return self._dev_paths()
        paths: List[str] = []
        for key in _CATEGORY_ALIASES.get(category, ()):
            base = self.mapping.get_base_paths(key, locale)
            if base:
                paths.append(base[0])
        return paths

    def _best_intent(self, text: str, lowered: str, locale: Optional[str]) -> Optional[_Hypothesis]:
        best: Optional[_IntentPattern] = None
        for intent in _INTENT_PATTERNS:
            if intent.pattern.search(text) and (best is None or intent.confidence > best.confidence):
                best = intent
        if best is None:
            return None

        confidence = best.confidence
        has_messenger = any(k in lowered for k in _MESSENGER_KEYWORDS)
        if has_messenger:
            if best.intent == "kakao_received_files":
                confidence = min(0.98, confidence + 0.1)
            else:
                confidence = max(0.3, confidence - 0.2)
        if best.intent == "received_files" and not has_messenger:
            confidence = max(0.4, confidence - 0.1)

        return _Hypothesis(
            best.intent, confidence, self.mapping.get_base_paths(best.alias, locale)
        )

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        lowered = text.lower()
        hypotheses: List[_Hypothesis] = []

        intent = self._best_intent(text, lowered, context.locale)
        if intent is not None:
            hypotheses.append(intent)
        for category, keywords in _CATEGORY_KEYWORDS.items():
            if any(k in lowered for k in keywords):
                hypotheses.append(_Hypothesis(
                    category, CATEGORY_CONFIDENCE,
                    self._category_paths(category, context.locale),
                ))

        hypotheses = [h for h in hypotheses if h.candidates]
        if not hypotheses:
            return None

        penalty = CONFLICT_PENALTY * (len(hypotheses) - 1)
        best = max(hypotheses, key=lambda h: h.confidence)
        score = max(0.0, best.confidence - penalty)
        if context.previous_path and any(
            _is_within(context.previous_path, c, self.env) for c in best.candidates
        ):
            score = min(0.98, score + PREVIOUS_PATH_BOOST)

        score = round(score, 4)
        logger.debug(f"Heuristic {best.name} scored {score} for {text!r}")
        if score < self.threshold:
            return None
        return StageResult(
            _dedupe(best.candidates), score,
            detail={"intent": best.name, "hypotheses": [h.name for h in hypotheses]},
        )


def _is_within(path: str, parent: str, env: PlatformEnvironment) -> bool:
    pm = env.pathmod
    path = pm.normcase(pm.normpath(path))
    parent = pm.normcase(pm.normpath(parent))
    return path == parent or path.startswith(parent.rstrip(pm.sep) + pm.sep)


class FallbackStage:
    """The input itself, absolutized against the working directory."""

    stage = ResolutionStage.FALLBACK

    def __init__(self, env: PlatformEnvironment):
        self.env = env

    def __call__(self, text: str, context: ResolveContext) -> Optional[StageResult]:
        path = self.env.absolutize(text.strip())
        warning = PathNotFoundError(
            f"No location matched {text!r}; using {path}", query=text
        )
        return StageResult([path], 0.0, warnings=[str(warning)])


def build_default_stages(
    env: PlatformEnvironment,
    mapping: MappingTable,
    store: LearningStore,
    config: ResolverConfig,
    path_exists: Callable[[str], bool] = os.path.exists,
) -> List[Any]:
    """Stages in pipeline order."""
    return [
        PassthroughStage(env, path_exists),
        LearnedStage(store, config.learned_threshold, mapping),
        ContextualStage(env, mapping),
        DirectAliasStage(mapping),
        HeuristicStage(env, mapping, config.heuristic_threshold, config.development_roots),
        FallbackStage(env),
    ]


def run_pipeline(
    stages: Sequence[Any],
    text: str,
    context: ResolveContext,
) -> Tuple[ResolutionStage, StageResult, List[str]]:
    """Run stages in order until one answers.

    Returns:
        (winning stage, its result, warnings from stages that failed).

    Raises:
        PathNotFoundError: If no stage answered (the fallback stage always
            does, so only custom pipelines can hit this).
    """
    failures: List[str] = []
    for stage in stages:
        name = getattr(stage, "stage", None) or ResolutionStage.FALLBACK
        try:
            result = stage(text, context)
        except Exception as e:
            error = ResolutionStageError(
                f"Stage {name.value} failed", stage=name.value, query=text, cause=e
            )
            logger.warning(str(error), extra={"stage": name.value})
            failures.append(str(error))
            continue
        if result is not None and result.candidates:
            return name, result, failures
    raise PathNotFoundError(f"No resolution stage answered for {text!r}", query=text)
