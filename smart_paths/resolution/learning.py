"""
Learning Store
==============

Per-user memory of explicit corrections and recent resolutions, consulted by
the learned-intent stage of the resolver.

The default store is in-memory. ``JsonLearningStore`` persists the same data
to a JSON file so corrections survive restarts.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from smart_paths.utils.logging_config import get_logger
from smart_paths.utils.similarity import normalize_text

logger = get_logger(__name__)

DEFAULT_USER = "default"

FEEDBACK_CONFIDENCE = 0.9
FEEDBACK_CONFIDENCE_CAP = 0.98
PATTERN_CONFIDENCE = 0.75
HISTORY_CONFIDENCE = 0.7
# Only the most recent resolutions are consulted when recalling by folder name
HISTORY_RECALL_WINDOW = 3


@dataclass
class FeedbackRecord:
    """A user's correction: this input means that path.

    Attributes:
        pattern: Normalized input the user corrected.
        chosen_path: Path the user picked.
        count: How many times the same correction was recorded.
        updated_at: ISO timestamp of the last correction.
    """
    pattern: str
    chosen_path: str
    count: int = 1
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FeedbackRecord":
        """Create from dictionary."""
        return cls(**data)


@dataclass
class HistoryRecord:
    """One past resolution."""
    input: str
    paths: List[str]
    stage: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryRecord":
        return cls(**data)


@dataclass
class LearnedIntent:
    """What the store believes an input means for a user."""
    paths: List[str]
    confidence: float
    source: str


class LearningStore(ABC):
    """Storage interface for learned intents.

    Subclasses provide persistence hooks; matching logic lives here so every
    backend answers ``analyze`` the same way.
    """

    # Only paths the user typed out are recalled by folder name; alias and
    # heuristic results are recomputed each time so detection updates win
    LEARNABLE_STAGES = ("passthrough",)

    def __init__(self, max_history: int = 100):
        self.max_history = max_history
        self._feedback: Dict[str, Dict[str, FeedbackRecord]] = {}
        self._history: Dict[str, List[HistoryRecord]] = {}
        self._lock = threading.RLock()

    @abstractmethod
    def _persist(self) -> None:
        """Write current state to the backend."""

    def record_feedback(self, user_id: Optional[str], original_input: str, chosen_path: str) -> FeedbackRecord:
        """Remember that ``original_input`` should resolve to ``chosen_path``."""
        user_id = user_id or DEFAULT_USER
        pattern = normalize_text(original_input)
        with self._lock:
            records = self._feedback.setdefault(user_id, {})
            record = records.get(pattern)
            if record is not None and record.chosen_path == chosen_path:
                record.count += 1
                record.updated_at = datetime.now().isoformat()
            else:
                record = FeedbackRecord(pattern=pattern, chosen_path=chosen_path)
                records[pattern] = record
            self._persist()

        logger.info(
            f"Recorded feedback for {user_id}: {original_input!r} -> {chosen_path}",
            extra={"user_id": user_id, "path": chosen_path},
        )
        return record

    def record_resolution(self, user_id: Optional[str], text: str, paths: List[str], stage: str) -> None:
        """Append a resolution to the user's bounded history."""
        user_id = user_id or DEFAULT_USER
        with self._lock:
            history = self._history.setdefault(user_id, [])
            history.append(HistoryRecord(input=text, paths=list(paths), stage=stage))
            if len(history) > self.max_history:
                del history[:len(history) - self.max_history]
            self._persist()

    def feedback(self, user_id: Optional[str] = None) -> Dict[str, FeedbackRecord]:
        with self._lock:
            return dict(self._feedback.get(user_id or DEFAULT_USER, {}))

    def history(self, user_id: Optional[str] = None) -> List[HistoryRecord]:
        with self._lock:
            return list(self._history.get(user_id or DEFAULT_USER, []))

    def analyze(self, user_id: Optional[str], text: str) -> Optional[LearnedIntent]:
        """Look up what a user meant by ``text``.

        Order: exact correction, a correction pattern contained in the text,
        then a path resolved in one of the last ``HISTORY_RECALL_WINDOW``
        calls whose last segment equals the text.
        """
        key = normalize_text(text)
        if not key:
            return None
        user_id = user_id or DEFAULT_USER

        with self._lock:
            records = self._feedback.get(user_id, {})
            history = list(self._history.get(user_id, []))

            record = records.get(key)
            if record is not None:
                confidence = min(
                    FEEDBACK_CONFIDENCE_CAP,
                    FEEDBACK_CONFIDENCE + 0.02 * (record.count - 1),
                )
                return LearnedIntent([record.chosen_path], confidence, "feedback")

            by_recency = sorted(records.values(), key=lambda r: r.updated_at, reverse=True)
            for record in by_recency:
                if len(record.pattern) >= 2 and record.pattern in key:
                    return LearnedIntent([record.chosen_path], PATTERN_CONFIDENCE, "feedback_pattern")

        for entry in reversed(history[-HISTORY_RECALL_WINDOW:]):
            if entry.stage not in self.LEARNABLE_STAGES:
                continue
            for path in entry.paths:
                if _last_segment(path) == key:
                    return LearnedIntent([path], HISTORY_CONFIDENCE, "history")
        return None

    def user_stats(self, user_id: Optional[str] = None) -> dict:
        """Summary of what is known about a user."""
        user_id = user_id or DEFAULT_USER
        history = self.history(user_id)
        stage_counts: Dict[str, int] = {}
        for entry in history:
            stage_counts[entry.stage] = stage_counts.get(entry.stage, 0) + 1
        return {
            "user_id": user_id,
            "history_count": len(history),
            "feedback_count": len(self.feedback(user_id)),
            "stages": stage_counts,
            "last_activity": history[-1].timestamp if history else None,
        }

    def clear(self, user_id: Optional[str] = None) -> None:
        """Forget one user, or everyone when ``user_id`` is None."""
        with self._lock:
            if user_id is None:
                self._feedback.clear()
                self._history.clear()
            else:
                self._feedback.pop(user_id, None)
                self._history.pop(user_id, None)
            self._persist()


def _last_segment(path: str) -> str:
    parts = [p for p in path.replace("\\", "/").split("/") if p]
    return normalize_text(parts[-1]) if parts else ""


class InMemoryLearningStore(LearningStore):
    """Process-lifetime learning store."""

    def _persist(self) -> None:
        pass


class JsonLearningStore(LearningStore):
    """Learning store backed by a JSON file."""

    def __init__(self, storage_path: Path, max_history: int = 100):
        super().__init__(max_history=max_history)
        self.storage_path = Path(storage_path)
        self._load()

    def _load(self) -> None:
        """Load feedback and history from file."""
        if not self.storage_path.exists():
            return
        try:
            with open(self.storage_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._feedback = {
                user: {p: FeedbackRecord.from_dict(r) for p, r in records.items()}
                for user, records in data.get("feedback", {}).items()
            }
            self._history = {
                user: [HistoryRecord.from_dict(h) for h in entries][-self.max_history:]
                for user, entries in data.get("history", {}).items()
            }
            logger.debug(
                f"Loaded learning data for {len(self._feedback)} users from {self.storage_path}"
            )
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Error loading learning data: {e}")
            self._feedback = {}
            self._history = {}

    def _persist(self) -> None:
        """Save feedback and history to file."""
        data = {
            "feedback": {
                user: {p: r.to_dict() for p, r in records.items()}
                for user, records in self._feedback.items()
            },
            "history": {
                user: [h.to_dict() for h in entries]
                for user, entries in self._history.items()
            },
        }
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.storage_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"Could not save learning data to {self.storage_path}: {e}")
