"""
Token Usage Tracking
====================

Records generation and embedding token usage with an estimated cost, and
aggregates it into statistics.

Storage: JSON list at DATA_DIR/token_usage.json, most recent 1000 entries.
Streaming providers do not report usage per chunk, so the pipeline records
an estimate of 4 characters per token.
"""

import asyncio
import json
import logging
import math
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 1000
CHARS_PER_TOKEN = 4
EUR_RATE = 0.92  # approx USD -> EUR

# USD per 1M tokens
PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "gpt-4o": {"input": 2.5, "output": 10.0},
    "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
    "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    "text-embedding-3-small": {"input": 0.02, "output": 0.0},
    "text-embedding-3-large": {"input": 0.13, "output": 0.0},
    "default": {"input": 0.15, "output": 0.6},
}

DAY_SECONDS = 24 * 60 * 60


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def calculate_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = PRICING.get(model, PRICING["default"])
    return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000


@dataclass
class TokenUsageEntry:
    timestamp: float
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_usd: float
    cost_eur: float
    query: str
    model: str


@dataclass
class PeriodUsage:
    queries: int = 0
    cost_eur: float = 0.0


@dataclass
class UsageStatistics:
    total_queries: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    total_cost_eur: float = 0.0
    average_input_tokens: int = 0
    average_output_tokens: int = 0
    average_cost_per_query: float = 0.0
    last_24_hours: PeriodUsage = field(default_factory=PeriodUsage)
    last_7_days: PeriodUsage = field(default_factory=PeriodUsage)
    last_30_days: PeriodUsage = field(default_factory=PeriodUsage)

    def to_dict(self) -> Dict:
        return asdict(self)


class TokenUsageTracker:
    """Append-only usage log with cost estimates."""

    def __init__(
        self,
        path: Optional[Path] = None,
        max_entries: int = MAX_HISTORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.max_entries = max_entries
        self.clock = clock
        self._lock = threading.Lock()
        self._history: List[TokenUsageEntry] = self._load()

    @property
    def history(self) -> List[TokenUsageEntry]:
        return list(self._history)

    def record(
        self,
        input_tokens: int,
        output_tokens: int,
        query: str = "",
        model: str = "default",
    ) -> TokenUsageEntry:
        cost_usd = calculate_cost_usd(model, input_tokens, output_tokens)
        entry = TokenUsageEntry(
            timestamp=self.clock(),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost_usd=cost_usd,
            cost_eur=cost_usd * EUR_RATE,
            query=query[:100],
            model=model,
        )

        with self._lock:
            self._history.append(entry)
            self._history = self._history[-self.max_entries:]
            self._save()
        return entry

    async def record_async(
        self,
        input_tokens: int,
        output_tokens: int,
        query: str = "",
        model: str = "default",
    ) -> TokenUsageEntry:
        """`record` in a worker thread; the history file is rewritten on every call."""
        return await asyncio.to_thread(self.record, input_tokens, output_tokens, query, model)

    def statistics(self) -> UsageStatistics:
        history = self.history
        if not history:
            return UsageStatistics()

        now = self.clock()
        total_queries = len(history)
        total_input = sum(e.input_tokens for e in history)
        total_output = sum(e.output_tokens for e in history)
        total_eur = sum(e.cost_eur for e in history)

        def period(days: int) -> PeriodUsage:
            recent = [e for e in history if now - e.timestamp < days * DAY_SECONDS]
            return PeriodUsage(queries=len(recent), cost_eur=sum(e.cost_eur for e in recent))

        return UsageStatistics(
            total_queries=total_queries,
            total_input_tokens=total_input,
            total_output_tokens=total_output,
            total_tokens=total_input + total_output,
            total_cost_usd=sum(e.cost_usd for e in history),
            total_cost_eur=total_eur,
            average_input_tokens=round(total_input / total_queries),
            average_output_tokens=round(total_output / total_queries),
            average_cost_per_query=total_eur / total_queries,
            last_24_hours=period(1),
            last_7_days=period(7),
            last_30_days=period(30),
        )

    def clear(self) -> None:
        with self._lock:
            self._history = []
            self._save()

    def _load(self) -> List[TokenUsageEntry]:
        if self.path is None or not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return [TokenUsageEntry(**item) for item in json.load(f)]
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load token usage history, starting fresh: {e}")
            return []

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump([asdict(e) for e in self._history], f, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to save token usage history: {e}")
