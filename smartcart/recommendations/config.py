from __future__ import annotations

import math
import os
from dataclasses import dataclass, field

from .models import SourceCategory


@dataclass(frozen=True)
class WeightTable:
    """Per-source blend weights. Must sum to 1.0; checked on construction."""

    ai: float = 0.30
    trending: float = 0.20
    similar: float = 0.20
    contextual: float = 0.15
    complementary: float = 0.15

    def __post_init__(self) -> None:
        values = self.as_dict().values()
        if any(w < 0 for w in values):
            raise ValueError(f"Source weights must be non-negative: {self}")
        total = math.fsum(values)
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Source weights must sum to 1.0, got {total}")

    def as_dict(self) -> dict[SourceCategory, float]:
        return {
            SourceCategory.ai_powered: self.ai,
            SourceCategory.trending: self.trending,
            SourceCategory.similar: self.similar,
            SourceCategory.contextual: self.contextual,
            SourceCategory.complementary: self.complementary,
        }

    def weight_for(self, source: SourceCategory) -> float:
        return self.as_dict()[source]

    @classmethod
    def from_string(cls, text: str) -> "WeightTable":
        """Parse ``"ai=0.4,trending=0.2,..."``; omitted sources keep their defaults."""
        overrides: dict[str, float] = {}
        for part in text.split(","):
            part = part.strip()
            if not part:
                continue
            key, _, value = part.partition("=")
            key = key.strip()
            if key not in cls.__dataclass_fields__:
                raise ValueError(f"Unknown source weight {key!r}")
            overrides[key] = float(value)
        return cls(**overrides)


def _weights_from_env() -> WeightTable:
    raw = os.getenv("SMARTCART_WEIGHTS", "")
    return WeightTable.from_string(raw) if raw else WeightTable()


@dataclass(frozen=True)
class EngineConfig:
    weights: WeightTable = field(default_factory=_weights_from_env)
    top_k: int = 8
    settle_delay: float = 0.1
    advisor_cache_enabled: bool = True
    advisor_cache_ttl: float = 300.0


DEFAULT_ENGINE_CONFIG = EngineConfig()
