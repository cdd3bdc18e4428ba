from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, field_validator


class AnalyzedConnection(BaseModel):
    """One relationship the analysis model found between two numbered sources."""
    source_a_index: int
    source_b_index: int
    relationship: Literal["agrees", "contradicts", "extends", "gap"]
    explanation: str = ""
    strength: float = 0.5

    @field_validator("strength", mode="before")
    @classmethod
    def _clamp_strength(cls, value: object) -> float:
        try:
            strength = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.5
        return min(1.0, max(0.0, strength))


class AnalysisResult(BaseModel):
    connections: list[AnalyzedConnection] = []
    synthesis: str = ""
    gaps: list[str] = []
    follow_up_questions: list[str] = []
