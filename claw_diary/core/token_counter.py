"""
Token counting and usage tracking.

Holds the token counts reported by a hook together with their estimated cost.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenUsage:
    """Token usage attached to an event.

    Counts are taken verbatim from the hook payload; the cost is computed
    once at write time and never recomputed on read.
    """
    input: int
    output: int
    estimated_cost: float = 0.0

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input + self.output

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input,
            "output": self.output,
            "estimatedCost": self.estimated_cost,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenUsage":
        """Build usage from a stored ``tokenUsage`` object.

        Raises:
            ValueError: If ``data`` is not a mapping or holds non-numeric counts
        """
        if not isinstance(data, dict):
            raise ValueError("tokenUsage must be an object")
        return cls(
            input=_as_int(data.get("input")),
            output=_as_int(data.get("output")),
            estimated_cost=float(data.get("estimatedCost") or 0.0),
        )


def _as_int(value: Optional[Any]) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("token count must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("token count must be finite")
    return int(value)


def coerce_token_count(value: Any) -> int:
    """Coerce a loosely-typed hook token count, treating garbage as zero."""
    try:
        count = _as_int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)
