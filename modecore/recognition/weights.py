"""
Recognition weights — the fixed scoring policy.

Every number the intent analyzer and the mode selector use lives here. The
values are a behavioural contract: change them and recognition results change
for every existing caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List

# ---------------------------------------------------------------------------
# Intent scoring
# ---------------------------------------------------------------------------

PATTERN_SCORE = 2                # per trigger regex matching the raw text
KEYWORD_SCORE = 1                # per keyword found in the token stream

INTENT_BASE_CONFIDENCE = 0.5
PATTERN_CONFIDENCE = 0.2         # per trigger hit
KEYWORD_CONFIDENCE = 0.3         # scaled by keyword hits / token count

MIN_TOKEN_LENGTH = 3

STOP_WORDS: FrozenSet[str] = frozenset(
    {"the", "and", "but", "for", "with", "this", "that", "can", "you"}
)

# ---------------------------------------------------------------------------
# Mode selection
# ---------------------------------------------------------------------------

INTENT_WEIGHT = 0.4              # × intent confidence, to the intent's mode
PREFERENCE_WEIGHT = 0.2          # per appearance in the preferred-mode list
CONTINUITY_WEIGHT = 0.1          # to the session's current mode

CONFIDENCE_INTENT_SHARE = 0.6
CONFIDENCE_WITH_FACTORS = 0.3
CONFIDENCE_WITHOUT_FACTORS = 0.1
CONFIDENCE_BASE = 0.1

DEGRADED_CONFIDENCE = 0.1        # analyzers failed, default mode returned

MAX_ALTERNATIVES = 3


@dataclass(frozen=True)
class FactorRule:
    """A situational factor that pushes the selector toward one mode."""
    factor: str
    mode_id: str
    weight: float = 0.3
    description: str = ""


# ---------------------------------------------------------------------------
# Factor table, applied in order, a factor may appear in several rules
# ---------------------------------------------------------------------------

FACTOR_RULES: List[FactorRule] = [
    FactorRule(
        factor="recent_errors",
        mode_id="debugging",
        description="Errors seen in this session: favour debugging",
    ),
]
