"""
Default mode catalog.

Registration order is significant: recognition resolves equal scores in favour
of the mode registered first.
"""

from __future__ import annotations

from typing import List

from .analytical import AnalyzingMode, ResearchingMode, SummarizingMode
from .base import Mode
from .contemplative import ReflectingMode
from .creative import BrainstormingMode, DesigningMode
from .learning import TeachingMode
from .reasoning import ComparingMode, OptimizingMode, ThinkingMode
from .structural import ImplementingMode, OrganizingMode, PlanningMode
from .validation import DebuggingMode, ReviewingMode, TestingMode


def default_modes() -> List[Mode]:
    return [
        ThinkingMode(),
        DebuggingMode(),
        OptimizingMode(),
        BrainstormingMode(),
        ResearchingMode(),
        SummarizingMode(),
        ComparingMode(),
        AnalyzingMode(),
        TestingMode(),
        ReviewingMode(),
        DesigningMode(),
        PlanningMode(),
        OrganizingMode(),
        ImplementingMode(),
        TeachingMode(),
        ReflectingMode(),
    ]
