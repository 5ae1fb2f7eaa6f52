"""
Validation modes — debugging, testing and reviewing.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Tuple

from .base import (
    CanHandleResult,
    ModeConfig,
    ModeContext,
    ModeResult,
    SessionClock,
    assess,
    clamp,
)

logger = logging.getLogger(__name__)


# error type → (detection pattern, likely root cause)
_ERROR_TYPES: Dict[str, Tuple[str, str]] = {
    "syntax": (r"syntax ?error|unexpected token|invalid syntax", "Malformed source code"),
    "type": (r"type ?error|not callable|unsupported operand", "Value of the wrong type"),
    "reference": (r"reference ?error|name ?error|undefined|not defined|null pointer",
                  "Name or object used before it exists"),
    "network": (r"connection refused|timed? ?out|econnreset|dns", "Unreachable dependency"),
    "permission": (r"permission denied|forbidden|access denied|eacces", "Missing access rights"),
    "runtime": (r"exception|traceback|stack trace|crash|panic", "Unhandled runtime failure"),
}

_SOLUTIONS: Dict[str, List[str]] = {
    "syntax": ["Check the line reported by the parser and the one before it"],
    "type": ["Print the type of each operand at the failing line", "Add input validation"],
    "reference": ["Confirm the name is defined and imported", "Guard against empty values"],
    "network": ["Verify the service is running and reachable", "Add retries with backoff"],
    "permission": ["Check file and service permissions for the running user"],
    "runtime": ["Read the stack trace from the bottom frame upward",
                "Reproduce with the smallest failing input"],
    "logic": ["Write a failing test that captures the expected behaviour",
              "Bisect recent changes"],
}


class DebuggingMode:
    """Locates the cause of errors and proposes fixes."""

    config = ModeConfig(
        id="debugging",
        name="Debugging",
        category="validation",
        keywords=(
            "error", "bug", "issue", "problem", "debug", "fix", "broken", "crash",
            "fail", "exception", "traceback", "stack trace", "not working", "glitch", "fault",
        ),
        triggers=(
            r"error|bug|fix|debug|broken|crash|fail",
            r"not working|doesn't work|issue|problem",
            r"stack trace|exception|traceback",
        ),
        priority=9,
        timeout_ms=180_000,
        max_concurrent_sessions=6,
        description="Root-cause analysis and repair of defects",
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)
        logger.debug(
            "debugging activated for session %s (error type %s)",
            context.session_id, classify_error(context.input),
        )

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        error_type = classify_error(input)
        severity = error_severity(input)
        solutions = _SOLUTIONS[error_type]
        cause = _ERROR_TYPES.get(error_type, ("", "Behaviour differs from intent"))[1]
        lines = [
            f"Error type: {error_type}",
            f"Severity: {severity}",
            f"Likely cause: {cause}",
            "Next steps:",
        ] + [f"- {s}" for s in solutions]
        confidence = 0.6 + (0.2 if error_type != "logic" else 0.0) + 0.05 * len(solutions)
        return ModeResult(
            success=True,
            output="\n".join(lines),
            confidence=clamp(confidence),
            suggested_next_mode="testing",
            metadata={"error_type": error_type, "severity": severity, "solutions": len(solutions)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if classify_error(input) != "logic":
            signals.append((0.3, "Error message or log detected"))
        if re.search(r"^\s+at |File \".*\", line \d+", input, re.MULTILINE):
            signals.append((0.4, "Stack trace detected"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class TestingMode:
    """Designs tests at the appropriate level for the request."""

    config = ModeConfig(
        id="testing",
        name="Testing",
        category="validation",
        keywords=("test", "tests", "validate", "verify", "coverage", "assertion", "unit test"),
        triggers=(
            r"\btests?\b|\btesting\b",
            r"unit test|integration test|test case",
            r"\bvalidate\b|\bverify\b",
        ),
        priority=9,
        timeout_ms=120_000,
        max_concurrent_sessions=8,
        description="Test design and verification",
    )

    _LEVELS = (
        ("performance", r"load|performance|stress|benchmark"),
        ("end-to-end", r"e2e|end.to.end|user flow|browser"),
        ("integration", r"integration|api|database|service"),
        ("unit", r".*"),
    )

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        level = next(name for name, pattern in self._LEVELS
                     if re.search(pattern, input, re.IGNORECASE))
        cases = ["Happy path", "Empty input", "Boundary values", "Invalid input raises an error"]
        if level in ("integration", "end-to-end"):
            cases.append("Dependency unavailable")
        return ModeResult(
            success=True,
            output=f"{level.capitalize()} tests:\n" + "\n".join(f"- {c}" for c in cases),
            confidence=0.75,
            suggested_next_mode="reviewing",
            metadata={"level": level, "cases": len(cases)},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        signals = []
        if re.search(r"\bassert|pytest|jest|mock\b", input, re.IGNORECASE):
            signals.append((0.3, "Test tooling mentioned"))
        return assess(self.config, input, context, signals)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


class ReviewingMode:
    """Checks work against a review checklist."""

    config = ModeConfig(
        id="reviewing",
        name="Reviewing",
        category="validation",
        keywords=("review", "audit", "inspect", "critique", "feedback", "check"),
        triggers=(
            r"\breview\b",
            r"code review|peer review|audit",
            r"check (my|this|the) work",
        ),
        priority=8,
        timeout_ms=100_000,
        max_concurrent_sessions=10,
        description="Quality review of finished work",
    )

    _CHECKLISTS = {
        "code": ["Correctness", "Error handling", "Naming", "Tests"],
        "document": ["Accuracy", "Structure", "Audience fit"],
        "design": ["Requirements coverage", "Simplicity", "Failure modes"],
    }

    def __init__(self):
        self._clock = SessionClock()

    async def on_activate(self, context: ModeContext) -> None:
        self._clock.start(context)

    async def on_process(self, input: str, context: ModeContext) -> ModeResult:
        lowered = input.lower()
        if re.search(r"code|function|pull request|\bpr\b|diff", lowered):
            subject = "code"
        elif re.search(r"design|architecture|diagram", lowered):
            subject = "design"
        else:
            subject = "document"
        checklist = self._CHECKLISTS[subject]
        return ModeResult(
            success=True,
            output=f"Review checklist ({subject}):\n" + "\n".join(f"[ ] {c}" for c in checklist),
            confidence=0.7,
            suggested_next_mode="implementing" if subject == "code" else None,
            metadata={"subject": subject},
        )

    def on_can_handle(self, input: str, context: ModeContext) -> CanHandleResult:
        return assess(self.config, input, context)

    async def on_deactivate(self, session_id: str) -> None:
        self._clock.stop(session_id)


def classify_error(text: str) -> str:
    for name, (pattern, _) in _ERROR_TYPES.items():
        if re.search(pattern, text, re.IGNORECASE):
            return name
    return "logic"


def error_severity(text: str) -> str:
    lowered = text.lower()
    if re.search(r"crash|fatal|data loss|production|outage", lowered):
        return "critical"
    if re.search(r"exception|stack trace|traceback", lowered):
        return "high"
    if re.search(r"error|fail|broken", lowered):
        return "medium"
    return "low"
