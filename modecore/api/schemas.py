"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ── Recognition ────────────────────────────────────────────────────────────

class TelemetryIn(BaseModel):
    session_id: str = "default"
    user_id: str = "anonymous"
    recent_errors_count: int = Field(default=0, ge=0)
    active_files: List[str] = Field(default_factory=list)
    time_of_day: Optional[int] = Field(default=None, ge=0, le=23, description="Local hour")
    session_duration_s: float = Field(default=0.0, ge=0.0)
    current_mode: Optional[str] = None
    language: Optional[str] = None
    project_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RecognizeRequest(BaseModel):
    input: str
    telemetry: TelemetryIn = Field(default_factory=TelemetryIn)


class RecognitionOut(BaseModel):
    recommended_mode: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    alternative_modes: List[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ModeResultOut(BaseModel):
    success: bool
    output: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    suggested_next_mode: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = None


class InteractOut(BaseModel):
    session_id: str
    recognition: RecognitionOut
    result: ModeResultOut
    current_mode: Optional[str]
    previous_mode: Optional[str]
    switched: bool
    indicator: str


# ── Sessions ───────────────────────────────────────────────────────────────

class SessionOut(BaseModel):
    session_id: str
    user_id: str
    state: str
    current_mode: Optional[str]
    activated_at: Optional[float]
    transition_count: int
    created_at: float
    last_activity: float
    indicator: str = ""


class ProcessRequest(BaseModel):
    input: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TransitionRequest(BaseModel):
    mode_id: str
    user_id: str = "anonymous"
    reason: str = "manual"


# ── History ────────────────────────────────────────────────────────────────

class HistoryEntryOut(BaseModel):
    id: str
    session_id: str
    user_id: str
    mode_id: str
    action: str
    timestamp: float
    from_mode: Optional[str] = None
    duration: Optional[float] = None
    confidence: Optional[float] = None
    reason: Optional[str] = None


class HistoryImportRequest(BaseModel):
    data: str = Field(..., description="Output of /history/export")
    format: str = Field(default="structured", description="structured | table")


class HistoryImportOut(BaseModel):
    imported: int
    total_entries: int


class CleanupOut(BaseModel):
    removed_count: int
    remaining: int
    retention_days: int


# ── Analytics ──────────────────────────────────────────────────────────────

class SessionSummaryOut(BaseModel):
    session_id: str
    user_id: str
    start_time: float
    end_time: float
    duration: float
    total_mode_transitions: int
    unique_modes_used: List[str]
    most_used_mode: str
    average_confidence: float
    closed: bool
    mode_counts: Dict[str, int]


class ModePreferenceOut(BaseModel):
    mode_id: str
    percentage: float


class UserAnalyticsOut(BaseModel):
    user_id: str
    total_entries: int
    total_sessions: int
    total_duration: float
    average_session_duration: float
    mode_preferences: List[ModePreferenceOut]
    peak_usage_hours: List[int]
    learning_progress: float = Field(..., ge=0.0, le=100.0)
    last_active: float


class ModeStatisticsOut(BaseModel):
    mode_id: str
    total_usage: int
    unique_users: int
    unique_sessions: int
    average_duration: float
    average_confidence: float
    usage_by_hour: List[int]
    usage_by_weekday: List[int]


# ── Modes ──────────────────────────────────────────────────────────────────

class ModeOut(BaseModel):
    id: str
    name: str
    category: str
    description: str
    keywords: List[str]
    triggers: List[str]
    priority: int
    timeout_ms: int
    min_input_length: int
    max_input_length: int
    required_context: List[str]
    max_concurrent_sessions: int
    active_sessions: int


class CanHandleRequest(BaseModel):
    input: str
    mode_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CanHandleOut(BaseModel):
    mode_id: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: List[str]
