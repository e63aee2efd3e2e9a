"""
Pydantic models for form schemas and dataclass records for run results.

The schema side (questions, options, run configuration) is validated with
pydantic; the per-row and per-run results are plain dataclasses since they
are produced internally and never parsed from user input.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


AnswerValue = Union[str, List[str]]


class QuestionType(str, Enum):
    """Question kinds recognised on a Google Form."""
    SHORT_ANSWER = "SHORT_ANSWER"
    PARAGRAPH = "PARAGRAPH"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    CHECKBOXES = "CHECKBOXES"
    DROPDOWN = "DROPDOWN"
    LINEAR_SCALE = "LINEAR_SCALE"
    DATE = "DATE"
    TIME = "TIME"
    GRID = "GRID"
    UNKNOWN = "UNKNOWN"


TEXT_TYPES = frozenset({QuestionType.SHORT_ANSWER, QuestionType.PARAGRAPH})


class RunStatus(str, Enum):
    """Status attached to every operator-facing log entry."""
    INIT = "INIT"
    RUNNING = "RUNNING"
    COOLDOWN = "COOLDOWN"
    ERROR = "ERROR"
    DONE = "DONE"
    ABORTED = "ABORTED"


TERMINAL_STATUSES = frozenset({RunStatus.DONE, RunStatus.ERROR, RunStatus.ABORTED})


class FormOption(BaseModel):
    """One answer option with its operator-assigned weight (0-100)."""

    value: str
    weight: float = Field(default=0.0, ge=0, le=100, description="Desired prevalence in percent")


class FormQuestion(BaseModel):
    """
    A single scraped form question.

    ``entry_id`` is the numeric Google Forms entry id (without the
    ``entry.`` prefix); ``page_index`` is the 0-based section the
    question appears in.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "q1",
                "entry_id": "123456789",
                "title": "What is your age group?",
                "type": "MULTIPLE_CHOICE",
                "options": [{"value": "18-24", "weight": 40}, {"value": "25-34", "weight": 60}],
                "required": True,
            }
        },
    )

    id: str
    entry_id: str = Field(..., alias="entryId")
    title: str = ""
    type: QuestionType = QuestionType.UNKNOWN
    options: List[FormOption] = Field(default_factory=list)
    required: bool = False
    page_index: int = Field(default=0, ge=0, alias="pageIndex")

    @field_validator("entry_id", mode="before")
    @classmethod
    def _coerce_entry_id(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def option_values(self) -> List[str]:
        return [opt.value for opt in self.options]

    @property
    def is_text(self) -> bool:
        return self.type in TEXT_TYPES


class FormAnalysis(BaseModel):
    """Parsed form: the input handed to the engine by the scraper."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = "Untitled Form"
    description: str = ""
    questions: List[FormQuestion] = Field(default_factory=list)
    hidden_fields: Dict[str, str] = Field(default_factory=dict, alias="hiddenFields")


class RunConfig(BaseModel):
    """Operator choices for a single generation run."""

    target_count: int = Field(..., gt=0, description="Number of responses to generate")
    delay_min: int = Field(default=0, ge=0, description="Minimum delay between groups (ms)")
    name_source: str = Field(default="auto", pattern="^(auto|indian|custom)$")
    names: List[str] = Field(default_factory=list)
    custom_field_responses: Dict[str, List[str]] = Field(default_factory=dict)
    seed: Optional[int] = None


@dataclass
class LogEntry:
    """Operator-facing progress record; ``count`` is cumulative successes."""
    msg: str
    status: RunStatus
    count: int
    timestamp: float = field(default_factory=time.time)
    row_index: Optional[int] = None
    terminal: bool = False

    def __post_init__(self):
        if self.terminal and self.status not in TERMINAL_STATUSES:
            raise ValueError(f"A final log entry cannot have status {self.status.value}")

    @property
    def is_terminal(self) -> bool:
        """True only for the single entry that closes a run."""
        return self.terminal

    def to_dict(self) -> Dict:
        return {
            "msg": self.msg,
            "status": self.status.value,
            "count": self.count,
            "timestamp": self.timestamp,
            "row_index": self.row_index,
            "terminal": self.terminal,
        }


@dataclass
class RowPayload:
    """Submission for one row: answers keyed by entry id plus form metadata."""
    row_index: int
    answers: Dict[str, AnswerValue]
    hidden_fields: Dict[str, str] = field(default_factory=dict)
    page_history: str = "0"

    def as_mapping(self) -> Dict[str, AnswerValue]:
        """Flatten answers, hidden fields and page history into one mapping."""
        data: Dict[str, AnswerValue] = dict(self.hidden_fields)
        data.update(self.answers)
        data["pageHistory"] = self.page_history
        return data


@dataclass
class CompiledBatch:
    """Result of compiling every row of a run."""
    payloads: List[RowPayload] = field(default_factory=list)
    invalid_rows: Dict[int, str] = field(default_factory=dict)

    @property
    def valid_count(self) -> int:
        return len(self.payloads)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_rows)


@dataclass
class DeliveryOutcome:
    """Settled result of one delivery."""
    row_index: int
    success: bool
    reason: Optional[str] = None
    status_code: Optional[int] = None
    latency_ms: float = 0.0
    attempts: int = 1


@dataclass
class ScheduleResult:
    """Aggregate of a scheduler pass over all groups."""
    status: RunStatus
    success_count: int
    failure_count: int
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    groups_dispatched: int = 0
    cancelled: bool = False


@dataclass
class RunResult:
    """Final result of an end-to-end run."""
    status: RunStatus
    success_count: int
    target_count: int
    valid_rows: int
    invalid_rows: int
    failure_count: int = 0
    logs: List[LogEntry] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.success_count / self.target_count if self.target_count else 0.0
