from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExecutionRequest(_Wire):
    code: str = ""
    language: str = ""
    input: Optional[str] = None
    job_id: Optional[str] = None


class AbortRequest(_Wire):
    job_id: str


class ComplexityEstimate(_Wire):
    time: str = "Unknown"
    space: str = "Unknown"
    explanation: str = ""


class CodeSuggestion(_Wire):
    type: str
    title: str
    description: str
    line_numbers: List[int] = Field(default_factory=list)
    severity: Literal["info", "warning", "critical"]
    improvement_code: Optional[str] = None


class AIFeedback(_Wire):
    suggestions: List[CodeSuggestion] = Field(default_factory=list)
    overall_quality: int = 0
    summary: str = ""


class ExecutionResult(_Wire):
    output: str = ""
    errors: Optional[str] = None
    execution_time: float = 0.0
    memory_usage: float = 0.0
    complexity: Optional[ComplexityEstimate] = None


class ExecutionResponse(_Wire):
    result: ExecutionResult
    ai_feedback: AIFeedback
    job_id: Optional[str] = None
