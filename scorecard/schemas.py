from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, EmailStr, Field

AnswerIn = Union[float, List[float]]


class ScoreIn(BaseModel):
    answers: Dict[str, AnswerIn] = Field(default_factory=dict)


class DimensionScoreOut(BaseModel):
    name: str
    percentage: int
    weight: float
    weightedScore: float
    color: str = ""


class LeadQualityOut(BaseModel):
    score: int
    priority: str
    readiness: str
    recommendedAction: str


class ScoreOut(BaseModel):
    totalScore: int
    stage: str
    dimensionScores: List[DimensionScoreOut]
    leadQuality: LeadQualityOut


class SubmissionIn(BaseModel):
    # email is checked by the submission flow so a bad address is a 400
    email: str = ""
    company: str = ""
    answers: Dict[str, AnswerIn] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None
    draft_key: Optional[str] = None
    score: Optional[Dict[str, Any]] = None


class SubmissionOut(BaseModel):
    success: bool
    response_id: Optional[int] = None
    totalScore: int
    stage: str
    leadPriority: str
    persisted: bool
    email_sent: bool


class ResultsEmailIn(BaseModel):
    email: EmailStr
    company: str
    answers: Dict[str, AnswerIn] = Field(default_factory=dict)


class DraftIn(BaseModel):
    answers: Dict[str, AnswerIn] = Field(default_factory=dict)
    selections: Dict[str, List[int]] = Field(default_factory=dict)
    currentStep: int = 0
    email: str = ""
    company: str = ""


class DraftOut(DraftIn):
    progress: float
    totalSteps: int
