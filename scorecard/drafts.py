"""In-progress questionnaire state and its saved drafts."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from scorecard.db import ScorecardDraft, get_session
from scorecard.scoring import validate_answers
from scorecard.taxonomy import QuestionDefinition, all_questions, get_question

logger = logging.getLogger(__name__)

SCORECARD_STORAGE_KEY = "apexScorecardProgress"
_UNSAFE_CHARS = re.compile(r"[<>]")


def sanitize_input(value: Optional[str]) -> str:
    return _UNSAFE_CHARS.sub("", value or "").strip()


def draft_key(client_id: str) -> str:
    return f"{SCORECARD_STORAGE_KEY}:{client_id}"


def _check_selections(answers: Mapping[str, Any], selections: Mapping[str, List[int]]) -> None:
    """Raise ``ValueError`` unless each selection maps onto its question's options."""
    for question_id, indices in selections.items():
        question = get_question(question_id)
        if question is None or not question.multi_select:
            raise ValueError(f"Selections stored for non multi-select question {question_id}")
        if len(set(indices)) != len(indices):
            raise ValueError(f"Duplicate selections for question {question_id}")
        for index in indices:
            if not 0 <= index < len(question.options):
                raise ValueError(f"Question {question_id} has no option {index}")
        expected = [question.options[index].points for index in indices]
        if list(answers.get(question_id) or []) != expected:
            raise ValueError(f"Answer for question {question_id} does not match its selections")


@dataclass
class QuestionnaireSession:
    answers: Dict[str, Any] = field(default_factory=dict)
    selections: Dict[str, List[int]] = field(default_factory=dict)
    current_step: int = 0
    email: str = ""
    company: str = ""

    @property
    def questions(self) -> List[QuestionDefinition]:
        return all_questions()

    @property
    def total_steps(self) -> int:
        return len(self.questions)

    @property
    def on_identity_step(self) -> bool:
        return self.current_step >= self.total_steps

    @property
    def current_question(self) -> Optional[QuestionDefinition]:
        if 0 <= self.current_step < self.total_steps:
            return self.questions[self.current_step]
        return None

    @property
    def progress(self) -> float:
        return min(100.0, (self.current_step + 1) / self.total_steps * 100)

    def select(self, question_id: str, option_index: int) -> None:
        """Pick an option; multi-select questions toggle it instead."""
        question = get_question(question_id)
        if question is None:
            raise ValueError(f"Unknown question {question_id}")
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Question {question_id} has no option {option_index}")

        if not question.multi_select:
            self.answers[question_id] = question.options[option_index].points
            return

        chosen = list(self.selections.get(question_id, []))
        if option_index in chosen:
            chosen.remove(option_index)
        else:
            chosen.append(option_index)
        self.selections[question_id] = chosen
        self.answers[question_id] = [question.options[index].points for index in chosen]

    def is_answered(self, question_id: Optional[str] = None) -> bool:
        question = get_question(question_id) if question_id else self.current_question
        if question is None:
            return False
        answer = self.answers.get(question.id)
        if question.multi_select:
            return bool(answer)
        return answer is not None

    def next(self) -> int:
        if self.current_step < self.total_steps:
            self.current_step += 1
        return self.current_step

    def previous(self) -> int:
        if self.current_step > 0:
            self.current_step -= 1
        return self.current_step

    def set_identity(self, *, email: Optional[str] = None, company: Optional[str] = None) -> None:
        if email is not None:
            self.email = sanitize_input(email)
        if company is not None:
            self.company = sanitize_input(company)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "answers": dict(self.answers),
            "selections": {key: list(value) for key, value in self.selections.items()},
            "currentStep": self.current_step,
            "email": self.email,
            "company": self.company,
        }

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "QuestionnaireSession":
        """Restore a session; unreadable payloads restart from scratch."""
        if not payload:
            return cls()
        try:
            answers = dict(payload.get("answers") or {})
            validate_answers(answers)
            selections = {key: [int(index) for index in value] for key, value in (payload.get("selections") or {}).items()}
            _check_selections(answers, selections)
            step = payload.get("currentStep", 0)
            session = cls(
                answers=answers,
                selections=selections,
                current_step=step if isinstance(step, int) else 0,
                email=sanitize_input(payload.get("email")),
                company=sanitize_input(payload.get("company")),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            logger.error("Error loading saved progress: %s", exc)
            return cls()
        session.current_step = max(0, min(session.current_step, session.total_steps))
        return session


async def load_draft(client_id: str) -> QuestionnaireSession:
    async with get_session() as session:
        row = await session.get(ScorecardDraft, draft_key(client_id))
    return QuestionnaireSession.from_payload(row.payload if row else None)


async def save_draft(client_id: str, questionnaire: QuestionnaireSession) -> None:
    key = draft_key(client_id)
    async with get_session() as session:
        row = await session.get(ScorecardDraft, key)
        if row:
            row.payload = questionnaire.to_payload()
            row.updated_at = datetime.utcnow()
        else:
            row = ScorecardDraft(key=key, payload=questionnaire.to_payload())
        session.add(row)
        await session.commit()


async def clear_draft(client_id: str) -> bool:
    async with get_session() as session:
        row = await session.get(ScorecardDraft, draft_key(client_id))
        if not row:
            return False
        await session.delete(row)
        await session.commit()
    return True
