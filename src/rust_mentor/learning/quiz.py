from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, validator

from rust_mentor import prompts
from rust_mentor.errors import MentorError, StructuredOutputError

if TYPE_CHECKING:
    from rust_mentor.llm.gateway import LLMGateway

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4

QUIZ_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "question": {"type": "string"},
            "options": {"type": "array", "items": {"type": "string"}},
            "correctAnswerIndex": {"type": "integer"},
            "explanation": {"type": "string"},
        },
        "required": ["question", "options", "correctAnswerIndex", "explanation"],
    },
}


class QuizQuestion(BaseModel):
    """Single multiple-choice item."""

    question: str
    options: List[str]
    correct_index: int = Field(alias="correctAnswerIndex", ge=0, le=OPTIONS_PER_QUESTION - 1)
    explanation: str = ""

    model_config = {"populate_by_name": True}

    @validator("options")
    def validate_options(cls, value: List[str]) -> List[str]:
        if len(value) != OPTIONS_PER_QUESTION:
            raise ValueError(f"options must contain exactly {OPTIONS_PER_QUESTION} entries")
        return value


class Quiz(BaseModel):
    """Quiz for one chapter. Generated fresh per attempt and never persisted."""

    chapter_title: str
    language: str = "en"
    questions: List[QuizQuestion]

    @validator("questions")
    def validate_questions(cls, value: List[QuizQuestion]) -> List[QuizQuestion]:
        if not value:
            raise ValueError("quiz must include at least one question")
        return value


class QuizAnswerResult(BaseModel):
    """Feedback for a single submitted answer."""

    index: int
    is_correct: bool
    correct_index: int
    selected_index: Optional[int] = None
    explanation: str = ""


class QuizEvaluation(BaseModel):
    """Aggregate evaluation of a learner's submission."""

    chapter_title: str
    total_questions: int
    correct_count: int
    answers: List[QuizAnswerResult]

    @property
    def passed(self) -> bool:
        return self.total_questions > 0 and self.correct_count == self.total_questions


class QuizService:
    """Generate and score chapter quizzes."""

    def __init__(self, gateway: "LLMGateway", num_questions: int = 3):
        self.gateway = gateway
        self.num_questions = num_questions

    def generate_quiz(self, chapter_title: str, language: str, num_questions: Optional[int] = None) -> Quiz:
        count = num_questions or self.num_questions
        prompt = prompts.quiz_prompt(chapter_title, language, count, OPTIONS_PER_QUESTION)
        payload = self.gateway.complete_json(prompt, QUIZ_SCHEMA, prompts.QUIZ_SYSTEM)
        if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
            payload = payload["questions"]
        if not isinstance(payload, list):
            logger.error("Quiz payload was not a list: %r", payload)
            raise StructuredOutputError("Quiz generation returned an unexpected structure.")

        try:
            quiz = Quiz(
                chapter_title=chapter_title,
                language=language,
                questions=[QuizQuestion.model_validate(item) for item in payload],
            )
        except ValidationError as exc:
            logger.error("Quiz payload validation failed: %s", exc)
            raise StructuredOutputError("Quiz generation failed due to invalid quiz structure.") from exc

        if len(quiz.questions) > count:
            quiz.questions = quiz.questions[:count]
        return quiz

    def evaluate(self, quiz: Quiz, answers: Sequence[Optional[int]]) -> QuizEvaluation:
        submitted = list(answers)
        if len(submitted) != len(quiz.questions):
            raise ValueError("Answer count must match number of quiz questions.")

        results: List[QuizAnswerResult] = []
        correct = 0
        for idx, (question, selected) in enumerate(zip(quiz.questions, submitted)):
            selected_index = selected if selected is not None and 0 <= selected < len(question.options) else None
            is_correct = selected_index == question.correct_index
            if is_correct:
                correct += 1
            results.append(
                QuizAnswerResult(
                    index=idx,
                    is_correct=is_correct,
                    correct_index=question.correct_index,
                    selected_index=selected_index,
                    explanation=question.explanation,
                )
            )

        return QuizEvaluation(
            chapter_title=quiz.chapter_title,
            total_questions=len(quiz.questions),
            correct_count=correct,
            answers=results,
        )


class QuizStatus(str, Enum):
    LOADING = "loading"
    PRESENTED = "presented"
    SUBMITTED = "submitted"
    FAILED = "failed"


class QuizAttempt:
    """
    One pass through a chapter quiz.

    States move LOADING -> PRESENTED -> SUBMITTED, or LOADING -> FAILED when the quiz
    could not be generated. SUBMITTED is terminal: answers are frozen for review and
    the only way forward is `retry`, which throws the attempt away and regenerates.
    """

    def __init__(self, service: QuizService, chapter_title: str, language: str, chapter_index: Optional[int] = None):
        self.service = service
        self.chapter_title = chapter_title
        self.chapter_index = chapter_index
        self.language = language
        self.status = QuizStatus.LOADING
        self.quiz: Optional[Quiz] = None
        self.selections: List[Optional[int]] = []
        self.evaluation: Optional[QuizEvaluation] = None
        self.error: Optional[str] = None

    def load(self) -> "QuizAttempt":
        self.status = QuizStatus.LOADING
        self.quiz = None
        self.selections = []
        self.evaluation = None
        self.error = None
        try:
            quiz = self.service.generate_quiz(self.chapter_title, self.language)
        except MentorError as exc:
            logger.warning("Quiz generation for %r failed: %s", self.chapter_title, exc)
            self.error = str(exc)
            self.status = QuizStatus.FAILED
            return self
        self.quiz = quiz
        self.selections = [None] * len(quiz.questions)
        self.status = QuizStatus.PRESENTED
        return self

    def select(self, question_index: int, option_index: int) -> None:
        if self.status is not QuizStatus.PRESENTED or self.quiz is None:
            raise RuntimeError(f"Cannot answer a quiz in state {self.status.value}.")
        question = self.quiz.questions[question_index]
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Option {option_index} does not exist for question {question_index}.")
        self.selections[question_index] = option_index

    @property
    def can_submit(self) -> bool:
        return (
            self.status is QuizStatus.PRESENTED
            and bool(self.selections)
            and all(choice is not None for choice in self.selections)
        )

    def submit(self) -> QuizEvaluation:
        if not self.can_submit or self.quiz is None:
            raise RuntimeError("Every question needs an answer before submitting.")
        self.evaluation = self.service.evaluate(self.quiz, self.selections)
        self.status = QuizStatus.SUBMITTED
        logger.info(
            "Quiz for %r scored %d/%d",
            self.chapter_title,
            self.evaluation.correct_count,
            self.evaluation.total_questions,
        )
        return self.evaluation

    @property
    def score(self) -> Optional[int]:
        return self.evaluation.correct_count if self.evaluation else None

    @property
    def passed(self) -> bool:
        return self.evaluation is not None and self.evaluation.passed

    def retry(self) -> "QuizAttempt":
        if self.status not in (QuizStatus.SUBMITTED, QuizStatus.FAILED):
            raise RuntimeError(f"Cannot retry a quiz in state {self.status.value}.")
        return self.load()
