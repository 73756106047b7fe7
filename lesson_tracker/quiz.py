import logging
from enum import Enum
from typing import Dict, List, Optional
from .config import settings
from .engine import js_round
from .errors import QuizEmpty, QuizIncomplete
from .models import LessonRef, QuizQuestion, QuizResult

logger = logging.getLogger(__name__)

class QuizPhase(str, Enum):
    UNANSWERED = "unanswered"
    ALL_ANSWERED = "all_answered"
    SUBMITTED = "submitted"

class QuizAttempt:
    """Answers for one quiz lesson. Retries are unlimited."""

    def __init__(self, questions: List[QuizQuestion], pass_percent: Optional[int] = None):
        self.questions = list(questions)
        self.pass_percent = pass_percent if pass_percent is not None else settings.QUIZ_PASS_PERCENT
        self.answers: Dict[str, int] = {}
        self.result: Optional[QuizResult] = None

    @property
    def submitted(self) -> bool:
        return self.result is not None

    @property
    def phase(self) -> QuizPhase:
        if self.submitted:
            return QuizPhase.SUBMITTED
        if self.questions and not self.unanswered():
            return QuizPhase.ALL_ANSWERED
        return QuizPhase.UNANSWERED

    def unanswered(self) -> List[str]:
        return [q.id for q in self.questions if q.id not in self.answers]

    def select_answer(self, question_id: str, option_index: int) -> bool:
        """Records an answer. Returns False once the attempt is submitted."""
        if self.submitted:
            return False
        question = next((q for q in self.questions if q.id == question_id), None)
        if question is None:
            raise ValueError(f"Unknown question {question_id}")
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Option {option_index} out of range for question {question_id}")
        self.answers[question_id] = option_index
        return True

    def submit(self) -> QuizResult:
        if not self.questions:
            raise QuizEmpty()
        missing = self.unanswered()
        if missing:
            raise QuizIncomplete(missing)

        total = len(self.questions)
        correct = sum(1 for q in self.questions if self.answers.get(q.id) == q.correct_index)
        percent = js_round(correct / total * 100)
        self.result = QuizResult(correct=correct, total=total, percent=percent, passed=percent >= self.pass_percent)
        logger.info(f"Quiz submitted: {self.result.text}, passed={self.result.passed}")
        return self.result

    def retry(self):
        self.answers = {}
        self.result = None

class QuizCatalog:
    """
    Questions per quiz lesson.

    Lessons without registered questions get a built-in set picked from the
    lesson title until the backend serves quizzes.
    """

    def __init__(self, quizzes: Optional[Dict[str, List[QuizQuestion]]] = None):
        self.quizzes = dict(quizzes or {})

    def register(self, lesson_id: str, questions: List[QuizQuestion]):
        self.quizzes[lesson_id] = list(questions)

    def questions_for(self, lesson: LessonRef) -> List[QuizQuestion]:
        if lesson.id in self.quizzes:
            return list(self.quizzes[lesson.id])
        if "javascript" in lesson.title.lower():
            return [
                QuizQuestion(id="q1", prompt="Which keyword declares a block-scoped variable?",
                             options=["var", "let", "function", "constantly"], correct_index=1),
                QuizQuestion(id="q2", prompt="What is the result of typeof null?",
                             options=["null", "object", "undefined", "number"], correct_index=1),
                QuizQuestion(id="q3", prompt="Which array method creates a new array by transforming each element?",
                             options=["forEach", "map", "filter", "push"], correct_index=1),
            ]
        return [
            QuizQuestion(id="q1", prompt="A quiz lesson is a set of questions used to check learning progress.",
                         options=["True", "False"], correct_index=0),
        ]
