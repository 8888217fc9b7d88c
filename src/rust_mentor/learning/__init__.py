from .curriculum import default_topics, topics_to_show
from .models import UserProgress
from .progress import ProgressTracker
from .quiz import Quiz, QuizAttempt, QuizEvaluation, QuizQuestion, QuizService, QuizStatus

__all__ = [
    "ProgressTracker",
    "Quiz",
    "QuizAttempt",
    "QuizEvaluation",
    "QuizQuestion",
    "QuizService",
    "QuizStatus",
    "UserProgress",
    "default_topics",
    "topics_to_show",
]
