"""
Quiz grading.

Grading records the child's answers, scores the quiz, credits the points and
feeds the resulting gameplay event to the child's quests, all on the same
in-memory aggregate so a single save persists everything.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from errors import InvalidArgument, InvalidState
from quests import GameplayEvent, apply_event, ensure_quests
from rewards import credit_points
from schemas import Child, Quest, Quiz, utcnow

logger = logging.getLogger(__name__)


@dataclass
class GradeResult:
    score: int
    correct: int
    total: int
    event: GameplayEvent
    completed_quests: List[Quest] = field(default_factory=list)

    @property
    def is_perfect_score(self) -> bool:
        return self.score == 100


def percentage(correct: int, total: int) -> int:
    # round half up, in integers
    return (200 * correct + total) // (2 * total)


def grade_quiz(child: Child, quiz: Quiz, answers: List[int]) -> GradeResult:
    if quiz.is_answered:
        raise InvalidState("Quiz already answered")
    total = len(quiz.questions)
    if total == 0:
        raise InvalidArgument("Quiz has no questions")
    if len(answers) != total:
        raise InvalidArgument(f"Expected {total} answers, got {len(answers)}")
    for number, (question, answer) in enumerate(zip(quiz.questions, answers), start=1):
        if not 0 <= answer < len(question.options):
            raise InvalidArgument(
                f"Answer {answer} to question {number} is outside its {len(question.options)} options"
            )

    correct = 0
    for question, answer in zip(quiz.questions, answers):
        question.user_answer_index = answer
        if answer == question.correct_answer_index:
            correct += 1

    score = percentage(correct, total)
    quiz.is_answered = True
    quiz.score = score
    quiz.answered_at = utcnow()
    credit_points(child, score)

    event = GameplayEvent(quiz_completed=True, points_earned=score, is_perfect_score=score == 100)
    ensure_quests(child)
    completed = apply_event(child.quests, event)
    logger.info("Child %s scored %d on quiz %s (%d/%d)", child.id, score, quiz.id, correct, total)
    return GradeResult(score=score, correct=correct, total=total, event=event, completed_quests=completed)
