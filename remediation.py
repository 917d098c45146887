"""
Pick what a retry quiz should cover from the child's past mistakes.
"""
from collections import Counter
from dataclasses import dataclass
from typing import List

from config import REMEDIATION_SAMPLE_SIZE
from errors import NotFound
from schemas import Child, Question


@dataclass
class Remediation:
    topic: str
    difficulty: str
    sample_questions: List[Question]


def incorrect_questions(child: Child) -> List[Question]:
    return [q for quiz in child.quizzes for q in quiz.questions if q.is_incorrect]


def select_remediation(child: Child, sample_size: int = REMEDIATION_SAMPLE_SIZE) -> Remediation:
    mistakes = incorrect_questions(child)
    if not mistakes:
        raise NotFound("No incorrectly answered questions to build a retry quiz from")

    # most_common keeps first-encountered order on ties
    topic = Counter(q.type for q in mistakes).most_common(1)[0][0]
    difficulty = Counter(q.level for q in mistakes).most_common(1)[0][0]
    return Remediation(topic=topic, difficulty=difficulty, sample_questions=mistakes[:sample_size])
