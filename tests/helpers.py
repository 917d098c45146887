from __future__ import annotations

import copy
from typing import List, Optional

from errors import Conflict
from schemas import Parent, Question, Quiz


class InMemoryParentStore:
    """Keeps parents as plain dicts so every load hands out a fresh aggregate."""

    def __init__(self) -> None:
        self.docs: dict[str, dict] = {}
        self.saves = 0

    def list_parents(self) -> List[Parent]:
        return [Parent.model_validate(copy.deepcopy(d)) for d in self.docs.values()]

    def load_parent(self, parent_id: str) -> Optional[Parent]:
        doc = self.docs.get(parent_id)
        return Parent.model_validate(copy.deepcopy(doc)) if doc else None

    def load_child(self, child_id: str):
        for doc in self.docs.values():
            parent = Parent.model_validate(copy.deepcopy(doc))
            child = parent.find_child(child_id)
            if child is not None:
                return parent, child
        return None

    def load_schedule(self, schedule_id: str):
        for doc in self.docs.values():
            parent = Parent.model_validate(copy.deepcopy(doc))
            for child in parent.children:
                if child.find_schedule(schedule_id) is not None:
                    return parent, child
        return None

    def insert_parent(self, parent: Parent) -> Parent:
        self.docs[parent.id] = parent.model_dump()
        return parent

    def save_parent(self, parent: Parent) -> Parent:
        stored = self.docs.get(parent.id)
        if stored is None or stored["version"] != parent.version:
            raise Conflict("Parent was modified by another request, please retry")
        parent.version += 1
        self.docs[parent.id] = parent.model_dump()
        self.saves += 1
        return parent

    def delete_parent(self, parent_id: str) -> bool:
        return self.docs.pop(parent_id, None) is not None


class FakeGenerator:
    """Returns canned quizzes and remembers the requests it saw."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        topic = request.topic or request.subject
        return Quiz(
            title=f"{request.subject} quiz",
            type=request.subject,
            is_retry=request.is_retry,
            questions=[
                Question(
                    question_text=f"{topic} question {i + 1}",
                    options=["a", "b", "c", "d"],
                    correct_answer_index=i % 4,
                    type=topic,
                    level=request.difficulty,
                )
                for i in range(request.question_count)
            ],
        )


def make_quiz(correct: List[int], topic: str = "math", level: str = "beginner", title: str = "Quiz") -> Quiz:
    return Quiz(
        title=title,
        type=topic,
        questions=[
            Question(question_text=f"q{i}", options=["a", "b", "c", "d"], correct_answer_index=c, type=topic, level=level)
            for i, c in enumerate(correct)
        ],
    )
