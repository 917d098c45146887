"""
Request-level operations.

Every mutating call follows the same shape: load the parent aggregate, check
and mutate the nested child in memory, then save the parent once. A call that
raises before the save leaves the stored document untouched.
"""
import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, ValidationError

import config
from database import ParentStore
from errors import InvalidArgument, InvalidState, NotFound, Unavailable
from generator import QuizGenerator, QuizRequest
from grading import grade_quiz
from levels import points_for_level
from quests import GameplayEvent, apply_event, ensure_quests
from remediation import select_remediation
from rewards import buy_gift, claim_quest, credit_points
from schedules import (
    available, by_time, check_activity_data, check_new_schedule, completed, mark_completed, schedule_stats, upcoming,
)
from schemas import Child, Gift, Parent, Question, Quest, Quiz, Schedule

logger = logging.getLogger(__name__)


def _merged(model: BaseModel, data: dict) -> BaseModel:
    try:
        return type(model).model_validate({**model.model_dump(), **data})
    except ValidationError as exc:
        raise InvalidArgument(str(exc)) from exc


def _replace(items: list, old, new) -> None:
    items[items.index(old)] = new


def _check_answer_index(question: Question) -> None:
    if question.correct_answer_index >= len(question.options):
        raise InvalidArgument(
            f"correct_answer_index {question.correct_answer_index} is outside the {len(question.options)} options"
        )


def _unanswered_quiz(quiz: Quiz, quiz_id: str) -> Quiz:
    if quiz.is_answered:
        raise InvalidState(f"Quiz {quiz_id} already answered, its questions can no longer change")
    return quiz


class KidQuestService:
    def __init__(self, store: ParentStore, generator: Optional[QuizGenerator] = None):
        self.store = store
        self.generator = generator

    # Lookups
    def _parent(self, parent_id: str) -> Parent:
        parent = self.store.load_parent(parent_id)
        if parent is None:
            raise NotFound("Parent not found")
        return parent

    def _child(self, parent_id: str, kid_id: str) -> Tuple[Parent, Child]:
        parent = self._parent(parent_id)
        child = parent.find_child(kid_id)
        if child is None:
            raise NotFound("Child not found")
        return parent, child

    @staticmethod
    def _quiz(child: Child, quiz_id: str) -> Quiz:
        quiz = child.find_quiz(quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")
        return quiz

    @staticmethod
    def _question(quiz: Quiz, question_id: str) -> Question:
        question = next((q for q in quiz.questions if q.id == question_id), None)
        if question is None:
            raise NotFound("Question not found")
        return question

    # Parents
    def create_parent(self, data: dict) -> Parent:
        parent = Parent(**data)
        self.store.insert_parent(parent)
        logger.info("Created parent %s", parent.id)
        return parent

    def list_parents(self) -> List[Parent]:
        return self.store.list_parents()

    def get_parent(self, parent_id: str) -> Parent:
        return self._parent(parent_id)

    def update_parent(self, parent_id: str, data: dict) -> Parent:
        parent = _merged(self._parent(parent_id), data)
        return self.store.save_parent(parent)

    def delete_parent(self, parent_id: str) -> dict:
        if not self.store.delete_parent(parent_id):
            raise NotFound("Parent not found")
        logger.info("Deleted parent %s", parent_id)
        return {"message": "Parent deleted successfully"}

    # Children
    def add_kid(self, parent_id: str, data: dict) -> Parent:
        parent = self._parent(parent_id)
        child = Child(**data)
        parent.children.append(child)
        self.store.save_parent(parent)
        logger.info("Added child %s to parent %s", child.id, parent_id)
        return parent

    def _child_by_id(self, child_id: str) -> Tuple[Parent, Child]:
        found = self.store.load_child(child_id)
        if found is None:
            raise NotFound("Child not found")
        return found

    def get_child(self, child_id: str) -> Child:
        # QR links may carry the whole URL, keep the last path segment
        clean_id = child_id.rstrip("/").split("/")[-1]
        return self._child_by_id(clean_id)[1]

    def update_kid(self, parent_id: str, kid_id: str, data: dict) -> Child:
        parent, child = self._child(parent_id, kid_id)
        updated = _merged(child, data)
        _replace(parent.children, child, updated)
        self.store.save_parent(parent)
        return updated

    def get_progress(self, parent_id: str, kid_id: str) -> dict:
        """Scores and level of a child, with the lifetime score the next level starts at."""
        child = self._child(parent_id, kid_id)[1]
        next_level_at = points_for_level(child.progression_level + 1)
        return {
            "current_score": child.current_score,
            "lifetime_score": child.lifetime_score,
            "progression_level": child.progression_level,
            "level_started_at": points_for_level(child.progression_level),
            "next_level_at": next_level_at,
            "points_to_next_level": max(0, next_level_at - child.lifetime_score),
        }

    def delete_kid(self, parent_id: str, kid_id: str) -> dict:
        parent, child = self._child(parent_id, kid_id)
        parent.children.remove(child)
        self.store.save_parent(parent)
        logger.info("Deleted child %s from parent %s", kid_id, parent_id)
        return {"message": "Child deleted successfully"}

    # Quizzes
    def generate_quiz(self, parent_id: str, kid_id: str, subject: Optional[str] = None,
                      difficulty: Optional[str] = None, nbr_questions: Optional[int] = None,
                      topic: Optional[str] = None) -> Quiz:
        """Generate a quiz from explicit parameters, or a retry quiz when any is missing."""
        parent, child = self._child(parent_id, kid_id)
        if subject and difficulty and nbr_questions:
            request = QuizRequest(subject=subject, difficulty=difficulty, question_count=nbr_questions, topic=topic)
        else:
            remediation = select_remediation(child)
            logger.info("Retry quiz for child %s on %s (%s)", kid_id, remediation.topic, remediation.difficulty)
            request = QuizRequest(
                subject=remediation.topic,
                difficulty=remediation.difficulty,
                question_count=config.RETRY_QUIZ_QUESTIONS,
                samples=remediation.sample_questions,
                is_retry=True,
            )
        if self.generator is None:
            raise Unavailable("Quiz generator is not configured")

        quiz = self.generator.generate(request)
        child.quizzes.append(quiz)
        self.store.save_parent(parent)
        return quiz

    def add_quiz(self, parent_id: str, kid_id: str, data: dict) -> Quiz:
        parent, child = self._child(parent_id, kid_id)
        quiz = Quiz(title=data["title"], type=data["type"])
        for question_data in data.get("questions") or []:
            question = Question(**question_data)
            question.user_answer_index = None
            _check_answer_index(question)
            quiz.questions.append(question)
        child.quizzes.append(quiz)
        self.store.save_parent(parent)
        return quiz

    def list_quizzes(self, parent_id: str, kid_id: str) -> List[Quiz]:
        return self._child(parent_id, kid_id)[1].quizzes

    def get_quiz(self, parent_id: str, kid_id: str, quiz_id: str) -> Quiz:
        return self._quiz(self._child(parent_id, kid_id)[1], quiz_id)

    def update_quiz(self, parent_id: str, kid_id: str, quiz_id: str, data: dict) -> Quiz:
        parent, child = self._child(parent_id, kid_id)
        quiz = self._quiz(child, quiz_id)
        updated = _merged(quiz, data)
        _replace(child.quizzes, quiz, updated)
        self.store.save_parent(parent)
        return updated

    def delete_quiz(self, parent_id: str, kid_id: str, quiz_id: str) -> dict:
        parent, child = self._child(parent_id, kid_id)
        child.quizzes.remove(self._quiz(child, quiz_id))
        self.store.save_parent(parent)
        return {"message": "Quiz deleted successfully"}

    def submit_quiz(self, parent_id: str, kid_id: str, quiz_id: str, answers: List[int]) -> Child:
        parent, child = self._child(parent_id, kid_id)
        grade_quiz(child, self._quiz(child, quiz_id), answers)
        self.store.save_parent(parent)
        return child

    # Questions
    def add_question(self, parent_id: str, kid_id: str, quiz_id: str, data: dict) -> Question:
        parent, child = self._child(parent_id, kid_id)
        quiz = _unanswered_quiz(self._quiz(child, quiz_id), quiz_id)
        question = Question(**data)
        _check_answer_index(question)
        quiz.questions.append(question)
        self.store.save_parent(parent)
        return question

    def update_question(self, parent_id: str, kid_id: str, quiz_id: str, question_id: str, data: dict) -> Question:
        parent, child = self._child(parent_id, kid_id)
        quiz = _unanswered_quiz(self._quiz(child, quiz_id), quiz_id)
        question = self._question(quiz, question_id)
        updated = _merged(question, data)
        _check_answer_index(updated)
        _replace(quiz.questions, question, updated)
        self.store.save_parent(parent)
        return updated

    def delete_question(self, parent_id: str, kid_id: str, quiz_id: str, question_id: str) -> dict:
        parent, child = self._child(parent_id, kid_id)
        quiz = _unanswered_quiz(self._quiz(child, quiz_id), quiz_id)
        quiz.questions.remove(self._question(quiz, question_id))
        self.store.save_parent(parent)
        return {"message": "Question deleted successfully"}

    # Quests
    def get_quests(self, parent_id: str, kid_id: str) -> List[Quest]:
        parent, child = self._child(parent_id, kid_id)
        if ensure_quests(child):
            self.store.save_parent(parent)
        return child.quests

    def claim_quest(self, parent_id: str, kid_id: str, quest_id: str) -> Child:
        parent, child = self._child(parent_id, kid_id)
        claim_quest(child, quest_id)
        self.store.save_parent(parent)
        return child

    def record_game(self, parent_id: str, kid_id: str, points: int) -> Child:
        """Credit a finished game and count it towards the child's quests."""
        if points < 0:
            raise InvalidArgument("points must not be negative")
        parent, child = self._child(parent_id, kid_id)
        credit_points(child, points)
        ensure_quests(child)
        apply_event(child.quests, GameplayEvent(game_completed=True, points_earned=points))
        self.store.save_parent(parent)
        return child

    # Gifts
    def create_gift(self, parent_id: str, kid_id: str, data: dict) -> Gift:
        parent, child = self._child(parent_id, kid_id)
        gift = Gift(**data)
        child.shop_catalog.append(gift)
        self.store.save_parent(parent)
        return gift

    def list_gifts(self, parent_id: str, kid_id: str) -> List[Gift]:
        return self._child(parent_id, kid_id)[1].shop_catalog

    def delete_gift(self, parent_id: str, kid_id: str, gift_id: str) -> dict:
        parent, child = self._child(parent_id, kid_id)
        gift = child.find_gift(gift_id)
        if gift is None:
            raise NotFound("Gift not found")
        child.shop_catalog.remove(gift)
        self.store.save_parent(parent)
        return {"message": "Gift deleted successfully"}

    def buy_gift(self, parent_id: str, kid_id: str, gift_id: str) -> Child:
        parent, child = self._child(parent_id, kid_id)
        buy_gift(child, gift_id)
        self.store.save_parent(parent)
        return child

    # Schedules
    def _schedule(self, schedule_id: str) -> Tuple[Parent, Child, Schedule]:
        found = self.store.load_schedule(schedule_id)
        if found is None:
            raise NotFound(f"Schedule with ID {schedule_id} not found")
        parent, child = found
        return parent, child, child.find_schedule(schedule_id)

    @staticmethod
    def _new_schedule(data: dict) -> Schedule:
        try:
            schedule = Schedule.model_validate(data)
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc
        check_new_schedule(schedule)
        return schedule

    def create_schedule(self, parent_id: str, kid_id: str, data: dict) -> Schedule:
        parent, child = self._child(parent_id, kid_id)
        schedule = self._new_schedule(data)
        child.schedules.append(schedule)
        self.store.save_parent(parent)
        logger.info("Scheduled %s '%s' for child %s at %s", schedule.activity_type, schedule.title, kid_id,
                    schedule.scheduled_time.isoformat())
        return schedule

    def list_schedules(self, parent_id: str, kid_id: str) -> List[Schedule]:
        return by_time(self._child(parent_id, kid_id)[1].schedules)

    def list_parent_schedules(self, parent_id: str) -> List[Schedule]:
        parent = self._parent(parent_id)
        return by_time(s for child in parent.children for s in child.schedules)

    def available_schedules(self, kid_id: str) -> List[Schedule]:
        return available(self._child_by_id(kid_id)[1].schedules)

    def upcoming_schedules(self, kid_id: str) -> List[Schedule]:
        return upcoming(self._child_by_id(kid_id)[1].schedules)

    def completed_schedules(self, kid_id: str) -> List[Schedule]:
        return completed(self._child_by_id(kid_id)[1].schedules)

    def get_schedule_stats(self, kid_id: str) -> dict:
        return schedule_stats(self._child_by_id(kid_id)[1].schedules)

    def get_schedule(self, schedule_id: str) -> Schedule:
        return self._schedule(schedule_id)[2]

    def update_schedule(self, schedule_id: str, data: dict) -> Schedule:
        parent, child, schedule = self._schedule(schedule_id)
        updated = _merged(schedule, data)
        check_activity_data(updated)
        _replace(child.schedules, schedule, updated)
        self.store.save_parent(parent)
        return updated

    def complete_schedule(self, schedule_id: str, score: Optional[int] = None,
                          time_spent: Optional[int] = None) -> Schedule:
        parent, _, schedule = self._schedule(schedule_id)
        mark_completed(schedule, score=score, time_spent=time_spent)
        self.store.save_parent(parent)
        return schedule

    def delete_schedule(self, schedule_id: str) -> dict:
        parent, child, schedule = self._schedule(schedule_id)
        child.schedules.remove(schedule)
        self.store.save_parent(parent)
        return {"message": "Schedule deleted successfully"}

    def sync_schedules(self, parent_id: str, kid_id: str, items: List[dict]) -> List[Schedule]:
        """Replace every schedule of a child with the list sent by the mobile app."""
        parent, child = self._child(parent_id, kid_id)
        replacement = [self._new_schedule(item) for item in items]
        child.schedules = replacement
        self.store.save_parent(parent)
        logger.info("Synced %d schedules for child %s", len(replacement), kid_id)
        return replacement
