"""
Database Schemas for the Kid Quest learning app (MongoDB)

A Parent is the only top-level document (collection "parent"). Children,
their quizzes, quests, gift shop and scheduled activities are embedded inside
it and are always loaded, mutated and saved together with their parent.
"""
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from bson import ObjectId

QuestType = Literal["COMPLETE_QUIZZES", "COMPLETE_GAMES", "EARN_POINTS", "PERFECT_SCORE"]
QuestStatus = Literal["ACTIVE", "COMPLETED", "CLAIMED"]
ActivityType = Literal["quiz", "game", "puzzle"]


def new_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Quiz content
class Question(BaseModel):
    id: str = Field(default_factory=new_id)
    question_text: str
    options: List[str] = Field(default_factory=list)
    correct_answer_index: int = Field(..., ge=0)
    user_answer_index: Optional[int] = Field(None, description="Recorded once, on submission")
    explanation: Optional[str] = None
    image_url: Optional[str] = None
    type: str = Field(..., description="Topic tag, e.g. 'math'")
    level: str = Field(..., description="Difficulty tag, e.g. 'beginner'")

    @property
    def is_incorrect(self) -> bool:
        return self.user_answer_index is not None and self.user_answer_index != self.correct_answer_index


class Quiz(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    type: str = Field(..., description="Subject of the quiz")
    questions: List[Question] = Field(default_factory=list)
    is_answered: bool = False
    score: int = Field(0, ge=0, le=100)
    is_retry: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    answered_at: Optional[datetime] = None


# Progression
class Quest(BaseModel):
    id: str = Field(default_factory=new_id)
    type: QuestType
    title: Optional[str] = None
    description: Optional[str] = None
    target: int = Field(..., ge=1)
    progress: int = Field(0, ge=0)
    reward: int = Field(..., ge=0)
    status: QuestStatus = "ACTIVE"
    progression_level: int = Field(1, ge=1, description="Tier within the archetype's difficulty table")


# Rewards shop
class Gift(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    cost: int = Field(..., ge=0, description="Price in points")
    image_url: Optional[str] = None


class InventoryItem(BaseModel):
    gift_id: str
    title: str
    cost: int
    purchased_at: datetime = Field(default_factory=utcnow)


# Scheduled activities
class ScheduledQuiz(BaseModel):
    id: str
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    difficulty: str = Field(..., min_length=1)
    questions: List[dict] = Field(default_factory=list)


class ScheduledPuzzle(BaseModel):
    id: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    is_local: bool


class Schedule(BaseModel):
    id: str = Field(default_factory=new_id)
    activity_type: ActivityType
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    scheduled_time: datetime
    duration: int = Field(..., ge=60, description="Length in seconds")
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    quiz_data: Optional[ScheduledQuiz] = None
    game_type: Optional[str] = Field(None, description="e.g. 'memoryMatch', 'colorMatch'")
    puzzle_data: Optional[ScheduledPuzzle] = None
    score: Optional[int] = None
    time_spent: Optional[int] = Field(None, ge=0, description="Seconds")
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("scheduled_time", "completed_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Mongo hands back naive UTC datetimes
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# Core profiles
class Child(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., description="Child's display name")
    age: int = Field(..., ge=1, le=18, description="Age in years")
    level: str = Field("beginner", description="Learning level label")
    avatar_emoji: Optional[str] = None
    current_score: int = Field(0, ge=0, description="Spendable points")
    lifetime_score: int = Field(0, ge=0, description="Points ever earned")
    progression_level: int = Field(1, ge=1)
    quests: List[Quest] = Field(default_factory=list)
    quizzes: List[Quiz] = Field(default_factory=list)
    inventory: List[InventoryItem] = Field(default_factory=list)
    shop_catalog: List[Gift] = Field(default_factory=list)
    schedules: List[Schedule] = Field(default_factory=list)

    def find_quiz(self, quiz_id: str) -> Optional[Quiz]:
        return next((q for q in self.quizzes if q.id == quiz_id), None)

    def find_quest(self, quest_id: str) -> Optional[Quest]:
        return next((q for q in self.quests if q.id == quest_id), None)

    def find_gift(self, gift_id: str) -> Optional[Gift]:
        return next((g for g in self.shop_catalog if g.id == gift_id), None)

    def find_schedule(self, schedule_id: str) -> Optional[Schedule]:
        return next((s for s in self.schedules if s.id == schedule_id), None)


class Parent(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_active: bool = True
    children: List[Child] = Field(default_factory=list)
    version: int = Field(0, ge=0, description="Bumped on every save")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_child(self, child_id: str) -> Optional[Child]:
        return next((c for c in self.children if c.id == child_id), None)
