import logging
import time
from datetime import datetime
from typing import List, Optional
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from database import MongoParentStore, db
from errors import KidQuestError
from generator import QuizGenerator
from schemas import ActivityType, ScheduledPuzzle, ScheduledQuiz
from service import KidQuestService

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("kidquest")

app = FastAPI(title=config.APP_TITLE, version=config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[KidQuestService] = None


def get_service() -> KidQuestService:
    global _service
    if _service is None:
        _service = KidQuestService(MongoParentStore(), QuizGenerator())
    return _service


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    logger.info("-> %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("<- %s %s %d (%.0fms)", request.method, request.url.path, response.status_code, elapsed)
    return response


@app.exception_handler(KidQuestError)
async def handle_kidquest_error(request: Request, exc: KidQuestError):
    detail = exc.message
    if exc.status_code >= 500:
        logger.error("x %s %s %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
        detail = f"{exc.message}. Please try again later."
    else:
        logger.warning("x %s %s %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": detail, "error": type(exc).__name__})


@app.get("/")
def read_root():
    return {"message": "Kid Quest Backend Running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = db.name
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if config.DATABASE_NAME else "❌ Not Set"
    response["quiz_generator"] = "✅ Set" if config.OPENAI_API_KEY else "❌ Not Set"
    return response


# Parents
class ParentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None


class ParentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_active: Optional[bool] = None


@app.post("/parents", status_code=201)
def create_parent(payload: ParentCreate, service: KidQuestService = Depends(get_service)):
    return service.create_parent(payload.model_dump())


@app.get("/parents")
def list_parents(service: KidQuestService = Depends(get_service)):
    return service.list_parents()


@app.get("/parents/child/{child_id:path}")
def get_child(child_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_child(child_id)


@app.get("/parents/{parent_id}")
def get_parent(parent_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_parent(parent_id)


@app.patch("/parents/{parent_id}")
def update_parent(parent_id: str, payload: ParentUpdate, service: KidQuestService = Depends(get_service)):
    return service.update_parent(parent_id, payload.model_dump(exclude_unset=True))


@app.delete("/parents/{parent_id}")
def delete_parent(parent_id: str, service: KidQuestService = Depends(get_service)):
    return service.delete_parent(parent_id)


# Children
class ChildCreate(BaseModel):
    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=1, le=18)
    level: str = "beginner"
    avatar_emoji: Optional[str] = None


class ChildUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    age: Optional[int] = Field(None, ge=1, le=18)
    level: Optional[str] = None
    avatar_emoji: Optional[str] = None


@app.post("/parents/{parent_id}/kids", status_code=201)
def add_kid(parent_id: str, payload: ChildCreate, service: KidQuestService = Depends(get_service)):
    return service.add_kid(parent_id, payload.model_dump())


@app.patch("/parents/{parent_id}/kids/{kid_id}")
def update_kid(parent_id: str, kid_id: str, payload: ChildUpdate, service: KidQuestService = Depends(get_service)):
    return service.update_kid(parent_id, kid_id, payload.model_dump(exclude_unset=True))


@app.get("/parents/{parent_id}/kids/{kid_id}/progress")
def get_progress(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_progress(parent_id, kid_id)


@app.delete("/parents/{parent_id}/kids/{kid_id}")
def delete_kid(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.delete_kid(parent_id, kid_id)


# Quizzes
class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., ge=0)
    explanation: Optional[str] = None
    image_url: Optional[str] = None
    type: str
    level: str


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(None, min_length=1)
    options: Optional[List[str]] = Field(None, min_length=2)
    correct_answer_index: Optional[int] = Field(None, ge=0)
    explanation: Optional[str] = None
    image_url: Optional[str] = None
    type: Optional[str] = None
    level: Optional[str] = None


class QuizGenerate(BaseModel):
    """Leave subject, difficulty or nbr_questions out to get a retry quiz."""
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    nbr_questions: Optional[int] = Field(None, ge=1, le=20)
    topic: Optional[str] = None


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    type: str
    questions: List[QuestionCreate] = Field(default_factory=list)


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = None


class QuizSubmit(BaseModel):
    answers: List[int]


@app.post("/parents/{parent_id}/kids/{kid_id}/quizzes", status_code=201)
def generate_quiz(parent_id: str, kid_id: str, payload: Optional[QuizGenerate] = None,
                  service: KidQuestService = Depends(get_service)):
    payload = payload or QuizGenerate()
    return service.generate_quiz(parent_id, kid_id, **payload.model_dump())


@app.post("/parents/{parent_id}/kids/{kid_id}/quizzes/manual", status_code=201)
def add_quiz(parent_id: str, kid_id: str, payload: QuizCreate, service: KidQuestService = Depends(get_service)):
    return service.add_quiz(parent_id, kid_id, payload.model_dump())


@app.get("/parents/{parent_id}/kids/{kid_id}/quizzes")
def list_quizzes(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.list_quizzes(parent_id, kid_id)


@app.get("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}")
def get_quiz(parent_id: str, kid_id: str, quiz_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_quiz(parent_id, kid_id, quiz_id)


@app.patch("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}")
def update_quiz(parent_id: str, kid_id: str, quiz_id: str, payload: QuizUpdate,
                service: KidQuestService = Depends(get_service)):
    return service.update_quiz(parent_id, kid_id, quiz_id, payload.model_dump(exclude_unset=True))


@app.delete("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}")
def delete_quiz(parent_id: str, kid_id: str, quiz_id: str, service: KidQuestService = Depends(get_service)):
    return service.delete_quiz(parent_id, kid_id, quiz_id)


@app.post("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}/submit")
def submit_quiz(parent_id: str, kid_id: str, quiz_id: str, payload: QuizSubmit,
                service: KidQuestService = Depends(get_service)):
    return service.submit_quiz(parent_id, kid_id, quiz_id, payload.answers)


# Questions
@app.post("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}/questions", status_code=201)
def add_question(parent_id: str, kid_id: str, quiz_id: str, payload: QuestionCreate,
                 service: KidQuestService = Depends(get_service)):
    return service.add_question(parent_id, kid_id, quiz_id, payload.model_dump())


@app.patch("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}/questions/{question_id}")
def update_question(parent_id: str, kid_id: str, quiz_id: str, question_id: str, payload: QuestionUpdate,
                    service: KidQuestService = Depends(get_service)):
    return service.update_question(parent_id, kid_id, quiz_id, question_id, payload.model_dump(exclude_unset=True))


@app.delete("/parents/{parent_id}/kids/{kid_id}/quizzes/{quiz_id}/questions/{question_id}")
def delete_question(parent_id: str, kid_id: str, quiz_id: str, question_id: str,
                    service: KidQuestService = Depends(get_service)):
    return service.delete_question(parent_id, kid_id, quiz_id, question_id)


# Quests and games
class GameComplete(BaseModel):
    points: int = Field(0, ge=0)


@app.get("/parents/{parent_id}/kids/{kid_id}/quests")
def get_quests(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_quests(parent_id, kid_id)


@app.post("/parents/{parent_id}/kids/{kid_id}/quests/{quest_id}/claim")
def claim_quest(parent_id: str, kid_id: str, quest_id: str, service: KidQuestService = Depends(get_service)):
    return service.claim_quest(parent_id, kid_id, quest_id)


@app.post("/parents/{parent_id}/kids/{kid_id}/games/complete")
def complete_game(parent_id: str, kid_id: str, payload: GameComplete, service: KidQuestService = Depends(get_service)):
    return service.record_game(parent_id, kid_id, payload.points)


# Gift shop
class GiftCreate(BaseModel):
    title: str = Field(..., min_length=1)
    cost: int = Field(..., ge=0)
    image_url: Optional[str] = None


@app.post("/parents/{parent_id}/kids/{kid_id}/gifts", status_code=201)
def create_gift(parent_id: str, kid_id: str, payload: GiftCreate, service: KidQuestService = Depends(get_service)):
    return service.create_gift(parent_id, kid_id, payload.model_dump())


@app.get("/parents/{parent_id}/kids/{kid_id}/gifts")
def list_gifts(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.list_gifts(parent_id, kid_id)


@app.delete("/parents/{parent_id}/kids/{kid_id}/gifts/{gift_id}")
def delete_gift(parent_id: str, kid_id: str, gift_id: str, service: KidQuestService = Depends(get_service)):
    return service.delete_gift(parent_id, kid_id, gift_id)


@app.post("/parents/{parent_id}/kids/{kid_id}/gifts/{gift_id}/buy")
def buy_gift(parent_id: str, kid_id: str, gift_id: str, service: KidQuestService = Depends(get_service)):
    return service.buy_gift(parent_id, kid_id, gift_id)


# Schedules
class ScheduleFields(BaseModel):
    activity_type: ActivityType
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    scheduled_time: datetime
    duration: int = Field(..., ge=60, description="Seconds, at least one minute")
    quiz_data: Optional[ScheduledQuiz] = None
    game_type: Optional[str] = None
    puzzle_data: Optional[ScheduledPuzzle] = None


class ScheduleCreate(ScheduleFields):
    parent_id: str
    kid_id: str


class ScheduleUpdate(BaseModel):
    activity_type: Optional[ActivityType] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    scheduled_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=60)
    quiz_data: Optional[ScheduledQuiz] = None
    game_type: Optional[str] = None
    puzzle_data: Optional[ScheduledPuzzle] = None
    is_completed: Optional[bool] = None
    completed_at: Optional[datetime] = None
    score: Optional[int] = None
    time_spent: Optional[int] = Field(None, ge=0)


class ScheduleComplete(BaseModel):
    score: Optional[int] = None
    time_spent: Optional[int] = Field(None, ge=0)


class ScheduleSync(BaseModel):
    parent_id: str
    kid_id: str
    schedules: List[ScheduleFields] = Field(default_factory=list)


@app.post("/schedules", status_code=201)
def create_schedule(payload: ScheduleCreate, service: KidQuestService = Depends(get_service)):
    data = payload.model_dump(exclude={"parent_id", "kid_id"})
    return service.create_schedule(payload.parent_id, payload.kid_id, data)


@app.post("/schedules/sync")
def sync_schedules(payload: ScheduleSync, service: KidQuestService = Depends(get_service)):
    return service.sync_schedules(payload.parent_id, payload.kid_id, [s.model_dump() for s in payload.schedules])


@app.get("/schedules/parent/{parent_id}/kid/{kid_id}")
def list_kid_schedules(parent_id: str, kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.list_schedules(parent_id, kid_id)


@app.get("/schedules/parent/{parent_id}")
def list_parent_schedules(parent_id: str, service: KidQuestService = Depends(get_service)):
    return service.list_parent_schedules(parent_id)


@app.get("/schedules/kid/{kid_id}/available")
def available_schedules(kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.available_schedules(kid_id)


@app.get("/schedules/kid/{kid_id}/upcoming")
def upcoming_schedules(kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.upcoming_schedules(kid_id)


@app.get("/schedules/kid/{kid_id}/completed")
def completed_schedules(kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.completed_schedules(kid_id)


@app.get("/schedules/kid/{kid_id}/stats")
def schedule_stats(kid_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_schedule_stats(kid_id)


@app.get("/schedules/{schedule_id}")
def get_schedule(schedule_id: str, service: KidQuestService = Depends(get_service)):
    return service.get_schedule(schedule_id)


@app.put("/schedules/{schedule_id}")
def update_schedule(schedule_id: str, payload: ScheduleUpdate, service: KidQuestService = Depends(get_service)):
    return service.update_schedule(schedule_id, payload.model_dump(exclude_unset=True))


@app.put("/schedules/{schedule_id}/complete")
def complete_schedule(schedule_id: str, payload: Optional[ScheduleComplete] = None,
                      service: KidQuestService = Depends(get_service)):
    payload = payload or ScheduleComplete()
    return service.complete_schedule(schedule_id, payload.score, payload.time_spent)


@app.delete("/schedules/{schedule_id}")
def delete_schedule(schedule_id: str, service: KidQuestService = Depends(get_service)):
    return service.delete_schedule(schedule_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
