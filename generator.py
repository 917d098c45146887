"""
AI quiz generation.

The generator turns a QuizRequest into a validated Quiz. Transient
upstream failures are retried by a RetryPolicy; anything the model returns
that does not parse into a quiz raises GenerationFailed. Nothing here touches
child state.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

import config
from errors import GenerationFailed, Unavailable
from schemas import Question, Quiz

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_transient(exc: Exception) -> bool:
    return isinstance(exc, TRANSIENT_ERRORS)


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    retryable: Callable[[Exception], bool] = is_transient
    sleep: Callable[[float], None] = time.sleep

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))

    def run(self, call: Callable[[], str]) -> str:
        attempt = 1
        while True:
            try:
                return call()
            except Exception as exc:
                if not self.retryable(exc):
                    raise
                if attempt >= self.max_attempts:
                    raise Unavailable(f"Quiz generator unavailable after {attempt} attempts") from exc
                wait = self.delay(attempt)
                logger.warning("Generation attempt %d failed (%s), retrying in %.1fs", attempt, exc, wait)
                self.sleep(wait)
                attempt += 1


@dataclass
class QuizRequest:
    subject: str
    difficulty: str
    question_count: int
    topic: Optional[str] = None
    samples: List[Question] = field(default_factory=list)
    is_retry: bool = False


# Shape expected back from the model
class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_text: str = Field(..., alias="questionText", min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., alias="correctAnswerIndex", ge=0)
    explanation: Optional[str] = None
    type: Optional[str] = None
    level: Optional[str] = None

    @model_validator(mode="after")
    def check_answer_in_options(self):
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correctAnswerIndex is outside the options list")
        return self


class GeneratedQuiz(BaseModel):
    title: str = Field(..., min_length=1)
    questions: List[GeneratedQuestion] = Field(..., min_length=1)

    def to_quiz(self, request: QuizRequest) -> Quiz:
        topic = request.topic or request.subject
        return Quiz(
            title=self.title,
            type=request.subject,
            is_retry=request.is_retry,
            questions=[
                Question(
                    question_text=q.question_text,
                    options=q.options,
                    correct_answer_index=q.correct_answer_index,
                    explanation=q.explanation,
                    type=q.type or topic,
                    level=q.level or request.difficulty,
                )
                for q in self.questions
            ],
        )


def build_prompt(request: QuizRequest) -> str:
    lines = [
        f"Generate a quiz for a child with {request.question_count} multiple-choice questions "
        f"about {request.subject} at {request.difficulty} difficulty.",
    ]
    if request.topic:
        lines.append(f"The topic is {request.topic}.")
    if request.samples:
        lines.append("The child previously answered these questions incorrectly; "
                     "write new questions practising the same skills:")
        for sample in request.samples:
            line = f"- {sample.question_text}"
            if sample.correct_answer_index < len(sample.options):
                line += f" (correct answer: {sample.options[sample.correct_answer_index]})"
            lines.append(line)
    lines.append(
        'Respond with JSON only: {"title": str, "questions": [{"questionText": str, '
        '"options": [str], "correctAnswerIndex": int, "explanation": str, '
        f'"type": "{request.topic or request.subject}", "level": "{request.difficulty}"}}]}}'
    )
    return "\n".join(lines)


def parse_quiz(text: Optional[str]) -> GeneratedQuiz:
    if not text:
        raise GenerationFailed("Quiz generator returned an empty response")
    body = text.strip()
    if body.startswith("```"):
        body = body.strip("`")
        if body.startswith("json"):
            body = body[len("json"):]
    try:
        return GeneratedQuiz.model_validate(json.loads(body))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise GenerationFailed(f"Quiz generator returned an unusable quiz: {exc}") from exc


class QuizGenerator:
    def __init__(self, client=None, model: str = config.OPENAI_MODEL, retry_policy: Optional[RetryPolicy] = None):
        self._client = client
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.GENERATION_MAX_ATTEMPTS,
            backoff_seconds=config.GENERATION_BACKOFF_SECONDS,
        )

    @property
    def client(self):
        if self._client is None:
            if not config.OPENAI_API_KEY:
                raise Unavailable("Quiz generator is not configured (OPENAI_API_KEY missing)")
            # retries are handled by our own policy
            self._client = OpenAI(api_key=config.OPENAI_API_KEY, max_retries=0)
        return self._client

    def _complete(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "You write short, friendly quizzes for children."},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content

    def generate(self, request: QuizRequest) -> Quiz:
        prompt = build_prompt(request)
        try:
            text = self.retry_policy.run(lambda: self._complete(prompt))
        except openai.OpenAIError as exc:
            raise GenerationFailed(f"Quiz generator rejected the request: {exc}") from exc
        quiz = parse_quiz(text).to_quiz(request)
        logger.info("Generated quiz '%s' with %d questions", quiz.title, len(quiz.questions))
        return quiz
