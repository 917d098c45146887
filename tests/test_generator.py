import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from errors import GenerationFailed, Unavailable
from generator import QuizGenerator, QuizRequest, RetryPolicy, build_prompt, parse_quiz
from schemas import Question

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

QUIZ_BODY = {
    "title": "Adding up",
    "questions": [
        {"questionText": "1 + 1?", "options": ["1", "2", "3"], "correctAnswerIndex": 1, "explanation": "one and one"},
        {"questionText": "2 + 2?", "options": ["4", "5"], "correctAnswerIndex": 0, "type": "addition", "level": "easy"},
    ],
}


class ScriptedCompletions:
    """Plays back a list of outcomes: strings are returned, exceptions raised."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def scripted_generator(*outcomes, max_attempts=3):
    completions = ScriptedCompletions(outcomes)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    sleeps = []
    policy = RetryPolicy(max_attempts=max_attempts, backoff_seconds=0.5, sleep=sleeps.append)
    return QuizGenerator(client=client, model="test-model", retry_policy=policy), completions, sleeps


def math_request(**kwargs):
    return QuizRequest(subject="math", difficulty="beginner", question_count=2, **kwargs)


def test_generate_builds_a_stored_quiz():
    generator, completions, sleeps = scripted_generator(json.dumps(QUIZ_BODY))

    quiz = generator.generate(math_request())

    assert quiz.title == "Adding up"
    assert quiz.type == "math"
    assert not quiz.is_answered
    assert [q.correct_answer_index for q in quiz.questions] == [1, 0]
    assert [(q.type, q.level) for q in quiz.questions] == [("math", "beginner"), ("addition", "easy")]
    assert all(q.user_answer_index is None for q in quiz.questions)
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert sleeps == []


def test_transient_errors_are_retried_with_backoff():
    generator, completions, sleeps = scripted_generator(
        openai.APIConnectionError(request=REQUEST),
        openai.APITimeoutError(request=REQUEST),
        json.dumps(QUIZ_BODY),
    )
    quiz = generator.generate(math_request())
    assert len(quiz.questions) == 2
    assert len(completions.calls) == 3
    assert sleeps == [0.5, 1.0]


def test_exhausted_retries_surface_as_unavailable():
    generator, completions, _ = scripted_generator(
        *[openai.APIConnectionError(request=REQUEST)] * 2, max_attempts=2,
    )
    with pytest.raises(Unavailable):
        generator.generate(math_request())
    assert len(completions.calls) == 2


def test_rejected_request_is_not_retried():
    error = openai.BadRequestError("bad", response=httpx.Response(400, request=REQUEST), body=None)
    generator, completions, _ = scripted_generator(error)
    with pytest.raises(GenerationFailed):
        generator.generate(math_request())
    assert len(completions.calls) == 1


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not json at all",
        json.dumps({"title": "Empty", "questions": []}),
        json.dumps({"title": "Bad", "questions": [{"questionText": "?", "options": ["a", "b"], "correctAnswerIndex": 5}]}),
        json.dumps({"questions": QUIZ_BODY["questions"]}),
    ],
)
def test_unusable_output_raises_generation_failed(text):
    generator, _, _ = scripted_generator(text)
    with pytest.raises(GenerationFailed):
        generator.generate(math_request())


def test_parse_quiz_accepts_fenced_json():
    text = "```json\n" + json.dumps(QUIZ_BODY) + "\n```"
    assert parse_quiz(text).title == "Adding up"


def test_missing_api_key_means_unavailable(monkeypatch):
    monkeypatch.setattr("config.OPENAI_API_KEY", None)
    with pytest.raises(Unavailable):
        QuizGenerator(retry_policy=RetryPolicy(max_attempts=1)).generate(math_request())


def test_retry_prompt_includes_past_mistakes():
    sample = Question(question_text="3 + 4?", options=["6", "7"], correct_answer_index=1, type="math", level="beginner")
    prompt = build_prompt(math_request(samples=[sample], is_retry=True, topic="addition"))
    assert "3 + 4? (correct answer: 7)" in prompt
    assert "The topic is addition." in prompt
    assert "2 multiple-choice questions" in prompt
