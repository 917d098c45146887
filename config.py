import os
from types import MappingProxyType

from dotenv import load_dotenv

load_dotenv()

APP_TITLE = "Kid Quest API"
APP_VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
GENERATION_MAX_ATTEMPTS = int(os.getenv("GENERATION_MAX_ATTEMPTS", 3))
GENERATION_BACKOFF_SECONDS = float(os.getenv("GENERATION_BACKOFF_SECONDS", 1.0))

# Retry quizzes are built from past mistakes
RETRY_QUIZ_QUESTIONS = int(os.getenv("RETRY_QUIZ_QUESTIONS", 5))
REMEDIATION_SAMPLE_SIZE = 5

# Quest archetype -> (targets per tier, rewards per tier)
QUEST_TABLES = MappingProxyType({
    "COMPLETE_QUIZZES": ((5, 10, 15, 20), (100, 200, 300, 400)),
    "COMPLETE_GAMES": ((3, 5, 10, 15), (150, 250, 350, 450)),
    "EARN_POINTS": ((200, 500, 1000, 1500), (150, 300, 500, 700)),
    "PERFECT_SCORE": ((1, 3, 5, 10), (200, 400, 600, 800)),
})

# COMPLETE_GAMES is tracked but not handed out to new children
SEEDED_QUESTS = ("COMPLETE_QUIZZES", "EARN_POINTS", "PERFECT_SCORE")
