"""
Quest catalog and progress tracking.

Each archetype has a fixed difficulty table (see ``config.QUEST_TABLES``).
A quest instance sits on one tier of that table; claiming it hands out the
next tier, and the last tier repeats once the table runs out.
"""
import logging
from dataclasses import dataclass
from typing import List

from config import QUEST_TABLES, SEEDED_QUESTS
from schemas import Child, Quest

logger = logging.getLogger(__name__)

_TITLES = {
    "COMPLETE_QUIZZES": ("Quiz Explorer", "Complete {target} quizzes"),
    "COMPLETE_GAMES": ("Game Champion", "Complete {target} games"),
    "EARN_POINTS": ("Point Collector", "Earn {target} points"),
    "PERFECT_SCORE": ("Perfectionist", "Get a perfect score {target} times"),
}


@dataclass(frozen=True)
class GameplayEvent:
    quiz_completed: bool = False
    game_completed: bool = False
    points_earned: int = 0
    is_perfect_score: bool = False


def build_quest(archetype: str, tier: int) -> Quest:
    targets, rewards = QUEST_TABLES[archetype]
    index = min(tier - 1, len(targets) - 1)
    title, description = _TITLES[archetype]
    target = targets[index]
    return Quest(
        type=archetype,
        title=title,
        description=description.format(target=target),
        target=target,
        reward=rewards[index],
        progression_level=tier,
    )


def initial_quest_set() -> List[Quest]:
    return [build_quest(archetype, 1) for archetype in SEEDED_QUESTS]


def next_quest(archetype: str, previous_tier: int) -> Quest:
    return build_quest(archetype, previous_tier + 1)


def ensure_quests(child: Child) -> bool:
    """Seed the starter quests for a child who has none yet."""
    if child.quests:
        return False
    child.quests.extend(initial_quest_set())
    logger.info("Seeded %d quests for child %s", len(child.quests), child.id)
    return True


def _increment(quest: Quest, event: GameplayEvent) -> int:
    if quest.type == "COMPLETE_QUIZZES" and event.quiz_completed:
        return 1
    if quest.type == "COMPLETE_GAMES" and event.game_completed:
        return 1
    if quest.type == "EARN_POINTS" and event.points_earned > 0:
        return event.points_earned
    if quest.type == "PERFECT_SCORE" and event.is_perfect_score:
        return 1
    return 0


def apply_event(quests: List[Quest], event: GameplayEvent) -> List[Quest]:
    """Advance every ACTIVE quest the event counts towards.

    One event may move several archetypes at once (a perfect quiz counts as a
    completed quiz, as earned points and as a perfect score). Returns the
    quests that reached their target during this call.
    """
    completed = []
    for quest in quests:
        if quest.status != "ACTIVE":
            continue
        step = _increment(quest, event)
        if step <= 0:
            continue
        quest.progress += step
        if quest.progress >= quest.target:
            quest.status = "COMPLETED"
            completed.append(quest)
            logger.info("Quest %s (%s tier %d) completed", quest.id, quest.type, quest.progression_level)
    return completed
