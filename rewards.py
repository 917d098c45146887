"""
Spending and receiving points: quest reward claims and gift purchases.

Both operations check everything first and mutate afterwards, so a refused
request leaves the child exactly as it was.
"""
import logging

from errors import InvalidState, NotFound
from levels import recalculate_level
from quests import next_quest
from schemas import Child, InventoryItem

logger = logging.getLogger(__name__)


def credit_points(child: Child, points: int) -> None:
    child.current_score += points
    child.lifetime_score += points
    recalculate_level(child)


def claim_quest(child: Child, quest_id: str) -> Child:
    quest = child.find_quest(quest_id)
    if quest is None:
        raise NotFound("Quest not found")
    if quest.status == "CLAIMED":
        raise InvalidState("Quest reward already claimed")
    if quest.status != "COMPLETED":
        raise InvalidState("Quest not completed")

    credit_points(child, quest.reward)
    quest.status = "CLAIMED"
    successor = next_quest(quest.type, quest.progression_level)
    child.quests.append(successor)
    logger.info(
        "Child %s claimed %d points from quest %s, next %s tier %d",
        child.id, quest.reward, quest.id, successor.type, successor.progression_level,
    )
    return child


def buy_gift(child: Child, gift_id: str) -> Child:
    gift = child.find_gift(gift_id)
    if gift is None:
        raise NotFound("Gift not found")
    if child.current_score < gift.cost:
        raise InvalidState(f"Not enough points: {gift.cost} needed, {child.current_score} available")

    # lifetime score and level are untouched by spending
    child.current_score -= gift.cost
    child.inventory.append(InventoryItem(gift_id=gift.id, title=gift.title, cost=gift.cost))
    logger.info("Child %s bought gift %s for %d points", child.id, gift.id, gift.cost)
    return child
