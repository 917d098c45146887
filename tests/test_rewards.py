import pytest

from errors import InvalidState, NotFound
from quests import GameplayEvent, apply_event, build_quest, initial_quest_set
from rewards import buy_gift, claim_quest, credit_points
from schemas import Child, Gift


def completed_child(**fields) -> Child:
    child = Child(name="Alice", age=8, quests=initial_quest_set(), **fields)
    apply_event(child.quests, GameplayEvent(is_perfect_score=True))
    return child


def perfect_quest(child):
    return next(q for q in child.quests if q.type == "PERFECT_SCORE")


def test_claim_credits_reward_and_appends_next_tier():
    child = completed_child(current_score=100, lifetime_score=100, progression_level=2)
    quest = perfect_quest(child)

    result = claim_quest(child, quest.id)

    assert result is child
    assert child.current_score == 300
    assert child.lifetime_score == 300
    assert child.progression_level == 2
    assert quest.status == "CLAIMED"
    assert len(child.quests) == 4
    successor = child.quests[-1]
    assert (successor.type, successor.progression_level) == ("PERFECT_SCORE", 2)
    assert (successor.target, successor.reward, successor.status) == (3, 400, "ACTIVE")


def test_claim_can_level_up():
    child = completed_child(current_score=350, lifetime_score=350, progression_level=2)
    claim_quest(child, perfect_quest(child).id)
    assert child.lifetime_score == 550
    assert child.progression_level == 3


@pytest.mark.parametrize(("status", "message"), [("ACTIVE", "not completed"), ("CLAIMED", "already claimed")])
def test_claim_refuses_wrong_state_without_side_effects(status, message):
    child = Child(name="Alice", age=8, quests=[build_quest("COMPLETE_QUIZZES", 1)], current_score=40, lifetime_score=40)
    child.quests[0].status = status
    before = child.model_dump()

    with pytest.raises(InvalidState, match=message):
        claim_quest(child, child.quests[0].id)

    assert child.model_dump() == before


def test_claim_unknown_quest():
    with pytest.raises(NotFound):
        claim_quest(Child(name="Alice", age=8), "missing")


def test_tier_table_plateaus_after_repeated_claims():
    child = Child(name="Alice", age=8, quests=[build_quest("PERFECT_SCORE", 1)])
    for _ in range(6):
        quest = child.quests[-1]
        quest.progress = quest.target
        quest.status = "COMPLETED"
        claim_quest(child, quest.id)
    last = child.quests[-1]
    assert last.progression_level == 7
    assert (last.target, last.reward) == (10, 800)
    assert [q.progression_level for q in child.quests] == list(range(1, 8))


def test_credit_points_keeps_level_in_sync():
    child = Child(name="Alice", age=8)
    credit_points(child, 900)
    assert (child.current_score, child.lifetime_score, child.progression_level) == (900, 900, 4)


def test_buy_gift_spends_current_score_only():
    gift = Gift(title="Lego set", cost=50)
    child = Child(name="Alice", age=8, current_score=120, lifetime_score=420, progression_level=3, shop_catalog=[gift])

    buy_gift(child, gift.id)

    assert child.current_score == 70
    assert child.lifetime_score == 420
    assert child.progression_level == 3
    assert [(i.gift_id, i.title, i.cost) for i in child.inventory] == [(gift.id, "Lego set", 50)]


def test_buy_gift_needs_enough_points():
    gift = Gift(title="Bike", cost=500)
    child = Child(name="Alice", age=8, current_score=499, lifetime_score=499, shop_catalog=[gift])
    with pytest.raises(InvalidState, match="Not enough points"):
        buy_gift(child, gift.id)
    assert child.current_score == 499
    assert child.inventory == []


def test_buy_unknown_gift():
    with pytest.raises(NotFound):
        buy_gift(Child(name="Alice", age=8), "nope")
