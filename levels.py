"""
Child progression level derived from lifetime points.

Level n starts at 100 * (n - 1) ** 2 points: 0, 100, 400, 900, ...
"""
from math import isqrt


def level_for_score(lifetime_score: int) -> int:
    return isqrt(max(0, int(lifetime_score)) // 100) + 1


def points_for_level(level: int) -> int:
    return 100 * (max(1, level) - 1) ** 2


def recalculate_level(child) -> int:
    child.progression_level = level_for_score(child.lifetime_score)
    return child.progression_level
