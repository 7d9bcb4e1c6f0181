"""Level progression derived from lifetime XP."""

from homequest.core.config import constants


def compute_level(total_xp: int) -> int:
    """Return the largest level whose XP threshold is at most total_xp.

    Levels run from 1 to MAX_LEVEL; negative XP counts as level 1.
    """
    for index in range(len(constants.XP_THRESHOLDS) - 1, -1, -1):
        if total_xp >= constants.XP_THRESHOLDS[index]:
            return min(index + 1, constants.MAX_LEVEL)
    return 1


def xp_for_next_level(level: int) -> int:
    """XP needed to reach the level after `level`; the top threshold once maxed out."""
    if level >= constants.MAX_LEVEL:
        return constants.XP_THRESHOLDS[-1]
    return constants.XP_THRESHOLDS[max(level, 1)]
