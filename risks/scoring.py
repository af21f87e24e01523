"""
Risk scoring rules.

A risk score is likelihood x impact on 1-5 scales, so it ranges 1-25.
"""

from decimal import Decimal

RATING_MIN = 1
RATING_MAX = 5

HIGH_THRESHOLD = 15
MEDIUM_THRESHOLD = 8

LEVEL_HIGH = 'high'
LEVEL_MEDIUM = 'medium'
LEVEL_LOW = 'low'


def score(likelihood, impact):
    """Return the risk score for a likelihood/impact pair."""
    return likelihood * impact


def level(risk_score):
    """Bucket a risk score into high, medium or low."""
    if risk_score >= HIGH_THRESHOLD:
        return LEVEL_HIGH
    elif risk_score >= MEDIUM_THRESHOLD:
        return LEVEL_MEDIUM
    return LEVEL_LOW


def is_high(risk_score):
    """Return True when the score falls in the high bucket."""
    return risk_score is not None and risk_score >= HIGH_THRESHOLD


def level_bounds(risk_level):
    """
    Return the inclusive (low, high) score bounds for a level.

    Either bound may be None when the level is open-ended. Unknown levels
    return None.
    """
    bounds = {
        LEVEL_HIGH: (HIGH_THRESHOLD, None),
        LEVEL_MEDIUM: (MEDIUM_THRESHOLD, HIGH_THRESHOLD - 1),
        LEVEL_LOW: (None, MEDIUM_THRESHOLD - 1),
    }
    return bounds.get(risk_level)


def optional_score(likelihood, impact):
    """Score a pair where either side may be missing."""
    if likelihood and impact:
        return score(likelihood, impact)
    return None


def improvement(before, after):
    """Absolute score reduction, or None without a before score."""
    if before is None:
        return None
    return Decimal(before) - Decimal(after)


def improvement_pct(before, after):
    """Percentage reduction from before to after, rounded to 2 places."""
    if before is None or before == 0:
        return None
    return round(float(before - after) / float(before) * 100, 2)


def is_valid_rating(value):
    """Return True for an integer rating inside the 1-5 scale."""
    return isinstance(value, int) and not isinstance(value, bool) and RATING_MIN <= value <= RATING_MAX
