from typing import Optional

# (min, max, level) bands of likelihood x consequence on a 5x5 matrix
RISK_BANDS = [
    (15, 25, "extreme"),
    (8, 12, "high"),
    (4, 6, "moderate"),
    (1, 3, "low"),
]

RISK_ACTIONS = {
    "extreme": "Activity or industry should not proceed in current form.",
    "high": "Activity or industry should be modified to include remedial planning and action and be subject to detailed OSH assessment.",
    "moderate": "Activity or industry can operate subject to management and/or modification.",
    "low": "No immediate action required, unless escalation of risk is possible.",
}


def risk_score(likelihood: int, consequence: int) -> int:
    if not (1 <= likelihood <= 5 and 1 <= consequence <= 5):
        raise ValueError("likelihood and consequence must be between 1 and 5")
    return likelihood * consequence


def risk_level(score: int) -> Optional[str]:
    # Products of two values in 1..5 never land between bands
    for low, high, level in RISK_BANDS:
        if low <= score <= high:
            return level
    return None
