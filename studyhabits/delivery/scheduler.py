"""
SM-2 Spaced Repetition Scheduler.

Implements a SuperMemo-2 style interval/ease scheme with four answer
buttons instead of the classic 0-5 grade scale:

    outcome | repetitions | interval                                  | ease
    --------+-------------+-------------------------------------------+-------------------
    fail    | reset to 0  | 1                                         | max(1.3, ease-0.2)
    hard    | +1          | reps==0 -> 1, else ceil(interval*1.2)     | max(1.3, ease-0.15)
    good    | +1          | reps==0 -> 1, reps==1 -> 6,               | unchanged
            |             | else ceil(interval*ease)                  |
    easy    | +1          | reps==0 -> 4, reps==1 -> 7,               | ease+0.15
            |             | else ceil(interval*ease*1.3)              |

"repetitions" is the card's consecutive_successes before the review.
Intervals are capped at max_interval_days (365).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from studyhabits.core.clock import utc_now

from .deck import DEFAULT_EASE, MAX_INTERVAL_DAYS, MINIMUM_EASE, Card, ReviewOutcome

# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = DEFAULT_EASE
    minimum_easiness: float = MINIMUM_EASE
    first_interval: int = 1  # Days after the first successful review
    second_interval: int = 6  # Days after the second "good"
    easy_first_interval: int = 4
    easy_second_interval: int = 7
    hard_multiplier: float = 1.2
    easy_bonus: float = 1.3
    fail_penalty: float = 0.2
    hard_penalty: float = 0.15
    easy_reward: float = 0.15
    max_interval_days: int = MAX_INTERVAL_DAYS


class SM2Scheduler:
    """
    Computes a card's next review parameters from a review outcome.

    Pure: review() never mutates its input and has no failure modes.
    """

    def __init__(self, config: SM2Config | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SM2Config()

    def review(
        self,
        card: Card,
        outcome: ReviewOutcome | str,
        now: datetime | None = None,
    ) -> Card:
        """
        Calculate the card's next schedule.

        Args:
            card: Card as it was before the review
            outcome: fail / hard / good / easy
            now: Review time (defaults to the current UTC time)

        Returns:
            New Card with interval, ease, repetitions and due date updated
        """
        outcome = ReviewOutcome.parse(outcome)
        now = now or utc_now()
        cfg = self.config

        interval = card.interval_days or 0
        ease = max(cfg.minimum_easiness, card.ease_factor or cfg.initial_easiness)
        repetitions = card.consecutive_successes or 0

        if outcome is ReviewOutcome.FAIL:
            repetitions = 0
            interval = cfg.first_interval
            ease = max(cfg.minimum_easiness, ease - cfg.fail_penalty)

        elif outcome is ReviewOutcome.HARD:
            if repetitions == 0:
                interval = cfg.first_interval
            else:
                interval = math.ceil(interval * cfg.hard_multiplier)
            ease = max(cfg.minimum_easiness, ease - cfg.hard_penalty)
            repetitions += 1

        elif outcome is ReviewOutcome.GOOD:
            if repetitions == 0:
                interval = cfg.first_interval
            elif repetitions == 1:
                interval = cfg.second_interval
            else:
                interval = math.ceil(interval * ease)
            repetitions += 1

        else:
            if repetitions == 0:
                interval = cfg.easy_first_interval
            elif repetitions == 1:
                interval = cfg.easy_second_interval
            else:
                interval = math.ceil(interval * ease * cfg.easy_bonus)
            ease += cfg.easy_reward
            repetitions += 1

        interval = min(interval, cfg.max_interval_days)

        return replace(
            card,
            interval_days=interval,
            ease_factor=ease,
            consecutive_successes=repetitions,
            due_at=now + timedelta(days=interval),
            last_reviewed_at=now,
            updated_at=now,
        )

    def preview(self, card: Card, now: datetime | None = None) -> dict[ReviewOutcome, int]:
        """
        Interval each answer button would produce.

        Returns:
            Mapping of outcome to interval in days
        """
        return {outcome: self.review(card, outcome, now).interval_days for outcome in ReviewOutcome}
