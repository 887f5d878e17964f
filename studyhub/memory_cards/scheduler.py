"""
Spaced repetition review policies.

A policy turns a review outcome and the card's current scheduling state into
the card's next state:

    policy.compute_next_review(outcome, state, tuning) -> new state

The bookkeeping every policy shares (outcome counters, ``last_reviewed``,
``next_review_due``) lives in ``ReviewPolicy``; concrete policies only decide
the next interval, ease factor and streak. This keeps
``correct_count + incorrect_count == repetition_count`` and
``next_review_due >= last_reviewed`` true for any policy.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Dict, Optional, Tuple, Type

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
AGAIN_INTERVAL_DAYS = 10 / (24 * 60)  # 10 minutes


class ReviewRating(IntEnum):
    """Self-assessed difficulty of a review, 1 being the easiest."""
    EASY = 1
    GOOD = 2
    HARD = 3
    AGAIN = 4


@dataclass(frozen=True)
class ReviewOutcome:
    rating: ReviewRating
    is_correct: bool
    reviewed_at: datetime


@dataclass(frozen=True)
class DeckTuning:
    interval_modifier: float = 1.0
    easy_bonus: float = 1.3


@dataclass(frozen=True)
class ScheduleState:
    """Scheduling fields of a card, detached from the ORM."""
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: float = 1.0
    streak: int = 0
    repetition_count: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    last_reviewed: Optional[datetime] = None
    next_review_due: Optional[datetime] = None

    @classmethod
    def from_card(cls, card) -> "ScheduleState":
        return cls(
            ease_factor=card.ease_factor if card.ease_factor is not None else DEFAULT_EASE_FACTOR,
            interval_days=card.interval_days if card.interval_days is not None else 1.0,
            streak=card.streak or 0,
            repetition_count=card.repetition_count or 0,
            correct_count=card.correct_count or 0,
            incorrect_count=card.incorrect_count or 0,
            last_reviewed=card.last_reviewed,
            next_review_due=card.next_review_due,
        )

    def apply_to(self, card) -> None:
        card.ease_factor = self.ease_factor
        card.interval_days = self.interval_days
        card.streak = self.streak
        card.repetition_count = self.repetition_count
        card.correct_count = self.correct_count
        card.incorrect_count = self.incorrect_count
        card.last_reviewed = self.last_reviewed
        card.next_review_due = self.next_review_due


class ReviewPolicy(ABC):
    name: str = ""

    def compute_next_review(
        self,
        outcome: ReviewOutcome,
        state: ScheduleState,
        tuning: DeckTuning = DeckTuning(),
    ) -> ScheduleState:
        ease_factor, interval_days, streak = self.next_interval(outcome, state, tuning)
        interval_days = max(0.0, interval_days)

        return replace(
            state,
            ease_factor=ease_factor,
            interval_days=interval_days,
            streak=streak,
            repetition_count=state.repetition_count + 1,
            correct_count=state.correct_count + (1 if outcome.is_correct else 0),
            incorrect_count=state.incorrect_count + (0 if outcome.is_correct else 1),
            last_reviewed=outcome.reviewed_at,
            next_review_due=outcome.reviewed_at + timedelta(days=interval_days),
        )

    @abstractmethod
    def next_interval(
        self,
        outcome: ReviewOutcome,
        state: ScheduleState,
        tuning: DeckTuning,
    ) -> Tuple[float, float, int]:
        """Return (ease_factor, interval_days, streak) after the outcome."""


class SM2Policy(ReviewPolicy):
    """
    SM-2 with per-deck interval modifier and easy bonus.

    Ratings map to SM-2 response quality (easy=5, good=4, hard=3, again=0);
    an incorrect answer is always treated as a lapse.
    """
    name = "sm2"

    QUALITY = {
        ReviewRating.EASY: 5,
        ReviewRating.GOOD: 4,
        ReviewRating.HARD: 3,
        ReviewRating.AGAIN: 0,
    }

    def quality(self, outcome: ReviewOutcome) -> int:
        quality = self.QUALITY[outcome.rating]
        if not outcome.is_correct:
            quality = min(quality, 2)
        return quality

    def next_interval(self, outcome, state, tuning):
        quality = self.quality(outcome)

        # Update ease factor
        new_ease = state.ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
        new_ease = max(MIN_EASE_FACTOR, new_ease)

        if quality < 3:
            # Failed - reset to beginning
            return new_ease, 1.0, 0

        new_streak = state.streak + 1
        if new_streak == 1:
            interval = 1.0
        elif new_streak == 2:
            interval = 6.0
        else:
            interval = state.interval_days * new_ease * tuning.interval_modifier
            if outcome.rating == ReviewRating.EASY:
                interval *= tuning.easy_bonus

        return new_ease, round(interval, 4), new_streak


class FixedIntervalPolicy(ReviewPolicy):
    """
    Interval ladder driven by the streak length, no ease factor.

    easy: 2 * streak * easy_bonus days, good: streak days,
    hard: streak / 2 days, again: 10 minutes and the streak resets.
    The first success is always one day (half a day for hard).
    """
    name = "fixed"

    def next_interval(self, outcome, state, tuning):
        rating = outcome.rating if outcome.is_correct else ReviewRating.AGAIN

        if rating == ReviewRating.AGAIN:
            return state.ease_factor, AGAIN_INTERVAL_DAYS * tuning.interval_modifier, 0

        streak = state.streak + 1
        if rating == ReviewRating.EASY:
            interval = 1.0 if streak == 1 else streak * 2 * tuning.easy_bonus
        elif rating == ReviewRating.GOOD:
            interval = 1.0 if streak == 1 else float(streak)
        else:
            interval = 0.5 if streak == 1 else streak * 0.5

        return state.ease_factor, interval * tuning.interval_modifier, streak


POLICIES: Dict[str, Type[ReviewPolicy]] = {
    SM2Policy.name: SM2Policy,
    FixedIntervalPolicy.name: FixedIntervalPolicy,
}


def get_policy(name: str) -> ReviewPolicy:
    try:
        return POLICIES[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown review policy '{name}', expected one of {sorted(POLICIES)}")
