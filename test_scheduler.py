from datetime import datetime, timedelta

import pytest

from studyhub.memory_cards.scheduler import (
    AGAIN_INTERVAL_DAYS, DeckTuning, FixedIntervalPolicy, ReviewOutcome, ReviewRating,
    SM2Policy, ScheduleState, get_policy,
)

NOW = datetime(2025, 3, 1, 12, 0, 0)


def review(policy, state, rating, is_correct=True, tuning=DeckTuning(), at=NOW):
    return policy.compute_next_review(ReviewOutcome(rating, is_correct, at), state, tuning)


def test_sm2_algorithm():
    print("Testing SM-2 policy...")
    policy = SM2Policy()
    state = ScheduleState()

    # Good #1
    state = review(policy, state, ReviewRating.GOOD)
    print(f"Good #1: Ease={state.ease_factor:.2f}, Interval={state.interval_days}, Streak={state.streak}")
    assert state.streak == 1 and state.interval_days == 1
    assert state.next_review_due == NOW + timedelta(days=1)

    # Good #2
    state = review(policy, state, ReviewRating.GOOD)
    assert state.streak == 2 and state.interval_days == 6

    # Good #3: interval * ease, ease unchanged by quality 4
    state = review(policy, state, ReviewRating.GOOD)
    assert state.ease_factor == pytest.approx(2.5)
    assert state.interval_days == pytest.approx(15.0)

    # Again: lapse
    state = review(policy, state, ReviewRating.AGAIN, is_correct=False)
    assert state.streak == 0 and state.interval_days == 1
    assert state.ease_factor == pytest.approx(1.7)

    assert state.repetition_count == 4
    assert state.correct_count == 3
    assert state.incorrect_count == 1


def test_sm2_easy_applies_bonus_and_raises_ease():
    policy = SM2Policy()
    state = ScheduleState(streak=2, interval_days=6.0, ease_factor=2.5)

    state = review(policy, state, ReviewRating.EASY)

    assert state.ease_factor == pytest.approx(2.6)
    assert state.interval_days == pytest.approx(6 * 2.6 * 1.3)


def test_sm2_interval_modifier():
    policy = SM2Policy()
    state = ScheduleState(streak=2, interval_days=6.0, ease_factor=2.5)

    state = review(policy, state, ReviewRating.GOOD, tuning=DeckTuning(interval_modifier=0.5))

    assert state.interval_days == pytest.approx(7.5)


def test_sm2_incorrect_answer_is_a_lapse_whatever_the_rating():
    policy = SM2Policy()
    state = ScheduleState(streak=5, interval_days=40.0)

    state = review(policy, state, ReviewRating.EASY, is_correct=False)

    assert state.streak == 0
    assert state.interval_days == 1
    assert state.incorrect_count == 1 and state.correct_count == 0


def test_sm2_ease_never_below_minimum():
    policy = SM2Policy()
    state = ScheduleState(ease_factor=1.3)

    state = review(policy, state, ReviewRating.AGAIN, is_correct=False)

    assert state.ease_factor == pytest.approx(1.3)


def test_fixed_interval_ladder():
    policy = FixedIntervalPolicy()
    state = ScheduleState()

    state = review(policy, state, ReviewRating.GOOD)
    assert state.interval_days == 1

    state = review(policy, state, ReviewRating.GOOD)
    assert state.interval_days == 2

    state = review(policy, state, ReviewRating.EASY)
    assert state.interval_days == pytest.approx(3 * 2 * 1.3)

    state = review(policy, state, ReviewRating.HARD)
    assert state.interval_days == pytest.approx(2.0)

    state = review(policy, state, ReviewRating.AGAIN, is_correct=False)
    assert state.streak == 0
    assert state.interval_days == pytest.approx(AGAIN_INTERVAL_DAYS)
    assert abs(state.next_review_due - (NOW + timedelta(minutes=10))) < timedelta(seconds=1)


def test_fixed_first_hard_is_half_a_day():
    state = review(FixedIntervalPolicy(), ScheduleState(), ReviewRating.HARD)
    assert state.interval_days == 0.5


@pytest.mark.parametrize("policy", [SM2Policy(), FixedIntervalPolicy()])
def test_outcome_counters_and_dates_stay_consistent(policy):
    sequence = [
        (ReviewRating.GOOD, True),
        (ReviewRating.EASY, True),
        (ReviewRating.AGAIN, False),
        (ReviewRating.HARD, True),
        (ReviewRating.GOOD, False),
        (ReviewRating.EASY, True),
    ]
    state = ScheduleState()
    at = NOW
    for rating, is_correct in sequence:
        at += timedelta(hours=3)
        state = review(policy, state, rating, is_correct, at=at)

        assert state.correct_count + state.incorrect_count == state.repetition_count
        assert state.last_reviewed == at
        assert state.next_review_due >= state.last_reviewed

    assert state.repetition_count == len(sequence)
    assert state.incorrect_count == 2


def test_get_policy():
    assert isinstance(get_policy("sm2"), SM2Policy)
    assert isinstance(get_policy("FIXED"), FixedIntervalPolicy)
    with pytest.raises(ValueError):
        get_policy("leitner")


if __name__ == "__main__":
    test_sm2_algorithm()
