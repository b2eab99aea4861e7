"""Reputation Rules — vote points, answer points, badges and levels.

Tests cover:
    - Every vote move credits the difference, so cast then retract nets zero
    - Badges are held once and add their points once
    - Level boundaries and the next threshold
    - Leaderboard order is total descending, then user id
"""

import pytest

from agora.core.domain_types import ReputationLevel, VoteValue
from agora.core.enforce_reputation import (
    ACCEPTED_ANSWER_POINTS,
    BADGE_CATALOG,
    VOTE_POINTS,
    add_answer_points,
    add_vote_points,
    award_badge,
    empty_record,
    find_badge,
    level_for,
    rank,
    vote_points,
)
from agora.core.entities import ReputationRecord
from agora.core.errors import InvalidTransitionError, ResourceNotFoundError
from tests.support import T0


@pytest.mark.parametrize("previous,current,expected", [
    (None, VoteValue.UP, 10),
    (None, VoteValue.DOWN, -2),
    (VoteValue.UP, VoteValue.DOWN, -12),
    (VoteValue.DOWN, VoteValue.UP, 12),
    (VoteValue.UP, None, -10),
    (VoteValue.DOWN, None, 2),
])
def test_vote_points_are_the_difference(previous, current, expected):
    assert vote_points(previous, current) == expected


def test_cast_then_retract_nets_zero():
    record = empty_record("alice")
    record = add_vote_points(record, vote_points(None, VoteValue.UP))
    record = add_vote_points(record, vote_points(VoteValue.UP, VoteValue.DOWN))
    assert record.votes_received_score == VOTE_POINTS[VoteValue.DOWN]
    record = add_vote_points(record, vote_points(VoteValue.DOWN, None))
    assert record.total == 0


def test_answer_points_land_in_their_own_bucket():
    record = add_answer_points(empty_record("bob"))
    assert record.answers_score == ACCEPTED_ANSWER_POINTS
    assert record.votes_received_score == 0
    assert record.total == ACCEPTED_ANSWER_POINTS


def test_badge_is_awarded_once():
    badge = find_badge("mentor")
    record = award_badge(empty_record("bob"), badge, "mod", T0, "patient with newcomers")
    assert record.badges["mentor"].awarded_by == "mod"
    assert record.badges["mentor"].reason == "patient with newcomers"
    assert record.badges_score == badge.points
    with pytest.raises(InvalidTransitionError):
        award_badge(record, badge, "mod", T0)


def test_award_leaves_the_input_untouched():
    record = empty_record("bob")
    award_badge(record, find_badge("welcome"), "mod", T0)
    assert record.badges == {}
    assert record.badges_score == 0


def test_unknown_badge():
    with pytest.raises(ResourceNotFoundError):
        find_badge("missing")


def test_catalog_ids_match_keys():
    assert all(key == badge.badge_id for key, badge in BADGE_CATALOG.items())


@pytest.mark.parametrize("total,level,next_threshold", [
    (-40, ReputationLevel.NEWCOMER, 100),
    (0, ReputationLevel.NEWCOMER, 100),
    (99, ReputationLevel.NEWCOMER, 100),
    (100, ReputationLevel.CONTRIBUTOR, 500),
    (1499, ReputationLevel.TRUSTED, 1500),
    (1500, ReputationLevel.EXPERT, 5000),
    (5000, ReputationLevel.LEGEND, None),
])
def test_levels(total, level, next_threshold):
    assert level_for(total) == (level, next_threshold)


def test_rank_orders_by_total_then_user():
    records = [
        ReputationRecord(user_id="carol", votes_received_score=20),
        ReputationRecord(user_id="alice", answers_score=30),
        ReputationRecord(user_id="bob", votes_received_score=20),
        ReputationRecord(user_id="dave", votes_received_score=-4),
    ]
    assert [r.user_id for r in rank(records, 3)] == ["alice", "bob", "carol"]
