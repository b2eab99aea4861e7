"""Voting Engine — pure vote transitions and score bookkeeping.

Tests cover:
    - Insert, repeat (no-op), flip (score moves by 2) and retract
    - Score always equals the sum of vote weights
    - Removed and locked targets reject votes
"""

from dataclasses import replace

import pytest

from agora.core.domain_types import TargetKind, VoteValue
from agora.core.enforce_voting import cast_vote, compute_score, retract_vote
from agora.core.entities import VotableTarget
from agora.core.errors import InvalidTransitionError
from tests.support import T0


@pytest.fixture
def post():
    return VotableTarget(
        target_kind=TargetKind.POST, target_id="p1", owner_id="alice",
        body="hello", created_at=T0,
    )


def test_first_upvote_sets_score(post):
    outcome = cast_vote(post, "bob", VoteValue.UP)
    assert outcome.changed
    assert outcome.score == 1
    assert outcome.previous is None


def test_repeat_vote_is_a_noop(post):
    first = cast_vote(post, "bob", VoteValue.UP).target
    again = cast_vote(first, "bob", VoteValue.UP)
    assert not again.changed
    assert again.target is first
    assert again.score == 1


def test_flip_moves_score_by_two(post):
    up = cast_vote(post, "bob", VoteValue.UP).target
    flipped = cast_vote(up, "bob", VoteValue.DOWN)
    assert flipped.changed
    assert flipped.previous == VoteValue.UP
    assert flipped.score == up.score - 2


def test_retract_removes_vote(post):
    up = cast_vote(post, "bob", VoteValue.UP).target
    outcome = retract_vote(up, "bob")
    assert outcome.changed
    assert outcome.current is None
    assert outcome.score == 0
    assert "bob" not in outcome.target.votes


def test_retract_without_vote_is_a_noop(post):
    outcome = retract_vote(post, "bob")
    assert not outcome.changed
    assert outcome.target is post


def test_cast_does_not_mutate_input(post):
    cast_vote(post, "bob", VoteValue.UP)
    assert post.votes == {}
    assert post.score == 0


def test_score_is_sum_of_weights(post):
    target = post
    for voter, value in [("a", VoteValue.UP), ("b", VoteValue.UP), ("c", VoteValue.DOWN), ("a", VoteValue.DOWN)]:
        target = cast_vote(target, voter, value).target
        assert target.score == compute_score(target.votes)
    assert target.score == -1


@pytest.mark.parametrize("flags", [{"is_removed": True}, {"is_locked": True}])
def test_closed_targets_reject_votes(post, flags):
    closed = replace(post, **flags)
    with pytest.raises(InvalidTransitionError):
        cast_vote(closed, "bob", VoteValue.UP)
    with pytest.raises(InvalidTransitionError):
        retract_vote(closed, "bob")
