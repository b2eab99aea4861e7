"""Voting Engine — one user's vote on one target, as a pure state transition.

Invariants:
    - A target holds at most one vote per voter
    - score == sum(vote.weight) after every call; recomputed, never adjusted
    - Casting the same value twice is a no-op (idempotent)
    - Flipping a vote moves the score by 2 * weight in a single transition
    - Removed or locked targets accept no vote changes

Design Decisions:
    - Returns a VoteOutcome holding the next target instead of mutating the
      loaded one, so a conflict retry always starts from fresh state
    - Retraction is its own operation; a repeated identical vote never retracts
"""

from dataclasses import dataclass, replace

from agora.core.domain_types import VoteValue
from agora.core.entities import VotableTarget
from agora.core.errors import InvalidTransitionError


@dataclass(frozen=True)
class VoteOutcome:
    target: VotableTarget
    previous: VoteValue | None
    current: VoteValue | None

    @property
    def changed(self) -> bool:
        return self.previous != self.current

    @property
    def score(self) -> int:
        return self.target.score


def compute_score(votes: dict[str, VoteValue]) -> int:
    return sum(value.weight for value in votes.values())


def _check_open(target: VotableTarget, event: str) -> None:
    if target.is_removed:
        raise InvalidTransitionError(target.target_kind.value, "removed", event)
    if target.is_locked:
        raise InvalidTransitionError(target.target_kind.value, "locked", event)


def cast_vote(target: VotableTarget, voter_id: str, value: VoteValue) -> VoteOutcome:
    """Insert, keep, or flip voter_id's vote. Pure."""
    _check_open(target, "vote")
    previous = target.votes.get(voter_id)
    if previous == value:
        return VoteOutcome(target=target, previous=previous, current=value)

    votes = dict(target.votes)
    votes[voter_id] = value
    return VoteOutcome(
        target=replace(target, votes=votes, score=compute_score(votes)),
        previous=previous,
        current=value,
    )


def retract_vote(target: VotableTarget, voter_id: str) -> VoteOutcome:
    """Remove voter_id's vote if present. Retracting nothing is a no-op."""
    _check_open(target, "retract_vote")
    previous = target.votes.get(voter_id)
    if previous is None:
        return VoteOutcome(target=target, previous=None, current=None)

    votes = {k: v for k, v in target.votes.items() if k != voter_id}
    return VoteOutcome(
        target=replace(target, votes=votes, score=compute_score(votes)),
        previous=previous,
        current=None,
    )
