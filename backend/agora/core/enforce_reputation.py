"""Reputation Rules — points earned from votes, accepted answers and badges.

Invariants:
    - All functions are PURE: they return the next ReputationRecord
    - A vote change moves votes_received_score by exactly
      vote_points(previous, current), so a retract undoes its cast
    - A badge is held at most once per user; awarding it adds its points once
    - Level is derived from total, never stored

Design Decisions:
    - Badges come from a fixed catalog (BADGE_CATALOG); awarding one is a
      staff action checked by the Authorization Guard, not here
    - Scores may go negative (downvotes); the level floor is NEWCOMER
"""

from dataclasses import dataclass, replace
from datetime import datetime

from agora.core.domain_types import BadgeRarity, ReputationLevel, UserId, VoteValue
from agora.core.entities import AwardedBadge, ReputationRecord
from agora.core.errors import InvalidTransitionError, ResourceNotFoundError

VOTE_POINTS: dict[VoteValue, int] = {VoteValue.UP: 10, VoteValue.DOWN: -2}
ACCEPTED_ANSWER_POINTS: int = 15

# (minimum total, level), ascending
LEVEL_THRESHOLDS: tuple[tuple[int, ReputationLevel], ...] = (
    (0, ReputationLevel.NEWCOMER),
    (100, ReputationLevel.CONTRIBUTOR),
    (500, ReputationLevel.TRUSTED),
    (1500, ReputationLevel.EXPERT),
    (5000, ReputationLevel.LEGEND),
)


@dataclass(frozen=True)
class Badge:
    badge_id: str
    name: str
    description: str
    rarity: BadgeRarity
    points: int


BADGE_CATALOG: dict[str, Badge] = {
    badge.badge_id: badge
    for badge in (
        Badge("welcome", "Welcome", "Joined the community", BadgeRarity.COMMON, 5),
        Badge("helpful", "Helpful", "Answers that keep getting accepted", BadgeRarity.UNCOMMON, 25),
        Badge("mentor", "Mentor", "Guided many newcomers", BadgeRarity.RARE, 50),
        Badge("curator", "Curator", "Keeps the community tidy", BadgeRarity.RARE, 50),
        Badge("pillar", "Pillar", "Years of steady contribution", BadgeRarity.EPIC, 100),
        Badge("legend", "Legend", "Recognized by the whole community", BadgeRarity.LEGENDARY, 250),
    )
}


def find_badge(badge_id: str) -> Badge:
    badge = BADGE_CATALOG.get(badge_id)
    if badge is None:
        raise ResourceNotFoundError("badge", badge_id)
    return badge


def empty_record(user_id: UserId) -> ReputationRecord:
    return ReputationRecord(user_id=user_id)


def vote_points(previous: VoteValue | None, current: VoteValue | None) -> int:
    """Reputation delta for one voter moving from `previous` to `current`."""
    return VOTE_POINTS.get(current, 0) - VOTE_POINTS.get(previous, 0)


def add_vote_points(record: ReputationRecord, delta: int) -> ReputationRecord:
    return replace(record, votes_received_score=record.votes_received_score + delta)


def add_answer_points(record: ReputationRecord) -> ReputationRecord:
    return replace(record, answers_score=record.answers_score + ACCEPTED_ANSWER_POINTS)


def award_badge(
    record: ReputationRecord, badge: Badge, awarded_by: UserId,
    now: datetime, reason: str | None = None,
) -> ReputationRecord:
    if badge.badge_id in record.badges:
        raise InvalidTransitionError("reputation", "badge_held", "award_badge")
    badges = dict(record.badges)
    badges[badge.badge_id] = AwardedBadge(
        badge_id=badge.badge_id, awarded_by=awarded_by, awarded_at=now, reason=reason,
    )
    return replace(record, badges=badges, badges_score=record.badges_score + badge.points)


def level_for(total: int) -> tuple[ReputationLevel, int | None]:
    """Current level and the total needed for the next one (None at the top)."""
    level = LEVEL_THRESHOLDS[0][1]
    for threshold, candidate in LEVEL_THRESHOLDS[1:]:
        if total < threshold:
            return level, threshold
        level = candidate
    return level, None


def rank(records: list[ReputationRecord], limit: int) -> list[ReputationRecord]:
    """Highest total first; ties broken by user_id so the order is stable."""
    return sorted(records, key=lambda r: (-r.total, r.user_id))[:limit]
