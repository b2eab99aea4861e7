"""Content Rules — post/comment shape, edit, remove, lock, pin and accepted answers."""

from dataclasses import replace

import pytest

from agora.core.domain_types import TargetKind
from agora.core.enforce_content import (
    MAX_BODY_LENGTH,
    accept_answer,
    check_accepts_replies,
    edit_body,
    new_target,
    remove,
    set_flags,
)
from agora.core.errors import InputValidationError, InvalidTransitionError
from tests.support import T0


def _post():
    return new_target(TargetKind.POST, "p1", "alice", "  hello  ", T0)


def test_new_post_strips_body():
    assert _post().body == "hello"


def test_comment_requires_parent():
    with pytest.raises(InputValidationError) as exc:
        new_target(TargetKind.COMMENT, "c1", "bob", "hi", T0)
    assert exc.value.field == "parent_id"


def test_post_cannot_have_parent():
    with pytest.raises(InputValidationError):
        new_target(TargetKind.POST, "p2", "bob", "hi", T0, parent_id="p1")


@pytest.mark.parametrize("body", ["   ", "x" * (MAX_BODY_LENGTH + 1)])
def test_body_bounds(body):
    with pytest.raises(InputValidationError):
        new_target(TargetKind.POST, "p1", "alice", body, T0)


def test_edit_sets_edited_at():
    edited = edit_body(_post(), "changed", T0)
    assert edited.body == "changed"
    assert edited.edited_at == T0


def test_removed_target_is_frozen():
    removed = remove(_post())
    assert removed.is_removed
    with pytest.raises(InvalidTransitionError):
        edit_body(removed, "again", T0)
    with pytest.raises(InvalidTransitionError):
        remove(removed)
    with pytest.raises(InvalidTransitionError):
        set_flags(removed, locked=True)


def test_remove_keeps_votes_and_unpins():
    pinned = replace(_post(), is_pinned=True, votes={"bob": "up"}, score=1)
    removed = remove(pinned)
    assert not removed.is_pinned
    assert removed.score == 1


def test_locked_post_rejects_replies_and_edits():
    locked = set_flags(_post(), locked=True)
    with pytest.raises(InvalidTransitionError):
        check_accepts_replies(locked)
    with pytest.raises(InvalidTransitionError):
        edit_body(locked, "nope", T0)


def test_only_posts_can_be_pinned():
    comment = new_target(TargetKind.COMMENT, "c1", "bob", "hi", T0, parent_id="p1")
    with pytest.raises(InvalidTransitionError):
        set_flags(comment, pinned=True)
    assert set_flags(_post(), pinned=True).is_pinned


def test_none_flags_leave_state_unchanged():
    locked = set_flags(_post(), locked=True)
    assert set_flags(locked, pinned=True).is_locked


def _comment(comment_id="c1", parent_id="p1", author="bob"):
    return new_target(TargetKind.COMMENT, comment_id, author, "try this", T0, parent_id=parent_id)


def test_accept_answer_marks_the_comment():
    answered = accept_answer(_post(), _comment())
    assert answered.accepted_answer_id == "c1"


def test_accepting_the_same_answer_again_changes_nothing():
    answered = accept_answer(_post(), _comment())
    assert accept_answer(answered, _comment()) == answered


def test_only_one_answer_per_post():
    answered = accept_answer(_post(), _comment())
    with pytest.raises(InvalidTransitionError) as exc:
        accept_answer(answered, _comment("c2"))
    assert exc.value.code == "INVALID_TRANSITION"
    assert answered.accepted_answer_id == "c1"


def test_answer_must_be_a_comment_on_the_post():
    with pytest.raises(InputValidationError) as exc:
        accept_answer(_post(), _comment(parent_id="p9"))
    assert exc.value.field == "comment_id"
    with pytest.raises(InputValidationError):
        accept_answer(_post(), new_target(TargetKind.POST, "p2", "bob", "hi", T0))


def test_removed_post_or_comment_cannot_be_accepted():
    with pytest.raises(InvalidTransitionError):
        accept_answer(remove(_post()), _comment())
    with pytest.raises(InvalidTransitionError):
        accept_answer(_post(), remove(_comment()))
