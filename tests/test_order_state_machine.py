import pytest

from orderflow.core.exceptions import Conflict, InvalidTransition
from orderflow.models.order import OrderStatusEnum as S
from orderflow.utils.order_state_machine import (
    ORDER_TRANSITIONS, TransitionTrigger as T, allowed_targets, assert_transition, is_transition_allowed
)


def test_table_contains_exactly_the_documented_edges():
    expected = {
        (S.pending, S.in_progress),
        (S.pending, S.cancelled),
        (S.in_progress, S.review),
        (S.in_progress, S.cancelled),
        (S.review, S.completed),
        (S.review, S.in_progress),
        (S.disputed, S.in_progress),
        (S.disputed, S.cancelled),
        (S.disputed, S.completed),
        (S.pending, S.disputed),
        (S.in_progress, S.disputed),
        (S.review, S.disputed),
    }
    assert set(ORDER_TRANSITIONS) == expected


def test_terminal_states_have_no_outgoing_edges():
    assert allowed_targets(S.completed) == []
    assert allowed_targets(S.cancelled) == []


def test_manual_targets_from_pending():
    assert set(allowed_targets(S.pending, T.manual)) == {S.in_progress, S.cancelled}


def test_auto_trigger_only_moves_forward():
    assert is_transition_allowed(S.in_progress, S.review, T.auto)
    assert is_transition_allowed(S.review, S.completed, T.auto)
    assert not is_transition_allowed(S.review, S.in_progress, T.auto)
    assert not is_transition_allowed(S.pending, S.cancelled, T.auto)


@pytest.mark.parametrize("current", [S.pending, S.in_progress, S.review])
def test_dispute_can_be_raised_from_any_open_state(current):
    assert_transition(current, S.disputed, T.dispute_raised)


@pytest.mark.parametrize("current,target", [
    (S.pending, S.review),
    (S.pending, S.completed),
    (S.in_progress, S.completed),
    (S.completed, S.in_progress),
    (S.cancelled, S.pending),
    (S.disputed, S.review),
])
def test_pairs_outside_the_table_are_rejected(current, target):
    with pytest.raises(InvalidTransition):
        assert_transition(current, target, T.manual)


def test_manual_update_cannot_raise_a_dispute():
    with pytest.raises(InvalidTransition):
        assert_transition(S.in_progress, S.disputed, T.manual)


def test_manual_update_on_disputed_order_is_a_conflict():
    with pytest.raises(Conflict):
        assert_transition(S.disputed, S.in_progress, T.manual)


def test_accepts_raw_string_statuses():
    assert is_transition_allowed("in-progress", "review", T.manual)
