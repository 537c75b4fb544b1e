from orderflow.models.milestone import MilestoneStatusEnum as M
from orderflow.utils.progress import all_delivered, calculate_progress


def test_no_milestones_is_zero():
    assert calculate_progress([]) == 0


def test_only_approved_milestones_count():
    statuses = [M.approved, M.completed, M.pending]
    assert calculate_progress(statuses) == 33


def test_rounds_to_nearest_integer():
    assert calculate_progress([M.approved, M.approved, M.pending]) == 67
    assert calculate_progress([M.approved] * 2 + [M.pending] * 7) == 22


def test_half_rounds_up():
    # 1/8 = 12.5%、5/8 = 62.5%、3/8 = 37.5%
    assert calculate_progress([M.approved] + [M.pending] * 7) == 13
    assert calculate_progress([M.approved] * 5 + [M.pending] * 3) == 63
    assert calculate_progress([M.approved] * 3 + [M.pending] * 5) == 38


def test_all_approved_is_hundred():
    assert calculate_progress([M.approved] * 3) == 100


def test_accepts_plain_strings():
    assert calculate_progress(["approved", "in-progress"]) == 50


def test_all_delivered_counts_completed_and_approved():
    assert all_delivered([M.completed, M.approved])
    assert not all_delivered([M.completed, M.in_progress])
    assert not all_delivered([])
