"""
Tests for progress aggregation.

Values are hand-computed; rounding is 1 decimal, half away from zero.
"""

import pytest

from fitplan.core.models import (
    Exercise,
    NormalizedPlan,
    ProgressPoint,
    SetLog,
    Settings,
    TrainingDay,
    WorkoutSession,
)
from fitplan.core.progress import (
    block_full_label,
    build_progress_blocks,
    clean_block_name,
    compute_delta,
    find_reference_point,
    get_progress_block,
    parse_block_id,
    parse_weight,
    representative_weight,
    round1,
)


def _points(*pairs: tuple[str, float]) -> list[ProgressPoint]:
    return [ProgressPoint(date=d, weight_kg=w) for d, w in pairs]


def _session(date: str, *rows: tuple[str, int, object]) -> WorkoutSession:
    """rows: (exercise_id, set_number, weight)"""
    return WorkoutSession(
        date=date,
        plan_id="plan-1",
        set_logs=[SetLog(set_number=n, weight_kg=w, exercise_id=ex) for ex, n, w in rows],
    )


class TestNumericHelpers:
    """Rounding and noisy weight parsing."""

    @pytest.mark.parametrize(
        "value, expected",
        [(9.756, 9.8), (0.25, 0.3), (-0.25, -0.3), (12.5, 12.5), (2.45, 2.5)],
    )
    def test_round1_half_away_from_zero(self, value, expected):
        assert round1(value) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (80, 80.0),
            (82.5, 82.5),
            ("82,5", 82.5),
            ("80 kg", 80.0),
            ("  70.25", 70.25),
            ("heavy", None),
            ("", None),
            (None, None),
            (True, None),
            (float("nan"), None),
            (float("inf"), None),
        ],
    )
    def test_parse_weight(self, raw, expected):
        assert parse_weight(raw) == expected

    def test_round1_large_finite_values(self):
        assert round1(1e30) == 1e30
        assert round1(-123456789012345678901234567890.0) == -123456789012345678901234567890.0

    def test_round1_passes_non_finite_through(self):
        assert round1(float("inf")) == float("inf")

    def test_representative_weight_is_max(self):
        assert representative_weight([60, "65", None, "x", 62.5]) == 65.0

    def test_representative_weight_none_when_nothing_parses(self):
        assert representative_weight([None, "x"]) is None


class TestReferencePoint:
    """Most recent earlier point at least N days older than the latest."""

    def test_single_point_has_no_reference(self):
        assert find_reference_point(_points(("2024-01-01", 80)), 7) is None

    def test_picks_most_recent_old_enough(self):
        pts = _points(("2024-01-01", 80), ("2024-01-08", 82), ("2024-01-12", 84), ("2024-01-15", 85))
        ref = find_reference_point(pts, 7)
        assert ref.date == "2024-01-08"

    def test_none_when_all_too_recent(self):
        pts = _points(("2024-01-10", 80), ("2024-01-12", 82))
        assert find_reference_point(pts, 7) is None

    def test_latest_is_never_its_own_reference(self):
        pts = _points(("2024-01-01", 80), ("2024-01-01", 81))
        assert find_reference_point(pts, 0).weight_kg == 80


class TestComputeDelta:
    """Weekly and monthly deltas."""

    def test_known_scenario(self):
        pts = _points(("2024-01-01", 80), ("2024-01-08", 82), ("2024-02-01", 90))
        weekly = compute_delta(pts, 7)
        monthly = compute_delta(pts, 30)
        assert weekly.kg == 8.0
        assert weekly.pct == 9.8
        assert monthly.kg == 10.0
        assert monthly.pct == 12.5

    def test_zero_reference_reports_kg_only(self):
        pts = _points(("2024-01-01", 0), ("2024-01-08", 5))
        delta = compute_delta(pts, 7)
        assert delta.pct is None
        assert delta.kg == 5.0

    def test_single_point_all_none(self):
        delta = compute_delta(_points(("2024-01-01", 80)), 7)
        assert delta.pct is None
        assert delta.kg is None

    def test_very_large_weights(self):
        pts = _points(("2024-01-01", 1e30), ("2024-01-08", 2e30))
        delta = compute_delta(pts, 7)
        assert delta.kg == 1e30
        assert delta.pct == 100.0

    def test_negative_change(self):
        pts = _points(("2024-01-01", 100), ("2024-01-08", 95))
        delta = compute_delta(pts, 7)
        assert delta.kg == -5.0
        assert delta.pct == -5.0


class TestBlockLabels:
    """Block ids and display labels."""

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("DAY 1 - Push", "Push"),
            ("DÍA 2: Pierna", "Pierna"),
            ("dia 3 - Full body", "Full body"),
            ("Upper", "Upper"),
            ("DAY 1 -", "DAY 1 -"),
        ],
    )
    def test_clean_block_name(self, label, expected):
        assert clean_block_name(label) == expected

    def test_full_label(self):
        assert block_full_label(2, "Pull") == "Day 2 - Pull"
        assert block_full_label(2, "DAY 2 - Pull") == "DAY 2 - Pull"
        assert block_full_label(3, "  ") == "Day 3"

    def test_parse_block_id(self):
        assert parse_block_id("block-2-1") == (2, 1)
        assert parse_block_id("block-0-1") is None
        assert parse_block_id("block-x-1") is None
        assert parse_block_id("day-2") is None


@pytest.fixture
def plan() -> NormalizedPlan:
    return NormalizedPlan(
        training_days=(
            TrainingDay(
                day_index=1,
                label="DAY 1 - Push",
                exercises=(Exercise(id="bench", name="Bench"), Exercise(id="ohp", name="OHP")),
            ),
            TrainingDay(
                day_index=2,
                label="Pull",
                exercises=(Exercise(id="row", name="Row"),),
            ),
        )
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(nutrition_start_date="2024-01-01", training_days=("Mon", "Thu"))


class TestProgressBlocks:
    """Per-block rollup of exercise deltas."""

    def test_sessions_grouped_by_resolved_weekday(self, plan, settings):
        sessions = [
            # Mondays → block 0, Thursdays → block 1
            _session("2024-01-01", ("bench", 1, 80), ("bench", 2, 78), ("ohp", 1, 40)),
            _session("2024-01-08", ("bench", 1, 82), ("ohp", 1, "42,5")),
            _session("2024-02-05", ("bench", 1, 90), ("ohp", 1, 44)),
            _session("2024-01-04", ("row", 1, 60)),
        ]
        blocks = build_progress_blocks(plan, sessions, settings, 7, 30)

        push, pull = blocks
        assert push.block_id == "block-1-0"
        assert push.tab_label == "Day 1"
        assert push.name == "Push"
        assert push.full_label == "DAY 1 - Push"
        assert pull.full_label == "Day 2 - Pull"

        bench, ohp = push.exercises
        assert [p.weight_kg for p in bench.points] == [80, 82, 90]
        assert bench.weekly_delta_kg == 8.0
        assert bench.weekly_delta_pct == 9.8
        assert bench.monthly_delta_kg == 10.0
        assert bench.monthly_delta_pct == 12.5
        assert ohp.weekly_delta_kg == 1.5
        assert ohp.weekly_delta_pct == 3.5

        assert push.weekly_avg_pct == round1((9.8 + 3.5) / 2)
        assert push.weekly_total_kg == 9.5

        # One Thursday session only: no deltas
        assert pull.weekly_avg_pct is None
        assert pull.weekly_total_kg is None

    def test_rest_day_sessions_are_ignored(self, plan, settings):
        sessions = [_session("2024-01-02", ("bench", 1, 100))]
        blocks = build_progress_blocks(plan, sessions, settings)
        assert blocks[0].exercises[0].points == []

    def test_exercise_matched_by_index_without_id(self, plan, settings):
        sessions = [
            WorkoutSession(date="2024-01-01", set_logs=[SetLog(set_number=1, weight_kg=30, exercise_index=1)]),
        ]
        blocks = build_progress_blocks(plan, sessions, settings)
        assert [p.weight_kg for p in blocks[0].exercises[1].points] == [30]
        assert blocks[0].exercises[0].points == []

    def test_idempotent(self, plan, settings):
        sessions = [
            _session("2024-01-01", ("bench", 1, 80)),
            _session("2024-01-08", ("bench", 1, 85)),
        ]
        first = build_progress_blocks(plan, sessions, settings)
        second = build_progress_blocks(plan, list(reversed(sessions)), settings)
        assert first == second

    def test_get_progress_block(self, plan, settings):
        blocks = build_progress_blocks(plan, [], settings)
        assert get_progress_block(blocks, "block-2-1").name == "Pull"
        assert get_progress_block(blocks, "block-9-0") is None
        assert get_progress_block(blocks, "garbage") is None

    def test_null_deltas_ignored_in_block_average(self, plan, settings):
        sessions = [
            _session("2024-01-01", ("bench", 1, 80), ("ohp", 1, 40)),
            _session("2024-01-08", ("bench", 1, 82)),
        ]
        push = build_progress_blocks(plan, sessions, settings)[0]
        bench, ohp = push.exercises
        assert bench.weekly_delta_pct == 2.5
        # ohp's latest point is its only one
        assert ohp.weekly_delta_pct is None
        assert ohp.weekly_delta_kg is None
        assert push.weekly_avg_pct == 2.5
        assert push.weekly_total_kg == 2.0

    def test_zero_reference_counts_kg_but_not_pct(self, plan, settings):
        sessions = [
            _session("2024-01-01", ("bench", 1, 0), ("ohp", 1, 40)),
            _session("2024-01-08", ("bench", 1, 5), ("ohp", 1, 42)),
        ]
        push = build_progress_blocks(plan, sessions, settings)[0]
        bench, ohp = push.exercises
        assert bench.weekly_delta_pct is None
        assert bench.weekly_delta_kg == 5.0
        assert ohp.weekly_delta_pct == 5.0
        assert push.weekly_avg_pct == 5.0
        assert push.weekly_total_kg == 7.0

    def test_huge_text_weight_does_not_raise(self, plan, settings):
        sessions = [
            _session("2024-01-01", ("bench", 1, "9" * 30)),
            _session("2024-01-08", ("bench", 1, 80)),
        ]
        push = build_progress_blocks(plan, sessions, settings)[0]
        assert push.exercises[0].weekly_delta_pct == -100.0
