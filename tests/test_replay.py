from datetime import datetime, timedelta, timezone
import random

from kanban_metrics.models import IssueTimeline, Transition
from kanban_metrics.replay import replay
from kanban_metrics.statuses import StatusCatalog


UTC = timezone.utc
FAR_FUTURE = datetime(2030, 1, 1, tzinfo=UTC)


def at(day: int, hour: int = 9) -> datetime:
    return datetime(2024, 1, day, hour, tzinfo=UTC)


def make_catalog() -> StatusCatalog:
    return StatusCatalog(["Open"], ["Dev", "Review"], ["Waiting"], ["Done"])


def monday_issue(*extra: Transition) -> IssueTimeline:
    return IssueTimeline(
        key="DET-1",
        issue_type="Story",
        created=at(1),
        transitions=(
            Transition(at(2), "Open", "Dev"),
            *extra,
            Transition(at(8), "Dev", "Done"),
        ),
    )


def test_replay_attributes_time_to_origin_status_across_weekend():
    result = replay(monday_issue(), at(31), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status == {"Open": timedelta(days=1), "Dev": timedelta(days=4)}
    assert result.last_status == "Done"
    assert result.last_transition_at == at(8)
    assert result.first_wip_date == at(2)
    assert result.tail_duration == timedelta(0)


def test_same_status_transition_is_ignored():
    with_noop = replay(monday_issue(Transition(at(3), "Dev", "Dev")), at(31), make_catalog(), now=FAR_FUTURE)
    without = replay(monday_issue(), at(31), make_catalog(), now=FAR_FUTURE)
    assert with_noop.duration_by_status == without.duration_by_status


def test_open_tail_counted_until_window_end():
    timeline = IssueTimeline(
        key="DET-2",
        issue_type="Bug",
        created=at(1),
        transitions=(Transition(at(2), "Open", "Dev"),),
    )
    result = replay(timeline, at(5, 0), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status["Dev"] == timedelta(days=2, hours=15)
    assert result.tail_duration == timedelta(days=2, hours=15)
    assert result.last_status == "Dev"


def test_open_tail_stops_at_now():
    timeline = IssueTimeline(
        key="DET-3",
        issue_type="Bug",
        created=at(1),
        transitions=(Transition(at(2), "Open", "Dev"),),
    )
    result = replay(timeline, at(31), make_catalog(), now=at(3))
    assert result.duration_by_status["Dev"] == timedelta(days=1)
    assert result.horizon == at(3)


def test_issue_without_transitions_stays_in_initial_status():
    timeline = IssueTimeline(key="DET-4", issue_type="Task", created=at(1))
    result = replay(timeline, at(3), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status == {"Open": timedelta(days=2)}
    assert result.last_transition_at is None
    assert result.first_wip_date is None


def test_from_status_is_ground_truth_when_history_has_gaps():
    timeline = IssueTimeline(
        key="DET-5",
        issue_type="Story",
        created=at(1),
        transitions=(
            Transition(at(2), "Open", "Dev"),
            Transition(at(3), "Review", "Done"),
        ),
    )
    result = replay(timeline, at(31), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status == {"Open": timedelta(days=1), "Review": timedelta(days=1)}


def test_transitions_are_replayed_in_time_order():
    timeline = IssueTimeline(
        key="DET-6",
        issue_type="Story",
        created=at(1),
        transitions=(
            Transition(at(4), "Waiting", "Done"),
            Transition(at(2), "Open", "Waiting"),
        ),
    )
    result = replay(timeline, at(31), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status == {"Open": timedelta(days=1), "Waiting": timedelta(days=2)}
    assert result.first_wip_date == at(2)


def test_first_wip_keyed_on_destination_status():
    timeline = IssueTimeline(
        key="DET-7",
        issue_type="Story",
        created=at(1),
        transitions=(
            Transition(at(2), "Open", "Backlog"),
            Transition(at(3), "Backlog", "Waiting"),
            Transition(at(4), "Waiting", "Dev"),
        ),
    )
    result = replay(timeline, at(5), make_catalog(), now=FAR_FUTURE)
    assert result.first_wip_date == at(3)


def test_transition_exactly_at_window_end_is_included():
    timeline = IssueTimeline(
        key="DET-8",
        issue_type="Story",
        created=at(1),
        transitions=(Transition(at(3, 0), "Open", "Dev"),),
    )
    result = replay(timeline, at(3, 0), make_catalog(), now=FAR_FUTURE)
    assert result.duration_by_status == {"Open": timedelta(days=1, hours=15)}
    assert result.last_status == "Dev"
    assert result.tail_duration == timedelta(0)


def test_replay_never_drops_or_double_counts_weekday_time():
    rng = random.Random(20240101)
    statuses = ["Open", "Dev", "Review", "Waiting", "Blocked"]
    created = at(1, 8)
    window_end = at(5, 18)
    for _ in range(200):
        offsets = sorted(rng.randint(0, int((window_end - created).total_seconds() // 60)) for _ in range(rng.randint(0, 8)))
        transitions = []
        current = "Open"
        for minutes in offsets:
            target = rng.choice(statuses)
            source = current if rng.random() > 0.2 else rng.choice(statuses)
            transitions.append(Transition(created + timedelta(minutes=minutes), source, target))
            if source != target:
                current = target
        timeline = IssueTimeline(key="P-1", issue_type="Story", created=created, transitions=tuple(transitions))

        result = replay(timeline, window_end, make_catalog(), now=FAR_FUTURE)

        assert result.total_duration == window_end - created
