"""
Summary statistics for Chrona.

Derives display-ready rollups from a user's whole record store:
- Periods: episodes, cycle lengths, average cycle and duration
- HSV: outbreak episodes, frequency per year, days between outbreaks
- HRT: current treatment and days on treatment
- Mental health: most common mood
- Workouts: current streak and totals

Everything here is a pure function of the store; the summary is recomputed
from scratch every time it is requested.
"""

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Optional

from .records import (
    PERIOD,
    HRT,
    HSV,
    MENTAL_HEALTH,
    WORKOUT,
    DATE_FORMAT,
    iter_records,
    distinct_records,
    parse_date,
)


# ============================================================
# EPISODE DETECTION
# ============================================================

def group_runs(dates) -> list:
    """
    Group dates into runs of consecutive calendar days.

    Dates are sorted and de-duplicated first. A gap of exactly one day
    extends the current run; any other gap starts a new one.

    Args:
        dates: Iterable of dates or "YYYY-MM-DD" strings

    Returns:
        List of runs, most recent first, each as
        {'startDate', 'endDate', 'duration'} (duration counts both ends)

    Example:
        group_runs(['2024-01-01', '2024-01-02', '2024-01-03', '2024-01-10'])
        -> [{'startDate': '2024-01-10', 'endDate': '2024-01-10', 'duration': 1},
            {'startDate': '2024-01-01', 'endDate': '2024-01-03', 'duration': 3}]
    """
    days = sorted(set(parse_date(d) for d in dates))
    if not days:
        return []

    spans = []
    start = prev = days[0]
    for day in days[1:]:
        if (day - prev).days == 1:
            prev = day
            continue
        spans.append((start, prev))
        start = prev = day
    spans.append((start, prev))

    spans.sort(key=lambda span: span[0], reverse=True)
    return [
        {
            'startDate': s.strftime(DATE_FORMAT),
            'endDate': e.strftime(DATE_FORMAT),
            'duration': (e - s).days + 1,
        }
        for s, e in spans
    ]


def qualifying_dates(store: dict, record_type: str, predicate=None) -> list:
    """List the dates holding at least one record of a type (and matching predicate)."""
    dates = []
    for day, record in iter_records(store):
        if record.get('type') != record_type:
            continue
        if predicate and not predicate(record.get('data') or {}):
            continue
        if not dates or dates[-1] != day:
            dates.append(day)
    return dates


def _days_between(later: str, earlier: str) -> int:
    return (parse_date(later) - parse_date(earlier)).days


def _average(values: list) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


# ============================================================
# PER-TYPE SUMMARIES
# ============================================================

def period_summary(store: dict) -> dict:
    """
    Summarize menstrual periods.

    Each run gets a cycleLength: days from the start of the next older run
    to its own start. The oldest run has cycleLength None.
    """
    runs = group_runs(qualifying_dates(store, PERIOD))

    for i, run in enumerate(runs):
        older = runs[i + 1] if i + 1 < len(runs) else None
        run['cycleLength'] = _days_between(run['startDate'], older['startDate']) if older else None

    cycles = [r['cycleLength'] for r in runs if r['cycleLength'] is not None]

    return {
        'lastPeriod': runs[0] if runs else None,
        'previousPeriod': runs[1] if len(runs) > 1 else None,
        'periods': runs,
        'totalPeriods': len(runs),
        'averageCycleLength': _average(cycles),
        'averageDuration': _average([r['duration'] for r in runs]),
    }


def hsv_summary(store: dict) -> dict:
    """
    Summarize HSV outbreaks (days logged with hadBreakout true).

    outbreakFrequency is outbreaks per year over the span from the oldest
    to the newest outbreak start; None with one outbreak or a zero span.
    averageDaysBetweenOutbreaks is the mean gap from one outbreak's last day
    to the next outbreak's first day.
    """
    runs = group_runs(qualifying_dates(store, HSV, lambda data: data.get('hadBreakout') is True))

    frequency = None
    if len(runs) > 1:
        span = _days_between(runs[0]['startDate'], runs[-1]['startDate'])
        if span > 0:
            frequency = round(len(runs) / span * 365, 1)

    gaps = [
        _days_between(runs[i]['startDate'], runs[i + 1]['endDate'])
        for i in range(len(runs) - 1)
    ]

    return {
        'lastOutbreak': runs[0] if runs else None,
        'previousOutbreak': runs[1] if len(runs) > 1 else None,
        'outbreaks': runs,
        'totalOutbreaks': len(runs),
        'outbreakFrequency': frequency,
        'averageDaysBetweenOutbreaks': _average(gaps),
    }


def hrt_summary(store: dict, today: date) -> dict:
    """
    Summarize hormone-replacement therapy.

    currentTreatment is the treatment list from the most recent HRT date,
    taken verbatim (lists from several records on that date are joined).
    daysOnTreatment counts whole days from the first HRT date to today.
    """
    dates = qualifying_dates(store, HRT)
    if not dates:
        return {
            'currentTreatment': None,
            'daysOnTreatment': None,
            'startDate': None,
            'lastDate': None,
        }

    last = dates[-1]
    treatments = []
    for record in store.get(last, []):
        if record.get('type') == HRT:
            treatments.extend((record.get('data') or {}).get('treatments') or [])

    return {
        'currentTreatment': treatments,
        'daysOnTreatment': (today - parse_date(dates[0])).days,
        'startDate': dates[0],
        'lastDate': last,
    }


def mental_health_summary(store: dict) -> dict:
    """
    Summarize mood entries.

    A mood logged over a date range counts once. Ties for the most common
    mood go to the mood seen first, in date order.
    """
    moods = Counter()
    total = 0
    for _, record in distinct_records(store, MENTAL_HEALTH):
        total += 1
        mood = (record.get('data') or {}).get('mood')
        if mood:
            moods[mood] += 1

    most_common = moods.most_common(1)
    return {
        'mostCommonMood': most_common[0][0] if most_common else None,
        'moodCounts': dict(moods),
        'totalEntries': total,
    }


def _duration_minutes(data: dict) -> float:
    try:
        duration = float(data.get('duration') or 0)
    except (TypeError, ValueError):
        return 0
    unit = str(data.get('durationUnit') or 'min').lower()
    if unit.startswith('h'):
        return duration * 60
    return duration


def current_streak(dates, today: date) -> int:
    """
    Count consecutive days with a workout, going back from today.

    Today must have a workout for the streak to start; a streak that ended
    yesterday counts as 0.
    """
    logged = set(parse_date(d) for d in dates)
    streak = 0
    while True:
        day = today - timedelta(days=streak)
        if day not in logged:
            return streak
        streak += 1


def workout_summary(store: dict, today: date) -> dict:
    """
    Summarize workouts: current streak, totals and per-type counts.

    Totals count each workout once, even when it was logged over a range;
    the streak counts days.
    """
    dates = qualifying_dates(store, WORKOUT)
    types = Counter()
    total = 0
    minutes = 0.0

    for _, record in distinct_records(store, WORKOUT):
        data = record.get('data') or {}
        total += 1
        types[data.get('workoutType') or 'Other'] += 1
        minutes += _duration_minutes(data)

    return {
        'currentStreak': current_streak(dates, today),
        'totalWorkouts': total,
        'lastWorkout': dates[-1] if dates else None,
        'workoutTypes': dict(types),
        'totalMinutes': round(minutes, 1),
    }


# ============================================================
# FULL SUMMARY
# ============================================================

def empty_summary() -> dict:
    """The summary of an absent or empty store: every field null or zero."""
    return {
        'generatedAt': None,
        'totalDays': 0,
        'period': {
            'lastPeriod': None,
            'previousPeriod': None,
            'periods': [],
            'totalPeriods': 0,
            'averageCycleLength': None,
            'averageDuration': None,
        },
        'hsv': {
            'lastOutbreak': None,
            'previousOutbreak': None,
            'outbreaks': [],
            'totalOutbreaks': 0,
            'outbreakFrequency': None,
            'averageDaysBetweenOutbreaks': None,
        },
        'hrt': {
            'currentTreatment': None,
            'daysOnTreatment': None,
            'startDate': None,
            'lastDate': None,
        },
        'mentalHealth': {
            'mostCommonMood': None,
            'moodCounts': {},
            'totalEntries': 0,
        },
        'workout': {
            'currentStreak': 0,
            'totalWorkouts': 0,
            'lastWorkout': None,
            'workoutTypes': {},
            'totalMinutes': 0,
        },
    }


def build_summary(store: Optional[dict], today: date = None) -> dict:
    """
    Compute every rollup from a full record store.

    Args:
        store: Date-keyed record mapping; None or {} gives the empty summary
        today: Reference day for streaks and treatment duration (defaults to today)

    Returns:
        Dict with 'period', 'hsv', 'hrt', 'mentalHealth' and 'workout' sections
    """
    if not store:
        return empty_summary()

    today = parse_date(today) if today else date.today()

    return {
        'generatedAt': datetime.now().isoformat(timespec='seconds'),
        'totalDays': len(store),
        'period': period_summary(store),
        'hsv': hsv_summary(store),
        'hrt': hrt_summary(store, today),
        'mentalHealth': mental_health_summary(store),
        'workout': workout_summary(store, today),
    }
