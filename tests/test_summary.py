"""
Chrona - Summary Tests
Run with: python3 -m pytest tests/
"""

from datetime import date

from chrona.records import PERIOD, HRT, HSV, MENTAL_HEALTH, WORKOUT, save_record
from chrona.summary import (
    group_runs,
    current_streak,
    build_summary,
    empty_summary,
)


TODAY = date(2025, 6, 15)


def log(store, record_type, start, end=None, **data):
    return save_record(store, {"type": record_type, "data": data}, start, end or start)


class TestGroupRuns:
    def test_consecutive_days_form_runs(self):
        runs = group_runs(["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-10"])
        assert runs == [
            {"startDate": "2024-01-10", "endDate": "2024-01-10", "duration": 1},
            {"startDate": "2024-01-01", "endDate": "2024-01-03", "duration": 3},
        ]

    def test_unsorted_and_duplicate_dates(self):
        runs = group_runs(["2024-01-03", "2024-01-01", "2024-01-02", "2024-01-02"])
        assert runs == [{"startDate": "2024-01-01", "endDate": "2024-01-03", "duration": 3}]

    def test_runs_cross_month_boundary(self):
        runs = group_runs(["2024-02-28", "2024-02-29", "2024-03-01"])
        assert runs[0]["duration"] == 3

    def test_empty(self):
        assert group_runs([]) == []


class TestPeriodSummary:
    def test_cycle_lengths(self):
        store = {}
        log(store, PERIOD, "2025-01-01", "2025-01-05", intensity="Medium")
        log(store, PERIOD, "2025-02-01", "2025-02-04", intensity="Heavy")
        log(store, PERIOD, "2025-03-01", "2025-03-04")

        period = build_summary(store, TODAY)["period"]
        assert period["totalPeriods"] == 3
        assert [p["cycleLength"] for p in period["periods"]] == [28, 31, None]
        assert period["lastPeriod"]["startDate"] == "2025-03-01"
        assert period["previousPeriod"]["startDate"] == "2025-02-01"
        assert period["averageCycleLength"] == 29.5
        assert period["averageDuration"] == 4.3

    def test_single_period_has_no_cycle(self):
        store = {}
        log(store, PERIOD, "2025-01-01", "2025-01-03")
        period = build_summary(store, TODAY)["period"]
        assert period["periods"][0]["cycleLength"] is None
        assert period["averageCycleLength"] is None
        assert period["previousPeriod"] is None

    def test_adjacent_records_merge_into_one_period(self):
        store = {}
        log(store, PERIOD, "2025-01-01", "2025-01-02")
        log(store, PERIOD, "2025-01-03", "2025-01-04")
        assert build_summary(store, TODAY)["period"]["totalPeriods"] == 1


class TestHsvSummary:
    def test_only_breakout_days_count(self):
        store = {}
        log(store, HSV, "2025-01-01", "2025-01-03", hadBreakout=True)
        log(store, HSV, "2025-01-04", hadBreakout=False)
        log(store, HSV, "2025-03-02", "2025-03-03", hadBreakout=True)

        hsv = build_summary(store, TODAY)["hsv"]
        assert hsv["totalOutbreaks"] == 2
        assert hsv["lastOutbreak"] == {"startDate": "2025-03-02", "endDate": "2025-03-03", "duration": 2}
        # 2 outbreaks over 60 days
        assert hsv["outbreakFrequency"] == round(2 / 60 * 365, 1)
        assert hsv["averageDaysBetweenOutbreaks"] == 58.0

    def test_single_outbreak_has_no_frequency(self):
        store = {}
        log(store, HSV, "2025-01-01", hadBreakout=True)
        hsv = build_summary(store, TODAY)["hsv"]
        assert hsv["totalOutbreaks"] == 1
        assert hsv["outbreakFrequency"] is None
        assert hsv["averageDaysBetweenOutbreaks"] is None


class TestHrtSummary:
    def test_current_treatment_from_latest_date(self):
        store = {}
        log(store, HRT, "2025-06-01", treatments=[{"drugName": "Estradiol", "dose": 2}])
        log(store, HRT, "2025-06-10", treatments=[{"drugName": "Progesterone", "dose": 100}])

        hrt = build_summary(store, TODAY)["hrt"]
        assert hrt["currentTreatment"] == [{"drugName": "Progesterone", "dose": 100}]
        assert hrt["daysOnTreatment"] == 14
        assert hrt["startDate"] == "2025-06-01"

    def test_no_hrt(self):
        store = {}
        log(store, PERIOD, "2025-06-01")
        hrt = build_summary(store, TODAY)["hrt"]
        assert hrt["currentTreatment"] is None
        assert hrt["daysOnTreatment"] is None


class TestMentalHealthSummary:
    def test_most_common_mood(self):
        store = {}
        log(store, MENTAL_HEALTH, "2025-06-01", mood="smile")
        log(store, MENTAL_HEALTH, "2025-06-02", mood="frown")
        log(store, MENTAL_HEALTH, "2025-06-03", mood="frown")
        mh = build_summary(store, TODAY)["mentalHealth"]
        assert mh["mostCommonMood"] == "frown"
        assert mh["moodCounts"] == {"smile": 1, "frown": 2}
        assert mh["totalEntries"] == 3

    def test_tie_goes_to_earliest_mood(self):
        store = {}
        log(store, MENTAL_HEALTH, "2025-06-02", mood="frown")
        log(store, MENTAL_HEALTH, "2025-06-01", mood="smile")
        assert build_summary(store, TODAY)["mentalHealth"]["mostCommonMood"] == "smile"

    def test_ranged_mood_counts_once(self):
        store = {}
        log(store, MENTAL_HEALTH, "2025-06-01", "2025-06-03", mood="smile")
        log(store, MENTAL_HEALTH, "2025-06-04", mood="frown")
        mh = build_summary(store, TODAY)["mentalHealth"]
        assert mh["totalEntries"] == 2
        assert mh["moodCounts"] == {"smile": 1, "frown": 1}
        assert mh["mostCommonMood"] == "smile"


class TestWorkoutSummary:
    def test_streak_includes_today(self):
        assert current_streak(["2025-06-14", "2025-06-15"], TODAY) == 2

    def test_streak_broken_without_today(self):
        assert current_streak(["2025-06-13", "2025-06-14"], TODAY) == 0

    def test_streak_stops_at_gap(self):
        assert current_streak(["2025-06-12", "2025-06-14", "2025-06-15"], TODAY) == 2

    def test_totals(self):
        store = {}
        log(store, WORKOUT, "2025-06-14", workoutType="Run", duration=30)
        log(store, WORKOUT, "2025-06-15", workoutType="Run", duration=1, durationUnit="hours")
        log(store, WORKOUT, "2025-06-15", workoutType="Yoga", duration="20")

        workout = build_summary(store, TODAY)["workout"]
        assert workout["currentStreak"] == 2
        assert workout["totalWorkouts"] == 3
        assert workout["workoutTypes"] == {"Run": 2, "Yoga": 1}
        assert workout["totalMinutes"] == 110.0
        assert workout["lastWorkout"] == "2025-06-15"

    def test_ranged_workout_counts_once(self):
        store = {}
        log(store, WORKOUT, "2025-06-13", "2025-06-15", workoutType="Hike", duration=90)

        workout = build_summary(store, TODAY)["workout"]
        assert workout["totalWorkouts"] == 1
        assert workout["workoutTypes"] == {"Hike": 1}
        assert workout["totalMinutes"] == 90.0
        assert workout["currentStreak"] == 3


class TestBuildSummary:
    def test_empty_store(self):
        assert build_summary({}) == empty_summary()
        assert build_summary(None) == empty_summary()

    def test_summary_is_pure(self):
        store = {}
        log(store, PERIOD, "2025-06-01", "2025-06-03")
        before = {day: [dict(r) for r in records] for day, records in store.items()}
        build_summary(store, TODAY)
        assert store == before

    def test_all_sections_present(self):
        store = {}
        log(store, PERIOD, "2025-06-01")
        summary = build_summary(store, TODAY)
        assert set(summary) == {"generatedAt", "totalDays", "period", "hsv", "hrt",
                                "mentalHealth", "workout"}
        assert summary["totalDays"] == 1
