"""
Chrona - Label and Account Tests
Run with: python3 -m pytest tests/
"""

import pytest

from chrona.records import HRT, HSV, WORKOUT, MENTAL_HEALTH
from chrona.storage import FileRepository
from chrona.labels import (
    LabelError,
    add_label,
    update_label,
    remove_label,
    merge_labels,
    used_colors,
    available_colors,
    remember_name,
    remember_record_names,
    create_account,
    account_colors,
)


def make_repo(tmp_path) -> FileRepository:
    return FileRepository(tmp_path / "public")


def one_record(day):
    return {day: [{"id": f"r-{day}", "type": "period", "data": {}}]}


class TestLabels:
    def test_add_label(self):
        labels = []
        label = add_label(labels, "Migraine", "iris")
        assert label == {"id": "migraine", "name": "Migraine", "abbreviation": "MI", "color": "iris"}
        assert labels == [label]

    def test_color_must_be_free(self):
        labels = [{"id": MENTAL_HEALTH, "defaultColor": "steel"}]
        with pytest.raises(LabelError, match="steel"):
            add_label(labels, "Migraine", "steel")

    def test_name_required(self):
        with pytest.raises(LabelError):
            add_label([], "  ", "iris")

    def test_ids_are_unique(self):
        labels = []
        add_label(labels, "Back Pain", "iris")
        second = add_label(labels, "back pain", "moss")
        assert second["id"] == "back-pain-2"

    def test_update_can_keep_own_color(self):
        labels = []
        add_label(labels, "Migraine", "iris")
        label = update_label(labels, "migraine", name="Headache", color="iris")
        assert label["name"] == "Headache"

    def test_update_missing_label(self):
        with pytest.raises(LabelError):
            update_label([], "nope", name="x")

    def test_remove_label(self):
        labels = [{"id": "a"}, {"id": "b"}]
        assert remove_label(labels, "a") is True
        assert remove_label(labels, "a") is False
        assert labels == [{"id": "b"}]

    def test_merge_user_overrides_global(self):
        global_labels = [{"id": HSV, "name": "HSV", "defaultColor": "brick"}]
        user_labels = [{"id": HSV, "color": "coral"}, {"id": "migraine", "name": "Migraine"}]
        merged = merge_labels(global_labels, user_labels)
        assert merged[0] == {"id": HSV, "name": "HSV", "defaultColor": "brick", "color": "coral"}
        assert merged[1]["id"] == "migraine"


class TestColors:
    def test_used_colors(self):
        labels = [{"id": "a", "color": "iris"}, {"id": "b", "defaultColor": "moss"}, {"id": "c"}]
        assert used_colors(labels) == {"iris", "moss"}
        assert used_colors(labels, exclude_id="a") == {"moss"}

    def test_available_colors_skip_grays_and_used(self):
        tokens = {"gray-100": "#141414", "coral": "#F7AD97", "iris": "#6B6FAE", "accent": "coral"}
        assert available_colors(tokens, [{"id": "x", "color": "iris"}]) == ["coral"]


class TestNameCatalogs:
    def test_remember_name_is_case_insensitive_and_sorted(self):
        names = ["Spironolactone"]
        assert remember_name(names, "estradiol") is True
        assert remember_name(names, "Estradiol") is False
        assert remember_name(names, "") is False
        assert names == ["estradiol", "Spironolactone"]

    def test_records_feed_catalogs(self, tmp_path):
        repo = make_repo(tmp_path)
        records = [
            {"type": HRT, "data": {"treatments": [{"drugName": "Estradiol"}]}},
            {"type": HSV, "data": {"treatments": ["Acyclovir", {"drugName": "Valacyclovir"}]}},
            {"type": WORKOUT, "data": {"workoutType": "Run"}},
            {"type": WORKOUT, "data": {"workoutType": "run"}},
        ]
        assert remember_record_names(repo, "kw", records) == 4
        assert repo.load_drug_names("kw", "hr") == ["Estradiol"]
        assert repo.load_drug_names("kw", "hs") == ["Acyclovir", "Valacyclovir"]
        assert repo.load_workout_types("kw") == ["Run"]
        assert remember_record_names(repo, "kw", records) == 0


class TestAccounts:
    def test_create_account_files(self, tmp_path):
        repo = make_repo(tmp_path)
        assert create_account(repo, "KW") is True

        assert repo.records_path("kw").exists()
        assert repo.load_drug_names("kw", "hr") == []
        assert repo.load_drug_names("kw", "hs") == []
        assert repo.load_workout_types("kw") == []
        labels = repo.load_user_labels("kw")
        assert [l["id"] for l in labels] == [MENTAL_HEALTH]

    def test_uses_global_mental_health_label(self, tmp_path):
        repo = make_repo(tmp_path)
        custom = {"id": MENTAL_HEALTH, "name": "Mood", "abbreviation": "MO", "defaultColor": "sage"}
        repo.save_global_labels([{"id": "period", "name": "Period"}, custom])
        create_account(repo, "kw")
        assert repo.load_user_labels("kw") == [custom]

    def test_create_twice_keeps_data(self, tmp_path):
        repo = make_repo(tmp_path)
        create_account(repo, "kw")
        repo.save_records("kw", one_record("2025-06-01"))
        assert create_account(repo, "kw") is False
        assert repo.load_records("kw") == one_record("2025-06-01")

    def test_account_colors(self, tmp_path):
        repo = make_repo(tmp_path)
        create_account(repo, "kw")
        colors = account_colors(repo, "kw")
        assert colors["used"] == ["steel"]
        assert "steel" not in colors["available"]
        assert "coral" in colors["available"]
