"""
Chrona - CLI Tests
Run with: python3 -m pytest tests/
"""

import json
import pytest
from datetime import date, timedelta
from click.testing import CliRunner

from chrona.cli import cli
from chrona.storage import FileRepository
from chrona.records import save_record


@pytest.fixture
def public_dir(tmp_path):
    return tmp_path / "public"


@pytest.fixture
def repo(public_dir):
    return FileRepository(public_dir)


def run(public_dir, *args, **kwargs):
    runner = CliRunner()
    return runner.invoke(cli, ["--public-dir", str(public_dir), *args], **kwargs)


def one_record(day):
    return {day: [{"id": f"r-{day}", "type": "period", "data": {}}]}


class TestUserCommands:
    def test_create_user(self, public_dir, repo):
        result = run(public_dir, "user", "create", "KW")
        assert result.exit_code == 0, result.output
        assert "Created account: kw" in result.output
        assert repo.records_path("kw").exists()

    def test_create_existing_user(self, public_dir):
        run(public_dir, "user", "create", "kw")
        result = run(public_dir, "user", "create", "kw")
        assert "already exists" in result.output

    def test_invalid_username(self, public_dir):
        result = run(public_dir, "user", "create", "../etc")
        assert result.exit_code != 0
        assert "Invalid username" in result.output

    def test_list_users(self, public_dir, repo):
        repo.save_records("kw", one_record("2025-06-01"))
        result = run(public_dir, "user", "list")
        assert "kw" in result.output
        assert "2025-06-01" in result.output


class TestRecordCommands:
    def test_add_record(self, public_dir, repo):
        result = run(public_dir, "record", "add", "kw", "-t", "period",
                     "-s", "2025-06-01", "-e", "2025-06-03", "-d", '{"intensity": "Medium"}')
        assert result.exit_code == 0, result.output
        assert sorted(repo.load_records("kw")) == ["2025-06-01", "2025-06-02", "2025-06-03"]

    def test_add_invalid_record(self, public_dir, repo):
        result = run(public_dir, "record", "add", "kw", "-t", "period",
                     "-s", "2025-06-01", "-d", '{"intensity": "Huge"}')
        assert result.exit_code != 0
        assert "intensity" in result.output
        assert repo.load_records("kw") == {}

    def test_add_bad_json(self, public_dir):
        result = run(public_dir, "record", "add", "kw", "-t", "period", "-d", "{oops")
        assert result.exit_code != 0

    def test_edit_record_dates(self, public_dir, repo):
        store = {}
        saved = save_record(store, {"type": "period", "data": {"intensity": "Lite"}},
                            "2025-06-01", "2025-06-05")
        repo.save_records("kw", store)

        result = run(public_dir, "record", "edit", "kw", saved["id"], "-e", "2025-06-02")
        assert result.exit_code == 0, result.output

        records = repo.load_records("kw")
        assert sorted(records) == ["2025-06-01", "2025-06-02"]
        assert records["2025-06-02"][0]["data"] == {"intensity": "Lite"}

    def test_edit_unknown_record(self, public_dir):
        result = run(public_dir, "record", "edit", "kw", "missing", "-e", "2025-06-02")
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_edit_rejects_start_after_end(self, public_dir, repo):
        store = {}
        saved = save_record(store, {"type": "period", "data": {}}, "2025-06-01", "2025-06-03")
        repo.save_records("kw", store)

        result = run(public_dir, "record", "edit", "kw", saved["id"], "-s", "2025-06-05")
        assert result.exit_code != 0
        assert "after end date" in result.output
        assert repo.load_records("kw") == store

    def test_add_rejects_start_after_end(self, public_dir, repo):
        result = run(public_dir, "record", "add", "kw", "-t", "period",
                     "-s", "2025-06-05", "-e", "2025-06-01")
        assert result.exit_code != 0
        assert "after end date" in result.output
        assert repo.load_records("kw") == {}

    def test_delete_by_id(self, public_dir, repo):
        store = {}
        saved = save_record(store, {"type": "period", "data": {}}, "2025-06-01", "2025-06-03")
        repo.save_records("kw", store)

        result = run(public_dir, "record", "delete", "kw", "--id", saved["id"])
        assert result.exit_code == 0, result.output
        assert "Removed 3 entries" in result.output
        assert repo.load_records("kw") == {}

    def test_delete_needs_target(self, public_dir):
        result = run(public_dir, "record", "delete", "kw")
        assert result.exit_code != 0

    def test_list_recent(self, public_dir, repo):
        store = {}
        save_record(store, {"type": "mental-health", "data": {"mood": "smile"}},
                    date.today(), date.today())
        save_record(store, {"type": "period", "data": {}},
                    date.today() - timedelta(days=90), date.today() - timedelta(days=90))
        repo.save_records("kw", store)

        result = run(public_dir, "record", "list", "kw", "-n", "7")
        assert "Mood: smile" in result.output
        assert "period" not in result.output

    def test_show_record(self, public_dir, repo):
        store = {}
        saved = save_record(store, {"type": "period", "data": {}}, "2025-06-01", "2025-06-03")
        repo.save_records("kw", store)

        result = run(public_dir, "record", "show", "kw", saved["id"])
        assert "2025-06-01 to 2025-06-03" in result.output


class TestSummaryCommand:
    def test_summary_json(self, public_dir, repo):
        store = {}
        save_record(store, {"type": "period", "data": {}}, "2025-01-01", "2025-01-03")
        save_record(store, {"type": "period", "data": {}}, "2025-02-01", "2025-02-03")
        repo.save_records("kw", store)

        result = run(public_dir, "summary", "kw", "--json", "--save")
        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["period"]["averageCycleLength"] == 31.0
        assert repo.load_summary("kw")["period"]["totalPeriods"] == 2

    def test_summary_text(self, public_dir, repo):
        repo.save_records("kw", {})
        result = run(public_dir, "summary", "kw")
        assert result.exit_code == 0, result.output
        assert "SUMMARY FOR KW" in result.output
        assert "Workout streak: 0 days" in result.output

    def test_save_failure_is_reported(self, public_dir, repo):
        repo.data_dir.mkdir(parents=True)
        repo.user_dir("kw").write_text("not a folder")

        result = run(public_dir, "summary", "kw", "--save")
        assert result.exit_code == 1
        assert "Failed to save summary" in result.output
        assert isinstance(result.exception, SystemExit)


class TestLabelAndTokenCommands:
    def test_add_and_list_label(self, public_dir):
        run(public_dir, "user", "create", "kw")
        result = run(public_dir, "label", "add", "kw", "Migraine", "iris")
        assert result.exit_code == 0, result.output

        result = run(public_dir, "label", "list", "kw")
        assert "Migraine" in result.output
        assert "#6B6FAE" in result.output

    def test_used_color_rejected(self, public_dir):
        run(public_dir, "user", "create", "kw")
        result = run(public_dir, "label", "add", "kw", "Migraine", "steel")
        assert result.exit_code != 0
        assert "already used" in result.output

    def test_list_labels_invalid_username(self, public_dir):
        result = run(public_dir, "label", "list", "../etc")
        assert result.exit_code == 1
        assert "Invalid username" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_edit_label(self, public_dir, repo):
        run(public_dir, "user", "create", "kw")
        result = run(public_dir, "label", "edit", "kw", "mental-health", "-n", "Mood", "-c", "sage")
        assert result.exit_code == 0, result.output
        label = repo.load_user_labels("kw")[0]
        assert label["name"] == "Mood"
        assert label["color"] == "sage"

    def test_remove_label(self, public_dir, repo):
        run(public_dir, "user", "create", "kw")
        result = run(public_dir, "label", "remove", "kw", "mental-health", "--yes")
        assert result.exit_code == 0, result.output
        assert repo.load_user_labels("kw") == []

    def test_tokens_show_defaults(self, public_dir):
        result = run(public_dir, "tokens", "show")
        assert "brand-primary" in result.output
        assert "#F7AD97" in result.output

    def test_tokens_rename(self, public_dir, repo):
        result = run(public_dir, "tokens", "rename", "coral", "salmon")
        assert result.exit_code == 0, result.output
        tokens = repo.load_tokens()
        assert tokens["brand-primary"] == "salmon"
        assert "coral" not in tokens


class TestExportAndBackup:
    def test_export_csv(self, public_dir, repo, tmp_path):
        store = {}
        save_record(store, {"type": "period", "data": {"intensity": "Heavy"}}, "2025-06-01", "2025-06-02")
        repo.save_records("kw", store)
        output = tmp_path / "kw.csv"

        result = run(public_dir, "export", "csv", "kw", "-o", str(output))
        assert result.exit_code == 0, result.output
        assert "Intensity: Heavy" in output.read_text()

    def test_backup_and_restore(self, public_dir, repo, tmp_path):
        repo.save_records("kw", one_record("2025-06-01"))
        archive = tmp_path / "backup"

        result = run(public_dir, "backup", "create", "-o", str(archive))
        assert result.exit_code == 0, result.output

        repo.save_records("kw", one_record("2025-07-01"))
        result = run(public_dir, "backup", "restore", str(archive) + ".zip", "--yes")
        assert result.exit_code == 0, result.output
        assert repo.load_records("kw") == one_record("2025-06-01")
