"""
Flat-file storage for Chrona.

Every piece of state is a JSON file under the public web root:

    data/{u}/records-list-{u}.json        date -> [record, ...]
    data/{u}/records-summary-{u}.json     last computed summary
    data/{u}/label-list-user-{u}.json     user label catalog
    data/{u}/drug-names-hr-{u}.json       HRT drug names
    data/{u}/drug-names-hs-{u}.json       HSV drug names
    data/{u}/workout-type-wo-{u}.json     workout types
    data/events-{u}.json                  calendar events
    data/label-list-global.json           shared default labels
    data/chip-labels.json                 chip bar labels
    design-tokens.json                    global theme

Files are read and written whole. FileRepository keeps that behind a small
load/save interface so the rest of the code never builds paths itself.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path

from . import config


logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r'^[a-z0-9_-]+$')
DRUG_NAME_TYPES = ['hr', 'hs']


class InvalidUsernameError(ValueError):
    """Raised for usernames that can't be used as a folder name."""


class StaleWriteError(Exception):
    """Raised when a save was based on an older version of the file."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Records changed since version {expected} (now {actual})")
        self.expected = expected
        self.actual = actual


# ============================================================
# HELPERS
# ============================================================

def normalize_username(username) -> str:
    """
    Lower-case a username and check it is safe to use in a path.

    Raises:
        InvalidUsernameError: for empty names or names with other characters
    """
    if not isinstance(username, str):
        raise InvalidUsernameError("username is required")
    username = username.strip().lower()
    if not USERNAME_PATTERN.match(username):
        raise InvalidUsernameError(f"Invalid username: {username!r}")
    return username


def to_json(data) -> str:
    """Pretty-print data the way every Chrona file is stored."""
    return json.dumps(data, indent=2, ensure_ascii=False) + '\n'


def records_version(records: dict) -> str:
    """
    Short fingerprint of a record store's content.

    Two stores with the same content have the same version, regardless of
    key order in the file.
    """
    canonical = json.dumps(records or {}, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()[:16]


def read_json(path: Path, default):
    """
    Read a JSON file, falling back to default.

    A missing file is normal (no data yet). A file that can't be read or
    parsed is logged and also treated as empty.
    """
    if not path.exists():
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s, treating it as empty: %s", path, e)
        return default

    if not isinstance(data, type(default)):
        logger.warning("Unexpected content in %s, treating it as empty", path)
        return default
    return data


def write_json(path: Path, data):
    """
    Write data to path atomically (temp file in the same folder, then rename).

    Raises:
        OSError: if the folder can't be created or the file can't be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(to_json(data))
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.remove(tmp)
        logger.error("Failed to write %s", path)
        raise


# ============================================================
# REPOSITORY
# ============================================================

class FileRepository:
    """
    Load and save Chrona's JSON files under one public folder.

    Example usage:
        repo = FileRepository()
        records = repo.load_records("kw")
        repo.save_records("kw", records)
    """

    def __init__(self, public_dir: Path = None):
        self.public_dir = Path(public_dir or config.PUBLIC_DIR)
        self.data_dir = self.public_dir / "data"

    # --- paths ---

    def user_dir(self, username: str) -> Path:
        username = normalize_username(username)
        return self.data_dir / username

    def records_path(self, username: str) -> Path:
        username = normalize_username(username)
        return self.user_dir(username) / f"records-list-{username}.json"

    def summary_path(self, username: str) -> Path:
        username = normalize_username(username)
        return self.user_dir(username) / f"records-summary-{username}.json"

    def user_labels_path(self, username: str) -> Path:
        username = normalize_username(username)
        return self.user_dir(username) / f"label-list-user-{username}.json"

    def drug_names_path(self, username: str, drug_type: str) -> Path:
        username = normalize_username(username)
        if drug_type not in DRUG_NAME_TYPES:
            raise ValueError('Invalid type. Must be "hr" or "hs"')
        return self.user_dir(username) / f"drug-names-{drug_type}-{username}.json"

    def workout_types_path(self, username: str) -> Path:
        username = normalize_username(username)
        return self.user_dir(username) / f"workout-type-wo-{username}.json"

    def events_path(self, username: str) -> Path:
        username = normalize_username(username)
        return self.data_dir / f"events-{username}.json"

    @property
    def global_labels_path(self) -> Path:
        return self.data_dir / "label-list-global.json"

    @property
    def chip_labels_path(self) -> Path:
        return self.data_dir / "chip-labels.json"

    @property
    def tokens_path(self) -> Path:
        return self.public_dir / "design-tokens.json"

    def list_users(self) -> list:
        """Usernames that have a data folder."""
        if not self.data_dir.exists():
            return []
        return sorted(p.name for p in self.data_dir.iterdir()
                      if p.is_dir() and USERNAME_PATTERN.match(p.name))

    # --- records ---

    def load_records(self, username: str) -> dict:
        """Load a user's record store; {} when there is none."""
        return read_json(self.records_path(username), {})

    def records_version(self, username: str) -> str:
        return records_version(self.load_records(username))

    def save_records(self, username: str, records: dict, base_version: str = None) -> str:
        """
        Overwrite a user's record store.

        Dates with no records are left out of the file.

        Args:
            username: Owner of the records
            records: The whole date-keyed mapping
            base_version: Version the caller started from. When given and the
                file has changed since, nothing is written.

        Returns:
            The version of the saved store

        Raises:
            StaleWriteError: if base_version doesn't match the file
            OSError: if the file can't be written
        """
        if base_version is not None:
            current = self.records_version(username)
            if current != base_version:
                raise StaleWriteError(base_version, current)

        records = {day: entries for day, entries in records.items() if entries}
        write_json(self.records_path(username), records)
        version = records_version(records)
        logger.info("Saved %d days of records for %s (version %s)",
                    len(records), normalize_username(username), version)
        return version

    def load_summary(self, username: str) -> dict:
        return read_json(self.summary_path(username), {})

    def save_summary(self, username: str, summary: dict):
        write_json(self.summary_path(username), summary)

    # --- labels and catalogs ---

    def load_user_labels(self, username: str) -> list:
        return read_json(self.user_labels_path(username), [])

    def save_user_labels(self, username: str, labels: list):
        write_json(self.user_labels_path(username), labels)

    def load_global_labels(self) -> list:
        return read_json(self.global_labels_path, [])

    def save_global_labels(self, labels: list):
        write_json(self.global_labels_path, labels)

    def load_chip_labels(self) -> list:
        return read_json(self.chip_labels_path, [])

    def save_chip_labels(self, labels: list):
        write_json(self.chip_labels_path, labels)

    def load_drug_names(self, username: str, drug_type: str) -> list:
        return read_json(self.drug_names_path(username, drug_type), [])

    def save_drug_names(self, username: str, drug_type: str, names: list):
        write_json(self.drug_names_path(username, drug_type), names)

    def load_workout_types(self, username: str) -> list:
        return read_json(self.workout_types_path(username), [])

    def save_workout_types(self, username: str, workout_types: list):
        write_json(self.workout_types_path(username), workout_types)

    def load_events(self, username: str) -> list:
        return read_json(self.events_path(username), [])

    def save_events(self, username: str, events: list):
        write_json(self.events_path(username), events)

    # --- design tokens ---

    def load_tokens(self):
        """Raw token file content, or None when the file doesn't exist."""
        data = read_json(self.tokens_path, {})
        return data or None

    def save_tokens(self, tokens: dict):
        write_json(self.tokens_path, tokens)
