"""
Record Store for Chrona.

A user's records are kept as a date-keyed mapping:

    {"2025-06-01": [{"id": "...", "type": "period", "data": {...}}, ...]}

A record logged over a date range appears, with the same id, in every date
bucket of that range. This module handles:
- Expanding a ranged record into its date buckets (add and edit)
- Removing records from a range by id or by type
- Overwriting the sub-records of a day for multi-entry types (HRT, workouts)
- Validating record payloads before they reach the store

All functions work on the in-memory mapping; loading and saving the file is
done by chrona.storage.
"""

import copy
import random
import string
import time
from datetime import date, datetime, timedelta
from typing import Iterator, Optional


# ============================================================
# RECORD TYPES
# ============================================================

PERIOD = 'period'
HRT = 'hormone-replacement-therapy'
HSV = 'hsv'
MENTAL_HEALTH = 'mental-health'
WORKOUT = 'workout'

KNOWN_TYPES = [PERIOD, HRT, HSV, MENTAL_HEALTH, WORKOUT]

# Types that allow several sub-records on the same day
MULTI_ENTRY_TYPES = [HRT, WORKOUT]

PERIOD_INTENSITY = ['Heavy', 'Medium', 'Lite', 'Spotting']
HSV_SEVERITY = ['Bad', 'Medium', 'Mild']

DATE_FORMAT = '%Y-%m-%d'


class RecordValidationError(ValueError):
    """Raised when a record payload does not match its type."""


# ============================================================
# DATES AND IDS
# ============================================================

def parse_date(value) -> date:
    """
    Turn a date, datetime or "YYYY-MM-DD" string into a date.

    Raises:
        RecordValidationError: if the value can't be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            # Accept full ISO timestamps from the browser too
            return datetime.strptime(value[:10], DATE_FORMAT).date()
        except ValueError:
            pass
    raise RecordValidationError(f"Invalid date: {value!r}")


def date_key(value) -> str:
    """Return the bucket key ("YYYY-MM-DD") for a date."""
    return parse_date(value).isoformat()


def date_range(start_date, end_date) -> list:
    """
    List every date from start_date to end_date, inclusive.

    An inverted range returns an empty list.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    days = (end - start).days
    return [start + timedelta(days=i) for i in range(days + 1)]


def check_range(start_date, end_date) -> tuple:
    """
    Parse a date range entered by a user and reject it if it is inverted.

    The store itself writes nothing for an inverted range; callers that take
    dates from a person use this so the mistake is reported instead.

    Returns:
        (start, end) as dates

    Raises:
        RecordValidationError: if a date is invalid or start is after end
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start > end:
        raise RecordValidationError(f"Start date {start} is after end date {end}")
    return start, end


def generate_record_id() -> str:
    """
    Create a new record id: millisecond timestamp plus a random suffix.

    Example: "1717236000000-k3j9x0a2b"
    """
    alphabet = string.ascii_lowercase + string.digits
    suffix = ''.join(random.choice(alphabet) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


# ============================================================
# PAYLOAD VALIDATION
# ============================================================

def _is_number(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def _check_bool(data: dict, field: str, errors: list):
    if field in data and not isinstance(data[field], bool):
        errors.append(f"{field} must be true or false")


def _check_str(data: dict, field: str, errors: list, choices: list = None):
    if field not in data or data[field] is None:
        return
    value = data[field]
    if not isinstance(value, str):
        errors.append(f"{field} must be a string")
    elif choices and value and value not in choices:
        errors.append(f"{field} must be one of: {', '.join(choices)}")


def _validate_period(data: dict, errors: list):
    _check_str(data, 'intensity', errors, PERIOD_INTENSITY)


def _validate_hrt(data: dict, errors: list):
    treatments = data.get('treatments', [])
    if not isinstance(treatments, list):
        errors.append("treatments must be a list")
        treatments = []

    for i, treatment in enumerate(treatments, 1):
        if not isinstance(treatment, dict):
            errors.append(f"treatment {i} must be an object")
            continue
        name = treatment.get('drugName')
        if not isinstance(name, str) or not name.strip():
            errors.append(f"treatment {i} needs a drugName")
        for field in ('dose', 'frequency'):
            value = treatment.get(field)
            if value not in (None, '') and not _is_number(value):
                errors.append(f"treatment {i} {field} must be a number")
        for field in ('doseUnit', 'frequencyUnit'):
            _check_str(treatment, field, errors)

    for flag in ('repeatForward', 'includePlacebo', 'headache'):
        _check_bool(data, flag, errors)


def _validate_hsv(data: dict, errors: list):
    _check_bool(data, 'hadBreakout', errors)
    _check_bool(data, 'repeatForward', errors)
    _check_str(data, 'severity', errors, HSV_SEVERITY)

    locations = data.get('locations', [])
    if not isinstance(locations, list) or not all(isinstance(l, str) for l in locations):
        errors.append("locations must be a list of strings")

    treatments = data.get('treatments', [])
    if not isinstance(treatments, list):
        errors.append("treatments must be a list")
    else:
        for t in treatments:
            if isinstance(t, str):
                continue
            if isinstance(t, dict) and isinstance(t.get('drugName'), str):
                continue
            errors.append("treatments must be drug names or objects with a drugName")
            break


def _validate_mental_health(data: dict, errors: list):
    _check_str(data, 'mood', errors)
    _check_str(data, 'notes', errors)


def _validate_workout(data: dict, errors: list):
    workout_type = data.get('workoutType')
    if not isinstance(workout_type, str) or not workout_type.strip():
        errors.append("workoutType is required")

    duration = data.get('duration')
    if duration not in (None, ''):
        if not _is_number(duration) or float(duration) < 0:
            errors.append("duration must be a non-negative number")
    _check_str(data, 'durationUnit', errors)


VALIDATORS = {
    PERIOD: _validate_period,
    HRT: _validate_hrt,
    HSV: _validate_hsv,
    MENTAL_HEALTH: _validate_mental_health,
    WORKOUT: _validate_workout,
}


def validate_record(record_type: str, data) -> dict:
    """
    Check a record payload against the schema for its type.

    Custom (user-defined) types only need an object payload.

    Args:
        record_type: The record type, e.g. "period"
        data: The type-specific payload

    Returns:
        The payload (an empty dict when None was given)

    Raises:
        RecordValidationError: listing every problem found
    """
    if not isinstance(record_type, str) or not record_type.strip():
        raise RecordValidationError("type is required")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RecordValidationError("data must be an object")

    errors = []
    validator = VALIDATORS.get(record_type)
    if validator:
        validator(data, errors)

    if errors:
        raise RecordValidationError(f"Invalid {record_type} record: " + '; '.join(errors))
    return data


def make_record(record_type: str, data: dict = None, record_id: str = None) -> dict:
    """Build a validated record dict, generating an id if needed."""
    data = validate_record(record_type, data)
    return {
        'id': record_id or generate_record_id(),
        'type': record_type,
        'data': data,
    }


# ============================================================
# LOOKUPS
# ============================================================

def iter_records(store: dict) -> Iterator[tuple]:
    """Yield (date_key, record) pairs in ascending date order."""
    for day in sorted(store):
        for record in store[day]:
            yield day, record


def records_on(store: dict, on_date, record_type: str = None) -> list:
    """Get the records on one date, optionally filtered by type."""
    records = store.get(date_key(on_date), [])
    if record_type is None:
        return list(records)
    return [r for r in records if r.get('type') == record_type]


def records_in_range(store: dict, start_date, end_date, record_type: str = None) -> dict:
    """Get the part of the store between two dates (inclusive)."""
    start = date_key(start_date)
    end = date_key(end_date)
    result = {}
    for day in sorted(store):
        if start <= day <= end:
            records = [r for r in store[day]
                       if record_type is None or r.get('type') == record_type]
            if records:
                result[day] = records
    return result


def find_record(store: dict, record_id: str) -> Optional[dict]:
    """Find a record by id. Returns the first copy found, or None."""
    for _, record in iter_records(store):
        if record.get('id') == record_id:
            return record
    return None


def record_span(store: dict, record_id: str) -> Optional[tuple]:
    """
    Find the first and last date a record appears on.

    Returns:
        (start_key, end_key), or None if the id isn't in the store
    """
    days = [day for day, record in iter_records(store) if record.get('id') == record_id]
    if not days:
        return None
    return days[0], days[-1]


def prune_empty_buckets(store: dict) -> dict:
    """Remove date keys whose record list is empty."""
    for day in [d for d, records in store.items() if not records]:
        del store[day]
    return store


# ============================================================
# MUTATIONS
# ============================================================

def remove_record_everywhere(store: dict, record_id: str) -> int:
    """
    Remove every copy of a record id from the whole store.

    Returns:
        Number of entries removed
    """
    removed = 0
    for day in list(store):
        kept = [r for r in store[day] if r.get('id') != record_id]
        removed += len(store[day]) - len(kept)
        store[day] = kept
    prune_empty_buckets(store)
    return removed


def save_record(store: dict, record: dict, start_date, end_date, is_edit: bool = False) -> dict:
    """
    Write a record into every date bucket from start_date to end_date.

    When editing, all existing copies of the record id are removed from the
    entire store first, so a record whose range shrank or moved is relocated.
    Within a bucket, an entry with the same id is replaced in place; otherwise
    the record is appended.

    Args:
        store: The date-keyed record mapping (modified in place)
        record: Dict with 'type', 'data' and optionally 'id'
        start_date: First day of the range
        end_date: Last day of the range (an inverted range writes nothing)
        is_edit: True when updating an existing record

    Returns:
        The saved record (with its id)

    Example:
        save_record(store, {'type': 'period', 'data': {'intensity': 'Medium'}},
                    '2025-06-01', '2025-06-03')
    """
    saved = make_record(record.get('type'), record.get('data'), record.get('id'))

    if is_edit and record.get('id'):
        remove_record_everywhere(store, saved['id'])

    for day in date_range(start_date, end_date):
        bucket = store.setdefault(day.isoformat(), [])
        entry = copy.deepcopy(saved)
        for i, existing in enumerate(bucket):
            if existing.get('id') == saved['id']:
                bucket[i] = entry
                break
        else:
            bucket.append(entry)

    return saved


def delete_records(store: dict, record_type: str, start_date, end_date,
                   record_id: str = None) -> int:
    """
    Delete records from each date in a range.

    If record_id is given, only that record is removed; otherwise every record
    of record_type in the range is removed. Buckets left empty are dropped.

    Returns:
        Number of entries removed (0 when nothing matched)
    """
    removed = 0
    for day in date_range(start_date, end_date):
        key = day.isoformat()
        if key not in store:
            continue

        if record_id:
            kept = [r for r in store[key] if r.get('id') != record_id]
        else:
            kept = [r for r in store[key] if r.get('type') != record_type]

        removed += len(store[key]) - len(kept)
        store[key] = kept

    prune_empty_buckets(store)
    return removed


def save_multi_records(store: dict, record_type: str, on_date, entries: list,
                       is_edit: bool = False) -> list:
    """
    Save several sub-records of one type for a day (HRT, workouts).

    When editing, every record of record_type present on on_date is removed
    first (each from its whole range), then each entry is range-expanded on
    its own. This overwrites the day's records of that type; it does not merge.

    Args:
        store: The date-keyed record mapping (modified in place)
        record_type: Type shared by all entries
        on_date: The day being edited
        entries: List of dicts with 'data' and optional 'startDate', 'endDate', 'id'
        is_edit: True when replacing the day's existing records

    Returns:
        List of saved records

    Raises:
        RecordValidationError: if any entry is invalid; the store is unchanged
    """
    if not isinstance(entries, list):
        raise RecordValidationError("records must be a list")

    # Validate everything before touching the store
    planned = []
    for i, entry in enumerate(entries, 1):
        if not isinstance(entry, dict):
            raise RecordValidationError(f"entry {i} must be an object")
        data = validate_record(record_type, entry.get('data'))
        start = parse_date(entry.get('startDate') or on_date)
        end = parse_date(entry.get('endDate') or start)
        planned.append(({'type': record_type, 'data': data, 'id': entry.get('id')}, start, end))
    on_date = parse_date(on_date)

    if is_edit:
        for existing in records_on(store, on_date, record_type):
            remove_record_everywhere(store, existing['id'])

    return [save_record(store, record, start, end) for record, start, end in planned]


def distinct_records(store: dict, record_type: str = None) -> Iterator[tuple]:
    """
    Yield (first_date_key, record) once per record id, in date order.

    A record logged over a range is stored in every bucket of the range; this
    is how to count it once.
    """
    seen = set()
    for day, record in iter_records(store):
        if record_type is not None and record.get('type') != record_type:
            continue
        if record.get('id') in seen:
            continue
        seen.add(record.get('id'))
        yield day, record


def count_by_type(store: dict) -> dict:
    """Count distinct records (by id) per type."""
    counts = {}
    for _, record in distinct_records(store):
        counts[record.get('type')] = counts.get(record.get('type'), 0) + 1
    return counts
