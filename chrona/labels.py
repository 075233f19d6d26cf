"""
Labels and name catalogs for Chrona.

Labels give each record type a display name, a two-letter abbreviation and a
color. There is a global catalog of defaults and a per-user catalog holding
the user's overrides and custom labels. Colors are design token names, and
no two labels in an account may share one.

This module also manages the small suggestion lists kept per user (HRT and
HSV drug names, workout types) and bootstraps the files for a new account.
"""

import logging
import re

from .records import HRT, HSV, WORKOUT, MENTAL_HEALTH
from .tokens import load_tokens, palette_colors


logger = logging.getLogger(__name__)

# Used when the global catalog is missing or has no mental-health label
DEFAULT_MENTAL_HEALTH_LABEL = {
    'id': MENTAL_HEALTH,
    'name': 'Mental Health',
    'abbreviation': 'ID',
    'defaultColor': 'steel',
}


class LabelError(ValueError):
    """Raised for a label that can't be added or changed."""


# ============================================================
# LABEL CATALOGS
# ============================================================

def label_name(label: dict) -> str:
    """A label's display name (user labels may use 'label' instead of 'name')."""
    return label.get('name') or label.get('label') or label.get('id', '')


def label_color(label: dict):
    """A label's color token: the user's choice first, then the default."""
    return label.get('color') or label.get('defaultColor')


def used_colors(labels: list, exclude_id: str = None) -> set:
    """
    Colors already taken by labels in an account.

    Args:
        labels: The account's labels
        exclude_id: Ignore this label (when editing it)
    """
    return {
        label_color(label) for label in labels
        if label.get('id') != exclude_id and label_color(label)
    }


def available_colors(tokens: dict, labels: list) -> list:
    """Palette colors from the design tokens that no label uses yet."""
    taken = used_colors(labels)
    return [name for name in palette_colors(tokens) if name not in taken]


def make_label_id(name: str, labels: list) -> str:
    """Slug a label name into an id that is unique among labels."""
    base = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-') or 'label'
    existing = {label.get('id') for label in labels}
    label_id = base
    n = 2
    while label_id in existing:
        label_id = f"{base}-{n}"
        n += 1
    return label_id


def add_label(labels: list, name: str, color: str, abbreviation: str = None) -> dict:
    """
    Add a custom label to an account's catalog.

    Args:
        labels: The account's labels (modified in place)
        name: Display name
        color: Design token name for the label color
        abbreviation: Short code; defaults to the first two letters

    Returns:
        The new label

    Raises:
        LabelError: if the name is empty or the color is already used
    """
    name = (name or '').strip()
    if not name:
        raise LabelError("Label name is required")
    if not color:
        raise LabelError("Label color is required")
    if color in used_colors(labels):
        raise LabelError(f"Color '{color}' is already used by another label")

    label = {
        'id': make_label_id(name, labels),
        'name': name,
        'abbreviation': (abbreviation or name[:2]).upper(),
        'color': color,
    }
    labels.append(label)
    return label


def update_label(labels: list, label_id: str, name: str = None,
                 abbreviation: str = None, color: str = None) -> dict:
    """
    Change a label's name, abbreviation or color.

    Raises:
        LabelError: if the label doesn't exist or the color is taken
    """
    for label in labels:
        if label.get('id') == label_id:
            break
    else:
        raise LabelError(f"Label '{label_id}' not found")

    if color is not None:
        if color in used_colors(labels, exclude_id=label_id):
            raise LabelError(f"Color '{color}' is already used by another label")
        label['color'] = color
    if name is not None:
        if not name.strip():
            raise LabelError("Label name is required")
        label['name'] = name.strip()
    if abbreviation is not None:
        label['abbreviation'] = abbreviation.upper()
    return label


def remove_label(labels: list, label_id: str) -> bool:
    """Remove a label by id. Returns False if it wasn't there."""
    for i, label in enumerate(labels):
        if label.get('id') == label_id:
            del labels[i]
            return True
    return False


def merge_labels(global_labels: list, user_labels: list) -> list:
    """
    Combine the global catalog with a user's catalog.

    User entries override global ones with the same id; user-only labels are
    added at the end. Only labels the user has are returned.
    """
    defaults = {label.get('id'): label for label in global_labels}
    merged = []
    for label in user_labels:
        base = dict(defaults.get(label.get('id'), {}))
        base.update(label)
        merged.append(base)
    return merged


# ============================================================
# NAME CATALOGS (drug names, workout types)
# ============================================================

def remember_name(names: list, name: str) -> bool:
    """
    Add a name to a suggestion list if it isn't there yet (case-insensitive).

    The list is kept sorted alphabetically.

    Returns:
        True if the list changed
    """
    name = (name or '').strip()
    if not name:
        return False
    if name.lower() in {n.lower() for n in names}:
        return False
    names.append(name)
    names.sort(key=str.lower)
    return True


def names_from_record(record: dict) -> dict:
    """
    Pull the catalog names out of a record payload.

    Returns:
        {'hr': [...], 'hs': [...], 'workout': [...]} with the names found
    """
    data = record.get('data') or {}
    found = {'hr': [], 'hs': [], 'workout': []}
    record_type = record.get('type')

    if record_type == HRT:
        for treatment in data.get('treatments') or []:
            if isinstance(treatment, dict) and treatment.get('drugName'):
                found['hr'].append(treatment['drugName'])
    elif record_type == HSV:
        for treatment in data.get('treatments') or []:
            if isinstance(treatment, str):
                found['hs'].append(treatment)
            elif isinstance(treatment, dict) and treatment.get('drugName'):
                found['hs'].append(treatment['drugName'])
    elif record_type == WORKOUT and data.get('workoutType'):
        found['workout'].append(data['workoutType'])

    return found


def remember_record_names(repo, username: str, records: list) -> int:
    """
    Save any new drug names / workout types used by records.

    Returns:
        Number of names added
    """
    found = {'hr': [], 'hs': [], 'workout': []}
    for record in records:
        for key, names in names_from_record(record).items():
            found[key].extend(names)

    added = 0
    for drug_type in ('hr', 'hs'):
        if not found[drug_type]:
            continue
        catalog = repo.load_drug_names(username, drug_type)
        changed = [remember_name(catalog, n) for n in found[drug_type]]
        if any(changed):
            repo.save_drug_names(username, drug_type, catalog)
            added += sum(changed)

    if found['workout']:
        catalog = repo.load_workout_types(username)
        changed = [remember_name(catalog, n) for n in found['workout']]
        if any(changed):
            repo.save_workout_types(username, catalog)
            added += sum(changed)

    return added


# ============================================================
# ACCOUNT SETUP
# ============================================================

def initial_labels(repo) -> list:
    """The labels a new account starts with: just Mental Health."""
    for label in repo.load_global_labels():
        if label.get('id') == MENTAL_HEALTH:
            return [label]
    logger.warning("No mental-health label in the global catalog, using the built-in one")
    return [dict(DEFAULT_MENTAL_HEALTH_LABEL)]


def create_account(repo, username: str) -> bool:
    """
    Create the data files for a new user.

    Existing files are left alone, so this is safe to run twice.

    Returns:
        True if the account was new
    """
    is_new = not repo.user_dir(username).exists()

    if not repo.user_labels_path(username).exists():
        repo.save_user_labels(username, initial_labels(repo))
    for drug_type in ('hr', 'hs'):
        if not repo.drug_names_path(username, drug_type).exists():
            repo.save_drug_names(username, drug_type, [])
    if not repo.workout_types_path(username).exists():
        repo.save_workout_types(username, [])
    if not repo.records_path(username).exists():
        repo.save_records(username, {})

    if is_new:
        logger.info("Created account files for %s", username)
    return is_new


def account_colors(repo, username: str) -> dict:
    """Used and free label colors for an account."""
    labels = repo.load_user_labels(username)
    tokens = load_tokens(repo)
    return {
        'used': sorted(used_colors(labels)),
        'available': available_colors(tokens, labels),
    }
