"""
Flask web application for Chrona.

Serves the JSON files the calendar front end reads, and the endpoints it
posts to when something changes. Every save rewrites the whole file.

Run with: python -m web.app
Or use: chrona web start
"""

import logging

from flask import Flask, request, jsonify, send_from_directory, abort

from chrona import config
from chrona.storage import FileRepository, InvalidUsernameError, StaleWriteError, records_version
from chrona.records import (
    RecordValidationError,
    check_range,
    save_record,
    delete_records,
    save_multi_records,
    find_record,
)
from chrona.summary import build_summary
from chrona.labels import create_account, remember_record_names
from chrona.tokens import apply_renames, save_tokens, validate_tokens


logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config['PUBLIC_DIR'] = config.PUBLIC_DIR
app.config['SOURCE_DIR'] = config.SOURCE_DIR


def get_repo() -> FileRepository:
    """Repository for the configured public folder."""
    return FileRepository(app.config['PUBLIC_DIR'])


# ============================================================
# RESPONSE HELPERS
# ============================================================

def ok(message: str, status: int = 200, **extra):
    body = {'success': True, 'message': message}
    body.update(extra)
    return jsonify(body), status


def fail(error: str, status: int):
    return jsonify({'success': False, 'error': error}), status


def json_body() -> dict:
    """The request's JSON object, or {} if the body isn't one."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require(data: dict, *fields):
    """Return an error response if any field is missing, else None."""
    if all(field in data and data[field] is not None for field in fields):
        return None
    names = ', '.join(fields[:-1]) + ' and ' + fields[-1] if len(fields) > 1 else fields[0]
    return fail(f"{names} {'are' if len(fields) > 1 else 'is'} required", 400)


def write(action, what: str, message: str, **extra):
    """
    Run a save and turn its outcome into a response.

    Args:
        action: Callable doing the write
        what: Name used in the error message ("records", "labels", ...)
        message: Success message
    """
    try:
        result = action()
    except ValueError as e:
        return fail(str(e), 400)
    except StaleWriteError as e:
        return fail(str(e), 409)
    except OSError as e:
        logger.error("Failed to save %s: %s", what, e)
        return fail(f"Failed to save {what}", 500)
    if isinstance(result, dict):
        extra.update(result)
    return ok(message, **extra)


# ============================================================
# CORS AND ERRORS
# ============================================================

@app.after_request
def add_cors_headers(response):
    """Let the front end call the API from its dev server."""
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({'error': 'Method not allowed'}), 405


@app.errorhandler(404)
def not_found(e):
    return jsonify({'error': 'Not found'}), 404


# ============================================================
# READS - STATIC JSON FILES
# ============================================================

@app.route('/data/<path:filename>')
def data_file(filename):
    """
    Serve a stored JSON file.

    The ?t= cache-busting parameter the front end adds is ignored.
    """
    if not filename.endswith('.json'):
        abort(404)
    response = send_from_directory(get_repo().data_dir, filename, max_age=0)
    response.headers['Cache-Control'] = 'no-store'
    return response


@app.route('/design-tokens.json')
def design_tokens_file():
    """Serve the global design token file."""
    repo = get_repo()
    response = send_from_directory(repo.public_dir, repo.tokens_path.name, max_age=0)
    response.headers['Cache-Control'] = 'no-store'
    return response


# ============================================================
# SAVE ENDPOINTS - WHOLE FILE WRITES
# ============================================================

@app.route('/api/save_records.php', methods=['POST'])
def save_records_endpoint():
    """Overwrite a user's record store. Optional baseVersion rejects stale writes."""
    data = json_body()
    error = require(data, 'username', 'records')
    if error:
        return error
    if not isinstance(data['records'], dict):
        return fail("records must be an object keyed by date", 400)

    def action():
        version = get_repo().save_records(data['username'], data['records'],
                                          base_version=data.get('baseVersion'))
        return {'version': version}

    return write(action, 'records', 'Records saved successfully')


@app.route('/api/save_records_summary.php', methods=['POST'])
def save_records_summary_endpoint():
    """Store a records summary computed by the client."""
    data = json_body()
    error = require(data, 'username', 'summary')
    if error:
        return error
    return write(lambda: get_repo().save_summary(data['username'], data['summary']),
                 'records summary', 'Records summary saved successfully')


@app.route('/api/save_user_labels.php', methods=['POST'])
def save_user_labels_endpoint():
    """Overwrite a user's label catalog."""
    data = json_body()
    error = require(data, 'username', 'labels')
    if error:
        return error
    return write(lambda: get_repo().save_user_labels(data['username'], data['labels']),
                 'labels', 'Labels saved successfully')


@app.route('/api/save_drug_names.php', methods=['POST'])
def save_drug_names_endpoint():
    """Overwrite a user's HRT ("hr") or HSV ("hs") drug name list."""
    data = json_body()
    error = require(data, 'username', 'type', 'drugNames')
    if error:
        return error
    return write(lambda: get_repo().save_drug_names(data['username'], data['type'], data['drugNames']),
                 'drug names', 'Drug names saved successfully')


@app.route('/api/save_workout_types.php', methods=['POST'])
def save_workout_types_endpoint():
    """Overwrite a user's workout type list."""
    data = json_body()
    error = require(data, 'username', 'workoutTypes')
    if error:
        return error
    return write(lambda: get_repo().save_workout_types(data['username'], data['workoutTypes']),
                 'workout types', 'Workout types saved successfully')


@app.route('/api/save_events.php', methods=['POST'])
def save_events_endpoint():
    """Overwrite a user's calendar events."""
    data = json_body()
    error = require(data, 'username', 'events')
    if error:
        return error
    return write(lambda: get_repo().save_events(data['username'], data['events']),
                 'events', 'Events saved successfully')


@app.route('/api/save_global_labels.php', methods=['POST'])
def save_global_labels_endpoint():
    """Overwrite the shared default label catalog."""
    data = json_body()
    error = require(data, 'labels')
    if error:
        return error
    return write(lambda: get_repo().save_global_labels(data['labels']),
                 'global labels', 'Global labels saved successfully')


@app.route('/api/save_chip_labels.php', methods=['POST'])
def save_chip_labels_endpoint():
    """Overwrite the chip bar labels."""
    data = json_body()
    error = require(data, 'labels')
    if error:
        return error
    return write(lambda: get_repo().save_chip_labels(data['labels']),
                 'chip labels', 'Chip labels saved successfully')


@app.route('/api/save_design_tokens.php', methods=['POST'])
def save_design_tokens_endpoint():
    """
    Save the design tokens.

    Optional renames ([{"from": old, "to": new}, ...]) are applied to the
    token references and, best effort, to the front-end sources.
    """
    data = json_body()
    error = require(data, 'tokens')
    if error:
        return error

    renames = data.get('renames') or []
    tokens = data['tokens']
    try:
        if isinstance(tokens, dict):
            problems = validate_tokens(apply_renames(dict(tokens), renames))
        else:
            problems = validate_tokens(tokens)
    except ValueError as e:
        return fail(str(e), 400)
    if problems:
        return fail('; '.join(problems), 400)

    def action():
        saved = save_tokens(get_repo(), tokens, renames, app.config.get('SOURCE_DIR'))
        return {'tokens': saved}

    return write(action, 'design tokens', 'Design tokens saved successfully')


# ============================================================
# RECORD API - VALIDATED SAVES WITH REFETCH
# ============================================================

def _record_response(repo, username: str, message: str, **extra):
    """Reply with the fresh store so the client can refresh without a reload."""
    records = repo.load_records(username)
    return ok(message, records=records, version=records_version(records), **extra)


@app.route('/api/records/<username>', methods=['GET'])
def records_get(username):
    """Get a user's records and their version."""
    repo = get_repo()
    try:
        records = repo.load_records(username)
    except InvalidUsernameError as e:
        return fail(str(e), 400)
    return jsonify({'records': records, 'version': records_version(records)})


@app.route('/api/records/<username>', methods=['POST'])
def records_save(username):
    """
    Save one record over a date range.

    Body: {type, startDate, endDate, data, id?, baseVersion?}
    With an id the existing record is moved/updated; without one it is added.
    """
    data = json_body()
    error = require(data, 'type', 'startDate', 'endDate')
    if error:
        return error

    repo = get_repo()
    is_edit = bool(data.get('id'))

    try:
        check_range(data['startDate'], data['endDate'])
        records = repo.load_records(username)
        if is_edit and find_record(records, data['id']) is None:
            return fail(f"Record {data['id']} not found", 404)
        record = save_record(records, data, data['startDate'], data['endDate'], is_edit=is_edit)
        repo.save_records(username, records, base_version=data.get('baseVersion'))
        remember_record_names(repo, username, [record])
    except (InvalidUsernameError, RecordValidationError) as e:
        return fail(str(e), 400)
    except StaleWriteError as e:
        return fail(str(e), 409)
    except OSError as e:
        logger.error("Failed to save record for %s: %s", username, e)
        return fail("Failed to save records", 500)

    return _record_response(repo, username, 'Record updated' if is_edit else 'Record added',
                            record=record)


@app.route('/api/records/<username>/delete', methods=['POST'])
def records_delete(username):
    """
    Delete records from a date range.

    Body: {type, startDate, endDate, id?, baseVersion?}
    Without an id every record of the type in the range is removed.
    """
    data = json_body()
    error = require(data, 'type', 'startDate', 'endDate')
    if error:
        return error

    repo = get_repo()
    try:
        check_range(data['startDate'], data['endDate'])
        records = repo.load_records(username)
        removed = delete_records(records, data['type'], data['startDate'], data['endDate'],
                                 record_id=data.get('id'))
        repo.save_records(username, records, base_version=data.get('baseVersion'))
    except (InvalidUsernameError, RecordValidationError) as e:
        return fail(str(e), 400)
    except StaleWriteError as e:
        return fail(str(e), 409)
    except OSError as e:
        logger.error("Failed to delete records for %s: %s", username, e)
        return fail("Failed to save records", 500)

    return _record_response(repo, username, f"Removed {removed} entries", removed=removed)


@app.route('/api/records/<username>/multi', methods=['POST'])
def records_save_multi(username):
    """
    Save several sub-records of one type for a day (HRT, workouts).

    Body: {type, date, records: [{data, startDate?, endDate?}], isEdit?, baseVersion?}
    When editing, the day's existing records of that type are replaced.
    """
    data = json_body()
    error = require(data, 'type', 'date', 'records')
    if error:
        return error
    if not isinstance(data['records'], list):
        return fail("records must be a list", 400)

    repo = get_repo()
    try:
        for entry in data['records']:
            if isinstance(entry, dict) and entry.get('startDate') and entry.get('endDate'):
                check_range(entry['startDate'], entry['endDate'])
        records = repo.load_records(username)
        saved = save_multi_records(records, data['type'], data['date'], data['records'],
                                   is_edit=bool(data.get('isEdit')))
        repo.save_records(username, records, base_version=data.get('baseVersion'))
        remember_record_names(repo, username, saved)
    except (InvalidUsernameError, RecordValidationError) as e:
        return fail(str(e), 400)
    except StaleWriteError as e:
        return fail(str(e), 409)
    except OSError as e:
        logger.error("Failed to save records for %s: %s", username, e)
        return fail("Failed to save records", 500)

    return _record_response(repo, username, f"Saved {len(saved)} records", saved=saved)


@app.route('/api/summary/<username>')
def summary_get(username):
    """Compute a user's summary from their records and store a copy."""
    repo = get_repo()
    try:
        summary = build_summary(repo.load_records(username))
    except InvalidUsernameError as e:
        return fail(str(e), 400)

    try:
        repo.save_summary(username, summary)
    except OSError as e:
        # The summary is still returned; only the cached copy is stale
        logger.warning("Could not store summary for %s: %s", username, e)

    return jsonify(summary)


@app.route('/api/accounts', methods=['POST'])
def account_create():
    """Create the starting files for a new user."""
    data = json_body()
    error = require(data, 'username')
    if error:
        return error

    def action():
        return {'created': create_account(get_repo(), data['username'])}

    return write(action, 'account', 'Account ready')


# ============================================================
# RUN SERVER
# ============================================================

def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the Flask development server."""
    host = host or config.WEB_HOST
    port = port or config.WEB_PORT

    print(f"\n{'='*50}")
    print("  CHRONA WEB SERVER")
    print(f"{'='*50}")
    print(f"\n  Local:   http://localhost:{port}")
    print(f"  Data:    {app.config['PUBLIC_DIR']}")
    print(f"\n  Press Ctrl+C to stop\n")

    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    config.setup_logging()
    run_server(debug=True)
