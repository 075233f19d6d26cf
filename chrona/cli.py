"""
Command-line interface for Chrona.

Usage:
    chrona user create <name>          - Create the data files for a new user
    chrona user list                   - List users with data

    chrona record add <user>           - Log a record over a date range
    chrona record edit <user> <id>     - Change a record's dates or details
    chrona record delete <user>        - Delete records by id or by type
    chrona record list <user>          - Show recent records
    chrona record show <user> <id>     - Show one record and its date range

    chrona summary <user>              - Periods, outbreaks, treatment, mood, streak
    chrona label list|add|edit|remove  - Manage a user's labels
    chrona tokens show|rename          - Inspect or rename design tokens
    chrona export csv|excel|pdf <user> - Export records to a file
    chrona web start                   - Run the web server
    chrona backup create|restore|list  - Back up the data folder

The CLI uses Click, a Python library for building command-line tools.
"""

import json
import shutil
from datetime import date, datetime, timedelta
from pathlib import Path

import click
from tabulate import tabulate

from . import config
from .storage import FileRepository, InvalidUsernameError, StaleWriteError
from .records import (
    KNOWN_TYPES,
    RecordValidationError,
    check_range,
    save_record,
    delete_records,
    find_record,
    record_span,
    records_in_range,
    iter_records,
    count_by_type,
    parse_date,
)
from .summary import build_summary
from .labels import (
    LabelError,
    add_label,
    update_label,
    remove_label,
    merge_labels,
    create_account,
    label_name,
    label_color,
    account_colors,
    remember_record_names,
)
from .tokens import load_tokens, resolve_token, resolve_all, save_tokens, is_primitive
from .export import EXPORTERS, describe_record


def get_repo(ctx: click.Context) -> FileRepository:
    return ctx.obj['repo']


def parse_data_option(data: str) -> dict:
    """Read the --data JSON option."""
    if not data:
        return {}
    try:
        value = json.loads(data)
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data")
    if not isinstance(value, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return value


def load_or_fail(repo: FileRepository, username: str) -> dict:
    try:
        return repo.load_records(username)
    except InvalidUsernameError as e:
        raise click.ClickException(str(e))


def save_or_fail(repo: FileRepository, username: str, records: dict, base_version: str = None):
    try:
        return repo.save_records(username, records, base_version=base_version)
    except StaleWriteError as e:
        raise click.ClickException(f"{e}. Run the command again.")
    except OSError as e:
        raise click.ClickException(f"Failed to save records: {e}")


def range_or_fail(start_date, end_date):
    try:
        return check_range(start_date, end_date)
    except RecordValidationError as e:
        raise click.BadParameter(str(e), param_hint="--start/--end")


def load_labels_or_fail(repo: FileRepository, username: str) -> list:
    try:
        return repo.load_user_labels(username)
    except InvalidUsernameError as e:
        raise click.ClickException(str(e))


# ============================================================
# MAIN CLI GROUP
# ============================================================

@click.group()
@click.version_option(version="0.1.0", prog_name="Chrona")
@click.option("--public-dir", type=click.Path(file_okay=False), default=None,
              help="Folder holding design-tokens.json and data/ (default: CHRONA_PUBLIC_DIR)")
@click.option("--log-level", default=None, help="Logging level (default: CHRONA_LOG_LEVEL)")
@click.pass_context
def cli(ctx, public_dir, log_level):
    """
    Chrona - health and cycle tracking calendar

    Log periods, HRT, HSV outbreaks, mood and workouts.
    """
    config.setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj['repo'] = FileRepository(public_dir or config.PUBLIC_DIR)


# ============================================================
# USER COMMANDS
# ============================================================

@cli.group()
def user():
    """Manage user accounts."""
    pass


@user.command("create")
@click.argument("username")
@click.pass_context
def user_create(ctx, username):
    """Create the starting data files for USERNAME."""
    repo = get_repo(ctx)
    try:
        created = create_account(repo, username)
    except InvalidUsernameError as e:
        raise click.ClickException(str(e))

    if created:
        click.echo(f"\n✓ Created account: {username.lower()}")
        click.echo(f"  Data folder: {repo.user_dir(username)}\n")
    else:
        click.echo(f"\nAccount '{username.lower()}' already exists. Missing files were added.\n")


@user.command("list")
@click.pass_context
def user_list(ctx):
    """List users that have a data folder."""
    repo = get_repo(ctx)
    users = repo.list_users()
    if not users:
        click.echo("No users found. Use 'chrona user create' to add one.")
        return

    table_data = []
    for name in users:
        records = repo.load_records(name)
        days = sorted(records)
        total = sum(count_by_type(records).values())
        table_data.append([name, total, len(days), days[0] if days else "-", days[-1] if days else "-"])

    click.echo()
    click.echo(tabulate(table_data, headers=["User", "Records", "Days", "First", "Last"],
                        tablefmt="simple"))
    click.echo()


# ============================================================
# RECORD COMMANDS
# ============================================================

@cli.group()
def record():
    """Log, edit and delete records."""
    pass


@record.command("add")
@click.argument("username")
@click.option("--type", "-t", "record_type", required=True,
              help=f"Record type ({', '.join(KNOWN_TYPES)} or a custom label id)")
@click.option("--start", "-s", "start_date", default=None, help="Start date YYYY-MM-DD (default: today)")
@click.option("--end", "-e", "end_date", default=None, help="End date YYYY-MM-DD (default: start)")
@click.option("--data", "-d", default=None, help='Details as JSON, e.g. \'{"intensity": "Medium"}\'')
@click.pass_context
def record_add(ctx, username, record_type, start_date, end_date, data):
    """
    Log a record for USERNAME over a date range.

    Examples:
        chrona record add kw -t period -s 2025-06-01 -e 2025-06-05 -d '{"intensity": "Medium"}'
        chrona record add kw -t mental-health -d '{"mood": "smile"}'
    """
    repo = get_repo(ctx)
    start_date = start_date or date.today().isoformat()
    end_date = end_date or start_date
    range_or_fail(start_date, end_date)

    records = load_or_fail(repo, username)
    version = repo.records_version(username)
    try:
        saved = save_record(records, {'type': record_type, 'data': parse_data_option(data)},
                            start_date, end_date)
    except RecordValidationError as e:
        raise click.ClickException(str(e))

    save_or_fail(repo, username, records, base_version=version)
    remember_record_names(repo, username, [saved])

    click.echo(f"\n✓ Logged: {record_type}")
    click.echo(f"  Dates: {start_date} to {end_date}")
    click.echo(f"  ID: {saved['id']}\n")


@record.command("edit")
@click.argument("username")
@click.argument("record_id")
@click.option("--start", "-s", "start_date", default=None, help="New start date")
@click.option("--end", "-e", "end_date", default=None, help="New end date")
@click.option("--data", "-d", default=None, help="New details as JSON (replaces the old ones)")
@click.pass_context
def record_edit(ctx, username, record_id, start_date, end_date, data):
    """
    Change a record's date range or details.

    Dates that aren't given keep their current value.

    Examples:
        chrona record edit kw 1717236000000-k3j9x0a2b -d '{"intensity": "Heavy"}'
        chrona record edit kw 1717236000000-k3j9x0a2b -e 2025-06-02
    """
    repo = get_repo(ctx)
    records = load_or_fail(repo, username)
    version = repo.records_version(username)

    existing = find_record(records, record_id)
    if existing is None:
        raise click.ClickException(f"Record '{record_id}' not found.")

    old_start, old_end = record_span(records, record_id)
    start_date = start_date or old_start
    end_date = end_date or old_end
    range_or_fail(start_date, end_date)

    updated = {
        'id': record_id,
        'type': existing['type'],
        'data': parse_data_option(data) if data is not None else existing.get('data'),
    }
    try:
        save_record(records, updated, start_date, end_date, is_edit=True)
    except RecordValidationError as e:
        raise click.ClickException(str(e))

    save_or_fail(repo, username, records, base_version=version)
    click.echo(f"\n✓ Updated record {record_id}")
    click.echo(f"  Dates: {start_date} to {end_date}\n")


@record.command("delete")
@click.argument("username")
@click.option("--id", "record_id", default=None, help="Delete this record (its whole range)")
@click.option("--type", "-t", "record_type", default=None, help="Delete all records of this type")
@click.option("--start", "-s", "start_date", default=None, help="Start of the range (with --type)")
@click.option("--end", "-e", "end_date", default=None, help="End of the range (default: start)")
@click.pass_context
def record_delete(ctx, username, record_id, record_type, start_date, end_date):
    """
    Delete a record by id, or all records of a type in a date range.

    Examples:
        chrona record delete kw --id 1717236000000-k3j9x0a2b
        chrona record delete kw -t workout -s 2025-06-01 -e 2025-06-07
    """
    repo = get_repo(ctx)
    records = load_or_fail(repo, username)
    version = repo.records_version(username)

    if record_id:
        span = record_span(records, record_id)
        if span is None:
            click.echo(f"Record '{record_id}' not found.")
            return
        existing = find_record(records, record_id)
        removed = delete_records(records, existing['type'], span[0], span[1], record_id=record_id)
    elif record_type and start_date:
        range_or_fail(start_date, end_date or start_date)
        removed = delete_records(records, record_type, start_date, end_date or start_date)
    else:
        raise click.UsageError("Give --id, or --type with --start.")

    save_or_fail(repo, username, records, base_version=version)
    click.echo(f"\n✓ Removed {removed} entries\n")


@record.command("list")
@click.argument("username")
@click.option("--days", "-n", default=30, help="How many days back to show (default: 30)")
@click.option("--type", "-t", "record_type", default=None, help="Only show this type")
@click.pass_context
def record_list(ctx, username, days, record_type):
    """Show records from the last N days."""
    repo = get_repo(ctx)
    records = load_or_fail(repo, username)

    end = date.today()
    start = end - timedelta(days=days - 1)
    window = records_in_range(records, start, end, record_type)

    if not window:
        click.echo(f"No records in the last {days} days.")
        return

    table_data = [
        [day, r.get('type'), describe_record(r), r.get('id')]
        for day, r in iter_records(window)
    ]
    click.echo()
    click.echo(tabulate(table_data, headers=["Date", "Type", "Details", "ID"], tablefmt="simple"))
    click.echo()


@record.command("show")
@click.argument("username")
@click.argument("record_id")
@click.pass_context
def record_show(ctx, username, record_id):
    """Show one record and the dates it covers."""
    repo = get_repo(ctx)
    records = load_or_fail(repo, username)

    existing = find_record(records, record_id)
    if existing is None:
        click.echo(f"Record '{record_id}' not found.")
        return

    start, end = record_span(records, record_id)
    click.echo(f"\n  {existing['type']}  ({record_id})")
    click.echo(f"  ├─ Dates: {start} to {end}")
    click.echo(f"  └─ {describe_record(existing)}\n")


# ============================================================
# SUMMARY COMMAND
# ============================================================

@cli.command("summary")
@click.argument("username")
@click.option("--json", "as_json", is_flag=True, help="Print the raw summary as JSON")
@click.option("--save", is_flag=True, help="Also write records-summary-<user>.json")
@click.pass_context
def summary_cmd(ctx, username, as_json, save):
    """Show periods, outbreaks, treatment, mood and workout streak."""
    repo = get_repo(ctx)
    summary = build_summary(load_or_fail(repo, username))

    if save:
        try:
            repo.save_summary(username, summary)
        except OSError as e:
            raise click.ClickException(f"Failed to save summary: {e}")

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    period = summary['period']
    hsv = summary['hsv']
    hrt = summary['hrt']
    mood = summary['mentalHealth']
    workout = summary['workout']

    click.echo("\n" + "=" * 50)
    click.echo(f"  SUMMARY FOR {username.upper()}")
    click.echo("  " + datetime.now().strftime("%A, %B %d, %Y"))
    click.echo("=" * 50 + "\n")

    if period['periods']:
        click.echo("  Periods")
        rows = [[p['startDate'], p['endDate'], p['duration'], p['cycleLength'] or "-"]
                for p in period['periods'][:6]]
        click.echo(tabulate(rows, headers=["Start", "End", "Days", "Cycle"], tablefmt="simple"))
        click.echo(f"  Average cycle: {period['averageCycleLength'] or '-'} days\n")

    if hsv['outbreaks']:
        click.echo("  HSV outbreaks")
        rows = [[o['startDate'], o['endDate'], o['duration']] for o in hsv['outbreaks'][:6]]
        click.echo(tabulate(rows, headers=["Start", "End", "Days"], tablefmt="simple"))
        click.echo(f"  Per year: {hsv['outbreakFrequency'] or '-'}"
                   f"   Avg days between: {hsv['averageDaysBetweenOutbreaks'] or '-'}\n")

    if hrt['currentTreatment'] is not None:
        names = [t.get('drugName', '?') for t in hrt['currentTreatment'] if isinstance(t, dict)]
        click.echo(f"  HRT: {', '.join(names) or 'no treatments listed'}")
        click.echo(f"  └─ Days on treatment: {hrt['daysOnTreatment']}\n")

    if mood['totalEntries']:
        click.echo(f"  Most common mood: {mood['mostCommonMood'] or '-'}"
                   f" ({mood['totalEntries']} entries)\n")

    click.echo(f"  Workout streak: {workout['currentStreak']} days"
               f" ({workout['totalWorkouts']} workouts logged)\n")


# ============================================================
# LABEL COMMANDS
# ============================================================

@cli.group()
def label():
    """Manage a user's labels."""
    pass


@label.command("list")
@click.argument("username")
@click.pass_context
def label_list(ctx, username):
    """List a user's labels and the free colors."""
    repo = get_repo(ctx)
    labels = merge_labels(repo.load_global_labels(), load_labels_or_fail(repo, username))
    tokens = load_tokens(repo)

    if not labels:
        click.echo("No labels found. Use 'chrona label add' to add one.")
    else:
        table_data = [
            [l.get('id'), label_name(l), l.get('abbreviation', '-'),
             label_color(l) or '-', resolve_token(tokens, label_color(l) or '')]
            for l in labels
        ]
        click.echo()
        click.echo(tabulate(table_data, headers=["ID", "Name", "Abbr", "Color", "Hex"],
                            tablefmt="simple"))

    colors = account_colors(repo, username)
    click.echo(f"\nFree colors: {', '.join(colors['available']) or 'none'}\n")


@label.command("add")
@click.argument("username")
@click.argument("name")
@click.argument("color")
@click.option("--abbreviation", "-a", default=None, help="Short code (default: first two letters)")
@click.pass_context
def label_add(ctx, username, name, color, abbreviation):
    """Add a custom label NAME with COLOR (a design token name)."""
    repo = get_repo(ctx)
    labels = load_labels_or_fail(repo, username)
    tokens = load_tokens(repo)

    if color not in tokens:
        raise click.ClickException(f"Unknown color '{color}'. See 'chrona tokens show'.")
    try:
        new_label = add_label(labels, name, color, abbreviation)
    except LabelError as e:
        raise click.ClickException(str(e))

    repo.save_user_labels(username, labels)
    click.echo(f"\n✓ Added label: {new_label['name']} ({new_label['abbreviation']}, {color})\n")


@label.command("edit")
@click.argument("username")
@click.argument("label_id")
@click.option("--name", "-n", default=None, help="New display name")
@click.option("--abbreviation", "-a", default=None, help="New short code")
@click.option("--color", "-c", default=None, help="New color token")
@click.pass_context
def label_edit(ctx, username, label_id, name, abbreviation, color):
    """Change a label's name, abbreviation or color."""
    repo = get_repo(ctx)
    labels = load_labels_or_fail(repo, username)

    if color is not None and color not in load_tokens(repo):
        raise click.ClickException(f"Unknown color '{color}'. See 'chrona tokens show'.")
    try:
        updated = update_label(labels, label_id, name=name, abbreviation=abbreviation, color=color)
    except LabelError as e:
        raise click.ClickException(str(e))

    repo.save_user_labels(username, labels)
    click.echo(f"\n✓ Updated label: {label_name(updated)}\n")


@label.command("remove")
@click.argument("username")
@click.argument("label_id")
@click.confirmation_option(prompt="Are you sure you want to remove this label?")
@click.pass_context
def label_remove(ctx, username, label_id):
    """Remove a label. Records using it are kept."""
    repo = get_repo(ctx)
    labels = load_labels_or_fail(repo, username)
    if remove_label(labels, label_id):
        repo.save_user_labels(username, labels)
        click.echo(f"Removed label: {label_id}")
    else:
        click.echo(f"Label '{label_id}' not found.")


# ============================================================
# DESIGN TOKEN COMMANDS
# ============================================================

@cli.group()
def tokens():
    """Inspect and rename design tokens."""
    pass


@tokens.command("show")
@click.pass_context
def tokens_show(ctx):
    """List every token and the color it resolves to."""
    all_tokens = load_tokens(get_repo(ctx))
    resolved = resolve_all(all_tokens)
    table_data = [
        [name, value, "primitive" if is_primitive(value) else "semantic", resolved[name]]
        for name, value in all_tokens.items()
    ]
    click.echo()
    click.echo(tabulate(table_data, headers=["Token", "Value", "Kind", "Color"], tablefmt="simple"))
    click.echo()


@tokens.command("rename")
@click.argument("old_name")
@click.argument("new_name")
@click.option("--sources", type=click.Path(file_okay=False), default=None,
              help="Also rewrite --OLD_NAME references in this source folder")
@click.pass_context
def tokens_rename(ctx, old_name, new_name, sources):
    """Rename a token and every reference to it."""
    repo = get_repo(ctx)
    all_tokens = load_tokens(repo)
    if old_name not in all_tokens:
        raise click.ClickException(f"Token '{old_name}' not found.")

    renames = [{'from': old_name, 'to': new_name}]
    saved = save_tokens(repo, all_tokens, renames, Path(sources) if sources else None)
    refs = [name for name, value in saved.items() if value == new_name]
    click.echo(f"\n✓ Renamed {old_name} -> {new_name}")
    if refs:
        click.echo(f"  Updated references: {', '.join(refs)}")
    click.echo()


# ============================================================
# EXPORT COMMANDS
# ============================================================

@cli.command("export")
@click.argument("format", type=click.Choice(sorted(EXPORTERS)))
@click.argument("username")
@click.option("--start", "-s", "start_date", default=None, help="First day to include")
@click.option("--end", "-e", "end_date", default=None, help="Last day to include")
@click.option("--output", "-o", default=None, help="Output file path")
@click.pass_context
def export_cmd(ctx, format, username, start_date, end_date, output):
    """
    Export a user's records to CSV, Excel or PDF.

    Examples:
        chrona export pdf kw
        chrona export csv kw -s 2025-01-01 -e 2025-06-30 -o ~/kw.csv
    """
    repo = get_repo(ctx)
    records = load_or_fail(repo, username)
    try:
        start = parse_date(start_date) if start_date else None
        end = parse_date(end_date) if end_date else None
    except RecordValidationError as e:
        raise click.BadParameter(str(e))

    filepath = EXPORTERS[format](username, records, start, end, Path(output) if output else None)
    click.echo(f"\n✓ Exported: {filepath}\n")


# ============================================================
# WEB SERVER COMMAND
# ============================================================

@cli.group()
def web():
    """Manage the web interface."""
    pass


@web.command("start")
@click.option("--host", "-h", default=None, help="Host to bind to (default: CHRONA_HOST or 0.0.0.0)")
@click.option("--port", "-p", default=None, type=int, help="Port to run on (default: 8002)")
@click.option("--debug", "-d", is_flag=True, help="Run in debug mode")
@click.pass_context
def web_start(ctx, host, port, debug):
    """
    Start the web server.

    Examples:
        chrona web start              # Start on default port 8002
        chrona web start -p 8080      # Start on port 8080
        chrona web start -d           # Start in debug mode (auto-reload)
    """
    from web.app import app, run_server
    app.config['PUBLIC_DIR'] = get_repo(ctx).public_dir
    run_server(host=host, port=port, debug=debug)


# ============================================================
# BACKUP COMMANDS
# ============================================================

@cli.group()
def backup():
    """Backup and restore your data."""
    pass


@backup.command("create")
@click.option("--output", "-o", default=None, help="Output archive path (without .zip)")
@click.pass_context
def backup_create(ctx, output):
    """
    Zip the data folder.

    Examples:
        chrona backup create                    # Auto-named backup in exports/
        chrona backup create -o ~/my_backup     # Custom location
    """
    repo = get_repo(ctx)
    if not repo.data_dir.exists():
        click.echo("No data found to backup.")
        return

    if output is None:
        export_dir = config.EXPORT_DIR
        export_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = export_dir / f"chrona_backup_{timestamp}"

    archive = Path(shutil.make_archive(str(output), 'zip', root_dir=repo.data_dir))
    size_kb = archive.stat().st_size / 1024

    click.echo(f"\n✓ Backup created: {archive}")
    click.echo(f"  Size: {size_kb:.1f} KB\n")


@backup.command("restore")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False))
@click.confirmation_option(prompt="This will overwrite your current data. Continue?")
@click.pass_context
def backup_restore(ctx, backup_file):
    """
    Restore the data folder from a backup zip.

    WARNING: files in the backup replace the current ones!
    """
    repo = get_repo(ctx)

    # Keep a copy of the current data first
    if repo.data_dir.exists():
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safety = repo.public_dir / f"pre_restore_backup_{timestamp}"
        shutil.make_archive(str(safety), 'zip', root_dir=repo.data_dir)
        click.echo(f"  Current data backed up to: {safety}.zip")

    repo.data_dir.mkdir(parents=True, exist_ok=True)
    shutil.unpack_archive(backup_file, repo.data_dir, 'zip')
    click.echo(f"\n✓ Restored from: {backup_file}\n")


@backup.command("list")
def backup_list():
    """List available backups."""
    export_dir = config.EXPORT_DIR
    backups = sorted(export_dir.glob("chrona_backup_*.zip"), reverse=True) if export_dir.exists() else []

    if not backups:
        click.echo("\nNo backups found.\n")
        return

    click.echo("\nAvailable Backups:")
    for b in backups[:10]:
        size_kb = b.stat().st_size / 1024
        mtime = datetime.fromtimestamp(b.stat().st_mtime)
        click.echo(f"  {b.name}  ({size_kb:.1f} KB, {mtime.strftime('%Y-%m-%d %H:%M')})")

    if len(backups) > 10:
        click.echo(f"  ... and {len(backups) - 10} more")
    click.echo()


# ============================================================
# ENTRY POINT
# ============================================================

def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
