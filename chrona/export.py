"""
Export module for Chrona.

Generates reports of a user's records in CSV, Excel, and PDF formats.
Each export covers an optional date window and includes:
- One row per record per day (date, id, type, details)
- The summary rollups (periods, outbreaks, treatment, mood, workouts)
"""

import json
from datetime import date, datetime
from pathlib import Path

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from . import config
from .records import (
    PERIOD, HRT, HSV, MENTAL_HEALTH, WORKOUT,
    iter_records, records_in_range,
)
from .summary import build_summary


COLUMNS = ['date', 'id', 'type', 'details']

SHEET_NAMES = {
    PERIOD: "Period",
    HRT: "HRT",
    HSV: "HSV",
    MENTAL_HEALTH: "Mental Health",
    WORKOUT: "Workouts",
}

HEADER_COLOR = '#4472C4'


def ensure_export_dir(export_dir: Path = None) -> Path:
    """Create export directory if it doesn't exist."""
    export_dir = Path(export_dir or config.EXPORT_DIR)
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir


# ============================================================
# DATA PREPARATION
# ============================================================

def describe_record(record: dict) -> str:
    """
    One-line description of a record's payload.

    Missing fields are shown as "N/A".
    """
    data = record.get('data') or {}
    record_type = record.get('type')

    if record_type == PERIOD:
        return f"Intensity: {data.get('intensity') or 'N/A'}"

    if record_type == HRT:
        parts = []
        for t in data.get('treatments') or []:
            dose = f"{t.get('dose', '')}{t.get('doseUnit', '')}".strip()
            freq = f"every {t.get('frequency')} {t.get('frequencyUnit', '')}".strip() \
                if t.get('frequency') else ''
            parts.append(' '.join(p for p in [t.get('drugName', 'N/A'), dose, freq] if p))
        text = '; '.join(parts) or 'No treatments'
        if data.get('headache'):
            text += ' (headache)'
        return text

    if record_type == HSV:
        if not data.get('hadBreakout'):
            return "No breakout"
        locations = ', '.join(data.get('locations') or []) or 'N/A'
        return f"Breakout, severity {data.get('severity') or 'N/A'}, locations: {locations}"

    if record_type == MENTAL_HEALTH:
        text = f"Mood: {data.get('mood') or 'N/A'}"
        if data.get('notes'):
            text += f" - {data['notes']}"
        return text

    if record_type == WORKOUT:
        return (f"{data.get('workoutType') or 'N/A'}, "
                f"{data.get('duration', 'N/A')} {data.get('durationUnit') or 'min'}")

    return json.dumps(data, sort_keys=True) if data else ''


def records_dataframe(store: dict, start_date: date = None, end_date: date = None) -> pd.DataFrame:
    """
    Flatten a record store into a table, one row per record per day.

    Args:
        store: Date-keyed record mapping
        start_date: First day to include (default: everything)
        end_date: Last day to include (default: everything)
    """
    if start_date or end_date:
        store = records_in_range(store, start_date or date.min, end_date or date.max)

    rows = [
        {
            'date': day,
            'id': record.get('id'),
            'type': record.get('type'),
            'details': describe_record(record),
        }
        for day, record in iter_records(store)
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def summary_rows(summary: dict) -> list:
    """Turn a summary into [metric, value] rows for reports."""
    period = summary['period']
    hsv = summary['hsv']
    hrt = summary['hrt']
    mood = summary['mentalHealth']
    workout = summary['workout']

    def fmt(value):
        return 'N/A' if value is None else str(value)

    last_period = period['lastPeriod']
    last_outbreak = hsv['lastOutbreak']
    treatments = hrt['currentTreatment'] or []

    return [
        ["Last period", f"{last_period['startDate']} to {last_period['endDate']}" if last_period else 'N/A'],
        ["Average cycle length (days)", fmt(period['averageCycleLength'])],
        ["Periods logged", fmt(period['totalPeriods'])],
        ["Last HSV outbreak", last_outbreak['startDate'] if last_outbreak else 'N/A'],
        ["Outbreaks per year", fmt(hsv['outbreakFrequency'])],
        ["Average days between outbreaks", fmt(hsv['averageDaysBetweenOutbreaks'])],
        ["Current treatment", ', '.join(t.get('drugName', '?') for t in treatments
                                        if isinstance(t, dict)) or 'N/A'],
        ["Days on treatment", fmt(hrt['daysOnTreatment'])],
        ["Most common mood", fmt(mood['mostCommonMood'])],
        ["Current workout streak", fmt(workout['currentStreak'])],
        ["Workouts logged", fmt(workout['totalWorkouts'])],
    ]


def _default_filename(username: str, start_date, end_date, ext: str) -> str:
    if start_date or end_date:
        return f"chrona_{username}_{start_date or 'start'}_{end_date or 'end'}.{ext}"
    return f"chrona_{username}_{date.today()}.{ext}"


# ============================================================
# CSV EXPORT
# ============================================================

def export_csv(username: str, store: dict, start_date: date = None, end_date: date = None,
               filepath: Path = None) -> Path:
    """
    Export records to a CSV file.

    Args:
        username: Whose records these are (used in the file name)
        store: Date-keyed record mapping
        start_date: Start of date range (optional)
        end_date: End of date range (optional)
        filepath: Optional custom output path

    Returns:
        Path to the created CSV file
    """
    if filepath is None:
        filepath = ensure_export_dir() / _default_filename(username, start_date, end_date, 'csv')

    df = records_dataframe(store, start_date, end_date)
    df.to_csv(filepath, index=False)
    return Path(filepath)


# ============================================================
# EXCEL EXPORT
# ============================================================

def export_excel(username: str, store: dict, start_date: date = None, end_date: date = None,
                 filepath: Path = None) -> Path:
    """
    Export records to an Excel file with a summary sheet and one sheet per type.

    Returns:
        Path to the created Excel file
    """
    if filepath is None:
        filepath = ensure_export_dir() / _default_filename(username, start_date, end_date, 'xlsx')

    df = records_dataframe(store, start_date, end_date)
    summary = build_summary(store)

    wb = Workbook()

    # Style definitions
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=HEADER_COLOR[1:], end_color=HEADER_COLOR[1:], fill_type="solid")
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def style_sheet(ws):
        """Apply styling to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center')
            cell.border = border

        for row in ws.iter_rows(min_row=2):
            for cell in row:
                cell.border = border

        # Auto-adjust column widths
        for column in ws.columns:
            longest = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
            ws.column_dimensions[column[0].column_letter].width = min(longest + 2, 60)

    wb.remove(wb.active)

    for record_type, type_df in df.groupby('type', sort=True):
        name = SHEET_NAMES.get(record_type, str(record_type))[:31]
        ws = wb.create_sheet(name)
        for r in dataframe_to_rows(type_df.drop(columns=['type']), index=False, header=True):
            ws.append(r)
        style_sheet(ws)

    # Summary sheet
    ws = wb.create_sheet("Summary", 0)
    ws.append(["Chrona Report"])
    ws.append([f"User: {username}"])
    ws.append([f"Period: {start_date or 'first record'} to {end_date or 'last record'}"])
    ws.append([f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}"])
    ws.append([])
    ws.append(["Records logged:", len(df)])
    for row in summary_rows(summary):
        ws.append(row)

    ws['A1'].font = Font(bold=True, size=16)
    ws.column_dimensions['A'].width = 34
    ws.column_dimensions['B'].width = 40

    wb.save(filepath)
    return Path(filepath)


# ============================================================
# PDF EXPORT
# ============================================================

def _table(data: list, widths: list) -> Table:
    table = Table(data, colWidths=widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(HEADER_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
    ]))
    return table


def export_pdf(username: str, store: dict, start_date: date = None, end_date: date = None,
               filepath: Path = None) -> Path:
    """
    Export a summary report and record log to PDF.

    Returns:
        Path to the created PDF file
    """
    if filepath is None:
        filepath = ensure_export_dir() / _default_filename(username, start_date, end_date, 'pdf')

    df = records_dataframe(store, start_date, end_date)
    summary = build_summary(store)

    doc = SimpleDocTemplate(str(filepath), pagesize=letter,
                            rightMargin=72, leftMargin=72,
                            topMargin=72, bottomMargin=72)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=18,
        spaceAfter=30,
    )
    heading_style = ParagraphStyle(
        'CustomHeading',
        parent=styles['Heading2'],
        fontSize=14,
        spaceBefore=20,
        spaceAfter=10,
    )
    cell_style = ParagraphStyle('Cell', parent=styles['Normal'], fontSize=8, leading=10)

    elements = [
        Paragraph(f"Chrona Report: {username}", title_style),
        Paragraph(f"Period: {start_date or 'first record'} to {end_date or 'last record'}",
                  styles['Normal']),
        Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}", styles['Normal']),
        Spacer(1, 20),
        Paragraph("Summary", heading_style),
        _table([["Metric", "Value"]] + summary_rows(summary), [3 * inch, 3 * inch]),
    ]

    for record_type, type_df in df.groupby('type', sort=True):
        elements.append(Paragraph(SHEET_NAMES.get(record_type, str(record_type)), heading_style))
        data = [["Date", "Details"]]
        for _, row in type_df.iterrows():
            data.append([row['date'], Paragraph(str(row['details']), cell_style)])
        elements.append(_table(data, [1.2 * inch, 4.8 * inch]))
        elements.append(Spacer(1, 10))

    doc.build(elements)
    return Path(filepath)


# ============================================================
# FORMAT LOOKUP
# ============================================================

EXPORTERS = {
    'csv': export_csv,
    'excel': export_excel,
    'pdf': export_pdf,
}
