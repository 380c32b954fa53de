"""CSV rendering for the manager export downloads."""
import csv
import io
from datetime import date, datetime

from flask import Response

# The writer quotes any field containing a character of its line terminator
LINE_END = '\r\n'


def format_csv_value(value):
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value)) if abs(value) < 1e15 else repr(value)
    return str(value)


def render_csv_row(fields):
    """Render one row; fields containing a comma, quote or newline are quoted
    with embedded quotes doubled."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator=LINE_END)
    values = [format_csv_value(field) for field in fields]
    # The writer emits "" for a row holding a single empty field
    if values == ['']:
        return ''
    writer.writerow(values)
    return buf.getvalue()[:-len(LINE_END)]


def render_csv(header, rows):
    lines = [render_csv_row(header)]
    lines.extend(render_csv_row(row) for row in rows)
    return '\n'.join(lines) + '\n'


def csv_response(filename, header, rows):
    return Response(
        render_csv(header, rows),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
