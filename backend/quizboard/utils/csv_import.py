"""CSV parsing for bulk question import.

The expected header is
`text,options,correct_answer,subject,chapter,co,difficulty_level,image_url`
where `options` holds a JSON array inside a single CSV cell. Parsers only
reshape rows into question dictionaries; validation happens in the
service layer exactly as for single question creation.
"""

import io
import csv
import json
from typing import List, Dict
from ..errors import ValidationError

CSV_COLUMNS = ('text', 'options', 'correct_answer', 'subject', 'chapter', 'co', 'difficulty_level', 'image_url')

CSV_TEMPLATE = (
    'text,options,correct_answer,subject,chapter,co,difficulty_level,image_url\n'
    '"What is 2+2?","[""2"",""3"",""4"",""5""]","4","Math","Arithmetic","CO1","easy",""\n'
    '"What is the capital of France?","[""London"",""Paris"",""Berlin"",""Madrid""]","Paris","Geography","Europe","CO2","medium",""\n'
)


def get_csv_template() -> str:
    """Return a two-row example file teachers can start from."""
    return CSV_TEMPLATE


def parse_csv(b: bytes) -> List[Dict]:
    """Parse CSV bytes into question dictionaries.

    Blank lines are skipped. Raises `ValidationError` if the file cannot
    be decoded, the header is missing a column, or an `options` cell is
    not a JSON array.
    """
    try:
        text = b.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        raise ValidationError('CSV file must be UTF-8 encoded') from exc
    if not text.strip():
        raise ValidationError('CSV content is empty')
    reader = csv.DictReader(io.StringIO(text))
    missing = [c for c in CSV_COLUMNS if c not in (reader.fieldnames or [])]
    if missing:
        raise ValidationError(f"CSV header missing columns: {', '.join(missing)}")
    out = []
    for line_no, row in enumerate(reader, start=2):
        if not any((v or '').strip() for v in row.values() if isinstance(v, str)):
            continue
        out.append({
            'text': (row.get('text') or '').strip(),
            'options': _parse_options(row.get('options'), line_no),
            'correct_answer': row.get('correct_answer') or '',
            'subject': (row.get('subject') or '').strip(),
            'chapter': (row.get('chapter') or '').strip(),
            'co': (row.get('co') or '').strip(),
            'difficulty_level': (row.get('difficulty_level') or '').strip().lower(),
            'image_url': (row.get('image_url') or '').strip() or None,
        })
    return out


def _parse_options(raw, line_no: int) -> List[str]:
    """Decode the `options` cell; single-quoted arrays are tolerated."""
    if raw is None or not str(raw).strip():
        return []
    raw = str(raw)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        try:
            value = json.loads(raw.replace("'", '"'))
        except json.JSONDecodeError as exc:
            raise ValidationError(f'line {line_no}: options must be a JSON array') from exc
    if not isinstance(value, list):
        raise ValidationError(f'line {line_no}: options must be a JSON array')
    return [str(v) for v in value]
