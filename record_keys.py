"""
Turn raw spreadsheet rows into canonical records and their natural keys.

Column headers have changed between exports, so each canonical field has an
ordered list of accepted header aliases. Headers are compared after
collapsing case, spaces and underscores; the first alias with a non-empty
value wins.
"""
import numbers
import re
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from openpyxl.utils.datetime import from_excel

from batch_inference import semester_label
from errors import InvalidSemester, MalformedRow

UNKNOWN = 'unknown'

ROSTER = 'roster'
SYLLABUS = 'syllabus'
TIMETABLE = 'timetable'
SCHEMAS = (ROSTER, SYLLABUS, TIMETABLE)

ALIASES = {
    ROSTER: {
        'reg_no': ['Register Number', 'Reg No', 'Reg Number', 'Register No', 'RegNo', 'Reg_No'],
        'name': ['Name of the Student', 'Student Name', 'Name'],
        'dept_code': ['Program Code', 'Dept', 'Dept Code', 'Department Code'],
    },
    SYLLABUS: {
        'semester': ['SEMESTER', 'Semester', 'Sem'],
        'dept_code': ['PROGRAM CODE', 'Program Code', 'Dept Code'],
        'course_code': ['SUBJECT CODE', 'Course Code', 'Sub-Code', 'Sub Code'],
        'course_name': ['SUBJECT NAME', 'Course Name', 'Subject Name'],
    },
    TIMETABLE: {
        'exam_date': ['Date', 'Exam Date'],
        'session': ['Session', 'Sess'],
        'semester': ['Semester', 'Sem'],
        'dept_code': ['Program Code', 'Dept Code', 'Dept'],
        'regulation': ['Regulation', 'Reg Year'],
        'course_code': ['Sub-Code', 'Subject Code', 'Course Code', 'Sub Code'],
        'course_name': ['Subject Name', 'Course Name', 'SUBJECT NAME'],
    },
}

REQUIRED = {
    ROSTER: ('reg_no', 'name', 'dept_code'),
    SYLLABUS: ('semester', 'dept_code', 'course_code', 'course_name'),
    TIMETABLE: ('course_code', 'exam_date', 'session', 'course_name'),
}

KEY_FIELDS = {
    ROSTER: ('dept_code', 'batch', 'reg_no'),
    SYLLABUS: ('regulation', 'dept_code', 'semester', 'course_code'),
    TIMETABLE: ('exam_date', 'session', 'dept_code', 'course_code'),
}

SESSION_ALIASES = {
    'FN': 'FN', 'FORENOON': 'FN', 'MORNING': 'FN',
    'AN': 'AN', 'AFTERNOON': 'AN', 'EVENING': 'AN',
}

_DMY_RE = re.compile(r'^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2}|\d{4})$')
_ISO_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$')


def _header_key(header: Any) -> str:
    return re.sub(r'[\s_]+', ' ', str(header)).strip().lower()


def is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def as_text(value: Any) -> str:
    """Cell value as a trimmed string; whole floats lose their ".0"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def pick(row: Dict[str, Any], aliases) -> Optional[Any]:
    """First non-blank value among ``aliases`` in priority order."""
    lookup = {}
    for header, value in row.items():
        # Two headers can collapse to one key; keep the first filled one
        if not is_blank(value):
            lookup.setdefault(_header_key(header), value)

    for alias in aliases:
        value = lookup.get(_header_key(alias))
        if not is_blank(value):
            return value
    return None


def _two_digit_year(year: int) -> int:
    return 2000 + year if year < 50 else 1900 + year


def parse_exam_date(raw: Any) -> str:
    """
    Parse a timetable date into ISO ``YYYY-MM-DD``.

    Accepts ``d-m-yy``/``d-m-yyyy`` strings, ISO strings, spreadsheet serial
    numbers and date objects.
    """
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()

    if isinstance(raw, numbers.Real) and not isinstance(raw, bool):
        if is_blank(raw) or raw < 1:
            raise MalformedRow('exam_date', f"Invalid date serial: {raw!r}")
        try:
            return from_excel(float(raw)).date().isoformat()
        except (OverflowError, ValueError):
            raise MalformedRow('exam_date', f"Date serial out of range: {raw!r}")

    if isinstance(raw, str):
        text = raw.strip()
        match = _DMY_RE.match(text)
        if match:
            day, month, year = (int(part) for part in match.groups())
            if len(match.group(3)) == 2:
                year = _two_digit_year(year)
        else:
            match = _ISO_RE.match(text)
            if not match:
                raise MalformedRow('exam_date', f"Unparseable date: {raw!r}")
            year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            raise MalformedRow('exam_date', f"Invalid date: {raw!r}")

    raise MalformedRow('exam_date', f"Unsupported date value: {raw!r}")


def normalize_session(raw: Any) -> str:
    key = re.sub(r'[\s.]', '', str(raw)).upper()
    try:
        return SESSION_ALIASES[key]
    except KeyError:
        raise MalformedRow('session', f"Unknown exam session: {raw!r}")


def normalize_semester(raw: Any) -> str:
    """Roman label when recognisable, otherwise the trimmed raw text."""
    text = as_text(raw)
    try:
        return semester_label(text)
    except InvalidSemester:
        return text.upper()


def normalize_row(row: Dict[str, Any], schema: str,
                  regulation: Optional[str] = None,
                  batch: Optional[str] = None) -> Dict[str, str]:
    """
    Build the canonical record for ``schema`` from one spreadsheet row.

    ``regulation`` applies to syllabus rows and is the fallback for timetable
    rows without a regulation column; ``batch`` applies to roster rows.
    Raises ``MalformedRow`` when a required field is missing or a date or
    session cannot be parsed.
    """
    if schema not in ALIASES:
        raise ValueError(f"Unknown schema: {schema}")

    values = {field: pick(row, aliases) for field, aliases in ALIASES[schema].items()}
    for field in REQUIRED[schema]:
        if values[field] is None:
            raise MalformedRow(field)

    if schema == ROSTER:
        return {
            'reg_no': as_text(values['reg_no']),
            'name': as_text(values['name']),
            'batch': batch or UNKNOWN,
            'dept_code': as_text(values['dept_code']),
        }

    if schema == SYLLABUS:
        return {
            'regulation': regulation or UNKNOWN,
            'dept_code': as_text(values['dept_code']),
            'semester': normalize_semester(values['semester']),
            'course_code': as_text(values['course_code']),
            'course_name': as_text(values['course_name']),
        }

    row_regulation = values['regulation']
    return {
        'exam_date': parse_exam_date(values['exam_date']),
        'session': normalize_session(values['session']),
        'dept_code': as_text(values['dept_code']) if values['dept_code'] is not None else UNKNOWN,
        'semester': normalize_semester(values['semester']) if values['semester'] is not None else UNKNOWN,
        'regulation': as_text(row_regulation) if row_regulation is not None else (regulation or UNKNOWN),
        'course_code': as_text(values['course_code']),
        'course_name': as_text(values['course_name']),
    }


def record_key(record: Dict[str, Any], schema: str) -> Tuple[str, ...]:
    """Composite natural key identifying ``record`` within its collection."""
    return tuple(record[field] for field in KEY_FIELDS[schema])


def exam_key(exam_details: Dict[str, Any]) -> Tuple[str, ...]:
    """(date, session, deptCode, courseCode) of an attendance exam snapshot."""
    return (
        exam_details['date'],
        exam_details['session'],
        exam_details['deptCode'],
        exam_details['courseCode'],
    )
