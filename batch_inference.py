"""
Map an exam's semester and date to the student cohort (batch) sitting it.

A four year programme admits one cohort per year and runs two semesters per
academic year, so the number of full years a semester lies into the programme
gives the admission year relative to the exam's calendar year.
"""
import math
from datetime import date, datetime
from typing import Union

from errors import InvalidSemester

ROMAN_SEMESTERS = ('I', 'II', 'III', 'IV', 'V', 'VI', 'VII', 'VIII')

PROGRAMME_SPAN = 3  # label is "{start}-{start + 3}"


def semester_number(semester: Union[str, int]) -> int:
    """Return 1..8 for a semester label ("I".."VIII", or "1".."8")."""
    if isinstance(semester, bool):
        raise InvalidSemester(semester)

    if isinstance(semester, int):
        number = semester
    else:
        text = str(semester).strip().upper()
        if text in ROMAN_SEMESTERS:
            return ROMAN_SEMESTERS.index(text) + 1
        if not text.isdigit():
            raise InvalidSemester(semester)
        number = int(text)

    if 1 <= number <= len(ROMAN_SEMESTERS):
        return number
    raise InvalidSemester(semester)


def semester_label(semester: Union[str, int]) -> str:
    """Canonical roman label for a semester."""
    return ROMAN_SEMESTERS[semester_number(semester) - 1]


def _exam_year(exam_date) -> int:
    if isinstance(exam_date, (date, datetime)):
        return exam_date.year
    return date.fromisoformat(str(exam_date).strip()[:10]).year


def infer_batch(semester: Union[str, int], exam_date) -> str:
    """
    Cohort label for students writing a ``semester`` exam on ``exam_date``.

    Semesters I-II are in year 0 of the programme, III-IV in year 1 and so
    on. The exam date is not checked against the academic calendar; an exam
    held far outside its usual window yields a wrong label.
    """
    number = semester_number(semester)
    years_passed = math.ceil(number / 2) - 1
    start_year = _exam_year(exam_date) - years_passed
    return f"{start_year}-{start_year + PROGRAMME_SPAN}"
