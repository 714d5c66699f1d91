"""
Exceptions raised by the exam cell backend.

Empty lookups (no exams, no students, no papers) are not errors; they are
reported as ``{'success': False, 'message': ...}`` results.
"""


class ExamCellError(Exception):
    """Base class for exam cell errors."""


class InvalidSemester(ExamCellError, ValueError):
    """Semester label is not one of I..VIII."""

    def __init__(self, semester):
        self.semester = semester
        super().__init__(f"Invalid semester: {semester!r}")


class MalformedRow(ExamCellError, ValueError):
    """A spreadsheet row cannot be normalized into a record."""

    def __init__(self, field, message=None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class StoreUnavailable(ExamCellError):
    """The database cannot be reached."""


class InvalidPayload(ExamCellError, ValueError):
    """A request body is missing fields or has the wrong shape."""
