"""
Attendance entry for the exams held in one session.

Opening a session loads the exams scheduled for a date/session/department,
infers the cohort writing them, and marks every student of that cohort
present for every exam. The operator then marks absentees and submits each
course separately.
"""
import logging
from typing import Dict, List

from batch_inference import infer_batch, semester_label
from database import attendance_exists, create_attendance, find_exams, find_students
from errors import InvalidPayload

logger = logging.getLogger(__name__)

PRESENT = 'PRESENT'
ABSENT = 'ABSENT'


class AttendanceSession:
    def __init__(self, exam_date, session, dept_code, semester, regulation, batch,
                 exams: List[Dict], roster: List[Dict]):
        self.exam_date = exam_date
        self.session = session
        self.dept_code = dept_code
        self.semester = semester
        self.regulation = regulation
        self.batch = batch
        self.exams = list(exams)
        self.roster_by_course = {}
        self.presence_by_course = {}
        for exam in self.exams:
            code = exam['courseCode']
            self.roster_by_course[code] = list(roster)
            self.presence_by_course[code] = {s['regNo']: True for s in roster}

    @property
    def open_courses(self) -> List[str]:
        return [exam['courseCode'] for exam in self.exams]

    def _presence(self, course_code) -> Dict[str, bool]:
        try:
            return self.presence_by_course[course_code]
        except KeyError:
            raise KeyError(f"Course {course_code} is not open in this session")

    def set_one(self, course_code, reg_no, value: bool):
        presence = self._presence(course_code)
        if reg_no not in presence:
            raise KeyError(f"{reg_no} is not on the roster for {course_code}")
        presence[reg_no] = bool(value)

    def toggle(self, course_code, reg_no):
        presence = self._presence(course_code)
        self.set_one(course_code, reg_no, not presence.get(reg_no, False))

    def set_all(self, course_code, value: bool):
        presence = self._presence(course_code)
        for reg_no in presence:
            presence[reg_no] = bool(value)

    def finalize(self, course_code) -> List[str]:
        """Register numbers marked present, in roster order."""
        presence = self._presence(course_code)
        return [s['regNo'] for s in self.roster_by_course[course_code] if presence[s['regNo']]]

    def exam_details(self, course_code) -> Dict:
        for exam in self.exams:
            if exam['courseCode'] == course_code:
                return {
                    'date': self.exam_date,
                    'session': self.session,
                    'courseCode': course_code,
                    'courseName': exam.get('courseName'),
                    'semester': exam.get('semester') or self.semester,
                    'deptCode': self.dept_code,
                    'regulation': exam.get('regulation') or self.regulation,
                }
        raise KeyError(f"Course {course_code} is not open in this session")

    def submit(self, course_code) -> int:
        """
        Store the attendance for one course and close it in this session.

        Returns the new record id. Other courses stay open.
        """
        present = self.finalize(course_code)
        details = self.exam_details(course_code)
        record_id = submit_attendance(details, present,
                                      roster=[s['regNo'] for s in self.roster_by_course[course_code]])

        self.exams = [e for e in self.exams if e['courseCode'] != course_code]
        del self.roster_by_course[course_code]
        del self.presence_by_course[course_code]
        return record_id

    def as_dict(self) -> Dict:
        return {
            'date': self.exam_date,
            'session': self.session,
            'deptCode': self.dept_code,
            'semester': self.semester,
            'regulation': self.regulation,
            'batch': self.batch,
            'exams': self.exams,
            'rosterByCourse': self.roster_by_course,
            'presenceByCourse': self.presence_by_course,
        }


def open_session(exam_date, session, dept_code, semester, regulation) -> Dict:
    """
    Load exams and roster for one exam session.

    Returns ``{'success': True, 'session': AttendanceSession}`` or
    ``{'success': False, 'message': ...}`` when nothing is scheduled or the
    inferred batch has no students. Raises InvalidSemester for a bad
    semester label.
    """
    semester = semester_label(semester)
    exams = find_exams(exam_date, session, dept_code, semester=semester, regulation=regulation)
    if not exams:
        return {'success': False, 'message': 'No exams found for these criteria.'}

    batch = infer_batch(semester, exam_date)
    roster = find_students(batch, dept_code)
    if not roster:
        return {
            'success': False,
            'message': f'No students found for batch {batch} in department {dept_code}.',
            'batch': batch,
        }

    logger.info(f"Opened attendance for {dept_code} {exam_date} {session}: "
                f"{len(exams)} exam(s), batch {batch}, {len(roster)} student(s)")
    return {
        'success': True,
        'session': AttendanceSession(exam_date, session, dept_code, semester, regulation,
                                     batch, exams, roster),
    }


REQUIRED_EXAM_FIELDS = ('date', 'session', 'courseCode', 'semester', 'deptCode')


def validate_submission(exam_details, attendance_list):
    """Check a submission body before anything is written."""
    if not isinstance(exam_details, dict):
        raise InvalidPayload('examDetails must be an object')
    missing = [f for f in REQUIRED_EXAM_FIELDS if not exam_details.get(f)]
    if missing:
        raise InvalidPayload(f"examDetails is missing: {', '.join(missing)}")
    if not isinstance(attendance_list, list):
        raise InvalidPayload('attendanceList must be a list of register numbers')
    if not all(isinstance(r, (str, int)) and not isinstance(r, bool) for r in attendance_list):
        raise InvalidPayload('attendanceList must contain register numbers only')


def submit_attendance(exam_details, attendance_list, roster=None) -> int:
    """
    Persist one attendance record for the present students.

    Only present students get an entry; anyone absent from the list is
    implicitly absent. When ``roster`` is given, every listed register number
    must belong to it.
    """
    validate_submission(exam_details, attendance_list)
    reg_nos = [str(r) for r in attendance_list]

    if roster is not None:
        known = set(roster)
        unknown = [r for r in reg_nos if r not in known]
        if unknown:
            raise InvalidPayload(f"Not on the roster: {', '.join(unknown)}")

    if attendance_exists(exam_details):
        logger.warning(
            f"Attendance already recorded for {exam_details['courseCode']} on "
            f"{exam_details['date']} {exam_details['session']}; storing another record"
        )

    entries = [{'regNo': r, 'status': PRESENT} for r in reg_nos]
    return create_attendance(exam_details, entries)
