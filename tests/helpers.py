import os
import tempfile
import unittest

from app import create_app
from database import upsert


class AppTestCase(unittest.TestCase):
    """Runs each test against a fresh SQLite file inside an app context."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.app = create_app({
            'TESTING': True,
            'DATABASE': os.path.join(self.tmpdir.name, 'examcell-test.db'),
        })
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.client = self.app.test_client()

    def tearDown(self):
        self.ctx.pop()
        self.tmpdir.cleanup()

    def add_student(self, reg_no, name, batch='2024-2027', dept_code='104'):
        return upsert('roster', {'reg_no': reg_no, 'name': name, 'batch': batch, 'dept_code': dept_code})

    def add_paper(self, course_code, course_name, semester='III', regulation='2021', dept_code='104'):
        return upsert('syllabus', {
            'regulation': regulation, 'dept_code': dept_code, 'semester': semester,
            'course_code': course_code, 'course_name': course_name,
        })

    def add_exam(self, course_code, course_name, exam_date='2025-11-10', session='FN',
                 semester='III', regulation='2025', dept_code='104'):
        return upsert('timetable', {
            'exam_date': exam_date, 'session': session, 'dept_code': dept_code,
            'semester': semester, 'regulation': regulation,
            'course_code': course_code, 'course_name': course_name,
        })
