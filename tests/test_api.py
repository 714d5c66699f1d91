import io
from unittest import mock

import openpyxl
import pandas as pd

from database import count_rows
from errors import StoreUnavailable
from tests.helpers import AppTestCase


def workbook(rows):
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine='openpyxl')
    buffer.seek(0)
    return buffer


class LookupApiTests(AppTestCase):
    def test_health(self):
        res = self.client.get('/')
        self.assertEqual(res.status_code, 200)

    def test_meta(self):
        data = self.client.get('/api/meta').get_json()
        self.assertTrue(data['success'])
        self.assertEqual(data['paperFee'], 150)
        self.assertIn({'code': '104', 'name': 'CSE'}, data['departments'])
        self.assertEqual(data['semesters'][0], 'I')

    def test_students_sorted_by_reg_no(self):
        self.add_student('R3', 'C')
        self.add_student('R1', 'A')
        self.add_student('R2', 'B', dept_code='103')
        data = self.client.get('/api/students/2024-2027/104').get_json()
        self.assertTrue(data['success'])
        self.assertEqual([s['regNo'] for s in data['list']], ['R1', 'R3'])
        self.assertEqual(data['list'][0], {'regNo': 'R1', 'name': 'A', 'batch': '2024-2027', 'deptCode': '104'})

    def test_students_empty_list(self):
        data = self.client.get('/api/students/2024-2027/104').get_json()
        self.assertEqual(data, {'success': True, 'list': []})

    def test_student_export(self):
        self.add_student('R1', 'A')
        self.add_student('R2', 'B')
        res = self.client.get('/api/students/2024-2027/104/export')
        self.assertEqual(res.status_code, 200)
        ws = openpyxl.load_workbook(io.BytesIO(res.data)).active
        self.assertEqual(ws['B5'].value, 'R1')
        self.assertEqual(ws['C6'].value, 'B')

    def test_student_export_empty(self):
        res = self.client.get('/api/students/2024-2027/104/export')
        self.assertEqual(res.status_code, 404)

    def test_syllabus(self):
        self.add_paper('CS3102', 'Operating Systems')
        self.add_paper('CS3101', 'Data Structures')
        data = self.client.get('/api/syllabus/2021/104/III').get_json()
        self.assertEqual(data, {
            'success': True,
            'papers': [
                {'code': 'CS3101', 'name': 'Data Structures'},
                {'code': 'CS3102', 'name': 'Operating Systems'},
            ],
        })
        # Numeric semester is accepted too
        self.assertEqual(len(self.client.get('/api/syllabus/2021/104/3').get_json()['papers']), 2)

    def test_syllabus_not_found(self):
        data = self.client.get('/api/syllabus/2021/104/III').get_json()
        self.assertEqual(data, {'success': False, 'message': 'No papers found for given criteria.'})

    def test_exams(self):
        self.add_exam('CS3102', 'Operating Systems')
        self.add_exam('CS3101', 'Data Structures')
        self.add_exam('CS5101', 'Compiler Design', semester='V')
        res = self.client.get('/api/exams', query_string={
            'date': '2025-11-10', 'session': 'FN', 'deptCode': '104',
        })
        data = res.get_json()
        self.assertEqual([e['courseCode'] for e in data['exams']], ['CS3101', 'CS3102', 'CS5101'])
        self.assertEqual(data['exams'][0], {
            'courseCode': 'CS3101', 'courseName': 'Data Structures', 'semester': 'III', 'regulation': '2025',
        })

        data = self.client.get('/api/exams', query_string={
            'date': '2025-11-10', 'session': 'FN', 'deptCode': '104', 'semester': 'V', 'regulation': '2025',
        }).get_json()
        self.assertEqual([e['courseCode'] for e in data['exams']], ['CS5101'])

    def test_exams_not_found(self):
        data = self.client.get('/api/exams', query_string={
            'date': '2025-11-10', 'session': 'AN', 'deptCode': '104',
        }).get_json()
        self.assertEqual(data, {'success': False, 'message': 'No exams found for these criteria.'})

    def test_exams_bad_query(self):
        res = self.client.get('/api/exams', query_string={'date': '2025-11-10'})
        self.assertEqual(res.status_code, 400)
        res = self.client.get('/api/exams', query_string={'date': 'soon', 'session': 'FN', 'deptCode': '104'})
        self.assertEqual(res.status_code, 400)
        self.assertFalse(res.get_json()['success'])

    def test_store_unavailable(self):
        with mock.patch('app.find_students', side_effect=StoreUnavailable('down')):
            res = self.client.get('/api/students/2024-2027/104')
        self.assertEqual(res.status_code, 503)
        self.assertFalse(res.get_json()['success'])


class AttendanceApiTests(AppTestCase):
    DETAILS = {
        'date': '2025-11-10', 'session': 'FN', 'courseCode': 'CS3101',
        'courseName': 'Data Structures', 'semester': 'III', 'deptCode': '104', 'regulation': '2025',
    }

    def test_submit_and_fetch(self):
        res = self.client.post('/api/attendance', json={
            'examDetails': self.DETAILS, 'attendanceList': ['R1', 'R3'],
        })
        data = res.get_json()
        self.assertTrue(data['success'])

        record = self.client.get(f"/api/attendance/{data['id']}").get_json()['record']
        self.assertEqual(record['examDetails'], self.DETAILS)
        self.assertEqual(record['entries'], [
            {'regNo': 'R1', 'status': 'PRESENT'},
            {'regNo': 'R3', 'status': 'PRESENT'},
        ])

    def test_invalid_payload(self):
        for body in ({}, {'examDetails': self.DETAILS}, {'examDetails': self.DETAILS, 'attendanceList': 'R1'}):
            with self.subTest(body=body):
                res = self.client.post('/api/attendance', json=body)
                self.assertEqual(res.status_code, 400)
                self.assertFalse(res.get_json()['success'])
        res = self.client.post('/api/attendance', data='not json', content_type='text/plain')
        self.assertEqual(res.status_code, 400)
        self.assertEqual(count_rows('attendance'), 0)

    def test_missing_record(self):
        self.assertEqual(self.client.get('/api/attendance/99').status_code, 404)

    def test_open_session(self):
        self.add_exam('CS3101', 'Data Structures')
        self.add_student('R2', 'B')
        self.add_student('R1', 'A')
        data = self.client.get('/api/attendance/session', query_string={
            'date': '2025-11-10', 'session': 'FN', 'deptCode': '104', 'semester': 'III', 'regulation': '2025',
        }).get_json()
        self.assertTrue(data['success'])
        self.assertEqual(data['batch'], '2024-2027')
        self.assertEqual(data['presenceByCourse'], {'CS3101': {'R1': True, 'R2': True}})
        self.assertEqual([s['regNo'] for s in data['rosterByCourse']['CS3101']], ['R1', 'R2'])

    def test_open_session_without_students(self):
        self.add_exam('CS3101', 'Data Structures')
        data = self.client.get('/api/attendance/session', query_string={
            'date': '2025-11-10', 'session': 'FN', 'deptCode': '104', 'semester': 'III',
        }).get_json()
        self.assertFalse(data['success'])
        self.assertIn('2024-2027', data['message'])

    def test_open_session_invalid_semester(self):
        res = self.client.get('/api/attendance/session', query_string={
            'date': '2025-11-10', 'session': 'FN', 'deptCode': '104', 'semester': 'IX',
        })
        self.assertEqual(res.status_code, 400)


class RegistrationApiTests(AppTestCase):
    def test_price(self):
        data = self.client.post('/api/registration/price', json={'students': 3, 'papers': 2}).get_json()
        self.assertEqual(data['amount'], 900)
        data = self.client.post('/api/registration/price', json={'students': [], 'papers': ['A']}).get_json()
        self.assertEqual(data['amount'], 0)

    def test_price_rejects_bad_selection(self):
        res = self.client.post('/api/registration/price', json={'students': -2, 'papers': 2})
        self.assertEqual(res.status_code, 400)

    def test_export_pdf(self):
        res = self.client.post('/api/exams/export', json={
            'students': [{'regNo': 'R1', 'name': 'A'}, {'regNo': 'R2', 'name': 'B'}],
            'papers': [{'courseCode': 'CS3101', 'courseName': 'Data Structures'}],
            'totalAmount': 150,
            'semester': 'III',
            'regulation': '2021',
            'programCode': '104',
        })
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.mimetype, 'application/pdf')
        self.assertIn('exam-registration.pdf', res.headers['Content-Disposition'])
        self.assertTrue(res.data.startswith(b'%PDF'))

    def test_export_without_students(self):
        res = self.client.post('/api/exams/export', json={'students': [], 'papers': []})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()['message'], 'No students selected')


class NonObjectBodyTests(AppTestCase):
    def test_json_array_is_rejected(self):
        for url in ('/api/attendance', '/api/registration/price', '/api/exams/export'):
            with self.subTest(url=url):
                res = self.client.post(url, json=[1, 2])
                self.assertEqual(res.status_code, 400)
                self.assertFalse(res.get_json()['success'])
        self.assertEqual(count_rows('attendance'), 0)

    def test_json_scalar_is_rejected(self):
        res = self.client.post('/api/registration/price', json='three')
        self.assertEqual(res.status_code, 400)


class ImportApiTests(AppTestCase):
    ROWS = [
        {'Register Number': 'R2', 'Name of the Student': 'B', 'Program Code': '104'},
        {'Register Number': 'R1', 'Name of the Student': 'A', 'Program Code': '104'},
        {'Register Number': None, 'Name of the Student': 'C', 'Program Code': '104'},
    ]

    def upload(self, filename, **form):
        form['file'] = (workbook(self.ROWS), filename)
        return self.client.post('/api/import', data=form, content_type='multipart/form-data')

    def test_upload_roster(self):
        data = self.upload('students_104_2024-2027.xlsx').get_json()
        self.assertEqual((data['kind'], data['inserted'], data['skipped']), ('roster', 2, 1))

        data = self.upload('students_104_2024-2027.xlsx').get_json()
        self.assertEqual((data['inserted'], data['updated']), (0, 2))
        self.assertEqual(count_rows('students'), 2)

    def test_upload_with_declared_batch(self):
        self.upload('cse.xlsx', batch='2025-2028')
        data = self.client.get('/api/students/2025-2028/104').get_json()
        self.assertEqual(len(data['list']), 2)

    def test_upload_rejects_other_files(self):
        res = self.client.post('/api/import', data={'file': (io.BytesIO(b'x'), 'notes.txt')},
                               content_type='multipart/form-data')
        self.assertEqual(res.status_code, 400)
        res = self.client.post('/api/import', data={}, content_type='multipart/form-data')
        self.assertEqual(res.status_code, 400)
