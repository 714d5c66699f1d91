import io
import logging
import os

from flask import Flask, jsonify, request, send_file
from werkzeug.utils import secure_filename

from attendance_session import open_session, submit_attendance
from config import department_names, load_config, public_settings
from database import close_db, find_exams, find_papers, find_students, get_attendance, init_db
from errors import InvalidPayload, InvalidSemester, MalformedRow, StoreUnavailable
from excel_handler import ExcelHandler, is_spreadsheet
from import_reconciler import reconcile
from pdf_export import render_registration_pdf
from record_keys import SCHEMAS, normalize_semester, normalize_session, parse_exam_date
from registration import per_student_fee, price_selection

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

excel_handler = ExcelHandler()


def failure(message, status=200, **extra):
    body = {'success': False, 'message': message}
    body.update(extra)
    return jsonify(body), status


def json_body():
    """Request body as a JSON object; anything else is an InvalidPayload."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidPayload('request body must be a JSON object')
    return body


def _exam_criteria(args):
    """Normalise date/session query parameters."""
    exam_date = args.get('date', '').strip()
    session = args.get('session', '').strip()
    dept_code = args.get('deptCode', '').strip()
    if not exam_date or not session or not dept_code:
        raise InvalidPayload('date, session and deptCode are required')
    return parse_exam_date(exam_date), normalize_session(session), dept_code


def create_app(config=None, config_file=None):
    app = Flask(__name__)
    load_config(app, config, config_file)

    app.teardown_appcontext(close_db)

    # Create tables on startup
    with app.app_context():
        init_db()

    register_routes(app)
    return app


def register_routes(app):
    @app.errorhandler(StoreUnavailable)
    def store_unavailable(e):
        logger.error(f"Database unavailable: {str(e)}")
        return failure('Database unavailable', 503)

    @app.errorhandler(InvalidPayload)
    def invalid_payload(e):
        return failure(f'Invalid payload: {e}', 400)

    @app.route('/')
    def index():
        return 'Exam cell backend is running'

    @app.route('/api/meta')
    def meta():
        return jsonify({'success': True, **public_settings(app.config)})

    @app.route('/api/students/<batch>/<dept_code>')
    def students(batch, dept_code):
        try:
            return jsonify({'success': True, 'list': find_students(batch, dept_code)})
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error loading students: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/students/<batch>/<dept_code>/export')
    def export_students(batch, dept_code):
        try:
            students = find_students(batch, dept_code)
            if not students:
                return failure('No students found for given criteria.', 404)

            buffer = excel_handler.export_roster(
                students, batch, dept_code, department_names(app.config).get(dept_code)
            )
            return send_file(
                buffer,
                as_attachment=True,
                download_name=f"students_{dept_code}_{batch}.xlsx",
                mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            )
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error exporting students: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/syllabus/<regulation>/<dept_code>/<semester>')
    def syllabus(regulation, dept_code, semester):
        try:
            papers = find_papers(regulation, dept_code, normalize_semester(semester))
            if not papers:
                return failure('No papers found for given criteria.')
            return jsonify({'success': True, 'papers': papers})
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error loading syllabus: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/exams')
    def exams():
        try:
            exam_date, session, dept_code = _exam_criteria(request.args)
            semester = request.args.get('semester')
            found = find_exams(
                exam_date, session, dept_code,
                semester=normalize_semester(semester) if semester else None,
                regulation=request.args.get('regulation') or None,
            )
            if not found:
                return failure('No exams found for these criteria.')
            out = [
                {
                    'courseCode': e['courseCode'],
                    'courseName': e['courseName'],
                    'semester': e['semester'],
                    'regulation': e['regulation'],
                }
                for e in found
            ]
            return jsonify({'success': True, 'exams': out})
        except (InvalidPayload, MalformedRow) as e:
            return failure(str(e), 400)
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error loading exams: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/attendance/session')
    def attendance_session():
        try:
            exam_date, session, dept_code = _exam_criteria(request.args)
            semester = request.args.get('semester', '').strip()
            if not semester:
                raise InvalidPayload('semester is required')
            result = open_session(exam_date, session, dept_code, semester,
                                  request.args.get('regulation') or None)
            if not result['success']:
                return jsonify(result)
            return jsonify({'success': True, **result['session'].as_dict()})
        except (InvalidPayload, InvalidSemester, MalformedRow) as e:
            return failure(str(e), 400)
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error opening attendance session: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/attendance', methods=['POST'])
    def attendance():
        try:
            body = json_body()
            record_id = submit_attendance(body.get('examDetails'), body.get('attendanceList'))
            return jsonify({'success': True, 'message': 'Attendance submitted successfully.', 'id': record_id})
        except InvalidPayload as e:
            return failure(f'Invalid payload: {e}', 400)
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Error submitting attendance: {str(e)}")
            return failure(str(e), 500)

    @app.route('/api/attendance/<int:record_id>')
    def attendance_record(record_id):
        record = get_attendance(record_id)
        if record is None:
            return failure('Attendance record not found', 404)
        return jsonify({'success': True, 'record': record})

    @app.route('/api/registration/price', methods=['POST'])
    def registration_price():
        body = json_body()
        try:
            amount = price_selection(body.get('students', 0), body.get('papers', 0), app.config['PAPER_FEE'])
        except ValueError as e:
            return failure(str(e), 400)
        return jsonify({'success': True, 'amount': amount, 'feePerPaper': app.config['PAPER_FEE']})

    @app.route('/api/exams/export', methods=['POST'])
    def export_registration():
        body = json_body()
        students = body.get('students')
        papers = body.get('papers') or []

        if not students or not isinstance(students, list):
            return failure('No students selected', 400)
        if not isinstance(papers, list):
            return failure('papers must be a list', 400)

        total_amount = body.get('totalAmount')
        if total_amount is None:
            total_amount = per_student_fee(papers, app.config['PAPER_FEE'])

        try:
            pdf = render_registration_pdf(
                students, papers, total_amount,
                semester=body.get('semester'),
                regulation=body.get('regulation'),
                program_code=body.get('programCode'),
                college_name=app.config['COLLEGE_NAME'],
                batch=body.get('batch'),
            )
        except Exception as e:
            logger.error(f"Error rendering registration PDF: {str(e)}")
            return failure(f'Export failed: {e}', 500)

        return send_file(
            io.BytesIO(pdf),
            mimetype='application/pdf',
            as_attachment=True,
            download_name='exam-registration.pdf',
        )

    @app.route('/api/import', methods=['POST'])
    def import_upload():
        if 'file' not in request.files or not request.files['file'].filename:
            return failure('No file selected', 400)

        file = request.files['file']
        filename = secure_filename(file.filename)
        if not is_spreadsheet(filename):
            return failure('Invalid file type. Please upload an Excel file (.xlsx or .xls)', 400)

        kind = request.form.get('kind') or None
        if kind and kind not in SCHEMAS:
            return failure(f'Unknown import kind: {kind}', 400)

        rows = excel_handler.read_rows(io.BytesIO(file.read()))
        if rows is None:
            return failure('Error processing Excel file. Please check the format.', 400)

        summary = reconcile(
            filename, rows,
            kind=kind,
            regulation=request.form.get('regulation') or None,
            batch=request.form.get('batch') or None,
            default_timetable_regulation=app.config['DEFAULT_TIMETABLE_REGULATION'],
        )
        return jsonify({'success': True, **summary.as_dict()})


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
