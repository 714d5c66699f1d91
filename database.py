import logging
import sqlite3

from flask import g, current_app

from errors import StoreUnavailable
from record_keys import KEY_FIELDS, ROSTER, SYLLABUS, TIMETABLE, exam_key, record_key

logger = logging.getLogger(__name__)

TABLES = {
    ROSTER: 'students',
    SYLLABUS: 'syllabus',
    TIMETABLE: 'timetable',
}

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        reg_no TEXT NOT NULL,
        name TEXT NOT NULL,
        batch TEXT NOT NULL,
        dept_code TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (dept_code, batch, reg_no)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS syllabus (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        regulation TEXT NOT NULL,
        dept_code TEXT NOT NULL,
        semester TEXT NOT NULL,
        course_code TEXT NOT NULL,
        course_name TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (regulation, dept_code, semester, course_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS timetable (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        exam_date TEXT NOT NULL,
        session TEXT NOT NULL CHECK (session IN ('FN', 'AN')),
        dept_code TEXT NOT NULL,
        semester TEXT NOT NULL,
        regulation TEXT NOT NULL,
        course_code TEXT NOT NULL,
        course_name TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (exam_date, session, dept_code, course_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        exam_date TEXT NOT NULL,
        session TEXT NOT NULL,
        course_code TEXT NOT NULL,
        course_name TEXT,
        semester TEXT NOT NULL,
        dept_code TEXT NOT NULL,
        regulation TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attendance_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        attendance_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        reg_no TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'PRESENT' CHECK (status IN ('PRESENT', 'ABSENT')),
        FOREIGN KEY (attendance_id) REFERENCES attendance(id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_attendance_exam
        ON attendance (exam_date, session, dept_code, course_code)
    """,
]


def connect(path):
    """Open a connection, mapping failures to StoreUnavailable."""
    try:
        db = sqlite3.connect(path)
        db.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error as e:
        raise StoreUnavailable(f"Cannot open database {path}: {e}") from e
    db.row_factory = sqlite3.Row
    return db


def get_db():
    """Get a database connection"""
    if 'db' not in g:
        g.db = connect(current_app.config['DATABASE'])
    return g.db


def close_db(e=None):
    """Close the database connection"""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db():
    """Create tables and indexes if they do not exist"""
    db = get_db()
    try:
        for statement in SCHEMA:
            db.execute(statement)
        db.commit()
    except sqlite3.OperationalError as e:
        raise StoreUnavailable(f"Cannot initialise database: {e}") from e


def query_db(query, args=(), one=False):
    """Execute a query and return results"""
    db = get_db()
    cur = db.execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def count_rows(table):
    if table not in TABLES.values() and table not in ('attendance', 'attendance_entries'):
        raise ValueError(f"Unknown table: {table}")
    return query_db(f"SELECT COUNT(*) AS n FROM {table}", one=True)['n']


def upsert(schema, record):
    """
    Insert ``record`` or overwrite the row sharing its natural key.

    Returns 'inserted' or 'updated'.
    """
    table = TABLES[schema]
    keys = KEY_FIELDS[schema]
    columns = list(record)
    db = get_db()

    where = ' AND '.join(f"{k} = ?" for k in keys)
    assignments = ', '.join(f"{c} = excluded.{c}" for c in columns if c not in keys)
    try:
        existing = db.execute(
            f"SELECT id FROM {table} WHERE {where}", record_key(record, schema)
        ).fetchone()
        db.execute(
            f"""INSERT INTO {table} ({', '.join(columns)})
            VALUES ({', '.join('?' for _ in columns)})
            ON CONFLICT ({', '.join(keys)})
            DO UPDATE SET {assignments}, updated_at = CURRENT_TIMESTAMP""",
            [record[c] for c in columns]
        )
        db.commit()
    except sqlite3.OperationalError as e:
        # Locked, unreadable or missing tables: the store itself is unusable
        raise StoreUnavailable(f"Cannot write to {table}: {e}") from e
    return 'updated' if existing else 'inserted'


# Student operations
def _student_dict(row):
    return {
        'regNo': row['reg_no'],
        'name': row['name'],
        'batch': row['batch'],
        'deptCode': row['dept_code'],
    }


def find_students(batch, dept_code):
    rows = query_db(
        "SELECT * FROM students WHERE batch = ? AND dept_code = ? ORDER BY reg_no",
        (batch, dept_code)
    )
    return [_student_dict(r) for r in rows]


# Syllabus operations
def find_papers(regulation, dept_code, semester):
    rows = query_db(
        """SELECT course_code, course_name FROM syllabus
        WHERE regulation = ? AND dept_code = ? AND semester = ?
        ORDER BY course_code""",
        (regulation, dept_code, semester)
    )
    return [{'code': r['course_code'], 'name': r['course_name']} for r in rows]


# Timetable operations
def find_exams(exam_date, session, dept_code, semester=None, regulation=None):
    query = "SELECT * FROM timetable WHERE exam_date = ? AND session = ? AND dept_code = ?"
    args = [exam_date, session, dept_code]
    if semester:
        query += " AND semester = ?"
        args.append(semester)
    if regulation:
        query += " AND regulation = ?"
        args.append(regulation)
    rows = query_db(query + " ORDER BY course_code", args)
    return [
        {
            'date': r['exam_date'],
            'session': r['session'],
            'deptCode': r['dept_code'],
            'courseCode': r['course_code'],
            'courseName': r['course_name'],
            'semester': r['semester'],
            'regulation': r['regulation'],
        }
        for r in rows
    ]


# Attendance operations
def create_attendance(exam_details, entries):
    """Store one attendance record with its ordered entries; returns its id."""
    db = get_db()
    try:
        cur = db.execute(
            """INSERT INTO attendance
            (exam_date, session, course_code, course_name, semester, dept_code, regulation)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                exam_details['date'],
                exam_details['session'],
                exam_details['courseCode'],
                exam_details.get('courseName'),
                exam_details['semester'],
                exam_details['deptCode'],
                exam_details.get('regulation'),
            )
        )
        record_id = cur.lastrowid
        db.executemany(
            """INSERT INTO attendance_entries (attendance_id, position, reg_no, status)
            VALUES (?, ?, ?, ?)""",
            [(record_id, i, e['regNo'], e['status']) for i, e in enumerate(entries)]
        )
        db.commit()
    except sqlite3.Error:
        db.rollback()
        raise
    cur.close()
    return record_id


def attendance_exists(exam_details):
    row = query_db(
        """SELECT id FROM attendance
        WHERE exam_date = ? AND session = ? AND dept_code = ? AND course_code = ?""",
        exam_key(exam_details),
        one=True
    )
    return row is not None


def get_attendance(record_id):
    record = query_db("SELECT * FROM attendance WHERE id = ?", [record_id], one=True)
    if not record:
        return None

    entries = query_db(
        "SELECT reg_no, status FROM attendance_entries WHERE attendance_id = ? ORDER BY position",
        [record_id]
    )
    return {
        'id': record['id'],
        'examDetails': {
            'date': record['exam_date'],
            'session': record['session'],
            'courseCode': record['course_code'],
            'courseName': record['course_name'],
            'semester': record['semester'],
            'deptCode': record['dept_code'],
            'regulation': record['regulation'],
        },
        'entries': [{'regNo': e['reg_no'], 'status': e['status']} for e in entries],
        'createdAt': record['created_at'],
    }
