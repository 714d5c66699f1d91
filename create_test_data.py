#!/usr/bin/env python3
"""
Create sample roster, syllabus and timetable workbooks for the exam cell importer.
"""
import os
import random
import sys
from datetime import date, timedelta

import pandas as pd
from faker import Faker

from batch_inference import ROMAN_SEMESTERS

SAMPLE_COURSES = {
    '104': [
        ('Programming in C', 'CS'), ('Data Structures', 'CS'), ('Operating Systems', 'CS'),
        ('Database Management Systems', 'CS'), ('Computer Networks', 'CS'), ('Compiler Design', 'CS'),
    ],
    '103': [
        ('Engineering Mechanics', 'CE'), ('Strength of Materials', 'CE'), ('Surveying', 'CE'),
        ('Fluid Mechanics', 'CE'), ('Structural Analysis', 'CE'), ('Concrete Technology', 'CE'),
    ],
}


def create_roster(output_dir, dept_code='104', batch='2023-2026', count=30, seed=None):
    """Roster workbook named after its batch, e.g. ``students_104_2023-2026.xlsx``."""
    fake = Faker('en_IN')  # Indian locale for better names
    if seed is not None:
        Faker.seed(seed)

    start_year = batch.split('-')[0]
    students = []
    for i in range(count):
        students.append({
            'Register Number': f"9{start_year[2:]}{dept_code}{str(i + 1).zfill(3)}",
            'Name of the Student': fake.name().upper(),
            'Program Code': dept_code,
        })

    df = pd.DataFrame(students)
    # Shuffle to make it more realistic
    df = df.sample(frac=1, random_state=seed).reset_index(drop=True)

    output_file = os.path.join(output_dir, f"students_{dept_code}_{batch}.xlsx")
    df.to_excel(output_file, index=False, engine='openpyxl')
    return output_file, df


def _course_code(prefix, semester_number, index):
    return f"{prefix}{semester_number}{str(index + 1).zfill(2)}"


def create_syllabus(output_dir, regulation='2021', dept_codes=('104', '103')):
    rows = []
    for dept_code in dept_codes:
        courses = SAMPLE_COURSES.get(dept_code, SAMPLE_COURSES['104'])
        for number, semester in enumerate(ROMAN_SEMESTERS, 1):
            for index, (name, prefix) in enumerate(courses[:3]):
                rows.append({
                    'SEMESTER': semester,
                    'PROGRAM CODE': dept_code,
                    'SUBJECT CODE': _course_code(prefix, number, index),
                    'SUBJECT NAME': f"{name} {semester}",
                })

    df = pd.DataFrame(rows)
    output_file = os.path.join(output_dir, f"syllabus_R{regulation}.xlsx")
    df.to_excel(output_file, index=False, engine='openpyxl')
    return output_file, df


def create_timetable(output_dir, dept_code='104', semester='III', start=None, days=3):
    """Timetable workbook using the d-m-yy date strings of the exam office."""
    start = start or date.today()
    number = ROMAN_SEMESTERS.index(semester) + 1
    courses = SAMPLE_COURSES.get(dept_code, SAMPLE_COURSES['104'])

    rows = []
    for index, (name, prefix) in enumerate(courses[:days]):
        exam_day = start + timedelta(days=index)
        rows.append({
            'Date': exam_day.strftime('%d-%m-%y'),
            'Session': random.choice(['FN', 'AN']),
            'Semester': semester,
            'Program Code': dept_code,
            'Sub-Code': _course_code(prefix, number, index),
            'Subject Name': f"{name} {semester}",
        })

    df = pd.DataFrame(rows)
    output_file = os.path.join(output_dir, f"timetable_{dept_code}_{semester}.xlsx")
    df.to_excel(output_file, index=False, engine='openpyxl')
    return output_file, df


if __name__ == "__main__":
    output_dir = sys.argv[1] if len(sys.argv) > 1 else 'data'
    os.makedirs(output_dir, exist_ok=True)

    for path, df in (
        create_roster(output_dir, '104', '2024-2027'),
        create_roster(output_dir, '103', '2024-2027'),
        create_syllabus(output_dir, '2021'),
        create_timetable(output_dir, '104', 'III'),
    ):
        print(f"Created {path} ({len(df)} rows)")

    print(f"Import with: examcell-import {output_dir}")
