import io
import logging
from typing import Any, Dict, List, Optional

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

SPREADSHEET_EXTENSIONS = {'xlsx', 'xls'}


def is_spreadsheet(filename: str) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in SPREADSHEET_EXTENSIONS


class ExcelHandler:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def read_rows(self, source) -> Optional[List[Dict[str, Any]]]:
        """
        Read the first sheet of a workbook into a list of row dicts.

        ``source`` is a path or a file-like object. Header cells are trimmed;
        fully empty rows are dropped. Returns None if the workbook cannot be
        read.
        """
        try:
            df = pd.read_excel(source, sheet_name=0)
        except Exception as e:
            self.logger.error(f"Error reading Excel file: {str(e)}")
            return None

        return self._frame_to_rows(df)

    def _frame_to_rows(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        df.columns = [str(c).strip() for c in df.columns]
        df = df.dropna(how='all')
        # Leave missing cells as None rather than NaN
        df = df.astype(object).where(pd.notna(df), None)
        return df.to_dict(orient='records')

    def export_roster(self, students: List[Dict], batch: str, dept_code: str,
                      dept_name: Optional[str] = None) -> io.BytesIO:
        """
        Render a batch roster as a styled workbook held in memory.
        """
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = f"{dept_code} {batch}"[:31]

        header_font = Font(bold=True, size=12, color="FFFFFF")
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        center_alignment = Alignment(horizontal='center', vertical='center')

        title = f"Student Roster - {dept_code}"
        if dept_name:
            title += f" ({dept_name})"
        ws['A1'] = title
        ws['A1'].font = Font(bold=True, size=14)
        ws.merge_cells('A1:C1')
        ws['A2'] = f"Batch: {batch}"
        ws.merge_cells('A2:C2')

        headers = ['S. No.', 'Register Number', 'Name of the Student']
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=4, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = border
            cell.alignment = center_alignment

        row_num = 5
        for index, student in enumerate(students, 1):
            row_data = [index, student['regNo'], student['name']]
            for col, value in enumerate(row_data, 1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = border
                if col < 3:
                    cell.alignment = center_alignment
            row_num += 1

        ws.cell(row=row_num + 1, column=1, value=f"Total Students: {len(students)}").font = Font(bold=True)

        # Auto-adjust column widths
        for col_idx in range(1, 4):
            max_length = 0
            column_letter = get_column_letter(col_idx)
            for row_idx in range(4, row_num):
                value = ws.cell(row=row_idx, column=col_idx).value
                if value:
                    max_length = max(max_length, len(str(value)))
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        self.logger.info(f"Exported roster for {dept_code} {batch} ({len(students)} students)")
        return buffer
