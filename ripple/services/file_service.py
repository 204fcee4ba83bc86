"""Workbook parsing service."""
import io
import logging
from typing import Any, Dict, List, Tuple

import pandas as pd

from ripple.models import RawTable, InputTables

logger = logging.getLogger(__name__)


class FileService:
    """Reads the experiment workbook into raw tables."""

    SHEETS = {
        "patterns": "Patterns",
        "layout": "Layout",
        "compounds": "Compounds",
        "barcodes": "Barcodes",
    }
    FORM_SHEET = "Form"

    def parse_workbook(self, content: bytes, filename: str) -> Tuple[InputTables, Dict[str, Any]]:
        """
        Parse an uploaded experiment workbook.

        Args:
            content: File content as bytes
            filename: Original filename

        Returns:
            Raw tables for the four tabs, plus form values from an optional
            Form sheet (label in column A, value in column B)
        """
        if not filename.lower().endswith(".xlsx"):
            raise ValueError(f"Unsupported workbook format: {filename}")

        try:
            xl = pd.ExcelFile(io.BytesIO(content))
        except Exception as e:
            raise ValueError(f"Unable to read workbook: {e}")

        tables = {}
        for key, sheet_name in self.SHEETS.items():
            if sheet_name in xl.sheet_names:
                tables[key] = self._sheet_to_table(pd.read_excel(xl, sheet_name=sheet_name, header=None))
            else:
                logger.info(f"Workbook {filename} has no {sheet_name} sheet")
                tables[key] = RawTable()

        form_values: Dict[str, Any] = {}
        if self.FORM_SHEET in xl.sheet_names:
            form_values = self._sheet_to_form(pd.read_excel(xl, sheet_name=self.FORM_SHEET, header=None))

        return InputTables(**tables), form_values

    def _cells(self, df: pd.DataFrame) -> List[List[Any]]:
        # Empty cells -> None
        return df.astype(object).where(pd.notna(df), None).values.tolist()

    def _sheet_to_table(self, df: pd.DataFrame) -> RawTable:
        """First row is the header; fully blank rows are dropped."""
        cells = self._cells(df)
        if not cells:
            return RawTable()

        header = list(cells[0])
        while header and header[-1] is None:
            header.pop()
        headers = ["" if h is None else str(h).strip() for h in header]

        rows = []
        for raw in cells[1:]:
            if all(v is None or (isinstance(v, str) and not v.strip()) for v in raw):
                continue
            rows.append({
                name: raw[i] if i < len(raw) else None
                for i, name in enumerate(headers)
                if name
            })
        return RawTable(headers=headers, rows=rows)

    def _sheet_to_form(self, df: pd.DataFrame) -> Dict[str, Any]:
        form_values = {}
        for row in self._cells(df):
            if len(row) < 2 or row[0] is None:
                continue
            form_values[str(row[0]).strip()] = row[1]
        return form_values
