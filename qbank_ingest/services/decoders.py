"""
Format decoders for bulk question uploads.

Each decoder turns raw file bytes into an ordered list of flat row records.
All three share one output contract so the converter never needs to know
which format a row came from:

* a completely empty file is zero rows, not an error;
* blank cells are left out of the record;
* text cells in numeric and boolean columns (``TYPED_COLUMNS``) are typed
  opportunistically; every other text cell is passed through unchanged;
* a file that cannot be read at all raises ``DecodeError`` and aborts the batch.
"""
import enum
import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import orjson
import pandas as pd

from qbank_ingest.core.errors import DecodeError
from qbank_ingest.models.schemas import RowRecord

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?(0|[1-9]\d*)$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

# Columns the converter and builders read as numbers or booleans
TYPED_COLUMNS = frozenset({
    "gradeLevel", "year", "correctAnswer", "tolerance", "wordLimit", "partialCredit", "caseSensitive",
})


class FileFormat(str, enum.Enum):
    CSV = "csv"
    EXCEL = "excel"
    JSON = "json"

    @property
    def extension(self) -> str:
        return {"csv": "csv", "excel": "xlsx", "json": "json"}[self.value]

    @property
    def media_type(self) -> str:
        return {
            "csv": "text/csv",
            "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "json": "application/json",
        }[self.value]

    @classmethod
    def from_filename(cls, filename: Optional[str]) -> Optional["FileFormat"]:
        """Guess the format from a file name; ``None`` when the extension is unknown."""
        if not filename or "." not in filename:
            return None
        ext = filename.rsplit(".", 1)[1].lower()
        if ext in ("csv", "txt"):
            return cls.CSV
        if ext in ("xlsx", "xls"):
            return cls.EXCEL
        if ext == "json":
            return cls.JSON
        return None


@dataclass
class DecodedFile:
    rows: List[RowRecord] = field(default_factory=list)
    total_rows: int = 0


def coerce_scalar(value: str) -> Any:
    """Type a text cell: booleans and plain numbers become native values.

    Integers with leading zeros stay text so identifiers like ``007`` survive.
    """
    s = value.strip()
    low = s.lower()
    if low == "true":
        return True
    if low == "false":
        return False
    if _INT_RE.match(s):
        return int(s)
    if _FLOAT_RE.match(s) and not re.match(r"^[+-]?0\d", s):
        return float(s)
    return s


def _is_blank(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _text_cell(column: str, value: str) -> Any:
    return coerce_scalar(value) if column in TYPED_COLUMNS else value


def _native(column: str, value: Any) -> Any:
    """Convert numpy/pandas scalars from a spreadsheet cell into plain Python values."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return _text_cell(column, value)
    return value


def _records_from_frame(frame: pd.DataFrame, convert) -> List[RowRecord]:
    rows: List[RowRecord] = []
    columns = [str(c).strip() for c in frame.columns]
    for values in frame.itertuples(index=False, name=None):
        record: Dict[str, Any] = {}
        for column, value in zip(columns, values):
            if not column or _is_blank(value):
                continue
            record[column] = convert(column, value)
        if record:
            rows.append(record)
    return rows


class CsvDecoder:
    """Delimited text: header row first, one record per non-empty line."""

    format = FileFormat.CSV

    def decode(self, data: bytes) -> DecodedFile:
        if not data or not data.strip():
            return DecodedFile()
        try:
            frame = pd.read_csv(
                io.BytesIO(data),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
            )
        except pd.errors.EmptyDataError:
            return DecodedFile()
        except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Failed to parse CSV file: {e}") from e
        rows = _records_from_frame(frame, _text_cell)
        logger.debug("Decoded %d CSV rows", len(rows))
        return DecodedFile(rows=rows, total_rows=len(rows))


class ExcelDecoder:
    """Spreadsheet: first sheet, first row as header."""

    format = FileFormat.EXCEL

    def decode(self, data: bytes) -> DecodedFile:
        if not data or not data.strip():
            return DecodedFile()
        try:
            frame = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object, engine="openpyxl")
        except pd.errors.EmptyDataError:
            return DecodedFile()
        except Exception as e:
            raise DecodeError(f"Failed to parse Excel file: {e}") from e
        rows = _records_from_frame(frame, _native)
        logger.debug("Decoded %d spreadsheet rows", len(rows))
        return DecodedFile(rows=rows, total_rows=len(rows))


class JsonDecoder:
    """Structured document: a top-level array of objects."""

    format = FileFormat.JSON

    def decode(self, data: bytes) -> DecodedFile:
        if not data or not data.strip():
            return DecodedFile()
        try:
            document = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise DecodeError(f"Failed to parse JSON file: {e}") from e
        if not isinstance(document, list):
            raise DecodeError("JSON file must contain an array of questions")
        rows: List[RowRecord] = []
        for index, item in enumerate(document, start=1):
            if not isinstance(item, dict):
                raise DecodeError(f"JSON array element {index} is not an object")
            rows.append({str(k).strip(): v for k, v in item.items() if not _is_blank(v)})
        logger.debug("Decoded %d JSON rows", len(rows))
        return DecodedFile(rows=rows, total_rows=len(rows))


_DECODERS = {
    FileFormat.CSV: CsvDecoder(),
    FileFormat.EXCEL: ExcelDecoder(),
    FileFormat.JSON: JsonDecoder(),
}


def get_decoder(file_format: FileFormat | str):
    try:
        return _DECODERS[FileFormat(file_format)]
    except ValueError:
        raise DecodeError(f"Unsupported file format: {file_format}") from None


def decode(data: bytes, file_format: FileFormat | str) -> DecodedFile:
    return get_decoder(file_format).decode(data)
