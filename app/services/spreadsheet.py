"""Expenditure plan ingestion from Excel workbooks.

Workbooks are read with pandas (openpyxl for ``.xlsx``, xlrd for ``.xls``).
The first non-empty row is the header; column names are matched
case-insensitively so ``Line Item``, ``lineitem`` and ``line_item`` are all
accepted.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd
from xlrd import XLRDError

from app.core.exceptions import UploadRejected, ValidationError
from app.core.settings import settings
from app.services.budget import quantize
from app.services.local_uploads import SPREADSHEET_EXTENSIONS, check_extension


logger = logging.getLogger(__name__)

_HEADER_ALIASES = {
    "line_item": {"line item", "lineitem", "line_item"},
    "allocated_amount": {"allocated amount", "allocated_amount", "amount"},
    "description": {"description"},
}

_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}

_NUMBER_NOISE = re.compile(r"[,\s$€£]")


@dataclass(frozen=True)
class ExpenditureRow:
    line_item: str
    allocated_amount: Decimal
    description: str


def _normalize_header(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return " ".join(str(value).strip().lower().split())


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and not value.strip()


def _cell_text(value) -> str:
    if _is_blank(value):
        return ""
    return str(value).strip()


def _parse_amount(value) -> Decimal | None:
    if _is_blank(value) or isinstance(value, bool):
        return None
    text = _NUMBER_NOISE.sub("", str(value))
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _map_columns(header: list) -> dict[str, int]:
    columns: dict[str, int] = {}
    for index, raw in enumerate(header):
        name = _normalize_header(raw)
        for field_name, aliases in _HEADER_ALIASES.items():
            if name in aliases and field_name not in columns:
                columns[field_name] = index
    missing = [field_name for field_name in ("line_item", "allocated_amount") if field_name not in columns]
    if missing:
        raise ValidationError(
            "Spreadsheet is missing required columns",
            details={"missing_columns": missing},
        )
    return columns


def _read_frame(content: bytes, ext: str) -> pd.DataFrame:
    try:
        return pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=_ENGINES[ext],
        )
    except (ValueError, KeyError, OSError, zipfile.BadZipFile, XLRDError) as exc:
        raise UploadRejected(f"Unable to read spreadsheet: {exc}") from exc


def parse_expenditure_workbook(
    content: bytes,
    filename: str,
    *,
    max_rows: int | None = None,
) -> list[ExpenditureRow]:
    ext = check_extension(filename, SPREADSHEET_EXTENSIONS)
    limit = settings.max_expenditure_rows if max_rows is None else max_rows
    frame = _read_frame(content, ext)

    # (sheet row number, cells) with blank rows dropped
    rows = [
        (number, list(values))
        for number, values in enumerate(frame.itertuples(index=False, name=None), start=1)
        if not all(_is_blank(cell) for cell in values)
    ]
    if not rows:
        raise ValidationError("Spreadsheet is empty")

    columns = _map_columns(rows[0][1])
    data_rows = rows[1:]
    if len(data_rows) > limit:
        raise ValidationError(
            f"Spreadsheet has {len(data_rows)} rows; at most {limit} line items are allowed",
            details={"rows": len(data_rows), "max_rows": limit},
        )

    parsed: list[ExpenditureRow] = []
    errors: dict[str, str] = {}
    desc_index = columns.get("description")
    for offset, row in data_rows:
        line_item = _cell_text(row[columns["line_item"]])
        amount = _parse_amount(row[columns["allocated_amount"]])
        description = _cell_text(row[desc_index]) if desc_index is not None else ""
        if not line_item:
            errors[f"row_{offset}"] = "Line item is required"
            continue
        if amount is None:
            errors[f"row_{offset}"] = "Allocated amount must be a number"
            continue
        if amount <= 0:
            errors[f"row_{offset}"] = "Allocated amount must be greater than zero"
            continue
        parsed.append(
            ExpenditureRow(line_item=line_item, allocated_amount=quantize(amount), description=description)
        )

    if errors:
        first = next(iter(errors))
        raise ValidationError(
            f"Invalid spreadsheet {first.replace('_', ' ')}: {errors[first]}",
            details={"errors": errors},
        )

    logger.info("Parsed %d expenditure rows from %s", len(parsed), Path(filename).name)
    return parsed
