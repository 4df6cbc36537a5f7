"""Spreadsheet import of registrants.

The uploaded workbook must use the template layout: row 1 is exactly
`Full Name, Age, Gender, Location` and data starts on row 2. File and header
problems reject the whole file; bad data rows are skipped and reported while
the valid rows are upserted as one batch.
"""

import logging
import zipfile
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from app.registrants import rules
from app.registrants.schemas import ImportResult
from app.registrants.store import RecordStore, StoreError

logger = logging.getLogger(__name__)


class ImportPreconditionError(ValueError):
    """The file as a whole cannot be imported; no row was looked at."""


class RowErrors:
    """Every reason one data row was rejected, reported together."""

    def __init__(self, row_number: int):
        self.row_number = row_number
        self.reasons: List[str] = []

    def add(self, reason: str) -> None:
        self.reasons.append(reason)

    def __bool__(self) -> bool:
        return bool(self.reasons)

    def __str__(self) -> str:
        return f"Row {self.row_number}: {', '.join(self.reasons)}"


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _is_blank_row(values: Sequence[Any]) -> bool:
    return all(_text(value) == "" for value in values)


def _age_is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return not isinstance(value, bool) and value == 0


def read_first_worksheet(data: bytes) -> Worksheet:
    try:
        workbook = load_workbook(BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportPreconditionError(
            "Could not read the uploaded file as an Excel (.xlsx) workbook."
        ) from exc
    if not workbook.worksheets:
        raise ImportPreconditionError("Could not find worksheet in the uploaded file.")
    return workbook.worksheets[0]


def check_header_row(values: Sequence[Any]) -> None:
    expected = list(rules.IMPORT_HEADERS)
    if len(values) < len(expected):
        raise ImportPreconditionError(
            f"Invalid header row. Expected {len(expected)} columns: "
            f"[{', '.join(expected)}]. Found fewer columns."
        )
    actual = [_text(value) for value in values[:len(expected)]]
    if actual != expected:
        raise ImportPreconditionError(
            f"Header mismatch. Expected columns: [{', '.join(expected)}]. "
            f"Found: [{', '.join(actual)}] in the first row. Please use the downloaded template."
        )


def parse_row(row_number: int, values: Sequence[Any]) -> Tuple[Optional[Dict[str, Any]], RowErrors]:
    """
    Validate one data row by column position.

    Returns the record to store (None when invalid) and the row's errors.
    """
    padded = list(values[:4]) + [None] * (4 - len(values[:4]))
    raw_name, raw_age, raw_gender, raw_location = padded
    errors = RowErrors(row_number)

    full_name = _text(raw_name)
    if not rules.is_non_empty_name(full_name):
        errors.add("Full Name is missing")

    age: Optional[int] = None
    if _age_is_missing(raw_age):
        errors.add("Age is missing")
    else:
        age = rules.coerce_age(raw_age)
        if age is None:
            errors.add(f'Invalid age format: "{raw_age}"')
        elif not rules.is_valid_age(age):
            errors.add(f"Age must be {rules.MINIMUM_AGE} or older, found: {age}")

    gender_text = _text(raw_gender)
    gender = rules.normalize_gender(gender_text)
    if not gender_text:
        errors.add("Gender is missing")
    elif gender is None:
        errors.add(f'Invalid gender: "{gender_text}". Must be {" or ".join(rules.GENDERS)}.')

    location = _text(raw_location)
    if not location:
        errors.add("Location is missing")
    elif not rules.is_valid_location(location):
        errors.add(f'Invalid location: "{location}". Must match allowed values.')

    if errors:
        return None, errors
    return {
        "full_name": full_name,
        "age": age,
        "gender": gender,
        "church_location": location,
    }, errors


def process_registrant_import(
    data: bytes,
    store: RecordStore,
    conflict_columns: Sequence[str] = (),
    filename: str = "upload.xlsx",
) -> ImportResult:
    """
    Read, validate and upsert the registrants in an uploaded workbook.

    Never raises: every failure is reported through the returned ImportResult.
    `success` is only true when at least one row was valid and the upsert
    went through.
    """
    result = ImportResult()
    logger.info("Processing registrant import: %s", filename)

    try:
        worksheet = read_first_worksheet(data)
        rows = list(worksheet.iter_rows(values_only=True))
        if all(_is_blank_row(values) for values in rows):
            raise ImportPreconditionError("No data rows found in the file.")
        check_header_row(rows[0])

        valid_records: List[Dict[str, Any]] = []
        for row_number, values in enumerate(rows[1:], start=2):
            if _is_blank_row(values):
                continue
            result.processed_rows += 1
            record, errors = parse_row(row_number, values)
            if record is None:
                result.skipped_count += 1
                result.errors.append(str(errors))
            else:
                valid_records.append(record)

        if result.processed_rows == 0:
            raise ImportPreconditionError("No data rows found in the file.")

        if valid_records:
            logger.info("Attempting to upsert %d valid registrants", len(valid_records))
            result.inserted_count = store.upsert(valid_records, conflict_columns)
            result.success = True
            result.message = (
                f"Import finished. Processed: {result.processed_rows}, "
                f"Upserted/Updated: {result.inserted_count}, Skipped: {result.skipped_count}."
            )
        else:
            result.message = (
                f"Import completed with validation errors. Processed: {result.processed_rows}, "
                f"Skipped: {result.skipped_count}. See errors for details."
            )

    except ImportPreconditionError as exc:
        logger.error("Import of %s failed: %s", filename, exc)
        result.success = False
        result.message = f"Import failed: {exc}"
        result.errors.append(str(exc))
    except StoreError as exc:
        logger.error("Upsert for import of %s failed: %s", filename, exc.message)
        result.success = False
        result.message = f"Import failed: Database error during upsert: {exc.message}"
        result.errors.append(f"Database error during upsert: {exc.message}")
    except Exception:
        logger.exception("Unexpected error while importing %s", filename)
        result.success = False
        result.message = "Import failed: An unexpected error occurred while processing the file."
        result.errors.append("An unexpected error occurred while processing the file.")

    if result.errors:
        logger.warning("Import validation errors: %s", result.errors)
    logger.info(
        "Import of %s done: success=%s processed=%d inserted=%d skipped=%d",
        filename, result.success, result.processed_rows, result.inserted_count, result.skipped_count,
    )
    return result
