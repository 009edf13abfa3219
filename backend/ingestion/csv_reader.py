"""
Suspended-member CSV reader.

Turns an uploaded export into a list of field -> value rows. The header
row names the fields; blank lines are skipped. Anything that cannot be
read as a rectangular table is rejected as malformed input.
"""

import csv
import io
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

SNIFF_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_SIZE = 4096


class MalformedCSVError(ValueError):
    """The upload could not be parsed as a member CSV."""


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedCSVError(f"File is not UTF-8 encoded (byte {e.start})") from e


def _sniff_dialect(sample: str):
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS)
    except csv.Error:
        return csv.excel


def parse_member_csv(content: bytes) -> List[Dict[str, str]]:
    """
    Parse CSV bytes into rows keyed by header name.

    Rows shorter than the header are padded with empty strings. Rows with
    more cells than the header, duplicate or blank header names, and
    undecodable content raise MalformedCSVError.
    """
    if not content or not content.strip():
        raise MalformedCSVError("File is empty")

    text = _decode(content)
    dialect = _sniff_dialect(text[:SNIFF_SAMPLE_SIZE])

    reader = csv.reader(io.StringIO(text, newline=""), dialect)
    rows: List[Dict[str, str]] = []

    try:
        header: List[str] = []
        for cells in reader:
            if any(cell.strip() for cell in cells):
                header = [cell.strip() for cell in cells]
                break
        if not header:
            raise MalformedCSVError("Missing header row")
        if any(not name for name in header):
            raise MalformedCSVError("Header row contains a blank column name")
        duplicates = sorted({name for name in header if header.count(name) > 1})
        if duplicates:
            raise MalformedCSVError(f"Duplicate column names: {', '.join(duplicates)}")

        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue
            if len(cells) > len(header):
                raise MalformedCSVError(
                    f"Line {reader.line_num}: expected {len(header)} fields, found {len(cells)}"
                )
            padded = list(cells) + [""] * (len(header) - len(cells))
            rows.append(dict(zip(header, padded)))
    except csv.Error as e:
        raise MalformedCSVError(f"Line {reader.line_num}: {e}") from e

    logger.debug(f"Parsed member CSV: {len(header)} columns, {len(rows)} rows")
    return rows
