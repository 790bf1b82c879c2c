"""
Record stream: lazy parsing of `time,url` CSV input.
"""

import csv
import math
from typing import Iterable, Iterator, List

from .models import ParseError, Record


def _is_blank(row: List[str]) -> bool:
    return not row or (len(row) == 1 and not row[0].strip())


def parse_records(lines: Iterable[str], skip_header: bool = False) -> Iterator[Record]:
    """
    Yield records one at a time, in input order.

    Blank lines are ignored. With skip_header, the first non-blank line is
    discarded before parsing starts. Raises ParseError on the first malformed
    line; records before it have already been yielded.
    """
    reader = csv.reader(lines)
    header_pending = skip_header
    for row in reader:
        if _is_blank(row):
            continue
        if header_pending:
            header_pending = False
            continue

        line_number = reader.line_num
        if len(row) != 2:
            raise ParseError("expected 2 columns", line_number, field_count=len(row))

        raw_time, url = row[0].strip(), row[1].strip()
        try:
            scheduled_time = float(raw_time)
        except ValueError:
            raise ParseError("invalid time", line_number, detail=raw_time) from None
        if not math.isfinite(scheduled_time):
            raise ParseError("invalid time", line_number, detail=raw_time)
        if not url:
            raise ParseError("invalid URL", line_number, detail="URL cannot be empty")

        yield Record(scheduled_time=scheduled_time, url=url)


def read_records(path: str, skip_header: bool = False) -> Iterator[Record]:
    """Stream records from a CSV file without loading it into memory."""
    with open(path, newline="", encoding="utf-8") as f:
        yield from parse_records(f, skip_header)
