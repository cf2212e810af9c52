"""
Rating serialization.

Two representations are supported:

* the legacy delimited line, one rating per line, fields separated by ``;``::

      user;book;style;note;content;note;pleasantness;note;originality;note;edition;note;overall;comment

  Free text is escaped by turning ``;`` into ``,``, newlines into spaces and
  dropping carriage returns. Reading turns every ``,`` back into ``;``. The
  round trip is lossy for text containing commas or semicolons; existing
  files depend on exactly this behaviour.

* a versioned JSON document (``schema_version`` 1) used for new data and as
  the target of ``migrate_legacy_file``.
"""

from pathlib import Path
from typing import Iterable, Iterator, Literal, Optional

from pydantic import BaseModel

from book_recommender.core.logger_config import logger
from book_recommender.schemas.ratings import CRITERIA, RatingRecord

SEPARATOR = ";"
LEGACY_FIELD_COUNT = 14
SCHEMA_VERSION = 1
# Charset of lines that are not UTF-8
FALLBACK_ENCODING = "latin-1"
FORBIDDEN_KEY_CHARS = (SEPARATOR, "\n", "\r")


def escape_text(text: Optional[str]) -> str:
    if text is None:
        return ""
    return text.replace(";", ",").replace("\n", " ").replace("\r", "")


def unescape_text(text: Optional[str]) -> str:
    if text is None:
        return ""
    return text.replace(",", ";")


def decode_text_lines(data: bytes) -> list[str]:
    """
    Split raw file content into lines, decoding each as UTF-8.

    Lines that are not valid UTF-8 were written in the platform charset and
    are decoded as latin-1, which accepts any byte.
    """
    lines = []
    for number, raw in enumerate(data.splitlines(), start=1):
        try:
            lines.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            logger.warning(f"Rating line {number} is not UTF-8, decoded as {FALLBACK_ENCODING}")
            lines.append(raw.decode(FALLBACK_ENCODING))
    return lines


def is_encodable_key(user_id: str) -> bool:
    """False if the user id would break the line layout; it is written unescaped."""
    return not any(char in user_id for char in FORBIDDEN_KEY_CHARS)


def encode_line(record: RatingRecord) -> str:
    """
    Render a rating as one legacy delimited line (without the trailing newline).

    Args:
        record: Rating to encode

    Returns:
        str: The delimited line
    """
    fields = [record.user_id, str(record.book_id)]
    for name in CRITERIA:
        fields.append(str(getattr(record, name)))
        fields.append(escape_text(getattr(record, f"{name}_note")))
    fields.append(f"{record.overall_score:.1f}")
    fields.append(escape_text(record.final_comment))
    return SEPARATOR.join(fields)


def decode_line(line: str) -> Optional[RatingRecord]:
    """
    Parse one legacy delimited line.

    Args:
        line: Line read from the file, with or without the newline

    Returns:
        RatingRecord or None if the line has fewer than the 14 expected fields

    Raises:
        ValueError: If a numeric field cannot be parsed
    """
    parts = line.rstrip("\r\n").split(SEPARATOR)
    if len(parts) < LEGACY_FIELD_COUNT:
        return None

    values = {"user_id": parts[0], "book_id": int(parts[1])}
    for index, name in enumerate(CRITERIA):
        values[name] = int(parts[2 + index * 2])
        values[f"{name}_note"] = unescape_text(parts[3 + index * 2])
    values["overall_score"] = float(parts[12])
    values["final_comment"] = unescape_text(parts[13])
    return RatingRecord(**values)


def read_lines(lines: Iterable[str]) -> Iterator[RatingRecord]:
    """Decode every well-formed line, skipping short or malformed ones."""
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = decode_line(line)
        except ValueError as e:
            logger.warning(f"Skipping malformed rating line {number}: {e}")
            continue
        if record is None:
            logger.warning(f"Skipping short rating line {number}")
            continue
        yield record


class StructuredRating(RatingRecord):
    """
    Versioned structured representation of a rating.
    """

    schema_version: Literal[1] = SCHEMA_VERSION


def encode_record(record: RatingRecord) -> str:
    """Serialize a rating as a versioned JSON document."""
    return StructuredRating(**record.model_dump()).model_dump_json()


def decode_record(document: str | bytes) -> RatingRecord:
    """
    Parse a versioned JSON document back into a rating.

    Raises:
        pydantic.ValidationError: If the document is not a version 1 rating
    """
    structured = StructuredRating.model_validate_json(document)
    return RatingRecord(**structured.model_dump(exclude={"schema_version"}))


class MigrationReport(BaseModel):
    records: list[StructuredRating]
    skipped: int = 0


def migrate_legacy_file(path: str | Path) -> MigrationReport:
    """
    Read a legacy ratings file into structured records.

    The legacy unescaping is applied as-is, so a ``;`` that was written as
    ``,`` comes back as ``;`` and an original ``,`` also becomes ``;``.

    Args:
        path: Legacy file location

    Returns:
        MigrationReport: Structured records and the number of skipped lines
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No legacy ratings file at {path}, nothing to migrate")
        return MigrationReport(records=[])

    lines = [line for line in decode_text_lines(path.read_bytes()) if line.strip()]

    records = [StructuredRating(**record.model_dump()) for record in read_lines(lines)]
    report = MigrationReport(records=records, skipped=len(lines) - len(records))
    logger.info(f"Migrated {len(report.records)} ratings from {path} ({report.skipped} skipped)")
    return report
