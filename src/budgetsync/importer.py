import csv
import io
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import BinaryIO, Iterator

from budgetsync.models import MIN_DATE, RowResult, Transaction

logger = logging.getLogger(__name__)

LEGACY_ENCODING = "cp1252"
_UTF8_BOM = b"\xef\xbb\xbf"

# Field name -> header names to try, canonical first. The second name covers
# exports where an upstream tool replaced the diacritic with U+FFFD.
COLUMNS: dict[str, tuple[str, ...]] = {
    "row_number": ("Radnummer",),
    "clearing_number": ("Clearingnummer",),
    "account_number": ("Kontonummer",),
    "product": ("Produkt",),
    "currency": ("Valuta",),
    "booking_date": ("Bokföringsdag", "Bokf\ufffdringsdag"),
    "transaction_date": ("Transaktionsdag",),
    "currency_date": ("Valutadag",),
    "reference": ("Referens",),
    "description": ("Beskrivning",),
    "amount": ("Belopp",),
    "booked_balance": ("Bokfört saldo", "Bokf\ufffdrt saldo"),
}

_FALLBACK_DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y%m%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%m/%d/%Y",
)


class ParseError(ValueError):
    """The file as a whole cannot be parsed (no header, unreadable stream)."""


def decode_bytes(raw: bytes) -> str:
    """Decode a bank export: BOM or valid UTF-8 first, else the legacy Windows encoding."""
    if raw.startswith(_UTF8_BOM):
        return raw[len(_UTF8_BOM):].decode("utf-8", errors="replace")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Input is not valid UTF-8, decoding as %s", LEGACY_ENCODING)
        return raw.decode(LEGACY_ENCODING, errors="replace")


def detect_delimiter(header_line: str) -> str:
    return ";" if header_line.count(";") > header_line.count(",") else ","


def parse_int(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return 0
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def parse_amount(raw: str | None) -> Decimal:
    """Swedish number format: spaces group thousands, comma is the decimal separator."""
    if raw is None:
        return Decimal(0)
    normalized = "".join(raw.split()).replace('"', "").replace(",", ".")
    if not normalized:
        return Decimal(0)
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return Decimal(0)
    if not value.is_finite():
        return Decimal(0)
    return value


def parse_date(raw: str | None) -> date:
    """Parse YYYY-MM-DD, then a handful of common layouts; MIN_DATE if nothing fits."""
    if raw is None or not raw.strip():
        return MIN_DATE
    text = raw.strip()
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        pass
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        logger.debug("Parsed date %r with fallback format %s", text, fmt)
        return parsed
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        logger.warning("Failed to parse date string: %r", text)
        return MIN_DATE


def clean_text(raw: str | None) -> str:
    if raw is None:
        return ""
    return raw.replace('"', "").strip()


def get_field(row: dict[str, str | None], field_name: str) -> str | None:
    """Look a field up by its canonical header, falling back to the corrupted variant."""
    for header in COLUMNS[field_name]:
        value = row.get(header)
        if value is not None:
            return value
    return None


def parse_row(row: dict[str, str | None], line_number: int) -> RowResult:
    """Turn one CSV record into a RowResult. Never raises for bad data."""
    values = {name: get_field(row, name) for name in COLUMNS}
    if not any(v and v.strip() for v in values.values()):
        return RowResult(line_number=line_number, skip_reason="empty row")

    try:
        booking_date = parse_date(values["booking_date"])
        transaction = Transaction(
            row_number=parse_int(values["row_number"]),
            clearing_number=clean_text(values["clearing_number"]),
            account_number=clean_text(values["account_number"]),
            product=clean_text(values["product"]),
            currency=clean_text(values["currency"]),
            booking_date=booking_date,
            transaction_date=parse_date(values["transaction_date"]),
            currency_date=parse_date(values["currency_date"]),
            reference=clean_text(values["reference"]),
            description=clean_text(values["description"]),
            amount=parse_amount(values["amount"]),
            booked_balance=parse_amount(values["booked_balance"]),
        )
    except (ValueError, ArithmeticError) as exc:
        return RowResult(line_number=line_number, skip_reason=f"{type(exc).__name__}: {exc}")

    if booking_date == MIN_DATE:
        logger.warning(
            "Line %d: booking date missing or unparseable (%r), using sentinel date",
            line_number, values["booking_date"],
        )
    return RowResult(line_number=line_number, transaction=transaction)


def split_line(line: str, delimiter: str) -> list[str]:
    """Split one physical line. Raises csv.Error on a line the csv module rejects."""
    if line.count('"') % 2:
        raise csv.Error("unterminated quoted field")
    return next(csv.reader([line], delimiter=delimiter), [])


def parse_rows(stream: BinaryIO) -> Iterator[RowResult]:
    """Yield one RowResult per data row. The first line is metadata, the second the header.

    Each record is one physical line, so a malformed line only costs that row.
    """
    text = decode_bytes(stream.read())
    lines = io.StringIO(text, newline=None)

    metadata = lines.readline()
    logger.debug("Skipping metadata line: %s", metadata.rstrip())
    header_line = lines.readline()
    if not header_line.strip():
        raise ParseError("Missing header line")

    delimiter = detect_delimiter(header_line)
    try:
        headers = [h.strip() for h in split_line(header_line, delimiter)]
    except csv.Error as exc:
        raise ParseError(f"Unreadable header line: {exc}") from exc

    for line_number, line in enumerate(lines, start=3):
        if not line.strip():
            continue
        try:
            values = split_line(line, delimiter)
        except csv.Error as exc:
            result = RowResult(line_number=line_number, skip_reason=f"malformed line: {exc}")
        else:
            result = parse_row(dict(zip(headers, values)), line_number)
        if not result.ok:
            logger.warning("Skipping line %d: %s", line_number, result.skip_reason)
        yield result


def parse_transactions(stream: BinaryIO) -> list[Transaction]:
    """Parse a bank export stream into transactions sorted by booking date."""
    transactions = [r.transaction for r in parse_rows(stream) if r.transaction is not None]
    logger.info("Parsed %d transactions", len(transactions))
    return sorted(transactions, key=lambda t: t.booking_date)


def parse_file(file_path: Path) -> list[Transaction]:
    logger.info("Parsing transactions from file: %s", file_path)
    with open(file_path, "rb") as f:
        return parse_transactions(f)
