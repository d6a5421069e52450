import io
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from budgetsync.importer import (
    ParseError, decode_bytes, detect_delimiter, parse_amount, parse_date, parse_file,
    parse_rows, parse_transactions,
)
from budgetsync.models import MIN_DATE

FIXTURES = Path(__file__).parent / "fixtures"

METADATA = "* Transaktioner Period 2025-01-01 - 2025-01-31 Skapad 2025-02-01 09:00 CET"
HEADER = (
    "Radnummer,Clearingnummer,Kontonummer,Produkt,Valuta,Bokföringsdag,Transaktionsdag,"
    "Valutadag,Referens,Beskrivning,Belopp,Bokfört saldo"
)


def _export(rows: list[str], header: str = HEADER, encoding: str = "cp1252") -> io.BytesIO:
    text = "\n".join([METADATA, header, *rows]) + "\n"
    return io.BytesIO(text.encode(encoding))


def test_parse_fixture_file():
    txns = parse_file(FIXTURES / "swedbank_sample.csv")
    assert len(txns) == 7
    # Sorted by booking date, oldest first
    assert [t.row_number for t in txns] == [1, 2, 3, 4, 5, 6, 7]
    assert txns[0].description == "Swish från Anna Åberg"
    assert txns[0].reference == ""
    assert txns[0].amount == Decimal("150.00")
    assert txns[4].reference == "LÖN"
    assert txns[4].booking_date == date(2025, 1, 28)
    assert txns[6].amount == Decimal("-89.00")
    assert txns[6].booked_balance == Decimal("29372.00")


def test_parse_legacy_encoding_keeps_swedish_letters():
    stream = _export([
        "1,8327-9,123,Privatkonto,SEK,2025-01-01,2025-01-01,2025-01-01,HYRA,Hyra januari Bäckgården,-8500.00,10000.00",
        "2,8327-9,123,Privatkonto,SEK,2025-01-05,2025-01-04,2025-01-05,MAT,Matbutik Åhus,-412.30,1500.00",
        "3,8327-9,123,Privatkonto,SEK,2025-01-10,2025-01-10,2025-01-10,TELE2,Telefon Öresund,-299.00,1087.70",
    ])
    txns = parse_transactions(stream)
    assert len(txns) == 3
    assert txns[0].description == "Hyra januari Bäckgården"
    assert txns[1].description == "Matbutik Åhus"
    assert txns[2].description == "Telefon Öresund"
    assert txns[1].booking_date == date(2025, 1, 5)
    assert txns[1].transaction_date == date(2025, 1, 4)
    assert txns[2].amount == Decimal("-299.00")


def test_parse_corrupted_header_names():
    header = HEADER.replace("ö", "\ufffd")
    stream = _export(
        ["1,8327-9,123,Privatkonto,SEK,2025-03-02,2025-03-01,2025-03-02,ICA,ICA Nära,-120.00,5000.00"],
        header=header, encoding="utf-8",
    )
    txns = parse_transactions(stream)
    assert len(txns) == 1
    assert txns[0].booking_date == date(2025, 3, 2)
    assert txns[0].booked_balance == Decimal("5000.00")


def test_parse_utf8_with_bom():
    text = "\n".join([METADATA, HEADER, "1,8327-9,123,Privatkonto,SEK,2025-01-01,,,,Café Ölstugan,-85.00,0"])
    stream = io.BytesIO(b"\xef\xbb\xbf" + text.encode("utf-8"))
    txns = parse_transactions(stream)
    assert txns[0].description == "Café Ölstugan"


def test_parse_semicolon_delimited_export():
    header = HEADER.replace(",", ";")
    stream = _export(
        ["1;8327-9;123;Privatkonto;SEK;2025-01-25;2025-01-25;2025-01-25;LÖN;Lön;-1 234,50;2 000,00"],
        header=header,
    )
    txns = parse_transactions(stream)
    assert txns[0].amount == Decimal("-1234.50")
    assert txns[0].booked_balance == Decimal("2000.00")


def test_bad_amount_and_date_fall_back_to_defaults():
    stream = _export(["x,8327-9,123,Privatkonto,SEK,not a date,,,NETFLIX,Netflix,abc,"])
    results = list(parse_rows(stream))
    assert len(results) == 1
    txn = results[0].transaction
    assert txn.row_number == 0
    assert txn.amount == Decimal(0)
    assert txn.booking_date == MIN_DATE
    assert not txn.has_booking_date


def test_empty_row_is_skipped_with_reason():
    stream = _export([
        ",,,,,,,,,,,",
        "2,8327-9,123,Privatkonto,SEK,2025-01-02,2025-01-02,2025-01-02,COOP,Coop,-50.00,0",
    ])
    results = list(parse_rows(stream))
    assert [r.ok for r in results] == [False, True]
    assert results[0].skip_reason == "empty row"
    assert results[0].line_number == 3
    assert results[1].line_number == 4
    assert len(parse_transactions(_export([",,,,,,,,,,,"]))) == 0


def test_unterminated_quote_only_skips_that_line():
    good = "1,8327-9,123,Privatkonto,SEK,2025-01-02,2025-01-02,2025-01-02,COOP,Coop,-50.00,0"
    broken = '2,8327-9,123,Privatkonto,SEK,2025-01-03,2025-01-03,2025-01-03,,"Hemkop,-10.00,0'
    filler = [
        f"{n},8327-9,123,Privatkonto,SEK,2025-01-04,2025-01-04,2025-01-04,ICA,{'Ica Nära ' * 10},-1.00,0"
        for n in range(3, 2003)
    ]
    results = list(parse_rows(_export([good, broken, *filler])))
    assert len(results) == 2002
    assert results[1].line_number == 4
    assert results[1].skip_reason == "malformed line: unterminated quoted field"
    assert len(parse_transactions(_export([good, broken, *filler]))) == 2001


def test_oversized_field_is_skipped():
    huge = "1,8327-9,123,Privatkonto,SEK,2025-01-02,2025-01-02,2025-01-02,X,\"" + "x" * 200_000 + "\",-1.00,0"
    good = "2,8327-9,123,Privatkonto,SEK,2025-01-03,2025-01-03,2025-01-03,COOP,Coop,-50.00,0"
    results = list(parse_rows(_export([huge, good])))
    assert [r.ok for r in results] == [False, True]
    assert results[0].skip_reason.startswith("malformed line:")


def test_failing_field_helper_skips_row(monkeypatch):
    def boom(raw):
        raise ValueError("bad date")

    monkeypatch.setattr("budgetsync.importer.parse_date", boom)
    results = list(parse_rows(_export(["1,8327-9,123,Privatkonto,SEK,2025-01-02,,,COOP,Coop,-50.00,0"])))
    assert results[0].skip_reason == "ValueError: bad date"


def test_missing_header_raises():
    with pytest.raises(ParseError):
        parse_transactions(io.BytesIO(METADATA.encode("utf-8")))


def test_header_only_gives_no_transactions():
    assert parse_transactions(_export([])) == []


def test_decode_bytes_prefers_utf8():
    assert decode_bytes("Lön".encode("utf-8")) == "Lön"
    assert decode_bytes("Lön".encode("cp1252")) == "Lön"


def test_detect_delimiter():
    assert detect_delimiter("a;b;c") == ";"
    assert detect_delimiter("a,b,c") == ","
    assert detect_delimiter("a;b,c") == ","


@pytest.mark.parametrize("raw,expected", [
    ("-324.75", Decimal("-324.75")),
    ("-324,75", Decimal("-324.75")),
    ('"1 234,50"', Decimal("1234.50")),
    ("1\xa0234,50", Decimal("1234.50")),
    ("", Decimal(0)),
    (None, Decimal(0)),
    ("abc", Decimal(0)),
    ("NaN", Decimal(0)),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("2025-01-05", date(2025, 1, 5)),
    (" 2025-01-05 ", date(2025, 1, 5)),
    ("2025/01/05", date(2025, 1, 5)),
    ("05.01.2025", date(2025, 1, 5)),
    ("2025-01-05T10:30:00", date(2025, 1, 5)),
    ("", MIN_DATE),
    ("yesterday", MIN_DATE),
])
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected
