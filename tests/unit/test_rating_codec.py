import pytest
from pydantic import ValidationError

from book_recommender.schemas.ratings import RatingRecord
from book_recommender.utils.rating_codec import (
    decode_line,
    decode_record,
    decode_text_lines,
    encode_line,
    encode_record,
    escape_text,
    is_encodable_key,
    migrate_legacy_file,
    read_lines,
)


def make_record(**overrides) -> RatingRecord:
    values = {
        "user_id": "alice",
        "book_id": 10,
        "style": 4,
        "style_note": "Dense",
        "content": 5,
        "content_note": None,
        "pleasantness": 3,
        "pleasantness_note": "Slow start",
        "originality": 5,
        "originality_note": None,
        "edition": 2,
        "edition_note": "Typos",
        "overall_score": 3.8,
        "final_comment": "Worth it",
    }
    values.update(overrides)
    return RatingRecord(**values)


def test_encode_line_layout():
    line = encode_line(make_record())

    assert line == "alice;10;4;Dense;5;;3;Slow start;5;;2;Typos;3.8;Worth it"


def test_overall_score_has_one_decimal():
    assert encode_line(make_record(overall_score=4.0)).split(";")[12] == "4.0"
    assert encode_line(make_record(overall_score=3.66)).split(";")[12] == "3.7"


def test_escape_text():
    assert escape_text(None) == ""
    assert escape_text("a;b\nc\r") == "a,b c"


def test_semicolon_becomes_comma_then_semicolon():
    line = encode_line(make_record(final_comment="good; but long"))

    assert line.endswith(";good, but long")
    assert decode_line(line).final_comment == "good; but long"


def test_comma_comes_back_as_semicolon():
    decoded = decode_line(encode_line(make_record(final_comment="short, sweet")))

    assert decoded.final_comment == "short; sweet"


def test_newlines_flattened():
    decoded = decode_line(encode_line(make_record(style_note="line one\r\nline two")))

    assert decoded.style_note == "line one line two"


def test_decode_line_fields():
    decoded = decode_line("bob;20;1;;2;;3;;4;;5;;3.0;\n")

    assert decoded.user_id == "bob"
    assert decoded.book_id == 20
    assert decoded.scores() == (1, 2, 3, 4, 5)
    assert decoded.overall_score == 3.0
    assert decoded.final_comment == ""
    assert decoded.library_name is None


def test_short_line_is_none():
    assert decode_line("alice;10;4;Dense") is None


def test_bad_number_raises():
    with pytest.raises(ValueError):
        decode_line("alice;ten;4;;5;;3;;5;;2;;3.8;")


def test_read_lines_skips_short_and_malformed():
    lines = [
        encode_line(make_record()),
        "",
        "alice;10;4",
        "bob;x;1;;1;;1;;1;;1;;1.0;",
        encode_line(make_record(user_id="bob")),
    ]

    assert [r.user_id for r in read_lines(lines)] == ["alice", "bob"]


def test_structured_round_trip_is_lossless():
    record = make_record(final_comment="short, sweet; and done")

    document = encode_record(record)

    assert '"schema_version":1' in document
    assert decode_record(document) == record


def test_structured_rejects_other_versions():
    document = encode_record(make_record()).replace('"schema_version":1', '"schema_version":2')

    with pytest.raises(ValidationError):
        decode_record(document)


def test_migrate_legacy_file(tmp_path):
    path = tmp_path / "ratings.csv"
    path.write_text(
        "\n".join(
            [
                encode_line(make_record(final_comment="a; b")),
                "broken;line",
                encode_line(make_record(user_id="bob", book_id=20)),
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    report = migrate_legacy_file(path)

    assert report.skipped == 1
    assert [(r.user_id, r.book_id) for r in report.records] == [("alice", 10), ("bob", 20)]
    assert report.records[0].final_comment == "a; b"
    assert all(r.schema_version == 1 for r in report.records)


def test_migrate_missing_file(tmp_path):
    report = migrate_legacy_file(tmp_path / "absent.csv")

    assert report.records == []
    assert report.skipped == 0


def test_decode_text_lines_falls_back_per_line():
    data = "città;1\n".encode("utf-8") + "perché;2\r\n".encode("latin-1")

    assert decode_text_lines(data) == ["città;1", "perché;2"]


def test_migrate_platform_charset_file(tmp_path):
    path = tmp_path / "ratings.csv"
    path.write_bytes("alice;10;4;è lento;5;;3;;5;;2;;3.8;\n".encode("latin-1"))

    report = migrate_legacy_file(path)

    assert report.skipped == 0
    assert report.records[0].style_note == "è lento"


@pytest.mark.parametrize("user_id, expected", [("alice", True), ("a,b", True), ("a;b", False), ("a\nb", False), ("a\rb", False)])
def test_is_encodable_key(user_id, expected):
    assert is_encodable_key(user_id) is expected
