import pytest

from traffic_replay.models import ParseError
from traffic_replay.records import parse_records, read_records


def test_parses_valid_csv(write_csv):
    path = write_csv(
        "1761128950441,https://example.com\n"
        "1761128950941,https://test.com\n"
        "1761128951441,https://api.com"
    )

    records = list(read_records(path))

    assert [r.scheduled_time for r in records] == [1761128950441, 1761128950941, 1761128951441]
    assert [r.url for r in records] == ["https://example.com", "https://test.com", "https://api.com"]


def test_skips_blank_lines(write_csv):
    path = write_csv("1761128950441,https://example.com\n\n   \n1761128950941,https://test.com\n")

    assert len(list(read_records(path))) == 2


def test_trims_fields(write_csv):
    path = write_csv("  1761128950441 ,  https://example.com/a  \n")

    (record,) = read_records(path)

    assert record.scheduled_time == 1761128950441
    assert record.url == "https://example.com/a"


def test_parses_scientific_notation(write_csv):
    path = write_csv("1.761317942115E12,https://example.com\n1.761317943115E12,https://test.com")

    records = list(read_records(path))

    assert records[0].scheduled_time == 1761317942115
    assert records[1].scheduled_time == 1761317943115


def test_skip_header_drops_first_non_blank_line(write_csv):
    path = write_csv("\ntime,url\n1761128950441,https://example.com\n1761128950941,https://test.com")

    records = list(read_records(path, skip_header=True))

    assert [r.url for r in records] == ["https://example.com", "https://test.com"]


def test_skip_header_only_drops_one_line(write_csv):
    path = write_csv("time,url\ntime,url\n")

    with pytest.raises(ParseError) as exc_info:
        list(read_records(path, skip_header=True))

    assert exc_info.value.reason == "invalid time"
    assert exc_info.value.line_number == 2


def test_rejects_wrong_column_count(write_csv):
    path = write_csv("1761128950441,https://example.com,extra")

    with pytest.raises(ParseError) as exc_info:
        list(read_records(path))

    err = exc_info.value
    assert err.reason == "expected 2 columns"
    assert err.line_number == 1
    assert err.field_count == 3
    assert "line 1" in str(err)


@pytest.mark.parametrize("bad_time", ["abc", "nan", "inf", ""])
def test_rejects_invalid_time(write_csv, bad_time):
    path = write_csv(f"{bad_time},http://x")

    with pytest.raises(ParseError) as exc_info:
        list(read_records(path))

    assert exc_info.value.reason == "invalid time"
    assert exc_info.value.line_number == 1


def test_rejects_empty_url(write_csv):
    path = write_csv("1761128950441,   ")

    with pytest.raises(ParseError) as exc_info:
        list(read_records(path))

    assert exc_info.value.reason == "invalid URL"
    assert exc_info.value.line_number == 1


def test_line_numbers_count_blank_lines():
    lines = ["\n", "1,http://a/1\n", "bad,http://a/2\n"]

    with pytest.raises(ParseError) as exc_info:
        list(parse_records(lines))

    assert exc_info.value.line_number == 3


def test_yields_records_before_a_malformed_line():
    stream = parse_records(["1,http://a/1", "2,http://a/2", "oops"])

    assert next(stream).url == "http://a/1"
    assert next(stream).url == "http://a/2"
    with pytest.raises(ParseError):
        next(stream)


def test_is_lazy():
    pulled = []

    def lines():
        for i in range(1_000_000):
            pulled.append(i)
            yield f"{i},http://a/{i}"

    stream = parse_records(lines())
    first = next(stream)

    assert first.scheduled_time == 0
    assert len(pulled) == 1


def test_empty_input(write_csv):
    path = write_csv("")

    assert list(read_records(path)) == []
