import pytest

from sheetflow.api.schemas.shared import ColumnType
from sheetflow.domain.imports.parsers import (
    Unparsable,
    coerce_cell,
    matches,
    parse_boolean,
    parse_date,
    parse_number,
)


def test_parse_number_handles_integers_and_decimals():
    assert parse_number("42") == 42
    assert parse_number("-3.5") == -3.5
    assert parse_number("10.0") == 10
    assert isinstance(parse_number("10.0"), int)


def test_parse_number_handles_formatted_values():
    assert parse_number("1,234") == 1234
    assert parse_number("$1,200.50") == 1200.5
    assert parse_number("(12.50)") == -12.5
    assert parse_number("-$5") == -5


@pytest.mark.parametrize("value", ["abc", "415-610-7325", "98%", "NaN", "inf", "$", "1.2.3"])
def test_parse_number_rejects_non_numbers(value):
    with pytest.raises(Unparsable):
        parse_number(value)


def test_parse_boolean_literals():
    assert parse_boolean("TRUE") is True
    assert parse_boolean(" yes ") is True
    assert parse_boolean("n") is False
    assert parse_boolean("False") is False
    with pytest.raises(Unparsable):
        parse_boolean("maybe")


def test_parse_date_fixed_formats():
    assert parse_date("2024-03-05") == "2024-03-05"
    assert parse_date("03/05/2024") == "2024-03-05"  # month first when ambiguous
    assert parse_date("25/12/2023") == "2023-12-25"
    assert parse_date("5 Jan 2024") == "2024-01-05"
    assert parse_date("2024-03-05T10:30:00") == "2024-03-05T10:30:00"
    with pytest.raises(Unparsable):
        parse_date("next tuesday")


def test_matches_uses_the_same_rules_as_parsing():
    assert matches("10", ColumnType.NUMBER)
    assert not matches("ten", ColumnType.NUMBER)
    assert matches("anything", ColumnType.STRING)


def test_coerce_cell_blank_and_failures():
    assert coerce_cell("", "number") == (None, True)
    assert coerce_cell(None, "date") == (None, True)
    assert coerce_cell("oops", "number") == (None, False)
    assert coerce_cell(" 7 ", "number") == (7, True)
    assert coerce_cell(" padded ", "string") == ("padded", True)
