from contextlib import contextmanager

import pandas as pd
import pytest

from sheetflow.api.schemas.shared import ColumnType, SourceKind, SourceReference
from sheetflow.core.errors import EmptySource, SourceUnreadable
from sheetflow.domain.imports.inference import (
    SchemaInferenceEngine,
    classify_column,
    column_names,
    looks_like_header,
)
from tests.utils.sources import rows_opener

REMOTE = SourceReference(kind=SourceKind.URL, location="https://example.com/data.csv", original_name="data.csv")


def test_infers_sales_columns(write_csv):
    source = write_csv("sales.csv", "name,amount\nA,10\nB,20\n")

    inferred = SchemaInferenceEngine(sample_rows=10).infer(source)

    assert inferred.has_header is True
    assert [(c.name, c.type) for c in inferred.columns] == [
        ("name", ColumnType.STRING),
        ("amount", ColumnType.NUMBER),
    ]
    assert inferred.columns[1].sample_values == ["10", "20"]


def test_single_typed_columns_have_full_confidence(write_csv):
    source = write_csv(
        "typed.csv",
        "id,active,joined,city\n"
        "1,true,2024-01-02,Paris\n"
        "2,false,2024-02-03,Oslo\n"
        "3,yes,03/04/2024,Lima\n",
    )

    inferred = SchemaInferenceEngine(sample_rows=10).infer(source)
    by_name = {c.name: c for c in inferred.columns}

    assert by_name["id"].type == ColumnType.NUMBER
    assert by_name["active"].type == ColumnType.BOOLEAN
    assert by_name["joined"].type == ColumnType.DATE
    assert by_name["city"].type == ColumnType.STRING
    assert all(c.confidence == 1.0 for c in inferred.columns)


def test_empty_cells_do_not_disqualify_a_type(write_csv):
    source = write_csv("gaps.csv", "name,amount\nA,\nB,20\nC,  \n")

    inferred = SchemaInferenceEngine(sample_rows=10).infer(source)

    amount = inferred.columns[1]
    assert amount.type == ColumnType.NUMBER
    assert amount.confidence == 1.0


def test_mixed_column_falls_back_to_string():
    column_type, confidence = classify_column(pd.Series(["1", "2", "three"]))
    assert column_type == ColumnType.STRING
    assert confidence == 1.0


def test_threshold_below_one_reports_partial_confidence():
    column_type, confidence = classify_column(pd.Series(["1", "2", "3", "n/a"]), threshold=0.75)
    assert column_type == ColumnType.NUMBER
    assert confidence == 0.75


def test_all_empty_column_is_string_with_zero_confidence():
    column_type, confidence = classify_column(pd.Series(["", " ", None]))
    assert column_type == ColumnType.STRING
    assert confidence == 0.0


def test_headerless_source_gets_positional_names(write_csv):
    source = write_csv("numbers.csv", "1,2024-01-01\n2,2024-01-02\n")

    inferred = SchemaInferenceEngine(sample_rows=10).infer(source)

    assert inferred.has_header is False
    assert inferred.sampled_rows == 2
    assert [c.name for c in inferred.columns] == ["col_0", "col_1"]
    assert [c.type for c in inferred.columns] == [ColumnType.NUMBER, ColumnType.DATE]


def test_header_detection_rules():
    assert looks_like_header(["name", "amount"])
    assert not looks_like_header(["A", "10"])
    assert not looks_like_header(["name", ""])
    assert not looks_like_header(["2024-01-01", "total"])


def test_short_labels_that_are_boolean_literals_still_form_a_header():
    assert looks_like_header(["x", "y"], [["1", "2"], ["3", "4"]])
    assert looks_like_header(["id", "n"], [["1", "Ann"]])
    assert not looks_like_header(["yes", "no"], [["true", "false"], ["n", "y"]])
    assert not looks_like_header(["x", "y"])


@pytest.mark.parametrize(
    "text, names",
    [
        ("x,y\n1,2\n3,4\n", ["x", "y"]),
        ("id,n\n1,5\n2,6\n", ["id", "n"]),
    ],
)
def test_infers_header_of_short_labels(write_csv, text, names):
    inferred = SchemaInferenceEngine(sample_rows=10).infer(write_csv("short.csv", text))

    assert inferred.has_header is True
    assert [c.name for c in inferred.columns] == names
    assert [c.type for c in inferred.columns] == [ColumnType.NUMBER, ColumnType.NUMBER]


def test_headerless_boolean_source_keeps_first_row_as_data(write_csv):
    inferred = SchemaInferenceEngine(sample_rows=10).infer(write_csv("flags.csv", "yes,no\ntrue,false\n"))

    assert inferred.has_header is False
    assert inferred.sampled_rows == 2
    assert [c.type for c in inferred.columns] == [ColumnType.BOOLEAN, ColumnType.BOOLEAN]


def test_duplicate_and_blank_header_names_are_made_unique():
    assert column_names(["amount", "Amount", "", "amount"], 4) == ["amount", "Amount_2", "col_2", "amount_3"]


def test_never_reads_past_the_sample_bound():
    sample_rows = 5

    def rows():
        yield ["id", "value"]
        for i in range(sample_rows):
            yield [str(i), f"v{i}"]
        raise AssertionError("read past the sample bound")

    engine = SchemaInferenceEngine(sample_rows=sample_rows, opener=rows_opener(rows()))
    inferred = engine.infer(REMOTE)

    assert inferred.sampled_rows == sample_rows
    assert inferred.columns[0].type == ColumnType.NUMBER


def test_headerless_sample_bound_includes_first_row():
    def rows():
        yield ["1", "a"]
        yield ["2", "b"]
        yield ["3", "c"]
        raise AssertionError("read past the sample bound")

    inferred = SchemaInferenceEngine(sample_rows=3, opener=rows_opener(rows())).infer(REMOTE)

    assert inferred.sampled_rows == 3


def test_inference_is_idempotent(write_csv):
    source = write_csv("sales.csv", "name,amount\nA,10\nB,20\n")
    engine = SchemaInferenceEngine(sample_rows=10)

    assert engine.infer(source) == engine.infer(source)


def test_empty_file_raises_empty_source(write_csv):
    with pytest.raises(EmptySource):
        SchemaInferenceEngine().infer(write_csv("empty.csv", "\n\n"))


def test_header_only_file_raises_empty_source(write_csv):
    with pytest.raises(EmptySource):
        SchemaInferenceEngine().infer(write_csv("header.csv", "name,amount\n"))


def test_missing_file_raises_source_unreadable(tmp_path):
    missing = SourceReference(kind=SourceKind.FILE, location=str(tmp_path / "nope.csv"), original_name="nope.csv")
    with pytest.raises(SourceUnreadable):
        SchemaInferenceEngine().infer(missing)


def test_opener_failures_propagate_as_source_unreadable():
    @contextmanager
    def failing_opener(source_ref):
        raise SourceUnreadable("connection refused")
        yield  # pragma: no cover

    with pytest.raises(SourceUnreadable):
        SchemaInferenceEngine(opener=failing_opener).infer(REMOTE)
