"""
Schema inference from a bounded sample of a source.

Only the header row plus ``sample_rows`` data rows are ever pulled from the
source, so inference cost does not grow with the size of the upload.
"""
import logging
from itertools import islice
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from sheetflow.api.schemas.shared import ColumnGuess, ColumnType, InferredSchema, SourceReference
from sheetflow.core.config import settings
from sheetflow.core.errors import EmptySource
from sheetflow.domain.imports.parsers import INFERENCE_PRIORITY, matches
from sheetflow.domain.uploads.sources import Row, RowOpener, open_source

logger = logging.getLogger(__name__)

SAMPLE_VALUES_PER_COLUMN = 5


def looks_like_header(row: Sequence[str], following: Sequence[Sequence[str]] = ()) -> bool:
    """
    Decide whether ``row`` labels the columns of the rows in ``following``.

    Every cell must be filled in, and numbers or dates are always data. Short
    labels such as ``y`` or ``t`` are also boolean literals, so a boolean-looking
    cell only counts as data when the cells below it are booleans too.
    """
    if not row:
        return False
    for index, cell in enumerate(row):
        value = cell.strip()
        if not value:
            return False
        if matches(value, ColumnType.NUMBER) or matches(value, ColumnType.DATE):
            return False
        if matches(value, ColumnType.BOOLEAN):
            below = [r[index].strip() for r in following if index < len(r) and r[index].strip()]
            if all(matches(v, ColumnType.BOOLEAN) for v in below):
                return False
    return True


def column_names(header: Optional[Sequence[str]], width: int) -> List[str]:
    """Header labels made unique, or ``col_<i>`` placeholders for headerless sources."""
    names: List[str] = []
    seen: Dict[str, int] = {}
    for index in range(width):
        label = header[index].strip() if header and index < len(header) else ""
        if not label:
            label = f"col_{index}"
        candidate = label
        while candidate.lower() in seen:
            seen[label.lower()] = seen.get(label.lower(), 1) + 1
            candidate = f"{label}_{seen[label.lower()]}"
        seen.setdefault(candidate.lower(), 1)
        names.append(candidate)
    return names


def classify_column(values: pd.Series, threshold: float = 1.0) -> Tuple[ColumnType, float]:
    """
    Pick the most specific type whose parser accepts the sampled cells.

    Returns the winning type and the fraction of non-empty cells it matched.
    """
    cleaned = values.fillna("").astype(str).str.strip()
    non_empty = cleaned[cleaned != ""]
    if non_empty.empty:
        return ColumnType.STRING, 0.0

    for column_type in INFERENCE_PRIORITY:
        fraction = float(non_empty.map(lambda value, t=column_type: matches(value, t)).mean())
        if fraction >= threshold:
            return column_type, round(fraction, 4)
    return ColumnType.STRING, 1.0


class SchemaInferenceEngine:
    """Reads a bounded sample of a source and guesses a typed column list."""

    def __init__(
        self,
        sample_rows: Optional[int] = None,
        match_threshold: Optional[float] = None,
        opener: RowOpener = open_source,
    ):
        self.sample_rows = sample_rows if sample_rows is not None else settings.inference_sample_rows
        self.match_threshold = match_threshold if match_threshold is not None else settings.inference_match_threshold
        self._open = opener

    def read_sample(self, source_ref: SourceReference) -> Tuple[Optional[Row], List[Row]]:
        """Return ``(header, data_rows)``; ``header`` is None for headerless sources."""
        with self._open(source_ref) as rows:
            first = next(rows, None)
            if first is None:
                raise EmptySource(f"'{source_ref.original_name}' contains no rows")
            # Enough rows to judge the first one without exceeding the headerless bound.
            following = list(islice(rows, max(self.sample_rows - 1, 0)))
            if looks_like_header(first, following):
                return first, following + list(islice(rows, 1 if self.sample_rows else 0))
            # Headerless: the first row is data and counts towards the sample.
            return None, [first] + following

    def infer(self, source_ref: SourceReference) -> InferredSchema:
        """
        Infer the column list of ``source_ref``.

        Raises:
            SourceUnreadable: the source cannot be opened or read.
            EmptySource: the source holds no data rows.
        """
        header, sample = self.read_sample(source_ref)
        if not sample:
            raise EmptySource(f"'{source_ref.original_name}' has a header but no data rows")

        width = len(header) if header else max(len(row) for row in sample)
        padded = [list(row[:width]) + [""] * (width - len(row)) for row in sample]
        frame = pd.DataFrame(padded, columns=range(width), dtype=object)
        names = column_names(header, width)

        columns = []
        for index, name in enumerate(names):
            series = frame[index]
            column_type, confidence = classify_column(series, self.match_threshold)
            cleaned = series.fillna("").astype(str).str.strip()
            samples = cleaned[cleaned != ""].drop_duplicates().head(SAMPLE_VALUES_PER_COLUMN).tolist()
            columns.append(
                ColumnGuess(name=name, type=column_type, sample_values=samples, confidence=confidence)
            )

        logger.info(
            "Inferred %d columns for '%s' from %d sampled rows (header=%s): %s",
            len(columns),
            source_ref.original_name,
            len(sample),
            header is not None,
            ", ".join(f"{c.name}:{c.type.value}" for c in columns),
        )
        return InferredSchema(has_header=header is not None, sampled_rows=len(sample), columns=columns)
