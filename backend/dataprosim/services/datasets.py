"""
Dataset upload parsing and chart data synthesis.

Chart points are randomly generated within ranges suggested by the column
names; they are placeholders for the chart builder, not computed statistics.
"""
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from dataprosim.core.exceptions import ErrorCode, ValidationError
from dataprosim.schemas.storage import Dataset

MAX_CHART_POINTS = 100
PREVIEW_LINES = 6

# (keywords, low, high) checked in order against the lowercased column name
_RANGE_RULES: List[Tuple[Tuple[str, ...], int, int]] = [
    (("score", "runs", "wickets"), 1, 100),
    (("rate", "average"), 10, 59),
]
_POSITION_RANGE = (1, 20)
_DEFAULT_RANGE = (1, 50)


@dataclass
class CsvSummary:
    headers: List[str]
    rows: int
    preview: List[str]


def parse_csv_upload(content: bytes) -> CsvSummary:
    """
    Extract headers, row count and a short preview from raw CSV bytes.

    Raises:
        ValidationError: if the file is not UTF-8 text or has no content.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError(
            "Uploaded file is not valid UTF-8 text",
            code=ErrorCode.DST_UNREADABLE,
            field="file",
        ) from e

    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise ValidationError(
            "Uploaded file is empty",
            code=ErrorCode.DST_EMPTY_FILE,
            field="file",
        )

    headers = [h.strip() for h in lines[0].split(",")]
    return CsvSummary(headers=headers, rows=len(lines) - 1, preview=lines[:PREVIEW_LINES])


def _value_range(column: str, allow_position: bool) -> Tuple[int, int]:
    name = column.lower()
    for keywords, low, high in _RANGE_RULES:
        if any(k in name for k in keywords):
            return low, high
    if allow_position and "position" in name:
        return _POSITION_RANGE
    return _DEFAULT_RANGE


def generate_chart_data(
    dataset: Dataset,
    x_axis: Optional[str] = None,
    y_axis: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """Synthesize up to MAX_CHART_POINTS points for the chart builder."""
    rng = rng or random.Random()
    points = []

    for i in range(min(dataset.rows, MAX_CHART_POINTS)):
        point: Dict[str, Any] = {"id": i}
        if x_axis and y_axis:
            point[x_axis] = rng.randint(*_value_range(x_axis, allow_position=True))
            point[y_axis] = rng.randint(*_value_range(y_axis, allow_position=False))
        else:
            point["value"] = rng.randint(1, 100)
            point["label"] = f"Item {i + 1}"
        points.append(point)

    return points


def generate_insights(
    dataset: Dataset,
    chart_type: str,
    x_axis: Optional[str] = None,
    y_axis: Optional[str] = None,
) -> List[str]:
    columns = dataset.columns
    column_list = ", ".join(columns[:5]) + ("..." if len(columns) > 5 else "")

    if chart_type == "scatter":
        analysis = f"Correlation analysis between {x_axis} and {y_axis}"
    else:
        analysis = f"Distribution analysis of {x_axis or 'selected columns'}"

    return [
        f"Analysis of {dataset.filename} with {dataset.rows} records",
        f"Dataset contains {len(columns)} columns: {column_list}",
        analysis,
        f"Data quality: {dataset.rows} rows processed successfully",
    ]
