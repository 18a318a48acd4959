from __future__ import annotations

import csv
import math
from pathlib import Path


def _parse_price(raw: str, line: int, column: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid price at row {line}: {column}={raw!r} is not a number") from None
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"Invalid price at row {line}: {column}={value} must be > 0")
    return value


def load_prices_from_csv(path: str | Path, column: str = "close") -> list[float]:
    """Read one price column from a header CSV, oldest row first.

    Header names are matched case-insensitively with surrounding whitespace
    ignored, so "Close", " CLOSE " and "close" all work.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"CSV not found: {p}")

    wanted = column.strip().lower()
    prices: list[float] = []
    with p.open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        headers = {h.strip().lower() for h in (reader.fieldnames or [])}
        if wanted not in headers:
            raise ValueError(
                f"CSV missing required column: {wanted}. "
                f"Found: {', '.join(sorted(headers)) or '(none)'}"
            )

        for line_num, row in enumerate(reader, start=2):  # start=2: header is line 1
            row = {k.strip().lower(): (v or "").strip() for k, v in row.items() if k is not None}
            prices.append(_parse_price(row[wanted], line_num, wanted))

    return prices
