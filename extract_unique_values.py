"""
Print the distinct courses, batches, payment cycles, professions and
localities found in a legacy student roster export, to seed the catalogue.

Usage: python extract_unique_values.py <roster.csv>
"""
import sys

import pandas as pd

# Column positions in the export; the first row is a title banner
LOCALITY_COL = 5
PROFESSION_COL = 7
COURSE_COL = 8
BATCH_COLS = (9, 10)
PAYMENT_CYCLE_COL = 11


def _clean(value):
    if pd.isnull(value):
        return None
    text = str(value).strip()
    return text or None


def extract_unique_values(path: str) -> dict:
    df = pd.read_csv(path, header=1, dtype=str)
    df = df.where(pd.notnull(df), None)
    headers = [str(h).strip().upper() for h in df.columns]
    left_col = headers.index("LEFT") if "LEFT" in headers else None

    values = {
        "courses": set(),
        "batches": set(),
        "payment_cycles": set(),
        "professions": set(),
        "localities": set(),
    }
    for row in df.itertuples(index=False):
        row = list(row)

        def cell(index):
            return _clean(row[index]) if index < len(row) else None

        for key, index in (
            ("courses", COURSE_COL),
            ("payment_cycles", PAYMENT_CYCLE_COL),
            ("professions", PROFESSION_COL),
            ("localities", LOCALITY_COL),
        ):
            value = cell(index)
            if value:
                values[key].add(value)

        left = (cell(left_col) or "").upper() if left_col is not None else ""
        if left in ("YES", "TRUE"):
            continue
        for index in BATCH_COLS:
            value = cell(index)
            if value:
                values["batches"].add(value)

    return {key: sorted(found) for key, found in values.items()}


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python extract_unique_values.py <roster.csv>")
        sys.exit(1)

    results = extract_unique_values(sys.argv[1])
    for key, found in results.items():
        print(f"\n{key.replace('_', ' ').title()} ({len(found)}):")
        for value in found:
            print(f"  - {value}")
