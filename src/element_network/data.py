from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import JoinMismatchError
from .network import COUNT_COLUMNS, ElementNetworkRecord, extract_network_stats
from .occurrence import AgeRange, OccurrenceGraph

SYMBOL_COLUMN = "symbol"


@dataclass
class AggregationResult:
    table: pd.DataFrame
    warnings: List[str]


def load_element_catalog(path: Path | str) -> pd.DataFrame:
    """Load the curated element catalog CSV (one row per element symbol)."""
    catalog = pd.read_csv(Path(path))
    _check_symbols(catalog)
    return catalog


def _check_symbols(catalog: pd.DataFrame) -> None:
    if SYMBOL_COLUMN not in catalog.columns:
        raise ValueError(f"Element catalog has no '{SYMBOL_COLUMN}' column.")
    if catalog[SYMBOL_COLUMN].isna().any():
        raise ValueError("Element catalog contains rows without a symbol.")
    duplicated = catalog.loc[catalog[SYMBOL_COLUMN].duplicated(), SYMBOL_COLUMN]
    if not duplicated.empty:
        raise JoinMismatchError(duplicated=duplicated.unique())


_TRUE_FLAGS = {"true", "t", "yes", "y", "1"}
_FALSE_FLAGS = {"false", "f", "no", "n", "0"}


def _natural_flag(value, symbol) -> Optional[bool]:
    """Interpret a catalog `natural` cell; missing means unknown."""
    if pd.isna(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer, np.floating)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_FLAGS:
            return True
        if text in _FALSE_FLAGS:
            return False
    raise ValueError(f"Unrecognised natural flag {value!r} for element {symbol}")


def filter_catalog(
    catalog: pd.DataFrame,
    cutoff_age: float,
    exclude: Iterable[str] = (),
    logger=None,
) -> pd.DataFrame:
    """
    Keep elements that have occurred naturally since ``cutoff_age`` (Ga).

    Rows flagged ``natural == False`` (bools, 0/1 or yes/no style strings;
    anything else raises ValueError) are dropped, as are rows whose
    ``last_natural_ga`` is not strictly younger than the cutoff. A missing
    ``last_natural_ga`` means the element still occurs today. Explicitly
    excluded symbols are dropped regardless. Catalog order is preserved.
    """
    _check_symbols(catalog)
    log_fn = logger.info if logger is not None else print
    excluded_symbols = set(exclude)

    keep: List[bool] = []
    for _, row in catalog.iterrows():
        reasons: List[str] = []
        symbol = row[SYMBOL_COLUMN]

        if "natural" in catalog.columns and _natural_flag(row["natural"], symbol) is False:
            reasons.append("not_natural")
        if "last_natural_ga" in catalog.columns and not pd.isna(row["last_natural_ga"]):
            if float(row["last_natural_ga"]) >= cutoff_age:
                reasons.append(f"absent_since:{row['last_natural_ga']}Ga")
        if symbol in excluded_symbols:
            reasons.append("excluded_by_config")

        if reasons:
            log_fn(f"[EXCLUDED][{','.join(reasons)}] symbol={symbol}")
        keep.append(not reasons)

    filtered = catalog.loc[keep].reset_index(drop=True)
    log_fn(
        f"[SUMMARY] catalog kept={len(filtered)} excluded={len(catalog) - len(filtered)} "
        f"total={len(catalog)} cutoff={cutoff_age}Ga"
    )
    return filtered


def _extract_all(
    symbols: List[str], graph: OccurrenceGraph, age_range: AgeRange, max_workers: int
) -> List[ElementNetworkRecord]:
    if max_workers <= 1:
        return [extract_network_stats(symbol, age_range, graph) for symbol in symbols]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        # map() yields in submission order, so results line up with the catalog.
        return list(pool.map(lambda s: extract_network_stats(s, age_range, graph), symbols))


def coerce_counts(table: pd.DataFrame) -> pd.DataFrame:
    """Cast the count columns to integers; non-numeric values raise."""
    table = table.copy()
    for column in COUNT_COLUMNS:
        numeric = pd.to_numeric(table[column], errors="raise")
        if numeric.isna().any():
            bad = table.loc[numeric.isna(), SYMBOL_COLUMN].tolist()
            raise ValueError(f"Missing {column} for elements: {bad}")
        if (numeric < 0).any() or (numeric != numeric.round()).any():
            bad = table.loc[(numeric < 0) | (numeric != numeric.round()), SYMBOL_COLUMN].tolist()
            raise ValueError(f"{column} must be a non-negative integer for elements: {bad}")
        table[column] = numeric.astype("int64")
    return table


def join_catalog_metadata(catalog: pd.DataFrame, stats: pd.DataFrame) -> pd.DataFrame:
    """Left-join extracted statistics onto the catalog, one row per symbol."""
    _check_symbols(catalog)
    duplicated = stats.loc[stats[SYMBOL_COLUMN].duplicated(), SYMBOL_COLUMN]
    if not duplicated.empty:
        raise JoinMismatchError(duplicated=duplicated.unique())

    catalog_symbols = set(catalog[SYMBOL_COLUMN])
    stats_symbols = set(stats[SYMBOL_COLUMN])
    missing = catalog_symbols - stats_symbols
    unexpected = stats_symbols - catalog_symbols
    if missing or unexpected:
        raise JoinMismatchError(missing=missing, unexpected=unexpected)

    metadata = catalog.drop(columns=[c for c in COUNT_COLUMNS if c in catalog.columns])
    return metadata.merge(stats, on=SYMBOL_COLUMN, how="left", validate="one_to_one")


def aggregate_network_table(
    catalog: pd.DataFrame,
    graph: OccurrenceGraph,
    age_range: AgeRange,
    max_workers: int = 1,
    logger=None,
) -> AggregationResult:
    """
    Extract network statistics for every catalog element and join them
    onto the element metadata.

    Returns:
        AggregationResult with one row per cataloged element (catalog order)
        and warnings for elements with no minerals in the age window.
    """
    _check_symbols(catalog)
    log_fn = logger.info if logger is not None else print
    if catalog.empty:
        raise ValueError("Element catalog is empty after filtering.")

    symbols = catalog[SYMBOL_COLUMN].tolist()
    records = _extract_all(symbols, graph, age_range, max_workers)
    stats = pd.DataFrame.from_records(
        [r.as_dict() for r in records], columns=[SYMBOL_COLUMN] + COUNT_COLUMNS
    )
    stats = coerce_counts(stats)

    table = join_catalog_metadata(catalog, stats)
    ordered_cols = [SYMBOL_COLUMN] + COUNT_COLUMNS
    ordered_cols += [c for c in table.columns if c not in ordered_cols]
    table = table.reindex(columns=ordered_cols)

    warnings: List[str] = []
    for symbol in table.loc[table["n_minerals"] == 0, SYMBOL_COLUMN]:
        warnings.append(
            f"No minerals contain {symbol} within {age_range.max_age}-{age_range.min_age} Ga; counts are zero."
        )

    log_fn(
        f"[SUMMARY] extracted={len(table)} elements zero_minerals={len(warnings)} "
        f"window={age_range.max_age}-{age_range.min_age}Ga"
    )
    return AggregationResult(table=table, warnings=warnings)


def load_aggregate_table(path: Path | str, symbols: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Reload a previously saved aggregate table, re-applying numeric coercion."""
    table = coerce_counts(pd.read_csv(Path(path)))
    if symbols is not None:
        expected = set(symbols)
        present = set(table[SYMBOL_COLUMN])
        if expected != present:
            raise JoinMismatchError(missing=expected - present, unexpected=present - expected)
    return table
