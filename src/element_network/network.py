from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Mapping, Set, Tuple

import pandas as pd

from .errors import QueryError
from .occurrence import AgeRange, OccurrenceGraph

COUNT_COLUMNS = ["n_elements", "n_minerals", "n_localities"]


@dataclass(frozen=True)
class ElementNetworkRecord:
    symbol: str
    n_elements: int
    n_minerals: int
    n_localities: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _validated_edges(element: str, payload: Mapping[str, Any]) -> Set[Tuple[Any, Any]]:
    if not isinstance(payload, Mapping):
        raise QueryError(element, f"expected a mapping payload, got {type(payload).__name__}")
    if "edges" not in payload:
        raise QueryError(element, "payload has no 'edges' entry")
    raw_edges = payload["edges"]
    if raw_edges is None:
        raise QueryError(element, "'edges' is None")

    if isinstance(raw_edges, (str, bytes)):
        raise QueryError(element, f"'edges' is not a collection of pairs: {raw_edges!r}")
    try:
        edge_iter = iter(raw_edges)
    except TypeError:
        raise QueryError(element, f"'edges' is not iterable: {raw_edges!r}") from None

    edges: Set[Tuple[Any, Any]] = set()
    for edge in edge_iter:
        if isinstance(edge, str):
            raise QueryError(element, f"malformed edge {edge!r}")
        try:
            mineral, target = edge
            edges.add((mineral, target))
        except (TypeError, ValueError):
            raise QueryError(element, f"malformed edge {edge!r}") from None
    return edges


def _locality_ids(element: str, locality_info: Iterable[Any]) -> Set[Any]:
    if isinstance(locality_info, pd.DataFrame):
        if "locality_id" not in locality_info.columns:
            raise QueryError(element, "locality_info has no 'locality_id' column")
        records = locality_info.to_dict("records")
    elif isinstance(locality_info, (str, bytes, Mapping)):
        raise QueryError(element, f"locality_info is not a collection of records: {locality_info!r}")
    else:
        try:
            records = list(locality_info)
        except TypeError:
            raise QueryError(element, f"locality_info is not iterable: {locality_info!r}") from None

    ids = set()
    for record in records:
        if not isinstance(record, Mapping) or "locality_id" not in record:
            raise QueryError(element, f"locality record without locality_id: {record!r}")
        locality_id = record["locality_id"]
        if not pd.api.types.is_scalar(locality_id):
            raise QueryError(element, f"locality_id must be a scalar, got {locality_id!r}")
        if pd.isna(locality_id):
            raise QueryError(element, "locality_info contains missing locality ids")
        ids.add(locality_id)
    return ids


def extract_network_stats(
    element: str, age_range: AgeRange, graph: OccurrenceGraph
) -> ElementNetworkRecord:
    """
    Query the occurrence graph for one element and count its network neighbours.

    n_elements counts distinct co-occurring elements (never the element itself),
    n_minerals counts distinct minerals, n_localities counts distinct locality ids.
    A query with no edges yields zeros for all three counts.
    """
    try:
        payload = graph.query([element], age_range)
    except QueryError:
        raise
    except Exception as exc:
        raise QueryError(element, f"{type(exc).__name__}: {exc}") from exc

    edges = _validated_edges(element, payload)
    if not edges:
        return ElementNetworkRecord(symbol=element, n_elements=0, n_minerals=0, n_localities=0)

    if "locality_info" not in payload or payload["locality_info"] is None:
        raise QueryError(element, "payload has edges but no 'locality_info' entry")

    minerals = {mineral for mineral, _ in edges}
    co_elements = {target for _, target in edges if target != element}
    localities = _locality_ids(element, payload["locality_info"])

    return ElementNetworkRecord(
        symbol=element,
        n_elements=len(co_elements),
        n_minerals=len(minerals),
        n_localities=len(localities),
    )
