from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence, Set, Tuple

import networkx as nx
import pandas as pd

OCCURRENCE_COLUMNS: List[str] = ["mineral", "elements", "locality_id", "max_age", "min_age"]

Edge = Tuple[str, str]


@dataclass(frozen=True)
class AgeRange:
    """Inclusive geological time window in Ga, oldest bound first."""

    max_age: float
    min_age: float

    def __post_init__(self):
        if pd.isna(self.max_age) or pd.isna(self.min_age):
            raise ValueError("Age range bounds must be numbers.")
        if self.min_age < 0:
            raise ValueError(f"min_age must be >= 0 Ga, got {self.min_age}")
        if self.max_age < self.min_age:
            raise ValueError(
                f"max_age ({self.max_age}) must not be younger than min_age ({self.min_age})"
            )

    def overlaps(self, max_age: float, min_age: float) -> bool:
        """True when the interval [min_age, max_age] touches this window."""
        return min_age <= self.max_age and max_age >= self.min_age

    def as_list(self) -> List[float]:
        return [self.max_age, self.min_age]


class OccurrenceGraph(Protocol):
    """Query interface of the mineral-element occurrence graph."""

    def query(self, elements_of_interest: Sequence[str], age_range: AgeRange) -> Mapping[str, Any]:
        """
        Return ``{"edges": set of (mineral_id, element_id),
        "locality_info": iterable of records with a "locality_id" field}``
        for minerals containing any element of interest within ``age_range``.
        """
        ...


def split_elements(value) -> List[str]:
    """Parse an element list cell such as ``"Cu Fe S"`` or ``"Cu,Fe,S"``."""
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    if pd.isna(value):
        return []
    return [token for token in re.split(r"[\s,;]+", str(value)) if token]


def load_occurrence_table(path: Path | str) -> pd.DataFrame:
    """Load a mineral occurrence CSV (one row per locality observation)."""
    df = pd.read_csv(Path(path))
    missing = [c for c in OCCURRENCE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Occurrence table {path} is missing columns: {missing}")
    return df


class TableOccurrenceGraph:
    """
    Occurrence graph backed by a locality-level occurrence table.

    Composition is held as a directed bipartite graph (mineral -> element);
    locality observations carry the age bounds used to restrict queries.
    """

    def __init__(self, occurrences: pd.DataFrame):
        missing = [c for c in OCCURRENCE_COLUMNS if c not in occurrences.columns]
        if missing:
            raise ValueError(f"Occurrence table is missing columns: {missing}")
        self.occurrences = occurrences.copy()
        self.occurrences["max_age"] = pd.to_numeric(self.occurrences["max_age"], errors="raise")
        self.occurrences["min_age"] = pd.to_numeric(self.occurrences["min_age"], errors="raise")
        self.graph = self._build_graph(self.occurrences)

    @staticmethod
    def _build_graph(occurrences: pd.DataFrame) -> nx.DiGraph:
        graph = nx.DiGraph()
        for mineral, group in occurrences.groupby("mineral", sort=False):
            graph.add_node(mineral, kind="mineral")
            for cell in group["elements"]:
                for element in split_elements(cell):
                    graph.add_node(element, kind="element")
                    graph.add_edge(mineral, element)
        return graph

    def minerals_containing(self, element: str) -> Set[str]:
        if element not in self.graph:
            return set()
        return set(self.graph.predecessors(element))

    def query(self, elements_of_interest: Sequence[str], age_range: AgeRange) -> Dict[str, Any]:
        candidates: Set[str] = set()
        for element in elements_of_interest:
            candidates |= self.minerals_containing(element)

        occ = self.occurrences
        in_window = (occ["min_age"] <= age_range.max_age) & (occ["max_age"] >= age_range.min_age)
        records = occ.loc[in_window & occ["mineral"].isin(candidates)]

        observed = set(records["mineral"])
        edges: Set[Edge] = {
            (mineral, element)
            for mineral in observed
            for element in self.graph.successors(mineral)
        }
        locality_info = records[["mineral", "locality_id", "max_age", "min_age"]].to_dict("records")
        return {"edges": edges, "locality_info": locality_info}


def occurrence_graph_from_records(records: Iterable[Mapping[str, Any]]) -> TableOccurrenceGraph:
    """Convenience constructor from an iterable of occurrence dicts."""
    return TableOccurrenceGraph(pd.DataFrame.from_records(list(records), columns=OCCURRENCE_COLUMNS))
