from typing import Dict, List

import pandas as pd
import pytest

from element_network.occurrence import AgeRange


class FakeOccurrenceGraph:
    """Returns canned payloads keyed by the queried element."""

    def __init__(self, payloads: Dict[str, dict]):
        self.payloads = payloads
        self.calls: List[tuple] = []

    def query(self, elements_of_interest, age_range):
        self.calls.append((tuple(elements_of_interest), age_range))
        (element,) = elements_of_interest
        return self.payloads.get(element, {"edges": set(), "locality_info": []})


class FailingOccurrenceGraph:
    def query(self, elements_of_interest, age_range):
        raise ConnectionError("occurrence service unreachable")


def symmetric_payload(element: str, partner: str, n_minerals: int, n_localities: int) -> dict:
    minerals = [f"{element}{partner}-mineral-{i}" for i in range(n_minerals)]
    edges = set()
    for mineral in minerals:
        edges.add((mineral, element))
        edges.add((mineral, partner))
    # Every locality observed twice to exercise de-duplication.
    locality_info = [
        {"mineral": minerals[i % n_minerals], "locality_id": f"loc-{i}"}
        for i in range(n_localities)
    ] * 2
    return {"edges": edges, "locality_info": locality_info}


@pytest.fixture()
def age_range():
    return AgeRange(max_age=4.5, min_age=0.0)


@pytest.fixture()
def h_o_catalog():
    return pd.DataFrame(
        {
            "symbol": ["H", "O"],
            "Z": [1, 8],
            "group": [1, 16],
            "period": [1, 2],
        }
    )


@pytest.fixture()
def h_o_graph():
    return FakeOccurrenceGraph(
        {
            "H": symmetric_payload("H", "O", n_minerals=3, n_localities=50),
            "O": symmetric_payload("O", "H", n_minerals=3, n_localities=50),
        }
    )


@pytest.fixture()
def linear_table():
    n_elements = list(range(1, 11))
    return pd.DataFrame(
        {
            "symbol": [f"E{i}" for i in n_elements],
            "n_elements": n_elements,
            "n_minerals": [3 * x + 2 for x in n_elements],
            "n_localities": [10 * x - 4 for x in n_elements],
        }
    )


@pytest.fixture()
def occurrence_records():
    return pd.DataFrame(
        [
            {"mineral": "quartz", "elements": "Si O", "locality_id": 1, "max_age": 4.0, "min_age": 3.5},
            {"mineral": "quartz", "elements": "Si O", "locality_id": 2, "max_age": 2.0, "min_age": 1.0},
            {"mineral": "quartz", "elements": "Si O", "locality_id": 2, "max_age": 2.0, "min_age": 1.5},
            {"mineral": "chalcopyrite", "elements": "Cu,Fe,S", "locality_id": 3, "max_age": 1.2, "min_age": 1.0},
            {"mineral": "cuprite", "elements": "Cu O", "locality_id": 4, "max_age": 0.5, "min_age": 0.0},
            {"mineral": "pyrite", "elements": "Fe S", "locality_id": 5, "max_age": 3.0, "min_age": 2.5},
        ]
    )
