from __future__ import annotations

from pathlib import Path
from typing import Dict, List
import sys

import pytest

# Ensure project root is on sys.path for absolute imports
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))


@pytest.fixture
def simple_records() -> List[Dict[str, object]]:
    return [
        {"r": "A", "c": "X", "v": 1},
        {"r": "A", "c": "Y", "v": 2},
        {"r": "B", "c": "X", "v": 3},
    ]


@pytest.fixture
def sales_records() -> List[Dict[str, object]]:
    return [
        {"region": "North", "product": "Widget", "quarter": "Q1", "units": 10, "amount": 100.0},
        {"region": "North", "product": "Gadget", "quarter": "Q1", "units": 4, "amount": 40.0},
        {"region": "South", "product": "Widget", "quarter": "Q2", "units": 7, "amount": 70.0},
        {"region": "South", "product": "Gizmo", "quarter": "Q2", "units": 3, "amount": 30.0},
        {"region": "East", "product": "Widget", "quarter": "Q3", "units": 12, "amount": 120.0},
        {"region": "East", "product": "Gadget", "quarter": "Q4", "amount": 60.0},
    ]


@pytest.fixture
def sample_csv() -> Path:
    return ROOT / "sample_data" / "sales.csv"


@pytest.fixture
def sample_config() -> Path:
    return ROOT / "config" / "config.yaml"
