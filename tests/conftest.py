"""Root conftest: add src/ to sys.path for all test modules."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded generator so every random path in a test is reproducible."""
    return np.random.default_rng(1234)
