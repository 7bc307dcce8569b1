"""
Shared test fixtures for brush conversion tests.
"""
import pytest

from brushmesh.conversion.batch import BatchExecutor
from brushmesh.conversion.brush_model import BrushGroup, make_box_brush
from brushmesh.pipeline.map_config import MapConfig


@pytest.fixture
def executor():
    """Inline executor: deterministic, simple tracebacks."""
    with BatchExecutor(max_workers=1) as ex:
        yield ex


@pytest.fixture
def threaded_executor():
    """Four worker threads, for checking parallel runs match inline ones."""
    with BatchExecutor(max_workers=4) as ex:
        yield ex


@pytest.fixture
def unit_cube():
    """A 1x1x1 box brush at the origin."""
    return make_box_brush((0, 0, 0), (1, 1, 1), texture="CRATE1_5")


@pytest.fixture
def texture_cube():
    """A 128 unit box brush: one texture tile per face at 128px."""
    return make_box_brush((0, 0, 0), (128, 128, 128), texture="CRATE1_5")


@pytest.fixture
def abutting_brushes():
    """A 64 unit box and a smaller box pressed against its +X face.

    The small box's -X face lies entirely inside the big box's +X face.
    """
    big = make_box_brush((0, 0, 0), (64, 64, 64), brush_id=0)
    small = make_box_brush((64, 16, 16), (96, 48, 48), brush_id=1)
    return big, small


@pytest.fixture
def worldspawn(abutting_brushes):
    return BrushGroup(name="worldspawn", brushes=list(abutting_brushes))


@pytest.fixture
def inline_config():
    """Unscaled config that runs every phase inline."""
    return MapConfig(scaling_factor=1.0, max_workers=1)
