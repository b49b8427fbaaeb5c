import numpy as np
import pytest

from planar_mbse.core.model_definition import ModelDefinition
from planar_mbse.core.model_examples import build_four_bar_model


@pytest.fixture
def four_bar_model() -> ModelDefinition:
    return build_four_bar_model()


@pytest.fixture
def four_bar_arm(four_bar_model):
    return four_bar_model.assemble_rigid_mbs()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def single_bar_model(p0=(0.0, 0.0), p1=(1.0, 0.0), fixed0=True, mass=1.0, length=None) -> ModelDefinition:
    """One uniform bar between two points."""
    model = ModelDefinition()
    model.add_point(p0[0], p0[1], fixed=fixed0)
    model.add_point(p1[0], p1[1])
    L = float(np.hypot(p1[0] - p0[0], p1[1] - p0[1])) if length is None else length
    model.add_body([0, 1], mass=mass, inertia=mass * L * L / 12.0, cog=(0.5 * L, 0.0), length=L)
    return model
