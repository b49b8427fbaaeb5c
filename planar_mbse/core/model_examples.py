# -*- coding: utf-8 -*-
"""Built-in example mechanisms."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from .assembled_model import AssembledRigidModel
from .dofs import RelativeDOF
from .model_definition import ModelDefinition


def _bar_inertia(mass: float, length: float) -> float:
    # slender bar, about its center
    return mass * length * length / 12.0


def build_four_bar_model() -> ModelDefinition:
    """Classic four-bar: crank 0-1, coupler 1-2, rocker 2-3; points 0 and 3 grounded."""
    model = ModelDefinition()
    model.add_point(0.0, 0.0, fixed=True)
    model.add_point(1.0, 0.0)
    model.add_point(1.0, 2.0)
    model.add_point(4.0, 0.0, fixed=True)

    for name, (i, j), mass in (("crank", (0, 1), 1.0), ("coupler", (1, 2), 2.0), ("rocker", (2, 3), 4.0)):
        pi = model.get_point_info(i)
        pj = model.get_point_info(j)
        L = ((pj.x - pi.x) ** 2 + (pj.y - pi.y) ** 2) ** 0.5
        model.add_body([i, j], mass=mass, inertia=_bar_inertia(mass, L), cog=(0.5 * L, 0.0), length=L, name=name)
    return model


def build_two_body_pendulum_model() -> ModelDefinition:
    """Double pendulum: a bar hinged to ground at point 0, then a triangular plate 1-2-3."""
    model = ModelDefinition()
    model.add_point(0.0, 0.0, fixed=True)
    model.add_point(1.0, 0.0)
    model.add_point(2.0, 0.0)
    model.add_point(1.5, 0.5)

    model.add_body([0, 1], mass=1.0, inertia=_bar_inertia(1.0, 1.0), cog=(0.5, 0.0), length=1.0, name="arm")
    # Uniform triangle: cog defaults to the vertex average, J = m (a^2 + b^2 + c^2) / 36.
    model.add_body([1, 2, 3], mass=2.0, inertia=2.0 * (1.0 + 0.5 + 0.5) / 36.0, name="plate")
    return model


def build_chain_model(n_segments: int = 4, segment_length: float = 1.0, mass: float = 1.0) -> ModelDefinition:
    """Horizontal chain of bars hanging from a ground point at the origin."""
    if n_segments < 1:
        raise ValueError(f"Chain needs at least one segment, got {n_segments}")
    model = ModelDefinition()
    model.add_point(0.0, 0.0, fixed=True)
    for i in range(n_segments):
        model.add_point((i + 1) * segment_length, 0.0)
        model.add_body(
            [i, i + 1],
            mass=mass,
            inertia=_bar_inertia(mass, segment_length),
            cog=(0.5 * segment_length, 0.0),
            length=segment_length,
            name=f"link{i}",
        )
    return model


EXAMPLE_MODELS: Dict[str, Callable[[], ModelDefinition]] = {
    "four-bar": build_four_bar_model,
    "pendulum": build_two_body_pendulum_model,
    "chain": build_chain_model,
}


def assemble_example(name: str, relative_coordinates: Optional[Sequence[RelativeDOF]] = None) -> AssembledRigidModel:
    try:
        builder = EXAMPLE_MODELS[name]
    except KeyError:
        raise KeyError(f"Unknown example model '{name}' (valid: {', '.join(sorted(EXAMPLE_MODELS))})") from None
    return builder().assemble_rigid_mbs(relative_coordinates)
