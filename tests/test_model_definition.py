"""
Tests for ModelDefinition: points, bodies, closure constraints and mass blocks.
"""

import math

import numpy as np
import pytest

from planar_mbse.core.constraints import ConstantDistanceConstraint, RelativePositionConstraint
from planar_mbse.core.dofs import EuclideanDOF, PointDOF
from planar_mbse.core.errors import DegenerateGeometryError, StructuralError
from planar_mbse.core.model_definition import Body, ModelDefinition


class TestPoints:
    def test_add_point_returns_index(self):
        model = ModelDefinition()
        assert model.add_point(0.0, 0.0, fixed=True) == 0
        assert model.add_point(1.0, 2.0) == 1
        assert model.point_count == 2
        assert model.get_point_info(1).coords == (1.0, 2.0)
        assert model.get_point_info(0).fixed

    def test_set_point_count_and_coords(self):
        model = ModelDefinition()
        model.set_point_count(3)
        assert model.point_count == 3
        model.set_point_coords(2, 4.0, -1.0, fixed=True)
        pt = model.get_point_info(2)
        assert (pt.x, pt.y, pt.fixed) == (4.0, -1.0, True)

        model.set_point_count(1)
        assert model.point_count == 1

    def test_unknown_point(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0)
        with pytest.raises(StructuralError):
            model.get_point_info(5)

    def test_clear(self, four_bar_model):
        four_bar_model.assemble_symbolic()
        four_bar_model.clear()
        assert four_bar_model.point_count == 0
        assert four_bar_model.bodies == ()
        assert four_bar_model.constraints == ()
        # editable again
        four_bar_model.add_point(0.0, 0.0)
        four_bar_model.add_point(1.0, 0.0)
        four_bar_model.add_body([0, 1])


class TestBodies:
    def test_two_point_body_defaults(self):
        model = ModelDefinition()
        model.add_point(1.0, 1.0)
        model.add_point(4.0, 5.0)
        b = model.add_body([0, 1], mass=2.0)
        assert b.length == pytest.approx(5.0)
        assert b.cog == pytest.approx((2.5, 0.0))
        assert b.name == "body0"
        np.testing.assert_allclose(b.fixed_points_local, [(0.0, 0.0), (5.0, 0.0)], atol=1e-12)

    def test_explicit_length_kept_for_two_points(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0)
        model.add_point(1.0, 0.0)
        b = model.add_body([0, 1], length=1.5)
        assert b.length == 1.5

    def test_three_point_body_local_coords(self):
        model = ModelDefinition()
        model.add_point(1.0, 1.0)
        model.add_point(1.0, 3.0)
        model.add_point(0.0, 2.0)
        b = model.add_body([0, 1, 2], length=10.0)
        # length derived from the reference segment
        assert b.length == pytest.approx(2.0)
        # frame x axis points +y globally, y axis points -x
        np.testing.assert_allclose(b.fixed_points_local[2], (1.0, 1.0), atol=1e-12)

    def test_too_few_points(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0)
        with pytest.raises(StructuralError):
            model.add_body([0])
        with pytest.raises(StructuralError):
            Body(points=[0])

    def test_unknown_point_index(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0)
        model.add_point(1.0, 0.0)
        with pytest.raises(StructuralError):
            model.add_body([0, 7])

    def test_zero_length_reference(self):
        model = ModelDefinition()
        model.add_point(1.0, 1.0)
        model.add_point(1.0, 1.0)
        with pytest.raises(DegenerateGeometryError):
            model.add_body([0, 1])

    def test_invalid_length(self):
        with pytest.raises(StructuralError):
            Body(points=[0, 1], length=0.0)


class TestMassBlocks:
    def _kinetic(self, b, v0, v1):
        v0 = np.asarray(v0)
        v1 = np.asarray(v1)
        return 0.5 * (v0 @ b.M00 @ v0 + v1 @ b.M11 @ v1) + v0 @ b.M01 @ v1

    def test_translation(self):
        b = Body(points=[0, 1], mass=3.0, inertia=0.7, cog=(0.5, 0.3), length=2.0)
        v = np.array([0.4, -1.1])
        assert self._kinetic(b, v, v) == pytest.approx(0.5 * 3.0 * (v @ v))

    def test_general_rigid_motion(self):
        m, J, L = 3.0, 0.7, 2.0
        cog = np.array([0.5, 0.3])
        b = Body(points=[0, 1], mass=m, inertia=J, cog=tuple(cog), length=L)

        # body frame aligned with the global axes, p0 at the origin
        v_o = np.array([0.4, -0.2])
        w = 1.3

        def vel(r):
            return v_o + w * np.array([-r[1], r[0]])

        v0 = vel(np.zeros(2))
        v1 = vel(np.array([L, 0.0]))
        v_cog = vel(cog)
        expected = 0.5 * m * (v_cog @ v_cog) + 0.5 * J * w * w
        assert self._kinetic(b, v0, v1) == pytest.approx(expected)

    def test_rotation_about_first_point(self):
        m, L = 2.0, 1.5
        b = Body(points=[0, 1], mass=m, inertia=m * L * L / 12.0, cog=(L / 2, 0.0), length=L)
        assert b.I0 == pytest.approx(m * L * L / 3.0)
        w = 0.8
        v1 = np.array([0.0, w * L])
        assert self._kinetic(b, np.zeros(2), v1) == pytest.approx(0.5 * b.I0 * w * w)

    def test_interpolation_weights(self):
        b = Body(points=[0, 1], length=2.0)
        C0, C1 = b.interpolation_weights((0.5, 0.3))
        p0 = np.array([1.0, 1.0])
        p1 = np.array([1.0, 3.0])
        # u = (0, 1), v = (-1, 0)
        np.testing.assert_allclose(C0 @ p0 + C1 @ p1, (1.0 - 0.3, 1.0 + 0.5))


class TestSymbolicAssembly:
    def test_dofs_for_free_points_only(self, four_bar_model):
        armi = four_bar_model.assemble_symbolic()
        assert armi.dofs == [
            EuclideanDOF(1, PointDOF.X),
            EuclideanDOF(1, PointDOF.Y),
            EuclideanDOF(2, PointDOF.X),
            EuclideanDOF(2, PointDOF.Y),
        ]
        assert armi.rdofs == []

    def test_closure_constraints_two_point_bodies(self, four_bar_model):
        four_bar_model.assemble_symbolic()
        cs = four_bar_model.constraints
        assert [c.point_indices() for c in cs] == [(0, 1), (1, 2), (2, 3)]
        assert all(isinstance(c, ConstantDistanceConstraint) for c in cs)
        assert cs[2].length == pytest.approx(math.sqrt(13.0))

    def test_closure_pairs_four_point_body(self):
        model = ModelDefinition()
        for x, y in ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)):
            model.add_point(x, y)
        model.add_body([0, 1, 2, 3])
        model.assemble_symbolic()
        pairs = [c.point_indices() for c in model.constraints]
        assert pairs == [(0, 1), (0, 2), (1, 2), (0, 3), (1, 3)]
        assert model.constraints[1].length == pytest.approx(math.sqrt(2.0))

    def test_closure_constraints_added_once(self, four_bar_model):
        four_bar_model.assemble_symbolic()
        four_bar_model.assemble_symbolic()
        assert len(four_bar_model.constraints) == 3

    def test_frozen_after_assembly(self, four_bar_model):
        four_bar_model.assemble_symbolic()
        with pytest.raises(StructuralError):
            four_bar_model.add_body([0, 1])
        with pytest.raises(StructuralError):
            four_bar_model.add_constraint(ConstantDistanceConstraint(0, 2, 1.0))

    def test_point_table_frozen_after_assembly(self, four_bar_model):
        four_bar_model.assemble_rigid_mbs()
        with pytest.raises(StructuralError):
            four_bar_model.set_point_count(2)
        with pytest.raises(StructuralError):
            four_bar_model.add_point(5.0, 5.0)
        with pytest.raises(StructuralError):
            four_bar_model.set_point_coords(1, 1.0, 0.0, fixed=True)
        assert four_bar_model.point_count == 4
        assert not four_bar_model.get_point_info(1).fixed

        # moving a point without changing its fixed flag is still allowed
        four_bar_model.set_point_coords(3, 4.5, 0.0, fixed=True)
        assert four_bar_model.get_point_info(3).coords == (4.5, 0.0)

    def test_relative_position_constraint(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0, fixed=True)
        model.add_point(2.0, 0.0)
        model.add_point(1.0, 1.0)
        c = model.add_relative_position_constraint(0, 1, 2)
        assert isinstance(c, RelativePositionConstraint)
        assert (c.local_x, c.local_y, c.length) == pytest.approx((1.0, 1.0, 2.0))

    def test_constraint_with_unknown_point(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0)
        with pytest.raises(StructuralError):
            model.add_constraint(ConstantDistanceConstraint(0, 3, 1.0))
