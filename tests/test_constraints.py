"""
Tests for the constraint variants: residuals and their derivatives.
"""

import math

import numpy as np
import pytest

from planar_mbse.core.constraints import (
    ConstantDistanceConstraint,
    RelativeAngleAbsoluteConstraint,
    RelativeAngleConstraint,
    RelativePositionConstraint,
)
from planar_mbse.core.dofs import RelativeAngleAbsoluteDOF, RelativeAngleDOF
from planar_mbse.core.errors import DegenerateGeometryError, StructuralError
from planar_mbse.core.model_definition import ModelDefinition
from planar_mbse.factors.constraints import FactorConstraints

H = 1e-6


def _fd_gradient(c, z):
    n = len(z)
    phi0, _g, _h = c.evaluate(z)
    G = np.zeros((len(phi0), n))
    for j in range(n):
        zp = z.copy()
        zm = z.copy()
        zp[j] += H
        zm[j] -= H
        G[:, j] = (c.evaluate(zp)[0] - c.evaluate(zm)[0]) / (2 * H)
    return G


def _fd_hessian(c, z):
    n = len(z)
    phi0, _g, _h = c.evaluate(z)
    Hs = np.zeros((len(phi0), n, n))
    for j in range(n):
        zp = z.copy()
        zm = z.copy()
        zp[j] += H
        zm[j] -= H
        Hs[:, :, j] = (c.evaluate(zp)[1] - c.evaluate(zm)[1]) / (2 * H)
    return Hs


VARIANTS = [
    (ConstantDistanceConstraint(0, 1, 1.3), 4),
    (RelativeAngleConstraint(0, 1, 2, 0), 7),
    (RelativeAngleAbsoluteConstraint(0, 1, 0), 5),
    (RelativePositionConstraint(0, 1, 2, 0.4, -0.7, 1.5), 6),
]


class TestLocalDerivatives:
    @pytest.mark.parametrize("constraint,nz", VARIANTS, ids=lambda v: getattr(v, "kind", str(v)))
    def test_gradient_and_hessian(self, constraint, nz, rng):
        for _ in range(5):
            z = rng.normal(size=nz)
            _phi, grad, hess = constraint.evaluate(z)
            np.testing.assert_allclose(grad, _fd_gradient(constraint, z), atol=1e-6)
            np.testing.assert_allclose(hess, _fd_hessian(constraint, z), atol=1e-6)
            # symmetric Hessians
            np.testing.assert_allclose(hess, np.swapaxes(hess, 1, 2), atol=1e-12)


class TestResiduals:
    def test_constant_distance(self):
        c = ConstantDistanceConstraint(0, 1, 2.0)
        phi, _g, _h = c.evaluate(np.array([1.0, 1.0, 1.0, 3.0]))
        assert phi[0] == pytest.approx(0.0)
        phi, _g, _h = c.evaluate(np.array([0.0, 0.0, 3.0, 0.0]))
        assert phi[0] == pytest.approx(9.0 - 4.0)

    def test_constant_distance_invalid_length(self):
        with pytest.raises(StructuralError):
            ConstantDistanceConstraint(0, 1, 0.0)

    def test_relative_angle_zero_at_true_angle(self):
        c = RelativeAngleConstraint(0, 1, 2, 0)
        # vertex at (1, 1), rays along +x and at 60 degrees
        a = math.radians(60.0)
        z = np.array([1.0, 1.0, 3.0, 1.0, 1.0 + math.cos(a), 1.0 + math.sin(a), a])
        assert c.evaluate(z)[0][0] == pytest.approx(0.0, abs=1e-12)
        z[-1] = a + 0.1
        assert abs(c.evaluate(z)[0][0]) > 1e-3

    def test_relative_angle_absolute_zero_at_true_angle(self):
        c = RelativeAngleAbsoluteConstraint(0, 1, 0)
        a = 2.5
        z = np.array([0.5, -0.5, 0.5 + 2 * math.cos(a), -0.5 + 2 * math.sin(a), a])
        assert c.evaluate(z)[0][0] == pytest.approx(0.0, abs=1e-12)

    def test_relative_angle_rejects_half_turn(self):
        c = RelativeAngleConstraint(0, 1, 2, 0)
        a = math.radians(60.0)
        z = np.array([1.0, 1.0, 3.0, 1.0, 1.0 + math.cos(a), 1.0 + math.sin(a), a + math.pi])
        assert abs(c.evaluate(z)[0][0]) == pytest.approx(math.pi)
        z[-1] = a - 2 * math.pi
        assert c.evaluate(z)[0][0] == pytest.approx(0.0, abs=1e-12)

    def test_relative_angle_absolute_rejects_half_turn(self):
        c = RelativeAngleAbsoluteConstraint(0, 1, 0)
        a = 2.5
        z = np.array([0.5, -0.5, 0.5 + 2 * math.cos(a), -0.5 + 2 * math.sin(a), a - math.pi])
        assert abs(c.evaluate(z)[0][0]) == pytest.approx(math.pi)
        # mirrored orientation is not a root either
        z[-1] = -a
        assert abs(c.evaluate(z)[0][0]) > 1.0
        z[-1] = a + 2 * math.pi
        assert c.evaluate(z)[0][0] == pytest.approx(0.0, abs=1e-12)

    def test_relative_angle_degenerate_ray(self):
        c = RelativeAngleAbsoluteConstraint(0, 1, 0)
        with pytest.raises(DegenerateGeometryError):
            c.evaluate(np.array([1.0, 1.0, 1.0, 1.0, 0.0]))

    def test_relative_position(self):
        c = RelativePositionConstraint(0, 1, 2, 1.0, 1.0, 2.0)
        # frame rotated by 90 deg: p = p0 + 0.5 (p1 - p0) + 0.5 R90 (p1 - p0)
        z = np.array([0.0, 0.0, 0.0, 2.0, -1.0, 1.0])
        np.testing.assert_allclose(c.evaluate(z)[0], 0.0, atol=1e-12)

    def test_clone_bound_constraint_fails(self, four_bar_arm):
        with pytest.raises(StructuralError):
            four_bar_arm.constraints[0].clone()

    def test_update_before_structure(self, four_bar_arm):
        c = ConstantDistanceConstraint(1, 2, 2.0)
        with pytest.raises(StructuralError):
            c.update(four_bar_arm)


def _perturbed_model_with_relative_coords(rng):
    model = ModelDefinition()
    model.add_point(0.0, 0.0, fixed=True)
    model.add_point(1.0, 0.2)
    model.add_point(1.2, 2.0)
    model.add_point(4.0, 0.0, fixed=True)
    model.add_point(2.0, 1.5)
    model.add_body([0, 1])
    model.add_body([1, 2, 4])
    model.add_body([2, 3])
    arm = model.assemble_rigid_mbs([RelativeAngleAbsoluteDOF(0, 1), RelativeAngleDOF(2, 1, 3)])
    arm.q[:] += 0.05 * rng.normal(size=arm.num_dofs)
    arm.dotq[:] = rng.normal(size=arm.num_dofs)
    return arm


class TestAssembledDerivatives:
    def _phi(self, arm, q):
        arm.q[:] = q
        arm.update_numeric_Phi_and_Jacobians()
        return arm.Phi.copy()

    def _phi_q_dq(self, arm, q, dq):
        arm.q[:] = q
        arm.dotq[:] = dq
        arm.update_numeric_Phi_and_Jacobians()
        return arm.Phi_q.dot(dq)

    def test_phi_q_matches_finite_differences(self, rng):
        arm = _perturbed_model_with_relative_coords(rng)
        q0 = arm.q.copy()
        arm.update_numeric_Phi_and_Jacobians()
        Jq = arm.Phi_q.to_dense()

        num = np.zeros_like(Jq)
        for j in range(arm.num_dofs):
            e = np.zeros(arm.num_dofs)
            e[j] = H
            num[:, j] = (self._phi(arm, q0 + e) - self._phi(arm, q0 - e)) / (2 * H)
        np.testing.assert_allclose(Jq, num, atol=1e-6)

    def test_second_order_terms(self, rng):
        arm = _perturbed_model_with_relative_coords(rng)
        q0 = arm.q.copy()
        dq = arm.dotq.copy()
        arm.update_numeric_Phi_and_Jacobians()
        mats = {name: arm.jacobian(name).to_dense()
                for name in ("dotPhi_q", "dPhiqdq_dq", "Phiqq_times_dq", "d_dotPhiq_ddq_times_dq")}

        num = np.zeros((arm.num_constraints, arm.num_dofs))
        for j in range(arm.num_dofs):
            e = np.zeros(arm.num_dofs)
            e[j] = H
            num[:, j] = (self._phi_q_dq(arm, q0 + e, dq) - self._phi_q_dq(arm, q0 - e, dq)) / (2 * H)
        for name, M in mats.items():
            np.testing.assert_allclose(M, num, atol=1e-5, err_msg=name)

    def test_relative_position_in_model(self):
        model = ModelDefinition()
        model.add_point(0.0, 0.0, fixed=True)
        model.add_point(2.0, 0.0)
        model.add_point(1.0, 1.0)
        model.add_body([0, 1])
        model.add_relative_position_constraint(0, 1, 2)
        arm = model.assemble_rigid_mbs()
        assert arm.num_constraints == 3
        arm.update_numeric_Phi_and_Jacobians()
        np.testing.assert_allclose(arm.Phi, 0.0, atol=1e-12)
        # rotate the bar by 90 deg: the point must follow
        arm.q[:] = (0.0, 2.0, -1.0, 1.0)
        arm.update_numeric_Phi_and_Jacobians()
        np.testing.assert_allclose(arm.Phi, 0.0, atol=1e-12)


@pytest.mark.parametrize(
    "rdof", [RelativeAngleAbsoluteDOF(0, 1), RelativeAngleDOF(1, 0, 2)], ids=["absolute", "relative"]
)
def test_half_turn_offset_violates_constraints(four_bar_model, rdof):
    arm = four_bar_model.assemble_rigid_mbs([rdof])
    factor = FactorConstraints("q", arm)
    q = arm.q.copy()
    np.testing.assert_allclose(factor.evaluate({"q": q}), 0.0, atol=1e-12)

    q[-1] += math.pi
    phi = factor.evaluate({"q": q})
    assert abs(phi[-1]) == pytest.approx(math.pi)
    np.testing.assert_allclose(phi[:-1], 0.0, atol=1e-12)

    # a full turn is the same orientation
    q[-1] += math.pi
    np.testing.assert_allclose(factor.evaluate({"q": q}), 0.0, atol=1e-12)
