# tests/test_souza_transform.py
"""
COROTATIONAL TRANSFORM TESTS
============================

Kinematic properties every corotational frame transform must satisfy:

1. A straight element with no displacement has zero deformation
2. Rigid-body motion (translation + large rotation) produces no deformation
3. Nodal rotations stay unit versors through many updates
4. Results do not depend on how many iterations a step takes
5. Commit / revert restore exactly what was committed
6. Internal forces pushed to the nodes are self-equilibrated
"""

import json
import logging

import pytest
import numpy as np

from corotframe.kernel.rotations import exp_so3
from corotframe.v3d.model import Node3D
from corotframe.v3d.transform import (
    JSON_FLAG,
    DegenerateGeometryError,
    InvalidNodeError,
    SouzaFrameTransform,
    UnsupportedOperationError,
)


def make_element(xj=(2.0, 0.5, -0.3), vecxz=(0.0, 0.0, 1.0), offsets=None):
    """Element from the origin to xj."""
    ni = Node3D(1, 0.0, 0.0, 0.0)
    nj = Node3D(2, *xj)
    t = SouzaFrameTransform(1, vecxz=vecxz, offsets=offsets)
    t.initialize(ni, nj)
    return t, ni, nj


def apply(t, nodes, disp_i, disp_j):
    nodes[0].set_trial_disp(disp_i)
    nodes[1].set_trial_disp(disp_j)
    t.update()


def rigid_motion(nodes, c, psi):
    """Nodal displacements of a rotation psi about the origin followed by a translation c."""
    S = exp_so3(psi)
    disps = []
    for node in nodes:
        X = node.get_crds()
        disps.append(np.concatenate([S @ X - X + c, psi]))
    return disps


def equilibrium_residual(nodes, pg):
    """Net force and net moment about the origin of a 12-component nodal force vector."""
    force = pg[0:3] + pg[6:9]
    moment = pg[3:6] + pg[9:12]
    for n, node in enumerate(nodes):
        x = node.get_crds() + node.get_trial_disp()[0:3]
        moment = moment + np.cross(x, pg[6 * n:6 * n + 3])
    return force, moment


class TestReferenceState:

    def test_unit_element(self):
        """Unit element along x, vecxz = z: R0 = I and a small end rotation."""
        t, ni, nj = make_element(xj=(1.0, 0.0, 0.0))

        assert t.get_initial_length() == 1.0
        e1, e2, e3 = t.get_local_axes()
        np.testing.assert_allclose(np.column_stack([e1, e2, e3]), np.eye(3), atol=1e-15)
        np.testing.assert_allclose(t.get_basic_trial_disp(), np.zeros(12), atol=1e-15)

        apply(t, (ni, nj), np.zeros(6), [0.0, 0.0, 0.0, 0.0, 0.0, 0.01])
        ul = t.get_basic_trial_disp()
        assert np.isclose(ul[11], 0.01, atol=1e-6), f"Expected jmz ≈ 0.01, got {ul[11]:.3e}"
        others = np.delete(ul, [5, 11])
        assert np.max(np.abs(others)) < 1e-6, f"Unexpected deformation {others}"

    def test_local_axes_follow_vecxz(self):
        t, _, _ = make_element(xj=(0.0, 0.0, 3.0), vecxz=(1.0, 0.0, 0.0))
        e1, e2, e3 = t.get_local_axes()
        np.testing.assert_allclose(e1, [0.0, 0.0, 1.0], atol=1e-15)
        np.testing.assert_allclose(e2, [0.0, -1.0, 0.0], atol=1e-15)
        np.testing.assert_allclose(e3, [1.0, 0.0, 0.0], atol=1e-15)

    def test_local_axes_do_not_rotate(self):
        t, ni, nj = make_element()
        before = np.column_stack(t.get_local_axes())
        apply(t, (ni, nj), [0.1, 0.0, 0.0, 0.5, 0.2, -0.3], [0.0, 0.2, 0.0, 0.4, 0.1, -0.2])
        np.testing.assert_array_equal(np.column_stack(t.get_local_axes()), before)

    def test_current_axes_follow_chord(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), np.zeros(6), [0.0, 0.4, 0.1, 0.0, 0.0, 0.0])
        e1, _, _ = t.get_current_axes()
        chord = nj.get_crds() + nj.get_trial_disp()[0:3] - ni.get_crds()
        np.testing.assert_allclose(e1, chord / np.linalg.norm(chord), atol=1e-14)
        assert np.isclose(t.get_deformed_length(), np.linalg.norm(chord))


class TestRigidBodyInvariance:

    @pytest.mark.parametrize("psi", [
        np.array([0.0, 0.0, np.pi / 2]),
        np.array([0.8, -1.3, 0.6]),
        np.array([2.0, 1.0, -0.5]),
    ])
    def test_rigid_motion_is_strain_free(self, psi):
        t, ni, nj = make_element()
        di, dj = rigid_motion((ni, nj), c=np.array([0.3, -1.0, 2.0]), psi=psi)
        apply(t, (ni, nj), di, dj)

        ul = t.get_basic_trial_disp()
        assert np.max(np.abs(ul)) < 1e-10, f"Rigid motion produced deformation {ul}"
        assert np.isclose(t.get_deformed_length(), t.get_initial_length(), atol=1e-12)

    def test_rigid_motion_with_offsets(self):
        offsets = ([0.0, 0.1, 0.2], [0.0, -0.2, 0.1])
        t, ni, nj = make_element(offsets=offsets)
        di, dj = rigid_motion((ni, nj), c=np.array([0.1, 0.2, 0.3]), psi=np.array([0.5, 0.9, -0.4]))
        apply(t, (ni, nj), di, dj)
        assert np.max(np.abs(t.get_basic_trial_disp())) < 1e-10

    def test_rigid_motion_in_many_steps(self):
        """Rotation about a fixed axis reached in 50 increments."""
        t, ni, nj = make_element()
        psi = np.array([0.3, -0.6, 0.9])
        for k in range(1, 51):
            di, dj = rigid_motion((ni, nj), c=np.zeros(3), psi=psi * k / 25.0)
            apply(t, (ni, nj), di, dj)
            t.commit()
        assert np.max(np.abs(t.get_basic_trial_disp())) < 1e-9

    def test_tangent_annihilates_rigid_modes(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.01, 0.02, 0.0, 0.3, -0.2, 0.1], [0.0, -0.05, 0.03, -0.1, 0.2, 0.25])
        T = t.tangent

        x = [n.get_crds() + n.get_trial_disp()[0:3] for n in (ni, nj)]
        for k in range(3):
            w = np.zeros(3)
            w[k] = 1.0
            translation = np.concatenate([w, np.zeros(3), w, np.zeros(3)])
            rotation = np.concatenate([np.cross(w, x[0]), w, np.cross(w, x[1]), w])
            np.testing.assert_allclose(T @ translation, np.zeros(12), atol=1e-12)
            np.testing.assert_allclose(T @ rotation, np.zeros(12), atol=1e-12)


class TestRotationState:

    def test_versors_stay_normalized(self):
        t, ni, nj = make_element()
        rng = np.random.default_rng(11)
        di, dj = np.zeros(6), np.zeros(6)
        for _ in range(500):
            di[3:6] += rng.normal(scale=0.02, size=3)
            dj[3:6] += rng.normal(scale=0.02, size=3)
            dj[0:3] = rng.normal(scale=0.01, size=3)
            apply(t, (ni, nj), di, dj)
            t.commit()

        for q in t.nodal_versors:
            assert abs(q.norm() - 1.0) < 1e-10, f"Versor drifted to norm {q.norm()}"

    def test_iteration_count_independence(self):
        """A proportional step reached in one update or in four gives the same state."""
        target_i = np.array([0.02, 0.0, -0.01, 0.3, -0.2, 0.4])
        target_j = np.array([0.0, 0.05, 0.02, -0.1, 0.5, 0.2])

        t1, ni1, nj1 = make_element()
        apply(t1, (ni1, nj1), target_i, target_j)

        t4, ni4, nj4 = make_element()
        for s in (0.25, 0.5, 0.75, 1.0):
            apply(t4, (ni4, nj4), s * target_i, s * target_j)

        np.testing.assert_allclose(t4.get_basic_trial_disp(), t1.get_basic_trial_disp(), atol=1e-12)
        for q1, q4 in zip(t1.nodal_versors, t4.nodal_versors):
            np.testing.assert_allclose(q4.to_matrix(), q1.to_matrix(), atol=1e-12)

    def test_repeated_update_changes_nothing(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.0, 0.0, 0.0, 0.2, 0.1, 0.0], [0.0, 0.1, 0.0, 0.0, 0.0, 0.3])
        ul = t.get_basic_trial_disp()
        T = t.tangent.copy()

        t.update()
        np.testing.assert_array_equal(t.get_basic_trial_disp(), ul)
        np.testing.assert_array_equal(t.tangent, T)
        np.testing.assert_array_equal(t.get_basic_incr_delta_disp(), np.zeros(12))


class TestCommitRevert:

    def test_revert_restores_committed_state(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.0, 0.0, 0.0, 0.2, 0.1, 0.0], [0.0, 0.1, 0.0, 0.0, 0.0, 0.3])
        ni.commit_state()
        nj.commit_state()
        t.commit()
        committed_ul = t.get_basic_trial_disp()
        committed_R = [q.to_matrix() for q in t.nodal_versors]

        apply(t, (ni, nj), [0.1, 0.0, 0.0, 0.6, -0.3, 0.2], [0.0, 0.3, 0.1, -0.2, 0.4, 0.5])
        assert not np.allclose(t.get_basic_trial_disp(), committed_ul)

        ni.revert_to_last_commit()
        nj.revert_to_last_commit()
        t.revert_to_last_commit()

        np.testing.assert_allclose(t.get_basic_trial_disp(), committed_ul, atol=1e-14)
        np.testing.assert_array_equal(t.get_basic_incr_disp(), np.zeros(12))
        for q, R in zip(t.nodal_versors, committed_R):
            np.testing.assert_allclose(q.to_matrix(), R, atol=1e-14)

    def test_revert_twice_is_idempotent(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.0, 0.0, 0.0, 0.2, 0.1, 0.0], [0.0, 0.1, 0.0, 0.0, 0.0, 0.3])
        t.commit()
        t.revert_to_last_commit()
        once = t.get_basic_trial_disp()
        t.revert_to_last_commit()
        np.testing.assert_array_equal(t.get_basic_trial_disp(), once)

    def test_incremental_displacements(self):
        t, ni, nj = make_element(xj=(1.0, 0.0, 0.0))
        apply(t, (ni, nj), np.zeros(6), [0.1, 0.0, 0.0, 0.0, 0.0, 0.0])
        t.commit()
        apply(t, (ni, nj), np.zeros(6), [0.3, 0.0, 0.0, 0.0, 0.0, 0.0])
        apply(t, (ni, nj), np.zeros(6), [0.25, 0.0, 0.0, 0.0, 0.0, 0.0])

        assert np.isclose(t.get_basic_incr_disp()[6], 0.15)
        assert np.isclose(t.get_basic_incr_delta_disp()[6], -0.05)

    def test_revert_to_start(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.1, 0.0, 0.0, 0.6, -0.3, 0.2], [0.0, 0.3, 0.1, -0.2, 0.4, 0.5])
        t.commit()

        ni.revert_to_start()
        nj.revert_to_start()
        t.revert_to_start()

        np.testing.assert_allclose(t.get_basic_trial_disp(), np.zeros(12), atol=1e-14)
        assert t.get_deformed_length() == pytest.approx(t.get_initial_length())
        R0 = np.column_stack(t.get_local_axes())
        for q in list(t.nodal_versors) + list(t.committed_versors):
            np.testing.assert_allclose(q.to_matrix(), R0, atol=1e-14)


class TestPushForward:

    def test_nodal_forces_are_self_equilibrated(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.05, -0.02, 0.01, 0.4, -0.3, 0.2], [0.02, 0.1, -0.05, -0.2, 0.3, 0.6])

        pl = np.array([0.0, 0.0, 0.0, 2.0, -1.0, 3.0, 10.0, 0.0, 0.0, -0.5, 1.5, 4.0])
        force, moment = equilibrium_residual((ni, nj), t.push_force(pl))
        np.testing.assert_allclose(force, np.zeros(3), atol=1e-10)
        np.testing.assert_allclose(moment, np.zeros(3), atol=1e-10)

    def test_axial_force_along_chord(self):
        t, ni, nj = make_element(xj=(3.0, 4.0, 0.0))
        pl = np.zeros(12)
        pl[6] = 5.0
        pg = t.push_force(pl)
        np.testing.assert_allclose(pg[0:3], [-3.0, -4.0, 0.0], atol=1e-14)
        np.testing.assert_allclose(pg[6:9], [3.0, 4.0, 0.0], atol=1e-14)
        np.testing.assert_allclose(pg[[3, 4, 5, 9, 10, 11]], np.zeros(6), atol=1e-14)

    def test_stiffness_without_forces_is_material_part(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.05, -0.02, 0.01, 0.4, -0.3, 0.2], [0.02, 0.1, -0.05, -0.2, 0.3, 0.6])
        rng = np.random.default_rng(5)
        A = rng.normal(size=(12, 12))
        kl = A @ A.T

        T = t.tangent
        np.testing.assert_allclose(t.push_stiffness(kl, np.zeros(12)), T.T @ kl @ T, atol=1e-12)

    def test_initial_stiffness_uses_reference_tangent(self):
        t, ni, nj = make_element()
        T0 = t.tangent.copy()
        apply(t, (ni, nj), [0.05, -0.02, 0.01, 0.4, -0.3, 0.2], [0.02, 0.1, -0.05, -0.2, 0.3, 0.6])
        kl = np.eye(12)
        np.testing.assert_allclose(t.get_initial_stiffness(kl), T0.T @ T0, atol=1e-14)
        np.testing.assert_array_equal(t.initial_tangent, T0)

    def test_push_stiffness_leaves_kl_untouched(self):
        t, _, _ = make_element()
        kl = np.eye(12)
        pl = np.ones(12)
        t.push_stiffness(kl, pl)
        np.testing.assert_array_equal(kl, np.eye(12))


class TestOffsets:

    def test_offsets_change_reference_chord(self):
        offsets = ([0.0, 0.0, 0.5], [0.0, 0.0, 0.5])
        t, _, _ = make_element(xj=(4.0, 0.0, 0.0), offsets=offsets)
        assert t.get_initial_length() == pytest.approx(4.0)

        offsets = ([0.5, 0.0, 0.0], [-0.5, 0.0, 0.0])
        t, _, _ = make_element(xj=(4.0, 0.0, 0.0), offsets=offsets)
        assert t.get_initial_length() == pytest.approx(3.0)

    def test_offset_arm_rotates_with_node(self):
        """A quarter turn of node J about z swings its arm and shortens the chord."""
        offsets = ([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        t, ni, nj = make_element(xj=(2.0, 0.0, 0.0), offsets=offsets)
        assert t.get_initial_length() == pytest.approx(3.0)

        apply(t, (ni, nj), np.zeros(6), [0.0, 0.0, 0.0, 0.0, 0.0, np.pi / 2])
        assert t.get_deformed_length() == pytest.approx(np.sqrt(5.0))

    def test_point_coordinates(self):
        offsets = ([0.0, 0.0, 0.5], [0.0, 0.0, 0.5])
        t, _, _ = make_element(xj=(4.0, 0.0, 0.0), offsets=offsets)
        np.testing.assert_allclose(t.get_point_global_coord_from_local([1.0, 0.0, 0.0]), [1.0, 0.0, 0.5])


class TestInitialDisplacement:

    def test_existing_displacement_is_baseline(self):
        ni = Node3D(1, 0.0, 0.0, 0.0)
        nj = Node3D(2, 1.0, 0.0, 0.0)
        ni.set_trial_disp([0.1, 0.2, 0.0, 0.3, 0.0, 0.0])
        nj.set_trial_disp([0.5, 0.0, 0.0, 0.0, 0.0, 0.4])

        t = SouzaFrameTransform(1, vecxz=[0.0, 0.0, 1.0])
        t.initialize(ni, nj)
        np.testing.assert_allclose(t.get_basic_trial_disp(), np.zeros(12), atol=1e-15)
        assert t.get_initial_length() == 1.0

        nj.incr_trial_disp([0.2, 0.0, 0.0, 0.0, 0.0, 0.0])
        t.update()
        assert np.isclose(t.get_basic_trial_disp()[6], 0.2)


class TestFailures:

    def test_coincident_nodes(self):
        with pytest.raises(DegenerateGeometryError):
            make_element(xj=(0.0, 0.0, 0.0))

    def test_vecxz_parallel_to_axis(self):
        with pytest.raises(DegenerateGeometryError):
            make_element(xj=(0.0, 0.0, 2.0), vecxz=(0.0, 0.0, 1.0))

    def test_missing_node(self):
        t = SouzaFrameTransform(3, vecxz=[0.0, 0.0, 1.0])
        with pytest.raises(InvalidNodeError):
            t.initialize(Node3D(1, 0.0, 0.0, 0.0), None)

    def test_update_before_initialize(self):
        with pytest.raises(InvalidNodeError):
            SouzaFrameTransform(3, vecxz=[0.0, 0.0, 1.0]).update()

    def test_collapsed_element_keeps_state(self):
        t, ni, nj = make_element(xj=(1.0, 0.0, 0.0))
        apply(t, (ni, nj), np.zeros(6), [0.0, 0.0, 0.0, 0.0, 0.0, 0.1])
        t.commit()
        ul = t.get_basic_trial_disp()
        R = [q.to_matrix() for q in t.nodal_versors]

        with pytest.raises(DegenerateGeometryError):
            apply(t, (ni, nj), np.zeros(6), [-1.0, 0.0, 0.0, 0.0, 0.0, 0.3])

        np.testing.assert_array_equal(t.get_basic_trial_disp(), ul)
        for q, R_n in zip(t.nodal_versors, R):
            np.testing.assert_array_equal(q.to_matrix(), R_n)

        # The rejected rotation increment is applied once the geometry recovers
        apply(t, (ni, nj), np.zeros(6), [0.0, 0.0, 0.0, 0.0, 0.0, 0.3])
        assert np.isclose(t.get_basic_trial_disp()[11], 0.3, atol=1e-12)

    def test_sensitivity_not_supported(self, caplog):
        t, _, _ = make_element()
        assert not t.supports_sensitivity
        with caplog.at_level(logging.WARNING, logger="corotframe"):
            with pytest.raises(UnsupportedOperationError):
                t.get_length_grad()
        assert "get_length_grad" in caplog.text

        with pytest.raises(NotImplementedError):
            t.get_basic_displ_sensitivity(np.zeros(12))
        with pytest.raises(NotImplementedError):
            t.get_global_resisting_force_sensitivity(np.zeros(12))


class TestCopyAndDescribe:

    def test_copy_is_independent(self):
        t, ni, nj = make_element()
        apply(t, (ni, nj), [0.0, 0.0, 0.0, 0.2, 0.1, 0.0], [0.0, 0.1, 0.0, 0.0, 0.0, 0.3])
        dup = t.copy()

        assert dup.nodes[0] is ni and dup.nodes[1] is nj
        assert dup.vecxz is t.vecxz
        np.testing.assert_array_equal(dup.get_basic_trial_disp(), t.get_basic_trial_disp())

        ul = t.get_basic_trial_disp()
        nj.set_trial_disp([0.0, 0.2, 0.0, 0.4, 0.0, 0.5])
        dup.update()
        np.testing.assert_array_equal(t.get_basic_trial_disp(), ul)
        assert not np.allclose(dup.get_basic_trial_disp(), ul)

    def test_describe_text(self):
        t, _, _ = make_element()
        text = t.describe()
        assert "CrdTransf: 1" in text
        assert "SouzaFrameTransform" in text
        assert "Offset" not in text

    def test_describe_json(self):
        offsets = ([0.0, 0.1, 0.0], [0.0, -0.1, 0.0])
        t, _, _ = make_element(offsets=offsets)
        record = json.loads(t.describe(JSON_FLAG))

        assert record["name"] == 1
        assert record["type"] == "SouzaFrameTransform"
        assert record["vecxz"] == [0.0, 0.0, 1.0]
        assert record["offsets"] == [[0.0, 0.1, 0.0], [0.0, -0.1, 0.0]]

    def test_describe_json_without_offsets(self):
        t, _, _ = make_element()
        assert "offsets" not in json.loads(t.describe(JSON_FLAG))
