# corotframe/v3d/transform.py
"""
FRAME TRANSFORMS: Global ↔ Local Kinematics of a 3D Frame Element
=================================================================

PURPOSE:
--------
An element formulation works in a LOCAL, rotation-free setting: it takes a
12-component basic deformation vector ul and returns basic forces pl and a
basic stiffness kl. The transform sits between that element and the global
model:

    nodes ──update()──► ul ──element──► pl, kl ──push_*()──► pg, Kg

Two variants share the FrameTransform interface:

    LinearFrameTransform   small displacements, constant T
    SouzaFrameTransform    corotational, large rigid rotations, exact tangent

LIFECYCLE:
----------
    t = SouzaFrameTransform(tag=1, vecxz=[0, 0, 1])
    t.initialize(node_i, node_j)        # reference geometry, committed
    t.update()                          # every iteration
    pg = t.push_force(pl)
    Kg = t.push_stiffness(kl, pl)
    t.commit()                          # step accepted
    t.revert_to_last_commit()           # step rejected

ERRORS:
-------
Failures are raised from the operation that detects them and never retried
here. Recovery (sub-stepping, rejecting the element) belongs to the solver.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from ..config import CONFIG
from ..kernel.dof import DOF_3D_FRAME, IMX, INX, JMX, JNX, NDOF_ELEMENT
from ..kernel.isometry import CrisfieldIsometry
from ..kernel.rotations import Versor, log_c90, skew

logger = logging.getLogger(__name__)

JSON_FLAG = 25000

_BASIC_ROT = (slice(IMX, IMX + 3), slice(JMX, JMX + 3))


class FrameTransformError(RuntimeError):
    """Base class for frame transform failures."""
    pass


class InvalidNodeError(FrameTransformError):
    """Raised when a required node reference is missing."""
    pass


class DegenerateGeometryError(FrameTransformError):
    """Raised when the reference or deformed element length is zero."""
    pass


class UnsupportedOperationError(FrameTransformError, NotImplementedError):
    """Raised by capabilities a transform variant does not provide."""
    pass


def _frozen(v) -> np.ndarray:
    a = np.array(v, dtype=float)
    if a.shape != (3,):
        raise ValueError(f"Expected a 3-component vector, got shape {a.shape}")
    a.setflags(write=False)
    return a


def reference_geometry(
    xi: np.ndarray,
    xj: np.ndarray,
    vecxz: np.ndarray,
    offsets: Optional[Tuple[np.ndarray, np.ndarray]] = None,
) -> Tuple[np.ndarray, float, np.ndarray]:
    """
    Chord, length and local triad of an element in its reference position.

    The local x axis runs from end I to end J. vecxz lies in the local x-z
    plane:

        e2 = (vecxz × e1) / |vecxz × e1|
        e3 = e1 × e2

    Parameters:
    -----------
    xi, xj : np.ndarray
        Node coordinates
    vecxz : np.ndarray
        Orientation vector in the local x-z plane
    offsets : tuple of np.ndarray, optional
        Rigid offsets from each node to the element end (global)

    Returns:
    --------
    Tuple[np.ndarray, float, np.ndarray]
        (dX, L, R0); R0 has the local axes as columns

    Raises:
    -------
    DegenerateGeometryError
        If the ends coincide or vecxz is parallel to the element axis

    Example:
    --------
    >>> dX, L, R0 = reference_geometry([0, 0, 0], [1, 0, 0], [0, 0, 1])
    >>> float(L)
    1.0
    """
    dX = np.asarray(xj, dtype=float) - np.asarray(xi, dtype=float)
    if offsets is not None:
        dX = dX + offsets[1] - offsets[0]

    L = float(np.linalg.norm(dX))
    if L <= CONFIG.zero_length_tol:
        raise DegenerateGeometryError(
            f"Element has zero length (ends at {np.asarray(xi).tolist()} and {np.asarray(xj).tolist()})"
        )

    e1 = dX / L
    e2 = np.cross(vecxz, e1)
    n2 = np.linalg.norm(e2)
    if n2 <= CONFIG.parallel_tol * np.linalg.norm(vecxz):
        raise DegenerateGeometryError(
            f"Orientation vector {np.asarray(vecxz).tolist()} is parallel to the element axis"
        )
    e2 = e2 / n2
    e3 = np.cross(e1, e2)

    return dX, L, np.column_stack([e1, e2, e3])


class FrameTransform(ABC):
    """
    Interface shared by all 3D frame transform variants.

    Subclasses own all of their state. The concrete methods here only go
    through the abstract accessors.
    """

    supports_sensitivity: bool = False

    # Lifecycle
    @abstractmethod
    def initialize(self, node_i, node_j) -> None: ...

    @abstractmethod
    def update(self) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def revert_to_last_commit(self) -> None: ...

    @abstractmethod
    def revert_to_start(self) -> None: ...

    # Kinematics
    @property
    @abstractmethod
    def tangent(self) -> np.ndarray: ...

    @property
    @abstractmethod
    def initial_tangent(self) -> np.ndarray: ...

    @abstractmethod
    def add_tangent(self, kg: np.ndarray, pl: np.ndarray) -> np.ndarray: ...

    @abstractmethod
    def get_basic_trial_disp(self) -> np.ndarray: ...

    @abstractmethod
    def get_initial_length(self) -> float: ...

    @abstractmethod
    def get_deformed_length(self) -> float: ...

    @abstractmethod
    def get_local_axes(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]: ...

    def push_force(self, pl: np.ndarray) -> np.ndarray:
        """Global end forces pg = Tᵀ pl."""
        return self.tangent.T @ np.asarray(pl, dtype=float)

    def push_stiffness(self, kl: np.ndarray, pl: np.ndarray) -> np.ndarray:
        """Global stiffness Tᵀ kl T plus the geometric terms for forces pl."""
        kg = self.get_global_matrix_from_local(kl)
        return self.add_tangent(kg, np.asarray(pl, dtype=float))

    def get_global_matrix_from_local(self, kl: np.ndarray) -> np.ndarray:
        T = self.tangent
        return T.T @ np.asarray(kl, dtype=float) @ T

    def get_initial_stiffness(self, kl: np.ndarray) -> np.ndarray:
        """T0ᵀ kl T0 with the tangent of the reference configuration."""
        T0 = self.initial_tangent
        return T0.T @ np.asarray(kl, dtype=float) @ T0

    def copy(self) -> "FrameTransform":
        """
        Independent copy. Nodes and the immutable vecxz/offsets are shared,
        every piece of rotation and displacement state is duplicated.
        """
        memo = {id(self.vecxz): self.vecxz}
        if self.offsets is not None:
            memo[id(self.offsets)] = self.offsets
        for node in self.nodes or ():
            memo[id(node)] = node
        return copy.deepcopy(self, memo)

    def describe(self, flag: int = 0) -> str:
        """
        Diagnostic record: a text summary, or JSON for flag == JSON_FLAG.
        """
        record = {
            "name": self.tag,
            "type": type(self).__name__,
            "vecxz": self.vecxz.tolist(),
        }
        if self.offsets is not None:
            record["offsets"] = [o.tolist() for o in self.offsets]

        if flag == JSON_FLAG:
            return json.dumps(record, indent=CONFIG.json_indent)

        p = CONFIG.print_precision
        lines = [
            f"CrdTransf: {self.tag} Type: {record['type']}",
            f"\tvecxz: {np.array2string(self.vecxz, precision=p)}",
        ]
        if self.offsets is not None:
            lines.append(f"\tnodeI Offset: {np.array2string(self.offsets[0], precision=p)}")
            lines.append(f"\tnodeJ Offset: {np.array2string(self.offsets[1], precision=p)}")
        return "\n".join(lines)

    # Sensitivity (not provided unless a variant overrides)
    def get_length_grad(self) -> float:
        return self._unsupported("get_length_grad")

    def get_basic_displ_sensitivity(self, disp_sens: np.ndarray) -> np.ndarray:
        return self._unsupported("get_basic_displ_sensitivity")

    def get_global_resisting_force_sensitivity(self, pl_sens: np.ndarray) -> np.ndarray:
        return self._unsupported("get_global_resisting_force_sensitivity")

    def _unsupported(self, name: str):
        logger.warning("%s %s: %s is not implemented", type(self).__name__, self.tag, name)
        raise UnsupportedOperationError(f"{type(self).__name__}.{name} is not supported")


def _check_nodes(node_i, node_j, tag) -> None:
    for label, node in (("I", node_i), ("J", node_j)):
        if node is None:
            raise InvalidNodeError(f"Transform {tag}: node {label} does not exist")


class SouzaFrameTransform(FrameTransform):
    """
    Corotational transform with Crisfield's mean-rotation triad.

    Nodal rotations are tracked as versors. Each update composes the
    rotation increment since the previous update on the LEFT:

        Q_pres = exp(Δα) * Q_pres

    so the result does not depend on how many iterations a step takes.

    Parameters:
    -----------
    tag : int
        Identifier
    vecxz : array-like
        Orientation vector in the local x-z plane
    offsets : tuple of array-like, optional
        Rigid offsets (global) from node I and node J to the element ends

    Notes:
    ------
    Local rotations use the asin logarithm (log_c90). Every component must
    stay below 90°; the m·tan θ stiffness term grows without bound as one
    approaches it and is deliberately not clamped.
    """

    def __init__(self, tag: int, vecxz, offsets: Optional[Sequence] = None):
        self.tag = tag
        self.vecxz = _frozen(vecxz)
        self.offsets = None if offsets is None else (_frozen(offsets[0]), _frozen(offsets[1]))
        self.nodes = None

        self._iso = CrisfieldIsometry()
        self._dX = np.zeros(3)
        self._L = 0.0
        self._Ln = 0.0
        self._R0 = np.eye(3)

        self._Q_pres = [Versor.identity(), Versor.identity()]
        self._Q_past = [Versor.identity(), Versor.identity()]
        self._alpha = [np.zeros(3), np.zeros(3)]
        self._init_disp = [np.zeros(6), np.zeros(6)]

        self._ul = np.zeros(NDOF_ELEMENT)
        self._ulpr = np.zeros(NDOF_ELEMENT)
        self._ulcommit = np.zeros(NDOF_ELEMENT)
        self._vr = [np.zeros(3), np.zeros(3)]
        self._T = np.zeros((NDOF_ELEMENT, NDOF_ELEMENT))
        self._T0 = np.zeros((NDOF_ELEMENT, NDOF_ELEMENT))

    def initialize(self, node_i, node_j) -> None:
        _check_nodes(node_i, node_j, self.tag)
        self._dX, self._L, self._R0 = reference_geometry(
            node_i.get_crds(), node_j.get_crds(), self.vecxz, self.offsets
        )
        self.nodes = (node_i, node_j)

        # Displacement already present when the element is created
        self._init_disp = [np.array(n.get_trial_disp(), dtype=float) for n in self.nodes]
        self._alpha = [d[3:6].copy() for d in self._init_disp]

        q0 = Versor.from_matrix(self._R0)
        self._Q_pres = [q0, q0]
        self._Q_past = [q0, q0]
        self._ul = np.zeros(NDOF_ELEMENT)

        self._iso.initialize(node_i, node_j)
        self.update()
        self._T0 = self._T.copy()
        self.commit()
        logger.debug("SouzaFrameTransform %s initialized, L=%g", self.tag, self._L)

    def update(self) -> None:
        """
        Recompute ul and T from the nodes' trial displacements.

        Raises:
        -------
        DegenerateGeometryError
            If the deformed length is zero. No state is modified.
        """
        self._require_nodes()
        disp = [np.asarray(n.get_trial_disp(), dtype=float) for n in self.nodes]

        # Trial rotations; nothing is stored until the geometry checks out
        Q = list(self._Q_pres)
        for n in (0, 1):
            dalpha = disp[n][3:6] - self._alpha[n]
            if np.any(dalpha != 0.0):
                Q[n] = (Versor.from_vector(dalpha) * Q[n]).normalized()
        R = [q.to_matrix() for q in Q]

        dx = self._dX + (disp[1][0:3] - self._init_disp[1][0:3]) - (disp[0][0:3] - self._init_disp[0][0:3])
        arms = None
        if self.offsets is not None:
            arms = tuple(R[n] @ self._R0.T @ self.offsets[n] for n in (0, 1))
            dx = dx + (arms[1] - self.offsets[1]) - (arms[0] - self.offsets[0])

        Ln = float(np.linalg.norm(dx))
        if Ln <= CONFIG.zero_length_tol:
            raise DegenerateGeometryError(f"Transform {self.tag}: deformed length is zero")

        self._Q_pres = Q
        self._alpha = [d[3:6].copy() for d in disp]
        self._Ln = Ln

        self._iso.update(R[0], R[1], dx, arms)
        E = self._iso.get_rotation()

        ul = np.zeros(NDOF_ELEMENT)
        for n in (0, 1):
            self._vr[n] = log_c90(E.T @ R[n])
            ul[_BASIC_ROT[n]] = self._vr[n]
        ul[INX] = 0.0
        ul[JNX] = Ln - self._L

        self._ulpr = self._ul
        self._ul = ul
        self._T = self._iso.compute_tangent(ul)

    def add_tangent(self, kg: np.ndarray, pl: np.ndarray) -> np.ndarray:
        """
        Add the geometric stiffness for basic forces pl to kg (in place).

        Isometry terms plus Tᵀ diag(m ⊙ tan θ) T, where m are the basic
        moments and θ the local rotations.
        """
        self._iso.add_tangent(kg, pl, self._ul)

        d = np.zeros(NDOF_ELEMENT)
        for sl in _BASIC_ROT:
            d[sl] = pl[sl] * np.tan(self._ul[sl])
        kg += self._T.T @ (d[:, None] * self._T)
        return kg

    def commit(self) -> None:
        self._Q_past = list(self._Q_pres)
        self._ulcommit = self._ul.copy()

    def revert_to_last_commit(self) -> None:
        """
        Restore the committed rotations and re-derive ul, T, Ln.

        Assumes the nodes' trial displacements have already been reset to
        the committed step.
        """
        self._require_nodes()
        self._alpha = [np.array(n.get_trial_disp()[3:6], dtype=float) for n in self.nodes]
        self._ul = self._ulcommit.copy()
        self._Q_pres = list(self._Q_past)
        self.update()

    def revert_to_start(self) -> None:
        self._require_nodes()
        q0 = Versor.from_matrix(self._R0)
        self._Q_pres = [q0, q0]
        self._Q_past = [q0, q0]
        self._alpha = [d[3:6].copy() for d in self._init_disp]
        self._ul = np.zeros(NDOF_ELEMENT)
        self._ulcommit = np.zeros(NDOF_ELEMENT)
        self.update()

    @property
    def tangent(self) -> np.ndarray:
        return self._T

    @property
    def initial_tangent(self) -> np.ndarray:
        return self._T0

    @property
    def nodal_versors(self) -> Tuple[Versor, Versor]:
        """Trial nodal rotations (Q_pres)."""
        return tuple(self._Q_pres)

    @property
    def committed_versors(self) -> Tuple[Versor, Versor]:
        return tuple(self._Q_past)

    def get_basic_trial_disp(self) -> np.ndarray:
        return self._ul.copy()

    def get_basic_incr_disp(self) -> np.ndarray:
        return self._ul - self._ulcommit

    def get_basic_incr_delta_disp(self) -> np.ndarray:
        return self._ul - self._ulpr

    def get_local_rotations(self) -> Tuple[np.ndarray, np.ndarray]:
        """Local rotation measures vr of nodes I and J."""
        return self._vr[0].copy(), self._vr[1].copy()

    def get_initial_length(self) -> float:
        return self._L

    def get_deformed_length(self) -> float:
        return self._Ln

    def get_local_axes(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Columns of the fixed reference triad R0."""
        return self._R0[:, 0].copy(), self._R0[:, 1].copy(), self._R0[:, 2].copy()

    def get_current_axes(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Columns of the corotated triad Rbar."""
        E = self._iso.get_rotation()
        return E[:, 0].copy(), E[:, 1].copy(), E[:, 2].copy()

    def get_point_global_coord_from_local(self, xl) -> np.ndarray:
        self._require_nodes()
        return _point_global_coord(self.nodes[0], self.offsets, self._R0, xl)

    def _require_nodes(self) -> None:
        if self.nodes is None:
            raise InvalidNodeError(f"Transform {self.tag} has no nodes; call initialize() first")


class LinearFrameTransform(FrameTransform):
    """
    Small-displacement transform with a constant tangent.

    T is the corotational tangent evaluated in the reference configuration:

        ω_E = skew(e1)(δu_J - δu_I)/L + ½ e1 e1ᵀ (ω_I + ω_J)
        θ_n = R0ᵀ (ω_n - ω_E),   δL = e1·(δu_J - δu_I)

    Rigid offsets enter linearly through u_end = u + θ × o.
    """

    supports_sensitivity = True

    def __init__(self, tag: int, vecxz, offsets: Optional[Sequence] = None):
        self.tag = tag
        self.vecxz = _frozen(vecxz)
        self.offsets = None if offsets is None else (_frozen(offsets[0]), _frozen(offsets[1]))
        self.nodes = None

        self._L = 0.0
        self._R0 = np.eye(3)
        self._init_disp = [np.zeros(6), np.zeros(6)]
        self._T = np.zeros((NDOF_ELEMENT, NDOF_ELEMENT))
        self._ul = np.zeros(NDOF_ELEMENT)
        self._ulpr = np.zeros(NDOF_ELEMENT)
        self._ulcommit = np.zeros(NDOF_ELEMENT)

    def initialize(self, node_i, node_j) -> None:
        _check_nodes(node_i, node_j, self.tag)
        _, self._L, self._R0 = reference_geometry(
            node_i.get_crds(), node_j.get_crds(), self.vecxz, self.offsets
        )
        self.nodes = (node_i, node_j)
        self._init_disp = [np.array(n.get_trial_disp(), dtype=float) for n in self.nodes]
        self._T = self._build_tangent()
        self._ul = np.zeros(NDOF_ELEMENT)
        self.update()
        self.commit()
        logger.debug("LinearFrameTransform %s initialized, L=%g", self.tag, self._L)

    def _build_tangent(self) -> np.ndarray:
        e1 = self._R0[:, 0]
        rot = (DOF_3D_FRAME.rotation_dofs(0), DOF_3D_FRAME.rotation_dofs(1))

        B = np.zeros((3, NDOF_ELEMENT))
        B[:, 0:3] = -np.eye(3)
        B[:, 6:9] = np.eye(3)
        if self.offsets is not None:
            B[:, rot[0]] = skew(self.offsets[0])
            B[:, rot[1]] = -skew(self.offsets[1])

        M = skew(e1) @ B / self._L
        for n in (0, 1):
            M[:, rot[n]] += 0.5 * np.outer(e1, e1)

        T = np.zeros((NDOF_ELEMENT, NDOF_ELEMENT))
        for n in (0, 1):
            S = np.zeros((3, NDOF_ELEMENT))
            S[[0, 1, 2], rot[n]] = 1.0
            T[_BASIC_ROT[n], :] = self._R0.T @ (S - M)
        T[JNX, :] = e1 @ B
        return T

    def update(self) -> None:
        self._require_nodes()
        d = np.concatenate([
            np.asarray(n.get_trial_disp(), dtype=float) - d0
            for n, d0 in zip(self.nodes, self._init_disp)
        ])
        self._ulpr = self._ul
        self._ul = self._T @ d

    def add_tangent(self, kg: np.ndarray, pl: np.ndarray) -> np.ndarray:
        return kg

    def commit(self) -> None:
        self._ulcommit = self._ul.copy()

    def revert_to_last_commit(self) -> None:
        self._ul = self._ulcommit.copy()
        self.update()

    def revert_to_start(self) -> None:
        self._ul = np.zeros(NDOF_ELEMENT)
        self._ulcommit = np.zeros(NDOF_ELEMENT)
        self.update()

    @property
    def tangent(self) -> np.ndarray:
        return self._T

    @property
    def initial_tangent(self) -> np.ndarray:
        return self._T

    def get_basic_trial_disp(self) -> np.ndarray:
        return self._ul.copy()

    def get_basic_incr_disp(self) -> np.ndarray:
        return self._ul - self._ulcommit

    def get_basic_incr_delta_disp(self) -> np.ndarray:
        return self._ul - self._ulpr

    def get_initial_length(self) -> float:
        return self._L

    def get_deformed_length(self) -> float:
        return self._L

    def get_local_axes(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self._R0[:, 0].copy(), self._R0[:, 1].copy(), self._R0[:, 2].copy()

    def get_point_global_coord_from_local(self, xl) -> np.ndarray:
        self._require_nodes()
        return _point_global_coord(self.nodes[0], self.offsets, self._R0, xl)

    # Sensitivity
    def get_length_grad(self) -> float:
        """
        dL/dp when a node coordinate is the parameter.

        The coordinate-sensitivity index of each node (1=x, 2=y, 3=z, 0=none)
        selects which coordinate moves.
        """
        self._require_nodes()
        e1 = self._R0[:, 0]
        grad = np.zeros(3)
        for node, sign in zip(self.nodes, (-1.0, 1.0)):
            k = node.get_crds_sensitivity()
            if k:
                grad[k - 1] += sign
        return float(e1 @ grad)

    def get_basic_displ_sensitivity(self, disp_sens: np.ndarray) -> np.ndarray:
        """dul/dp = T dd/dp for a parameter that is not a node coordinate."""
        self._require_fixed_shape("get_basic_displ_sensitivity")
        return self._T @ np.asarray(disp_sens, dtype=float)

    def get_global_resisting_force_sensitivity(self, pl_sens: np.ndarray) -> np.ndarray:
        """dpg/dp = Tᵀ dpl/dp for a parameter that is not a node coordinate."""
        self._require_fixed_shape("get_global_resisting_force_sensitivity")
        return self._T.T @ np.asarray(pl_sens, dtype=float)

    def _require_fixed_shape(self, name: str) -> None:
        self._require_nodes()
        if any(n.get_crds_sensitivity() for n in self.nodes):
            # Shape sensitivity needs dT/dp, which is not assembled
            self._unsupported(name)

    def _require_nodes(self) -> None:
        if self.nodes is None:
            raise InvalidNodeError(f"Transform {self.tag} has no nodes; call initialize() first")


def _point_global_coord(node_i, offsets, R0, xl) -> np.ndarray:
    """Global position of a point given in local coordinates from end I."""
    origin = node_i.get_crds()
    if offsets is not None:
        origin = origin + offsets[0]
    return origin + R0 @ np.asarray(xl, dtype=float)
