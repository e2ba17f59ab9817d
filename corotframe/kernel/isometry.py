# corotframe/kernel/isometry.py
"""
CRISFIELD ISOMETRY: Corotated Triad of a Spatial Frame Element
==============================================================

PURPOSE:
--------
Given the two nodal triads R_I, R_J and the deformed chord dx, build the
single rotation E (Rbar) that carries the element's rigid-body motion, and
the exact derivatives of everything downstream of it.

ENGINEERING DERIVATION:
-----------------------
1. Mean rotation. The quaternion midpoint of the two nodal triads

       q_m = (q_I + q_J) / |q_I + q_J|      (q_I·q_J ≥ 0)

   equals exp(½ log(R_J R_Iᵀ)) R_I, so neither end is favoured. Writing
   h = q_J q_m* = (c, v) and t = v / c = tan(φ/4) n, its spin is

       ω_m = ½(ω_I + ω_J) - ½ skew(t) (ω_J - ω_I)

2. Chord alignment. Rotate R_m by the smallest rotation taking its first
   axis r1 onto the chord direction e1 = dx / Ln:

       e2 = r2 - (e1·r2)/(1 + e1·r1) (e1 + r1)
       e3 = r3 - (e1·r3)/(1 + e1·r1) (e1 + r1)

   The spin of E = [e1 e2 e3] is

       ω_E = skew(e1) δdx / Ln + e1 τ
       τ   = [(e1 + r1)·ω_m - (r1 × e1)·δdx / Ln] / (1 + e1·r1)

3. Local rotations. With A = Eᵀ R_n, the local rotation of node n is
   θ = asin(s), s = vee(skew(A)), and

       δθ = C⁻¹ H(A) Eᵀ (ω_n - ω_E)      H(A) = ½(tr(A) I - A), C = diag(cos θ)

   These rows, plus δLn = e1·δdx, form the 12×12 tangent T.

GEOMETRIC STIFFNESS:
--------------------
Differentiating Tᵀ p once more (p held fixed) gives four groups of terms
added here by add_tangent():

    - axial:    N/Ln Bᵀ (I - e1 e1ᵀ) B
    - arms:     curvature of the rigid offset arms
    - relative: second variation of s through A and Eᵀ
    - spin:     derivative of the ω_E Jacobian itself (9×9 form Φ)

The remaining m·tan θ term comes from C⁻¹ and is added by the transform.

SINGULARITIES:
--------------
- 1 + e1·r1 → 0: chord opposite the mean first axis (half-turn)
- cos θ → 0: a local rotation component reaches 90°
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from .dof import DOF_3D_FRAME, IMX, JMX, JNX, NDOF_ELEMENT
from .rotations import Versor, skew, vee


_ROT = (DOF_3D_FRAME.rotation_dofs(0), DOF_3D_FRAME.rotation_dofs(1))
_BASIC_ROT = (slice(IMX, IMX + 3), slice(JMX, JMX + 3))


def _selector(dofs: Sequence[int], n: int = NDOF_ELEMENT) -> np.ndarray:
    """3×n matrix picking the given three entries out of an n-vector."""
    S = np.zeros((3, n))
    S[[0, 1, 2], dofs] = 1.0
    return S


class CrisfieldIsometry:
    """
    Mean-rotation triad and transformation tangent of a 2-node frame element.

    Usage:
    ------
        iso = CrisfieldIsometry()
        iso.initialize(node_i, node_j)
        iso.update(R_I, R_J, dx)
        E = iso.get_rotation()
        T = iso.compute_tangent(ul)
        iso.add_tangent(kg, pl, ul)
    """

    def __init__(self):
        self.node_tags: Optional[Tuple[int, int]] = None

        self._RI = np.eye(3)
        self._RJ = np.eye(3)
        self._E = np.eye(3)
        self._r1 = np.array([1.0, 0.0, 0.0])
        self._e1 = np.array([1.0, 0.0, 0.0])
        self._t = np.zeros(3)
        self._Ln = 1.0
        self._D = 2.0
        self._B = np.zeros((3, NDOF_ELEMENT))
        self._M = np.zeros((3, NDOF_ELEMENT))
        self._arms = None

    def initialize(self, node_i, node_j) -> None:
        self.node_tags = (node_i.tag, node_j.tag)

    def update(
        self,
        RI: np.ndarray,
        RJ: np.ndarray,
        dx: np.ndarray,
        arms: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> None:
        """
        Recompute the corotated triad and the spin Jacobian of E.

        Parameters:
        -----------
        RI, RJ : np.ndarray
            Current nodal triads (3×3, columns = nodal axes)
        dx : np.ndarray
            Deformed chord between the (offset) element ends, shape (3,)
        arms : tuple of np.ndarray, optional
            Current rigid offset arms at I and J in global coordinates
        """
        self._RI = np.asarray(RI, dtype=float)
        self._RJ = np.asarray(RJ, dtype=float)
        self._arms = arms

        Ln = np.linalg.norm(dx)
        e1 = dx / Ln

        # Mean rotation as the normalized sum of aligned versors
        qI = Versor.from_matrix(self._RI)
        qJ = Versor.from_matrix(self._RJ)
        if qI.dot(qJ) < 0.0:
            qJ = Versor(-qJ.vector, -qJ.scalar)
        qm = Versor(qI.vector + qJ.vector, qI.scalar + qJ.scalar).normalized()
        Rm = qm.to_matrix()

        h = qJ * qm.conjugate()
        t = h.vector / h.scalar

        # Smallest rotation taking r1 onto the chord
        r1 = Rm[:, 0]
        D = 1.0 + e1 @ r1
        E = np.empty((3, 3))
        E[:, 0] = e1
        E[:, 1] = Rm[:, 1] - (e1 @ Rm[:, 1]) / D * (e1 + r1)
        E[:, 2] = Rm[:, 2] - (e1 @ Rm[:, 2]) / D * (e1 + r1)

        self._E, self._e1, self._r1 = E, e1, r1
        self._t, self._Ln, self._D = t, Ln, D

        # δdx = B δd
        B = np.zeros((3, NDOF_ELEMENT))
        B[:, 0:3] = -np.eye(3)
        B[:, 6:9] = np.eye(3)
        if arms is not None:
            B[:, _ROT[0]] = skew(arms[0])
            B[:, _ROT[1]] = -skew(arms[1])
        self._B = B

        # ω_E = M δd
        M = self._Mx() @ B
        Mw = np.outer(e1, e1 + r1) / D @ self._Ww()
        M[:, _ROT[0]] += Mw[:, 0:3]
        M[:, _ROT[1]] += Mw[:, 3:6]
        self._M = M

    def get_rotation(self) -> np.ndarray:
        """Corotated triad E (Rbar), columns = current element axes."""
        return self._E

    def compute_tangent(self, ul: np.ndarray) -> np.ndarray:
        """
        12×12 tangent T with δul = T δd.

        Rotation DOFs of δd are global (left) spins; translation DOFs are
        ordinary displacement variations.
        """
        T = np.zeros((NDOF_ELEMENT, NDOF_ELEMENT))
        for n in (0, 1):
            A, H, Z = self._relative(n)
            sec = 1.0 / np.cos(ul[_BASIC_ROT[n]])
            T[_BASIC_ROT[n], :] = sec[:, None] * (H @ Z)
        T[JNX, :] = self._e1 @ self._B
        return T

    def add_tangent(self, kg: np.ndarray, pl: np.ndarray, ul: np.ndarray) -> np.ndarray:
        """
        Add the geometric stiffness of the isometry to kg (in place).

        Parameters:
        -----------
        kg : np.ndarray
            12×12 matrix accumulated into
        pl : np.ndarray
            Local (basic) force vector, 12 components
        ul : np.ndarray
            Current local deformation vector, 12 components

        Returns:
        --------
        np.ndarray
            The same kg, for chaining
        """
        e1, r1, Ln, D = self._e1, self._r1, self._Ln, self._D
        B, M, E = self._B, self._M, self._E
        P = np.eye(3) - np.outer(e1, e1)

        N = pl[JNX]
        kg += N / Ln * (B.T @ P @ B)

        lam = np.zeros(3)
        for n in (0, 1):
            A, H, Z = self._relative(n)
            s = vee(A)
            mu = pl[_BASIC_ROT[n]] / np.cos(ul[_BASIC_ROT[n]])
            g = E @ (H.T @ mu)

            # δs through A and through Eᵀ
            B1 = -np.outer(s, mu) + 0.5 * skew(mu) @ A
            kg += Z.T @ B1.T @ Z
            kg -= (_selector(_ROT[n]) - M).T @ skew(g) @ M
            lam -= g

        # Rigid arms bend the chord variation
        if self._arms is not None:
            fx = N * e1 + (np.cross(lam, e1) - (lam @ e1) * np.cross(r1, e1) / D) / Ln
            for n, sign in ((0, -1.0), (1, 1.0)):
                a = self._arms[n]
                kg[np.ix_(_ROT[n], _ROT[n])] += sign * (np.outer(a, fx) - (fx @ a) * np.eye(3))

        Bt = np.vstack([B, _selector(_ROT[0]), _selector(_ROT[1])])
        kg += Bt.T @ self._spin_curvature(lam) @ Bt
        return kg

    def _relative(self, n: int):
        """Relative rotation A = Eᵀ R_n, H(A), and ψ = Z δd."""
        R = self._RI if n == 0 else self._RJ
        A = self._E.T @ R
        H = 0.5 * (np.trace(A) * np.eye(3) - A)
        Z = self._E.T @ (_selector(_ROT[n]) - self._M)
        return A, H, Z

    def _Mx(self) -> np.ndarray:
        """∂ω_E/∂dx."""
        e1, r1, Ln, D = self._e1, self._r1, self._Ln, self._D
        return skew(e1) / Ln - np.outer(e1, np.cross(r1, e1)) / (Ln * D)

    def _Ww(self) -> np.ndarray:
        """∂ω_m/∂(ω_I, ω_J), 3×6."""
        St = 0.5 * skew(self._t)
        return np.hstack([0.5 * np.eye(3) + St, 0.5 * np.eye(3) - St])

    def _spin_curvature(self, lam: np.ndarray) -> np.ndarray:
        """
        Bilinear form Φ with λ·δ'(M) z = zᵀ Φ z', z = (δdx, ω_I, ω_J).

        λ is a fixed covector on the spin of E; z is held fixed while the
        configuration moves along z'.
        """
        e1, r1, t, Ln, D = self._e1, self._r1, self._t, self._Ln, self._D
        I3 = np.eye(3)
        P = I3 - np.outer(e1, e1)
        r1xe1 = np.cross(r1, e1)
        ell = lam @ e1

        Sx = _selector([0, 1, 2], 9)
        SI = _selector([3, 4, 5], 9)
        SJ = _selector([6, 7, 8], 9)
        W = np.hstack([np.zeros((3, 3)), self._Ww()])

        tau = (W.T @ (e1 + r1) - Sx.T @ r1xe1 / Ln) / D
        dD = Sx.T @ (P @ r1) / Ln + W.T @ r1xe1
        Dt = 0.5 * ((I3 + np.outer(t, t)) @ (SJ - W) - skew(t) @ (SJ + W))

        # Perpendicular part skew(e1) δdx / Ln and the e1 direction of τ
        Phi = Sx.T @ (skew(lam) @ P - np.outer(np.cross(lam, e1), e1)) @ Sx / Ln**2
        Phi += np.outer(tau, Sx.T @ (P @ lam)) / Ln

        # Variation of τ
        dN = (
            W.T @ P @ Sx / Ln
            - W.T @ skew(r1) @ W
            - 0.5 * (SJ - SI).T @ skew(e1 + r1) @ Dt
            - Sx.T @ skew(e1) @ skew(r1) @ W / Ln
            + Sx.T @ (np.outer(r1xe1, e1) - skew(r1) @ P) @ Sx / Ln**2
        )
        Phi += ell / D * (dN - np.outer(tau, dD))
        return Phi
