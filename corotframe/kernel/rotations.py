# corotframe/kernel/rotations.py
"""
ROTATION ALGEBRA: Versors and Maps on SO(3)
===========================================

PURPOSE:
--------
Finite rotations do not add like vectors. Two rotations of 90° about x and
then y are not the same as a single rotation about (1, 1, 0). To track
large nodal rotations we store each one as a VERSOR (unit quaternion):

    q = (cos(φ/2), sin(φ/2) n)        φ = angle, n = unit axis

and compose increments with the Hamilton product:

    q_new = Δq * q_old                (increment applied in the global frame)

CONVENTIONS:
------------
- Active rotations: R(q) v = q v q*
- R(q1 * q2) = R(q1) R(q2)            ("q1 after q2")
- Spatial (left) spin: a small global rotation ω maps R to exp(ω̂) R

LOGARITHMS:
-----------
- log_so3(R): the true logarithm, returns φ n with 0 ≤ φ ≤ π. The sign of
  the axis is ambiguous at exactly π, so increments are assumed well below.
- log_c90(R): Crisfield's componentwise logarithm asin(vee(skew(R))).
  Agrees with log_so3 to second order and is only valid below 90° per
  component. It is the local rotation measure of the corotational frame.
"""

from dataclasses import dataclass

import numpy as np


def skew(v: np.ndarray) -> np.ndarray:
    """
    3×3 skew-symmetric matrix such that skew(a) @ b == cross(a, b).

    Example:
    --------
    >>> skew([0, 0, 1]) @ np.array([1.0, 0, 0])
    array([0., 1., 0.])
    """
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ], dtype=float)


def vee(W: np.ndarray) -> np.ndarray:
    """Inverse of skew(): axial vector of the skew part of W."""
    return 0.5 * np.array([
        W[2, 1] - W[1, 2],
        W[0, 2] - W[2, 0],
        W[1, 0] - W[0, 1],
    ], dtype=float)


@dataclass(frozen=True, eq=False)
class Versor:
    """
    Unit quaternion representing a 3D rotation.

    Parameters:
    -----------
    vector : np.ndarray
        Vector part sin(φ/2) n, shape (3,)
    scalar : float
        Scalar part cos(φ/2)

    Notes:
    ------
    Instances are immutable; every operation returns a new Versor.
    q and -q represent the same rotation.
    """
    vector: np.ndarray
    scalar: float

    @classmethod
    def identity(cls) -> "Versor":
        return cls(np.zeros(3), 1.0)

    @classmethod
    def from_matrix(cls, R: np.ndarray) -> "Versor":
        """
        Extract the versor of a proper orthogonal matrix (Spurrier's method).

        The largest of (trace, R00, R11, R22) picks the branch so the
        division is always by a quantity of at least 1/2.
        """
        R = np.asarray(R, dtype=float)
        trace = R[0, 0] + R[1, 1] + R[2, 2]
        diag = np.diag(R)
        i = int(np.argmax(diag))

        if trace >= diag[i]:
            scalar = 0.5 * np.sqrt(1.0 + trace)
            vector = np.array([
                R[2, 1] - R[1, 2],
                R[0, 2] - R[2, 0],
                R[1, 0] - R[0, 1],
            ]) / (4.0 * scalar)
        else:
            j = (i + 1) % 3
            k = (i + 2) % 3
            vector = np.zeros(3)
            vector[i] = 0.5 * np.sqrt(1.0 + 2.0 * R[i, i] - trace)
            vector[j] = (R[j, i] + R[i, j]) / (4.0 * vector[i])
            vector[k] = (R[k, i] + R[i, k]) / (4.0 * vector[i])
            scalar = (R[k, j] - R[j, k]) / (4.0 * vector[i])

        return cls(vector, float(scalar)).normalized()

    @classmethod
    def from_vector(cls, theta: np.ndarray) -> "Versor":
        """
        Versor of a rotation (pseudo-)vector θ = φ n.

        Returns the identity for a zero vector. Callers composing increments
        should skip the zero case altogether.
        """
        theta = np.asarray(theta, dtype=float)
        angle = np.linalg.norm(theta)
        if angle == 0.0:
            return cls.identity()
        half = 0.5 * angle
        return cls(theta * (np.sin(half) / angle), float(np.cos(half)))

    def __mul__(self, other: "Versor") -> "Versor":
        """Hamilton product: the rotation `other` followed by `self`."""
        s1, v1 = self.scalar, self.vector
        s2, v2 = other.scalar, other.vector
        return Versor(
            s1 * v2 + s2 * v1 + np.cross(v1, v2),
            float(s1 * s2 - v1 @ v2),
        )

    def conjugate(self) -> "Versor":
        return Versor(-self.vector, self.scalar)

    def norm(self) -> float:
        return float(np.sqrt(self.scalar**2 + self.vector @ self.vector))

    def normalized(self) -> "Versor":
        n = self.norm()
        return Versor(self.vector / n, self.scalar / n)

    def dot(self, other: "Versor") -> float:
        return float(self.scalar * other.scalar + self.vector @ other.vector)

    def as_array(self) -> np.ndarray:
        """Components as [x, y, z, w] (scalar last)."""
        return np.append(self.vector, self.scalar)

    def to_matrix(self) -> np.ndarray:
        """
        Equivalent rotation matrix:

            R = (w² - v·v) I + 2 v vᵀ + 2 w skew(v)
        """
        w, v = self.scalar, self.vector
        return (w * w - v @ v) * np.eye(3) + 2.0 * np.outer(v, v) + 2.0 * w * skew(v)

    def rotate(self, x: np.ndarray) -> np.ndarray:
        return self.to_matrix() @ np.asarray(x, dtype=float)

    def to_vector(self) -> np.ndarray:
        """Rotation vector φ n with 0 ≤ φ ≤ π."""
        w, v = self.scalar, self.vector
        if w < 0.0:
            w, v = -w, -v
        sin_half = np.linalg.norm(v)
        if sin_half == 0.0:
            return np.zeros(3)
        return v * (2.0 * np.arctan2(sin_half, w) / sin_half)


def exp_so3(theta: np.ndarray) -> np.ndarray:
    """Rotation matrix of a rotation vector (exponential map)."""
    return Versor.from_vector(theta).to_matrix()


def log_so3(R: np.ndarray) -> np.ndarray:
    """
    SO(3) logarithm: rotation vector θ with exp_so3(θ) == R.

    Goes through the versor, so it stays well conditioned near the
    identity and up to (not including) a half turn.
    """
    return Versor.from_matrix(R).to_vector()


def log_c90(R: np.ndarray) -> np.ndarray:
    """
    Crisfield's logarithm: componentwise asin of the axial vector of skew(R).

    Exact for a rotation about a single coordinate axis, second-order
    accurate otherwise. Each component must stay below 90°.
    """
    return np.arcsin(np.clip(vee(R), -1.0, 1.0))
