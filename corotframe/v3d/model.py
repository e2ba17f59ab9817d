# corotframe/v3d/model.py
"""
3D MODEL DEFINITIONS: Node3D
============================

PURPOSE:
--------
A frame transform never owns nodes. It reads, for each element end:

    - reference coordinates        get_crds()            (3,)
    - trial displacement           get_trial_disp()      (6,)
    - committed displacement       get_disp()            (6,)
    - coordinate sensitivity flag  get_crds_sensitivity()

Node3D is the minimal collaborator implementing that contract, with the
trial/commit bookkeeping a solver drives between iterations.

DOF ORDER:
----------
    [ux, uy, uz, rx, ry, rz]

Rotational entries are TOTAL rotation vectors accumulated by the solver.
The transform only uses their increments between updates.
"""

from dataclasses import dataclass, field

import numpy as np


@dataclass
class Node3D:
    """
    A node (joint) in 3D space with 6 DOFs.

    Parameters:
    -----------
    tag : int
        Unique identifier for this node
    x, y, z : float
        Reference coordinates in the global system (meters)
    crd_sensitivity : int
        Coordinate index (1=x, 2=y, 3=z) this node's position is a design
        parameter for, or 0 for none

    Examples:
    ---------
    >>> n = Node3D(1, 1.0, 0.0, 0.0)
    >>> n.set_trial_disp([0.0, 0.0, 0.0, 0.0, 0.0, 0.01])
    >>> float(n.get_trial_disp()[5])
    0.01
    """
    tag: int
    x: float
    y: float
    z: float
    crd_sensitivity: int = 0
    trial_disp: np.ndarray = field(default_factory=lambda: np.zeros(6))
    commit_disp: np.ndarray = field(default_factory=lambda: np.zeros(6))

    def get_crds(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def get_trial_disp(self) -> np.ndarray:
        return self.trial_disp

    def get_disp(self) -> np.ndarray:
        return self.commit_disp

    def get_crds_sensitivity(self) -> int:
        return self.crd_sensitivity

    def set_trial_disp(self, disp) -> None:
        disp = np.asarray(disp, dtype=float)
        if disp.shape != (6,):
            raise ValueError(f"Node {self.tag}: expected 6 displacement components, got {disp.shape}")
        self.trial_disp = disp.copy()

    def incr_trial_disp(self, incr) -> None:
        self.set_trial_disp(self.trial_disp + np.asarray(incr, dtype=float))

    def commit_state(self) -> None:
        self.commit_disp = self.trial_disp.copy()

    def revert_to_last_commit(self) -> None:
        self.trial_disp = self.commit_disp.copy()

    def revert_to_start(self) -> None:
        self.trial_disp = np.zeros(6)
        self.commit_disp = np.zeros(6)
