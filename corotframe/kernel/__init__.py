# corotframe/kernel - Rotation algebra and corotational kinematics
"""
KERNEL: FINITE ROTATIONS AND THE COROTATED TRIAD
================================================

This package holds the pieces that do not depend on how an element is
stored or driven:

- dof.py        element DOF layout and basic-vector indices
- rotations.py  versors (unit quaternions), exp/log maps on SO(3)
- isometry.py   Crisfield's mean-rotation triad and its exact derivatives

The transforms in v3d/ combine them with node bookkeeping.
"""

from .dof import DOFManager, DOF_3D_FRAME
from .rotations import Versor, skew, vee, exp_so3, log_so3, log_c90
from .isometry import CrisfieldIsometry

__all__ = [
    'DOFManager', 'DOF_3D_FRAME',
    'Versor', 'skew', 'vee', 'exp_so3', 'log_so3', 'log_c90',
    'CrisfieldIsometry',
]
