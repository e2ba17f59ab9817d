# corotframe/v3d - 3D frame transforms
"""
V3D: 3D FRAME TRANSFORMS
========================

This package provides the global ↔ local mapping of a 2-node spatial frame
element (12×12, 6 DOF/node):

- SouzaFrameTransform:  corotational, large rigid rotations, exact tangent
- LinearFrameTransform: small displacements, constant tangent

USAGE:
------
    from corotframe.v3d import Node3D, SouzaFrameTransform

    ni = Node3D(1, 0.0, 0.0, 0.0)
    nj = Node3D(2, 1.0, 0.0, 0.0)

    t = SouzaFrameTransform(tag=1, vecxz=[0, 0, 1])
    t.initialize(ni, nj)

    nj.set_trial_disp([0, 0, 0, 0, 0, 0.01])
    t.update()
    ul = t.get_basic_trial_disp()       # ul[11] ≈ 0.01

    pg = t.push_force(pl)               # pl, kl from the element
    K = t.push_stiffness(kl, pl)
"""

from .model import Node3D
from .transform import (
    FrameTransform,
    SouzaFrameTransform,
    LinearFrameTransform,
    FrameTransformError,
    InvalidNodeError,
    DegenerateGeometryError,
    UnsupportedOperationError,
    JSON_FLAG,
    reference_geometry,
)

__all__ = [
    'Node3D',
    'FrameTransform', 'SouzaFrameTransform', 'LinearFrameTransform',
    'FrameTransformError', 'InvalidNodeError', 'DegenerateGeometryError',
    'UnsupportedOperationError', 'JSON_FLAG', 'reference_geometry',
]
