# corotframe - Corotational kinematics for spatial frame elements
"""
COROTFRAME: Large-Rotation Frame Transforms
===========================================

This package provides:
- Finite rotation algebra (versors, SO(3) exp/log)
- Crisfield's mean-rotation isometry with an exact tangent
- Corotational and linear 3D frame transforms

ARCHITECTURE:
-------------
    kernel/         Element DOF layout, rotations, isometry
    v3d/            Node collaborator and the transform family
    config.py       Shared tolerances and output settings
"""

from .kernel import Versor, CrisfieldIsometry
from .v3d import (
    Node3D,
    FrameTransform,
    SouzaFrameTransform,
    LinearFrameTransform,
    FrameTransformError,
    InvalidNodeError,
    DegenerateGeometryError,
    UnsupportedOperationError,
)

__version__ = "0.1.0"
