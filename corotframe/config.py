# corotframe/config.py
"""
Transform configuration and defaults.
"""

from dataclasses import dataclass


@dataclass
class TransformConfig:
    """Global configuration shared by all frame transforms."""

    # Lengths at or below this are degenerate (exact zero by default)
    zero_length_tol: float = 0.0

    # |vz x e1| below this means the orientation vector is parallel to the axis
    parallel_tol: float = 1e-10

    # describe() output
    json_indent: int = 2
    print_precision: int = 6


# Global config instance
CONFIG = TransformConfig()
