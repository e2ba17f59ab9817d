# corotframe/kernel/dof.py
"""
DOF LAYOUT: Element and Basic Indexing for 3D Frame Transforms
==============================================================

PURPOSE:
--------
A spatial frame element has 2 nodes with 6 DOFs each:

    [ux, uy, uz, rx, ry, rz]_I  [ux, uy, uz, rx, ry, rz]_J

The transform maps these 12 global DOFs to a 12-component local ("basic")
vector with the same block layout:

    inx iny inz imx imy imz | jnx jny jnz jmx jmy jmz
     0   1   2   3   4   5  |  6   7   8   9  10  11

Only the two rotation blocks (imx..imz, jmx..jmz) and the axial slot jnx
carry deformation. The remaining slots are always zero.

USAGE:
------
    dof = DOFManager(dof_per_node=6)
    dof.node_dofs(1)          # → [6, 7, 8, 9, 10, 11]
    dof.rotation_dofs(1)      # → [9, 10, 11]
"""

from dataclasses import dataclass
from typing import List


NODES_PER_ELEMENT = 2
DOF_PER_NODE = 6
NDOF_ELEMENT = NODES_PER_ELEMENT * DOF_PER_NODE

# Basic (local) vector indices
INX, INY, INZ, IMX, IMY, IMZ = 0, 1, 2, 3, 4, 5
JNX, JNY, JNZ, JMX, JMY, JMZ = 6, 7, 8, 9, 10, 11


@dataclass
class DOFManager:
    """
    Manages degree-of-freedom indexing within a single element.

    Attributes:
    -----------
    dof_per_node : int
        Number of DOFs per node. The corotational transform requires 6
        (ux, uy, uz, rx, ry, rz).

    Examples:
    ---------
    >>> dof = DOFManager(dof_per_node=6)
    >>> dof.idx(1, 3)  # Node J, rx
    9
    >>> dof.translation_dofs(0)
    [0, 1, 2]
    """
    dof_per_node: int

    def __post_init__(self):
        if self.dof_per_node != DOF_PER_NODE:
            raise ValueError(
                f"Spatial frame transforms need {DOF_PER_NODE} DOF per node, "
                f"got {self.dof_per_node}"
            )

    def idx(self, node: int, local_dof: int) -> int:
        """Element DOF index for a node's local DOF (node 0 = I, 1 = J)."""
        return self.dof_per_node * node + local_dof

    def ndof(self, n_nodes: int = NODES_PER_ELEMENT) -> int:
        return self.dof_per_node * n_nodes

    def node_dofs(self, node: int) -> List[int]:
        base = self.dof_per_node * node
        return list(range(base, base + self.dof_per_node))

    def translation_dofs(self, node: int) -> List[int]:
        return self.node_dofs(node)[0:3]

    def rotation_dofs(self, node: int) -> List[int]:
        return self.node_dofs(node)[3:6]

    def element_dof_map(self, node_ids: List[int]) -> List[int]:
        """
        Global DOF map for an element connecting the given model nodes.

        Examples:
        ---------
        >>> DOFManager(6).element_dof_map([2, 0])
        [12, 13, 14, 15, 16, 17, 0, 1, 2, 3, 4, 5]
        """
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result


DOF_3D_FRAME = DOFManager(dof_per_node=DOF_PER_NODE)   # ux, uy, uz, rx, ry, rz
