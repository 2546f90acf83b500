"""
Structural sparsity patterns.
"""

from bisect import bisect_right
from dataclasses import dataclass

import casadi as ca


@dataclass(frozen=True)
class SparsityPattern:
    """Immutable set of structurally nonzero (row, col) positions."""

    nrow: int
    ncol: int
    entries: frozenset[tuple[int, int]]

    def __post_init__(self) -> None:
        for r, c in self.entries:
            if not (0 <= r < self.nrow and 0 <= c < self.ncol):
                raise ValueError(f"Entry ({r}, {c}) outside a {self.nrow}x{self.ncol} pattern")

    @classmethod
    def from_casadi(cls, sp: ca.Sparsity) -> "SparsityPattern":
        rows, cols = sp.get_triplet()
        return cls(sp.size1(), sp.size2(), frozenset(zip(rows, cols)))

    @classmethod
    def from_entries(cls, nrow: int, ncol: int, entries) -> "SparsityPattern":
        return cls(nrow, ncol, frozenset((int(r), int(c)) for r, c in entries))

    @property
    def nnz(self) -> int:
        return len(self.entries)

    def row_adjacency(self) -> list[list[int]]:
        """Sorted column indices of every row."""
        adj: list[list[int]] = [[] for _ in range(self.nrow)]
        for r, c in self.entries:
            adj[r].append(c)
        for cols in adj:
            cols.sort()
        return adj

    def col_adjacency(self) -> list[list[int]]:
        """Sorted row indices of every column."""
        adj: list[list[int]] = [[] for _ in range(self.ncol)]
        for r, c in self.entries:
            adj[c].append(r)
        for rows in adj:
            rows.sort()
        return adj

    def permute(self, rowperm: list[int], colperm: list[int]) -> "SparsityPattern":
        """
        Pattern with rows and columns reordered.

        Row k of the result is row ``rowperm[k]`` of this pattern, and likewise
        for the columns.
        """
        if sorted(rowperm) != list(range(self.nrow)):
            raise ValueError("rowperm is not a permutation")
        if sorted(colperm) != list(range(self.ncol)):
            raise ValueError("colperm is not a permutation")
        inv_row = [0] * self.nrow
        for k, r in enumerate(rowperm):
            inv_row[r] = k
        inv_col = [0] * self.ncol
        for k, c in enumerate(colperm):
            inv_col[c] = k
        return SparsityPattern(
            self.nrow, self.ncol, frozenset((inv_row[r], inv_col[c]) for r, c in self.entries)
        )

    def is_block_lower_triangular(self, rowblock: list[int], colblock: list[int]) -> bool:
        """True if no entry lies above the block diagonal given by the block offsets."""
        for r, c in self.entries:
            if bisect_right(colblock, c) > bisect_right(rowblock, r):
                return False
        return True

    def to_dense(self) -> list[list[int]]:
        dense = [[0] * self.ncol for _ in range(self.nrow)]
        for r, c in self.entries:
            dense[r][c] = 1
        return dense
