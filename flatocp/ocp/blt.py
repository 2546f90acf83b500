"""
Block lower triangular (BLT) sorting of the implicit equations.

The structure of 0 == dae(x, der(x), ...) with respect to its unknowns is
decomposed with the Dulmage-Mendelsohn method: a maximum matching of equations
to unknowns splits the system into an overdetermined part, a square part and
an underdetermined part, and the strongly connected components of the square
part give the diagonal blocks. Solving the blocks in order solves the system.
"""

from dataclasses import dataclass

import casadi as ca

from flatocp.logging import logger, timed
from flatocp.ocp.model import FlatOcp, vcat
from flatocp.ocp.sparsity import SparsityPattern


@dataclass(frozen=True)
class BlockDecomposition:
    """
    Result of the Dulmage-Mendelsohn decomposition.

    Row k of the permuted pattern is row ``rowperm[k]`` of the original one.
    Block b consists of the rows ``rowblock[b]:rowblock[b+1]`` and the columns
    ``colblock[b]:colblock[b+1]``. The coarse row segments are the unmatched
    rows, the matched rows of the overdetermined part, the rows of the square
    part and the rows of the underdetermined part. The coarse column segments
    are the columns of the overdetermined part, of the square part, the matched
    columns of the underdetermined part and the unmatched columns.
    """

    rowperm: tuple[int, ...]
    colperm: tuple[int, ...]
    rowblock: tuple[int, ...]
    colblock: tuple[int, ...]
    nb: int
    coarse_rowblock: tuple[int, ...]
    coarse_colblock: tuple[int, ...]

    @property
    def inverse_rowperm(self) -> list[int]:
        inv = [0] * len(self.rowperm)
        for k, r in enumerate(self.rowperm):
            inv[r] = k
        return inv

    @property
    def inverse_colperm(self) -> list[int]:
        inv = [0] * len(self.colperm)
        for k, c in enumerate(self.colperm):
            inv[c] = k
        return inv

    @property
    def is_square(self) -> bool:
        """True if the structure has neither over- nor underdetermined parts."""
        cr, cc = self.coarse_rowblock, self.coarse_colblock
        return cr[2] == cr[0] and cr[4] == cr[3] and cc[1] == cc[0] and cc[4] == cc[2]

    def block_sizes(self) -> list[int]:
        return [self.rowblock[b + 1] - self.rowblock[b] for b in range(self.nb)]


def maximum_matching(pattern: SparsityPattern) -> tuple[list[int], list[int]]:
    """
    Maximum bipartite matching of rows to columns by augmenting paths.

    Rows are visited in index order, and the columns of a row in ascending
    order.

    Returns:
        ``(row_match, col_match)``, -1 for unmatched rows or columns.
    """
    row_adj = pattern.row_adjacency()
    row_match = [-1] * pattern.nrow
    col_match = [-1] * pattern.ncol

    for root in range(pattern.nrow):
        visited: set[int] = set()
        stack = [(root, iter(row_adj[root]))]
        path_cols: list[int] = []
        while stack:
            i, it = stack[-1]
            for j in it:
                if j in visited:
                    continue
                visited.add(j)
                path_cols.append(j)
                if col_match[j] < 0:
                    # Augment along the alternating path
                    for (r, _), c in zip(stack, path_cols):
                        row_match[r] = c
                        col_match[c] = r
                    stack = []
                    break
                stack.append((col_match[j], iter(row_adj[col_match[j]])))
                break
            else:
                stack.pop()
                if path_cols:
                    path_cols.pop()
    return row_match, col_match


def _alternating_reach(start, first_adj, row_match, col_match, from_rows: bool):
    """Rows and columns reachable by alternating paths from unmatched vertices."""
    rows: set[int] = set()
    cols: set[int] = set()
    queue = list(start)
    if from_rows:
        rows.update(start)
    else:
        cols.update(start)
    while queue:
        v = queue.pop()
        for w in first_adj[v]:
            if from_rows:
                # row v -> column w -> row matched to w
                if w in cols:
                    continue
                cols.add(w)
                nxt = col_match[w]
                if nxt >= 0 and nxt not in rows:
                    rows.add(nxt)
                    queue.append(nxt)
            else:
                # column v -> row w -> column matched to w
                if w in rows:
                    continue
                rows.add(w)
                nxt = row_match[w]
                if nxt >= 0 and nxt not in cols:
                    cols.add(nxt)
                    queue.append(nxt)
    return rows, cols


def _strong_components(nodes: list[int], edges: dict[int, list[int]]) -> list[list[int]]:
    """
    Tarjan's algorithm. Components are returned so that every component
    comes after all components it has edges to.
    """
    index: dict[int, int] = {}
    low: dict[int, int] = {}
    on_stack: set[int] = set()
    stack: list[int] = []
    components: list[list[int]] = []
    counter = 0

    for root in nodes:
        if root in index:
            continue
        work = [(root, iter(edges[root]))]
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            v, it = work[-1]
            for w in it:
                if w not in index:
                    index[w] = low[w] = counter
                    counter += 1
                    stack.append(w)
                    on_stack.add(w)
                    work.append((w, iter(edges[w])))
                    break
                if w in on_stack:
                    low[v] = min(low[v], index[w])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[v])
                if low[v] == index[v]:
                    comp = []
                    while True:
                        w = stack.pop()
                        on_stack.discard(w)
                        comp.append(w)
                        if w == v:
                            break
                    components.append(sorted(comp))
    return components


def dulmage_mendelsohn(pattern: SparsityPattern) -> BlockDecomposition:
    """
    Dulmage-Mendelsohn decomposition into block lower triangular form.

    The rows are ordered overdetermined part first, then the blocks of the
    square part with every block after the blocks it depends on, then the
    underdetermined part. Each square block is irreducible and has its matched
    pairs on the diagonal.

    Example:
        >>> p = SparsityPattern.from_entries(2, 2, [(0, 0), (0, 1), (1, 1)])
        >>> bd = dulmage_mendelsohn(p)
        >>> bd.nb, bd.rowperm, bd.colperm
        (2, (1, 0), (1, 0))
    """
    row_match, col_match = maximum_matching(pattern)
    row_adj = pattern.row_adjacency()
    col_adj = pattern.col_adjacency()

    unmatched_rows = [i for i in range(pattern.nrow) if row_match[i] < 0]
    unmatched_cols = [j for j in range(pattern.ncol) if col_match[j] < 0]

    v_rows, v_cols = _alternating_reach(unmatched_rows, row_adj, row_match, col_match, True)
    h_rows, h_cols = _alternating_reach(unmatched_cols, col_adj, row_match, col_match, False)

    s_rows = [
        i
        for i in range(pattern.nrow)
        if row_match[i] >= 0 and i not in v_rows and i not in h_rows
    ]
    s_cols = {row_match[i] for i in s_rows}

    # Equation i depends on the equation that computes each of its unknowns
    edges = {
        i: [col_match[j] for j in row_adj[i] if j in s_cols and col_match[j] != i]
        for i in s_rows
    }
    components = _strong_components(s_rows, edges)

    v_matched = sorted(i for i in v_rows if row_match[i] >= 0)
    h_sorted = sorted(h_rows)
    h_unmatched_cols = sorted(j for j in h_cols if col_match[j] < 0)

    rowperm: list[int] = []
    colperm: list[int] = []
    rowblock = [0]
    colblock = [0]

    if v_rows:
        rowperm += unmatched_rows + v_matched
        colperm += [row_match[i] for i in v_matched]
        rowblock.append(len(rowperm))
        colblock.append(len(colperm))
    for comp in components:
        rowperm += comp
        colperm += [row_match[i] for i in comp]
        rowblock.append(len(rowperm))
        colblock.append(len(colperm))
    if h_cols:
        rowperm += h_sorted
        colperm += [row_match[i] for i in h_sorted] + h_unmatched_cols
        rowblock.append(len(rowperm))
        colblock.append(len(colperm))

    n_unmatched = len(unmatched_rows)
    coarse_rowblock = (
        0,
        n_unmatched,
        n_unmatched + len(v_matched),
        n_unmatched + len(v_matched) + len(s_rows),
        pattern.nrow,
    )
    coarse_colblock = (
        0,
        len(v_cols),
        len(v_cols) + len(s_cols),
        len(v_cols) + len(s_cols) + len(h_sorted),
        pattern.ncol,
    )

    return BlockDecomposition(
        rowperm=tuple(rowperm),
        colperm=tuple(colperm),
        rowblock=tuple(rowblock),
        colblock=tuple(colblock),
        nb=len(rowblock) - 1,
        coarse_rowblock=coarse_rowblock,
        coarse_colblock=coarse_colblock,
    )


def dae_sparsity(ocp: FlatOcp, with_x: bool = False) -> SparsityPattern:
    """
    Jacobian sparsity of the implicit equations with respect to the highest
    order unknowns of x.

    With ``with_x``, every differential state is first replaced by
    ``invtau * der(state)``, so that dependencies on the states show up in
    the pattern too.
    """
    unknowns = FlatOcp.highest(ocp.x)
    dae = vcat(ocp.dae)
    if with_x:
        invtau = ca.SX.sym("invtau")
        diff = ocp.differential()
        if diff:
            dae = ca.substitute(dae, FlatOcp.syms(diff), invtau * FlatOcp.ders(diff))
    jac = ca.jacobian(dae, unknowns)
    return SparsityPattern.from_casadi(jac.sparsity())


def sort_blt(ocp: FlatOcp, with_x: bool = False) -> BlockDecomposition:
    """Permute dae and x in lockstep into block lower triangular form."""
    with timed("BLT sorting"):
        bd = dulmage_mendelsohn(dae_sparsity(ocp, with_x))
        ocp.dae = [ocp.dae[i] for i in bd.rowperm]
        ocp.x = [ocp.x[j] for j in bd.colperm]
        ocp.blt = bd
        logger.debug("%d blocks of sizes %s", bd.nb, bd.block_sizes())
    return bd
