"""
Elimination of dependent variables.

Dependent variables y are defined by binding equations ``y == dep``. The
definitions may refer to other dependent variables; eliminate_interdependencies
resolves those references so that every definition is expressed in terms of
the independent variables only, and eliminate_dependent substitutes the
resolved definitions into the remaining equation sets.
"""

import casadi as ca

from flatocp.errors import CyclicDefinitionError
from flatocp.logging import logger, timed
from flatocp.ocp.model import FlatOcp, substitute_all


def dependency_graph(ocp: FlatOcp) -> list[list[int]]:
    """For every dependent variable, the indices of the dependents its definition uses."""
    index = {v.sym.name(): i for i, v in enumerate(ocp.y)}
    graph = []
    for d in ocp.dep:
        deps = set()
        for s in ca.symvar(d):
            j = index.get(s.name())
            if j is not None and ca.is_equal(s, ocp.y[j].sym):
                deps.add(j)
        graph.append(sorted(deps))
    return graph


def definition_order(ocp: FlatOcp) -> list[int]:
    """
    Order the dependent variables so that every definition comes after the
    definitions it uses.

    Raises:
        CyclicDefinitionError: if the definitions refer to each other in a cycle.
    """
    graph = dependency_graph(ocp)
    n = len(graph)
    state = [0] * n  # 0: new, 1: on stack, 2: done
    order: list[int] = []

    for root in range(n):
        if state[root]:
            continue
        stack = [(root, iter(graph[root]))]
        state[root] = 1
        while stack:
            i, it = stack[-1]
            for j in it:
                if state[j] == 1:
                    path = [k for k, _ in stack]
                    cycle = path[path.index(j) :] + [j]
                    raise CyclicDefinitionError([ocp.y[k].name for k in cycle])
                if state[j] == 0:
                    state[j] = 1
                    stack.append((j, iter(graph[j])))
                    break
            else:
                stack.pop()
                state[i] = 2
                order.append(i)
    return order


def eliminate_interdependencies(ocp: FlatOcp) -> None:
    """Express every dependent definition in terms of non-dependent variables."""
    with timed("Eliminating interdependencies"):
        graph = dependency_graph(ocp)
        for i in definition_order(ocp):
            if graph[i]:
                ocp.dep[i] = substitute_all(
                    [ocp.dep[i]],
                    [ocp.y[j].sym for j in graph[i]],
                    [ocp.dep[j] for j in graph[i]],
                )[0]
        ocp.check_dimensions()


def eliminate_dependent(ocp: FlatOcp) -> None:
    """
    Substitute the dependent variables into all other equation sets.

    The definitions are resolved first, so calling this without
    eliminate_interdependencies is safe. A second call has no effect.
    """
    if not ocp.y:
        return
    with timed("Eliminating dependent variables"):
        eliminate_interdependencies(ocp)
        old = [v.sym for v in ocp.y]
        ocp.substitute(old, list(ocp.dep), skip=("dep",))
        logger.debug("Eliminated %d dependent variables", len(old))
        ocp.check_dimensions()
