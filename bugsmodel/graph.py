"""
The dependency graph of a model.

Nodes are stored in a table indexed by integer ids (in order of first
definition), and the edges are lists of parent ids. The networkx graph
is used to check for cycles and to find a topological order.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Mapping, Any, Literal, Callable

import networkx as nx

from . import ir
from .ir import VarName
from .distribution import Family
from .registry import Registry, default_registry
from .unroll import unroll, ResolvedStatement
from .exceptions import (
    ParseError,
    UnresolvedIdentifierError,
    CyclicDependencyError,
    UnsupportedModelError,
)
from . import name_checks
from . import utilities as util
from .logger import logger

NodeKind = Literal["observed", "parameter", "logical"]


@dataclass(frozen=True, eq=False)
class Node:
    """
    One scalar variable. Observed nodes have a fixed value and
    contribute a log-likelihood term if they have a distribution.
    Parameter nodes take their value from the parameter vector.
    Logical nodes are computed from their parents.

    The transform of a parameter node is only a label for the kind of
    its support (None for the real line). The transform that is applied
    during evaluation is chosen from the support of the bound
    distribution, which can depend on other parameters.
    """

    var_name: VarName
    kind: NodeKind
    parents: tuple[int, ...] = ()
    expr: Optional[ir.Expr] = None
    dist: Optional[ir.Dist] = None
    family: Optional[Family] = None
    value: Optional[int | float] = None
    transform: Optional[str] = None
    statement: Optional[str] = None

    @property
    def stochastic(self) -> bool:
        return self.dist is not None


@dataclass(frozen=True, eq=False)
class Graph:
    nodes: tuple[Node, ...]
    index: Mapping[VarName, int]
    order: tuple[int, ...]
    parameters: tuple[int, ...]
    dag: nx.DiGraph
    functions: Mapping[str, Callable]
    warnings: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, var_name: VarName) -> bool:
        return var_name in self.index

    @property
    def dimension(self) -> int:
        return len(self.parameters)

    def node(self, var_name: VarName) -> Node:
        return self.nodes[self.index[var_name]]

    def parents(self, var_name: VarName) -> list[VarName]:
        return [self.nodes[j].var_name for j in self.node(var_name).parents]

    def children(self, var_name: VarName) -> list[VarName]:
        i = self.index[var_name]
        return [self.nodes[j].var_name for j in sorted(self.dag.successors(i))]


def _stochastic_parents(graph: Graph, i: int) -> set[int]:
    """the closest stochastic ancestors of node i, looking through logical nodes"""
    result = set()
    for j in graph.dag.predecessors(i):
        if graph.nodes[j].kind == "logical":
            result |= _stochastic_parents(graph, j)
        elif graph.nodes[j].stochastic:
            result.add(j)
    return result


def _stochastic_children(graph: Graph, i: int) -> set[int]:
    """the closest stochastic descendants of node i, looking through logical nodes"""
    result = set()
    for j in graph.dag.successors(i):
        if graph.nodes[j].kind == "logical":
            result |= _stochastic_children(graph, j)
        elif graph.nodes[j].stochastic:
            result.add(j)
    return result


def markov_blanket(graph: Graph, var_name: VarName) -> list[VarName]:
    """
    The Markov blanket of a stochastic node: its stochastic parents,
    its stochastic children, and the other stochastic parents of these children.
    Logical nodes in between are skipped.
    """
    i = graph.index[var_name]
    children = _stochastic_children(graph, i)
    blanket = _stochastic_parents(graph, i) | children
    for c in children:
        blanket |= _stochastic_parents(graph, c)
    blanket.discard(i)
    return [graph.nodes[j].var_name for j in sorted(blanket)]


def get_parameter_names(graph: Graph) -> list[VarName]:
    """the identities of the parameters, in the order of the parameter vector"""
    return [graph.nodes[i].var_name for i in graph.parameters]


def check_family(rs: ResolvedStatement, family: Family, observed: bool) -> None:
    if len(rs.dist.params) != family.n_params:
        raise ParseError(
            f"distribution '{family.name}' expects {family.n_params} parameter(s) "
            f"({', '.join(family.param_names)}), got {len(rs.dist.params)}",
            identity=rs.lhs,
            statement=rs.source,
        )
    if rs.dist.truncated and not family.truncatable:
        raise UnsupportedModelError(
            f"distribution '{family.name}' can not be truncated", identity=rs.lhs, statement=rs.source
        )
    if family.discrete and not observed:
        raise UnsupportedModelError(
            f"unobserved discrete variables can not be mapped to an unconstrained space",
            identity=rs.lhs,
            statement=rs.source,
        )


def build(model: ir.Model, data: Optional[Mapping[str, Any]] = None, registry: Optional[Registry] = None) -> Graph:
    """
    Build the dependency graph of a model.

    Parameters
    ----------
    model : ir.Model
        The model definition.
    data : Optional[Mapping[str, Any]]
        Data bindings: scalars or rectangular arrays. Missing entries
        (None or NaN) of stochastic variables are parameters.
    registry : Optional[Registry]
        Functions and distributions. The default is a fresh default registry.

    Raises
    ------
    ShapeError
        when an index is out of bounds, or a shape can't be determined
    UnresolvedIdentifierError
        when a variable is not defined and not in the data
    CyclicDependencyError
        when the model contains a cycle

    Returns
    -------
    Graph
        the compiled dependency graph
    """
    registry = default_registry() if registry is None else registry
    data = {} if data is None else data
    name_checks.check_names(model, data, registry)

    unrolled = unroll(model, data, registry)
    warnings: list[str] = []

    # the first definition of an identity wins
    definitions: dict[VarName, ResolvedStatement] = {}
    for rs in unrolled.statements:
        if rs.lhs in definitions:
            message = (
                f"'{rs.lhs}' is defined more than once: "
                f"`{rs.source}` is ignored in favor of `{definitions[rs.lhs].source}`"
            )
            logger.warning(message)
            warnings.append(message)
            continue
        definitions[rs.lhs] = rs

    graph_functions = registry.functions
    nodes: list[dict] = []
    index: dict[VarName, int] = {}
    for var_name, rs in definitions.items():
        observed = var_name in unrolled.data
        node_kwargs: dict[str, Any] = {"var_name": var_name, "statement": rs.source}
        if rs.stochastic:
            try:
                family = registry.family(rs.dist.name)
            except UnresolvedIdentifierError as e:
                raise UnresolvedIdentifierError(e.message, identity=var_name, statement=rs.source)
            check_family(rs, family, observed)
            node_kwargs.update(dist=rs.dist, family=family)
            if observed:
                node_kwargs.update(kind="observed", value=unrolled.data[var_name])
            else:
                transform = None
                if family.support_kind != "real" or rs.dist.truncated:
                    transform = family.support_kind
                node_kwargs.update(kind="parameter", transform=transform)
        elif observed:
            message = f"'{var_name}' is in the data: ignoring logical statement `{rs.source}`"
            logger.warning(message)
            warnings.append(message)
            node_kwargs.update(kind="observed", value=unrolled.data[var_name])
        else:
            node_kwargs.update(kind="logical", expr=rs.expr)
        for func_name in rs.calls():
            if func_name not in graph_functions:
                raise UnresolvedIdentifierError(
                    f"unknown function '{func_name}'", identity=var_name, statement=rs.source
                )
        index[var_name] = len(nodes)
        nodes.append(node_kwargs)

    # add leaves for data that is used on right-hand sides
    for var_name, rs in definitions.items():
        node_kwargs = nodes[index[var_name]]
        if node_kwargs["kind"] == "observed" and not rs.stochastic:
            continue
        parents = []
        for ref in util.unique_stable(rs.refs()):
            if ref not in index:
                if ref in unrolled.data:
                    index[ref] = len(nodes)
                    nodes.append({"var_name": ref, "kind": "observed", "value": unrolled.data[ref]})
                elif ref.name in unrolled.data_shapes:
                    raise UnresolvedIdentifierError(
                        "missing value in the data", identity=ref, statement=rs.source
                    )
                else:
                    raise UnresolvedIdentifierError(
                        "variable is not defined and not in the data",
                        identity=ref,
                        statement=rs.source,
                    )
            parents.append(index[ref])
        node_kwargs["parents"] = tuple(parents)

    node_table = tuple(Node(**kwargs) for kwargs in nodes)

    dag = nx.DiGraph()
    dag.add_nodes_from(range(len(node_table)))
    for i, node in enumerate(node_table):
        for j in node.parents:
            dag.add_edge(j, i)
    # check that there are no loops in the dependency graph
    if not nx.is_directed_acyclic_graph(dag):
        cycle = nx.find_cycle(dag)
        cycle_nodes = [node_table[e[0]].var_name for e in cycle] + [node_table[cycle[0][0]].var_name]
        raise CyclicDependencyError(cycle_nodes, statement=node_table[cycle[0][1]].statement)
    # if there are no dependencies, keep the order of definition
    order = tuple(nx.lexicographical_topological_sort(dag))
    parameters = tuple(i for i in order if node_table[i].kind == "parameter")

    graph = Graph(
        nodes=node_table,
        index=MappingProxyType(index),
        order=order,
        parameters=parameters,
        dag=dag,
        functions=MappingProxyType(graph_functions),
        warnings=tuple(warnings),
    )
    n_obs = sum(1 for n in node_table if n.kind == "observed" and n.stochastic)
    n_log = sum(1 for n in node_table if n.kind == "logical")
    logger.info(
        f"compiled model '{model.name}': {len(node_table)} nodes, "
        f"{len(parameters)} parameters, {n_obs} observations, {n_log} logical nodes"
    )
    return graph
