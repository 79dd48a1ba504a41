"""
Evaluation of compiled models: the log-density of a flat vector of
parameter values, and the maps between parameter vectors and values
of variables.

The graph is never modified. Every call works with its own buffer of
node values, so evaluations do not share any state.
"""

from dataclasses import dataclass, field
from types import ModuleType
from typing import Callable, Mapping, Any, Optional, TYPE_CHECKING

import numpy as np
import jax.numpy as jnp

from . import ir
from .ir import VarName
from .distribution import BoundDist
from .transform import to_constrained, to_unconstrained
from .exceptions import DimensionMismatchError, DomainEvaluationError
from .logger import logger

if TYPE_CHECKING:
    from .graph import Graph, Node


def eval_expr(
    expr: ir.Expr,
    lookup: Callable[[VarName], Any],
    functions: Mapping[str, Callable],
    xp: ModuleType = jnp,
):
    """
    Evaluate a resolved expression.

    Parameters
    ----------
    expr : ir.Expr
        The expression. Must not contain unresolved variables.
    lookup : Callable[[VarName], Any]
        Returns the value of a variable identity.
    functions : Mapping[str, Callable]
        Table of functions that can be called.
    xp : ModuleType
        Array module, numpy or jax.numpy. The default is jax.numpy.
    """
    match expr:
        case ir.Literal(val):
            return val
        case ir.Ref(var_name):
            return lookup(var_name)
        case ir.RefArray(var_names, shape):
            vals = [xp.asarray(lookup(vn), dtype=float) for vn in var_names]
            return xp.reshape(xp.stack(vals), shape)
        case ir.Negate(val):
            return -eval_expr(val, lookup, functions, xp)
        case ir.AddOp(left, right):
            return eval_expr(left, lookup, functions, xp) + eval_expr(right, lookup, functions, xp)
        case ir.SubOp(left, right):
            return eval_expr(left, lookup, functions, xp) - eval_expr(right, lookup, functions, xp)
        case ir.MulOp(left, right):
            return eval_expr(left, lookup, functions, xp) * eval_expr(right, lookup, functions, xp)
        case ir.DivOp(num, den):
            return xp.divide(
                eval_expr(num, lookup, functions, xp), eval_expr(den, lookup, functions, xp)
            )
        case ir.PowOp(base, exponent):
            b = eval_expr(base, lookup, functions, xp)
            e = eval_expr(exponent, lookup, functions, xp)
            return xp.power(xp.asarray(b, dtype=float), e)
        case ir.Call(func_name, arguments):
            args = [eval_expr(arg, lookup, functions, xp) for arg in arguments]
            return functions[func_name](*args)
        case _:
            raise Exception("unable to evaluate expression", expr)


def bind_dist(node: "Node", lookup: Callable[[VarName], Any], functions) -> BoundDist:
    """evaluate the parameters and truncation bounds of a stochastic node"""
    params = tuple(eval_expr(p, lookup, functions) for p in node.dist.params)
    lower = None if node.dist.lower is None else eval_expr(node.dist.lower, lookup, functions)
    upper = None if node.dist.upper is None else eval_expr(node.dist.upper, lookup, functions)
    return BoundDist(node.family, params, lower, upper)


def check_dimension(graph: "Graph", theta) -> jnp.ndarray:
    theta = jnp.asarray(theta, dtype=float)
    if theta.ndim != 1 or theta.shape[0] != graph.dimension:
        found = theta.shape[0] if theta.ndim == 1 else theta.size
        raise DimensionMismatchError(graph.dimension, found)
    return theta


@dataclass
class Evaluation:
    """the result of evaluating all nodes of a graph"""

    values: dict[VarName, Any]
    log_prior: Any = 0.0
    log_likelihood: Any = 0.0
    log_jacobian: Any = 0.0
    parameters: dict[VarName, Any] = field(default_factory=dict)

    @property
    def log_density(self):
        return self.log_prior + self.log_likelihood + self.log_jacobian


def evaluate(graph: "Graph", theta, transformed: bool = True, score: bool = True) -> Evaluation:
    """
    Evaluate all nodes in topological order.

    Parameters
    ----------
    graph : Graph
        The compiled dependency graph.
    theta : array-like
        Flat vector of parameter values, in the order of graph.parameters.
    transformed : bool
        If True, theta is in the unconstrained space and the log-Jacobian
        of the transform is accumulated. Otherwise theta contains
        the constrained values. The default is True.
    score : bool
        If False, only compute the values of the nodes, not the log-density.

    Raises
    ------
    DimensionMismatchError
        if theta has the wrong length
    DomainEvaluationError
        can be raised by user-defined functions
    """
    theta = check_dimension(graph, theta)
    segment = {node_id: k for k, node_id in enumerate(graph.parameters)}
    values: list[Any] = [None] * len(graph.nodes)

    def lookup(var_name: VarName):
        return values[graph.index[var_name]]

    ev = Evaluation(values={})
    for i in graph.order:
        node = graph.nodes[i]
        match node.kind:
            case "logical":
                values[i] = eval_expr(node.expr, lookup, graph.functions)
            case "observed":
                values[i] = node.value
                if node.dist is not None and score:
                    bd = bind_dist(node, lookup, graph.functions)
                    ev.log_likelihood = ev.log_likelihood + bd.log_pdf(node.value)
            case "parameter":
                bd = bind_dist(node, lookup, graph.functions)
                y = theta[segment[i]]
                if transformed:
                    x, log_jac = to_constrained(bd, y)
                    ev.log_jacobian = ev.log_jacobian + log_jac
                else:
                    x = y
                values[i] = x
                ev.parameters[node.var_name] = x
                if score:
                    ev.log_prior = ev.log_prior + bd.log_pdf(x)
    ev.values = {node.var_name: values[i] for i, node in enumerate(graph.nodes)}
    return ev


def log_density(graph: "Graph", theta, transformed: bool = True):
    """
    The log-density of the model (log-prior + log-likelihood, plus the
    log-Jacobian if transformed is True) at theta.
    Domain errors give -inf instead of an exception.
    """
    try:
        total = evaluate(graph, theta, transformed=transformed).log_density
    except (DomainEvaluationError, ArithmeticError) as e:
        logger.debug(f"domain error during evaluation: {e}")
        return jnp.asarray(-jnp.inf)
    total = jnp.asarray(total, dtype=float)
    return jnp.where(jnp.isnan(total), -jnp.inf, total)


def flatten(
    graph: "Graph", assignment: Mapping[VarName, Any], transformed: bool = True
) -> np.ndarray:
    """
    Build a parameter vector from values of (a subset of) the parameters.
    Parameters without a value get the value 0 in the unconstrained space.

    Parameters
    ----------
    graph : Graph
        The compiled dependency graph.
    assignment : Mapping[VarName, Any]
        Constrained values of parameters.
    transformed : bool
        If True, apply the transform to the unconstrained space.

    Returns
    -------
    np.ndarray
        the parameter vector
    """
    values: list[Any] = [None] * len(graph.nodes)
    theta = np.zeros(graph.dimension)

    def lookup(var_name: VarName):
        return values[graph.index[var_name]]

    k = 0
    missing = []
    for i in graph.order:
        node = graph.nodes[i]
        match node.kind:
            case "logical":
                # a domain error only affects the parameters that depend on this node
                try:
                    values[i] = eval_expr(node.expr, lookup, graph.functions)
                except (DomainEvaluationError, ArithmeticError) as e:
                    logger.debug(f"domain error while evaluating '{node.var_name}': {e}")
                    values[i] = np.nan
            case "observed":
                values[i] = node.value
            case "parameter":
                bd = bind_dist(node, lookup, graph.functions)
                if node.var_name in assignment:
                    x = assignment[node.var_name]
                    y = to_unconstrained(bd, x) if transformed else x
                else:
                    missing.append(node.var_name)
                    y = 0.0
                    x = to_constrained(bd, y)[0]
                    if not transformed:
                        y = x
                values[i] = x
                theta[k] = float(y)
                k += 1
    if missing:
        missing_str = ", ".join(str(vn) for vn in missing)
        logger.info(f"no initial values for {missing_str}: using 0 on the unconstrained scale")
    return theta


def unflatten(
    graph: "Graph", theta, transformed: bool = True, include_logical: bool = False
) -> dict[VarName, float]:
    """
    Map a parameter vector to the constrained values of the parameters
    (and optionally of the logical nodes). No density is computed.
    """
    ev = evaluate(graph, theta, transformed=transformed, score=False)
    result = {vn: float(x) for vn, x in ev.parameters.items()}
    if include_logical:
        for node in graph.nodes:
            if node.kind == "logical":
                result[node.var_name] = float(ev.values[node.var_name])
    return result
