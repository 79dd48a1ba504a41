"""
Loop unrolling and index resolution.

The model is turned into a flat list of statements about scalar
identities. Loop bounds and indices must be known at compile time:
they can depend on data and on logical variables that only depend on
data. Such "transformed data" is computed with constant propagation.
"""

from dataclasses import dataclass, field
from typing import Mapping, Any, Optional, Iterator, Callable

import numpy as np

from . import ir
from .ir import VarName
from .shapes import ShapeTable, flatten_bindings, as_number
from .evaluator import eval_expr
from .registry import Registry
from .exceptions import ShapeError, UnresolvedIdentifierError, ParseError
from .deparse import deparse_stmt, deparse_expr
from . import analyze
from . import utilities as util


class NotConstant(Exception):
    """raised when an expression depends on a non-constant identity"""

    def __init__(self, var_name: VarName) -> None:
        self.var_name = var_name
        super().__init__(str(var_name))


def describe(stmt: ir.Stmt, env: Mapping[str, int]) -> str:
    """the first line of the statement, with the values of the loop variables"""
    if isinstance(stmt, ir.ForLoop):
        code_str = f"for ( {stmt.var} in ... )"
    else:
        code_str = deparse_stmt(stmt).split("\n")[0]
    if len(env) > 0:
        env_str = ", ".join(f"{k} = {v}" for k, v in env.items())
        code_str += f" with {env_str}"
    return code_str


@dataclass
class Context:
    """
    everything needed to resolve expressions: loop variables, constants,
    array shapes and the functions for constant folding
    """

    constants: Mapping[VarName, Any]
    functions: Mapping[str, Callable]
    shape_of: Callable[[str], tuple[int, ...]]
    defined: set[str] = field(default_factory=set)

    def lookup(self, var_name: VarName):
        try:
            return self.constants[var_name]
        except KeyError:
            raise NotConstant(var_name)


def eval_index(expr: ir.Expr, env: Mapping[str, int], ctx: Context, stmt: ir.Stmt) -> int:
    """evaluate an index or loop bound to an integer"""
    resolved = resolve_expr(expr, env, ctx, stmt)
    try:
        val = eval_expr(resolved, ctx.lookup, ctx.functions, np)
    except KeyError as e:
        raise UnresolvedIdentifierError(f"unknown function {e}", statement=describe(stmt, env))
    val = float(val)
    if not val.is_integer():
        raise ShapeError(
            f"index `{deparse_expr(expr)}` evaluates to non-integer value {val}",
            statement=describe(stmt, env),
        )
    return int(val)


def _index_positions(
    name: str, indices: tuple[ir.Expr, ...], env: Mapping[str, int], ctx: Context, stmt: ir.Stmt
) -> list[list[int]]:
    """the selected positions per dimension of an indexed variable"""
    positions = []
    for d, index in enumerate(indices):
        match index:
            case ir.Colon():
                shape = ctx.shape_of(name)
                if len(shape) != len(indices):
                    raise ShapeError(
                        f"'{name}' has {len(shape)} dimension(s), but is used with {len(indices)} index(es)",
                        statement=describe(stmt, env),
                    )
                positions.append(list(range(1, shape[d] + 1)))
            case ir.Range(start, stop):
                lo = eval_index(start, env, ctx, stmt)
                hi = eval_index(stop, env, ctx, stmt)
                positions.append(list(range(lo, hi + 1)))
            case _:
                positions.append([eval_index(index, env, ctx, stmt)])
    return positions


def resolve_expr(expr: ir.Expr, env: Mapping[str, int], ctx: Context, stmt: ir.Stmt) -> ir.Expr:
    """
    Replace loop variables by their values and indexed variables
    by references to identities.
    """
    match expr:
        case ir.Literal():
            return expr
        case ir.Var(name):
            if name in env:
                return ir.Literal(env[name])
            return ir.Ref(VarName(name))
        case ir.Index(name, indices):
            if name in env:
                raise ParseError(f"loop variable '{name}' can not be indexed", statement=describe(stmt, env))
            positions = _index_positions(name, indices, env, ctx, stmt)
            is_slice = [isinstance(i, (ir.Colon, ir.Range)) for i in indices]
            if not any(is_slice):
                return ir.Ref(VarName(name, tuple(p[0] for p in positions)))
            idxs = util.index_product(tuple(len(p) for p in positions))
            var_names = tuple(
                VarName(name, tuple(p[j - 1] for p, j in zip(positions, idx))) for idx in idxs
            )
            shape = tuple(len(p) for p, s in zip(positions, is_slice) if s)
            return ir.RefArray(var_names, shape)
        case ir.Negate(val):
            return ir.Negate(resolve_expr(val, env, ctx, stmt))
        case ir.AddOp(left, right):
            return ir.AddOp(resolve_expr(left, env, ctx, stmt), resolve_expr(right, env, ctx, stmt))
        case ir.SubOp(left, right):
            return ir.SubOp(resolve_expr(left, env, ctx, stmt), resolve_expr(right, env, ctx, stmt))
        case ir.MulOp(left, right):
            return ir.MulOp(resolve_expr(left, env, ctx, stmt), resolve_expr(right, env, ctx, stmt))
        case ir.DivOp(num, den):
            return ir.DivOp(resolve_expr(num, env, ctx, stmt), resolve_expr(den, env, ctx, stmt))
        case ir.PowOp(base, exponent):
            return ir.PowOp(
                resolve_expr(base, env, ctx, stmt), resolve_expr(exponent, env, ctx, stmt)
            )
        case ir.Call(func_name, arguments):
            return ir.Call(func_name, [resolve_expr(arg, env, ctx, stmt) for arg in arguments])
        case _:
            raise ParseError(f"unable to resolve expression {expr!r}", statement=describe(stmt, env))


def resolve_lhs(lhs: ir.Expr, env: Mapping[str, int], ctx: Context, stmt: ir.Stmt) -> VarName:
    match lhs:
        case ir.Var(name):
            if name in env:
                raise ParseError(f"can not assign to loop variable '{name}'", statement=describe(stmt, env))
            return VarName(name)
        case ir.Index(name, indices):
            return VarName(name, tuple(eval_index(i, env, ctx, stmt) for i in indices))
        case _:
            raise ParseError("left-hand side must be a variable", statement=describe(stmt, env))


def not_constant_error(e: NotConstant, ctx: Context, what: str, stmt: ir.Stmt, env) -> Exception:
    """the error for an index or bound that depends on non-constant variables"""
    if e.var_name.name in ctx.defined:
        return ShapeError(
            f"{what} depends on '{e.var_name}', which is not data",
            statement=describe(stmt, env),
        )
    return UnresolvedIdentifierError(
        f"{what} depends on '{e.var_name}', which is not defined and not in the data",
        identity=e.var_name,
        statement=describe(stmt, env),
    )


def iter_statements(
    stmts: list[ir.Stmt], env: dict[str, int], ctx: Context, strict: bool = True
) -> Iterator[tuple[ir.Stmt, dict[str, int]]]:
    """
    Walk through the statements, expanding loops. In non-strict mode,
    loops with unknown bounds are skipped.
    """
    for stmt in stmts:
        match stmt:
            case ir.ForLoop(var, ir.Range(start, stop), body):
                try:
                    lo = eval_index(start, env, ctx, stmt)
                    hi = eval_index(stop, env, ctx, stmt)
                except NotConstant as e:
                    if strict:
                        raise not_constant_error(e, ctx, "loop bound", stmt, env)
                    continue
                for i in range(lo, hi + 1):
                    yield from iter_statements(body, {**env, var: i}, ctx, strict)
            case _:
                yield stmt, env


def propagate_constants(
    model: ir.Model,
    constants: Mapping[VarName, Any],
    data_shapes: Mapping[str, tuple[int, ...]],
    registry: Registry,
) -> dict[VarName, Any]:
    """
    Evaluate logical statements that only depend on data, until
    no new constants are found.
    """
    constants = dict(constants)

    def shape_of(name: str) -> tuple[int, ...]:
        if name not in data_shapes:
            raise NotConstant(VarName(name))
        return data_shapes[name]

    ctx = Context(constants, registry.numpy_functions, shape_of)
    changed = True
    while changed:
        changed = False
        for stmt, env in iter_statements(model.statements, {}, ctx, strict=False):
            if not isinstance(stmt, ir.Assign):
                continue
            try:
                lhs = resolve_lhs(stmt.lhs, env, ctx, stmt)
                if lhs in constants:
                    continue
                rhs = resolve_expr(stmt.rhs, env, ctx, stmt)
                with np.errstate(all="ignore"):
                    val = eval_expr(rhs, ctx.lookup, ctx.functions, np)
            except (NotConstant, KeyError):
                continue
            if np.ndim(val) != 0:
                continue
            constants[lhs] = as_number(val)
            changed = True
    return constants


@dataclass
class ResolvedStatement:
    """
    A statement about a single identity, with resolved expressions.
    For stochastic statements, dist is set, for logical statements expr is set.
    """

    lhs: VarName
    stmt: ir.Stmt
    env: dict[str, int]
    expr: Optional[ir.Expr] = None
    dist: Optional[ir.Dist] = None

    @property
    def stochastic(self) -> bool:
        return self.dist is not None

    @property
    def source(self) -> str:
        return describe(self.stmt, self.env)

    def refs(self) -> list[VarName]:
        if self.dist is not None:
            return analyze.find_refs_dist(self.dist)
        return analyze.find_refs(self.expr)

    def calls(self) -> list[str]:
        if self.dist is not None:
            bounds = [b for b in [self.dist.lower, self.dist.upper] if b is not None]
            return util.flatten([analyze.find_calls(e) for e in [*self.dist.params, *bounds]])
        return analyze.find_calls(self.expr)


@dataclass
class UnrolledModel:
    statements: list[ResolvedStatement]
    shapes: ShapeTable
    data: dict[VarName, Any]
    data_shapes: dict[str, tuple[int, ...]]
    constants: dict[VarName, Any]


def unroll(model: ir.Model, data: Optional[Mapping[str, Any]], registry: Registry) -> UnrolledModel:
    """
    Expand all loops, resolve all indices, and infer the shapes of arrays.

    Raises
    ------
    ShapeError
        if indices are out of bounds, have the wrong rank, or can't be
        resolved at compile time.
    UnresolvedIdentifierError
        if a loop bound or index depends on an unknown variable.
    """
    data_values, data_shapes = flatten_bindings(data)
    constants = propagate_constants(model, data_values, data_shapes, registry)
    table = ShapeTable(data_shapes)

    def shape_of(name: str) -> tuple[int, ...]:
        if name not in table:
            raise UnresolvedIdentifierError(f"shape of '{name}' is unknown")
        return table.shape(name)

    ctx = Context(
        constants,
        registry.numpy_functions,
        shape_of,
        defined=set(analyze.find_defined_names(model.statements)),
    )

    # first pass: left-hand sides determine the shapes of arrays
    pending = []
    for stmt, env in iter_statements(model.statements, {}, ctx, strict=True):
        try:
            lhs = resolve_lhs(stmt.lhs, env, ctx, stmt)
        except NotConstant as e:
            raise not_constant_error(e, ctx, "index", stmt, env)
        table.observe(lhs, describe(stmt, env))
        pending.append((stmt, env, lhs))

    # second pass: resolve right-hand sides
    resolved = []
    for stmt, env, lhs in pending:
        try:
            match stmt:
                case ir.Sample(_, dist):
                    bounds = [
                        None if b is None else resolve_expr(b, env, ctx, stmt)
                        for b in [dist.lower, dist.upper]
                    ]
                    rdist = ir.Dist(
                        dist.name,
                        [resolve_expr(p, env, ctx, stmt) for p in dist.params],
                        *bounds,
                    )
                    rs = ResolvedStatement(lhs, stmt, env, dist=rdist)
                case ir.Assign(_, rhs):
                    rs = ResolvedStatement(lhs, stmt, env, expr=resolve_expr(rhs, env, ctx, stmt))
                case _:
                    raise ParseError(f"invalid statement {stmt!r}")
        except NotConstant as e:
            raise not_constant_error(e, ctx, "index", stmt, env)
        for ref in rs.refs():
            table.check_bounds(ref, rs.source)
        resolved.append(rs)

    return UnrolledModel(resolved, table, data_values, data_shapes, constants)
