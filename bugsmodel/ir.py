"""
intermediate representation of BUGS models

A model is a list of statements. Stochastic statements `x ~ dnorm(mu, tau)`
are represented by `Sample`, logical statements `y <- f(x)` by `Assign`,
and `for (i in 1:N) { ... }` by `ForLoop`.

Example
-------
```
i = Var("i")
model = Model([
    ForLoop("i", Range(1, Var("N")), [
        Sample(Var("y").idx(i), Dist("dnorm", [Var("mu"), Var("tau")])),
    ]),
    Sample(Var("mu"), Dist("dnorm", [0.0, 1.0e-6])),
    Sample(Var("tau"), Dist("dgamma", [0.001, 0.001])),
])
```
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence
from abc import ABC
import numbers

from .exceptions import ParseError


@dataclass(frozen=True)
class VarName:
    """
    Identity of a scalar variable: a name and (1-based) indices.
    Two occurrences with equal identity refer to the same graph node.
    """

    name: str
    indices: tuple[int, ...] = ()

    def __str__(self) -> str:
        if len(self.indices) == 0:
            return self.name
        idx = ", ".join(str(i) for i in self.indices)
        return f"{self.name}[{idx}]"


def as_expr(x) -> "Expr":
    """
    Coerce python numbers and strings into expressions.
    Strings are interpreted as variable names.
    """
    match x:
        case Expr():
            return x
        case bool():
            raise ParseError(f"boolean {x} is not a valid expression")
        case numbers.Real():
            return Literal(int(x) if isinstance(x, numbers.Integral) else float(x))
        case str():
            return Var(x)
        case _:
            raise ParseError(f"object {x!r} of type {type(x).__name__} is not a valid expression")


@dataclass
class Expr(ABC):
    """abstract base class for BUGS expressions"""

    def __add__(self, other):
        return AddOp(self, as_expr(other))

    def __radd__(self, other):
        return AddOp(as_expr(other), self)

    def __sub__(self, other):
        return SubOp(self, as_expr(other))

    def __rsub__(self, other):
        return SubOp(as_expr(other), self)

    def __mul__(self, other):
        return MulOp(self, as_expr(other))

    def __rmul__(self, other):
        return MulOp(as_expr(other), self)

    def __truediv__(self, other):
        return DivOp(self, as_expr(other))

    def __rtruediv__(self, other):
        return DivOp(as_expr(other), self)

    def __pow__(self, other):
        return PowOp(self, as_expr(other))

    def __neg__(self):
        return Negate(self)


"""
expressions
"""


@dataclass
class Literal(Expr):
    """
    numeric literal

    Example: `1.0E-6`
    """

    val: int | float


@dataclass
class Var(Expr):
    """
    a scalar variable, a loop variable, or an array name

    Example: `tau.c`
    """

    name: str

    def idx(self, index, *indices) -> "Index":
        """
        Implementing __getitem__ is too confusing.
        """
        return Index(self.name, [index, *indices])


@dataclass
class Range(Expr):
    """
    an inclusive range defined with the : operator

    Example: `1:N`
    """

    start: Expr
    stop: Expr

    def __post_init__(self) -> None:
        self.start = as_expr(self.start)
        self.stop = as_expr(self.stop)


@dataclass
class Colon(Expr):
    """
    an empty index slot, selecting the whole dimension

    Example: `x[]`, `Y[, j]`
    """

    pass


@dataclass
class Index(Expr):
    """
    indexing of an array variable

    Example: `mu[i, j]`, `alpha[group[i]]`
    """

    name: str
    indices: Sequence[Expr]

    def __post_init__(self) -> None:
        if len(self.indices) == 0:
            raise ParseError(f"indexed variable '{self.name}' needs at least one index")
        self.indices = tuple(as_expr(i) for i in self.indices)


@dataclass
class Negate(Expr):
    """
    Unary minus operator

    Example: `-x`
    """

    val: Expr


@dataclass
class AddOp(Expr):
    left: Expr
    right: Expr


@dataclass
class SubOp(Expr):
    left: Expr
    right: Expr


@dataclass
class MulOp(Expr):
    left: Expr
    right: Expr


@dataclass
class DivOp(Expr):
    num: Expr
    den: Expr


@dataclass
class PowOp(Expr):
    """
    Raise an expression to a power

    Example: `x^y`, `pow(x, y)`
    """

    base: Expr
    exponent: Expr


@dataclass
class Call(Expr):
    """
    object representing a function call

    Example `logit(p[i])`, `inprod(b[], x[i, ])`
    """

    func_name: str
    arguments: Expr | Sequence[Expr]

    def __post_init__(self) -> None:
        if not isinstance(self.arguments, (list, tuple)):
            self.arguments = [self.arguments]
        self.arguments = tuple(as_expr(a) for a in self.arguments)


"""
resolved expressions: these are produced by loop unrolling and
refer to variable identities instead of names and index expressions
"""


@dataclass
class Ref(Expr):
    """reference to a scalar variable identity"""

    var_name: VarName


@dataclass
class RefArray(Expr):
    """reference to a (rectangular) block of identities, e.g. `x[]`"""

    var_names: tuple[VarName, ...]
    shape: tuple[int, ...]


"""
statements
"""


@dataclass  # type: ignore[misc]
class Stmt(ABC):
    comment: Optional[str | list[str]] = field(kw_only=True, default=None)

    def __post_init__(self):
        match self.comment:
            case None:
                self.comment = []
            case str():
                self.comment = [self.comment]
            case _:
                pass

    def __str__(self) -> str:
        from .deparse import deparse_stmt

        return deparse_stmt(self)


@dataclass
class Dist:
    """
    a distribution with parameters and optional truncation bounds

    Example: `dnorm(0, 1) T(0, )`
    """

    name: str
    params: Sequence[Expr]
    lower: Optional[Expr] = None
    upper: Optional[Expr] = None

    def __post_init__(self) -> None:
        self.params = tuple(as_expr(p) for p in self.params)
        self.lower = None if self.lower is None else as_expr(self.lower)
        self.upper = None if self.upper is None else as_expr(self.upper)

    @property
    def truncated(self) -> bool:
        return self.lower is not None or self.upper is not None


@dataclass
class Sample(Stmt):
    """
    a stochastic statement

    Example: `Y[i, j] ~ dnorm(mu[i, j], tau.c)`
    """

    lhs: Expr
    dist: Dist

    def __post_init__(self):
        super().__post_init__()
        self.lhs = as_expr(self.lhs)


@dataclass
class Assign(Stmt):
    """
    a logical (deterministic) statement

    Example: `sigma <- 1 / sqrt(tau.c)`
    """

    lhs: Expr
    rhs: Expr

    def __post_init__(self):
        super().__post_init__()
        self.lhs = as_expr(self.lhs)
        self.rhs = as_expr(self.rhs)


@dataclass
class ForLoop(Stmt):
    """
    a for loop.

    Example: `for ( i in 1:N ) { alpha[i] ~ dnorm(alpha.c, alpha.tau) }`
    """

    var: str
    sequence: Range
    body: Sequence[Stmt]

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.body, Stmt):
            self.body = [self.body]
        self.body = list(self.body)


@dataclass
class Model:
    """
    a complete BUGS model. The statements are validated on construction.
    """

    statements: Sequence[Stmt]
    name: str = "model"

    def __post_init__(self) -> None:
        self.statements = list(self.statements)
        check_model(self)

    def __str__(self) -> str:
        from .deparse import deparse_model

        return deparse_model(self)


# validation of the IR


def _stmt_str(stmt: Stmt) -> str:
    # deparsing malformed statements could fail itself
    try:
        return str(stmt).strip().split("\n")[0]
    except Exception:
        return repr(stmt)


def check_expr(expr: Expr, stmt: Stmt, index_position: bool = False) -> None:
    match expr:
        case Literal(val):
            if not isinstance(val, numbers.Real) or isinstance(val, bool):
                raise ParseError(f"invalid literal {val!r}", statement=_stmt_str(stmt))
        case Var(name):
            if not isinstance(name, str) or len(name) == 0:
                raise ParseError(f"invalid variable name {name!r}", statement=_stmt_str(stmt))
        case Colon():
            if not index_position:
                raise ParseError("empty index outside brackets", statement=_stmt_str(stmt))
        case Range(start, stop):
            if not index_position:
                raise ParseError("range expression outside brackets", statement=_stmt_str(stmt))
            check_expr(start, stmt)
            check_expr(stop, stmt)
        case Index(name, indices):
            for index in indices:
                check_expr(index, stmt, index_position=True)
        case Negate(val):
            check_expr(val, stmt)
        case AddOp(left, right) | SubOp(left, right) | MulOp(left, right):
            check_expr(left, stmt)
            check_expr(right, stmt)
        case DivOp(num, den):
            check_expr(num, stmt)
            check_expr(den, stmt)
        case PowOp(base, exponent):
            check_expr(base, stmt)
            check_expr(exponent, stmt)
        case Call(func_name, arguments):
            if not isinstance(func_name, str) or len(func_name) == 0:
                raise ParseError(f"invalid function name {func_name!r}", statement=_stmt_str(stmt))
            for arg in arguments:
                check_expr(arg, stmt)
        case Ref() | RefArray():
            raise ParseError("resolved references are not allowed in a model", statement=_stmt_str(stmt))
        case _:
            raise ParseError(f"invalid expression {expr!r}", statement=_stmt_str(stmt))


def check_lhs(lhs: Expr, stmt: Stmt) -> None:
    match lhs:
        case Var():
            pass
        case Index(name, indices):
            for index in indices:
                if isinstance(index, (Colon, Range)):
                    raise ParseError(
                        "left-hand side must be a scalar variable", statement=_stmt_str(stmt)
                    )
                check_expr(index, stmt)
        case _:
            raise ParseError("left-hand side must be a variable", statement=_stmt_str(stmt))


def check_stmt(stmt: Stmt, loop_vars: tuple[str, ...]) -> None:
    match stmt:
        case Sample(lhs, dist):
            check_lhs(lhs, stmt)
            if not isinstance(dist, Dist):
                raise ParseError(f"invalid distribution {dist!r}", statement=_stmt_str(stmt))
            for par in dist.params:
                check_expr(par, stmt)
            for bound in [dist.lower, dist.upper]:
                if bound is not None:
                    check_expr(bound, stmt)
        case Assign(lhs, rhs):
            check_lhs(lhs, stmt)
            check_expr(rhs, stmt)
        case ForLoop(var, sequence, body):
            if var in loop_vars:
                raise ParseError(f"loop variable '{var}' shadows an enclosing loop variable")
            if not isinstance(sequence, Range):
                raise ParseError(f"loop over '{var}' requires a range")
            check_expr(sequence, stmt, index_position=True)
            for s in body:
                check_stmt(s, loop_vars + (var,))
        case _:
            raise ParseError(f"invalid statement {stmt!r}")


def check_model(model: Model) -> None:
    """
    Check that the model is well-formed. Raises ParseError otherwise.
    """
    for stmt in model.statements:
        check_stmt(stmt, ())


# convenience functions


def lit(x: int | float) -> Literal:
    return Literal(x)


def loop(var: str, start, stop, body: Sequence[Stmt]) -> ForLoop:
    return ForLoop(var, Range(start, stop), body)
