"""
exceptions raised while compiling and evaluating BUGS models
"""

from typing import Optional


class BugsModelError(Exception):
    """base class for all bugsmodel errors"""


class CompilationError(BugsModelError):
    """
    Base class for errors that abort the compilation of a model.
    The offending identity and/or statement are added to the message.
    """

    def __init__(
        self, message: str, identity: Optional[object] = None, statement: Optional[str] = None
    ) -> None:
        self.message = message
        self.identity = identity
        self.statement = statement
        super().__init__(self.__str__())

    def __str__(self) -> str:
        s = self.message
        if self.identity is not None:
            s += f" (variable '{self.identity}')"
        if self.statement is not None:
            s += f" in statement `{self.statement}`"
        return s


class ParseError(CompilationError):
    """malformed model definition"""


class ShapeError(CompilationError):
    """index or dimension mismatch"""


class UnresolvedIdentifierError(CompilationError):
    """a variable has no defining statement and no data binding"""


class CyclicDependencyError(CompilationError):
    """the dependency graph contains a cycle"""

    def __init__(self, cycle: list, statement: Optional[str] = None) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(str(x) for x in cycle)
        super().__init__(f"dependency graph contains a cycle ({cycle_str})", statement=statement)


class RegistrationError(CompilationError, ValueError):
    """invalid user-defined function or distribution"""


class UnsupportedModelError(CompilationError):
    """the model is valid BUGS, but can not be compiled into a log-density"""


class DomainEvaluationError(BugsModelError, ArithmeticError):
    """
    Numeric domain error during evaluation of the log-density
    (e.g. log of a negative number). This is never fatal: the
    evaluator maps it to a log-density of -inf.
    """


class DimensionMismatchError(BugsModelError, ValueError):
    """the parameter vector has the wrong length"""

    def __init__(self, expected: int, found: int) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"parameter vector has length {found}, but the model has dimension {expected}"
        )
