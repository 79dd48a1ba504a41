"""
Registry of functions and distribution families for one compilation session.
"""

import inspect
import re
from typing import Callable, Optional

from .distribution import Family, BUILTIN_FAMILIES
from .functions import NUMPY_FUNCTIONS, JAX_FUNCTIONS
from .exceptions import RegistrationError, UnresolvedIdentifierError

_identifier = re.compile(r"^[A-Za-z][A-Za-z0-9._]*$")


def check_pure_function(name: str, fn: Callable, n_args: Optional[int]) -> None:
    """
    Check that fn can be used as a pure function with n_args positional arguments.
    Generators, coroutines and classes are not allowed.
    """
    if not callable(fn):
        raise RegistrationError(f"'{name}' is not callable")
    if inspect.isclass(fn):
        raise RegistrationError(f"'{name}' is a class, not a function")
    if inspect.isgeneratorfunction(fn) or inspect.iscoroutinefunction(fn):
        raise RegistrationError(f"'{name}' must be a plain function, not a generator or coroutine")
    if n_args is None:
        return
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        # builtins and ufuncs don't always have a signature
        return
    try:
        sig.bind(*range(n_args))
    except TypeError:
        raise RegistrationError(
            f"'{name}' can not be called with {n_args} positional argument(s) (signature {sig})"
        )


class Registry:
    """
    Functions and distributions that are available in a model.
    A registry is passed to `compile` and is not shared between sessions,
    unless the user explicitly does so.
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._families: dict[str, Family] = {}
        self._functions: dict[str, Callable] = {}
        self._numpy_functions: dict[str, Callable] = {}
        if include_builtins:
            self._families.update(BUILTIN_FAMILIES)
            self._functions.update(JAX_FUNCTIONS)
            self._numpy_functions.update(NUMPY_FUNCTIONS)

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or _identifier.match(name) is None:
            raise RegistrationError(f"invalid name {name!r}")
        if name in self._families or name in self._functions:
            raise RegistrationError(f"name '{name}' is already registered")

    def register_function(self, name: str, fn: Callable, n_args: Optional[int] = None) -> None:
        """
        Register a user-defined function. The function has to be written
        with jax.numpy operations, such that it can be differentiated.
        It is also used for constant folding of data.

        Parameters
        ----------
        name : str
            Name of the function in the model.
        fn : Callable
            A pure function of scalars and/or arrays.
        n_args : Optional[int]
            Number of arguments. Used to validate the signature of fn.

        Raises
        ------
        RegistrationError
            If the name is invalid or taken, or fn is not a plain function.
        """
        self._check_name(name)
        check_pure_function(name, fn, n_args)
        self._functions[name] = fn
        self._numpy_functions[name] = fn

    def register_distribution(self, family: Family) -> None:
        """
        Register a user-defined distribution family.
        """
        if not isinstance(family, Family):
            raise RegistrationError(f"expected a Family object, got {type(family).__name__}")
        self._check_name(family.name)
        check_pure_function(family.name, family.log_pdf, family.n_params + 1)
        check_pure_function(family.name, family.support, family.n_params)
        if family.log_cdf is not None:
            check_pure_function(family.name, family.log_cdf, family.n_params + 1)
        self._families[family.name] = family

    def family(self, name: str) -> Family:
        try:
            return self._families[name]
        except KeyError:
            raise UnresolvedIdentifierError(f"unknown distribution '{name}'")

    def function(self, name: str) -> Callable:
        try:
            return self._functions[name]
        except KeyError:
            raise UnresolvedIdentifierError(f"unknown function '{name}'")

    @property
    def functions(self) -> dict[str, Callable]:
        return dict(self._functions)

    @property
    def numpy_functions(self) -> dict[str, Callable]:
        return dict(self._numpy_functions)

    def names(self) -> set[str]:
        return set(self._families) | set(self._functions)

    def copy(self) -> "Registry":
        reg = Registry(include_builtins=False)
        reg._families.update(self._families)
        reg._functions.update(self._functions)
        reg._numpy_functions.update(self._numpy_functions)
        return reg


def default_registry() -> Registry:
    """a fresh registry with the builtin functions and distributions"""
    return Registry()
