"""
Builtin BUGS functions.

The same table is instantiated twice: with numpy and scipy for
constant folding at compile time, and with jax for the
differentiable log-density.
"""

from types import ModuleType
from typing import Callable

import numpy as np
import scipy.special
import jax.numpy as jnp
import jax.scipy.special


def builtin_functions(xp: ModuleType, special: ModuleType) -> dict[str, Callable]:
    """
    Build the table of builtin functions for the backend `xp`
    (numpy or jax.numpy) and the matching `special` module.
    """

    def maximum(*args):
        if len(args) == 1:
            return xp.max(args[0])
        return xp.maximum(*args)

    def minimum(*args):
        if len(args) == 1:
            return xp.min(args[0])
        return xp.minimum(*args)

    return {
        "abs": xp.abs,
        "cloglog": lambda x: xp.log(-xp.log1p(-x)),
        "cos": xp.cos,
        "equals": lambda x, y: xp.where(x == y, 1.0, 0.0),
        "exp": xp.exp,
        "icloglog": lambda x: -xp.expm1(-xp.exp(x)),
        "ilogit": special.expit,
        "inprod": lambda a, b: xp.sum(xp.multiply(a, b)),
        "log": xp.log,
        "logfact": lambda x: special.gammaln(x + 1.0),
        "loggam": special.gammaln,
        "logit": special.logit,
        "logistic": special.expit,
        "max": maximum,
        "mean": xp.mean,
        "min": minimum,
        "phi": special.ndtr,
        "pow": lambda x, y: xp.power(xp.asarray(x, dtype=float), y),
        "probit": special.ndtri,
        "prod": xp.prod,
        "round": xp.round,
        "sd": lambda x: xp.std(x, ddof=1),
        "sin": xp.sin,
        "sqrt": xp.sqrt,
        "step": lambda x: xp.where(x >= 0, 1.0, 0.0),
        "sum": xp.sum,
        "trunc": xp.trunc,
    }


NUMPY_FUNCTIONS = builtin_functions(np, scipy.special)
JAX_FUNCTIONS = builtin_functions(jnp, jax.scipy.special)
