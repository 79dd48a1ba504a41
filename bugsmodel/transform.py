"""
Bijections between the support of a distribution and the real line.

The forward map takes a constrained value to the unconstrained space,
the backward map does the reverse. Each transform also knows the
log absolute determinant of the Jacobian of the backward map, which
has to be added to the log-density when a sampler works in the
unconstrained space.
"""

import jax
import jax.numpy as jnp
import jax.scipy.special
from typing import Callable, Optional, Any


def _zero_log_jacobian(y):
    return jnp.zeros_like(jnp.asarray(y, dtype=float))


class Transform:
    def __init__(
        self, forward: Callable, backward: Callable, log_jacobian: Optional[Callable] = None
    ) -> None:
        self._forward = forward
        self._backward = backward
        self._log_jacobian = _zero_log_jacobian if log_jacobian is None else log_jacobian

    def __call__(self, x):
        return self._forward(x)

    def backward(self, y):
        return self._backward(y)

    def log_jacobian(self, y):
        """log |d backward(y) / dy|"""
        return self._log_jacobian(y)

    def inverse(self):
        forward = self._forward
        log_jacobian = self._log_jacobian

        def inv_log_jacobian(x):
            return -log_jacobian(forward(x))

        return Transform(self._backward, self._forward, inv_log_jacobian)

    def __matmul__(self, other):
        def forward(x):
            return self._forward(other._forward(x))

        def backward(y):
            return other._backward(self._backward(y))

        def log_jacobian(y):
            return self._log_jacobian(y) + other._log_jacobian(self._backward(y))

        return Transform(forward, backward, log_jacobian)


class IdentityTransform(Transform):
    def __init__(self):
        def iden(x):
            return x

        super().__init__(iden, iden)


class LogTransform(Transform):
    def __init__(self) -> None:
        super().__init__(jnp.log, jnp.exp, lambda y: y)


class LogitTransform(Transform):
    def __init__(self) -> None:
        def log_jacobian(y):
            return jax.nn.log_sigmoid(y) + jax.nn.log_sigmoid(-y)

        super().__init__(jax.scipy.special.logit, jax.scipy.special.expit, log_jacobian)


class AffineTransform(Transform):
    def __init__(self, offset, slope):
        self._offset = offset
        self._slope = slope

        def forward(x):
            return self._offset + x * self._slope

        def backward(y):
            return (y - self._offset) / self._slope

        def log_jacobian(y):
            return -jnp.log(jnp.abs(self._slope)) * jnp.ones_like(jnp.asarray(y, dtype=float))

        super().__init__(forward, backward, log_jacobian)


class ShiftedLogTransform(Transform):
    def __new__(cls, lower_bound):
        afft = AffineTransform(-lower_bound, 1.0)
        logt = LogTransform()
        obj = logt @ afft
        obj.__class__ = cls
        return obj

    def __init__(self, lower_bound):
        self._lower_bound = lower_bound


class NegLogTransform(Transform):
    def __new__(cls):
        negt = AffineTransform(0.0, -1.0)
        logt = LogTransform()
        obj = negt @ logt @ negt
        obj.__class__ = cls
        return obj

    def __init__(self):
        pass


class ShiftedNegLogTransform(Transform):
    def __new__(cls, upper_bound):
        afft = AffineTransform(upper_bound, -1.0)
        negt = AffineTransform(0.0, -1.0)
        logt = LogTransform()
        obj = negt @ logt @ afft
        obj.__class__ = cls
        return obj

    def __init__(self, upper_bound):
        self._upper_bound = upper_bound


class GeneralizedLogitTransform(Transform):
    def __new__(cls, lower_bound, upper_bound):
        width = upper_bound - lower_bound
        afft = AffineTransform(-lower_bound / width, 1.0 / width)
        logitt = LogitTransform()
        obj = logitt @ afft
        obj.__class__ = cls
        return obj

    def __init__(self, lower_bound, upper_bound):
        self._lower_bound = lower_bound
        self._upper_bound = upper_bound


def _is_const(x: Any, val: float) -> bool:
    # bounds can be traced jax values, which we can't compare
    return isinstance(x, (int, float)) and x == val


def logit_transform_dispatch(lower_bound: Any, upper_bound: Any) -> Transform:
    """
    Choose the transform for a support with the given bounds.
    None means that the support is unbounded on that side.
    Bounds can be python numbers or (traced) jax values.
    """
    match (lower_bound, upper_bound):
        case (None, None):
            return IdentityTransform()
        case (lb, None) if _is_const(lb, 0.0):
            return LogTransform()
        case (lb, None):
            return ShiftedLogTransform(lb)
        case (None, ub) if _is_const(ub, 0.0):
            return NegLogTransform()
        case (None, ub):
            return ShiftedNegLogTransform(ub)
        case (lb, ub) if _is_const(lb, 0.0) and _is_const(ub, 1.0):
            return LogitTransform()
        case (lb, ub):
            return GeneralizedLogitTransform(lb, ub)


def to_unconstrained(dist, value):
    """
    Map a value in the support of `dist` to the real line.
    `dist` is anything with a `support()` method returning (lower, upper)
    """
    lower, upper = dist.support()
    return logit_transform_dispatch(lower, upper)(value)


def to_constrained(dist, y) -> tuple[Any, Any]:
    """
    Map an unconstrained value into the support of `dist`.
    Returns the constrained value and the log-Jacobian of the map.
    """
    lower, upper = dist.support()
    trans = logit_transform_dispatch(lower, upper)
    return trans.backward(y), trans.log_jacobian(y)
