"""
Distribution families with BUGS parameterizations.

Each family is a tagged record of pure functions: the log-density
(or log-mass) `log_pdf(x, *params)`, the support `support(*params)`
as a pair of (possibly parameter-dependent) bounds, and optionally
the log-CDF `log_cdf(x, *params)` that is needed for truncation.
All functions are written with `jax.numpy` to allow for automatic
differentiation.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Literal, Any

import jax
import jax.numpy as jnp
import jax.scipy.stats as stats
from jax.scipy.special import gammaln, xlogy, xlog1py

SupportKind = Literal["real", "positive", "unit", "interval", "lower", "integer"]


@dataclass(frozen=True)
class Family:
    name: str
    param_names: tuple[str, ...]
    log_pdf: Callable
    support: Callable
    support_kind: SupportKind
    discrete: bool = False
    log_cdf: Optional[Callable] = None

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    @property
    def truncatable(self) -> bool:
        return self.log_cdf is not None


def restrict(log_p, condition):
    """set the log-density to -inf where the condition is False"""
    return jnp.where(condition, log_p, -jnp.inf)


def is_integer(x):
    return x == jnp.floor(x)


def as_float(x):
    return jnp.asarray(x, dtype=float)


def tighter_bound(a, b, upper: bool):
    """
    intersect two (optional) bounds. Python numbers are kept as-is,
    such that transforms can be chosen statically.
    """
    if a is None:
        return b
    if b is None:
        return a
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return min(a, b) if upper else max(a, b)
    return jnp.minimum(a, b) if upper else jnp.maximum(a, b)


### continuous distributions


def _sd(tau):
    return 1.0 / jnp.sqrt(tau)


def dnorm_log_pdf(x, mu, tau):
    return stats.norm.logpdf(x, mu, _sd(tau))


def dnorm_log_cdf(x, mu, tau):
    return stats.norm.logcdf(x, mu, _sd(tau))


def dlnorm_log_pdf(x, mu, tau):
    log_x = jnp.log(x)
    return restrict(stats.norm.logpdf(log_x, mu, _sd(tau)) - log_x, x > 0)


def dlnorm_log_cdf(x, mu, tau):
    return stats.norm.logcdf(jnp.log(x), mu, _sd(tau))


def dt_log_pdf(x, mu, tau, k):
    return stats.t.logpdf(x, k, mu, _sd(tau))


def dlogis_log_pdf(x, mu, tau):
    z = tau * (x - mu)
    return jnp.log(tau) + jax.nn.log_sigmoid(z) + jax.nn.log_sigmoid(-z)


def dlogis_log_cdf(x, mu, tau):
    return jax.nn.log_sigmoid(tau * (x - mu))


def ddexp_log_pdf(x, mu, tau):
    return jnp.log(tau / 2.0) - tau * jnp.abs(x - mu)


def dgamma_log_pdf(x, r, mu):
    """BUGS parameterization: shape r and rate mu"""
    return stats.gamma.logpdf(x, r, scale=1.0 / mu)


def dexp_log_pdf(x, lam):
    return restrict(jnp.log(lam) - lam * x, x >= 0)


def dexp_log_cdf(x, lam):
    return jnp.log(-jnp.expm1(-lam * x))


def dchisqr_log_pdf(x, k):
    return stats.chi2.logpdf(x, k)


def dweib_log_pdf(x, v, lam):
    log_p = jnp.log(v) + jnp.log(lam) + xlogy(v - 1.0, x) - lam * jnp.power(x, v)
    return restrict(log_p, x >= 0)


def dweib_log_cdf(x, v, lam):
    return jnp.log(-jnp.expm1(-lam * jnp.power(x, v)))


def dbeta_log_pdf(x, a, b):
    return stats.beta.logpdf(x, a, b)


def dunif_log_pdf(x, a, b):
    return restrict(-jnp.log(b - a), (x >= a) & (x <= b))


def dunif_log_cdf(x, a, b):
    return jnp.log((jnp.clip(x, a, b) - a) / (b - a))


def dpar_log_pdf(x, alpha, c):
    log_p = jnp.log(alpha) + alpha * jnp.log(c) - (alpha + 1.0) * jnp.log(x)
    return restrict(log_p, x >= c)


def dpar_log_cdf(x, alpha, c):
    return jnp.log(-jnp.expm1(alpha * (jnp.log(c) - jnp.log(x))))


### discrete distributions


def dbern_log_pdf(x, p):
    log_p = xlogy(x, p) + xlog1py(1.0 - x, -p)
    return restrict(log_p, (x == 0) | (x == 1))


def dbin_log_pdf(x, p, n):
    log_binom = gammaln(n + 1.0) - gammaln(x + 1.0) - gammaln(n - x + 1.0)
    log_p = log_binom + xlogy(x, p) + xlog1py(n - x, -p)
    return restrict(log_p, is_integer(x) & (x >= 0) & (x <= n))


def dpois_log_pdf(x, lam):
    log_p = xlogy(x, lam) - lam - gammaln(x + 1.0)
    return restrict(log_p, is_integer(x) & (x >= 0))


def dnegbin_log_pdf(x, p, r):
    log_binom = gammaln(x + r) - gammaln(x + 1.0) - gammaln(r)
    log_p = log_binom + xlogy(r, p) + xlog1py(x, -p)
    return restrict(log_p, is_integer(x) & (x >= 0))


def _real(*params):
    return (None, None)


def _positive(*params):
    return (0.0, None)


def _unit(*params):
    return (0.0, 1.0)


BUILTIN_FAMILIES: dict[str, Family] = {
    fam.name: fam
    for fam in [
        Family("dnorm", ("mu", "tau"), dnorm_log_pdf, _real, "real", log_cdf=dnorm_log_cdf),
        Family("dlnorm", ("mu", "tau"), dlnorm_log_pdf, _positive, "positive", log_cdf=dlnorm_log_cdf),
        Family("dt", ("mu", "tau", "k"), dt_log_pdf, _real, "real"),
        Family("dlogis", ("mu", "tau"), dlogis_log_pdf, _real, "real", log_cdf=dlogis_log_cdf),
        Family("ddexp", ("mu", "tau"), ddexp_log_pdf, _real, "real"),
        Family("dgamma", ("r", "mu"), dgamma_log_pdf, _positive, "positive"),
        Family("dexp", ("lambda",), dexp_log_pdf, _positive, "positive", log_cdf=dexp_log_cdf),
        Family("dchisqr", ("k",), dchisqr_log_pdf, _positive, "positive"),
        Family("dweib", ("v", "lambda"), dweib_log_pdf, _positive, "positive", log_cdf=dweib_log_cdf),
        Family("dbeta", ("a", "b"), dbeta_log_pdf, _unit, "unit"),
        Family("dunif", ("a", "b"), dunif_log_pdf, lambda a, b: (a, b), "interval", log_cdf=dunif_log_cdf),
        Family("dpar", ("alpha", "c"), dpar_log_pdf, lambda alpha, c: (c, None), "lower", log_cdf=dpar_log_cdf),
        Family("dbern", ("p",), dbern_log_pdf, _unit, "integer", discrete=True),
        Family("dbin", ("p", "n"), dbin_log_pdf, lambda p, n: (0.0, n), "integer", discrete=True),
        Family("dpois", ("lambda",), dpois_log_pdf, _positive, "integer", discrete=True),
        Family("dnegbin", ("p", "r"), dnegbin_log_pdf, _positive, "integer", discrete=True),
    ]
}


@dataclass
class BoundDist:
    """
    A family together with the values of its parameters and optional
    truncation bounds. This is the `distribution` argument of the
    transform layer.
    """

    family: Family
    params: tuple[Any, ...]
    lower: Any = None
    upper: Any = None

    @property
    def truncated(self) -> bool:
        return self.lower is not None or self.upper is not None

    def support(self) -> tuple[Any, Any]:
        lower, upper = self.family.support(*self.params)
        return tighter_bound(lower, self.lower, False), tighter_bound(upper, self.upper, True)

    def log_normalizer(self):
        """log of the probability mass between the truncation bounds"""
        lcdf = self.family.log_cdf
        params = self.float_params()
        match (self.lower, self.upper):
            case (None, None):
                return 0.0
            case (lower, None):
                return jnp.log1p(-jnp.exp(lcdf(as_float(lower), *params)))
            case (None, upper):
                return lcdf(as_float(upper), *params)
            case (lower, upper):
                lcu = lcdf(as_float(upper), *params)
                lcl = lcdf(as_float(lower), *params)
                return lcu + jnp.log1p(-jnp.exp(lcl - lcu))

    def float_params(self) -> tuple[Any, ...]:
        return tuple(as_float(p) for p in self.params)

    def log_pdf(self, x):
        # integer data would get float0 tangents in the custom JVPs of xlogy and xlog1py
        x = as_float(x)
        log_p = self.family.log_pdf(x, *self.float_params())
        if not self.truncated:
            return log_p
        in_bounds = True
        if self.lower is not None:
            in_bounds = in_bounds & (x >= self.lower)
        if self.upper is not None:
            in_bounds = in_bounds & (x <= self.upper)
        return restrict(log_p - self.log_normalizer(), in_bounds)
