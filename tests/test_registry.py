from bugsmodel.registry import Registry, default_registry
from bugsmodel.distribution import Family, BUILTIN_FAMILIES
from bugsmodel.exceptions import RegistrationError, UnresolvedIdentifierError
import jax.numpy as jnp
import numpy as np
import pytest


def softplus(x):
    return jnp.log1p(jnp.exp(x))


def half_cauchy_log_pdf(x, s):
    return jnp.where(x >= 0, jnp.log(2.0 / (jnp.pi * s)) - jnp.log1p((x / s) ** 2), -jnp.inf)


class TestRegistry:
    def test_builtins(self):
        reg = default_registry()
        for name in ["dnorm", "dgamma", "dbin", "exp", "logit", "inprod", "step"]:
            assert name in reg.names()
        assert np.isclose(reg.function("ilogit")(0.0), 0.5)
        assert np.isclose(reg.numpy_functions["inprod"]([1.0, 2.0], [3.0, 4.0]), 11.0)

    def test_sessions_are_independent(self):
        reg1 = default_registry()
        reg2 = default_registry()
        reg1.register_function("softplus", softplus, 1)

        assert "softplus" in reg1.names()
        assert "softplus" not in reg2.names()
        assert "softplus" in reg1.copy().names()

    def test_register_function(self):
        reg = Registry()
        reg.register_function("softplus", softplus, 1)
        assert np.isclose(reg.function("softplus")(0.0), np.log(2.0))

        with pytest.raises(RegistrationError, match="already registered"):
            reg.register_function("softplus", softplus)

        with pytest.raises(RegistrationError, match="already registered"):
            reg.register_function("exp", jnp.exp)

        with pytest.raises(RegistrationError, match="invalid name"):
            reg.register_function("soft plus", softplus)

        with pytest.raises(RegistrationError, match="not callable"):
            reg.register_function("three", 3.0)

        with pytest.raises(RegistrationError, match="can not be called with 2"):
            reg.register_function("softplus2", softplus, 2)

    def test_impure_functions(self):
        reg = Registry()

        def gen(x):
            yield x

        async def coro(x):
            return x

        with pytest.raises(RegistrationError, match="generator or coroutine"):
            reg.register_function("gen", gen)

        with pytest.raises(RegistrationError, match="generator or coroutine"):
            reg.register_function("coro", coro)

        with pytest.raises(RegistrationError, match="is a class"):
            reg.register_function("klass", dict)

    def test_register_distribution(self):
        reg = Registry()
        fam = Family("dhalfcauchy", ("s",), half_cauchy_log_pdf, lambda s: (0.0, None), "positive")
        reg.register_distribution(fam)
        assert reg.family("dhalfcauchy") is fam

        with pytest.raises(RegistrationError, match="already registered"):
            reg.register_distribution(BUILTIN_FAMILIES["dnorm"])

        bad = Family("dbad", ("a", "b"), lambda x, a: x, lambda a, b: (None, None), "real")
        with pytest.raises(RegistrationError, match="can not be called with 3"):
            reg.register_distribution(bad)

        with pytest.raises(RegistrationError, match="expected a Family"):
            reg.register_distribution(half_cauchy_log_pdf)

    def test_unknown_names(self):
        reg = Registry(include_builtins=False)
        with pytest.raises(UnresolvedIdentifierError, match="unknown distribution 'dnorm'"):
            reg.family("dnorm")
        with pytest.raises(UnresolvedIdentifierError, match="unknown function 'exp'"):
            reg.function("exp")
