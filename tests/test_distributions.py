from bugsmodel.distribution import BUILTIN_FAMILIES, BoundDist
import numpy as np
import scipy.stats as sts
import pytest


def log_pdf(name, x, *params):
    return float(BUILTIN_FAMILIES[name].log_pdf(x, *params))


class TestContinuous:
    def test_normal(self):
        # BUGS uses the precision tau = 1 / sigma^2
        for x in [-1.0, 0.3, 2.0]:
            assert np.isclose(log_pdf("dnorm", x, 0.5, 4.0), sts.norm.logpdf(x, 0.5, 0.5))
            assert np.isclose(log_pdf("dlnorm", abs(x), 0.5, 4.0), sts.lognorm.logpdf(abs(x), 0.5, scale=np.exp(0.5)))
            assert np.isclose(log_pdf("dt", x, 0.5, 4.0, 3.0), sts.t.logpdf(x, 3.0, 0.5, 0.5))
            assert np.isclose(log_pdf("dlogis", x, 0.5, 2.0), sts.logistic.logpdf(x, 0.5, 0.5))
            assert np.isclose(log_pdf("ddexp", x, 0.5, 2.0), sts.laplace.logpdf(x, 0.5, 0.5))

    def test_positive(self):
        for x in [0.1, 1.0, 3.5]:
            # shape r and rate mu
            assert np.isclose(log_pdf("dgamma", x, 2.0, 3.0), sts.gamma.logpdf(x, 2.0, scale=1.0 / 3.0))
            assert np.isclose(log_pdf("dexp", x, 1.5), sts.expon.logpdf(x, scale=1.0 / 1.5))
            assert np.isclose(log_pdf("dchisqr", x, 3.0), sts.chi2.logpdf(x, 3.0))
            # dweib(v, lambda) has density v lambda x^(v-1) exp(-lambda x^v)
            assert np.isclose(
                log_pdf("dweib", x, 2.0, 0.5),
                sts.weibull_min.logpdf(x, 2.0, scale=0.5 ** (-1.0 / 2.0)),
            )
            assert np.isclose(log_pdf("dpar", x + 1.0, 3.0, 1.0), sts.pareto.logpdf(x + 1.0, 3.0, scale=1.0))

    def test_bounded(self):
        for x in [0.05, 0.5, 0.9]:
            assert np.isclose(log_pdf("dbeta", x, 2.0, 5.0), sts.beta.logpdf(x, 2.0, 5.0))
            assert np.isclose(log_pdf("dunif", x, 0.0, 2.0), np.log(0.5))

    def test_outside_support(self):
        assert log_pdf("dgamma", -1.0, 2.0, 3.0) == -np.inf
        assert log_pdf("dexp", -1.0, 1.0) == -np.inf
        assert log_pdf("dunif", 3.0, 0.0, 2.0) == -np.inf
        assert log_pdf("dpar", 0.5, 3.0, 1.0) == -np.inf
        assert log_pdf("dlnorm", -1.0, 0.0, 1.0) == -np.inf


class TestDiscrete:
    def test_discrete(self):
        for k in [0, 1, 3]:
            assert np.isclose(log_pdf("dbin", k, 0.3, 5), sts.binom.logpmf(k, 5, 0.3))
            assert np.isclose(log_pdf("dpois", k, 2.5), sts.poisson.logpmf(k, 2.5))
            # number of failures before the r-th success
            assert np.isclose(log_pdf("dnegbin", k, 0.3, 4), sts.nbinom.logpmf(k, 4, 0.3))
        assert np.isclose(log_pdf("dbern", 1, 0.3), np.log(0.3))
        assert np.isclose(log_pdf("dbern", 0, 0.3), np.log(0.7))

    def test_outside_support(self):
        assert log_pdf("dbin", 6, 0.3, 5) == -np.inf
        assert log_pdf("dbin", 1.5, 0.3, 5) == -np.inf
        assert log_pdf("dpois", -1, 2.5) == -np.inf
        assert log_pdf("dbern", 2, 0.3) == -np.inf


class TestTruncation:
    def test_truncated_normal(self):
        dist = BoundDist(BUILTIN_FAMILIES["dnorm"], (0.0, 1.0), 0.0, None)
        for x in [0.1, 1.0, 2.5]:
            assert np.isclose(float(dist.log_pdf(x)), sts.halfnorm.logpdf(x))
        assert float(dist.log_pdf(-0.5)) == -np.inf

    def test_two_sided(self):
        dist = BoundDist(BUILTIN_FAMILIES["dnorm"], (1.0, 0.25), -1.0, 2.0)
        expected = sts.truncnorm(-1.0, 0.5, loc=1.0, scale=2.0)
        for x in [-0.5, 0.0, 1.9]:
            assert np.isclose(float(dist.log_pdf(x)), expected.logpdf(x))

    def test_upper(self):
        dist = BoundDist(BUILTIN_FAMILIES["dexp"], (2.0,), None, 1.0)
        for x in [0.1, 0.9]:
            expected = sts.expon.logpdf(x, scale=0.5) - sts.expon.logcdf(1.0, scale=0.5)
            assert np.isclose(float(dist.log_pdf(x)), expected)


class TestFamilies:
    @pytest.mark.parametrize("name", sorted(BUILTIN_FAMILIES))
    def test_family_attributes(self, name):
        fam = BUILTIN_FAMILIES[name]
        assert fam.name == name
        assert len(fam.support(*[1.0] * fam.n_params)) == 2
        assert fam.discrete == (fam.support_kind == "integer")
