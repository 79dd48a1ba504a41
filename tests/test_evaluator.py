from bugsmodel import ir
from bugsmodel.ir import Var, VarName
from bugsmodel.graph import build
from bugsmodel.registry import Registry
from bugsmodel.evaluator import evaluate, log_density, flatten, unflatten
from bugsmodel.exceptions import DimensionMismatchError, DomainEvaluationError
import numpy as np
import scipy.stats as sts
import pytest


def simple_model() -> ir.Model:
    return ir.Model([
        ir.Sample(Var("mu"), ir.Dist("dnorm", [0.0, 0.01])),
        ir.Sample(Var("tau"), ir.Dist("dgamma", [2.0, 1.0])),
        ir.Sample(Var("p"), ir.Dist("dbeta", [2.0, 2.0])),
        ir.Sample(Var("y"), ir.Dist("dnorm", [Var("mu"), Var("tau")])),
        ir.Sample(Var("k"), ir.Dist("dbin", [Var("p"), 10])),
    ])


def reference_log_density(mu, tau, p, y=1.5, k=4):
    return (
        sts.norm.logpdf(mu, 0.0, 10.0)
        + sts.gamma.logpdf(tau, 2.0, scale=1.0)
        + sts.beta.logpdf(p, 2.0, 2.0)
        + sts.norm.logpdf(y, mu, 1 / np.sqrt(tau))
        + sts.binom.logpmf(k, 10, p)
    )


class TestEvaluate:
    def test_terms(self):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        assignment = {VarName("mu"): 0.5, VarName("tau"): 2.0, VarName("p"): 0.3}
        theta = flatten(graph, assignment)
        ev = evaluate(graph, theta)

        expected_prior = (
            sts.norm.logpdf(0.5, 0.0, 10.0) + sts.gamma.logpdf(2.0, 2.0) + sts.beta.logpdf(0.3, 2.0, 2.0)
        )
        expected_lik = sts.norm.logpdf(1.5, 0.5, 1 / np.sqrt(2.0)) + sts.binom.logpmf(4, 10, 0.3)
        # log-Jacobians of the log and logit transforms
        expected_jac = np.log(2.0) + np.log(0.3) + np.log(0.7)

        assert np.isclose(ev.log_prior, expected_prior)
        assert np.isclose(ev.log_likelihood, expected_lik)
        assert np.isclose(ev.log_jacobian, expected_jac)
        assert np.isclose(ev.log_density, expected_prior + expected_lik + expected_jac)
        assert np.isclose(ev.values[VarName("tau")], 2.0)

    def test_untransformed(self):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        names = [graph.nodes[i].var_name for i in graph.parameters]
        values = {VarName("mu"): -1.0, VarName("tau"): 0.5, VarName("p"): 0.8}
        theta = np.array([values[vn] for vn in names])

        assert np.allclose(flatten(graph, values, transformed=False), theta)
        lp = log_density(graph, theta, transformed=False)
        assert np.isclose(lp, reference_log_density(-1.0, 0.5, 0.8))

        # outside the support
        theta[names.index(VarName("tau"))] = -1.0
        assert log_density(graph, theta, transformed=False) == -np.inf

    def test_determinism(self):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        theta = np.array([0.3, -0.2, 1.1])
        lp1 = log_density(graph, theta)
        lp2 = log_density(graph, theta)
        assert float(lp1) == float(lp2)

    def test_dimension_mismatch(self):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        with pytest.raises(DimensionMismatchError, match="length 2, but the model has dimension 3"):
            log_density(graph, np.zeros(2))
        with pytest.raises(DimensionMismatchError):
            evaluate(graph, np.zeros((3, 1)))


class TestRoundTrip:
    def test_flatten_unflatten(self):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        assignment = {VarName("mu"): 0.5, VarName("tau"): 2.0, VarName("p"): 0.3}
        theta = flatten(graph, assignment)
        values = unflatten(graph, theta)

        for vn, x in assignment.items():
            assert np.isclose(values[vn], x)

    def test_missing_values(self, caplog):
        graph = build(simple_model(), {"y": 1.5, "k": 4})
        theta = flatten(graph, {VarName("mu"): 0.5})
        values = unflatten(graph, theta)

        assert np.isclose(values[VarName("mu")], 0.5)
        assert np.isclose(values[VarName("tau")], 1.0)
        assert np.isclose(values[VarName("p")], 0.5)
        assert "no initial values for" in caplog.text

    def test_logical_values(self):
        model = ir.Model([
            ir.Sample(Var("tau"), ir.Dist("dgamma", [1.0, 1.0])),
            ir.Assign(Var("sigma"), 1 / ir.Call("sqrt", Var("tau"))),
        ])
        graph = build(model, {})
        values = unflatten(graph, [np.log(4.0)], include_logical=True)
        assert np.isclose(values[VarName("sigma")], 0.5)


class TestDomainErrors:
    def test_log_of_negative(self):
        model = ir.Model([
            ir.Sample(Var("x"), ir.Dist("dnorm", [0.0, 1.0])),
            ir.Assign(Var("y"), ir.Call("log", Var("x") - 5)),
            ir.Sample(Var("z"), ir.Dist("dnorm", [Var("y"), 1.0])),
        ])
        graph = build(model, {"z": 0.0})

        assert log_density(graph, [0.0]) == -np.inf
        assert np.isfinite(log_density(graph, [6.0]))

    def test_user_function_raises(self):
        def checked_log(x):
            if x <= 0:
                raise DomainEvaluationError(f"log of non-positive value {x}")
            return np.log(x)

        def reciprocal(x):
            return 1.0 / float(x)

        registry = Registry()
        registry.register_function("checked.log", checked_log, 1)
        registry.register_function("reciprocal", reciprocal, 1)
        model = ir.Model([
            ir.Sample(Var("x"), ir.Dist("dnorm", [0.0, 1.0])),
            ir.Assign(Var("y"), ir.Call("reciprocal", Var("x")) + ir.Call("checked.log", Var("x"))),
            ir.Sample(Var("z"), ir.Dist("dnorm", [Var("y"), 1.0])),
        ])
        graph = build(model, {"z": 0.0}, registry)

        assert log_density(graph, [-1.0]) == -np.inf
        assert log_density(graph, [0.0]) == -np.inf
        assert np.isfinite(log_density(graph, [2.0]))

    def test_parameter_dependent_bounds(self):
        model = ir.Model([
            ir.Sample(Var("a"), ir.Dist("dnorm", [0.0, 1.0])),
            ir.Sample(Var("x"), ir.Dist("dunif", [Var("a"), Var("a") + 2])),
        ])
        graph = build(model, {})
        for theta in [[0.0, 0.0], [1.5, -3.0], [-2.0, 4.0]]:
            ev = evaluate(graph, theta)
            a, x = ev.values[VarName("a")], ev.values[VarName("x")]
            assert a < x < a + 2
            assert np.isfinite(ev.log_density)
