from . import graph as gr
from . import evaluator
from . import ir
from .ir import VarName
from .registry import Registry, default_registry
from .shapes import flatten_bindings
from .logger import logger

import numpy as np
import jax
from functools import partial
from typing import Optional, Mapping, Any


class CompiledModel:
    """
    Object that represents a compiled BUGS model

    This serves as an interface for samplers and optimizers: the
    log-density is a function of a flat vector of (unconstrained)
    parameter values.
    """

    def __init__(
        self,
        model: ir.Model,
        data: Optional[Mapping[str, Any]] = None,
        inits: Optional[Mapping[str, Any]] = None,
        registry: Optional[Registry] = None,
        transformed: bool = True,
        jit: bool = False,
    ) -> None:
        """
        Compile a BUGS model. This means unrolling all loops, building the
        dependency graph, and ordering the nodes.

        Parameters
        ----------
        model : ir.Model
            The model definition in the intermediate representation.
        data : Optional[Mapping[str, Any]], optional
            A dictionary with data. The values can be scalars or
            (nested) lists and arrays. Use None or NaN for missing values
            of stochastic variables. The default is None.
        inits : Optional[Mapping[str, Any]], optional
            A dictionary with initial values of the parameters, in the same
            format as the data. Parameters without initial value get the
            value 0 in the unconstrained space. The default is None.
        registry : Optional[Registry], optional
            Functions and distributions available in the model. If None,
            a fresh default registry is used. The default is None.
        transformed : bool, optional
            If True, the parameter vector is in unconstrained space and
            the log-density includes the log-Jacobian of the transforms.
            If False, the parameter vector holds the constrained values.
            The default is True.
        jit : bool, optional
            Compile the log-density and its gradient with `jax.jit`.
            The default is False.

        Raises
        ------
        CompilationError
            A subclass of CompilationError (ParseError, ShapeError,
            UnresolvedIdentifierError, CyclicDependencyError or
            UnsupportedModelError) if the model can not be compiled.
        """
        self._model = model
        self._registry = default_registry() if registry is None else registry
        self._transformed = transformed
        self._inits = {} if inits is None else dict(inits)

        self._graph = gr.build(model, data, self._registry)

        log_density = partial(evaluator.log_density, self._graph, transformed=transformed)
        value_and_grad = jax.value_and_grad(log_density)
        if jit:
            log_density = jax.jit(log_density)
            value_and_grad = jax.jit(value_and_grad)
        self._log_density = log_density
        self._value_and_grad = value_and_grad

        # check the inits now, such that problems show up early
        self._init_theta = self._flatten_inits()

    def _flatten_inits(self) -> np.ndarray:
        init_values, _ = flatten_bindings(self._inits)
        parameter_names = set(gr.get_parameter_names(self._graph))
        unused = [vn for vn in init_values if vn not in parameter_names]
        if unused:
            unused_str = ", ".join(str(vn) for vn in unused)
            logger.warning(f"initial values for {unused_str} are ignored: these are not parameters")
        assignment = {vn: x for vn, x in init_values.items() if vn in parameter_names}
        return evaluator.flatten(self._graph, assignment, transformed=self._transformed)

    def __str__(self) -> str:
        return str(self._model)

    @property
    def model(self) -> ir.Model:
        return self._model

    @property
    def graph(self) -> gr.Graph:
        return self._graph

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def transformed(self) -> bool:
        return self._transformed

    def dimension(self) -> int:
        """length of the parameter vector"""
        return self._graph.dimension

    def parameter_names(self) -> list[VarName]:
        """identities of the parameters, in the order of the parameter vector"""
        return gr.get_parameter_names(self._graph)

    def initial_parameters(self) -> np.ndarray:
        """the parameter vector derived from the inits"""
        return self._init_theta.copy()

    def log_density(self, theta) -> float:
        """
        Log-density of the model at theta. Returns -inf if theta
        leads to a numerical domain error.

        Raises
        ------
        DimensionMismatchError
            if the length of theta is not equal to the dimension.
        """
        theta = evaluator.check_dimension(self._graph, theta)
        return float(self._log_density(theta))

    def log_density_and_gradient(self, theta) -> tuple[float, np.ndarray]:
        """
        Log-density and its gradient with respect to theta.
        The gradient is computed by jax.

        Returns
        -------
        tuple[float, np.ndarray]
            The log-density and the gradient.
        """
        theta = evaluator.check_dimension(self._graph, theta)
        val, grad = self._value_and_grad(theta)
        val = float(val)
        grad = np.asarray(grad, dtype=float)
        if not np.isfinite(val):
            # the gradient is meaningless outside of the support
            grad = np.zeros_like(grad)
        return val, grad

    def evaluate(self, theta) -> evaluator.Evaluation:
        """
        Values of all nodes and the separate terms of the log-density.
        Domain errors are not caught.
        """
        return evaluator.evaluate(self._graph, theta, transformed=self._transformed)

    def transform_samples(self, theta, include_logical: bool = False) -> dict[VarName, Any]:
        """
        Map parameter vectors to the constrained values of the parameters.

        Parameters
        ----------
        theta : array-like
            A single parameter vector, or a 2D array with one
            parameter vector per row (e.g. draws from a sampler).
        include_logical : bool, optional
            Also compute the values of the logical nodes.
            The default is False.

        Returns
        -------
        dict[VarName, Any]
            Maps identities to values. If theta is 2D, the values are
            arrays with one entry per row.
        """
        theta = np.asarray(theta, dtype=float)
        if theta.ndim == 1:
            return evaluator.unflatten(
                self._graph, theta, transformed=self._transformed, include_logical=include_logical
            )
        samples = [
            evaluator.unflatten(
                self._graph, row, transformed=self._transformed, include_logical=include_logical
            )
            for row in theta
        ]
        if len(samples) == 0:
            return {vn: np.zeros(0) for vn in self.parameter_names()}
        return {vn: np.array([s[vn] for s in samples]) for vn in samples[0]}


def compile(
    model: ir.Model,
    data: Optional[Mapping[str, Any]] = None,
    inits: Optional[Mapping[str, Any]] = None,
    registry: Optional[Registry] = None,
    transformed: bool = True,
    jit: bool = False,
) -> CompiledModel:
    """
    Compile a model with data and initial values.
    See `CompiledModel` for the parameters.
    """
    return CompiledModel(
        model, data, inits, registry=registry, transformed=transformed, jit=jit
    )


def transform_samples(model: CompiledModel, theta) -> dict[VarName, Any]:
    """named, constrained values of the parameters at theta (no Jacobian)"""
    return model.transform_samples(theta)
