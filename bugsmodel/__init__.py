# agreement with reference densities requires double precision

import jax

jax.config.update("jax_enable_x64", True)

# intermediate representation of models

from .ir import (
    VarName,
    Literal,
    Var,
    Index,
    Range,
    Colon,
    Call,
    Dist,
    Sample,
    Assign,
    ForLoop,
    Model,
    lit,
    loop,
)

# functions and distributions

from .distribution import Family
from .registry import Registry, default_registry

# errors

from .exceptions import (
    BugsModelError,
    CompilationError,
    ParseError,
    ShapeError,
    UnresolvedIdentifierError,
    CyclicDependencyError,
    RegistrationError,
    UnsupportedModelError,
    DomainEvaluationError,
    DimensionMismatchError,
)

# compile models and evaluate the log-density

from .graph import build, get_parameter_names, markov_blanket
from .evaluator import log_density, flatten, unflatten
from .model import compile, CompiledModel, transform_samples
from .logger import set_log_level
