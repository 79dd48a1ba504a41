# check names: variables, loop variables, data, functions and distributions

import re
from typing import Mapping, Any

from . import ir
from . import analyze
from .registry import Registry
from .exceptions import ParseError
from .logger import logger

_bugs_identifier = re.compile(r"^[A-Za-z][A-Za-z0-9._]*$")


def is_identifier(name: str) -> bool:
    return isinstance(name, str) and _bugs_identifier.match(name) is not None


def check_names(model: ir.Model, data: Mapping[str, Any], registry: Registry) -> None:
    """
    Check that the names of variables are valid BUGS identifiers, and
    that they don't clash with functions, distributions or loop variables.
    Data that is never used by the model is reported in the log.
    """
    variables = analyze.find_model_variables(model)
    loop_vars = analyze.find_loop_vars(model.statements)

    for name in variables + loop_vars:
        if not is_identifier(name):
            raise ParseError(f"invalid variable name {name!r}")

    # functions and distributions share a namespace with variables
    reserved_names = registry.names()
    for name in variables + loop_vars:
        if name in reserved_names:
            raise ParseError(f"variable '{name}' has the same name as a function or distribution")

    defined = set(analyze.find_defined_names(model.statements))
    for var in loop_vars:
        if var in defined or var in data:
            raise ParseError(f"loop variable '{var}' shadows a model variable")

    for name in data:
        if not is_identifier(name):
            raise ParseError(f"invalid name {name!r} in the data")

    unused = [name for name in data if name not in variables]
    if unused:
        logger.warning(f"data for {', '.join(unused)} is not used in model '{model.name}'")
