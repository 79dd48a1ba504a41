"""
Data bindings and array shapes.

Data and inits are mappings from variable names to scalars or
rectangular arrays. Missing entries (None or NaN) mark unobserved
positions. Arrays are flattened into scalar identities with 1-based
indices, as in BUGS.
"""

from typing import Mapping, Any, Optional
import numpy as np

from .ir import VarName
from .exceptions import ShapeError
from . import utilities as util


def as_array(name: str, value: Any) -> np.ndarray:
    """
    convert a scalar or (nested) list to a float array. None becomes NaN.
    Raises ShapeError for ragged arrays.
    """
    try:
        arr = np.array(value, dtype=float)
    except (ValueError, TypeError) as e:
        raise ShapeError(f"value of '{name}' is not a rectangular numeric array: {e}")
    return arr


def as_number(x: float) -> int | float:
    """BUGS does not distinguish ints and reals, but indices have to be ints"""
    x = float(x)
    return int(x) if x.is_integer() else x


def flatten_bindings(
    bindings: Optional[Mapping[str, Any]],
) -> tuple[dict[VarName, int | float], dict[str, tuple[int, ...]]]:
    """
    Flatten data or inits into a table of scalar values.

    Parameters
    ----------
    bindings : Optional[Mapping[str, Any]]
        map from variable names to scalars or arrays.

    Returns
    -------
    tuple[dict[VarName, int | float], dict[str, tuple[int, ...]]]
        The values of all non-missing entries, and the shape of every
        bound variable.
    """
    values: dict[VarName, int | float] = {}
    shapes: dict[str, tuple[int, ...]] = {}
    if bindings is None:
        return values, shapes
    for name, value in bindings.items():
        arr = as_array(name, value)
        shapes[name] = arr.shape
        for idx in np.ndindex(arr.shape):
            x = arr[idx]
            if np.isnan(x):
                continue
            values[VarName(name, tuple(i + 1 for i in idx))] = as_number(x)
    return values, shapes


class ShapeTable:
    """
    The shapes of all arrays in a model. Shapes of data are fixed,
    other shapes are the maximum of the indices on left-hand sides.
    """

    def __init__(self, data_shapes: Mapping[str, tuple[int, ...]]) -> None:
        self._fixed = dict(data_shapes)
        self._shapes = dict(data_shapes)

    def __contains__(self, name: str) -> bool:
        return name in self._shapes

    def shape(self, name: str) -> tuple[int, ...]:
        return self._shapes[name]

    def rank(self, name: str) -> int:
        return len(self._shapes[name])

    def check_rank(self, var_name: VarName, statement: Optional[str] = None) -> None:
        name, indices = var_name.name, var_name.indices
        if name in self._shapes and len(self._shapes[name]) != len(indices):
            raise ShapeError(
                f"'{name}' has {self.rank(name)} dimension(s), but is used with {len(indices)} index(es)",
                identity=var_name,
                statement=statement,
            )
        if any(i < 1 for i in indices):
            raise ShapeError("indices must be positive", identity=var_name, statement=statement)

    def observe(self, var_name: VarName, statement: Optional[str] = None) -> None:
        """
        register a left-hand side. Extends the shape of non-data arrays.
        """
        self.check_rank(var_name, statement)
        name, indices = var_name.name, var_name.indices
        if name in self._fixed:
            self.check_bounds(var_name, statement)
            return
        if name not in self._shapes:
            self._shapes[name] = indices
        else:
            self._shapes[name] = tuple(max(a, b) for a, b in zip(self._shapes[name], indices))

    def check_bounds(self, var_name: VarName, statement: Optional[str] = None) -> None:
        self.check_rank(var_name, statement)
        shape = self._shapes.get(var_name.name)
        if shape is None:
            return
        if any(i > n for i, n in zip(var_name.indices, shape)):
            raise ShapeError(
                f"index out of bounds for array of shape {shape}",
                identity=var_name,
                statement=statement,
            )

    def identities(self, name: str) -> list[VarName]:
        return [VarName(name, idx) for idx in util.index_product(self.shape(name))]
