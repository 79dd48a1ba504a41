from bugsmodel.shapes import flatten_bindings, ShapeTable, as_number
from bugsmodel.ir import VarName
from bugsmodel.exceptions import ShapeError
import numpy as np
import pytest


class TestBindings:
    def test_flatten_scalars_and_arrays(self):
        values, shapes = flatten_bindings({"N": 3, "x": [1.5, 2.0, 3.0], "Y": [[1, 2], [3, 4]]})

        assert shapes == {"N": (), "x": (3,), "Y": (2, 2)}
        assert values[VarName("N")] == 3
        assert values[VarName("x", (1,))] == 1.5
        assert values[VarName("Y", (2, 1))] == 3
        assert isinstance(values[VarName("Y", (2, 1))], int)
        assert len(values) == 1 + 3 + 4

    def test_missing_values(self):
        values, shapes = flatten_bindings({"y": [1.0, None, np.nan, 4.0]})

        assert shapes == {"y": (4,)}
        assert VarName("y", (2,)) not in values
        assert VarName("y", (3,)) not in values
        assert values[VarName("y", (4,))] == 4

    def test_ragged_array(self):
        with pytest.raises(ShapeError, match="not a rectangular numeric array"):
            flatten_bindings({"x": [[1, 2], [3]]})

    def test_as_number(self):
        assert as_number(2.0) == 2 and isinstance(as_number(2.0), int)
        assert as_number(2.5) == 2.5


class TestShapeTable:
    def test_inferred_shapes(self):
        table = ShapeTable({"x": (3,)})
        table.observe(VarName("mu", (1, 2)))
        table.observe(VarName("mu", (4, 1)))

        assert table.shape("mu") == (4, 2)
        assert table.shape("x") == (3,)
        assert len(table.identities("mu")) == 8

    def test_data_bounds(self):
        table = ShapeTable({"x": (3,)})
        table.observe(VarName("x", (3,)))

        with pytest.raises(ShapeError, match="index out of bounds"):
            table.observe(VarName("x", (4,)))

    def test_rank_mismatch(self):
        table = ShapeTable({"Y": (2, 5)})

        with pytest.raises(ShapeError, match="2 dimension"):
            table.check_bounds(VarName("Y", (1,)))

        with pytest.raises(ShapeError, match="indices must be positive"):
            table.check_bounds(VarName("Y", (0, 1)))
