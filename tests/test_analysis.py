from bugsmodel import ir
from bugsmodel.ir import Var, VarName
from bugsmodel.analyze import (
    find_variables_expr,
    find_variables_stmt,
    find_loop_vars,
    find_defined_names,
    find_model_variables,
    find_refs,
    find_calls,
)


class TestFindVariables:
    def test_find_single_variable(self):
        """simplest case"""
        x = Var("x")
        res = find_variables_expr(x)
        assert res == ["x"]

    def test_find_multiple_variables(self):
        x, y, z, w = Var("x"), Var("y"), Var("z"), Var("w")
        expr = (y + w) * z / ir.Call("exp", x)
        res = find_variables_expr(expr)
        expected_variables = ["x", "y", "z", "w"]

        assert all([var in res for var in expected_variables])

    def test_find_index_variables(self):
        expr = Var("alpha").idx(Var("group").idx(Var("i")))
        res = find_variables_expr(expr)

        assert set(res) == {"alpha", "group", "i"}

        expr = ir.Index("Y", [ir.Colon(), ir.Range(1, Var("T"))])
        res = find_variables_expr(expr)

        assert set(res) == {"Y", "T"}

    def test_find_vars_in_stmt(self):
        i = Var("i")
        stmt = ir.loop("i", 1, Var("N"), [
            ir.Assign(Var("x").idx(i), i * i),
            ir.Sample(Var("y").idx(i), ir.Dist("dnorm", [Var("x").idx(i), Var("tau")])),
        ])

        res = find_variables_stmt(stmt)
        expected_variable_names = {"i", "N", "x", "y", "tau"}

        assert set(res) == expected_variable_names


class TestModelVariables:
    def test_loop_vars_and_defined_names(self):
        i, j = Var("i"), Var("j")
        model = ir.Model([
            ir.loop("i", 1, Var("N"), [
                ir.loop("j", 1, Var("T"), [
                    ir.Sample(Var("Y").idx(i, j), ir.Dist("dnorm", [Var("mu").idx(i, j), Var("tau")])),
                    ir.Assign(Var("mu").idx(i, j), Var("alpha").idx(i) + Var("beta").idx(i)),
                ]),
            ]),
            ir.Sample(Var("tau"), ir.Dist("dgamma", [0.001, 0.001])),
        ])

        assert find_loop_vars(model.statements) == ["i", "j"]
        assert find_defined_names(model.statements) == ["Y", "mu", "tau"]
        assert set(find_model_variables(model)) == {"N", "T", "Y", "mu", "tau", "alpha", "beta"}


class TestFindRefs:
    def test_find_refs(self):
        a, b = VarName("a"), VarName("b", (2,))
        expr = ir.Call("inprod", [ir.RefArray((b, VarName("b", (3,))), (2,)), ir.Ref(a) * 2])
        assert find_refs(expr) == [b, VarName("b", (3,)), a]

    def test_find_calls(self):
        expr = ir.Call("exp", Var("x") + ir.Call("log", Var("y").idx(ir.Call("round", Var("z")))))
        assert find_calls(expr) == ["exp", "log", "round"]
