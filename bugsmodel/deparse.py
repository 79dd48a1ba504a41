from . import utilities as util
from . import ir


def precedence(expr: ir.Expr) -> int:
    match expr:
        case ir.AddOp() | ir.SubOp():
            return 1
        case ir.MulOp() | ir.DivOp():
            return 2
        case ir.Negate():
            return 3
        case ir.PowOp():
            return 4
        case ir.Literal(val) if val < 0:
            return 3
        case _:
            return 5


def deparse_operand(expr: ir.Expr, min_prec: int) -> str:
    """
    deparse an operand, adding parentheses if it binds weaker than min_prec
    """
    code_str = deparse_expr(expr)
    if precedence(expr) < min_prec:
        return f"({code_str})"
    return code_str


def deparse_literal(val: int | float) -> str:
    if isinstance(val, float) and (abs(val) >= 1e5 or (0 < abs(val) < 1e-3)):
        # BUGS style scientific notation, e.g. 1.0E-6
        return f"{val:.1E}".replace("E-0", "E-").replace("E+0", "E")
    return str(val)


def deparse_expr(expr: ir.Expr) -> str:
    """
    transform an Expr into BUGS code
    """
    match expr:
        case ir.Literal(val):
            code_str = deparse_literal(val)

        case ir.Var(name):
            code_str = name

        case ir.Colon():
            code_str = ""

        case ir.Range(start, stop):
            code_str = f"{deparse_expr(start)}:{deparse_expr(stop)}"

        case ir.Index(name, indices):
            idx_list = ", ".join([deparse_expr(idx) for idx in indices])
            code_str = f"{name}[{idx_list}]"

        case ir.Ref(var_name):
            code_str = str(var_name)

        case ir.RefArray(var_names, shape):
            code_str = "{" + ", ".join([str(vn) for vn in var_names]) + "}"

        case ir.Negate(val):
            code_str = f"-{deparse_operand(val, 4)}"

        case ir.AddOp(left, right):
            code_str = f"{deparse_operand(left, 1)} + {deparse_operand(right, 1)}"

        case ir.SubOp(left, right):
            code_str = f"{deparse_operand(left, 1)} - {deparse_operand(right, 2)}"

        case ir.MulOp(left, right):
            code_str = f"{deparse_operand(left, 2)} * {deparse_operand(right, 2)}"

        case ir.DivOp(num, den):
            code_str = f"{deparse_operand(num, 2)} / {deparse_operand(den, 3)}"

        case ir.PowOp(base, exponent):
            code_str = f"{deparse_operand(base, 5)}^{deparse_operand(exponent, 4)}"

        case ir.Call(func_name, arguments):
            arg_list = ", ".join([deparse_expr(arg) for arg in arguments])
            code_str = f"{func_name}({arg_list})"

        case _:
            raise Exception("unable to deparse expression " + str(expr))

    return code_str


def deparse_dist(dist: ir.Dist) -> str:
    par_list = ", ".join([deparse_expr(par) for par in dist.params])
    code_str = f"{dist.name}({par_list})"
    if dist.truncated:
        lower = "" if dist.lower is None else deparse_expr(dist.lower)
        upper = "" if dist.upper is None else deparse_expr(dist.upper)
        code_str += f" T({lower}, {upper})"
    return code_str


def deparse_stmt(stmt: ir.Stmt, indentation: int = 4) -> str:
    """
    transform a Stmt into BUGS code
    """
    match stmt:
        case ir.Sample(lhs, dist):
            code_str = f"{deparse_expr(lhs)} ~ {deparse_dist(dist)}"

        case ir.Assign(lhs, rhs):
            code_str = f"{deparse_expr(lhs)} <- {deparse_expr(rhs)}"

        case ir.ForLoop(var, sequence, body):
            body_str = "\n".join([deparse_stmt(s, indentation) for s in body])
            code_str = (
                f"for ( {var} in {deparse_expr(sequence)} ) {{\n"
                f"{util.indent(body_str, indentation)}\n}}"
            )

        case _:
            raise Exception("unable to deparse statement " + str(type(stmt)))

    # add optional comments to code_str
    for comment in stmt.comment:
        code_str += f" # {comment}"
    return code_str


def deparse_model(model: ir.Model) -> str:
    body_str = "\n".join([deparse_stmt(s) for s in model.statements])
    return f"model {{\n{util.indent(body_str, 4)}\n}}"
