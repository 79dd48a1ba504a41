from . import ir
from . import utilities as util


def find_variables_expr(expr: ir.Expr) -> list[str]:
    """
    Find the names of variables in an (unresolved) expression.
    Loop variables are included.
    """
    match expr:
        case ir.Literal(val):
            return []
        case ir.Colon():
            return []
        case ir.Var(name):
            return [name]
        case ir.Index(name, indices):
            return [name] + util.flatten([find_variables_expr(idx) for idx in indices])
        case ir.Range(start, stop):
            return find_variables_expr(start) + find_variables_expr(stop)
        case ir.Negate(val):
            return find_variables_expr(val)
        case ir.AddOp(left, right) | ir.SubOp(left, right) | ir.MulOp(left, right):
            return find_variables_expr(left) + find_variables_expr(right)
        case ir.DivOp(num, den):
            return find_variables_expr(num) + find_variables_expr(den)
        case ir.PowOp(base, exponent):
            return find_variables_expr(base) + find_variables_expr(exponent)
        case ir.Call(func_name, arguments):
            return util.flatten([find_variables_expr(arg) for arg in arguments])
        case ir.Ref(var_name):
            return [var_name.name]
        case ir.RefArray(var_names, shape):
            return [vn.name for vn in var_names]
        case _:
            raise Exception("could not find variables in expression", expr)


def find_variables_dist(dist: ir.Dist) -> list[str]:
    bounds = [b for b in [dist.lower, dist.upper] if b is not None]
    return util.flatten([find_variables_expr(e) for e in [*dist.params, *bounds]])


def find_variables_stmt(stmt: ir.Stmt) -> list[str]:
    """
    Find variables in statements
    """
    match stmt:
        case ir.Sample(lhs, dist):
            return find_variables_expr(lhs) + find_variables_dist(dist)
        case ir.Assign(lhs, rhs):
            return find_variables_expr(lhs) + find_variables_expr(rhs)
        case ir.ForLoop(var, sequence, body):
            seq_vars = find_variables_expr(sequence)
            body_vars = [v for s in body for v in find_variables_stmt(s)]
            return [var] + seq_vars + body_vars
        case _:
            raise Exception("could not find variables in statement " + str(stmt))


def find_loop_vars(stmts: list[ir.Stmt]) -> list[str]:
    loop_vars = []
    for stmt in stmts:
        if isinstance(stmt, ir.ForLoop):
            loop_vars.append(stmt.var)
            loop_vars += find_loop_vars(stmt.body)
    return util.unique_stable(loop_vars)


def find_defined_names(stmts: list[ir.Stmt]) -> list[str]:
    """names of variables that appear on a left-hand side"""
    names = []
    for stmt in stmts:
        match stmt:
            case ir.Sample(ir.Var(name) | ir.Index(name, _), _):
                names.append(name)
            case ir.Assign(ir.Var(name) | ir.Index(name, _), _):
                names.append(name)
            case ir.ForLoop(var, sequence, body):
                names += find_defined_names(body)
    return util.unique_stable(names)


def find_model_variables(model: ir.Model) -> list[str]:
    """all variable names in a model, excluding loop variables"""
    names = util.unique_stable(util.flatten([find_variables_stmt(s) for s in model.statements]))
    loop_vars = set(find_loop_vars(model.statements))
    return [n for n in names if n not in loop_vars]


def find_refs(expr: ir.Expr) -> list[ir.VarName]:
    """
    Find the variable identities in a resolved expression.
    """
    match expr:
        case ir.Literal(val):
            return []
        case ir.Ref(var_name):
            return [var_name]
        case ir.RefArray(var_names, shape):
            return list(var_names)
        case ir.Negate(val):
            return find_refs(val)
        case ir.AddOp(left, right) | ir.SubOp(left, right) | ir.MulOp(left, right):
            return find_refs(left) + find_refs(right)
        case ir.DivOp(num, den):
            return find_refs(num) + find_refs(den)
        case ir.PowOp(base, exponent):
            return find_refs(base) + find_refs(exponent)
        case ir.Call(func_name, arguments):
            return util.flatten([find_refs(arg) for arg in arguments])
        case _:
            raise Exception("could not find references in unresolved expression", expr)


def find_refs_dist(dist: ir.Dist) -> list[ir.VarName]:
    bounds = [b for b in [dist.lower, dist.upper] if b is not None]
    return util.flatten([find_refs(e) for e in [*dist.params, *bounds]])


def find_calls(expr: ir.Expr) -> list[str]:
    """names of the functions called in an expression"""
    match expr:
        case ir.Call(func_name, arguments):
            return [func_name] + util.flatten([find_calls(arg) for arg in arguments])
        case ir.Negate(val):
            return find_calls(val)
        case ir.AddOp(left, right) | ir.SubOp(left, right) | ir.MulOp(left, right):
            return find_calls(left) + find_calls(right)
        case ir.DivOp(num, den):
            return find_calls(num) + find_calls(den)
        case ir.PowOp(base, exponent):
            return find_calls(base) + find_calls(exponent)
        case ir.Index(name, indices):
            return util.flatten([find_calls(idx) for idx in indices])
        case ir.Range(start, stop):
            return find_calls(start) + find_calls(stop)
        case _:
            return []
