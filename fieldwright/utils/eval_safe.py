"""Restricted expression evaluation for formula and condition modifiers.

Only literals, arithmetic, comparisons, boolean logic, conditional
expressions and a small set of builtins are evaluated. Attribute access,
subscripts, imports and lambdas are rejected.
"""

import ast
import operator
from typing import Any

SAFE_BUILTINS: dict[str, Any] = {
    "True": True,
    "False": False,
    "None": None,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "len": len,
    "sum": sum,
    "all": all,
    "any": any,
    "bool": bool,
    "lower": lambda s: str(s).lower(),
    "upper": lambda s: str(s).upper(),
}


class FormulaError(Exception):
    """Raised when an expression cannot be evaluated."""


_BIN_OPS: dict[type[ast.operator], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Any] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}
_CMP_OPS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


def _eval_node(node: ast.AST, scope: dict[str, Any]) -> Any:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, scope)

    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        if node.id.startswith("__"):
            raise FormulaError("dunder names are not allowed in expressions")
        if node.id in scope:
            return scope[node.id]
        if node.id in SAFE_BUILTINS:
            return SAFE_BUILTINS[node.id]
        raise FormulaError(f"Unknown name '{node.id}' in expression")

    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        items = [_eval_node(elt, scope) for elt in node.elts]
        if isinstance(node, ast.Tuple):
            return tuple(items)
        if isinstance(node, ast.Set):
            return set(items)
        return items

    if isinstance(node, ast.Dict):
        if any(key is None for key in node.keys):
            raise FormulaError("Dict unpacking is not allowed")
        return {
            _eval_node(key, scope): _eval_node(val, scope)
            for key, val in zip(node.keys, node.values)
        }

    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise FormulaError(f"Unary operator not allowed: {type(node.op).__name__}")
        return op(_eval_node(node.operand, scope))

    if isinstance(node, ast.BinOp):
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise FormulaError(f"Binary operator not allowed: {type(node.op).__name__}")
        return op(_eval_node(node.left, scope), _eval_node(node.right, scope))

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result: Any = True
            for value in node.values:
                result = _eval_node(value, scope)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = _eval_node(value, scope)
            if result:
                return result
        return result

    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, scope)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = _CMP_OPS.get(type(op_node))
            if op is None:
                raise FormulaError(
                    f"Comparison operator not allowed: {type(op_node).__name__}"
                )
            right = _eval_node(comparator, scope)
            if not op(left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.IfExp):
        if _eval_node(node.test, scope):
            return _eval_node(node.body, scope)
        return _eval_node(node.orelse, scope)

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name):
            raise FormulaError("Only direct function calls are allowed")
        func = SAFE_BUILTINS.get(node.func.id)
        if not callable(func):
            raise FormulaError(f"Function '{node.func.id}' is not allowed")
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise FormulaError("Star-args are not allowed")
            args.append(_eval_node(arg, scope))
        kwargs = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise FormulaError("Keyword splats are not allowed")
            kwargs[kw.arg] = _eval_node(kw.value, scope)
        return func(*args, **kwargs)

    raise FormulaError(f"Unsupported expression element: {type(node).__name__}")


def eval_safe(expression: str, scope: dict[str, Any]) -> Any:
    """Evaluate an expression against a mapping of names to values.

    Example:
        >>> eval_safe("max(0, age - 26)", {"age": 45})
        19

    Raises:
        FormulaError: If parsing or evaluation fails
    """
    try:
        tree = ast.parse(expression, mode="eval")
        return _eval_node(tree, dict(scope))
    except FormulaError:
        raise
    except Exception as e:
        raise FormulaError(f"Failed to evaluate '{expression}': {e}") from e


def eval_condition(condition: str, scope: dict[str, Any]) -> bool:
    """Evaluate a boolean condition; evaluation errors propagate as FormulaError."""
    return bool(eval_safe(condition, scope))
