"""Expression analysis for modifier arguments.

Validators, processors and activators may take a Python expression as an
argument (e.g. ``value <= age - 18`` or ``first_name + ' ' + last_name``).
The compiler uses these helpers to reject unsafe expressions and to find the
other fields an expression reads, so it can order the expression after those
fields have settled.

Inside an expression, ``value`` always denotes the target field's own value.
"""

import ast

VALUE_NAME = "value"

BUILTIN_NAMES = frozenset(
    {
        "True",
        "False",
        "None",
        "abs",
        "min",
        "max",
        "round",
        "int",
        "float",
        "str",
        "len",
        "sum",
        "all",
        "any",
        "bool",
        "lower",
        "upper",
    }
)

SAFE_CALL_NAMES = frozenset(
    {
        "abs",
        "min",
        "max",
        "round",
        "int",
        "float",
        "str",
        "len",
        "sum",
        "all",
        "any",
        "bool",
        "lower",
        "upper",
    }
)

_ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Set,
    ast.Dict,
    ast.Load,
    ast.keyword,
    ast.operator,
    ast.unaryop,
    ast.boolop,
    ast.cmpop,
)
_ALLOWED_BIN_OPS = (
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
)


def extract_field_references(expr: str) -> set[str]:
    """Return the field names an expression reads, excluding ``value``.

    Example:
        >>> sorted(extract_field_references("value <= age - 18 and len(name) > 0"))
        ['age', 'name']
    """
    tree = ast.parse(expr, mode="eval")
    names = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and node.id not in BUILTIN_NAMES:
            names.add(node.id)
    names.discard(VALUE_NAME)
    return names


def validate_expression_syntax(expr: str | None) -> str | None:
    """Return an error message if the expression is invalid or unsafe, else None."""
    if not expr:
        return "expression is empty"

    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as e:
        return f"invalid Python syntax: {e.msg}"

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            return f"unsupported expression element: {type(node).__name__}"

        if isinstance(node, ast.Name) and node.id.startswith("__"):
            return "expression may not reference dunder names"

        if isinstance(node, ast.BinOp) and not isinstance(node.op, _ALLOWED_BIN_OPS):
            return f"operator not allowed: {type(node.op).__name__}"

        if isinstance(node, ast.Dict) and any(key is None for key in node.keys):
            return "dict unpacking is not allowed"

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name):
                return "function calls must be direct names"
            if node.func.id not in SAFE_CALL_NAMES:
                return f"function '{node.func.id}' is not allowed"
            if any(isinstance(arg, ast.Starred) for arg in node.args):
                return "star-args are not allowed"
            if any(kw.arg is None for kw in node.keywords):
                return "keyword splats are not allowed"

    return None
