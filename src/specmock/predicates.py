"""
Closed predicate language for except cases.

A predicate is a single expression written in a small, Python-shaped
grammar and evaluated against the request context:
  - Names: route, query, headers, payload
  - Constants: strings, ints, floats, True, False, None; list/tuple literals
  - Field access: payload.user.name, headers["x-token"], payload.items[0]
  - Boolean ops: and, or, not; conditional expressions
  - Comparisons: == != < <= > >= in, not in, is, is not
  - Arithmetic: + - * / % and unary -/+
  - Calls to a fixed set of helper functions (see FUNCTIONS)

Source is parsed with ``ast`` and checked against this whitelist when the
contract is loaded. Nothing is ever handed to the interpreter's own
evaluator; a tree walker computes the result.
"""

from __future__ import annotations

import ast
import base64
import enum
import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from specmock.errors import UnsafeExpression
from specmock.interpolation import render_value
from specmock.paths import get_value

ROOT_NAMES = frozenset({"route", "query", "headers", "payload"})

SAFE_CONSTANT_TYPES = (str, int, float, bool, type(None))


def _size(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str | list | tuple | Mapping):
        return len(value)
    raise TypeError(f"size() of {type(value).__name__}")


def _text(name: str, method: Callable[[str], str]) -> Callable[[Any], str | None]:
    def apply(value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError(f"{name}() expects a string, got {type(value).__name__}")
        return method(value)

    return apply


def _number(value: Any) -> int | float:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


def _b64decode(value: Any) -> str:
    return base64.b64decode(str(value)).decode("utf-8", errors="replace")


def _startswith(value: Any, prefix: Any) -> bool:
    return isinstance(value, str) and value.startswith(str(prefix))


def _endswith(value: Any, suffix: Any) -> bool:
    return isinstance(value, str) and value.endswith(str(suffix))


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "size": _size,
    "len": _size,
    "lower": _text("lower", str.lower),
    "upper": _text("upper", str.upper),
    "trim": _text("trim", str.strip),
    "number": _number,
    "string": render_value,
    "exists": lambda value: value is not None,
    "startswith": _startswith,
    "endswith": _endswith,
    "b64decode": _b64decode,
}

_BIN_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

_CMP_OPS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_ALLOWED_NODES = (
    ast.BoolOp,
    ast.UnaryOp,
    ast.BinOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Attribute,
    ast.Subscript,
    ast.Constant,
    ast.List,
    ast.Tuple,
)


class Verdict(enum.StrEnum):
    """Outcome of one predicate."""

    ABSTAIN = "abstain"
    PASS = "pass"
    FAIL = "fail"


class PredicateError(RuntimeError):
    """A predicate raised while being evaluated."""


def classify(result: Any) -> Verdict:
    """Map a predicate result to a verdict.

    ``None`` abstains, exactly ``True`` passes, anything else fails.
    """
    if result is None:
        return Verdict.ABSTAIN
    if result is True:
        return Verdict.PASS
    return Verdict.FAIL


class _PredicateValidator(ast.NodeVisitor):
    def visit(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Load | ast.operator | ast.cmpop | ast.boolop | ast.unaryop):
            return None
        if isinstance(node, ast.Expression):
            return self.visit(node.body)
        if not isinstance(node, _ALLOWED_NODES):
            raise UnsafeExpression(f"Disallowed syntax: {type(node).__name__}")
        return super().visit(node)

    def visit_Constant(self, node: ast.Constant) -> Any:  # noqa: N802
        if not isinstance(node.value, SAFE_CONSTANT_TYPES):
            raise UnsafeExpression(f"Disallowed constant: {node.value!r}")

    def visit_Name(self, node: ast.Name) -> Any:  # noqa: N802
        if node.id in FUNCTIONS:
            raise UnsafeExpression(f"Function {node.id}() must be called")
        if node.id not in ROOT_NAMES:
            raise UnsafeExpression(f"Unknown name: {node.id}")

    def visit_Attribute(self, node: ast.Attribute) -> Any:  # noqa: N802
        if node.attr.startswith("_"):
            raise UnsafeExpression("Private attributes are not allowed")
        self.visit(node.value)

    def visit_Call(self, node: ast.Call) -> Any:  # noqa: N802
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            raise UnsafeExpression("Only helper functions may be called")
        if node.keywords or any(isinstance(arg, ast.Starred) for arg in node.args):
            raise UnsafeExpression(f"Only positional arguments are allowed in {node.func.id}()")
        for arg in node.args:
            self.visit(arg)

    def visit_BinOp(self, node: ast.BinOp) -> Any:  # noqa: N802
        if type(node.op) not in _BIN_OPS:
            raise UnsafeExpression(f"Disallowed operator: {type(node.op).__name__}")
        self.visit(node.left)
        self.visit(node.right)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:  # noqa: N802
        if not isinstance(node.op, ast.Not | ast.USub | ast.UAdd):
            raise UnsafeExpression(f"Disallowed operator: {type(node.op).__name__}")
        self.visit(node.operand)

    def visit_Compare(self, node: ast.Compare) -> Any:  # noqa: N802
        for op in node.ops:
            if type(op) not in _CMP_OPS:
                raise UnsafeExpression(f"Disallowed comparison: {type(op).__name__}")
        self.visit(node.left)
        for comparator in node.comparators:
            self.visit(comparator)


def _dotted(node: ast.AST) -> str | None:
    """Return ``a.b.c`` for a pure name/attribute chain, else None."""
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


def _lookup(base: Any, key: Any) -> Any:
    if isinstance(base, Mapping):
        return base.get(key) if isinstance(key, str) else None
    if isinstance(base, list | tuple) and isinstance(key, int) and not isinstance(key, bool):
        return base[key] if -len(base) <= key < len(base) else None
    return None


def _eval(node: ast.AST, scope: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        return scope.get(node.id)

    if isinstance(node, ast.Attribute):
        path = _dotted(node)
        if path is not None:
            return get_value(scope, path, keep_falsy=True)
        return _lookup(_eval(node.value, scope), node.attr)

    if isinstance(node, ast.Subscript):
        return _lookup(_eval(node.value, scope), _eval(node.slice, scope))

    if isinstance(node, ast.List | ast.Tuple):
        return [_eval(each, scope) for each in node.elts]

    if isinstance(node, ast.BoolOp):
        result: Any = None
        for each in node.values:
            result = _eval(each, scope)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    if isinstance(node, ast.UnaryOp):
        operand = _eval(node.operand, scope)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand

    if isinstance(node, ast.BinOp):
        left = _eval(node.left, scope)
        right = _eval(node.right, scope)
        if isinstance(node.op, ast.Mult | ast.Mod) and not (
            isinstance(left, int | float) and isinstance(right, int | float)
        ):
            raise TypeError("Multiplication and modulo only allowed on numbers")
        return _BIN_OPS[type(node.op)](left, right)

    if isinstance(node, ast.Compare):
        left = _eval(node.left, scope)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = _eval(comparator, scope)
            if not _CMP_OPS[type(op)](left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.IfExp):
        branch = node.body if _eval(node.test, scope) else node.orelse
        return _eval(branch, scope)

    if isinstance(node, ast.Call):
        func = node.func
        if not isinstance(func, ast.Name):
            raise UnsafeExpression("Only helper functions may be called")
        args = [_eval(arg, scope) for arg in node.args]
        return FUNCTIONS[func.id](*args)

    raise UnsafeExpression(f"Unhandled syntax: {type(node).__name__}")


@dataclass(frozen=True)
class Predicate:
    """A validated predicate ready to be evaluated against many requests."""

    source: str
    tree: ast.Expression

    def evaluate(self, scope: Mapping[str, Any]) -> Any:
        """Evaluate against ``scope`` (route/query/headers/payload).

        Raises:
            PredicateError: If evaluation raised.
        """
        try:
            return _eval(self.tree.body, scope)
        except UnsafeExpression:
            raise
        except Exception as exc:
            raise PredicateError(f"{self.source!r}: {type(exc).__name__}: {exc}") from exc

    def verdict(self, scope: Mapping[str, Any]) -> Verdict:
        return classify(self.evaluate(scope))


def validate_predicate(source: str) -> ast.Expression:
    """Parse ``source`` and check it against the predicate grammar.

    Raises:
        UnsafeExpression: If the source is not a valid predicate.
    """
    if not isinstance(source, str) or not source.strip():
        raise UnsafeExpression("Predicate must be a non-empty string")
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise UnsafeExpression(f"Invalid predicate syntax in {source!r}: {exc.msg}") from exc
    _PredicateValidator().visit(tree)
    return tree


def parse_predicate(source: str) -> Predicate:
    """Validate ``source`` and wrap it as a :class:`Predicate`."""
    return Predicate(source=source, tree=validate_predicate(source))
