"""
Sandbox - restricted evaluator for processing rules

A rule is the body of a function of one argument, ``row``, written in a
small Python subset:

    amount = number(row['金额'])
    if amount <= 0:
        return ''
    return round(amount * 1.13, 2)

Rules are parsed with ``ast`` and checked against a whitelist, then run by a
tree-walking interpreter. Nothing is handed to ``eval``/``exec``: there are no
imports, loops, function definitions or underscore attributes, the only
callables are the FunctionRegistry entries and a few value methods, and
``row`` is read only.
"""

import ast
import operator
import re
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from sheetmapper.errors import CompileError, RuleRuntimeError
from sheetmapper.transformer.registry import FunctionRegistry

MAX_STRING_LENGTH = 100000
MAX_EXPONENT = 1000
MAX_INT_BITS = 100000

ALLOWED_NODES = (
    # statements
    ast.Module, ast.Assign, ast.AugAssign, ast.If, ast.Return, ast.Expr, ast.Pass,
    # expressions
    ast.Constant, ast.Name, ast.Load, ast.Store, ast.Subscript, ast.Slice,
    ast.Attribute, ast.Call, ast.keyword, ast.BinOp, ast.UnaryOp, ast.BoolOp,
    ast.Compare, ast.IfExp, ast.JoinedStr, ast.FormattedValue,
    ast.List, ast.Tuple, ast.Dict,
    # operators
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.UAdd, ast.USub, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
    ast.In, ast.NotIn, ast.Is, ast.IsNot,
)

BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

STR_METHODS = {
    "strip", "lstrip", "rstrip", "upper", "lower", "title", "capitalize",
    "replace", "split", "startswith", "endswith", "find", "count",
    "isdigit", "isnumeric", "join", "zfill", "ljust", "rjust", "center",
}

# Methods whose integer arguments size the result
SIZED_METHODS = {"zfill", "ljust", "rjust", "center"}


class RowView(Mapping):
    """
    Read-only view of one row, keyed by source field display name

    ``lookup`` is the explicit accessor: it returns None when no column
    matches, trying an exact name first and then a whitespace-trimmed
    comparison. ``row['name']`` applies the documented default and yields
    an empty string for unknown names.
    """

    METHODS = {"get", "keys"}

    def __init__(self, values: Mapping):
        self._values: Dict[str, Any] = dict(values)
        self._trimmed: Optional[Dict[str, str]] = None

    def lookup(self, name: Any) -> Optional[Any]:
        key = str(name)
        if key in self._values:
            return self._values[key]

        if self._trimmed is None:
            self._trimmed = {}
            for original in self._values:
                self._trimmed.setdefault(str(original).strip(), original)

        original = self._trimmed.get(key.strip())
        if original is None:
            return None
        return self._values[original]

    def __getitem__(self, name: Any) -> Any:
        value = self.lookup(name)
        return "" if value is None else value

    def get(self, name: Any, default: Any = None) -> Any:
        value = self.lookup(name)
        return default if value is None else value

    def __contains__(self, name: Any) -> bool:
        return self.lookup(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RowView({self._values!r})"


@dataclass(frozen=True)
class CompiledRule:
    """A validated rule body, ready to run against rows."""

    code: str
    body: Tuple[ast.stmt, ...]


def compile_rule(code: str) -> CompiledRule:
    """
    Parse and validate a rule body.

    Raises:
        CompileError: On syntax errors or constructs outside the subset
    """
    if code is None or not str(code).strip():
        raise CompileError("Rule is empty")

    source = textwrap.dedent(str(code)).strip("\n")

    try:
        tree = ast.parse(source, mode="exec")
    except SyntaxError as e:
        raise CompileError(f"{e.msg} (line {e.lineno})", e.lineno) from e

    _validate(tree)
    return CompiledRule(code=str(code), body=tuple(tree.body))


def _validate(tree: ast.Module) -> None:
    """Reject every node outside the whitelist."""
    call_targets = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}

    for node in ast.walk(tree):
        lineno = getattr(node, "lineno", None)

        if not isinstance(node, ALLOWED_NODES):
            raise CompileError(f"Unsupported syntax: {type(node).__name__}", lineno)

        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise CompileError(f"Names starting with '_' are not allowed: {node.id}", lineno)

        if isinstance(node, ast.Attribute):
            if node.attr.startswith("_"):
                raise CompileError(f"Attribute not allowed: {node.attr}", lineno)
            if id(node) not in call_targets:
                raise CompileError(f"Attribute access is only allowed for method calls: {node.attr}", lineno)

        if isinstance(node, ast.Call) and not isinstance(node.func, (ast.Name, ast.Attribute)):
            raise CompileError("Only named functions and methods can be called", lineno)

        if isinstance(node, ast.keyword) and node.arg is None:
            raise CompileError("Keyword unpacking is not allowed", lineno)

        if isinstance(node, ast.Dict) and any(k is None for k in node.keys):
            raise CompileError("Dict unpacking is not allowed", lineno)

        if isinstance(node, ast.Assign):
            if len(node.targets) != 1 or not isinstance(node.targets[0], ast.Name):
                raise CompileError("Only simple assignments to a name are allowed", lineno)

        if isinstance(node, ast.AugAssign) and not isinstance(node.target, ast.Name):
            raise CompileError("Only simple assignments to a name are allowed", lineno)

        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store) and node.id == "row":
            raise CompileError("'row' is read only", lineno)


class RuleInterpreter:
    """Runs one compiled rule against one row."""

    def __init__(self, row: RowView, functions: FunctionRegistry):
        self.row = row
        self.functions = functions
        self.names: Dict[str, Any] = {}

    def run(self, rule: CompiledRule) -> Any:
        """
        Execute the rule and return its value (None without ``return``).

        Raises:
            RuleRuntimeError: Any failure while evaluating
        """
        try:
            _, value = self._exec_block(rule.body)
            return value
        except RuleRuntimeError:
            raise
        except Exception as e:
            raise RuleRuntimeError(_describe(e)) from e

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _exec_block(self, body) -> Tuple[bool, Any]:
        """Run statements, returns (returned, value)."""
        for stmt in body:
            returned, value = self._exec(stmt)
            if returned:
                return True, value
        return False, None

    def _exec(self, stmt: ast.stmt) -> Tuple[bool, Any]:
        if isinstance(stmt, ast.Return):
            return True, self._eval(stmt.value) if stmt.value is not None else None

        if isinstance(stmt, ast.Assign):
            self.names[stmt.targets[0].id] = self._eval(stmt.value)
        elif isinstance(stmt, ast.AugAssign):
            current = self._name(stmt.target.id)
            self.names[stmt.target.id] = self._binop(stmt.op, current, self._eval(stmt.value))
        elif isinstance(stmt, ast.If):
            branch = stmt.body if self._eval(stmt.test) else stmt.orelse
            return self._exec_block(branch)
        elif isinstance(stmt, ast.Expr):
            self._eval(stmt.value)

        return False, None

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _eval(self, node: ast.expr) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            return self._name(node.id)

        if isinstance(node, ast.Subscript):
            value = self._eval(node.value)
            if isinstance(node.slice, ast.Slice):
                key = slice(
                    self._eval(node.slice.lower) if node.slice.lower else None,
                    self._eval(node.slice.upper) if node.slice.upper else None,
                    self._eval(node.slice.step) if node.slice.step else None,
                )
            else:
                key = self._eval(node.slice)
            return value[key]

        if isinstance(node, ast.BinOp):
            return self._binop(node.op, self._eval(node.left), self._eval(node.right))

        if isinstance(node, ast.UnaryOp):
            return UNARY_OPS[type(node.op)](self._eval(node.operand))

        if isinstance(node, ast.BoolOp):
            # Python semantics: the deciding operand is the result
            value = None
            for operand in node.values:
                value = self._eval(operand)
                if isinstance(node.op, ast.And) and not value:
                    return value
                if isinstance(node.op, ast.Or) and value:
                    return value
            return value

        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator)
                if not COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            return self._eval(node.body) if self._eval(node.test) else self._eval(node.orelse)

        if isinstance(node, ast.Call):
            return self._call(node)

        if isinstance(node, ast.JoinedStr):
            return self._check_size("".join(str(self._eval(v)) for v in node.values))

        if isinstance(node, ast.FormattedValue):
            return self._format(node)

        if isinstance(node, ast.List):
            return [self._eval(e) for e in node.elts]

        if isinstance(node, ast.Tuple):
            return tuple(self._eval(e) for e in node.elts)

        if isinstance(node, ast.Dict):
            return {self._eval(k): self._eval(v) for k, v in zip(node.keys, node.values)}

        raise RuleRuntimeError(f"Unsupported expression: {type(node).__name__}")

    def _name(self, name: str) -> Any:
        if name in self.names:
            return self.names[name]
        if name == "row":
            return self.row
        raise NameError(f"name '{name}' is not defined")

    def _binop(self, op: ast.operator, left: Any, right: Any) -> Any:
        if isinstance(op, ast.Pow) and isinstance(right, (int, float)) and abs(right) > MAX_EXPONENT:
            raise RuleRuntimeError(f"exponent too large: {right}")

        if _is_int(left) and _is_int(right):
            # Estimated size of the result in bits, checked before computing
            if isinstance(op, ast.Pow) and right > 0:
                bits = left.bit_length() * right
            elif isinstance(op, ast.Mult):
                bits = left.bit_length() + right.bit_length()
            else:
                bits = 0
            if bits > MAX_INT_BITS:
                raise RuleRuntimeError("number too large")

        if isinstance(op, ast.Mult):
            for seq, count in ((left, right), (right, left)):
                if isinstance(seq, (str, list, tuple)) and isinstance(count, int):
                    if len(seq) * count > MAX_STRING_LENGTH:
                        raise RuleRuntimeError("result too large")

        return self._check_size(BIN_OPS[type(op)](left, right))

    def _call(self, node: ast.Call) -> Any:
        args = [self._eval(a) for a in node.args]
        kwargs = {k.arg: self._eval(k.value) for k in node.keywords}

        if isinstance(node.func, ast.Name):
            func = self.functions.get(node.func.id)
            if func is None:
                raise NameError(f"function '{node.func.id}' is not available")
            return self._check_size(func(*args, **kwargs))

        target = self._eval(node.func.value)
        method = node.func.attr

        if isinstance(target, RowView):
            allowed = RowView.METHODS
        elif isinstance(target, str):
            allowed = STR_METHODS
        elif isinstance(target, dict):
            allowed = {"get", "keys", "values", "items"}
        elif isinstance(target, (list, tuple)):
            allowed = {"index", "count"}
        else:
            allowed = set()

        if method not in allowed:
            raise AttributeError(f"'{type(target).__name__}' has no allowed method '{method}'")

        if method in SIZED_METHODS and any(
            isinstance(a, int) and a > MAX_STRING_LENGTH for a in args
        ):
            raise RuleRuntimeError("result too large")

        return self._check_size(getattr(target, method)(*args, **kwargs))

    def _format(self, node: ast.FormattedValue) -> str:
        value = self._eval(node.value)

        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        elif node.conversion == ord("s"):
            value = str(value)

        spec = self._eval(node.format_spec) if node.format_spec else ""
        if any(int(n) > MAX_STRING_LENGTH for n in re.findall(r"\d+", spec)):
            raise RuleRuntimeError("format width too large")

        return format(value, spec)

    @staticmethod
    def _check_size(value: Any) -> Any:
        if isinstance(value, (str, list, tuple)) and len(value) > MAX_STRING_LENGTH:
            raise RuleRuntimeError("result too large")
        if _is_int(value) and value.bit_length() > MAX_INT_BITS:
            raise RuleRuntimeError("number too large")
        return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _describe(error: Exception) -> str:
    message = str(error)
    if isinstance(error, KeyError):
        message = f"missing key {message}"
    return message or type(error).__name__
