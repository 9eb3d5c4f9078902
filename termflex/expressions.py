# termflex/expressions.py
"""
Template expressions: ``{{ count + 1 }}``, ``{{ len(items) > 0 ? "yes" : "no" }}``.

The expression language is a small, side-effect free subset evaluated
against a state snapshot:

- literals: numbers, strings, ``true``/``false``, ``nil``/``null``, lists, maps
- variables are state keys; undefined variables evaluate to ``nil``
- ``$`` is the whole state; ``a.b`` and ``a[0]``/``a.0`` index into maps and lists
- operators: arithmetic, comparison, ``in``, ``&&``/``and``, ``||``/``or``,
  ``!``/``not`` and the conditional ``cond ? a : b``
- functions: ``len``, ``index``, ``True``, ``False``, ``Empty``, ``NotNil``, ``P_``

Source text is first rewritten into Python syntax, parsed with ``ast`` and
checked against an allow-list of node types. Evaluation walks the tree
directly; nothing is ever passed to ``eval``. Compiled trees are cached by
raw expression text with a bounded time-to-live.
"""

import ast
import logging
import operator
import re
from collections.abc import Mapping, Sequence, Sized
from typing import Any, Callable, Dict, List, Optional

from .cache import LRUCache
from .exceptions import ExpressionError

logger = logging.getLogger(__name__)

STATEMENT_RE = re.compile(r"\{\{([\s\S]*?)\}\}")

STATE_NAME = "__state__"

_TOKEN_RE = re.compile(
    r"""
    (?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
    |(?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*|\$)
    |(?P<op>==|!=|<=|>=|&&|\|\||\*\*|//|[-+*/%<>!?:.,()\[\]{}])
    """,
    re.VERBOSE,
)

_WORDS = {
    "nil": "None",
    "null": "None",
    "true": "True",
    "false": "False",
}

_OPEN = {"(": ")", "[": "]", "{": "}"}


def contains_expression(text: Any) -> bool:
    return isinstance(text, str) and "{{" in text and "}}" in text


# --- Built-in functions ---

def _fn_len(value: Any = None) -> int:
    if isinstance(value, Sized) and not isinstance(value, (bytes, bytearray)):
        return len(value)
    return 0


def _fn_index(container: Any = None, key: Any = None) -> Any:
    if key is None:
        raise ValueError("index function requires 2 arguments")
    if not isinstance(key, str):
        raise ValueError("index key must be a string")
    if isinstance(container, Mapping):
        return container.get(key)
    return None


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() not in ("false", "0")
    if isinstance(value, int):
        return value != 0
    return False


def _fn_true(*args: Any) -> bool:
    return _truthy(args[0]) if args else False


def _fn_false(*args: Any) -> bool:
    return not _truthy(args[0]) if args else True


def _fn_empty(*args: Any) -> bool:
    if not args or args[0] is None:
        return True
    value = args[0]
    if isinstance(value, bool):
        return not value
    if isinstance(value, (str, int, float)):
        return not value
    if isinstance(value, (Mapping, list, tuple)):
        return len(value) == 0
    return False


def _fn_not_nil(*args: Any) -> bool:
    return bool(args) and args[0] is not None


def _fn_process_placeholder(*args: Any) -> None:
    # process calls are not evaluated inside templates
    return None


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": _fn_len,
    "index": _fn_index,
    "True": _fn_true,
    "False": _fn_false,
    "Empty": _fn_empty,
    "NotNil": _fn_not_nil,
    "P_": _fn_process_placeholder,
}


# --- Source rewriting ---

def _tokenize(source: str) -> List[str]:
    tokens: List[str] = []
    pos = 0
    length = len(source)
    while pos < length:
        if source[pos].isspace():
            pos += 1
            continue
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionError(source, f"unexpected character {source[pos]!r} at {pos}")
        text = match.group(0)
        if match.lastgroup == "number" and tokens and tokens[-1] == "." and "." in text:
            # "items.0.1" is two index steps, not the float 0.1
            head, _, tail = text.partition(".")
            tokens.extend([head, ".", tail])
        else:
            tokens.append(text)
        pos = match.end()
    return tokens


def _rewrite_tokens(tokens: List[str]) -> List[str]:
    out: List[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok == "&&":
            out.append("and")
        elif tok == "||":
            out.append("or")
        elif tok == "!":
            out.append("not")
        elif tok == "$":
            out.append(STATE_NAME)
        elif tok in _WORDS:
            out.append(_WORDS[tok])
        elif (
            tok == "."
            and i + 1 < len(tokens)
            and tokens[i + 1].isdigit()
            and out
            and (out[-1][-1].isalnum() or out[-1][-1] in "_)]}")
            and out[-1] not in ("and", "or", "not", "in")
        ):
            out.append(f"[{tokens[i + 1]}]")
            i += 1
        else:
            out.append(tok)
        i += 1
    return out


def _split_top(tokens: List[str], separator: str) -> List[List[str]]:
    parts: List[List[str]] = [[]]
    depth = 0
    for tok in tokens:
        if tok in _OPEN:
            depth += 1
        elif tok in (")", "]", "}"):
            depth -= 1
        if tok == separator and depth == 0:
            parts.append([])
        else:
            parts[-1].append(tok)
    return parts


def _conditional(atoms: List[str], source: str) -> str:
    if "?" not in atoms:
        return " ".join(atoms)
    q = atoms.index("?")
    nested = 0
    colon = -1
    for k in range(q + 1, len(atoms)):
        if atoms[k] == "?":
            nested += 1
        elif atoms[k] == ":":
            if nested == 0:
                colon = k
                break
            nested -= 1
    if colon < 0 or q == 0:
        raise ExpressionError(source, "malformed conditional expression")
    condition = " ".join(atoms[:q])
    when_true = _conditional(atoms[q + 1:colon], source)
    when_false = _conditional(atoms[colon + 1:], source)
    return f"({when_true}) if ({condition}) else ({when_false})"


def _convert(tokens: List[str], source: str) -> str:
    atoms: List[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok in _OPEN:
            close = _OPEN[tok]
            depth = 0
            j = i
            while j < len(tokens):
                if tokens[j] in _OPEN:
                    depth += 1
                elif tokens[j] in (")", "]", "}"):
                    depth -= 1
                    if depth == 0:
                        break
                j += 1
            if j >= len(tokens) or tokens[j] != close:
                raise ExpressionError(source, f"unbalanced {tok!r}")
            pieces = _split_top(tokens[i + 1:j], ",")
            inner = ", ".join(_convert(p, source) for p in pieces if p)
            atoms.append(f"{tok}{inner}{close}")
            i = j + 1
            continue
        if tok in (")", "]", "}"):
            raise ExpressionError(source, f"unbalanced {tok!r}")
        atoms.append(tok)
        i += 1
    return _conditional(atoms, source)


def to_python_source(source: str) -> str:
    """Rewrite template expression syntax into an equivalent Python expression."""
    tokens = _rewrite_tokens(_tokenize(source))
    if not tokens:
        raise ExpressionError(source, "empty expression")
    return _convert(tokens, source)


# --- Compilation ---

_ALLOWED_NODES = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.BinOp,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.Compare,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.IfExp,
    ast.Call,
    ast.List,
    ast.Tuple,
    ast.Dict,
)

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_MAX_POWER = 64


def _function_name(func: ast.AST) -> Optional[str]:
    if isinstance(func, ast.Name) and func.id in FUNCTIONS:
        return func.id
    # True(...) and False(...) parse as calls on boolean constants
    if isinstance(func, ast.Constant) and isinstance(func.value, bool):
        return "True" if func.value else "False"
    return None


def _check(tree: ast.AST, source: str) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ExpressionError(source, f"unsupported syntax: {type(node).__name__}")
        if isinstance(node, ast.Call):
            if node.keywords:
                raise ExpressionError(source, "keyword arguments are not supported")
            if _function_name(node.func) is None:
                raise ExpressionError(source, "unknown function")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ExpressionError(source, f"invalid member {node.attr!r}")


class CompiledExpression:
    """A checked expression tree, ready to evaluate against any state."""

    def __init__(self, source: str, tree: ast.Expression):
        self.source = source
        self.tree = tree

    def evaluate(self, state: Mapping) -> Any:
        try:
            return self._eval(self.tree.body, state)
        except ExpressionError:
            raise
        except Exception as e:
            raise ExpressionError(self.source, f"{type(e).__name__}: {e}") from e

    def _eval(self, node: ast.AST, state: Mapping) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id == STATE_NAME:
                return state
            return state.get(node.id)

        if isinstance(node, ast.Attribute):
            return self._member(self._eval(node.value, state), node.attr)

        if isinstance(node, ast.Subscript):
            container = self._eval(node.value, state)
            if isinstance(node.slice, ast.Slice):
                if container is None:
                    return None
                lower = self._eval(node.slice.lower, state) if node.slice.lower else None
                upper = self._eval(node.slice.upper, state) if node.slice.upper else None
                step = self._eval(node.slice.step, state) if node.slice.step else None
                return container[lower:upper:step]
            return self._member(container, self._eval(node.slice, state))

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value, state)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value, state)
                if result:
                    return result
            return result

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand, state)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, ast.USub):
                return -operand
            return +operand

        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, state)
            right = self._eval(node.right, state)
            if isinstance(node.op, ast.Pow) and isinstance(right, (int, float)) and abs(right) > _MAX_POWER:
                raise ExpressionError(self.source, "exponent too large")
            if isinstance(node.op, ast.Add) and (isinstance(left, str) != isinstance(right, str)):
                raise ExpressionError(self.source, "cannot add a string and a non-string")
            return _BIN_OPS[type(node.op)](left, right)

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, state)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, state)
                if not _COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self._eval(node.test, state):
                return self._eval(node.body, state)
            return self._eval(node.orelse, state)

        if isinstance(node, ast.Call):
            func = FUNCTIONS[_function_name(node.func)]
            return func(*[self._eval(arg, state) for arg in node.args])

        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(elt, state) for elt in node.elts]

        if isinstance(node, ast.Dict):
            return {
                self._eval(k, state): self._eval(v, state)
                for k, v in zip(node.keys, node.values)
            }

        raise ExpressionError(self.source, f"unsupported syntax: {type(node).__name__}")

    @staticmethod
    def _member(container: Any, key: Any) -> Any:
        if container is None:
            return None
        if isinstance(container, Mapping):
            if key in container:
                return container[key]
            return container.get(str(key))
        if isinstance(container, Sequence):
            if isinstance(key, bool) or not isinstance(key, int):
                raise TypeError(f"sequence index must be an integer, not {type(key).__name__}")
            if -len(container) <= key < len(container):
                return container[key]
            return None
        raise TypeError(f"cannot index {type(container).__name__}")

    def __repr__(self):
        return f"CompiledExpression({self.source!r})"


def compile_expression(source: str) -> CompiledExpression:
    """
    Compile template expression text.

    :raises ExpressionError: on syntax errors or disallowed constructs.
    """
    text = source.strip()
    python_source = to_python_source(text)
    try:
        tree = ast.parse(python_source, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(source, f"syntax error: {e.msg}") from e
    _check(tree, source)
    return CompiledExpression(text, tree)


class ExpressionCache:
    """
    Compiled expressions keyed by raw expression text, with a bounded TTL.

    Only compilation is cached: the same text evaluated against different
    state always re-evaluates.
    """

    def __init__(self, max_size: int = 1024, ttl_seconds: Optional[float] = 300.0):
        self._cache: LRUCache[CompiledExpression] = LRUCache(max_size=max_size, ttl_seconds=ttl_seconds)

    def get(self, source: str) -> CompiledExpression:
        return self._cache.get_or_set(source, lambda: compile_expression(source))

    def evaluate(self, source: str, state: Mapping) -> Any:
        return self.get(source).evaluate(state)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self):
        return self._cache.stats()

    def __len__(self) -> int:
        return len(self._cache)


__all__ = [
    "STATEMENT_RE",
    "FUNCTIONS",
    "contains_expression",
    "to_python_source",
    "compile_expression",
    "CompiledExpression",
    "ExpressionCache",
]
