"""A small JSONPath engine for selecting values from decoded JSON documents.

Expressions start at the root ``$`` and support child names (``.name`` or
``['name']``), array indices (negative ones count from the end), unions
(``[0,2]``), slices (``[1:5:2]``), wildcards (``*``), recursive descent
(``..``) and filters (``[?(@.price < 10 && @.tag == 'x')]``).

A path made only of single names and indices is definite: evaluating it
returns the one value it names and raises :class:`JSONPathError` when that
value is absent. Any other path returns the list of everything it matches.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Union


class JSONPathError(ValueError):
    """Raised for a malformed expression, or a definite path that matches nothing."""


_MISSING = object()
_Key = Union[str, int]
_Expr = Callable[[Any, Any], Any]

_NAME_RE = re.compile(r"[\w\-]+")
_INT_RE = re.compile(r"-?\d+")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_HEX4_RE = re.compile(r"[0-9a-fA-F]{4}")
_KEYWORDS = (("true", True), ("false", False), ("null", None))
_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "/": "/",
    "\\": "\\",
    "'": "'",
    '"': '"',
}


def _child(node: Any, key: _Key) -> Any:
    if isinstance(node, dict):
        name = str(key)
        try:
            return node[name]
        except KeyError:
            raise JSONPathError(f"unknown key {name!r}") from None
    if isinstance(node, list) and isinstance(key, int):
        index = key + len(node) if key < 0 else key
        if 0 <= index < len(node):
            return node[index]
        raise JSONPathError(f"index {key} out of bounds")
    raise JSONPathError(f"cannot select {key!r} from {type(node).__name__}")


def _members(node: Any) -> List[Any]:
    if isinstance(node, dict):
        return [node[key] for key in sorted(node)]
    if isinstance(node, list):
        return list(node)
    return []


def _descendants(node: Any) -> Iterator[Any]:
    yield node
    for member in _members(node):
        yield from _descendants(member)


def _truthy(value: Any) -> bool:
    if value is _MISSING or value is None or value is False:
        return False
    if isinstance(value, list) and not value:
        return False
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(a: Any, b: Any) -> bool:
    if a is _MISSING or b is _MISSING:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def _not_equal(a: Any, b: Any) -> bool:
    if a is _MISSING or b is _MISSING:
        return False
    return not _equal(a, b)


def _ordering(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def ordered(a: Any, b: Any) -> bool:
        if _is_number(a) and _is_number(b):
            return compare(a, b)
        if isinstance(a, str) and isinstance(b, str):
            return compare(a, b)
        return False

    return ordered


# Two-character operators come first so "<" never swallows "<=".
_COMPARISONS = (
    ("==", _equal),
    ("!=", _not_equal),
    ("<=", _ordering(operator.le)),
    (">=", _ordering(operator.ge)),
    ("<", _ordering(operator.lt)),
    (">", _ordering(operator.gt)),
)


class _Children:
    def __init__(self, keys: Sequence[_Key]) -> None:
        self.keys = tuple(keys)
        self.definite = len(self.keys) == 1

    def select(self, node: Any, root: Any) -> Iterator[Any]:
        for key in self.keys:
            try:
                yield _child(node, key)
            except JSONPathError:
                continue

    def one(self, node: Any) -> Any:
        return _child(node, self.keys[0])


class _Wildcard:
    definite = False

    def select(self, node: Any, root: Any) -> Iterable[Any]:
        return _members(node)


class _Slice:
    definite = False

    def __init__(self, start: Optional[int], stop: Optional[int], step: Optional[int]) -> None:
        self.bounds = slice(start, stop, step)

    def select(self, node: Any, root: Any) -> Iterable[Any]:
        return node[self.bounds] if isinstance(node, list) else ()


class _Descend:
    definite = False

    def __init__(self, inner: Any) -> None:
        self.inner = inner

    def select(self, node: Any, root: Any) -> Iterator[Any]:
        for descendant in _descendants(node):
            yield from self.inner.select(descendant, root)


class _Filter:
    definite = False

    def __init__(self, predicate: _Expr) -> None:
        self.predicate = predicate

    def select(self, node: Any, root: Any) -> Iterator[Any]:
        return (m for m in _members(node) if _truthy(self.predicate(m, root)))


def _run(steps: Sequence[Any], node: Any, root: Any, definite: bool) -> Any:
    if definite:
        for step in steps:
            node = step.one(node)
        return node
    nodes = [node]
    for step in steps:
        nodes = [match for current in nodes for match in step.select(current, root)]
    return nodes


def _query(steps: Sequence[Any], node: Any, root: Any, definite: bool) -> Any:
    try:
        return _run(steps, node, root, definite)
    except JSONPathError:
        return _MISSING


class _PathParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def error(self, message: str) -> JSONPathError:
        return JSONPathError(f"{message} at position {self.pos} in {self.text!r}")

    def peek(self) -> str:
        return self.text[self.pos : self.pos + 1]

    def skip_ws(self) -> None:
        while self.peek().isspace():
            self.pos += 1

    def consume(self, token: str) -> bool:
        self.skip_ws()
        if self.text.startswith(token, self.pos):
            self.pos += len(token)
            return True
        return False

    def expect(self, token: str) -> None:
        if not self.consume(token):
            raise self.error(f"expected {token!r}")

    def parse(self) -> List[Any]:
        self.expect("$")
        steps = self.segments()
        self.skip_ws()
        if self.pos != len(self.text):
            raise self.error("unexpected character")
        return steps

    def segments(self) -> List[Any]:
        steps: List[Any] = []
        while True:
            if self.text.startswith("..", self.pos):
                self.pos += 2
                if self.peek() == "[":
                    inner = self.bracket()
                elif self.peek() == "*":
                    self.pos += 1
                    inner = _Wildcard()
                else:
                    inner = _Children((self.name(),))
                steps.append(_Descend(inner))
            elif self.peek() == ".":
                self.pos += 1
                if self.peek() == "*":
                    self.pos += 1
                    steps.append(_Wildcard())
                else:
                    steps.append(_Children((self.name(),)))
            elif self.peek() == "[":
                steps.append(self.bracket())
            else:
                return steps

    def name(self) -> str:
        match = _NAME_RE.match(self.text, self.pos)
        if not match:
            raise self.error("expected a name")
        self.pos = match.end()
        return match.group()

    def integer(self) -> Optional[int]:
        self.skip_ws()
        match = _INT_RE.match(self.text, self.pos)
        if not match:
            return None
        self.pos = match.end()
        return int(match.group())

    def string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chars = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            self.pos += 1
            if ch == quote:
                return "".join(chars)
            if ch != "\\":
                chars.append(ch)
                continue
            escape = self.peek()
            self.pos += 1
            if escape == "u":
                digits = self.text[self.pos : self.pos + 4]
                if not _HEX4_RE.fullmatch(digits):
                    raise self.error("invalid unicode escape")
                chars.append(chr(int(digits, 16)))
                self.pos += 4
            elif escape in _ESCAPES:
                chars.append(_ESCAPES[escape])
            else:
                raise self.error("invalid escape")
        raise self.error("unterminated string")

    def bracket(self) -> Any:
        self.expect("[")
        if self.consume("?"):
            self.expect("(")
            predicate = self.or_expr()
            self.expect(")")
            self.expect("]")
            return _Filter(predicate)
        if self.consume("*"):
            self.expect("]")
            return _Wildcard()
        keys: List[_Key] = []
        while True:
            self.skip_ws()
            if self.peek() in ("'", '"'):
                keys.append(self.string())
            else:
                bounds = [self.integer()]
                while self.consume(":"):
                    bounds.append(self.integer())
                if len(bounds) > 1:
                    if keys or len(bounds) > 3:
                        raise self.error("invalid slice")
                    self.expect("]")
                    return self.slice(bounds)
                if bounds[0] is None:
                    raise self.error("expected a key, index or slice")
                keys.append(bounds[0])
            if not self.consume(","):
                self.expect("]")
                return _Children(keys)

    def slice(self, bounds: List[Optional[int]]) -> _Slice:
        start, stop, step = (bounds + [None, None])[:3]
        if step == 0:
            raise self.error("slice step cannot be zero")
        return _Slice(start, stop, step)

    def or_expr(self) -> _Expr:
        left = self.and_expr()
        while self.consume("||"):
            right = self.and_expr()
            left = lambda cur, root, a=left, b=right: (
                _truthy(a(cur, root)) or _truthy(b(cur, root))
            )
        return left

    def and_expr(self) -> _Expr:
        left = self.comparison()
        while self.consume("&&"):
            right = self.comparison()
            left = lambda cur, root, a=left, b=right: (
                _truthy(a(cur, root)) and _truthy(b(cur, root))
            )
        return left

    def comparison(self) -> _Expr:
        left = self.unary()
        self.skip_ws()
        for token, compare in _COMPARISONS:
            if self.text.startswith(token, self.pos):
                self.pos += len(token)
                right = self.unary()
                return lambda cur, root, a=left, b=right, f=compare: f(
                    a(cur, root), b(cur, root)
                )
        return left

    def unary(self) -> _Expr:
        if self.consume("!"):
            operand = self.unary()
            return lambda cur, root, a=operand: not _truthy(a(cur, root))
        return self.primary()

    def primary(self) -> _Expr:
        self.skip_ws()
        ch = self.peek()
        if ch == "(":
            self.pos += 1
            inner = self.or_expr()
            self.expect(")")
            return inner
        if ch in ("'", '"'):
            text = self.string()
            return lambda cur, root, v=text: v
        if ch in ("@", "$"):
            self.pos += 1
            steps = self.segments()
            definite = all(step.definite for step in steps)
            if ch == "@":
                return lambda cur, root: _query(steps, cur, root, definite)
            return lambda cur, root: _query(steps, root, root, definite)
        match = _NUMBER_RE.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            literal = match.group()
            number = float(literal) if any(c in literal for c in ".eE") else int(literal)
            return lambda cur, root, v=number: v
        for word, value in _KEYWORDS:
            end = self.pos + len(word)
            if self.text.startswith(word, self.pos) and not _NAME_RE.match(self.text, end):
                self.pos = end
                return lambda cur, root, v=value: v
        raise self.error("expected an operand")


class JSONPath:
    """A compiled JSONPath expression."""

    def __init__(self, expression: str) -> None:
        if not isinstance(expression, str):
            raise TypeError("JSONPath expression must be a string")
        self.expression = expression
        self._steps = _PathParser(expression).parse()
        self._definite = all(step.definite for step in self._steps)

    def evaluate(self, document: Any) -> Any:
        """Select from ``document``: one value for a definite path, else a list."""
        return _run(self._steps, document, document, self._definite)

    def __str__(self) -> str:
        return self.expression

    def __repr__(self) -> str:
        return f"JSONPath({self.expression!r})"