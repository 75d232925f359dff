# src/nodeflow/engine/expressions.py
"""Expression resolver for ``{{ ... }}`` field mappings.

A field value may embed any number of expressions between literal text:

    "Hello {{ $json.firstName }} {{ $json.lastName }}"

Each expression is a path rooted at a selector, followed by property and
index accessors:

    template   := ( literal | "{{" expression "}}" )*
    expression := root accessor*
    root       := NAME | "$node" "[" STRING "]"
    accessor   := "." NAME | "." INT | "[" INT "]" | "[" STRING "]"

Roots:
    $json           current-step input (falls back to the trigger payload)
    trigger         trigger payload
    nodes.<id>      output of an upstream node, by id
    $node["Step"]   output of an upstream node, by step name (``.json`` is the output)
    $env.KEY        environment value
    variables.x     workflow variables
    $now, $today    current instant / date from the context clock
    $randomId       fresh identifier on every call
    $executionId, $workflowId

The pipeline has three phases:
1. Scanning: find ``{{``/``}}`` spans, honoring quotes inside expressions
2. Parsing: tokenize and parse each span into a PathExpression
3. Evaluation: walk the path against a DataContext

A path that cannot be followed (missing key, index out of range, wrong
container type, unknown root) evaluates to the UNRESOLVED sentinel rather
than raising. Only malformed syntax raises ExpressionSyntaxError.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from functools import lru_cache
from typing import Any, Final, TypeAlias
from uuid import uuid4

from nodeflow.contracts import ErrorKind, ExpressionSyntaxError
from nodeflow.engine.clock import DEFAULT_CLOCK, Clock

OPEN: Final = "{{"
CLOSE: Final = "}}"


class _Unresolved:
    """Marker for a path that could not be followed at resolution time."""

    _instance: _Unresolved | None = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Unresolved:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Unresolved:
        return self


UNRESOLVED: Final = _Unresolved()


def _random_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class DataContext:
    """Run-time data an expression is resolved against.

    ``input`` is the current step's input, exposed as ``$json``. When it is
    left UNRESOLVED, ``$json`` falls back to ``trigger["json"]`` and then to
    the trigger payload itself.
    """

    trigger: Any = None
    nodes: Mapping[str, Any] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    clock: Clock = DEFAULT_CLOCK
    random: Callable[[], str] = _random_id
    input: Any = UNRESOLVED
    variables: Mapping[str, Any] = field(default_factory=dict)
    execution_id: str | None = None
    workflow_id: str | None = None
    node_names: Mapping[str, str] = field(default_factory=dict)

    def current_input(self) -> Any:
        if self.input is not UNRESOLVED:
            return self.input
        if isinstance(self.trigger, Mapping) and "json" in self.trigger:
            return self.trigger["json"]
        if self.trigger is None:
            return UNRESOLVED
        return self.trigger

    def node_output(self, name_or_id: str) -> Any:
        node_id = self.node_names.get(name_or_id, name_or_id)
        if node_id in self.nodes:
            return self.nodes[node_id]
        return UNRESOLVED


# =============================================================================
# Tokenizer
# =============================================================================


class TokenKind(StrEnum):
    NAME = "name"
    INT = "int"
    STRING = "string"
    DOT = "."
    LBRACKET = "["
    RBRACKET = "]"
    END = "end"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str | int
    position: int


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}
_PUNCTUATION = {".": TokenKind.DOT, "[": TokenKind.LBRACKET, "]": TokenKind.RBRACKET}


def _is_name_start(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$-"


def tokenize(source: str) -> list[Token]:
    """Split an expression body into tokens, always ending with END.

    Raises:
        ExpressionSyntaxError: On an unexpected character or unterminated string
    """
    tokens: list[Token] = []
    i = 0
    length = len(source)
    while i < length:
        ch = source[i]
        if ch.isspace():
            i += 1
        elif ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch, i))
            i += 1
        elif ch in "\"'":
            start = i
            value, i = _read_string(source, i)
            tokens.append(Token(TokenKind.STRING, value, start))
        elif _is_name_start(ch):
            start = i
            while i < length and _is_name_char(source[i]):
                i += 1
            word = source[start:i]
            if word.isascii() and word.isdigit():
                tokens.append(Token(TokenKind.INT, int(word), start))
            else:
                tokens.append(Token(TokenKind.NAME, word, start))
        else:
            raise ExpressionSyntaxError(f"Unexpected character {ch!r}", expression=source, position=i)
    tokens.append(Token(TokenKind.END, "", length))
    return tokens


def _read_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    chars: list[str] = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\" and i + 1 < len(source):
            nxt = source[i + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            i += 2
        elif ch == quote:
            return "".join(chars), i + 1
        else:
            chars.append(ch)
            i += 1
    raise ExpressionSyntaxError("Unterminated string literal", expression=source, position=start)


# =============================================================================
# Parser
# =============================================================================


@dataclass(frozen=True, slots=True)
class PathExpression:
    """A parsed expression: a root selector followed by accessor keys."""

    root: str
    path: tuple[str | int, ...]
    source: str


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens = tokenize(source)
        self._pos = 0

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _expect(self, *kinds: TokenKind) -> Token:
        token = self._advance()
        if token.kind not in kinds:
            wanted = " or ".join(k.value for k in kinds)
            raise ExpressionSyntaxError(
                f"Expected {wanted}, found {token.kind.value} {token.value!r}",
                expression=self._source,
                position=token.position,
            )
        return token

    def parse(self) -> PathExpression:
        if self._peek().kind == TokenKind.END:
            raise ExpressionSyntaxError("Empty expression", expression=self._source, position=0)
        root_token = self._expect(TokenKind.NAME)
        root = str(root_token.value)
        path: list[str | int] = []

        if root == "$node":
            if self._peek().kind != TokenKind.LBRACKET:
                raise ExpressionSyntaxError(
                    '$node must be followed by ["Step Name"]',
                    expression=self._source,
                    position=self._peek().position,
                )
            self._advance()
            path.append(self._expect(TokenKind.STRING).value)
            self._expect(TokenKind.RBRACKET)

        while self._peek().kind != TokenKind.END:
            token = self._advance()
            if token.kind == TokenKind.DOT:
                path.append(self._expect(TokenKind.NAME, TokenKind.INT).value)
            elif token.kind == TokenKind.LBRACKET:
                path.append(self._expect(TokenKind.INT, TokenKind.STRING).value)
                self._expect(TokenKind.RBRACKET)
            else:
                raise ExpressionSyntaxError(
                    f"Unexpected {token.kind.value} {token.value!r}",
                    expression=self._source,
                    position=token.position,
                )
        return PathExpression(root=root, path=tuple(path), source=self._source.strip())


def parse_expression(source: str) -> PathExpression:
    """Parse the body of one ``{{ ... }}`` span.

    Raises:
        ExpressionSyntaxError: If the body is not a valid path expression
    """
    return _Parser(source).parse()


# =============================================================================
# Template scanning
# =============================================================================


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class ExpressionSpan:
    """One ``{{ ... }}`` occurrence; ``raw`` includes the delimiters."""

    expression: PathExpression
    start: int
    end: int
    raw: str


TemplatePart: TypeAlias = Literal | ExpressionSpan


def _find_close(template: str, pos: int) -> int:
    quote: str | None = None
    i = pos
    while i < len(template):
        ch = template[i]
        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif template.startswith(CLOSE, i):
            return i
        i += 1
    return -1


def split_spans(template: str) -> list[tuple[int, int]]:
    """Locate ``{{ ... }}`` spans as (start, end) offsets, end exclusive.

    Purely lexical: bodies are not parsed. An opening ``{{`` with no
    matching ``}}`` is literal text.
    """
    spans: list[tuple[int, int]] = []
    i = 0
    while True:
        start = template.find(OPEN, i)
        if start < 0:
            return spans
        close = _find_close(template, start + len(OPEN))
        if close < 0:
            return spans
        end = close + len(CLOSE)
        spans.append((start, end))
        i = end


def contains_expression(value: Any) -> bool:
    return isinstance(value, str) and bool(split_spans(value))


@lru_cache(maxsize=2048)
def parse_template(template: str) -> tuple[TemplatePart, ...]:
    """Split a field value into literal text and parsed expression spans.

    Raises:
        ExpressionSyntaxError: If any span body is malformed
    """
    parts: list[TemplatePart] = []
    cursor = 0
    for start, end in split_spans(template):
        if start > cursor:
            parts.append(Literal(template[cursor:start]))
        body = template[start + len(OPEN) : end - len(CLOSE)]
        parts.append(ExpressionSpan(parse_expression(body), start, end, template[start:end]))
        cursor = end
    if cursor < len(template):
        parts.append(Literal(template[cursor:]))
    return tuple(parts)


def substitute_spans(template: str, replacement: str) -> str:
    """Replace every expression span with a fixed token, leaving literals intact."""
    out: list[str] = []
    cursor = 0
    for start, end in split_spans(template):
        out.append(template[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(template[cursor:])
    return "".join(out)


# =============================================================================
# Evaluation
# =============================================================================


def _walk(value: Any, path: tuple[str | int, ...]) -> Any:
    for key in path:
        if value is UNRESOLVED:
            return UNRESOLVED
        if isinstance(value, Mapping):
            if key in value:
                value = value[key]
            elif isinstance(key, int) and str(key) in value:
                value = value[str(key)]
            else:
                return UNRESOLVED
        elif isinstance(value, list | tuple):
            if isinstance(key, int):
                index = key
            elif key.isascii() and key.isdigit():
                index = int(key)
            else:
                return UNRESOLVED
            if index >= len(value):
                return UNRESOLVED
            value = value[index]
        else:
            return UNRESOLVED
    return value


def _scalar(value: Any, path: tuple[str | int, ...]) -> Any:
    # Built-ins that produce a leaf value accept no accessors
    return value if not path else UNRESOLVED


def evaluate(expression: PathExpression, context: DataContext) -> Any:
    """Evaluate one parsed expression. Never raises for missing data."""
    root, path = expression.root, expression.path
    match root:
        case "$json":
            return _walk(context.current_input(), path)
        case "trigger":
            return UNRESOLVED if context.trigger is None else _walk(context.trigger, path)
        case "nodes":
            if not path:
                return UNRESOLVED
            return _walk(context.nodes.get(str(path[0]), UNRESOLVED), path[1:])
        case "$node":
            output = context.node_output(str(path[0]))
            rest = path[1:]
            if rest and rest[0] == "json":
                rest = rest[1:]
            return _walk(output, rest)
        case "$env":
            return _walk(context.env, path) if path else UNRESOLVED
        case "variables":
            return _walk(context.variables, path)
        case "$now":
            return _scalar(context.clock.now().isoformat(), path)
        case "$today":
            return _scalar(context.clock.now().date().isoformat(), path)
        case "$randomId":
            return _scalar(context.random(), path)
        case "$executionId":
            return UNRESOLVED if context.execution_id is None else _scalar(context.execution_id, path)
        case "$workflowId":
            return UNRESOLVED if context.workflow_id is None else _scalar(context.workflow_id, path)
        case _:
            return UNRESOLVED


def render(value: Any) -> str:
    """Text form of a resolved value when spliced between literal text."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Mapping | list | tuple):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


@dataclass(frozen=True, slots=True)
class Resolution:
    """A resolved value plus the raw spans that could not be resolved."""

    value: Any
    unresolved: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.unresolved

    @property
    def error_kind(self) -> ErrorKind | None:
        """UnresolvedExpression when any span stayed unresolved."""
        return None if self.complete else ErrorKind.UNRESOLVED_EXPRESSION


def resolve_detailed(template: Any, context: DataContext, *, keep_unresolved: bool = True) -> Resolution:
    """Resolve a field value and report which spans stayed unresolved.

    A value that is exactly one expression resolves to the raw value (not
    stringified). Otherwise every span is replaced in place and the pieces
    are concatenated.

    Args:
        template: Field value; non-strings are returned unchanged
        context: Data to resolve against
        keep_unresolved: Preview mode. Unresolved spans keep their original
            ``{{ ... }}`` text and a lone unresolved expression yields
            UNRESOLVED. When False (run time), they become "" and None.

    Raises:
        ExpressionSyntaxError: If a span body is malformed
    """
    if not isinstance(template, str):
        return Resolution(template)
    parts = parse_template(template)
    if not any(isinstance(p, ExpressionSpan) for p in parts):
        return Resolution(template)

    if len(parts) == 1:
        span = parts[0]
        assert isinstance(span, ExpressionSpan)
        value = evaluate(span.expression, context)
        if value is UNRESOLVED:
            return Resolution(UNRESOLVED if keep_unresolved else None, (span.raw,))
        return Resolution(value)

    pieces: list[str] = []
    unresolved: list[str] = []
    for part in parts:
        if isinstance(part, Literal):
            pieces.append(part.text)
            continue
        value = evaluate(part.expression, context)
        if value is UNRESOLVED:
            unresolved.append(part.raw)
            pieces.append(part.raw if keep_unresolved else "")
        else:
            pieces.append(render(value))
    return Resolution("".join(pieces), tuple(unresolved))


def resolve(template: Any, context: DataContext) -> Any:
    """Resolve a field value for preview. See resolve_detailed()."""
    return resolve_detailed(template, context).value


def interpolate(value: Any, context: DataContext, *, keep_unresolved: bool = False) -> Any:
    """Resolve every string inside a nested config structure.

    Dicts and lists are rebuilt; other values pass through. Used by the
    runner to materialize a node's final config before execution.
    """
    if isinstance(value, str):
        return resolve_detailed(value, context, keep_unresolved=keep_unresolved).value
    if isinstance(value, Mapping):
        return {k: interpolate(v, context, keep_unresolved=keep_unresolved) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate(v, context, keep_unresolved=keep_unresolved) for v in value]
    return value


# =============================================================================
# Static analysis
# =============================================================================


_NODE_ROOTS = frozenset({"nodes", "$node"})


@dataclass(frozen=True, slots=True)
class PathRef:
    """A reference found in a template.

    ``node`` is set for upstream-node roots (``nodes.<id>`` gives an id,
    ``$node["Step"]`` gives a step name); ``path`` is what follows it.
    """

    root: str
    path: tuple[str | int, ...]
    expression: str
    node: str | None = None


def extract_references(template: str) -> list[PathRef]:
    """Parse a field value and list every path it references, in order.

    Raises:
        ExpressionSyntaxError: If a span body is malformed
    """
    refs: list[PathRef] = []
    for part in parse_template(template):
        if not isinstance(part, ExpressionSpan):
            continue
        expr = part.expression
        if expr.root in _NODE_ROOTS and expr.path:
            refs.append(PathRef(expr.root, expr.path[1:], expr.source, node=str(expr.path[0])))
        else:
            refs.append(PathRef(expr.root, expr.path, expr.source))
    return refs


def referenced_nodes(value: Any, node_names: Mapping[str, str] | None = None) -> set[str]:
    """Upstream nodes a config value depends on, searched recursively.

    Step names from ``$node["..."]`` are mapped to ids through
    ``node_names`` when given; unmapped names are returned as-is.
    """
    names = node_names or {}
    found: set[str] = set()
    if isinstance(value, str):
        for ref in extract_references(value):
            if ref.node is not None:
                found.add(names.get(ref.node, ref.node) if ref.root == "$node" else ref.node)
    elif isinstance(value, Mapping):
        for v in value.values():
            found |= referenced_nodes(v, names)
    elif isinstance(value, list):
        for v in value:
            found |= referenced_nodes(v, names)
    return found
