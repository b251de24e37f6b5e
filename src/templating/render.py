"""Renderer for the Go text/template dialect used in provider templates.

Provider URLs and DSN query values are written in Go template syntax, e.g.
``https://github.com/{{ .Provider.Host }}/{{ .Provider.Path }}/releases/
download/{{ .Version }}/{{ tpl .Provider.Query.asset . }}``. Only the action
subset such templates need is supported: field chains, ``$``, string/number/
boolean literals, function calls, parenthesized sub-pipelines and ``|``
pipelines, ``{{-``/``-}}`` trimming and comments. Control structures
(``if``, ``range``, ...) are rejected with a ``TemplateError``.
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union
from urllib.parse import quote_plus

from errors import TemplateError

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"

_WS = " \t\r\n"
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_FIELD_RE = re.compile(r"\.(?:[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)?")
_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_STRING_RE = re.compile(r'"(?:[^"\\\n]|\\.)*"')
_KEYWORDS = {"if", "else", "end", "range", "with", "define", "template", "block", "break", "continue"}


class _ExecError(Exception):
    """Internal failure carrying the message of a template error."""


# --- syntax tree ------------------------------------------------------------

class _Token(NamedTuple):
    kind: str  # field | var | literal | ident | pipe | lparen | rparen
    value: Any
    adjacent: bool  # no whitespace before this token


class Field(NamedTuple):
    names: Tuple[str, ...]
    from_root: bool


class Literal(NamedTuple):
    value: Any


class Ident(NamedTuple):
    name: str


class Chain(NamedTuple):
    operand: Any
    names: Tuple[str, ...]


Command = Tuple[Any, ...]
Pipeline = Tuple[Command, ...]


class Sub(NamedTuple):
    pipeline: Pipeline


class Action(NamedTuple):
    pipeline: Pipeline


Node = Union[str, Action]


# --- lexing and parsing -----------------------------------------------------

def _lex_action(text: str, i: int) -> Tuple[List[_Token], int, bool]:
    """Tokenize one action starting after its left delimiter.

    Returns the tokens, the position after the right delimiter and whether
    the delimiter asked to trim the following text.
    """
    tokens: List[_Token] = []
    n = len(text)
    while True:
        start = i
        while i < n and text[i] in _WS:
            i += 1
        spaced = i > start
        if i >= n:
            raise _ExecError("unclosed action")
        if text.startswith(RIGHT_DELIM, i):
            return tokens, i + 2, False
        if spaced and text.startswith("-" + RIGHT_DELIM, i):
            return tokens, i + 3, True
        ch = text[i]
        adjacent = not spaced
        if ch == '"':
            m = _STRING_RE.match(text, i)
            if not m:
                raise _ExecError("unterminated quoted string")
            try:
                value = json.loads(m.group(0))
            except ValueError as exc:
                raise _ExecError(f"invalid quoted string {m.group(0)}") from exc
            tokens.append(_Token("literal", value, adjacent))
            i = m.end()
        elif ch == "`":
            end = text.find("`", i + 1)
            if end < 0:
                raise _ExecError("unterminated raw quoted string")
            tokens.append(_Token("literal", text[i + 1:end], adjacent))
            i = end + 1
        elif ch == "|":
            tokens.append(_Token("pipe", ch, adjacent))
            i += 1
        elif ch == "(":
            tokens.append(_Token("lparen", ch, adjacent))
            i += 1
        elif ch == ")":
            tokens.append(_Token("rparen", ch, adjacent))
            i += 1
        elif ch == ".":
            m = _FIELD_RE.match(text, i)
            names = tuple(n_ for n_ in m.group(0).split(".") if n_)
            tokens.append(_Token("field", names, adjacent))
            i = m.end()
        elif ch == "$":
            m = _IDENT_RE.match(text, i + 1)
            if m:
                raise _ExecError(f"undefined variable: ${m.group(0)}")
            i += 1
            chain: Tuple[str, ...] = ()
            if i < n and text[i] == ".":
                fm = _FIELD_RE.match(text, i)
                chain = tuple(n_ for n_ in fm.group(0).split(".") if n_)
                i = fm.end()
            tokens.append(_Token("var", chain, adjacent))
        elif ch.isdigit() or (ch in "+-" and i + 1 < n and text[i + 1].isdigit()):
            m = _NUMBER_RE.match(text, i)
            raw = m.group(0)
            tokens.append(_Token("literal", float(raw) if "." in raw else int(raw), adjacent))
            i = m.end()
        else:
            m = _IDENT_RE.match(text, i)
            if not m:
                raise _ExecError(f"unexpected {ch!r} in command")
            word = m.group(0)
            if word in _KEYWORDS:
                raise _ExecError(f"unsupported action {word!r}")
            if word in ("true", "false"):
                tokens.append(_Token("literal", word == "true", adjacent))
            elif word == "nil":
                tokens.append(_Token("literal", None, adjacent))
            else:
                tokens.append(_Token("ident", word, adjacent))
            i = m.end()


def _parse_pipeline(tokens: List[_Token], pos: int, in_paren: bool) -> Tuple[Pipeline, int]:
    commands: List[Command] = []
    cmd: List[Any] = []
    while pos < len(tokens):
        tok = tokens[pos]
        if tok.kind == "pipe":
            if not cmd:
                raise _ExecError("missing command before '|'")
            commands.append(tuple(cmd))
            cmd = []
            pos += 1
            continue
        if tok.kind == "rparen":
            if in_paren:
                break
            raise _ExecError("unexpected right paren")
        if tok.kind == "lparen":
            sub, pos = _parse_pipeline(tokens, pos + 1, True)
            pos += 1  # closing paren
            operand: Any = Sub(sub)
            if pos < len(tokens) and tokens[pos].kind == "field" and tokens[pos].adjacent:
                operand = Chain(operand, tokens[pos].value)
                pos += 1
        elif tok.kind == "field":
            operand = Field(tok.value, False)
            pos += 1
        elif tok.kind == "var":
            operand = Field(tok.value, True)
            pos += 1
        elif tok.kind == "literal":
            operand = Literal(tok.value)
            pos += 1
        else:
            operand = Ident(tok.value)
            pos += 1
        cmd.append(operand)
    if in_paren and (pos >= len(tokens) or tokens[pos].kind != "rparen"):
        raise _ExecError("unclosed left paren")
    if not cmd:
        raise _ExecError("missing value for command")
    commands.append(tuple(cmd))
    return tuple(commands), pos


@lru_cache(maxsize=256)
def _parse(template: str) -> Tuple[Node, ...]:
    nodes: List[Node] = []
    pos = 0
    n = len(template)
    trim_next = False
    while pos <= n:
        start = template.find(LEFT_DELIM, pos)
        text = template[pos:] if start < 0 else template[pos:start]
        if trim_next:
            text = text.lstrip(_WS)
            trim_next = False
        if start < 0:
            if text:
                nodes.append(text)
            break
        i = start + 2
        if template.startswith("-", i) and i + 1 < n and template[i + 1] in _WS:
            text = text.rstrip(_WS)
            i += 2
        if text:
            nodes.append(text)

        j = i
        while j < n and template[j] in _WS:
            j += 1
        if template.startswith("/*", j):
            end = template.find("*/", j + 2)
            if end < 0:
                raise _ExecError("unclosed comment")
            k = end + 2
            while k < n and template[k] in _WS:
                k += 1
            if template.startswith(RIGHT_DELIM, k):
                pos = k + 2
            elif k > end + 2 and template.startswith("-" + RIGHT_DELIM, k):
                pos = k + 3
                trim_next = True
            else:
                raise _ExecError("comment ends before closing delimiter")
            continue

        tokens, pos, trim_next = _lex_action(template, i)
        pipeline, _ = _parse_pipeline(tokens, 0, False)
        nodes.append(Action(pipeline))
    return tuple(nodes)


# --- execution --------------------------------------------------------------

_MISSING = object()


def _type_name(value: Any) -> str:
    return type(value).__name__


def _field(value: Any, names: Tuple[str, ...]) -> Any:
    for name in names:
        if value is None:
            raise _ExecError(f"nil pointer evaluating .{name}")
        if isinstance(value, Mapping):
            if name not in value:
                raise _ExecError(f'map has no entry for key "{name}"')
            value = value[name]
        elif hasattr(value, name) and not name.startswith("_"):
            value = getattr(value, name)
        else:
            raise _ExecError(f"can't evaluate field {name} in type {_type_name(value)}")
    return value


def _sprint(args: Tuple[Any, ...]) -> str:
    """Format like Go's fmt.Sprint: space only between two non-string operands."""
    out: List[str] = []
    for idx, arg in enumerate(args):
        if idx > 0 and not isinstance(arg, str) and not isinstance(args[idx - 1], str):
            out.append(" ")
        out.append(_to_text(arg))
    return "".join(out)


def _to_text(value: Any) -> str:
    if value is None:
        return "<no value>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _require_str(fn: str, value: Any) -> str:
    if not isinstance(value, str):
        raise _ExecError(f"wrong type for value; expected string; got {_type_name(value)} in {fn}")
    return value


def _trim_prefix(prefix: Any, s: Any) -> str:
    prefix = _require_str("trimPrefix", prefix)
    s = _require_str("trimPrefix", s)
    return s[len(prefix):] if prefix and s.startswith(prefix) else s


def _tpl(template: Any, context: Any) -> str:
    return render(_require_str("tpl", template), context)


FUNCS: Dict[str, Tuple[Callable[..., Any], Optional[int]]] = {
    "trimPrefix": (_trim_prefix, 2),
    "tpl": (_tpl, 2),
    "urlquery": (lambda *args: quote_plus(_sprint(args)), None),
    "print": (lambda *args: _sprint(args), None),
}


def _eval_operand(operand: Any, dot: Any) -> Any:
    if isinstance(operand, Literal):
        return operand.value
    if isinstance(operand, Field):
        # no range/with support, so dot is always the root context
        return _field(dot, operand.names)
    if isinstance(operand, Sub):
        return _eval_pipeline(operand.pipeline, dot)
    if isinstance(operand, Chain):
        return _field(_eval_operand(operand.operand, dot), operand.names)
    if isinstance(operand, Ident):
        return _call(operand.name, [], dot)
    raise _ExecError(f"can't evaluate {operand!r}")


def _call(name: str, args: List[Any], dot: Any) -> Any:
    if name not in FUNCS:
        raise _ExecError(f'function "{name}" not defined')
    fn, arity = FUNCS[name]
    if arity is not None and len(args) != arity:
        raise _ExecError(f"wrong number of args for {name}: want {arity} got {len(args)}")
    return fn(*args)


def _eval_command(cmd: Command, dot: Any, piped: Any) -> Any:
    head = cmd[0]
    if isinstance(head, Ident):
        args = [_eval_operand(op, dot) for op in cmd[1:]]
        if piped is not _MISSING:
            args.append(piped)
        return _call(head.name, args, dot)
    if len(cmd) > 1 or piped is not _MISSING:
        raise _ExecError(f"can't give argument to non-function {_describe(head)}")
    return _eval_operand(head, dot)


def _describe(operand: Any) -> str:
    if isinstance(operand, Field):
        return ("$" if operand.from_root else "") + ("." + ".".join(operand.names) if operand.names else ".")
    if isinstance(operand, Literal):
        return repr(operand.value)
    return "(...)"


def _eval_pipeline(pipeline: Pipeline, dot: Any) -> Any:
    value: Any = _MISSING
    for cmd in pipeline:
        value = _eval_command(cmd, dot, value)
    return value


def render(template: str, context: Any) -> str:
    """Render ``template`` against ``context``.

    Args:
        template: Template text in Go text/template syntax.
        context: Root data, usually a mapping with ``Version`` and ``Provider``.

    Returns:
        The rendered string.

    Raises:
        TemplateError: On parse or execution failure. Errors from nested
            ``tpl`` calls keep the nested template in their metadata.
    """
    try:
        nodes = _parse(template)
    except _ExecError as exc:
        raise TemplateError(f"parse template {template!r}: {exc}", template) from None

    out: List[str] = []
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
            continue
        try:
            out.append(_to_text(_eval_pipeline(node.pipeline, context)))
        except _ExecError as exc:
            raise TemplateError(f"execute template {template!r}: {exc}", template) from None
    return "".join(out)
