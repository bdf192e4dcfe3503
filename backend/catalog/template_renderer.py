"""
Renderer for catalog compose templates (docker-compose.yml.tpl).

Catalog templates are written in the Go text/template dialect and rendered
with an empty .Values map, where missing keys render as empty strings.
The subset below covers what the catalog uses:

- {{ .Values.NAME }} lookups, string/number/bool literals, ( ) grouping
- pipelines: {{ .Values.NAME | default "x" | quote }}
- {{ if }} / {{ else if }} / {{ else }} / {{ end }}, {{ range }} and {{ with }}
- {{- and -}} whitespace trimming, {{/* comments */}}
- functions: eq ne not and or default quote lower upper trim

Files whose first line is '# notemplating' are returned untouched.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

ACTION_PATTERN = re.compile(r'\{\{(-\s)?(.*?)(\s-)?\}\}', re.DOTALL)
TOKEN_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"|`[^`]*`|\(|\)|\||[^\s()|]+')
NUMBER_PATTERN = re.compile(r'-?\d+(\.\d+)?$')
NOTEMPLATING_MARKERS = ("#notemplating", "# notemplating")


class TemplateError(Exception):
    """Raised when a template cannot be parsed or executed"""
    pass


def _truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _fn_and(*args):
    if not args:
        raise TemplateError("and requires arguments")
    for arg in args:
        if not _truthy(arg):
            return arg
    return args[-1]


def _fn_or(*args):
    if not args:
        raise TemplateError("or requires arguments")
    for arg in args:
        if _truthy(arg):
            return arg
    return args[-1]


def _fn_eq(first, *others):
    if not others:
        raise TemplateError("eq requires at least two arguments")
    return any(first == other for other in others)


def _fn_default(fallback, value=None):
    return value if _truthy(value) else fallback


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "eq": _fn_eq,
    "ne": lambda a, b: a != b,
    "not": lambda a: not _truthy(a),
    "and": _fn_and,
    "or": _fn_or,
    "default": _fn_default,
    "quote": lambda *args: " ".join(f'"{_to_text(a)}"' for a in args),
    "lower": lambda s: _to_text(s).lower(),
    "upper": lambda s: _to_text(s).upper(),
    "trim": lambda s: _to_text(s).strip(),
}


# Parse tree nodes: ("text", str) | ("action", expr) | ("block", kind, branches, else_nodes)
# where branches is a list of (expr, nodes) pairs.

class _Parser:
    def __init__(self, source: str):
        self.source = source

    def tokens(self) -> List[Tuple[str, str]]:
        """Split source into ('text', ...) and ('action', ...) pieces, applying trim markers"""
        pieces: List[Tuple[str, str]] = []
        position = 0
        for match in ACTION_PATTERN.finditer(self.source):
            text = self.source[position:match.start()]
            if match.group(1):
                text = text.rstrip()
            pieces.append(("text", text))
            pieces.append(("action", match.group(2).strip()))
            position = match.end()
            if match.group(3):
                rest = self.source[position:]
                position += len(rest) - len(rest.lstrip())
        pieces.append(("text", self.source[position:]))
        return [p for p in pieces if p[0] == "action" or p[1]]

    def parse(self) -> List[tuple]:
        root: List[tuple] = []
        # Each frame: (kind, branches, else_nodes or None, current node list)
        stack: List[list] = []
        current = root

        for kind, value in self.tokens():
            if kind == "text":
                current.append(("text", value))
                continue
            if value.startswith("/*"):
                if not value.endswith("*/"):
                    raise TemplateError(f"Unclosed comment: {value[:30]}")
                continue

            parts = value.split(None, 1)
            keyword = parts[0] if parts else ""
            rest = parts[1].strip() if len(parts) > 1 else ""
            if keyword in ("if", "range", "with"):
                if not rest:
                    raise TemplateError(f"Missing condition for {keyword}")
                nodes: List[tuple] = []
                stack.append([keyword, [(rest, nodes)], None, current])
                current = nodes
            elif keyword == "else":
                if not stack:
                    raise TemplateError("Unexpected else")
                frame = stack[-1]
                if frame[2] is not None:
                    raise TemplateError("Multiple else clauses")
                nodes = []
                if rest.startswith("if ") and frame[0] == "if":
                    frame[1].append((rest[3:].strip(), nodes))
                elif rest:
                    raise TemplateError(f"Unsupported else clause: {value}")
                else:
                    frame[2] = nodes
                current = nodes
            elif keyword == "end":
                if not stack:
                    raise TemplateError("Unexpected end")
                block_kind, branches, else_nodes, parent = stack.pop()
                parent.append(("block", block_kind, branches, else_nodes or []))
                current = parent
            elif keyword in ("define", "template", "block") or ":=" in value:
                raise TemplateError(f"Unsupported action: {value}")
            else:
                current.append(("action", value))

        if stack:
            raise TemplateError(f"Unclosed {stack[-1][0]} block")
        return root


class _Evaluator:
    def __init__(self, root: Dict[str, Any]):
        self.root = root

    def expression(self, expr: str, dot: Any) -> Any:
        tokens = TOKEN_PATTERN.findall(expr)
        value, position = self._pipeline(tokens, 0, dot)
        if position != len(tokens):
            raise TemplateError(f"Unexpected token {tokens[position]!r} in {expr!r}")
        return value

    def _pipeline(self, tokens: List[str], position: int, dot: Any) -> Tuple[Any, int]:
        piped: List[Any] = []
        while True:
            args, position = self._command(tokens, position, dot)
            value = self._call(args, piped)
            piped = [value]
            if position < len(tokens) and tokens[position] == "|":
                position += 1
                continue
            return value, position

    def _command(self, tokens: List[str], position: int, dot: Any) -> Tuple[List[Any], int]:
        args: List[Any] = []
        while position < len(tokens) and tokens[position] not in ("|", ")"):
            token = tokens[position]
            if token == "(":
                value, position = self._pipeline(tokens, position + 1, dot)
                if position >= len(tokens) or tokens[position] != ")":
                    raise TemplateError("Unbalanced parentheses")
                args.append(("value", value))
                position += 1
                continue
            args.append(self._term(token, dot))
            position += 1
        if not args:
            raise TemplateError("Empty command")
        return args, position

    def _term(self, token: str, dot: Any) -> Tuple[str, Any]:
        if token.startswith('"'):
            try:
                return ("value", json.loads(token))
            except ValueError:
                raise TemplateError(f"Bad string literal {token}")
        if token.startswith("`"):
            return ("value", token[1:-1])
        if token in ("true", "false"):
            return ("value", token == "true")
        if token == "nil":
            return ("value", None)
        if NUMBER_PATTERN.match(token):
            return ("value", float(token) if "." in token else int(token))
        if token == ".":
            return ("value", dot)
        if token.startswith("."):
            return ("value", self._field(dot, token[1:].split(".")))
        if token.startswith("$"):
            path = token[1:].lstrip(".")
            return ("value", self._field(self.root, path.split(".")) if path else self.root)
        return ("function", token)

    @staticmethod
    def _field(value: Any, path: List[str]) -> Any:
        for name in path:
            if not name:
                continue
            if isinstance(value, dict):
                value = value.get(name)
            else:
                return None
        return value

    @staticmethod
    def _call(args: List[Tuple[str, Any]], piped: List[Any]) -> Any:
        kind, head = args[0]
        if kind == "function":
            function = FUNCTIONS.get(head)
            if function is None:
                raise TemplateError(f'function "{head}" not defined')
            values = [a[1] for a in args[1:]]
            if any(a[0] == "function" for a in args[1:]):
                raise TemplateError(f"Nested call without parentheses in {head}")
            try:
                return function(*values, *piped)
            except TypeError as e:
                raise TemplateError(f"Wrong arguments for {head}: {e}")
        if len(args) > 1 or piped:
            raise TemplateError(f"Cannot call non-function {head!r}")
        return head

    def render(self, nodes: List[tuple], dot: Any, out: List[str]):
        for node in nodes:
            if node[0] == "text":
                out.append(node[1])
            elif node[0] == "action":
                out.append(_to_text(self.expression(node[1], dot)))
            else:
                self._block(node, dot, out)

    def _block(self, node: tuple, dot: Any, out: List[str]):
        _, kind, branches, else_nodes = node
        if kind == "if":
            for expr, body in branches:
                if _truthy(self.expression(expr, dot)):
                    self.render(body, dot, out)
                    return
            self.render(else_nodes, dot, out)
            return

        expr, body = branches[0]
        value = self.expression(expr, dot)
        if kind == "with":
            if _truthy(value):
                self.render(body, value, out)
            else:
                self.render(else_nodes, dot, out)
            return

        # range
        if isinstance(value, dict):
            items = [value[k] for k in sorted(value)]
        elif isinstance(value, (list, tuple)):
            items = list(value)
        elif value is None:
            items = []
        else:
            raise TemplateError(f"Cannot range over {type(value).__name__}")
        if not items:
            self.render(else_nodes, dot, out)
        for item in items:
            self.render(body, item, out)


def render(contents: str, values: Optional[Dict[str, Any]] = None) -> str:
    """
    Render a compose template.

    Args:
        contents: Template text
        values: Answers for .Values (empty by default)

    Raises:
        TemplateError: On syntax errors or unknown functions
    """
    if contents.strip().startswith(NOTEMPLATING_MARKERS):
        return contents

    nodes = _Parser(contents).parse()
    root = {"Values": dict(values or {})}
    out: List[str] = []
    _Evaluator(root).render(nodes, root, out)
    return "".join(out)
