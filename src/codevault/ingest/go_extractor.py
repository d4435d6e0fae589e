"""Go structural extractor (tree-sitter).

Only top-level declarations are considered, dispatched over a closed set of
node kinds:

  function_declaration  → function chunk
  method_declaration    → method chunk (with receiver type)
  type_declaration      → one struct / interface chunk per matching type spec

Everything else (var, const, other type kinds) is ignored. Function and
method bodies are also scanned for HTTP-looking calls: a selector call named
after an HTTP verb whose first argument is a string literal. The heuristic
is syntactic and deliberately approximate.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from codevault.db.models import ChunkType, CodeChunk
from codevault.ingest.base import BaseExtractor, ParseError
from codevault.ingest.tree_sitter import get_parser

if TYPE_CHECKING:
    from tree_sitter import Node

# Selector names treated as endpoint declarations (router.GET("/x", ...)).
_ENDPOINT_VERBS = frozenset(
    {
        "GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS",
        "Get", "Post", "Put", "Delete", "Patch", "Head", "Options",
    }
)
# Selector names treated as outbound client calls (http.Get("https://...")).
_CALL_VERBS = frozenset({"Get", "Post", "Put", "Delete", "Patch"})

_STRING_LITERALS = frozenset({"interpreted_string_literal", "raw_string_literal"})

_TYPE_KINDS = {
    "struct_type": ChunkType.STRUCT,
    "interface_type": ChunkType.INTERFACE,
}

# //go:generate, //line foo.go:10, //export Foo ... are not documentation.
_DIRECTIVE_RE = re.compile(r"^(line |extern |export |[a-z0-9]+:[a-z0-9])")


@dataclass(frozen=True)
class _FileContext:
    project: str
    file_path: str
    package: str
    imports: tuple[str, ...]
    modified_at: datetime | None


class GoExtractor(BaseExtractor):
    """Extract functions, methods, structs and interfaces from Go sources."""

    language = "go"
    extensions = (".go",)

    def parse_source(
        self,
        source: bytes,
        file_path: str,
        project_name: str,
        modified_at: datetime | None = None,
    ) -> list[CodeChunk]:
        tree = get_parser(self.language).parse(source)
        root = tree.root_node
        if root.has_error:
            raise ParseError(f"syntax error near line {_first_error_line(root)}")
        package = _package_name(root)
        if not package:
            raise ParseError("expected 'package', found no package clause")

        ctx = _FileContext(
            project=project_name,
            file_path=file_path,
            package=package,
            imports=tuple(_imports(root)),
            modified_at=modified_at,
        )

        chunks: list[CodeChunk] = []
        declarations = root.named_children
        for index, node in enumerate(declarations):
            visit = _VISITORS.get(node.type)
            if visit is None:
                continue
            doc = _doc_comment(declarations, index)
            chunks.extend(visit(ctx, node, doc))
        return chunks


# ------------------------------------------------------------------
# Declaration visitors
# ------------------------------------------------------------------


def _visit_function(ctx: _FileContext, node: Node, doc: str) -> Iterator[CodeChunk]:
    name = _text(node.child_by_field_name("name"))
    receiver = ""
    chunk_type = ChunkType.FUNCTION
    if node.type == "method_declaration":
        chunk_type = ChunkType.METHOD
        receiver = _receiver_type(node.child_by_field_name("receiver"))

    endpoints: list[str] = []
    calls: list[str] = []
    body = node.child_by_field_name("body")
    if body is not None:
        endpoints, calls = _http_usage(body)

    yield CodeChunk(
        project=ctx.project,
        file_path=ctx.file_path,
        package=ctx.package,
        language="go",
        chunk_type=chunk_type,
        name=name,
        receiver=receiver,
        code=_text(node),
        line_start=node.start_point[0] + 1,
        line_end=node.end_point[0] + 1,
        doc_string=doc,
        http_endpoints=tuple(endpoints),
        http_calls=tuple(calls),
        imports=ctx.imports,
        last_modified=ctx.modified_at,
    )


def _visit_type(ctx: _FileContext, node: Node, doc: str) -> Iterator[CodeChunk]:
    # Grouped declarations (type ( A struct{}; B interface{} )) share the
    # declaration's text and doc; line numbers come from each spec.
    code = _text(node)
    for spec in node.named_children:
        if spec.type != "type_spec":
            continue
        type_node = spec.child_by_field_name("type")
        chunk_type = _TYPE_KINDS.get(type_node.type) if type_node is not None else None
        if chunk_type is None:
            continue
        yield CodeChunk(
            project=ctx.project,
            file_path=ctx.file_path,
            package=ctx.package,
            language="go",
            chunk_type=chunk_type,
            name=_text(spec.child_by_field_name("name")),
            code=code,
            line_start=spec.start_point[0] + 1,
            line_end=spec.end_point[0] + 1,
            doc_string=doc,
            last_modified=ctx.modified_at,
        )


_VISITORS: dict[str, Callable[[_FileContext, Node, str], Iterator[CodeChunk]]] = {
    "function_declaration": _visit_function,
    "method_declaration": _visit_function,
    "type_declaration": _visit_type,
}


# ------------------------------------------------------------------
# File-level helpers
# ------------------------------------------------------------------


def _package_name(root: Node) -> str:
    for node in root.named_children:
        if node.type == "package_clause":
            for child in node.named_children:
                if child.type == "package_identifier":
                    return _text(child)
    return ""


def _imports(root: Node) -> Iterator[str]:
    for node in root.named_children:
        if node.type != "import_declaration":
            continue
        for spec in _walk(node):
            if spec.type == "import_spec":
                path = spec.child_by_field_name("path")
                if path is not None:
                    yield _text(path).strip('"')


def _receiver_type(receiver: Node | None) -> str:
    if receiver is None:
        return ""
    for param in receiver.named_children:
        if param.type == "parameter_declaration":
            return _text(param.child_by_field_name("type"))
    return ""


def _first_error_line(root: Node) -> int:
    for node in _walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
    return root.start_point[0] + 1


# ------------------------------------------------------------------
# Doc comments
# ------------------------------------------------------------------


def _doc_comment(siblings: list[Node], index: int) -> str:
    """Return the normalised comment group directly above ``siblings[index]``."""
    group: list[Node] = []
    expected_row = siblings[index].start_point[0] - 1
    j = index - 1
    while j >= 0 and siblings[j].type == "comment" and siblings[j].end_point[0] == expected_row:
        group.insert(0, siblings[j])
        expected_row = siblings[j].start_point[0] - 1
        j -= 1

    # A comment sharing a line with the preceding code belongs to that code.
    if group and j >= 0 and siblings[j].end_point[0] == group[0].start_point[0]:
        group.pop(0)

    return _comment_text([_text(c) for c in group])


def _comment_text(comments: list[str]) -> str:
    """Strip comment markers the way Go's CommentGroup.Text() does."""
    lines: list[str] = []
    for comment in comments:
        if comment.startswith("//"):
            body = comment[2:]
            if _DIRECTIVE_RE.match(body):
                continue
            if body.startswith(" "):
                body = body[1:]
            lines.append(body)
        elif comment.startswith("/*"):
            lines.extend(comment[2:-2].split("\n"))

    lines = [line.rstrip() for line in lines]

    collapsed: list[str] = []
    for line in lines:
        if line or (collapsed and collapsed[-1]):
            collapsed.append(line)
    while collapsed and not collapsed[-1]:
        collapsed.pop()

    if not collapsed:
        return ""
    return "\n".join(collapsed) + "\n"


# ------------------------------------------------------------------
# HTTP heuristic
# ------------------------------------------------------------------


def _http_usage(body: Node) -> tuple[list[str], list[str]]:
    """Scan *body* for verb-named selector calls with a string-literal first arg.

    Returns (endpoints, outbound calls), each as "VERB literal" strings.
    """
    endpoints: list[str] = []
    calls: list[str] = []
    for node in _walk(body):
        if node.type != "call_expression":
            continue
        function = node.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            continue
        verb = _text(function.child_by_field_name("field"))
        if verb not in _ENDPOINT_VERBS:
            continue
        literal = _first_string_argument(node.child_by_field_name("arguments"))
        if literal is None:
            continue
        endpoints.append(f"{verb} {literal}")
        if verb in _CALL_VERBS:
            calls.append(f"{verb} {literal}")
    return endpoints, calls


def _first_string_argument(arguments: Node | None) -> str | None:
    if arguments is None:
        return None
    args = [a for a in arguments.named_children if a.type != "comment"]
    if not args or args[0].type not in _STRING_LITERALS:
        return None
    return _text(args[0]).strip('"')


# ------------------------------------------------------------------
# Node helpers
# ------------------------------------------------------------------


def _walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of *node* and its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")
