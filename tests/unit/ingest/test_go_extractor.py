"""Tests for the tree-sitter Go extractor and directory traversal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from codevault.db.models import ChunkType
from codevault.ingest.base import ParseError, TraversalError
from codevault.ingest.go_extractor import GoExtractor
from codevault.ingest.registry import get_extractor, supported_languages


@pytest.fixture
def extractor():
    return GoExtractor()


def _parse(extractor, source: str, path: str = "file.go"):
    return extractor.parse_source(source.encode("utf-8"), path, "proj")


def _write(root: Path, rel: str, content: str) -> Path:
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


# ------------------------------------------------------------------
# Declarations
# ------------------------------------------------------------------

SERVER_GO = """\
package server

import (
\t"fmt"
\t"net/http"
)

// Server handles requests.
type Server struct {
\taddr string
}

// Handler serves one route.
type Handler interface {
\tServe() error
}

type ID int

var debug = false

const limit = 10

// New creates a server.
//
// It does not start listening.
func New(addr string) *Server {
\treturn &Server{addr: addr}
}

// Start registers routes.
func (s *Server) Start() {
\thttp.Get("https://example.com/ping")
\tfmt.Println("started")
}
"""


def test_extracts_declarations_in_source_order(extractor):
    chunks = _parse(extractor, SERVER_GO, "pkg/server.go")
    assert [(c.chunk_type, c.name) for c in chunks] == [
        (ChunkType.STRUCT, "Server"),
        (ChunkType.INTERFACE, "Handler"),
        (ChunkType.FUNCTION, "New"),
        (ChunkType.METHOD, "Start"),
    ]


def test_common_fields(extractor):
    chunks = _parse(extractor, SERVER_GO, "pkg/server.go")
    for chunk in chunks:
        assert chunk.project == "proj"
        assert chunk.file_path == "pkg/server.go"
        assert chunk.package == "server"
        assert chunk.language == "go"
        assert chunk.line_start <= chunk.line_end


def test_function_chunk(extractor):
    new = {c.name: c for c in _parse(extractor, SERVER_GO)}["New"]
    assert new.code.startswith("func New(addr string) *Server {")
    assert new.code.endswith("}")
    assert new.line_start == 27
    assert new.line_end == 29
    assert new.receiver == ""
    assert new.imports == ("fmt", "net/http")
    assert new.doc_string == "New creates a server.\n\nIt does not start listening.\n"


def test_method_receiver(extractor):
    start = {c.name: c for c in _parse(extractor, SERVER_GO)}["Start"]
    assert start.chunk_type == ChunkType.METHOD
    assert start.receiver == "*Server"
    assert start.doc_string == "Start registers routes.\n"


def test_value_receiver(extractor):
    [chunk] = _parse(extractor, "package p\n\ntype T struct{}\n\nfunc (t T) Foo() {}\n")[1:]
    assert chunk.receiver == "T"
    assert chunk.id == "proj:file.go:Foo"


def test_type_chunks_have_no_imports(extractor):
    chunks = {c.name: c for c in _parse(extractor, SERVER_GO)}
    assert chunks["Server"].imports == ()
    assert chunks["Server"].doc_string == "Server handles requests.\n"
    assert chunks["Server"].code.startswith("type Server struct")


def test_grouped_type_declaration(extractor):
    source = """\
package p

// Shapes.
type (
\tPoint struct{ X, Y int }
\tShape interface{ Area() float64 }
\tName string
)
"""
    chunks = _parse(extractor, source)
    assert [(c.name, c.chunk_type) for c in chunks] == [
        ("Point", ChunkType.STRUCT),
        ("Shape", ChunkType.INTERFACE),
    ]
    point, shape = chunks
    assert point.code == shape.code
    assert point.code.startswith("type (")
    assert (point.line_start, point.line_end) == (5, 5)
    assert (shape.line_start, shape.line_end) == (6, 6)
    assert point.doc_string == "Shapes.\n"


def test_no_declarations(extractor):
    assert _parse(extractor, "package p\n\nconst A = 1\nvar b = 2\n") == []


def test_modified_at_is_copied(extractor):
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    [chunk] = extractor.parse_source(b"package p\nfunc F() {}\n", "f.go", "proj", ts)
    assert chunk.last_modified == ts


def test_syntax_error_raises_parse_error(extractor):
    with pytest.raises(ParseError):
        _parse(extractor, "package p\n\nfunc Broken( {\n")


@pytest.mark.parametrize("source", ["func F() {}\n", "", "// just a comment\n"])
def test_missing_package_clause_raises_parse_error(extractor, source):
    with pytest.raises(ParseError, match="package"):
        _parse(extractor, source)


def test_file_without_package_is_skipped(tmp_path, extractor):
    _write(tmp_path, "nopkg.go", "func F() {}\n")
    _write(tmp_path, "ok.go", "package p\nfunc G() {}\n")

    by_path = {f.path: f for f in extractor.parse_files(tmp_path, "proj")}
    assert by_path["nopkg.go"].error is not None
    assert by_path["nopkg.go"].chunks == []
    assert [c.name for c in by_path["ok.go"].chunks] == ["G"]


# ------------------------------------------------------------------
# Doc comments
# ------------------------------------------------------------------

def test_doc_requires_adjacent_comment(extractor):
    source = "package p\n\n// Detached.\n\nfunc F() {}\n"
    [chunk] = _parse(extractor, source)
    assert chunk.doc_string == ""


def test_doc_ignores_trailing_comment_of_previous_line(extractor):
    source = "package p\n\nvar x = 1 // about x\n// F does things.\nfunc F() {}\n"
    [chunk] = _parse(extractor, source)
    assert chunk.doc_string == "F does things.\n"


def test_doc_block_comment(extractor):
    source = "package p\n\n/*\n  Block doc.\n*/\nfunc F() {}\n"
    [chunk] = _parse(extractor, source)
    assert chunk.doc_string == "  Block doc.\n"


def test_doc_skips_directives(extractor):
    source = "package p\n\n// F is generated.\n//go:noinline\nfunc F() {}\n"
    [chunk] = _parse(extractor, source)
    assert chunk.doc_string == "F is generated.\n"


def test_doc_trailing_whitespace_and_blank_runs(extractor):
    source = "package p\n\n//\n// First.   \n//\n//\n// Second.\n//\nfunc F() {}\n"
    [chunk] = _parse(extractor, source)
    assert chunk.doc_string == "First.\n\nSecond.\n"


# ------------------------------------------------------------------
# HTTP heuristic
# ------------------------------------------------------------------

def test_router_endpoints(extractor):
    source = """\
package api

func Routes(r *gin.Engine) {
\tr.GET("/users", listUsers)
\tr.POST(`/users`, createUser)
\tr.OPTIONS("/users", preflight)
\tr.Group("/v1")
\tr.GET(path, handler)
}
"""
    [chunk] = _parse(extractor, source)
    assert chunk.http_endpoints == ("GET /users", "POST `/users`", "OPTIONS /users")
    assert chunk.http_calls == ()


def test_client_calls_appear_in_both_lists(extractor):
    source = """\
package client

func Fetch() {
\thttp.Get("https://api.example.com/items")
\tc.Delete("/items/1")
\tc.Head("/items")
}
"""
    [chunk] = _parse(extractor, source)
    assert chunk.http_endpoints == (
        "Get https://api.example.com/items",
        "Delete /items/1",
        "Head /items",
    )
    assert chunk.http_calls == ("Get https://api.example.com/items", "Delete /items/1")


def test_nested_calls_found(extractor):
    source = """\
package p

func F() {
\tgo func() {
\t\tdefer resp(client.Post("/hook", body))
\t}()
}
"""
    [chunk] = _parse(extractor, source)
    assert chunk.http_endpoints == ("Post /hook",)
    assert chunk.http_calls == ("Post /hook",)


def test_plain_function_call_not_matched(extractor):
    source = 'package p\n\nfunc F() {\n\tGet("/x")\n}\n'
    [chunk] = _parse(extractor, source)
    assert chunk.http_endpoints == ()


# ------------------------------------------------------------------
# Traversal
# ------------------------------------------------------------------

def test_walk_skips_vendor_hidden_and_non_go(tmp_path, extractor):
    _write(tmp_path, "main.go", "package main\nfunc Main() {}\n")
    _write(tmp_path, "b/util.go", "package b\nfunc Util() {}\n")
    _write(tmp_path, "a/x.go", "package a\nfunc X() {}\n")
    _write(tmp_path, "vendor/dep/dep.go", "package dep\nfunc Dep() {}\n")
    _write(tmp_path, "node_modules/m/m.go", "package m\nfunc M() {}\n")
    _write(tmp_path, ".git/hooks/h.go", "package h\nfunc H() {}\n")
    _write(tmp_path, "README.md", "# readme\n")

    files = [p.relative_to(tmp_path).as_posix() for p in extractor.walk(tmp_path)]
    assert files == ["main.go", "a/x.go", "b/util.go"]


def test_walk_enters_hidden_root(tmp_path, extractor):
    root = tmp_path / ".project"
    _write(root, "main.go", "package main\nfunc Main() {}\n")
    assert [p.name for p in extractor.walk(root)] == ["main.go"]


def test_walk_missing_root_raises(tmp_path, extractor):
    with pytest.raises(TraversalError):
        list(extractor.walk(tmp_path / "missing"))


def test_parse_relative_paths_and_order(tmp_path, extractor):
    _write(tmp_path, "z.go", "package p\nfunc Z() {}\n")
    _write(tmp_path, "sub/a.go", "package sub\nfunc A() {}\nfunc B() {}\n")

    chunks = extractor.parse(tmp_path, "proj")
    assert [c.id for c in chunks] == ["proj:z.go:Z", "proj:sub/a.go:A", "proj:sub/a.go:B"]


def test_parse_files_tolerates_broken_file(tmp_path, extractor, caplog):
    _write(tmp_path, "bad.go", "package p\nfunc Bad( {\n")
    _write(tmp_path, "good.go", "package p\nfunc Good() {}\n")

    with caplog.at_level(logging.WARNING, logger="codevault.ingest.base"):
        files = extractor.parse_files(tmp_path, "proj")

    by_path = {f.path: f for f in files}
    assert by_path["bad.go"].error is not None
    assert by_path["bad.go"].chunks == []
    assert by_path["bad.go"].content_hash != ""
    assert [c.name for c in by_path["good.go"].chunks] == ["Good"]
    assert by_path["good.go"].error is None
    assert by_path["good.go"].modified_at.tzinfo is not None
    assert "bad.go" in caplog.text


def test_parse_files_hash_is_content_based(tmp_path, extractor):
    _write(tmp_path, "a.go", "package p\nfunc A() {}\n")
    _write(tmp_path, "b.go", "package p\nfunc A() {}\n")
    a, b = extractor.parse_files(tmp_path, "proj")
    assert a.content_hash == b.content_hash
    assert len(a.content_hash) == 64


def test_reparse_is_idempotent(tmp_path, extractor):
    _write(tmp_path, "a.go", SERVER_GO)
    first = [c.id for c in extractor.parse(tmp_path, "proj")]
    second = [c.id for c in extractor.parse(tmp_path, "proj")]
    assert first == second


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

@pytest.mark.parametrize("name", ["go", "Go", "golang"])
def test_get_extractor_go(name):
    assert isinstance(get_extractor(name), GoExtractor)


def test_get_extractor_unsupported():
    with pytest.raises(ValueError, match="Unsupported language"):
        get_extractor("cobol")


def test_supported_languages():
    assert supported_languages() == ["go"]
