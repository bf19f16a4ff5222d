"""Unit tests for the parser engine and language visitors.

Tests cover:
- File hashing and unsupported files
- TypeScript symbols, exports, imports and references
- Python, Go, Rust, Java and C declaration rules
- Range invariants on every extracted symbol
"""

from __future__ import annotations

from pathlib import Path

import pytest

from polyindex.engine.languages import GrammarRegistry
from polyindex.engine.parser import ParserEngine
from polyindex.engine.types import (
    ExportKind,
    FileIndex,
    ImportKind,
    ReferenceKind,
    SymbolKind,
)


# Check if tree-sitter is available
def _has_tree_sitter() -> bool:
    """Check if tree-sitter-language-pack is installed."""
    try:
        import tree_sitter_language_pack  # noqa: F401

        return True
    except ImportError:
        return False


requires_tree_sitter = pytest.mark.skipif(
    not _has_tree_sitter(), reason="tree-sitter-language-pack not installed"
)

TYPESCRIPT_SOURCE = """\
import { useState as useLocal, useEffect } from "react";
import Default from "./default";
import * as utils from "./utils";
import "./styles.css";

/** Adds numbers. */
export function add(a: number, b: number = 2): number {
  return a + b;
}

function internal() {
  return add(1, 2);
}

export const handler = async (event) => {
  internal();
};

export const MAX_SIZE = 10;

export class Widget extends Base implements Renderable {
  constructor(name: string) {
    super();
  }

  static create(): Widget {
    return new Widget("x");
  }

  get size() {
    return 1;
  }
}

export interface Renderable {
  render(): void;
}

export type Id = string;
export enum Color { Red, Green }
export { internal as helper };
export * from "./reexported";
export default Widget;
"""

PYTHON_SOURCE = '''\
"""Module doc."""
import os
import numpy as np
from .models import User, Order as O
from typing import *

MAX_RETRIES = 3
__all__ = ["Service", "helper"]


class Service(Base, Mixin):
    """Handles requests."""

    def __init__(self, client):
        self.client = client

    @property
    def name(self):
        return "svc"

    @staticmethod
    def build(config=None):
        return Service(config)

    async def fetch(self, *ids):
        return await self.client.get(ids)


def helper(x: int) -> int:
    return _private(x)


def _private(x):
    return x
'''

GO_SOURCE = """\
package shop

import (
\t"fmt"
\t_ "embed"
\tstr "strings"
)

const MaxItems = 10

type Cart struct {
\titems []string
}

type Store interface {
\tSave(c *Cart) error
}

// Add appends an item.
func (c *Cart) Add(item string) {
\tc.items = append(c.items, item)
\tfmt.Println(str.ToUpper(item))
}

func newCart() *Cart {
\treturn &Cart{}
}
"""

RUST_SOURCE = """\
use std::collections::{HashMap, HashSet};
use crate::model::User as Account;

pub struct Point {
    pub x: f64,
}

pub trait Shape {
    fn area(&self) -> f64;
}

impl Point {
    pub fn new(x: f64) -> Self {
        Point { x }
    }

    fn norm(&self) -> f64 {
        self.x.abs()
    }
}

impl Shape for Point {
    fn area(&self) -> f64 {
        0.0
    }
}

fn helper() {}
"""

JAVA_SOURCE = """\
package com.shop;

import java.util.List;
import java.util.*;

public class OrderService extends BaseService implements Auditable, Closeable {
    public static final int MAX_ORDERS = 100;

    public OrderService() {
        super();
    }

    public List<Order> list() {
        return repo.findAll();
    }

    private void audit() {
        new AuditEntry();
    }
}
"""

C_SOURCE = """\
#include <stdio.h>
#define MAX_LEN 64

static void bump(void) {
}

int main(int argc, char **argv) {
    bump();
    printf("x");
    return 0;
}
"""


@pytest.fixture(scope="module")
def engine() -> ParserEngine:
    return ParserEngine()


def _parse(engine: ParserEngine, file_id: str, source: str) -> FileIndex:
    file_index = engine.parse_file(Path("/nonexistent") / file_id, source, file_id=file_id)
    assert file_index is not None
    return file_index


def _by_name(file_index: FileIndex) -> dict:
    symbols = {}
    for symbol in file_index.symbols:
        symbols.setdefault(symbol.name, symbol)
    return symbols


def _assert_ranges(file_index: FileIndex):
    for symbol in file_index.symbols:
        assert symbol.range.start <= symbol.range.end
        assert symbol.range.contains(symbol.selection_range), symbol.name
        assert symbol.range.start.line >= 1


class TestParserEngine:
    """Tests for ParserEngine basics."""

    def test_hash_content(self):
        """Test hashing is stable and content-sensitive."""
        assert ParserEngine.hash_content("abc") == ParserEngine.hash_content(b"abc")
        assert ParserEngine.hash_content("abc") != ParserEngine.hash_content("abd")
        assert len(ParserEngine.hash_content("abc")) == 16

    def test_unsupported_extension(self, engine: ParserEngine):
        """Test unknown file types yield nothing."""
        assert engine.parse_file("notes.txt", "hello") is None

    def test_missing_grammar(self, monkeypatch):
        """Test a language without a grammar yields nothing."""
        registry = GrammarRegistry()
        monkeypatch.setattr(registry, "load_language", lambda name: None)
        assert ParserEngine(registry).parse_file("a.py", "x = 1") is None

    @requires_tree_sitter
    def test_reads_file_from_disk(self, engine: ParserEngine, tmp_path: Path):
        """Test content is read when not given."""
        path = tmp_path / "mod.py"
        path.write_text("def f():\n    pass\n")
        file_index = engine.parse_file(path, file_id="mod.py")
        assert file_index.file == "mod.py"
        assert file_index.language == "python"
        assert file_index.hash == ParserEngine.hash_content(path.read_bytes())
        assert file_index.last_modified == path.stat().st_mtime
        assert [s.name for s in file_index.symbols] == ["f"]

    @requires_tree_sitter
    def test_syntax_errors_are_tolerated(self, engine: ParserEngine):
        """Test a broken file still yields what it can."""
        file_index = _parse(engine, "broken.py", "def ok():\n    pass\n\ndef broken(:\n")
        assert "ok" in _by_name(file_index)


@requires_tree_sitter
class TestTypeScript:
    """Tests for ECMAScript-family extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "src/widget.ts", TYPESCRIPT_SOURCE)

    def test_ranges(self, file_index: FileIndex):
        """Test every selection range lies inside its symbol range."""
        _assert_ranges(file_index)

    def test_function(self, file_index: FileIndex):
        """Test an exported function declaration."""
        add = _by_name(file_index)["add"]
        assert add.kind == SymbolKind.FUNCTION
        assert add.exported
        assert add.documentation == "Adds numbers."
        assert add.return_type == "number"
        assert [p.name for p in add.parameters] == ["a", "b"]
        assert add.parameters[0].type == "number"
        assert add.parameters[1].default_value == "2"
        assert add.range.start.line == 7
        assert add.selection_range.start.line == 7
        assert add.signature == "function add(a: number, b: number = 2): number {"

    def test_export_detection(self, file_index: FileIndex):
        """Test exported and module-private declarations."""
        symbols = _by_name(file_index)
        assert not symbols["internal"].exported
        for name in ("add", "handler", "MAX_SIZE", "Widget", "Renderable", "Id", "Color"):
            assert symbols[name].exported, name

    def test_arrow_function(self, file_index: FileIndex):
        """Test arrow functions bound to a name."""
        handler = _by_name(file_index)["handler"]
        assert handler.kind == SymbolKind.FUNCTION
        assert handler.is_async
        assert [p.name for p in handler.parameters] == ["event"]

    def test_constant(self, file_index: FileIndex):
        """Test UPPER_CASE top-level consts."""
        assert _by_name(file_index)["MAX_SIZE"].kind == SymbolKind.CONSTANT

    def test_class(self, file_index: FileIndex):
        """Test class heritage and members."""
        symbols = _by_name(file_index)
        widget = symbols["Widget"]
        assert widget.kind == SymbolKind.CLASS
        assert widget.extends == "Base"
        assert widget.implements == ("Renderable",)
        assert widget.children == ("constructor", "create", "size")

        assert symbols["constructor"].kind == SymbolKind.CONSTRUCTOR
        assert symbols["constructor"].parent == "Widget"
        assert symbols["create"].kind == SymbolKind.METHOD
        assert symbols["create"].is_static
        assert symbols["size"].kind == SymbolKind.PROPERTY

    def test_type_declarations(self, file_index: FileIndex):
        """Test interfaces, aliases and enums."""
        symbols = _by_name(file_index)
        assert symbols["Renderable"].kind == SymbolKind.INTERFACE
        assert symbols["render"].parent == "Renderable"
        assert symbols["Id"].kind == SymbolKind.TYPE
        assert symbols["Color"].kind == SymbolKind.ENUM

    def test_imports(self, file_index: FileIndex):
        """Test named, default, namespace and side-effect imports."""
        imports = {i.source: i for i in file_index.imports}
        react = imports["react"]
        assert react.kind == ImportKind.NAMED
        assert [s.local_name for s in react.specifiers] == ["useLocal", "useEffect"]
        assert imports["./default"].kind == ImportKind.DEFAULT
        assert imports["./utils"].kind == ImportKind.NAMESPACE
        assert imports["./utils"].specifiers[0].local_name == "utils"
        assert imports["./styles.css"].kind == ImportKind.SIDE_EFFECT
        assert imports["./styles.css"].specifiers == ()

    def test_exports(self, file_index: FileIndex):
        """Test export statements of every form."""
        exports = {(e.name, e.kind) for e in file_index.exports}
        assert ("add", ExportKind.NAMED) in exports
        assert ("handler", ExportKind.NAMED) in exports
        assert ("helper", ExportKind.NAMED) in exports
        assert ("*", ExportKind.RE_EXPORT) in exports
        assert ("Widget", ExportKind.DEFAULT) in exports
        reexport = next(e for e in file_index.exports if e.kind == ExportKind.RE_EXPORT)
        assert reexport.source == "./reexported"

    def test_references(self, file_index: FileIndex):
        """Test calls, instantiations and heritage references."""
        refs = {(r.symbol, r.kind) for r in file_index.references}
        assert ("add", ReferenceKind.CALL) in refs
        assert ("internal", ReferenceKind.CALL) in refs
        assert ("Widget", ReferenceKind.INSTANTIATE) in refs
        assert ("Base", ReferenceKind.EXTENDS) in refs
        assert ("Renderable", ReferenceKind.IMPLEMENTS) in refs
        assert all(r.symbol != "super" for r in file_index.references)

    def test_reference_context(self, file_index: FileIndex):
        """Test references carry their source line."""
        call = next(r for r in file_index.references if r.symbol == "add")
        assert call.context == "return add(1, 2);"
        assert call.range.start.line == 12


@requires_tree_sitter
class TestPython:
    """Tests for Python extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "pkg/service.py", PYTHON_SOURCE)

    def test_ranges(self, file_index: FileIndex):
        """Test every selection range lies inside its symbol range."""
        _assert_ranges(file_index)

    def test_class(self, file_index: FileIndex):
        """Test bases and docstring."""
        service = _by_name(file_index)["Service"]
        assert service.kind == SymbolKind.CLASS
        assert service.extends == "Base"
        assert service.implements == ("Mixin",)
        assert service.documentation == "Handles requests."
        assert service.exported
        assert service.children == ("__init__", "name", "build", "fetch")

    def test_methods(self, file_index: FileIndex):
        """Test constructor, property, static and async methods."""
        symbols = _by_name(file_index)
        init = symbols["__init__"]
        assert init.kind == SymbolKind.CONSTRUCTOR
        assert [p.name for p in init.parameters] == ["client"]
        assert not init.exported

        name = symbols["name"]
        assert name.kind == SymbolKind.PROPERTY
        # The range includes the decorator
        assert name.range.start.line == 17
        assert name.selection_range.start.line == 18

        build = symbols["build"]
        assert build.is_static
        assert build.parameters[0].default_value == "None"

        fetch = symbols["fetch"]
        assert fetch.is_async
        assert fetch.parameters[0].name == "ids"
        assert fetch.parameters[0].rest

    def test_export_by_underscore(self, file_index: FileIndex):
        """Test top-level names without a leading underscore are exported."""
        symbols = _by_name(file_index)
        assert symbols["helper"].exported
        assert not symbols["_private"].exported
        assert symbols["helper"].return_type == "int"
        assert symbols["helper"].parameters[0].type == "int"

    def test_constant(self, file_index: FileIndex):
        """Test module-level UPPER_CASE assignments."""
        assert _by_name(file_index)["MAX_RETRIES"].kind == SymbolKind.CONSTANT

    def test_imports(self, file_index: FileIndex):
        """Test import forms."""
        imports = {i.source: i for i in file_index.imports}
        assert imports["os"].kind == ImportKind.NAMESPACE
        assert imports["numpy"].specifiers[0].local_name == "np"
        models = imports[".models"]
        assert [s.local_name for s in models.specifiers] == ["User", "O"]
        assert imports["typing"].kind == ImportKind.NAMESPACE

    def test_all_exports(self, file_index: FileIndex):
        """Test __all__ entries become exports."""
        assert [e.name for e in file_index.exports] == ["Service", "helper"]

    def test_references(self, file_index: FileIndex):
        """Test calls, decorators and base classes."""
        refs = {(r.symbol, r.kind) for r in file_index.references}
        assert ("_private", ReferenceKind.CALL) in refs
        assert ("Service", ReferenceKind.CALL) in refs
        assert ("property", ReferenceKind.DECORATOR) in refs
        assert ("staticmethod", ReferenceKind.DECORATOR) in refs
        assert ("Base", ReferenceKind.EXTENDS) in refs


@requires_tree_sitter
class TestGo:
    """Tests for Go extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "shop/cart.go", GO_SOURCE)

    def test_ranges(self, file_index: FileIndex):
        """Test every selection range lies inside its symbol range."""
        _assert_ranges(file_index)

    def test_types(self, file_index: FileIndex):
        """Test structs and interfaces."""
        symbols = _by_name(file_index)
        assert symbols["Cart"].kind == SymbolKind.CLASS
        assert symbols["Store"].kind == SymbolKind.INTERFACE
        assert symbols["MaxItems"].kind == SymbolKind.CONSTANT

    def test_method_receiver(self, file_index: FileIndex):
        """Test methods are attached to their receiver type."""
        add = _by_name(file_index)["Add"]
        assert add.kind == SymbolKind.METHOD
        assert add.parent == "Cart"
        assert add.documentation == "Add appends an item."
        assert "Add" in _by_name(file_index)["Cart"].children

    def test_export_by_capitalization(self, file_index: FileIndex):
        """Test capitalized names are exported."""
        symbols = _by_name(file_index)
        assert symbols["Add"].exported
        assert symbols["Cart"].exported
        assert not symbols["newCart"].exported

    def test_imports(self, file_index: FileIndex):
        """Test plain, blank and aliased imports."""
        imports = {i.source: i for i in file_index.imports}
        assert imports["fmt"].specifiers[0].local_name == "fmt"
        assert imports["embed"].kind == ImportKind.SIDE_EFFECT
        assert imports["strings"].specifiers[0].local_name == "str"

    def test_references(self, file_index: FileIndex):
        """Test selector calls and composite literals."""
        refs = {(r.symbol, r.kind) for r in file_index.references}
        assert ("Println", ReferenceKind.CALL) in refs
        assert ("ToUpper", ReferenceKind.CALL) in refs
        assert ("Cart", ReferenceKind.INSTANTIATE) in refs


@requires_tree_sitter
class TestRust:
    """Tests for Rust extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "src/geometry.rs", RUST_SOURCE)

    def test_ranges(self, file_index: FileIndex):
        """Test every selection range lies inside its symbol range."""
        _assert_ranges(file_index)

    def test_items(self, file_index: FileIndex):
        """Test structs, traits and free functions."""
        symbols = _by_name(file_index)
        assert symbols["Point"].kind == SymbolKind.CLASS
        assert symbols["Point"].exported
        assert symbols["Shape"].kind == SymbolKind.INTERFACE
        assert symbols["helper"].kind == SymbolKind.FUNCTION
        assert not symbols["helper"].exported

    def test_impl_methods(self, file_index: FileIndex):
        """Test associated functions and methods."""
        symbols = {(s.parent, s.name): s for s in file_index.symbols}
        new = symbols[("Point", "new")]
        assert new.kind == SymbolKind.METHOD
        assert new.is_static
        assert new.exported
        norm = symbols[("Point", "norm")]
        assert not norm.is_static
        assert not norm.exported
        assert symbols[("Shape", "area")].kind == SymbolKind.METHOD

    def test_trait_impl(self, file_index: FileIndex):
        """Test a trait impl records the trait as implemented."""
        impls = [s for s in file_index.symbols if s.name == "Point" and s.implements]
        assert [s.implements for s in impls] == [("Shape",)]
        refs = {(r.symbol, r.kind) for r in file_index.references}
        assert ("Shape", ReferenceKind.IMPLEMENTS) in refs
        assert ("Point", ReferenceKind.INSTANTIATE) in refs

    def test_use_trees(self, file_index: FileIndex):
        """Test grouped and aliased use declarations."""
        imports = {i.source: i for i in file_index.imports}
        assert [s.name for s in imports["std::collections"].specifiers] == ["HashMap", "HashSet"]
        account = imports["crate::model"].specifiers[0]
        assert account.name == "User"
        assert account.local_name == "Account"


@requires_tree_sitter
class TestJava:
    """Tests for JVM-family extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "src/OrderService.java", JAVA_SOURCE)

    def test_ranges(self, file_index: FileIndex):
        """Test every selection range lies inside its symbol range."""
        _assert_ranges(file_index)

    def test_class(self, file_index: FileIndex):
        """Test heritage and public export."""
        service = next(s for s in file_index.symbols if s.kind == SymbolKind.CLASS)
        assert service.name == "OrderService"
        assert service.extends == "BaseService"
        assert service.implements == ("Auditable", "Closeable")
        assert service.exported

    def test_members(self, file_index: FileIndex):
        """Test constructors, methods and constants."""
        symbols = {(s.kind, s.name): s for s in file_index.symbols}
        assert symbols[(SymbolKind.CONSTRUCTOR, "OrderService")].parent == "OrderService"
        assert symbols[(SymbolKind.METHOD, "list")].exported
        audit = symbols[(SymbolKind.METHOD, "audit")]
        assert not audit.exported
        assert audit.visibility == "private"
        assert symbols[(SymbolKind.CONSTANT, "MAX_ORDERS")].parent == "OrderService"

    def test_imports(self, file_index: FileIndex):
        """Test single-type and wildcard imports."""
        assert [(i.source, i.kind) for i in file_index.imports] == [
            ("java.util", ImportKind.NAMED),
            ("java.util", ImportKind.NAMESPACE),
        ]

    def test_references(self, file_index: FileIndex):
        """Test calls, instantiations and heritage."""
        refs = {(r.symbol, r.kind) for r in file_index.references}
        assert ("findAll", ReferenceKind.CALL) in refs
        assert ("AuditEntry", ReferenceKind.INSTANTIATE) in refs
        assert ("BaseService", ReferenceKind.EXTENDS) in refs
        assert ("Closeable", ReferenceKind.IMPLEMENTS) in refs


@requires_tree_sitter
class TestC:
    """Tests for C-family extraction."""

    @pytest.fixture(scope="class")
    def file_index(self, engine: ParserEngine) -> FileIndex:
        return _parse(engine, "src/main.c", C_SOURCE)

    def test_functions(self, file_index: FileIndex):
        """Test static functions are not exported."""
        symbols = _by_name(file_index)
        assert symbols["main"].exported
        assert not symbols["bump"].exported
        assert symbols["bump"].parameters == ()
        assert [p.name for p in symbols["main"].parameters] == ["argc", "argv"]

    def test_macro_constant(self, file_index: FileIndex):
        """Test #define constants."""
        assert _by_name(file_index)["MAX_LEN"].kind == SymbolKind.CONSTANT

    def test_include(self, file_index: FileIndex):
        """Test includes are side-effect imports."""
        assert [(i.source, i.kind) for i in file_index.imports] == [
            ("stdio.h", ImportKind.SIDE_EFFECT)
        ]

    def test_calls(self, file_index: FileIndex):
        """Test call references."""
        assert {r.symbol for r in file_index.references} >= {"bump", "printf"}
