"""Architectural tests for the ordering layer.

Static, file/AST-based checks: they read source files under the project root
and never import application code.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path
from typing import Iterable, List

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
PKG_DIR = PROJECT_ROOT / "kanban_service"
ROUTES_DIR = PKG_DIR / "routes"
LOGIC_DIR = PKG_DIR / "logic"

_SQL_PATTERN = re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE)\b.+\b(FROM|INTO|SET|WHERE)\b")
_POSITION_WRITE = re.compile(r"UPDATE\s+.*\bSET\b.*position", re.DOTALL)


def _py_files(root: Path) -> List[Path]:
    return sorted(p for p in root.rglob("*.py") if "__pycache__" not in p.parts)


def _parse(path: Path) -> ast.AST:
    try:
        return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except SyntaxError as exc:
        pytest.fail(f"Failed to parse {path}: {exc}")


def _string_constants(tree: ast.AST) -> Iterable[str]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            yield node.value
        elif isinstance(node, ast.JoinedStr):
            yield "".join(v.value for v in node.values if isinstance(v, ast.Constant) and isinstance(v.value, str))


def _imported_modules(tree: ast.AST) -> List[str]:
    names: List[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.append(node.module)
    return names


def test_routes_contain_no_sql():
    offenders = []
    for path in _py_files(ROUTES_DIR):
        for value in _string_constants(_parse(path)):
            if _SQL_PATTERN.search(value):
                offenders.append(f"{path.name}: {value[:60]!r}")
    assert offenders == [], f"Inline SQL in routes: {offenders}"


def test_routes_do_not_import_sqlalchemy():
    for path in _py_files(ROUTES_DIR):
        assert not any(m.startswith("sqlalchemy") for m in _imported_modules(_parse(path))), path.name


def test_only_position_store_rewrites_positions():
    writers = []
    for path in _py_files(PKG_DIR):
        # Implicit string concatenation is folded into one constant by the parser
        for value in _string_constants(_parse(path)):
            if _POSITION_WRITE.search(value):
                writers.append(path.name)
    assert set(writers) <= {"position_store.py"}, f"Position writes outside the store: {sorted(set(writers))}"


def test_routes_do_not_catch_ordering_errors():
    for path in _py_files(ROUTES_DIR):
        tree = _parse(path)
        handlers = [n for n in ast.walk(tree) if isinstance(n, ast.ExceptHandler)]
        assert handlers == [], f"{path.name} handles exceptions locally; use the global problem handler"


def test_ordering_manager_has_public_operations():
    tree = _parse(LOGIC_DIR / "ordering.py")
    classes = {n.name: n for n in ast.walk(tree) if isinstance(n, ast.ClassDef)}
    assert "OrderedCollectionManager" in classes
    methods = {n.name for n in classes["OrderedCollectionManager"].body if isinstance(n, ast.FunctionDef)}
    assert {"reorder", "move", "insert", "remove", "read_group"} <= methods


def test_error_codes_are_unique():
    tree = _parse(LOGIC_DIR / "errors.py")
    codes = []
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            for stmt in node.body:
                if (
                    isinstance(stmt, ast.Assign)
                    and any(isinstance(t, ast.Name) and t.id == "code" for t in stmt.targets)
                    and isinstance(stmt.value, ast.Constant)
                ):
                    codes.append(stmt.value.value)
    assert len(codes) == len(set(codes)) >= 7
