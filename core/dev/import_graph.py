"""Import dependency graph for project packages (AST based).

Used in tests to enforce:
  - No cycles between core modules.
  - No forbidden edges (e.g. domain code reaching into the HTTP layer).
  - Domain packages stay free of web-framework imports.
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, Iterator, List, Set, Tuple


def _iter_modules(root: Path, package: str) -> Iterator[Tuple[str, ast.AST]]:
    for py in sorted(root.rglob("*.py")):
        if "__pycache__" in py.parts:
            continue
        rel = py.relative_to(root).with_suffix("")
        parts = [p for p in rel.parts if p != "__init__"]
        name = ".".join([package, *parts])
        try:
            tree = ast.parse(py.read_text(encoding="utf-8"))
        except SyntaxError:
            continue
        yield name, tree


def _resolve_relative(module: str, node: ast.ImportFrom, is_pkg: bool) -> str:
    base = module.split(".")
    # package __init__ resolves relative imports against itself
    drop = node.level - 1 if is_pkg else node.level
    if drop:
        base = base[:-drop]
    if node.module:
        base.append(node.module)
    return ".".join(base)


def _imported_names(name: str, tree: ast.AST, is_pkg: bool) -> Set[str]:
    out: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            out.update(n.name for n in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                out.add(_resolve_relative(name, node, is_pkg))
            elif node.module:
                out.add(node.module)
    return out


def build_import_graph(
    root: str | Path = "core", package: str | None = None
) -> Dict[str, Set[str]]:
    """Edges module -> internal modules it imports (prefix ``package``)."""
    root_path = Path(root)
    pkg = package or root_path.name
    edges: Dict[str, Set[str]] = {}
    for name, tree in _iter_modules(root_path, pkg):
        is_pkg = (root_path / Path(*name.split(".")[1:])).is_dir()
        internal = {
            t
            for t in _imported_names(name, tree, is_pkg)
            if t == pkg or t.startswith(pkg + ".")
        }
        internal.discard(name)
        edges.setdefault(name, set()).update(internal)
    for n in list(edges.keys()):
        for dst in edges[n]:
            edges.setdefault(dst, set())
    return edges


def external_imports(
    root: str | Path = "core", package: str | None = None
) -> Dict[str, Set[str]]:
    """Top-level third-party/stdlib packages imported per module."""
    root_path = Path(root)
    pkg = package or root_path.name
    out: Dict[str, Set[str]] = {}
    for name, tree in _iter_modules(root_path, pkg):
        is_pkg = (root_path / Path(*name.split(".")[1:])).is_dir()
        tops = {
            t.split(".")[0]
            for t in _imported_names(name, tree, is_pkg)
            if not t.startswith(pkg)
        }
        out[name] = tops
    return out


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, [])):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "external_imports",
    "detect_cycles",
    "forbidden_edges",
]
