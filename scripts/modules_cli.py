"""Headless module administration against the configured state store.

Usage:
  python scripts/modules_cli.py list [--category management]
  python scripts/modules_cli.py stats
  python scripts/modules_cli.py enable dispatch [--force]
  python scripts/modules_cli.py disable projects [--force]
  python scripts/modules_cli.py preset lite
  python scripts/modules_cli.py reset
  python scripts/modules_cli.py export [--out module-config.json]
  python scripts/modules_cli.py import module-config.json

--force auto-enables missing dependencies / auto-disables dependents.
Exit code 1 when the resolver rejects the operation.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Sequence

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.config import get_config  # noqa: E402
from core.log import configure_logging  # noqa: E402
from core.modules.resolver import (  # noqa: E402
    ModuleResolver,
    resolver_from_config,
)
from core.modules.results import OperationResult  # noqa: E402


def build_resolver() -> ModuleResolver:
    cfg = get_config()
    configure_logging(cfg.logging.level, cfg.logging.format)
    return resolver_from_config(cfg)


def _report(result: OperationResult) -> int:
    prefix = "[ok]" if result.ok else f"[{result.error_type}]"
    print(f"{prefix} {result.message}")
    if result.modules:
        print("  modules: " + ", ".join(result.module_ids))
    if result.ignored:
        print("  ignored: " + ", ".join(result.ignored))
    if result.repaired:
        print("  repaired: " + ", ".join(result.repaired))
    return 0 if result.ok else 1


def _cmd_list(resolver: ModuleResolver, args) -> int:
    views = (
        resolver.list_by_category(args.category)
        if args.category
        else resolver.list_all()
    )
    for v in views:
        mark = "x" if v.enabled else " "
        core = " (core)" if v.is_core else ""
        deps = f" <- {', '.join(v.dependencies)}" if v.dependencies else ""
        print(f"[{mark}] {v.id:<14} {v.category.value:<11}{core}{deps}")
    return 0


def _cmd_stats(resolver: ModuleResolver, args) -> int:
    print(json.dumps(resolver.stats().to_dict(), indent=2))
    return 0


def _cmd_export(resolver: ModuleResolver, args) -> int:
    text = resolver.export_config().to_json()
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
        print(f"[ok] exported to {args.out}")
    else:
        print(text)
    return 0


def _cmd_import(resolver: ModuleResolver, args) -> int:
    try:
        raw = Path(args.file).read_bytes()
    except OSError as e:
        print(f"[invalid-format] cannot read {args.file}: {e}")
        return 1
    return _report(resolver.import_document(raw))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Manage feature modules")
    sub = ap.add_subparsers(dest="command", required=True)
    p_list = sub.add_parser("list", help="List modules and state")
    p_list.add_argument("--category", default=None)
    sub.add_parser("stats", help="Print enabled/disabled counts")
    for name in ("enable", "disable", "toggle"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a module")
        p.add_argument("module_id")
        p.add_argument(
            "--force",
            action="store_true",
            help="Cascade to dependencies/dependents",
        )
    p_preset = sub.add_parser("preset", help="Apply a preset")
    p_preset.add_argument("key")
    sub.add_parser("reset", help="Enable every module")
    p_export = sub.add_parser("export", help="Write export document")
    p_export.add_argument("--out", default=None)
    p_import = sub.add_parser("import", help="Import a config document")
    p_import.add_argument("file")
    return ap


def main(argv: Sequence[str] | None = None) -> int:  # noqa: D401
    args = build_parser().parse_args(argv)
    resolver = build_resolver()
    if args.command == "list":
        return _cmd_list(resolver, args)
    if args.command == "stats":
        return _cmd_stats(resolver, args)
    if args.command == "enable":
        return _report(resolver.enable(args.module_id, args.force))
    if args.command == "disable":
        return _report(resolver.disable(args.module_id, args.force))
    if args.command == "toggle":
        return _report(resolver.toggle(args.module_id, args.force))
    if args.command == "preset":
        return _report(resolver.apply_preset(args.key))
    if args.command == "reset":
        return _report(resolver.reset_to_default())
    if args.command == "export":
        return _cmd_export(resolver, args)
    return _cmd_import(resolver, args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
