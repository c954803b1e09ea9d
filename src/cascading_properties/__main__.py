#!/usr/bin/env python3
"""Command-line interface for cascading_properties."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, NoReturn

from . import CascadingPropertySet, parse_fragment
from .errors import CascadeError
from .selector import SelectorError


def _get_version() -> str:
    try:
        return version("cascading-properties")
    except PackageNotFoundError:  # pragma: no cover
        return "dev"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cascading-properties",
        description="Resolve cascading property values for elements of an HTML fragment.",
        epilog=(
            "The definitions file is JSON with two optional keys:\n"
            '  {"properties": {"color": {"default_value": "black", "inherited": true}},\n'
            '   "rules": {"ul": {"color": "red", "li:last-child": {"color": "blue"}}}}\n'
            "\n"
            "Examples:\n"
            "  cascading-properties defs.json list.html --selector li\n"
            "  cat list.html | cascading-properties defs.json - --selector 'li' --property color\n"
            "\n"
            "If you don't have the 'cascading-properties' command available, use:\n"
            "  python -m cascading_properties ...\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("definitions", help="JSON file with property declarations and rules")
    parser.add_argument(
        "path",
        nargs="?",
        help="HTML fragment to query, or '-' to read from stdin",
    )
    parser.add_argument(
        "--selector",
        help="CSS selector for choosing elements (defaults to the top-level elements)",
    )
    parser.add_argument(
        "--property",
        help="Only resolve this property (default: every applicable property)",
    )
    parser.add_argument(
        "--first",
        action="store_true",
        help="Only output the first selected element",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log rule registration and rejected selectors to stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cascading-properties {_get_version()}",
    )

    args = parser.parse_args(argv)

    if not args.path:
        parser.print_help(sys.stderr)
        raise SystemExit(1)

    return args


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()

    return Path(path).read_text()


def _load_definitions(path: str) -> CascadingPropertySet:
    definitions = json.loads(Path(path).read_text())
    if not isinstance(definitions, dict):
        raise CascadeError(f"{path}: expected a JSON object")
    return CascadingPropertySet(definitions.get("properties") or {}, definitions.get("rules") or {})


def _fail(message: str, error: Exception) -> NoReturn:
    print(message, file=sys.stderr)
    raise SystemExit(2) from error


def main() -> NoReturn | None:
    args = _parse_args(sys.argv[1:])
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        cascade = _load_definitions(args.definitions)
    except (OSError, ValueError, CascadeError) as e:
        _fail(f"Invalid definitions: {e}", e)

    root = parse_fragment(_read_text(args.path))

    try:
        if args.selector:
            elements: list[Any] = root.query(args.selector)
            if root.name != "#document-fragment" and root.matches(args.selector):
                elements.insert(0, root)
        elif root.name == "#document-fragment":
            elements = root.element_children
        else:
            elements = [root]
    except SelectorError as e:
        _fail(str(e), e)

    if not elements:
        raise SystemExit(1)

    if args.first:
        elements = [elements[0]]

    for element in elements:
        if args.property:
            values = {args.property: cascade.resolve(element, args.property)}
        else:
            values = cascade.resolve_all(element)
        sys.stdout.write(json.dumps(values, sort_keys=True, default=str))
        sys.stdout.write("\n")
    return None


if __name__ == "__main__":
    main()
