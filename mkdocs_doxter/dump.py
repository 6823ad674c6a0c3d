#!/usr/bin/env python3
"""
Print the symbol table extracted from C sources.

Usage:
    python -m mkdocs_doxter.dump include/
    python -m mkdocs_doxter.dump src/engine.h --tokens
    python -m mkdocs_doxter.dump src/ --ext .h --skip-static --skip-undocumented
"""

import argparse
import os
import sys

from .parser import ParseOptions, Project, SymbolKind, parse_source


def _collect(target, exts):
    files = []
    if os.path.isfile(target):
        files.append(target)
    elif os.path.isdir(target):
        for dirpath, dirnames, fnames in os.walk(target):
            dirnames.sort()
            for fn in sorted(fnames):
                _, ext = os.path.splitext(fn)
                if ext.lower() in exts:
                    files.append(os.path.join(dirpath, fn))
    else:
        return None
    return files


def format_symbol(project, symbol, show_tokens=False):
    flags = []
    if symbol.is_static:
        flags.append("static")
    if symbol.is_typedef:
        flags.append("typedef")
    if symbol.is_empty_macro:
        flags.append("empty")
    name = symbol.name or "-"
    decl = " ".join(symbol.declaration.split())
    line = f"<{symbol.kind.name.lower()}> {symbol.line},{symbol.column}"
    if flags:
        line += f" [{','.join(flags)}]"
    line += f" {name}"
    if decl:
        line += f"  {decl}"
    if not show_tokens or symbol.info is None:
        return line

    out = [line]
    for field in ("return_ts", "params_ts", "args_ts", "value_ts", "body_ts"):
        span = getattr(symbol.info, field, None)
        if span:
            out.append(f"    {field[:-3]}: {project.span_text(span)}")
    return "\n".join(out)


def main(argv=None):
    p = argparse.ArgumentParser(description="Dump the C declarations found by doxter")
    p.add_argument("path", help="File or directory to scan")
    p.add_argument(
        "--ext",
        nargs="+",
        default=[".h", ".c"],
        help="File extensions to process (default: .h .c)",
    )
    p.add_argument("--skip-static", action="store_true", help="Drop static functions")
    p.add_argument(
        "--skip-undocumented", action="store_true", help="Drop symbols without a doc comment"
    )
    p.add_argument(
        "--skip-empty-defines", action="store_true", help="Drop #define NAME without a value"
    )
    p.add_argument("--tokens", action="store_true", help="Also print the token spans")
    args = p.parse_args(argv)

    exts = set(e.lower() if e.startswith(".") else f".{e.lower()}" for e in args.ext)
    files = _collect(args.path, exts)
    if files is None:
        print(f"error: {args.path} not found", file=sys.stderr)
        sys.exit(1)

    project = Project(
        ParseOptions(
            skip_static_functions=args.skip_static,
            skip_undocumented=args.skip_undocumented,
            skip_empty_defines=args.skip_empty_defines,
        )
    )
    failed = 0
    for fpath in files:
        index = project.add_source(fpath)
        if parse_source(project, index) < 0:
            failed += 1
            print(f"error: cannot read {fpath}", file=sys.stderr)
            continue
        print(f"{fpath}:")
        for symbol in project.unit_symbols(index):
            print("  " + format_symbol(project, symbol, args.tokens).replace("\n", "\n  "))

    nsym = sum(1 for s in project.symbols if s.kind is not SymbolKind.FILE)
    print(f"\n{nsym} symbols in {len(files) - failed}/{len(files)} files")
    return 0 if not failed else 1


if __name__ == "__main__":
    sys.exit(main())
