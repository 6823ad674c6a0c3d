"""
Markdown renderer for the symbol table.

Turns Symbol objects into Markdown blocks with an anchor, a heading, the
declaration in a fenced code block and the converted doc comment.
"""

from __future__ import annotations

from .markup import doxygen_to_markdown
from .parser import SymbolKind

_KIND_LABELS = {
    SymbolKind.FUNCTION: "Function",
    SymbolKind.MACRO: "Macro",
    SymbolKind.STRUCT: "Struct",
    SymbolKind.UNION: "Union",
    SymbolKind.ENUM: "Enum",
    SymbolKind.TYPEDEF: "Type",
    SymbolKind.FILE: "File",
}

_KIND_ANCHOR_PREFIX = {
    SymbolKind.FUNCTION: "func",
    SymbolKind.MACRO: "macro",
    SymbolKind.STRUCT: "struct",
    SymbolKind.UNION: "union",
    SymbolKind.ENUM: "enum",
    SymbolKind.TYPEDEF: "type",
    SymbolKind.FILE: "file",
}


def anchor_id(symbol):
    prefix = _KIND_ANCHOR_PREFIX.get(symbol.kind, "sym")
    return f"{prefix}-{symbol.name}"


def kind_label(symbol):
    label = _KIND_LABELS.get(symbol.kind, "")
    if symbol.kind is SymbolKind.MACRO and symbol.info is not None and symbol.info.args_ts:
        return "Function-like Macro"
    return label


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=3,
        show_source_link=False,
        source_uri="",
        convert_doxygen=True,
    ):
        self.heading_level = heading_level
        self.show_source_link = show_source_link
        self.source_uri = source_uri
        self.convert_doxygen = convert_doxygen


def _heading(text, level):
    return f"{'#' * level} {text}"


def _source_link(project, symbol, cfg):
    if not cfg.show_source_link or not cfg.source_uri:
        return ""
    unit = project.sources[symbol.unit]
    uri = cfg.source_uri.format(filename=unit.name, path=unit.path, line=symbol.line)
    return f" [[source]({uri})]"


def render_comment(project, symbol, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    if not cfg.convert_doxygen:
        return symbol.comment
    if symbol.kind is SymbolKind.FUNCTION:
        return doxygen_to_markdown(
            symbol.comment,
            symbol,
            project.function_params(symbol),
            return_type=project.span_text(symbol.info.return_ts),
        )
    return doxygen_to_markdown(symbol.comment, symbol)


def render_symbol(project, symbol, cfg=None):
    if cfg is None:
        cfg = RenderConfig()

    if symbol.kind is SymbolKind.FILE:
        return render_comment(project, symbol, cfg)

    parts = [f'<a id="{anchor_id(symbol)}"></a>', ""]
    htxt = f"{kind_label(symbol)}: `{symbol.name}`" + _source_link(project, symbol, cfg)
    parts += [_heading(htxt, cfg.heading_level), ""]

    if symbol.declaration:
        parts += ["```c", symbol.declaration, "```", ""]

    comment = render_comment(project, symbol, cfg)
    if comment:
        parts += [comment, ""]
    return "\n".join(parts)


def render_symbols(project, symbols, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    return "\n---\n\n".join(
        render_symbol(project, s, cfg) for s in symbols if s.kind is not SymbolKind.FILE
    )
