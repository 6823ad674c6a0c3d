"""
Top-level declaration extraction for C sources.

The scanner walks a translation unit with the lexer, delimits top-level
statements (at ``;`` or at the ``) {`` that opens a function body), skips
function bodies and ``extern "C"`` braces, and pairs every statement with the
doc comment right before it.  Each statement is then lexed a second time and
classified as a function, macro, struct, union, enum or typedef, and its
tokens are stored in the project's token buffer so pages can be rendered
from token spans.

No real C grammar is involved: the rules are syntactic and tolerant, so odd
input loses symbols instead of raising.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum, auto

from .lexer import Lexer, Token, TokenKind, tokenize

log = logging.getLogger("mkdocs.plugins.doxter")


class SymbolKind(Enum):
    FUNCTION = auto()
    MACRO = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    TYPEDEF = auto()
    FILE = auto()


@dataclass(frozen=True)
class TokenSpan:
    first: int = 0
    count: int = 0

    @property
    def end(self):
        return self.first + self.count

    def __bool__(self):
        return self.count > 0


EMPTY_SPAN = TokenSpan()


@dataclass
class FunctionInfo:
    name_tok: int
    return_ts: TokenSpan = EMPTY_SPAN
    params_ts: TokenSpan = EMPTY_SPAN


@dataclass
class MacroInfo:
    name_tok: int
    args_ts: TokenSpan = EMPTY_SPAN
    value_ts: TokenSpan = EMPTY_SPAN


@dataclass
class RecordInfo:
    tag_tok: int | None = None
    body_ts: TokenSpan = EMPTY_SPAN


@dataclass
class TypedefInfo:
    name_tok: int
    value_ts: TokenSpan = EMPTY_SPAN


@dataclass
class Symbol:
    kind: SymbolKind
    name: str
    declaration: str = ""
    comment: str = ""
    line: int = 0
    column: int = 0
    is_typedef: bool = False
    is_static: bool = False
    is_empty_macro: bool = False
    tokens: TokenSpan = EMPTY_SPAN
    info: FunctionInfo | MacroInfo | RecordInfo | TypedefInfo | None = None
    unit: int = -1


@dataclass
class SourceUnit:
    path: str
    name: str
    output_name: str
    first_symbol: int = 0
    num_symbols: int = 0


@dataclass
class ParseOptions:
    skip_static_functions: bool = False
    skip_undocumented: bool = False
    skip_empty_defines: bool = False

    def accepts(self, symbol):
        if self.skip_empty_defines and symbol.is_empty_macro:
            return False
        if self.skip_static_functions and symbol.is_static and symbol.kind is SymbolKind.FUNCTION:
            return False
        if self.skip_undocumented and not symbol.comment:
            return False
        return True


# Words that can sit right before a "(" without naming a function.
_NOT_A_NAME = frozenset(
    {
        "void", "char", "short", "int", "long", "float", "double", "signed", "unsigned",
        "_Bool", "bool", "const", "volatile", "restrict", "static", "extern", "inline",
        "register", "typedef", "struct", "union", "enum", "return", "sizeof", "if",
        "while", "for", "switch", "_Alignas", "_Alignof", "alignas", "alignof",
        "_Static_assert", "static_assert", "_Noreturn", "_Pragma", "__attribute__",
        "__declspec", "__asm__", "__asm", "asm", "typeof", "__typeof__", "__extension__",
    }
)

_ATTRIBUTES = frozenset({"__attribute__", "__declspec", "_Alignas", "alignas"})

_RECORD_KEYWORDS = {
    "struct": SymbolKind.STRUCT,
    "enum": SymbolKind.ENUM,
    "union": SymbolKind.UNION,
}


class Project:
    """Symbol table, token buffer and source units shared by all parsed files."""

    def __init__(self, options=None):
        self.options = options if options is not None else ParseOptions()
        self.tokens: list[Token] = []
        self.symbols: list[Symbol] = []
        self.sources: list[SourceUnit] = []
        self._names: dict[str, int] = {}

    def add_source(self, path, output_name=None):
        name = os.path.basename(path)
        self.sources.append(SourceUnit(path=path, name=name, output_name=output_name or f"{name}.md"))
        return len(self.sources) - 1

    def lookup(self, name):
        idx = self._names.get(name)
        return None if idx is None else self.symbols[idx]

    def __contains__(self, name):
        return name in self._names

    def add_symbol(self, symbol, tokens=()):
        """Append `symbol` and its tokens unless the name is taken or filtered out.

        File symbols have no name and are never entered in the name table.
        """
        named = symbol.kind is not SymbolKind.FILE
        if named and symbol.name in self._names:
            return False
        if not self.options.accepts(symbol):
            return False
        self.tokens.extend(tokens)
        if named:
            self._names[symbol.name] = len(self.symbols)
        self.symbols.append(symbol)
        return True

    def unit_symbols(self, index):
        unit = self.sources[index]
        return self.symbols[unit.first_symbol : unit.first_symbol + unit.num_symbols]

    def span_tokens(self, span):
        return self.tokens[span.first : span.end]

    def span_text(self, span):
        return join_tokens(_code_tokens(self.span_tokens(span)))

    def function_params(self, symbol):
        """Split a function's parameter span into ``(type, name)`` pairs."""
        if symbol.kind is not SymbolKind.FUNCTION or not symbol.info.params_ts:
            return []
        inner = _code_tokens(self.span_tokens(symbol.info.params_ts))[1:-1]
        groups = [[]]
        depth = 0
        for tok in inner:
            if tok.kind is TokenKind.PUNCT:
                if tok.text in ("(", "["):
                    depth += 1
                elif tok.text in (")", "]"):
                    depth -= 1
                elif tok.text == "," and depth == 0:
                    groups.append([])
                    continue
            groups[-1].append(tok)

        params = []
        for group in groups:
            if not group or (len(group) == 1 and group[0].is_ident("void")):
                continue
            name_at = _param_name_index(group)
            if name_at is None:
                params.append((join_tokens(group), ""))
            else:
                ptype = join_tokens(group[:name_at] + group[name_at + 1 :])
                params.append((ptype, group[name_at].text))
        return params


def _code_tokens(tokens):
    # doc comments and line continuations are kept in spans but are not code
    return [t for t in tokens if t.kind is not TokenKind.DOX_COMMENT and not t.is_punct("\\")]


def _param_name_index(group):
    for i in range(len(group) - 3):
        if (
            group[i].is_punct("(")
            and group[i + 1].is_punct("*")
            and group[i + 2].kind is TokenKind.IDENT
            and group[i + 3].is_punct(")")
        ):
            return i + 2
    depth = 0
    found = None
    for i, tok in enumerate(group):
        if tok.is_punct("[") or tok.is_punct("("):
            depth += 1
        elif tok.is_punct("]") or tok.is_punct(")"):
            depth -= 1
        elif depth == 0 and tok.kind is TokenKind.IDENT:
            found = i
    if found is None or found == 0 or group[found].text in _NOT_A_NAME:
        return None
    return found


_WORDY = (TokenKind.IDENT, TokenKind.NUMBER, TokenKind.STRING, TokenKind.CHAR, TokenKind.MACRO_DIRECTIVE)


def join_tokens(tokens):
    parts = []
    prev = None
    for tok in tokens:
        text = "#" + tok.text if tok.kind is TokenKind.MACRO_DIRECTIVE else tok.text
        if prev is not None:
            if (
                (prev.kind in _WORDY and tok.kind in _WORDY)
                or (prev.kind in _WORDY and tok.is_punct("*"))
                or prev.is_punct(",")
            ):
                parts.append(" ")
        parts.append(text)
        prev = tok
    return "".join(parts)


# -- doc comment cleanup --


def clean_comment(raw):
    text = raw.replace("\r", "").strip()
    if text.startswith("/**"):
        text = text[3:]
    if text.endswith("*/"):
        text = text[:-2]

    lines = []
    for line in text.split("\n"):
        line = line.lstrip().lstrip("*")
        if line.startswith(" "):
            line = line[1:]
        lines.append(line)
    return "\n".join(lines).strip()


# -- declaration classifier --


@dataclass
class Declaration:
    kind: SymbolKind
    name: str
    name_index: int | None
    is_typedef: bool = False
    is_static: bool = False


def lex_declaration(text, *, keep_directives=False):
    """Lex a declaration for the token buffer.

    Returns ``(tokens, where)``.  `tokens` is every token of `text` except
    ``pp-end`` markers and is what the buffer stores.  `where` lists the
    indices into `tokens` that take part in classification: doc comments and
    continuation backslashes are skipped, and so are preprocessor lines
    embedded in the declaration unless `keep_directives` is set.
    """
    tokens = []
    where = []
    in_directive = False
    for tok in tokenize(text):
        if tok.kind is TokenKind.PP_END:
            in_directive = False
            continue
        tokens.append(tok)
        if tok.kind is TokenKind.MACRO_DIRECTIVE and not keep_directives:
            in_directive = True
            continue
        if in_directive or tok.kind is TokenKind.DOX_COMMENT or tok.is_punct("\\"):
            continue
        where.append(len(tokens) - 1)
    return tokens, where


def classify(tokens):
    saw_typedef = False
    saw_static = False
    records = {}
    want_tag = None
    last_ident = None
    fn_index = None
    seen_equal = False
    parens = 0
    braces = 0
    # function pointer declarator: "(" -> "*" -> ident -> ")"
    fp_state = 0
    fp_candidate = None
    fp_index = None

    for i, tok in enumerate(tokens):
        top = parens == 0 and braces == 0

        if tok.kind is TokenKind.IDENT:
            word = tok.text
            last_ident = i
            if want_tag is not None and parens == 0 and word not in _ATTRIBUTES:
                records[want_tag] = i
                want_tag = None
            elif top:
                if word == "typedef":
                    saw_typedef = True
                elif word == "static":
                    saw_static = True
                elif word in _RECORD_KEYWORDS and word not in records:
                    records[word] = None
                    want_tag = word
        elif tok.kind is TokenKind.PUNCT:
            text = tok.text
            if text == "(":
                if top and not seen_equal and fn_index is None and i > 0:
                    prev = tokens[i - 1]
                    if prev.kind is TokenKind.IDENT and prev.text not in _NOT_A_NAME:
                        fn_index = i - 1
                parens += 1
            elif text == ")":
                parens = max(0, parens - 1)
            elif text == "{":
                braces += 1
            elif text == "}":
                braces = max(0, braces - 1)
            elif text == "=" and top:
                seen_equal = True
            if want_tag is not None and parens == 0 and text not in ("(", ")"):
                want_tag = None

        if braces == 0:
            if fp_state == 0:
                fp_state = 1 if tok.is_punct("(") else 0
            elif fp_state == 1:
                fp_state = 2 if tok.is_punct("*") else (1 if tok.is_punct("(") else 0)
            elif tok.kind is TokenKind.IDENT:
                fp_candidate = i
                fp_state = 3
            elif fp_state == 2 and tok.is_punct("*"):
                pass
            elif fp_state == 3 and tok.is_punct(")"):
                if fp_index is None:
                    fp_index = fp_candidate
                fp_state = 0
            else:
                fp_state = 1 if tok.is_punct("(") else 0

    for word in ("struct", "enum", "union"):
        if word not in records:
            continue
        name_index = records[word]
        if name_index is None and saw_typedef:
            name_index = last_ident
        if name_index is None:
            return None
        return Declaration(
            _RECORD_KEYWORDS[word], tokens[name_index].text, name_index, saw_typedef, saw_static
        )

    if saw_typedef:
        name_index = fp_index if fp_index is not None else last_ident
        if name_index is None:
            return None
        return Declaration(SymbolKind.TYPEDEF, tokens[name_index].text, name_index, True, saw_static)

    if fn_index is not None:
        return Declaration(
            SymbolKind.FUNCTION, tokens[fn_index].text, fn_index, saw_typedef, saw_static
        )
    return None


def _matching(tokens, start, open_, close):
    depth = 0
    for j in range(start, len(tokens)):
        if tokens[j].is_punct(open_):
            depth += 1
        elif tokens[j].is_punct(close):
            depth -= 1
            if depth == 0:
                return j
    return None


def _span(first, where, start, stop):
    """Buffer span covering classified tokens `start` up to `stop`."""
    if stop <= start:
        return EMPTY_SPAN
    lo = where[start]
    return TokenSpan(first + lo, where[stop - 1] + 1 - lo)


def function_info(tokens, where, name_index, first=0):
    params = EMPTY_SPAN
    close = _matching(tokens, name_index + 1, "(", ")")
    if close is not None:
        params = _span(first, where, name_index + 1, close + 1)
    return FunctionInfo(
        name_tok=first + where[name_index],
        return_ts=_span(first, where, 0, name_index),
        params_ts=params,
    )


def macro_info(tokens, where, first=0):
    name_index = next(
        (i for i in range(1, len(tokens)) if tokens[i].kind is TokenKind.IDENT), None
    )
    if name_index is None:
        return None
    name = tokens[name_index]
    rest = name_index + 1
    args = EMPTY_SPAN
    # only "NAME(" with no space in between makes a function-like macro
    if rest < len(tokens) and tokens[rest].is_punct("(") and tokens[rest].offset == name.end:
        close = _matching(tokens, rest, "(", ")")
        if close is not None:
            args = _span(first, where, rest, close + 1)
            rest = close + 1
    return MacroInfo(
        name_tok=first + where[name_index],
        args_ts=args,
        value_ts=_span(first, where, rest, len(tokens)),
    )


def record_info(tokens, where, tag_index, first=0):
    body = EMPTY_SPAN
    opening = next((i for i, t in enumerate(tokens) if t.is_punct("{")), None)
    if opening is not None:
        close = _matching(tokens, opening, "{", "}")
        if close is not None:
            body = _span(first, where, opening, close + 1)
    tag = None
    if tag_index is not None and (opening is None or tag_index < opening):
        tag = first + where[tag_index]
    return RecordInfo(tag_tok=tag, body_ts=body)


def typedef_info(tokens, where, name_index, first=0):
    return TypedefInfo(
        name_tok=first + where[name_index], value_ts=_span(first, where, 0, name_index)
    )


def _build_info(decl, tokens, where, first):
    if decl.kind is SymbolKind.FUNCTION:
        return function_info(tokens, where, decl.name_index, first)
    if decl.kind is SymbolKind.TYPEDEF:
        return typedef_info(tokens, where, decl.name_index, first)
    return record_info(tokens, where, decl.name_index, first)


# -- statement scanner --


class _StatementScanner:
    def __init__(self, project, unit, text):
        self.project = project
        self.unit = unit
        self.text = text
        self.lexer = Lexer(text)
        self.count = 0
        self.pending_doc = ""
        self.brace_depth = 0
        self.extern_depth = 0
        self.brace_stack = []
        self.prev_sig = None
        self.prev_sig2 = None
        self._reset_statement()

    def _reset_statement(self):
        self.stmt_start = None
        self.stmt_line = 0
        self.stmt_col = 0
        self.stmt_doc = ""
        self.seen_equal = False

    @property
    def depth(self):
        return self.brace_depth - self.extern_depth

    def run(self):
        tok = self.lexer.next_token()
        if tok.kind is TokenKind.DOX_COMMENT and tok.offset == 0:
            self._push(
                Symbol(
                    kind=SymbolKind.FILE,
                    name="",
                    comment=clean_comment(tok.text),
                    line=1,
                    column=1,
                    unit=self.unit,
                )
            )
            tok = self.lexer.next_token()
        while tok.kind is not TokenKind.END:
            self._feed(tok)
            tok = self.lexer.next_token()
        return self.count

    def _push(self, symbol, tokens=()):
        if self.project.add_symbol(symbol, tokens):
            self.count += 1

    def _feed(self, tok):
        if tok.kind is TokenKind.DOX_COMMENT:
            if self.depth == 0:
                self.pending_doc = clean_comment(tok.text)
            return
        if tok.kind is TokenKind.MACRO_DIRECTIVE:
            self._directive(tok)
            return
        if tok.kind is TokenKind.PP_END:
            return

        if (
            self.stmt_start is None
            and self.depth == 0
            and not (tok.is_punct(";") or tok.is_punct("}"))
        ):
            self.stmt_start = tok.offset
            self.stmt_line = tok.line
            self.stmt_col = tok.column
            self.stmt_doc = self.pending_doc
            self.pending_doc = ""

        if tok.kind is TokenKind.PUNCT:
            if tok.text == "=" and self.depth == 0:
                self.seen_equal = True
            elif tok.text == "{":
                if self._open_brace(tok):
                    self.prev_sig = self.prev_sig2 = None
                    return
            elif tok.text == "}":
                self._close_brace()
            elif tok.text == ";" and self.depth == 0:
                if self.stmt_start is not None:
                    self._statement(self.text[self.stmt_start : tok.end])
                self.pending_doc = ""

        self.prev_sig2, self.prev_sig = self.prev_sig, tok

    def _open_brace(self, tok):
        """Track a ``{``; returns True when it opened a skipped function body."""
        if self.depth == 0:
            prev, prev2 = self.prev_sig, self.prev_sig2
            if (
                prev2 is not None
                and prev2.is_ident("extern")
                and prev.kind is TokenKind.STRING
                and prev.text == '"C"'
            ):
                self.brace_stack.append(True)
                self.brace_depth += 1
                self.extern_depth += 1
                self._reset_statement()
                self.pending_doc = ""
                return False
            if (
                prev is not None
                and prev.is_punct(")")
                and not self.seen_equal
                and self.stmt_start is not None
            ):
                self._statement(self.text[self.stmt_start : tok.offset])
                self.lexer.skip_block(tok.offset)
                return True
        self.brace_stack.append(False)
        self.brace_depth += 1
        return False

    def _close_brace(self):
        if self.brace_depth == 0:
            return
        self.brace_depth -= 1
        if self.brace_stack.pop():
            self.extern_depth -= 1
            self._reset_statement()

    def _directive(self, tok):
        name = None
        empty = True
        end = len(self.text)
        while True:
            t = self.lexer.next_token()
            if t.kind is TokenKind.END:
                break
            if t.kind is TokenKind.PP_END:
                end = t.offset
                break
            if t.kind is TokenKind.DOX_COMMENT or t.is_punct("\\"):
                continue
            if name is None:
                if t.kind is TokenKind.IDENT:
                    name = t.text
            else:
                empty = False

        if tok.text == "define":
            if name:
                text = self.text[tok.offset : end].strip()
                self._commit_macro(text, tok, name, empty, self.pending_doc)
            if self.depth == 0:
                self._reset_statement()
        self.pending_doc = ""

    def _commit_macro(self, text, tok, name, empty, doc):
        tokens, where = lex_declaration(text, keep_directives=True)
        first = len(self.project.tokens)
        info = macro_info([tokens[i] for i in where], where, first)
        if info is None:
            return
        self._push(
            Symbol(
                kind=SymbolKind.MACRO,
                name=name,
                declaration=text,
                comment=doc,
                line=tok.line,
                column=tok.column,
                is_empty_macro=empty,
                tokens=TokenSpan(first, len(tokens)),
                info=info,
                unit=self.unit,
            ),
            tokens,
        )

    def _statement(self, text):
        text = text.strip()
        tokens, where = lex_declaration(text)
        view = [tokens[i] for i in where]
        decl = classify(view)
        if decl is not None:
            first = len(self.project.tokens)
            self._push(
                Symbol(
                    kind=decl.kind,
                    name=decl.name,
                    declaration=text,
                    comment=self.stmt_doc,
                    line=self.stmt_line,
                    column=self.stmt_col,
                    is_typedef=decl.is_typedef,
                    is_static=decl.is_static,
                    tokens=TokenSpan(first, len(tokens)),
                    info=_build_info(decl, view, where, first),
                    unit=self.unit,
                ),
                tokens,
            )
        self._reset_statement()
        self.pending_doc = ""


def parse_text(project, index, text):
    unit = project.sources[index]
    unit.first_symbol = len(project.symbols)
    count = _StatementScanner(project, index, text).run()
    unit.num_symbols = count
    log.debug("doxter: %s: %d symbols", unit.path, count)
    return count


def parse_source(project, index):
    """Parse the registered source at `index`; returns its symbol count or -1."""
    unit = project.sources[index]
    try:
        with open(unit.path, "r", encoding="utf-8", errors="replace", newline="") as f:
            text = f.read()
    except OSError as exc:
        log.warning("doxter: cannot read %s: %s", unit.path, exc)
        unit.first_symbol = len(project.symbols)
        unit.num_symbols = 0
        return -1
    return parse_text(project, index, text)
