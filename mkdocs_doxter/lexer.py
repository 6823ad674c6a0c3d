"""
Lightweight C lexer.

Produces just enough tokens to drive a top-level declaration scanner: it keeps
track of preprocessor directives (including backslash continuations), string
and char literals, doc comments and line/column positions, but knows nothing
about C types or grammar.  It never fails: malformed input is consumed up to
the end and returned as the last token of its kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenKind(Enum):
    END = auto()
    MACRO_DIRECTIVE = auto()
    IDENT = auto()
    NUMBER = auto()
    STRING = auto()
    CHAR = auto()
    PUNCT = auto()
    DOX_COMMENT = auto()
    PP_END = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    offset: int
    end: int
    line: int = 1
    column: int = 1

    def is_punct(self, text):
        return self.kind is TokenKind.PUNCT and self.text == text

    def is_ident(self, text):
        return self.kind is TokenKind.IDENT and self.text == text


_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9][0-9.xXa-fA-FuUlL]*")

_TWO_CHAR_OPS = frozenset({"::", "->", "==", "!=", "<=", ">=", "&&", "||", "++", "--", "<<", ">>"})

_INLINE_SPACE = " \t\r\f\v"


class Lexer:
    """Cursor over C source text returning one token per `next_token` call."""

    def __init__(self, source, offset=0, *, line=1, column=1):
        self.source = source
        self.pos = offset
        self.line = line
        self.column = column
        self.at_bol = True
        self.in_pp = False
        self.pp_continuation = False

    def _advance(self, n):
        chunk = self.source[self.pos : self.pos + n]
        nl = chunk.count("\n")
        if nl:
            self.line += nl
            self.column = len(chunk) - chunk.rfind("\n")
        else:
            self.column += len(chunk)
        self.pos += len(chunk)

    def _take(self, kind, end):
        start, line, column = self.pos, self.line, self.column
        self._advance(end - start)
        return Token(kind, self.source[start:end], start, end, line, column)

    def _skip_trivia(self):
        src = self.source
        n = len(src)
        while self.pos < n:
            c = src[self.pos]
            if c == "\n":
                # a directive ends here unless the line was continued
                if self.in_pp:
                    if not self.pp_continuation:
                        return
                    self.pp_continuation = False
                self.at_bol = True
                self._advance(1)
            elif c in _INLINE_SPACE:
                self._advance(1)
            elif src.startswith("//", self.pos):
                end = src.find("\n", self.pos)
                self._advance((n if end < 0 else end) - self.pos)
            elif src.startswith("/*", self.pos):
                if src.startswith("/**", self.pos) and not src.startswith("/**/", self.pos):
                    return
                end = src.find("*/", self.pos + 2)
                self._advance((n if end < 0 else end + 2) - self.pos)
            else:
                return

    def _quoted_end(self, start, quote):
        src = self.source
        n = len(src)
        i = start + 1
        while i < n:
            c = src[i]
            if c == "\\":
                i += 2
                continue
            i += 1
            if c == quote:
                break
        return min(i, n)

    def _read_doc_comment(self):
        end = self.source.find("*/", self.pos + 3)
        end = len(self.source) if end < 0 else end + 2
        if "\n" in self.source[self.pos : end]:
            self.at_bol = True
        return self._take(TokenKind.DOX_COMMENT, end)

    def _read_directive(self):
        src = self.source
        n = len(src)
        start, line, column = self.pos, self.line, self.column
        i = start + 1
        while i < n and src[i] in _INLINE_SPACE:
            i += 1
        m = _IDENT_RE.match(src, i)
        end = m.end() if m else i
        self._advance(end - start)
        self.in_pp = True
        self.pp_continuation = False
        self.at_bol = False
        return Token(TokenKind.MACRO_DIRECTIVE, src[i:end], start, end, line, column)

    def _read_punct(self):
        pair = self.source[self.pos : self.pos + 2]
        if pair in _TWO_CHAR_OPS:
            return self._take(TokenKind.PUNCT, self.pos + 2)
        return self._take(TokenKind.PUNCT, self.pos + 1)

    def next_token(self):
        self._skip_trivia()
        src = self.source

        if self.pos >= len(src):
            return Token(TokenKind.END, "", self.pos, self.pos, self.line, self.column)

        if src.startswith("/**", self.pos):
            return self._read_doc_comment()

        c = src[self.pos]

        if self.in_pp and c == "\n":
            tok = Token(TokenKind.PP_END, "", self.pos, self.pos, self.line, self.column)
            self._advance(1)
            self.in_pp = False
            self.pp_continuation = False
            self.at_bol = True
            return tok

        if self.at_bol and not self.in_pp and c == "#":
            return self._read_directive()
        self.at_bol = False

        if c == '"':
            tok = self._take(TokenKind.STRING, self._quoted_end(self.pos, '"'))
        elif c == "'":
            tok = self._take(TokenKind.CHAR, self._quoted_end(self.pos, "'"))
        elif c == "_" or ("a" <= c <= "z") or ("A" <= c <= "Z"):
            tok = self._take(TokenKind.IDENT, _IDENT_RE.match(src, self.pos).end())
        elif "0" <= c <= "9":
            tok = self._take(TokenKind.NUMBER, _NUMBER_RE.match(src, self.pos).end())
        else:
            tok = self._read_punct()

        if self.in_pp:
            self.pp_continuation = tok.is_punct("\\")
        return tok

    def skip_block(self, start):
        """Skip a balanced ``{...}`` block that opens at `start`.

        Strings, chars and comments inside the block do not count towards
        nesting.  On success the cursor lands right after the closing brace
        and True is returned; an unbalanced block consumes the rest of the
        input and returns False.
        """
        src = self.source
        n = len(src)
        depth = 0
        i = start
        while i < n:
            c = src[i]
            if c == '"' or c == "'":
                i = self._quoted_end(i, c)
                continue
            if src.startswith("//", i):
                j = src.find("\n", i)
                i = n if j < 0 else j
                continue
            if src.startswith("/*", i):
                j = src.find("*/", i + 2)
                i = n if j < 0 else j + 2
                continue
            if c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    self._advance(i + 1 - self.pos)
                    self.in_pp = False
                    self.pp_continuation = False
                    self.at_bol = False
                    return True
            i += 1
        self._advance(n - self.pos)
        self.in_pp = False
        self.pp_continuation = False
        return False


def tokenize(source):
    """Yield every token of `source`, stopping before the END token."""
    lexer = Lexer(source)
    while True:
        tok = lexer.next_token()
        if tok.kind is TokenKind.END:
            return
        yield tok
