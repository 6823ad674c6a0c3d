import textwrap

import pytest

from mkdocs_doxter.lexer import Lexer, TokenKind, tokenize
from mkdocs_doxter.parser import (
    EMPTY_SPAN,
    ParseOptions,
    Project,
    SymbolKind,
    classify,
    clean_comment,
    lex_declaration,
    parse_source,
    parse_text,
)


def _project(text, name="api.h", **opts):
    project = Project(ParseOptions(**opts))
    index = project.add_source(name)
    parse_text(project, index, textwrap.dedent(text))
    return project


def _names(project):
    return [s.name for s in project.symbols]


# -- lexer --


class TestLexer:
    def test_basic_kinds(self):
        toks = list(tokenize("int x = 'a' + \"s\" + 0x1fUL;"))
        assert [t.kind for t in toks] == [
            TokenKind.IDENT,
            TokenKind.IDENT,
            TokenKind.PUNCT,
            TokenKind.CHAR,
            TokenKind.PUNCT,
            TokenKind.STRING,
            TokenKind.PUNCT,
            TokenKind.NUMBER,
            TokenKind.PUNCT,
        ]
        assert toks[7].text == "0x1fUL"

    def test_two_char_operators(self):
        texts = [t.text for t in tokenize("a->b == c && d >> 1")]
        assert "->" in texts and "==" in texts and "&&" in texts and ">>" in texts

    def test_unknown_pair_is_split(self):
        assert [t.text for t in tokenize("a+=b")] == ["a", "+", "=", "b"]

    def test_positions(self):
        toks = list(tokenize("int\n  x;"))
        assert (toks[1].line, toks[1].column) == (2, 3)
        assert toks[1].offset == 6

    def test_directive(self):
        toks = list(tokenize("#  define X 1\nint y;"))
        assert toks[0].kind is TokenKind.MACRO_DIRECTIVE
        assert toks[0].text == "define"
        assert toks[0].offset == 0
        assert [t.kind for t in toks[1:4]] == [TokenKind.IDENT, TokenKind.NUMBER, TokenKind.PP_END]
        assert toks[3].text == ""
        assert toks[4].is_ident("int")

    def test_hash_not_at_bol_is_punct(self):
        toks = list(tokenize("a # b"))
        assert toks[1].is_punct("#")

    def test_directive_after_indent(self):
        toks = list(tokenize("int a;\n   #include <x.h>\n"))
        assert toks[3].kind is TokenKind.MACRO_DIRECTIVE
        assert toks[3].text == "include"

    def test_line_continuation(self):
        toks = list(tokenize("#define A \\\n  1\nint"))
        kinds = [t.kind for t in toks]
        assert kinds == [
            TokenKind.MACRO_DIRECTIVE,
            TokenKind.IDENT,
            TokenKind.PUNCT,
            TokenKind.NUMBER,
            TokenKind.PP_END,
            TokenKind.IDENT,
        ]
        assert toks[2].text == "\\"

    def test_continued_newline_sets_bol(self):
        lexer = Lexer("#define A \\\n  1\n")
        assert [lexer.next_token().text for _ in range(3)] == ["define", "A", "\\"]
        lexer._skip_trivia()
        assert lexer.at_bol
        assert lexer.in_pp
        tok = lexer.next_token()
        assert tok.kind is TokenKind.NUMBER
        assert not lexer.at_bol

    def test_hash_on_continued_line_is_punct(self):
        toks = list(tokenize("#define S(x) \\\n#x\nint"))
        assert [t.kind for t in toks].count(TokenKind.MACRO_DIRECTIVE) == 1
        assert toks[6].is_punct("#")
        assert toks[7].is_ident("x")
        assert toks[8].kind is TokenKind.PP_END
        assert toks[9].is_ident("int")

    def test_directive_at_end_of_input(self):
        toks = list(tokenize("#define A"))
        assert [t.kind for t in toks] == [TokenKind.MACRO_DIRECTIVE, TokenKind.IDENT]

    def test_doc_comment_token(self):
        toks = list(tokenize("/** Doc. */ int x;"))
        assert toks[0].kind is TokenKind.DOX_COMMENT
        assert toks[0].text == "/** Doc. */"

    def test_plain_comments_are_trivia(self):
        toks = list(tokenize("/* a */ // b\n/**/ x"))
        assert [t.text for t in toks] == ["x"]

    def test_comment_inside_directive(self):
        toks = list(tokenize("#define A 1 /* one */\nB"))
        assert [t.kind for t in toks][-2:] == [TokenKind.PP_END, TokenKind.IDENT]

    def test_unterminated_string(self):
        toks = list(tokenize('x = "abc'))
        assert toks[-1].kind is TokenKind.STRING
        assert toks[-1].text == '"abc'

    def test_unterminated_doc_comment(self):
        toks = list(tokenize("/** abc"))
        assert len(toks) == 1
        assert toks[0].text == "/** abc"

    def test_escaped_quote(self):
        toks = list(tokenize(r'"a\"b" c'))
        assert toks[0].text == r'"a\"b"'
        assert toks[1].is_ident("c")

    def test_end_token_repeats(self):
        lexer = Lexer("x")
        lexer.next_token()
        assert lexer.next_token().kind is TokenKind.END
        assert lexer.next_token().kind is TokenKind.END

    def test_token_text_matches_source(self):
        src = 'static const char *s = "}"; /* c */\n#define X(a) (a)\nint f(void);\n'
        for tok in tokenize(src):
            if tok.kind is TokenKind.MACRO_DIRECTIVE:
                assert src[tok.offset] == "#"
            else:
                assert src[tok.offset : tok.end] == tok.text

    def test_skip_block(self):
        src = '{ a { "}" } /* } */ \'}\' } rest'
        lexer = Lexer(src)
        assert lexer.next_token().is_punct("{")
        assert lexer.skip_block(0) is True
        assert lexer.next_token().is_ident("rest")

    def test_skip_block_unbalanced(self):
        lexer = Lexer("{ a { b }")
        lexer.next_token()
        assert lexer.skip_block(0) is False
        assert lexer.next_token().kind is TokenKind.END

    def test_skip_block_keeps_line_count(self):
        lexer = Lexer("{\n\n}\nx")
        lexer.next_token()
        lexer.skip_block(0)
        tok = lexer.next_token()
        assert (tok.line, tok.column) == (4, 1)


# -- comment cleaning --


class TestCleanComment:
    def test_single_line(self):
        assert clean_comment("/** Brief. */") == "Brief."

    def test_multiline(self):
        raw = "/**\n * Line one.\n *\n * Line two.\n */"
        assert clean_comment(raw) == "Line one.\n\nLine two."

    def test_without_gutter(self):
        assert clean_comment("/**\n  Just text\n*/") == "Just text"

    def test_carriage_returns(self):
        assert clean_comment("/**\r\n * a\r\n * b\r\n */") == "a\nb"

    def test_keeps_indentation_after_gutter(self):
        assert clean_comment("/**\n * a\n *     code\n */") == "a\n    code"

    def test_double_star_gutter(self):
        assert clean_comment("/**\n ** text\n */") == "text"

    @pytest.mark.parametrize(
        "raw",
        [
            "/** Brief. */",
            "/**\n * Line one.\n *\n * Line two.\n */",
            "/**\n *   indented\n * next\n */",
            "/***/",
            "/**   */",
        ],
    )
    def test_idempotent(self, raw):
        once = clean_comment(raw)
        assert clean_comment(once) == once

    def test_no_trailing_whitespace(self):
        assert clean_comment("/** x   \n *   \n */") == "x"


# -- classifier --


def _classify(text):
    tokens, where = lex_declaration(text)
    return classify([tokens[i] for i in where])


class TestClassifier:
    def test_function(self):
        decl = _classify("int add(int a, int b);")
        assert decl.kind is SymbolKind.FUNCTION
        assert decl.name == "add"

    def test_function_returning_record_pointer(self):
        decl = _classify("struct S *make_s(void);")
        assert decl.kind is SymbolKind.STRUCT
        assert decl.name == "S"

    def test_attribute_before_function(self):
        decl = _classify("__attribute__((noreturn)) void die(const char *msg);")
        assert decl.kind is SymbolKind.FUNCTION
        assert decl.name == "die"

    def test_forward_struct(self):
        decl = _classify("struct S;")
        assert decl.kind is SymbolKind.STRUCT
        assert decl.name == "S"

    def test_typedef_anonymous_struct(self):
        decl = _classify("typedef struct { int x; } point_t;")
        assert decl.kind is SymbolKind.STRUCT
        assert decl.name == "point_t"
        assert decl.is_typedef

    def test_tagged_enum_typedef_uses_tag(self):
        decl = _classify("typedef enum color { RED, GREEN } color_t;")
        assert decl.kind is SymbolKind.ENUM
        assert decl.name == "color"

    def test_union(self):
        decl = _classify("union u { int a; float b; };")
        assert decl.kind is SymbolKind.UNION
        assert decl.name == "u"

    def test_struct_wins_over_nested_enum(self):
        decl = _classify("struct s { enum e { A } v; };")
        assert decl.kind is SymbolKind.STRUCT
        assert decl.name == "s"

    def test_plain_typedef(self):
        decl = _classify("typedef unsigned long size_type;")
        assert decl.kind is SymbolKind.TYPEDEF
        assert decl.name == "size_type"

    def test_function_pointer_typedef(self):
        decl = _classify("typedef int (*cb_t)(int, int);")
        assert decl.kind is SymbolKind.TYPEDEF
        assert decl.name == "cb_t"

    def test_static_flag(self):
        decl = _classify("static inline int k(void)")
        assert decl.is_static

    def test_initialized_variable_fails(self):
        assert _classify("int x = foo(1);") is None

    def test_plain_variable_fails(self):
        assert _classify("int counter;") is None

    def test_anonymous_enum_fails(self):
        assert _classify("enum { A, B };") is None

    def test_keyword_call_shape_fails(self):
        assert _classify("_Static_assert(sizeof(int) == 4, \"int\");") is None


# -- end-to-end scanning --


class TestScenarios:
    def test_function_prototype(self):
        project = _project("int add(int a, int b);")
        assert len(project.symbols) == 1
        s = project.symbols[0]
        assert s.kind is SymbolKind.FUNCTION
        assert s.name == "add"
        assert s.declaration == "int add(int a, int b);"
        assert not s.is_static
        assert project.span_text(s.info.params_ts) == "(int a, int b)"
        assert project.span_text(s.info.return_ts) == "int"
        assert project.tokens[s.info.name_tok].text == "add"
        assert (s.line, s.column) == (1, 1)

    def test_static_function_definition(self):
        project = _project("static int k(void) { return 0; }")
        assert len(project.symbols) == 1
        s = project.symbols[0]
        assert s.kind is SymbolKind.FUNCTION
        assert s.name == "k"
        assert s.is_static
        assert s.declaration == "static int k(void)"

    def test_static_function_skipped(self):
        project = _project("static int k(void) { return 0; }", skip_static_functions=True)
        assert project.symbols == []

    def test_object_like_macro(self):
        project = _project("#define MAX 32\n")
        s = project.symbols[0]
        assert s.kind is SymbolKind.MACRO
        assert s.name == "MAX"
        assert not s.is_empty_macro
        assert s.declaration == "#define MAX 32"
        assert [t.text for t in project.span_tokens(s.info.value_ts)] == ["32"]
        assert not s.info.args_ts

    def test_empty_macro(self):
        project = _project("#define FLAG\n")
        s = project.symbols[0]
        assert s.name == "FLAG"
        assert s.is_empty_macro
        assert s.info.args_ts == EMPTY_SPAN
        assert s.info.value_ts == EMPTY_SPAN

    def test_empty_macro_skipped(self):
        project = _project("#define FLAG\n#define MAX 1\n", skip_empty_defines=True)
        assert _names(project) == ["MAX"]

    def test_struct_with_body(self):
        project = _project("struct P { int x; int y; };")
        s = project.symbols[0]
        assert s.kind is SymbolKind.STRUCT
        assert s.name == "P"
        body = project.span_tokens(s.info.body_ts)
        assert body[0].is_punct("{") and body[-1].is_punct("}")
        assert [t.text for t in body] == ["{", "int", "x", ";", "int", "y", ";", "}"]
        assert project.tokens[s.info.tag_tok].text == "P"

    def test_function_pointer_typedef(self):
        project = _project("typedef void (*log_fn)(const char*);")
        s = project.symbols[0]
        assert s.kind is SymbolKind.TYPEDEF
        assert s.name == "log_fn"
        assert s.is_typedef
        assert [t.text for t in project.span_tokens(s.info.value_ts)] == ["typedef", "void", "(", "*"]

    def test_function_like_macro(self):
        project = _project(
            """\
            #define ADD(a, b) \\
                ((a) + (b))
            int after(void);
            """
        )
        macro, func = project.symbols
        assert macro.name == "ADD"
        assert macro.declaration.startswith("#define ADD(a, b) \\")
        assert macro.declaration.endswith("((a) + (b))")
        assert project.span_text(macro.info.args_ts) == "(a, b)"
        assert "\\" not in [t.text for t in project.span_tokens(macro.info.value_ts)]
        assert func.name == "after"
        assert func.line == 3

    def test_object_macro_with_parenthesized_value(self):
        project = _project("#define NEG (-1)\n")
        s = project.symbols[0]
        assert not s.info.args_ts
        assert project.span_text(s.info.value_ts) == "(-1)"


class TestBoundaries:
    def test_file_comment_only(self):
        project = _project("/**\n * File doc.\n */\n")
        assert len(project.symbols) == 1
        s = project.symbols[0]
        assert s.kind is SymbolKind.FILE
        assert s.name == ""
        assert s.declaration == ""
        assert s.comment == "File doc."
        assert (s.line, s.column) == (1, 1)
        assert s.tokens == EMPTY_SPAN

    def test_file_comment_needs_file_start(self):
        project = _project("\n/** Adds. */\nint add(int a, int b);\n")
        assert [s.kind for s in project.symbols] == [SymbolKind.FUNCTION]
        assert project.symbols[0].comment == "Adds."

    def test_extern_c_block(self):
        project = _project('extern "C" { void g(void); }')
        assert _names(project) == ["g"]
        assert project.symbols[0].kind is SymbolKind.FUNCTION

    def test_extern_c_guarded(self):
        project = _project(
            """\
            #ifdef __cplusplus
            extern "C" {
            #endif

            /** Does g. */
            void g(void);

            #ifdef __cplusplus
            }
            #endif

            void h(void);
            """
        )
        assert _names(project) == ["g", "h"]
        assert project.symbols[0].comment == "Does g."

    def test_define_keeps_extern_depth(self):
        project = _project(
            """\
            extern "C" {
            #define A 1
            void g(void);
            }
            void h(void);
            """
        )
        assert _names(project) == ["A", "g", "h"]

    def test_define_inside_struct_body(self):
        project = _project(
            """\
            struct S {
            #define S_MAX 4
                int v[S_MAX];
            };
            int after(void);
            """
        )
        assert _names(project) == ["S_MAX", "S", "after"]
        s = project.symbols[1]
        texts = [t.text for t in project.span_tokens(s.tokens)]
        assert texts[:3] == ["struct", "S", "{"]
        assert texts[3:6] == ["define", "S_MAX", "4"]
        assert project.tokens[s.info.tag_tok].text == "S"
        body = project.span_tokens(s.info.body_ts)
        assert body[0].is_punct("{") and body[-1].is_punct("}")

    def test_function_body_is_skipped(self):
        project = _project(
            """\
            int f(void)
            {
                struct inner { int x; };
                int g(void);
                if (x) { return "}"[0]; }
                return 0;
            }
            int after(void);
            """
        )
        assert _names(project) == ["f", "after"]

    def test_initializer_is_not_a_function(self):
        project = _project(
            """\
            int table[] = { (1), (2) };
            void after(void);
            """
        )
        assert _names(project) == ["after"]

    def test_unterminated_statement_is_dropped(self):
        project = _project("void a(void);\nint b(void)")
        assert _names(project) == ["a"]

    def test_unbalanced_body(self):
        project = _project("void a(void);\nint b(void) { if (1) {")
        assert _names(project) == ["a", "b"]

    def test_stray_close_brace(self):
        project = _project("}\nvoid a(void);")
        assert _names(project) == ["a"]


class TestDocAttachment:
    def test_doc_goes_to_next_declaration_only(self):
        project = _project(
            """\

            /** Adds. */
            int add(int a, int b);
            int sub(int a, int b);
            """
        )
        assert project.lookup("add").comment == "Adds."
        assert project.lookup("sub").comment == ""

    def test_directive_clears_pending_doc(self):
        project = _project("\n/** Doc. */\n#include <x.h>\nint f(void);\n")
        assert project.lookup("f").comment == ""

    def test_macro_gets_doc(self):
        project = _project("\n/** Maximum. */\n#define MAX 32\n")
        assert project.lookup("MAX").comment == "Maximum."

    def test_member_docs_ignored(self):
        project = _project(
            """\

            /** A struct. */
            struct S {
                /** member */
                int x;
            };
            """
        )
        assert project.lookup("S").comment == "A struct."

    def test_last_doc_wins(self):
        project = _project("\n/** one */\n/** two */\nint f(void);\n")
        assert project.lookup("f").comment == "two"

    def test_unclassified_statement_consumes_doc(self):
        project = _project("\n/** for x */\nint x;\nint f(void);\n")
        assert project.lookup("f").comment == ""

    def test_skip_undocumented(self):
        project = _project("\n/** Yes. */\nint a(void);\nint b(void);\n", skip_undocumented=True)
        assert _names(project) == ["a"]


# -- project bookkeeping --


class TestProject:
    def test_first_declaration_wins(self):
        project = _project("int f(void);\nint f(void) { return 1; }\n")
        assert len(project.symbols) == 1
        assert project.symbols[0].declaration == "int f(void);"

    def test_duplicates_across_files(self):
        project = Project()
        a = project.add_source("a.h")
        b = project.add_source("b.h")
        parse_text(project, a, "int f(void);\n")
        assert parse_text(project, b, "int f(void);\nint g(void);\n") == 1
        assert project.unit_symbols(b)[0].name == "g"

    def test_unit_bookkeeping(self):
        project = Project()
        a = project.add_source("/x/a.h")
        b = project.add_source("/x/b.h", output_name="api/b.h.md")
        parse_text(project, a, "int f(void);\nint g(void);\n")
        parse_text(project, b, "int h(void);\n")
        unit_a, unit_b = project.sources
        assert (unit_a.first_symbol, unit_a.num_symbols) == (0, 2)
        assert (unit_b.first_symbol, unit_b.num_symbols) == (2, 1)
        assert unit_a.name == "a.h"
        assert unit_a.output_name == "a.h.md"
        assert unit_b.output_name == "api/b.h.md"
        assert [s.unit for s in project.symbols] == [0, 0, 1]

    def test_lookup(self):
        project = _project("int f(void);")
        assert project.lookup("f") is project.symbols[0]
        assert project.lookup("g") is None
        assert "f" in project

    def test_file_symbols_do_not_collide(self):
        project = Project()
        for name in ("a.h", "b.h"):
            index = project.add_source(name)
            parse_text(project, index, "/** File. */\n")
        assert [s.kind for s in project.symbols] == [SymbolKind.FILE, SymbolKind.FILE]

    def test_function_params(self):
        project = _project("int open_file(int flags, const char *name);")
        assert project.function_params(project.symbols[0]) == [
            ("int", "flags"),
            ("const char *", "name"),
        ]

    def test_function_params_void(self):
        project = _project("void f(void);")
        assert project.function_params(project.symbols[0]) == []

    def test_function_params_callback_and_varargs(self):
        project = _project("void f(int (*cb)(int), ...);")
        params = project.function_params(project.symbols[0])
        assert params[0][1] == "cb"
        assert params[1] == ("...", "")

    def test_parse_source_reads_file(self, tmp_path):
        path = tmp_path / "api.h"
        path.write_text("/** File. */\n\n/** Doc. */\nint f(void);\n")
        project = Project()
        index = project.add_source(str(path))
        assert parse_source(project, index) == 2
        assert project.lookup("f").comment == "Doc."

    def test_parse_source_crlf(self, tmp_path):
        path = tmp_path / "api.h"
        path.write_bytes(b"int f(void);\r\n#define X 1\r\nint g(void);\r\n")
        project = Project()
        parse_source(project, project.add_source(str(path)))
        assert _names(project) == ["f", "X", "g"]
        assert project.lookup("X").declaration == "#define X 1"

    def test_parse_source_missing_file(self, tmp_path):
        project = Project()
        index = project.add_source(str(tmp_path / "missing.h"))
        assert parse_source(project, index) < 0
        assert project.symbols == []
        assert project.sources[index].num_symbols == 0


class TestInvariants:
    SOURCE = """\
        /** File. */

        #define MAX 32
        #define FLAG
        /** Adds. */
        int add(int a, int b);
        static int k(void) { return 0; }
        struct P { int x; int y; };
        typedef void (*log_fn)(const char *);
        typedef struct { int v; } wrap_t;
        union u { int a; float b; };
        enum e { A = 1, B };
        struct Q {
            /** Member. */
            int a;
        #ifdef EXTRA
            int b;
        #endif
        };
        #define SUM(a, b) \\
            ((a) + (b))
        """

    def _project(self):
        return _project(self.SOURCE)

    def test_spans_within_buffer(self):
        project = self._project()
        for s in project.symbols:
            assert 0 <= s.tokens.first
            assert s.tokens.end <= len(project.tokens)

    def test_tokens_match_declaration(self):
        project = self._project()
        for s in project.symbols:
            relexed = [t.text for t in tokenize(s.declaration) if t.kind is not TokenKind.PP_END]
            assert [t.text for t in project.span_tokens(s.tokens)] == relexed

    def test_member_doc_and_directives_stay_in_span(self):
        project = self._project()
        q = project.lookup("Q")
        texts = [t.text for t in project.span_tokens(q.tokens)]
        assert "/** Member. */" in texts
        assert "ifdef" in texts and "endif" in texts
        sum_ = project.lookup("SUM")
        assert "\\" in [t.text for t in project.span_tokens(sum_.tokens)]
        assert project.span_text(sum_.info.value_ts) == "((a)+(b))"

    def test_unique_names(self):
        names = [s.name for s in self._project().symbols if s.kind is not SymbolKind.FILE]
        assert len(names) == len(set(names))
        assert all(names)

    def test_source_order(self):
        project = self._project()
        positions = [(s.unit, s.line, s.column) for s in project.symbols]
        assert positions == sorted(positions)

    def test_kinds(self):
        project = self._project()
        assert [(s.kind, s.name) for s in project.symbols] == [
            (SymbolKind.FILE, ""),
            (SymbolKind.MACRO, "MAX"),
            (SymbolKind.MACRO, "FLAG"),
            (SymbolKind.FUNCTION, "add"),
            (SymbolKind.FUNCTION, "k"),
            (SymbolKind.STRUCT, "P"),
            (SymbolKind.TYPEDEF, "log_fn"),
            (SymbolKind.STRUCT, "wrap_t"),
            (SymbolKind.UNION, "u"),
            (SymbolKind.ENUM, "e"),
            (SymbolKind.STRUCT, "Q"),
            (SymbolKind.MACRO, "SUM"),
        ]
