"""
MkDocs plugin generating an API reference from C sources.

Hooks into the MkDocs build lifecycle: discovers source files under the
configured root, runs the declaration scanner over each of them, registers
one generated page per source plus an index page, and links backticked
symbol names to their documentation.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re

from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .parser import ParseOptions, Project, SymbolKind, parse_source
from .renderer import RenderConfig, anchor_id, kind_label, render_comment, render_symbols

log = logging.getLogger("mkdocs.plugins.doxter")

_BACKTICK_FUNC_RE = re.compile(r"(?<!\[)`(\w+)\(\)`(?!\])")
_BACKTICK_IDENT_RE = re.compile(r"(?<!\[)`(\w+)`(?!\])")
_BACKTICK_FILE_RE = re.compile(r"(?<!\[)`([\w][\w.-]*\.[ch])`(?!\])")

_INDEX_PAGE = "__INDEX__"


class DoxterConfig(MkDocsConfig):
    source_root = config_options.Type(str, default="")
    extensions = config_options.Type(list, default=[".h", ".c"])
    exclude = config_options.Type(list, default=[])
    output_dir = config_options.Type(str, default="api")
    nav_title = config_options.Type(str, default="API Reference")
    index = config_options.Type(bool, default=True)
    index_markdown = config_options.Type(str, default="")
    project_name = config_options.Type(str, default="")
    project_url = config_options.Type(str, default="")
    heading_level = config_options.Type(int, default=2)
    show_source_link = config_options.Type(bool, default=False)
    source_uri = config_options.Type(str, default="")
    convert_doxygen = config_options.Type(bool, default=True)
    auto_xref = config_options.Type(bool, default=True)
    skip_static_functions = config_options.Type(bool, default=False)
    skip_undocumented = config_options.Type(bool, default=False)
    skip_empty_defines = config_options.Type(bool, default=False)


def _discover_sources(root, extensions, exclude):
    out = []
    exts = [e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions]
    for dirpath, dirnames, fnames in os.walk(root):
        dirnames.sort()
        for fn in sorted(fnames):
            _, ext = os.path.splitext(fn)
            if ext.lower() not in exts:
                continue
            rel = os.path.relpath(os.path.join(dirpath, fn), root)
            if any(fnmatch.fnmatch(fn, p) or fnmatch.fnmatch(rel, p) for p in exclude):
                continue
            out.append(rel)
    return out


def _source_rel_to_md_uri(rel, output_dir):
    return f"{output_dir}/{rel.replace(os.sep, '/')}.md"


class DoxterPlugin(BasePlugin[DoxterConfig]):

    def __init__(self):
        super().__init__()
        self._project = Project()
        self._pages = {}
        self._rels = {}
        self._file_pages = {}
        self._tmpfiles = []
        self._use_dir_urls = True
        self._config_dir = ""

    # ── Cross references ──

    def _relative_url(self, target, current_page_uri):
        if not current_page_uri:
            return target
        if self._use_dir_urls:
            # api/foo.h.md is served as api/foo.h/index.html, api/index.md as api/
            def _dir(uri):
                if os.path.basename(uri) == "index.md":
                    return os.path.dirname(uri) or "."
                return uri.removesuffix(".md")

            rel = os.path.relpath(_dir(target), _dir(current_page_uri)).replace(os.sep, "/")
            return "./" if rel == "." else rel + "/"
        return os.path.relpath(target, os.path.dirname(current_page_uri)).replace(os.sep, "/")

    def _resolve_xref(self, name, current_page_uri=None):
        clean = name.strip()
        if clean.endswith("()"):
            clean = clean[:-2]

        symbol = self._project.lookup(clean)
        if symbol is None or symbol.unit < 0:
            return None

        target = self._project.sources[symbol.unit].output_name
        anchor = anchor_id(symbol)
        if current_page_uri and target == current_page_uri:
            return f"#{anchor}"
        return f"{self._relative_url(target, current_page_uri)}#{anchor}"

    def _auto_xref_backticks(self, text, current_page_uri=None):
        def replace_file(m):
            target = self._file_pages.get(m.group(1))
            if target is None:
                return m.group(0)
            if target == current_page_uri:
                return m.group(0)
            return f"[`{m.group(1)}`]({self._relative_url(target, current_page_uri)})"

        def replace_func(m):
            url = self._resolve_xref(m.group(1), current_page_uri)
            if url:
                return f"[`{m.group(1)}()`]({url})"
            return m.group(0)

        def replace_ident(m):
            if m.group(1) not in self._project:
                return m.group(0)
            url = self._resolve_xref(m.group(1), current_page_uri)
            if url:
                return f"[`{m.group(1)}`]({url})"
            return m.group(0)

        text = _BACKTICK_FILE_RE.sub(replace_file, text)
        text = _BACKTICK_FUNC_RE.sub(replace_func, text)
        text = _BACKTICK_IDENT_RE.sub(replace_ident, text)
        return text

    def _apply_xrefs(self, markdown, current_page_uri=None):
        if not self.config["auto_xref"]:
            return markdown
        # fenced code and headings are left untouched
        chunks = re.split(r"(^```.*?^```[ \t]*$)", markdown, flags=re.MULTILINE | re.DOTALL)
        for i in range(0, len(chunks), 2):
            chunks[i] = "\n".join(
                line
                if line.startswith("#")
                else self._auto_xref_backticks(line, current_page_uri)
                for line in chunks[i].split("\n")
            )
        return "".join(chunks)

    # ── Source discovery ──

    def _source_root(self):
        root = self.config["source_root"]
        if not root:
            return ""
        if not os.path.isabs(root):
            root = os.path.normpath(os.path.join(self._config_dir, root))
        return root

    def _parse_options(self):
        return ParseOptions(
            skip_static_functions=self.config["skip_static_functions"],
            skip_undocumented=self.config["skip_undocumented"],
            skip_empty_defines=self.config["skip_empty_defines"],
        )

    def _discover_and_parse(self):
        root = self._source_root()
        if not root:
            return
        if not os.path.isdir(root):
            log.error("doxter: source root %s not found", root)
            return

        out_dir = self.config["output_dir"]
        rels = _discover_sources(root, self.config["extensions"], self.config["exclude"])
        log.info("doxter: discovered %d source files in %s", len(rels), root)

        for rel in rels:
            uri = _source_rel_to_md_uri(rel, out_dir)
            index = self._project.add_source(os.path.join(root, rel), output_name=uri)
            if parse_source(self._project, index) < 0:
                log.warning("doxter: skipping unreadable source %s", rel)
            self._pages[uri] = index
            self._rels[index] = rel.replace(os.sep, "/")
            self._file_pages.setdefault(os.path.basename(rel), uri)

        if rels and self.config["index"]:
            self._pages[f"{out_dir}/index.md"] = _INDEX_PAGE

    def _build_nav_tree(self):
        out_dir = self.config["output_dir"]
        nav = []
        if self.config["index"]:
            nav.append({"Overview": f"{out_dir}/index.md"})
        for uri, target in self._pages.items():
            if target == _INDEX_PAGE:
                continue
            nav.append({self._rels[target]: uri})
        return nav

    def _inject_nav(self, config):
        if not self._rels:
            return
        top_title = self.config["nav_title"]
        section = {top_title: self._build_nav_tree()}

        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and top_title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        self._config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        self._project = Project(self._parse_options())
        self._pages.clear()
        self._rels.clear()
        self._file_pages.clear()
        self._tmpfiles.clear()
        self._use_dir_urls = config.get("use_directory_urls", True)

        # Links point at directory URLs that MkDocs cannot validate
        try:
            config["validation"]["links"]["unrecognized_links"] = 0
        except (KeyError, TypeError):
            pass

        self._discover_and_parse()
        self._inject_nav(config)

        nsym = sum(1 for s in self._project.symbols if s.kind is not SymbolKind.FILE)
        if nsym:
            log.info("doxter: symbol table built, %d symbols indexed", nsym)
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            try:
                f = File.generated(config, uri, content="")
            except (AttributeError, TypeError):
                f = File(
                    uri,
                    config["docs_dir"],
                    config["site_dir"],
                    config.get("use_directory_urls", True),
                )
                dest = os.path.join(config["docs_dir"], uri)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                open(dest, "w").close()
                self._tmpfiles.append(dest)
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path

        target = self._pages.get(src_uri)
        if target == _INDEX_PAGE:
            return self._apply_xrefs(self._mk_index(), src_uri)
        if target is not None:
            return self._apply_xrefs(self._mk_page(target), src_uri)
        return self._apply_xrefs(markdown, src_uri)

    def on_post_build(self, *, config, **kwargs):
        docs_dir = config["docs_dir"]
        for p in self._tmpfiles:
            try:
                os.remove(p)
            except OSError:
                pass
            d = os.path.dirname(p)
            while d != docs_dir:
                try:
                    os.rmdir(d)
                except OSError:
                    break
                d = os.path.dirname(d)

    # ── A–Z navigation bar ──

    _AZ_CSS = """<style>
.dx-idx{position:sticky;top:var(--md-header-height,0);z-index:2;
background:var(--md-default-bg-color,#fff);border-bottom:1px solid rgba(128,128,128,.2);
padding:8px .8rem;margin:0 -.8rem 16px;text-align:center;
font-family:ui-monospace,SFMono-Regular,monospace;font-size:13px;letter-spacing:1px}
.dx-idx a{display:inline-block;min-width:28px;height:28px;line-height:28px;
text-align:center;text-decoration:none;border-radius:4px;
color:var(--md-typeset-a-color,#1a73e8)}
.dx-idx a:hover{background:rgba(128,128,128,.12)}
.dx-idx .x{display:inline-block;min-width:28px;height:28px;line-height:28px;
text-align:center;opacity:.2}
</style>"""

    def _indexed_symbols(self):
        out = []
        for s in self._project.symbols:
            if s.kind is SymbolKind.FILE:
                continue
            sort_name = s.name.lstrip("_")
            if sort_name and sort_name[0].isalpha():
                out.append((sort_name[0].upper(), s))
        return out

    def _az_bar(self, current_uri=None):
        index_uri = f"{self.config['output_dir']}/index.md"
        active = {letter for letter, _ in self._indexed_symbols()}
        prefix = ""
        if current_uri and current_uri != index_uri:
            prefix = self._relative_url(index_uri, current_uri)
        parts = []
        for ch in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
            if ch in active:
                parts.append(f'<a href="{prefix}#{ch}">{ch}</a>')
            else:
                parts.append(f'<span class="x">{ch}</span>')
        return self._AZ_CSS + '\n<div class="dx-idx">\n' + "\n".join(parts) + "\n</div>\n\n"

    # ── Page rendering ──

    def _rcfg(self):
        return RenderConfig(
            heading_level=self.config["heading_level"],
            show_source_link=self.config["show_source_link"],
            source_uri=self.config["source_uri"],
            convert_doxygen=self.config["convert_doxygen"],
        )

    def _mk_page(self, index):
        project = self._project
        unit = project.sources[index]
        rel = self._rels.get(index, unit.name)
        cfg = self._rcfg()

        header = f"# {unit.name}\n\nSource file: `{rel}`\n\n"
        symbols = project.unit_symbols(index)
        for s in symbols:
            if s.kind is SymbolKind.FILE and s.comment:
                header += render_comment(project, s, cfg) + "\n\n"

        bar = self._az_bar(unit.output_name)
        body = render_symbols(project, symbols, cfg)
        if not body:
            return header + bar + "---\n\n_No documented symbols found in this file._"
        return header + bar + "---\n\n" + body

    def _read_index_markdown(self):
        path = self.config["index_markdown"]
        if not path:
            return ""
        if not os.path.isabs(path):
            path = os.path.normpath(os.path.join(self._config_dir, path))
        try:
            with open(path, encoding="utf-8") as f:
                return f.read().strip()
        except OSError as exc:
            log.warning("doxter: cannot read index markdown %s: %s", path, exc)
            return ""

    def _mk_index(self):
        project = self._project
        out_dir = self.config["output_dir"]
        name = self.config["project_name"]
        title = f"{name} {self.config['nav_title']}" if name else self.config["nav_title"]
        lines = [f"# {title}", ""]

        if self.config["project_url"]:
            lines += [f"Project home: <{self.config['project_url']}>", ""]

        intro = self._read_index_markdown()
        if intro:
            lines += [intro, ""]

        indexed = self._indexed_symbols()
        lines += [f"{len(self._rels)} source files, {len(indexed)} documented symbols.", ""]
        lines.append(self._az_bar(f"{out_dir}/index.md"))

        by_dir = {}
        for index, rel in sorted(self._rels.items(), key=lambda item: item[1]):
            by_dir.setdefault(os.path.dirname(rel), []).append((index, rel))
        lines += ["## Source Files", ""]
        for d in sorted(by_dir):
            if d:
                lines += [f"### {d}/", ""]
            lines.append("| File | Symbols |")
            lines.append("|------|---------|")
            for index, rel in by_dir[d]:
                unit = project.sources[index]
                link = unit.output_name[len(out_dir) + 1 :]
                n = sum(1 for s in project.unit_symbols(index) if s.kind is not SymbolKind.FILE)
                lines.append(
                    f"| [{unit.name}]({link}) | {n} documented symbol{'s' if n != 1 else ''} |"
                )
            lines.append("")

        lines += ["---", "", "## Symbol Index", ""]
        by_letter = {}
        for letter, s in indexed:
            by_letter.setdefault(letter, []).append(s)

        for ch in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
            entries = by_letter.get(ch, [])
            lines += [f'<a id="{ch}"></a>', "", f"### {ch}", ""]
            if not entries:
                lines += ["*No symbols.*", ""]
                continue
            for s in sorted(entries, key=lambda x: x.name.lstrip("_").lower()):
                page_link = project.sources[s.unit].output_name[len(out_dir) + 1 :]
                display = f"{s.name}()" if s.kind is SymbolKind.FUNCTION else s.name
                lines.append(f"- [`{display}`]({page_link}#{anchor_id(s)}) — {kind_label(s)}")
            lines.append("")

        return "\n".join(lines)
