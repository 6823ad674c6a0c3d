"""
Doxygen-style tag conversion for cleaned doc comments.

Comments are kept as Markdown prose; only the common tags get special
treatment so the rendered page shows parameters and return values as
structured blocks instead of raw ``@param`` lines.
"""

import re

from .parser import SymbolKind

_TAG = r"[@\\]"

_BRIEF_RE = re.compile(rf"^{_TAG}brief\s*")
_PARAM_RE = re.compile(rf"^{_TAG}param(?:\[(in|out|in,\s*out)\])?\s+(\w+|\.\.\.)\s*(.*)$")
_RETURN_RE = re.compile(rf"^{_TAG}(?:returns?|retval|result)\b\s*(.*)$")
_NOTE_RE = re.compile(rf"^{_TAG}(note|warning|attention|deprecated)\b\s*(.*)$")
_SEE_RE = re.compile(rf"^{_TAG}(?:see|sa)\b\s*(.*)$")
_INLINE_CODE_RE = re.compile(rf"{_TAG}(?:ref|c|p)\s+([A-Za-z_]\w*(?:\(\))?)")

_ADMONITIONS = {
    "note": "note",
    "warning": "warning",
    "attention": "warning",
    "deprecated": "danger",
}


def _inline(line):
    return _INLINE_CODE_RE.sub(r"`\1`", line)


def _describe_return_type(rtype):
    rt = " ".join(w for w in rtype.split() if w not in ("static", "inline", "extern"))
    if not rt or rt == "void":
        return None
    if "*" in rt:
        base = rt.replace("*", "").strip()
        ptr = "Pointer to pointer to" if rt.count("*") > 1 else "Pointer to"
        return f"{ptr} `{base}`" if base else f"{ptr} void"
    return f"`{rt}`"


def doxygen_to_markdown(text, symbol=None, params=None, *, return_type=None):
    """Convert a cleaned doc comment to Markdown.

    `params` is a list of ``(type, name)`` pairs used to fill the type column
    of the parameter table; `return_type` (the text before a function's name)
    supplies a **Returns:** line when the comment has none.
    """
    body = []
    param_docs = {}  # name -> [direction, description]
    param_types = {pname: ptype for ptype, pname in (params or []) if pname and ptype}
    returns = None
    see_also = []
    # None, ("param", name), "returns", ("admonition", kind, lines)
    section = None

    def _close():
        nonlocal section
        if isinstance(section, tuple) and section[0] == "admonition":
            _, kind, lines = section
            title = "" if kind != "deprecated" else ' "Deprecated"'
            body.extend(["", f"!!! {_ADMONITIONS[kind]}{title}", ""])
            body.extend(f"    {ln}" if ln else "" for ln in lines)
            body.append("")
        section = None

    for line in text.split("\n"):
        stripped = line.strip()

        if symbol is not None and not body and section is None and stripped.rstrip(":") == symbol.name:
            continue

        m = _PARAM_RE.match(stripped)
        if m:
            _close()
            direction, name, desc = m.groups()
            param_docs[name] = [direction or "", _inline(desc)]
            section = ("param", name)
            continue
        m = _RETURN_RE.match(stripped)
        if m:
            _close()
            returns = _inline(m.group(1))
            section = "returns"
            continue
        m = _NOTE_RE.match(stripped)
        if m:
            _close()
            section = ("admonition", m.group(1), [_inline(m.group(2))] if m.group(2) else [])
            continue
        m = _SEE_RE.match(stripped)
        if m:
            _close()
            see_also.extend(
                f"`{ref}`" if not ref.startswith("`") else ref
                for ref in re.split(r"[,\s]+", _inline(m.group(1)))
                if ref
            )
            continue

        if section is not None:
            # a blank line ends a tag paragraph
            if not stripped:
                _close()
                body.append("")
                continue
            if isinstance(section, tuple) and section[0] == "param":
                entry = param_docs[section[1]]
                entry[1] = f"{entry[1]} {_inline(stripped)}".strip()
            elif section == "returns":
                returns = f"{returns} {_inline(stripped)}".strip()
            else:
                section[2].append(_inline(stripped))
            continue

        body.append(_inline(_BRIEF_RE.sub("", line)))

    _close()
    while body and not body[-1].strip():
        body.pop()
    while body and not body[0].strip():
        body.pop(0)

    if not returns and return_type and symbol is not None and symbol.kind is SymbolKind.FUNCTION:
        returns = _describe_return_type(return_type)

    if param_docs:
        has_types = any(name in param_types for name in param_docs)
        has_dirs = any(direction for direction, _ in param_docs.values())
        header = ["Name"] + (["Type"] if has_types else []) + (["Direction"] if has_dirs else [])
        header.append("Description")
        body += ["", "**Parameters:**", ""]
        body.append("| " + " | ".join(header) + " |")
        body.append("|" + "|".join("-" * (len(h) + 2) for h in header) + "|")
        for name, (direction, desc) in param_docs.items():
            cells = [f"`{name}`"]
            if has_types:
                ptype = param_types.get(name, "")
                cells.append(f"`{ptype}`" if ptype else "")
            if has_dirs:
                cells.append(direction.replace(" ", ""))
            cells.append(desc)
            body.append("| " + " | ".join(cells) + " |")

    if returns:
        body += ["", f"**Returns:** {returns}"]

    if see_also:
        body += ["", "**See also:** " + ", ".join(see_also)]

    return "\n".join(body).strip("\n")
