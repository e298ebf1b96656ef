from __future__ import annotations

TAB = "(tab)"
INDENT = "  "


def _trim_line(line: str) -> str:
    body = line.strip()
    if not body:
        return ""
    depth = 0
    if body.startswith(TAB):
        while body.startswith(TAB):
            body = body[len(TAB):].lstrip()
            depth += 1
    else:
        head = line[: len(line) - len(line.lstrip())]
        if head and set(head) == {" "}:
            depth = len(head) // len(INDENT)
    body = body.replace(TAB, INDENT).rstrip()
    if not body:
        return ""
    return INDENT * depth + body


def trim_query(query: str) -> str:
    """
    Normalize synthesized query text.

    - trims every line and drops blank ones
    - leading `(tab)` markers become two-space indentation
    - strips the trailing comma left by list builders
    """
    lines = [_trim_line(s) for s in str(query).split("\n")]
    out = "\n".join(s for s in lines if s)
    out = out.rstrip()
    while out.endswith(","):
        out = out[:-1].rstrip()
    return out
