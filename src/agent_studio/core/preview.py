"""Web preview bundling and simulated execution of a project's files."""

import logging
import re
from pathlib import PurePosixPath

from agent_studio.db.models import FileRecord, PreviewResult
from agent_studio.integrations import prompts
from agent_studio.integrations.llm import LLMClient, LLMError, parse_json_reply, strip_code_fences

logger = logging.getLogger(__name__)

ENTRY_FILE_NAMES = (
    "index.html",
    "main.cpp",
    "main.py",
    "main.lua",
    "App.tsx",
    "index.tsx",
    "main.go",
)

SCRIPT_SUFFIXES = {".js", ".jsx", ".ts", ".tsx"}
BABEL_SUFFIXES = {".jsx", ".tsx"}

DEFAULT_SHELL = """<!DOCTYPE html>
<html>
<head>
<style>body { font-family: sans-serif; padding: 20px; }</style>
</head>
<body>
<div id="root"></div>
</body>
</html>
"""

BABEL_SCRIPTS = (
    '<script src="https://unpkg.com/@babel/standalone/babel.min.js"></script>\n'
    '<script src="https://unpkg.com/react@18/umd/react.development.js"></script>\n'
    '<script src="https://unpkg.com/react-dom@18/umd/react-dom.development.js"></script>\n'
)

_LINK_RE = re.compile(r"<link\b[^>]*\bhref=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
_SCRIPT_RE = re.compile(
    r"<script\b[^>]*\bsrc=[\"']([^\"']+)[\"'][^>]*>\s*</script>", re.IGNORECASE
)
_HEAD_CLOSE_RE = re.compile(r"</head>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body>", re.IGNORECASE)


def _suffix(name: str) -> str:
    return PurePosixPath(name).suffix.lower()


def is_web_project(files: list[FileRecord]) -> bool:
    has_html = any(_suffix(f.name) == ".html" for f in files)
    return has_html or any(_suffix(f.name) in BABEL_SUFFIXES for f in files)


def find_entry_file(files: list[FileRecord], hint: str | None = None) -> FileRecord | None:
    """Pick the file a run starts from: the hint, a known entry name, or the first file."""
    if hint:
        for f in files:
            if f.name == hint:
                return f
    for name in ENTRY_FILE_NAMES:
        for f in files:
            if f.name == name:
                return f
    return files[0] if files else None


def build_web_preview(files: list[FileRecord]) -> str:
    """Bundle HTML, CSS and scripts into one self-contained document.

    Local stylesheet links and script tags are replaced in place by the
    file contents; remaining CSS goes into the head and remaining scripts
    at the end of the body.
    """
    by_name = {f.name: f for f in files}
    html_file = by_name.get("index.html") or next(
        (f for f in files if _suffix(f.name) == ".html"), None
    )
    html = html_file.content if html_file else DEFAULT_SHELL
    inlined: set[str] = set()

    def inline_style(match):
        f = by_name.get(_local_name(match.group(1)))
        if f is None or _suffix(f.name) != ".css":
            return match.group(0)
        inlined.add(f.name)
        return _style_tag(f)

    def inline_script(match):
        f = by_name.get(_local_name(match.group(1)))
        if f is None or _suffix(f.name) not in SCRIPT_SUFFIXES:
            return match.group(0)
        inlined.add(f.name)
        return _script_tag(f)

    html = _LINK_RE.sub(inline_style, html)
    html = _SCRIPT_RE.sub(inline_script, html)

    head_extra = ""
    if any(_suffix(f.name) in BABEL_SUFFIXES for f in files):
        head_extra += BABEL_SCRIPTS
    head_extra += "".join(
        _style_tag(f) for f in files if _suffix(f.name) == ".css" and f.name not in inlined
    )
    body_extra = "".join(
        _script_tag(f)
        for f in files
        if _suffix(f.name) in SCRIPT_SUFFIXES and f.name not in inlined
    )

    if head_extra:
        if _HEAD_CLOSE_RE.search(html):
            html = _HEAD_CLOSE_RE.sub(lambda m: head_extra + m.group(0), html, count=1)
        else:
            html = f"<head>{head_extra}</head>{html}"
    if body_extra:
        if _BODY_CLOSE_RE.search(html):
            html = _BODY_CLOSE_RE.sub(lambda m: body_extra + m.group(0), html, count=1)
        else:
            html += body_extra
    return html


async def simulate_execution(
    client: LLMClient,
    files: list[FileRecord],
    entry_hint: str | None = None,
) -> PreviewResult:
    """Ask the model what running the entry file would print."""
    entry = find_entry_file(files, entry_hint)
    if entry is None:
        return PreviewResult(output="", error="Project has no files")

    try:
        text = await client.complete(prompts.execution_prompt(files, entry))
    except LLMError as e:
        logger.warning("Execution simulation failed for %s: %s", entry.name, e)
        return PreviewResult(output="", error=str(e), entry_file=entry.name)

    try:
        data = parse_json_reply(text)
    except ValueError:
        return PreviewResult(output=strip_code_fences(text), entry_file=entry.name)
    if not isinstance(data, dict):
        return PreviewResult(output=strip_code_fences(text), entry_file=entry.name)
    return PreviewResult(
        output=str(data.get("output") or ""),
        error=str(data["error"]) if data.get("error") else None,
        entry_file=entry.name,
    )


async def preview_project(
    client: LLMClient,
    files: list[FileRecord],
    entry_hint: str | None = None,
) -> PreviewResult:
    """Web projects get a bundled HTML document; anything else is simulated."""
    if is_web_project(files):
        html_file = find_entry_file([f for f in files if _suffix(f.name) == ".html"])
        return PreviewResult(
            output=build_web_preview(files),
            entry_file=html_file.name if html_file else None,
        )
    return await simulate_execution(client, files, entry_hint)


def _local_name(href: str) -> str:
    if "://" in href or href.startswith("//"):
        return ""
    name = href.split("?", 1)[0].split("#", 1)[0]
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def _style_tag(f: FileRecord) -> str:
    return f'<style data-name="{f.name}">\n{f.content}\n</style>\n'


def _script_tag(f: FileRecord) -> str:
    script_type = "text/babel" if _suffix(f.name) in BABEL_SUFFIXES else "text/javascript"
    return f'<script type="{script_type}" data-name="{f.name}">\n{f.content}\n</script>\n'
