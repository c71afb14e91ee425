"""Tests for web preview bundling and simulated execution."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from agent_studio.core import preview as preview_mod
from agent_studio.db.models import FileRecord
from agent_studio.integrations.llm import LLMError


def _file(name, content):
    return FileRecord(id=name, name=name, content=content)


def _client(reply=None, error=None):
    client = MagicMock()
    client.complete = AsyncMock(return_value=reply, side_effect=error)
    return client


class TestEntryFile:
    def test_hint_wins(self):
        files = [_file("index.html", ""), _file("other.py", "")]
        assert preview_mod.find_entry_file(files, "other.py").name == "other.py"

    def test_known_names(self):
        files = [_file("util.py", ""), _file("main.py", "")]
        assert preview_mod.find_entry_file(files).name == "main.py"

    def test_first_file_fallback(self):
        assert preview_mod.find_entry_file([_file("a.rb", "")]).name == "a.rb"
        assert preview_mod.find_entry_file([]) is None

    def test_is_web_project(self):
        assert preview_mod.is_web_project([_file("index.html", "")])
        assert preview_mod.is_web_project([_file("App.tsx", "")])
        assert not preview_mod.is_web_project([_file("main.py", "")])


class TestWebPreview:
    def test_inlines_linked_files_in_place(self):
        files = [
            _file(
                "index.html",
                '<html><head><link rel="stylesheet" href="./style.css"></head>'
                '<body><script src="app.js"></script></body></html>',
            ),
            _file("style.css", "body { color: red; }"),
            _file("app.js", "console.log('hi');"),
        ]
        html = preview_mod.build_web_preview(files)
        assert "<link" not in html
        assert 'src="app.js"' not in html
        assert html.count("body { color: red; }") == 1
        assert html.count("console.log('hi');") == 1
        assert html.index("color: red") < html.index("</head>")

    def test_unlinked_files_are_appended(self):
        files = [
            _file("index.html", "<html><head></head><body><div id='app'></div></body></html>"),
            _file("extra.css", "p {}"),
            _file("extra.js", "run();"),
        ]
        html = preview_mod.build_web_preview(files)
        assert html.index("p {}") < html.index("</head>")
        assert html.index("run();") < html.index("</body>")

    def test_remote_links_untouched(self):
        files = [_file("index.html", '<head><link href="https://cdn.example.com/x.css"></head>')]
        html = preview_mod.build_web_preview(files)
        assert 'href="https://cdn.example.com/x.css"' in html

    def test_jsx_without_html_uses_default_shell(self):
        html = preview_mod.build_web_preview([_file("App.tsx", "const App = () => <div/>;")])
        assert '<div id="root"></div>' in html
        assert 'type="text/babel"' in html
        assert "babel.min.js" in html


class TestSimulateExecution:
    def test_json_reply(self):
        client = _client('{"output": "Hello\\n", "error": null}')
        result = asyncio.run(preview_mod.simulate_execution(client, [_file("main.py", "print('Hello')")]))
        assert result.output == "Hello\n"
        assert result.error is None
        assert result.entry_file == "main.py"

    def test_plain_text_reply(self):
        client = _client("Hello")
        result = asyncio.run(preview_mod.simulate_execution(client, [_file("main.go", "")]))
        assert result.output == "Hello"

    def test_llm_error_is_reported_not_raised(self):
        client = _client(error=LLMError("down"))
        result = asyncio.run(preview_mod.simulate_execution(client, [_file("main.py", "")]))
        assert result.error == "down"
        assert result.output == ""

    def test_no_files(self):
        result = asyncio.run(preview_mod.simulate_execution(_client("x"), []))
        assert result.error == "Project has no files"


def test_preview_project_bundles_web_projects():
    client = _client("unused")
    result = asyncio.run(preview_mod.preview_project(client, [_file("index.html", "<p>hi</p>")]))
    assert result.output.startswith("<p>hi</p>")
    assert result.entry_file == "index.html"
    client.complete.assert_not_called()
