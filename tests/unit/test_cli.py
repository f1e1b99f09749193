"""
Unit Tests for the metis-clew command line client
"""

import json

import pytest

from metis_clew import cli
from metis_clew.exceptions import ApiError
from metis_clew.local_session import DEFAULT_STORAGE_KEY
from metis_clew.storage import JsonFileStorage
from metis_clew.workspace import WorkspaceState


class FakeClient:
    def __init__(self, token=None, explanation=None, explanation_id=None, recent=None, patterns=None):
        self.access_token = token
        self.explanation = explanation
        self.explanation_id = explanation_id
        self.recent = recent or []
        self.patterns = patterns or []
        self.submitted = []
        self.explained = []
        self.ratings = []

    @property
    def is_authenticated(self):
        return bool(self.access_token)

    def submit_snippet(self, code, language):
        self.submitted.append((code, language))
        snippet_id = f"snip-{len(self.submitted)}" if self.access_token else None
        return {"id": snippet_id, "code": code, "language": language}

    def explain(self, code_snippet, selected_code, language, snippet_id=None):
        self.explained.append((selected_code, snippet_id))
        return {"explanation": self.explanation, "explanationId": self.explanation_id}

    def rate_explanation(self, explanation_id, rating):
        self.ratings.append((explanation_id, rating))
        return {"explanation_id": explanation_id, "rating": rating}

    def fetch_stats(self):
        return None

    def list_recent_snippets(self):
        return self.recent

    def list_learning_patterns(self):
        return self.patterns


class UnreachableClient(FakeClient):
    """Every backend call fails as if the server were down."""

    def _down(self, *args, **kwargs):
        raise ApiError("Could not reach http://localhost:8000")

    submit_snippet = explain = rate_explanation = _down
    list_recent_snippets = list_learning_patterns = _down


@pytest.fixture
def run(tmp_path, monkeypatch):
    """Run the CLI against a fake backend; returns (exit_code, client)."""
    state = {"client": FakeClient()}
    monkeypatch.setattr(cli, "MetisClewClient", lambda base_url=None, access_token=None: state["client"])

    def _run(*argv, client=None):
        if client is not None:
            state["client"] = client
        return cli.main(["--data-dir", str(tmp_path), *argv]), state["client"]

    return _run


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "fact.py"
    path.write_text("def fact(n):\n    if n < 2:\n        return 1\n    return n * fact(n - 1)\n")
    return path


def stored_session(tmp_path):
    return json.loads(JsonFileStorage(tmp_path).get_item(DEFAULT_STORAGE_KEY))


class TestHelpers:
    def test_select_lines(self):
        code = "a\nb\nc\nd"
        assert cli.select_lines(code, "2:3") == "b\nc"
        assert cli.select_lines(code, "3:") == "c\nd"

    def test_select_lines_invalid(self):
        with pytest.raises(ValueError):
            cli.select_lines("a\nb", "3:1")

    def test_guess_language(self, tmp_path):
        assert cli.guess_language(tmp_path / "x.ts") == "typescript"
        assert cli.guess_language(tmp_path / "Makefile") == "python"


class TestCommands:
    def test_submit_tracks_locally(self, run, source_file, tmp_path, capsys):
        code, client = run("submit", str(source_file))

        assert code == 0
        assert client.submitted == []
        record = stored_session(tmp_path)
        assert record["sessionCount"] == 1
        assert record["recentSnippets"][0]["title"] == "python code"
        assert "Code loaded successfully" in capsys.readouterr().out

    def test_explain_without_snippet(self, run, capsys):
        code, _ = run("explain", "x")
        assert code == 1
        assert "No code snippet" in capsys.readouterr().out

    def test_explain_tracks_progress(self, run, source_file, tmp_path, valid_explanation, capsys):
        run("submit", str(source_file))
        code, client = run("explain", "--lines", "4:4", client=FakeClient(explanation=valid_explanation))

        assert code == 0
        assert client.explained == [("    return n * fact(n - 1)", None)]
        assert stored_session(tmp_path)["totalExplanations"] == 1
        assert valid_explanation["whatItDoes"] in capsys.readouterr().out

    def test_explain_error_payload_not_counted(self, run, source_file, tmp_path, capsys):
        run("submit", str(source_file))
        code, _ = run("explain", "fact", client=FakeClient(explanation={"error": "Invalid response from AI"}))

        assert code == 1
        assert stored_session(tmp_path)["totalExplanations"] == 0
        assert "Invalid response from AI" in capsys.readouterr().out

    def test_level_up_announced(self, run, source_file, tmp_path, valid_explanation, capsys):
        storage = JsonFileStorage(tmp_path)
        run("submit", str(source_file))
        record = stored_session(tmp_path)
        record["totalExplanations"] = 9
        storage.set_item(DEFAULT_STORAGE_KEY, json.dumps(record))

        run("explain", "fact", client=FakeClient(explanation=valid_explanation))
        assert "Level Up! You've advanced to Intermediate" in capsys.readouterr().out

    def test_signed_in_explain_stores_snippet_first(self, run, source_file, valid_explanation):
        run("submit", str(source_file))
        client = FakeClient(token="tok", explanation=valid_explanation, explanation_id="exp-1")
        code, _ = run("explain", "fact", client=client)

        assert code == 0
        assert client.explained == [("fact", "snip-1")]

    def test_rate_requires_sign_in(self, run, capsys):
        code, client = run("rate", "up")
        assert code == 1
        assert client.ratings == []
        assert "Please sign in to rate explanations" in capsys.readouterr().out

    def test_rate_without_explanation(self, run, capsys):
        code, _ = run("rate", "up", client=FakeClient(token="tok"))
        assert code == 1
        assert "No explanation ID available" in capsys.readouterr().out

    def test_rate_last_explanation(self, run, source_file, valid_explanation, capsys):
        client = FakeClient(token="tok", explanation=valid_explanation, explanation_id="exp-1")
        run("submit", str(source_file), client=client)
        run("explain", "fact")
        code, _ = run("rate", "down")

        assert code == 0
        assert client.ratings == [("exp-1", -1)]
        assert "Rating saved!" in capsys.readouterr().out

    def test_status_guest(self, run, capsys):
        code, _ = run("status")
        out = capsys.readouterr().out
        assert code == 0
        assert "Skill: BEGINNER  (local)" in out
        assert "Progress to intermediate: 0%" in out

    def test_clear_keeps_progress(self, run, source_file, tmp_path, valid_explanation):
        run("submit", str(source_file))
        run("explain", "fact", client=FakeClient(explanation=valid_explanation))
        code, _ = run("clear")

        assert code == 0
        assert stored_session(tmp_path)["totalExplanations"] == 1
        code, _ = run("explain", "fact")
        assert code == 1

    def test_guest_submit_while_backend_down(self, run, source_file, tmp_path, capsys):
        """Guests load code and get tracked without any backend."""
        code, _ = run("submit", str(source_file), client=UnreachableClient())

        assert code == 0
        assert stored_session(tmp_path)["sessionCount"] == 1
        assert WorkspaceState(JsonFileStorage(tmp_path)).snippet.id is None
        assert "Code loaded successfully" in capsys.readouterr().out

    def test_signed_in_submit_stores_snippet(self, run, source_file, tmp_path):
        code, client = run("submit", str(source_file), client=FakeClient(token="tok"))

        assert code == 0
        assert client.submitted[0][1] == "python"
        assert WorkspaceState(JsonFileStorage(tmp_path)).snippet.id == "snip-1"

    def test_api_error_reported(self, run, source_file, tmp_path, capsys):
        code, _ = run("submit", str(source_file), client=UnreachableClient(token="tok"))

        assert code == 1
        assert "Could not reach" in capsys.readouterr().out
        assert JsonFileStorage(tmp_path).get_item(DEFAULT_STORAGE_KEY) is None


class TestHistory:
    def test_local_history_numbered(self, run, source_file, capsys):
        run("submit", str(source_file))
        code, _ = run("history")

        assert code == 0
        assert "1. python code  [python]  def fact(n):" in capsys.readouterr().out

    def test_remote_history_preferred(self, run, source_file, capsys):
        run("submit", str(source_file))
        remote = [{"id": "r1", "title": "go code", "code": "package main", "language": "go"}]
        run("history", client=FakeClient(token="tok", recent=remote))

        out = capsys.readouterr().out
        assert "1. go code  [go]  package main" in out
        assert "python code" not in out

    def test_unreachable_backend_falls_back_to_local(self, run, source_file, capsys, caplog):
        run("submit", str(source_file))
        code, _ = run("history", client=UnreachableClient(token="tok"))

        assert code == 0
        assert "1. python code  [python]  def fact(n):" in capsys.readouterr().out
        assert "showing local snippets" in caplog.text

    def test_open_loads_snippet_into_workspace(self, run, source_file, tmp_path, valid_explanation, capsys):
        run("submit", str(source_file))
        run("explain", "fact", client=FakeClient(explanation=valid_explanation, explanation_id="exp-1"))
        code, _ = run("open", "1")

        workspace = WorkspaceState(JsonFileStorage(tmp_path))
        assert code == 0
        assert workspace.snippet.code == source_file.read_text()
        assert workspace.snippet.id is None
        assert workspace.explanation is None
        assert workspace.explanation_id is None
        assert '"python code" is ready for analysis' in capsys.readouterr().out

    def test_open_remote_snippet(self, run, tmp_path):
        remote = [{"id": "r1", "title": "go code", "code": "package main", "language": "go"}]
        code, _ = run("open", "1", client=FakeClient(token="tok", recent=remote))

        snippet = WorkspaceState(JsonFileStorage(tmp_path)).snippet
        assert code == 0
        assert (snippet.code, snippet.language) == ("package main", "go")

    def test_open_out_of_range(self, run, capsys):
        code, _ = run("open", "3")
        assert code == 1
        assert "No snippet #3" in capsys.readouterr().out


class TestPatterns:
    def test_guest_sees_empty_state_without_backend(self, run, capsys):
        code, _ = run("patterns", client=UnreachableClient())
        assert code == 0
        assert "No patterns yet" in capsys.readouterr().out

    def test_patterns_by_frequency(self, run, capsys):
        patterns = [
            {"pattern_type": "loops", "frequency": 2, "last_seen": "2024-03-01T10:00:00"},
            {"pattern_type": "recursion", "frequency": 5, "insights": {"summary": "Base cases first"}},
        ]
        code, _ = run("patterns", client=FakeClient(token="tok", patterns=patterns))

        out = capsys.readouterr().out
        assert code == 0
        assert out.index("recursion  5x") < out.index("loops  2x  (last: 2024-03-01)")
        assert "Base cases first" in out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
