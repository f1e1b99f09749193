"""
Metis Clew terminal client.

Submit a snippet, ask for an explanation of part of it, rate the answer and
follow your skill progression. Progress is tracked locally on every run;
pass --token (or set METIS_CLEW_TOKEN) to also sync with your account.

Usage:
    metis-clew submit path/to/file.py
    metis-clew explain "for i in range(10)"
    metis-clew explain --lines 3:7
    metis-clew rate up
    metis-clew status
    metis-clew history
    metis-clew open 2
    metis-clew patterns
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from metis_clew.api_client import RATING_VALUES, MetisClewClient
from metis_clew.exceptions import ApiError
from metis_clew.local_session import LocalSessionStore
from metis_clew.progress_tracker import ProgressTracker
from metis_clew.storage import JsonFileStorage
from metis_clew.workspace import WorkspaceState

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.metis_clew"

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".sql": "sql",
    ".sh": "bash",
}


class App:
    """Wires storage, session tracking and the API client for one run."""

    def __init__(self, client: MetisClewClient, data_dir: str):
        storage = JsonFileStorage(data_dir)
        self.client = client
        self.workspace = WorkspaceState(storage)
        self.tracker = ProgressTracker(
            LocalSessionStore(storage),
            remote=client if client.is_authenticated else None
        )


def guess_language(path: Path) -> str:
    return EXTENSION_LANGUAGES.get(path.suffix.lower(), "python")


def select_lines(code: str, line_range: str) -> str:
    """Return lines START:END (1-based, inclusive) of `code`."""
    start_str, _, end_str = line_range.partition(":")
    lines = code.splitlines()
    start = int(start_str) if start_str else 1
    end = int(end_str) if end_str else len(lines)
    if start < 1 or end < start:
        raise ValueError(f"Invalid line range: {line_range}")
    return "\n".join(lines[start - 1:end])


def print_explanation(explanation: dict):
    print("\n╔═══ EXPLANATION ═══╗\n")
    print("// What it does")
    print(f"  {explanation.get('whatItDoes', '')}\n")
    print("// Why it matters")
    print(f"  {explanation.get('whyItMatters', '')}\n")
    print("// Key concepts")
    for concept in explanation.get("keyConcepts", []):
        print(f"  → {concept}")
    print("\n// Related patterns")
    for pattern in explanation.get("relatedPatterns", []):
        print(f"  ⊳ {pattern}")
    print()


def cmd_submit(app: App, args) -> int:
    path = Path(args.file)
    code = sys.stdin.read() if args.file == "-" else path.read_text(encoding="utf-8")
    language = args.language or guess_language(path)

    if not code.strip():
        print("❌ Error: Nothing to submit, the snippet is empty")
        return 1

    # Guests stay offline; only signed-in users get the snippet stored remotely
    if app.client.is_authenticated:
        result = app.client.submit_snippet(code, language)
    else:
        result = {"id": None, "code": code, "language": language}
    app.workspace.set_snippet(result.get("code", code), result.get("language", language), result.get("id"))
    app.tracker.track_code_submit(code, language)

    print("✅ Code loaded successfully")
    return 0


def cmd_explain(app: App, args) -> int:
    snippet = app.workspace.snippet
    if snippet is None:
        print("❌ Error: No code snippet. Run `metis-clew submit FILE` first.")
        return 1

    if args.lines:
        selected = select_lines(snippet.code, args.lines)
    else:
        selected = " ".join(args.selection)
    if not selected.strip():
        print("❌ Error: Select some code to explain (text or --lines START:END)")
        return 1

    # Signed-in users need the snippet stored before explanations can reference it
    if app.client.is_authenticated and not snippet.id:
        saved = app.client.submit_snippet(snippet.code, snippet.language)
        if saved.get("id"):
            app.workspace.set_snippet_id(saved["id"])

    result = app.client.explain(snippet.code, selected, snippet.language, snippet_id=app.workspace.snippet.id)
    explanation = result.get("explanation") or {}
    app.workspace.set_explanation(explanation, result.get("explanationId"))

    if "error" in explanation:
        print(f"❌ Error: {explanation['error']}")
        return 1

    level = app.tracker.track_explanation()
    print_explanation(explanation)

    if level.leveled_up:
        print(f"🎉 Level Up! You've advanced to {level.new_tier.value.capitalize()}")
    print("✅ Explanation generated")
    return 0


def cmd_rate(app: App, args) -> int:
    if not app.client.is_authenticated:
        print("❌ Authentication required: Please sign in to rate explanations")
        return 1
    if not app.workspace.explanation_id:
        print("❌ Cannot save rating: No explanation ID available")
        return 1

    app.client.rate_explanation(app.workspace.explanation_id, RATING_VALUES[args.rating])
    print("✅ Rating saved!")
    return 0


def cmd_status(app: App, args) -> int:
    stats = app.tracker.display_stats()

    print(f"Sessions: {stats.session_count}  |  Patterns: {stats.total_patterns}  |  "
          f"Skill: {stats.skill_level.value.upper()}  ({stats.source})")
    print(f"Dominant pattern: {stats.dominant_pattern}")

    if stats.next_tier is None:
        print("Top tier reached.")
    else:
        print(f"Progress to {stats.next_tier.next_tier.value}: {stats.progress}% "
              f"({stats.next_tier.remaining} explanations to go)")
    return 0


def recent_snippets(app: App) -> List[dict]:
    """Account history when signed in and reachable, this device's otherwise."""
    snippets = []
    if app.client.is_authenticated:
        try:
            snippets = app.client.list_recent_snippets()
        except ApiError as e:
            logger.warning(f"Remote history unavailable, showing local snippets: {e}")
    if not snippets:
        snippets = [s.to_dict() for s in app.tracker.local.record.recent_snippets]
    return snippets


def cmd_history(app: App, args) -> int:
    snippets = recent_snippets(app)
    if not snippets:
        print("No recent snippets.")
        return 0
    for number, snippet in enumerate(snippets, start=1):
        preview = snippet.get("code", "").splitlines()[0] if snippet.get("code") else ""
        print(f"{number}. {snippet.get('title')}  [{snippet.get('language')}]  {preview}")
    return 0


def cmd_open(app: App, args) -> int:
    snippets = recent_snippets(app)
    if not 1 <= args.number <= len(snippets):
        print(f"❌ Error: No snippet #{args.number} (run `metis-clew history` to list them)")
        return 1

    snippet = snippets[args.number - 1]
    # History ids are not code_snippets ids; explain stores a fresh copy when signed in
    app.workspace.set_snippet(snippet.get("code", ""), snippet.get("language") or "python")

    print(f"✅ Snippet loaded: \"{snippet.get('title')}\" is ready for analysis")
    return 0


def cmd_patterns(app: App, args) -> int:
    patterns = app.client.list_learning_patterns() if app.client.is_authenticated else []
    if not patterns:
        print("// No patterns yet. Start explaining code!")
        return 0

    for pattern in sorted(patterns, key=lambda p: p.get("frequency") or 0, reverse=True):
        line = f"{pattern.get('pattern_type')}  {pattern.get('frequency') or 0}x"
        if pattern.get("last_seen"):
            line += f"  (last: {str(pattern['last_seen'])[:10]})"
        print(line)
        insights = pattern.get("insights")
        if isinstance(insights, dict) and insights.get("summary"):
            print(f"  {insights['summary']}")
    return 0


def cmd_clear(app: App, args) -> int:
    app.workspace.clear()
    print("✅ Workspace cleared")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="metis-clew", description="AI code explanations in your terminal")
    parser.add_argument("--api-url", default=None, help="Backend URL (default: METIS_CLEW_API_URL or localhost:8000)")
    parser.add_argument("--token", default=None, help="Access token (default: METIS_CLEW_TOKEN); omit for guest mode")
    parser.add_argument("--data-dir", default=os.getenv("METIS_CLEW_DATA_DIR", DEFAULT_DATA_DIR),
                        help="Where local progress is stored")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    submit = sub.add_parser("submit", help="Load a code snippet (use - for stdin)")
    submit.add_argument("file")
    submit.add_argument("--language", "-l", default=None)
    submit.set_defaults(func=cmd_submit)

    explain = sub.add_parser("explain", help="Explain part of the current snippet")
    explain.add_argument("selection", nargs="*", help="Code fragment to explain")
    explain.add_argument("--lines", default=None, help="Explain lines START:END of the snippet instead")
    explain.set_defaults(func=cmd_explain)

    rate = sub.add_parser("rate", help="Rate the last explanation")
    rate.add_argument("rating", choices=sorted(RATING_VALUES))
    rate.set_defaults(func=cmd_rate)

    sub.add_parser("status", help="Show skill progression").set_defaults(func=cmd_status)
    sub.add_parser("history", help="List recent snippets").set_defaults(func=cmd_history)

    reopen = sub.add_parser("open", help="Load snippet N from `history` into the workspace")
    reopen.add_argument("number", type=int)
    reopen.set_defaults(func=cmd_open)

    sub.add_parser("patterns", help="Show your learning patterns").set_defaults(func=cmd_patterns)
    sub.add_parser("clear", help="Clear the current snippet and explanation").set_defaults(func=cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s | %(message)s"
    )

    client = MetisClewClient(base_url=args.api_url, access_token=args.token)
    app = App(client, args.data_dir)

    try:
        return args.func(app, args)
    except ApiError as e:
        print(f"❌ Error: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
