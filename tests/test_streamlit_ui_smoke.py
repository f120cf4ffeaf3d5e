from __future__ import annotations

import ast
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PAGES = ("db_connect", "shapes", "takeoff", "quote")


def test_app_and_tools_compile() -> None:
    for target in ("app", "tools"):
        result = subprocess.run(
            [sys.executable, "-m", "compileall", "-q", str(REPO_ROOT / target)],
            capture_output=True,
            text=True,
            check=False,
        )

        assert result.returncode == 0, (
            f"compileall failed for {target}/.\n"
            f"stdout:\n{result.stdout}\n"
            f"stderr:\n{result.stderr}"
        )


def test_every_page_has_render() -> None:
    for page in PAGES:
        tree = ast.parse((REPO_ROOT / "app" / "views" / f"{page}.py").read_text(encoding="utf-8"))
        names = {node.name for node in tree.body if isinstance(node, ast.FunctionDef)}
        assert "render" in names, f"app/views/{page}.py has no render()"


def test_cli_help_runs() -> None:
    for script in ("import_shapes.py", "run_quote.py"):
        result = subprocess.run(
            [sys.executable, str(REPO_ROOT / "tools" / script), "--help"],
            capture_output=True,
            text=True,
            check=False,
        )
        assert result.returncode == 0, result.stderr
        assert "--db" in result.stdout
