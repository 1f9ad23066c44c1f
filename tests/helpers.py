"""Shared test helpers: throw-away git repositories and a scripted reasoning provider."""

import subprocess
from pathlib import Path


def git(*args, cwd):
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True,
    ).stdout


def make_repo(path: Path, files: dict[str, str], branch: str = "main") -> Path:
    """Create a committed git repository containing ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git("init", "-q", cwd=path)
    git("checkout", "-q", "-b", branch, cwd=path)
    for rel_path, content in files.items():
        target = path / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    git("add", ".", cwd=path)
    git("-c", "user.name=Test", "-c", "user.email=test@example.com",
        "commit", "-q", "-m", "initial", cwd=path)
    return path


class FakeLLM:
    """Returns canned completions in call order and records the prompts."""

    def __init__(self, *responses: str):
        self.responses = list(responses)
        self.calls: list[list[dict]] = []

    async def complete_chat(self, messages: list[dict], temperature: float = 0.1) -> str:
        self.calls.append(messages)
        if not self.responses:
            return ""
        return self.responses.pop(0)


CALC_SOURCE = "def add(a, b):\n    return a - b\n"
UTILS_SOURCE = "from app.calc import add\n\n\ndef total(items):\n    return add(items[0], items[1])\n"

FIXED_CALC = "def add(a, b):\n    return a + b\n"
FIXED_UTILS = "from app.calc import add\n\n\ndef total(items):\n    return add(*items[:2])\n"

TWO_FILE_PATCH = f"""Here is the fix.

FILE: app/calc.py
```python
{FIXED_CALC}```

FILE: app/utils.py
```python
{FIXED_UTILS}```
"""
