from patchpilot.agents.context_miner import (
    MAX_CANDIDATES,
    extract_keywords,
    find_path_tokens,
    mine_relevant_files,
    search_keywords,
)
from tests.helpers import make_repo


def test_extract_keywords_drops_stop_words_and_short_tokens():
    keywords = extract_keywords("The parser is failing on the config, parser config!")
    assert keywords == ["parser", "failing", "config"]


def test_extract_keywords_extra_stop_words():
    assert extract_keywords("ValueError from loader", ("from", "valueerror")) == ["loader"]


def test_path_tokens_must_exist(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("x = 1\n")
    text = 'Traceback: File "src/app.py", line 3 and at src/missing.py:10'
    assert find_path_tokens(text, tmp_path) == ["src/app.py"]


def test_path_tokens_outside_checkout_ignored(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (tmp_path / "secret.py").write_text("")
    assert find_path_tokens("crash in ../secret.py", repo) == []


def test_path_tokens_leading_dot_slash(tmp_path):
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "util.js").write_text("")
    assert find_path_tokens("TypeError at ./lib/util.js:4", tmp_path) == ["lib/util.js"]


def test_path_tokens_win_over_keywords(tmp_path):
    repo = make_repo(tmp_path / "r", {
        "pkg/core.py": "def handler():\n    pass\n",
        "pkg/other.py": "# handler lives elsewhere\n",
    })
    candidates, strategy, keywords = mine_relevant_files("handler broken in pkg/core.py", repo)
    assert candidates == ["pkg/core.py"]
    assert strategy == "path_tokens"
    assert keywords == []


def test_keyword_search_is_sorted_and_skips_vendor_dirs(tmp_path):
    (tmp_path / "b.py").write_text("checkout flow\n")
    (tmp_path / "a.ts").write_text("checkout\n")
    (tmp_path / "notes.txt").write_text("checkout\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("checkout\n")
    assert search_keywords(["checkout"], tmp_path) == ["a.ts", "b.py"]


def test_keyword_results_capped_and_unique(tmp_path):
    for i in range(30):
        (tmp_path / f"mod_{i:02d}.py").write_text("payment gateway timeout\n")
    candidates, strategy, keywords = mine_relevant_files("payment gateway timeout happens", tmp_path)
    assert strategy == "keywords"
    assert keywords == ["payment", "gateway", "timeout"]
    assert len(candidates) <= MAX_CANDIDATES
    assert len(candidates) == len(set(candidates))


def test_nothing_found(tmp_path):
    (tmp_path / "a.py").write_text("x = 1\n")
    candidates, strategy, _ = mine_relevant_files("completely unrelated words", tmp_path)
    assert candidates == []
    assert strategy == "none"
