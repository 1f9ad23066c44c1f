from patchpilot.agents.patch_extractors import (
    EXTRACTION_STRATEGIES,
    extract_bold_labeled,
    extract_file_labeled,
    extract_unlabeled_block,
)


def test_file_label_multiple_files():
    output = (
        "FILE: src/a.py\n```python\nprint('a')\n```\n\n"
        "Some notes.\n\n"
        "FILE: src/b.py\n```\nprint('b')\n```\n"
    )
    files = extract_file_labeled(output, ["src/a.py"])
    assert [(f.path, f.content) for f in files] == [
        ("src/a.py", "print('a')\n"),
        ("src/b.py", "print('b')\n"),
    ]


def test_file_label_later_block_wins():
    output = "FILE: a.py\n```\nfirst\n```\nFILE: a.py\n```\nsecond\n```"
    files = extract_file_labeled(output)
    assert len(files) == 1
    assert files[0].content == "second\n"


def test_bold_label():
    output = "**File: lib/util.js**\n\n```javascript\nmodule.exports = 1;\n```"
    files = extract_bold_labeled(output)
    assert [(f.path, f.content) for f in files] == [("lib/util.js", "module.exports = 1;\n")]
    assert extract_file_labeled(output) == []


def test_unlabeled_block_targets_first_candidate():
    output = "Try this:\n```python\n  fixed = True  \n```\n```python\nignored\n```"
    files = extract_unlabeled_block(output, ["app/main.py", "app/other.py"])
    assert [(f.path, f.content) for f in files] == [("app/main.py", "fixed = True\n")]


def test_unlabeled_block_needs_candidate():
    assert extract_unlabeled_block("```\ncode\n```", []) == []


def test_unlabeled_block_not_used_when_labels_present():
    output = "FILE: x.py\n```\ncode\n```"
    assert extract_unlabeled_block(output, ["y.py"]) == []


def test_no_fenced_block_yields_nothing_everywhere():
    output = "Change line 3 to use addition."
    for _, strategy in EXTRACTION_STRATEGIES:
        assert strategy(output, ["a.py"]) == []


def test_strategy_order():
    assert [name for name, _ in EXTRACTION_STRATEGIES] == ["file_label", "bold_label", "unlabeled_block"]
