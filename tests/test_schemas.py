import pytest

from patchpilot.models.schemas import SessionSnapshot


def _snapshot(pr_url):
    return SessionSnapshot(
        sessionId="s", repoUrl="https://github.com/acme/shop", bugDescription="bug",
        status="completed", prUrl=pr_url,
    )


@pytest.mark.parametrize("pr_url,real,provisional", [
    ("https://github.com/acme/shop/pull/12", True, False),
    ("https://github.com/acme/shop/pull/12/", True, False),
    ("https://github.com/acme/shop/compare/main...fix/pull/1?expand=1", False, True),
    ("https://github.com/acme/shop/compare/main...patchpilot-fix-s?expand=1", False, True),
    ("https://github.com/acme/shop/pulls", False, False),
    (None, False, False),
])
def test_pr_reference_kind(pr_url, real, provisional):
    snapshot = _snapshot(pr_url)
    assert snapshot.has_real_pr is real
    assert snapshot.has_provisional_pr is provisional
