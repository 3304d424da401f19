"""Root test configuration: shared content-tree helpers"""

import logging
from pathlib import Path

import pytest


def make_post(
    title: str = "A Post",
    date: str = "2024-01-15",
    body: str = "# Heading\n\nBody text.\n",
    **extra,
    ) -> str:
    """Return source text for a post with YAML front matter."""
    lines = [f"title: {title}", f"date: {date}"]
    lines += [f"{k}: {v}" for k, v in extra.items()]
    return "---\n" + "\n".join(lines) + "\n---\n" + body


@pytest.fixture(name="post")
def post_fixture():
    """The make_post helper, for tests that need raw source text."""
    return make_post


@pytest.fixture(name="content_dir")
def content_dir_fixture(tmp_path) -> Path:
    d = tmp_path / "content"
    d.mkdir()
    return d


@pytest.fixture(name="asset_dir")
def asset_dir_fixture(tmp_path) -> Path:
    d = tmp_path / "assets"
    d.mkdir()
    return d


@pytest.fixture(name="write_post")
def write_post_fixture(content_dir):
    """Factory writing a post under content_dir; returns its path."""
    def _write(name: str, text: str = None, **kwargs) -> Path:
        path = content_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text if text is not None else make_post(**kwargs), encoding="utf-8")
        return path
    return _write


@pytest.fixture(autouse=True)
def reset_root_logging():
    """Keep logging.basicConfig calls from the CLI from leaking handlers between tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
