from __future__ import annotations

from collections.abc import Iterator

import pytest

from ecosystem_core.config.settings import get_settings


class SequentialIds:
    """Deterministic span id generator: span-1, span-2, ..."""

    def __init__(self, prefix: str = "span") -> None:
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in (
        "ECOSYSTEM_CORE_CORE_NAME",
        "ECOSYSTEM_CORE_PARENT_SPAN_ID",
        "ECOSYSTEM_CORE_MULTI_REPO_MODE",
        "ECOSYSTEM_CORE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
