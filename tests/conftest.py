"""Pytest configuration and shared fixtures for PlayerValue-Pro test suite.

This module provides hermetic test infrastructure:
- No browser processes (the Playwright chain is mocked)
- No MongoDB server (in-memory collections apply the exact operators the
  writer and query builder emit)
- Isolated configuration (the lru_cache singleton is cleared per test)
"""

import copy
import re
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pytest_mock import MockerFixture

from config.settings import GlobalConfig


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests.
    Uses tmp_path for all file operations to avoid polluting the filesystem.
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    output_dir = tmp_path / "output"
    log_dir.mkdir()
    output_dir.mkdir()

    exclusion_file = tmp_path / "restrictions.json"
    exclusion_file.write_text("[]")

    test_env = {
        "APP_NAME": "PlayerValue-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "HEADLESS": "true",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "MONGODB_URL": "mongodb://localhost:27017",
        "DATABASE_NAME": "playervalue_test",
        "MAX_CONCURRENT_TASKS": "3",
        "REQUEST_TIMEOUT_MS": "5000",
        "EXCLUSION_LIST_PATH": str(exclusion_file),
        "OUTPUT_DIR": str(output_dir),
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


def create_playwright_mock() -> tuple[MagicMock, MagicMock, MagicMock, MagicMock]:
    """Build the async_playwright().start() -> chromium -> context chain.

    Returns:
        Tuple of (async_playwright_instance, playwright_mock, browser_mock, context_mock)
    """
    context_mock = MagicMock()
    context_mock.new_page = AsyncMock()
    context_mock.close = AsyncMock()

    browser_mock = MagicMock()
    browser_mock.new_context = AsyncMock(return_value=context_mock)
    browser_mock.close = AsyncMock()

    playwright_mock = MagicMock()
    playwright_mock.chromium.launch = AsyncMock(return_value=browser_mock)
    playwright_mock.stop = AsyncMock()

    async_playwright_instance = MagicMock()
    async_playwright_instance.start = AsyncMock(return_value=playwright_mock)

    return async_playwright_instance, playwright_mock, browser_mock, context_mock


@pytest.fixture
def playwright_chain(mocker: MockerFixture) -> tuple[MagicMock, MagicMock, MagicMock, MagicMock]:
    """Patch src.browser.async_playwright with a mocked chain."""
    chain = create_playwright_mock()
    mocker.patch("src.browser.async_playwright", return_value=chain[0])
    return chain


@pytest.fixture
def page_factory() -> Callable[..., MagicMock]:
    """Factory for mocked Playwright pages served by the data center.

    Args (of the returned factory):
        price: Text content of the price element.
        status: HTTP status returned by goto.
        timeout_ids: Player ids whose readiness poll times out.
        goto_error: Exception raised by goto.

    The page remembers the last navigated URL so behaviour can depend on
    which (player, grade) it was opened for.
    """

    def _make_page(
        price: str | None = "1,234,000",
        status: int = 200,
        timeout_ids: set[int] | None = None,
        goto_error: Exception | None = None,
    ) -> MagicMock:
        timeout_ids = timeout_ids or set()
        page = MagicMock()
        page.navigated_url = None

        async def goto(url: str, wait_until: str | None = None) -> MagicMock:
            page.navigated_url = url
            if goto_error is not None:
                raise goto_error
            return MagicMock(status=status)

        async def wait_for_function(expression: str, arg: Any = None, timeout: int | None = None) -> None:
            url = page.navigated_url or ""
            if any(f"spid={entity_id}&" in url for entity_id in timeout_ids):
                raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

        page.route = AsyncMock()
        page.goto = AsyncMock(side_effect=goto)
        page.wait_for_function = AsyncMock(side_effect=wait_for_function)
        page.close = AsyncMock()

        locator = MagicMock()
        locator.first.text_content = AsyncMock(return_value=price)
        page.locator = MagicMock(return_value=locator)
        return page

    return _make_page


@pytest.fixture
def acquired_session(mock_config: GlobalConfig, page_factory: Callable[..., MagicMock]):
    """SessionManager whose context hands out fresh mocked pages.

    Every page created is appended to `session.pages` for inspection.
    Set `session.page_options` to change how new pages behave.
    """
    from src.browser import SessionManager

    session = SessionManager(mock_config)
    session.pages = []
    session.page_options = {}

    async def new_page() -> MagicMock:
        page = page_factory(**session.page_options)
        session.pages.append(page)
        return page

    context = MagicMock()
    context.new_page = AsyncMock(side_effect=new_page)
    context.close = AsyncMock()
    session._context = context
    return session


# ---------------------------------------------------------------------------
# In-memory MongoDB doubles
# ---------------------------------------------------------------------------


def _get_path(document: dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _matches(document: dict[str, Any], condition: dict[str, Any]) -> bool:
    for key, expected in condition.items():
        if key == "$and":
            if not all(_matches(document, sub) for sub in expected):
                return False
            continue

        if key == "prices.grade":
            grades = [entry["grade"] for entry in document.get("prices", [])]
            if isinstance(expected, dict) and "$ne" in expected:
                if expected["$ne"] in grades:
                    return False
            elif expected not in grades:
                return False
            continue

        value = _get_path(document, key)
        if isinstance(expected, dict):
            for op, arg in expected.items():
                if op == "$regex" and not re.search(arg, str(value or "")):
                    return False
                if op == "$gte" and (value is None or value < arg):
                    return False
                if op == "$lte" and (value is None or value > arg):
                    return False
                if op == "$ne" and value == arg:
                    return False
        elif value != expected:
            return False
    return True


class RecordedUpdate:
    """Stands in for pymongo's UpdateOne and keeps its arguments readable."""

    def __init__(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        array_filters: list[dict[str, Any]] | None = None,
    ) -> None:
        self.filter = filter
        self.update = update
        self.upsert = upsert
        self.array_filters = array_filters or []


class InMemoryPriceCollection:
    """Applies the update operators used by the batch writer.

    Supports: equality / `prices.grade` filters, `$setOnInsert` with
    upsert, `$push` onto `prices`, and `$set` of `prices.$[elem].price`
    scoped by an `elem.grade` array filter. Requests must be
    RecordedUpdate instances; the `price_collection` fixture routes the
    writer's operations through that class.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.bulk_calls: list[list[RecordedUpdate]] = []
        self.fail_with: Exception | None = None

    def seed(self, document: dict[str, Any]) -> None:
        self.documents[document["id"]] = copy.deepcopy(document)

    def get(self, doc_id: str) -> dict[str, Any] | None:
        return self.documents.get(doc_id)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self.documents)

    async def bulk_write(
        self, requests: list[RecordedUpdate], ordered: bool = True
    ) -> SimpleNamespace:
        self.bulk_calls.append(list(requests))
        if self.fail_with is not None:
            raise self.fail_with

        matched = modified = upserted = 0
        for op in requests:
            m, mod, up = self._apply(op.filter, op.update, op.upsert, op.array_filters)
            matched += m
            modified += mod
            upserted += up
        return SimpleNamespace(
            matched_count=matched, modified_count=modified, upserted_count=upserted
        )

    def _apply(
        self,
        filter_: dict[str, Any],
        update: dict[str, Any],
        upsert: bool,
        array_filters: list[dict[str, Any]],
    ) -> tuple[int, int, int]:
        document = self.documents.get(filter_["id"])
        if document is None or not _matches(document, filter_):
            if upsert and document is None:
                new_doc = copy.deepcopy(update.get("$setOnInsert", {}))
                new_doc.setdefault("id", filter_["id"])
                self.documents[new_doc["id"]] = new_doc
                return 0, 0, 1
            return 0, 0, 0

        before = copy.deepcopy(document)
        if "$push" in update:
            for field, value in update["$push"].items():
                document.setdefault(field, []).append(copy.deepcopy(value))
        if "$set" in update:
            for path, value in update["$set"].items():
                array_field, _, leaf = path.partition(".$[elem].")
                grade = array_filters[0]["elem.grade"]
                for entry in document.get(array_field, []):
                    if entry["grade"] == grade:
                        entry[leaf] = value
        return 1, int(before != document), 0


class _AsyncCursor:
    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        return self._rows if length is None else self._rows[:length]


class InMemoryReportCollection:
    """Evaluates the $match / $sort / $limit stages of a report query.

    Reference-resolving stages are recorded but not evaluated.
    """

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self.rows = rows
        self.pipelines: list[list[dict[str, Any]]] = []
        self.fail_with: Exception | None = None

    async def aggregate(self, pipeline: list[dict[str, Any]]) -> _AsyncCursor:
        self.pipelines.append(copy.deepcopy(pipeline))
        if self.fail_with is not None:
            raise self.fail_with

        rows = [copy.deepcopy(row) for row in self.rows]
        for stage in pipeline:
            if "$match" in stage:
                rows = [row for row in rows if _matches(row, stage["$match"])]
            elif "$sort" in stage:
                key, direction = next(iter(stage["$sort"].items()))
                rows.sort(key=lambda row: _get_path(row, key) or 0, reverse=direction < 0)
            elif "$limit" in stage:
                rows = rows[: stage["$limit"]]
        return _AsyncCursor(rows)


def make_report_row(entity_id: int, name: str, best: int, position_best: int | None = None) -> dict[str, Any]:
    """Player-report row shaped like the stored documents."""
    return {
        "id": entity_id,
        "name": name,
        "능력치": {
            "포지션능력치": {
                "주포지션": ["ST"],
                "최고능력치": best,
                "포지션최고능력치": position_best if position_best is not None else best,
            }
        },
        "선수정보": {"prices": None, "시즌이미지": {"시즌이미지": None}},
    }


@pytest.fixture
def report_rows() -> list[dict[str, Any]]:
    """Reports across seasons 256 and 257 plus one outside both."""
    return [
        make_report_row(256000001, "Kane", 98),
        make_report_row(256000002, "Son", 95),
        make_report_row(256000003, "Kim", 8),
        make_report_row(257000001, "Park", 99),
        make_report_row(257000002, "Lee", 90),
        make_report_row(101000001, "Ahn", 80),
    ]


@pytest.fixture
def price_collection(monkeypatch: pytest.MonkeyPatch) -> InMemoryPriceCollection:
    """Empty price collection; the writer builds RecordedUpdate requests for it."""
    monkeypatch.setattr("src.writer.UpdateOne", RecordedUpdate)
    return InMemoryPriceCollection()


@pytest.fixture
def report_collection(report_rows: list[dict[str, Any]]) -> InMemoryReportCollection:
    return InMemoryReportCollection(report_rows)


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
