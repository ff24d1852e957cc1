"""Tests for configuration management and validation.

Validates GlobalConfig behavior including:
- Environment variable loading precedence
- Pydantic validation rules
- Path normalization
- Singleton cache behavior

Testing Philosophy:
    Configuration errors should fail-fast at startup, not during runtime.
    These tests ensure invalid configurations are caught immediately.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import GlobalConfig


class TestGlobalConfigValidation:
    """Test suite for GlobalConfig validation rules."""

    def test_default_values_are_sane(self, mock_config: GlobalConfig) -> None:
        """Verify defaults give a runnable campaign without extra settings."""
        assert mock_config.headless is True
        assert mock_config.max_concurrent_tasks >= 1
        assert mock_config.readiness_timeout_ms == 80000
        assert mock_config.value_selector == ".txt strong"
        assert mock_config.readiness_attribute == "title"
        assert mock_config.failure_policy == "drop"
        assert mock_config.grouping == "grade"
        assert mock_config.campaign_grades == [1, 2, 3, 4, 5, 6, 7, 8]
        assert 0.0 <= mock_config.error_ratio_alert_threshold <= 1.0

    def test_default_filter_blocks_heavy_resources(self, mock_config: GlobalConfig) -> None:
        """Images, fonts and stylesheets are blocked; documents and scripts are not."""
        blocked = set(mock_config.blocked_resource_types)
        assert {"image", "font", "stylesheet", "media"} <= blocked
        assert "document" not in blocked
        assert "script" not in blocked

    def test_concurrency_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify max_concurrent_tasks enforces sensible bounds (1-50)."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("MAX_CONCURRENT_TASKS", "0")
        with pytest.raises(ValidationError) as exc_info:
            get_config()

        assert "max_concurrent_tasks" in str(exc_info.value)

        get_config.cache_clear()

        monkeypatch.setenv("MAX_CONCURRENT_TASKS", "100")
        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_url_template_requires_placeholders(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A template without {grade} would fetch the same page for every grade."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("TARGET_URL_TEMPLATE", "https://example.com/player?spid={entity_id}")
        with pytest.raises(ValidationError) as exc_info:
            get_config()

        assert "{grade}" in str(exc_info.value)

        get_config.cache_clear()

    @pytest.mark.parametrize("grades", ["[0, 1]", "[1, 9]"])
    def test_campaign_grades_must_be_in_range(
        self, grades: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Grades outside 1-8 are rejected at load time."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("CAMPAIGN_GRADES", grades)
        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_list_settings_parse_from_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """List-valued settings are read as JSON arrays."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("CAMPAIGN_SEASONS", "[256, 257]")
        monkeypatch.setenv("BLOCKED_DOMAINS", '["ads.example.com"]')
        config = get_config()

        assert config.campaign_seasons == [256, 257]
        assert config.blocked_domains == ["ads.example.com"]

        get_config.cache_clear()

    @pytest.mark.parametrize("policy", ["drop", "record"])
    def test_failure_policy_values(self, policy: str, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("FAILURE_POLICY", policy)
        assert get_config().failure_policy == policy
        get_config.cache_clear()

    def test_unknown_failure_policy_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("FAILURE_POLICY", "retry")
        with pytest.raises(ValidationError):
            get_config()
        get_config.cache_clear()


class TestExecutablePath:
    """The production environment pins the system Chromium binary."""

    def test_bundled_browser_outside_production(self, mock_config: GlobalConfig) -> None:
        assert mock_config.environment == "test"
        assert mock_config.executable_path is None

    def test_system_browser_in_production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("CHROME_EXECUTABLE_PATH", "/opt/chrome/chrome")
        config = get_config()

        assert config.executable_path == "/opt/chrome/chrome"

        get_config.cache_clear()


class TestPathNormalization:
    """Test suite for Path field handling."""

    def test_string_paths_converted_to_path_objects(
        self, mock_config: GlobalConfig
    ) -> None:
        """Verify string paths from env vars are converted to Path objects."""
        assert isinstance(mock_config.log_dir, Path)
        assert isinstance(mock_config.output_dir, Path)
        assert isinstance(mock_config.exclusion_list_path, Path)


class TestConfigSingleton:
    """Test suite for configuration caching."""

    def test_get_config_returns_cached_instance(self, mock_config: GlobalConfig) -> None:
        """Verify get_config() returns the same instance on repeated calls."""
        from config.settings import get_config

        assert get_config() is get_config()
        assert get_config() is mock_config
