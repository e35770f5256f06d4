"""Tests for settings, credentials and broker source loading."""
from __future__ import annotations

from pathlib import Path

import pytest

from fxcompare.config_loader import (
    ConfigurationError,
    PipelineSettings,
    load_broker_sources,
    load_settings,
    load_supabase_credentials,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class TestCredentials:
    def test_missing_variables_fail_fast(self):
        with pytest.raises(ConfigurationError) as excinfo:
            load_supabase_credentials({})
        assert "SUPABASE_URL" in str(excinfo.value)
        assert "SUPABASE_SERVICE_ROLE_KEY" in str(excinfo.value)

    def test_missing_key_only(self):
        with pytest.raises(ConfigurationError) as excinfo:
            load_supabase_credentials({"SUPABASE_URL": "https://x.supabase.co"})
        assert "SUPABASE_URL" not in str(excinfo.value)

    def test_service_role_key_preferred(self):
        credentials = load_supabase_credentials(
            {
                "SUPABASE_URL": "https://x.supabase.co",
                "SUPABASE_SERVICE_ROLE_KEY": "service",
                "SUPABASE_KEY": "anon",
            }
        )
        assert credentials.url == "https://x.supabase.co"
        assert credentials.api_key == "service"

    def test_fallback_key(self):
        credentials = load_supabase_credentials({"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_KEY": "anon"})
        assert credentials.api_key == "anon"

    def test_url_must_be_http(self):
        with pytest.raises(ConfigurationError):
            load_supabase_credentials({"SUPABASE_URL": "x.supabase.co", "SUPABASE_KEY": "anon"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
        monkeypatch.setenv("SUPABASE_KEY", "from-env")
        assert load_supabase_credentials().api_key == "from-env"


class TestSettings:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FXCOMPARE_CONFIG", raising=False)
        assert load_settings() == PipelineSettings()

    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "paths:\n  html_dir: pages\n"
            "extraction:\n  skip_patterns: [listing]\n  max_files: 5\n"
            "loader:\n  upsert_key: name\n  batch_size: 3\n  batch_delay_seconds: 0\n"
            "logging:\n  level: debug\n",
            encoding="utf-8",
        )
        settings = load_settings(path)

        assert settings.html_dir == Path("pages")
        assert settings.output_dir == PipelineSettings().output_dir
        assert settings.skip_patterns == ("listing",)
        assert settings.max_files == 5
        assert settings.upsert_key == "name"
        assert settings.batch_size == 3
        assert settings.batch_delay_seconds == 0.0
        assert settings.log_level == "DEBUG"

    def test_environment_override(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("loader:\n  batch_size: 2\n", encoding="utf-8")
        monkeypatch.setenv("FXCOMPARE_CONFIG", str(path))
        assert load_settings().batch_size == 2

    @pytest.mark.parametrize(
        "body",
        [
            "loader:\n  upsert_key: id\n",
            "loader:\n  batch_size: 0\n",
            "loader:\n  batch_size: many\n",
            "loader:\n  batch_delay_seconds: -1\n",
            "extraction:\n  max_files: 0\n",
            "logging:\n  level: chatty\n",
            "- just\n- a list\n",
            "loader: [unclosed\n",
        ],
    )
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "pipeline.yaml"
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_shipped_settings_file_is_valid(self):
        settings = load_settings(PROJECT_ROOT / "data" / "pipeline.yaml")
        assert settings.upsert_key == "slug"
        assert settings.batch_size == 10


class TestBrokerSources:
    def test_loads_review_pages(self):
        brokers = load_broker_sources([PROJECT_ROOT / "data" / "brokers.yaml"])
        names = [broker.name for broker in brokers]

        assert "Pepperstone" in names
        source = brokers[0].data_sources[0]
        assert source.type == "review_page"
        assert source.allowed_to_scrape is False

    def test_ignores_missing_and_non_yaml_files(self, tmp_path):
        other = tmp_path / "brokers.txt"
        other.write_text("brokers: []", encoding="utf-8")
        assert load_broker_sources([tmp_path / "absent.yaml", other]) == []

    def test_defaults_for_sparse_entries(self, tmp_path):
        path = tmp_path / "brokers.yml"
        path.write_text("brokers:\n  - name: Exness\n    data_sources:\n      - url: https://x\n", encoding="utf-8")
        (broker,) = load_broker_sources([path])

        assert broker.website == ""
        assert broker.data_sources[0].type == "review_page"
        assert broker.data_sources[0].allowed_to_scrape is None
