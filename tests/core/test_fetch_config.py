import pytest
from datetime import date, datetime, timedelta, UTC
from pydantic import ValidationError

from dogfetch.core.config import FetchConfig, default_from, parse_time
from dogfetch.core.types import OutputFormat, resolve_format


@pytest.fixture
def base_values():
    return {
        "query": "service:test",
        "api_key": "test-key",
        "app_key": "test-app-key"
    }


class TestParseTime:
    """Test suite for time parsing."""

    def test_empty(self):
        assert parse_time("") is None
        assert parse_time(None) is None

    def test_rfc3339(self):
        assert parse_time("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_rfc3339_with_offset(self):
        parsed = parse_time("2024-01-01T02:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)

    def test_unix_seconds(self):
        assert parse_time("1704067200") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_naive_is_utc(self):
        assert parse_time("2024-01-01T00:00:00").tzinfo == UTC

    def test_invalid(self):
        with pytest.raises(ValueError, match="expected RFC3339 or Unix timestamp"):
            parse_time("yesterday")

    def test_native_values(self):
        assert parse_time(1704067200) == datetime(2024, 1, 1, tzinfo=UTC)
        assert parse_time(1704067200.5) == datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=UTC)
        assert parse_time(date(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize("value", [True, [1, 2], {"at": 1}])
    def test_unsupported_types(self, value):
        with pytest.raises(ValueError, match="unable to parse time"):
            parse_time(value)

    def test_default_from_is_a_day_ago(self):
        delta = datetime.now(UTC) - default_from()
        assert timedelta(hours=23, minutes=59) < delta <= timedelta(hours=24, seconds=5)


class TestFetchConfig:
    """Test suite for configuration validation."""

    def test_defaults(self, base_values):
        config = FetchConfig(**base_values)
        assert config.index == "main"
        assert config.page_size == 1000
        assert config.cursor == ""
        assert config.output_format == OutputFormat.JSON
        assert config.output_path == ""
        assert config.time_to is None
        assert config.describe_time_to() == "now"

    def test_requires_query(self, base_values):
        base_values["query"] = ""
        with pytest.raises(ValidationError, match="query is required"):
            FetchConfig(**base_values)

    @pytest.mark.parametrize("missing,name", [("api_key", "DD_API_KEY"), ("app_key", "DD_APP_KEY")])
    def test_requires_credentials(self, base_values, missing, name):
        base_values[missing] = ""
        with pytest.raises(ValidationError, match=name):
            FetchConfig(**base_values)

    @pytest.mark.parametrize("page_size", [0, -1, 5001])
    def test_page_size_out_of_range(self, base_values, page_size):
        with pytest.raises(ValidationError, match="pageSize must be between 1 and 5000"):
            FetchConfig(**base_values, page_size=page_size)

    @pytest.mark.parametrize("page_size", [1, 5000])
    def test_page_size_bounds(self, base_values, page_size):
        assert FetchConfig(**base_values, page_size=page_size).page_size == page_size

    def test_unknown_format(self, base_values):
        with pytest.raises(ValidationError, match="unsupported format: xml"):
            FetchConfig(**base_values, output_format="xml")

    @pytest.mark.parametrize("name,expected", [
        ("ndjson", OutputFormat.NDJSON),
        ("streaming", OutputFormat.NDJSON),
        ("JSON", OutputFormat.JSON),
        ("buffered", OutputFormat.JSON)
    ])
    def test_format_aliases(self, base_values, name, expected):
        assert FetchConfig(**base_values, output_format=name).output_format == expected
        assert resolve_format(name) == expected

    def test_append_requires_streaming(self, base_values):
        with pytest.raises(ValidationError, match="--append only works with --format ndjson"):
            FetchConfig(**base_values, output_format="json", append=True)
        assert FetchConfig(**base_values, output_format="ndjson", append=True).append is True

    def test_cursor_requires_streaming(self, base_values):
        with pytest.raises(ValidationError, match="--cursor only works with --format ndjson"):
            FetchConfig(**base_values, output_format="json", cursor="abc")
        assert FetchConfig(**base_values, output_format="ndjson", cursor="abc").cursor == "abc"

    def test_from_after_to(self, base_values):
        with pytest.raises(ValidationError, match="must be before"):
            FetchConfig(
                **base_values,
                time_from="2024-01-02T00:00:00Z",
                time_to="2024-01-01T00:00:00Z"
            )

    def test_time_strings_are_parsed(self, base_values):
        config = FetchConfig(**base_values, time_from="1704067200", time_to="2024-01-02T00:00:00Z")
        assert config.time_from == datetime(2024, 1, 1, tzinfo=UTC)
        assert config.describe_time_to() == "2024-01-02T00:00:00+00:00"


class TestConfigSources:
    """Test suite for environment and YAML loading."""

    def test_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        monkeypatch.setenv("DD_SITE", "datadoghq.eu")

        config = FetchConfig.from_env(query="service:web", index=None)
        assert config.api_key == "env-api"
        assert config.app_key == "env-app"
        assert config.site == "datadoghq.eu"
        assert config.index == "main"

    def test_from_env_reads_dotenv(self, clean_env):
        (clean_env / ".env").write_text("DD_API_KEY=file-api\nDD_APP_KEY=file-app\n")
        config = FetchConfig.from_env(query="service:web")
        assert config.api_key == "file-api"
        assert config.app_key == "file-app"

    def test_from_env_missing_keys(self, clean_env):
        with pytest.raises(ValidationError, match="DD_API_KEY"):
            FetchConfig.from_env(query="service:web")

    def test_from_yaml(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        config_file = clean_env / "fetch.yaml"
        config_file.write_text(
            "query: 'service:web status:error'\n"
            "index: archive\n"
            "page_size: 500\n"
            "output_format: ndjson\n"
            "output_path: logs.ndjson\n"
        )

        config = FetchConfig.from_yaml(config_file, page_size=250, cursor=None)
        assert config.query == "service:web status:error"
        assert config.index == "archive"
        assert config.page_size == 250
        assert config.output_format == OutputFormat.NDJSON
        assert config.output_path == "logs.ndjson"
        assert config.api_key == "env-api"

    def test_from_yaml_rejects_non_mapping(self, clean_env, monkeypatch):
        config_file = clean_env / "fetch.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            FetchConfig.from_yaml(config_file)

    def test_from_yaml_missing_file(self, clean_env):
        with pytest.raises(FileNotFoundError):
            FetchConfig.from_yaml(clean_env / "missing.yaml")

    def test_from_yaml_unix_seconds(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        config_file = clean_env / "fetch.yaml"
        config_file.write_text("query: 'service:web'\ntime_from: 1704067200\ntime_to: 1704153600\n")

        config = FetchConfig.from_yaml(config_file)
        assert config.time_from == datetime(2024, 1, 1, tzinfo=UTC)
        assert config.time_to == datetime(2024, 1, 2, tzinfo=UTC)

    def test_from_yaml_bare_date(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        config_file = clean_env / "fetch.yaml"
        config_file.write_text("query: 'service:web'\ntime_from: 2024-01-01\n")

        config = FetchConfig.from_yaml(config_file)
        assert config.time_from == datetime(2024, 1, 1, tzinfo=UTC)

    def test_from_yaml_unreadable_time(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        config_file = clean_env / "fetch.yaml"
        config_file.write_text("query: 'service:web'\ntime_from: [1, 2]\n")

        with pytest.raises(ValidationError, match="unable to parse time"):
            FetchConfig.from_yaml(config_file)

    def test_from_yaml_defaults(self, clean_env, monkeypatch):
        monkeypatch.setenv("DD_API_KEY", "env-api")
        monkeypatch.setenv("DD_APP_KEY", "env-app")
        config_file = clean_env / "fetch.yaml"
        config_file.write_text("query: 'service:web'\n")

        config = FetchConfig.from_yaml(config_file, defaults={"output_path": "results.json"})
        assert config.output_path == "results.json"

        config_file.write_text("query: 'service:web'\noutput_path: '-'\n")
        config = FetchConfig.from_yaml(config_file, defaults={"output_path": "results.json"})
        assert config.output_path == ""
