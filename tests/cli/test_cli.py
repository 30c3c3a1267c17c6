"""Tests for the strepsil CLI."""
import io
import json
from unittest.mock import patch
from urllib.error import HTTPError, URLError

from strepsil_cli.api import build_endpoint, get_url, load_config
from strepsil_cli.cli import app


def requested_url(mock_urlopen):
    return mock_urlopen.call_args[0][0].full_url


class TestConfig:
    """Test the config commands."""

    def test_init_creates_file(self, cli_runner, temp_config):
        result = cli_runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert temp_config.exists()
        assert load_config() == {"url": "http://127.0.0.1:3001"}
        assert oct(temp_config.stat().st_mode & 0o777) == "0o600"

    def test_set_and_get(self, cli_runner, temp_config):
        cli_runner.invoke(app, ["config", "set", "url", "http://metering.local:3001"])

        result = cli_runner.invoke(app, ["config", "get", "url", "--raw"])

        assert result.exit_code == 0
        assert result.output.strip() == "http://metering.local:3001"
        assert get_url() == "http://metering.local:3001"

    def test_get_missing_key(self, cli_runner, temp_config):
        result = cli_runner.invoke(app, ["config", "get", "nope"])
        assert result.exit_code == 1

    def test_show_empty(self, cli_runner, temp_config):
        result = cli_runner.invoke(app, ["config", "show"])
        assert "strepsil config init" in result.output

    def test_env_overrides_config(self, env_url):
        assert get_url() == env_url


class TestBuildEndpoint:
    """Test query string building."""

    def test_skips_empty_values(self):
        assert build_endpoint("/api/ai-calls", {"page": 2, "provider": None, "status": ""}) == "/api/ai-calls?page=2"

    def test_no_params(self):
        assert build_endpoint("/api/reports/trends") == "/api/reports/trends"


class TestHealth:
    """Test the health and version commands."""

    def test_healthy(self, cli_runner, env_url, mock_health_response):
        with patch("strepsil_cli.cli.urlopen", return_value=mock_health_response) as mock_urlopen:
            result = cli_runner.invoke(app, ["health"])

        assert result.exit_code == 0
        assert "strepsil-api v1.0.0: healthy" in result.output
        assert "Database: connected" in result.output
        assert requested_url(mock_urlopen) == "http://strepsil.test/health"

    def test_unreachable(self, cli_runner, env_url):
        with patch("strepsil_cli.cli.urlopen", side_effect=URLError("refused")):
            result = cli_runner.invoke(app, ["health"])

        assert result.exit_code == 1

    def test_version(self, cli_runner, env_url, mock_health_response):
        with patch("strepsil_cli.cli.urlopen", return_value=mock_health_response):
            result = cli_runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "strepsil-cli 1.0.0" in result.output
        assert "server 1.0.0" in result.output

    def test_version_server_down(self, cli_runner, env_url):
        with patch("strepsil_cli.cli.urlopen", side_effect=URLError("refused")):
            result = cli_runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "server unreachable" in result.output


class TestUsageCommands:
    """Test commands that read usage data."""

    def test_summary(self, cli_runner, env_url, make_response):
        payload = {
            "summary": {
                "total_calls": 3,
                "total_cost": 1.5,
                "total_tokens_in": 300,
                "total_tokens_out": 150,
                "average_latency_ms": 200,
            },
            "breakdowns": {"providers": {"OpenAI": {"calls": 3, "cost": 1.5, "tokens": 450}}, "models": {}},
        }
        with patch("strepsil_cli.api.urlopen", return_value=make_response(payload)) as mock_urlopen:
            result = cli_runner.invoke(app, ["summary", "--from", "2024-01-01"])

        assert result.exit_code == 0
        assert "Calls: 3" in result.output
        assert "Cost: $1.50" in result.output
        assert requested_url(mock_urlopen) == (
            "http://strepsil.test/api/ai-calls/analytics/summary?start_date=2024-01-01"
        )

    def test_summary_json(self, cli_runner, env_url, make_response):
        payload = {"summary": {"total_calls": 0}, "breakdowns": {}}
        with patch("strepsil_cli.api.urlopen", return_value=make_response(payload)):
            result = cli_runner.invoke(app, ["summary", "--json"])

        assert json.loads(result.output) == payload

    def test_calls_filters(self, cli_runner, env_url, make_response):
        payload = {"aiCalls": [], "pagination": {"page": 1, "limit": 20, "total": 0, "pages": 0}}
        with patch("strepsil_cli.api.urlopen", return_value=make_response(payload)) as mock_urlopen:
            result = cli_runner.invoke(app, ["calls", "--provider", "OpenAI", "--status", "failure"])

        assert result.exit_code == 0
        assert "No calls found" in result.output
        url = requested_url(mock_urlopen)
        assert "provider=OpenAI" in url
        assert "status=failure" in url

    def test_breakdown_api_error(self, cli_runner, env_url):
        error = HTTPError(
            "http://strepsil.test/api/reports/cost-breakdown", 400, "Bad Request", {},
            io.BytesIO(b'{"error": "Invalid group_by parameter"}'),
        )
        with patch("strepsil_cli.api.urlopen", side_effect=error):
            result = cli_runner.invoke(app, ["breakdown", "--by", "colour"])

        assert result.exit_code == 1
        assert "Invalid group_by parameter" in result.output

    def test_trends_empty(self, cli_runner, env_url, make_response):
        payload = {"period": "daily", "days": 7, "trends": {}}
        with patch("strepsil_cli.api.urlopen", return_value=make_response(payload)):
            result = cli_runner.invoke(app, ["trends"])

        assert result.exit_code == 0
        assert "No usage in the last 7 days" in result.output

    def test_connection_error(self, cli_runner, env_url):
        with patch("strepsil_cli.api.urlopen", side_effect=URLError("refused")):
            result = cli_runner.invoke(app, ["trends"])

        assert result.exit_code == 1


class TestReport:
    """Test report downloads."""

    def test_saves_with_server_filename(self, cli_runner, env_url, make_response, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        response = make_response(
            content=b"id,date\n",
            headers={"Content-Disposition": 'attachment; filename="billing-report-2024-03-01.csv"'},
        )
        with patch("strepsil_cli.api.urlopen", return_value=response) as mock_urlopen:
            result = cli_runner.invoke(app, ["report", "--format", "csv"])

        assert result.exit_code == 0
        assert (tmp_path / "billing-report-2024-03-01.csv").read_bytes() == b"id,date\n"
        assert "format=csv" in requested_url(mock_urlopen)

    def test_output_option(self, cli_runner, env_url, make_response, tmp_path):
        target = tmp_path / "usage.pdf"
        with patch("strepsil_cli.api.urlopen", return_value=make_response(content=b"%PDF-1.4")):
            result = cli_runner.invoke(app, ["report", "--format", "pdf", "-o", str(target)])

        assert result.exit_code == 0
        assert target.read_bytes() == b"%PDF-1.4"


class TestSetup:
    """Test .env generation."""

    def test_writes_env(self, cli_runner, tmp_path):
        env_file = tmp_path / ".env"

        result = cli_runner.invoke(app, ["setup", "--env-file", str(env_file), "--port", "4000"])

        assert result.exit_code == 0
        content = env_file.read_text()
        assert "PORT=4000" in content
        key_line = next(line for line in content.splitlines() if line.startswith("ENCRYPTION_KEY="))
        assert len(key_line.split("=", 1)[1]) >= 32

    def test_refuses_overwrite(self, cli_runner, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PORT=1\n")

        result = cli_runner.invoke(app, ["setup", "--env-file", str(env_file)])

        assert result.exit_code == 1
        assert env_file.read_text() == "PORT=1\n"

    def test_force(self, cli_runner, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PORT=1\n")

        result = cli_runner.invoke(app, ["setup", "--env-file", str(env_file), "--force"])

        assert result.exit_code == 0
        assert "ENCRYPTION_KEY=" in env_file.read_text()
