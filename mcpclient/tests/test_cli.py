"""
Test suite for the mcpcall command-line entry point.
"""

import json
import logging

import pytest

import mcpcall
from mcpclient.config import Config
from mcpclient.messages import ToolCallResult
from mcpclient.sse.transport import SSETransport


@pytest.fixture
def use_peer(monkeypatch, peer):
    """Route the CLI's transport through the fake peer."""
    created = []

    def factory(base_url, headers=None, config=None):
        transport = SSETransport(
            base_url,
            headers=headers,
            config=config,
            http_client=peer.http_client(),
        )
        created.append(transport)
        return transport

    monkeypatch.setattr(mcpcall, "SSETransport", factory)
    return created


def configured(*argv):
    args = mcpcall.parse_arguments(["--url", "http://peer.test/sse", *argv])
    config = Config(validate=False)
    mcpcall.apply_overrides(config, args)
    config.validate()
    return config, args


class TestArguments:
    """Tests for argument parsing and overrides."""

    def test_list_and_call(self):
        """Test parsing a combined invocation."""
        args = mcpcall.parse_arguments([
            "--list-tools",
            "--call", "query",
            "--args", '{"query": "SELECT 1"}',
            "--header", "X-Trace: 42",
            "--timeout", "5",
        ])

        assert args.list_tools is True
        assert args.call == "query"
        assert args.arguments == {"query": "SELECT 1"}
        assert args.header == [("X-Trace", "42")]
        assert args.timeout == 5.0

    def test_nothing_to_do(self):
        """Test that an operation is required."""
        with pytest.raises(SystemExit):
            mcpcall.parse_arguments([])

    @pytest.mark.parametrize("value", ["{broken", "[1, 2]"])
    def test_bad_tool_arguments(self, value):
        """Test that --args must be a JSON object."""
        with pytest.raises(SystemExit):
            mcpcall.parse_arguments(["--call", "query", "--args", value])

    def test_bad_header(self):
        """Test that headers need a name and a colon."""
        with pytest.raises(SystemExit):
            mcpcall.parse_arguments(["--list-tools", "--header", "no-colon"])

    def test_apply_overrides(self):
        """Test that flags override the loaded configuration."""
        config, args = configured(
            "--list-tools",
            "--token", "abcd",
            "--header", "X-Trace: 42",
            "--timeout", "2",
            "--log-level", "debug",
        )

        assert config.get_base_url() == "http://peer.test/sse"
        assert config.build_headers() == {"X-Trace": "42", "Authorization": "Bearer abcd"}
        assert config.get_request_timeout() == 2.0
        assert config.get_log_level() == "debug"


class TestRun:
    """Tests for the connect, list and call flow."""

    @pytest.mark.asyncio
    async def test_list_tools(self, peer, use_peer, capsys):
        """Test printing the tool catalogue."""
        config, args = configured("--list-tools", "--token", "abcd")

        exit_code = await mcpcall.run(config, args)

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "Name:        query" in output
        assert "Description: run a query" in output
        assert peer.stream_headers["authorization"] == "Bearer abcd"

    @pytest.mark.asyncio
    async def test_call_tool(self, peer, use_peer, capsys):
        """Test printing call results."""
        config, args = configured("--call", "query", "--args", '{"query": "SELECT 1"}')

        exit_code = await mcpcall.run(config, args)

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "ok"
        assert peer.posted("tools/call")[0]["params"]["arguments"] == {"query": "SELECT 1"}

    @pytest.mark.asyncio
    async def test_remote_error_exit_code(self, peer, use_peer, caplog):
        """Test that a failed call exits with 1."""
        peer.errors["tools/call"] = {"code": -32601, "message": "method not found"}
        config, args = configured("--call", "missing")

        with caplog.at_level(logging.ERROR):
            exit_code = await mcpcall.run(config, args)

        assert exit_code == 1
        assert "method not found" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_closed_after_run(self, peer, use_peer):
        """Test that the connection is released on exit."""
        config, args = configured("--list-tools")

        await mcpcall.run(config, args)

        assert use_peer[0].state.value == "closed"

    @pytest.mark.asyncio
    async def test_main_rejects_bad_config(self, capsys):
        """Test that configuration errors exit with 1."""
        exit_code = await mcpcall.main(["--url", "ftp://nowhere", "--list-tools"])

        assert exit_code == 1
        assert "Configuration error" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_main_url_flag_replaces_bad_env_url(self, monkeypatch, peer, use_peer, capsys):
        """Test that overrides are applied before the configuration is validated."""
        monkeypatch.setenv("MCPCLIENT_BASE_URL", "not-a-url")
        monkeypatch.setattr(mcpcall, "setup_logging", lambda config, verbose=False: None)

        exit_code = await mcpcall.main(["--url", "http://peer.test/sse", "--list-tools"])

        assert exit_code == 0
        assert "Name:        query" in capsys.readouterr().out
        assert use_peer[0].base_url == "http://peer.test/sse"


class TestOutput:
    """Tests for result formatting."""

    def test_print_empty_catalogue(self, capsys):
        mcpcall.print_tools([])

        assert capsys.readouterr().out == "No tools offered by the server.\n"

    def test_print_binary_result(self, capsys):
        """Test that binary content is summarized."""
        mcpcall.print_results([
            ToolCallResult(type="image", data="aGVsbG8=", mime_type="image/png"),
        ])

        assert capsys.readouterr().out == "[image image/png, 8 bytes]\n"

    def test_json_formatter(self):
        """Test structured log records."""
        record = logging.LogRecord("mcpclient", logging.INFO, __file__, 1, "hello %s", ("world",), None)

        log_data = json.loads(mcpcall.JsonFormatter().format(record))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "mcpclient"
        assert log_data["message"] == "hello world"
