"""test suite for TokenAcquirer."""
import pytest
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spacetime_token.profiles.auth import LocalLogin, RemoteIssuance, TokenAcquirer
from spacetime_token.profiles.resolver import EnvironmentResolver
from spacetime_token.profiles.session import SessionConfig
from spacetime_token.domain.errors import (
    ExternalLoginFailedError,
    RemoteIssuanceFailedError,
)

LOCAL_URL = "http://127.0.0.1:3000"


def completed(returncode: int = 0):
    return subprocess.CompletedProcess(args=[], returncode=returncode)


class TestStrategySelection:
    @pytest.fixture
    def acquirer(self, tmp_path):
        session = SessionConfig(tmp_path / "cli.toml", "spacetimedb_token", LOCAL_URL)
        return TokenAcquirer(EnvironmentResolver(LOCAL_URL), session)

    def test_local_alias(self, acquirer):
        assert acquirer.strategy_for("local") == LocalLogin("local")

    def test_local_url(self, acquirer):
        assert isinstance(acquirer.strategy_for(LOCAL_URL), LocalLogin)

    def test_remote(self, acquirer):
        assert acquirer.strategy_for("https://x") == RemoteIssuance("https://x")


class TestRemoteIssuance:
    @pytest.fixture
    def session(self, tmp_path):
        return SessionConfig(tmp_path / "cli.toml", "spacetimedb_token", LOCAL_URL)

    def make_acquirer(self, session, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        runner = MagicMock()
        return TokenAcquirer(EnvironmentResolver(LOCAL_URL), session, client=client, runner=runner)

    def test_issues_token(self, session):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"identity": "c200abc", "token": "fresh"})

        acquirer = self.make_acquirer(session, handler)
        assert acquirer.acquire("https://host.example/spacetime/") == "fresh"

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://host.example/v1/identity"
        assert requests[0].headers["content-length"] == "0"
        # the external CLI is never involved
        acquirer.runner.assert_not_called()

    def test_nothing_is_persisted(self, session):
        acquirer = self.make_acquirer(
            session, lambda request: httpx.Response(200, json={"token": "fresh"})
        )
        acquirer.acquire("https://x")
        assert not session.config_file.exists()

    def test_error_status(self, session):
        acquirer = self.make_acquirer(session, lambda request: httpx.Response(503))

        with pytest.raises(RemoteIssuanceFailedError, match="503"):
            acquirer.acquire("https://x")

    def test_unparseable_body(self, session):
        acquirer = self.make_acquirer(
            session, lambda request: httpx.Response(200, text="<html>nope</html>")
        )

        with pytest.raises(RemoteIssuanceFailedError, match="parse"):
            acquirer.acquire("https://x")

    def test_blank_token(self, session):
        acquirer = self.make_acquirer(
            session, lambda request: httpx.Response(200, json={"token": "  "})
        )

        with pytest.raises(RemoteIssuanceFailedError, match="did not include a token"):
            acquirer.acquire("https://x")

    def test_transport_error(self, session):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        acquirer = self.make_acquirer(session, handler)

        with pytest.raises(RemoteIssuanceFailedError, match="Failed to call"):
            acquirer.acquire("https://x")

    def test_invalid_address(self, session):
        requests = []
        acquirer = self.make_acquirer(session, requests.append)

        with pytest.raises(RemoteIssuanceFailedError, match="Failed to call"):
            acquirer.acquire("http://[::1")
        assert requests == []


class TestLocalLogin:
    @pytest.fixture
    def session(self, tmp_path):
        return SessionConfig(tmp_path / "cli.toml", "spacetimedb_token", LOCAL_URL)

    def make_acquirer(self, session, runner):
        client = MagicMock()
        return TokenAcquirer(EnvironmentResolver(LOCAL_URL), session, client=client, runner=runner)

    def test_logs_out_then_in_and_reads_token(self, session):
        def runner(command, check=False):
            if command[1] == "login":
                # the spacetime CLI writes its token into the session file
                session.set_token("from_cli")
            return completed(0)

        runner = MagicMock(side_effect=runner)
        acquirer = self.make_acquirer(session, runner)

        assert acquirer.acquire("local") == "from_cli"
        commands = [c.args[0] for c in runner.call_args_list]
        assert commands == [
            ["spacetime", "logout"],
            ["spacetime", "login", "--server-issued-login", "local"],
        ]
        acquirer.client.post.assert_not_called()

    def test_login_failure(self, session):
        runner = MagicMock(side_effect=[completed(0), completed(1)])
        acquirer = self.make_acquirer(session, runner)

        with pytest.raises(ExternalLoginFailedError, match="exit code 1"):
            acquirer.acquire("local")

    def test_logout_failure_stops_before_login(self, session):
        runner = MagicMock(return_value=completed(2))
        acquirer = self.make_acquirer(session, runner)

        with pytest.raises(ExternalLoginFailedError):
            acquirer.acquire("local")
        assert runner.call_count == 1

    def test_cli_missing(self, session):
        runner = MagicMock(side_effect=FileNotFoundError("spacetime"))
        acquirer = self.make_acquirer(session, runner)

        with pytest.raises(ExternalLoginFailedError, match="PATH"):
            acquirer.acquire("local")

    def test_no_token_after_login(self, session):
        runner = MagicMock(return_value=completed(0))
        acquirer = self.make_acquirer(session, runner)

        with pytest.raises(ExternalLoginFailedError, match="not found"):
            acquirer.acquire("local")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
