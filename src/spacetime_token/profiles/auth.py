import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import httpx

from ..config import LOCAL_ALIAS, SPACETIME_CLI_COMMAND
from ..domain.errors import (
    ExternalLoginFailedError,
    MalformedConfigError,
    RemoteIssuanceFailedError,
)
from .resolver import EnvironmentResolver, strip_api_path
from .session import SessionConfig

logger = logging.getLogger(__name__)

IDENTITY_PATH = "/v1/identity"


@dataclass(frozen=True)
class LocalLogin:
    """log in through the external CLI against the local server."""
    address: str = LOCAL_ALIAS


@dataclass(frozen=True)
class RemoteIssuance:
    """ask the server at `address` to mint a token directly."""
    address: str


LoginStrategy = Union[LocalLogin, RemoteIssuance]


class TokenAcquirer:
    """
    obtains a fresh token for an address.

    nothing is persisted here: callers decide where the token goes.
    """

    def __init__(
        self,
        resolver: EnvironmentResolver,
        session: SessionConfig,
        client: Optional[httpx.Client] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        cli_command: str = SPACETIME_CLI_COMMAND,
    ):
        self.resolver = resolver
        self.session = session
        self.client = client
        self.runner = runner
        self.cli_command = cli_command

    def strategy_for(self, address: str) -> LoginStrategy:
        """pick how a token for `address` is obtained."""
        if self.resolver.is_local(address):
            return LocalLogin(address)
        return RemoteIssuance(address)

    def acquire(self, address: str) -> str:
        """
        get a token for `address`.

        raises:
            ExternalLoginFailedError: if the CLI login fails or leaves no token
            RemoteIssuanceFailedError: if the server does not issue a token
        """
        strategy = self.strategy_for(address)
        logger.debug("acquiring token for %s via %s", address, type(strategy).__name__)

        if isinstance(strategy, LocalLogin):
            return self._login_locally(strategy)
        return self._issue_remotely(strategy)

    def _run_cli(self, args: List[str]) -> None:
        command = [self.cli_command, *args]
        logger.debug("running %s", " ".join(command))
        try:
            # inherit the terminal so the user can answer the CLI's prompts
            result = self.runner(command, check=False)
        except OSError as e:
            raise ExternalLoginFailedError(
                f"Failed to execute '{' '.join(command)}'. "
                f"Is '{self.cli_command}' in your PATH? ({e})"
            ) from e

        if result.returncode != 0:
            raise ExternalLoginFailedError(
                f"Command '{' '.join(command)}' failed with exit code {result.returncode}"
            )

    def _login_locally(self, strategy: LocalLogin) -> str:
        self._run_cli(["logout"])
        self._run_cli(["login", "--server-issued-login", strategy.address])

        try:
            token = self.session.get_token()
        except MalformedConfigError as e:
            raise ExternalLoginFailedError(
                f"Could not read the token written by '{self.cli_command} login': {e}"
            ) from e

        if not token:
            raise ExternalLoginFailedError(
                f"Token key '{self.session.token_key}' not found in "
                f"{self.session.config_file} after login."
            )
        return token

    def _issue_remotely(self, strategy: RemoteIssuance) -> str:
        url = f"{strip_api_path(strategy.address)}{IDENTITY_PATH}"
        logger.debug("requesting server-issued token from %s", url)

        client = self.client or httpx.Client()
        try:
            # empty body, the length header must still be sent
            response = client.post(url, headers={"Content-Length": "0"})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise RemoteIssuanceFailedError(
                f"Server-issued login failed with status "
                f"{e.response.status_code} for {url}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteIssuanceFailedError(f"Failed to call {url}: {e}") from e
        except ValueError as e:
            raise RemoteIssuanceFailedError(
                f"Failed to parse identity response from {url}"
            ) from e
        finally:
            if self.client is None:
                client.close()

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token.strip():
            raise RemoteIssuanceFailedError(
                f"Identity response from {url} did not include a token."
            )
        return token
