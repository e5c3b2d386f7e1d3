import logging
from pathlib import Path
from typing import Dict, Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.toml_document import TOMLDocument

from ..domain.errors import ConfigIOError, MalformedConfigError, NoActiveTokenError
from ..utils.files import atomic_write_text, read_text
from .models import Profile, ProfileLedger
from .resolver import server_target

logger = logging.getLogger(__name__)

DEFAULT_SERVER_KEY = "default_server"
DEFAULT_HOST_KEY = "default_host"
SERVER_CONFIGS_KEY = "server_configs"


class SessionState:
    """
    the wrapped CLI's config document.

    reads and writes go through the tomlkit document so keys this tool
    does not own survive a load/save cycle untouched.
    """

    def __init__(
        self,
        document: TOMLDocument,
        token_key: str,
        local_server_url: str,
        path: Optional[Path] = None,
    ):
        self.document = document
        self.token_key = token_key
        self.local_server_url = local_server_url
        self.path = path

    def _get_str(self, key: str) -> Optional[str]:
        value = self.document.get(key)
        if isinstance(value, str):
            return str(value)
        return None

    @property
    def active_token(self) -> Optional[str]:
        return self._get_str(self.token_key)

    @property
    def default_server_name(self) -> Optional[str]:
        return self._get_str(DEFAULT_SERVER_KEY)

    @property
    def default_host(self) -> Optional[str]:
        return self._get_str(DEFAULT_HOST_KEY)

    @property
    def server_configs(self) -> Dict[str, str]:
        """server nickname -> protocol://host"""
        servers = {}
        entries = self.document.get(SERVER_CONFIGS_KEY)
        if not isinstance(entries, list):
            return servers
        for table in entries:
            if not isinstance(table, dict):
                continue
            nickname = table.get("nickname")
            host = table.get("host")
            if not isinstance(nickname, str) or not isinstance(host, str):
                continue
            protocol = table.get("protocol", "http")
            servers[str(nickname)] = f"{protocol}://{host}"
        return servers

    @property
    def default_address(self) -> Optional[str]:
        """the environment the CLI currently targets."""
        if self.default_host is not None:
            return self.default_host
        if self.default_server_name is not None:
            return self.server_configs.get(self.default_server_name)
        return None

    def set_token(self, token: str) -> None:
        self.document[self.token_key] = token

    def _server_table(self, nickname: str):
        """find the server_configs entry for nickname, creating it if needed."""
        servers = self.document.get(SERVER_CONFIGS_KEY)
        if servers is None:
            servers = tomlkit.aot()
            self.document[SERVER_CONFIGS_KEY] = servers
        elif not isinstance(servers, list):
            raise MalformedConfigError(
                self.path, f"'{SERVER_CONFIGS_KEY}' must be an array of tables"
            )

        for table in servers:
            if table.get("nickname") == nickname:
                return table

        table = tomlkit.table()
        table["nickname"] = nickname
        servers.append(table)
        return servers[-1]

    def upsert_server(self, nickname: str, address: str) -> None:
        protocol, host = server_target(address, self.local_server_url)
        table = self._server_table(nickname)
        if table.get("host") != host:
            table["host"] = host
        if table.get("protocol") != protocol:
            table["protocol"] = protocol

    def set_default_host(self, address: str) -> None:
        self.document[DEFAULT_HOST_KEY] = address

    def set_default_server(self, name: str, address: str) -> None:
        """make `name` the default server, pointing it at `address`."""
        self.document[DEFAULT_SERVER_KEY] = name
        self.document[DEFAULT_HOST_KEY] = address
        self.upsert_server(name, address)

    def sync_servers(self, ledger: ProfileLedger) -> None:
        """ensure every stored profile has a matching server_configs entry."""
        for profile in ledger.list():
            self.upsert_server(profile.name, profile.address)


class SessionConfig:
    """handles the wrapped CLI's active-session file."""

    def __init__(self, config_file: Path, token_key: str, local_server_url: str):
        self.config_file = config_file
        self.token_key = token_key
        self.local_server_url = local_server_url

    def exists(self) -> bool:
        return self.config_file.exists()

    def load(self) -> SessionState:
        """
        load the session file.

        a missing file (or directory) yields an empty document; the
        directory is created so a later save can land.
        """
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigIOError(self.config_file.parent, e) from e

        content = read_text(self.config_file)
        if content is None:
            logger.debug("%s not found, starting from an empty session", self.config_file)
            document = tomlkit.document()
        else:
            try:
                document = tomlkit.parse(content)
            except TOMLKitError as e:
                raise MalformedConfigError(self.config_file, str(e)) from e

        return SessionState(
            document, self.token_key, self.local_server_url, self.config_file
        )

    def save(self, state: SessionState) -> None:
        atomic_write_text(self.config_file, tomlkit.dumps(state.document))
        logger.debug("wrote session to %s", self.config_file)

    def get_token(self) -> Optional[str]:
        if not self.exists():
            return None
        return self.load().active_token

    def require_token(self) -> str:
        """
        returns:
            the active token

        raises:
            NoActiveTokenError: if the session holds none
        """
        token = self.get_token()
        if token is None:
            raise NoActiveTokenError(self.token_key, self.config_file)
        return token

    def set_token(self, token: str) -> None:
        state = self.load()
        state.set_token(token)
        self.save(state)

    def set_default_server(self, name: str, address: str) -> None:
        state = self.load()
        state.set_default_server(name, address)
        self.save(state)

    def activate(self, profile: Profile, ledger: ProfileLedger) -> SessionState:
        """make `profile` the active session in a single write."""
        state = self.load()
        state.set_token(profile.token)
        state.set_default_server(profile.name, profile.address)
        state.sync_servers(ledger)
        self.save(state)
        logger.debug("activated profile '%s' (%s)", profile.name, profile.address)
        return state
