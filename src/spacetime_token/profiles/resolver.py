from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from ..config import LOCAL_ALIAS
from .models import Environment, Profile, ProfileLedger

if TYPE_CHECKING:
    from .session import SessionState


def resolve_address_alias(address: str, local_server_url: str) -> str:
    """map the local alias to the local server URL, anything else is returned as-is."""
    if address == LOCAL_ALIAS:
        return local_server_url
    return address


def strip_api_path(address: str) -> str:
    """drop trailing slashes and a trailing /spacetime path segment."""
    trimmed = address.rstrip("/")
    if trimmed.endswith("/spacetime"):
        trimmed = trimmed[: -len("/spacetime")].rstrip("/")
    return trimmed


def server_target(address: str, local_server_url: str) -> Tuple[str, str]:
    """
    split an address into the (protocol, host) pair the CLI's
    server_configs entries use.
    """
    trimmed = strip_api_path(resolve_address_alias(address, local_server_url))
    for protocol in ("https", "http"):
        prefix = f"{protocol}://"
        if trimmed.startswith(prefix):
            return protocol, trimmed[len(prefix):].split("/")[0]
    return "http", trimmed.split("/")[0]


class EnvironmentResolver:
    """
    derives environments and the current profile from the two stores.

    nothing here is cached: both files may change between invocations, so
    every answer is computed from the ledger and session passed in.
    address comparison is exact string equality.
    """

    def __init__(self, local_server_url: str):
        self.local_server_url = local_server_url

    def resolve_address_alias(self, address: str) -> str:
        return resolve_address_alias(address, self.local_server_url)

    def is_local(self, address: str) -> bool:
        return self.resolve_address_alias(address) == self.local_server_url

    def current_profile(
        self, ledger: ProfileLedger, session: "SessionState"
    ) -> Optional[Profile]:
        """
        find the profile owning the active token.

        when several profiles share a token the first in ledger order wins.
        """
        token = session.active_token
        if token is None:
            return None
        for profile in ledger.list():
            if profile.token == token:
                return profile
        return None

    def current_address(
        self, ledger: ProfileLedger, session: "SessionState"
    ) -> Optional[str]:
        profile = self.current_profile(ledger, session)
        if profile is not None:
            return profile.address
        return session.default_address

    def environments(
        self, ledger: ProfileLedger, session: "SessionState"
    ) -> List[Environment]:
        """list distinct profile addresses, sorted, flagging the current one."""
        current = self.current_address(ledger, session)
        grouped: Dict[str, List[str]] = {}
        for profile in ledger.list():
            grouped.setdefault(profile.address, []).append(profile.name)

        return [
            Environment(
                address=address,
                profiles=sorted(names),
                current=address == current,
            )
            for address, names in sorted(grouped.items())
        ]

    def filter_by_address(
        self, ledger: ProfileLedger, address: Optional[str]
    ) -> List[Profile]:
        """profiles whose address equals `address`; all of them when it is None."""
        if address is None:
            return ledger.list()
        return [p for p in ledger.list() if p.address == address]
