import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import httpx

from ..config import (
    CONFIG_DIR,
    LOCAL_ALIAS,
    AppSettings,
    get_cli_config_path,
    get_profiles_path,
)
from ..domain.errors import (
    DuplicateProfileError,
    NoMatchingProfilesError,
    ProfileAddressMismatchError,
    ProfileNotFoundError,
    SelectionCancelledError,
)
from .auth import TokenAcquirer
from .models import CurrentStatus, Environment, Profile, ProfileLedger, ProfileListing
from .resolver import EnvironmentResolver
from .session import SessionConfig, SessionState
from .store import ProfileStore

logger = logging.getLogger(__name__)

ADMIN_PROFILE = "admin"
MASK_VISIBLE = 5

# given the candidates and a prompt, return the chosen profile name or None
Picker = Callable[[List[Profile], str], Optional[str]]


def mask_token(token: str) -> str:
    """show the first and last few characters of a token."""
    if len(token) <= MASK_VISIBLE * 2:
        # too short to mask meaningfully
        return token
    return f"{token[:MASK_VISIBLE]}...{token[-MASK_VISIBLE:]}"


class SyncController:
    """
    keeps the profile ledger and the CLI session file in step.

    every operation reads both files fresh, validates against them, and
    only then writes, so a failed precondition leaves both untouched.
    """

    def __init__(
        self,
        store: ProfileStore,
        session: SessionConfig,
        resolver: EnvironmentResolver,
        acquirer: TokenAcquirer,
        picker: Optional[Picker] = None,
    ):
        self.store = store
        self.session = session
        self.resolver = resolver
        self.acquirer = acquirer
        self.picker = picker

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        config_dir: Path = CONFIG_DIR,
        home: Optional[Path] = None,
        picker: Optional[Picker] = None,
        client: Optional[httpx.Client] = None,
    ) -> "SyncController":
        """wire up the stores described by the tool config."""
        store = ProfileStore(get_profiles_path(settings, config_dir))
        session = SessionConfig(
            get_cli_config_path(settings, home),
            settings.cli_token_key,
            settings.local_server_url,
        )
        resolver = EnvironmentResolver(settings.local_server_url)
        acquirer = TokenAcquirer(resolver, session, client=client)
        return cls(store, session, resolver, acquirer, picker=picker)

    def _require(self, ledger: ProfileLedger, name: str) -> Profile:
        profile = ledger.get(name)
        if profile is None:
            available = ", ".join(ledger.names()) or "none"
            raise ProfileNotFoundError(
                name, f"Profile '{name}' not found. Available profiles: {available}"
            )
        return profile

    def _pick(self, candidates: List[Profile], prompt: str) -> Profile:
        if self.picker is None:
            raise SelectionCancelledError()
        candidates = sorted(candidates, key=lambda p: p.name)
        choice = self.picker(candidates, prompt)
        for profile in candidates:
            if profile.name == choice:
                return profile
        raise SelectionCancelledError()

    def _activate(self, profile: Profile, ledger: ProfileLedger) -> Profile:
        self.session.activate(profile, ledger)
        return profile

    def _commit(self, profile: Profile, ledger: ProfileLedger, state: SessionState) -> Profile:
        """
        store `ledger` and make `profile` the active session.

        the session document is edited in memory first, so a session that
        cannot take the change fails before the ledger is written.
        """
        state.set_token(profile.token)
        state.set_default_server(profile.name, profile.address)
        state.sync_servers(ledger)
        self.store.save(ledger)
        self.session.save(state)
        logger.debug("activated profile '%s' (%s)", profile.name, profile.address)
        return profile

    def has_profile(self, name: str) -> bool:
        return name in self.store.load()

    def set_profile(self, name: str, token: str, address: Optional[str] = None) -> Profile:
        """
        store `token` under `name` and make it active.

        without an explicit address an existing profile keeps its own,
        otherwise the current environment (or the local alias) is used.
        """
        ledger = self.store.load()
        state = self.session.load()
        if address is None:
            existing = ledger.get(name)
            if existing is not None:
                address = existing.address
            else:
                address = state.default_address or LOCAL_ALIAS

        profile = Profile(name=name, token=token, address=address)
        ledger.profiles[name] = profile
        return self._commit(profile, ledger, state)

    def save_profile(self, name: str) -> Profile:
        """
        store the currently active token under a new name.

        raises:
            DuplicateProfileError: if name is taken
            NoActiveTokenError: if the session has no token
        """
        ledger = self.store.load()
        if name in ledger:
            raise DuplicateProfileError(name)

        token = self.session.require_token()
        state = self.session.load()
        address = self.resolver.current_address(ledger, state) or LOCAL_ALIAS

        profile = Profile(name=name, token=token, address=address)
        self.store.insert_if_absent(profile)
        logger.debug("saved active session as '%s' (%s)", name, address)
        return profile

    def create_profile(self, name: str, address: str = LOCAL_ALIAS) -> Profile:
        """
        acquire a new token for `address`, store it and make it active.

        the name is checked before any login or network call.
        """
        if name in self.store.load():
            raise DuplicateProfileError(name)

        token = self.acquirer.acquire(address)

        # a local login rewrites the session file, so read it afterwards
        state = self.session.load()
        ledger = self.store.load()
        if name in ledger:
            raise DuplicateProfileError(name)

        profile = Profile(name=name, token=token, address=address)
        ledger.profiles[name] = profile
        return self._commit(profile, ledger, state)

    def switch_profile(self, name: Optional[str] = None, address: Optional[str] = None) -> Profile:
        """
        activate a stored profile.

        with no name the picker chooses among the profiles for `address`
        (or all profiles when no address is given).
        """
        ledger = self.store.load()

        if name is not None:
            profile = self._require(ledger, name)
            if address is not None and profile.address != address:
                raise ProfileAddressMismatchError(name, profile.address, address)
        else:
            candidates = self.resolver.filter_by_address(ledger, address)
            if not candidates:
                raise NoMatchingProfilesError(address)
            profile = self._pick(candidates, "Select a profile to switch to")

        return self._activate(profile, ledger)

    def admin(self) -> Profile:
        return self.switch_profile(ADMIN_PROFILE)

    def list_profiles(self, address: Optional[str] = None) -> List[ProfileListing]:
        """profiles in ledger order, optionally limited to one address."""
        ledger = self.store.load()
        current = self.resolver.current_profile(ledger, self.session.load())
        return [
            ProfileListing(
                profile=profile,
                current=current is not None and profile.name == current.name,
            )
            for profile in self.resolver.filter_by_address(ledger, address)
        ]

    def delete_profile(self, name: str) -> Profile:
        return self.store.remove(name)

    def reset(self) -> None:
        self.store.clear()

    def current(self) -> CurrentStatus:
        """
        describe the active session.

        raises:
            NoActiveTokenError: if the session has no token
        """
        token = self.session.require_token()
        state = self.session.load()
        profile = self.resolver.current_profile(self.store.load(), state)
        return CurrentStatus(
            masked_token=mask_token(token),
            profile_name=profile.name if profile else None,
            address=profile.address if profile else state.default_address,
        )

    def current_environment(self) -> Optional[str]:
        if not self.session.exists():
            return None
        return self.session.load().default_address

    def list_environments(self) -> List[Environment]:
        return self.resolver.environments(self.store.load(), self.session.load())

    def use_environment(self, address: str, profile_name: Optional[str] = None) -> Profile:
        """
        switch to `address`, activating one of its profiles.

        a single matching profile is chosen automatically; several go to
        the picker.
        """
        ledger = self.store.load()

        if profile_name is not None:
            profile = self._require(ledger, profile_name)
            if profile.address != address:
                raise ProfileAddressMismatchError(profile_name, profile.address, address)
        else:
            candidates = self.resolver.filter_by_address(ledger, address)
            if not candidates:
                raise NoMatchingProfilesError(address)
            if len(candidates) == 1:
                profile = candidates[0]
            else:
                profile = self._pick(candidates, "Select a profile for this environment")

        return self._activate(profile, ledger)

    def set_address(self, name: str, address: str) -> Tuple[Profile, bool]:
        """
        change the address of a stored profile.

        if that profile owns the active token the session's default server
        follows it. when no stored profile owns the active token but the
        session still targets the previous address, only the default host
        moves; the default server is never handed to an inactive profile.

        returns:
            the updated profile and whether the session was updated
        """
        ledger = self.store.load()
        previous = self._require(ledger, name)
        state = self.session.load() if self.session.exists() else None

        profile = Profile(name=name, token=previous.token, address=address)
        owner = self.resolver.current_profile(ledger, state) if state is not None else None
        ledger.profiles[name] = profile

        session_updated = False
        if owner is not None and owner.name == name:
            state.set_default_server(name, address)
            state.sync_servers(ledger)
            session_updated = True
        elif state is not None and owner is None and state.default_host == previous.address:
            state.set_default_host(address)
            session_updated = True

        self.store.save(ledger)
        if session_updated:
            self.session.save(state)
        return profile, session_updated
