import logging
from pathlib import Path
from typing import List, Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError

from ..config import LOCAL_ALIAS
from ..domain.errors import (
    DuplicateProfileError,
    MalformedConfigError,
    ProfileNotFoundError,
)
from ..utils.files import atomic_write_text, read_text
from .models import Profile, ProfileLedger

logger = logging.getLogger(__name__)


class ProfileStore:
    """handles profile persistence to TOML."""

    def __init__(self, profiles_file: Path):
        self.profiles_file = profiles_file

    def load(self) -> ProfileLedger:
        """
        load profiles from the TOML file.

        a missing or blank file is an empty ledger. legacy entries of the
        form `name = "token"` and entries without an address are healed to
        the local alias and written back.

        raises:
            MalformedConfigError: if the file cannot be parsed or an entry
                has no token
        """
        content = read_text(self.profiles_file)
        if content is None or not content.strip():
            return ProfileLedger.empty()

        try:
            doc = tomlkit.parse(content)
        except TOMLKitError as e:
            raise MalformedConfigError(self.profiles_file, str(e)) from e

        ledger = ProfileLedger.empty()
        healed = []
        for name, entry in doc.unwrap().items():
            if isinstance(entry, str):
                # legacy flat format, token only
                token, address = entry, None
            elif isinstance(entry, dict):
                token, address = entry.get("token"), entry.get("address")
            else:
                raise MalformedConfigError(
                    self.profiles_file, f"profile '{name}' is not a table"
                )

            if not isinstance(token, str):
                raise MalformedConfigError(
                    self.profiles_file, f"profile '{name}' has no token"
                )
            if address is None:
                address = LOCAL_ALIAS
                healed.append(name)
            elif not isinstance(address, str):
                raise MalformedConfigError(
                    self.profiles_file, f"profile '{name}' has a non-string address"
                )

            ledger.profiles[name] = Profile(name=name, token=token, address=address)

        if healed:
            logger.info(
                "assigned address '%s' to profiles without one: %s",
                LOCAL_ALIAS, ", ".join(healed)
            )
            self.save(ledger)

        return ledger

    def save(self, ledger: ProfileLedger) -> None:
        """save profiles to the TOML file, replacing it atomically."""
        doc = tomlkit.document()
        for name, profile in ledger.profiles.items():
            table = tomlkit.table()
            table.add("token", profile.token)
            table.add("address", profile.address)
            doc.add(name, table)

        atomic_write_text(self.profiles_file, tomlkit.dumps(doc))
        logger.debug("wrote %d profiles to %s", len(ledger), self.profiles_file)

    def get(self, name: str) -> Optional[Profile]:
        return self.load().get(name)

    def list(self) -> List[Profile]:
        """list profiles in file order."""
        return self.load().list()

    def upsert(self, profile: Profile) -> None:
        """add a profile or replace the one with the same name."""
        ledger = self.load()
        ledger.profiles[profile.name] = profile
        self.save(ledger)

    def insert_if_absent(self, profile: Profile) -> None:
        """
        add a new profile.

        raises:
            DuplicateProfileError: if the name is already stored
        """
        ledger = self.load()
        if profile.name in ledger:
            raise DuplicateProfileError(profile.name)
        ledger.profiles[profile.name] = profile
        self.save(ledger)

    def remove(self, name: str) -> Profile:
        """remove and return a profile."""
        ledger = self.load()
        if name not in ledger:
            raise ProfileNotFoundError(name)
        removed = ledger.profiles.pop(name)
        self.save(ledger)
        return removed

    def clear(self) -> None:
        self.save(ProfileLedger.empty())

    def set_address(self, name: str, address: str) -> Profile:
        """point a stored profile at a new address, returns the updated profile."""
        ledger = self.load()
        profile = ledger.get(name)
        if profile is None:
            raise ProfileNotFoundError(name)
        profile.address = address
        self.save(ledger)
        return profile
