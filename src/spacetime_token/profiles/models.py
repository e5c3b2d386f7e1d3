"""data models for profile management."""
from typing import Dict, List, Optional
from pydantic import BaseModel


class Profile(BaseModel):
    """a named token bound to a server address."""
    name: str
    token: str
    address: str  # server URL or the "local" alias


class ProfileLedger(BaseModel):
    """all stored profiles, keyed by name in file order."""
    profiles: Dict[str, Profile] = {}

    @classmethod
    def empty(cls) -> "ProfileLedger":
        """create empty ledger."""
        return cls(profiles={})

    def get(self, name: str) -> Optional[Profile]:
        return self.profiles.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.profiles

    def __len__(self) -> int:
        return len(self.profiles)

    def list(self) -> List[Profile]:
        return list(self.profiles.values())

    def names(self) -> List[str]:
        return list(self.profiles.keys())


class ProfileListing(BaseModel):
    """profile annotated for display."""
    profile: Profile
    current: bool = False


class Environment(BaseModel):
    """a distinct address referenced by stored profiles."""
    address: str
    profiles: List[str] = []
    current: bool = False


class CurrentStatus(BaseModel):
    """what the session config currently points at."""
    masked_token: str
    profile_name: Optional[str] = None
    address: Optional[str] = None
