"""profile and session synchronization."""
from .manager import SyncController, mask_token
from .store import ProfileStore
from .session import SessionConfig, SessionState
from .resolver import EnvironmentResolver
from .auth import TokenAcquirer
from .models import Profile, ProfileLedger, ProfileListing, Environment, CurrentStatus

__all__ = [
    "SyncController",
    "mask_token",
    "ProfileStore",
    "SessionConfig",
    "SessionState",
    "EnvironmentResolver",
    "TokenAcquirer",
    "Profile",
    "ProfileLedger",
    "ProfileListing",
    "Environment",
    "CurrentStatus",
]
