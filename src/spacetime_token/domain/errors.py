from typing import Optional


class SpacetimeTokenError(Exception):
    """base class for exceptions in spacetime-token."""
    pass


class DuplicateProfileError(SpacetimeTokenError):
    """raised when a profile name is already taken."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Profile '{name}' already exists. "
            "Use a different name or delete the existing one first."
        )


class ProfileNotFoundError(SpacetimeTokenError):
    """raised when a named profile is not stored."""
    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"Profile '{name}' not found.")


class ProfileAddressMismatchError(ProfileNotFoundError):
    """raised when a named profile does not belong to the requested environment."""
    def __init__(self, name: str, address: str, requested: str):
        self.address = address
        self.requested = requested
        super().__init__(
            name,
            f"Profile '{name}' uses address '{address}' "
            f"which does not match '{requested}'.",
        )


class NoActiveTokenError(SpacetimeTokenError):
    """raised when the session config holds no active token."""
    def __init__(self, token_key: str, path=None):
        self.token_key = token_key
        location = f" in {path}" if path else ""
        super().__init__(
            f"No active token (key '{token_key}') found{location}. Are you logged in?"
        )


class NoMatchingProfilesError(SpacetimeTokenError):
    """raised when no stored profile matches a selection."""
    def __init__(self, address: Optional[str] = None):
        self.address = address
        if address:
            message = f"No profiles found for environment '{address}'. Create one before switching."
        else:
            message = "No profiles available to switch."
        super().__init__(message)


class SelectionCancelledError(SpacetimeTokenError):
    """raised when an interactive selection is aborted."""
    def __init__(self):
        super().__init__("No profile selected or selection cancelled.")


class ExternalLoginFailedError(SpacetimeTokenError):
    """raised when the external CLI login cannot produce a token."""
    pass


class RemoteIssuanceFailedError(SpacetimeTokenError):
    """raised when a server refuses or garbles a token issuance."""
    pass


class ConfigIOError(SpacetimeTokenError):
    """raised when a config file exists but cannot be read or written."""
    def __init__(self, path, error: OSError):
        self.path = path
        super().__init__(f"Failed to access {path}: {error}")


class MalformedConfigError(SpacetimeTokenError):
    """raised when a config file cannot be parsed or breaks its invariants."""
    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed config at {path}: {reason}")
