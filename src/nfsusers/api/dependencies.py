"""API dependencies for dependency injection."""

from nfsusers.runtime import NFSUsersProvisioner

# Singleton provisioner instance
_provisioner: NFSUsersProvisioner | None = None


def init_provisioner() -> None:
    """Initialize provisioner singleton. Must be called during app startup."""
    global _provisioner
    _provisioner = NFSUsersProvisioner()


def get_provisioner() -> NFSUsersProvisioner:
    """Get provisioner singleton.

    Raises:
        RuntimeError: If called before init_provisioner().
    """
    if _provisioner is None:
        raise RuntimeError("Provisioner not initialized. Call init_provisioner() first.")
    return _provisioner


def reset_provisioner() -> None:
    """Reset provisioner singleton (for testing)."""
    global _provisioner
    _provisioner = None
