"""Per-owner NFS volume provisioner."""

__version__ = "0.1.0"
