"""pie Magisk module — cross-build and on-device provisioning."""

__version__ = "0.1.0"
