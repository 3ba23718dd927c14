"""keybridge: relay ssh-agent and gpg-agent traffic over stdio to Windows key agents."""

__version__ = "0.1.0"

__all__ = ["__version__"]
