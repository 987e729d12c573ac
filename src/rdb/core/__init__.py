"""Configuration for the repository layer."""

from .config import RepoSettings

__all__ = ["RepoSettings"]
