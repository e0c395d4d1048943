"""Image storage adapters."""

from .spaces import SpacesImageStore

__all__ = ["SpacesImageStore"]
