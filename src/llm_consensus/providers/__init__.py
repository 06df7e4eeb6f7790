from .base import BaseProvider
from .mock import MockProvider

__all__ = ["BaseProvider", "MockProvider"]
