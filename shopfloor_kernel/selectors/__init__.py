"""Read-only query selectors."""

from shopfloor_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
