"""URL validators run before any network access."""

from .url_safety import assert_safe, is_safe

__all__ = ["assert_safe", "is_safe"]
