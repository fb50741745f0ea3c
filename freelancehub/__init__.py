"""
freelancehub - Freelance marketplace core.

Job postings, applications, milestone escrow, ratings and notifications.
"""

from .config import MarketplaceConfig
from .marketplace import Actor, Marketplace, Role

try:
    from importlib.metadata import version

    __version__ = version("freelancehub")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Marketplace", "MarketplaceConfig", "Actor", "Role"]
