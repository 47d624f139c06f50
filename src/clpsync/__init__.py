"""
clpsync - one-way pull sync of CloudPanel CodeIgniter sites
"""

__version__ = "1.0.0"

from .core import SitePuller
from .errors import SyncError

__all__ = ["SitePuller", "SyncError"]
