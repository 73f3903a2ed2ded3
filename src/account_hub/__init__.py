"""Account Hub: shared account, presence and hiscores backend for game worlds.

Every world process authenticates players through one-time login tokens minted
here, reports presence and heartbeats here, and writes skill progress into the
shared store whose ranks this service recomputes.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("account-hub")
except PackageNotFoundError:
    __version__ = "0.1.0"
