from __future__ import annotations

from dataclasses import dataclass, field

from .platform import Platform
from .schema import Config
from .store import Repo


@dataclass
class Context:
    """Handles every core operation works through."""

    repo: Repo
    platform: Platform
    config: Config = field(default_factory=Config)
