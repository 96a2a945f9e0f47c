"""
Game Configuration

Tunable constants of the game rules plus runtime settings. Rule constants
have no documented derivation; they are kept as named values so that
balancing never requires touching slice code.

ENVIRONMENT:
============
- FORTRESS_STORAGE_DIR      directory of the file event store
- FORTRESS_STORAGE_BACKEND  "memory" (default) or "file"
- FORTRESS_DEBUG            "1"/"true" enables verbose diagnostics
- FORTRESS_LOG_LEVEL        logging level name, default INFO
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GameConfig:
    """Unified configuration for the game engine."""
    # Quest flow
    total_quests: int = 3

    # Fleet and battle
    min_battle_cards: int = 5
    max_fleet_size: int = 5
    total_positions: int = 5

    # Reputation
    reputation_min: int = -100
    reputation_max: int = 100
    card_lock_threshold: int = -25

    # Alliance and mediation economics
    alliance_bounty_share: float = 0.30
    friendly_bounty_share: float = 0.25
    devoted_bounty_share: float = 0.15
    compromise_bounty_modifier: float = 0.5

    # Narrative traversal
    max_auto_transitions: int = 64

    # Diagnostics
    max_error_history: int = 20
    max_metric_points: int = 10000
    max_audit_entries: int = 10000
    debug: bool = False
    log_level: str = "INFO"

    # Persistence
    storage_backend: str = "memory"
    storage_dir: str = None

    def __post_init__(self):
        self.storage_dir = self.storage_dir or os.path.join(os.getcwd(), "data", "sessions")
        if self.storage_backend not in ("memory", "file"):
            raise ValueError(f"Unsupported storage backend: {self.storage_backend}")
        if self.max_fleet_size != self.total_positions:
            raise ValueError("max_fleet_size must equal total_positions")

    @classmethod
    def from_env(cls, **overrides) -> 'GameConfig':
        """Build configuration from FORTRESS_* environment variables."""
        values = dict(
            storage_dir=os.environ.get("FORTRESS_STORAGE_DIR"),
            storage_backend=os.environ.get("FORTRESS_STORAGE_BACKEND", "memory"),
            debug=_env_flag("FORTRESS_DEBUG"),
            log_level=os.environ.get("FORTRESS_LOG_LEVEL", "INFO").upper(),
        )
        values.update(overrides)
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    """Install the process-wide logging format. Safe to call more than once."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
