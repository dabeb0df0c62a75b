import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from eventmerge.categories import DEFAULT_CATEGORIES, CategoryWhitelist
from eventmerge.errors import ConfigError

_DEFAULT_CONFIG_PATH = Path("config.toml")
_DEFAULT_ENV_PATH = Path("secrets")

DEFAULT_SOURCE_PRIORITY = {
    "marriner": 5,      # Official venue, best for dates and booking
    "ticketmaster": 4,  # Ticketing platform, best for prices
    "whatson": 3,       # Government curated, best for descriptions
}

DEFAULT_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "at", "to", "for", "of", "in", "on",
    "live", "presents", "featuring", "feat", "ft", "show", "tour", "melbourne",
})

# Trailing words stripped (repeatedly) from venue names before comparison
DEFAULT_VENUE_SUFFIXES = (
    "theatre", "theater", "centre", "center", "arena", "stadium", "hall",
    "melbourne", "vic", "victoria", "cbd", "australia",
    "nsw", "qld", "wa", "sa", "tas", "nt", "act",
)

DEFAULT_VENUE_CAPACITIES = {
    "Marvel Stadium": 56000,
    "Melbourne Cricket Ground": 100000,
    "MCG": 100000,
    "Rod Laver Arena": 15000,
    "AAMI Park": 30000,
    "Arts Centre Melbourne": 2000,
    "Hamer Hall": 2500,
    "State Theatre": 2000,
    "Princess Theatre": 1500,
    "Regent Theatre": 2100,
    "Forum Melbourne": 1200,
    "The Tivoli": 1500,
    "Margaret Court Arena": 7500,
    "John Cain Arena": 10500,
    "Palais Theatre": 3000,
    "Cherry Bar": 150,
    "The Tote": 400,
    "The Corner Hotel": 600,
    "Northcote Social Club": 500,
}


@dataclass(frozen=True)
class DedupConfig:
    """Tuning for the duplicate matcher and merge resolver."""

    overall_threshold: float = 0.78
    date_window_days: int = 14
    quick_reject_threshold: float = 0.3
    title_weight: float = 0.5
    date_weight: float = 0.3
    venue_weight: float = 0.2
    source_priority: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SOURCE_PRIORITY))
    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    venue_suffixes: tuple[str, ...] = DEFAULT_VENUE_SUFFIXES
    placeholder_descriptions: tuple[str, ...] = ("No description",)
    default_suburb: str = "Melbourne"

    def source_rank(self, source: str) -> int:
        return self.source_priority.get(source, 0)


@dataclass(frozen=True)
class PopularityConfig:
    """Weights for the popularity scorer."""

    favourites: float = 5.0
    clickthroughs: float = 3.0
    views: float = 0.5
    venue_capacity: float = 2.0
    price_signal: float = 1.0
    multi_source: float = 1.5
    price_threshold: float = 100.0
    decay_days: float = 30.0
    # Cold-start weights (no engagement, no decay); each must not exceed its raw counterpart
    cold_venue_capacity: float = 2.0
    cold_price_signal: float = 1.0
    cold_multi_source: float = 1.5
    venue_capacities: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_VENUE_CAPACITIES))


def load(path: Path = _DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load config from TOML (if present), then overlay any secrets from .env."""
    cfg: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                cfg = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    _load_env(_DEFAULT_ENV_PATH, cfg)
    return cfg


def _load_env(env_path: Path, cfg: dict) -> None:
    """
    Parse a .env file and inject values into the config dict.

    Supported variable names:
      EVENTMERGE_DATABASE_PATH  -> cfg["database"]["path"]

    Shell environment variables take precedence over .env values.
    """
    _apply_env_vars(cfg)

    if not env_path.exists():
        return

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key not in os.environ:
                os.environ[key] = value

    _apply_env_vars(cfg)


def _apply_env_vars(cfg: dict) -> None:
    if v := os.environ.get("EVENTMERGE_DATABASE_PATH"):
        cfg.setdefault("database", {})["path"] = v


def get_database_path(cfg: dict) -> Path:
    return Path(cfg.get("database", {}).get("path", "data/events.db"))


def get_feeds(cfg: dict) -> dict[str, dict]:
    """Return the feeds section, filtering to only enabled feeds."""
    feeds = cfg.get("feeds", {})
    return {key: f for key, f in feeds.items() if f.get("enabled", True)}


def get_dedup_config(cfg: dict) -> DedupConfig:
    section = dict(cfg.get("dedup", {}))
    priority = section.pop("source_priority", None)
    config = _apply_section(DedupConfig(), section, "dedup")
    if priority is not None:
        merged = dict(config.source_priority)
        for source, rank in priority.items():
            if not isinstance(rank, int) or isinstance(rank, bool):
                raise ConfigError(f"dedup.source_priority.{source} must be an integer, got {rank!r}")
            merged[source] = rank
        config = replace(config, source_priority=merged)
    return config


def get_popularity_config(cfg: dict) -> PopularityConfig:
    section = dict(cfg.get("popularity", {}))
    capacities = section.pop("venue_capacities", None)
    config = _apply_section(PopularityConfig(), section, "popularity")
    if capacities is not None:
        config = replace(config, venue_capacities={**config.venue_capacities, **capacities})
    for cold, raw in _COLD_START_LIMITS:
        if getattr(config, cold) > getattr(config, raw):
            raise ConfigError(f"popularity.{cold} must not exceed popularity.{raw}")
    return config


# A cold-start score must stay below the engaged raw score of the same event
_COLD_START_LIMITS = (
    ("cold_venue_capacity", "venue_capacity"),
    ("cold_price_signal", "price_signal"),
    ("cold_multi_source", "multi_source"),
)


def get_category_whitelist(cfg: dict) -> CategoryWhitelist:
    return CategoryWhitelist(cfg.get("categories") or DEFAULT_CATEGORIES)


def _apply_section(config, section: dict, name: str):
    """Overlay scalar TOML values onto a frozen config dataclass, checking types."""
    known = {f.name: f for f in fields(config)}
    updates = {}
    for key, value in section.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{name}.{key}'")
        current = getattr(config, key)
        if isinstance(current, (int, float)) and not isinstance(current, bool):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ConfigError(f"{name}.{key} must be a number, got {value!r}")
        elif isinstance(current, frozenset):
            value = frozenset(value)
        elif isinstance(current, tuple):
            value = tuple(value)
        updates[key] = value
    return replace(config, **updates)
