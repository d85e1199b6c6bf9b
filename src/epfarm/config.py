from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from epfarm.errors import ConfigurationError

DEFAULT_DATA_DIR = Path(os.getenv("EPFARM_DATA_DIR", "data"))
SUPPORTED_SOURCES = ("lichess", "chesscom", "local")
SUPPORTED_SINKS = ("duckdb", "postgres")
MAX_CONFIDENCE = 0.98

# Default upstream identity pools. Well-known, high-volume public accounts.
DEFAULT_LICHESS_PLAYERS = (
    "DrNykterstein",
    "penguingm1",
    "Zhigalko_Sergei",
    "RebeccaHarris",
    "nihalsarin2004",
    "alireza2003",
)
DEFAULT_CHESSCOM_PLAYERS = (
    "hikaru",
    "magnuscarlsen",
    "fabianocaruana",
    "lachesisq",
    "gothamchess",
    "danielnaroditsky",
)


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if not value:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple[str, ...]) -> list[str]:
    value = _env(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(slots=True)
class LichessSettings:
    """Lichess-specific configuration."""

    players: list[str] = field(
        default_factory=lambda: _env_list("EPFARM_LICHESS_PLAYERS", DEFAULT_LICHESS_PLAYERS)
    )
    token: str | None = field(default_factory=lambda: os.getenv("LICHESS_TOKEN") or None)
    perf_type: str = field(default_factory=lambda: _env("EPFARM_LICHESS_PERF", "blitz"))
    max_games: int = field(default_factory=lambda: _env_int("EPFARM_LICHESS_MAX_GAMES", 20))


@dataclass(slots=True)
class ChesscomSettings:
    """Chess.com-specific configuration."""

    players: list[str] = field(
        default_factory=lambda: _env_list("EPFARM_CHESSCOM_PLAYERS", DEFAULT_CHESSCOM_PLAYERS)
    )
    token: str | None = field(default_factory=lambda: os.getenv("CHESSCOM_TOKEN") or None)
    time_class: str = field(default_factory=lambda: _env("EPFARM_CHESSCOM_TIME_CLASS", ""))
    user_agent: str = field(
        default_factory=lambda: _env("EPFARM_CHESSCOM_USER_AGENT", "epfarm/0.1 (+pattern farm)")
    )


@dataclass(slots=True)
class LocalSettings:
    """Offline PGN file source configuration."""

    pgn_dir: Path | None = field(
        default_factory=lambda: Path(_env("EPFARM_LOCAL_PGN_DIR")) if _env("EPFARM_LOCAL_PGN_DIR") else None
    )


@dataclass(slots=True)
class SourceSettings:
    """Fetch-stage behaviour shared by all source adapters."""

    enabled: list[str] = field(
        default_factory=lambda: _env_list("EPFARM_SOURCES", ("lichess", "chesscom"))
    )
    request_timeout_s: float = field(
        default_factory=lambda: _env_float("EPFARM_REQUEST_TIMEOUT_S", 15.0)
    )
    retry_attempts: int = field(default_factory=lambda: _env_int("EPFARM_RETRY_ATTEMPTS", 3))
    retry_base_s: float = field(default_factory=lambda: _env_float("EPFARM_RETRY_BASE_S", 2.0))
    retry_cap_s: float = field(default_factory=lambda: _env_float("EPFARM_RETRY_CAP_S", 8.0))
    rate_limit_sleep_s: float = field(
        default_factory=lambda: _env_float("EPFARM_RATE_LIMIT_SLEEP_S", 10.0)
    )
    fetch_concurrency: int = field(
        default_factory=lambda: _env_int("EPFARM_FETCH_CONCURRENCY", 2)
    )
    batch_limit: int = field(default_factory=lambda: _env_int("EPFARM_BATCH_LIMIT", 10))
    decisive_only: bool = field(
        default_factory=lambda: _env_bool("EPFARM_DECISIVE_ONLY", False)
    )


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Decision thresholds for the evaluator and hybrid predictor.

    Advantages are measured in pawns. Every threshold applies with the same
    magnitude to both sides.
    """

    decisive_advantage: float = 1.5
    closeness: float = 1.5
    override: float = 0.25
    override_slope: float = 0.5
    agreement_scale: float = 0.1
    tension_threshold: float = 0.3
    balanced_bias_epsilon: float = 0.1
    balanced_advantage_epsilon: float = 1.0
    tension_draw_confidence: float = 0.6
    confidence_floor: float = 0.34
    confidence_ceiling: float = 0.95
    confidence_scale: float = 3.0
    confidence_cap: float = 0.98

    @classmethod
    def from_env(cls) -> Thresholds:
        defaults = cls()
        return cls(
            decisive_advantage=_env_float(
                "EPFARM_DECISIVE_ADVANTAGE", defaults.decisive_advantage
            ),
            closeness=_env_float("EPFARM_CLOSENESS", defaults.closeness),
            override=_env_float("EPFARM_OVERRIDE", defaults.override),
            override_slope=_env_float("EPFARM_OVERRIDE_SLOPE", defaults.override_slope),
            tension_threshold=_env_float("EPFARM_TENSION_THRESHOLD", defaults.tension_threshold),
        )

    def validate(self) -> None:
        if self.decisive_advantage <= 0:
            raise ConfigurationError("decisive_advantage must be positive")
        if self.closeness < 0 or self.override < 0:
            raise ConfigurationError("closeness and override thresholds must be non-negative")
        if not 0 < self.confidence_cap <= MAX_CONFIDENCE:
            raise ConfigurationError(f"confidence_cap must lie in (0, {MAX_CONFIDENCE}]")
        if not 0 <= self.confidence_floor <= self.confidence_ceiling <= 1:
            raise ConfigurationError("confidence floor/ceiling must satisfy 0 <= floor <= ceiling <= 1")
        if self.confidence_scale <= 0:
            raise ConfigurationError("confidence_scale must be positive")
        if not 0 <= self.tension_threshold <= 1:
            raise ConfigurationError("tension_threshold must lie in [0, 1]")


@dataclass(frozen=True, slots=True)
class SignatureWeights:
    """Weights of the signed signature bias. Tunable, not a contract."""

    activity: float = 0.35
    wing: float = 0.25
    center: float = 0.2
    flank: float = 0.1
    material: float = 0.6
    space: float = 0.2
    archetype: float = 0.0


@dataclass(slots=True)
class SignatureSettings:
    """Signature extraction options."""

    enhanced: bool = field(
        default_factory=lambda: _env_bool("EPFARM_ENHANCED_SIGNATURES", True)
    )
    early_ply: int = field(default_factory=lambda: _env_int("EPFARM_EARLY_PLY", 30))
    late_ply: int = field(default_factory=lambda: _env_int("EPFARM_LATE_PLY", 80))
    dominance_archetype: float = 0.4
    region_archetype: float = 0.35
    weights: SignatureWeights = field(default_factory=SignatureWeights)


@dataclass(slots=True)
class SchedulerSettings:
    """Cycle pacing and shutdown configuration."""

    target_ply: int = field(default_factory=lambda: _env_int("EPFARM_TARGET_PLY", 20))
    min_rest_s: float = field(default_factory=lambda: _env_float("EPFARM_MIN_REST_S", 30.0))
    target_cycle_s: float = field(
        default_factory=lambda: _env_float("EPFARM_TARGET_CYCLE_S", 120.0)
    )
    failure_backoff_base_s: float = field(
        default_factory=lambda: _env_float("EPFARM_FAILURE_BACKOFF_BASE_S", 30.0)
    )
    failure_backoff_cap_s: float = field(
        default_factory=lambda: _env_float("EPFARM_FAILURE_BACKOFF_CAP_S", 300.0)
    )
    shutdown_grace_s: float = field(
        default_factory=lambda: _env_float("EPFARM_SHUTDOWN_GRACE_S", 20.0)
    )
    max_cycles: int | None = field(
        default_factory=lambda: _env_int("EPFARM_MAX_CYCLES", 0) or None
    )


@dataclass(slots=True)
class Settings:
    """Central configuration for the pattern farm worker."""

    api_token: str = field(default_factory=lambda: _env("EPFARM_API_TOKEN", "local-dev-token"))
    worker_id: str = field(
        default_factory=lambda: _env("EPFARM_WORKER_ID", f"worker-{socket.gethostname()}")
    )

    lichess: LichessSettings = field(default_factory=LichessSettings)
    chesscom: ChesscomSettings = field(default_factory=ChesscomSettings)
    local: LocalSettings = field(default_factory=LocalSettings)
    sources: SourceSettings = field(default_factory=SourceSettings)
    thresholds: Thresholds = field(default_factory=Thresholds.from_env)
    signatures: SignatureSettings = field(default_factory=SignatureSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)

    sink_backend: str = field(default_factory=lambda: _env("EPFARM_SINK", "duckdb"))
    duckdb_path: Path = field(
        default_factory=lambda: Path(_env("EPFARM_DUCKDB_PATH") or DEFAULT_DATA_DIR / "epfarm.duckdb")
    )
    ledger_path: Path = field(
        default_factory=lambda: Path(_env("EPFARM_LEDGER_PATH") or DEFAULT_DATA_DIR / "known_ids.json")
    )
    ledger_flush_every: int = field(
        default_factory=lambda: _env_int("EPFARM_LEDGER_FLUSH_EVERY", 100)
    )
    postgres_dsn: str | None = field(default_factory=lambda: os.getenv("EPFARM_POSTGRES_DSN") or None)
    postgres_host: str | None = field(default_factory=lambda: os.getenv("EPFARM_POSTGRES_HOST") or None)
    postgres_port: int = field(default_factory=lambda: _env_int("EPFARM_POSTGRES_PORT", 5432))
    postgres_db: str | None = field(default_factory=lambda: os.getenv("EPFARM_POSTGRES_DB") or None)
    postgres_user: str | None = field(default_factory=lambda: os.getenv("EPFARM_POSTGRES_USER") or None)
    postgres_password: str | None = field(
        default_factory=lambda: os.getenv("EPFARM_POSTGRES_PASSWORD") or None
    )
    postgres_sslmode: str = field(default_factory=lambda: _env("EPFARM_POSTGRES_SSLMODE", "disable"))
    postgres_connect_timeout_s: int = field(
        default_factory=lambda: _env_int("EPFARM_POSTGRES_CONNECT_TIMEOUT", 5)
    )

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for problems that must stop the worker."""
        if not self.sources.enabled:
            raise ConfigurationError("No sources enabled (EPFARM_SOURCES is empty)")
        for name in self.sources.enabled:
            if name not in SUPPORTED_SOURCES:
                raise ConfigurationError(f"Unsupported source: {name}")
        if "lichess" in self.sources.enabled and not self.lichess.players:
            raise ConfigurationError("Lichess source enabled without any players")
        if "chesscom" in self.sources.enabled and not self.chesscom.players:
            raise ConfigurationError("Chess.com source enabled without any players")
        if "local" in self.sources.enabled and self.local.pgn_dir is None:
            raise ConfigurationError("Local source enabled without EPFARM_LOCAL_PGN_DIR")
        if self.sink_backend not in SUPPORTED_SINKS:
            raise ConfigurationError(f"Unsupported sink backend: {self.sink_backend}")
        if self.sink_backend == "postgres" and not (
            self.postgres_dsn or (self.postgres_host and self.postgres_db)
        ):
            raise ConfigurationError("Postgres sink selected without connection settings")
        if self.scheduler.target_ply <= 0:
            raise ConfigurationError("target_ply must be positive")
        if self.sources.request_timeout_s <= 0:
            raise ConfigurationError("request_timeout_s must be positive")
        if self.sources.fetch_concurrency < 1 or self.sources.batch_limit < 1:
            raise ConfigurationError("fetch_concurrency and batch_limit must be at least 1")
        if self.ledger_flush_every < 1:
            raise ConfigurationError("ledger_flush_every must be at least 1")
        self.thresholds.validate()

    def ensure_dirs(self) -> None:
        if self.sink_backend == "duckdb":
            self.duckdb_path.parent.mkdir(parents=True, exist_ok=True)
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)


def get_settings(**overrides: object) -> Settings:
    """Return a Settings instance built from the environment and ``.env``."""
    load_dotenv()
    settings = Settings(**overrides)
    return settings


__all__ = [
    "ChesscomSettings",
    "LichessSettings",
    "LocalSettings",
    "SchedulerSettings",
    "Settings",
    "SignatureSettings",
    "SignatureWeights",
    "SourceSettings",
    "Thresholds",
    "get_settings",
]
