"""Configuration system for procstats."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from procstats.states import RunState, StatsType


@dataclass
class ViewConfig:
    """Options of one engine run, persisted across sessions.

    These three values fully parameterize a refresh.
    """

    show_system: bool = False  # Only used by the background category
    use_uss: bool = False
    stats_type: str = "background"  # background/foreground/cached

    @property
    def category(self) -> StatsType:
        return StatsType[self.stats_type.upper()]


@dataclass
class LoadingConfig:
    """Snapshot loading configuration."""

    min_coverage_hours: float = 24.0  # Merge history until this much is covered
    stats_dir: str = ""  # Empty means <data_dir>/stats

    @property
    def min_coverage_ms(self) -> int:
        return int(self.min_coverage_hours * 60 * 60 * 1000)


@dataclass
class RankingConfig:
    """Ranked list bounds."""

    max_items: int = 40  # Longest list ever shown
    min_percent_of_weight: float = 2.0  # Entries below this % of the top weight are hidden


@dataclass
class StateMultipliers:
    """Per run-state weighting applied to memory cost.

    Multiplier reasoning:
    - persistent/top (1.0): Interactive or always-resident, full weight
    - important foreground (0.9): User-perceptible work
    - home/last activity/heavy weight (0.7): Kept around for the user
    - important background/backup (0.6): Useful, not perceptible
    - service/receiver (0.5): Background work on behalf of apps
    - service restarting (0.4): Not doing work yet
    - cached (0.25): Reclaimable at any time
    """

    persistent: float = 1.0
    top: float = 1.0
    important_foreground: float = 0.9
    important_background: float = 0.6
    backup: float = 0.6
    heavy_weight: float = 0.7
    service: float = 0.5
    service_restarting: float = 0.4
    receiver: float = 0.5
    home: float = 0.7
    last_activity: float = 0.7
    cached_activity: float = 0.25
    cached_activity_client: float = 0.25
    cached_empty: float = 0.25

    def get(self, state: RunState) -> float:
        """Get multiplier for a run state, defaulting to 1.0."""
        return getattr(self, state.label, 1.0)


@dataclass
class SystemConfig:
    """Process-level settings."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    view: ViewConfig = field(default_factory=ViewConfig)
    loading: LoadingConfig = field(default_factory=LoadingConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    weights: StateMultipliers = field(default_factory=StateMultipliers)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procstats"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def data_dir(self) -> Path:
        """Data directory."""
        return Path.home() / ".local" / "share" / "procstats"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procstats"

    @property
    def stats_dir(self) -> Path:
        """Directory holding current and historical snapshot files."""
        if self.loading.stats_dir:
            return Path(self.loading.stats_dir).expanduser()
        return self.data_dir / "stats"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "procstats.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ["view", "loading", "ranking", "weights", "system"]:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() agree.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            view=_load_view_config(data.get("view", {})),
            loading=_load_loading_config(data.get("loading", {})),
            ranking=_load_ranking_config(data.get("ranking", {})),
            weights=_load_weights(data.get("weights", {})),
            system=_load_system_config(data.get("system", {})),
        )


def _load_view_config(data: dict) -> ViewConfig:
    """Load view options, validating the category name."""
    d = ViewConfig()
    stats_type = data.get("stats_type", d.stats_type)
    valid_types = {t.label for t in StatsType}
    if stats_type not in valid_types:
        raise ValueError(f"Invalid stats_type: {stats_type!r}. Must be one of {valid_types}")
    return ViewConfig(
        show_system=bool(data.get("show_system", d.show_system)),
        use_uss=bool(data.get("use_uss", d.use_uss)),
        stats_type=stats_type,
    )


def _load_loading_config(data: dict) -> LoadingConfig:
    """Load snapshot loading config."""
    d = LoadingConfig()
    min_coverage_hours = data.get("min_coverage_hours", d.min_coverage_hours)
    if min_coverage_hours < 0:
        raise ValueError(f"min_coverage_hours must be >= 0, got {min_coverage_hours}")
    return LoadingConfig(
        min_coverage_hours=min_coverage_hours,
        stats_dir=data.get("stats_dir", d.stats_dir),
    )


def _load_ranking_config(data: dict) -> RankingConfig:
    """Load ranking bounds."""
    d = RankingConfig()
    max_items = data.get("max_items", d.max_items)
    min_percent = data.get("min_percent_of_weight", d.min_percent_of_weight)
    if max_items < 1:
        raise ValueError(f"max_items must be >= 1, got {max_items}")
    if not 0 <= min_percent <= 100:
        raise ValueError(f"min_percent_of_weight must be within 0-100, got {min_percent}")
    return RankingConfig(max_items=max_items, min_percent_of_weight=min_percent)


def _load_weights(data: dict) -> StateMultipliers:
    """Load run-state multipliers, rejecting unknown states and negative values."""
    defaults = StateMultipliers()
    known = {f.name for f in fields(defaults)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown run states in [weights]: {sorted(unknown)}")

    values = {}
    for name in known:
        value = data.get(name, getattr(defaults, name))
        if value < 0:
            raise ValueError(f"weights.{name} must be >= 0, got {value}")
        values[name] = float(value)
    return StateMultipliers(**values)


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config."""
    d = SystemConfig()
    return SystemConfig(
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )
