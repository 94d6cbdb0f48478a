# stringtuner Configuration
# All default values and constants

from dataclasses import dataclass, field, is_dataclass

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1


class ConfigurationError(ValueError):
    """Invalid tuner setup: bad note table, sample rate, frame length or thresholds."""


@dataclass(frozen=True)
class NoteRef:
    """One entry of the reference note table"""
    name: str
    frequency: float  # Hz, must be > 0


# Open strings of a standard-tuned 6-string guitar, low to high
STANDARD_GUITAR_NOTES = (
    NoteRef("E", 82.41),
    NoteRef("A", 110.00),
    NoteRef("D", 146.83),
    NoteRef("G", 196.00),
    NoteRef("B", 246.94),
    NoteRef("E", 329.63),
)


@dataclass
class GateConfig:
    """Volume gate"""
    energy_threshold: float = 0.008   # RMS must exceed this; low enough to follow a decaying string


@dataclass
class EstimatorConfig:
    """Autocorrelation pitch estimator"""
    edge_threshold: float = 0.1       # |sample| below this marks the trimmed frame edges
    freq_min: float = 60.0            # Accepted range, inclusive (Hz)
    freq_max: float = 400.0           # Accepted range, exclusive (Hz) - low E to high E with margin


@dataclass
class StabilityConfig:
    """Consecutive-frame lock filter"""
    delta_hz: float = 3.0             # Max frame-to-frame wobble still counted as the same note
    threshold: int = 3                # Consistent frames needed to lock (low = faster detection)


@dataclass
class AudioConfig:
    """Frame format expected from the host"""
    sample_rate: int = 44100
    frame_size: int = 2048


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    gate: GateConfig = field(default_factory=GateConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    notes: list[NoteRef] = field(default_factory=lambda: list(STANDARD_GUITAR_NOTES))
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)


def coerce_note(entry) -> NoteRef:
    """Build a NoteRef from a NoteRef, a (name, freq) pair or a dict.
    Dicts may use the legacy {"note", "freq"} keys."""
    if isinstance(entry, NoteRef):
        return entry
    if isinstance(entry, dict):
        name = entry.get("name", entry.get("note"))
        freq = entry.get("frequency", entry.get("freq"))
    else:
        try:
            name, freq = entry
        except (TypeError, ValueError):
            raise ConfigurationError(f"Unrecognized note entry: {entry!r}")
    if name is None or freq is None:
        raise ConfigurationError(f"Note entry needs a name and a frequency: {entry!r}")
    try:
        return NoteRef(str(name), float(freq))
    except (TypeError, ValueError):
        raise ConfigurationError(f"Note frequency is not a number: {entry!r}")


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; note tables are coerced into NoteRef entries."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current):
            if isinstance(value, dict):
                apply_dict_to_dataclass(current, value)
            else:
                log_event("WARN", "Config", "Ignoring section that is not an object", section=key, value=value)
            continue

        if key == "notes":
            if not isinstance(value, list):
                log_event("WARN", "Config", "Ignoring note table that is not a list", value=value)
                continue
            setattr(target, key, [coerce_note(entry) for entry in value])
            continue

        setattr(target, key, value)


def _clamped(value, default: float, low: float, high: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        value = default
    return max(low, min(high, value))


def migrate_config(config: Config, loaded_version, data: dict | None = None) -> None:
    """Upgrade older config structures to the current schema.
    Fills defaults for missing values and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    if version < 1 and isinstance(data, dict):
        # Version 0 kept the lock threshold at the top level
        legacy_threshold = data.get("stability_threshold")
        if legacy_threshold is not None and "stability" not in data:
            config.stability.threshold = legacy_threshold

    if config.gate.energy_threshold is None:
        config.gate.energy_threshold = GateConfig.energy_threshold
    if config.estimator.edge_threshold is None:
        config.estimator.edge_threshold = EstimatorConfig.edge_threshold
    if config.stability.delta_hz is None:
        config.stability.delta_hz = StabilityConfig.delta_hz
    if config.stability.threshold is None:
        config.stability.threshold = StabilityConfig.threshold
    if not config.notes:
        config.notes = list(STANDARD_GUITAR_NOTES)
    if config.log_level is None:
        config.log_level = "INFO"

    # Always clamp edge trimming into the usable amplitude range
    config.estimator.edge_threshold = _clamped(
        config.estimator.edge_threshold, EstimatorConfig.edge_threshold, 0.0001, 1.0
    )
    try:
        config.stability.threshold = max(1, int(config.stability.threshold))
    except (TypeError, ValueError):
        config.stability.threshold = StabilityConfig.threshold

    config.version = CURRENT_CONFIG_VERSION


def validate_config(config: Config) -> None:
    """Raise ConfigurationError for any setting the engine cannot run with."""
    for name, value in (
        ("gate.energy_threshold", config.gate.energy_threshold),
        ("estimator.edge_threshold", config.estimator.edge_threshold),
        ("estimator.freq_min", config.estimator.freq_min),
        ("estimator.freq_max", config.estimator.freq_max),
        ("stability.delta_hz", config.stability.delta_hz),
        ("stability.threshold", config.stability.threshold),
        ("audio.sample_rate", config.audio.sample_rate),
        ("audio.frame_size", config.audio.frame_size),
    ):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not isinstance(config.notes, list):
        raise ConfigurationError(f"Note table must be a list, got {config.notes!r}")
    if not config.notes:
        raise ConfigurationError("Note table must not be empty")
    for note in config.notes:
        if not note.frequency > 0:
            raise ConfigurationError(f"Note {note.name!r} has non-positive frequency {note.frequency}")
    if not config.audio.sample_rate > 0:
        raise ConfigurationError(f"Sample rate must be positive, got {config.audio.sample_rate}")
    if config.audio.frame_size < 3:
        raise ConfigurationError(f"Frame size must be at least 3 samples, got {config.audio.frame_size}")
    if not config.gate.energy_threshold > 0:
        raise ConfigurationError(f"Energy threshold must be positive, got {config.gate.energy_threshold}")
    if not config.estimator.edge_threshold > 0:
        raise ConfigurationError(f"Edge threshold must be positive, got {config.estimator.edge_threshold}")
    if not 0 < config.estimator.freq_min < config.estimator.freq_max:
        raise ConfigurationError(
            f"Frequency range [{config.estimator.freq_min}, {config.estimator.freq_max}) is empty or invalid"
        )
    if config.stability.delta_hz < 0:
        raise ConfigurationError(f"Stability delta must not be negative, got {config.stability.delta_hz}")
    if config.stability.threshold < 1:
        raise ConfigurationError(f"Stability threshold must be at least 1, got {config.stability.threshold}")
