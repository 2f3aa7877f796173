"""
config.py - Counter configuration.

A frozen dataclass holding every tunable of the counter, loadable from a
JSON file such as::

    {"threshold": 162, "distance": 3, "strategy": "mean", "channel": "green"}
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .clustering import CULL_THRESHOLD
from .errors import ConfigurationError
from .threshold import validate_strategy
from .utils import DEFAULT_CHANNEL, channel_index, validate_distance, validate_threshold


@dataclass(frozen=True)
class CounterConfig:
    """
    Immutable settings for PlantCounter and the CLI.

    Attributes:
        threshold: Fixed split value, or None to estimate one per image
        distance: Neighbour distance D in pixels
        strategy: Threshold strategy used when threshold is None
        channel: Intensity channel ("red", "green" or "blue")
        cull_threshold: Minimum cluster size kept by the visualization path
        workers: Threads used to score clusters (None/1 = sequential)
        render_seed: Seed for the cluster colour order (None = random)
    """

    threshold: Optional[int] = None
    distance: float = 3
    strategy: str = "mean"
    channel: str = DEFAULT_CHANNEL
    cull_threshold: int = CULL_THRESHOLD
    workers: Optional[int] = None
    render_seed: Optional[int] = None

    def __post_init__(self):
        if self.threshold is not None:
            validate_threshold(self.threshold)
        validate_distance(self.distance)
        validate_strategy(self.strategy)
        channel_index(self.channel)
        if self.cull_threshold < 0:
            raise ConfigurationError(f"cull_threshold must be >= 0, got {self.cull_threshold}")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")

    @classmethod
    def demo_preset(cls) -> "CounterConfig":
        """Fixed threshold 162 and D=3, the settings used for the potato field demo."""
        return cls(threshold=162, distance=3)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CounterConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "CounterConfig":
        """
        Load a configuration from a JSON object file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the JSON is invalid or holds bad values
        """
        path = Path(path)
        with open(path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must hold a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def replace(self, **changes) -> "CounterConfig":
        """Copy with some fields changed; None values are ignored."""
        data = self.to_dict()
        data.update({k: v for k, v in changes.items() if v is not None})
        return CounterConfig.from_dict(data)
