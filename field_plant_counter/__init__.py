"""
Field Plant Counter
===================

Counts plants and flags weeds in digital images of crop fields.

Key Features:
- 256-bucket intensity histograms on a chosen channel (green by default)
- Threshold estimation: closest-to-mean, Otsu (legacy variant) and textbook Otsu
- Binary foreground/background classification
- Distance-weighted vote clustering of vegetation pixels into plants
- Culling of undersized clusters and colour-coded cluster maps
- Bayesian weed detection against crop and weed reference samples

Example:
    >>> from field_plant_counter import PlantCounter, detect_weed
    >>> counter = PlantCounter(threshold=162, distance=3)
    >>> counter.count_plants(rgb)
    >>> vis, n = counter.cluster_visualization(rgb)
    >>> highlighted = detect_weed(field, crop_patch, weed_patch)
"""

__version__ = "1.0.0"

from .scripts.errors import (
    FieldCounterError,
    InvalidImage,
    ConfigurationError,
    ClusteringCancelled,
)
from .scripts.utils import build_histogram, load_image, save_image
from .scripts.threshold import (
    estimate_threshold,
    threshold_closest_to_mean,
    threshold_otsu_literal,
    threshold_otsu_textbook,
)
from .scripts.classifier import classify
from .scripts.clustering import (
    Cluster,
    ClusterSet,
    ClusterEngine,
    CULL_THRESHOLD,
    count_plants,
    cluster_visualization,
    render_clusters,
)
from .scripts.weed_detector import WeedDetector, WeedResult, detect_weed, posterior_table
from .scripts.config import CounterConfig
from .scripts.skill import PlantCounter, CountResult

__all__ = [
    "FieldCounterError",
    "InvalidImage",
    "ConfigurationError",
    "ClusteringCancelled",
    "build_histogram",
    "load_image",
    "save_image",
    "estimate_threshold",
    "threshold_closest_to_mean",
    "threshold_otsu_literal",
    "threshold_otsu_textbook",
    "classify",
    "Cluster",
    "ClusterSet",
    "ClusterEngine",
    "CULL_THRESHOLD",
    "count_plants",
    "cluster_visualization",
    "render_clusters",
    "WeedDetector",
    "WeedResult",
    "detect_weed",
    "posterior_table",
    "CounterConfig",
    "PlantCounter",
    "CountResult",
]
