"""
Field Plant Counter - Main Module
=================================

High-level programmatic interface for counting plants in crop field images.

Quick Start:
    >>> from field_plant_counter import PlantCounter
    >>>
    >>> counter = PlantCounter(distance=3)          # threshold estimated per image
    >>> n = counter.count_plants(rgb)               # raw clusters, no culling
    >>> vis, n_culled = counter.cluster_visualization(rgb)
    >>>
    >>> result = counter.process_image("field.png", output_dir="./output")
    >>> print(result.to_json())

For field researchers:
    Point it at a photo of a field, get back a plant count plus two images:
    the vegetation mask and a colour-coded map where each plant has its own
    colour. Every processed image is also appended to counts.csv.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
import json

import numpy as np

from .classifier import classify
from .clustering import CULL_THRESHOLD, ClusterEngine, ClusterSet, render_clusters
from .config import CounterConfig
from .threshold import estimate_threshold, validate_strategy
from .utils import (
    DEFAULT_CHANNEL,
    as_image,
    build_histogram,
    channel_index,
    ensure_outputs,
    load_image,
    next_image_id_from_counts_csv,
    save_image,
    validate_distance,
    validate_threshold,
    write_count_row,
)

logger = logging.getLogger(__name__)


@dataclass
class CountResult:
    """
    Results for one processed image.

    Attributes:
        image_id: Sequential id within the output directory
        source: Path of the input image
        threshold: Threshold used for classification
        distance: Neighbour distance used for clustering
        raw_count: Clusters before culling (count_plants)
        culled_count: Clusters after culling (cluster_visualization)
        classified_path: Path to saved binary image
        clusters_path: Path to saved colour-coded cluster image
    """

    image_id: int
    source: Path
    threshold: int
    distance: float
    raw_count: int
    culled_count: int
    classified_path: Optional[Path] = None
    clusters_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (paths as strings)."""
        return {
            "image_id": self.image_id,
            "source": str(self.source),
            "threshold": self.threshold,
            "distance": self.distance,
            "raw_count": self.raw_count,
            "culled_count": self.culled_count,
            "classified_path": str(self.classified_path) if self.classified_path else None,
            "clusters_path": str(self.clusters_path) if self.clusters_path else None,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


class PlantCounter:
    """
    Counts plants in an image by thresholding and vote-based clustering.

    Attributes:
        threshold: Fixed threshold, or None to estimate one from each image
        distance: Neighbour distance D in pixels (default: 3)
        strategy: Threshold strategy when threshold is None (default: "mean")
        channel: Intensity channel (default: "green")
        cull_threshold: Minimum cluster size for the visualization (default: 25)
        workers: Threads used to score clusters; None or 1 is sequential
        render_seed: Seed for cluster colours; None for a new order each run

    Example:
        >>> # Fixed threshold, D=3
        >>> counter = PlantCounter(threshold=162, distance=3)
        >>> counter.count_plants(rgb)

        >>> # Estimate the threshold with the standard Otsu method
        >>> counter = PlantCounter(strategy="otsu_textbook")
    """

    def __init__(
        self,
        threshold: Optional[int] = None,
        distance: float = 3,
        strategy: str = "mean",
        channel: str = DEFAULT_CHANNEL,
        cull_threshold: int = CULL_THRESHOLD,
        workers: Optional[int] = None,
        render_seed: Optional[int] = None,
    ):
        self.threshold = None if threshold is None else validate_threshold(threshold)
        self.distance = validate_distance(distance)
        self.strategy = validate_strategy(strategy)
        channel_index(channel)
        self.channel = channel
        self.cull_threshold = cull_threshold
        self.workers = workers
        self.render_seed = render_seed

    @classmethod
    def from_config(cls, config: CounterConfig) -> "PlantCounter":
        return cls(**config.to_dict())

    @contextmanager
    def _engine(self) -> Iterator[ClusterEngine]:
        if self.workers is None or self.workers <= 1:
            yield ClusterEngine(self.distance, cull_threshold=self.cull_threshold)
            return
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            yield ClusterEngine(
                self.distance, cull_threshold=self.cull_threshold, executor=pool
            )

    def resolve_threshold(self, image) -> int:
        """The fixed threshold, or one estimated from the image's histogram."""
        if self.threshold is not None:
            return self.threshold
        return estimate_threshold(build_histogram(image, self.channel), self.strategy)

    def classify(self, image) -> np.ndarray:
        """Binary (white foreground / black background) copy of the image."""
        img = as_image(image)
        return classify(img, self.resolve_threshold(img), self.channel)

    def cluster(self, image, cull: bool = False) -> Tuple[np.ndarray, ClusterSet]:
        """
        Classify and cluster an image.

        Returns:
            (binary image, ClusterSet), culled when ``cull`` is True
        """
        binary = self.classify(image)
        with self._engine() as engine:
            clusters = engine.cluster_image(binary, self.channel)
            if cull:
                engine.cull(clusters)
        return binary, clusters

    def count_plants(self, image) -> int:
        """Number of clusters found, without culling."""
        return len(self.cluster(image)[1])

    def cluster_visualization(
        self, image, rng: Optional[np.random.Generator] = None
    ) -> Tuple[np.ndarray, int]:
        """
        Colour-coded cluster image and the cluster count after culling.

        Args:
            image: Input image
            rng: Generator for the colour order (defaults to render_seed)
        """
        binary, clusters = self.cluster(image, cull=True)
        if rng is None:
            rng = np.random.default_rng(self.render_seed)
        return render_clusters(binary, clusters, rng), len(clusters)

    def process_image(
        self,
        image_path: Union[Path, str],
        output_dir: Union[Path, str],
        image_id: Optional[int] = None,
    ) -> CountResult:
        """
        Count plants in one image file and save all outputs.

        Writes ``images/image_XXXX_classified.png`` and
        ``images/image_XXXX_clusters.png`` and appends a row to
        ``counts.csv`` in ``output_dir``.

        Args:
            image_path: Image to load (PNG/JPEG/GeoTIFF)
            output_dir: Directory for output files
            image_id: Optional id (auto-incremented if not provided)

        Returns:
            CountResult with counts and output paths

        Raises:
            FileNotFoundError: If image_path doesn't exist
            InvalidImage: If the file can't be decoded or is empty
        """
        image_path = Path(image_path)
        output_dir = Path(output_dir)

        image = load_image(image_path)
        threshold = self.resolve_threshold(image)

        images_dir, counts_csv = ensure_outputs(output_dir)
        if image_id is None:
            image_id = next_image_id_from_counts_csv(counts_csv)

        binary = classify(image, threshold, self.channel)
        with self._engine() as engine:
            clusters = engine.cluster_image(binary, self.channel)
            raw_count = len(clusters)
            engine.cull(clusters)
        culled_count = len(clusters)
        vis = render_clusters(binary, clusters, np.random.default_rng(self.render_seed))

        classified_path = save_image(images_dir / f"image_{image_id:04d}_classified.png", binary)
        clusters_path = save_image(images_dir / f"image_{image_id:04d}_clusters.png", vis)

        write_count_row(
            counts_csv,
            [
                image_id,
                str(image_path),
                self.channel,
                threshold,
                self.distance,
                raw_count,
                culled_count,
                classified_path.name,
                clusters_path.name,
            ],
        )
        logger.info(
            "%s: threshold=%d raw=%d culled=%d", image_path.name, threshold, raw_count, culled_count
        )

        return CountResult(
            image_id=image_id,
            source=image_path,
            threshold=threshold,
            distance=self.distance,
            raw_count=raw_count,
            culled_count=culled_count,
            classified_path=classified_path,
            clusters_path=clusters_path,
        )

    def batch_process(
        self, image_paths: List[Union[Path, str]], output_dir: Union[Path, str]
    ) -> List[CountResult]:
        """
        Process several images into the same output directory.

        Example:
            >>> results = counter.batch_process(["a.png", "b.png"], "./output")
        """
        return [self.process_image(p, output_dir) for p in image_paths]
