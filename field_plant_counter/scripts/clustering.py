"""
Cluster Engine
==============

Groups the foreground points of a classified image into plants.

Points are visited one at a time in scan order. Each existing cluster
scores the candidate point by summing ``1 / distance`` over its members
that lie within the neighbour distance ``D``; the strictly highest score
wins, ties going to the lowest cluster id. A point no cluster votes for
seeds a new cluster. Each decision depends on every earlier one, so the
scan itself is sequential. Only the per-cluster scoring of a single point
may be spread over an executor; the scores are collected first and then
reduced in cluster-id order.

Culling (used by the visualization path only) removes clusters with fewer
than ``cull_threshold`` points and offers their points back to the
surviving clusters. Orphans are scored against the survivors as they were
before re-clustering started, never seed new clusters, and are dropped
when nobody claims them.
"""

import logging
import threading
from concurrent.futures import Executor
from functools import partial
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import cv2

from .classifier import classify, foreground_mask, foreground_points
from .errors import ClusteringCancelled, ConfigurationError
from .utils import DEFAULT_CHANNEL, validate_distance

logger = logging.getLogger(__name__)

Point = Tuple[int, int]

# Clusters smaller than this are culled before rendering
CULL_THRESHOLD = 25

_INITIAL_CAPACITY = 16


class Cluster:
    """
    A plant candidate: an id plus the points assigned to it.

    Members are kept in a growable (N, 2) int64 buffer together with their
    bounding box, which lets ``vote`` skip clusters that are too far away
    without touching their points.
    """

    def __init__(self, cluster_id: int, point: Point):
        self.cluster_id = cluster_id
        self._coords = np.empty((_INITIAL_CAPACITY, 2), dtype=np.int64)
        self._size = 0
        self._xmin = self._ymin = None
        self._xmax = self._ymax = None
        self.add(point)

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"Cluster(id={self.cluster_id}, points={self._size})"

    @property
    def points(self) -> np.ndarray:
        """(N, 2) array of member (x, y) points, in insertion order."""
        return self._coords[: self._size]

    def add(self, point: Point) -> None:
        x, y = int(point[0]), int(point[1])
        if self._size == len(self._coords):
            grown = np.empty((2 * len(self._coords), 2), dtype=np.int64)
            grown[: self._size] = self._coords
            self._coords = grown
        self._coords[self._size] = (x, y)
        self._size += 1
        if self._xmin is None:
            self._xmin = self._xmax = x
            self._ymin = self._ymax = y
        else:
            self._xmin = min(self._xmin, x)
            self._xmax = max(self._xmax, x)
            self._ymin = min(self._ymin, y)
            self._ymax = max(self._ymax, y)

    def vote(self, point: Point, distance: float) -> float:
        """
        Score a candidate point.

        Sum of ``1 / d`` over members at Euclidean distance ``d <= distance``
        from the point; 0.0 when no member is that close. Read-only.
        """
        x, y = point
        dx = max(self._xmin - x, 0, x - self._xmax)
        dy = max(self._ymin - y, 0, y - self._ymax)
        if dx * dx + dy * dy > distance * distance:
            return 0.0

        pts = self.points
        d = np.hypot(pts[:, 0] - x, pts[:, 1] - y)
        near = d[(d <= distance) & (d > 0)]
        if near.size == 0:
            return 0.0
        return float(np.sum(1.0 / near))


def _vote(cluster: Cluster, point: Point, distance: float) -> float:
    return cluster.vote(point, distance)


class ClusterSet:
    """
    Mapping of cluster id to Cluster for a single clustering run.

    Ids start at 1 and a new cluster gets ``len(self) + 1``. Iteration is in
    ascending id order.
    """

    def __init__(self):
        self._clusters: Dict[int, Cluster] = {}

    def __len__(self) -> int:
        return len(self._clusters)

    def __iter__(self) -> Iterator[Cluster]:
        return iter(self._clusters.values())

    def __contains__(self, cluster_id: int) -> bool:
        return cluster_id in self._clusters

    def __getitem__(self, cluster_id: int) -> Cluster:
        return self._clusters[cluster_id]

    def ids(self) -> List[int]:
        return list(self._clusters)

    def seed(self, point: Point) -> Cluster:
        cluster = Cluster(len(self._clusters) + 1, point)
        self._clusters[cluster.cluster_id] = cluster
        return cluster

    def remove(self, cluster_id: int) -> Cluster:
        return self._clusters.pop(cluster_id)

    @property
    def point_count(self) -> int:
        return sum(len(c) for c in self._clusters.values())

    def membership(self) -> Dict[int, List[Point]]:
        """Plain-data snapshot: cluster id -> list of (x, y) points."""
        return {
            cid: [tuple(p) for p in c.points.tolist()]
            for cid, c in self._clusters.items()
        }

    def sizes(self) -> Dict[int, int]:
        return {cid: len(c) for cid, c in self._clusters.items()}


def elect(scores: Dict[int, float]) -> Optional[int]:
    """
    Pick the winning cluster from a set of scores.

    Strict maximum over scores greater than zero; among equal scores the
    lowest cluster id wins. Returns None when no cluster scored above zero.
    """
    winner = None
    best = 0.0
    for cluster_id in sorted(scores):
        if scores[cluster_id] > best:
            winner = cluster_id
            best = scores[cluster_id]
    return winner


class ClusterEngine:
    """
    Distance-and-vote clustering of foreground points.

    Every call to ``cluster_points``/``cluster_image`` builds a fresh
    ClusterSet; nothing is carried over between calls.

    Attributes:
        distance: Neighbour distance D (pixels)
        cull_threshold: Minimum size of a cluster that survives culling
        executor: Optional executor used to score clusters in parallel
        cancel_event: Optional event checked between scan iterations
        progress: Optional callback ``(done, total)``
        progress_every: Points between progress callbacks

    Example:
        >>> engine = ClusterEngine(distance=3)
        >>> clusters = engine.cluster_image(binary)
        >>> engine.cull(clusters)
        >>> len(clusters)
    """

    def __init__(
        self,
        distance: float,
        cull_threshold: int = CULL_THRESHOLD,
        executor: Optional[Executor] = None,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[Callable[[int, int], None]] = None,
        progress_every: int = 1000,
    ):
        self.distance = validate_distance(distance)
        if int(cull_threshold) < 0:
            raise ConfigurationError(f"cull_threshold must be >= 0, got {cull_threshold}")
        self.cull_threshold = int(cull_threshold)
        self.executor = executor
        self.cancel_event = cancel_event
        self.progress = progress
        self.progress_every = max(1, int(progress_every))

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ClusteringCancelled("Clustering cancelled.")

    def score(self, clusters: Union[ClusterSet, List[Cluster]], point: Point) -> Dict[int, float]:
        """
        Vote score of every cluster for one point.

        Clusters are only read here. With an executor the scores are
        computed concurrently and collected in cluster order.
        """
        members = list(clusters)
        vote = partial(_vote, point=point, distance=self.distance)
        if self.executor is None:
            votes = [vote(c) for c in members]
        else:
            votes = list(self.executor.map(vote, members))
        return {c.cluster_id: v for c, v in zip(members, votes)}

    def assign(self, clusters: ClusterSet, point: Point) -> Cluster:
        """Add one point to the winning cluster, or seed a new one."""
        if len(clusters) == 0:
            return clusters.seed(point)
        winner = elect(self.score(clusters, point))
        if winner is None:
            return clusters.seed(point)
        clusters[winner].add(point)
        return clusters[winner]

    def cluster_points(self, points) -> ClusterSet:
        """
        Cluster points in the order given.

        Args:
            points: Iterable or (N, 2) array of (x, y)

        Returns:
            New ClusterSet

        Raises:
            ClusteringCancelled: If the cancel event gets set
        """
        pts = np.asarray(points, dtype=np.int64).reshape(-1, 2)
        total = len(pts)
        clusters = ClusterSet()
        for done, (x, y) in enumerate(pts.tolist(), start=1):
            self._check_cancelled()
            self.assign(clusters, (x, y))
            if self.progress is not None and (done % self.progress_every == 0 or done == total):
                self.progress(done, total)

        logger.debug("Clustered %d points into %d clusters (D=%g)", total, len(clusters), self.distance)
        return clusters

    def cluster_image(self, binary: np.ndarray, channel: Union[str, int] = DEFAULT_CHANNEL) -> ClusterSet:
        """Cluster the white pixels of a classified image in column-major order."""
        return self.cluster_points(foreground_points(foreground_mask(binary, channel)))

    def cull(self, clusters: ClusterSet) -> List[Point]:
        """
        Remove undersized clusters and re-home their points.

        Clusters with fewer than ``cull_threshold`` points are removed. Each
        orphaned point is then scored against the surviving clusters (as
        they stood when culling began) and joins the winner. Orphans never
        seed clusters.

        Args:
            clusters: ClusterSet, modified in place

        Returns:
            Orphan points that no surviving cluster claimed (dropped)
        """
        undersized = [c for c in clusters if len(c) < self.cull_threshold]
        orphans: List[Point] = [tuple(p) for c in undersized for p in c.points.tolist()]
        for c in undersized:
            clusters.remove(c.cluster_id)

        survivors = list(clusters)
        claims: List[Tuple[int, Point]] = []
        dropped: List[Point] = []
        for point in orphans:
            self._check_cancelled()
            winner = elect(self.score(survivors, point))
            if winner is None:
                dropped.append(point)
            else:
                claims.append((winner, point))

        for cluster_id, point in claims:
            clusters[cluster_id].add(point)

        logger.debug(
            "Culled %d clusters below %d points; %d orphans re-homed, %d dropped",
            len(undersized),
            self.cull_threshold,
            len(claims),
            len(dropped),
        )
        return dropped


def cluster_palette() -> np.ndarray:
    """
    Fixed palette of saturated colours (RGB uint8), no black or white.

    Built from the full OpenCV hue wheel at two brightness levels.
    """
    hues = np.arange(180, dtype=np.uint8)
    rows = []
    for value in (255, 170):
        hsv = np.stack(
            [hues, np.full_like(hues, 255), np.full_like(hues, value)], axis=-1
        )
        rows.append(cv2.cvtColor(hsv.reshape(1, -1, 3), cv2.COLOR_HSV2RGB).reshape(-1, 3))
    palette = np.unique(np.vstack(rows), axis=0)
    keep = ~(np.all(palette == 0, axis=1) | np.all(palette == 255, axis=1))
    return palette[keep]


PALETTE = cluster_palette()


def render_clusters(
    binary: np.ndarray,
    clusters: ClusterSet,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Paint every cluster's points in its own colour on a copy of a binary image.

    Colours are drawn from PALETTE in a random order per call; pass a seeded
    generator for reproducible output. Colours repeat only once the palette
    is exhausted.

    Returns:
        (H, W, 3) RGB image
    """
    if binary.ndim == 2:
        canvas = cv2.cvtColor(binary, cv2.COLOR_GRAY2RGB)
    else:
        canvas = binary.copy()

    rng = rng if rng is not None else np.random.default_rng()
    colours = PALETTE[rng.permutation(len(PALETTE))]
    for i, cluster in enumerate(clusters):
        pts = cluster.points
        canvas[pts[:, 1], pts[:, 0]] = colours[i % len(colours)]
    return canvas


def count_plants(
    image,
    threshold: int,
    distance: float,
    channel: Union[str, int] = DEFAULT_CHANNEL,
    executor: Optional[Executor] = None,
) -> int:
    """
    Count plants without culling.

    Classifies the image, clusters the foreground and returns the raw
    number of clusters. Note that cluster_visualization culls and can
    therefore report a different number for the same inputs.

    Example:
        >>> count_plants(rgb, threshold=162, distance=3)
    """
    binary = classify(image, threshold, channel)
    clusters = ClusterEngine(distance, executor=executor).cluster_image(binary, channel)
    return len(clusters)


def cluster_visualization(
    image,
    threshold: int,
    distance: float,
    channel: Union[str, int] = DEFAULT_CHANNEL,
    rng: Optional[np.random.Generator] = None,
    cull_threshold: int = CULL_THRESHOLD,
    executor: Optional[Executor] = None,
) -> Tuple[np.ndarray, int]:
    """
    Classify, cluster, cull and render.

    Returns:
        (colour-coded RGB image, number of clusters after culling)
    """
    binary = classify(image, threshold, channel)
    engine = ClusterEngine(distance, cull_threshold=cull_threshold, executor=executor)
    clusters = engine.cluster_image(binary, channel)
    engine.cull(clusters)
    return render_clusters(binary, clusters, rng), len(clusters)
