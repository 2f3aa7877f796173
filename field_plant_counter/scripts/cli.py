"""
Command-line front end.

    field-plant-counter count field.png --threshold 162 --distance 3
    field-plant-counter clusters field.png clusters.png --seed 7
    field-plant-counter detect-weed field.png crop.png weed.png out.png
    field-plant-counter batch img1.png img2.png --output-dir ./output
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import CounterConfig
from .errors import FieldCounterError
from .logging_utils import configure_logging
from .skill import PlantCounter
from .threshold import STRATEGIES, estimate_threshold
from .utils import CHANNELS, build_histogram, load_image, save_image
from .weed_detector import WeedDetector

logger = logging.getLogger(__name__)


def _counter(args: argparse.Namespace) -> PlantCounter:
    config = CounterConfig.from_json(args.config) if args.config else CounterConfig()
    config = config.replace(
        threshold=getattr(args, "threshold", None),
        distance=getattr(args, "distance", None),
        strategy=getattr(args, "strategy", None),
        channel=args.channel,
        render_seed=getattr(args, "seed", None),
        workers=getattr(args, "workers", None),
    )
    return PlantCounter.from_config(config)


def run_histogram(args: argparse.Namespace) -> int:
    counter = _counter(args)
    hist = build_histogram(load_image(args.image), counter.channel)
    for intensity, count in enumerate(hist.tolist()):
        print(f"{intensity}\t{count}")
    return 0


def run_threshold(args: argparse.Namespace) -> int:
    counter = _counter(args)
    hist = build_histogram(load_image(args.image), counter.channel)
    print(estimate_threshold(hist, counter.strategy))
    return 0


def run_classify(args: argparse.Namespace) -> int:
    counter = _counter(args)
    save_image(args.output, counter.classify(load_image(args.image)))
    return 0


def run_count(args: argparse.Namespace) -> int:
    counter = _counter(args)
    print(counter.count_plants(load_image(args.image)))
    return 0


def run_clusters(args: argparse.Namespace) -> int:
    counter = _counter(args)
    vis, n = counter.cluster_visualization(load_image(args.image))
    save_image(args.output, vis)
    print(n)
    return 0


def run_detect_weed(args: argparse.Namespace) -> int:
    detector = WeedDetector(
        load_image(args.target),
        load_image(args.crop_sample),
        load_image(args.weed_sample),
        channel=_counter(args).channel,
    )
    result = detector.detect()
    save_image(args.output, result.image)
    logger.info("Flagged %d pixels (%.2f%%)", result.detected_pixels, 100 * result.coverage)
    return 0


def run_batch(args: argparse.Namespace) -> int:
    counter = _counter(args)
    for result in counter.batch_process(args.images, args.output_dir):
        print(f"{result.source}\t{result.raw_count}\t{result.culled_count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=str, default=None, help="JSON CounterConfig file")
    common.add_argument("--channel", type=str, default=None, choices=sorted(CHANNELS))
    common.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    common.add_argument("--log-dir", type=str, default=None)

    counting = argparse.ArgumentParser(add_help=False)
    counting.add_argument("--threshold", type=int, default=None)
    counting.add_argument("--strategy", type=str, default=None, choices=sorted(STRATEGIES))
    counting.add_argument("--distance", type=float, default=None)
    counting.add_argument("--workers", type=int, default=None)

    p = argparse.ArgumentParser(
        prog="field-plant-counter",
        description="Count plants and flag weeds in crop field images",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_hist = sub.add_parser("histogram", parents=[common], help="Print the 256-bucket histogram")
    p_hist.add_argument("image")
    p_hist.set_defaults(func=run_histogram)

    p_thr = sub.add_parser("threshold", parents=[common], help="Print the estimated threshold")
    p_thr.add_argument("image")
    p_thr.add_argument("--strategy", type=str, default=None, choices=sorted(STRATEGIES))
    p_thr.set_defaults(func=run_threshold)

    p_cls = sub.add_parser("classify", parents=[common, counting], help="Write the binary image")
    p_cls.add_argument("image")
    p_cls.add_argument("output")
    p_cls.set_defaults(func=run_classify)

    p_cnt = sub.add_parser("count", parents=[common, counting], help="Print the raw plant count")
    p_cnt.add_argument("image")
    p_cnt.set_defaults(func=run_count)

    p_clu = sub.add_parser("clusters", parents=[common, counting],
                           help="Write the culled cluster image and print its count")
    p_clu.add_argument("image")
    p_clu.add_argument("output")
    p_clu.add_argument("--seed", type=int, default=None)
    p_clu.set_defaults(func=run_clusters)

    p_weed = sub.add_parser("detect-weed", parents=[common], help="Highlight weed pixels")
    p_weed.add_argument("target")
    p_weed.add_argument("crop_sample")
    p_weed.add_argument("weed_sample")
    p_weed.add_argument("output")
    p_weed.set_defaults(func=run_detect_weed)

    p_bat = sub.add_parser("batch", parents=[common, counting], help="Process many images")
    p_bat.add_argument("images", nargs="+")
    p_bat.add_argument("--output-dir", type=str, required=True)
    p_bat.add_argument("--seed", type=int, default=None)
    p_bat.set_defaults(func=run_batch)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level), log_dir=args.log_dir)
    try:
        return args.func(args)
    except (FieldCounterError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
