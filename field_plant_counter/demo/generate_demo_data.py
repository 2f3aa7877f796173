#!/usr/bin/env python3
"""
Demo Data Generator
===================

Generate synthetic field imagery for testing and demos.

This script creates:
1. A synthetic crop field: soil background with rows of square green plants
2. Crop and weed reference samples with distinct green intensity ranges
3. A field with weed patches mixed into the crop

Run this to generate demo data before trying the CLI.
"""

from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
import cv2
import rasterio
from rasterio.transform import from_origin

from field_plant_counter.scripts.utils import save_image

# RGB colours
SOIL_COLOR = (120, 80, 50)
CROP_GREEN = (60, 190, 60)
WEED_GREEN = (40, 110, 40)


def generate_synthetic_field(
    width: int = 120,
    height: int = 80,
    n_rows: int = 3,
    plants_per_row: int = 5,
    plant_size: int = 6,
    seed: int = 42,
) -> Tuple[np.ndarray, List[Dict[str, int]]]:
    """
    Generate a synthetic field image with square plants laid out in rows.

    Soil keeps its green channel below 100 and plants keep theirs at or
    above 180, so any threshold in between separates them. Plants are
    spaced far apart relative to the default neighbour distance, so every
    plant becomes exactly one cluster.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        n_rows: Number of plant rows
        plants_per_row: Plants in each row
        plant_size: Side of each square plant in pixels
        seed: Random seed for reproducibility

    Returns:
        (RGB image, list of plant records {"x", "y", "size"})
    """
    rng = np.random.default_rng(seed)

    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:] = SOIL_COLOR
    noise = rng.normal(0, 6, (height, width, 3)).astype(np.int16)
    image = np.clip(image.astype(np.int16) + noise, 0, 99).astype(np.uint8)

    plants = []
    row_pitch = height // (n_rows + 1)
    col_pitch = width // (plants_per_row + 1)
    for r in range(n_rows):
        y = (r + 1) * row_pitch - plant_size // 2
        for p in range(plants_per_row):
            x = (p + 1) * col_pitch - plant_size // 2
            shade = int(rng.integers(180, 230))
            cv2.rectangle(
                image,
                (x, y),
                (x + plant_size - 1, y + plant_size - 1),
                (CROP_GREEN[0], shade, CROP_GREEN[2]),
                -1,
            )
            plants.append({"x": x, "y": y, "size": plant_size})

    return image, plants


def generate_reference_samples(
    size: int = 20, seed: int = 42
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Crop and weed sample patches.

    The crop sample's green channel lies in [170, 200), the weed sample's
    in [90, 120), so the two never overlap.

    Returns:
        (crop_sample, weed_sample) RGB images
    """
    rng = np.random.default_rng(seed)

    crop = np.empty((size, size, 3), dtype=np.uint8)
    crop[:] = CROP_GREEN
    crop[..., 1] = rng.integers(170, 200, (size, size))

    weed = np.empty((size, size, 3), dtype=np.uint8)
    weed[:] = WEED_GREEN
    weed[..., 1] = rng.integers(90, 120, (size, size))
    return crop, weed


def generate_weedy_field(
    width: int = 60, height: int = 40, seed: int = 42
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Crop-coloured field with a weed patch in its left half.

    Returns:
        (RGB image, boolean mask of weed pixels)
    """
    rng = np.random.default_rng(seed)
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:] = CROP_GREEN
    image[..., 1] = rng.integers(170, 200, (height, width))

    weed = np.zeros((height, width), dtype=bool)
    weed[height // 4 : 3 * height // 4, : width // 2] = True
    image[weed] = WEED_GREEN
    image[..., 1][weed] = rng.integers(90, 120, int(weed.sum()))
    return image, weed


def write_geotiff(output_path: Path, image: np.ndarray, pixel_size_m: float = 0.01) -> Path:
    """Save an RGB image as a 3-band GeoTIFF."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    transform = from_origin(0, 0, pixel_size_m, pixel_size_m)

    with rasterio.open(
        output_path,
        "w",
        driver="GTiff",
        height=image.shape[0],
        width=image.shape[1],
        count=3,
        dtype=image.dtype,
        crs="EPSG:4326",
        transform=transform,
    ) as dst:
        for i in range(3):
            dst.write(image[:, :, i], i + 1)
    return output_path


def main():
    """Generate demo data."""
    print("=" * 60)
    print("Field Plant Counter - Demo Data Generator")
    print("=" * 60)
    print()

    demo_dir = Path(__file__).parent / "data"

    field, plants = generate_synthetic_field(width=300, height=200, n_rows=4, plants_per_row=10)
    write_geotiff(demo_dir / "demo_field.tif", field)
    save_image(demo_dir / "demo_field.png", field)

    crop, weed = generate_reference_samples()
    save_image(demo_dir / "crop_sample.png", crop)
    save_image(demo_dir / "weed_sample.png", weed)

    weedy, _ = generate_weedy_field(width=200, height=120)
    save_image(demo_dir / "weedy_field.png", weedy)

    print(f"  Plants: {len(plants)}")
    print(f"  Files written to: {demo_dir}")
    print()
    print("Next steps:")
    print(f"  field-plant-counter count {demo_dir / 'demo_field.png'} --threshold 150")
    print(
        f"  field-plant-counter detect-weed {demo_dir / 'weedy_field.png'} "
        f"{demo_dir / 'crop_sample.png'} {demo_dir / 'weed_sample.png'} highlighted.png"
    )


if __name__ == "__main__":
    main()
