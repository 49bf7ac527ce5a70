"""Check that component images carry the transparency their layer needs.

Backgrounds should be opaque (under 5% transparent pixels); every other
layer needs large transparent areas (at least 30%) to stack correctly.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from PIL import Image

import config
from layers import Kind, LayerStack, Role
from compositor import load_component_image
from selector import list_candidates, renderable

logger = logging.getLogger(__name__)

BACKGROUND_MAX_TRANSPARENCY = 5.0
LAYER_MIN_TRANSPARENCY = 30.0


def transparency_stats(image: Image.Image) -> Dict[str, Any]:
    """Count pixels whose alpha is below 255."""
    alpha = np.asarray(image.convert("RGBA"))[:, :, 3]
    total = int(alpha.size)
    transparent = int(np.count_nonzero(alpha < 255))
    return {
        "width": image.width,
        "height": image.height,
        "transparent_pixels": transparent,
        "total_pixels": total,
        "transparency_percent": transparent / total * 100 if total else 0.0,
    }


def transparency_warnings(role: Role, percent: float) -> List[str]:
    if role is Role.BACKGROUND and percent > BACKGROUND_MAX_TRANSPARENCY:
        return [
            f"Background image has {percent:.2f}% transparency. "
            "Background images should generally be fully opaque."
        ]
    if role is not Role.BACKGROUND and percent < LAYER_MIN_TRANSPARENCY:
        return [
            f"This {role.value} has only {percent:.2f}% transparency. "
            "Non-background layers should have significant transparent areas to layer correctly."
        ]
    return []


def check_image(
    image: Optional[Image.Image], role: Role, name: str = "", kind: Kind = Kind.RASTER
) -> Dict[str, Any]:
    """Transparency report of one component image; vector art needs no image."""
    role = Role(role)
    if kind is Kind.VECTOR:
        return {"file": name, "layer": role.value, "is_svg": True, "appropriate": True, "warnings": []}

    stats = transparency_stats(image)
    percent = stats["transparency_percent"]
    if role is Role.BACKGROUND:
        appropriate = percent < BACKGROUND_MAX_TRANSPARENCY
    else:
        appropriate = percent >= LAYER_MIN_TRANSPARENCY

    if (image.width, image.height) != (config.CANVAS_WIDTH, config.CANVAS_HEIGHT):
        logger.warning(
            f"{name}: size is {image.width}x{image.height}, "
            f"expected {config.CANVAS_WIDTH}x{config.CANVAS_HEIGHT} for consistent layering"
        )

    return {
        "file": name,
        "layer": role.value,
        "is_svg": False,
        **stats,
        "appropriate": appropriate,
        "warnings": transparency_warnings(role, percent),
    }


def check_components(
    repository, layers: LayerStack, species: str, loader=load_component_image
) -> pd.DataFrame:
    """Check every candidate component of every layer of a species."""
    rows = []
    for layer in layers:
        for candidate in renderable(list_candidates(repository, layer, species)):
            if candidate.kind is Kind.VECTOR:
                row = check_image(None, layer.role, candidate.name, Kind.VECTOR)
            else:
                try:
                    image = loader(candidate.locator, candidate.kind)
                except Exception as e:
                    logger.error(f"Error checking transparency for {candidate.name}: {e}")
                    continue
                row = check_image(image, layer.role, candidate.name)
            rows.append({"category": layer.category, **row})
    return pd.DataFrame(rows)


def main() -> None:
    from storage import LocalRepository

    layers = LayerStack.from_config(config.LAYERS)
    repository = LocalRepository(config.ASSETS_PATH)

    for species in config.AVAILABLE_SPECIES:
        print(f"\n=== TRANSPARENCY REPORT: {species} ===")
        report = check_components(repository, layers, species)
        if report.empty:
            print("No components found")
            continue
        columns = [c for c in ("category", "file", "width", "height", "transparency_percent") if c in report]
        print(report[columns].to_string(index=False))
        for _, row in report.iterrows():
            for warning in row["warnings"]:
                print(f"  ⚠️ {row['category']}/{row['file']}: {warning}")

    print("Transparency check complete")


if __name__ == "__main__":
    main()
