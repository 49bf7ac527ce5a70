import json
import pathlib
from typing import Any, Dict, Iterable, List

import pandas as pd

from config import BASE_NAME, DESCRIPTION
from layers import SPECIES_TRAIT, GenerationResult, Trait

# Constants
NONE_VALUE = "none"
METADATA_FILE = "metadata.csv"


def display_name(species: str, identifier) -> str:
    return f"{species[:1].upper()}{species[1:]} {BASE_NAME} #{identifier}"


def build_metadata(
    identifier,
    species: str,
    image_url: str,
    pixelated_url: str,
    traits: Iterable[Trait],
) -> Dict[str, Any]:
    """Create the metadata document of one generated NFT."""
    return {
        "id": identifier,
        "name": display_name(species, identifier),
        "description": DESCRIPTION.format(species=species),
        "images": {"2D": image_url, "pixelated": pixelated_url},
        "attributes": [trait.to_dict() for trait in traits],
    }


def write_metadata(document: Dict[str, Any], path: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
    return path


def clean_column_name(name: str) -> str:
    """Convert snake_case to Title Case."""
    return name.replace("_", " ").title()


def traits_frame(results: Iterable[GenerationResult], categories: List[str]) -> pd.DataFrame:
    """One row per generated NFT, one column per category.

    Categories that were not drawn are filled with ``NONE_VALUE``.
    """
    rows = []
    for result in results:
        row = {"id": result.identifier, "species": result.species, "ok": result.ok}
        row.update({category: NONE_VALUE for category in categories})
        for trait in result.traits:
            if trait.trait_type != SPECIES_TRAIT:
                row[trait.trait_type] = trait.value
        rows.append(row)

    columns = ["id", "species", "ok"] + [c for c in categories if c not in ("id", "species", "ok")]
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=columns)
    extra = [c for c in df.columns if c not in columns]
    return df[columns + extra]


def load_metadata(edition_path: pathlib.Path) -> pd.DataFrame:
    """Read back the trait table saved for an edition.

    Values stay strings; cells of categories an NFT never had become ``NONE_VALUE``.
    """
    df = pd.read_csv(
        pathlib.Path(edition_path) / METADATA_FILE, dtype=str, keep_default_na=False
    )
    return df.replace("", NONE_VALUE)
