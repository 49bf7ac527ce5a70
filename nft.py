import logging
import pathlib
import shutil
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from PIL import Image, ImageDraw, ImageFont
from progressbar import progressbar

import config
from compositor import Canvas, Compositor, load_component_image
from layers import (
    Failure,
    FailureKind,
    GenerationError,
    GenerationResult,
    LayerStack,
    SkipReason,
    Trait,
)
from metadata import (
    METADATA_FILE,
    NONE_VALUE,
    build_metadata,
    clean_column_name,
    load_metadata,
    traits_frame,
    write_metadata,
)
from pixelate import pixelate_file
from storage import create_storage

logger = logging.getLogger(__name__)

RANDOM_SPECIES = "random"
ERROR_FILL = "#FF00FF"
ERROR_TRAITS = (Trait("error", "generation_failed"),)

SKIP_FAILURES = {
    SkipReason.DECODE_FAILURE: FailureKind.DECODE_FAILURE,
    SkipReason.DRAW_FAILURE: FailureKind.DRAW_FAILURE,
}


def make_rng(seed=None) -> np.random.Generator:
    """Seedable random source for species resolution and component selection."""
    return np.random.default_rng(seed)


def resolve_species(
    request: Optional[str],
    available: List[str],
    default: str,
    rng: np.random.Generator,
) -> str:
    """Resolve a species request: a name from the set, "random", or nothing."""
    if request is None or not str(request).strip():
        return default

    request = str(request).strip().lower()
    if request == RANDOM_SPECIES:
        if not available:
            return default
        species = available[int(rng.integers(len(available)))]
        logger.info(f"Randomly selected species: {species}")
        return species
    if request in available:
        return request

    logger.warning(f"Unknown species '{request}', using default species: {default}")
    return default


def draw_error_image(canvas: Canvas, identifier) -> Image.Image:
    """Fill the canvas with a marked error image."""
    canvas.clear(ERROR_FILL)
    draw = ImageDraw.Draw(canvas.image)
    font = ImageFont.load_default()
    text = f"Error generating NFT #{identifier}"
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    position = ((canvas.width - (right - left)) / 2, (canvas.height - (bottom - top)) / 2)
    draw.text(position, text, fill="black", font=font)
    return canvas.snapshot()


class NFTAssembler:
    """Runs one full generation per identifier.

    Steps: resolve species, composite, save, pixelate, upload and write
    metadata. Each step absorbs its own faults; only a required layer
    without components aborts the image, which is then replaced by an
    error image.
    """

    def __init__(
        self,
        repository,
        sink=None,
        layers: Optional[LayerStack] = None,
        canvas: Optional[Canvas] = None,
        output_path: pathlib.Path = config.OUTPUT_PATH,
        rng: Optional[np.random.Generator] = None,
        species_request: Optional[str] = config.SPECIES,
        available_species: Optional[List[str]] = None,
        default_species: str = config.DEFAULT_SPECIES,
        loader=load_component_image,
        pixelate_fn: Callable = pixelate_file,
        pixel_size: int = config.PIXEL_SIZE,
        skip_pixelation: bool = config.SKIP_PIXELATION,
        debug_layers: bool = config.DEBUG_LAYERS,
    ):
        self.layers = layers if layers is not None else LayerStack.from_config(config.LAYERS)
        self.canvas = canvas if canvas is not None else Canvas()
        self.output_path = pathlib.Path(output_path)
        self.rng = rng if rng is not None else make_rng()
        self.sink = sink
        self.species_request = species_request
        self.available_species = (
            list(available_species) if available_species is not None else list(config.AVAILABLE_SPECIES)
        )
        self.default_species = default_species
        self.pixelate_fn = pixelate_fn
        self.pixel_size = pixel_size
        self.skip_pixelation = skip_pixelation
        self.compositor = Compositor(
            repository,
            loader=loader,
            rng=self.rng,
            debug_dir=self.output_path if debug_layers else None,
        )

    def resolve_species(self, species_override: Optional[str] = None) -> str:
        request = species_override if species_override else self.species_request
        return resolve_species(request, self.available_species, self.default_species, self.rng)

    def generate(self, identifier, species_override: Optional[str] = None) -> GenerationResult:
        logger.info(f"======= GENERATING NFT #{identifier} =======")
        failures: List[Failure] = []
        try:
            self.output_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create output folder {self.output_path}: {e}")
            failures.append(Failure(FailureKind.SINK_FAILURE, "output", str(e)))

        # Step 1 and 2: species, composite and save
        species, image_path, traits = self._generate_image(identifier, species_override, failures)

        # Step 3: pixelated version
        pixelated_path = self.output_path / f"{species}_nft_{identifier}_pixelated.png"
        pixelated_path = self._pixelate(image_path, pixelated_path, failures)

        # Step 4: upload
        image_url, pixelated_url = self._upload(
            identifier, species, image_path, pixelated_path, failures
        )

        # Step 5: metadata
        document = build_metadata(identifier, species, image_url, pixelated_url, traits)
        metadata_path = self.output_path / f"{species}_nft_{identifier}.json"
        try:
            write_metadata(document, metadata_path)
            logger.info(f"Metadata saved: {metadata_path}")
        except OSError as e:
            logger.error(f"Failed to save metadata {metadata_path}: {e}")
            failures.append(Failure(FailureKind.SINK_FAILURE, "metadata", str(e)))
            metadata_path = ""

        logger.info(f"======= NFT #{identifier} GENERATION COMPLETE =======")
        return GenerationResult(
            identifier=identifier,
            species=species,
            primary_artifact_path=str(image_path),
            pixelated_artifact_path=str(pixelated_path),
            traits=tuple(traits),
            image_url=image_url,
            pixelated_url=pixelated_url,
            metadata_path=str(metadata_path),
            metadata=document,
            failures=tuple(failures),
        )

    def _generate_image(
        self, identifier, species_override, failures: List[Failure]
    ) -> Tuple[str, pathlib.Path, List[Trait]]:
        try:
            species = self.resolve_species(species_override)
            logger.info(f"Generating NFT for species: {species}")
            result = self.compositor.composite(self.layers, species, self.canvas, identifier)
            for outcome in result.outcomes:
                if outcome.reason in SKIP_FAILURES:
                    failures.append(
                        Failure(SKIP_FAILURES[outcome.reason], outcome.layer.category, outcome.detail)
                    )
            image_path = self._save(result.image, species, identifier)
            return species, image_path, result.traits
        except Exception as e:
            kind = e.kind if isinstance(e, GenerationError) else FailureKind.CATASTROPHIC
            logger.error(f"Failed to generate image for NFT #{identifier}: {e}")
            failures.append(Failure(kind, "composite", str(e)))
            if kind is not FailureKind.CATASTROPHIC:
                failures.append(Failure(FailureKind.CATASTROPHIC, "composite", "generation_failed"))
            return "error", self._emergency_image(identifier, failures), list(ERROR_TRAITS)

    def _save(self, image: Image.Image, species: str, identifier) -> pathlib.Path:
        path = self.output_path / f"{species}_nft_{identifier}.png"
        try:
            image.save(path)
        except OSError as e:
            logger.error(f"Failed to save image to {path}: {e}")
            path = self.output_path / f"fallback_{species}_{identifier}.png"
            image.save(path)
        logger.info(f"Generated 2D NFT image: {path}")
        return path

    def _emergency_image(self, identifier, failures: List[Failure]) -> pathlib.Path:
        try:
            with self.canvas.acquire():
                image = draw_error_image(self.canvas, identifier)
        except Exception as e:
            logger.error(f"Canvas unavailable for error image: {e}")
            image = draw_error_image(Canvas(self.canvas.width, self.canvas.height), identifier)
        path = self.output_path / f"emergency_{identifier}.png"
        try:
            image.save(path)
        except OSError as e:
            logger.error(f"Failed to save emergency image to {path}: {e}")
            failures.append(Failure(FailureKind.SINK_FAILURE, "emergency", str(e)))
            return path
        logger.warning(f"Created emergency fallback image: {path}")
        return path

    def _pixelate(
        self, image_path: pathlib.Path, pixelated_path: pathlib.Path, failures: List[Failure]
    ) -> pathlib.Path:
        if self.skip_pixelation:
            logger.info("Skipping pixelation, copying original image")
            try:
                shutil.copyfile(image_path, pixelated_path)
            except OSError as e:
                logger.error(f"Failed to copy original image: {e}")
                return image_path
            return pixelated_path
        try:
            self.pixelate_fn(image_path, pixelated_path, self.pixel_size)
            if not pathlib.Path(pixelated_path).exists():
                raise FileNotFoundError(f"Pixelated image missing: {pixelated_path}")
        except Exception as e:
            logger.error(f"Pixelation failed, falling back to original image: {e}")
            failures.append(Failure(FailureKind.TRANSFORM_FAILURE, "pixelate", str(e)))
            try:
                shutil.copyfile(image_path, pixelated_path)
            except OSError as copy_error:
                logger.error(f"Failed to copy original image as fallback: {copy_error}")
                return image_path
        return pixelated_path

    def _upload(
        self, identifier, species, image_path, pixelated_path, failures: List[Failure]
    ) -> Tuple[str, str]:
        image_url, pixelated_url = str(image_path), str(pixelated_path)
        if self.sink is None:
            return image_url, pixelated_url

        folder = f"nfts/{species}/{identifier}"
        try:
            image_url = self.sink.upload(image_path, f"{folder}/image.png")
            pixelated_url = self.sink.upload(pixelated_path, f"{folder}/image_pixelated.png")
        except Exception as e:
            logger.error(f"Upload failed: {e}")
            failures.append(Failure(FailureKind.SINK_FAILURE, "upload", str(e)))
        return image_url, pixelated_url


def generate_batch(
    assembler: NFTAssembler, identifiers: Iterable, species: Optional[str] = None
) -> Tuple[List[GenerationResult], dict]:
    """Generate NFTs one after another; a failing identifier never stops the batch."""
    identifiers = list(identifiers)
    results = []
    summary = {"total": len(identifiers), "succeeded": 0, "failed": 0}

    for identifier in progressbar(identifiers):
        try:
            result = assembler.generate(identifier, species)
        except Exception as e:
            logger.error(f"Failed to generate NFT #{identifier}: {e}")
            summary["failed"] += 1
            continue
        results.append(result)
        if result.ok:
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1

    return results, summary


def generate_images(
    assembler: NFTAssembler, edition: str, count: int, species: Optional[str] = None
) -> pd.DataFrame:
    """Generate an edition of NFTs and return its trait table.

    Args:
        assembler: Assembler writing into the edition folder
        edition: Edition name, used for the CSV location
        count: Number of NFTs to generate
        species: Species request for every NFT

    Returns:
        DataFrame with one row of traits per generated NFT
    """
    results, summary = generate_batch(assembler, range(1, count + 1), species)
    print(f"Generated {summary['succeeded']} of {summary['total']} NFTs ({summary['failed']} failed)")

    metadata_df = traits_frame(results, assembler.layers.categories)
    metadata_path = assembler.output_path / METADATA_FILE
    metadata_df.to_csv(metadata_path, index=False)
    print(f"Trait table for edition '{edition}' saved to {metadata_path}")

    return metadata_df


def generate_rarity_stats(metadata_df: pd.DataFrame, categories: List[str]) -> None:
    """Display the observed trait distribution of every category."""
    for category in ["species"] + list(categories):
        if category not in metadata_df.columns:
            continue

        print(f"\n{clean_column_name(category)}:")
        actual_dist = _get_actual_distribution(metadata_df[category])
        for trait, share in actual_dist.items():
            print(f"    {trait}: {share:.4f}")

        missing = actual_dist.get(NONE_VALUE, 0.0)
        print(f"  Missing: {missing:.4f}")


def edition_stats(edition_path: pathlib.Path, categories: List[str]) -> pd.DataFrame:
    """Reload a saved edition's trait table and display its statistics."""
    metadata_df = load_metadata(edition_path)
    generate_rarity_stats(metadata_df, categories)
    return metadata_df


def _get_actual_distribution(series: pd.Series) -> dict:
    """Calculate actual trait distribution from metadata."""
    if series.empty:
        return {}
    return {str(k): float(v) for k, v in series.value_counts(normalize=True).items()}


def main() -> None:
    """Main NFT generation workflow."""
    logging.basicConfig(level=logging.WARNING)

    num_nfts = int(input("How many NFTs would you like to create? "))
    edition_name = input("What would you like to call this edition?: ").strip()
    species = input("Species (indigo, green, random or empty for default): ").strip() or None

    repository, sink = create_storage(config.STORAGE)
    assembler = NFTAssembler(
        repository,
        sink=sink,
        output_path=config.OUTPUT_PATH / f"edition_{edition_name}",
    )

    print("Starting generation...")
    generate_images(assembler, edition_name, num_nfts, species)

    print("\n=== Trait Statistics ===")
    edition_stats(assembler.output_path, assembler.layers.categories)

    print("✅ Task complete!")


# Run the main function
if __name__ == "__main__":
    main()
