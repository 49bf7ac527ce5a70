import contextlib
import io
import logging
import pathlib
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import requests
from PIL import Image

import config
from layers import (
    SPECIES_TRAIT,
    DecodeFailure,
    DrawFailure,
    Kind,
    LayerOutcome,
    LayerStack,
    LayerState,
    Role,
    SkipReason,
    Trait,
)
from placement import place
from selector import select_component

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255, 255)
FETCH_TIMEOUT = 30


class CanvasBusy(RuntimeError):
    pass


class Canvas:
    """Fixed-size RGBA drawing surface owned by its caller.

    One canvas serves one generation at a time; concurrent generations need
    their own instances.
    """

    def __init__(self, width: int = config.CANVAS_WIDTH, height: int = config.CANVAS_HEIGHT):
        self.width = width
        self.height = height
        self.image = Image.new("RGBA", (width, height), WHITE)
        self._lock = threading.Lock()

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def clear(self, color=WHITE) -> None:
        self.image.paste(color, (0, 0, self.width, self.height))

    @contextlib.contextmanager
    def acquire(self):
        """Clear the surface to opaque white and hold it for one generation."""
        if not self._lock.acquire(blocking=False):
            raise CanvasBusy("Canvas is already in use by another generation")
        try:
            self.clear()
            yield self
        finally:
            self._lock.release()

    def snapshot(self) -> Image.Image:
        return self.image.copy()


def fetch_bytes(locator: str) -> bytes:
    """Read component bytes from an HTTP(S) URL or a local path."""
    if locator.startswith(("http://", "https://")):
        response = requests.get(locator, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
        return response.content
    return pathlib.Path(locator).read_bytes()


def load_component_image(locator: str, kind: Kind) -> Image.Image:
    """Fetch and decode a component into an RGBA image.

    Raises:
        DecodeFailure: the bytes could not be fetched or decoded.
    """
    try:
        raw = fetch_bytes(locator)
        if kind is Kind.VECTOR:
            # cairosvg needs the native cairo library, only load it for vector art
            import cairosvg

            raw = cairosvg.svg2png(bytestring=raw)
        image = Image.open(io.BytesIO(raw))
        image.load()
        return image.convert("RGBA")
    except Exception as e:
        raise DecodeFailure(f"Failed to load image from {locator}: {e}") from e


@dataclass
class CompositeResult:
    image: Image.Image
    traits: List[Trait]
    outcomes: List[LayerOutcome]

    @property
    def drawn_categories(self) -> List[str]:
        return [o.layer.category for o in self.outcomes if o.state is LayerState.DRAWN]


class Compositor:
    """Draws one component per layer onto a canvas in stack order."""

    def __init__(
        self,
        repository,
        loader: Callable[[str, Kind], Image.Image] = load_component_image,
        rng: Optional[np.random.Generator] = None,
        debug_dir: Optional[pathlib.Path] = None,
    ):
        self.repository = repository
        self.loader = loader
        self.rng = rng if rng is not None else np.random.default_rng()
        self.debug_dir = debug_dir

    def composite(
        self, layers: LayerStack, species: str, canvas: Canvas, identifier=None
    ) -> CompositeResult:
        """Composite every layer of the stack for a species.

        Required layers without usable components raise ``EmptyLayer`` or
        ``NoRenderableComponent``; any other per-layer fault skips the layer.
        """
        with canvas.acquire():
            outcomes = []
            drawn = set()

            for index, layer in enumerate(layers):
                outcome = LayerOutcome(layer)
                outcomes.append(outcome)
                logger.debug(
                    f"Processing layer ({index + 1}/{len(layers)}): {layer.category}"
                )

                if layer.category in drawn:
                    logger.warning(f"Skipping {layer.category}, category already drawn")
                    outcome.skip(SkipReason.DUPLICATE)
                    continue

                component = select_component(layer, species, self.repository, self.rng)
                if component is None:
                    outcome.skip(SkipReason.NO_COMPONENT)
                    continue
                outcome.select(component)

                self._draw(outcome, canvas)
                if outcome.state is LayerState.DRAWN:
                    drawn.add(layer.category)
                    self._save_intermediate(canvas, index, layer.category, identifier)

            traits = [Trait(SPECIES_TRAIT, species)]
            traits.extend(o.trait for o in outcomes if o.state is LayerState.DRAWN)
            return CompositeResult(canvas.snapshot(), traits, outcomes)

    def _draw(self, outcome: LayerOutcome, canvas: Canvas) -> None:
        component = outcome.component
        descriptor = component.descriptor
        try:
            image = self.loader(descriptor.locator, descriptor.kind)
        except Exception as e:
            logger.error(f"Failed to load {component.category}: {e}")
            self._fail(outcome, canvas, SkipReason.DECODE_FAILURE, str(e))
            return

        try:
            draw_layer(canvas, image, component.role, component.category)
        except Exception as e:
            logger.error(f"Failed to draw {component.category}: {e}")
            self._fail(outcome, canvas, SkipReason.DRAW_FAILURE, str(e))
            return

        outcome.drawn()
        logger.info(f"Drew {component.category}: {component.trait_value}")

    def _fail(self, outcome, canvas, reason, detail) -> None:
        outcome.skip(reason, detail)
        if outcome.layer.role is Role.BACKGROUND:
            logger.warning("No background was drawn, filling canvas with white")
            canvas.clear()

    def _save_intermediate(self, canvas, index, category, identifier) -> None:
        if self.debug_dir is None:
            return
        path = pathlib.Path(self.debug_dir) / f"layer_{index + 1}_{category}_{identifier}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            canvas.image.save(path)
        except OSError as e:
            logger.warning(f"Failed to save intermediate layer {path}: {e}")


def draw_layer(canvas: Canvas, image: Image.Image, role: Role, category: str) -> None:
    """Scale an image into its placement rectangle and composite it over the canvas."""
    try:
        rect = place(role, category, image.width, image.height, canvas.width, canvas.height)
        x, y, w, h = rect.box()
        layer = image.convert("RGBA")
        if layer.size != (w, h):
            layer = layer.resize((w, h), Image.Resampling.LANCZOS)
        # alpha_composite rejects negative offsets, so clip the source instead
        source = (max(0, -x), max(0, -y))
        if source[0] >= w or source[1] >= h:
            return
        canvas.image.alpha_composite(layer, dest=(max(0, x), max(0, y)), source=source)
    except Exception as e:
        raise DrawFailure(f"Failed to draw {category}: {e}") from e
