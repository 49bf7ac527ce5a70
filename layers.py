"""Data model shared by the selector, compositor and assembler."""

import enum
import pathlib
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

SPECIES_TRAIT = "species"


class Role(str, enum.Enum):
    """Placement geometry class of a layer."""

    BACKGROUND = "background"
    BASE = "base"
    FEATURE = "feature"
    OUTFIT = "outfit"
    ACCESSORY = "accessory"
    SPECIAL = "special"


class Kind(str, enum.Enum):
    VECTOR = "vector"
    RASTER = "raster"


# Recognised component file extensions
EXTENSION_KINDS = {
    ".svg": Kind.VECTOR,
    ".png": Kind.RASTER,
    ".jpg": Kind.RASTER,
    ".jpeg": Kind.RASTER,
}


def kind_for(name: str) -> Optional[Kind]:
    """Return the image kind of a file name, or None if it is not an image."""
    return EXTENSION_KINDS.get(pathlib.PurePosixPath(name).suffix.lower())


@dataclass(frozen=True)
class LayerSpec:
    category: str
    role: Role
    optional: bool = False


class LayerStack(Sequence[LayerSpec]):
    """Ordered, immutable sequence of layers.

    Index order is z-order: the first layer is drawn first (bottom) and the
    last one is drawn on top. The order is fixed at construction.
    """

    def __init__(self, layers: Iterable[LayerSpec]):
        self._layers: Tuple[LayerSpec, ...] = tuple(layers)

    @classmethod
    def from_config(cls, table) -> "LayerStack":
        """Build a stack from ``(category, role, optional)`` tuples."""
        layers = []
        for entry in table:
            category, role = entry[0], entry[1]
            optional = bool(entry[2]) if len(entry) > 2 else False
            layers.append(LayerSpec(category, Role(role), optional))
        return cls(layers)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return LayerStack(self._layers[index])
        return self._layers[index]

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[LayerSpec]:
        return iter(self._layers)

    def __repr__(self) -> str:
        return f"LayerStack({[layer.category for layer in self._layers]})"

    @property
    def categories(self) -> List[str]:
        return [layer.category for layer in self._layers]


@dataclass(frozen=True)
class ComponentDescriptor:
    locator: str
    name: str
    kind: Optional[Kind]


@dataclass(frozen=True)
class SelectedComponent:
    descriptor: ComponentDescriptor
    category: str
    role: Role

    @property
    def trait_value(self) -> str:
        """Display name without its extension."""
        return pathlib.PurePosixPath(self.descriptor.name).stem or self.descriptor.name


@dataclass(frozen=True)
class Trait:
    trait_type: str
    value: str

    def to_dict(self) -> dict:
        return {"trait_type": self.trait_type, "value": self.value}


class FailureKind(str, enum.Enum):
    EMPTY_LAYER = "empty_layer"
    NO_RENDERABLE_COMPONENT = "no_renderable_component"
    DECODE_FAILURE = "decode_failure"
    DRAW_FAILURE = "draw_failure"
    TRANSFORM_FAILURE = "transform_failure"
    SINK_FAILURE = "sink_failure"
    CATASTROPHIC = "catastrophic"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    step: str
    message: str


class GenerationError(Exception):
    kind = FailureKind.CATASTROPHIC


class EmptyLayer(GenerationError):
    kind = FailureKind.EMPTY_LAYER


class NoRenderableComponent(GenerationError):
    kind = FailureKind.NO_RENDERABLE_COMPONENT


class DecodeFailure(GenerationError):
    kind = FailureKind.DECODE_FAILURE


class DrawFailure(GenerationError):
    kind = FailureKind.DRAW_FAILURE


class TransformFailure(GenerationError):
    kind = FailureKind.TRANSFORM_FAILURE


class SinkFailure(GenerationError):
    kind = FailureKind.SINK_FAILURE


class LayerState(str, enum.Enum):
    NOT_PROCESSED = "not_processed"
    SELECTED = "selected"
    DRAWN = "drawn"
    SKIPPED = "skipped"


class SkipReason(str, enum.Enum):
    DUPLICATE = "duplicate"
    NO_COMPONENT = "no_component"
    DECODE_FAILURE = "decode_failure"
    DRAW_FAILURE = "draw_failure"


@dataclass
class LayerOutcome:
    """Per-layer state: NOT_PROCESSED -> SELECTED -> DRAWN, or -> SKIPPED."""

    layer: LayerSpec
    state: LayerState = LayerState.NOT_PROCESSED
    component: Optional[SelectedComponent] = None
    reason: Optional[SkipReason] = None
    detail: str = ""

    def select(self, component: SelectedComponent) -> None:
        if self.state is not LayerState.NOT_PROCESSED:
            raise ValueError(f"Cannot select {self.layer.category} in state {self.state.value}")
        self.component = component
        self.state = LayerState.SELECTED

    def drawn(self) -> None:
        if self.state is not LayerState.SELECTED:
            raise ValueError(f"Cannot draw {self.layer.category} in state {self.state.value}")
        self.state = LayerState.DRAWN

    def skip(self, reason: SkipReason, detail: str = "") -> None:
        if self.state is LayerState.DRAWN:
            raise ValueError(f"Cannot skip {self.layer.category}, already drawn")
        self.state = LayerState.SKIPPED
        self.reason = reason
        self.detail = detail

    @property
    def trait(self) -> Optional[Trait]:
        if self.state is not LayerState.DRAWN:
            return None
        return Trait(self.layer.category, self.component.trait_value)


@dataclass(frozen=True)
class GenerationResult:
    identifier: object
    species: str
    primary_artifact_path: str
    pixelated_artifact_path: str
    traits: Tuple[Trait, ...]
    image_url: str = ""
    pixelated_url: str = ""
    metadata_path: str = ""
    metadata: dict = field(default_factory=dict, compare=False)
    failures: Tuple[Failure, ...] = ()

    @property
    def ok(self) -> bool:
        return not any(f.kind is FailureKind.CATASTROPHIC for f in self.failures)
