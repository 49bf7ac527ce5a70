"""Shared test fixtures."""

import pytest
from PIL import Image

from compositor import Canvas
from layers import ComponentDescriptor, LayerSpec, LayerStack, Role, kind_for
from nft import NFTAssembler, make_rng


class FakeRepository:
    """Serves fixed candidate lists keyed by (species, category)."""

    def __init__(self, components=None, errors=None):
        self.components = components or {}
        self.errors = errors or {}
        self.calls = []

    def list(self, species, category):
        self.calls.append((species, category))
        if (species, category) in self.errors:
            raise self.errors[(species, category)]
        return [
            ComponentDescriptor(f"mem://{species}/{category}/{name}", name, kind_for(name))
            for name in self.components.get((species, category), [])
        ]


class FakeSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload(self, local_path, destination_key):
        if self.fail:
            raise ConnectionError("storage unreachable")
        self.uploads.append((str(local_path), destination_key))
        return f"https://cdn.example/{destination_key}"


def solid_loader(size=(100, 100), color=(200, 40, 40, 255), failing=()):
    """Loader returning a solid image; names in ``failing`` raise instead."""

    def load(locator, kind):
        if any(locator.endswith(name) for name in failing):
            raise ValueError(f"cannot decode {locator}")
        return Image.new("RGBA", size, color)

    return load


@pytest.fixture
def indigo_layers():
    return LayerStack(
        [
            LayerSpec("background", Role.BACKGROUND),
            LayerSpec("head", Role.BASE),
            LayerSpec("eyes", Role.FEATURE),
        ]
    )


@pytest.fixture
def indigo_repository():
    return FakeRepository(
        {
            ("indigo", "background"): ["stars.png"],
            ("indigo", "head"): ["round.png"],
            ("indigo", "eyes"): ["sleepy.png"],
        }
    )


@pytest.fixture
def canvas():
    return Canvas(64, 64)


@pytest.fixture
def make_assembler(tmp_path):
    def build(repository, layers, **kwargs):
        kwargs.setdefault("loader", solid_loader())
        kwargs.setdefault("rng", make_rng(7))
        kwargs.setdefault("canvas", Canvas(64, 64))
        kwargs.setdefault("species_request", None)
        kwargs.setdefault("skip_pixelation", False)
        kwargs.setdefault("debug_layers", False)
        return NFTAssembler(repository, layers=layers, output_path=tmp_path / "out", **kwargs)

    return build
