import pytest
from PIL import Image

from compositor import Canvas, CanvasBusy, Compositor, draw_layer, load_component_image
from conftest import FakeRepository, solid_loader
from layers import (
    DecodeFailure,
    EmptyLayer,
    Kind,
    LayerSpec,
    LayerStack,
    LayerState,
    Role,
    SkipReason,
    Trait,
)
from nft import make_rng


def trait_pairs(traits):
    return [(t.trait_type, t.value) for t in traits]


def test_traits_follow_layer_order(indigo_layers, indigo_repository, canvas):
    compositor = Compositor(indigo_repository, loader=solid_loader(), rng=make_rng(0))
    result = compositor.composite(indigo_layers, "indigo", canvas)
    assert trait_pairs(result.traits) == [
        ("species", "indigo"),
        ("background", "stars"),
        ("head", "round"),
        ("eyes", "sleepy"),
    ]
    assert result.drawn_categories == ["background", "head", "eyes"]


def test_duplicate_category_is_skipped(canvas):
    layers = LayerStack(
        [
            LayerSpec("background", Role.BACKGROUND),
            LayerSpec("hats", Role.ACCESSORY),
            LayerSpec("hats", Role.ACCESSORY),
        ]
    )
    repository = FakeRepository(
        {("indigo", "background"): ["sky.png"], ("indigo", "hats"): ["cap.png", "crown.png"]}
    )
    result = Compositor(repository, loader=solid_loader(), rng=make_rng(3)).composite(
        layers, "indigo", canvas
    )
    types = [t.trait_type for t in result.traits]
    assert types.count("hats") == 1
    assert types[0] == "species"
    assert result.outcomes[2].state is LayerState.SKIPPED
    assert result.outcomes[2].reason is SkipReason.DUPLICATE
    assert repository.calls.count(("indigo", "hats")) == 1


def test_optional_layer_without_components(canvas):
    layers = LayerStack(
        [LayerSpec("background", Role.BACKGROUND), LayerSpec("binky", Role.ACCESSORY, optional=True)]
    )
    repository = FakeRepository({("indigo", "background"): ["sky.png"]})
    result = Compositor(repository, loader=solid_loader(), rng=make_rng(0)).composite(
        layers, "indigo", canvas
    )
    assert "binky" not in [t.trait_type for t in result.traits]
    assert result.outcomes[1].reason is SkipReason.NO_COMPONENT


def test_required_layer_without_components_raises(indigo_layers, canvas):
    repository = FakeRepository({("indigo", "background"): ["sky.png"]})
    compositor = Compositor(repository, loader=solid_loader(), rng=make_rng(0))
    with pytest.raises(EmptyLayer):
        compositor.composite(indigo_layers, "indigo", canvas)
    # The canvas is released for the next generation
    compositor.composite(LayerStack(indigo_layers[:1]), "indigo", canvas)


def test_decode_failure_skips_layer(indigo_layers, indigo_repository, canvas):
    compositor = Compositor(
        indigo_repository, loader=solid_loader(failing=("round.png",)), rng=make_rng(0)
    )
    result = compositor.composite(indigo_layers, "indigo", canvas)
    assert trait_pairs(result.traits) == [
        ("species", "indigo"),
        ("background", "stars"),
        ("eyes", "sleepy"),
    ]
    assert result.outcomes[1].reason is SkipReason.DECODE_FAILURE


def test_background_failure_leaves_white_canvas(indigo_repository, canvas):
    layers = LayerStack([LayerSpec("background", Role.BACKGROUND)])
    compositor = Compositor(
        indigo_repository, loader=solid_loader(failing=("stars.png",)), rng=make_rng(0)
    )
    result = compositor.composite(layers, "indigo", canvas)
    assert trait_pairs(result.traits) == [("species", "indigo")]
    assert result.image.getextrema()[3] == (255, 255)
    assert set(result.image.getdata()) == {(255, 255, 255, 255)}


def test_background_draw_failure_leaves_white_canvas(indigo_repository, canvas):
    def zero_size_loader(locator, kind):
        return Image.new("RGBA", (0, 0))

    layers = LayerStack([LayerSpec("background", Role.BACKGROUND)])
    compositor = Compositor(indigo_repository, loader=zero_size_loader, rng=make_rng(0))
    result = compositor.composite(layers, "indigo", canvas)
    assert result.outcomes[0].reason is SkipReason.DRAW_FAILURE
    assert set(result.image.getdata()) == {(255, 255, 255, 255)}


def test_later_layers_occlude_earlier_ones(canvas):
    layers = LayerStack([LayerSpec("background", Role.BACKGROUND), LayerSpec("head", Role.BASE)])
    repository = FakeRepository({("indigo", "background"): ["bg.png"], ("indigo", "head"): ["h.png"]})
    colors = {"bg.png": (0, 0, 255, 255), "h.png": (255, 0, 0, 255)}

    def loader(locator, kind):
        return Image.new("RGBA", (10, 10), colors[locator.rsplit("/", 1)[-1]])

    result = Compositor(repository, loader=loader, rng=make_rng(0)).composite(layers, "indigo", canvas)
    # Square head fills the whole square canvas
    assert result.image.getpixel((32, 32)) == (255, 0, 0, 255)


def test_transparent_regions_show_lower_layers(canvas):
    image = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    with canvas.acquire():
        draw_layer(canvas, image, Role.BASE, "head")
        assert canvas.image.getpixel((10, 10)) == (255, 255, 255, 255)


def test_outfit_wider_than_canvas_is_clipped(canvas):
    # stretched 1.15x wider than the canvas, so it starts left of x=0
    image = Image.new("RGBA", (64, 64), (255, 0, 0, 255))
    with canvas.acquire():
        draw_layer(canvas, image, Role.OUTFIT, "clothing")
        assert canvas.image.size == (64, 64)
        assert canvas.image.getpixel((0, 30)) == (255, 0, 0, 255)
        assert canvas.image.getpixel((63, 30)) == (255, 0, 0, 255)
        assert canvas.image.getpixel((32, 2)) == (255, 255, 255, 255)


def test_canvas_is_not_reentrant(canvas):
    with canvas.acquire():
        with pytest.raises(CanvasBusy):
            with canvas.acquire():
                pass


def test_canvas_is_cleared_between_generations(indigo_layers, indigo_repository, canvas):
    canvas.clear((0, 0, 0, 255))
    layers = LayerStack([LayerSpec("binky", Role.ACCESSORY, optional=True)])
    result = Compositor(indigo_repository, loader=solid_loader(), rng=make_rng(0)).composite(
        layers, "indigo", canvas
    )
    assert result.image.getpixel((0, 0)) == (255, 255, 255, 255)


def test_intermediate_layers_saved(tmp_path, indigo_layers, indigo_repository, canvas):
    compositor = Compositor(
        indigo_repository, loader=solid_loader(), rng=make_rng(0), debug_dir=tmp_path
    )
    compositor.composite(indigo_layers, "indigo", canvas, identifier=5)
    assert (tmp_path / "layer_2_head_5.png").exists()


def test_load_local_png(tmp_path):
    path = tmp_path / "hat.png"
    Image.new("RGBA", (12, 7), (1, 2, 3, 128)).save(path)
    image = load_component_image(str(path), Kind.RASTER)
    assert image.size == (12, 7)
    assert image.mode == "RGBA"


def test_load_garbage_raises_decode_failure(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(DecodeFailure):
        load_component_image(str(path), Kind.RASTER)


def test_species_trait_first(indigo_layers, indigo_repository, canvas):
    result = Compositor(indigo_repository, loader=solid_loader(), rng=make_rng(0)).composite(
        indigo_layers, "indigo", canvas
    )
    assert result.traits[0] == Trait("species", "indigo")
