import json

from layers import GenerationResult, Trait
from metadata import (
    build_metadata,
    clean_column_name,
    load_metadata,
    traits_frame,
    write_metadata,
)


def result(identifier, traits, species="indigo"):
    return GenerationResult(
        identifier=identifier,
        species=species,
        primary_artifact_path="a.png",
        pixelated_artifact_path="b.png",
        traits=tuple(Trait(*t) for t in traits),
    )


def test_build_metadata_name_and_description():
    document = build_metadata(12, "green", "u1", "u2", [Trait("species", "green")])
    assert document["name"] == "Green Babiez #12"
    assert document["description"] == "Generated green Space Babiez NFT with 2D and pixel art"
    assert document["images"] == {"2D": "u1", "pixelated": "u2"}
    assert document["attributes"] == [{"trait_type": "species", "value": "green"}]


def test_write_metadata(tmp_path):
    path = write_metadata({"id": 1, "name": "é"}, tmp_path / "nested" / "1.json")
    assert json.loads(path.read_text(encoding="utf-8")) == {"id": 1, "name": "é"}


def test_traits_frame_fills_missing_categories():
    df = traits_frame(
        [
            result(1, [("species", "indigo"), ("head", "round"), ("binky", "blue")]),
            result(2, [("species", "indigo"), ("head", "square")]),
        ],
        ["head", "binky"],
    )
    assert list(df.columns) == ["id", "species", "ok", "head", "binky"]
    assert list(df["binky"]) == ["blue", "none"]


def test_traits_frame_keeps_error_traits():
    df = traits_frame([result(1, [("error", "generation_failed")], species="error")], ["head"])
    assert df.loc[0, "error"] == "generation_failed"
    assert df.loc[0, "head"] == "none"


def test_traits_frame_empty():
    assert list(traits_frame([], ["head"]).columns) == ["id", "species", "ok", "head"]


def test_load_metadata_reads_saved_edition(tmp_path):
    df = traits_frame(
        [
            result(1, [("species", "indigo"), ("head", "round")]),
            result(2, [("error", "generation_failed")], species="error"),
        ],
        ["head"],
    )
    df.to_csv(tmp_path / "metadata.csv", index=False)

    loaded = load_metadata(tmp_path)
    assert list(loaded.columns) == ["id", "species", "ok", "head", "error"]
    assert list(loaded["id"]) == ["1", "2"]
    assert list(loaded["head"]) == ["round", "none"]
    # the first NFT never had an error trait
    assert list(loaded["error"]) == ["none", "generation_failed"]


def test_clean_column_name():
    assert clean_column_name("head") == "Head"
    assert clean_column_name("special_items") == "Special Items"
