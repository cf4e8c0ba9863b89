import numpy as np
import pytest

from densitymap.dispatch import (
    GDM,
    GRLE,
    LayerParams,
    choose_output_format,
    decode_bytes,
    detect_format,
    encode_image,
    grid_to_image,
    image_to_grid,
    read_template,
)
from densitymap.errors import MissingEncodeParameters, UnrecognizedMagic
from densitymap.pixelgrid import PixelGrid


def test_detect_format():
    assert detect_format(b"GRLE\x01\x00") == GRLE
    assert detect_format(b"!MDF\x00") == GDM
    assert detect_format(b'"MDF\x00') == GDM
    with pytest.raises(UnrecognizedMagic):
        detect_format(b"\x89PNG")
    with pytest.raises(UnrecognizedMagic):
        decode_bytes(b"")


def test_grid_to_image_picks_mode_by_channel_count():
    grid = PixelGrid.from_array(np.array([[0x030201, 0x0000FF]], dtype=np.uint32))
    gray = grid_to_image(grid, 8)
    assert gray.shape == (1, 2)
    assert gray.tolist() == [[1, 255]]

    rgb = grid_to_image(grid, 9)
    assert rgb.shape == (1, 2, 3)
    assert rgb[0, 0].tolist() == [1, 2, 3]
    assert rgb[0, 1].tolist() == [255, 0, 0]


def test_image_to_grid():
    rgb = np.array([[[1, 2, 3], [4, 5, 6]]], dtype=np.uint8)
    assert image_to_grid(rgb, GDM).samples.tolist() == [[0x030201, 0x060504]]
    assert image_to_grid(rgb, GRLE).samples.tolist() == [[1, 4]]

    rgba = np.concatenate([rgb, np.full((1, 2, 1), 255, dtype=np.uint8)], axis=2)
    assert image_to_grid(rgba, GDM).samples.tolist() == [[0x030201, 0x060504]]

    with pytest.raises(ValueError):
        image_to_grid(np.zeros((2, 2), dtype=np.uint16), GDM)


def test_gdm_encode_without_parameters_fails_listing_them():
    img = np.zeros((32, 32), dtype=np.uint8)
    with pytest.raises(MissingEncodeParameters) as e:
        encode_image(img, GDM)
    assert "channel_count" in str(e.value)
    assert "channel_count" in e.value.missing
    assert "--" not in str(e.value)


def test_grle_encode_needs_no_parameters():
    img = np.full((256, 256, 3), (9, 1, 1), dtype=np.uint8)
    layer = decode_bytes(encode_image(img, GRLE))
    assert layer.fmt == GRLE
    assert layer.channel_count == 1
    assert np.all(layer.to_image() == 9)


def test_choose_output_format():
    info = LayerParams(layer_type="info", channel_count=8)
    gdm = LayerParams(layer_type="gdm", channel_count=8)
    assert choose_output_format("out.GRLE", gdm) == GRLE
    assert choose_output_format("out.gdm", info) == GDM
    assert choose_output_format(None, info) == GRLE
    assert choose_output_format(None, gdm) == GDM
    assert choose_output_format("out.bin", None) == GDM


def test_read_template(tmp_path):
    gdm = encode_image(np.zeros((32, 32), dtype=np.uint8), GDM,
                       params=LayerParams(layer_type="gdm", channel_count=4))
    p = tmp_path / "t.gdm"
    p.write_bytes(gdm)
    h = read_template(p)
    assert (h.channel_count, h.range_count, h.dimension) == (4, 1, 32)

    q = tmp_path / "t.grle"
    q.write_bytes(encode_image(np.zeros((256, 256), dtype=np.uint8), GRLE))
    with pytest.raises(UnrecognizedMagic):
        read_template(q)
