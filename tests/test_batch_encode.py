import json

import numpy as np
import pytest

import batch_encode
from batch_encode import find_images
from lqip import unpack_lqip


def test_find_images(tmp_path, make_image):
    make_image(np.zeros((2, 3, 3)), 'b.png')
    make_image(np.zeros((2, 3, 3)), 'a.PNG')
    (tmp_path / 'readme.txt').write_text('skip me')
    assert [p.name for p in find_images(tmp_path)] == ['a.PNG', 'b.png']


def test_writes_manifest(tmp_path, make_image, capsys):
    make_image(np.full((2, 3, 3), 129), 'gray.png')
    make_image(np.full((4, 4, 3), (200, 40, 40)), 'red.png')
    manifest_path = tmp_path / 'out' / 'lqip.json'

    batch_encode.main(['--input', str(tmp_path), '--output', str(manifest_path)])

    manifest = json.loads(manifest_path.read_text())
    assert set(manifest) == {'gray.png', 'red.png'}
    assert unpack_lqip(manifest['gray.png'])[1] == (2,) * 6
    assert 'Completed: 2/2' in capsys.readouterr().out


def test_failures_recorded(tmp_path, make_image):
    make_image(np.full((2, 3, 3), 129), 'gray.png')
    (tmp_path / 'broken.jpg').write_bytes(b'garbage')
    manifest_path = tmp_path / 'lqip.json'

    with pytest.raises(SystemExit) as exc:
        batch_encode.main(['-i', str(tmp_path), '-o', str(manifest_path)])
    assert exc.value.code == 1

    manifest = json.loads(manifest_path.read_text())
    assert manifest['broken.jpg'] is None
    assert isinstance(manifest['gray.png'], int)


def test_opaque_check_flag(tmp_path, make_image):
    pixels = np.full((2, 3, 4), 255)
    pixels[..., 3] = 0
    make_image(pixels, 'clear.png')
    manifest_path = tmp_path / 'lqip.json'

    with pytest.raises(SystemExit):
        batch_encode.main(['-i', str(tmp_path), '-o', str(manifest_path), '--opaque-check'])
    assert json.loads(manifest_path.read_text()) == {'clear.png': None}


@pytest.mark.parametrize('setup', ['missing', 'empty'])
def test_bad_input_directory(tmp_path, setup):
    input_dir = tmp_path / 'images'
    if setup == 'empty':
        input_dir.mkdir()
    with pytest.raises(SystemExit) as exc:
        batch_encode.main(['-i', str(input_dir), '-o', str(tmp_path / 'lqip.json')])
    assert exc.value.code == 2
