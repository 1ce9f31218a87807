import os, sys, io
import numpy as np
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from mirrorfield_cli import (GRID_SIZE, draw_field, TerminalObserver, FrameRecorder,
                             alphabet_colors, _ALPHABET_PALETTE, _RAY_RGB)
from fieldfixtures import identity_field

N = GRID_SIZE

def test_draw_field_layout():
    mf = identity_field()
    lines = draw_field(mf).split("\n")
    assert len(lines) == N + 2 + 2
    assert lines[0].startswith("  202122")
    assert lines[1].startswith("50")                   # left edge slot 2N holds 0x50
    assert lines[1].endswith("38")                     # right edge slot N holds 0x38
    assert lines[N + 1].startswith("  68")             # bottom edge slot 3N holds 0x68

def test_draw_field_highlights_ray():
    mf = identity_field()
    mf.grid[4, 5] = 0
    text = draw_field(mf, 4, 5)
    assert text.count("\x1b[47m") == 1
    assert "\x1b[30m\x1b[47m /\x1b[0m" in text

def test_terminal_observer_redraws_in_place():
    mf = identity_field()
    out = io.StringIO()
    mf.crypt(ord("A"), TerminalObserver(mf, out), delay_ms=0)
    text = out.getvalue()
    assert text.startswith("\033[2J\033[H")
    assert text.count("\033[2J") == 1
    assert text.count("\033[s") == text.count("\033[u") == N - 1

def test_frame_recorder(tmp_path):
    mf = identity_field()
    rec = FrameRecorder(mf, scale=2)
    mf.crypt(ord("#"), rec)
    assert len(rec.frames) == N
    first = rec.frames[0]
    assert first.shape == ((N + 2) * 2, (N + 2) * 2, 3)
    assert tuple(first[2, 8]) == _RAY_RGB                # cell (0, 3)
    assert np.array_equal(first[0, 2], alphabet_colors(np.uint8(0x20)))
    rec.dump_pngs(str(tmp_path / "png"))
    assert len(os.listdir(tmp_path / "png")) == N
    rec.save_gif(str(tmp_path / "trace.gif"), fps=4)
    assert (tmp_path / "trace.gif").stat().st_size > 0

def test_alphabet_palette_groups_byte_classes():
    letters = [_ALPHABET_PALETTE[b] for b in b"AZaz"]
    digit, space, punct = _ALPHABET_PALETTE[ord("7")], _ALPHABET_PALETTE[ord(" ")], _ALPHABET_PALETTE[ord("!")]
    assert all(int(c[2]) > int(c[0]) for c in letters)          # letters are blue
    assert int(digit[0]) > int(digit[2])                        # digits are amber
    assert tuple(_ALPHABET_PALETTE[ord("\n")]) == (255, 255, 255)
    assert int(space[0]) < 255                                  # rank shades within a class
    assert tuple(punct) == (200, 40, 160)
    assert int(_ALPHABET_PALETTE[ord("z")][2]) > int(_ALPHABET_PALETTE[ord("A")][2])

if __name__ == "__main__":
    import pytest
    sys.exit(pytest.main([__file__, "-q"]))
