# mirrorfield_cli.py
# Mirror-field substitution cipher: field loading, ray traversal + perimeter rolling, key files, visualizations
from __future__ import annotations
import argparse, base64, binascii, os, sys, time, secrets
from dataclasses import dataclass, field as dataclass_field
from typing import Callable, List, Optional, Tuple
import numpy as np

GRID_SIZE = 24
PERIMETER_SIZE = GRID_SIZE * 4
FIELD_BYTES = GRID_SIZE * GRID_SIZE + PERIMETER_SIZE
SUPPORTED_CHARS = bytes(range(0x20, 0x7F)) + b"\n"
MIRROR_DENSITY = 6

DEFAULT_KEY_NAME = "default"
DEFAULT_KEY_DIR = os.path.join("~", ".config", "mirrorcrypt")

MIRROR_FORWARD, MIRROR_STRAIGHT, MIRROR_BACKWARD, MIRROR_NONE = 0, 1, 2, 3
DIR_DOWN, DIR_LEFT, DIR_RIGHT, DIR_UP = 1, 2, 3, 4

MIRROR_SYMBOLS = {ord("/"): MIRROR_FORWARD, ord("\\"): MIRROR_BACKWARD,
                  ord("-"): MIRROR_STRAIGHT, ord(" "): MIRROR_NONE}
SYMBOL_CHARS = {v: chr(k) for k, v in MIRROR_SYMBOLS.items()}

_DEFLECT = {
    (MIRROR_FORWARD, DIR_DOWN): DIR_LEFT,   (MIRROR_FORWARD, DIR_LEFT): DIR_DOWN,
    (MIRROR_FORWARD, DIR_RIGHT): DIR_UP,    (MIRROR_FORWARD, DIR_UP): DIR_RIGHT,
    (MIRROR_BACKWARD, DIR_DOWN): DIR_RIGHT, (MIRROR_BACKWARD, DIR_RIGHT): DIR_DOWN,
    (MIRROR_BACKWARD, DIR_LEFT): DIR_UP,    (MIRROR_BACKWARD, DIR_UP): DIR_LEFT,
}
_STEP = {DIR_DOWN: (1, 0), DIR_LEFT: (0, -1), DIR_RIGHT: (0, 1), DIR_UP: (-1, 0)}

Observer = Callable[[int, int], None]


class MirrorFieldError(ValueError):
    pass

class MalformedFieldData(MirrorFieldError):
    pass

class TruncatedFieldData(MirrorFieldError):
    pass

class InvalidGridState(MirrorFieldError):
    pass

class DuplicateAlphabetCharacter(MirrorFieldError):
    pass

class CharacterNotInAlphabet(MirrorFieldError):
    def __init__(self, ch: int):
        super().__init__(f"character 0x{ch:02x} is not in the perimeter alphabet")
        self.char = ch

class KeyFileNotFound(FileNotFoundError):
    pass


def entry_point(slot: int) -> Tuple[int, int, int]:
    """Row, column and heading of a ray entering the grid from a perimeter slot."""
    n = GRID_SIZE
    if slot < n:     return 0, slot, DIR_DOWN
    if slot < n * 2: return slot - n, n - 1, DIR_LEFT
    if slot < n * 3: return slot - n * 2, 0, DIR_RIGHT
    if slot < n * 4: return n - 1, slot - n * 3, DIR_UP
    raise IndexError(f"perimeter slot {slot} out of range [0, {n * 4})")

def exit_slot(r: int, c: int) -> Optional[int]:
    """Perimeter slot a ray leaves through once (r, c) is off the grid, else None."""
    n = GRID_SIZE
    if r == n:  return c + n * 3
    if c == -1: return r + n * 2
    if c == n:  return r + n
    if r == -1: return c
    return None

def disambiguate(table, start: int, end: int, parity: int) -> int:
    # A byte sitting on its own slot index would break symmetry; odd calls echo the input instead.
    if parity and (int(table[start]) == start or int(table[end]) == end):
        return int(table[start])
    return int(table[end])

def roll_target(table, slot: int) -> int:
    neighbour = slot + 1 if slot == 0 else slot - 1
    return (slot + int(table[slot]) + int(table[neighbour])) % PERIMETER_SIZE


@dataclass
class MirrorField:
    grid: np.ndarray = dataclass_field(
        default_factory=lambda: np.full((GRID_SIZE, GRID_SIZE), MIRROR_NONE, dtype=np.int8))
    perimeter: np.ndarray = dataclass_field(
        default_factory=lambda: np.zeros(PERIMETER_SIZE, dtype=np.uint8))
    parity: int = 0
    last_roll: Tuple[int, int] = (-1, -1)
    validated: bool = dataclass_field(default=False, repr=False)

    @classmethod
    def from_bytes(cls, data: bytes) -> "MirrorField":
        mf = cls().load(data)
        mf.validate()
        return mf

    def copy(self) -> "MirrorField":
        return MirrorField(self.grid.copy(), self.perimeter.copy(), self.parity, self.last_roll, self.validated)

    def load(self, source) -> "MirrorField":
        """
        Fill the grid (N*N mirror symbols, row-major) and the perimeter (4N raw bytes)
        from a bytes-like object or a binary file object.
        """
        self.validated = False
        data = source.read(FIELD_BYTES) if hasattr(source, "read") else bytes(source[:FIELD_BYTES])
        if len(data) < FIELD_BYTES:
            raise TruncatedFieldData(f"field data ends after {len(data)} bytes, need {FIELD_BYTES}")
        cells = GRID_SIZE * GRID_SIZE
        grid = np.empty(cells, dtype=np.int8)
        for i, ch in enumerate(data[:cells]):
            if ch not in MIRROR_SYMBOLS:
                raise MalformedFieldData(f"unrecognized mirror symbol 0x{ch:02x} at offset {i}")
            grid[i] = MIRROR_SYMBOLS[ch]
        self.grid = grid.reshape(GRID_SIZE, GRID_SIZE)
        self.perimeter = np.frombuffer(data[cells:FIELD_BYTES], dtype=np.uint8).copy()
        return self

    def validate(self) -> None:
        self.validated = False
        if self.grid.shape != (GRID_SIZE, GRID_SIZE):
            raise InvalidGridState(f"grid shape {self.grid.shape} != ({GRID_SIZE}, {GRID_SIZE})")
        bad = np.flatnonzero((self.grid < MIRROR_FORWARD) | (self.grid > MIRROR_NONE))
        if bad.size:
            i = int(bad[0])
            raise InvalidGridState(f"cell ({i // GRID_SIZE}, {i % GRID_SIZE}) holds mirror value "
                                   f"{int(self.grid.flat[i])}")
        if self.perimeter.shape != (PERIMETER_SIZE,):
            raise MirrorFieldError(f"perimeter holds {self.perimeter.size} bytes, need {PERIMETER_SIZE}")
        seen = {}
        for slot, v in enumerate(self.perimeter.tolist()):
            if v in seen:
                raise DuplicateAlphabetCharacter(f"byte 0x{v:02x} appears at slots {seen[v]} and {slot}")
            seen[v] = slot
        self.validated = True

    def crypt(self, ch: int, observer: Optional[Observer] = None, delay_ms: int = 0) -> int:
        """Trace one byte through the field; the same call encrypts and decrypts."""
        if not self.validated:
            raise MirrorFieldError("field must be loaded and validated before any traversal")
        self.parity = (self.parity + 1) % 2
        hits = np.flatnonzero(self.perimeter == ch) if 0 <= ch <= 0xFF else ()
        if len(hits) == 0:
            raise CharacterNotInAlphabet(ch)
        start = int(hits[0])

        grid = self.grid
        r, c, direction = entry_point(start)
        visited = set()
        end = None
        while end is None:
            if observer is not None:
                observer(r, c)
                if delay_ms > 0: time.sleep(delay_ms / 1000)

            t = r * GRID_SIZE + c
            # mirrors spin once per character: undo the earlier spin before reflecting again
            if t in visited:
                grid[r, c] = (int(grid[r, c]) + 2) % 3

            mirror = int(grid[r, c])
            direction = _DEFLECT.get((mirror, direction), direction)
            if mirror != MIRROR_NONE:
                grid[r, c] = (mirror + 1) % 3
                visited.add(t)

            dr, dc = _STEP[direction]
            r, c = r + dr, c + dc
            end = exit_slot(r, c)

        out = disambiguate(self.perimeter, start, end, self.parity)
        self.roll(start, end)
        return out

    def roll(self, start: int, end: int) -> None:
        """Move the bytes at start/end elsewhere on the perimeter so the next lookup takes a new path."""
        table = self.perimeter
        forbidden = {start, end, *self.last_roll}
        start_to, end_to = roll_target(table, start), roll_target(table, end)
        while start_to in forbidden:
            start_to = (start_to + GRID_SIZE // 2) % PERIMETER_SIZE
        while end_to in forbidden:
            end_to = (end_to + GRID_SIZE // 2) % PERIMETER_SIZE

        # larger byte moves first; only matters when both targets coincide
        moves = [(start, start_to), (end, end_to)]
        if int(table[start]) <= int(table[end]):
            moves.reverse()
        for slot, target in moves:
            table[slot], table[target] = table[target], table[slot]
        self.last_roll = (start, end)


def crypt_stream(mf: MirrorField, data: bytes, observer: Optional[Observer] = None, delay_ms: int = 0) -> bytes:
    return bytes(mf.crypt(ch, observer, delay_ms) for ch in data)

def encrypt_binary(mf: MirrorField, data: bytes, observer: Optional[Observer] = None, delay_ms: int = 0) -> bytes:
    return crypt_stream(mf, base64.b64encode(data), observer, delay_ms)

def decrypt_binary(mf: MirrorField, data: bytes, observer: Optional[Observer] = None, delay_ms: int = 0) -> bytes:
    text = crypt_stream(mf, data, observer, delay_ms)
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise MirrorFieldError(f"decrypted payload is not base64 (wrong key?): {e}") from e


def key_path(name: str = DEFAULT_KEY_NAME, key_dir: str | None = None) -> str:
    base = key_dir or os.environ.get("MIRRORCRYPT_KEY_DIR") or DEFAULT_KEY_DIR
    return os.path.join(os.path.expanduser(base), name)

def shuffle_chars(chars: bytes, rng=None) -> bytes:
    rng = rng or secrets.SystemRandom()
    out = bytearray(chars); rng.shuffle(out)
    return bytes(out)

def generate_key_material(rng=None) -> bytes:
    rng = rng or secrets.SystemRandom()
    cells = bytearray()
    for _ in range(GRID_SIZE * GRID_SIZE):
        pick = rng.randrange(MIRROR_DENSITY)
        cells += b"/" if pick == 1 else b"\\" if pick == 2 else b" "
    return bytes(cells) + shuffle_chars(SUPPORTED_CHARS, rng)

def create_key_file(path: str, rng=None) -> str:
    os.makedirs(os.path.dirname(path) or ".", mode=0o700, exist_ok=True)
    with open(path, "wb") as f:
        f.write(base64.b64encode(generate_key_material(rng)))
    return path

def read_key_material(path: str) -> bytes:
    with open(path, "rb") as f:
        raw = f.read().strip()
    try:
        return base64.b64decode(raw, validate=True)
    except binascii.Error as e:
        raise MalformedFieldData(f"key file {path} is not valid base64: {e}") from e

def open_key(name: str = DEFAULT_KEY_NAME, auto_create: bool = False, key_dir: str | None = None) -> MirrorField:
    path = key_path(name, key_dir)
    if not os.path.exists(path):
        if not auto_create:
            raise KeyFileNotFound(f"no key file at {path} (use --auto-create to make one)")
        create_key_file(path)
        print(f"[key] created {path}", file=sys.stderr)
    return MirrorField.from_bytes(read_key_material(path))


def draw_field(mf: MirrorField, pos_r: int = -2, pos_c: int = -2) -> str:
    n, p = GRID_SIZE, mf.perimeter.tolist()
    lines = []
    for r in range(-1, n + 1):
        row = []
        for c in range(-1, n + 1):
            if r in (-1, n) and c in (-1, n): cell = "  "
            elif r == -1: cell = f"{p[c]:2x}"
            elif c == n:  cell = f"{p[r + n]:2x}"
            elif r == n:  cell = f"{p[c + n * 3]:2x}"
            elif c == -1: cell = f"{p[r + n * 2]:2x}"
            else:         cell = f"{SYMBOL_CHARS.get(int(mf.grid[r, c]), ' '):>2}"
            if r == pos_r and c == pos_c:
                cell = "\x1b[30m\x1b[47m" + cell + "\x1b[0m"
            row.append(cell)
        lines.append("".join(row))
    return "\n".join(lines) + "\n\n"

class TerminalObserver:
    """Redraws the field in place on every traversal step, highlighting the ray."""
    def __init__(self, mf: MirrorField, stream=None):
        self.mf = mf
        self.stream = stream if stream is not None else sys.stdout
        self._drawn = False

    def __call__(self, r: int, c: int) -> None:
        out = self.stream
        out.write("\033[s" if self._drawn else "\033[2J")
        out.write("\033[H")
        out.write(draw_field(self.mf, r, c))
        if self._drawn: out.write("\033[u")
        self._drawn = True
        out.flush()


def _make_alphabet_palette() -> np.ndarray:
    """256-entry colour table: byte class picks the hue, rank inside the class the brightness."""
    classes = [
        (bytes(range(0x41, 0x5B)) + bytes(range(0x61, 0x7B)), (40, 110, 255)),   # letters
        (bytes(range(0x30, 0x3A)), (255, 200, 0)),                               # digits
        (b" \n", (255, 255, 255)),                                               # whitespace
    ]
    palette = np.full((256, 3), (200, 40, 160), dtype=np.uint8)                  # punctuation, rest
    for members, rgb in classes:
        for rank, b in enumerate(members):
            shade = 0.45 + 0.55 * (rank + 1) / len(members)
            palette[b] = [int(v * shade) for v in rgb]
    return palette

_ALPHABET_PALETTE = _make_alphabet_palette()

def alphabet_colors(values: np.ndarray) -> np.ndarray:
    return _ALPHABET_PALETTE[values]

_MIRROR_LUT = np.array([
    (255, 160,  0),   # forward
    (110, 110, 110),  # straight
    (0,   200, 120),  # backward
    (16,   16,  16),  # none
], dtype=np.uint8)
_RAY_RGB = (255, 0, 64)

class FrameRecorder:
    """Collects one RGB frame per traversal step: the perimeter alphabet framing the mirror grid."""
    def __init__(self, mf: MirrorField, scale: int = 8):
        self.mf = mf
        self.scale = max(1, int(scale))
        self.frames: List[np.ndarray] = []

    def render(self, pos_r: int, pos_c: int) -> np.ndarray:
        n, p = GRID_SIZE, self.mf.perimeter
        img = np.zeros((n + 2, n + 2, 3), dtype=np.uint8)
        img[0, 1:n+1]   = alphabet_colors(p[:n])
        img[1:n+1, n+1] = alphabet_colors(p[n:n*2])
        img[1:n+1, 0]   = alphabet_colors(p[n*2:n*3])
        img[n+1, 1:n+1] = alphabet_colors(p[n*3:])
        img[1:n+1, 1:n+1] = _MIRROR_LUT[self.mf.grid]
        img[pos_r + 1, pos_c + 1] = _RAY_RGB
        s = self.scale
        return np.repeat(np.repeat(img, s, axis=0), s, axis=1)

    def __call__(self, r: int, c: int) -> None:
        self.frames.append(self.render(r, c))

    def save_gif(self, path: str, fps: float = 8.0) -> None:
        import imageio.v2 as imageio
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        imageio.mimsave(path, self.frames, duration=1.0 / max(fps, 0.1), loop=0)

    def dump_pngs(self, folder: str, stem: str = "step") -> None:
        from PIL import Image
        os.makedirs(folder, exist_ok=True)
        for i, frame in enumerate(self.frames):
            Image.fromarray(frame).save(os.path.join(folder, f"{stem}_{i:04d}.png"))


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()

def _write_output(path: str, data: bytes) -> None:
    if path == "-":
        sys.stdout.buffer.write(data); sys.stdout.buffer.flush()
        return
    with open(path, "wb") as f:
        f.write(data)

def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="mirrorcrypt",
                                description="Mirror-field substitution cipher (one command encrypts and decrypts)")
    p.add_argument("-k", "--key", default=DEFAULT_KEY_NAME, help="Key file name (default 'default')")
    p.add_argument("--key-dir", default=None, help="Key directory (default $MIRRORCRYPT_KEY_DIR or ~/.config/mirrorcrypt)")
    p.add_argument("-a", "--auto-create", action="store_true", help="Generate the key file if it does not exist")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("-e", "--encrypt", action="store_true", help="With -b: base64-encode, then encrypt")
    mode.add_argument("-d", "--decrypt", action="store_true", help="With -b: decrypt, then base64-decode")
    p.add_argument("-b", "--binary", action="store_true", help="Carry arbitrary bytes through base64")
    p.add_argument("-i", "--input", default="-", help="Input file (default stdin)")
    p.add_argument("-o", "--output", default="-", help="Output file (default stdout)")
    p.add_argument("--debug", type=int, default=0, metavar="MS",
                   help="Animate the traversal on stderr, pausing MS milliseconds per step")
    p.add_argument("--gif", default="", help="Write the traversal animation to this GIF")
    p.add_argument("--save-frames", default="", help="Also dump individual PNG frames into this folder")
    p.add_argument("--fps", type=float, default=8.0, help="GIF frame rate (default 8)")
    args = p.parse_args(argv)

    if args.binary and not (args.encrypt or args.decrypt):
        p.error("--binary needs --encrypt or --decrypt")
    if (args.encrypt or args.decrypt) and not args.binary:
        p.error("--encrypt/--decrypt only apply to --binary; text mode is its own inverse")

    try:
        mf = open_key(args.key, args.auto_create, args.key_dir)
    except (MirrorFieldError, KeyFileNotFound) as e:
        print(f"[mirrorcrypt] {e}", file=sys.stderr)
        return 1

    data = _read_input(args.input)

    observers: List[Observer] = []
    if args.debug: observers.append(TerminalObserver(mf, sys.stderr))
    recorder = FrameRecorder(mf) if (args.gif or args.save_frames) else None
    if recorder: observers.append(recorder)
    observer = None
    if observers:
        def observer(r: int, c: int) -> None:
            for o in observers: o(r, c)

    try:
        if args.binary and args.encrypt:
            out = encrypt_binary(mf, data, observer, args.debug)
        elif args.binary:
            out = decrypt_binary(mf, data, observer, args.debug)
        else:
            out = crypt_stream(mf, data, observer, args.debug)
    except MirrorFieldError as e:
        print(f"[mirrorcrypt] {e}", file=sys.stderr)
        return 1

    _write_output(args.output, out)
    tag = "[dec]" if args.decrypt else "[enc]"
    if args.debug:
        print(f"{tag} input={len(data)} bytes  output={len(out)} bytes", file=sys.stderr)

    if recorder:
        if args.gif:
            recorder.save_gif(args.gif, args.fps)
            print(f"[viz] {len(recorder.frames)} frames -> {args.gif}", file=sys.stderr)
        if args.save_frames:
            recorder.dump_pngs(args.save_frames)
    return 0

if __name__ == "__main__":
    sys.exit(main())
