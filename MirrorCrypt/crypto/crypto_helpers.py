import os, sys, hashlib


PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from mirrorfield_cli import (MirrorField, MirrorFieldError, GRID_SIZE,
                             encrypt_binary, decrypt_binary, create_key_file, read_key_material)

SHARED_KEY_NAME = "shared.key"
DEFAULT_KEY_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "keys"))

def shared_key_path(key_dir: str | None = None) -> str:
    base = key_dir or os.environ.get("MIRRORCRYPT_KEY_DIR") or DEFAULT_KEY_DIR
    return os.path.join(base, SHARED_KEY_NAME)

def load_shared_key(key_dir: str | None = None, auto_create: bool = False) -> bytes:
    path = shared_key_path(key_dir)
    if auto_create and not os.path.exists(path):
        create_key_file(path)
    return read_key_material(path)

def key_id(key_material: bytes) -> str:
    return hashlib.sha256(key_material).hexdigest()[:16]

def encrypt_bytes(key_material: bytes, plaintext: bytes) -> dict:
    # every envelope starts from the key's initial field, so messages decrypt independently
    mf = MirrorField.from_bytes(key_material)
    ciphertext = encrypt_binary(mf, plaintext)

    return {
        "key_id": key_id(key_material),
        "ciphertext": ciphertext.decode("ascii"),
        "length": len(plaintext),
        "grid_size": GRID_SIZE,
    }

def decrypt_envelope(key_material: bytes, env: dict) -> tuple[bytes, bool]:
    """Decrypt an envelope (dict with key_id/ciphertext/length)."""
    if env.get("key_id") != key_id(key_material) or env.get("grid_size", GRID_SIZE) != GRID_SIZE:
        return b"", False
    ciphertext = env.get("ciphertext")
    if not isinstance(ciphertext, str):
        return b"", False
    try:
        ciphertext = ciphertext.encode("ascii")
        plaintext = decrypt_binary(MirrorField.from_bytes(key_material), ciphertext)
    except (MirrorFieldError, UnicodeEncodeError):
        return b"", False
    return plaintext, len(plaintext) == env.get("length", len(plaintext))
