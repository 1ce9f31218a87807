import os, sys, random
import numpy as np
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from mirrorfield_cli import (MirrorField, SUPPORTED_CHARS, crypt_stream,
                             encrypt_binary, decrypt_binary, generate_key_material)

TRIALS = int(os.getenv("MIRROR_TRIALS", "10"))
LENGTH = int(os.getenv("MIRROR_LEN", "512"))

def run_roundtrip_tests(trials=TRIALS, length=LENGTH, seed=2016):
    rng = random.Random(seed)
    ok_all = True
    for t in range(1, trials + 1):
        mf = MirrorField.from_bytes(generate_key_material(rng))
        pt = bytes(rng.choice(SUPPORTED_CHARS) for _ in range(length))

        enc, dec = mf.copy(), mf.copy()
        ct = crypt_stream(enc, pt)
        back = crypt_stream(dec, ct)

        same = (back == pt)
        # both sides spin the same mirrors and roll the same slots
        synced = np.array_equal(enc.grid, dec.grid) and np.array_equal(enc.perimeter, dec.perimeter)
        ok_all = ok_all and same and synced
        print(f"[{t:02d}] equal={same}  synced={synced}  ct_len={len(ct)}")
    print("RESULT:", "PASS" if ok_all else "FAIL")
    return ok_all

def test_roundtrip_random_keys():
    assert run_roundtrip_tests()

def test_roundtrip_binary_payload():
    rng = random.Random(7)
    mf = MirrorField.from_bytes(generate_key_material(rng))
    payload = bytes(rng.randrange(256) for _ in range(1000)) + b"\x00\xff"
    ct = encrypt_binary(mf.copy(), payload)
    assert set(ct) <= set(SUPPORTED_CHARS)
    assert decrypt_binary(mf.copy(), ct) == payload

def test_determinism():
    rng = random.Random(11)
    mf = MirrorField.from_bytes(generate_key_material(rng))
    pt = bytes(rng.choice(SUPPORTED_CHARS) for _ in range(300))
    a, b = mf.copy(), mf.copy()
    assert crypt_stream(a, pt) == crypt_stream(b, pt)
    assert np.array_equal(a.grid, b.grid)
    assert np.array_equal(a.perimeter, b.perimeter)
    assert (a.parity, a.last_roll) == (b.parity, b.last_roll)

def test_repeated_plaintext_does_not_repeat_ciphertext():
    rng = random.Random(5)
    mf = MirrorField.from_bytes(generate_key_material(rng))
    ct = crypt_stream(mf, b"e" * 64)
    assert len(set(ct)) > 1

if __name__ == "__main__":
    run_roundtrip_tests()
