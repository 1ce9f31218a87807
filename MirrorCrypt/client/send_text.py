import os, sys, time, requests
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, PROJECT_ROOT)
from crypto.crypto_helpers import encrypt_bytes, load_shared_key

def make_payload(key: bytes, from_user: str, to_user: str, data: bytes,
                 content_type: str = "text/plain; charset=utf-8", filename: str | None = None) -> dict:
    env = encrypt_bytes(key, data)
    return env | {
        "from_user": from_user,
        "to_user": to_user,
        "content_type": content_type,
        "filename": filename,
        "sent_at": time.time(),
    }

def main():
    if len(sys.argv) < 5:
        print("Usage: python3 send_text.py <server_base_url> <from_user> <to_user> <message...>")
        sys.exit(1)

    server, from_user, to_user = sys.argv[1:4]
    message = " ".join(sys.argv[4:])

    key = load_shared_key()
    payload = make_payload(key, from_user, to_user, message.encode("utf-8"))
    r = requests.post(f"{server}/send", json=payload, timeout=10)
    print(r.json())

if __name__ == "__main__":
    main()
