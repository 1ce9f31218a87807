import os, sys, mimetypes, requests
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))
sys.path.insert(0, PROJECT_ROOT)
from crypto.crypto_helpers import load_shared_key
from send_text import make_payload

def main():
    if len(sys.argv) < 5:
        print("Usage: python3 send_file.py <server_base_url> <from_user> <to_user> <path_to_file>")
        sys.exit(1)

    server, from_user, to_user, path = sys.argv[1:5]

    key = load_shared_key()
    with open(path, "rb") as f:
        data = f.read()

    content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    payload = make_payload(key, from_user, to_user, data,
                           content_type=content_type, filename=os.path.basename(path))
    r = requests.post(f"{server}/send", json=payload, timeout=30)
    print(r.json())

if __name__ == "__main__":
    main()
