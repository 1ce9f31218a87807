import os, sys, json, time, asyncio, requests
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, PROJECT_ROOT)
from crypto.crypto_helpers import decrypt_envelope, load_shared_key

try:
    import websockets
except ImportError:
    websockets = None

def describe(env: dict, key: bytes) -> str:
    pt, ok = decrypt_envelope(key, env)
    kind = env.get("content_type", "")
    head = f"[{env['from_user']} -> {env['to_user']}] ok={ok}"
    if kind.startswith("text/"):
        return f"{head}: {pt.decode('utf-8', 'replace')}"
    return f"{head}: file {env.get('filename')} ({kind}), {len(pt)} bytes"

async def ws_listen(server: str, user: str, key: bytes):
    url = server.replace("http://", "ws://").replace("https://", "wss://") + f"/ws?user={user}"
    async with websockets.connect(url, ping_interval=20, ping_timeout=20) as ws:
        print(f"[ws] connected as {user}")
        while True:
            env = json.loads(await ws.recv())
            print(describe(env, key))
            await ws.send("ok")

def poll_loop(server: str, user: str, key: bytes):
    seen = set()
    while True:
        resp = requests.get(f"{server}/inbox", params={"user": user}, timeout=10)
        for env in resp.json():
            uid = (env["key_id"], env["from_user"], env["sent_at"])
            if uid in seen:
                continue
            seen.add(uid)
            print(describe(env, key))
        time.sleep(2)

def main():
    if len(sys.argv) < 3:
        print("Usage: python3 inbox.py <server_base_url> <user>")
        sys.exit(1)
    server, user = sys.argv[1:3]
    key = load_shared_key()
    if websockets is None:
        print("[inbox] websockets not installed; polling...")
        poll_loop(server, user, key)
    else:
        asyncio.run(ws_listen(server, user, key))

if __name__ == "__main__":
    main()
