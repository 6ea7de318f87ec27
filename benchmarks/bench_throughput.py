"""Throughput benchmark: SET and GET ops/sec over one session at different value sizes."""

import os
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from client import RespClient


def free_port():
    import socket
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def main():
    port = free_port()
    env = os.environ.copy()
    env["PYTHONPATH"] = str(ROOT)
    proc = subprocess.Popen(
        [sys.executable, "-m", "server", "--host", "127.0.0.1", "--port", str(port), "--log-level", "WARNING"],
        cwd=str(ROOT),
        env=env,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
    )
    time.sleep(0.5)
    client = RespClient.connect("127.0.0.1", port, timeout=30.0)

    n_ops = 2000
    for size in [16, 1_024, 64 * 1_024]:
        value = b"x" * size
        start = time.perf_counter()
        for i in range(n_ops):
            client.set(f"k_{size}_{i}", value)
        set_elapsed = time.perf_counter() - start

        start = time.perf_counter()
        for i in range(n_ops):
            client.get(f"k_{size}_{i}")
        get_elapsed = time.perf_counter() - start
        print(
            f"value {size:>6} bytes -> SET {n_ops / set_elapsed:>8.0f} ops/sec, "
            f"GET {n_ops / get_elapsed:>8.0f} ops/sec ({n_ops} ops each)"
        )

    client.close()
    proc.terminate()
    proc.wait(timeout=3)
    print("Done.")


if __name__ == "__main__":
    main()
