import os
import subprocess
import sys
import time
from pathlib import Path

import httpx
import pytest

# --- Test Configuration ---
HOST = "127.0.0.1"
PORT = 8765  # Use a unique port for testing to avoid conflicts
BASE_URL = f"http://{HOST}:{PORT}"


def wait_for_server(timeout=10):
    """Polls the list page until the server is up."""
    start_time = time.time()
    while time.time() - start_time < timeout:
        try:
            with httpx.Client() as client:
                response = client.get(BASE_URL + "/")
                if response.status_code == 200:
                    return True
        except httpx.TransportError:
            time.sleep(0.1)
    raise TimeoutError("Server did not start in time.")


@pytest.fixture
def server_env(tmp_path):
    env = os.environ.copy()
    env["DB_PATH"] = str(tmp_path / "test_persistence.sqlite")
    return env


def _start_server(env):
    cmd = [sys.executable, "-m", "uvicorn", "studylog.main:app", "--host", HOST, "--port", str(PORT)]
    project_root = Path(__file__).resolve().parents[1]
    return subprocess.Popen(
        cmd, cwd=project_root, env=env, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
    )


def test_log_persists_across_unclean_shutdown(server_env):
    """
    1. Start the server and save a subject and a log.
    2. Force-kill the server process (no graceful shutdown).
    3. Start a NEW server process on the same DB file and read the list page back.
    """
    server_process = None
    try:
        server_process = _start_server(server_env)
        wait_for_server()

        with httpx.Client(base_url=BASE_URL) as client:
            resp = client.post("/save-subject", data={"subject": "Physics"})
            assert resp.status_code == 302
            resp = client.post("/save-log", data={"subject": "1", "duration": "7"})
            assert resp.status_code == 302

        server_process.kill()  # SIGKILL, no chance for graceful shutdown
        server_process.wait()

        server_process = _start_server(server_env)
        wait_for_server()

        with httpx.Client(base_url=BASE_URL) as client:
            resp = client.get("/")
            assert resp.status_code == 200
            assert "<td>Physics</td><td>7</td>" in resp.text, "Data was lost across restart."

    finally:
        if server_process and server_process.poll() is None:
            server_process.kill()
            server_process.wait()
