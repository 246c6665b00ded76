from __future__ import annotations

import argparse
import hashlib
import os
import subprocess
import sys
import venv
from pathlib import Path
from typing import List, Optional


PROJECT_ROOT = Path(__file__).resolve().parent
APP_DIR = PROJECT_ROOT / "app"
VENV_DIR = Path(os.environ.get("COVERAGE_VENV", PROJECT_ROOT / ".venv"))
REQUIREMENTS_FILE = APP_DIR / "requirements.txt"
STAMP_FILE = VENV_DIR / ".requirements.sha256"


def interpreter() -> Path:
    scripts = "Scripts" if os.name == "nt" else "bin"
    name = "python.exe" if os.name == "nt" else "python"
    return VENV_DIR / scripts / name


def prepare_environment(skip_install: bool = False) -> None:
    """Create the venv on first use and reinstall requirements whenever the file changes."""
    if not interpreter().exists():
        print(f"[launcher] Creating virtual environment at {VENV_DIR}...")
        venv.EnvBuilder(with_pip=True).create(VENV_DIR)
    if skip_install:
        return
    if not REQUIREMENTS_FILE.exists():
        raise FileNotFoundError(f"Requirements file not found: {REQUIREMENTS_FILE}")
    digest = hashlib.sha256(REQUIREMENTS_FILE.read_bytes()).hexdigest()
    if STAMP_FILE.exists() and STAMP_FILE.read_text().strip() == digest:
        return
    print(f"[launcher] Installing {REQUIREMENTS_FILE.name} into {VENV_DIR}...")
    subprocess.check_call([str(interpreter()), "-m", "pip", "install", "-r", str(REQUIREMENTS_FILE)])
    STAMP_FILE.write_text(digest)


def uvicorn_command(host: str, port: int, reload: bool) -> List[str]:
    command = [str(interpreter()), "-m", "uvicorn", "api:app", "--app-dir", str(APP_DIR), "--host", host, "--port", str(port)]
    if reload:
        command.append("--reload")
    return command


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the Coverage Assistant API from a local virtualenv.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart the server when sources change.")
    parser.add_argument("--skip-install", action="store_true", help="Use the venv as-is.")
    args = parser.parse_args(argv)

    prepare_environment(skip_install=args.skip_install)
    print(f"[launcher] Serving on http://{args.host}:{args.port}")
    return subprocess.call(uvicorn_command(args.host, args.port, args.reload))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except subprocess.CalledProcessError as exc:
        print(f"[launcher] Command failed with exit code {exc.returncode}", file=sys.stderr)
        sys.exit(exc.returncode)
    except FileNotFoundError as exc:
        print(f"[launcher] {exc}", file=sys.stderr)
        sys.exit(1)
