"""Serve the token API with uvicorn.

Run from project root:
    python run_api.py
"""
from __future__ import annotations

import sys
from pathlib import Path

import uvicorn

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from config import get_port, load_env_file  # noqa: E402


def main() -> None:
    load_env_file()
    uvicorn.run("app:app", host="0.0.0.0", port=get_port(), app_dir=str(SRC))


if __name__ == "__main__":
    main()
