"""Run the spec engine with uvicorn: ``python -m src.spec_engine``."""
from __future__ import annotations

import uvicorn

from src.shared.constants import SPEC_ENGINE_PORT


def main() -> None:
    uvicorn.run("src.spec_engine.main:app", host="0.0.0.0", port=SPEC_ENGINE_PORT)


if __name__ == "__main__":
    main()
