from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import FastAPI
from schoolchat.api.main import app as api_app


def export_openapi(app: FastAPI, destination: Path) -> None:
    """Persist the OpenAPI schema of the chat REST surface."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    schema = app.openapi()
    destination.write_text(json.dumps(schema, indent=2))


def main() -> None:
    output = Path("docs/api/openapi.json")
    export_openapi(api_app, output)
    print(f"OpenAPI schema written to {output}")


if __name__ == "__main__":
    main()
