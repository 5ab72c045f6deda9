"""Executable entry point for launching the schema resolution API.

Process managers can import the stable ``app`` object from
``k8s_yaml_schemas.app``; this module is for local development.

Environment Variables:
    PORT (int): Override listening port (default 8000).
    K8S_YAML_SCHEMAS_CONFIG: Source registry file used by the service.

Example:
    $ python -m k8s_yaml_schemas.run_server
    $ PORT=9000 k8s-yaml-schemas-server
"""

from __future__ import annotations

import os

import uvicorn

from .app import app


def main() -> None:
    """Launch the ASGI server on ``PORT`` (default 8000)."""
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
