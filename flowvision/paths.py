from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "FLOWVISION_HOME"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains flowvision/, flowvision_api/, config/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for FlowVision.
    Override with FLOWVISION_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".flowvision").resolve()


def default_snapshot_path() -> Path:
    """Snapshot file read by the API and CLI when none is given."""
    return app_home() / "data" / "snapshot.json"
