"""Build metadata exposed at runtime.

APP_VERSION is set through the environment in CI. Otherwise it falls back to
the installed distribution's version, or "dev" for a source checkout.
"""

import os
from importlib import metadata

DISTRIBUTION_NAME = "whack-server"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
