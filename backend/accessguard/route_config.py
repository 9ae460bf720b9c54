"""Route table loaded from routes.yaml.

Supports:
- Extra dashboard routes and substring fragments per platform
- Custom processing prefix and onboarding views
- Backward compatible: no YAML file = built-in route table
"""

import logging
from pathlib import Path

import yaml

from core.models.config import RouteTable

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).parent.parent / "routes.yaml"


def load_route_table(path: Path | None = None) -> RouteTable:
    """Load the route table from a YAML file.

    Falls back to the built-in table if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        logger.info("No routes.yaml found at %s, using built-in route table", config_path)
        return RouteTable()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    table = RouteTable(**raw)
    logger.info(
        "Loaded route table: %d platforms, %d exact routes, %d gated",
        len(table.platforms),
        len(table.exact),
        len(table.gated),
    )
    return table
