import os
from pathlib import Path
from typing import Optional

from looprun.Coordinate import Coordinate
from looprun.errors import LoopRunError

ORS_URL = os.environ.get("ORS_URL", "https://api.openrouteservice.org")
ORS_PROFILE = os.environ.get("ORS_PROFILE", "foot-walking")
KEY_FILE = Path(os.environ.get("ORS_KEY_FILE", "key.txt"))

IP_LOCATION_URL = os.environ.get("IP_LOCATION_URL", "http://ip-api.com/json/")

# GPS unavailable -> plan around New York
DEFAULT_LOCATION = Coordinate(40.7128, -74.006)

CANDIDATE_COUNT = 4
MIN_LOOP_LENGTH_M = 1600.0

INITIAL_FIX_TIMEOUT_S = 10.0
LIVE_FIX_TIMEOUT_S = 5.0
ROUTE_TIMEOUT_S = 30.0
TICK_INTERVAL_S = 1.0


def ors_api_key(key_file: Optional[Path] = None) -> str:
    key = os.environ.get("ORS_API_KEY", "").strip()
    if key:
        return key
    path = key_file or KEY_FILE
    if path.is_file():
        key = path.read_text(encoding="utf-8").strip()
        if key:
            return key
    raise LoopRunError("No OpenRouteService key: set ORS_API_KEY or write it to key.txt")
