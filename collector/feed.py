from __future__ import annotations

"""
Position feed client.

The feed is a JSON document of the form

    {"Trucks": {"<id>": {"server": 5, "x": 1234, "y": -567, ...}, ...}}

Only `server` (the routing key), `x` and `y` are used; everything else is
ignored.
"""

from typing import Any, Dict, List, Optional

import requests

from common.errors import MissingFieldError
from common.logging_setup import get_logger
from common.types import Observation


log = get_logger(__name__)

_REQUIRED = ("server", "x", "y")


def parse_feed(doc: Any) -> List[Observation]:
    """Turn a decoded feed document into observations; records lacking a required field are skipped."""
    if not isinstance(doc, dict):
        raise MissingFieldError("feed root is not an object")
    trucks = doc.get("Trucks")
    if not isinstance(trucks, dict):
        raise MissingFieldError("feed has no 'Trucks' object")

    out: List[Observation] = []
    skipped = 0
    for record in trucks.values():
        obs = _parse_record(record)
        if obs is None:
            skipped += 1
            continue
        out.append(obs)
    if skipped:
        log.debug("feed records skipped", extra={"skipped": skipped, "kept": len(out)})
    return out


def _parse_record(record: Any) -> Optional[Observation]:
    if not isinstance(record, dict):
        return None
    vals = []
    for key in _REQUIRED:
        v = record.get(key)
        # bool is an int subclass; reject it explicitly
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        vals.append(v)
    return Observation(routing_key=vals[0], x=vals[1], y=vals[2])


class FeedClient:
    def __init__(self, url: str, session: Optional[requests.Session] = None, timeout: float = 10.0):
        """
        Params:
            url: feed endpoint returning the JSON document described above
            session: optional requests.Session for connection reuse
            timeout: per-request timeout in seconds
        """
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self) -> List[Observation]:
        """
        GET the feed and parse it. Transport errors propagate as
        requests.RequestException; a malformed document raises MissingFieldError.
        """
        r = self.session.get(self.url, timeout=self.timeout)
        if not 200 <= r.status_code < 300:
            log.warning("feed returned non-success status", extra={"status": r.status_code})
        try:
            doc: Dict[str, Any] = r.json()
        except ValueError as e:
            raise MissingFieldError(f"feed body is not JSON: {e}") from e
        return parse_feed(doc)
