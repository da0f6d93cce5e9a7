from __future__ import annotations

import re

# e.g. "PM2.5(ATM): 34.7 ug/m3"; the sensor also emits other telemetry lines.
PM25_PATTERN = re.compile(r"PM2\.5\(ATM\):\s*(\d+(?:\.\d*)?|\.\d+)\s*[uµ]g/m3")


def parse_chunk(text: str) -> float | None:
    """Return the first PM2.5 concentration found in ``text``, if any."""
    if not text:
        return None
    match = PM25_PATTERN.search(text)
    if match is None:
        return None
    return float(match.group(1))
