"""Toon formatter: pipes the JSON rendering through toon-cli when installed."""
from __future__ import annotations

import logging
import shutil
import subprocess
import sys

from agentlog.formatters.json import dumps

logger = logging.getLogger(__name__)


def format_toon(data) -> None:
    json_str = dumps(data)
    toon = shutil.which("toon-cli")
    if not toon:
        logger.debug("toon-cli not found; writing JSON")
        sys.stdout.write(json_str + "\n")
        return
    proc = subprocess.run([toon], input=json_str, text=True, capture_output=True)
    if proc.returncode != 0:
        logger.warning("toon-cli exited with %d; writing JSON", proc.returncode)
        sys.stdout.write(json_str + "\n")
        return
    sys.stdout.write(proc.stdout)
