"""Tracking files linking Nagios alerts to SNOW incidents.

Each alert gets a small ``<sname>.incident`` file holding the incident number,
the acknowledgement state and the alert name::

    INC=INC000000123456
    ACK=1
    SNAME=host1_disk
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

LOGGER = logging.getLogger(__name__)

DEFAULT_BASEDIR = Path("/srv/monitor/snow-incidents")
SUFFIX = ".incident"
LONG_PATTERN = re.compile(r"^(?:INC)?(\d+)$")


def incnumber_long(incident: str) -> Optional[str]:
    """INC12345 or 12345 -> INC000000012345; None if it is not an incident number."""
    match = LONG_PATTERN.match(incident or "")
    if not match or not int(match.group(1)):
        return None
    return "INC%012d" % int(match.group(1))


def incnumber_short(incident: str) -> str:
    return re.sub(r"^(INC)?0+", "", incident)


@dataclass
class NagiosIncident:
    sname: str
    filename: Path
    incident: Optional[str] = None
    ack: Optional[str] = None

    @classmethod
    def create(cls, sname: str, basedir: Union[str, Path] = DEFAULT_BASEDIR) -> "NagiosIncident":
        return cls(sname=sname, filename=Path(basedir) / f"{sname}{SUFFIX}")

    @classmethod
    def read(cls, sname: str, basedir: Union[str, Path] = DEFAULT_BASEDIR) -> Optional["NagiosIncident"]:
        """Load the tracking file for ``sname``; None if it cannot be read."""
        obj = cls.create(sname, basedir)
        try:
            content = obj.filename.read_text(encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("could not read %s: %s", obj.filename, exc)
            return None
        for line in content.splitlines():
            key, _, value = line.partition("=")
            if key == "ACK":
                obj.ack = value
            elif key == "INC":
                obj.set_incident(value)
            elif key == "SNAME":
                obj.sname = value
        return obj

    @classmethod
    def read_dir(cls, basedir: Union[str, Path] = DEFAULT_BASEDIR) -> list["NagiosIncident"]:
        incidents = []
        for path in sorted(Path(basedir).glob(f"*{SUFFIX}")):
            incident = cls.read(path.name[: -len(SUFFIX)], basedir)
            if incident:
                incidents.append(incident)
        return incidents

    def set_incident(self, number: str) -> Optional[str]:
        self.incident = incnumber_long(number)
        return self.incident

    def write(self) -> None:
        content = f"INC={self.incident or ''}\nACK={self.ack or ''}\nSNAME={self.sname or ''}\n"
        self.filename.write_text(content, encoding="utf-8")
        os.chmod(self.filename, 0o600)

    def unlink(self) -> None:
        self.filename.unlink()
