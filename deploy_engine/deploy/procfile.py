#deploy_engine\deploy\procfile.py
"""Process file: process names mapped to start commands."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from deploy_engine.core.errors import ProcfileError
from deploy_engine.core.models import DEFAULT_ROUTABLE_PROCESS, ProcessSpec

_LINE = re.compile(r"^([A-Za-z0-9_-]+):\s*(.+)$")


@dataclass
class Procfile:
    processes: Dict[str, List[str]] = field(default_factory=dict)
    routable_process_name: str = DEFAULT_ROUTABLE_PROCESS

    def sorted_names(self) -> List[str]:
        """Routable process first, the rest alphabetically."""
        rest = sorted(name for name in self.processes if name != self.routable_process_name)
        if self.routable_process_name in self.processes:
            return [self.routable_process_name] + rest
        return rest

    def to_process_specs(self) -> List[ProcessSpec]:
        return [ProcessSpec(name=name, cmd=list(self.processes[name])) for name in self.sorted_names()]


def parse_procfile(content: str) -> Procfile:
    """
    Parse "name: command" lines.

    Blank lines and "#" comments are skipped. The command is kept as one
    shell string. The routable process is "web" when present, otherwise
    the first name alphabetically.
    """
    processes: Dict[str, List[str]] = {}
    for lineno, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE.match(line)
        if not match:
            raise ProcfileError(f"invalid Procfile line {lineno}: {raw!r}")
        name, command = match.group(1), match.group(2).strip()
        if name in processes:
            raise ProcfileError(f"duplicate process {name!r} in Procfile")
        processes[name] = [command]

    if not processes:
        raise ProcfileError("Procfile declares no processes")

    routable = DEFAULT_ROUTABLE_PROCESS if DEFAULT_ROUTABLE_PROCESS in processes else sorted(processes)[0]
    return Procfile(processes=processes, routable_process_name=routable)


def load_procfile(path: str) -> Procfile:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return parse_procfile(f.read())
    except OSError as e:
        raise ProcfileError(f"can't read Procfile {path}: {e}") from e


def procfile_from_image(entrypoint: Optional[Sequence[str]], cmd: Optional[Sequence[str]]) -> Procfile:
    """Single routable process running entrypoint + cmd."""
    command = list(entrypoint or []) + list(cmd or [])
    if not command:
        raise ProcfileError("can't use image, no entrypoint or commands")
    return Procfile(
        processes={DEFAULT_ROUTABLE_PROCESS: command},
        routable_process_name=DEFAULT_ROUTABLE_PROCESS,
    )
