"""Interpretation of worker stdout: progress markers and the trailing result."""

import json
import re
from dataclasses import dataclass, field

RESULT_MARKER_FIELD = "homepage"

_PROGRESS_MARKER = re.compile(r"^\[[*+\-]\]")


def extract_progress_lines(text: str) -> list[str]:
    """Return the progress marker lines found in a chunk of worker output.

    Blank lines are dropped, and only lines whose first non-whitespace
    characters are ``[*]``, ``[+]`` or ``[-]`` are kept. Call this with newly
    arrived text only; feeding the same text twice records it twice.
    """
    lines: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line and _PROGRESS_MARKER.match(line):
            lines.append(line)
    return lines


@dataclass
class LineBuffer:
    """Reassemble complete lines from arbitrarily split stream chunks."""

    _pending: str = field(default="", init=False)

    def feed(self, chunk: str) -> str:
        """Add a chunk and return the newly completed lines, newline-joined."""
        data = self._pending + chunk
        cut = max(data.rfind("\n"), data.rfind("\r"))
        if cut == -1:
            self._pending = data
            return ""
        self._pending = data[cut + 1 :]
        return data[: cut + 1]

    def flush(self) -> str:
        """Return whatever partial line is still buffered."""
        remainder, self._pending = self._pending, ""
        return remainder


def extract_result(
    output: str, marker_field: str = RESULT_MARKER_FIELD
) -> dict[str, object] | None:
    """Find the trailing structured result in noisy worker output.

    Lines are scanned from the end. For each line starting with ``{`` the text
    from that line to the end of the output is parsed as JSON; the first value
    that parses as an object holding ``marker_field`` at the top level wins.
    Earlier ``{``-prefixed diagnostics that fail to parse, or that parse into
    something unrelated, are skipped.
    """
    lines = output.split("\n")
    for index in range(len(lines) - 1, -1, -1):
        if not lines[index].strip().startswith("{"):
            continue
        candidate = "\n".join(lines[index:])
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            continue
        if isinstance(parsed, dict) and marker_field in parsed:
            return parsed
    return None
