# kvfile.py
from __future__ import annotations
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

# Only lines of this shape are interpreted; everything else is dropped.
LINE_RE = re.compile(r"^[A-Z0-9_]+=.*$")


def _unquote(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        inner = value[1:-1]
        if value[0] == '"':
            inner = inner.replace('\\"', '"').replace("\\\\", "\\")
        return inner
    return value


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_kv(text: str) -> Dict[str, str]:
    """Parse KEY=VALUE text. Later keys win; malformed lines are ignored."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not LINE_RE.match(line):
            continue
        key, _, raw = line.partition("=")
        values[key] = _unquote(raw)
    return values


def read_kv_file(path: Path) -> Dict[str, str]:
    """Return {} for a missing file. Read/decode errors propagate."""
    path = Path(path)
    if not path.exists():
        return {}
    return parse_kv(path.read_text(encoding="utf-8"))


def render_kv(items: Iterable[Tuple[str, Optional[str]]], header: str = "") -> str:
    lines = [f"# {header}"] if header else []
    for key, value in items:
        lines.append(f"{key}={_quote(value or '')}")
    return "\n".join(lines) + "\n"


def atomic_write(path: Path, text: str, mode: int = 0o600) -> None:
    """Write via a temp file in the same directory, fsync, then os.replace()."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
