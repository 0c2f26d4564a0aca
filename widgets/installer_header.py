# widgets/installer_header.py
from __future__ import annotations
import pyfiglet
from textual.widgets import Static

_ASCII = pyfiglet.figlet_format("XDR Installer", font="small")


class InstallerHeader(Static):
    """Full-width ASCII-art header shown on every full screen."""

    DEFAULT_CSS = """
    InstallerHeader {
        color: #38bdf8;
        text-style: bold;
        width: 100%;
        padding: 0 2;
    }
    """

    def __init__(self) -> None:
        super().__init__(_ASCII)
