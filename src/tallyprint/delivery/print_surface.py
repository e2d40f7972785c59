"""Print surfaces: where a print-ready page goes.

The printing itself happens in the user's browser (the page opens with the
system print dialog available); headless environments use FilePrintSurface.
"""

import logging
import re
import webbrowser
from pathlib import Path
from typing import Protocol

from tallyprint.errors import PresentationError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def document_filename(title: str, suffix: str = ".html") -> str:
    """Build a filesystem-safe file name from a document title."""
    stem = _UNSAFE_FILENAME_RE.sub("-", title).strip("-.") or "document"
    return f"{stem}{suffix}"


class PrintSurface(Protocol):
    """Accepts a print-ready page."""

    def open(self, html: str, title: str) -> Path | None:
        """Present the page; return where it was written, if anywhere."""
        ...


class FilePrintSurface:
    """Writes print-ready pages to an output directory.

    Attributes:
        output_dir: Directory pages are written to
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def write(self, html: str, title: str) -> Path:
        """Write the page and return its path.

        Raises:
            PresentationError: If the file cannot be written
        """
        path = self.output_dir / document_filename(title)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as e:
            raise PresentationError(f"Cannot write print file {path}: {e}") from e
        logger.info("Wrote print file %s", path)
        return path

    def open(self, html: str, title: str) -> Path | None:
        return self.write(html, title)


class BrowserPrintSurface(FilePrintSurface):
    """Writes the page, then opens it in the system browser for printing."""

    def open(self, html: str, title: str) -> Path | None:
        """Write and open the page.

        Raises:
            PresentationError: If the file cannot be written or no browser opens it
        """
        path = self.write(html, title)
        try:
            opened = webbrowser.open(path.resolve().as_uri())
        except (OSError, webbrowser.Error) as e:
            raise PresentationError(f"Cannot open browser for {path}: {e}") from e
        if not opened:
            raise PresentationError(f"No browser available to open {path}")
        logger.info("Opened %s for printing", path)
        return path
