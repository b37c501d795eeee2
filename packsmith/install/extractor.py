"""Bundle extraction collaborator for native-bundle artifacts.

Extraction runs after a native bundle has been promoted; it is a side effect
of promotion, not part of its atomicity contract.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    """Raised when an archive cannot be extracted safely."""


@runtime_checkable
class BundleExtractor(Protocol):
    def extract(self, archive: Path, dest_dir: Path) -> int:
        """Extract ``archive`` into ``dest_dir`` and return the number of files written."""
        ...


class ZipBundleExtractor:
    """Extracts zip/jar bundles, refusing members that would escape ``dest_dir``.

    Directory entries and anything under ``exclude_prefixes`` (``META-INF/`` by
    default) are skipped.
    """

    def __init__(self, exclude_prefixes: tuple[str, ...] = ("META-INF/",)) -> None:
        self._exclude = exclude_prefixes

    def extract(self, archive: Path, dest_dir: Path) -> int:
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        root = dest_dir.resolve()
        count = 0
        try:
            with zipfile.ZipFile(archive) as zf:
                for info in zf.infolist():
                    name = info.filename
                    if info.is_dir() or not name or name.startswith(self._exclude):
                        continue
                    member = PurePosixPath(name)
                    if member.is_absolute() or ".." in member.parts:
                        raise ExtractionError(f"unsafe archive member {name!r}")
                    target = (dest_dir / Path(*member.parts)).resolve()
                    if root not in target.parents:
                        raise ExtractionError(f"unsafe archive member {name!r}")
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, target.open("wb") as out:
                        shutil.copyfileobj(src, out)
                    count += 1
        except zipfile.BadZipFile as exc:
            raise ExtractionError(f"{Path(archive).name} is not a valid zip archive") from exc

        logger.debug(
            "bundle extracted",
            extra={"meta": {"archive": Path(archive).name, "files": count}},
        )
        return count
