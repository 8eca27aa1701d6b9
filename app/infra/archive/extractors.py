# app/infra/archive/extractors.py
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable

import rarfile

from app.domain.errors import ArchiveExtractionError, UnsupportedFileTypeError

SUPPORTED_ARCHIVES = (".zip", ".rar")


def _check_members(names: Iterable[str], dest: Path) -> None:
    root = dest.resolve()
    for name in names:
        target = (root / name).resolve()
        if target != root and root not in target.parents:
            raise ArchiveExtractionError(
                "Archive contains an unsafe path", {"member": name}
            )


def extract_zip(archive: Path, dest: Path) -> None:
    try:
        with zipfile.ZipFile(archive) as zf:
            _check_members(zf.namelist(), dest)
            zf.extractall(dest)
    except zipfile.BadZipFile as e:
        raise ArchiveExtractionError(f"Invalid ZIP archive: {e}") from e


def extract_rar(archive: Path, dest: Path) -> None:
    try:
        with rarfile.RarFile(archive) as rf:
            _check_members(rf.namelist(), dest)
            rf.extractall(dest)
    except rarfile.RarCannotExec:
        # missing unrar tool surfaces as a server error
        raise
    except rarfile.Error as e:
        raise ArchiveExtractionError(f"Invalid RAR archive: {e}") from e


EXTRACTORS: Dict[str, Callable[[Path, Path], None]] = {
    ".zip": extract_zip,
    ".rar": extract_rar,
}


def extractor_for(filename: str) -> Callable[[Path, Path], None]:
    ext = Path(filename).suffix.lower()
    try:
        return EXTRACTORS[ext]
    except KeyError:
        raise UnsupportedFileTypeError(
            "Unsupported file type. Only ZIP and RAR are allowed.",
            {"extension": ext or None, "allowed": list(SUPPORTED_ARCHIVES)},
        ) from None
