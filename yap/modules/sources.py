# yap/modules/sources.py
"""
Source retrieval for one package: local files shipped next to the recipe and
HTTP(S)/FTP downloads, verified against sha256sums and unpacked into src/.

Entries may be renamed with ``local-name::url``. Tarballs are extracted, every
other file is copied as-is.
"""

from __future__ import annotations
import hashlib
import os
import shutil
import tarfile
import urllib.error
import urllib.request
from typing import Tuple

from yap.modules import logger as _logger
from yap.modules.errors import SourceError

REMOTE_SCHEMES = ("http://", "https://", "ftp://")
TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz")


def sha256_file(path: str) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def split_source(entry: str) -> Tuple[str, str]:
    """``"name::url"`` -> ``(name, url)``; a bare entry keeps its basename."""
    if "::" in entry:
        name, uri = entry.split("::", 1)
        return name, uri
    return os.path.basename(entry.rstrip("/")), entry


class Source:
    def __init__(self, package: str, entry: str, checksum: str, start_dir: str, src_dir: str):
        self.package = package
        self.entry = entry
        self.checksum = (checksum or "SKIP").strip()
        self.start_dir = start_dir
        self.src_dir = src_dir
        self.name, self.uri = split_source(entry)
        self.log = _logger.Logger(package)

    @property
    def is_remote(self) -> bool:
        return self.uri.startswith(REMOTE_SCHEMES)

    def get(self) -> str:
        if self.uri.startswith(("git+", "git://")):
            raise SourceError(f"unsupported source type: {self.uri}", package=self.package)
        path = self._download() if self.is_remote else self._local()
        self._verify(path)
        try:
            self._unpack(path)
        except (tarfile.TarError, OSError) as e:
            raise SourceError(f"cannot unpack {self.name}", package=self.package, cause=e) from e
        return path

    def _local(self) -> str:
        path = self.uri if os.path.isabs(self.uri) else os.path.join(self.start_dir, self.uri)
        if not os.path.exists(path):
            raise SourceError(f"source file not found: {path}", package=self.package)
        return path

    def _download(self) -> str:
        dest = os.path.join(self.start_dir, self.name)
        if os.path.exists(dest):
            self.log.info(f"Source already downloaded: {self.name}")
            return dest
        self.log.info(f"Downloading {self.uri}")
        tmp = dest + ".part"
        try:
            with urllib.request.urlopen(self.uri, timeout=60) as resp, open(tmp, "wb") as out:
                shutil.copyfileobj(resp, out)
        except (urllib.error.URLError, OSError) as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise SourceError(f"download failed: {self.uri}", package=self.package, cause=e) from e
        os.replace(tmp, dest)
        return dest

    def _verify(self, path: str):
        if self.checksum.upper() == "SKIP" or os.path.isdir(path):
            return
        try:
            digest = sha256_file(path)
        except OSError as e:
            raise SourceError(f"cannot read {self.name}", package=self.package, cause=e) from e
        if digest != self.checksum.lower():
            raise SourceError(f"sha256 mismatch for {self.name}: expected {self.checksum}, got {digest}",
                              package=self.package)

    def _unpack(self, path: str):
        os.makedirs(self.src_dir, exist_ok=True)
        if os.path.isdir(path):
            shutil.copytree(path, os.path.join(self.src_dir, self.name), dirs_exist_ok=True)
            return
        if path.endswith(TAR_SUFFIXES) and tarfile.is_tarfile(path):
            with tarfile.open(path) as tar:
                tar.extractall(self.src_dir, filter="data")
            return
        shutil.copy2(path, os.path.join(self.src_dir, self.name))


def fetch_all(descriptor):
    """Retrieve every source of ``descriptor`` in declaration order."""
    sums = descriptor.sha256sums or ["SKIP"] * len(descriptor.sources)
    for index, entry in enumerate(descriptor.sources):
        src = Source(descriptor.name, entry, sums[index] if index < len(sums) else "SKIP",
                     descriptor.start_dir, descriptor.src_dir)
        src.get()
