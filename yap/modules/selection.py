# yap/modules/selection.py
"""--from / --to window over the declared package list."""

from __future__ import annotations
from typing import List, Optional, Sequence

from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import InvalidRangeError, PackageNotFoundError


def find_package(descriptors: Sequence[PackageDescriptor], name: str) -> int:
    """Index of ``name`` in declared order; raises PackageNotFoundError."""
    for index, desc in enumerate(descriptors):
        if desc.name == name:
            return index
    raise PackageNotFoundError(name)


def check_range(descriptors: Sequence[PackageDescriptor], from_pkg: Optional[str] = None,
                to_pkg: Optional[str] = None):
    """Validate the window against the full set before anything gets built."""
    first = find_package(descriptors, from_pkg) if from_pkg else None
    last = find_package(descriptors, to_pkg) if to_pkg else None
    if first is not None and last is not None and first > last:
        raise InvalidRangeError(from_pkg, to_pkg)


def filter_range(descriptors: Sequence[PackageDescriptor], from_pkg: Optional[str] = None,
                 to_pkg: Optional[str] = None) -> List[PackageDescriptor]:
    check_range(descriptors, from_pkg, to_pkg)
    selected = []
    started = not from_pkg
    for desc in descriptors:
        if not started and desc.name == from_pkg:
            started = True
        if started:
            selected.append(desc)
            if to_pkg and desc.name == to_pkg:
                break
    return selected
