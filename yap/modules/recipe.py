# yap/modules/recipe.py
"""
Recipe parser - turns a package directory's recipe.yaml into a PackageDescriptor.

Recipe layout (all keys optional except name/version):

  name: libfoo
  version: 1.2.0
  release: 1
  arch: [x86_64, aarch64]        # or [any]
  depends: [zlib, "libbar >= 2"]
  makedepends: [gcc, make]
  depends__debian: [zlib1g]      # distro override
  depends__ubuntu_jammy: [...]   # distro + codename override, wins over the above
  makedepends__apt: [...]        # package-manager override
  source: [libfoo-1.2.0.tar.gz, "https://example.org/patch.diff"]
  sha256sums: [SKIP, "<hex>"]
  prepare: |
    ...
  build: |
    ...
  package: |
    ...
"""

from __future__ import annotations
import os
from typing import Any, Dict, List, Optional

import yaml

from yap.modules import logger as _logger
from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import RecipeError

RECIPE_FILE = "recipe.yaml"

LIST_FIELDS = ("arch", "depends", "makedepends", "license", "source", "sha256sums")
TEXT_FIELDS = ("name", "version", "release", "epoch", "description", "url", "maintainer",
               "prepare", "build", "package")


class RecipeManager:
    REQUIRED_FIELDS = ["name", "version"]

    def __init__(self, logger: Optional[_logger.Logger] = None):
        self.log = logger or _logger.Logger("recipe")

    # -------------------------
    # I/O
    # -------------------------
    def load(self, path: str) -> Dict[str, Any]:
        """Load recipe.yaml from a directory or from an explicit file"""
        path = os.path.abspath(path)
        if os.path.isdir(path):
            candidate = os.path.join(path, RECIPE_FILE)
        else:
            candidate = path

        if not os.path.exists(candidate):
            raise RecipeError(f"recipe file not found: {candidate}")

        try:
            with open(candidate, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RecipeError(f"invalid recipe {candidate}", cause=e) from e

        if not isinstance(data, dict):
            raise RecipeError(f"recipe {candidate} must be a mapping")
        self.log.debug(f"Recipe loaded: {candidate}")
        return data

    # -------------------------
    # Distro overrides
    # -------------------------
    @staticmethod
    def resolve_overrides(recipe: Dict[str, Any], distro: str, codename: str = "",
                          package_manager: str = "") -> Dict[str, Any]:
        """
        Collapse ``key__qualifier`` entries into plain keys.
        Priority: ``key__<distro>_<codename>`` > ``key__<distro>`` > ``key__<manager>`` > ``key``.
        """
        qualifiers = []
        if distro and codename:
            qualifiers.append(f"{distro}_{codename}")
        if distro:
            qualifiers.append(distro)
        if package_manager:
            qualifiers.append(package_manager)

        resolved = {k: v for k, v in recipe.items() if "__" not in k}
        base_keys = {k.split("__", 1)[0] for k in recipe}
        for key in base_keys:
            for qualifier in qualifiers:
                qualified = f"{key}__{qualifier}"
                if qualified in recipe:
                    resolved[key] = recipe[qualified]
                    break
        return resolved

    # -------------------------
    # Validation
    # -------------------------
    def validate(self, recipe: Dict[str, Any]) -> bool:
        missing = [f for f in self.REQUIRED_FIELDS if f not in recipe or recipe[f] in (None, "")]
        if missing:
            raise RecipeError(f"missing mandatory fields: {missing}", package=recipe.get("name"))

        for field in LIST_FIELDS:
            value = recipe.get(field)
            if value is not None and not isinstance(value, (list, str)):
                raise RecipeError(f"field '{field}' must be a list", package=recipe.get("name"))

        if not isinstance(recipe["version"], (str, int, float)):
            raise RecipeError("field 'version' must be a string or number", package=recipe.get("name"))

        sources = _as_list(recipe.get("source"))
        sums = _as_list(recipe.get("sha256sums"))
        if sums and len(sums) != len(sources):
            raise RecipeError(f"sha256sums has {len(sums)} entries for {len(sources)} sources",
                              package=recipe.get("name"))
        return True

    # -------------------------
    # Descriptor
    # -------------------------
    def to_descriptor(self, recipe: Dict[str, Any], distro: str = "", codename: str = "",
                      start_dir: str = "", home: str = "") -> PackageDescriptor:
        sources = _as_list(recipe.get("source"))
        sums = _as_list(recipe.get("sha256sums")) or ["SKIP"] * len(sources)
        return PackageDescriptor(
            name=str(recipe["name"]),
            version=str(recipe["version"]),
            release=str(recipe.get("release", 1)),
            epoch=str(recipe.get("epoch") or ""),
            depends=[str(d) for d in _as_list(recipe.get("depends"))],
            makedepends=[str(d) for d in _as_list(recipe.get("makedepends"))],
            arch=[str(a) for a in _as_list(recipe.get("arch"))] or ["any"],
            description=str(recipe.get("description") or ""),
            url=str(recipe.get("url") or ""),
            license=[str(item) for item in _as_list(recipe.get("license"))],
            maintainer=str(recipe.get("maintainer") or ""),
            sources=[str(s) for s in sources],
            sha256sums=[str(s) for s in sums],
            prepare=recipe.get("prepare") or "",
            build=recipe.get("build") or "",
            package=recipe.get("package") or "",
            distro=distro,
            codename=codename,
            start_dir=start_dir,
            home=home,
        )


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse(distro: str, release: str, build_dir: str, source_dir: str,
          package_manager: str = "") -> PackageDescriptor:
    """
    Parse ``source_dir/recipe.yaml`` for ``distro``/``release``.
    ``build_dir`` becomes the descriptor's start dir (src/ and pkg/ live under it).
    """
    rm = RecipeManager()
    raw = rm.load(source_dir)
    recipe = rm.resolve_overrides(raw, distro, release, package_manager)
    rm.validate(recipe)
    return rm.to_descriptor(recipe, distro=distro, codename=release,
                            start_dir=os.path.abspath(build_dir),
                            home=os.path.abspath(source_dir))
