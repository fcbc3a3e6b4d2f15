# yap/modules/config.py
import configparser
import os
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_LOCATIONS = [
    "/etc/yap/yap.conf",
    os.path.expanduser("~/.config/yap/yap.conf"),
]


def _default_locations() -> List[str]:
    override = os.environ.get("YAP_CONFIG")
    if override:
        return [override] + DEFAULT_LOCATIONS
    return list(DEFAULT_LOCATIONS)


class YapConfig:
    def __init__(self, locations=None):
        self.locations = locations or _default_locations()
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)load the configuration from the first available file.

        A missing file is not an error: every getter falls back to its default.
        """
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                self.config.read(path)
                self.loaded_from = path
                return

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getlist(self, section, option, fallback=None, delimiter=","):
        raw = self.get(section, option, fallback="")
        if raw:
            return [item.strip() for item in raw.split(delimiter) if item.strip()]
        return fallback or []


# Shared default instance
config = YapConfig()


@dataclass(frozen=True)
class BuildConfig:
    """Immutable set of switches for one orchestrator run."""

    parallel: bool = False
    clean_build: bool = False
    no_build: bool = False
    skip_make_deps: bool = False
    skip_sync: bool = False
    zap: bool = False
    from_pkg: str = ""
    to_pkg: str = ""
    target_arch: str = ""
    max_workers: Optional[int] = None
    verbose: bool = False

    @property
    def workers(self) -> int:
        return self.max_workers or os.cpu_count() or 1

    @classmethod
    def from_args(cls, args, cfg: Optional[YapConfig] = None) -> "BuildConfig":
        """CLI flags win; unset flags fall back to the [build] section."""
        cfg = cfg or config

        def flag(name, option):
            value = getattr(args, name, None)
            if value:
                return True
            return cfg.getboolean("build", option, fallback=False)

        workers = getattr(args, "jobs", None) or cfg.getint("build", "max_workers", fallback=0)
        return cls(
            parallel=flag("parallel", "parallel"),
            clean_build=flag("cleanbuild", "cleanbuild"),
            no_build=bool(getattr(args, "nobuild", False)),
            skip_make_deps=flag("nomakedeps", "nomakedeps"),
            skip_sync=flag("skip_sync", "skip_sync"),
            zap=bool(getattr(args, "zap", False)),
            from_pkg=getattr(args, "from_pkg", None) or "",
            to_pkg=getattr(args, "to_pkg", None) or "",
            target_arch=getattr(args, "target_arch", None) or "",
            max_workers=workers or None,
            verbose=bool(getattr(args, "verbose", False)),
        )
