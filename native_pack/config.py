"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module holds the package-wide settings for native_pack.
"""

import os
import threading
from typing import Mapping, Optional


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Settings for building and consuming native packages.

    The package version is intentionally not a setting: it is read from the
    source tree once per build and passed explicitly to the builder and the
    manifest assembler.
    """
    def __init__(
        self,
        library_name: str = "sqlite3",
        binary_name: str = "sqlite3.dll",
        version_file: str = "VERSION",
        max_workers: Optional[int] = None,
        include_debug: bool = False,
    ) -> None:
        if max_workers is not None and max_workers <= 0:
            raise ValueError("max_workers must be a positive integer")
        self.library_name: str = library_name
        self.binary_name: str = binary_name
        self.version_file: str = version_file
        # None means one worker per descriptor
        self.max_workers: Optional[int] = max_workers
        self.include_debug: bool = include_debug

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from NATIVEPACK_* environment variables, falling back
        to the defaults for anything unset.

        Raises:
            ValueError: If NATIVEPACK_MAX_WORKERS is not a positive integer.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        max_workers = defaults.max_workers
        raw_workers = env.get("NATIVEPACK_MAX_WORKERS")
        if raw_workers:
            try:
                max_workers = int(raw_workers)
            except ValueError:
                raise ValueError(
                    f"NATIVEPACK_MAX_WORKERS must be an integer, got {raw_workers!r}"
                ) from None

        return cls(
            library_name=env.get("NATIVEPACK_LIBRARY_NAME") or defaults.library_name,
            binary_name=env.get("NATIVEPACK_BINARY_NAME") or defaults.binary_name,
            version_file=env.get("NATIVEPACK_VERSION_FILE") or defaults.version_file,
            max_workers=max_workers,
            include_debug=_env_bool(env.get("NATIVEPACK_INCLUDE_DEBUG"), defaults.include_debug),
        )


# Global settings instance
_settings: Settings = Settings.from_environment()
_settings_lock: threading.Lock = threading.Lock()


def get_settings() -> Settings:
    """Return the global settings object"""
    with _settings_lock:
        return _settings


def set_settings(settings: Settings) -> None:
    global _settings
    with _settings_lock:
        _settings = settings
