"""Installing optional channel plugins into the current interpreter."""

import importlib.util
import subprocess
import sys
from abc import ABC, abstractmethod

from loguru import logger

from onboard.channels.registry import CatalogEntry

DEFAULT_INSTALL_TIMEOUT_S = 300


class PluginInstallError(RuntimeError):
    """A channel plugin could not be installed."""


class PluginInstaller(ABC):
    @abstractmethod
    def is_installed(self, entry: CatalogEntry) -> bool:
        pass

    @abstractmethod
    def install(self, entry: CatalogEntry, timeout: float = DEFAULT_INSTALL_TIMEOUT_S) -> None:
        """Install the plugin or raise PluginInstallError."""


class PipPluginInstaller(PluginInstaller):
    """Installs catalog packages with pip into sys.executable's environment."""

    def is_installed(self, entry: CatalogEntry) -> bool:
        try:
            return importlib.util.find_spec(entry.module) is not None
        except (ImportError, ValueError):
            return False

    def install(self, entry: CatalogEntry, timeout: float = DEFAULT_INSTALL_TIMEOUT_S) -> None:
        cmd = [sys.executable, "-m", "pip", "install", entry.package]
        logger.info(f"Installing plugin for {entry.id}: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise PluginInstallError(f"pip install {entry.package} timed out after {timeout:.0f}s") from e
        except OSError as e:
            raise PluginInstallError(f"Could not run pip: {e}") from e

        if proc.returncode != 0:
            tail = (proc.stderr or proc.stdout or "").strip().splitlines()[-5:]
            logger.debug(f"pip output for {entry.package}:\n{proc.stderr}")
            raise PluginInstallError(
                f"pip install {entry.package} failed (exit {proc.returncode})"
                + (f": {tail[-1]}" if tail else "")
            )
        importlib.invalidate_caches()
        logger.info(f"Installed {entry.package}")
