"""
Tree acquisition and metadata collaborators.

The engine only needs two capabilities from the outside world:

- a TreeFetcher that copies a source tree into a local directory
- a MetadataProvider that describes the environment a baseline came from

The ADB implementations talk to a connected Android device the way an
assessor would by hand (root copy to scratch storage, then ``adb pull``).
The local implementations copy an already-available directory.
"""
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional

from core.errors import InsufficientPrivilegeError, NotFoundError, TransportError
from core.hasher import ignore_special_files

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class TreeFetcher(ABC):
    """Copies a logical source tree into a local directory."""

    def check_target(self, target: str):
        """Verify the target is reachable before fetching. No-op by default."""

    @abstractmethod
    def fetch_tree(self, source_path: str, destination: Path) -> Path:
        """
        Copy source_path into destination.

        Returns:
            The local directory holding the fetched tree

        Raises:
            TransportError: source unreachable
            InsufficientPrivilegeError: source not readable
        """


class MetadataProvider(ABC):
    """Supplies environment facts recorded with a baseline."""

    @abstractmethod
    def collect(self, target: str) -> dict[str, str]:
        """Return an opaque string map; unavailable fields are 'unknown'."""


# ============================================================
# LOCAL
# ============================================================

class LocalTreeFetcher(TreeFetcher):
    """Fetches from a directory on the local filesystem."""

    def fetch_tree(self, source_path: str, destination: Path) -> Path:
        source = Path(source_path)
        if not source.is_dir():
            raise TransportError(
                f"Source tree not available: {source}",
                hint="Check the --source directory exists."
            )

        local_root = Path(destination) / (source.name or "tree")
        try:
            shutil.copytree(source, local_root, symlinks=True, ignore=ignore_special_files)
        except PermissionError as e:
            raise InsufficientPrivilegeError(
                f"Permission denied reading {source}: {e}",
                hint="Run with an account that can read the source tree."
            ) from e
        except (OSError, shutil.Error) as e:
            raise TransportError(f"Failed to copy {source}: {e}") from e

        logger.info(f"Copied local tree {source} -> {local_root}")
        return local_root


class StaticMetadataProvider(MetadataProvider):
    """Returns a fixed metadata map."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self.values = dict(values or {})

    def collect(self, target: str) -> dict[str, str]:
        return dict(self.values)


# ============================================================
# ADB
# ============================================================

class AdbClient:
    """Thin wrapper over the adb binary."""

    def __init__(self, adb_path: str = "adb", command_timeout: int = 30):
        self.adb_path = adb_path
        self.command_timeout = command_timeout

    def run(self, *args: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        command = [self.adb_path, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout or self.command_timeout
            )
        except FileNotFoundError as e:
            raise TransportError(
                "ADB not found.",
                hint="Install Android SDK Platform Tools or set ADB_PATH."
            ) from e
        except subprocess.TimeoutExpired as e:
            raise TransportError(f"adb {args[0]} timed out after {e.timeout}s") from e

    def shell(self, command: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        return self.run("shell", command, timeout=timeout)

    def check_connection(self):
        result = self.run("devices")
        devices = [
            line for line in result.stdout.splitlines()[1:]
            if line.strip().endswith("device")
        ]
        if result.returncode != 0 or not devices:
            raise TransportError(
                "No Android device connected or device not authorized.",
                hint="Run 'adb devices' to check connection status."
            )

    def has_root(self) -> bool:
        result = self.shell("su -c 'echo root'")
        return result.returncode == 0 and result.stdout.strip() == "root"

    def getprop(self, name: str) -> Optional[str]:
        result = self.shell(f"getprop {name}")
        value = result.stdout.replace("\r", "").strip()
        return value if result.returncode == 0 and value else None


class AdbTreeFetcher(TreeFetcher):
    """Pulls an application's private data directory from a device."""

    def __init__(
        self,
        client: Optional[AdbClient] = None,
        scratch_path: str = "/sdcard/temp_app_data",
        fetch_timeout: int = 600
    ):
        self.client = client or AdbClient()
        self.scratch_path = scratch_path
        self.fetch_timeout = fetch_timeout

    def check_target(self, target: str):
        self.client.check_connection()
        result = self.client.shell("pm list packages")
        packages = {line.strip() for line in result.stdout.splitlines()}
        if f"package:{target}" not in packages:
            raise NotFoundError(
                f"Package '{target}' not found on device.",
                hint="Use 'adb shell pm list packages | grep <keyword>' to find packages."
            )

    def fetch_tree(self, source_path: str, destination: Path) -> Path:
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        local_root = destination / PurePosixPath(source_path).name

        logger.info(f"Pulling {source_path} from device...")
        if self.client.has_root():
            self._pull_as_root(source_path, destination, local_root)
        else:
            logger.warning("Device may not have root access; trying a direct pull")
            result = self.client.run("pull", source_path, str(destination), timeout=self.fetch_timeout)
            if result.returncode != 0:
                raise InsufficientPrivilegeError(
                    f"Failed to pull {source_path}: {result.stderr.strip()}",
                    hint="Root access may be required to read /data/data."
                )

        if not local_root.is_dir():
            raise TransportError(f"Pull finished but {local_root} was not created")
        logger.info(f"App data pulled to {local_root}")
        return local_root

    def _pull_as_root(self, source_path: str, destination: Path, local_root: Path):
        scratch = self.scratch_path
        self.client.shell(f"rm -rf {scratch}")
        copied = self.client.shell(f"su -c 'cp -r {source_path} {scratch}'", timeout=self.fetch_timeout)
        if copied.returncode != 0:
            raise InsufficientPrivilegeError(
                f"Root copy of {source_path} failed: {copied.stderr.strip()}",
                hint="Grant the adb shell superuser access on the device."
            )
        try:
            pulled = self.client.run("pull", scratch, str(destination), timeout=self.fetch_timeout)
            if pulled.returncode != 0:
                raise TransportError(f"adb pull failed: {pulled.stderr.strip()}")
        finally:
            self.client.shell(f"rm -rf {scratch}")

        pulled_root = destination / PurePosixPath(scratch).name
        if pulled_root.is_dir() and pulled_root != local_root:
            pulled_root.rename(local_root)


class AdbMetadataProvider(MetadataProvider):
    """Device model, Android version and app version from the device."""

    def __init__(self, client: Optional[AdbClient] = None):
        self.client = client or AdbClient()

    def collect(self, target: str) -> dict[str, str]:
        metadata = {
            "Package": target,
            "Device": UNKNOWN,
            "Android Version": UNKNOWN,
            "App Version": UNKNOWN,
        }
        try:
            metadata["Device"] = self.client.getprop("ro.product.model") or UNKNOWN
            metadata["Android Version"] = self.client.getprop("ro.build.version.release") or UNKNOWN
            metadata["App Version"] = self._app_version(target) or UNKNOWN
        except TransportError as e:
            logger.warning(f"Could not collect device metadata: {e}")
        return metadata

    def _app_version(self, package: str) -> Optional[str]:
        result = self.client.shell(f"dumpsys package {package}")
        for line in result.stdout.splitlines():
            if "versionName=" in line:
                return line.split("=", 1)[1].replace("\r", "").strip() or None
        return None
