from __future__ import annotations

import subprocess
from pathlib import Path, PurePosixPath

import pytest

from core.errors import InsufficientPrivilegeError, NotFoundError, TransportError
from services.transport import AdbClient, AdbMetadataProvider, AdbTreeFetcher

DEVICES_OK = "List of devices attached\nemulator-5554\tdevice\n\n"


class FakeAdbClient(AdbClient):
    """Scripted adb: answers by command prefix and fakes pulls on disk."""

    def __init__(self, rooted: bool = True, packages: tuple[str, ...] = ("com.example.app",)):
        super().__init__(adb_path="adb")
        self.rooted = rooted
        self.packages = packages
        self.pull_fails = False
        self.props: dict[str, str] = {}
        self.version_name = "2.4.1"
        self.commands: list[tuple[str, ...]] = []

    def run(self, *args: str, timeout=None) -> subprocess.CompletedProcess:
        self.commands.append(args)
        if args[0] == "devices":
            return self._done(DEVICES_OK)
        if args[0] == "pull":
            return self._pull(args[1], Path(args[2]))
        return self._shell(args[1])

    def _shell(self, command: str) -> subprocess.CompletedProcess:
        if command == "su -c 'echo root'":
            return self._done("root\n") if self.rooted else self._done("", returncode=1)
        if command.startswith("su -c 'cp -r"):
            return self._done("")
        if command == "pm list packages":
            return self._done("".join(f"package:{p}\n" for p in self.packages))
        if command.startswith("getprop "):
            name = command.split(" ", 1)[1]
            return self._done(self.props.get(name, "") + "\r\n")
        if command.startswith("dumpsys package"):
            return self._done(f"    versionCode=7\n    versionName={self.version_name}\r\n")
        return self._done("")

    def _pull(self, remote: str, destination: Path) -> subprocess.CompletedProcess:
        if self.pull_fails:
            return self._done("", returncode=1, stderr="remote open failed: Permission denied")
        tree = destination / PurePosixPath(remote).name
        (tree / "shared_prefs").mkdir(parents=True)
        (tree / "shared_prefs" / "prefs.xml").write_text("<map />", encoding="utf-8")
        return self._done("1 file pulled\n")

    @staticmethod
    def _done(stdout: str, returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_missing_adb_binary_is_a_transport_error(tmp_path: Path) -> None:
    client = AdbClient(adb_path=str(tmp_path / "no-such-adb"))

    with pytest.raises(TransportError) as error:
        client.check_connection()

    assert str(error.value) == "ADB not found."


def test_no_attached_device_is_a_transport_error() -> None:
    client = FakeAdbClient()
    client.run = lambda *args, timeout=None: FakeAdbClient._done("List of devices attached\n\n")

    with pytest.raises(TransportError):
        client.check_connection()


def test_check_target_requires_installed_package() -> None:
    fetcher = AdbTreeFetcher(FakeAdbClient(packages=("com.other",)))

    with pytest.raises(NotFoundError):
        fetcher.check_target("com.example.app")


def test_check_target_accepts_installed_package() -> None:
    fetcher = AdbTreeFetcher(FakeAdbClient(packages=("com.example.app", "com.example.application")))

    fetcher.check_target("com.example.app")


def test_root_fetch_copies_via_scratch_and_cleans_up(tmp_path: Path) -> None:
    client = FakeAdbClient(rooted=True)
    fetcher = AdbTreeFetcher(client, scratch_path="/sdcard/temp_app_data")

    local_root = fetcher.fetch_tree("/data/data/com.example.app", tmp_path)

    assert local_root == tmp_path / "com.example.app"
    assert (local_root / "shared_prefs" / "prefs.xml").is_file()
    assert ("pull", "/sdcard/temp_app_data", str(tmp_path)) in [c[:3] for c in client.commands]
    assert client.commands[-1] == ("shell", "rm -rf /sdcard/temp_app_data")


def test_root_fetch_cleans_scratch_when_pull_fails(tmp_path: Path) -> None:
    client = FakeAdbClient(rooted=True)
    client.pull_fails = True

    with pytest.raises(TransportError):
        AdbTreeFetcher(client).fetch_tree("/data/data/com.example.app", tmp_path)

    assert client.commands[-1] == ("shell", "rm -rf /sdcard/temp_app_data")


def test_unrooted_direct_pull_failure_is_a_privilege_error(tmp_path: Path) -> None:
    client = FakeAdbClient(rooted=False)
    client.pull_fails = True

    with pytest.raises(InsufficientPrivilegeError) as error:
        AdbTreeFetcher(client).fetch_tree("/data/data/com.example.app", tmp_path)

    assert isinstance(error.value, PermissionError)
    assert "Permission denied" in str(error.value)


def test_unrooted_direct_pull_success(tmp_path: Path) -> None:
    client = FakeAdbClient(rooted=False)

    local_root = AdbTreeFetcher(client).fetch_tree("/data/data/com.example.app", tmp_path)

    assert (local_root / "shared_prefs" / "prefs.xml").is_file()


def test_metadata_collects_device_facts() -> None:
    client = FakeAdbClient()
    client.props = {"ro.product.model": "Pixel 7", "ro.build.version.release": "14"}

    metadata = AdbMetadataProvider(client).collect("com.example.app")

    assert metadata == {
        "Package": "com.example.app",
        "Device": "Pixel 7",
        "Android Version": "14",
        "App Version": "2.4.1",
    }


def test_metadata_falls_back_to_unknown(tmp_path: Path) -> None:
    client = AdbClient(adb_path=str(tmp_path / "no-such-adb"))

    metadata = AdbMetadataProvider(client).collect("com.example.app")

    assert metadata["Package"] == "com.example.app"
    assert metadata["Device"] == "unknown"
    assert metadata["Android Version"] == "unknown"
    assert metadata["App Version"] == "unknown"
