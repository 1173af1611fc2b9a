"""
Tests for the install/use/uninstall coordinator.
"""

import os
import shutil
import sys
from pathlib import Path

import pytest

from nodespark.core.activator import SymlinkActivator
from nodespark.core.config_manager import ConfigManager
from nodespark.core.download_manager import TransferError
from nodespark.core.extractor import ArchiveExtractor, ExtractionError
from nodespark.core.interfaces import IActivator, IReleaseIndex
from nodespark.core.models import ActivationResult, LtsDesignation, ReleaseDescriptor
from nodespark.core.platform_info import SystemInfo
from nodespark.core.remote_fetcher import NotFoundError
from nodespark.core.version_manager import VersionManager
from nodespark.core.version_store import (
    ActiveVersionError,
    NoActiveVersionError,
    NotInstalledError,
)
from nodespark.utils.input_validator import InputValidationError

skip_on_windows = pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX symlinks")

LINUX = SystemInfo(os_name="linux", arch="x64")
WINDOWS = SystemInfo(os_name="win", arch="x64")


class FakeIndex(IReleaseIndex):
    """Release index serving a fixed list."""

    def __init__(self, releases):
        self.releases = releases
        self.resolved = []

    def fetch_releases(self, use_cache=True):
        return list(self.releases)

    def list_versions(self, lts_only=False):
        return [r for r in self.releases if r.is_lts or not lts_only]

    def resolve(self, token):
        self.resolved.append(token)
        keyword = token.lower()
        if keyword == "latest":
            return self.releases[0]
        for release in self.releases:
            if keyword == "lts" and release.is_lts:
                return release
            if release.clean_version == token.lstrip("v"):
                return release
        raise NotFoundError(token)


class FakeDownloader:
    """Copies prepared archives instead of downloading them."""

    def __init__(self, archives=None, error=None):
        self.archives = archives or {}
        self.error = error
        self.calls = []

    def download(self, url, dest_path, progress_callback=None):
        self.calls.append((url, dest_path))
        if self.error:
            raise self.error
        source = self.archives[os.path.basename(dest_path)]
        shutil.copyfile(source, dest_path)
        size = os.path.getsize(dest_path)
        if progress_callback:
            progress_callback(size, size)
        return size


class RecordingActivator(IActivator):
    """Activator that only records calls."""

    def __init__(self, path):
        self.path = Path(path)
        self.activated = []

    @property
    def activation_path(self):
        return self.path

    def activate(self, version, version_dir):
        self.activated.append((version, Path(version_dir)))
        return ActivationResult(version=version, activation_path=self.path)


def release(version, lts=None, files=("linux-x64", "win-x64-zip")):
    designation = LtsDesignation.named(lts) if lts else LtsDesignation.not_lts()
    return ReleaseDescriptor(version=version, files=tuple(files), lts=designation)


@pytest.fixture
def config(tmp_path):
    manager = ConfigManager(app_dir=tmp_path / "app")
    manager.load_state()
    return manager


def make_manager(config, releases, downloader, system_info=LINUX, activator=None, probe=None):
    return VersionManager(
        config,
        config.load_state(),
        fetcher=FakeIndex(releases),
        downloader=downloader,
        extractor=ArchiveExtractor(symlinks_supported=not system_info.uses_shims,
                                   primary_executable="node.exe" if system_info.uses_shims else None),
        activator=activator or RecordingActivator(config.get_link_path()),
        system_info=system_info,
        probe=probe or (lambda path: True),
    )


@skip_on_windows
class TestEndToEnd:
    """Install, activate and remove against a mocked index and transfer."""

    def test_install_activate_remove(self, config, tarball_factory):
        tarball = tarball_factory(
            name="fixture-18.tar.gz",
            top_level="node-v18.17.0-linux-x64",
            files={"bin/node": (b"node 18", 0o755)},
        )
        other = tarball_factory(
            name="fixture-20.tar.gz",
            top_level="node-v20.11.0-linux-x64",
            files={"bin/node": (b"node 20", 0o755)},
        )
        downloader = FakeDownloader({
            "node-v18.17.0-linux-x64.tar.gz": tarball,
            "node-v20.11.0-linux-x64.tar.gz": other,
        })
        manager = make_manager(
            config,
            [release("v20.11.0", "Iron"), release("v18.17.0", "Hydrogen")],
            downloader,
            activator=SymlinkActivator(config.get_link_path()),
        )

        result = manager.install("18.17.0")
        assert "18.17.0" in manager.list_installed()
        assert (result.path / "bin" / "node").read_bytes() == b"node 18"

        manager.use("18.17.0")
        link = config.get_link_path()
        assert link.resolve() == manager.store.version_dir("18.17.0").resolve()
        assert manager.get_current() == "18.17.0"

        with pytest.raises(ActiveVersionError):
            manager.uninstall("18.17.0")

        manager.install("20.11.0")
        manager.use("20.11.0")
        manager.uninstall("18.17.0")
        assert not manager.store.version_dir("18.17.0").exists()
        assert "18.17.0" not in manager.list_installed()
        assert manager.get_current() == "20.11.0"

        config.save_state(manager.state)
        reloaded = ConfigManager(app_dir=config.app_dir).load_state()
        assert reloaded.installed_versions == ["20.11.0"]
        assert reloaded.active_version == "20.11.0"


class TestInstall:
    """Tests for VersionManager.install."""

    def test_resolves_keyword_and_builds_url(self, config, tarball_factory):
        tarball = tarball_factory(top_level="node-v21.6.1-linux-x64")
        downloader = FakeDownloader({"node-v21.6.1-linux-x64.tar.gz": tarball})
        manager = make_manager(config, [release("v21.6.1"), release("v20.11.0", "Iron")], downloader)

        result = manager.install("latest")

        assert result.version == "21.6.1"
        assert not result.already_installed
        url, dest = downloader.calls[0]
        assert url == "https://nodejs.org/dist/v21.6.1/node-v21.6.1-linux-x64.tar.gz"
        assert not os.path.exists(os.path.dirname(dest))

    def test_mirror_setting_changes_url(self, config, tarball_factory, monkeypatch):
        monkeypatch.setenv("NODE_SPARK_MIRROR", "https://mirror.test/node/")
        tarball = tarball_factory(top_level="node-v20.11.0-linux-x64")
        downloader = FakeDownloader({"node-v20.11.0-linux-x64.tar.gz": tarball})
        manager = make_manager(config, [release("v20.11.0", "Iron")], downloader)
        manager.install("lts")
        assert downloader.calls[0][0].startswith("https://mirror.test/node/v20.11.0/")

    def test_reports_phases_and_progress(self, config, tarball_factory):
        tarball = tarball_factory(top_level="node-v20.11.0-linux-x64")
        downloader = FakeDownloader({"node-v20.11.0-linux-x64.tar.gz": tarball})
        manager = make_manager(config, [release("v20.11.0")], downloader)
        phases, progress = [], []
        manager.install("v20.11.0", lambda r, t: progress.append((r, t)), phases.append)
        assert phases == ["download", "extract"]
        assert progress and progress[-1][0] == progress[-1][1]

    def test_already_installed_skips_download(self, config):
        (config.default_install_path / "20.11.0").mkdir(parents=True)
        downloader = FakeDownloader()
        manager = make_manager(config, [release("v20.11.0")], downloader)
        result = manager.install("v20.11.0")
        assert result.already_installed
        assert downloader.calls == []
        assert manager.fetcher.resolved == []
        assert manager.list_installed() == ["20.11.0"]

    def test_keyword_resolving_to_installed_version(self, config):
        (config.default_install_path / "20.11.0").mkdir(parents=True)
        downloader = FakeDownloader()
        manager = make_manager(config, [release("v20.11.0", "Iron")], downloader)
        result = manager.install("lts")
        assert result.already_installed
        assert result.descriptor.version == "v20.11.0"
        assert downloader.calls == []

    def test_missing_platform_artifact_is_warning(self, config, tarball_factory):
        tarball = tarball_factory(top_level="node-v20.11.0-linux-x64")
        downloader = FakeDownloader({"node-v20.11.0-linux-x64.tar.gz": tarball})
        manager = make_manager(config, [release("v20.11.0", files=("osx-arm64-tar",))], downloader)
        result = manager.install("20.11.0")
        assert any("linux-x64" in w for w in result.warnings)

    def test_unknown_version(self, config):
        manager = make_manager(config, [release("v20.11.0")], FakeDownloader())
        with pytest.raises(NotFoundError):
            manager.install("99.0.0")

    def test_invalid_token(self, config):
        manager = make_manager(config, [release("v20.11.0")], FakeDownloader())
        with pytest.raises(InputValidationError):
            manager.install("../../etc")

    def test_transfer_failure_leaves_no_trace(self, config):
        downloader = FakeDownloader(error=TransferError("404"))
        manager = make_manager(config, [release("v20.11.0")], downloader)
        with pytest.raises(TransferError):
            manager.install("20.11.0")
        assert not manager.store.version_dir("20.11.0").exists()
        assert manager.list_installed() == []
        assert not os.path.exists(os.path.dirname(downloader.calls[0][1]))

    def test_extraction_failure_removes_partial_directory(self, config, tmp_path):
        broken = tmp_path / "broken.tar.gz"
        broken.write_bytes(b"not a tarball")
        downloader = FakeDownloader({"node-v20.11.0-linux-x64.tar.gz": broken})
        manager = make_manager(config, [release("v20.11.0")], downloader)
        with pytest.raises(ExtractionError):
            manager.install("20.11.0")
        assert not manager.store.version_dir("20.11.0").exists()
        assert manager.list_installed() == []

    def test_windows_install_verifies_executable(self, config, zip_factory):
        archive = zip_factory(top_level="node-v20.11.0-win-x64")
        downloader = FakeDownloader({"node-v20.11.0-win-x64.zip": archive})
        probed = []

        def probe(path):
            probed.append(path)
            return False

        manager = make_manager(config, [release("v20.11.0")], downloader, system_info=WINDOWS, probe=probe)
        phases = []
        result = manager.install("20.11.0", status_callback=phases.append)

        assert phases == ["download", "extract", "verify"]
        assert probed == [result.path / "node.exe"]
        assert any("架构" in w for w in result.warnings)
        assert manager.list_installed() == ["20.11.0"]


class TestUseAndQueries:
    """Tests for use, uninstall and listing."""

    def test_use_not_installed(self, config):
        activator = RecordingActivator(config.get_link_path())
        manager = make_manager(config, [], FakeDownloader(), activator=activator)
        with pytest.raises(NotInstalledError):
            manager.use("20.11.0")
        assert activator.activated == []
        assert manager.state.active_version is None

    def test_use_activates_then_records(self, config):
        (config.default_install_path / "20.11.0").mkdir(parents=True)
        activator = RecordingActivator(config.get_link_path())
        manager = make_manager(config, [], FakeDownloader(), activator=activator)
        result = manager.use("v20.11.0")
        assert activator.activated == [("20.11.0", config.default_install_path / "20.11.0")]
        assert result.version == "20.11.0"
        assert manager.get_current() == "20.11.0"

    def test_get_current_without_active(self, config):
        manager = make_manager(config, [], FakeDownloader())
        with pytest.raises(NoActiveVersionError):
            manager.get_current()

    def test_uninstall_missing(self, config):
        manager = make_manager(config, [], FakeDownloader())
        with pytest.raises(NotInstalledError):
            manager.uninstall("20.11.0")

    def test_list_installed_sorted(self, config):
        manager = make_manager(config, [], FakeDownloader())
        for version in ("8.17.0", "20.11.0", "18.19.0"):
            manager.store.record_installed(version)
        assert manager.list_installed() == ["20.11.0", "18.19.0", "8.17.0"]

    def test_list_remote(self, config):
        releases = [release("v21.6.1"), release("v20.11.0", "Iron"), release("v18.19.0", "Hydrogen")]
        manager = make_manager(config, releases, FakeDownloader())
        assert len(manager.list_remote()) == 3
        assert [r.version for r in manager.list_remote(lts_only=True)] == ["v20.11.0", "v18.19.0"]
