"""
Tests for the user environment (registry) manager.
"""

from unittest.mock import MagicMock

import pytest

from nodespark.core import env_manager as env_module
from nodespark.core.env_manager import EnvManager, EnvManagerError, RegistryAccessError


class FakeWinreg:
    """Minimal stand-in for the winreg module backed by a dict."""

    HKEY_CURRENT_USER = "HKCU"
    KEY_READ = 0x20019
    KEY_SET_VALUE = 0x0002
    REG_SZ = 1
    REG_EXPAND_SZ = 2

    def __init__(self, values=None, open_error=None):
        self.values = dict(values or {})
        self.types = {}
        self.open_error = open_error
        self.opened = 0
        self.closed = 0

    def OpenKey(self, root, path, reserved, access):
        if self.open_error:
            raise self.open_error
        self.opened += 1
        return (root, path, access)

    def CloseKey(self, key):
        self.closed += 1

    def QueryValueEx(self, key, name):
        if name not in self.values:
            raise FileNotFoundError(name)
        return self.values[name], self.types.get(name, self.REG_SZ)

    def SetValueEx(self, key, name, reserved, reg_type, value):
        self.values[name] = value
        self.types[name] = reg_type


@pytest.fixture
def registry(monkeypatch):
    fake = FakeWinreg({"Path": r"C:\Tools;%USERPROFILE%\bin"})
    monkeypatch.setattr(env_module, "winreg", fake)
    monkeypatch.setattr(EnvManager, "broadcast_change", MagicMock())
    return fake


class TestEnvManager:
    """Tests for EnvManager."""

    def test_requires_winreg(self, monkeypatch):
        monkeypatch.setattr(env_module, "winreg", None)
        with pytest.raises(EnvManagerError):
            EnvManager()

    def test_get_env_var(self, registry):
        manager = EnvManager()
        assert manager.get_env_var("Path") == r"C:\Tools;%USERPROFILE%\bin"
        assert manager.get_env_var("Missing") is None
        assert registry.opened == registry.closed

    def test_get_path_entries(self, registry):
        assert EnvManager().get_path_entries() == ["C:\\Tools", "%USERPROFILE%\\bin"]

    def test_add_to_path_appends(self, registry):
        manager = EnvManager()
        assert manager.add_to_path("C:\\Users\\me\\.node-spark\\shims")
        assert registry.values["Path"].endswith(";C:\\Users\\me\\.node-spark\\shims")
        assert registry.types["Path"] == FakeWinreg.REG_EXPAND_SZ
        EnvManager.broadcast_change.assert_called_once()

    def test_add_to_path_is_case_insensitive(self, registry):
        manager = EnvManager()
        manager.add_to_path("c:\\tools\\")
        assert registry.values["Path"] == r"C:\Tools;%USERPROFILE%\bin"
        assert manager.path_contains("C:\\TOOLS")

    def test_add_empty_entry(self, registry):
        assert EnvManager().add_to_path("  ") is False

    def test_remove_from_path(self, registry):
        manager = EnvManager()
        manager.remove_from_path("C:\\Tools")
        assert registry.values["Path"] == r"%USERPROFILE%\bin"
        assert not manager.path_contains("C:\\Tools")

    def test_set_plain_value_uses_reg_sz(self, registry):
        EnvManager().set_env_var("NODE_SPARK_TEST", "C:\\plain")
        assert registry.types["NODE_SPARK_TEST"] == FakeWinreg.REG_SZ

    def test_open_failure_is_registry_error(self, monkeypatch):
        monkeypatch.setattr(env_module, "winreg", FakeWinreg(open_error=PermissionError("denied")))
        with pytest.raises(RegistryAccessError):
            EnvManager().get_env_var("Path")
