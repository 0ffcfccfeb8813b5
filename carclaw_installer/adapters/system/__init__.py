"""System adapters — package managers."""

from carclaw_installer.adapters.system.packages import PackageAdapter, get_package_manager

__all__ = ["PackageAdapter", "get_package_manager"]
