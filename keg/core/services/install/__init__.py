"""
Package install services.

    from keg.core.services.install import Installer, Uninstaller

Layering (leaf first): process, ui → stubs, extensions, index →
installer → uninstaller.
"""

from keg.core.services.install.extensions import BuildResult, ExtensionBuilder
from keg.core.services.install.index import PackageIndex
from keg.core.services.install.installer import Installer
from keg.core.services.install.stubs import StubGenerator, app_script_text, library_stub_text
from keg.core.services.install.ui import ConsoleUI, ScriptedUI, UserInterface
from keg.core.services.install.uninstaller import Uninstaller

__all__ = [
    "BuildResult",
    "ConsoleUI",
    "ExtensionBuilder",
    "Installer",
    "PackageIndex",
    "ScriptedUI",
    "StubGenerator",
    "Uninstaller",
    "UserInterface",
    "app_script_text",
    "library_stub_text",
]
