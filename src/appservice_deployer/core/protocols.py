"""
Protocol definitions for the collaborators the deployer depends on.

The deployer does not scan bytecode, does not decide how the extension
bundle gets installed and does not care how an artifact travels to the app.
Those capabilities are injected and only need to match these Protocols
(structural subtyping, no inheritance required).

Protocols:
    EntryPointScanner: Finds trigger-bearing methods in the build artifact
    ExtensionInstaller: Installs binding extensions into the staging directory
    PublishHandler: Pushes the staged content to the app
"""

from pathlib import Path
from typing import List, Protocol, Sequence, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from appservice_deployer.core.context import AppServiceTarget
    from appservice_deployer.functions.bindings import FunctionEntryPoint


@runtime_checkable
class EntryPointScanner(Protocol):
    """
    Discovers function entry points in the built artifact.

    Example Implementation:
        class StaticScanner:
            def __init__(self, entry_points):
                self._entry_points = entry_points

            def find_functions(self, artifact, dependencies):
                return list(self._entry_points)
    """

    def find_functions(
        self,
        artifact: Path,
        dependencies: Sequence[Path]
    ) -> List['FunctionEntryPoint']:
        """
        Return one FunctionEntryPoint per trigger-bearing method.

        Args:
            artifact: The primary build artifact
            dependencies: Runtime dependency artifacts (the classpath)

        Returns:
            Discovered entry points; an empty list means "nothing to stage".
        """
        ...


@runtime_checkable
class ExtensionInstaller(Protocol):
    """Installs the binding extensions a staged function app needs."""

    def install_extension(self, staging_directory: Path, base_directory: Path) -> None:
        ...


@runtime_checkable
class PublishHandler(Protocol):
    """Pushes the content of a staging path to an existing app."""

    def publish(self, target: 'AppServiceTarget', staging_path: Path) -> None:
        ...
