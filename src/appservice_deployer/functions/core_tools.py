"""
Azure Functions Core Tools (``func``) integration.

Used to install binding extensions into a staging directory and to run a
staged function app locally. Also checks the local JDK and the compiled
artifact against the Java version the app runs on.
"""

import logging
import re
import shutil
import struct
import subprocess
import zipfile
from pathlib import Path
from typing import List, Optional

from appservice_deployer.constants import EXTENSIONS_CSPROJ
from appservice_deployer.core.exceptions import LocalToolingError
from appservice_deployer.runtime import JavaVersion

logger = logging.getLogger(__name__)

FUNC_EXECUTABLES = ("func", "func.cmd", "func.exe")
DEFAULT_DEBUG_CONFIG = "transport=dt_socket,server=y,suspend=n,address=5005"

_JAVA_VERSION_PATTERN = re.compile(r'version "(\d+)(?:\.(\d+))?')

CLASS_FILE_MAGIC = b"\xca\xfe\xba\xbe"
# Class file major version 52 is Java 8
CLASS_FILE_VERSION_OFFSET = 44


def parse_java_major_version(output: str) -> Optional[int]:
    """Extract the major version from ``java -version`` output (``1.8.0_292`` -> 8)."""
    match = _JAVA_VERSION_PATTERN.search(output or "")
    if not match:
        return None
    major = int(match.group(1))
    if major == 1 and match.group(2):
        return int(match.group(2))
    return major


class FunctionCoreTools:
    """
    Thin wrapper around the ``func`` CLI.

    Args:
        executable: Explicit path to func; resolved from PATH when None
    """

    def __init__(self, executable: Optional[str] = None):
        self._executable = executable

    def resolve(self) -> str:
        """
        Locate the func executable.

        Raises:
            LocalToolingError: If Azure Functions Core Tools are not installed
        """
        if self._executable:
            return self._executable
        for name in FUNC_EXECUTABLES:
            path = shutil.which(name)
            if path:
                self._executable = path
                return path
        raise LocalToolingError(
            "Cannot find Azure Functions Core Tools, please make sure the 'func' command is on your PATH "
            "(https://aka.ms/azfunc-install)."
        )

    def install_extension(self, staging_directory: Path, base_directory: Path) -> None:
        """
        Run ``func extensions install --java`` inside the staging directory.

        A project-level extensions.csproj is copied in first so pinned
        extension versions are honored.

        Raises:
            LocalToolingError: If func is missing or the install fails
        """
        func = self.resolve()
        staging_directory = Path(staging_directory)
        csproj = Path(base_directory) / EXTENSIONS_CSPROJ
        if csproj.is_file():
            shutil.copyfile(csproj, staging_directory / EXTENSIONS_CSPROJ)

        logger.info("Installing function extensions...")
        result = subprocess.run(
            [func, "extensions", "install", "--java"],
            cwd=str(staging_directory),
            capture_output=True,
            text=True
        )
        if result.stdout:
            logger.debug(result.stdout)
        if result.returncode != 0:
            logger.error(f"func extensions install failed: {result.stderr or result.stdout}")
            raise LocalToolingError(
                f"Failed to install function extensions (exit code {result.returncode})"
            )
        logger.info("✓ Function extensions installed")

    def build_local_run_command(self, debug_config: Optional[str] = None) -> List[str]:
        """``func host start``, with the JDWP agent attached when ``debug_config`` is given."""
        command = [self.resolve(), "host", "start"]
        if debug_config:
            command += ["--language-worker", "--", f"-agentlib:jdwp={debug_config}"]
        return command

    def run_locally(self, staging_directory: Path, debug_config: Optional[str] = None) -> int:
        """
        Run the staged function app with the local Functions host.

        Blocks until the host exits.

        Returns:
            The host's exit code.
        """
        command = self.build_local_run_command(debug_config)
        logger.info(f"Starting local Functions host: {' '.join(command)}")
        result = subprocess.run(command, cwd=str(staging_directory))
        if result.returncode != 0:
            logger.warning(f"Functions host exited with code {result.returncode}")
        return result.returncode


def get_local_java_version() -> Optional[int]:
    """Major version of the ``java`` on PATH, or None if it cannot be determined."""
    java = shutil.which("java")
    if not java:
        return None
    try:
        result = subprocess.run([java, "-version"], capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Cannot run java -version: {e}")
        return None
    # java -version prints to stderr
    return parse_java_major_version(result.stderr or result.stdout)


def check_local_java_version(runtime_version: JavaVersion) -> Optional[int]:
    """
    Warn when the local JDK is newer than the app runtime's Java.

    Classes compiled by a newer JDK may not load on the remote worker. This
    never fails the build.

    Returns:
        The local major version, or None when unknown.
    """
    local_version = get_local_java_version()
    if local_version is None:
        logger.warning("Cannot determine the local Java version")
        return None
    if local_version > runtime_version.major:
        logger.warning(
            f"Local Java version {local_version} is newer than the function runtime Java "
            f"{runtime_version.major}, the app may fail to start. Please build with Java {runtime_version.major}."
        )
    return local_version


def get_artifact_compile_version(artifact: Path) -> Optional[int]:
    """
    Java major version the artifact's classes were compiled for.

    Reads the header of the first class in the jar. Entries below META-INF
    are skipped, multi-release jars keep newer variants there.

    Returns:
        The Java major version, or None when the artifact is not a jar with classes.
    """
    artifact = Path(artifact)
    if not artifact.is_file() or not zipfile.is_zipfile(artifact):
        return None
    with zipfile.ZipFile(artifact) as jar:
        for name in jar.namelist():
            if not name.endswith(".class") or name.startswith("META-INF/") or name.endswith("module-info.class"):
                continue
            header = jar.read(name)[:8]
            if len(header) < 8 or header[:4] != CLASS_FILE_MAGIC:
                logger.debug(f"{name} in {artifact.name} is not a valid class file")
                continue
            major = struct.unpack(">H", header[6:8])[0]
            return major - CLASS_FILE_VERSION_OFFSET
    return None


def validate_artifact_compile_version(artifact: Path, runtime_version: JavaVersion) -> Optional[int]:
    """
    Fail when the artifact was compiled for a newer Java than the function host runs.

    Returns:
        The artifact's compile version, or None when it cannot be determined.

    Raises:
        LocalToolingError: If the compile version is higher than the runtime Java version
    """
    compile_version = get_artifact_compile_version(artifact)
    if compile_version is None:
        logger.debug(f"Cannot determine the compile version of {Path(artifact).name}, skipping check")
        return None
    if compile_version > runtime_version.major:
        raise LocalToolingError(
            f"Your function app artifact is compiled for Java {compile_version}, which is higher than "
            f"the Java {runtime_version.major} of the function host. Please downgrade the project "
            f"compile version and try again."
        )
    return compile_version
