"""
Function app staging.

FunctionMetadataGenerator turns the discovered entry points into the
directory layout the Functions host expects:

    <staging>/
        host.json
        local.settings.json
        <artifact>.jar
        lib/<dependency>.jar ...
        <function name>/function.json ...

and installs binding extensions when the host manifest does not declare an
extension bundle and non-HTTP bindings are used.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from appservice_deployer.constants import (
    DEFAULT_HOST_JSON,
    DEFAULT_LOCAL_SETTINGS_JSON,
    EXTENSION_BUNDLE_IDS,
    EXTENSION_BUNDLE_KEY,
    FUNCTION_JSON,
    FUNCTION_LIBRARY_PREFIX,
    HOST_JSON,
    LIB_FOLDER,
    LOCAL_SETTINGS_JSON,
)
from appservice_deployer.core.context import ProjectDescriptor
from appservice_deployer.core.exceptions import ConfigurationError, FunctionValidationError
from appservice_deployer.core.protocols import EntryPointScanner, ExtensionInstaller
from appservice_deployer.functions.bindings import (
    BindingKind,
    FunctionConfiguration,
    HTTP_ONLY_KINDS,
    validate_function_configuration,
)

logger = logging.getLogger(__name__)

FunctionValidator = Callable[[str, FunctionConfiguration], List[str]]

_BUNDLE_IDS = {bundle_id.lower() for bundle_id in EXTENSION_BUNDLE_IDS}


def is_install_extension_needed(
    host_json: Optional[Dict[str, Any]],
    binding_kinds: Iterable[Union[BindingKind, str]]
) -> bool:
    """
    Decide whether binding extensions must be installed.

    Not needed when host.json declares a first-party extension bundle (the
    bundle covers every extension), nor when only HTTP trigger / HTTP output
    bindings are used.

    Args:
        host_json: Parsed host.json, may be None
        binding_kinds: BindingKind members or raw binding type strings
    """
    bundle = (host_json or {}).get(EXTENSION_BUNDLE_KEY)
    if isinstance(bundle, dict) and str(bundle.get("id", "")).lower() in _BUNDLE_IDS:
        logger.info("Extension bundle specified, skip install extension")
        return False

    kinds = []
    for kind in binding_kinds:
        if isinstance(kind, str):
            kind = BindingKind.from_type(kind) or kind
        kinds.append(kind)

    if all(kind in HTTP_ONLY_KINDS for kind in kinds):
        logger.info("Skip install Function extension for HTTP Trigger Functions")
        return False
    return True


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.is_file():
        return None
    with open(path, "r", encoding="utf-8-sig") as f:
        return json.load(f)


class FunctionMetadataGenerator:
    """
    Stages a Java function app for deployment or local run.

    Args:
        project: Local build layout
        staging_directory: Directory to populate (cleaned first)
        scanner: Finds entry points in the artifact
        validator: Structural check per function, defaults to validate_function_configuration
        installer: Installs binding extensions when needed
    """

    def __init__(
        self,
        project: ProjectDescriptor,
        staging_directory: Path,
        scanner: EntryPointScanner,
        validator: Optional[FunctionValidator] = None,
        installer: Optional[ExtensionInstaller] = None
    ):
        self.project = project
        self.staging_directory = Path(staging_directory)
        self.scanner = scanner
        self.validator = validator or validate_function_configuration
        self.installer = installer

    @property
    def script_file(self) -> str:
        return f"../{self.project.artifact_name}"

    def stage(self) -> Optional[Dict[str, FunctionConfiguration]]:
        """
        Discover, validate and stage every function.

        Returns:
            Function name -> FunctionConfiguration, or None when no function was found.

        Raises:
            FunctionValidationError: If any function configuration is invalid (nothing is staged)
            ConfigurationError: If local.settings.json exists but is empty
        """
        logger.info("Step 1 of 7: Searching for Azure Functions entry points")
        entry_points = self.scanner.find_functions(self.project.artifact, list(self.project.dependencies))
        logger.info(f"{len(entry_points)} Azure Functions entry point(s) found.")
        if not entry_points:
            logger.info("No Azure Functions found. Skip packaging.")
            return None

        logger.info("Step 2 of 7: Generating Azure Functions configurations")
        configs: Dict[str, FunctionConfiguration] = {}
        errors: List[str] = []
        for entry_point in entry_points:
            if entry_point.name in configs:
                errors.append(f"{entry_point.name}: duplicate function name")
                continue
            configs[entry_point.name] = FunctionConfiguration.from_entry_point(entry_point, self.script_file)

        logger.info("Step 3 of 7: Validating generated configurations")
        for name, config in configs.items():
            errors.extend(self.validator(name, config))
        if errors:
            raise FunctionValidationError(errors)

        self._prepare_staging_directory()

        logger.info(f"Step 4 of 7: Copying/creating {HOST_JSON} and {LOCAL_SETTINGS_JSON}")
        self._copy_project_file(HOST_JSON, DEFAULT_HOST_JSON)
        self._copy_project_file(LOCAL_SETTINGS_JSON, DEFAULT_LOCAL_SETTINGS_JSON)

        logger.info(f"Step 5 of 7: Saving configurations to {FUNCTION_JSON}")
        self._write_function_configs(configs)

        logger.info("Step 6 of 7: Copying JARs to staging directory")
        self._copy_jars()

        logger.info("Step 7 of 7: Installing function extensions if needed")
        binding_types = [binding.type for config in configs.values() for binding in config.bindings]
        # Staged host.json, so a generated default with its extension bundle counts too
        host_json = _read_json(self.staging_directory / HOST_JSON)
        if is_install_extension_needed(host_json, binding_types):
            if self.installer is None:
                logger.warning("Function extensions are required but no installer is configured, skipping.")
            else:
                self.installer.install_extension(self.staging_directory, Path(self.project.base_directory))

        logger.info(f"✓ Successfully built Azure Functions into {self.staging_directory}")
        return configs

    # ==========================================
    # Staging Steps
    # ==========================================

    def _prepare_staging_directory(self) -> None:
        if self.staging_directory.exists():
            shutil.rmtree(self.staging_directory)
        self.staging_directory.mkdir(parents=True)

    def _copy_project_file(self, file_name: str, default_content: str) -> None:
        source = Path(self.project.base_directory) / file_name
        destination = self.staging_directory / file_name
        if source.is_file():
            if file_name == LOCAL_SETTINGS_JSON and source.stat().st_size == 0:
                raise ConfigurationError(
                    f"{LOCAL_SETTINGS_JSON} is empty, remove it or add valid settings",
                    config_file=str(source)
                )
            shutil.copyfile(source, destination)
            logger.info(f"  Copied {file_name} from {source}")
        else:
            destination.write_text(default_content, encoding="utf-8", newline="\n")
            logger.info(f"  Created default {file_name}")

    def _write_function_configs(self, configs: Dict[str, FunctionConfiguration]) -> None:
        for name, config in configs.items():
            function_dir = self.staging_directory / name
            function_dir.mkdir(parents=True, exist_ok=True)
            (function_dir / FUNCTION_JSON).write_text(config.to_json(), encoding="utf-8", newline="\n")
            logger.debug(f"  Wrote {name}/{FUNCTION_JSON}")

    def _copy_jars(self) -> None:
        lib_dir = self.staging_directory / LIB_FOLDER
        if lib_dir.exists():
            shutil.rmtree(lib_dir)
        lib_dir.mkdir(parents=True)

        artifact = Path(self.project.artifact)
        for dependency in self.project.dependencies:
            dependency = Path(dependency)
            if dependency.name.startswith(FUNCTION_LIBRARY_PREFIX):
                logger.debug(f"  Skipping {dependency.name}, it is provided by the Functions runtime")
                continue
            if dependency.resolve() == artifact.resolve():
                continue
            shutil.copy2(dependency, lib_dir / dependency.name)
        shutil.copy2(artifact, self.staging_directory / artifact.name)
        logger.info(f"  Copied {artifact.name} and dependencies to {self.staging_directory}")
