"""
Staging directory checks and zip packaging.

The deployable archive mirrors the staging directory, minus the root
``local.settings.json`` which only applies to local runs.
"""

import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Iterable, Union

from appservice_deployer.constants import HOST_JSON, LOCAL_SETTINGS_JSON
from appservice_deployer.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

EXCLUDED_ROOT_FILES = (LOCAL_SETTINGS_JSON,)


def check_staging_directory(staging_directory: Union[str, Path]) -> None:
    """
    Verify that a staging directory is ready to be deployed or run.

    Raises:
        ConfigurationError: Listing everything that is missing.
    """
    staging = Path(staging_directory)
    if not staging.is_dir():
        raise ConfigurationError(
            f"Staging directory not found: {staging}. Run the package step first."
        )

    missing = [name for name in (HOST_JSON, LOCAL_SETTINGS_JSON) if not (staging / name).is_file()]
    if missing:
        raise ConfigurationError(
            f"Staging directory {staging} is incomplete. Run the package step first.",
            errors=[f"{name} is missing" for name in missing]
        )


def _write_directory(zf: zipfile.ZipFile, directory: Path, excluded_root_files: Iterable[str]) -> int:
    excluded = set(excluded_root_files)
    count = 0
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        root_path = Path(root)
        for name in sorted(files):
            file_path = root_path / name
            arcname = file_path.relative_to(directory).as_posix()
            if arcname in excluded:
                continue
            zf.write(file_path, arcname)
            count += 1
    return count


def zip_directory(
    directory: Union[str, Path],
    excluded_root_files: Iterable[str] = EXCLUDED_ROOT_FILES
) -> bytes:
    """Zip a directory in memory, skipping the given files at its root."""
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        _write_directory(zf, Path(directory), excluded_root_files)
    return zip_buffer.getvalue()


def package_staging_directory(staging_directory: Union[str, Path]) -> Path:
    """
    Write ``<staging directory>.zip`` next to the staging directory.

    Returns:
        Path of the written archive.
    """
    staging = Path(staging_directory)
    output_path = staging.with_name(staging.name + ".zip")
    with zipfile.ZipFile(output_path, 'w', zipfile.ZIP_DEFLATED) as zf:
        count = _write_directory(zf, staging, EXCLUDED_ROOT_FILES)
    logger.info(f"✓ Packaged {count} files into {output_path}")
    return output_path
