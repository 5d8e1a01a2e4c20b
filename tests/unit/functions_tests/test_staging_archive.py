"""
Staging directory checks and zip packaging tests.
"""

import zipfile

import pytest


@pytest.fixture
def staging(tmp_path):
    staging = tmp_path / "azure-functions" / "my-functions"
    (staging / "lib").mkdir(parents=True)
    (staging / "hello").mkdir()
    (staging / "host.json").write_text("{}")
    (staging / "local.settings.json").write_text("{}")
    (staging / "my-functions.jar").write_bytes(b"jar")
    (staging / "lib" / "gson.jar").write_bytes(b"gson")
    (staging / "hello" / "function.json").write_text("{}")
    # Only the root local.settings.json is excluded
    (staging / "hello" / "local.settings.json").write_text("{}")
    return staging


class TestCheckStagingDirectory:

    def test_complete_staging_directory(self, staging):
        from appservice_deployer.functions.archive import check_staging_directory

        check_staging_directory(staging)

    def test_missing_directory(self, tmp_path):
        from appservice_deployer.functions.archive import check_staging_directory
        from appservice_deployer.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="Staging directory not found"):
            check_staging_directory(tmp_path / "missing")

    def test_missing_files_are_listed(self, tmp_path):
        from appservice_deployer.functions.archive import check_staging_directory
        from appservice_deployer.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            check_staging_directory(tmp_path)

        assert exc_info.value.errors == ["host.json is missing", "local.settings.json is missing"]


class TestPackaging:

    def test_package_staging_directory(self, staging):
        from appservice_deployer.functions.archive import package_staging_directory

        archive = package_staging_directory(staging)

        assert archive == staging.parent / "my-functions.zip"
        with zipfile.ZipFile(archive) as zf:
            names = sorted(zf.namelist())
        assert names == [
            "hello/function.json",
            "hello/local.settings.json",
            "host.json",
            "lib/gson.jar",
            "my-functions.jar",
        ]

    def test_zip_directory_custom_exclusions(self, staging, tmp_path):
        import io
        from appservice_deployer.functions.archive import zip_directory

        content = zip_directory(staging, excluded_root_files=("my-functions.jar",))

        names = zipfile.ZipFile(io.BytesIO(content)).namelist()
        assert "local.settings.json" in names
        assert "my-functions.jar" not in names
