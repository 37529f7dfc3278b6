from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from dissect.rpm.exceptions import ConfigError
from dissect.rpm.helpers import config


def test_load_config() -> None:
    # FS layout:
    #
    # temp_dir1
    #   config_file
    #   symlink_dir2 -> ../temp_dir2
    # temp_dir2

    with TemporaryDirectory() as temp_dir1, TemporaryDirectory() as temp_dir2:
        # create symlink in temp_dir1 pointing to temp_dir2
        symlink = Path(temp_dir1).joinpath("symlink")
        symlink.symlink_to(temp_dir2)

        config_file = Path(temp_dir1).joinpath(config.CONFIG_NAME)
        config_file.write_text('SIGNING_KEY = "/keys/signing.pem"')

        result = config.load(symlink)
        assert result.SIGNING_KEY == "/keys/signing.pem"
        assert result.BUFFER_SIZE == config.DEFAULTS["BUFFER_SIZE"]


def test_load_config_defaults(tmp_path: Path) -> None:
    result = config.load(tmp_path.joinpath("missing", "package.rpm"))

    for key, value in config.DEFAULTS.items():
        assert getattr(result, key) == value


def test_load_config_package_path(tmp_path: Path) -> None:
    package = tmp_path.joinpath("repo", "x86_64", "fixture.rpm")
    package.parent.mkdir(parents=True)
    package.write_bytes(b"")
    tmp_path.joinpath("repo", config.CONFIG_NAME).write_text("BUFFER_SIZE = 1024\nVERIFYING_KEY = 'key.pem'\n")

    result = config.load([None, package])
    assert result.BUFFER_SIZE == 1024
    # Relative key paths are resolved against the config file
    assert result.VERIFYING_KEY == str(tmp_path.joinpath("repo", "key.pem"))


def test_load_config_only_constants(tmp_path: Path) -> None:
    tmp_path.joinpath(config.CONFIG_NAME).write_text(
        "import os\n"
        "SIGNING_KEY = os.environ['HOME']\n"
        "A = B = 1\n"
        "obj.attr = 2\n"
        "BUFFER_SIZE = 4096\n"
        "EXTRA = 'kept'\n"
    )

    result = config.load(tmp_path)
    assert result.SIGNING_KEY is None
    assert not hasattr(result, "A")
    assert result.BUFFER_SIZE == 4096
    assert result.EXTRA == "kept"


@pytest.mark.parametrize(
    "content",
    [
        "BUFFER_SIZE = 0\n",
        "BUFFER_SIZE = 'large'\n",
        "BUFFER_SIZE = True\n",
        "SIGNING_KEY = 42\n",
    ],
)
def test_load_config_invalid(tmp_path: Path, content: str) -> None:
    tmp_path.joinpath(config.CONFIG_NAME).write_text(content)

    with pytest.raises(ConfigError):
        config.load(tmp_path)
