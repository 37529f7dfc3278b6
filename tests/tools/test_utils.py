from __future__ import annotations

import argparse
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from dissect.rpm.helpers.logging import TRACE_LEVEL
from dissect.rpm.tools.logging import log_level
from dissect.rpm.tools.utils import configure_generic_arguments, process_generic_arguments


def test_process_generic_arguments(tmp_path: Path) -> None:
    tmp_path.joinpath(".rpmcfg.py").write_text("BUFFER_SIZE = 512\n")

    parser = argparse.ArgumentParser()
    configure_generic_arguments(parser)
    args = parser.parse_args(["-vv", "--version", "-c", str(tmp_path)])

    with (
        patch("dissect.rpm.tools.utils.configure_logging") as mocked_configure_logging,
        patch("dissect.rpm.tools.utils.version", return_value="1.0.0") as mocked_version,
        patch("dissect.rpm.tools.utils.sys.exit") as mocked_exit,
    ):
        config = process_generic_arguments(args)

        mocked_configure_logging.assert_called_once_with(2, False, as_plain_text=True)
        mocked_version.assert_called_once_with("dissect.rpm")
        mocked_exit.assert_called_once_with(0)

    assert config.BUFFER_SIZE == 512


@pytest.mark.parametrize(
    ("verbosity", "quiet", "expected"),
    [
        (0, False, logging.WARNING),
        (1, False, logging.INFO),
        (2, False, logging.DEBUG),
        (3, False, TRACE_LEVEL),
        (5, False, TRACE_LEVEL),
        (3, True, logging.CRITICAL),
    ],
)
def test_log_level(verbosity: int, quiet: bool, expected: int) -> None:
    assert log_level(verbosity, quiet) == expected
