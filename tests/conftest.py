from __future__ import annotations

from io import BytesIO
from typing import TYPE_CHECKING

import pytest
from Crypto.PublicKey import RSA

from dissect.rpm.package import Package
from dissect.rpm.signature import RSASigner, RSAVerifier
from tests._utils import build_package

if TYPE_CHECKING:
    import pathlib


@pytest.fixture
def package_bytes() -> bytes:
    return build_package()


@pytest.fixture
def package_file(tmp_path: pathlib.Path, package_bytes: bytes) -> pathlib.Path:
    path = tmp_path.joinpath("fixture-1.0.0-1.x86_64.rpm")
    path.write_bytes(package_bytes)
    return path


@pytest.fixture
def package(package_bytes: bytes) -> Package:
    return Package.parse(BytesIO(package_bytes))


@pytest.fixture(scope="session")
def rsa_key() -> RSA.RsaKey:
    return RSA.generate(1024)


@pytest.fixture(scope="session")
def other_rsa_key() -> RSA.RsaKey:
    return RSA.generate(1024)


@pytest.fixture
def signer(rsa_key: RSA.RsaKey) -> RSASigner:
    return RSASigner(rsa_key)


@pytest.fixture
def verifier(rsa_key: RSA.RsaKey) -> RSAVerifier:
    return RSAVerifier(rsa_key)


@pytest.fixture
def key_files(tmp_path: pathlib.Path, rsa_key: RSA.RsaKey) -> tuple[pathlib.Path, pathlib.Path]:
    private = tmp_path.joinpath("signing.pem")
    private.write_bytes(rsa_key.export_key())
    public = tmp_path.joinpath("verifying.pem")
    public.write_bytes(rsa_key.public_key().export_key())
    return private, public
