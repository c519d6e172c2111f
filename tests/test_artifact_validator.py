"""Tests for tarball reading and checksum validation."""

import io
import tarfile

import pytest

from catalog_cd.errors import ChecksumMismatchError, FormatError, IntegrityError
from catalog_cd.models.contract import ContractEntry
from catalog_cd.services.artifact_validator import (
    ResourceTarball,
    compute_sha256,
    normalize_member_path,
    validate_entry,
)
from github_fakes import make_tarball, sha256

CONTENT = b"apiVersion: tekton.dev/v1\nkind: Task\nmetadata:\n  name: task-buildah\n"
PATH = "tasks/task-buildah/task-buildah.yaml"


def _entry(checksum=None, path=PATH, signature=None) -> ContractEntry:
    return ContractEntry(
        resource_type="tasks",
        name="task-buildah",
        version="0.1.0",
        checksum=checksum or sha256(CONTENT),
        relative_path=path,
        signature=signature,
    )


class TestComputeSha256:
    def test_hash_is_hex_string(self):
        h = compute_sha256(b"hello")
        assert len(h) == 64
        assert all(c in "0123456789abcdef" for c in h)

    def test_different_content_different_hash(self):
        assert compute_sha256(b"hello") != compute_sha256(b"world")


class TestNormalizeMemberPath:
    @pytest.mark.parametrize("path, expected", [
        ("a/b.yaml", "a/b.yaml"),
        ("./a/b.yaml", "a/b.yaml"),
        ("a/../b.yaml", "b.yaml"),
        ("a//b.yaml", "a/b.yaml"),
    ])
    def test_inside_root(self, path, expected):
        assert normalize_member_path(path) == expected

    @pytest.mark.parametrize("path", ["../a.yaml", "a/../../b.yaml", "/etc/passwd", ".."])
    def test_outside_root(self, path):
        assert normalize_member_path(path) is None


class TestValidateEntry:
    def test_matching_checksum(self):
        with ResourceTarball(make_tarball({PATH: CONTENT})) as tarball:
            artifact = validate_entry(_entry(), tarball, "task-containers")
        assert artifact.content == CONTENT
        assert artifact.source_repository == "task-containers"
        assert artifact.entry.name == "task-buildah"
        assert artifact.signature is None

    def test_dot_slash_member_names(self):
        with ResourceTarball(make_tarball({f"./{PATH}": CONTENT})) as tarball:
            artifact = validate_entry(_entry(), tarball, "repo")
        assert artifact.content == CONTENT

    def test_uncompressed_tarball(self):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            info = tarfile.TarInfo(name=PATH)
            info.size = len(CONTENT)
            tar.addfile(info, io.BytesIO(CONTENT))
        with ResourceTarball(buf.getvalue()) as tarball:
            assert validate_entry(_entry(), tarball, "repo").content == CONTENT

    def test_checksum_mismatch(self):
        with ResourceTarball(make_tarball({PATH: CONTENT})) as tarball:
            with pytest.raises(ChecksumMismatchError) as exc:
                validate_entry(_entry(checksum="0" * 64), tarball, "repo")
        assert exc.value.expected == "0" * 64
        assert exc.value.actual == sha256(CONTENT)

    @pytest.mark.parametrize("offset", [0, len(CONTENT) // 2, len(CONTENT) - 1])
    def test_single_byte_mutation(self, offset):
        mutated = bytearray(CONTENT)
        mutated[offset] ^= 0x01
        with ResourceTarball(make_tarball({PATH: bytes(mutated)})) as tarball:
            with pytest.raises(ChecksumMismatchError):
                validate_entry(_entry(), tarball, "repo")

    def test_missing_path(self):
        with ResourceTarball(make_tarball({"other.yaml": CONTENT})) as tarball:
            with pytest.raises(IntegrityError, match="not found"):
                validate_entry(_entry(), tarball, "repo")

    def test_path_outside_root(self):
        with ResourceTarball(make_tarball({PATH: CONTENT})) as tarball:
            with pytest.raises(IntegrityError, match="outside"):
                validate_entry(_entry(path="../" + PATH), tarball, "repo")

    def test_directory_is_not_a_resource(self):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            info = tarfile.TarInfo(name="tasks")
            info.type = tarfile.DIRTYPE
            tar.addfile(info)
        with ResourceTarball(buf.getvalue()) as tarball:
            with pytest.raises(IntegrityError, match="not a regular file"):
                validate_entry(_entry(path="tasks"), tarball, "repo")

    def test_symlink_is_not_a_resource(self):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            info = tarfile.TarInfo(name=PATH)
            info.type = tarfile.SYMTYPE
            info.linkname = "/etc/passwd"
            tar.addfile(info)
        with ResourceTarball(buf.getvalue()) as tarball:
            with pytest.raises(IntegrityError):
                validate_entry(_entry(), tarball, "repo")

    def test_signature_read(self):
        files = {PATH: CONTENT, PATH + ".sig": b"signature"}
        with ResourceTarball(make_tarball(files)) as tarball:
            artifact = validate_entry(_entry(signature=PATH + ".sig"), tarball, "repo")
        assert artifact.signature == b"signature"

    def test_declared_signature_missing(self):
        with ResourceTarball(make_tarball({PATH: CONTENT})) as tarball:
            with pytest.raises(IntegrityError):
                validate_entry(_entry(signature=PATH + ".sig"), tarball, "repo")


class TestResourceTarball:
    def test_not_a_tarball(self):
        with pytest.raises(FormatError):
            ResourceTarball(b"this is not a tarball")
