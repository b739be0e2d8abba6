"""
Unit tests for target naming conventions.
"""

import pytest

from prebuiltkit.core.platform import PlatformDescriptor
from prebuiltkit.targets.conventions import (
    RUST_TARGETS,
    ZIG_COMMON_TARGETS,
    ZIG_MACOS_TARGETS,
    Convention,
    default_runtime_versions,
    default_targets,
    normalize,
    render,
    synthesize_windows,
)


class TestConvention:
    """Test Convention parsing and properties."""

    def test_parse_string(self):
        assert Convention.parse("zig") is Convention.ZIG
        assert Convention.parse("RUST") is Convention.RUST

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown target convention"):
            Convention.parse("cmake")

    def test_fields(self):
        assert Convention.ZIG.fields == ("arch", "os", "abi")
        assert Convention.RUST.fields == ("arch", "vendor", "os", "abi")


class TestDefaultTargets:
    """Test default catalogs."""

    def test_rust_catalog(self):
        assert default_targets(Convention.RUST) == RUST_TARGETS

    def test_zig_on_linux_host(self):
        assert default_targets(Convention.ZIG, "linux") == ZIG_COMMON_TARGETS

    def test_zig_on_macos_host_lists_macos_first(self):
        targets = default_targets(Convention.ZIG, "darwin")
        assert targets[:2] == ZIG_MACOS_TARGETS
        assert targets[2:] == ZIG_COMMON_TARGETS

    def test_zig_union(self):
        assert set(default_targets(Convention.ZIG, None)) == set(
            ZIG_MACOS_TARGETS + ZIG_COMMON_TARGETS
        )


class TestDefaultRuntimeVersions:
    """Test the runtime catalog used when a project lists none."""

    def test_known_version_keeps_catalog(self):
        assert default_runtime_versions("2.14") == ["2.14", "2.15", "2.16"]

    def test_unknown_version_is_the_catalog(self):
        assert default_runtime_versions("2.17") == ["2.17"]


class TestNormalize:
    """Test unix normalization rules."""

    def test_linux_amd64(self):
        d = PlatformDescriptor("unix", "linux", arch="amd64", os="linux")
        result = normalize(d, Convention.ZIG)
        assert result.arch == "x86_64"
        assert result.abi == "gnu"

    def test_linux_arm64(self):
        d = PlatformDescriptor("unix", "linux", arch="arm64", os="linux", abi="musl")
        assert render(normalize(d, Convention.ZIG), Convention.ZIG) == "aarch64-linux-musl"

    def test_linux_rust_vendor(self):
        d = PlatformDescriptor("unix", "linux", arch="x86_64", vendor="pc", os="linux", abi="gnu")
        assert (
            render(normalize(d, Convention.RUST), Convention.RUST)
            == "x86_64-unknown-linux-gnu"
        )

    def test_apple_zig(self):
        d = PlatformDescriptor("unix", "darwin", arch="arm", os="apple", abi="darwin21.4.0")
        assert render(normalize(d, Convention.ZIG), Convention.ZIG) == "aarch64-macos"

    def test_apple_rust(self):
        d = PlatformDescriptor("unix", "darwin", arch="arm64", os="apple", abi="darwin21.4.0")
        assert render(normalize(d, Convention.RUST), Convention.RUST) == "aarch64-apple-darwin"

    def test_other_unix_untouched(self):
        d = PlatformDescriptor("unix", "freebsd", arch="amd64", os="freebsd13")
        assert normalize(d, Convention.ZIG) == d


class TestSynthesizeWindows:
    """Test Windows field synthesis."""

    @pytest.mark.parametrize(
        "convention,word_size,expected",
        [
            (Convention.ZIG, 8, "x86_64-windows-gnu"),
            (Convention.ZIG, 4, "x86-windows-gnu"),
            (Convention.RUST, 8, "x86_64-pc-windows-msvc"),
            (Convention.RUST, 4, "i686-pc-windows-msvc"),
        ],
    )
    def test_from_word_size(self, convention, word_size, expected):
        d = PlatformDescriptor("windows", "windows", word_size=word_size)
        assert render(synthesize_windows(d, convention), convention) == expected

    def test_unknown_word_size(self):
        d = PlatformDescriptor("windows", "windows", word_size=2)
        assert synthesize_windows(d, Convention.ZIG).arch == "unknown"

    def test_override_fields_kept(self):
        d = PlatformDescriptor("windows", "windows", abi="gnu")
        result = synthesize_windows(d, Convention.RUST)
        assert render(result, Convention.RUST) == "x86_64-pc-windows-gnu"
