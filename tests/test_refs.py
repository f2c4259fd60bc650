"""Tests for refs module."""

import pytest

from flatctl.refs import Ref, decompose_ref, try_decompose_ref, validate_name


class TestDecomposeRef:
    """Test ref string decomposition."""

    def test_app_ref(self):
        ref = decompose_ref("app/org.example.App/x86_64/stable")

        assert ref == Ref("app", "org.example.App", "x86_64", "stable")
        assert str(ref) == "app/org.example.App/x86_64/stable"

    def test_runtime_ref(self):
        assert decompose_ref("runtime/org.example.Platform/aarch64/23.08").branch == "23.08"

    @pytest.mark.parametrize(
        "ref",
        [
            "app/org.example.App/x86_64",
            "app/org.example.App/x86_64/stable/extra",
            "extension/org.example.App/x86_64/stable",
            "app/org.example/x86_64/stable",
            "app/org.example.App//stable",
            "app/org.example.App/x86_64/.hidden",
        ],
    )
    def test_malformed(self, ref):
        with pytest.raises(ValueError):
            decompose_ref(ref)

    def test_try_decompose(self):
        assert try_decompose_ref(None) is None
        assert try_decompose_ref("") is None
        assert try_decompose_ref("app/broken") is None
        assert try_decompose_ref("app/org.example.App/x86_64/stable").app_id == "org.example.App"


class TestValidateName:
    """Test application id validation."""

    def test_valid(self):
        validate_name("org.example.App_2")

    def test_element_starting_with_digit(self):
        with pytest.raises(ValueError, match="Invalid name element"):
            validate_name("org.2example.App")

    def test_too_long(self):
        with pytest.raises(ValueError, match="longer than"):
            validate_name("org.example." + "a" * 255)
