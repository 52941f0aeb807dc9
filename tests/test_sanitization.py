"""Tests for input sanitization utilities."""

import pytest

from nppes.utils.sanitization import format_bytes, parse_byte_size, safe_member_name


class TestSafeMemberName:
    """Test cases for safe_member_name function."""

    def test_basic_filename(self):
        """Should pass through normal member names unchanged."""
        assert safe_member_name("npidata_pfile_20050523-20240107.csv") == (
            "npidata_pfile_20050523-20240107.csv"
        )

    def test_none_input(self):
        """Should return None for None input."""
        assert safe_member_name(None) is None

    def test_empty_string(self):
        """Should return None for empty string."""
        assert safe_member_name("") is None

    def test_directory_entry(self):
        """Should return None for directory entries."""
        assert safe_member_name("NPPES_Data_Dissemination/") is None

    def test_path_traversal_unix(self):
        """Should prevent unix-style path traversal."""
        assert safe_member_name("../../../etc/passwd") == "passwd"
        assert safe_member_name("foo/../bar/file.csv") == "file.csv"

    def test_path_traversal_windows(self):
        """Should prevent windows-style path traversal."""
        assert safe_member_name("..\\..\\windows\\system32") == "system32"
        assert safe_member_name("C:\\Users\\admin\\file.csv") == "file.csv"

    def test_parent_directory_references(self):
        """Should remove .. sequences."""
        assert ".." not in safe_member_name("file..name.csv")
        assert safe_member_name("..") is None

    def test_control_characters(self):
        """Should remove control characters to prevent log injection."""
        assert safe_member_name("file\nname.csv") == "filename.csv"
        assert safe_member_name("file\r\nname.csv") == "filename.csv"
        assert safe_member_name("file\x00name.csv") == "filename.csv"

    def test_max_length_no_extension(self):
        """Should truncate long names without extension."""
        result = safe_member_name("a" * 300)
        assert result == "a" * 255

    def test_max_length_with_extension(self):
        """Should preserve extension when truncating."""
        result = safe_member_name("a" * 300 + ".csv")
        assert len(result) == 255
        assert result.endswith(".csv")

    def test_custom_max_length(self):
        assert safe_member_name("abcdefghij.csv", max_length=8) == "abcd.csv"


class TestFormatBytes:
    def test_bytes(self):
        assert format_bytes(0) == "0.00 B"
        assert format_bytes(512) == "512.00 B"

    def test_scaled_units(self):
        assert format_bytes(1536) == "1.50 KB"
        assert format_bytes(3 * 1024**3) == "3.00 GB"

    def test_largest_unit_caps(self):
        assert format_bytes(2048 * 1024**4) == "2048.00 TB"


class TestParseByteSize:
    """Test cases for parse_byte_size function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("512", 512),
            ("512B", 512),
            ("1KB", 1024),
            ("512MB", 512 * 1024**2),
            ("4 gb", 4 * 1024**3),
            ("2G", 2 * 1024**3),
            ("1.5KB", 1536),
        ],
    )
    def test_sizes(self, value, expected):
        assert parse_byte_size(value) == expected

    def test_passthrough(self):
        """Should return integers and None unchanged."""
        assert parse_byte_size(4096) == 4096
        assert parse_byte_size(None) is None
        assert parse_byte_size("  ") is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_byte_size("lots")
