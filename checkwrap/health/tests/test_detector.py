"""
Tests for change detector module.
"""

from checkwrap.health.detector import Verdict, checksum_sha256, classify


class TestClassify:
    """Tests for classify function."""

    def test_no_baseline_empty_output(self):
        """Test first run without output sets an empty baseline."""
        assert classify(b"", None) is Verdict.NEW_BASELINE_EMPTY

    def test_no_baseline_with_output(self):
        """Test first run with output sets a reportable baseline."""
        assert classify(b"ERROR: disk full\n", None) is Verdict.NEW_BASELINE

    def test_both_empty(self):
        """Test empty output against empty baseline is unchanged."""
        assert classify(b"", b"") is Verdict.UNCHANGED

    def test_identical_output(self):
        """Test identical output is unchanged."""
        assert classify(b"same\n", b"same\n") is Verdict.UNCHANGED

    def test_different_output(self):
        """Test differing output is changed."""
        assert classify(b"new\n", b"old\n") is Verdict.CHANGED

    def test_same_length_different_output(self):
        """Test equal lengths are not mistaken for equal content."""
        assert classify(b"abc", b"abd") is Verdict.CHANGED

    def test_output_after_empty_baseline(self):
        """Test output appearing after a clean baseline is changed."""
        assert classify(b"ERROR\n", b"") is Verdict.CHANGED

    def test_output_cleared(self):
        """Test empty output after an error baseline clears the error."""
        assert classify(b"", b"ERROR: disk full\n") is Verdict.CLEARED_ERROR


class TestVerdict:
    """Tests for Verdict properties."""

    def test_reportable(self):
        """Test which verdicts produce notifications."""
        assert Verdict.NEW_BASELINE.reportable is True
        assert Verdict.CHANGED.reportable is True
        assert Verdict.CLEARED_ERROR.reportable is True
        assert Verdict.UNCHANGED.reportable is False
        assert Verdict.NEW_BASELINE_EMPTY.reportable is False

    def test_keeps_fresh(self):
        """Test only unchanged runs discard the fresh output."""
        assert Verdict.UNCHANGED.keeps_fresh is False
        assert all(v.keeps_fresh for v in Verdict if v is not Verdict.UNCHANGED)


def test_checksum_sha256():
    """Test SHA-256 checksum of known input."""
    assert checksum_sha256(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
