"""
Tests for step sequences and silence.
"""

import pytest

from reelcut.audio.sequence import SILENCE_BYTES


@pytest.fixture
def rest():
    from reelcut.audio import Chunk, Fragment

    return Chunk([Fragment("silence.wav", 0, 1)])


class TestSequence:
    """Test Sequence.apply."""

    def test_pattern_duration(self, sample, rest):
        from reelcut.audio import Sequence

        kick = sample.slice(0, 0.3)
        snare = sample.slice(10, 0.2)
        beat = Sequence("k-s-k-s-", 0.25).apply({"k": kick, "s": snare}, rest=rest)
        assert beat.duration() == 2.0

    def test_long_sounds_are_cut(self, sample, rest):
        from reelcut.audio import Sequence

        beat = Sequence("xx", 0.5).apply({"x": sample.slice(0, 3)}, rest=rest)
        assert [(f.start, f.duration) for f in beat] == [(0, 0.5), (0, 0.5)]

    def test_short_sounds_are_padded(self, sample, rest):
        from reelcut.audio import Sequence

        beat = Sequence("x", 0.5).apply({"x": sample.slice(0, 0.2)}, rest=rest)
        assert [(f.source, f.duration) for f in beat] == [
            ("fixtures/sample.mp3", 0.2),
            ("silence.wav", 0.3),
        ]

    def test_unknown_characters_are_rests(self, rest):
        from reelcut.audio import Sequence

        beat = Sequence("..", 0.75).apply({}, rest=rest)
        assert {f.source for f in beat} == {"silence.wav"}
        assert beat.duration() == 1.5

    def test_invalid_step(self):
        from reelcut.audio import Sequence

        with pytest.raises(ValueError):
            Sequence("x", 0)
        assert len(Sequence("x-x", 0.1)) == 3

    def test_default_rest_uses_silence(self, sample, monkeypatch, rest):
        from reelcut.audio import sequence

        requested = []

        def fake_silence(duration, **kwargs):
            requested.append(duration)
            return rest.fill(duration)

        monkeypatch.setattr(sequence, "silence", fake_silence)
        beat = sequence.Sequence("x-", 1.0).apply({"x": sample.slice(0, 0.5)})
        assert requested == [0.5, 1.0]
        assert beat.duration() == 2.0


class TestSilence:
    """Test silence()."""

    def test_silence(self, tmp_path):
        pytest.importorskip("pydub")
        from reelcut.audio import silence

        gap = silence(2.5, directory=tmp_path)
        assert gap.duration() == 2.5
        assert [f.duration for f in gap] == [1, 1, 0.5]
        assert (tmp_path / "reelcut_silence.wav").stat().st_size >= SILENCE_BYTES
        assert [p.name for p in tmp_path.iterdir()] == ["reelcut_silence.wav"]

    def test_silence_reuses_file(self, tmp_path):
        from reelcut.audio import silence

        # a complete existing file is used as is, pydub is not needed
        content = b"RIFF" + bytes(SILENCE_BYTES)
        (tmp_path / "reelcut_silence.wav").write_bytes(content)
        gap = silence(1, directory=tmp_path)
        assert gap.fragments[0].source == str(tmp_path / "reelcut_silence.wav")
        assert (tmp_path / "reelcut_silence.wav").read_bytes() == content

    @pytest.mark.parametrize("content", [b"", b"RIFF\x00\x00"])
    def test_incomplete_file_is_regenerated(self, tmp_path, content):
        pytest.importorskip("pydub")
        from reelcut.audio import silence

        path = tmp_path / "reelcut_silence.wav"
        path.write_bytes(content)
        gap = silence(3, directory=tmp_path)

        assert gap.duration() == 3
        assert path.stat().st_size >= SILENCE_BYTES
        assert [p.name for p in tmp_path.iterdir()] == ["reelcut_silence.wav"]

    def test_failed_export_leaves_no_file(self, tmp_path, monkeypatch):
        pydub = pytest.importorskip("pydub")
        from reelcut.audio import silence

        def broken_export(self, out_f, format=None, **kwargs):
            with open(out_f, "wb") as f:
                f.write(b"RIFF")
            raise OSError("disk full")

        monkeypatch.setattr(pydub.AudioSegment, "export", broken_export)
        with pytest.raises(OSError):
            silence(1, directory=tmp_path)
        assert list(tmp_path.iterdir()) == []
