"""
Tests for multi-track mixing.

These tests verify:
- Track management
- Rendering every non-empty track into one shared working directory
- Error conditions and cleanup
"""

import pytest

from conftest import RecordingConverter, RecordingMixer


def _track_mixer(tracks, converter, mixer, tmpdirs, probe=lambda path: 30.0):
    from reelcut.audio import Renderer, TrackMixer

    renderer = Renderer(converter=converter, mixer=mixer, probe=probe, tmpdir_factory=tmpdirs)
    return TrackMixer(tracks, renderer=renderer)


class TestTrackMixer:
    """Test the TrackMixer."""

    def test_add_track(self, sample):
        from reelcut.audio import TrackMixer

        mixer = TrackMixer()
        mixer.add_track(sample.slice(0, 10))
        mixer.add_track(sample.slice(20, 5))
        assert [t.duration() for t in mixer.tracks] == [10, 5]
        with pytest.raises(TypeError):
            mixer.add_track("song.mp3")

    def test_all_tracks_empty(self, converter, mixer, tmpdirs, out_dir):
        from reelcut.audio import Chunk, EmptyFragment

        with pytest.raises(EmptyFragment):
            _track_mixer([], converter, mixer, tmpdirs).render_to_file(out_dir / "m.wav")
        with pytest.raises(EmptyFragment):
            _track_mixer([Chunk(), Chunk()], converter, mixer, tmpdirs).render_to_file(
                out_dir / "m.wav"
            )
        assert tmpdirs.created == []
        assert mixer.batches == []

    def test_render_to_file(self, sample, converter, mixer, tmpdirs, out_dir):
        from reelcut.audio import Chunk

        tracks = [sample.slice(0, 30), Chunk(), sample.slice(60, 10) * 3]
        destination = out_dir / "mix.mp3"
        result = _track_mixer(tracks, converter, mixer, tmpdirs).render_to_file(
            destination, bitrate="256k"
        )

        assert len(mixer.batches) == 2
        assert len(mixer.mixes) == 1
        assert [p.name for p in mixer.mixes[0]] == ["track_0.wav", "track_2.wav"]
        # one shared conversion of the mp3 source, then the final transcode
        assert len(converter.calls) == 2
        assert converter.calls[-1][0].name == "mix.wav"
        assert converter.calls[-1][2] == "256k"
        assert destination.exists()
        assert result.fragments[0].source == str(destination)
        assert result.duration() == 30
        assert not tmpdirs.created[0].exists()

    def test_wav_destination_is_moved(self, sample, converter, mixer, tmpdirs, out_dir):
        destination = out_dir / "mix.wav"
        _track_mixer([sample.slice(0, 1), sample.slice(1, 1)], converter, mixer, tmpdirs).render_to_file(
            destination
        )
        assert len(converter.calls) == 1
        assert len(destination.read_text().splitlines()) == 2

    def test_existing_destination(self, sample, converter, mixer, tmpdirs, out_dir):
        from reelcut.audio import FileExists

        destination = out_dir / "mix.wav"
        destination.write_text("old")
        track_mixer = _track_mixer([sample.slice(0, 1)], converter, mixer, tmpdirs)
        with pytest.raises(FileExists):
            track_mixer.render_to_file(destination)
        track_mixer.render_to_file(destination, overwrite=True)
        assert destination.read_text() != "old"

    def test_failure_cleans_up(self, sample, tmpdirs, out_dir):
        from reelcut.audio import CommandFailed

        converter = RecordingConverter()
        mixer = RecordingMixer(fail_on_batch=2)
        destination = out_dir / "mix.mp3"
        track_mixer = _track_mixer(
            [sample.slice(0, 1), sample.slice(1, 1)], converter, mixer, tmpdirs
        )
        with pytest.raises(CommandFailed):
            track_mixer.render_to_file(destination)
        assert not destination.exists()
        assert not tmpdirs.created[0].exists()

    def test_destination_created_while_mixing_is_kept(self, sample, converter, tmpdirs, out_dir):
        from reelcut.audio import FileExists

        destination = out_dir / "mix.wav"

        class RacingMixer(RecordingMixer):
            def mix_files(self, inputs, output):
                destination.write_text("someone else's file")
                return super().mix_files(inputs, output)

        track_mixer = _track_mixer([sample.slice(0, 1)], converter, RacingMixer(), tmpdirs)
        with pytest.raises(FileExists):
            track_mixer.render_to_file(destination)
        assert destination.read_text() == "someone else's file"
        assert [p.name for p in out_dir.iterdir()] == ["mix.wav"]
