"""Shared fixtures: in-memory sources and recording tool backends."""

from pathlib import Path
import tempfile

import pytest

from reelcut.audio import Chunk, CommandFailed

SAMPLE_DURATION = 178.183


class RecordingConverter:
    """Stands in for ffmpeg conversions; writes a marker file per call."""

    def __init__(self, fail_on: str | None = None):
        self.calls = []
        self.fail_on = fail_on

    def convert(self, input_path, output_path, *, bitrate=None):
        self.calls.append((Path(input_path), Path(output_path), bitrate))
        if self.fail_on and Path(output_path).suffix == self.fail_on:
            raise CommandFailed(["ffmpeg", "-i", str(input_path), str(output_path)], 1)
        Path(output_path).write_text(f"converted {input_path}\n")
        return Path(output_path)


class RecordingMixer:
    """Stands in for an extraction/mixing backend; appends one line per directive."""

    def __init__(self, max_inputs: int = 80, fail_on_batch: int | None = None):
        self.max_inputs = max_inputs
        self.batches = []
        self.mixes = []
        self.fail_on_batch = fail_on_batch

    def extract(self, directives):
        output = directives[0].output
        self.batches.append(list(directives))
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise CommandFailed(["mixer", str(output)], 2, "boom")
        with open(output, "a") as f:
            for d in directives:
                f.write(f"{d.source} {d.start} {d.duration} {d.reversed} {d.offset}\n")
        return Path(output)

    def mix_files(self, inputs, output):
        self.mixes.append([Path(p) for p in inputs])
        Path(output).write_text("".join(Path(p).read_text() for p in inputs))
        return Path(output)


class TrackingTmpdir:
    """Temporary directory factory remembering the directories it created."""

    def __init__(self, base: Path):
        self.base = base
        self.created = []

    def __call__(self):
        tmp = tempfile.TemporaryDirectory(dir=self.base)
        self.created.append(Path(tmp.name))
        return tmp


def fake_probe(path):
    return SAMPLE_DURATION


@pytest.fixture
def sample():
    """A 178.183 second source file, without touching the disk."""
    return Chunk.from_file("fixtures/sample.mp3", probe=fake_probe)


@pytest.fixture
def converter():
    return RecordingConverter()


@pytest.fixture
def mixer():
    return RecordingMixer()


@pytest.fixture
def tmpdirs(tmp_path):
    base = tmp_path / "work"
    base.mkdir()
    return TrackingTmpdir(base)


@pytest.fixture
def out_dir(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    return out
