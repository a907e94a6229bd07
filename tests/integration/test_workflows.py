import io
import json

import numpy as np
import pytest
import scipy.io.wavfile

from singerprint import cli
from singerprint.core import analyzer, fingerprint_store, matcher

SR = 44100


def _write_wav(path, data, sr=SR):
    scipy.io.wavfile.write(path, sr, np.int16(np.clip(data, -1.0, 1.0) * 32767))
    return path


@pytest.fixture()
def noise_wav(tmp_path):
    rng = np.random.default_rng(42)
    return _write_wav(tmp_path / "noise.wav", rng.uniform(-0.5, 0.5, SR * 2))


@pytest.fixture()
def chord_wav(tmp_path):
    rng = np.random.default_rng(43)
    t = np.arange(SR * 2) / SR
    data = 0.3 * np.sin(2 * np.pi * 220 * t) + 0.2 * np.sin(2 * np.pi * 1330 * t) \
        + rng.uniform(-0.3, 0.3, len(t))
    return _write_wav(tmp_path / "chord.wav", data)


def test_wav_to_fingerprint(noise_wav):
    anlz = analyzer.Analyzer()
    fp = anlz.wavfile2fingerprint(str(noise_wav))

    assert len(fp.peaks) > 0
    assert len(fp) > 10
    assert anlz.soundfilecount == 1
    assert anlz.soundfiledur == pytest.approx(2.0)
    for freq, time_ in fp.peaks:
        assert 0 <= freq < SR / 4
        assert 0 <= time_ < 2.0


def test_short_wav_gives_empty_fingerprint(tmp_path):
    short = _write_wav(tmp_path / "short.wav", np.full(1000, 0.25))
    fp = analyzer.Analyzer().wavfile2fingerprint(str(short))
    assert fp.peaks == ()
    assert fp.hashes == ()


def test_generate_then_match_loaded_fingerprint(noise_wav, tmp_path):
    out_path = tmp_path / "noise.json"
    cli.main(["generate", str(noise_wav), "-o", str(out_path)], out=io.StringIO())

    doc = json.loads(out_path.read_text())
    assert set(doc) == {"peaks", "hash"}
    stored = fingerprint_store.load_fingerprint(str(out_path))

    m = matcher.FingerprintMatcher()
    m.add("clip1", stored)
    query = analyzer.Analyzer().wavfile2fingerprint(str(noise_wav))
    assert m.find_best_match(query) == "clip1"


@pytest.mark.parametrize("dbname", ["fp.json", "fp.hdf", "fp.pklz"])
def test_add_list_match_remove(noise_wav, chord_wav, tmp_path, dbname):
    dbase = str(tmp_path / "db" / dbname)

    out = io.StringIO()
    cli.main(["add", "-d", dbase, "--name", "clip1", str(noise_wav)], out=out)
    cli.main(["add", "-d", dbase, "--name", "clip2", str(chord_wav)], out=out)
    assert out.getvalue().splitlines() == [
        f"Added fingerprint for 'clip1' to database: {dbase}",
        f"Added fingerprint for 'clip2' to database: {dbase}",
    ]

    out = io.StringIO()
    cli.main(["list", "-d", dbase], out=out)
    names = [line.split(" ")[0] for line in out.getvalue().splitlines()]
    assert names == ["clip1", "clip2"]

    out = io.StringIO()
    cli.main(["match", "-d", dbase, str(noise_wav)], out=out)
    cli.main(["match", "-d", dbase, str(chord_wav)], out=out)
    assert out.getvalue().splitlines() == ["Match found: clip1", "Match found: clip2"]

    cli.main(["remove", "-d", dbase, "clip1", "clip2"], out=io.StringIO())
    out = io.StringIO()
    cli.main(["match", "-d", dbase, str(noise_wav)], out=out)
    assert out.getvalue().strip() == "No match found"


def test_match_against_missing_database(noise_wav, tmp_path):
    out = io.StringIO()
    cli.main(["match", "-d", str(tmp_path / "none.json"), str(noise_wav)], out=out)
    assert out.getvalue().strip() == "No match found"
    assert not (tmp_path / "none.json").exists()


def test_samplerate_mismatch_propagates(tmp_path):
    wav_path = _write_wav(tmp_path / "low.wav", np.zeros(8000), sr=8000)
    with pytest.raises(ValueError):
        cli.main(["generate", str(wav_path)], out=io.StringIO())


def test_repeated_add_keeps_entries_in_unrecognised_file(noise_wav, chord_wav, tmp_path):
    dbase = str(tmp_path / "songs.db")
    cli.main(["add", str(noise_wav), "-d", dbase, "--name", "first"], out=io.StringIO())
    cli.main(["add", str(chord_wav), "-d", dbase, "--name", "second"], out=io.StringIO())

    out = io.StringIO()
    cli.main(["list", "-d", dbase], out=out)
    assert [line.split(" ")[0] for line in out.getvalue().splitlines()] == ["first", "second"]
    assert not (tmp_path / "songs.json").exists()
