import numpy as np

from callsense.utils.audio import (
    encode_wav,
    ensure_mono,
    read_wave_bytes,
    resample,
    to_pcm16,
    wav_duration,
)


def test_wav_bytes_round_trip_keeps_channels_and_rate() -> None:
    sample_rate = 16000
    t = np.linspace(0, 1, sample_rate, endpoint=False)
    left = 0.5 * np.sin(2 * np.pi * 440 * t)
    right = 0.5 * np.sin(2 * np.pi * 880 * t)
    stereo = np.stack([left, right], axis=1).astype(np.float32)

    data = encode_wav(to_pcm16(stereo), sample_rate, channels=2)
    decoded, sr = read_wave_bytes(data)

    assert sr == sample_rate
    assert decoded.shape == (sample_rate, 2)
    assert np.allclose(decoded, stereo, atol=1e-3)
    assert wav_duration(data) == 1.0


def test_encode_wav_has_standard_header() -> None:
    data = encode_wav(b"\x00\x00" * 10, 8000)

    assert data[:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert len(data) == 44 + 20


def test_ensure_mono_averages_channels() -> None:
    stereo = np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32)

    mono = ensure_mono(stereo)

    assert mono.shape == (2, 1)
    assert np.allclose(mono[:, 0], [0.5, 0.5])


def test_resample_changes_length_proportionally() -> None:
    source = np.zeros((44100, 1), dtype=np.float32)

    assert resample(source, 44100, 16000).shape == (16000, 1)
    assert resample(source, 44100, 44100) is source
