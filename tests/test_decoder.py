import struct

import numpy as np
import pytest

from pysmd0.core.decoder import SmdDecoder
from pysmd0.core.encoder import SmdEncoder
from pysmd0.smd.header import SmdHeaderError


def encode(channels, frequency_range=32, frequency_upper_limit=None, frequency_table_size=None,
           sample_rate=8000, tail_block=True):
    """Encodes per-channel signals, optionally followed by one block of silence."""
    encoder = SmdEncoder(
        sample_rate, len(channels), frequency_range, frequency_upper_limit, frequency_table_size
    )
    encoder.write(channels)
    if tail_block:
        encoder.write([np.zeros(frequency_range) for _ in channels])
    encoder.flush()
    return encoder.get_buffer()


def decode_all(data):
    """Decodes every frame once; output trails the input by one block."""
    decoder = SmdDecoder(data)
    total = decoder.frame_count * decoder.frequency_range
    outputs = [np.zeros(total) for _ in range(decoder.num_channels)]
    decoder.read(outputs)
    return outputs


def correlation(a, b):
    return float(np.corrcoef(a, b)[0, 1])


def rms(values):
    return float(np.sqrt(np.mean(np.square(values))))


def sine(length, period, amplitude=0.5):
    return amplitude * np.sin(2 * np.pi * np.arange(length) / period)


class TestDecoderSetup:
    def test_properties(self):
        """Header values are exposed on the decoder."""
        data = encode([np.zeros(100), np.zeros(100)], sample_rate=22050)
        decoder = SmdDecoder(data)
        assert decoder.sample_rate == 22050
        assert decoder.num_channels == 2
        assert decoder.frequency_range == 32
        assert decoder.frame_count == 5
        assert decoder.sample_count == 160
        assert decoder.current_frame == 0

    @pytest.mark.parametrize(
        "frequency_range,upper_limit,table_size",
        [(32, 32, 8), (1024, 1024, 8), (256, 256, 16), (64, 40, 8), (1024, 1024, 256)],
    )
    def test_layout_matches_encoder(self, frequency_range, upper_limit, table_size):
        """Decoder and encoder derive the same selector mode and block size."""
        encoder = SmdEncoder(8000, 1, frequency_range, upper_limit, table_size)
        encoder.write([np.zeros(frequency_range)])
        decoder = SmdDecoder(encoder.get_buffer())
        assert decoder.codec_data.selector_mode is encoder.codec_data.selector_mode
        assert decoder.codec_data.block_size == encoder.codec_data.block_size

    def test_probe(self):
        """probe recognises streams by their magic number."""
        data = encode([np.zeros(32)])
        assert SmdDecoder.probe(data)
        corrupted = b"\x00" + data[1:]
        assert not SmdDecoder.probe(corrupted)
        with pytest.raises(SmdHeaderError):
            SmdDecoder(corrupted)

    def test_rejects_truncated_stream(self):
        """A buffer shorter than the declared data size is refused."""
        data = encode([np.zeros(64)])
        with pytest.raises(SmdHeaderError):
            SmdDecoder(data[:-1])
        with pytest.raises(SmdHeaderError):
            SmdDecoder(data[:20])

    def test_rejects_empty_stream(self):
        """A stream without frames cannot be decoded."""
        data = SmdEncoder(8000, 1, 32, 32, 8).get_buffer()
        with pytest.raises(SmdHeaderError, match="no frames"):
            SmdDecoder(data)

    def test_rejects_unknown_version(self):
        """Only version 0 is understood."""
        data = bytearray(encode([np.zeros(32)]))
        struct.pack_into("<I", data, 12, 1)
        with pytest.raises(SmdHeaderError, match="version"):
            SmdDecoder(bytes(data))

    def test_rejects_unsupported_geometry(self):
        """Header geometry the codec cannot lay out is refused."""
        data = bytearray(encode([np.zeros(32)]))
        struct.pack_into("<H", data, 30, 48)
        with pytest.raises(SmdHeaderError, match="geometry"):
            SmdDecoder(bytes(data))

    def test_rejects_short_data_size(self):
        """The declared size must cover every frame."""
        data = bytearray(encode([np.zeros(64)]))
        struct.pack_into("<I", data, 4, 36)
        with pytest.raises(SmdHeaderError):
            SmdDecoder(bytes(data))

    def test_accepts_read_only_buffers(self):
        """Decoding borrows the buffer without writing to it."""
        data = encode([sine(64, 16)])
        decoder = SmdDecoder(memoryview(data))
        outputs = [np.zeros(32)]
        decoder.read(outputs)
        assert decoder.current_frame == 1


class TestDecoderReading:
    def test_cursor_wraps_around(self):
        """Reading past the last frame starts over at frame 0."""
        decoder = SmdDecoder(encode([sine(64, 16)], tail_block=False))
        assert decoder.frame_count == 2
        outputs = [np.zeros(32)]
        frames = []
        for _ in range(5):
            decoder.read(outputs)
            frames.append(decoder.current_frame)
        assert frames == [1, 0, 1, 0, 1]

    def test_default_length_fills_rest_of_output(self):
        """read() without a length fills the first output array from start."""
        decoder = SmdDecoder(encode([sine(128, 16)]))
        output = np.zeros(60)
        decoder.read([output], 10)
        assert decoder.current_frame == 2
        assert decoder.work_buffer_offset == 18
        np.testing.assert_array_equal(output[:10], 0.0)

        frame_output = np.zeros(40)
        decoder.read_frame([frame_output])
        assert decoder.current_frame == 3

    def test_chunked_reads_match_block_reads(self):
        """Any split of the requested samples yields the same output."""
        data = encode([sine(500, 23.0)])
        reference = decode_all(data)[0]

        decoder = SmdDecoder(data)
        chunked = np.zeros(len(reference))
        position = 0
        for size in [5, 40, 3, 64, 0, 1, 31, 33, 100]:
            decoder.read([chunked], position, size)
            position += size
        decoder.read([chunked], position)

        np.testing.assert_array_equal(chunked, reference)

    def test_read_frame_validates_arguments(self):
        """Output channels and block length are checked."""
        decoder = SmdDecoder(encode([np.zeros(32), np.zeros(32)]))
        with pytest.raises(ValueError):
            decoder.read_frame([np.zeros(32)])
        with pytest.raises(ValueError):
            decoder.read_frame([np.zeros(64), np.zeros(64)], 0, 33)
        with pytest.raises(ValueError):
            decoder.read([np.zeros(32)])

    def test_silence_decodes_to_silence(self):
        """Empty selections reconstruct exact zeros."""
        outputs = decode_all(encode([np.zeros(96)]))
        np.testing.assert_allclose(outputs[0], 0.0, atol=1e-12)


class TestRoundTrip:
    def test_short_sine_scenario(self):
        """Two blocks of a 440 Hz tone decode with one block of latency."""
        signal = sine(64, 8000 / 440)
        encoder = SmdEncoder(8000, 1, 32, 32, 8)
        encoder.write([signal])
        encoder.flush()
        data = encoder.get_buffer()
        assert encoder.frame_count == 2

        decoder = SmdDecoder(data)
        output = np.zeros(64)
        decoder.read([output])

        assert correlation(output[32:64], signal[0:32]) > 0.7
        assert np.max(np.abs(output)) < 1.0
        assert rms(output[32:64] - signal[0:32]) < 0.25

    def test_full_table_reconstruction(self):
        """Keeping every coefficient leaves only magnitude quantization error."""
        signal = sine(640, 8000 / 440) + sine(640, 8000 / 1300, 0.2)
        decoded = decode_all(encode([signal], 32, 32, 32))[0]

        # Skip the lead-in block and the edges
        middle = slice(64, 576)
        assert correlation(decoded[32:][middle], signal[middle]) > 0.9

    def test_error_shrinks_with_table_size(self):
        """More coefficients per block means less reconstruction error."""
        signal = np.random.default_rng(8).uniform(-0.4, 0.4, 640)

        def error(table_size):
            decoded = decode_all(encode([signal], 32, 32, table_size))[0]
            return np.sqrt(np.mean((decoded[32:672] - signal) ** 2))

        assert error(32) < error(8)

    def test_index_mode_round_trip(self):
        """Index-mode streams reconstruct the input too."""
        signal = sine(2048, 64.0)
        data = encode([signal], 256, 256, 16)
        decoder = SmdDecoder(data)
        assert decoder.codec_data.is_index_mode

        decoded = decode_all(data)[0]
        middle = slice(256, 1792)
        assert correlation(decoded[256:][middle], signal[middle]) > 0.8
        # Kept coefficients decode to between half and all of their magnitude
        assert rms(decoded[256:][middle] - signal[middle]) < 0.55 * rms(signal[middle])

    def test_stereo_channels_stay_separate(self):
        """Each decoded channel follows its own input."""
        left = sine(640, 16.0)
        right = sine(640, 5.0, 0.3)
        decoded_left, decoded_right = decode_all(encode([left, right], 32, 32, 32))

        middle = slice(64, 576)
        assert correlation(decoded_left[32:][middle], left[middle]) > 0.9
        assert correlation(decoded_right[32:][middle], right[middle]) > 0.9
        assert abs(correlation(decoded_left[32:][middle], right[middle])) < 0.3

    def test_upper_limit_removes_high_frequencies(self):
        """Content above the upper limit is not reconstructed."""
        high = sine(640, 2.5)
        decoded = decode_all(encode([high], 32, 8, 8))[0]
        assert np.sqrt(np.mean(decoded[96:576] ** 2)) < 0.1 * np.sqrt(np.mean(high ** 2))

    def test_full_table_level_and_error(self):
        """With every coefficient kept the output level and error stay within quantizer bounds."""
        signal = np.random.default_rng(9).uniform(-0.4, 0.4, 640)
        decoded = decode_all(encode([signal], 32, 32, 32))[0][32:672]

        # Magnitude codes round down by a factor in (0.5, 1], about 0.73 on average
        level = rms(decoded) / rms(signal)
        assert 0.6 < level < 0.9
        assert rms(decoded - signal) < 0.4 * rms(signal)
        assert rms(decoded - signal) < 0.1

    def test_full_table_keeps_sine_level(self):
        """A full-table tone decodes at most one octave below its input level."""
        signal = sine(2048, 64.0)
        decoded = decode_all(encode([signal], 256, 256, 256))[0][256:]

        middle = slice(256, 1792)
        level = rms(decoded[middle]) / rms(signal[middle])
        assert 0.45 < level < 1.05
        assert rms(decoded[middle] - signal[middle]) < 0.55 * rms(signal[middle])
