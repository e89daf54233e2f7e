import argparse
import wave
import numpy as np
import os

from pysmd0.core.encoder import SmdEncoder
from pysmd0.core.decoder import SmdDecoder
from pysmd0.core.codec_data import SmdConfigError
from pysmd0.smd.header import SmdHeaderError
from pysmd0.common.constants import DEFAULT_FREQUENCY_RANGE
from pysmd0.common.debug_logger import enable_debug_logging


def read_wav(path: str):
    """Reads an 8- or 16-bit PCM WAV file into per-channel float arrays in [-1, 1]."""
    with wave.open(path, "rb") as wav_in:
        n_channels = wav_in.getnchannels()
        samp_width = wav_in.getsampwidth()
        frame_rate = wav_in.getframerate()
        n_frames = wav_in.getnframes()
        audio_bytes = wav_in.readframes(n_frames)

    if samp_width == 2:  # 16-bit signed PCM
        interleaved = np.frombuffer(audio_bytes, dtype="<i2").astype(np.float64) / 32768.0
    elif samp_width == 1:  # 8-bit unsigned PCM
        interleaved = (np.frombuffer(audio_bytes, dtype=np.uint8).astype(np.float64) - 128.0) / 128.0
    else:
        raise ValueError(
            f"Input WAV has sample width {samp_width} bytes; only 16-bit or 8-bit PCM is supported"
        )

    channels = [interleaved[i::n_channels] for i in range(n_channels)]
    return channels, frame_rate


def write_wav(path: str, channels, frame_rate: int):
    """Writes per-channel float arrays in [-1, 1] as a 16-bit PCM WAV file."""
    n_channels = len(channels)
    n_samples = len(channels[0]) if n_channels else 0
    interleaved = np.empty(n_samples * n_channels, dtype=np.float64)
    for i, channel in enumerate(channels):
        interleaved[i::n_channels] = channel

    pcm = np.clip(interleaved * (2**15 - 1), -(2**15), 2**15 - 1).astype("<i2")
    with wave.open(path, "wb") as wav_out:
        wav_out.setnchannels(n_channels)
        wav_out.setsampwidth(2)
        wav_out.setframerate(frame_rate)
        wav_out.writeframes(pcm.tobytes())


def encode_file(input_path: str, output_path: str, frequency_range: int,
                frequency_upper_limit=None, frequency_table_size=None):
    channels, frame_rate = read_wav(input_path)
    n_samples = len(channels[0])

    encoder = SmdEncoder(
        frame_rate,
        len(channels),
        frequency_range,
        frequency_upper_limit,
        frequency_table_size,
        init_sample_count=n_samples + frequency_range,
    )
    print(
        f"Input WAV: {len(channels)} channels, {frame_rate} Hz, {n_samples} samples "
        f"({n_samples / frame_rate:.2f}s). Selector mode: {encoder.codec_data.selector_mode.value}."
    )

    encoder.write(channels)
    # Decoded output trails the input by one block; a block of silence carries the tail
    encoder.write([np.zeros(frequency_range) for _ in channels])
    encoder.flush()

    data = encoder.get_buffer()
    with open(output_path, "wb") as f_out:
        f_out.write(data)
    print(f"Wrote {encoder.frame_count} frames ({len(data)} bytes) to: {output_path}")


def decode_file(input_path: str, output_path: str):
    with open(input_path, "rb") as f_in:
        data = f_in.read()

    if not SmdDecoder.probe(data):
        raise SmdHeaderError(f"'{input_path}' is not an SMD0 stream")

    decoder = SmdDecoder(data)
    frequency_range = decoder.frequency_range
    total = decoder.frame_count * frequency_range
    print(
        f"SMD0 Input: '{input_path}', Channels: {decoder.num_channels}, "
        f"Sample Rate: {decoder.sample_rate} Hz, Frames: {decoder.frame_count}"
    )

    outputs = [np.zeros(total, dtype=np.float64) for _ in range(decoder.num_channels)]
    decoder.read(outputs, 0, total)

    # Drop the lead-in block
    write_wav(output_path, [channel[frequency_range:] for channel in outputs], decoder.sample_rate)
    print(f"Wrote {total - frequency_range} samples per channel to: {output_path}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="SMD0 Audio Codec CLI Tool")
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        required=True,
        help="Path to the input file (.wav for encode; .smd for decode)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        required=True,
        help="Path to the output file (.smd for encode; .wav for decode)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        type=str,
        choices=["encode", "decode"],
        required=True,
        help="Operation mode: 'encode' to compress WAV to SMD0, 'decode' to decompress SMD0 to WAV",
    )
    parser.add_argument(
        "--frequency-range",
        type=int,
        default=DEFAULT_FREQUENCY_RANGE,
        help="Block size in samples, a multiple of 32 (default: 1024)",
    )
    parser.add_argument(
        "--frequency-upper-limit",
        type=int,
        help="Highest coefficient index encoded (default: the frequency range)",
    )
    parser.add_argument(
        "--frequency-table-size",
        type=int,
        help="Coefficients kept per block, a multiple of 8 (default: a quarter of the frequency range)",
    )
    parser.add_argument(
        "--debug-log",
        type=str,
        help="Enable debug logging to specified file (e.g., --debug-log pysmd0_debug.log)",
    )

    args = parser.parse_args(argv)

    if args.debug_log:
        enable_debug_logging(args.debug_log)
        print(f"Debug logging enabled to: {args.debug_log}")

    if not os.path.exists(args.input):
        print(f"Error: input file not found: {args.input}")
        return 1

    try:
        if args.mode == "encode":
            encode_file(
                args.input,
                args.output,
                args.frequency_range,
                args.frequency_upper_limit,
                args.frequency_table_size,
            )
        else:
            decode_file(args.input, args.output)
    except wave.Error as e:
        print(f"Error reading WAV file: {e}")
        return 1
    except (SmdConfigError, SmdHeaderError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
