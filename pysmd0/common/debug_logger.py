"""
Stage debug logging for pysmd0 signal processing analysis.
Each encoder/decoder stage can be traced with source location, channel and
frame tags, and summary statistics of the data it produced.
"""

import time
import inspect
import numpy as np
from typing import List, Union, Any
import os


class SmdDebugLogger:
    """
    Debug logger for SMD0 signal processing stages.
    Logs with full metadata including source location, data statistics, and context.
    """

    def __init__(self, log_file: str = "pysmd0_debug.log", enabled: bool = False):
        self.log_file = log_file
        self.enabled = enabled
        if enabled:
            # Clear log file and write header
            with open(log_file, 'w') as f:
                f.write(f"# pysmd0 Debug Log - {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                f.write("# Format: [TIMESTAMP][IMPL][FILE:LINE][FUNC][CH{n}][FR{nnn}] STAGE: data_type=values |META: ... |SRC: ...\n")
                f.write("#\n")

    @staticmethod
    def _caller_location(depth: int = 2):
        frame_info = inspect.currentframe()
        for _ in range(depth):
            frame_info = frame_info.f_back
        filename = os.path.basename(frame_info.f_code.co_filename)
        return filename, frame_info.f_lineno, frame_info.f_code.co_name

    @staticmethod
    def _timestamp() -> str:
        return time.strftime('%Y-%m-%dT%H:%M:%S.') + f"{int(time.time() * 1000000) % 1000000:06d}"

    def log_stage(self, stage: str, data_type: str, values: Union[List, np.ndarray, float, int],
                  channel: int = 0, frame: int = 0, **context) -> None:
        """
        Log a processing stage with comprehensive metadata.

        Args:
            stage: Processing stage name (e.g., 'MDCT_COEFFS', 'SUB_SCALES')
            data_type: Type of data being logged (e.g., 'samples', 'coeffs', 'codes')
            values: The actual data values
            channel: Channel index
            frame: Frame index
            **context: Additional context (algorithm, selector_mode, etc.)
        """
        if not self.enabled:
            return

        filename, line_no, func_name = self._caller_location(depth=3 if context.pop("_via_helper", False) else 2)

        if isinstance(values, (int, float)):
            values_array = np.array([values], dtype=np.float64)
            is_scalar = True
        else:
            values_array = np.asarray(values, dtype=np.float64)
            is_scalar = False

        size = values_array.size
        if size > 0:
            min_val = float(np.min(values_array))
            max_val = float(np.max(values_array))
            sum_val = float(np.sum(values_array))
            mean_val = float(np.mean(values_array))
            nonzero_count = int(np.count_nonzero(values_array))
        else:
            min_val = max_val = sum_val = mean_val = 0.0
            nonzero_count = 0

        # Truncate long arrays to the first and last 5 values
        if is_scalar:
            values_str = f"{values:.6f}"
        elif size <= 10:
            values_str = f"[{','.join(f'{v:.6f}' for v in values_array)}]"
        else:
            first_5 = ','.join(f'{v:.6f}' for v in values_array[:5])
            last_5 = ','.join(f'{v:.6f}' for v in values_array[-5:])
            values_str = f"[{first_5}...{last_5}]"

        context_str = " ".join(f"{key}={value}" for key, value in context.items())

        log_entry = (
            f"[{self._timestamp()}][PYSMD0][{filename}:{line_no}][{func_name}]"
            f"[CH{channel}][FR{frame:03d}] {stage}: "
            f"{data_type}={values_str} "
            f"|META: size={size} range=[{min_val:.6f},{max_val:.6f}] "
            f"sum={sum_val:.6f} mean={mean_val:.6f} nonzero={nonzero_count} "
            f"|SRC: {context_str}\n"
        )

        with open(self.log_file, 'a') as f:
            f.write(log_entry)

    def log_bitstream(self, stage: str, bitstream_bytes: bytes,
                      channel: int = 0, frame: int = 0, **context) -> None:
        """
        Special logging for bitstream data in hex format.
        """
        if not self.enabled:
            return

        hex_str = bytes(bitstream_bytes).hex()
        size = len(bitstream_bytes)
        filename, line_no, func_name = self._caller_location(depth=3 if context.pop("_via_helper", False) else 2)
        context_str = " ".join(f"{key}={value}" for key, value in context.items())

        log_entry = (
            f"[{self._timestamp()}][PYSMD0][{filename}:{line_no}][{func_name}]"
            f"[CH{channel}][FR{frame:03d}] {stage}: "
            f"hex={hex_str} "
            f"|META: size={size} bytes "
            f"|SRC: {context_str}\n"
        )

        with open(self.log_file, 'a') as f:
            f.write(log_entry)

    def enable(self):
        """Enable logging."""
        self.enabled = True

    def disable(self):
        """Disable logging."""
        self.enabled = False


# Global logger instance, silent until enable_debug_logging() is called
debug_logger = SmdDebugLogger()


def log_debug(stage: str, data_type: str, values: Any, **kwargs) -> None:
    """
    Convenience function for logging with global logger instance.

    Usage:
        log_debug("MDCT_COEFFS", "coeffs", coeffs,
                  channel=0, frame=1, algorithm="mdct")
    """
    if debug_logger.enabled:
        debug_logger.log_stage(stage, data_type, values, _via_helper=True, **kwargs)


def log_bitstream(stage: str, bitstream_bytes: bytes, **kwargs) -> None:
    """
    Convenience function for bitstream logging.
    """
    if debug_logger.enabled:
        debug_logger.log_bitstream(stage, bitstream_bytes, _via_helper=True, **kwargs)


def enable_debug_logging(log_file: str = "pysmd0_debug.log") -> None:
    """
    Enable debug logging with specified log file.
    """
    global debug_logger
    debug_logger = SmdDebugLogger(log_file, enabled=True)


def disable_debug_logging() -> None:
    """
    Disable debug logging.
    """
    debug_logger.disable()
