"""
Quality flag processing for MODIS 8-day surface reflectance composites (MOD09A1).

The 500m state flags (StateQA) are stored as uint16 bit patterns. Bits 8-13
pack several per-pixel quality flags:

bit 8-9   internal_cloud_algorithm_flag / internal_fire_algorithm_flag
bit 10    MOD35 snow/ice flag
bit 11    pixel is adjacent to cloud
bit 12    BRDF correction performed
bit 13    internal snow mask

Any set bit in 8-13 marks the pixel as unreliable, so the extracted 6 bit
field must be zero for a pixel to be kept.

References:
- MOD09 user guide: https://modis-land.gsfc.nasa.gov/pdf/MOD09_UserGuide_v1.4.pdf
"""

import numpy as np
import xarray as xr

QA_BAND = "StateQA"
INTERNAL_QUALITY_START_BIT = 8
INTERNAL_QUALITY_END_BIT = 13
INTERNAL_QUALITY_FLAG = "internal_quality_flag"


def bit_pattern(start: int, end: int) -> int:
    """Mask with bits start..end (inclusive) set, e.g. bit_pattern(8, 13) == 0b11111100000000."""
    assert 0 <= start <= end, f"Invalid bit range {start}..{end}"
    return sum(2**i for i in range(start, end + 1))


def extract_bits(qa: xr.DataArray, start: int, end: int, name: str) -> xr.DataArray:
    """Return the inclusive bit range start..end of `qa`, right aligned, as a band named `name`."""
    assert np.issubdtype(qa.dtype, np.integer), (
        f"Expected integer QA data, got {qa.dtype}"
    )
    pattern = bit_pattern(start, end)
    flag = np.right_shift(np.bitwise_and(qa, pattern), start)
    return flag.rename(name)


def mask_quality(
    image: xr.Dataset,
    qa_band: str = QA_BAND,
    start: int = INTERNAL_QUALITY_START_BIT,
    end: int = INTERNAL_QUALITY_END_BIT,
) -> xr.Dataset:
    """Mask every band of `image` where the QA bit field start..end is non zero.

    Masked pixels become NaN, which excludes them from all later reductions.
    """
    internal_quality = extract_bits(image[qa_band], start, end, INTERNAL_QUALITY_FLAG)
    return image.where(internal_quality == 0)
