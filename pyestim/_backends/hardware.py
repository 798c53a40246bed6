"""
Hardware capability detection.

Finds a usable torch device and decides between FP32 and FP64 for it.
"""

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PrecisionSupport(Enum):
    """FP64 support level for hardware."""
    NO_GPU = "no_gpu"            # Host only
    NO_FP64 = "no_fp64"          # Apple Metal
    SLOW_FP64 = "slow_fp64"      # Consumer NVIDIA, 1/32 or 1/64 rate
    FULL_FP64 = "full_fp64"      # Data center NVIDIA


# Data center parts with half-rate FP64
_FULL_FP64_MODELS = ('A100', 'A800', 'H100', 'H200', 'H800', 'V100', 'P100')


@dataclass
class DeviceCapabilities:
    """
    Device capability information.

    Attributes
    ----------
    has_gpu : bool
        Whether any GPU is available
    gpu_name : str
        Human-readable GPU name
    gpu_type : str
        'cuda', 'mps' or 'none'
    fp64_support : PrecisionSupport
        Level of FP64 support
    recommended_fp64 : bool
        Whether FP64 is recommended on this device
    """
    has_gpu: bool
    gpu_name: str
    gpu_type: str
    fp64_support: PrecisionSupport
    recommended_fp64: bool


_HOST_ONLY = DeviceCapabilities(
    has_gpu=False,
    gpu_name="CPU only",
    gpu_type="none",
    fp64_support=PrecisionSupport.NO_GPU,
    recommended_fp64=True,
)


def detect_device_capabilities() -> DeviceCapabilities:
    """
    Detect GPU hardware and FP64 capabilities.

    Returns the host-only description when torch is missing.
    """
    try:
        import torch
    except ImportError:
        return _HOST_ONLY

    if torch.cuda.is_available():
        gpu_name = torch.cuda.get_device_name(0)
        support = classify_cuda_device(gpu_name)
        return DeviceCapabilities(
            has_gpu=True,
            gpu_name=gpu_name,
            gpu_type="cuda",
            fp64_support=support,
            recommended_fp64=support == PrecisionSupport.FULL_FP64,
        )

    if hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
        return DeviceCapabilities(
            has_gpu=True,
            gpu_name="Apple Metal GPU",
            gpu_type="mps",
            fp64_support=PrecisionSupport.NO_FP64,
            recommended_fp64=False,
        )

    return _HOST_ONLY


def classify_cuda_device(gpu_name: str) -> PrecisionSupport:
    """FP64 support of an NVIDIA part, from its marketing name."""
    gpu_upper = gpu_name.upper()
    if any(model in gpu_upper for model in _FULL_FP64_MODELS):
        return PrecisionSupport.FULL_FP64

    if not any(family in gpu_upper for family in ('RTX', 'GTX', 'TITAN', 'QUADRO')):
        warnings.warn(
            f"Unknown NVIDIA GPU '{gpu_name}'. Assuming slow FP64."
        )
    return PrecisionSupport.SLOW_FP64


def recommend_precision(capabilities: DeviceCapabilities,
                        use_fp64: Optional[bool]) -> bool:
    """
    Recommend FP64 vs FP32 for a device.

    Parameters
    ----------
    capabilities : DeviceCapabilities
        Detected hardware
    use_fp64 : bool, optional
        Caller's preference (None for auto)

    Returns
    -------
    bool
        True for FP64, False for FP32

    Raises
    ------
    RuntimeError
        If FP64 is requested on a device without it
    """
    if use_fp64 is None:
        return capabilities.recommended_fp64

    if use_fp64 and capabilities.fp64_support == PrecisionSupport.NO_FP64:
        raise RuntimeError(
            f"FP64 requested but not supported on {capabilities.gpu_name}.\n"
            f"Use FP32 (use_fp64=False) or backend='cpu'."
        )

    if use_fp64 and capabilities.fp64_support == PrecisionSupport.SLOW_FP64:
        warnings.warn(
            f"FP64 requested on {capabilities.gpu_name}, which runs FP64 at "
            f"1/32 to 1/64 of its FP32 rate. Consider backend='cpu' for "
            f"small systems.",
            UserWarning
        )

    return use_fp64
