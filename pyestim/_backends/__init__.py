"""
Backend selection and management.

Provides a unified storage interface for host (NumPy) and device (PyTorch)
estimator state.
"""

from importlib.util import find_spec
from typing import Optional, Union

from .base import BackendBase, CPUBackendBase, GPUBackendBase
from .cpu_backend import CPUBackend
from .torch_backend import PyTorchBackend
from .hardware import (
    detect_device_capabilities,
    recommend_precision,
    DeviceCapabilities,
    PrecisionSupport,
)

PYTORCH_AVAILABLE = find_spec('torch') is not None


def get_backend(backend: Union[str, BackendBase] = 'cpu',
                use_fp64: Optional[bool] = None) -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str or BackendBase
        Backend selection:
        - 'cpu': NumPy/SciPy on the host (FP64 unless use_fp64=False)
        - 'auto': CUDA GPU when present and suited to the precision, else CPU
        - 'gpu': PyTorch on a CUDA GPU (fails without one)
        - 'pytorch': PyTorch on CUDA, or torch on the CPU as a fallback
        - a BackendBase instance is returned unchanged

    use_fp64 : bool or None
        Precision preference:
        - None: Auto-detect (FP64 on CPU and data center GPUs)
        - True: Force FP64
        - False: Allow FP32

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend('cpu')
    >>> backend = get_backend('cpu', use_fp64=False)   # float32 arrays
    >>> backend = get_backend('gpu')
    """
    if isinstance(backend, BackendBase):
        return backend

    if backend == 'cpu':
        return CPUBackend('fp32' if use_fp64 is False else 'fp64')

    elif backend == 'auto':
        caps = detect_device_capabilities()
        if caps.gpu_type == 'cuda' and PYTORCH_AVAILABLE:
            # FP64 on a consumer card is slower than the host
            if use_fp64 and not caps.recommended_fp64:
                return CPUBackend('fp64')
            use_fp64_final = recommend_precision(caps, use_fp64)
            return PyTorchBackend('fp64' if use_fp64_final else 'fp32')
        return CPUBackend('fp32' if use_fp64 is False else 'fp64')

    elif backend == 'gpu':
        caps = detect_device_capabilities()
        if caps.gpu_type != 'cuda':
            raise ValueError(
                "No CUDA GPU detected.\n"
                "Options:\n"
                "  - Use backend='cpu'\n"
                "  - Use backend='pytorch' to run torch on the CPU\n"
                "  - Install PyTorch with CUDA for NVIDIA"
            )
        use_fp64_final = recommend_precision(caps, use_fp64)
        return PyTorchBackend('fp64' if use_fp64_final else 'fp32', device='cuda')

    elif backend == 'pytorch':
        if not PYTORCH_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install torch"
            )
        caps = detect_device_capabilities()
        if caps.gpu_type == 'cuda':
            use_fp64_final = recommend_precision(caps, use_fp64)
        else:
            use_fp64_final = use_fp64 is not False
        return PyTorchBackend('fp64' if use_fp64_final else 'fp32')

    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'cpu', 'auto', 'gpu', 'pytorch'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = ['cpu']
    if PYTORCH_AVAILABLE:
        backends.append('pytorch')
        if detect_device_capabilities().gpu_type == 'cuda':
            backends.append('gpu')
    return backends


def print_backend_info():
    """Print detailed backend information (diagnostic)."""
    caps = detect_device_capabilities()

    print("PyEstim Backend Status")
    print("=" * 50)
    print(f"\nAvailable Backends:")
    print(f"  CPU (FP32/FP64):     ✓ - NumPy arrays, LAPACK SVD")
    print(f"  PyTorch:             {'✓' if PYTORCH_AVAILABLE else '✗'} - torch tensors, torch.linalg.svd")

    print(f"\nHardware Detection:")
    if caps.has_gpu:
        print(f"  GPU Type: {caps.gpu_type}")
        print(f"  GPU Name: {caps.gpu_name}")
        print(f"  FP64 Support: {caps.fp64_support.value}")
    else:
        print(f"  No GPU detected")

    print(f"\nRecommended Backend:")
    backend = get_backend('auto')
    print(f"  {backend.name}")


__all__ = [
    'get_backend',
    'list_available_backends',
    'print_backend_info',
    'BackendBase',
    'CPUBackendBase',
    'GPUBackendBase',
    'CPUBackend',
    'PyTorchBackend',
    'detect_device_capabilities',
    'recommend_precision',
    'DeviceCapabilities',
    'PrecisionSupport',
    'PYTORCH_AVAILABLE',
]


if __name__ == "__main__":
    print_backend_info()
