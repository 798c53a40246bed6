"""
GPU backend using PyTorch.

Keeps estimator state on the device as torch tensors; only converts at
entry (numbers / numpy -> torch) and exit (torch -> numpy).
"""

import warnings
from typing import Any, Optional

from .base import GPUBackendBase


class PyTorchBackend(GPUBackendBase):
    """
    PyTorch backend, FP32 or FP64.

    Requirements:
    - PyTorch; NVIDIA GPU with CUDA for device execution

    Without CUDA the backend falls back to torch on the CPU, with a warning.
    Apple MPS is rejected: torch.linalg.svd has no Metal kernel.

    Parameters
    ----------
    precision : str
        'fp32' (default) or 'fp64'
    device : str, optional
        Torch device string, e.g. 'cuda:1'. Auto-selected if omitted.
    """

    def __init__(self, precision: str = 'fp32', device: Optional[str] = None):
        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install torch"
            )

        dtypes = {'fp32': torch.float32, 'fp64': torch.float64}
        if precision not in dtypes:
            raise ValueError(
                f"Unknown precision: '{precision}'\n"
                f"Valid options: 'fp32', 'fp64'"
            )

        self.name = f"pytorch_{precision}"
        self.precision = precision
        self.dtype = dtypes[precision]
        self.device = self._select_device(device)

        if self.device.type == 'cuda' and precision == 'fp64':
            from .hardware import detect_device_capabilities, PrecisionSupport
            caps = detect_device_capabilities()
            if caps.fp64_support == PrecisionSupport.SLOW_FP64:
                warnings.warn(
                    f"Using FP64 on {caps.gpu_name} with slow FP64 support.",
                    UserWarning
                )

    def _select_device(self, requested: Optional[str]) -> Any:
        torch = self.torch

        if requested:
            device = torch.device(requested)
            if device.type == 'mps':
                raise ValueError(
                    "PyTorch backend does not support Apple MPS (Metal): "
                    "no SVD kernel. Use backend='cpu'."
                )
            return device

        if torch.cuda.is_available():
            return torch.device('cuda')

        warnings.warn("No CUDA GPU available, using CPU")
        return torch.device('cpu')

    @property
    def eps(self) -> float:
        return float(self.torch.finfo(self.dtype).eps)

    def asarray(self, x) -> Any:
        return self.torch.as_tensor(x, dtype=self.dtype, device=self.device)

    def to_numpy(self, x):
        return x.detach().cpu().numpy()

    def zeros(self, *shape) -> Any:
        return self.torch.zeros(shape, dtype=self.dtype, device=self.device)

    def eye(self, n: int) -> Any:
        return self.torch.eye(n, dtype=self.dtype, device=self.device)

    def copy(self, x) -> Any:
        return x.clone()

    def outer(self, u, v) -> Any:
        return self.torch.outer(u, v)

    def add_to_diagonal(self, M, values) -> None:
        # diagonal() is a view, so this writes through to M
        M.diagonal().add_(values)

    def svd(self, M):
        U, s, Vt = self.torch.linalg.svd(M, full_matrices=False)
        return U, s, Vt

    def inverse_singular_values(self, s, condition: float) -> Any:
        torch = self.torch
        if s.shape[0] == 0:
            return torch.zeros_like(s)
        keep = s * condition > s[0]
        return torch.where(keep, s.reciprocal(), torch.zeros_like(s))

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'gpu' if self.device.type == 'cuda' else 'cpu',
            'precision': self.precision,
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }
