"""
Utility functions.

Shape checks for backend-native arrays (NumPy arrays or torch tensors).
Values are never inspected: NaN and Inf pass through to the numerics.
"""


def check_vector(v, name='v', size=None):
    """Validate vector input."""
    if v.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional, got shape {tuple(v.shape)}")
    if size is not None and v.shape[0] != size:
        raise ValueError(f"{name} must have length {size}, got {v.shape[0]}")
    return v


def check_matrix(M, name='M', shape=None):
    """Validate matrix input."""
    if M.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional, got shape {tuple(M.shape)}")
    if shape is not None and tuple(M.shape) != tuple(shape):
        raise ValueError(
            f"{name} must have shape {tuple(shape)}, got {tuple(M.shape)}"
        )
    return M


def check_square(M, name='M', size=None):
    """Validate square matrix input."""
    M = check_matrix(M, name=name)
    if M.shape[0] != M.shape[1]:
        raise ValueError(f"{name} must be square, got shape {tuple(M.shape)}")
    if size is not None and M.shape[0] != size:
        raise ValueError(f"{name} must be {size} x {size}, got {tuple(M.shape)}")
    return M
