from typing import List, Union

from torch import Tensor

from .free_tensor import FreeTensor
from .series import FreeTensorAlgebra


def signature(
    path: Tensor,
    depth: int,
    stream: bool = False,
) -> Union[FreeTensor, List[FreeTensor]]:
    """Compute the truncated signature of a piecewise linear path.

    The signature of a linear segment with increment ``Δ`` is ``exp(Δ)``; by
    Chen's identity the signature of the whole path is the product of the
    segment signatures, accumulated here with one fused multiply-exponential
    per segment.

    Parameters
    ----------
    path : Tensor
        Tensor of shape ``(length, width)`` holding the path's points.
    depth : int
        Truncation degree of the signature.
    stream : bool, optional
        If True, return the signature of every prefix ``path[: k + 1]`` for
        ``k = 1 .. length - 1``. Default is False.

    Returns
    -------
    FreeTensor or list of FreeTensor
        The signature, including its unit term, in the free tensor algebra
        of width ``path.shape[1]`` truncated at ``depth``. With
        ``stream=True`` a list of ``length - 1`` running signatures.

    Raises
    ------
    ValueError
        If ``path`` is not two-dimensional, has fewer than two points, is
        not of a floating point dtype or requires grad.

    Notes
    -----
    The products update coefficient buffers in place, so the result is not
    differentiable. Pass ``path.detach()`` to compute the signature of a
    path that takes part in autograd.

    Examples
    --------
    >>> import torch
    >>> from free_tensors_pytorch import signature
    >>> path = torch.tensor([[0.0, 0.0], [1.0, 1.0], [2.0, 0.0]], dtype=torch.float64)
    >>> sig = signature(path, depth=2)
    >>> sig.as_tensor().tolist()
    [1.0, 2.0, 0.0, 2.0, -1.0, 1.0, 0.0]
    >>> len(signature(path, depth=2, stream=True))
    2
    """
    if path.ndim != 2:
        msg = (
            f"Path must be of shape (path_length, path_dim); got {path.shape}."
        )
        raise ValueError(msg)
    if path.shape[0] < 2:
        raise ValueError(f"Path must contain at least two points; got {path.shape[0]}")
    if path.requires_grad:
        raise ValueError(
            "signature does not support autograd; pass path.detach() instead"
        )

    algebra = FreeTensorAlgebra.build(
        path.shape[1], depth, dtype=path.dtype, device=path.device
    )
    increments = path[1:] - path[:-1]

    sig = algebra.unit()
    history = []
    for increment in increments:
        algebra.fmexp(sig, algebra.from_increment(increment))
        if stream:
            history.append(sig.copy())
    return history if stream else sig


__all__ = ["signature"]
