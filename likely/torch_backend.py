"""PyTorch-backed batch gradient descent with optional GPU acceleration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import torch

if TYPE_CHECKING:  # pragma: no cover
    from .factorizer import FactorizerConfig


logger = logging.getLogger(__name__)


def _device_from_str(device: str | None) -> torch.device:
    if device is None:
        if torch.cuda.is_available():
            return torch.device("cuda")
        if getattr(torch.backends, "mps", None) is not None and torch.backends.mps.is_available():
            return torch.device("mps")
        return torch.device("cpu")
    return torch.device(str(device))


def descend_torch(
    target: np.ndarray,
    P: np.ndarray,
    Q: np.ndarray,
    cfg: "FactorizerConfig",
) -> tuple[np.ndarray, np.ndarray, list[float], bool]:
    """Batch-order descent on torch tensors.

    Mirrors the numpy batch update. Runs in float64 except on MPS, which has no
    float64 support.
    """
    torch_device = _device_from_str(cfg.device)
    dtype = torch.float32 if torch_device.type == "mps" else torch.float64

    t = torch.as_tensor(target, dtype=dtype, device=torch_device)
    p = torch.as_tensor(P, dtype=dtype, device=torch_device).clone()
    q = torch.as_tensor(Q, dtype=dtype, device=torch_device).clone()
    observed = t != 0.0
    zeros = torch.zeros_like(t)
    alpha = float(cfg.alpha)
    beta = float(cfg.beta)

    logger.info("Torch descent on device=%s dtype=%s", torch_device, dtype)
    history: list[float] = []
    converged = False
    with torch.no_grad():
        for step in range(int(cfg.steps)):
            error = torch.where(observed, t - p @ q, zeros)
            active = (error != 0.0).to(dtype)
            row_counts = active.sum(dim=1, keepdim=True)
            col_counts = active.sum(dim=0, keepdim=True)

            grad_p = error @ q.T - beta * row_counts * p
            grad_q = p.T @ error - beta * col_counts * q
            p += alpha * grad_p
            q += alpha * grad_q

            total = float((error * error).sum().item())
            history.append(total)
            if cfg.log_every and (step + 1) % int(cfg.log_every) == 0:
                logger.debug("torch descent step=%d total_error=%.6f", step + 1, total)
            if total < float(cfg.max_error):
                converged = True
                break

    P_out = p.detach().cpu().numpy().astype(np.float64)
    Q_out = q.detach().cpu().numpy().astype(np.float64)
    return P_out, Q_out, history, converged
