from __future__ import annotations

import numpy as np
import pytest

from likely.factorizer import FactorizerConfig, factorize


def test_torch_backend_matches_numpy_batch() -> None:
    pytest.importorskip("torch")

    inp = np.array([[1.0, 0.0, 3.0, 1.0, 0.0], [2.0, 3.0, 0.0, 0.0, 5.0], [3.0, 1.0, 3.0, 4.0, 1.0]])
    base = dict(k=3, steps=200, alpha=0.005, seed=9, max_error=0.0)

    ref = factorize(inp, config=FactorizerConfig(**base))
    out = factorize(inp, config=FactorizerConfig(**base, backend="torch", device="cpu"))

    assert out.steps_run == ref.steps_run == 200
    np.testing.assert_allclose(out.estimate, ref.estimate, rtol=1e-7, atol=1e-9)
    np.testing.assert_allclose(out.error_history, ref.error_history, rtol=1e-7, atol=1e-9)


def test_torch_backend_early_stop() -> None:
    pytest.importorskip("torch")

    target = np.outer([1.0, 2.0, 3.0], [1.0, 2.0, 1.0, 3.0])
    cfg = FactorizerConfig(k=1, steps=50000, alpha=0.005, beta=0.0, max_error=1e-3, seed=0, backend="torch", device="cpu")
    result = factorize(target, config=cfg)

    assert result.converged
    assert result.steps_run < cfg.steps
