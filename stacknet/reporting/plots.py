"""Headless-safe plotting adapters."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)


class PlotAdapter:
    """Collect per-epoch loss and optionally emit a matplotlib figure."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def history(self) -> List[Tuple[int, float, float]]:
        return list(self._history)

    def on_epoch(self, epoch: int, loss: float, accuracy: float) -> None:
        if not self.enable_plots:
            return
        self._history.append((int(epoch), float(loss), float(accuracy)))

    def close(self) -> Path | None:
        """Write ``loss.png`` and return its path, or ``None`` if nothing was drawn."""

        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, losses, accuracies = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, losses, label="loss")
        ax.plot(epochs, accuracies, label="accuracy", linestyle="--")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Value")
        ax.set_title("Training Curve")
        ax.legend()
        plot_path = self.run_dir / "loss.png"
        fig.savefig(plot_path)
        plt.close(fig)
        logger.debug("Wrote training curve to %s", plot_path)
        return plot_path

    __call__ = on_epoch


__all__ = ["PlotAdapter"]
