"""Progress-callback sinks for training runs."""

from __future__ import annotations

import csv
import json
import subprocess
from pathlib import Path
from typing import Mapping


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def _record(epoch: int, loss: float, accuracy: float) -> Mapping[str, float]:
    return {"epoch": int(epoch), "loss": float(loss), "accuracy": float(accuracy)}


class JsonlSink:
    """Append-only JSONL writer; one line per epoch.

    Instances are ``(epoch, loss, accuracy)`` callables and can be passed as
    ``progress_callback`` to :meth:`stacknet.Network.train`.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or _git_sha()

    def on_epoch(self, epoch: int, loss: float, accuracy: float) -> None:
        record = {"split": self.split, "seed": self.seed, "sha": self.sha}
        record.update(_record(epoch, loss, accuracy))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Write per-epoch metrics to CSV with a stable schema."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def on_epoch(self, epoch: int, loss: float, accuracy: float) -> None:
        row = {"split": self.split}
        row.update(_record(epoch, loss, accuracy))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row.keys()))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


class CallbackGroup:
    """Fan one progress callback out to several."""

    def __init__(self, *callbacks) -> None:
        self.callbacks = [cb for cb in callbacks if cb is not None]

    def __call__(self, epoch: int, loss: float, accuracy: float) -> None:
        for callback in self.callbacks:
            callback(epoch, loss, accuracy)


__all__ = ["CallbackGroup", "CsvSink", "JsonlSink"]
