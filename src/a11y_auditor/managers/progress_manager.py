# src/a11y_auditor/managers/progress_manager.py
import logging
import sys
from typing import Optional

from tqdm import tqdm

from ..model import ProgressUpdate

logger = logging.getLogger(__name__)


class ProgressManager:
    """
    Manages the lifecycle of a tqdm progress bar for batch audits.
    Pass `on_progress` as the batch auditor's progress callback.
    """

    def __init__(self, total: int, desc: str = "Auditing", unit: str = "page", disable: bool = False):
        self.pbar: Optional[tqdm] = tqdm(
            total=max(1, total),
            desc=desc,
            unit=f" {unit}",
            dynamic_ncols=True,
            smoothing=0.1,
            mininterval=0.5,
            postfix={"failures": 0},
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}] {postfix}",
            file=sys.stdout,
            disable=disable,
        )
        self.failures = 0

    def on_progress(self, update: ProgressUpdate) -> None:
        if not self.pbar:
            return
        self.pbar.total = max(1, update.total)
        self.pbar.update(update.completed - self.pbar.n)

    def record_failure(self) -> None:
        self.failures += 1
        if self.pbar:
            self.pbar.set_postfix({"failures": self.failures}, refresh=False)

    def close(self) -> None:
        if not self.pbar:
            return
        self.pbar.set_postfix({"failures": self.failures}, refresh=True)
        self.pbar.close()
        self.pbar = None
        logger.debug("ProgressManager: Progress bar closed.")
