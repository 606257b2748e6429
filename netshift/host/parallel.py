# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/host/parallel.py
from __future__ import annotations

import concurrent.futures
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import requests
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from ..core.file_ops import atomic_write
from ..core.logger import Log

Task = Tuple[str, Callable[[], object]]


def run_parallel_tasks(logger: logging.Logger, tasks: List[Task], *, max_workers: Optional[int] = None) -> int:
    """
    Run independent preparatory tasks concurrently and join them.

    A failing task is logged and counted; it never cancels the others.
    Returns the number of failed tasks.
    """
    if not tasks:
        return 0
    workers = max_workers or min(4, len(tasks))
    failed: Dict[str, BaseException] = {}

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        disable=not sys.stderr.isatty(),
    ) as progress:
        bar = progress.add_task("Preparing", total=len(tasks))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(fn): label for label, fn in tasks}
            for future in concurrent.futures.as_completed(futures):
                label = futures[future]
                try:
                    future.result()
                    Log.ok(logger, f"Task finished: {label}")
                except Exception as e:
                    failed[label] = e
                    logger.error("Task failed: %s: %s", label, e)
                    logger.debug("Task %s traceback", label, exc_info=True)
                progress.update(bar, advance=1)

    if failed:
        Log.warn(logger, f"{len(failed)} of {len(tasks)} parallel task(s) failed: {', '.join(sorted(failed))}")
    return len(failed)


def fetch_helper(logger: logging.Logger, url: str, dest: Path, *, timeout: int = 60,
                 session: Optional[requests.Session] = None) -> Path:
    """Download `url` to `dest` (atomic, mode 0755). HTTP errors propagate."""
    http = session or requests.Session()
    logger.info("Fetching helper %s -> %s", url, dest)
    with http.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        with atomic_write(Path(dest)) as tmp:
            with open(tmp, "wb") as f:
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    if chunk:
                        f.write(chunk)
            tmp.chmod(0o755)
    return Path(dest)
