"""
Xray Inspection Engine
=======================

Turns files (or in-memory buffers) into :class:`InspectionResult` objects.

The engine is the boundary between the pure decoders and the outside
world.  It reads input files, detects the container format, runs the
matching decoder and converts every outcome into a status:

    ===================  ===========================================
    Outcome              Status
    ===================  ===========================================
    report returned      ``PARSED``
    format not detected  ``UNRECOGNIZED``
    ``ParseError``       ``CORRUPT`` (``error_kind`` = ``exc.kind``)
    ``OSError``/too big  ``UNREADABLE`` (``error_kind`` = ``io_error``)
    ===================  ===========================================

Batches are decoded concurrently on a thread pool; each decode owns its
buffer and shares nothing with the others, and results come back in input
order.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from shared.config import XrayConfig
from shared.logger import ToolLogger

from xray.core.errors import ParseError
from xray.core.models import InspectionResult, InspectionStatus
from xray.parsers import decoder_for, detect

IO_ERROR: str = "io_error"


class InspectionEngine:
    """Detects, decodes and classifies executable images.

    Usage::

        engine = InspectionEngine()
        result = engine.inspect_path("/usr/lib/libc.so.6")
        if result.ok:
            print(result.report.needed_names)

        results = engine.analyze_sync(["a.exe", "b.dll"])
    """

    def __init__(
        self,
        config: XrayConfig | None = None,
        logger: ToolLogger | None = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: Xray configuration.  Defaults are used if not provided.
            logger: Logger instance.  A quiet one is created if not provided.
        """
        self._config: XrayConfig = config or XrayConfig()
        self._logger: ToolLogger = logger or ToolLogger("engine", console_output=False)

    @property
    def config(self) -> XrayConfig:
        return self._config

    # ------------------------------------------------------------------ #
    #  Single inputs
    # ------------------------------------------------------------------ #

    def inspect_bytes(self, data: bytes, source: str = "<memory>") -> InspectionResult:
        """Decode an in-memory image.

        Args:
            data: Complete image contents.
            source: Display label stored in the result and the report.
        """
        data = bytes(data)
        with self._logger.operation("inspect", source=source):
            fmt = detect(data)
            if fmt is None:
                self._logger.info("unrecognized container format")
                return InspectionResult(source=source, status=InspectionStatus.UNRECOGNIZED)

            self._logger.debug("detected %s image (%d bytes)", fmt.value, len(data))
            try:
                with self._logger.timed(f"{fmt.value} decode"):
                    report = decoder_for(fmt).decode(data, source)
            except ParseError as exc:
                self._logger.warning("corrupt %s image: %s", fmt.value, exc.message, kind=exc.kind)
                return InspectionResult(
                    source=source,
                    status=InspectionStatus.CORRUPT,
                    error_kind=exc.kind,
                    error_message=exc.message,
                )

            self._logger.info(
                "parsed %s image",
                fmt.value,
                sections=len(report.sections),
                imports=len(report.imports),
                exports=len(report.exports),
                needed=len(report.needed),
            )
            return InspectionResult(source=source, status=InspectionStatus.PARSED, report=report)

    def inspect_path(self, path: str | Path) -> InspectionResult:
        """Read *path* from disk and decode it.

        Files larger than ``inspector.max_file_size`` are not read.
        """
        path = Path(path)
        source = str(path)
        limit = self._config.inspector.max_file_size
        try:
            size = path.stat().st_size
            if size > limit:
                message = f"file too large: {size:,} bytes (max {limit:,})"
                self._logger.error("%s: %s", source, message)
                return _unreadable(source, message)
            data = path.read_bytes()
        except OSError as exc:
            self._logger.error("cannot read %s: %s", source, exc.strerror or exc)
            return _unreadable(source, f"{exc.strerror or exc}")
        return self.inspect_bytes(data, source)

    # ------------------------------------------------------------------ #
    #  Batches
    # ------------------------------------------------------------------ #

    async def analyze_many(self, paths: Sequence[str | Path]) -> list[InspectionResult]:
        """Inspect every path concurrently and return results in input order."""
        loop = asyncio.get_running_loop()
        workers = max(1, self._config.inspector.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            tasks = [loop.run_in_executor(pool, self.inspect_path, p) for p in paths]
            return list(await asyncio.gather(*tasks))

    def analyze_sync(self, paths: Sequence[str | Path]) -> list[InspectionResult]:
        """Synchronous wrapper around :meth:`analyze_many`.

        When called from inside a running event loop the batch runs on a
        helper thread with its own loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            with ThreadPoolExecutor(max_workers=1) as pool:
                return pool.submit(asyncio.run, self.analyze_many(paths)).result()
        return asyncio.run(self.analyze_many(paths))


def _unreadable(source: str, message: str) -> InspectionResult:
    return InspectionResult(
        source=source,
        status=InspectionStatus.UNREADABLE,
        error_kind=IO_ERROR,
        error_message=message,
    )


def exit_code(results: Sequence[InspectionResult]) -> int:
    """Map a batch to a process exit status.

    Returns:
        0 if every input parsed, 1 if any input was corrupt or unreadable,
        3 if the only failures were unrecognised formats.
    """
    statuses = {r.status for r in results}
    if statuses & {InspectionStatus.CORRUPT, InspectionStatus.UNREADABLE}:
        return 1
    if InspectionStatus.UNRECOGNIZED in statuses:
        return 3
    return 0
