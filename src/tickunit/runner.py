from __future__ import annotations

import asyncio
import contextlib
import importlib
import logging
import sys
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import yaml

from tickunit.case import TestCase
from tickunit.config import CaseConfig, SuiteConfig
from tickunit.failures import ConfigurationError, FailureRecord
from tickunit.metrics import summarize
from tickunit.verbose import setup_logger


@dataclass
class CaseOutcome:
    """What happened to one test method of a suite run.

    ``status`` is ``passed``, ``failed`` (assertion failures were recorded) or
    ``error`` (the run raised; ``error`` holds the exception text).
    """

    target: str
    method: str
    status: str
    duration_seconds: float
    failures: list[FailureRecord] = field(default_factory=list)
    error: str | None = None
    details: str | None = None

    @property
    def class_name(self) -> str:
        return self.target.partition(":")[2]

    @property
    def name(self) -> str:
        return f"{self.class_name}.{self.method}"

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "method": self.method,
            "status": self.status,
            "duration_seconds": self.duration_seconds,
            "failures": [f.to_dict() for f in self.failures],
            "error": self.error,
        }


def load_case_class(target: str) -> type[TestCase]:
    """Import ``package.module:ClassName`` and check it is a TestCase."""
    module_name, _, class_name = target.partition(":")
    try:
        module = importlib.import_module(module_name.strip())
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module for target '{target}': {e}") from e
    cls = getattr(module, class_name.strip(), None)
    if cls is None:
        raise ConfigurationError(f"Class '{class_name}' not found in module '{module_name}'")
    if not (isinstance(cls, type) and issubclass(cls, TestCase)):
        raise ConfigurationError(f"Target '{target}' is not a TestCase subclass")
    return cls


@contextlib.contextmanager
def _prepended_sys_path(paths: list[str]) -> Iterator[None]:
    added = [p for p in paths if p not in sys.path]
    sys.path[:0] = added
    try:
        yield
    finally:
        for p in added:
            if p in sys.path:
                sys.path.remove(p)


class Runner:
    """Runs the test methods listed in a suite config, one at a time."""

    def __init__(
        self,
        config: SuiteConfig,
        output_dir: Path,
        case_filter: str | None = None,
        verbose: bool = False,
    ):
        self.config = config
        self.output_dir = output_dir
        self.case_filter = case_filter
        self.verbose = verbose
        self.interrupted = False
        self.outcomes: list[CaseOutcome] = []

    def planned(self) -> list[tuple[CaseConfig, str]]:
        """Return (case, method) pairs in suite order, after filtering."""
        pairs = []
        for case in self.config.cases:
            for method in case.methods:
                if self.case_filter and self.case_filter not in (
                    case.target,
                    case.class_name,
                    method,
                    f"{case.class_name}.{method}",
                ):
                    continue
                pairs.append((case, method))
        return pairs

    def execute(self) -> Path:
        """Run all planned test methods. Returns the run directory."""
        run_id = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
        run_dir = self.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        debug_file = run_dir / "debug.log"
        logger = setup_logger(debug_file, verbose=self.verbose, logger_name="tickunit_main")
        logger.debug("Starting test run")

        planned = self.planned()
        if not planned:
            raise ValueError(f"No test methods match filter '{self.case_filter}'")

        print(f"Running {len(planned)} test method(s)...")

        self.outcomes = []
        try:
            with _prepended_sys_path(self.config.paths):
                asyncio.run(self._run_all(planned, logger))
        except KeyboardInterrupt:
            self.interrupted = True
            logger.warning("Run interrupted by user (Ctrl+C). Saving partial results...")

        self._write_results(run_dir)
        return run_dir

    async def _run_all(self, planned: list[tuple[CaseConfig, str]], logger: logging.Logger) -> None:
        instances: dict[str, TestCase] = {}
        for index, (case_config, method) in enumerate(planned, start=1):
            outcome = await self._run_method(case_config, method, instances, logger)
            self.outcomes.append(outcome)
            self._print_outcome(outcome, index, len(planned))

    async def _run_method(
        self,
        case_config: CaseConfig,
        method: str,
        instances: dict[str, TestCase],
        logger: logging.Logger,
    ) -> CaseOutcome:
        """Run a single method, turning fatal faults into an ``error`` outcome."""
        start = time.perf_counter()
        label = f"{case_config.target}.{method}"
        logger.debug(f"Running '{label}'")
        try:
            case = instances.get(case_config.target)
            if case is None:
                case = load_case_class(case_config.target)()
                case.logger = logger
                instances[case_config.target] = case
            case.set_test_method(method)
            result = await case.run(timeout=self.config.timeout_for(case_config))
        except Exception as e:
            duration = time.perf_counter() - start
            logger.error(f"'{label}' raised {type(e).__name__}: {e}")
            return CaseOutcome(
                target=case_config.target,
                method=method,
                status="error",
                duration_seconds=duration,
                error=f"{type(e).__name__}: {e}",
                details=traceback.format_exc(),
            )

        duration = time.perf_counter() - start
        logger.debug(f"'{label}' completed with {len(result.failures)} failure(s)")
        return CaseOutcome(
            target=case_config.target,
            method=method,
            status=result.status.value,
            duration_seconds=duration,
            failures=list(result.failures),
        )

    def _print_outcome(self, outcome: CaseOutcome, index: int, total: int) -> None:
        status = {"passed": "PASS", "failed": "FAIL", "error": "ERROR"}[outcome.status]
        if outcome.status == "error":
            print(f"  [{index}/{total}] {status}  {outcome.name}: {outcome.error}")
            return
        detail = f"{len(outcome.failures)} failure(s), " if outcome.failures else ""
        print(f"  [{index}/{total}] {status}  {outcome.name} ({detail}{outcome.duration_seconds:.2f}s)")
        for failure in outcome.failures:
            print(f"        {failure.description}: {failure.message}")

    def _write_results(self, run_dir: Path) -> None:
        """Write junit.xml and meta.yaml to the run directory."""
        from tickunit.reporting.junit import write_junit

        write_junit(run_dir, self.outcomes)

        try:
            import importlib.metadata

            tickunit_version = importlib.metadata.version("tickunit")
        except Exception:
            tickunit_version = "unknown"

        meta: dict[str, Any] = {
            "run_id": run_dir.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": summarize(self.outcomes).to_dict(),
            "tickunit_version": tickunit_version,
        }
        if self.interrupted:
            meta["interrupted"] = True

        (run_dir / "meta.yaml").write_text(yaml.dump(meta, default_flow_style=False))
