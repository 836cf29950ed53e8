"""Append-only, request-scoped audit trail of validation steps."""

import json
import logging
import threading
import time
from typing import Any

from council_gate import __version__
from council_gate.models import Decision, StepResult, ValidationStep, ValidationTrace, new_id

logger = logging.getLogger(__name__)


def ms_since(start: float) -> int:
    """Milliseconds elapsed since a time.monotonic() reading."""
    return int((time.monotonic() - start) * 1000)


class TraceRecorder:
    """Collects ValidationSteps for one request.

    Step numbers are contiguous from 1 in append order. Components running
    concurrently may record at the same time, so appends take a lock.
    """

    def __init__(self, request_id: str, trace_id: str | None = None) -> None:
        self.request_id = request_id
        self.trace_id = trace_id or new_id("val")
        self._steps: list[ValidationStep] = []
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self._final: ValidationTrace | None = None

    @property
    def steps(self) -> tuple[ValidationStep, ...]:
        with self._lock:
            return tuple(self._steps)

    def record(
        self,
        component: str,
        action: str,
        result: StepResult,
        duration_ms: int = 0,
        details: dict[str, Any] | None = None,
    ) -> ValidationStep:
        with self._lock:
            if self._final is not None:
                raise RuntimeError(f"Trace {self.trace_id} is already finalized")
            step = ValidationStep(
                step_number=len(self._steps) + 1,
                component=component,
                action=action,
                result=result,
                duration_ms=duration_ms,
                details=dict(details or {}),
            )
            self._steps.append(step)
        logger.debug(
            "Trace %s step %d: %s %s -> %s",
            self.request_id, step.step_number, component, action, result.value,
        )
        return step

    def finalize(self, decision: Decision) -> ValidationTrace:
        with self._lock:
            if self._final is None:
                self._final = ValidationTrace(
                    id=self.trace_id,
                    request_id=self.request_id,
                    steps=tuple(self._steps),
                    final_decision=decision,
                    processing_time_ms=ms_since(self._start),
                    version=__version__,
                )
            return self._final


def trace_to_json(trace: ValidationTrace) -> str:
    return json.dumps(trace.to_dict(), indent=2, default=str)
