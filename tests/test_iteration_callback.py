"""Tests for the per-iteration callback entry point."""

import ctypes
import logging

import pytest

from nlls_ffi import (
    CallbackReturnType,
    IterationCallbackHandle,
    IterationSummary,
    ffi_iteration_callback,
    ffi_iteration_callback_pointer,
)
from nlls_ffi.iteration_callback import ITERATION_CALLBACK


class StopAfter:
    """Records every summary and stops once ``limit`` iterations are done."""

    def __init__(self, limit):
        self.limit = limit
        self.summaries = []

    def invoke(self, summary):
        self.summaries.append(summary)
        if summary.iteration >= self.limit:
            return CallbackReturnType.SOLVER_TERMINATE_SUCCESSFULLY
        return CallbackReturnType.SOLVER_CONTINUE


def _summary(iteration, cost=1.0):
    return IterationSummary(iteration=iteration, step_is_successful=True, cost=cost)


class TestIterationCallback:
    """Tests for summaries passed through the C entry point."""

    def test_continue_then_terminate(self):
        callback = StopAfter(limit=2)
        handle = IterationCallbackHandle(callback)

        codes = [
            ffi_iteration_callback(handle.address(), ctypes.byref(_summary(i)))
            for i in range(3)
        ]

        assert codes == [
            CallbackReturnType.SOLVER_CONTINUE,
            CallbackReturnType.SOLVER_CONTINUE,
            CallbackReturnType.SOLVER_TERMINATE_SUCCESSFULLY,
        ]
        assert [s.iteration for s in callback.summaries] == [0, 1, 2]

    def test_summary_is_copied(self):
        callback = StopAfter(limit=10)
        handle = IterationCallbackHandle(callback)
        summary = _summary(4, cost=0.25)

        ffi_iteration_callback(handle.address(), ctypes.byref(summary))
        summary.cost = 99.0

        received = callback.summaries[0]
        assert received.iteration == 4
        assert received.step_is_successful
        assert received.cost == 0.25

    def test_through_raw_function_pointer(self):
        entry = ITERATION_CALLBACK(ffi_iteration_callback_pointer())
        handle = IterationCallbackHandle(StopAfter(limit=0))

        code = entry(handle.address(), ctypes.byref(_summary(0)))

        assert code == CallbackReturnType.SOLVER_TERMINATE_SUCCESSFULLY

    def test_handle_round_trip(self):
        handle = IterationCallbackHandle(StopAfter(limit=1))
        assert IterationCallbackHandle.from_address(handle.address()) is handle

    def test_exception_aborts(self, caplog):
        class Broken:
            def invoke(self, summary):
                raise RuntimeError("boom")

        handle = IterationCallbackHandle(Broken())
        with caplog.at_level(logging.ERROR, logger="nlls_ffi.iteration_callback"):
            code = ffi_iteration_callback(handle.address(), ctypes.byref(_summary(0)))

        assert code == CallbackReturnType.SOLVER_ABORT
        assert "Iteration callback raised" in caplog.text

    @pytest.mark.parametrize("bad_code", [7, -1])
    def test_unknown_code_aborts(self, bad_code, caplog):
        class Invalid:
            def invoke(self, summary):
                return bad_code

        handle = IterationCallbackHandle(Invalid())
        with caplog.at_level(logging.ERROR, logger="nlls_ffi.iteration_callback"):
            code = ffi_iteration_callback(handle.address(), ctypes.byref(_summary(0)))

        assert code == CallbackReturnType.SOLVER_ABORT
        assert f"unknown code {bad_code}" in caplog.text
        assert "Iteration callback raised" not in caplog.text
