"""
Tests for bdfsuite.libbdfsuite.logger: custom levels and verbosity mapping.
"""

import io
import logging

import numpy as np
import pytest

from bdfsuite.libbdfsuite import logger as Lg
from bdfsuite.libbdfsuite.bdf import bdf_advance
from bdfsuite.libbdfsuite.bdfstate import bdf_ts_build


@pytest.fixture
def root_logger():
    root = Lg.get_logger(Lg.ROOT_NAME)
    level, handlers = root.level, list(root.handlers)
    yield root
    root.setLevel(level)
    root.handlers[:] = handlers


class TestLevels:
    def test_custom_level_names(self):
        assert logging.getLevelName(Lg.DEBUG2) == "DEBUG2"
        assert logging.getLevelName(Lg.DEBUG3) == "DEBUG3"
        assert Lg.DEBUG3 < Lg.DEBUG2 < logging.DEBUG

    def test_logger_has_debug_helpers(self):
        log = Lg.get_logger("bdfsuite.test_logger")
        assert hasattr(log, "debug2")
        assert hasattr(log, "debug3")

    def test_plain_logger_promoted(self):
        """A plain logger made earlier under the same name gains the helpers."""
        plain = logging.getLogger("bdfsuite.test_logger.preexisting")
        log = Lg.get_logger("bdfsuite.test_logger.preexisting")
        assert log is plain
        assert isinstance(log, Lg._BdfLogger)
        log.debug2("detail")

    def test_logger_class_restored(self):
        before = logging.getLoggerClass()
        Lg.get_logger("bdfsuite.test_logger.restore")
        assert logging.getLoggerClass() is before

    @pytest.mark.parametrize("verbose, level", [
        (0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG),
        (3, Lg.DEBUG2), (4, Lg.DEBUG3),
    ])
    def test_set_level_from_verbose(self, root_logger, verbose, level):
        Lg.set_level(verbose)
        assert root_logger.level == level

    def test_set_level_by_name(self, root_logger):
        Lg.set_level("ERROR")
        assert root_logger.level == logging.ERROR

    def test_setup_attaches_one_handler(self, root_logger):
        root_logger.handlers[:] = []
        stream = io.StringIO()
        Lg.setup(level=1, stream=stream)
        Lg.setup(level=2, stream=stream)
        assert len(root_logger.handlers) == 1
        assert root_logger.level == logging.DEBUG

        Lg.get_logger("bdfsuite.test_logger").info("hello")
        assert stream.getvalue() == "INFO   : hello\n"

    def test_debug2_emitted_when_enabled(self, root_logger):
        root_logger.handlers[:] = []
        stream = io.StringIO()
        Lg.setup(level=3, stream=stream)
        log = Lg.get_logger("bdfsuite.test_logger")
        log.debug2("detail %d", 7)
        log.debug3("hidden")
        assert "DEBUG2 : detail 7" in stream.getvalue()
        assert "hidden" not in stream.getvalue()


class TestVerboseOutput:
    def _advance(self, verbose):
        ts = bdf_ts_build(1, 1e-6, 1e-6, verbose=verbose)
        bdf_advance(ts, lambda y, t: -y, lambda y, t: -np.eye(1), [1.0], 0.0, 1.0, 1e-4)
        return ts

    def test_summary_line_at_verbose_one(self, caplog):
        with caplog.at_level(logging.INFO, logger="bdfsuite"):
            ts = self._advance(1)
        records = [r for r in caplog.records if r.getMessage().startswith("BDF: n:")]
        assert len(records) == 1
        assert records[0].levelno == logging.INFO
        assert records[0].getMessage() == ts.summary()

    def test_silent_at_verbose_zero(self, caplog):
        with caplog.at_level(Lg.DEBUG3, logger="bdfsuite"):
            self._advance(0)
        assert not any(r.getMessage().startswith("BDF: n:") for r in caplog.records)

    def test_step_lines_at_verbose_two(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="bdfsuite"):
            ts = self._advance(2)
        step_lines = [r for r in caplog.records
                      if r.levelno == logging.DEBUG and r.getMessage().startswith("BDF: n:")]
        assert len(step_lines) == ts.n - 1

    def test_failure_warns(self, caplog):
        ts = bdf_ts_build(1, 1e-6, 1e-6, max_steps=2)
        with caplog.at_level(logging.WARNING, logger="bdfsuite"):
            bdf_advance(ts, lambda y, t: -y, lambda y, t: -np.eye(1), [1.0], 0.0, 1.0, 1e-4)
        assert "Too many steps were taken." in caplog.text
