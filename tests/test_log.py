import io
import logging

import pytest

from jamfkit import log


@pytest.fixture(autouse=True)
def quiet():
    yield
    log.set_verbose(False)


def test_verbose():
    stream = io.StringIO()
    assert not log.is_verbose()

    log.set_verbose(stream=stream)
    assert log.is_verbose()
    logging.getLogger("jamfkit.connection").debug("connected to %s", "x")
    assert "jamfkit.connection - DEBUG - connected to x" in stream.getvalue()


def test_not_verbose():
    stream = io.StringIO()
    log.set_verbose(stream=stream)
    log.set_verbose(False)

    logging.getLogger("jamfkit.connection").warning("lost")
    assert stream.getvalue() == ""
    assert not log.is_verbose()


def test_level():
    stream = io.StringIO()
    log.set_verbose(stream=stream, level=logging.WARNING)

    logging.getLogger("jamfkit.token").info("refreshed")
    logging.getLogger("jamfkit.token").warning("failed")
    assert "refreshed" not in stream.getvalue()
    assert "failed" in stream.getvalue()
