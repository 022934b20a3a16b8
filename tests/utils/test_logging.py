import logging
import re
import threading

from geoutm.utils.logging import LOGGER, reset_warnings, warn_once


def test_warn_once(caplog):
    reset_warnings()
    warn_once('geoutm test warning')
    assert 'geoutm test warning' in caplog.text

    warn_once('geoutm test warning')
    assert len(re.findall('geoutm test warning', caplog.text)) == 1


def test_warn_once_formats(caplog):
    reset_warnings()
    warn_once("Backend '%s' is down", 'vectorized')
    warn_once("Backend '%s' is down", 'accelerator')
    warn_once("Backend '%s' is down", 'vectorized')
    assert caplog.text.count("Backend 'vectorized' is down") == 1
    assert caplog.text.count("Backend 'accelerator' is down") == 1


def test_warn_once_across_threads(caplog):
    reset_warnings()
    threads = [
        threading.Thread(target=warn_once, args=('geoutm threaded warning',))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert caplog.text.count('geoutm threaded warning') == 1


def test_reset_warnings(caplog):
    reset_warnings()
    warn_once('geoutm repeated warning')
    reset_warnings()
    warn_once('geoutm repeated warning')
    assert caplog.text.count('geoutm repeated warning') == 2


def test_package_logger():
    assert LOGGER.name == 'geoutm'
    assert LOGGER.level == logging.WARNING
    assert LOGGER.handlers
