import logging

from geoutm.accelerator import EmulatedDevice
from geoutm.utils.mixins import LoggingMixin


class Foo(LoggingMixin):
    pass


def test_logger_name():
    assert Foo().logger.name.endswith('test_mixins.Foo')
    assert Foo('device').logger.name.endswith('test_mixins.Foo.device')


def test_package_classes_log_under_package_logger(caplog):
    caplog.set_level(logging.DEBUG, logger='geoutm')
    device = EmulatedDevice(max_workers=1)
    try:
        assert device.logger.name == 'geoutm.accelerator.EmulatedDevice'
        assert 'Started emulated device' in caplog.text
    finally:
        device.close()
