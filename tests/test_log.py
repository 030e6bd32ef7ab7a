# tests/test_log.py
"""
Tests for Kamling.log.log
(covers TankHandler, the Qt bridge and the setup helpers).

Run:
    python -m unittest tests.test_log
"""
import logging

from PySide6.QtCore import QtMsgType

from Kamling.log.log import (
    TankHandler,
    get_tank_handler,
    qt_message_handler,
    set_logging_level,
    setup_logging,
)
from tests.base import BaseTestCase


class LogModuleTests(BaseTestCase):
    """
    Each test starts with a fresh root logger configured by
    setup_logging(enable_stream_handler=False).
    """

    def setUp(self) -> None:
        super().setUp()
        logging.disable(logging.NOTSET)

        setup_logging(enable_stream_handler=False,
                      enable_qt_handler=False,
                      log_level=logging.DEBUG)

        self.root_logger = logging.getLogger()
        self.tank: TankHandler = get_tank_handler()

    def tearDown(self) -> None:
        set_logging_level(logging.DEBUG)
        super().tearDown()

    def test_single_tank_installed(self):
        tanks = [h for h in self.root_logger.handlers if isinstance(h, TankHandler)]
        self.assertEqual(len(tanks), 1)
        self.assertIs(tanks[0], self.tank)

        setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        self.assertEqual(len([h for h in logging.getLogger().handlers if isinstance(h, TankHandler)]), 1)

    def test_tank_filters_by_level(self):
        self.tank.clear_logs()
        logging.debug('debug message')
        logging.warning('warning message')

        all_logs = self.tank.get_logs()
        self.assertEqual(len(all_logs), 2)
        warnings = self.tank.get_logs(logging.WARNING)
        self.assertEqual(len(warnings), 1)
        self.assertIn('warning message', warnings[0])

    def test_tank_is_bounded(self):
        tank = TankHandler(maxlen=10)
        tank.setFormatter(logging.Formatter('%(message)s'))
        logger = logging.getLogger('kamling.test.bounded')
        logger.propagate = False
        logger.addHandler(tank)
        self.addCleanup(logger.removeHandler, tank)

        for i in range(25):
            logger.error(f'message {i}')

        logs = tank.get_logs()
        self.assertEqual(len(logs), 10)
        self.assertEqual(logs[0], 'message 15')
        self.assertEqual(logs[-1], 'message 24')

    def test_set_logging_level(self):
        set_logging_level(logging.WARNING)
        self.tank.clear_logs()
        logging.info('hidden')
        logging.error('shown')
        self.assertEqual(len(self.tank.get_logs()), 1)

        with self.assertRaises(ValueError):
            set_logging_level('DEBUG')
        with self.assertRaises(ValueError):
            set_logging_level(5)

    def test_qt_message_handler(self):
        self.tank.clear_logs()
        qt_message_handler(QtMsgType.QtWarningMsg, None, ' qt warning \n')
        qt_message_handler(QtMsgType.QtDebugMsg, None, 'qt debug')

        logs = self.tank.get_logs()
        self.assertEqual(len(logs), 2)
        self.assertIn('WARNING:  qt warning', logs[0])

    def test_status_exception_is_logged(self):
        from Kamling.status import status

        self.tank.clear_logs()
        status.SheetNotFoundException('Transactions')

        errors = self.tank.get_logs(logging.ERROR)
        self.assertEqual(len(errors), 1)
        self.assertIn('Transactions', errors[0])
