"""Application-wide Qt signals for Kamling.

UI components connect to these to follow configuration changes, the
authorization lifecycle and remote sync outcomes without polling the
record store. Signals may be emitted from worker threads; connections made
from the GUI thread are delivered there as queued calls.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for config, authorization and record events."""
    configSectionChanged = QtCore.Signal(str)

    authenticationRequested = QtCore.Signal()
    authenticationChanged = QtCore.Signal(bool)

    userInitialized = QtCore.Signal(object)
    transactionSaved = QtCore.Signal(object)
    transactionsFetched = QtCore.Signal(object)

    # Sheet name, failure detail
    remoteSyncFailed = QtCore.Signal(str, str)

    error = QtCore.Signal(str)


signals = Signals()
