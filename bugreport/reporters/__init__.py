"""Delivery sinks and fan-out composition."""

from bugreport.reporters.base import BaseReporter, Reporter
from bugreport.reporters.callback import CallbackReporter
from bugreport.reporters.composite import CompositeReporter
from bugreport.reporters.console import ConsoleReporter
from bugreport.reporters.file import FileReporter
from bugreport.reporters.webhook import WebhookReporter

__all__ = [
    "BaseReporter",
    "CallbackReporter",
    "CompositeReporter",
    "ConsoleReporter",
    "FileReporter",
    "Reporter",
    "WebhookReporter",
]
