# tests/remark_clients.py

"""Remark clients used in place of the OpenRouter client during tests"""

from exams.exceptions import RemarkServiceUnavailable


class StaticRemarkClient:
    is_configured = True
    calls = []

    def complete(self, messages, temperature=None, max_tokens=None):
        StaticRemarkClient.calls.append(messages)
        return "  Steady progress this term, keep it up.  "


class FailingRemarkClient:
    is_configured = True

    def complete(self, messages, temperature=None, max_tokens=None):
        raise RemarkServiceUnavailable("service timed out")


class BrokenRemarkClient:
    is_configured = True

    def complete(self, messages, temperature=None, max_tokens=None):
        raise RuntimeError("unexpected client failure")


class UnconfiguredRemarkClient:
    is_configured = False

    def complete(self, messages, temperature=None, max_tokens=None):
        raise AssertionError("an unconfigured client must not be called")
