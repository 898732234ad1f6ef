"""
Shared fixtures for sql/ builder tests.

Key fixtures:
- flush_recorder: callback that records the SQL and batch size of each flush
- fake_executor: MagicMock standing in for the execution collaborator
"""

from unittest.mock import MagicMock

import pytest


class FlushRecorder:
    """Flush callback capturing what the builder held at flush time."""

    def __init__(self):
        self.queries = []
        self.batch_sizes = []
        self.builders = []

    def __call__(self, builder):
        self.builders.append(builder)
        self.batch_sizes.append(builder.pending_count)
        self.queries.append(builder.get_query())

    @property
    def calls(self):
        return len(self.builders)


@pytest.fixture
def flush_recorder():
    return FlushRecorder()


@pytest.fixture
def fake_executor():
    executor = MagicMock()
    executor.prepare.side_effect = lambda sql: ('prepared', sql)
    executor.execute.return_value = 'result-handle'
    return executor
