"""
Tests for the periodic maintenance timers.
"""

import asyncio
import logging

import pytest

from chord.maintenance import Maintenance, run_periodically


class CountingNode:
    """Stands in for a ChordNode; fix_fingers always fails."""

    def __init__(self):
        self.node_id = 1
        self.counts = {'stabilize': 0, 'fix_fingers': 0, 'check_predecessor': 0}

    async def stabilize(self):
        self.counts['stabilize'] += 1

    async def fix_fingers(self):
        self.counts['fix_fingers'] += 1
        raise RuntimeError("lookup failed")

    async def check_predecessor(self):
        self.counts['check_predecessor'] += 1


class TestMaintenance:
    """Test the three independent timers."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        node = CountingNode()
        maintenance = Maintenance(node, 0.01, 0.01, 0.01)

        maintenance.start()
        assert maintenance.running
        await asyncio.sleep(0.2)
        await maintenance.stop()

        assert not maintenance.running
        assert all(count > 1 for count in node.counts.values())

        stopped_at = dict(node.counts)
        await asyncio.sleep(0.05)
        assert node.counts == stopped_at

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_set_of_tasks(self):
        maintenance = Maintenance(CountingNode(), 0.01, 0.01, 0.01)
        maintenance.start()
        tasks = list(maintenance.tasks)
        maintenance.start()
        assert maintenance.tasks == tasks
        await maintenance.stop()

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, caplog):
        calls = []

        async def flaky():
            calls.append(1)
            raise ValueError("boom")

        logger = logging.getLogger("test-maintenance")
        with caplog.at_level(logging.ERROR, logger="test-maintenance"):
            task = asyncio.create_task(run_periodically("Flaky", 0.01, flaky, logger))
            await asyncio.sleep(0.1)
            task.cancel()
            await task

        assert len(calls) > 1
        assert "Flaky error: ValueError: boom" in caplog.text
        assert task.done()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
