"""
Benchmark suite for evaluating Chord lookup path length and convergence.

Whole rings run inside one process over a LoopbackNetwork, so the numbers
measure the protocol rather than the network.
"""

import asyncio
import bisect
import random
import time
import statistics
from typing import Dict, List, Optional
import logging

from chord.node import ChordNode
from chord.remote import ChordError
from chord.space import IdentitySpace
from communication.loopback import LoopbackNetwork


class BenchmarkResults:
    """Container for benchmark results."""

    def __init__(self):
        self.hop_counts: List[int] = []
        self.latencies: List[float] = []
        self.correct_lookups = 0
        self.failed_lookups = 0
        self.convergence_rounds: Optional[int] = None
        self.recovery_rounds: Optional[int] = None
        self.config: Dict = {}

    def add_lookup(self, hops: int, latency: float, correct: bool):
        """Add one lookup measurement (latency in ms)."""
        self.hop_counts.append(hops)
        self.latencies.append(latency)
        if correct:
            self.correct_lookups += 1

    def get_stats(self) -> Dict:
        """Get statistical summary."""
        total = len(self.hop_counts) + self.failed_lookups
        return {
            'hops': {
                'mean': statistics.mean(self.hop_counts) if self.hop_counts else 0,
                'median': statistics.median(self.hop_counts) if self.hop_counts else 0,
                'stdev': statistics.stdev(self.hop_counts) if len(self.hop_counts) > 1 else 0,
                'p95': self._percentile(self.hop_counts, 0.95) if self.hop_counts else 0,
                'max': max(self.hop_counts) if self.hop_counts else 0,
            },
            'latency': {
                'mean': statistics.mean(self.latencies) if self.latencies else 0,
                'p99': self._percentile(self.latencies, 0.99) if self.latencies else 0,
            },
            'accuracy': self.correct_lookups / total if total else 0,
            'convergence_rounds': self.convergence_rounds,
            'recovery_rounds': self.recovery_rounds,
            'config': self.config,
        }

    def _percentile(self, data: List[float], p: float) -> float:
        """Calculate percentile."""
        sorted_data = sorted(data)
        index = int(len(sorted_data) * p)
        return sorted_data[min(index, len(sorted_data) - 1)]


def true_successor(sorted_ids: List[int], ring_id: int) -> int:
    """The id that owns ring_id in a ring made of sorted_ids."""
    index = bisect.bisect_left(sorted_ids, ring_id)
    return sorted_ids[index % len(sorted_ids)]


class ChordBenchmark:
    """Benchmark suite for Chord rings of a given size."""

    def __init__(self, num_nodes: int, m: int = 10, seed: int = 42, max_rounds: int = 500):
        """
        Initialize benchmark.

        Args:
            num_nodes: Number of nodes in the ring
            m: Bit size of identifier space
            seed: Seed for node ids, lookup keys and failures
            max_rounds: Give up on convergence after this many rounds
        """
        space = IdentitySpace(m)
        if not 1 <= num_nodes <= space.size:
            raise ValueError(f"cannot place {num_nodes} nodes on a ring of {space.size}")

        self.num_nodes = num_nodes
        self.space = space
        self.max_rounds = max_rounds
        self.rng = random.Random(seed)

        self.network = LoopbackNetwork()
        self.nodes: List[ChordNode] = []

        self.logger = logging.getLogger("Benchmark")

    def live_nodes(self) -> List[ChordNode]:
        return [n for n in self.nodes if n.node_id not in self.network.down]

    async def build_ring(self) -> List[ChordNode]:
        """Create the nodes and have each join through one already in the ring."""
        ids = self.rng.sample(range(self.space.size), self.num_nodes)

        for i, ring_id in enumerate(ids):
            node = ChordNode(f"node{i}", "loopback", i, self.network.port(),
                             m=self.space.bits, node_id=ring_id)
            self.network.attach(node)
            introducer = self.rng.choice(self.nodes).me if self.nodes else None
            await node.join(introducer)
            self.nodes.append(node)

        self.logger.info(f"Built ring of {self.num_nodes} nodes (m={self.space.bits})")
        return self.nodes

    async def run_round(self):
        """One maintenance round: every live node runs each routine once."""
        for node in self.live_nodes():
            await node.check_predecessor()
            await node.stabilize()
            await node.fix_fingers()

    def ring_converged(self) -> bool:
        """Every live node points at its true successor and predecessor."""
        nodes = sorted(self.live_nodes(), key=lambda n: n.node_id)
        ids = [n.node_id for n in nodes]
        for i, node in enumerate(nodes):
            if node.state.successor_id() != ids[(i + 1) % len(ids)]:
                return False
            predecessor = node.get_predecessor()
            if len(ids) > 1 and (predecessor is None or predecessor.ring_id != ids[i - 1]):
                return False
        return True

    def fingers_converged(self) -> bool:
        """Every finger of every live node targets the true successor of its start."""
        ids = sorted(n.node_id for n in self.live_nodes())
        for node in self.live_nodes():
            table = node.finger_table
            for i in range(table.m):
                if table.get_target(i) != true_successor(ids, table.get_start(i)):
                    return False
        return True

    async def converge(self) -> Optional[int]:
        """
        Run rounds until successors, predecessors and fingers are all exact.

        Returns:
            Number of rounds it took, or None if max_rounds ran out
        """
        for rounds in range(1, self.max_rounds + 1):
            await self.run_round()
            if self.ring_converged() and self.fingers_converged():
                return rounds
        self.logger.warning(f"Ring of {self.num_nodes} did not converge in {self.max_rounds} rounds")
        return None

    async def benchmark_lookups(self, results: BenchmarkResults, num_lookups: int = 200):
        """
        Look up random ids from random live nodes.

        Hops are counted as the number of times the query was forwarded.
        """
        self.logger.info(f"Benchmarking lookups ({num_lookups} ops)")
        live = self.live_nodes()
        ids = sorted(n.node_id for n in live)

        for _ in range(num_lookups):
            origin = self.rng.choice(live)
            target = self.rng.randrange(self.space.size)

            self.network.forwarded_lookups = 0
            start = time.time()
            try:
                owner = await origin.find_successor(target)
            except ChordError as e:
                self.logger.debug(f"Lookup of {target} from {origin} failed: {e}")
                results.failed_lookups += 1
                continue
            latency_ms = (time.time() - start) * 1000

            results.add_lookup(self.network.forwarded_lookups, latency_ms,
                               owner.ring_id == true_successor(ids, target))

    async def benchmark_failures(self, fraction: float = 0.2) -> Optional[int]:
        """
        Fail a fraction of the nodes and count rounds until the survivors
        form an exact ring again.

        A node only knows its immediate successor, so losing both of its
        neighbours at once can strand it. Victims are therefore failed one
        at a time and the ring reconverges before the next one goes down.

        Returns:
            Total rounds spent converging, or None if any recovery ran out
        """
        count = min(int(len(self.nodes) * fraction), len(self.nodes) - 1)
        total = 0
        for node in self.rng.sample(self.nodes, count):
            self.network.fail(node.node_id)
            rounds = await self.converge()
            if rounds is None:
                self.logger.warning(f"Ring did not recover after node {node.node_id} failed")
                return None
            total += rounds
        self.logger.info(f"Failed {count} of {len(self.nodes)} nodes, recovered in {total} rounds")
        return total


async def run_benchmarks(sizes=(4, 8, 16, 32, 64), m: int = 10, num_lookups: int = 200,
                         failure_fraction: float = 0.2, seed: int = 42):
    """
    Run the benchmarks for several ring sizes.

    Returns:
        Dictionary of ring size -> BenchmarkResults
    """
    results = {}

    for n in sizes:
        print(f"\nBenchmarking ring: N={n}, m={m}")
        print("="*60)

        benchmark = ChordBenchmark(n, m=m, seed=seed)
        result = BenchmarkResults()
        result.config = {'N': n, 'm': m}

        await benchmark.build_ring()
        result.convergence_rounds = await benchmark.converge()
        await benchmark.benchmark_lookups(result, num_lookups)
        if failure_fraction > 0 and n > 1:
            result.recovery_rounds = await benchmark.benchmark_failures(failure_fraction)

        results[n] = result

        # Print summary
        stats = result.get_stats()
        print(f"Converged after: {stats['convergence_rounds']} rounds")
        print(f"Hops: {stats['hops']['mean']:.2f} (p95: {stats['hops']['p95']})")
        print(f"Accuracy: {stats['accuracy']:.1%}")
        print(f"Recovered after failures: {stats['recovery_rounds']} rounds")

    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    results = asyncio.run(run_benchmarks())

    print("\n" + "="*60)
    print("Benchmark Summary")
    print("="*60)

    for n, result in results.items():
        stats = result.get_stats()
        print(f"\nN={n}:")
        print(f"  Hops: {stats['hops']['mean']:.2f} ± {stats['hops']['stdev']:.2f}")
        print(f"  Convergence: {stats['convergence_rounds']} rounds")
