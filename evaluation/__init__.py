"""
Evaluation and benchmarking package
"""

from .benchmark import BenchmarkResults, ChordBenchmark, run_benchmarks
from .visualize import plot_all_results

__all__ = ['BenchmarkResults', 'ChordBenchmark', 'run_benchmarks', 'plot_all_results']
