"""
Visualization tools for benchmark results.
"""

import matplotlib.pyplot as plt
import numpy as np
from typing import Dict


def plot_hops_vs_size(results: Dict, output_file: str = "lookup_hops.png"):
    """
    Plot mean lookup path length against ring size, next to the
    (1/2) log2 N path length Chord is expected to show.

    Args:
        results: Dictionary of ring size -> BenchmarkResults
        output_file: Output filename
    """
    sizes = np.array(sorted(results))
    means = []
    stdevs = []

    for n in sizes:
        stats = results[n].get_stats()
        means.append(stats['hops']['mean'])
        stdevs.append(stats['hops']['stdev'])

    # Create figure
    fig, ax = plt.subplots(figsize=(10, 6))

    ax.errorbar(sizes, means, yerr=stdevs, marker='o', capsize=4,
                linewidth=2, label='Measured (mean ± stdev)')

    reference = np.linspace(sizes.min(), sizes.max(), 200)
    ax.plot(reference, 0.5 * np.log2(reference), linestyle='--', color='gray',
            label='½ log₂ N')

    # Labels and title
    ax.set_xscale('log', base=2)
    ax.set_xlabel('Ring size (N)', fontsize=12, fontweight='bold')
    ax.set_ylabel('Forwarded hops per lookup', fontsize=12, fontweight='bold')
    ax.set_title('Lookup Path Length vs. Ring Size', fontsize=14, fontweight='bold')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_file, dpi=300)
    print(f"Saved lookup path length to {output_file}")
    plt.close()


def plot_hop_distribution(results: Dict, output_file: str = "hop_distribution.png"):
    """
    Plot the distribution of hop counts for each ring size.

    Args:
        results: Dictionary of ring size -> BenchmarkResults
        output_file: Output filename
    """
    sizes = sorted(results)
    longest = max((max(results[n].hop_counts, default=0) for n in sizes), default=0)
    bins = np.arange(longest + 1)

    fig, ax = plt.subplots(figsize=(12, 6))

    width = 0.8 / max(len(sizes), 1)
    for i, n in enumerate(sizes):
        counts = np.bincount(results[n].hop_counts, minlength=longest + 1)
        total = counts.sum()
        fractions = counts / total if total else counts
        ax.bar(bins + i * width, fractions, width, label=f'N={n}', alpha=0.8)

    ax.set_xlabel('Forwarded hops', fontsize=12, fontweight='bold')
    ax.set_ylabel('Fraction of lookups', fontsize=12, fontweight='bold')
    ax.set_title('Hop Count Distribution', fontsize=14, fontweight='bold')
    ax.set_xticks(bins + 0.4 - width / 2)
    ax.set_xticklabels(bins)
    ax.legend()
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_file, dpi=300)
    print(f"Saved hop distribution to {output_file}")
    plt.close()


def plot_convergence(results: Dict, output_file: str = "convergence.png"):
    """
    Plot rounds needed to converge after joins and after failures.

    Runs that never converged are left out.
    """
    sizes = sorted(results)
    x = np.arange(len(sizes))
    width = 0.35

    join_rounds = [results[n].convergence_rounds or 0 for n in sizes]
    recovery_rounds = [results[n].recovery_rounds or 0 for n in sizes]

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.bar(x - width/2, join_rounds, width, label='After joins', color='steelblue')
    ax.bar(x + width/2, recovery_rounds, width, label='After failures', color='indianred')

    ax.set_xlabel('Ring size (N)', fontsize=12, fontweight='bold')
    ax.set_ylabel('Maintenance rounds', fontsize=12, fontweight='bold')
    ax.set_title('Rounds to an Exact Ring', fontsize=14, fontweight='bold')
    ax.set_xticks(x)
    ax.set_xticklabels(sizes)
    ax.legend()
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_file, dpi=300)
    print(f"Saved convergence rounds to {output_file}")
    plt.close()


def plot_all_results(results: Dict, output_dir: str = "."):
    """
    Generate all plots for benchmark results.

    Args:
        results: Dictionary of ring size -> BenchmarkResults
        output_dir: Output directory for plots
    """
    import os

    print("\nGenerating visualizations...")
    print("="*60)

    # Create output directory if needed
    os.makedirs(output_dir, exist_ok=True)

    # Generate plots
    plot_hops_vs_size(results, f"{output_dir}/lookup_hops.png")
    plot_hop_distribution(results, f"{output_dir}/hop_distribution.png")
    plot_convergence(results, f"{output_dir}/convergence.png")

    print("\nAll visualizations saved!")


if __name__ == "__main__":
    import asyncio
    import logging

    from evaluation.benchmark import run_benchmarks

    logging.basicConfig(level=logging.WARNING)
    results = asyncio.run(run_benchmarks())
    plot_all_results(results, output_dir="plots")
