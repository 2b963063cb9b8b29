"""
Benchmark script for microchoice

Times probability evaluation and sampling across model families and
population sizes, and compares sampled shares with average probabilities.
"""

import time

import numpy as np

from microchoice import (
    CoefficientTable,
    RegressionType,
    build_model,
    outcome_frequencies,
    simulate_covariates,
    simulate_outcomes,
)

EVENTS = ["a", "b", "c", "d"]


def make_coefficients(regression_type, K, rng):
    """Random coefficients over covariates x0..x{K-1} for ``regression_type``."""
    names = [f"x{k}" for k in range(K)]

    def random_table(extra=None):
        values = {name: float(v) for name, v in zip(names, rng.uniform(-1, 1, K))}
        values.update(extra or {})
        return CoefficientTable.from_coefficients(values)

    if regression_type in (RegressionType.ORDERED_LOGIT, RegressionType.ORDERED_PROBIT):
        cuts = np.sort(rng.normal(size=len(EVENTS) - 1))
        return random_table({f"Cut{j + 1}": float(c) for j, c in enumerate(cuts)})
    if regression_type in (
        RegressionType.GEN_ORDERED_LOGIT,
        RegressionType.GEN_ORDERED_PROBIT,
    ):
        # Shared slopes with decreasing intercepts keep the boundaries ordered
        base = random_table()
        slopes = {key[0]: value for key, value in base.coefficients().items()}
        return {
            event: CoefficientTable.from_coefficients({**slopes, "const@": 1.5 - j})
            for j, event in enumerate(EVENTS[:-1])
        }
    return {event: random_table() for event in EVENTS[1:]}


def benchmark_model(regression_type, N, K=3, seed=42):
    """
    Benchmark evaluation and sampling for one model family.

    Returns:
        dict: Contains timing and accuracy information
    """
    rng = np.random.default_rng(seed)

    t0 = time.time()
    agents = simulate_covariates(N, [f"x{k}" for k in range(K)], rng=rng)
    sim_time = time.time() - t0

    model = build_model(regression_type, EVENTS, make_coefficients(regression_type, K, rng))

    t0 = time.time()
    probabilities = np.array([list(model.probabilities(a).values()) for a in agents])
    probability_time = time.time() - t0

    t0 = time.time()
    outcomes = simulate_outcomes(model, agents, rng=rng)
    sample_time = time.time() - t0

    shares = outcome_frequencies(outcomes, model.events).to_numpy()
    mean_probabilities = probabilities.mean(axis=0)
    max_sum_error = float(np.max(np.abs(probabilities.sum(axis=1) - 1.0)))

    return {
        "model": regression_type.value,
        "N": N,
        "K": K,
        "sim_time": sim_time,
        "probability_time": probability_time,
        "sample_time": sample_time,
        "total_time": sim_time + probability_time + sample_time,
        "max_sum_error": max_sum_error,
        "max_share_error": float(np.max(np.abs(shares - mean_probabilities))),
    }


def print_results(results):
    """Pretty print benchmark results."""
    print("\n" + "=" * 90)
    print(
        f"{'Model':<18} {'N':<7} {'K':<3} {'Prob(s)':<9} {'Sample(s)':<10} "
        f"{'Total(s)':<9} {'SumErr':<10} {'ShareErr':<8}"
    )
    print("=" * 90)
    for r in results:
        print(
            f"{r['model']:<18} {r['N']:<7} {r['K']:<3} {r['probability_time']:<9.3f} "
            f"{r['sample_time']:<10.3f} {r['total_time']:<9.3f} "
            f"{r['max_sum_error']:<10.2e} {r['max_share_error']:<8.4f}"
        )
    print("=" * 90)


def main():
    print("microchoice Evaluation Benchmark")
    print("=" * 90)

    sizes = [1000, 5000, 20000]
    types = [t for t in RegressionType if t not in (RegressionType.LOGIT, RegressionType.PROBIT)]

    results = []
    for regression_type in types:
        for N in sizes:
            print(f"Running: {regression_type.value}, N={N}...", end=" ", flush=True)
            r = benchmark_model(regression_type, N)
            results.append(r)
            print(f"✓ ({r['total_time']:.2f}s)")

    print_results(results)


if __name__ == "__main__":
    main()
