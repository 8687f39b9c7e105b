"""
QAOA for number partitioning
----------------------------
Splits S = [1, 4, 3] into two sets with equal sums. Each qubit encodes
the set a number belongs to and the problem Hamiltonian

    H_P = (1 Z0 + 4 Z1 + 3 Z2)^2

vanishes exactly on the equal-sum partitions |101> and |010>. The circuit
applies a Hadamard layer followed by p alternating problem and mixer
evolutions, the angles are found with BFGS on the exact expectation value.
"""
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import matplotlib.pyplot as plt

from vqa_weave import VQA, ObservableCost, VQAConfig
from vqa_weave.logging.logging import setup_logging
from vqa_weave.vqa.problems import partition_hamiltonian, partition_labels, qaoa_blocks
from vqa_weave.vqa_weave import Config

VALUES = [1, 4, 3]
LAYERS = 3


def build_problem(values: list[int], layers: int) -> VQA:
    h_p = partition_hamiltonian(values)
    vqa = VQA(VQAConfig(num_qubits=len(values), num_layers=layers))
    for block in qaoa_blocks(h_p, len(values)):
        vqa.add_block(block)
    vqa.set_cost(ObservableCost(h_p))
    return vqa


if __name__ == "__main__":
    setup_logging()
    conf = Config()
    conf.set_seed(7)
    conf.set_workers(2)

    vqa = build_problem(VALUES, LAYERS)
    result = min(
        (
            vqa.optimize_parameters(method="bfgs", seed=seed, max_iterations=200)
            for seed in range(4)
        ),
        key=lambda r: r.min_cost,
    )
    print(f"status {result.status.value} after {result.iterations} iteration(s)")
    print(f"minimum cost {result.min_cost:.6f}")
    outcomes = result.label_outcomes(partition_labels(VALUES), min_probability=1e-3)
    for label, p in sorted(outcomes.items(), key=lambda item: -item[1]):
        print(f"{label:>20s}  {p:.4f}")

    fig, (ax_cost, ax_outcomes) = plt.subplots(1, 2, figsize=(11, 4))
    ax_cost.plot(range(1, result.iterations + 1), result.cost_history, marker="o")
    ax_cost.set_xlabel("Iteration")
    ax_cost.set_ylabel(r"$\langle H_P \rangle$")
    ax_cost.set_title("Cost history")
    ax_cost.grid(True)
    ax_outcomes.bar(list(outcomes), list(outcomes.values()))
    ax_outcomes.set_ylabel("Probability")
    ax_outcomes.set_title("Partitions")
    ax_outcomes.tick_params(axis="x", rotation=30)
    plt.tight_layout()
    plt.show()
