"""
Single qubit VQE
----------------
Finds the ground state of H = Z + 0.5 X with a U3 ansatz and compares the
built-in gradient loops with a gradient-free scipy method.
"""
from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import jax.numpy as jnp
import matplotlib.pyplot as plt

from vqa_weave import VQA, GateBlock, ObservableCost, VQAConfig
from vqa_weave._math.ops import pauli_operator
from vqa_weave.operation import GateType

HAMILTONIAN = pauli_operator("Z") + 0.5 * pauli_operator("X")


if __name__ == "__main__":
    exact = float(jnp.linalg.eigvalsh(HAMILTONIAN)[0])
    vqa = VQA(VQAConfig(num_qubits=1))
    vqa.add_block(GateBlock("u3", GateType.U3, 0))
    vqa.set_cost(ObservableCost(HAMILTONIAN))

    for method in ("gradient_descent", "adam", "cobyla"):
        result = vqa.optimize_parameters(
            method=method, initial=[0.1, 0.4, 0.2], max_iterations=150
        )
        print(
            f"{method:>16s}: {result.min_cost:.6f} (exact {exact:.6f}), "
            f"{result.iterations} iteration(s), {result.status.value}"
        )
        plt.plot(result.cost_history, label=method)

    plt.axhline(exact, color="k", linestyle="--", label="exact")
    plt.xlabel("Iteration")
    plt.ylabel("Energy")
    plt.legend()
    plt.grid(True)
    plt.tight_layout()
    plt.show()
