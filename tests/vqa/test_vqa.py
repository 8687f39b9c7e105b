import jax.numpy as jnp
import pytest

from vqa_weave.exceptions import ArityMismatch, InvalidCostMode
from vqa_weave.operation import GateType
from vqa_weave.vqa import (
    VQA,
    BitstringCost,
    CostMode,
    GateBlock,
    ObservableCost,
    OptimizationStatus,
    OptimizerConfig,
    StateCost,
    VQAConfig,
)
from vqa_weave.vqa.problems import (
    partition_cost,
    partition_hamiltonian,
    partition_labels,
    qaoa_blocks,
)

VALUES = [1, 4, 3]
SOLUTIONS = {"101", "010"}


def partition_vqa(num_layers, cost_method="OBSERVABLE"):
    h_p = partition_hamiltonian(VALUES)
    vqa = VQA(VQAConfig(num_qubits=3, num_layers=num_layers, cost_method=cost_method))
    for block in qaoa_blocks(h_p, 3):
        vqa.add_block(block)
    if cost_method == "OBSERVABLE":
        vqa.set_cost(ObservableCost(h_p))
    else:
        vqa.set_cost(BitstringCost(partition_cost(VALUES)))
    return vqa


def test_config_validation():
    assert VQAConfig(num_qubits=2, cost_method="state").cost_method is CostMode.STATE
    with pytest.raises(InvalidCostMode):
        VQAConfig(num_qubits=2, cost_method="energy")
    with pytest.raises(ValueError):
        VQAConfig(num_qubits=0)
    with pytest.raises(ValueError):
        VQAConfig(num_qubits=2, initial_state="101")


def test_cost_must_match_mode():
    vqa = VQA(VQAConfig(num_qubits=1, cost_method="STATE"))
    with pytest.raises(InvalidCostMode):
        vqa.set_cost(BitstringCost(lambda b: 0.0))
    vqa.set_cost(StateCost(lambda s: 0.0))


def test_blocks_and_parameters():
    vqa = partition_vqa(num_layers=3)
    assert vqa.num_params == 6
    assert vqa.get_initial_params("ones").shape == (6,)
    assert vqa.unitary(jnp.zeros(6)).shape == (8, 8)
    with pytest.raises(ArityMismatch):
        vqa.evaluate_parameters([0.1, 0.2])
    with pytest.raises(ValueError):
        vqa.add_block(GateBlock("mixer", GateType.RX, 0))
    with pytest.raises(ValueError):
        vqa.add_block(GateBlock("far", GateType.RX, 3))


def test_uniform_superposition_cost():
    vqa = partition_vqa(num_layers=1)
    # zero angles leave |+++>, the mean of the eight partition costs
    assert vqa.evaluate_parameters([0.0, 0.0]) == pytest.approx(26.0)


def test_evaluate_without_cost():
    vqa = VQA(VQAConfig(num_qubits=1))
    vqa.add_block(GateBlock("ry", GateType.RY, 0))
    with pytest.raises(ValueError):
        vqa.evaluate_parameters([0.1])


def test_ry_ansatz_finds_partition():
    vqa = VQA(VQAConfig(num_qubits=3, cost_method="BITSTRING"))
    for q in range(3):
        vqa.add_block(GateBlock(f"ry{q}", GateType.RY, q))
    vqa.set_cost(BitstringCost(partition_cost(VALUES)))
    result = vqa.optimize_parameters(
        method="bfgs", initial=[1.0, 2.0, 1.5], max_iterations=200, tolerance=1e-10
    )
    assert result.min_cost == pytest.approx(0.0, abs=1e-6)
    assert result.top_bitstring() in SOLUTIONS


def test_qaoa_partition_end_to_end():
    vqa = partition_vqa(num_layers=3)
    results = [
        vqa.optimize_parameters(
            method="bfgs", seed=seed, max_iterations=200, tolerance=1e-9
        )
        for seed in range(4)
    ]
    best = min(results, key=lambda r: r.min_cost)
    assert best.iterations == len(best.cost_history) > 0
    assert best.status in (
        OptimizationStatus.CONVERGED,
        OptimizationStatus.NON_CONVERGENCE,
    )
    probabilities = best.bitstring_probabilities()
    assert sum(probabilities[b] for b in SOLUTIONS) > 0.5
    assert best.top_bitstring() in SOLUTIONS

    outcomes = best.label_outcomes(partition_labels(VALUES))
    assert sum(outcomes.values()) == pytest.approx(1.0)
    assert max(outcomes, key=outcomes.get) == "{4} | {1, 3}"


def test_bitstring_and_observable_modes_agree():
    observable = partition_vqa(num_layers=2)
    bitstring = partition_vqa(num_layers=2, cost_method="BITSTRING")
    config = OptimizerConfig(method="gradient_descent", learning_rate=0.01,
                             max_iterations=5, tolerance=0.0, initial="ones")
    first = observable.optimize_parameters(config)
    second = bitstring.optimize_parameters(config)
    assert jnp.allclose(first.parameters, second.parameters, atol=1e-8)
    assert first.cost_history == pytest.approx(second.cost_history)


def test_overrides_replace_config_fields():
    vqa = partition_vqa(num_layers=1)
    result = vqa.optimize_parameters(max_iterations=2, tolerance=0.0, initial="ones")
    assert result.status is OptimizationStatus.NON_CONVERGENCE
    assert result.iterations == 2
    assert result.label_outcomes(min_probability=1.1) == {}
