import jax
import jax.numpy as jnp
import pytest

from vqa_weave._math.ops import pauli_operator
from vqa_weave.core import adapters
from vqa_weave.exceptions import InvalidCostMode, UndifferentiableBlock
from vqa_weave.operation import GateType
from vqa_weave.vqa.blocks import GateBlock, HamiltonianBlock, ParameterizedBlock
from vqa_weave.vqa.circuit import Circuit
from vqa_weave.vqa.cost import (
    BitstringCost,
    CostEvaluator,
    CostMode,
    GradientMethod,
    ObservableCost,
    StateCost,
)
from vqa_weave.vqa.problems import partition_cost, partition_hamiltonian, qaoa_blocks
from vqa_weave.vqa_weave import Session


@pytest.fixture
def ry_circuit():
    return Circuit(1, [GateBlock("ry", GateType.RY, 0)])


@pytest.fixture
def two_qubit_circuit():
    blocks = [
        GateBlock("ry0", GateType.RY, 0),
        GateBlock("rx1", GateType.RX, 1),
        GateBlock("cnot", GateType.CNOT, (0, 1)),
        GateBlock("u3", GateType.U3, 1),
        HamiltonianBlock("zz", pauli_operator("ZZ")),
    ]
    return Circuit(2, blocks, num_layers=2)


def test_observable_cost_single_qubit(ry_circuit):
    evaluator = CostEvaluator(ry_circuit, "observable", ObservableCost(pauli_operator("Z")))
    for theta in (0.0, 0.4, jnp.pi / 2, 2.5):
        assert evaluator.evaluate([theta]) == pytest.approx(float(jnp.cos(theta)))
    gradient = evaluator.gradient([0.4])
    assert gradient[0] == pytest.approx(-float(jnp.sin(0.4)), abs=1e-8)


def test_state_cost(ry_circuit):
    target = jnp.array([[0.0], [1.0]])

    def infidelity(state):
        return 1 - jnp.abs(jnp.vdot(target, state)) ** 2

    evaluator = CostEvaluator(ry_circuit, CostMode.STATE, StateCost(infidelity))
    assert evaluator.evaluate([jnp.pi]) == pytest.approx(0.0, abs=1e-12)
    assert evaluator.evaluate([0.0]) == pytest.approx(1.0)
    with pytest.raises(InvalidCostMode):
        evaluator.gradient([0.1], GradientMethod.ANALYTIC)
    gradient = evaluator.gradient([0.5], GradientMethod.FINITE_DIFFERENCE)
    assert gradient[0] == pytest.approx(-0.5 * float(jnp.sin(0.5)), abs=1e-6)


def test_mode_mismatch(ry_circuit):
    with pytest.raises(InvalidCostMode):
        CostEvaluator(ry_circuit, CostMode.STATE, ObservableCost(pauli_operator("Z")))
    with pytest.raises(InvalidCostMode):
        CostEvaluator(ry_circuit, "BITSTRING", StateCost(lambda s: 0.0))
    with pytest.raises(InvalidCostMode):
        CostEvaluator(ry_circuit, "energy", ObservableCost(pauli_operator("Z")))
    with pytest.raises(InvalidCostMode):
        CostEvaluator(ry_circuit, CostMode.OBSERVABLE, pauli_operator("Z"))
    with pytest.raises(InvalidCostMode):
        ObservableCost(lambda s: 0.0)
    with pytest.raises(InvalidCostMode):
        BitstringCost("not callable")


def test_observable_validation(ry_circuit):
    with pytest.raises(ValueError):
        ObservableCost(jnp.array([[0, 1], [0, 0]]))
    with pytest.raises(ValueError):
        CostEvaluator(ry_circuit, CostMode.OBSERVABLE, ObservableCost(pauli_operator("ZZ")))


def test_bitstring_cost_exact(ry_circuit):
    evaluator = CostEvaluator(
        ry_circuit, CostMode.BITSTRING, BitstringCost(lambda b: b.count("1"))
    )
    theta = 1.2
    assert evaluator.evaluate([theta]) == pytest.approx(float(jnp.sin(theta / 2) ** 2))
    assert jnp.allclose(evaluator.bitstring_costs(), jnp.array([0.0, 1.0]))
    gradient = evaluator.gradient([theta])
    assert gradient[0] == pytest.approx(0.5 * float(jnp.sin(theta)), abs=1e-8)


def test_bitstring_cost_sampled_is_reproducible(ry_circuit):
    evaluator = CostEvaluator(
        ry_circuit, CostMode.BITSTRING, BitstringCost(lambda b: b.count("1"), shots=4000)
    )
    key = jax.random.PRNGKey(3)
    first = evaluator.evaluate([jnp.pi / 2], key=key)
    second = evaluator.evaluate([jnp.pi / 2], key=key)
    assert first == second
    assert first == pytest.approx(0.5, abs=0.05)
    assert evaluator.evaluate([jnp.pi], key=key) == pytest.approx(1.0)


def test_partition_costs_agree():
    values = [1, 4, 3]
    circuit = Circuit(3, qaoa_blocks(partition_hamiltonian(values), 3), num_layers=1)
    observable = CostEvaluator(
        circuit, CostMode.OBSERVABLE, ObservableCost(partition_hamiltonian(values))
    )
    bitstring = CostEvaluator(
        circuit, CostMode.BITSTRING, BitstringCost(partition_cost(values))
    )
    params = [0.3, 0.8]
    assert observable.evaluate(params) == pytest.approx(bitstring.evaluate(params))
    assert jnp.allclose(observable.gradient(params), bitstring.gradient(params), atol=1e-8)


def test_adjoint_gradient_matches_finite_difference(two_qubit_circuit):
    observable = pauli_operator("ZI") + 0.5 * pauli_operator("XX")
    evaluator = CostEvaluator(
        two_qubit_circuit, CostMode.OBSERVABLE, ObservableCost(observable)
    )
    params = jnp.linspace(0.1, 1.9, two_qubit_circuit.num_params)
    analytic = evaluator.gradient(params, GradientMethod.ANALYTIC)
    numeric = evaluator.gradient(params, GradientMethod.FINITE_DIFFERENCE, step=1e-5)
    assert analytic.shape == (two_qubit_circuit.num_params,)
    assert jnp.allclose(analytic, numeric, atol=1e-6)


@pytest.mark.parametrize("contractions", [True, False])
def test_adjoint_gradient_follows_contraction_flag(
    two_qubit_circuit, monkeypatch, contractions
):
    observable = pauli_operator("ZZ") + pauli_operator("XI")
    evaluator = CostEvaluator(
        two_qubit_circuit, CostMode.OBSERVABLE, ObservableCost(observable)
    )
    params = jnp.linspace(0.2, 1.4, two_qubit_circuit.num_params)
    reference = evaluator.gradient(params, GradientMethod.FINITE_DIFFERENCE, step=1e-5)

    flags = []
    apply = adapters.apply_operation_vector

    def recording(*args, use_contraction=False):
        flags.append(use_contraction)
        return apply(*args, use_contraction=use_contraction)

    monkeypatch.setattr(adapters, "apply_operation_vector", recording)
    with Session(contractions=contractions):
        analytic = evaluator.gradient(params, GradientMethod.ANALYTIC)
    assert flags and set(flags) == {contractions}
    assert jnp.allclose(analytic, reference, atol=1e-6)


def test_parameter_shift_rule():
    circuit = Circuit(
        2,
        [
            GateBlock("ry", GateType.RY, 0),
            GateBlock("rzz", GateType.RZZ, (0, 1)),
            GateBlock("rx", GateType.RX, 1),
        ],
        num_layers=2,
    )
    evaluator = CostEvaluator(
        circuit, CostMode.OBSERVABLE, ObservableCost(pauli_operator("ZX"))
    )
    params = jnp.array([0.3, -0.7, 1.2, 0.5, 0.9, -1.4])
    shifted = evaluator.gradient(params, GradientMethod.PARAMETER_SHIFT)
    analytic = evaluator.gradient(params, GradientMethod.ANALYTIC)
    assert jnp.allclose(shifted, analytic, atol=1e-8)


def test_parameter_shift_needs_rotation_gates(two_qubit_circuit):
    evaluator = CostEvaluator(
        two_qubit_circuit, CostMode.OBSERVABLE, ObservableCost(pauli_operator("ZZ"))
    )
    with pytest.raises(UndifferentiableBlock):
        evaluator.check_gradient(GradientMethod.PARAMETER_SHIFT)


def test_undifferentiable_block_is_reported_before_simulation():
    from vqa_weave._math.ops import ry_operator

    circuit = Circuit(1, [ParameterizedBlock("opaque", lambda p: ry_operator(p[0]))])
    evaluator = CostEvaluator(circuit, "OBSERVABLE", ObservableCost(pauli_operator("Z")))
    with pytest.raises(UndifferentiableBlock):
        evaluator.gradient([0.1])
    gradient = evaluator.gradient([0.1], GradientMethod.FINITE_DIFFERENCE)
    assert gradient[0] == pytest.approx(-float(jnp.sin(0.1)), abs=1e-6)


def test_threaded_gradient_matches_sequential(two_qubit_circuit):
    evaluator = CostEvaluator(
        two_qubit_circuit, CostMode.OBSERVABLE, ObservableCost(pauli_operator("XZ"))
    )
    params = jnp.linspace(-1.0, 1.0, two_qubit_circuit.num_params)
    sequential = evaluator.gradient(params, GradientMethod.FINITE_DIFFERENCE, workers=1)
    threaded = evaluator.gradient(params, GradientMethod.FINITE_DIFFERENCE, workers=4)
    assert jnp.allclose(sequential, threaded)
