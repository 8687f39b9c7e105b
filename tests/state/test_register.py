import jax
import jax.numpy as jnp
import pytest

from vqa_weave._math.ops import z_operator
from vqa_weave.operation import GateType
from vqa_weave.state.register import QubitRegister
from vqa_weave.vqa_weave import Config


@pytest.fixture(autouse=True)
def restore_contraction_flag():
    cfg = Config()
    prev = cfg.contractions
    yield
    cfg.set_contraction(prev)


def test_default_initial_state_is_all_zeros():
    register = QubitRegister(3)
    assert register.state.shape == (8, 1)
    assert register.bitstring_probabilities()["000"] == pytest.approx(1.0)


def test_initial_bitstring_and_vector():
    register = QubitRegister(2, "10")
    assert register.bitstring_probabilities()["10"] == pytest.approx(1.0)
    register = QubitRegister(1, jnp.array([3.0, 4.0]))
    assert jnp.allclose(register.state, jnp.array([[0.6], [0.8]]))


def test_invalid_initial_states():
    with pytest.raises(ValueError):
        QubitRegister(0)
    with pytest.raises(ValueError):
        QubitRegister(2, "1")
    with pytest.raises(ValueError):
        QubitRegister(2, "1x")
    with pytest.raises(ValueError):
        QubitRegister(1, jnp.zeros(2))


@pytest.mark.parametrize("use_contraction", [False, True])
def test_bell_state(use_contraction):
    Config().set_contraction(use_contraction)
    register = QubitRegister(2)
    register.apply_operator(GateType.H.compute_operator(), (0,))
    register.apply_operator(GateType.CNOT.compute_operator(), (0, 1))
    probs = register.bitstring_probabilities()
    assert probs["00"] == pytest.approx(0.5)
    assert probs["11"] == pytest.approx(0.5)
    assert register.probabilities().sum() == pytest.approx(1.0)


def test_apply_operator_checks_targets():
    register = QubitRegister(2)
    with pytest.raises(ValueError):
        register.apply_operator(z_operator(), (2,))

def test_sample_is_reproducible_and_does_not_collapse():
    register = QubitRegister(2)
    register.apply_operator(GateType.H.compute_operator(), (0,))
    key = jax.random.PRNGKey(5)
    first = register.sample(50, key=key)
    second = register.sample(50, key=key)
    assert first == second
    assert set(first) <= {"00", "10"}
    assert register.bitstring_probabilities()["10"] == pytest.approx(0.5)

def test_repr_lists_nonzero_amplitudes():
    register = QubitRegister(2, "01")
    assert "|01⟩" in repr(register)


def test_sample_draws_key_from_config(seeded):
    register = QubitRegister(1)
    register.apply_operator(GateType.H.compute_operator(), (0,))
    outcomes = register.sample(20)
    assert len(outcomes) == 20
    assert set(outcomes) <= {"0", "1"}
