import jax
import pytest

from vqa_weave.vqa_weave import Config, Session


def test_session_sets_and_restores_seed_and_flags():
    cfg = Config()
    before_seed = cfg.random_seed
    before_contractions = cfg.contractions
    before_workers = cfg.workers

    with Session(seed=0, contractions=False, workers=3) as c:
        assert c.random_seed == 0
        assert c.contractions is False
        assert c.workers == 3
        key1 = c.random_key
        key2 = c.random_key
        assert not jax.numpy.array_equal(key1, key2)

    # Session should restore prior values
    assert cfg.random_seed == before_seed
    assert cfg.contractions == before_contractions
    assert cfg.workers == before_workers


def test_session_can_override_subset_and_restore():
    cfg = Config()
    cfg.set_contraction(True)
    cfg.set_workers(1)

    with Session(contractions=False) as c:
        assert c.contractions is False
        # unspecified flags remain unchanged
        assert c.workers == 1

    assert cfg.contractions is True
    assert cfg.workers == 1


def test_nested_sessions_restore_state():
    cfg = Config()
    cfg.set_contraction(True)
    cfg.set_workers(1)
    cfg.set_seed(5)

    with Session(contractions=False, seed=1) as s1:
        assert s1.contractions is False
        assert s1.random_seed == 1
        with Session(workers=2, seed=2) as s2:
            assert s2.workers == 2
            assert s2.random_seed == 2
        # after inner session, outer session settings remain
        assert s1.contractions is False
        assert s1.workers == 1
        assert s1.random_seed == 1

    assert cfg.contractions is True
    assert cfg.workers == 1
    assert cfg.random_seed == 5


def test_same_seed_reproduces_keys():
    with Session(seed=7) as c:
        first = c.random_key
    with Session(seed=7) as c:
        second = c.random_key
    assert jax.numpy.array_equal(first, second)


def test_workers_must_be_positive():
    with pytest.raises(ValueError):
        Config().set_workers(0)
