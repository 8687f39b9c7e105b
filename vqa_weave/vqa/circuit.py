"""
Circuit assembly

Blocks are listed in the order in which they act on the state. With
initial blocks I_1..I_m and layered blocks B_1..B_k repeated over p layers
the circuit unitary is

    U = (B_k ... B_1)_p ... (B_k ... B_1)_1 I_m ... I_1

so the first listed block is the rightmost operator factor. For QAOA,
listing the problem block before the mixer block gives
prod_j exp(-i beta_j H_B) exp(-i gamma_j H_P) with layer 1 applied first.

Parameter layout: initial block parameters first (in listed order), then the
parameters of layer 1 block by block, then layer 2, and so on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

import jax.numpy as jnp

from vqa_weave.core import adapters
from vqa_weave.exceptions import ArityMismatch
from vqa_weave.state.register import QubitRegister
from vqa_weave.vqa.blocks import ParameterizedBlock


@dataclass(frozen=True)
class BlockInstance:
    """
    A block placed in the circuit together with its parameter values

    `offset` is the index of the block's first parameter in the flat
    circuit parameter vector, `layer` is None for initial blocks
    """

    block: ParameterizedBlock
    params: jnp.ndarray
    offset: int
    layer: Optional[int]

    @property
    def operator(self) -> jnp.ndarray:
        return self.block.operator(self.params)

    def derivatives(self) -> List[jnp.ndarray]:
        return self.block.derivatives(self.params)


class Circuit:
    """
    Ordered sequence of blocks repeated over `num_layers` layers

    Example:
        circuit = Circuit(3, [hadamards, cost_block, mixer_block], num_layers=2)
        state = circuit.final_state(params)
    """

    __slots__ = ("num_qubits", "blocks", "num_layers")

    def __init__(
        self,
        num_qubits: int,
        blocks: Sequence[ParameterizedBlock],
        num_layers: int = 1,
    ) -> None:
        if num_qubits < 1:
            raise ValueError(f"Circuit needs at least one qubit, got {num_qubits}")
        if num_layers < 1:
            raise ValueError(f"Circuit needs at least one layer, got {num_layers}")
        if not blocks:
            raise ValueError("Circuit needs at least one block")
        names = [b.name for b in blocks]
        if len(set(names)) != len(names):
            raise ValueError(f"Block names must be unique, got {names}")
        for block in blocks:
            if max(block.targets) >= num_qubits:
                raise ValueError(
                    f"Block '{block.name}' targets {list(block.targets)} do not "
                    f"fit into {num_qubits} qubit(s)"
                )
        self.num_qubits = num_qubits
        self.blocks: Tuple[ParameterizedBlock, ...] = tuple(blocks)
        self.num_layers = num_layers

    def __repr__(self) -> str:
        names = ", ".join(b.name for b in self.blocks)
        return (
            f"Circuit(qubits={self.num_qubits}, layers={self.num_layers}, "
            f"blocks=[{names}], params={self.num_params})"
        )

    @property
    def initial_blocks(self) -> Tuple[ParameterizedBlock, ...]:
        return tuple(b for b in self.blocks if b.initial)

    @property
    def layered_blocks(self) -> Tuple[ParameterizedBlock, ...]:
        return tuple(b for b in self.blocks if not b.initial)

    @property
    def num_initial_params(self) -> int:
        return sum(b.num_params for b in self.initial_blocks)

    @property
    def params_per_layer(self) -> int:
        return sum(b.num_params for b in self.layered_blocks)

    @property
    def num_params(self) -> int:
        return self.num_initial_params + self.num_layers * self.params_per_layer

    @property
    def state_dims(self) -> Tuple[int, ...]:
        return (2,) * self.num_qubits

    @property
    def shift_rule(self) -> bool:
        """
        True if the parameter shift rule holds for every parameterized block
        """
        return all(b.shift_rule for b in self.blocks if b.num_params > 0)

    def undifferentiable_blocks(self) -> List[ParameterizedBlock]:
        return [b for b in self.blocks if not b.differentiable]

    def with_layers(self, num_layers: int) -> "Circuit":
        return Circuit(self.num_qubits, self.blocks, num_layers)

    def layer_slice(self, layer: int) -> slice:
        """
        Slice of the flat parameter vector used by `layer` (1-based)
        """
        if not 1 <= layer <= self.num_layers:
            raise ValueError(f"Layer {layer} not in 1..{self.num_layers}")
        start = self.num_initial_params + (layer - 1) * self.params_per_layer
        return slice(start, start + self.params_per_layer)

    def check_parameters(self, params: Any) -> jnp.ndarray:
        params = jnp.atleast_1d(jnp.asarray(params, dtype=jnp.float64)).reshape(-1)
        if params.shape[0] != self.num_params:
            raise ArityMismatch("circuit", self.num_params, int(params.shape[0]))
        return params

    def instances(self, params: Any) -> List[BlockInstance]:
        """
        Blocks in application order, each bound to its parameter slice

        Raises
        ------
        ArityMismatch
            If the number of parameters is not `num_params`
        """
        params = self.check_parameters(params)
        placed: List[BlockInstance] = []
        offset = 0
        for block in self.initial_blocks:
            placed.append(
                BlockInstance(block, params[offset : offset + block.num_params], offset, None)
            )
            offset += block.num_params
        for layer in range(1, self.num_layers + 1):
            for block in self.layered_blocks:
                placed.append(
                    BlockInstance(
                        block, params[offset : offset + block.num_params], offset, layer
                    )
                )
                offset += block.num_params
        return placed

    def split_parameters(
        self, params: Any
    ) -> List[Tuple[str, Optional[int], jnp.ndarray]]:
        """
        (block name, layer, parameters) triples following the parameter layout
        """
        return [(i.block.name, i.layer, i.params) for i in self.instances(params)]

    def unitary(self, params: Any) -> jnp.ndarray:
        """
        Full circuit unitary of size 2**num_qubits
        """
        dim = 2**self.num_qubits
        unitary = jnp.eye(dim, dtype=jnp.complex128)
        for instance in self.instances(params):
            full = adapters.embed_operator(
                self.state_dims, instance.block.targets, instance.operator
            )
            unitary = full @ unitary
        return unitary

    def final_state(
        self,
        params: Any,
        initial_state: Optional[Union[str, jnp.ndarray]] = None,
    ) -> jnp.ndarray:
        """
        Evolves `initial_state` (all zeros by default) through the circuit

        Returns
        -------
        jnp.ndarray
            State vector shaped (2**num_qubits, 1)
        """
        register = self.run(params, initial_state)
        return register.state

    def run(
        self,
        params: Any,
        initial_state: Optional[Union[str, jnp.ndarray]] = None,
    ) -> QubitRegister:
        instances = self.instances(params)
        register = QubitRegister(self.num_qubits, initial_state)
        for instance in instances:
            register.apply_operator(instance.operator, instance.block.targets)
        return register
