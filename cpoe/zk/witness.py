"""
Private Witness
===============

Scoped holder for the prover's secret inputs.

    with PrivateWitness(amount, seed, elements, indices) as witness:
        proof = await generator.generate_proof(witness, public)
    # fields are zeroed here

Python integers are immutable, so "zeroing" drops every reference the
witness holds and clears the path lists in place; it cannot overwrite
copies the interpreter made elsewhere. The witness refuses to be pickled
and its repr never shows values.
"""

from collections.abc import Sequence
from typing import Any

from cpoe.errors import MalformedInputError


class PrivateWitness:
    __slots__ = ("_actual_amount", "_secret_seed", "_path_elements", "_path_indices", "_scrubbed")

    def __init__(
        self,
        actual_amount: int,
        secret_seed: int,
        merkle_path_elements: Sequence[int],
        merkle_path_indices: Sequence[int],
    ) -> None:
        self._actual_amount = actual_amount
        self._secret_seed = secret_seed
        self._path_elements = list(merkle_path_elements)
        self._path_indices = list(merkle_path_indices)
        self._scrubbed = False

    def _check_live(self) -> None:
        if self._scrubbed:
            raise MalformedInputError("witness has already been scrubbed")

    @property
    def actual_amount(self) -> int:
        self._check_live()
        return self._actual_amount

    @property
    def secret_seed(self) -> int:
        self._check_live()
        return self._secret_seed

    @property
    def merkle_path_elements(self) -> list[int]:
        self._check_live()
        return list(self._path_elements)

    @property
    def merkle_path_indices(self) -> list[int]:
        self._check_live()
        return list(self._path_indices)

    @property
    def scrubbed(self) -> bool:
        return self._scrubbed

    def scrub(self) -> None:
        """Zero every field. Idempotent."""
        self._actual_amount = 0
        self._secret_seed = 0
        for i in range(len(self._path_elements)):
            self._path_elements[i] = 0
        for i in range(len(self._path_indices)):
            self._path_indices[i] = 0
        self._path_elements.clear()
        self._path_indices.clear()
        self._scrubbed = True

    def __enter__(self) -> "PrivateWitness":
        self._check_live()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.scrub()

    def __repr__(self) -> str:
        state = "scrubbed" if self._scrubbed else "redacted"
        return f"PrivateWitness(<{state}>)"

    __str__ = __repr__

    def __reduce_ex__(self, protocol: Any) -> Any:
        raise TypeError("PrivateWitness must never be serialized")

    def __copy__(self) -> "PrivateWitness":
        raise TypeError("PrivateWitness must not be copied")

    def __deepcopy__(self, memo: Any) -> "PrivateWitness":
        raise TypeError("PrivateWitness must not be copied")
