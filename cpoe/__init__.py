"""
CPoE
====

Cross-subnet proof of event: Merkle inclusion proofs for on-chain events
and nullifier-bound zero-knowledge threshold proofs.

Packages:
- merkle: binary Merkle accumulator (keccak-256 and sponge hashers)
- events: event proof generation and verification
- zk: threshold circuit, Groth16 prover and verifier, nullifier stores
- chain: block/receipt sources
"""

__version__ = "0.1.0"
