"""
Key Artifacts
=============

Reading and writing Groth16 key material.

- verification_key.json: snarkjs layout (vk_alpha_1, vk_beta_2, vk_gamma_2,
  vk_delta_2, IC) plus `circuit_digest`
- proving_key.json: this package's layout, same point encoding

Both files carry the digest of the circuit they were generated for; keys
built for another circuit shape are rejected on load.

Version: 0.1.0
"""

import json
from pathlib import Path
from typing import Any

from cpoe.config import settings
from cpoe.crypto.curve import decode_g1, decode_g2, encode_g1, encode_g2
from cpoe.errors import MalformedInputError, ResourceUnavailableError
from cpoe.logging import get_logger
from cpoe.zk import groth16
from cpoe.zk.circuit import ThresholdCircuit
from cpoe.zk.groth16 import ProvingKey, VerificationKey


logger = get_logger(__name__)


def _g1_json(point: Any) -> list[str]:
    return [*encode_g1(point), "1"]


def _g2_json(point: Any) -> list[list[str]]:
    return [*encode_g2(point), ["1", "0"]]


# =============================================================================
# Verification key
# =============================================================================


def verification_key_to_json(vk: VerificationKey, circuit_digest: str) -> dict[str, Any]:
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": vk.num_public,
        "vk_alpha_1": _g1_json(vk.alpha_g1),
        "vk_beta_2": _g2_json(vk.beta_g2),
        "vk_gamma_2": _g2_json(vk.gamma_g2),
        "vk_delta_2": _g2_json(vk.delta_g2),
        "IC": [_g1_json(p) for p in vk.ic],
        "circuit_digest": circuit_digest,
    }


def verification_key_from_json(data: dict[str, Any]) -> tuple[VerificationKey, str | None]:
    """
    Decode a snarkjs verification key, validating every point.

    Returns:
        (key, circuit digest or None when the file carries none)
    """
    try:
        if data.get("protocol", "groth16") != "groth16" or data.get("curve", "bn128") != "bn128":
            raise MalformedInputError("verification key is not a groth16/bn128 key")
        vk = VerificationKey(
            alpha_g1=decode_g1(data["vk_alpha_1"], "vk_alpha_1"),
            beta_g2=decode_g2(data["vk_beta_2"], "vk_beta_2"),
            gamma_g2=decode_g2(data["vk_gamma_2"], "vk_gamma_2"),
            delta_g2=decode_g2(data["vk_delta_2"], "vk_delta_2"),
            ic=tuple(decode_g1(p, f"IC[{i}]") for i, p in enumerate(data["IC"])),
        )
    except (KeyError, TypeError) as e:
        raise MalformedInputError(f"verification key is missing fields: {e}") from e

    n_public = data.get("nPublic", vk.num_public)
    if n_public != vk.num_public:
        raise MalformedInputError("nPublic does not match IC length")
    return vk, data.get("circuit_digest")


# =============================================================================
# Proving key
# =============================================================================


def proving_key_to_json(pk: ProvingKey) -> dict[str, Any]:
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "circuit_digest": pk.circuit_digest,
        "domain_size": pk.domain_size,
        "num_public": pk.num_public,
        "alpha_1": encode_g1(pk.alpha_g1),
        "beta_1": encode_g1(pk.beta_g1),
        "beta_2": encode_g2(pk.beta_g2),
        "delta_1": encode_g1(pk.delta_g1),
        "delta_2": encode_g2(pk.delta_g2),
        "a_query": [encode_g1(p) for p in pk.a_query],
        "b1_query": [encode_g1(p) for p in pk.b_g1_query],
        "b2_query": [encode_g2(p) for p in pk.b_g2_query],
        "l_query": [encode_g1(p) for p in pk.l_query],
        "h_query": [encode_g1(p) for p in pk.h_query],
    }


def proving_key_from_json(data: dict[str, Any]) -> ProvingKey:
    """Decode a proving key; G2 subgroup checks are skipped (local artifact)."""
    try:
        return ProvingKey(
            alpha_g1=decode_g1(data["alpha_1"]),
            beta_g1=decode_g1(data["beta_1"]),
            beta_g2=decode_g2(data["beta_2"], check_subgroup=False),
            delta_g1=decode_g1(data["delta_1"]),
            delta_g2=decode_g2(data["delta_2"], check_subgroup=False),
            a_query=tuple(decode_g1(p) for p in data["a_query"]),
            b_g1_query=tuple(decode_g1(p) for p in data["b1_query"]),
            b_g2_query=tuple(decode_g2(p, check_subgroup=False) for p in data["b2_query"]),
            l_query=tuple(decode_g1(p) for p in data["l_query"]),
            h_query=tuple(decode_g1(p) for p in data["h_query"]),
            domain_size=int(data["domain_size"]),
            num_public=int(data["num_public"]),
            circuit_digest=str(data["circuit_digest"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedInputError(f"proving key is malformed: {e}") from e


# =============================================================================
# Files
# =============================================================================


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ResourceUnavailableError(f"Key file not found: {path}", path=str(path))
    with open(path) as f:
        return json.load(f)


def load_verification_key(
    path: str | Path | None = None,
    circuit: ThresholdCircuit | None = None,
) -> VerificationKey:
    """
    Load the verification key and check it belongs to `circuit`.

    Raises:
        ResourceUnavailableError: file missing
        MalformedInputError: invalid contents or circuit digest mismatch
    """
    path = Path(path) if path else settings.zk.verification_key_path
    vk, digest = verification_key_from_json(_read_json(path))
    if circuit is not None:
        _check_digest(digest, circuit, path)
        if vk.num_public != circuit.shape.num_public:
            raise MalformedInputError("verification key has the wrong number of public inputs")
    logger.info("verification_key_loaded", path=str(path), circuit_digest=digest)
    return vk


def load_proving_key(
    path: str | Path | None = None,
    circuit: ThresholdCircuit | None = None,
) -> ProvingKey:
    path = Path(path) if path else settings.zk.proving_key_path
    pk = proving_key_from_json(_read_json(path))
    if circuit is not None:
        _check_digest(pk.circuit_digest, circuit, path)
    logger.info("proving_key_loaded", path=str(path), wires=pk.num_wires)
    return pk


def _check_digest(digest: str | None, circuit: ThresholdCircuit, path: Path) -> None:
    if digest != circuit.digest:
        raise MalformedInputError(
            "Key was generated for a different circuit",
            path=str(path),
            expected=circuit.digest,
            found=digest,
        )


def save_keys(
    pk: ProvingKey,
    vk: VerificationKey,
    key_dir: str | Path | None = None,
) -> tuple[Path, Path]:
    key_dir = Path(key_dir) if key_dir else settings.zk.key_dir
    key_dir.mkdir(parents=True, exist_ok=True)
    pk_path = key_dir / settings.zk.proving_key_file
    vk_path = key_dir / settings.zk.verification_key_file

    with open(pk_path, "w") as f:
        json.dump(proving_key_to_json(pk), f)
    with open(vk_path, "w") as f:
        json.dump(verification_key_to_json(vk, pk.circuit_digest), f, indent=2)

    logger.info("keys_saved", proving_key=str(pk_path), verification_key=str(vk_path))
    return pk_path, vk_path


def generate_dev_keys(
    circuit: ThresholdCircuit | None = None,
) -> tuple[ProvingKey, VerificationKey]:
    """
    Generate keys for `circuit` with a single local party.

    Whoever runs this knows the toxic waste and can forge proofs: use only
    for development and tests, never for a deployment.
    """
    circuit = circuit or ThresholdCircuit()
    logger.warning(
        "insecure_dev_keys_generated",
        depth=circuit.depth,
        amount_bits=circuit.amount_bits,
    )
    return groth16.setup(circuit.shape)
