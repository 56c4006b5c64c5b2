"""
Key persistence.

Proving and verification keys are written as JSON documents validated
against the package schemas on load. Loaded keys are cached per directory
for the life of the process; they are never mutated after loading.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from zkpsbt.groth16 import ProvingKey, VerificationKey
from zkpsbt.hardening import ValidationError
from zkpsbt.observability import SBTLayer, get_logger

logger = get_logger("keystore", SBTLayer.PROVER)

PROVING_KEY_FILE = "proving_key.json"
VERIFICATION_KEY_FILE = "verification_key.json"

_cache: Dict[Path, Tuple[ProvingKey, VerificationKey]] = {}
_cache_lock = threading.Lock()


def default_key_dir() -> Path:
    from zkpsbt.config import get_config
    return Path(get_config().prover.key_dir.get())


def _read_json(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise ValidationError(str(path), "Key file not found")
    except json.JSONDecodeError as e:
        raise ValidationError(str(path), f"Invalid JSON: {e}")


def save_keys(
    proving_key: ProvingKey,
    verification_key: VerificationKey,
    directory: Optional[Union[str, Path]] = None,
) -> Tuple[Path, Path]:
    directory = Path(directory) if directory is not None else default_key_dir()
    directory.mkdir(parents=True, exist_ok=True)

    pk_path = directory / PROVING_KEY_FILE
    vk_path = directory / VERIFICATION_KEY_FILE
    with open(pk_path, "w", encoding="utf-8") as f:
        json.dump(proving_key.to_dict(), f)
    with open(vk_path, "w", encoding="utf-8") as f:
        json.dump(verification_key.to_dict(), f, indent=2)

    with _cache_lock:
        _cache.pop(directory.resolve(), None)

    logger.info("Keys written", operation="save_keys", directory=str(directory))
    return pk_path, vk_path


def load_proving_key(path: Union[str, Path]) -> ProvingKey:
    return ProvingKey.from_dict(_read_json(Path(path)))


def load_verification_key(path: Union[str, Path]) -> VerificationKey:
    return VerificationKey.from_dict(_read_json(Path(path)))


def load_keys(directory: Optional[Union[str, Path]] = None) -> Tuple[ProvingKey, VerificationKey]:
    """Load (and cache) the key pair stored in ``directory``."""
    directory = (Path(directory) if directory is not None else default_key_dir()).resolve()
    with _cache_lock:
        if directory not in _cache:
            _cache[directory] = (
                load_proving_key(directory / PROVING_KEY_FILE),
                load_verification_key(directory / VERIFICATION_KEY_FILE),
            )
            logger.debug("Keys loaded", operation="load_keys", directory=str(directory))
        return _cache[directory]
