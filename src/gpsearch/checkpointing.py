"""Checkpoint management for resumable optimization runs."""

import hashlib
import json
import pickle
from pathlib import Path


def create_run_hash(config: dict) -> str:
    """Create hash from run configuration.

    Args:
        config: JSON-serializable run configuration

    Returns:
        MD5 hash string
    """
    hash_string = json.dumps(config, sort_keys=True, default=str)
    return hashlib.md5(hash_string.encode()).hexdigest()


def checkpoint_path(checkpoint_dir: Path, run_hash: str) -> Path:
    return Path(checkpoint_dir) / f"checkpoint_{run_hash}.pkl"


def save_checkpoint(checkpoint_data: dict, checkpoint_dir: Path, run_hash: str) -> None:
    """Save optimization checkpoint.

    The file is written next to its final name and then moved in place, so
    an interrupted write never leaves a truncated checkpoint behind.

    Args:
        checkpoint_data: Data to checkpoint
        checkpoint_dir: Directory for checkpoints
        run_hash: Run configuration hash
    """
    checkpoint_dir = Path(checkpoint_dir)
    checkpoint_dir.mkdir(parents=True, exist_ok=True)
    checkpoint_file = checkpoint_path(checkpoint_dir, run_hash)
    tmp_file = checkpoint_file.with_suffix(".tmp")

    with open(tmp_file, "wb") as f:
        pickle.dump(checkpoint_data, f)
    tmp_file.replace(checkpoint_file)


def load_checkpoint(checkpoint_dir: Path, run_hash: str) -> dict | None:
    """Load optimization checkpoint if it exists.

    Args:
        checkpoint_dir: Directory containing checkpoints
        run_hash: Run configuration hash

    Returns:
        Checkpoint data or None if not found
    """
    checkpoint_file = checkpoint_path(Path(checkpoint_dir), run_hash)

    if checkpoint_file.exists():
        with open(checkpoint_file, "rb") as f:
            return pickle.load(f)
    return None
