from __future__ import annotations

import contextlib
import datetime as dt
import json
import os
import tempfile
from typing import Iterable

from cutterbot.errors import CorruptStateError, StoreIOError

STATE_VERSION = 1


def load_state(path: str) -> frozenset[str]:
    # No file yet is the normal first-run condition, not an error.
    if not os.path.exists(path):
        return frozenset()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"State file {path} is not valid JSON: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise StoreIOError(f"Failed to read state file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise CorruptStateError(f"State file {path}: expected a JSON object")

    identities = raw.get("identities")
    if not isinstance(identities, list) or not all(isinstance(i, str) for i in identities):
        raise CorruptStateError(f"State file {path}: 'identities' must be a list of strings")

    return frozenset(identities)


def save_state(path: str, identities: Iterable[str], *, resource_id: str | None = None) -> None:
    data = {
        "version": STATE_VERSION,
        "resource_id": resource_id,
        "saved_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "identities": sorted(set(identities)),
    }

    folder = os.path.dirname(os.path.abspath(path))
    tmp_name: str | None = None
    try:
        os.makedirs(folder, exist_ok=True)

        # Atomic write: a crash leaves either the old file or the new one.
        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
            tmp_name = tf.name
            json.dump(data, tf, ensure_ascii=False, indent=2)
            tf.flush()
            os.fsync(tf.fileno())

        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
        raise StoreIOError(f"Failed to write state file {path}: {e}") from e
