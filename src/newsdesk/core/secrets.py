"""API key lookup shared by the provider clients.

Keys are looked up in the config ``secrets/`` directory first, then in the
environment variable named by the relevant config section.
"""

import os
from pathlib import Path
from typing import Iterable, Optional


def load_key_from_file(path: Path, env_name: Optional[str] = None) -> Optional[str]:
    """Read an API key from a file, tolerating KEY=value or raw key formats."""
    if not path.exists():
        return None
    content = path.read_text(encoding='utf-8').strip()
    if not content:
        return None
    if '=' in content:
        for line in content.splitlines():
            line = line.strip()
            if line.startswith('#') or '=' not in line:
                continue
            name, value = line.split('=', 1)
            if env_name and name.strip() != env_name:
                continue
            value = value.strip().strip('"').strip("'")
            if value:
                return value
        return None
    if content.startswith('#'):
        return None
    return content


def resolve_api_key(
    env_name: str,
    secrets_dir: Optional[Path] = None,
    filenames: Iterable[str] = (),
    required: bool = True,
) -> Optional[str]:
    """Resolve an API key from secret files or the environment.

    Args:
        env_name: Environment variable holding the key (also used as the KEY
            name inside ``KEY=value`` secret files)
        secrets_dir: Directory searched for *filenames* and ``<env_name>.env``
        filenames: Extra secret file names to try first
        required: Raise RuntimeError instead of returning None when missing
    """
    if secrets_dir is not None:
        candidates = [Path(secrets_dir) / name for name in filenames]
        candidates.append(Path(secrets_dir) / f"{env_name.lower()}.env")
        for candidate in candidates:
            key = load_key_from_file(candidate, env_name)
            if key:
                return key

    key = os.environ.get(env_name)
    if key:
        return key

    if required:
        location = Path(secrets_dir) / f"{env_name.lower()}.env" if secrets_dir else "a secrets file"
        raise RuntimeError(f"Missing API key. Set {env_name} or place the key in {location}")
    return None
