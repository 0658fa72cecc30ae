from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from .models import ServiceRef

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    pass


def _is_service_dir(path: Path) -> bool:
    try:
        st = (path / "run").stat()
    except OSError:
        return False
    return bool(st.st_mode & stat.S_IXUSR)


def list_services(directory: Path) -> list[ServiceRef]:
    """Scan an s6 scan directory for service directories.

    - A subdirectory qualifies if it holds a ``run`` entry executable by its owner.
    - Entries are stat-ed through symlinks; stat failures are logged and skipped.
    - Failing to read ``directory`` itself raises DiscoveryError.
    """
    directory = Path(directory)
    try:
        names = os.listdir(directory)
    except OSError as e:
        raise DiscoveryError(f"Failed to read {directory}: {e}") from e

    services: list[ServiceRef] = []
    for name in names:
        fp = directory / name
        try:
            st = fp.stat()
        except OSError as e:
            logger.warning("error statting %s: %s", fp, e)
            continue
        if stat.S_ISDIR(st.st_mode) and _is_service_dir(fp):
            services.append(ServiceRef(path=fp))

    # Stable order for the lifetime of the process
    services.sort(key=lambda s: str(s.path))
    return services
