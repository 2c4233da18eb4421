"""Disk storage for generated quote PDFs."""

import logging
import os

log = logging.getLogger("quotes.storage")


class ArtifactStore:
    """Flat directory of generated files, addressed by bare filename."""

    def __init__(self, root: str):
        self.root = root
        os.makedirs(root, exist_ok=True)

    def path_for(self, name: str) -> str:
        safe = os.path.basename(name or "")
        if not safe or safe in (".", ".."):
            raise ValueError(f"invalid artifact name: {name!r}")
        return os.path.join(self.root, safe)

    def exists(self, name: str) -> bool:
        try:
            return os.path.isfile(self.path_for(name))
        except ValueError:
            return False

    def save(self, name: str, data: bytes) -> str:
        path = self.path_for(name)
        tmp = path + ".tmp"
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
        log.info("Stored %s (%d bytes)", os.path.basename(path), len(data),
                 extra={"file": os.path.basename(path)})
        return path
