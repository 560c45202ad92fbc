import io
import tarfile
from typing import Dict


def extract_tarball(data: bytes) -> Dict[str, bytes]:
    """Read every regular file of a host-generated source tarball.

    Hosts wrap the tree in a single top-level directory (``owner-repo-sha/``),
    which is stripped from the returned paths.
    """
    files: Dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
        for member in archive:
            if not member.isfile():
                continue
            parts = member.name.split("/", 1)
            if len(parts) < 2 or not parts[1]:
                continue
            extracted = archive.extractfile(member)
            if extracted is None:
                continue
            files[parts[1]] = extracted.read()
    return files
