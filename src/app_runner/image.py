import re

from docker.auth import INDEX_NAME, resolve_repository_name
from docker.errors import InvalidRepository
from docker.utils import parse_repository_tag

from .errors import ImageFormatError

DOCKER_SCHEME = "docker"
DEFAULT_TAG = "latest"

COMPONENT_PATTERN = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$")
TAG_PATTERN = re.compile(r"^[\w][\w.-]{0,127}$")


def format_for_receptor(docker_path: str) -> str:
    """
    Converts an image reference such as ``repo/image:tag`` into the rootfs
    url the scheduler expects, e.g. ``docker:///repo/image#tag``.
    Images on a private registry keep their host: ``docker://host:5000/image#tag``.
    """
    if not docker_path or docker_path != docker_path.strip():
        raise ImageFormatError(f"Invalid docker image path: '{docker_path}'")

    repository, tag = parse_repository_tag(docker_path)
    if "@" in docker_path:
        raise ImageFormatError(f"Digest references are not supported: '{docker_path}'")
    if docker_path.endswith(":"):
        raise ImageFormatError(f"Empty tag in docker image path: '{docker_path}'")

    try:
        index_name, remote_name = resolve_repository_name(repository)
    except InvalidRepository as e:
        raise ImageFormatError(str(e)) from e

    if not remote_name or not all(COMPONENT_PATTERN.match(part) for part in remote_name.split("/")):
        raise ImageFormatError(f"Invalid repository name: '{repository}'")

    tag = tag or DEFAULT_TAG
    if not TAG_PATTERN.match(tag):
        raise ImageFormatError(f"Invalid tag: '{tag}'")

    if index_name == INDEX_NAME:
        if "/" not in remote_name:
            remote_name = f"library/{remote_name}"
        return f"{DOCKER_SCHEME}:///{remote_name}#{tag}"

    return f"{DOCKER_SCHEME}://{index_name}/{remote_name}#{tag}"
