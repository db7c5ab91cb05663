# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Log source backed by the Docker Engine API."""

import logging
import threading

import docker
import requests
import urllib3
from docker.errors import DockerException, NotFound
from docker.types import CancellableStream

from .config import get_config
from .exceptions import ResourceNotFoundError, TransientStreamError
from .records import timestamp_to_unix
from .source import LogSource

logger = logging.getLogger("logfollow")

# Errors that mean the connection to the daemon broke, not that the container is gone
_CONNECTION_ERRORS = (
    requests.RequestException,
    urllib3.exceptions.HTTPError,
    OSError,
)


def get_docker_client(docker_host: str | None = None) -> docker.DockerClient:
    """Return a Docker client for ``docker_host``, or from the environment."""
    if docker_host is None:
        docker_host = get_config().docker_host
    try:
        if docker_host:
            return docker.DockerClient(base_url=docker_host)
        return docker.from_env()
    except DockerException as ex:
        raise TransientStreamError(f"Cannot connect to Docker: {ex}") from ex


class DockerLogStream:
    """Raw body of a streaming ``/containers/{id}/logs`` response.

    ``close`` may be called from another thread while a read is blocked on an
    idle connection; the read then returns ``b""``.
    """

    def __init__(self, response: requests.Response, tty: bool = False) -> None:
        self._response = response
        self._tty = tty
        self._closed = threading.Event()

    def read(self, n: int) -> bytes:
        if self._closed.is_set():
            return b""
        try:
            if self._tty:
                # Raw TTY output has no frame lengths; don't block past a line
                return self._response.raw.readline(n)
            return self._response.raw.read(n)
        except (*_CONNECTION_ERRORS, ValueError) as ex:
            # ValueError: the response was closed under us
            if self._closed.is_set():
                return b""
            raise TransientStreamError(f"Log connection failed: {ex}") from ex
        except Exception:
            # http.client fails in assorted ways once its socket is shut down
            if self._closed.is_set():
                return b""
            raise

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            # Shut the socket down first so that a blocked read returns
            CancellableStream(None, self._response).close()
        except (AttributeError, OSError, DockerException) as ex:
            logger.debug(f"Cannot shut down log connection socket: {ex}")
        self._response.close()


class DockerLogSource(LogSource):
    """Follow the logs of a Docker container.

    Args:
        container_id: Id or name of a container.
        client: Docker client to use. Defaults to one built from the configuration.
        timestamps: Ask the daemon for per-frame timestamps. Defaults to
            ``config.timestamps``.
    """

    def __init__(
        self,
        container_id: str,
        client: docker.DockerClient | None = None,
        timestamps: bool | None = None,
    ) -> None:
        self._client = client if client is not None else get_docker_client()
        self._api = self._client.api
        self.timestamps = get_config().timestamps if timestamps is None else timestamps

        attrs = self._inspect(container_id)
        self.container_id = attrs["Id"]
        self.name = attrs.get("Name", container_id).lstrip("/") or container_id
        self.tty = bool(attrs.get("Config", {}).get("Tty", False))

    def _inspect(self, container_id: str) -> dict:
        try:
            return self._api.inspect_container(container_id)
        except NotFound as ex:
            raise ResourceNotFoundError(
                f"Container {container_id} not found: {ex}"
            ) from ex
        except (DockerException, *_CONNECTION_ERRORS) as ex:
            raise TransientStreamError(
                f"Cannot inspect container {container_id}: {ex}"
            ) from ex

    def open(self, since: str | None = None, follow: bool = True) -> DockerLogStream:
        params = {
            "stdout": 1,
            "stderr": 1,
            "follow": int(follow),
            "timestamps": int(self.timestamps),
        }
        if since is not None:
            params["since"] = timestamp_to_unix(since)

        url = f"{self._api.base_url}/v{self._api.api_version}/containers/{self.container_id}/logs"
        logger.debug(f"Requesting logs of {self.name} with {params}")
        try:
            response = self._api.get(url, params=params, stream=True, timeout=None)
        except _CONNECTION_ERRORS as ex:
            raise TransientStreamError(
                f"Cannot request logs of {self.name}: {ex}"
            ) from ex

        if response.status_code == 404:
            response.close()
            raise ResourceNotFoundError(f"Container {self.name} no longer exists")
        if response.status_code >= 400:
            response.close()
            raise TransientStreamError(
                f"Docker daemon answered {response.status_code} for logs of {self.name}"
            )
        return DockerLogStream(response, tty=self.tty)

    def is_running(self) -> bool:
        try:
            attrs = self._inspect(self.container_id)
        except ResourceNotFoundError:
            return False
        return bool(attrs.get("State", {}).get("Running", False))
