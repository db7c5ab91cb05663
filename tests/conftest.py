# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import io
import random
import string
from pathlib import Path

import docker
import pytest
from docker.errors import DockerException, NotFound

from logfollow import config as config_module
from logfollow.demux import encode_frame


def pytest_addoption(parser):
    parser.addoption(
        "--always-run-endtoend",
        action="store_true",
        dest="run_endtoend",
        help="Never skip end-to-end tests",
        default=None,
    )
    parser.addoption(
        "--skip-endtoend",
        action="store_false",
        dest="run_endtoend",
        help="Skip end-to-end tests",
    )


def pytest_collection_modifyitems(config, items):
    """Ensure that endtoend tests are run last (expensive!)."""
    # Map items to containing directory
    dir_mapping = {item: Path(item.module.__file__).parent.stem for item in items}

    # Sort items based on directory
    sorted_items = sorted(items, key=lambda item: dir_mapping[item] == "endtoend_tests")
    items[:] = sorted_items

    # Add skip marker to endtoend tests if not explicitly enabled
    # or if Docker is not available
    def has_docker():
        try:
            client = docker.from_env()
            client.ping()
            return True
        except (DockerException, OSError):
            return False

    run_endtoend = config.getvalue("run_endtoend")

    if run_endtoend is None:
        # tests may be skipped if Docker is not available
        run_endtoend = has_docker()
        skip_reason = "Docker is required for this test"
    elif not run_endtoend:
        skip_reason = "Skipping end-to-end tests"

    if not run_endtoend:
        for item in items:
            if dir_mapping[item] == "endtoend_tests":
                item.add_marker(pytest.mark.skip(reason=skip_reason))


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Make every test start from the default configuration."""
    monkeypatch.setattr(config_module, "_current_config", None)


@pytest.fixture
def dummy_container_name():
    """Create a dummy container name."""
    container_name = "".join(random.choices(string.ascii_lowercase, k=8))
    return f"logfollow_test_{container_name}"


@pytest.fixture
def mocked_docker():
    """Mock of the parts of the Docker Engine API that log sources use."""

    class MockedRaw(io.BytesIO):
        """Mock of the raw urllib3 response body."""

    class MockedResponse:
        """Mock of a streaming requests.Response."""

        def __init__(self, status_code: int, body: bytes = b"") -> None:
            self.status_code = status_code
            self.raw = MockedRaw(body)
            self.closed = False

        def close(self) -> None:
            self.closed = True
            self.raw.close()

    class MockedAPIClient:
        """Mock of docker.APIClient."""

        base_url = "http+docker://localhost"
        api_version = "1.45"

        def __init__(self) -> None:
            self.containers = {}
            self.requests = []
            self.responses = []

        def inspect_container(self, container_id: str) -> dict:
            """Mock of APIClient.inspect_container."""
            for attrs in self.containers.values():
                if container_id in (attrs["Id"], attrs["Name"].lstrip("/")):
                    return attrs
            raise NotFound(f"No such container: {container_id}")

        def get(self, url: str, **kwargs) -> MockedResponse:
            """Mock of the session's GET used for streaming endpoints."""
            self.requests.append((url, kwargs))
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

    class MockedDocker:
        """Mock of docker.DockerClient."""

        def __init__(self) -> None:
            self.api = MockedAPIClient()

        def add_container(self, name: str, tty: bool = False, running: bool = True):
            container_id = "".join(random.choices("0123456789abcdef", k=64))
            self.api.containers[name] = {
                "Id": container_id,
                "Name": f"/{name}",
                "Config": {"Tty": tty},
                "State": {"Running": running},
            }
            return self.api.containers[name]

        def set_running(self, name: str, running: bool) -> None:
            self.api.containers[name]["State"]["Running"] = running

        def respond(self, status_code: int = 200, body: bytes = b"") -> MockedResponse:
            response = MockedResponse(status_code, body)
            self.api.responses.append(response)
            return response

        def fail_next_request(self, exc: Exception) -> None:
            self.api.responses.append(exc)

    return MockedDocker()


@pytest.fixture
def framed():
    """Build a multiplexed log body from (origin, text) pairs."""

    def _framed(*entries) -> bytes:
        return b"".join(encode_frame(origin, text.encode()) for origin, text in entries)

    return _framed
