# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pytest configuration for end-to-end tests against a real Docker daemon."""

import docker
import pytest
from docker.errors import NotFound

TEST_IMAGE = "alpine:3.20"


@pytest.fixture(scope="session")
def docker_client():
    """Docker client, with the test image pulled."""
    client = docker.from_env()
    client.images.pull(TEST_IMAGE)
    return client


@pytest.fixture
def run_container(docker_client, dummy_container_name):
    """Start detached containers running a shell script; remove them afterwards."""
    containers = []

    def _run(script: str, tty: bool = False, name: str | None = None):
        container = docker_client.containers.run(
            TEST_IMAGE,
            ["sh", "-c", script],
            name=name or f"{dummy_container_name}_{len(containers)}",
            detach=True,
            tty=tty,
        )
        containers.append(container)
        return container

    yield _run

    for container in containers:
        try:
            container.remove(force=True)
        except NotFound:
            pass
