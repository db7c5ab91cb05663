# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Closing Docker log streams over a real, idle HTTP connection."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests
from fake_source import wait_until

from logfollow.config import FollowConfig
from logfollow.consumers import BufferingConsumer
from logfollow.demux import StreamDemultiplexer, encode_frame
from logfollow.docker_source import DockerLogSource, DockerLogStream
from logfollow.producer import LogProducer
from logfollow.records import LogOrigin


class _IdleLogHandler(BaseHTTPRequestHandler):
    """Send one chunked log frame, then keep the connection open without output."""

    protocol_version = "HTTP/1.1"

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/vnd.docker.multiplexed-stream")
        self.send_header("Transfer-Encoding", "chunked")
        self.end_headers()

        frame = encode_frame(LogOrigin.stdout, b"ready\n")
        self.wfile.write(f"{len(frame):x}\r\n".encode() + frame + b"\r\n")
        self.wfile.flush()
        self.server.release.wait(30)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def idle_log_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _IdleLogHandler)
    server.daemon_threads = True
    server.release = threading.Event()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}/containers/abc/logs"
    finally:
        server.release.set()
        server.shutdown()
        server.server_close()


def test_close_interrupts_blocked_read(idle_log_url):
    stream = DockerLogStream(requests.get(idle_log_url, stream=True))
    records, errors = [], []

    def read_all():
        try:
            for record in StreamDemultiplexer(stream):
                records.append(record)
        except Exception as ex:
            errors.append(ex)

    reader = threading.Thread(target=read_all, daemon=True)
    reader.start()
    wait_until(lambda: records)
    # Nothing more is coming: the reader is now blocked on the socket
    reader.join(0.1)
    assert reader.is_alive()

    closer = threading.Thread(target=stream.close, daemon=True)
    closer.start()
    closer.join(2)
    assert not closer.is_alive()

    reader.join(2)
    assert not reader.is_alive()
    assert errors == []
    assert [record.content for record in records] == [b"ready\n"]
    assert stream.read(8) == b""


def test_producer_stops_while_container_is_idle(mocked_docker, idle_log_url):
    mocked_docker.add_container("web")
    mocked_docker.api.responses.append(requests.get(idle_log_url, stream=True))
    source = DockerLogSource("web", client=mocked_docker, timestamps=False)

    consumer = BufferingConsumer()
    producer = LogProducer(source, config=FollowConfig(stop_timeout=2))
    producer.follow(consumer)
    producer.start()
    wait_until(lambda: consumer.messages() == ("ready\n",))

    stopper = threading.Thread(target=producer.stop, daemon=True)
    stopper.start()
    stopper.join(5)
    assert not stopper.is_alive()

    assert not producer.is_running
    assert producer.last_error is None
    # Stopped on request: no reconnect was attempted
    assert len(mocked_docker.api.requests) == 1
