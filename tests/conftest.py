import json
import os
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

import dns.message
import dns.rrset
import pytest

import SimpleHTTP


def pytest_collection_modifyitems(config, items):
    if os.getenv("SIMPLEHTTP_NETWORK_TESTS") == "1":
        return
    skip = pytest.mark.skip(reason="set SIMPLEHTTP_NETWORK_TESTS=1 to run")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip)


class EchoHandler(BaseHTTPRequestHandler):
    """Small test server.

    /echo             JSON with method, path, headers and body of the request
    /bytes/N          N bytes of b"x"
    /chunked          body sent with Transfer-Encoding: chunked
    /redirect?to=URL  302 to URL (status overridable with &code=)
    /loop             redirects to itself forever
    /slow?delay=S     sleeps S seconds before answering
    """
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _send(self, status, body=b"", content_type="text/plain", headers=None):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _handle(self):
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        length = int(self.headers.get("Content-Length") or 0)
        request_body = self.rfile.read(length) if length else b""

        if parsed.path == "/echo":
            payload = {
                "method": self.command,
                "path": self.path,
                "headers": {k.lower(): v for k, v in self.headers.items()},
                "body": request_body.decode("utf-8"),
            }
            self._send(200, json.dumps(payload).encode("utf-8"), "application/json; charset=utf-8")
        elif parsed.path.startswith("/bytes/"):
            size = int(parsed.path.rsplit("/", 1)[1])
            self._send(200, b"x" * size, "application/octet-stream")
        elif parsed.path == "/chunked":
            self.send_response(200)
            self.send_header("Transfer-Encoding", "chunked")
            self.end_headers()
            for part in (b"hello ", b"chunked ", b"world"):
                self.wfile.write(b"%x\r\n%s\r\n" % (len(part), part))
            self.wfile.write(b"0\r\n\r\n")
        elif parsed.path == "/redirect":
            code = int(query.get("code", ["302"])[0])
            self._send(code, headers={"Location": query["to"][0]})
        elif parsed.path == "/loop":
            self._send(302, headers={"Location": "/loop"})
        elif parsed.path == "/slow":
            time.sleep(float(query.get("delay", ["1"])[0]))
            self._send(200, b"late")
        else:
            self._send(404, b"not found")

    do_GET = do_POST = do_PUT = do_HEAD = _handle


@pytest.fixture
def http_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    server.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    server.port = server.server_address[1]
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


class MockDNSServer:
    """Answers A queries over UDP from a fixed table and records every query name."""

    def __init__(self, records, respond=True):
        self.records = records
        self.respond = respond
        self.queries = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.1)
        self.address = f"127.0.0.1:{self.sock.getsockname()[1]}"
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                data, peer = self.sock.recvfrom(4096)
            except socket.timeout:
                continue
            except OSError:
                return
            query = dns.message.from_wire(data)
            name = query.question[0].name
            self.queries.append(name.to_text(omit_final_dot=True))
            if not self.respond:
                continue

            response = dns.message.make_response(query)
            entries = self.records.get(name.to_text(omit_final_dot=True), [])
            for entry in entries:
                rdtype, value = ("A", entry) if isinstance(entry, str) else entry
                response.answer.append(dns.rrset.from_text(name, 300, "IN", rdtype, value))
            self.sock.sendto(response.to_wire(), peer)

    def close(self):
        self._stop.set()
        self._thread.join(timeout=1)
        self.sock.close()


@pytest.fixture
def dns_server():
    """Factory: dns_server({"example.com": ["93.184.216.34"]}) -> MockDNSServer."""
    servers = []

    def start(records=None, respond=True):
        server = MockDNSServer(records or {}, respond=respond)
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()


@pytest.fixture
def truncating_server():
    """Announces a 100 byte body, sends 10 bytes, then hangs up."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    listener.settimeout(0.1)
    stop = threading.Event()

    def serve():
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.recv(65536)
                conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 100\r\n\r\n" + b"0123456789")

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}"
    finally:
        stop.set()
        thread.join(timeout=1)
        listener.close()


@pytest.fixture
def trickling_server():
    """Announces an 8 byte body and sends it one byte every 0.4 seconds."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    listener.settimeout(0.1)
    stop = threading.Event()

    def serve():
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.recv(65536)
                try:
                    conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 8\r\n\r\n")
                    for byte in b"trickled":
                        if stop.wait(0.4):
                            break
                        conn.sendall(bytes([byte]))
                except OSError:
                    pass  # client gave up

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}"
    finally:
        stop.set()
        thread.join(timeout=1)
        listener.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture(autouse=True)
def reset_default_dns():
    yield
    SimpleHTTP.set_custom_dns("")
