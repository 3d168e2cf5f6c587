# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clover/utils/ssh_runner.py

from __future__ import annotations

import codecs
import logging
import socket
import sys
import threading
from typing import IO, Callable, List, Optional

import paramiko

from ..errors import CommandError, NodeConnectionError

log = logging.getLogger("clover")

CHUNK_SIZE = 32768


class StreamTee:
    """
    Fans one stream of text chunks out to several sinks. Remote channel
    output can only be read once, so every consumer gets each chunk as it
    arrives instead of re-reading the stream.
    """

    def __init__(self, *sinks: IO[str]):
        self._sinks = [s for s in sinks if s is not None]

    def write(self, chunk: str) -> None:
        for sink in self._sinks:
            sink.write(chunk)
            flush = getattr(sink, "flush", None)
            if flush:
                flush()


class _Capture:
    def __init__(self):
        self._chunks: List[str] = []

    def write(self, chunk: str) -> None:
        self._chunks.append(chunk)

    def getvalue(self) -> str:
        return "".join(self._chunks)


class _Pump(threading.Thread):
    """
    Drains one side of a channel until EOF. Bytes are decoded incrementally
    with replacement, so undecodable output never stops the drain. A read
    failure is kept on `error` for the caller to raise after join().
    """

    def __init__(self, read: Callable[[int], bytes], sink: StreamTee):
        super().__init__(daemon=True)
        self._read = read
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            while True:
                data = self._read(CHUNK_SIZE)
                if not data:
                    break
                text = self._decoder.decode(data)
                if text:
                    self._sink.write(text)
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._sink.write(tail)
        except Exception as exc:
            self.error = exc


class RemoteSession:
    """
    One authenticated SSH connection to a node. Commands run one at a time,
    each in a fresh channel, so their order is the order of `run` calls.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        *,
        label: str = "remote",
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
    ):
        self.client = client
        self.label = label
        self._stdout = stdout
        self._stderr = stderr
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def stdout(self) -> IO[str]:
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> IO[str]:
        return self._stderr or sys.stderr

    def run(self, cmd: str, *, sudo: bool = False, echo_output: bool = False) -> str:
        """
        Run `cmd` and return its captured stdout.

        Remote stderr is forwarded to local stderr as it arrives. Remote stdout
        is captured, and also forwarded live to local stdout when
        `echo_output` is set. Raises CommandError on a non-zero exit status and
        NodeConnectionError when the transport fails.
        """
        if sudo:
            cmd = f"sudo {cmd}"
        log.debug("[%s] $ %s", self.label, cmd)

        try:
            stdin, stdout, _ = self.client.exec_command(cmd)
            stdin.close()
        except (paramiko.SSHException, socket.error) as exc:
            raise NodeConnectionError(f"[{self.label}] cannot run '{cmd}': {exc}") from exc
        channel = stdout.channel

        captured = _Capture()
        pumps = [
            _Pump(channel.recv, StreamTee(captured, self.stdout if echo_output else None)),
            _Pump(channel.recv_stderr, StreamTee(self.stderr)),
        ]
        for p in pumps:
            p.start()

        rc = channel.recv_exit_status()
        # trailing output is only complete once both pumps have drained
        for p in pumps:
            p.join()

        for p in pumps:
            if p.error is not None:
                raise NodeConnectionError(
                    f"[{self.label}] lost output of '{cmd}': {p.error}"
                ) from p.error

        output = captured.getvalue()
        log.debug("[%s] exit %d", self.label, rc)
        if rc != 0:
            raise CommandError(cmd, rc, output)
        return output

    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self.client.open_sftp()
        return self._sftp

    def close(self) -> None:
        try:
            if self._sftp is not None:
                self._sftp.close()
        finally:
            self._sftp = None
            self.client.close()

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
