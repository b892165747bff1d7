"""Terminal access for the LC-3 keyboard and display.

The CPU core and memory only talk to a `Console`. Platform classes put
the terminal in raw mode (no line buffering, no echo), poll for pending
keystrokes without blocking, and write guest output.

Implementations:
    PosixConsole: termios + select
    WindowsConsole: msvcrt + kernel32 console mode
    BufferedConsole: in-memory input and captured output
"""

import os
import sys
import threading
from abc import ABC, abstractmethod
from collections import deque
from contextlib import contextmanager
from io import BytesIO
from typing import BinaryIO, Iterator, Optional, Union

from .errors import ExecutionInterrupted


# getchar() returning EOF, seen through a 16-bit register
EOF_CHAR = 0xFFFF


class Console(ABC):
    """Capability interface between the VM and a terminal.

    A keystroke observed by a status poll is held as *pending* until it
    is consumed by `read_char` or dropped by `consume_pending`, so
    polling the keyboard status never loses input.
    """

    def __init__(self, interrupt: Optional[threading.Event] = None):
        self.interrupt = interrupt
        self._pending: Optional[int] = None

    # -- platform hooks ----------------------------------------------------

    @abstractmethod
    def _input_ready(self) -> bool:
        """Zero-timeout check for unread input."""

    @abstractmethod
    def _read_byte(self) -> int:
        """Blocking read of one raw byte (EOF_CHAR at end of input)."""

    @abstractmethod
    def _write(self, data: bytes) -> None:
        ...

    def enter_raw_mode(self) -> None:
        pass

    def restore_mode(self) -> None:
        pass

    def flush(self) -> None:
        pass

    # -- keyboard ------------------------------------------------------------

    @contextmanager
    def raw_mode(self) -> Iterator["Console"]:
        """Raw mode for the duration of the block, restored on any exit."""
        self.enter_raw_mode()
        try:
            yield self
        finally:
            self.restore_mode()

    def poll_input_ready(self) -> bool:
        return self._pending is not None or self._input_ready()

    def peek_char(self) -> Optional[int]:
        """Pending character without consuming it, or None if none waits."""
        if self._pending is None and self._input_ready():
            self._pending = self._read_byte()
        return self._pending

    def read_char(self) -> int:
        """Blocking read; a previously peeked character is returned first."""
        if self._pending is not None:
            char, self._pending = self._pending, None
            return char
        return self._read_byte()

    def consume_pending(self) -> None:
        self._pending = None

    # -- display -------------------------------------------------------------

    def write_byte(self, value: int) -> None:
        self._write(bytes((value & 0xFF,)))

    def write_text(self, text: str) -> None:
        self._write(text.encode("latin-1", errors="replace"))


class PosixConsole(Console):
    """stdin/stdout of a POSIX terminal."""

    # Blocking reads wake up this often to observe the interrupt event
    POLL_INTERVAL = 0.1

    def __init__(
        self,
        interrupt: Optional[threading.Event] = None,
        stdin_fd: Optional[int] = None,
        stdout: Optional[BinaryIO] = None,
    ):
        super().__init__(interrupt)
        self.fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout = stdout if stdout is not None else sys.stdout.buffer
        self._saved_attrs = None

    def enter_raw_mode(self) -> None:
        import termios

        if not os.isatty(self.fd):
            return
        self._saved_attrs = termios.tcgetattr(self.fd)
        new_attrs = termios.tcgetattr(self.fd)
        new_attrs[3] &= ~(termios.ICANON | termios.ECHO)
        termios.tcsetattr(self.fd, termios.TCSANOW, new_attrs)

    def restore_mode(self) -> None:
        import termios

        if self._saved_attrs is not None:
            termios.tcsetattr(self.fd, termios.TCSANOW, self._saved_attrs)
            self._saved_attrs = None

    def _select(self, timeout: float) -> bool:
        import select

        ready, _, _ = select.select([self.fd], [], [], timeout)
        return bool(ready)

    def _input_ready(self) -> bool:
        return self._select(0)

    def _read_byte(self) -> int:
        while True:
            if self.interrupt is not None and self.interrupt.is_set():
                raise ExecutionInterrupted("interrupted while waiting for input")
            if self._select(self.POLL_INTERVAL):
                data = os.read(self.fd, 1)
                return data[0] if data else EOF_CHAR

    def _write(self, data: bytes) -> None:
        self.stdout.write(data)

    def flush(self) -> None:
        self.stdout.flush()


class WindowsConsole(Console):
    """Windows console via msvcrt, with echo and line input disabled."""

    STD_INPUT_HANDLE = -10
    ENABLE_LINE_INPUT = 0x0002
    ENABLE_ECHO_INPUT = 0x0004
    POLL_INTERVAL = 0.1

    def __init__(
        self,
        interrupt: Optional[threading.Event] = None,
        stdout: Optional[BinaryIO] = None,
    ):
        super().__init__(interrupt)
        self.stdout = stdout if stdout is not None else sys.stdout.buffer
        self._handle = None
        self._saved_mode = None

    def enter_raw_mode(self) -> None:
        import ctypes
        from ctypes import wintypes

        kernel32 = ctypes.windll.kernel32
        self._handle = kernel32.GetStdHandle(self.STD_INPUT_HANDLE)
        mode = wintypes.DWORD()
        if not kernel32.GetConsoleMode(self._handle, ctypes.byref(mode)):
            # Not attached to a console (redirected input)
            self._handle = None
            return
        self._saved_mode = mode.value
        raw = mode.value & ~(self.ENABLE_ECHO_INPUT | self.ENABLE_LINE_INPUT)
        kernel32.SetConsoleMode(self._handle, raw)
        kernel32.FlushConsoleInputBuffer(self._handle)

    def restore_mode(self) -> None:
        import ctypes

        if self._handle is not None and self._saved_mode is not None:
            ctypes.windll.kernel32.SetConsoleMode(self._handle, self._saved_mode)
            self._saved_mode = None

    def _input_ready(self) -> bool:
        import msvcrt

        return bool(msvcrt.kbhit())

    def _read_byte(self) -> int:
        import msvcrt
        import time

        while not msvcrt.kbhit():
            if self.interrupt is not None and self.interrupt.is_set():
                raise ExecutionInterrupted("interrupted while waiting for input")
            time.sleep(self.POLL_INTERVAL)
        return msvcrt.getch()[0]

    def _write(self, data: bytes) -> None:
        self.stdout.write(data)

    def flush(self) -> None:
        self.stdout.flush()


class BufferedConsole(Console):
    """Console backed by a byte buffer, for tests and the web demo.

    Attributes:
        output: Everything the guest wrote
        flush_count: Number of flush() calls
    """

    def __init__(
        self,
        input_data: Union[bytes, str] = b"",
        interrupt: Optional[threading.Event] = None,
    ):
        super().__init__(interrupt)
        if isinstance(input_data, str):
            input_data = input_data.encode("latin-1")
        self._input = deque(input_data)
        self.output = BytesIO()
        self.flush_count = 0
        self.raw = False

    def feed(self, data: Union[bytes, str]) -> None:
        """Append more keyboard input."""
        if isinstance(data, str):
            data = data.encode("latin-1")
        self._input.extend(data)

    def enter_raw_mode(self) -> None:
        self.raw = True

    def restore_mode(self) -> None:
        self.raw = False

    def _input_ready(self) -> bool:
        return bool(self._input)

    def _read_byte(self) -> int:
        if self.interrupt is not None and self.interrupt.is_set():
            raise ExecutionInterrupted("interrupted while waiting for input")
        return self._input.popleft() if self._input else EOF_CHAR

    def _write(self, data: bytes) -> None:
        self.output.write(data)

    def flush(self) -> None:
        self.flush_count += 1

    @property
    def output_bytes(self) -> bytes:
        return self.output.getvalue()

    @property
    def output_text(self) -> str:
        return self.output.getvalue().decode("latin-1")


def get_console(interrupt: Optional[threading.Event] = None) -> Console:
    """Console implementation for the running platform."""
    if os.name == "nt":
        return WindowsConsole(interrupt=interrupt)
    return PosixConsole(interrupt=interrupt)
