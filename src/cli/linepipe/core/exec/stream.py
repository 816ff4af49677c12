"""Lazy, single-consumer streams of text lines."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable, Iterator
from typing import IO, Any

from linepipe.core.errors import StreamError, StreamExhausted

_NOTHING = object()


def _strip_newline(line: str) -> str:
    return line[:-1] if line.endswith("\n") else line


class LineStream:
    """A lazy, ordered, single-consumer sequence of text lines.

    Lines are pulled one at a time from an underlying iterator. Once the
    iterator is exhausted (or the stream is closed) the stream stays
    exhausted; it never resurrects. Restartability is a property of the
    source: streams built from a factory can be re-derived with
    `restart()`, streams over a live pipe cannot.

    A stream has exactly one active consumer. It is not safe to pull from
    the same stream in two threads, and a stream can be claimed as the
    standard input of at most one process.

    Parameters
    ----------
    source : Iterable[str], optional
        One-shot source of lines. Mutually exclusive with `factory`.
    factory : Callable[[], Iterator[str]], optional
        Callable producing a fresh iterator over the source. Streams
        built from a factory are restartable.
    on_close : Callable[[], None], optional
        Invoked once when the stream is closed before exhaustion.
    name : str, optional
        Label used in `repr` and log messages.

    Examples
    --------
    >>> stream = LineStream.from_lines(["a", "b"])
    >>> stream.produce()
    ('a', True)
    >>> stream.produce()
    ('b', False)
    >>> stream.produce()
    (None, False)
    """

    def __init__(
        self,
        source: Iterable[str] | None = None,
        factory: Callable[[], Iterator[str]] | None = None,
        on_close: Callable[[], None] | None = None,
        name: str = "",
    ) -> None:
        if source is not None and factory is not None:
            raise StreamError("A line stream takes a source or a factory, not both.")
        self._factory = factory
        if factory is not None:
            self._iter: Iterator[str] | None = factory()
        elif source is not None:
            self._iter = iter(source)
        else:
            self._iter = iter(())
        self._on_close = on_close
        self._lookahead: Any = _NOTHING
        self._exhausted = False
        self._closed = False
        self._claimed = False
        self.name = name

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def empty(cls) -> LineStream:
        """Return a stream that immediately reports no elements.

        Restartable.
        """
        return cls(factory=lambda: iter(()), name="empty")

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> LineStream:
        """Return a stream over in-memory lines.

        Restartable when `lines` is a list or tuple (the lines are copied
        up front). Any other iterable, such as a generator, is consumed
        lazily and the stream is not restartable.
        """
        if isinstance(lines, str):
            return cls.from_text(lines)
        if isinstance(lines, (list, tuple)):
            snapshot = tuple(lines)
            return cls(factory=lambda: iter(snapshot), name="lines")
        return cls(source=lines, name="iterable")

    @classmethod
    def from_text(cls, text: str) -> LineStream:
        """Return a stream over the newline-separated lines of `text`.

        A trailing newline does not produce an empty last line. Restartable.
        """
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return cls.from_lines(lines)

    @classmethod
    def from_file(cls, path: str, encoding: str = "utf-8") -> LineStream:
        """Return a stream over the lines of a file.

        The file is opened on the first pull and closed at exhaustion or
        when the stream is closed. Restartable: `restart()` reopens the
        file from the beginning.
        """

        def read() -> Iterator[str]:
            with open(path, encoding=encoding, errors="replace") as f:
                for line in f:
                    yield _strip_newline(line)

        return cls(factory=read, name=str(path))

    @classmethod
    def from_pipe(cls, pipe: IO[str]) -> LineStream:
        """Return a stream over a live text file object such as `sys.stdin`.

        The file object is not closed by the stream. Not restartable.
        """
        return cls(source=(_strip_newline(line) for line in pipe), name="pipe")

    # ------------------------------------------------------------------
    # Pulling
    # ------------------------------------------------------------------
    def has_next(self) -> bool:
        """Return whether another line is available.

        Blocks until the source yields a line or reports the end.
        """
        if self._lookahead is not _NOTHING:
            return True
        if self._exhausted or self._iter is None:
            return False
        try:
            self._lookahead = next(self._iter)
        except StopIteration:
            self._finish()
            return False
        return True

    def next_line(self) -> str:
        """Return the next line.

        Raises
        ------
        StreamExhausted
            If the stream has no more elements.
        """
        if not self.has_next():
            raise StreamExhausted(f"Line stream '{self.name}' is exhausted.")
        line, self._lookahead = self._lookahead, _NOTHING
        return line

    def produce(self) -> tuple[str | None, bool]:
        """Return the next line and whether more lines remain.

        On an exhausted stream returns ``(None, False)``. Determining
        `has_more` pulls one line ahead from the source.
        """
        if not self.has_next():
            return None, False
        line = self.next_line()
        return line, self.has_next()

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        if not self.has_next():
            raise StopIteration
        return self.next_line()

    def collect(self) -> list[str]:
        """Drain the stream into a list."""
        return list(self)

    def text(self) -> str:
        """Drain the stream and join the lines with newlines."""
        return "\n".join(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def exhausted(self) -> bool:
        """Whether the stream has been fully consumed or closed."""
        return self._exhausted and self._lookahead is _NOTHING

    @property
    def closed(self) -> bool:
        """Whether the stream was closed before its source ran out."""
        return self._closed

    @property
    def restartable(self) -> bool:
        """Whether `restart()` can re-derive the stream."""
        return self._factory is not None

    def claim(self) -> LineStream:
        """Mark the stream as consumed by a process' standard input.

        Raises
        ------
        StreamError
            If the stream was already claimed.
        """
        if self._claimed:
            raise StreamError(
                f"Line stream '{self.name}' is already feeding another process."
            )
        self._claimed = True
        return self

    def release(self) -> None:
        """Undo `claim()` for a stream that was never fed."""
        self._claimed = False

    def restart(self) -> LineStream:
        """Return a new stream over the same source, from the beginning.

        Raises
        ------
        StreamError
            If the source cannot be re-derived.
        """
        if self._factory is None:
            raise StreamError(f"Line stream '{self.name}' is not restartable.")
        return LineStream(factory=self._factory, name=self.name)

    def close(self) -> None:
        """Abandon the stream. Further pulls yield nothing."""
        if self._exhausted:
            self._lookahead = _NOTHING
            return
        self._closed = True
        self._lookahead = _NOTHING
        self._finish()
        if self._on_close is not None:
            self._on_close()

    def _finish(self) -> None:
        self._exhausted = True
        close = getattr(self._iter, "close", None)
        self._iter = None
        if close is not None:
            close()

    def __enter__(self) -> LineStream:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------
    def map(self, fn: Callable[[str], str]) -> LineStream:
        """Return a stream applying `fn` to each line of this stream."""
        factory = None
        if self._factory is not None:
            src = self._factory
            factory = lambda: (fn(line) for line in src())  # noqa: E731
        return self._derive((fn(line) for line in self), factory)

    def filter(self, predicate: Callable[[str], bool]) -> LineStream:
        """Return a stream with only the lines matching `predicate`."""
        factory = None
        if self._factory is not None:
            src = self._factory
            factory = lambda: (x for x in src() if predicate(x))  # noqa: E731
        return self._derive((line for line in self if predicate(line)), factory)

    @classmethod
    def concat(cls, *streams: LineStream) -> LineStream:
        """Return the lines of each stream in turn."""
        factory = None
        if all(s._factory is not None for s in streams):
            factories = [s._factory for s in streams]
            factory = lambda: itertools.chain.from_iterable(  # noqa: E731
                f() for f in factories  # type: ignore[misc]
            )

        def close_all() -> None:
            for s in streams:
                s.close()

        stream = cls(source=itertools.chain.from_iterable(streams), on_close=close_all)
        stream._factory = factory
        stream.name = "+".join(s.name for s in streams)
        return stream

    def __add__(self, other: LineStream) -> LineStream:
        if not isinstance(other, LineStream):
            return NotImplemented
        return LineStream.concat(self, other)

    def _derive(
        self,
        source: Iterator[str],
        factory: Callable[[], Iterator[str]] | None,
    ) -> LineStream:
        stream = LineStream(source=source, on_close=self.close, name=self.name)
        stream._factory = factory
        return stream

    def __repr__(self) -> str:
        state = "exhausted" if self.exhausted else "open"
        return f"<LineStream {self.name or '?'} ({state})>"
