"""Terminal table rendering for cstats."""

from typing import TextIO

from cstats.models import ContainerSnapshot

CLEAR_SCREEN = "\033[2J"
CURSOR_HOME = "\033[H"
HEADER = "CONTAINER\tCPU %\tMEM USAGE/LIMIT\tMEM %\tNET I/O\n"

_DECIMAL_UNITS = ["B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]


def human_size(size: float) -> str:
    """Format a byte count with decimal units and four significant digits."""
    i = 0
    while size >= 1000.0 and i < len(_DECIMAL_UNITS) - 1:
        size = size / 1000.0
        i += 1
    return f"{size:.4g} {_DECIMAL_UNITS[i]}"


def format_row(snapshot: ContainerSnapshot) -> str:
    """Tab-separated table row for one container."""
    return (
        f"{snapshot.name}\t"
        f"{snapshot.cpu_percentage:.2f}%\t"
        f"{human_size(snapshot.memory)}/{human_size(snapshot.memory_limit)}\t"
        f"{snapshot.memory_percentage:.2f}%\t"
        f"{human_size(snapshot.network_rx)}/{human_size(snapshot.network_tx)}\n"
    )


class TabWriter:
    """
    Buffered writer that aligns tab-separated columns on flush.

    Text is split into cells at tabs. A cell terminated by a tab is padded
    to the width of its column: the widest cell in a run of adjacent lines
    sharing that column plus ``padding``, but at least ``minwidth``. The
    last cell of a line is written as-is.
    """

    def __init__(
        self,
        out: TextIO,
        minwidth: int = 20,
        padding: int = 3,
        padchar: str = " ",
    ) -> None:
        self._out = out
        self.minwidth = minwidth
        self.padding = padding
        self.padchar = padchar
        self._buffer: list[str] = []

    def write(self, text: str) -> int:
        """Buffer text until the next flush."""
        self._buffer.append(text)
        return len(text)

    def flush(self) -> None:
        """Align all buffered lines and write them out."""
        text = "".join(self._buffer)
        self._buffer.clear()
        if not text:
            return

        lines = [line.split("\t") for line in text.split("\n")]
        # The final element is whatever follows the last newline.
        partial = lines.pop()
        terminated = len(lines)
        if partial != [""]:
            lines.append(partial)

        rendered: list[str] = []
        self._format(lines, 0, len(lines), [], rendered)

        self._out.write("".join(
            row + ("\n" if index < terminated else "") for index, row in enumerate(rendered)
        ))
        self._out.flush()

    def _format(
        self,
        lines: list[list[str]],
        line0: int,
        line1: int,
        widths: list[int],
        rendered: list[str],
    ) -> None:
        column = len(widths)
        this = line0
        while this < line1:
            if column >= len(lines[this]) - 1:
                this += 1
                continue

            # A block of lines sharing this column starts here.
            self._write_lines(lines, line0, this, widths, rendered)
            line0 = this

            width = self.minwidth
            while this < line1 and column < len(lines[this]) - 1:
                width = max(width, len(lines[this][column]) + self.padding)
                this += 1

            self._format(lines, line0, this, widths + [width], rendered)
            line0 = this

        self._write_lines(lines, line0, line1, widths, rendered)

    def _write_lines(
        self,
        lines: list[list[str]],
        line0: int,
        line1: int,
        widths: list[int],
        rendered: list[str],
    ) -> None:
        for cells in lines[line0:line1]:
            row = []
            for j, cell in enumerate(cells):
                if j < len(widths):
                    cell = cell + self.padchar * (widths[j] - len(cell))
                row.append(cell)
            rendered.append("".join(row))
