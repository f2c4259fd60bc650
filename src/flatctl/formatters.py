"""Text formatters for command output."""

from flatctl.constants import (
    ANSI_BOLD_OFF,
    ANSI_BOLD_ON,
    ANSI_COLOR_RESET,
    ANSI_RED,
    COLUMN_SEPARATOR,
    ERROR_PREFIX,
)


class TablePrinter:
    """Collect rows of string cells and render them as aligned columns."""

    def __init__(self, fancy: bool = False):
        self.fancy = fancy
        self.titles: list[str] = []
        self.rows: list[list[str]] = []
        self._current: list[str] = []

    def set_titles(self, titles: list[str]) -> None:
        self.titles = list(titles)

    def add_cell(self, value: str | None, max_length: int | None = None) -> None:
        """Append a cell to the current row; None renders empty."""
        text = value or ""
        if max_length is not None:
            text = text[:max_length]
        self._current.append(text)

    def finish_row(self) -> None:
        self.rows.append(self._current)
        self._current = []

    def add_row(self, cells: list[str]) -> None:
        for cell in cells:
            self.add_cell(cell)
        self.finish_row()

    def _widths(self) -> list[int]:
        count = max([len(self.titles)] + [len(row) for row in self.rows])
        widths = [0] * count
        for row in [self.titles] + self.rows:
            for index, cell in enumerate(row):
                widths[index] = max(widths[index], len(cell))
        return widths

    def _render_line(self, cells: list[str], widths: list[int]) -> str:
        padded = [cell.ljust(widths[index]) for index, cell in enumerate(cells)]
        return COLUMN_SEPARATOR.join(padded).rstrip()

    def render(self) -> str:
        """Render titles (if any) and rows; empty string when there is nothing."""
        if not self.titles and not self.rows:
            return ""

        widths = self._widths()
        lines: list[str] = []
        if self.titles:
            header = self._render_line(self.titles, widths)
            if self.fancy:
                header = f"{ANSI_BOLD_ON}{header}{ANSI_BOLD_OFF}"
            lines.append(header)
        for row in self.rows:
            lines.append(self._render_line(row, widths))
        return "\n".join(lines)


def format_error(message: str, fancy: bool = False) -> str:
    """Render an error line for the diagnostic stream."""
    if fancy:
        return f"{ANSI_RED}{ANSI_BOLD_ON}{ERROR_PREFIX}{ANSI_BOLD_OFF}{ANSI_COLOR_RESET} {message}"
    return f"{ERROR_PREFIX} {message}"
