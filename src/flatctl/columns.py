"""Selectable output columns for tabular reports."""

from dataclasses import dataclass

from flatctl.errors import UsageError

ALL_COLUMNS_KEYWORD = "all"
HELP_COLUMNS_KEYWORD = "help"


@dataclass(frozen=True)
class ColumnSpec:
    """One selectable report field.

    ``fields`` names the raw record fields the column is computed from;
    derived columns may need none of their own.
    """

    id: str
    title: str
    description: str
    default_visible: bool = True
    all_in_all_mode: bool = True
    fields: tuple[str, ...] = ()


def split_column_args(values: list[str] | None) -> list[str] | None:
    """Flatten repeated ``--columns=a,b`` values into one ordered id list."""
    if not values:
        return None
    ids: list[str] = []
    for value in values:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


def wants_column_help(requested: list[str] | None) -> bool:
    return bool(requested) and HELP_COLUMNS_KEYWORD in requested


def resolve_columns(
    specs: tuple[ColumnSpec, ...],
    requested: list[str] | None,
) -> list[ColumnSpec]:
    """Return the ordered column subset for a report.

    ``None`` selects the default columns in table order; ``["all"]``
    selects every column shown in all-mode; otherwise ids are taken in the
    order given.

    Raises:
        UsageError: If any requested id is unknown
    """
    if requested is None:
        return [spec for spec in specs if spec.default_visible]

    by_id = {spec.id: spec for spec in specs}
    selected: list[ColumnSpec] = []
    for column_id in requested:
        if column_id == ALL_COLUMNS_KEYWORD:
            selected.extend(spec for spec in specs if spec.all_in_all_mode)
            continue
        spec = by_id.get(column_id)
        if spec is None:
            available = ", ".join(spec.id for spec in specs)
            raise UsageError(f"Unknown column: {column_id}\nAvailable columns: {available}")
        selected.append(spec)

    if not selected:
        raise UsageError("No columns selected")
    return selected


def required_fields(columns: list[ColumnSpec]) -> list[str]:
    """Raw record fields needed to project ``columns``, without duplicates."""
    fields: list[str] = []
    for column in columns:
        for field_name in column.fields:
            if field_name not in fields:
                fields.append(field_name)
    return fields


def render_column_help(specs: tuple[ColumnSpec, ...]) -> str:
    """Describe the available columns for --show-columns."""
    width = max(len(spec.id) for spec in specs)
    lines = ["Available columns:"]
    for spec in specs:
        lines.append(f"  {spec.id.ljust(width)}  {spec.description}")
    lines.append(f"  {ALL_COLUMNS_KEYWORD.ljust(width)}  Show all columns")
    lines.append(f"  {HELP_COLUMNS_KEYWORD.ljust(width)}  Show available columns")
    return "\n".join(lines)
