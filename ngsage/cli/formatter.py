from rich.table import Table

SEVERITY_STYLES = {"error": "red", "warning": "yellow", "info": "blue"}


def format_table(data, columns, title=None):
    """Formats data into a rich table."""
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    for row in data:
        table.add_row(*[colorize_severity(item) if col == "Severity" else str(item) for col, item in zip(columns, row)])
    return table


def colorize_severity(severity):
    style = SEVERITY_STYLES.get(str(severity))
    return f"[{style}]{severity}[/{style}]" if style else str(severity)
