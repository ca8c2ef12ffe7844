import typing as t


def format_bytes(size: float):
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(size) < 1024 or unit == "GiB":
            break
        size /= 1024
    if unit == "B":
        return f"{int(size)} {unit}"
    return f"{size:.1f} {unit}"


def format_columns(data: t.Mapping[str, t.Any], sep="\t"):
    """Format :param:`data` as two columns, padding keys to the same width."""
    if not data:
        return ""
    width = max(len(key) for key in data)
    return "\n".join(f"{key.ljust(width)}{sep}{value}" for key, value in data.items())
