import os


def detect_format(filepath: str) -> str:
    """
    Return 'yaml', 'json', or 'unknown'.

    The extension decides when it is one we know; otherwise the first
    non-blank character is sniffed, since JSON documents open with '{'.
    """
    _, ext = os.path.splitext(filepath.lower())

    if ext == ".json":
        return "json"
    if ext in (".yaml", ".yml"):
        return "yaml"

    try:
        with open(filepath, encoding="utf-8") as fh:
            head = fh.read(4096).lstrip()
    except (OSError, UnicodeDecodeError):
        return "unknown"
    if not head:
        return "unknown"
    if head.startswith("{"):
        return "json"
    if head.startswith(("---", "#", "resources:", "vars:", "settings:")):
        return "yaml"
    return "unknown"
