_UNIT = 1024
_PREFIXES = "KMGTPE"


def format_bytes(size: int) -> str:
    """Human-readable byte count with binary units: 1536 -> '1.5 KB'."""
    if size < _UNIT:
        return f"{size} B"
    div, exp = _UNIT, 0
    n = size // _UNIT
    while n >= _UNIT and exp < len(_PREFIXES) - 1:
        div *= _UNIT
        exp += 1
        n //= _UNIT
    return f"{size / div:.1f} {_PREFIXES[exp]}B"
