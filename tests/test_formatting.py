from campfire.formatting import format_bytes


def test_format_bytes():
    assert format_bytes(0) == "0 B"
    assert format_bytes(1023) == "1023 B"
    assert format_bytes(1024) == "1.0 KB"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5.0 MB"
    assert format_bytes(1073741824) == "1.0 GB"
    assert format_bytes(1024 ** 4) == "1.0 TB"
    assert format_bytes(1024 ** 6) == "1.0 EB"
