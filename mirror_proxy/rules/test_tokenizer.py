from mirror_proxy.rules.tokenizer import split_unescaped


def test_empty_and_blank_input_yield_no_entries():
    assert split_unescaped("") == []
    assert split_unescaped("   ") == []


def test_entries_are_trimmed_and_empty_entries_dropped():
    assert split_unescaped(" a.com , b.com,, ,c.com ") == ["a.com", "b.com", "c.com"]


def test_escaped_comma_is_kept_inside_entry():
    assert split_unescaped("X-A: 1\\, 2, X-B: 3") == ["X-A: 1, 2", "X-B: 3"]


def test_escaped_backslash_before_comma_still_splits():
    # "\\," is an escaped backslash followed by a real separator
    assert split_unescaped("a\\\\,b") == ["a\\\\", "b"]


def test_wildcard_escapes_pass_through_untouched():
    assert split_unescaped("a\\*b,c\\?d") == ["a\\*b", "c\\?d"]


def test_order_is_preserved():
    assert split_unescaped("z,y,x") == ["z", "y", "x"]
