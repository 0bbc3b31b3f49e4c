from buildix.features.usage.bypass import BypassList, configure_bypass, get_bypass, is_bypassed


def test_matches_email_or_user_id_case_insensitively():
    bypass = BypassList(["Ops@Buildix.dev", "user_7"])
    assert bypass.contains("someone", "ops@buildix.dev")
    assert bypass.contains("USER_7")
    assert not bypass.contains("user_8", "other@buildix.dev")
    assert not bypass.contains(None, None)


def test_blank_entries_are_ignored():
    bypass = BypassList(["", "  ", None])
    assert len(bypass) == 0
    assert not bypass.contains("", "")


def test_configure_replaces_process_list():
    configure_bypass(["ops@buildix.dev"])
    assert is_bypassed("x", "ops@buildix.dev")
    assert len(get_bypass()) == 1

    configure_bypass([])
    assert not is_bypassed("x", "ops@buildix.dev")
