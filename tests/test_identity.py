from decentralhire.core.identity import as_text, event_fingerprint, lower_address


def test_as_text_strips_and_encodes_booleans() -> None:
    assert as_text("  0xA ") == "0xA"
    assert as_text(None) == ""
    assert as_text(True) == "true"
    assert as_text(42) == "42"


def test_lower_address_tolerates_none() -> None:
    assert lower_address("0xAbC") == "0xabc"
    assert lower_address(None) == ""


def test_event_fingerprint_ignores_processed_flag_and_key_order() -> None:
    first = event_fingerprint({"name": "JobPostingCreatedEvent", "_contractAddress": "0xB", "processed": False})
    second = event_fingerprint({"_contractAddress": "0xB", "name": "JobPostingCreatedEvent", "processed": True})
    other = event_fingerprint({"name": "JobPostingClosedEvent", "_contractAddress": "0xB"})

    assert first == second
    assert first != other
    assert len(first) == 64
