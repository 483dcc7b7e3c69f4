"""Tests for external transaction/reference identifiers."""

import re

from app.utils.ids import reference_id, transaction_id

TX_PATTERN = re.compile(r"^TX\d{13}[0-9A-F]{8}$")


def test_transaction_id_format():
    assert TX_PATTERN.match(transaction_id())


def test_reference_id_prefix():
    ref = reference_id()

    assert ref.startswith("REF")
    assert ref[3:16].isdigit()


def test_ids_do_not_repeat():
    assert len({transaction_id() for _ in range(200)}) == 200
