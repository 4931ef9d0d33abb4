"""Tests for CSV export and JSON backup."""

import json

import pytest
from datetime import date
from decimal import Decimal

from src.models.finance import DailyExpense, PaymentMethod
from src.services.backup import (
    BACKUP_VERSION,
    UTF8_BOM,
    export_backup,
    export_expenses_csv,
    import_backup,
)
from src.services.storage import InMemoryLocalStore, LocalKeys


@pytest.fixture
def expenses():
    return [
        DailyExpense(date=date(2024, 3, 2), category="Food", note='Lunch, "big"',
                     amount=Decimal("12.50")),
        DailyExpense(date=date(2024, 3, 5), category="Fuel", amount=Decimal("40"),
                     payment_method=PaymentMethod.CARD),
        DailyExpense(date=date(2024, 2, 20), category="Food", amount=Decimal("8")),
    ]


class TestCsvExport:
    """Tests for the daily expense CSV."""

    def test_header_and_bom(self, expenses):
        text = export_expenses_csv([])
        assert text.startswith(UTF8_BOM)
        assert text[len(UTF8_BOM):] == '"date","category","note","payment_method","amount"\n'

    def test_fields_are_quoted(self, expenses):
        lines = export_expenses_csv(expenses).splitlines()
        assert len(lines) == 4
        assert lines[1] == '"2024-03-02","Food","Lunch, ""big""","cash","12.50"'
        assert lines[2] == '"2024-03-05","Fuel","","card","40"'

    def test_month_filter(self, expenses):
        lines = export_expenses_csv(expenses, month="2024-02").splitlines()
        assert len(lines) == 2
        assert lines[1].startswith('"2024-02-20"')

    def test_search_matches_category_and_note(self, expenses):
        assert len(export_expenses_csv(expenses, search="fuel").splitlines()) == 2
        assert len(export_expenses_csv(expenses, search="LUNCH").splitlines()) == 2
        assert len(export_expenses_csv(expenses, search="rent").splitlines()) == 1


class TestBackup:
    """Tests for exporting and restoring the local dataset."""

    def test_export_only_present_keys(self):
        local = InMemoryLocalStore()
        local.set_item(LocalKeys.SETTINGS, json.dumps({"salary": "100"}))
        local.set_item(LocalKeys.OUTBOX, json.dumps([{"kind": "create"}]))

        backup = export_backup(local)

        assert backup["version"] == BACKUP_VERSION
        assert backup["data"] == {LocalKeys.SETTINGS: {"salary": "100"}}

    def test_import_overwrites_present_keys_only(self):
        local = InMemoryLocalStore()
        local.set_item(LocalKeys.PAID, json.dumps({"bill:a:2024-03": True}))
        local.set_item(LocalKeys.SETTINGS, json.dumps({"salary": "1"}))

        written = import_backup(local, {
            "data": {LocalKeys.SETTINGS: {"salary": "2"}, "not_a_key": [1, 2]},
        })

        assert written == [LocalKeys.SETTINGS]
        assert json.loads(local.get_item(LocalKeys.SETTINGS)) == {"salary": "2"}
        assert json.loads(local.get_item(LocalKeys.PAID)) == {"bill:a:2024-03": True}
        assert local.get_item("not_a_key") is None

    def test_restore_round_trip(self):
        source = InMemoryLocalStore()
        source.set_item(LocalKeys.for_collection("bills"), json.dumps([{"id": "b1", "name": "Water"}]))

        target = InMemoryLocalStore()
        import_backup(target, export_backup(source))

        assert target.get_item(LocalKeys.for_collection("bills")) == source.get_item(
            LocalKeys.for_collection("bills")
        )

    @pytest.mark.parametrize("backup", [{}, {"data": []}, {"version": 1}])
    def test_rejects_backup_without_data(self, backup):
        with pytest.raises(ValueError):
            import_backup(InMemoryLocalStore(), backup)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
