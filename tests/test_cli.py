"""Tests for CLI commands."""

from decimal import Decimal

import pytest

from budgetledger.cli.main import cli


@pytest.fixture
def budgets_csv(fixtures_dir):
    return str(fixtures_dir / "budgets.csv")


@pytest.fixture
def purchases_csv(fixtures_dir):
    return str(fixtures_dir / "purchases.csv")


def test_help_lists_commands(cli_runner):
    """Test help output does not need a database."""
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("add", "entries", "budget", "import", "export", "summary", "history"):
        assert command in result.output


def test_unopenable_database(cli_runner, tmp_path):
    """Test a database path that cannot be opened fails cleanly."""
    db_path = tmp_path / "missing" / "ledger.db"
    result = cli_runner.invoke(cli, ["--db-path", str(db_path), "entries"])
    assert result.exit_code == 1
    assert "Error:" in result.output


class TestEntryCommands:
    """Tests for add, edit, delete and entries."""

    def test_add_and_list(self, run_cli):
        """Test adding a purchase and listing it."""
        result = run_cli("add", "--amount", "12.50", "--category", "Groceries", "--note", "milk")
        assert result.exit_code == 0
        assert "Added purchase" in result.output
        assert "Date: 2024-10-15" in result.output

        result = run_cli("entries")
        assert result.exit_code == 0
        assert "milk" in result.output
        assert "1 purchases, total $12.50" in result.output

    def test_add_rejects_bad_amounts(self, run_cli):
        """Test unparseable and non-positive amounts."""
        result = run_cli("add", "--amount", "abc", "--category", "Groceries")
        assert result.exit_code == 1
        assert "Invalid amount format" in result.output

        result = run_cli("add", "--amount", "0", "--category", "Groceries")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_edit_and_delete(self, run_cli, reopen):
        """Test editing then deleting a purchase by id."""
        run_cli("add", "--amount", "12.50", "--category", "Groceries")
        entry_id = reopen().entries()[0].id

        result = run_cli("edit", entry_id, "--amount", "20", "--category", "Dining")
        assert result.exit_code == 0
        assert f"Updated purchase {entry_id}" in result.output
        entry = reopen().get_entry(entry_id)
        assert entry.amount == Decimal("20.00")
        assert entry.category == "Dining"

        result = run_cli("delete", entry_id, "--yes")
        assert result.exit_code == 0
        assert f"Deleted purchase {entry_id}" in result.output
        assert "No purchases found." in run_cli("entries").output

    def test_edit_unknown_entry(self, run_cli):
        """Test editing a missing id fails."""
        result = run_cli("edit", "nope", "--amount", "5")
        assert result.exit_code == 1
        assert "Purchase entry 'nope' not found" in result.output

    def test_entries_period_filters(self, run_cli):
        """Test --period and explicit date filters."""
        run_cli("add", "--amount", "10", "--category", "Books", "--date", "2024-09-20")
        run_cli("add", "--amount", "30", "--category", "Books", "--date", "2024-10-02")

        result = run_cli("entries", "--period", "last-month")
        assert "2024-09-20" in result.output
        assert "2024-10-02" not in result.output

        result = run_cli("entries", "--start-date", "2024-09-01")
        assert "2 purchases, total $40.00" in result.output

        result = run_cli("entries", "--start-date", "2024-10-05", "--end-date", "2024-10-01")
        assert result.exit_code == 1
        assert "after end date" in result.output

    @pytest.mark.parametrize(
        "args",
        [
            ("--period", "fortnight"),
            ("--period", "this-month", "--start-date", "2024-10-01"),
            ("--start-date", "not a date"),
        ],
    )
    def test_entries_rejects_bad_periods(self, run_cli, args):
        """Test invalid period selectors exit with an error."""
        result = run_cli("entries", *args)
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestBudgetCommands:
    """Tests for the budget group."""

    def test_set_and_show(self, run_cli):
        """Test setting, replacing and showing a budget."""
        result = run_cli("budget", "set", "Groceries", "400")
        assert result.exit_code == 0
        assert "Budget for 'Groceries' in 2024-10: $400.00" in result.output

        # Same category in another spelling replaces the amount
        result = run_cli("budget", "set", "  groceries ", "450")
        assert "Budget for 'Groceries' in 2024-10: $450.00" in result.output

        result = run_cli("budget", "show")
        assert "Groceries" in result.output
        assert "450.00" in result.output

    def test_past_month_rolls_forward(self, run_cli):
        """Test a budget set for last month is copied into this month."""
        run_cli("budget", "set", "Rent", "1200", "--month", "9", "--year", "2024")

        result = run_cli("budget", "show", "--month", "9", "--year", "2024")
        assert "(historical)" in result.output

        result = run_cli("budget", "show")
        assert "Rent" in result.output
        assert "(historical)" not in result.output

    def test_delete_uncategorizes_entries(self, run_cli, reopen):
        """Test deleting a category moves its purchases to Uncategorized."""
        run_cli("budget", "set", "Groceries", "400")
        run_cli("add", "--amount", "25", "--category", "Groceries", "--date", "2024-08-01")

        result = run_cli("budget", "delete", "groceries", "--yes")
        assert result.exit_code == 0
        assert "Purchases moved to Uncategorized: 1" in result.output

        ledger = reopen()
        assert [e.category for e in ledger.entries()] == ["Uncategorized"]
        assert "No budgets for 2024-10." in run_cli("budget", "show").output

    def test_delete_unknown_category(self, run_cli):
        """Test deleting a category with nothing recorded fails."""
        result = run_cli("budget", "delete", "Travel", "--yes")
        assert result.exit_code == 1
        assert "has no budget or entries" in result.output


class TestSummaryCommands:
    """Tests for summary, history and stats."""

    def test_summary(self, run_cli):
        """Test the monthly overview."""
        run_cli("budget", "set", "Groceries", "400")
        run_cli("add", "--amount", "50", "--category", "Groceries")

        result = run_cli("summary")
        assert result.exit_code == 0
        assert "Budget overview for 2024-10" in result.output
        assert "Spent:     $50.00" in result.output
        assert "Remaining: $350.00" in result.output

    def test_history(self, run_cli):
        """Test the period history labels its window."""
        run_cli("budget", "set", "Groceries", "300")
        result = run_cli("history", "--period", "last-month")
        assert result.exit_code == 0
        assert "History for last-month (2024-09-01 to 2024-09-30)" in result.output

    def test_stats(self, run_cli):
        """Test whole-ledger statistics."""
        run_cli("add", "--amount", "50", "--category", "Groceries")
        result = run_cli("stats")
        assert result.exit_code == 0
        assert "Purchases:   1" in result.output
        assert "Spending exceeds the recorded budget." in result.output


class TestImportCommands:
    """Tests for CSV import commands."""

    def test_import_budgets_then_purchases(self, run_cli, reopen, budgets_csv, purchases_csv):
        """Test a budget import followed by a mapped purchase import."""
        result = run_cli("import", "budgets", budgets_csv, "--create-new")
        assert result.exit_code == 0
        assert "Parsed 3 rows totaling $1,950.00" in result.output
        assert "New categories: Groceries, Rent" in result.output
        assert "Imported: 3 rows" in result.output

        result = run_cli("import", "purchases", purchases_csv)
        assert result.exit_code == 1
        assert "Use --map" in result.output
        assert reopen().entries() == []

        result = run_cli("import", "purchases", purchases_csv, "--map", "Food=Groceries")
        assert result.exit_code == 0
        assert "Parsed 3 rows totaling $1,257.20" in result.output
        assert "Imported: 3 rows" in result.output
        assert "Import completed with 1 warnings" in result.output
        assert "Row 5: invalid amount" in result.output

        categories = sorted(e.category for e in reopen().entries())
        assert categories == ["Groceries", "Groceries", "Rent"]

    def test_import_with_new_budget(self, run_cli, reopen, purchases_csv):
        """Test --new-budget gives a created category a starting budget."""
        result = run_cli(
            "import", "purchases", purchases_csv, "--create-new", "--new-budget", "Food=100"
        )
        assert result.exit_code == 0
        assert "New categories: Food, Groceries, Rent" in result.output

        allocations = reopen().allocations_for_month(10, 2024)
        assert [(a.category, a.amount) for a in allocations] == [("Food", Decimal("100.00"))]

    def test_import_rejects_malformed_pairs(self, run_cli, purchases_csv):
        """Test --map values must be SOURCE=TARGET."""
        result = run_cli("import", "purchases", purchases_csv, "--map", "Food")
        assert result.exit_code == 1
        assert "--map expects NAME=VALUE" in result.output

    def test_import_wrong_header(self, run_cli, budgets_csv):
        """Test importing a budget file as purchases fails on the header."""
        result = run_cli("import", "purchases", budgets_csv)
        assert result.exit_code == 1
        assert "Expected header" in result.output

    def test_import_missing_file(self, run_cli, tmp_path):
        """Test a missing file is rejected by argument validation."""
        result = run_cli("import", "budgets", str(tmp_path / "nope.csv"))
        assert result.exit_code == 2


class TestExportCommand:
    """Tests for CSV export."""

    def test_export_to_stdout(self, run_cli):
        """Test exporting purchases prints CSV."""
        run_cli("add", "--amount", "12.5", "--category", "Books", "--date", "2024-10-01")
        result = run_cli("export")
        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "Date,Amount,Category,Note",
            "2024-10-01,12.50,Books,",
        ]

    def test_export_to_directory(self, run_cli, tmp_path):
        """Test exporting into a directory uses the default file name."""
        run_cli("budget", "set", "Rent", "1200")
        result = run_cli("export", "--type", "allocations", "-o", str(tmp_path))
        assert result.exit_code == 0

        path = tmp_path / "budget_export_all-time_2024-10-15.csv"
        assert f"Exported to {path}" in result.output
        assert path.read_text(encoding="utf-8").splitlines() == [
            "Year,Month,Category,Amount,IsHistorical",
            "2024,10,Rent,1200.00,false",
        ]

    def test_export_rejects_bad_options(self, run_cli):
        """Test invalid formatting options exit with an error."""
        result = run_cli("export", "--decimal-places", "-1")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_export_unencodable_category_reports_error(self, run_cli, tmp_path):
        """Test a category the chosen encoding cannot hold exits cleanly."""
        run_cli("add", "--amount", "3", "--category", "Café", "--date", "2024-10-01")
        result = run_cli("export", "--encoding", "ascii", "-o", str(tmp_path))
        assert result.exit_code == 1
        assert "Cannot encode export as ascii" in result.output
        assert list(tmp_path.iterdir()) == []


def test_reset_requires_confirmation(run_cli, reopen):
    """Test reset deletes everything only with --yes."""
    run_cli("add", "--amount", "5", "--category", "Coffee")

    result = run_cli("reset")
    assert result.exit_code == 1
    assert len(reopen().entries()) == 1

    result = run_cli("reset", "--yes")
    assert result.exit_code == 0
    assert "All purchases and budgets deleted." in result.output
    assert reopen().entries() == []
