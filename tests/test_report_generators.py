import datetime

from library_system import LibraryStatistics
from report_generators import HtmlReportGenerator, LocalizationService, TextReportGenerator

STATS = LibraryStatistics(total_items=3, available_items=2, borrowed_items=1, loanable_items=2, total_members=2,
                          active_borrowings=1, recent_titles=("Effective Java", "Dune", "<Heat>"))
OVERDUE = [("Effective Java", datetime.date(2024, 1, 1), 4, 2000)]


def test_localization_lookup_and_fallbacks():
    en = LocalizationService("en")
    assert en.get_message("report.total_items", 3) == "Total Items: 3"
    assert en.get_message("missing.key") == "[missing.key]"
    assert LocalizationService("persian").language == "fa"
    assert LocalizationService("xx").language == "en"


def test_localization_formatting():
    assert LocalizationService("en").format_date(datetime.date(2024, 1, 5)) == "Jan 5, 2024"
    assert LocalizationService("de").format_date(datetime.date(2024, 1, 5)) == "05.01.2024"
    assert LocalizationService("fr").format_number(2000) == "2000.00"


def test_text_report():
    report = TextReportGenerator().generate(STATS, OVERDUE)
    assert report.splitlines()[1] == "LIBRARY REPORT"
    assert "Borrowed: 1" in report
    assert "Latest 3 items:" in report
    assert "  - Dune" in report
    assert "  - Effective Java - Due: Jan 1, 2024 (Overdue: 4 days, Fine: 2000.00)" in report


def test_text_report_without_overdue_section():
    report = TextReportGenerator(LocalizationService("fr")).generate(STATS, [])
    assert "RAPPORT DE LA BIBLIOTHÈQUE" in report
    assert "EN RETARD" not in report


def test_html_report_escapes_values():
    report = HtmlReportGenerator().generate(STATS, [("<Heat>", datetime.date(2024, 1, 1), 1, 1000)])
    assert "<h1>LIBRARY REPORT</h1>" in report
    assert "&lt;Heat&gt;" in report
    assert "<td>1000.00</td>" in report
