"""
report_generators.py

Localised text and HTML renderers for library summary reports.

A Library receives one generator at construction time; the generator only
formats what it is handed and never reads library state itself.
"""

from __future__ import annotations
import datetime
import html
import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("LibrarySystem.reports")

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "report.title": "LIBRARY REPORT",
        "report.total_items": "Total Items: {}",
        "report.available": "Available: {}",
        "report.borrowed": "Borrowed: {}",
        "report.members": "Members: {}",
        "report.active_borrowings": "Active borrowings: {}",
        "report.recent": "Latest {} items:",
        "report.overdue": "OVERDUE ITEMS:",
        "report.overdue_line": "{} - Due: {} (Overdue: {} days, Fine: {})",
    },
    "de": {
        "report.title": "BIBLIOTHEKSBERICHT",
        "report.total_items": "Medien gesamt: {}",
        "report.available": "Verfügbar: {}",
        "report.borrowed": "Ausgeliehen: {}",
        "report.members": "Mitglieder: {}",
        "report.active_borrowings": "Aktive Ausleihen: {}",
        "report.recent": "Neueste {} Medien:",
        "report.overdue": "ÜBERFÄLLIGE MEDIEN:",
        "report.overdue_line": "{} - Fällig: {} (Überfällig: {} Tage, Gebühr: {})",
    },
    "fr": {
        "report.title": "RAPPORT DE LA BIBLIOTHÈQUE",
        "report.total_items": "Documents au total : {}",
        "report.available": "Disponibles : {}",
        "report.borrowed": "Empruntés : {}",
        "report.members": "Membres : {}",
        "report.active_borrowings": "Emprunts en cours : {}",
        "report.recent": "{} derniers documents :",
        "report.overdue": "DOCUMENTS EN RETARD :",
        "report.overdue_line": "{} - Échéance : {} (Retard : {} jours, Amende : {})",
    },
    "fa": {
        "report.title": "گزارش کتابخانه",
        "report.total_items": "تعداد کل اقلام: {}",
        "report.available": "موجود: {}",
        "report.borrowed": "امانت داده شده: {}",
        "report.members": "اعضا: {}",
        "report.active_borrowings": "امانت‌های فعال: {}",
        "report.recent": "{} قلم اخیر:",
        "report.overdue": "اقلام دارای تأخیر:",
        "report.overdue_line": "{} - سررسید: {} (تأخیر: {} روز، جریمه: {})",
    },
}

LANGUAGE_ALIASES = {"persian": "fa", "english": "en", "german": "de", "french": "fr"}

# (title, due date, days overdue, fine)
OverdueLine = Tuple[str, datetime.date, int, object]


class LocalizationService:
    """Message lookup plus date/number formatting for one language."""

    def __init__(self, language: str = "en"):
        lang = (language or "en").strip().lower()
        lang = LANGUAGE_ALIASES.get(lang, lang)
        if lang not in MESSAGES:
            logger.warning("No messages for language %r, falling back to English", language)
            lang = "en"
        self.language = lang
        self._messages = MESSAGES[lang]

    def get_message(self, key: str, *params) -> str:
        pattern = self._messages.get(key)
        if pattern is None:
            return f"[{key}]"
        return pattern.format(*params)

    def format_date(self, value: datetime.date) -> str:
        if self.language == "en":
            return value.strftime("%b %d, %Y").replace(" 0", " ")
        return value.strftime("%d.%m.%Y")

    def format_number(self, number) -> str:
        return f"{float(number):.2f}"


class TextReportGenerator:
    """Plain-text summary report."""

    def __init__(self, localization: Optional[LocalizationService] = None, rule_width: int = 50):
        self.localization = localization or LocalizationService()
        self.rule_width = rule_width

    def generate(self, stats, overdue: List[OverdueLine]) -> str:
        """
        Render a summary report.

        Args:
            stats: a LibraryStatistics snapshot.
            overdue: (title, due date, days overdue, fine) for every overdue record.
        """
        t = self.localization.get_message
        lines = [
            "=" * self.rule_width,
            t("report.title"),
            "=" * self.rule_width,
            "",
            t("report.total_items", stats.total_items),
            t("report.available", stats.available_items),
            t("report.borrowed", stats.borrowed_items),
            t("report.members", stats.total_members),
            t("report.active_borrowings", stats.active_borrowings),
            "",
            t("report.recent", len(stats.recent_titles)),
        ]
        lines.extend(f"  - {title}" for title in stats.recent_titles)
        if overdue:
            lines.append("")
            lines.append(t("report.overdue"))
            lines.append("-" * 40)
            for title, due, days, fine in overdue:
                lines.append("  - " + t("report.overdue_line", title, self.localization.format_date(due), days,
                                        self.localization.format_number(fine)))
        return "\n".join(lines) + "\n"


class HtmlReportGenerator(TextReportGenerator):
    """The same report as a minimal HTML fragment; values are escaped."""

    def generate(self, stats, overdue: List[OverdueLine]) -> str:
        t = self.localization.get_message
        parts = [
            f"<h1>{html.escape(t('report.title'))}</h1>",
            "<ul>",
            f"<li>{html.escape(t('report.total_items', stats.total_items))}</li>",
            f"<li>{html.escape(t('report.available', stats.available_items))}</li>",
            f"<li>{html.escape(t('report.borrowed', stats.borrowed_items))}</li>",
            f"<li>{html.escape(t('report.members', stats.total_members))}</li>",
            f"<li>{html.escape(t('report.active_borrowings', stats.active_borrowings))}</li>",
            "</ul>",
        ]
        if overdue:
            parts.append(f"<h2>{html.escape(t('report.overdue'))}</h2>")
            parts.append("<table>")
            for title, due, days, fine in overdue:
                parts.append(
                    f"<tr><td>{html.escape(str(title))}</td><td>{html.escape(self.localization.format_date(due))}</td>"
                    f"<td>{days}</td><td>{html.escape(self.localization.format_number(fine))}</td></tr>")
            parts.append("</table>")
        return "\n".join(parts)
