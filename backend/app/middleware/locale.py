"""
EdgeGate Backend — Locale Resolver
==================================

What:  Decides whether a page path carries a locale prefix and, if not,
       which locale to redirect it to.
Why:   Every page lives under /{locale}/...; bare paths are redirected once
       so that links, caches and crawlers see a single canonical URL.
How:   Pure functions over the configured locale list. No I/O.
Who:   Used by AdmissionMiddleware (page branch) and PathClassifier.

Detection rule (Accept-Language):
    The header is lowercased and the configured locales are scanned in
    declaration order; the first one that appears anywhere in the header
    wins. q-weights are ignored, so "fr;q=0.1, en;q=0.9" picks whichever
    of fr/en is declared first. Falls back to the default locale.

Examples (locales = en, fr, de):
    has_locale_prefix("/en")           → True
    has_locale_prefix("/en/pricing")   → True
    has_locale_prefix("/english")      → False
    strip_locale("/fr/login")          → "/login"
    strip_locale("/fr")                → "/"
    resolve("/pricing", "de-DE,de")    → "/de/pricing"
"""

from typing import List, Optional, Sequence

from app.config import settings


class LocaleResolver:
    """Locale prefix handling for a fixed list of locales."""

    def __init__(self, locales: Sequence[str], default_locale: str):
        self.locales: List[str] = list(locales)
        self.default_locale = default_locale
        # Longest first so strip_locale removes "zh-tw" before "zh"
        self._by_length = sorted(self.locales, key=len, reverse=True)

    def _matching_locale(self, path: str) -> Optional[str]:
        for locale in self._by_length:
            prefix = f"/{locale}"
            if path == prefix or path.startswith(prefix + "/"):
                return locale
        return None

    def has_locale_prefix(self, path: str) -> bool:
        return self._matching_locale(path) is not None

    def detect_locale(self, accept_language: Optional[str]) -> str:
        header = (accept_language or "").lower()
        for locale in self.locales:
            if locale.lower() in header:
                return locale
        return self.default_locale

    def resolve(
        self,
        path: str,
        accept_language: Optional[str] = None,
        query: str = "",
    ) -> Optional[str]:
        """
        Redirect target for a bare path, or None when already prefixed.

        The query string (without "?") is carried over unchanged.
        """
        if self.has_locale_prefix(path):
            return None
        locale = self.detect_locale(accept_language)
        target = f"/{locale}{path}" if path != "/" else f"/{locale}"
        if query:
            target = f"{target}?{query}"
        return target

    def strip_locale(self, path: str) -> str:
        locale = self._matching_locale(path)
        if locale is None:
            return path
        rest = path[len(locale) + 1:]
        return rest or "/"


# Singleton built from settings
locale_resolver = LocaleResolver(settings.locales_list, settings.default_locale)
