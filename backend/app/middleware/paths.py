"""
EdgeGate Backend — Path Classifier
==================================

What:  Sorts a request path into one of four access classes.
Why:   Everything is protected unless listed, so a newly added page is
       private until someone deliberately makes it public.
How:   Strip the locale prefix, then test the lists in order. First match
       wins. Lists are short, so a linear scan is fine.

Order:
    1. API_PUBLIC  path starts with an API_PUBLIC_PREFIXES entry
    2. AUTH_ONLY   exact match or entry + "/" prefix in AUTH_PAGES
    3. PUBLIC      exact match or entry + "/" prefix in PUBLIC_PATHS
    4. PROTECTED   everything else

    AUTH_PAGES is tested before PUBLIC_PATHS because the sign-in pages sit in
    both lists; AUTH_ONLY is still reachable without a session.

Note the root entry "/" in PUBLIC_PATHS only matches "/" itself: the prefix
test is entry + "/" = "//", which no normalised path starts with.
"""

import enum
from typing import Sequence

from app.config import settings
from app.middleware.locale import LocaleResolver, locale_resolver


class PathClassification(str, enum.Enum):
    PUBLIC = "public"
    AUTH_ONLY = "auth_only"
    PROTECTED = "protected"
    API_PUBLIC = "api_public"


def _matches(path: str, entries: Sequence[str]) -> bool:
    return any(path == entry or path.startswith(entry + "/") for entry in entries)


class PathClassifier:

    def __init__(
        self,
        resolver: LocaleResolver,
        public_paths: Sequence[str],
        auth_pages: Sequence[str],
        api_public_prefixes: Sequence[str],
    ):
        self.resolver = resolver
        self.public_paths = list(public_paths)
        self.auth_pages = list(auth_pages)
        self.api_public_prefixes = list(api_public_prefixes)

    def classify(self, path: str) -> PathClassification:
        stripped = self.resolver.strip_locale(path)
        if any(stripped.startswith(prefix) for prefix in self.api_public_prefixes):
            return PathClassification.API_PUBLIC
        if _matches(stripped, self.auth_pages):
            return PathClassification.AUTH_ONLY
        if _matches(stripped, self.public_paths):
            return PathClassification.PUBLIC
        return PathClassification.PROTECTED


# Singleton built from settings
path_classifier = PathClassifier(
    resolver=locale_resolver,
    public_paths=settings.public_paths_list,
    auth_pages=settings.auth_pages_list,
    api_public_prefixes=settings.api_public_prefixes_list,
)
