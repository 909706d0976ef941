"""Pattern-based screening for user supplied SQL.

This is a blocklist and only a defense-in-depth layer: comments, alternate
quoting or catalog synonyms can get past it. It stops the obvious cases
before a statement reaches the database.
"""

import re
from functools import lru_cache

from schemakit.core.errors import ForbiddenError

RESTRICTED_MESSAGE = "Query contains restricted operations."

_DDL_VERB = re.compile(r"\b(?:CREATE|ALTER|DROP)\b", re.IGNORECASE)


@lru_cache
def _blocked_patterns(system_prefix: str) -> tuple[re.Pattern[str], ...]:
    prefix = re.escape(system_prefix)
    return (
        re.compile(r"\bDROP\s+DATABASE\b", re.IGNORECASE),
        re.compile(r"\bCREATE\s+DATABASE\b", re.IGNORECASE),
        re.compile(r"\bALTER\s+DATABASE\b", re.IGNORECASE),
        re.compile(r"\bpg_catalog\b", re.IGNORECASE),
        re.compile(r"\binformation_schema\b", re.IGNORECASE),
        re.compile(
            r"(?:^|\n|;)\s*(?:CREATE|ALTER|DROP|INSERT\s+INTO|UPDATE|DELETE\s+FROM|TRUNCATE)\s+"
            r"(?:TABLE\s+)?(?:IF\s+(?:NOT\s+)?EXISTS\s+)?(?:ONLY\s+)?"
            r"(?:[\"']?\w+[\"']?\.)?[\"']?" + prefix + r"\w*",
            re.IGNORECASE | re.MULTILINE,
        ),
        re.compile(
            r"\bRENAME\s+TO\s+(?:[\"']?\w+[\"']?\.)?[\"']?" + prefix + r"\w*",
            re.IGNORECASE,
        ),
    )


def sanitize_query(query: str, system_prefix: str = "_") -> str:
    for pattern in _blocked_patterns(system_prefix):
        if pattern.search(query):
            raise ForbiddenError(
                RESTRICTED_MESSAGE,
                details={"pattern": pattern.pattern},
                next_actions="Remove references to system tables, catalogs and database-level commands.",
            )
    return query


def contains_ddl(query: str) -> bool:
    return _DDL_VERB.search(query) is not None
