"""Function catalog powering function suggestions per SQL dialect."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence, Tuple

from .matching import is_match
from .models import Candidate, CandidateKind

AGGREGATE = "aggregate"
WINDOW = "window"


@dataclass(frozen=True, slots=True)
class FunctionEntry:
    """Description of a SQL function surfaced to the editor."""

    name: str
    category: str
    signature: str | None = None

    @property
    def insert_text(self) -> str:
        if self.category == WINDOW:
            return f"{self.name}() OVER ()"
        return f"{self.name}()"


class FunctionCatalog:
    """Returns function candidates, optionally restricted to some categories."""

    def __init__(self, entries: Sequence[FunctionEntry]) -> None:
        self._entries = tuple(entries)

    @classmethod
    def default(cls) -> "FunctionCatalog":
        return cls.for_dialect("postgres")

    @classmethod
    def for_dialect(cls, dialect: str) -> "FunctionCatalog":
        groups = _POSTGRES_FUNCTIONS if dialect in {"postgres", "postgresql"} else _MYSQL_FUNCTIONS
        return cls(_entries(groups))

    @property
    def entries(self) -> Tuple[FunctionEntry, ...]:
        return self._entries

    def names(self, category: str | None = None) -> list[str]:
        return [entry.name for entry in self._entries if category is None or entry.category == category]

    def candidates(self, token: str, categories: Iterable[str] | None = None) -> list[Candidate]:
        wanted = set(categories) if categories is not None else None
        candidates: list[Candidate] = []
        for entry in self._entries:
            if wanted is not None and entry.category not in wanted:
                continue
            if not is_match(token, entry.name):
                continue
            candidates.append(
                Candidate(
                    kind=CandidateKind.FUNCTION,
                    insert_text=entry.insert_text,
                    label=entry.name,
                    detail=entry.signature or entry.category.capitalize(),
                )
            )
        return candidates


def _entries(groups: Mapping[str, Sequence[str]]) -> Tuple[FunctionEntry, ...]:
    entries: list[FunctionEntry] = []
    for category, names in groups.items():
        for name in names:
            entries.append(FunctionEntry(name=name, category=category, signature=_SIGNATURES.get(name)))
    return tuple(entries)


_SIGNATURES: Mapping[str, str] = {
    "COUNT": "COUNT(expression)",
    "SUM": "SUM(numeric)",
    "AVG": "AVG(numeric)",
    "COALESCE": "COALESCE(value, ...)",
    "NULLIF": "NULLIF(a, b)",
    "DATE_TRUNC": "DATE_TRUNC('unit', timestamp)",
    "DATE_FORMAT": "DATE_FORMAT(date, format)",
    "SUBSTRING": "SUBSTRING(text, start, length)",
    "STRING_AGG": "STRING_AGG(text, delimiter)",
    "GROUP_CONCAT": "GROUP_CONCAT(expr SEPARATOR sep)",
    "LAG": "LAG(value, offset)",
    "LEAD": "LEAD(value, offset)",
}

_MYSQL_FUNCTIONS: Mapping[str, Tuple[str, ...]] = {
    "string": (
        "CONCAT", "CONCAT_WS", "SUBSTRING", "SUBSTR", "LEFT", "RIGHT", "LENGTH", "CHAR_LENGTH",
        "UPPER", "LOWER", "TRIM", "LTRIM", "RTRIM", "REPLACE", "REVERSE", "REPEAT", "SPACE",
        "LPAD", "RPAD", "INSTR", "LOCATE", "POSITION", "FORMAT", "FIELD", "FIND_IN_SET",
    ),
    "numeric": (
        "ABS", "CEIL", "CEILING", "FLOOR", "ROUND", "TRUNCATE", "MOD", "POW", "POWER", "SQRT",
        "EXP", "LOG", "LOG10", "LOG2", "LN", "PI", "RAND", "SIGN", "GREATEST", "LEAST",
    ),
    "date": (
        "NOW", "CURDATE", "CURTIME", "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP", "DATE",
        "TIME", "YEAR", "MONTH", "DAY", "HOUR", "MINUTE", "SECOND", "DAYNAME", "MONTHNAME",
        "DAYOFWEEK", "DAYOFMONTH", "DAYOFYEAR", "WEEK", "WEEKDAY", "QUARTER", "DATE_ADD",
        "DATE_SUB", "DATEDIFF", "TIMEDIFF", "TIMESTAMPDIFF", "DATE_FORMAT", "TIME_FORMAT",
        "STR_TO_DATE", "FROM_UNIXTIME", "UNIX_TIMESTAMP", "LAST_DAY",
    ),
    AGGREGATE: (
        "COUNT", "SUM", "AVG", "MIN", "MAX", "GROUP_CONCAT", "STD", "STDDEV", "VARIANCE",
        "BIT_AND", "BIT_OR", "BIT_XOR", "JSON_ARRAYAGG", "JSON_OBJECTAGG",
    ),
    WINDOW: (
        "ROW_NUMBER", "RANK", "DENSE_RANK", "NTILE", "LEAD", "LAG", "FIRST_VALUE", "LAST_VALUE",
        "NTH_VALUE", "PERCENT_RANK", "CUME_DIST",
    ),
    "json": (
        "JSON_EXTRACT", "JSON_UNQUOTE", "JSON_SET", "JSON_INSERT", "JSON_REPLACE", "JSON_REMOVE",
        "JSON_CONTAINS", "JSON_CONTAINS_PATH", "JSON_KEYS", "JSON_LENGTH", "JSON_DEPTH",
        "JSON_TYPE", "JSON_VALID", "JSON_ARRAY", "JSON_OBJECT", "JSON_MERGE_PATCH",
        "JSON_SEARCH", "JSON_PRETTY",
    ),
    "control": ("IF", "IFNULL", "NULLIF", "COALESCE", "ISNULL"),
    "conversion": ("CAST", "CONVERT", "BINARY"),
    "encryption": ("MD5", "SHA1", "SHA2", "AES_ENCRYPT", "AES_DECRYPT", "UUID", "UUID_SHORT"),
    "info": (
        "DATABASE", "USER", "CURRENT_USER", "VERSION", "CONNECTION_ID", "LAST_INSERT_ID",
        "ROW_COUNT", "FOUND_ROWS",
    ),
}

_POSTGRES_FUNCTIONS: Mapping[str, Tuple[str, ...]] = {
    "string": (
        "CONCAT", "CONCAT_WS", "SUBSTRING", "SUBSTR", "LEFT", "RIGHT", "LENGTH", "CHAR_LENGTH",
        "UPPER", "LOWER", "TRIM", "LTRIM", "RTRIM", "REPLACE", "REVERSE", "REPEAT", "LPAD",
        "RPAD", "POSITION", "STRPOS", "SPLIT_PART", "INITCAP", "OVERLAY", "TRANSLATE",
        "REGEXP_REPLACE", "REGEXP_MATCH", "REGEXP_MATCHES", "REGEXP_SPLIT_TO_TABLE",
        "REGEXP_SPLIT_TO_ARRAY", "STRING_TO_ARRAY", "ARRAY_TO_STRING", "FORMAT",
    ),
    "numeric": (
        "ABS", "CEIL", "CEILING", "FLOOR", "ROUND", "TRUNC", "MOD", "POW", "POWER", "SQRT",
        "EXP", "LOG", "LN", "PI", "RANDOM", "SIGN", "GREATEST", "LEAST", "DIV", "SCALE",
        "WIDTH_BUCKET",
    ),
    "date": (
        "NOW", "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP", "LOCALTIME",
        "LOCALTIMESTAMP", "EXTRACT", "DATE_PART", "DATE_TRUNC", "AGE", "MAKE_DATE", "MAKE_TIME",
        "MAKE_TIMESTAMP", "MAKE_INTERVAL", "TO_TIMESTAMP", "TO_DATE", "TO_CHAR",
        "CLOCK_TIMESTAMP", "STATEMENT_TIMESTAMP", "TRANSACTION_TIMESTAMP", "TIMEOFDAY",
        "ISFINITE",
    ),
    AGGREGATE: (
        "COUNT", "SUM", "AVG", "MIN", "MAX", "STRING_AGG", "ARRAY_AGG", "BOOL_AND", "BOOL_OR",
        "BIT_AND", "BIT_OR", "JSON_AGG", "JSONB_AGG", "JSON_OBJECT_AGG", "JSONB_OBJECT_AGG",
        "XMLAGG", "PERCENTILE_CONT", "PERCENTILE_DISC", "MODE", "CORR", "COVAR_POP",
        "COVAR_SAMP",
    ),
    WINDOW: (
        "ROW_NUMBER", "RANK", "DENSE_RANK", "NTILE", "LEAD", "LAG", "FIRST_VALUE", "LAST_VALUE",
        "NTH_VALUE", "PERCENT_RANK", "CUME_DIST",
    ),
    "json": (
        "JSON_EXTRACT_PATH", "JSON_EXTRACT_PATH_TEXT", "JSONB_EXTRACT_PATH",
        "JSONB_EXTRACT_PATH_TEXT", "JSON_BUILD_ARRAY", "JSON_BUILD_OBJECT", "JSONB_BUILD_ARRAY",
        "JSONB_BUILD_OBJECT", "JSON_OBJECT", "JSONB_OBJECT", "JSON_ARRAY_ELEMENTS",
        "JSONB_ARRAY_ELEMENTS", "JSON_EACH", "JSONB_EACH", "JSONB_SET", "JSONB_INSERT",
        "JSONB_PRETTY",
    ),
    "array": (
        "ARRAY_APPEND", "ARRAY_CAT", "ARRAY_DIMS", "ARRAY_FILL", "ARRAY_LENGTH", "ARRAY_LOWER",
        "ARRAY_NDIMS", "ARRAY_POSITION", "ARRAY_POSITIONS", "ARRAY_PREPEND", "ARRAY_REMOVE",
        "ARRAY_REPLACE", "ARRAY_UPPER", "CARDINALITY", "UNNEST",
    ),
    "control": ("NULLIF", "COALESCE"),
    "conversion": ("CAST", "TO_NUMBER"),
    "encryption": (
        "MD5", "ENCODE", "DECODE", "GEN_RANDOM_UUID", "GEN_RANDOM_BYTES", "DIGEST", "HMAC",
        "CRYPT", "GEN_SALT",
    ),
    "info": (
        "CURRENT_DATABASE", "CURRENT_SCHEMA", "CURRENT_SCHEMAS", "CURRENT_USER", "SESSION_USER",
        "USER", "VERSION", "PG_BACKEND_PID", "INET_CLIENT_ADDR", "INET_SERVER_ADDR",
    ),
    "system": (
        "PG_TABLE_SIZE", "PG_INDEXES_SIZE", "PG_TOTAL_RELATION_SIZE", "PG_DATABASE_SIZE",
        "PG_SIZE_PRETTY", "PG_RELATION_FILEPATH", "OBJ_DESCRIPTION", "COL_DESCRIPTION",
    ),
}


__all__ = ["AGGREGATE", "FunctionCatalog", "FunctionEntry", "WINDOW"]
