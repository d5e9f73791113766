"""
Currency Registry

The closed set of currencies the logger understands, loaded once from a
versioned JSON file and read-only afterwards.

DESIGN DECISION: The registry is an explicitly constructed value that is
passed into the detector and the pipeline. There is no module-level
singleton, so tests can build a registry with three currencies and the
host app can ship an updated data file without touching code.

Loading is strict. Duplicate codes or symbols, or keywords that are not
lower-case, fail loudly: a silently "fixed" table would make detection
depend on file order in ways nobody can see.
"""

import json
import re
from collections.abc import Iterable, Iterator
from importlib import resources
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)


logger = structlog.get_logger(__name__)

# Checked first and listed first: these cover most users of the app.
COMMON_CURRENCY_CODES: tuple[str, ...] = ("AED", "USD", "EUR", "GBP", "INR", "SAR")

DATA_PACKAGE = "voice_expense.currency.data"
DATA_FILE = "currencies.json"


class CurrencyRegistryError(Exception):
    """The currency data file is missing or malformed."""
    pass


class UnknownCurrencyError(KeyError):
    """A currency code is not in the registry."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(code)

    def __str__(self) -> str:
        return f"Unknown currency code: {self.code}"


class CurrencyEntry(BaseModel):
    """
    One currency of the registry.

    Field aliases match the camelCase keys of the shared JSON data file.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str = Field(
        ...,
        pattern=r"^[A-Z]{3}$",
        description="ISO-4217 style code"
    )
    symbol: str = Field(
        ...,
        min_length=1,
        description="Display symbol, possibly several glyphs (e.g. د.إ)"
    )
    display_name: str = Field(..., alias="displayName")
    short_name: Optional[str] = Field(default=None, alias="shortName")
    locale_identifier: Optional[str] = Field(default=None, alias="localeIdentifier")
    is_right_to_left: bool = Field(default=False, alias="isRTL")
    voice_keywords: tuple[str, ...] = Field(
        default=(),
        alias="voiceKeywords",
        description="Lower-cased spoken names and colloquialisms"
    )
    regions: tuple[str, ...] = Field(
        default=(),
        description="ISO-3166 territories that default to this currency"
    )

    @field_validator('voice_keywords')
    @classmethod
    def validate_keywords(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Keywords must already be lower-case and non-blank."""
        for keyword in v:
            if not keyword.strip():
                raise ValueError("Blank voice keyword")
            if keyword != keyword.lower():
                raise ValueError(f"Voice keyword must be lower-case: {keyword!r}")
        return v

    @field_validator('regions')
    @classmethod
    def validate_regions(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for region in v:
            if not re.fullmatch(r"[A-Z]{2}", region):
                raise ValueError(f"Region must be an upper-case ISO-3166 code: {region!r}")
        return v

    @property
    def is_common(self) -> bool:
        return self.code in COMMON_CURRENCY_CODES


class _RegistryFile(BaseModel):
    """Shape of the versioned JSON data file."""
    model_config = ConfigDict(populate_by_name=True)

    version: str
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    currencies: list[CurrencyEntry] = Field(..., min_length=1)


class CurrencyRegistry:
    """
    Read-only lookup table of currencies.

    Iteration order is the detection tie-break order: common currencies
    first, then the order of the data source.
    """

    def __init__(
        self,
        entries: Iterable[CurrencyEntry],
        version: str = "0",
        last_updated: Optional[str] = None,
    ):
        ordered = sorted(
            entries,
            key=lambda e: (
                COMMON_CURRENCY_CODES.index(e.code) if e.is_common else len(COMMON_CURRENCY_CODES)
            ),
        )
        if not ordered:
            raise CurrencyRegistryError("Currency registry cannot be empty")

        self._entries: tuple[CurrencyEntry, ...] = tuple(ordered)
        self._by_code: dict[str, CurrencyEntry] = {}
        self._by_region: dict[str, CurrencyEntry] = {}
        seen_symbols: dict[str, str] = {}

        for entry in self._entries:
            if entry.code in self._by_code:
                raise CurrencyRegistryError(f"Duplicate currency code: {entry.code}")
            if entry.symbol in seen_symbols:
                raise CurrencyRegistryError(
                    f"Symbol {entry.symbol!r} is used by both "
                    f"{seen_symbols[entry.symbol]} and {entry.code}"
                )
            self._by_code[entry.code] = entry
            seen_symbols[entry.symbol] = entry.code
            for region in entry.regions:
                # First currency listed for a territory wins
                self._by_region.setdefault(region, entry)

        self.version = version
        self.last_updated = last_updated

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "CurrencyRegistry":
        """Build a registry from the JSON text of a data file."""
        try:
            data = _RegistryFile.model_validate_json(raw)
        except ValidationError as e:
            raise CurrencyRegistryError(f"Invalid currency data: {e}") from e
        return cls(data.currencies, version=data.version, last_updated=data.last_updated)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CurrencyRegistry":
        """Load a registry from a data file on disk."""
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise CurrencyRegistryError(f"Cannot read currency data at {path}: {e}") from e
        registry = cls.from_json(raw)
        logger.info(
            "currency_registry_loaded",
            source=str(path),
            version=registry.version,
            currency_count=len(registry),
        )
        return registry

    @classmethod
    def load_default(cls) -> "CurrencyRegistry":
        """Load the data file shipped with the package."""
        raw = resources.files(DATA_PACKAGE).joinpath(DATA_FILE).read_text(encoding="utf-8")
        registry = cls.from_json(raw)
        logger.info(
            "currency_registry_loaded",
            source="package",
            version=registry.version,
            currency_count=len(registry),
        )
        return registry

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, code: Optional[str]) -> Optional[CurrencyEntry]:
        """Entry for `code` (any case), or None."""
        if not code:
            return None
        return self._by_code.get(code.strip().upper())

    def require(self, code: str) -> CurrencyEntry:
        """Entry for `code`, raising UnknownCurrencyError if missing."""
        entry = self.get(code)
        if entry is None:
            raise UnknownCurrencyError(code)
        return entry

    def for_region(self, region: Optional[str]) -> Optional[CurrencyEntry]:
        """Default currency of an ISO-3166 region (e.g. "AE" -> AED)."""
        if not region:
            return None
        return self._by_region.get(region.upper())

    def common(self) -> list[CurrencyEntry]:
        """The common currencies that are present, in priority order."""
        return [e for e in self._entries if e.is_common]

    @property
    def codes(self) -> list[str]:
        return [e.code for e in self._entries]

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.get(code) is not None

    def __iter__(self) -> Iterator[CurrencyEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CurrencyRegistry(version={self.version!r}, currencies={len(self)})"

    def to_json(self) -> str:
        """Serialize back to the data file format."""
        return json.dumps(
            {
                "version": self.version,
                "lastUpdated": self.last_updated,
                "currencies": [
                    e.model_dump(mode="json", by_alias=True) for e in self._entries
                ],
            },
            ensure_ascii=False,
            indent=2,
        )


_LOCALE_SPLIT = re.compile(r"[-_]")


def region_from_locale(locale: Optional[str]) -> Optional[str]:
    """
    Extract the ISO-3166 region from a locale identifier.

    Accepts POSIX and BCP-47 shapes: "en_US", "ar-AE", "zh-Hant-TW",
    "en_GB.UTF-8". Returns None when the locale names no region ("en").
    """
    if not locale:
        return None
    tag = locale.split(".", 1)[0].split("@", 1)[0]
    for part in _LOCALE_SPLIT.split(tag)[1:]:
        if len(part) == 2 and part.isalpha():
            return part.upper()
    return None
