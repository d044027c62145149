"""
Models for blobdrive.

Records are immutable dataclasses; lifecycle changes produce new instances.
"""
import os
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple


class MediaKind(str, Enum):
    """Coarse media classification of an uploaded file."""
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    OTHER = "other"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "MediaKind":
        """Infer kind from a MIME type (image/*, video/*, anything pdf)."""
        value = (content_type or "").lower()
        if value.startswith("image/"):
            return cls.IMAGE
        if value.startswith("video/"):
            return cls.VIDEO
        if "pdf" in value:
            return cls.DOCUMENT
        return cls.OTHER


class ItemStatus(str, Enum):
    """Status of one entry in an upload batch."""
    READY = "ready"
    ESTIMATING = "estimating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CANCELLED = "cancelled"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.CANCELLED, ItemStatus.UPLOADED, ItemStatus.ERROR)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return utcnow()
    return datetime.fromisoformat(str(value))


# Fields that only live in memory and are never written to the durable store.
EPHEMERAL_FIELDS = frozenset({"preview_url"})

# Fields that may never be changed through a patch.
IMMUTABLE_FIELDS = frozenset({"id", "content_id"})


@dataclass(frozen=True)
class FileRecord:
    """Durable metadata for one uploaded file."""
    id: str
    content_id: str
    name: str
    size_bytes: int
    media_kind: MediaKind = MediaKind.OTHER
    created_at: datetime = field(default_factory=utcnow)
    content_type: Optional[str] = None
    epochs: int = 1
    tier_key: Optional[str] = None
    remote_url: Optional[str] = None
    explorer_url: Optional[str] = None
    starred: bool = False
    trashed: bool = False
    # Local object URL for immediate display; not persisted.
    preview_url: Optional[str] = field(default=None, compare=False)

    @property
    def is_active(self) -> bool:
        return not self.trashed

    def with_patch(self, patch: Dict[str, Any]) -> "FileRecord":
        """Return a copy with ``patch`` applied (unknown keys rejected)."""
        known = {f.name for f in fields(self)}
        unknown = set(patch) - known
        if unknown:
            raise ValueError(f"Unknown FileRecord fields: {sorted(unknown)}")
        locked = IMMUTABLE_FIELDS & set(patch)
        if locked:
            raise ValueError(f"FileRecord fields cannot be patched: {sorted(locked)}")
        return replace(self, **patch)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for the durable store."""
        data = {}
        for f in fields(self):
            if f.name in EPHEMERAL_FIELDS:
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        known = {f.name for f in fields(cls)} - EPHEMERAL_FIELDS
        values = {k: v for k, v in data.items() if k in known}
        values["media_kind"] = MediaKind(values.get("media_kind") or MediaKind.OTHER.value)
        values["created_at"] = _parse_datetime(values.get("created_at"))
        values["size_bytes"] = int(values.get("size_bytes") or 0)
        values["epochs"] = int(values.get("epochs") or 1)
        values["starred"] = bool(values.get("starred", False))
        values["trashed"] = bool(values.get("trashed", False))
        return cls(**values)


@dataclass(frozen=True)
class PriceTier:
    """One purchasable pricing option."""
    key: str
    name: str
    unit_price: Optional[float]
    total_price: float
    description: str = ""
    native_unit_price: Optional[float] = None
    native_total_price: Optional[float] = None


@dataclass(frozen=True)
class CostStep:
    """Named share of the recommended tier's total, for narration."""
    step: str
    description: str
    fee: float
    native_fee: Optional[float] = None


@dataclass(frozen=True)
class PriceQuote:
    """Ephemeral cost estimate for a prospective upload."""
    id: str
    size_bytes: int
    size_mb: int
    epochs: int
    tiers: Tuple[PriceTier, ...]
    recommended_tier_key: str
    steps: Tuple[CostStep, ...] = ()
    source: str = "heuristic"
    native_rate: Optional[float] = None
    created_at: datetime = field(default_factory=utcnow)

    def tier(self, key: Optional[str]) -> Optional[PriceTier]:
        for tier in self.tiers:
            if tier.key == key:
                return tier
        return None

    @property
    def tier_keys(self) -> List[str]:
        return [t.key for t in self.tiers]

    @property
    def recommended(self) -> PriceTier:
        tier = self.tier(self.recommended_tier_key)
        if tier is None:
            raise ValueError(
                f"Quote {self.id} recommends unknown tier {self.recommended_tier_key!r}"
            )
        return tier

    @property
    def total_estimated(self) -> float:
        return round(self.recommended.total_price, 4)

    @property
    def total_estimated_native(self) -> Optional[float]:
        return self.recommended.native_total_price


@dataclass(frozen=True)
class ConfirmationDecision:
    """Human decision for a pending quote."""
    proceed: bool
    chosen_tier_key: Optional[str] = None

    @classmethod
    def approve(cls, tier_key: Optional[str] = None) -> "ConfirmationDecision":
        return cls(proceed=True, chosen_tier_key=tier_key)

    @classmethod
    def cancel(cls) -> "ConfirmationDecision":
        return cls(proceed=False)


@dataclass
class UploadItem:
    """One file in an upload batch (mutable; status advances in place)."""
    name: str
    data: Optional[bytes] = None
    path: Optional[Path] = None
    content_type: Optional[str] = None
    status: ItemStatus = ItemStatus.READY
    record: Optional[FileRecord] = None
    error: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "UploadItem":
        import mimetypes

        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, path=path, content_type=content_type)

    @property
    def size_bytes(self) -> int:
        if self.data is not None:
            return len(self.data)
        if self.path is not None:
            return self.path.stat().st_size
        return 0

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is not None:
            return self.path.read_bytes()
        raise ValueError(f"Upload item {self.name!r} has neither data nor path")


@dataclass
class BatchResult:
    """Outcome of one batch run."""
    items: List[UploadItem]
    progress: int = 0

    @property
    def records(self) -> List[FileRecord]:
        return [i.record for i in self.items if i.record is not None]

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for i in self.items if i.status == status)

    @property
    def uploaded(self) -> int:
        return self._count(ItemStatus.UPLOADED)

    @property
    def cancelled(self) -> int:
        return self._count(ItemStatus.CANCELLED)

    @property
    def failed(self) -> int:
        return self._count(ItemStatus.ERROR)


@dataclass(frozen=True)
class PricingRates:
    """Heuristic USD rates per MB per epoch, keyed by tier."""
    basic: float = 0.01
    standard: float = 0.02
    pro: float = 0.05

    def as_tiers(self) -> List[Tuple[str, str, float]]:
        return [
            ("basic", "Basic", self.basic),
            ("standard", "Standard", self.standard),
            ("pro", "Pro", self.pro),
        ]


DEFAULT_PUBLISHER_URL = "https://publisher.walrus-testnet.walrus.space"
DEFAULT_AGGREGATOR_URL = "https://aggregator.walrus-testnet.walrus.space"
DEFAULT_RELAY_URL = "https://relay.wal.app"
DEFAULT_EXPLORER_URL = "https://walruscan.com/testnet/home"
DEFAULT_RATE_URL = "https://api.coingecko.com/api/v3/simple/price?ids=sui&vs_currencies=usd"
DEFAULT_STORE_PATH = Path.home() / ".local" / "share" / "blobdrive" / "files.json"


@dataclass(frozen=True)
class DriveConfig:
    """Immutable configuration for the upload core."""
    publisher_url: str = DEFAULT_PUBLISHER_URL
    aggregator_url: str = DEFAULT_AGGREGATOR_URL
    relay_url: str = DEFAULT_RELAY_URL
    explorer_url: str = DEFAULT_EXPLORER_URL
    rate_url: str = DEFAULT_RATE_URL
    rate_asset: str = "sui"
    rate_ttl: float = 60.0
    store_path: Path = DEFAULT_STORE_PATH
    default_epochs: int = 1
    deletable: bool = True
    enable_relay: bool = True
    timeout: float = 30.0
    max_retries: int = 1
    rates: PricingRates = field(default_factory=PricingRates)

    @property
    def quote_urls(self) -> List[str]:
        base = self.relay_url.rstrip("/")
        return [f"{base}/v1/quote", f"{base}/v1/price", f"{base}/pricing"]

    @property
    def relay_upload_urls(self) -> List[str]:
        base = self.relay_url.rstrip("/")
        return [f"{base}/v1/upload", f"{base}/v1/store", f"{base}/upload"]

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "DriveConfig":
        """Build config from ``BLOBDRIVE_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _float(name: str, default: float) -> float:
            raw = env.get(name)
            return float(raw) if raw not in (None, "") else default

        def _bool(name: str, default: bool) -> bool:
            raw = env.get(name)
            if raw in (None, ""):
                return default
            return raw.strip().lower() in {"1", "true", "yes", "on"}

        rates = PricingRates(
            basic=_float("BLOBDRIVE_RATE_BASIC", defaults.rates.basic),
            standard=_float("BLOBDRIVE_RATE_STANDARD", defaults.rates.standard),
            pro=_float("BLOBDRIVE_RATE_PRO", defaults.rates.pro),
        )
        store_path = env.get("BLOBDRIVE_STORE_PATH")
        return cls(
            publisher_url=env.get("BLOBDRIVE_PUBLISHER_URL") or defaults.publisher_url,
            aggregator_url=env.get("BLOBDRIVE_AGGREGATOR_URL") or defaults.aggregator_url,
            relay_url=env.get("BLOBDRIVE_RELAY_URL") or defaults.relay_url,
            explorer_url=env.get("BLOBDRIVE_EXPLORER_URL") or defaults.explorer_url,
            rate_url=env.get("BLOBDRIVE_RATE_URL") or defaults.rate_url,
            rate_asset=env.get("BLOBDRIVE_RATE_ASSET") or defaults.rate_asset,
            rate_ttl=_float("BLOBDRIVE_RATE_TTL", defaults.rate_ttl),
            store_path=Path(store_path).expanduser() if store_path else defaults.store_path,
            default_epochs=int(_float("BLOBDRIVE_EPOCHS", defaults.default_epochs)),
            deletable=_bool("BLOBDRIVE_DELETABLE", defaults.deletable),
            enable_relay=_bool("BLOBDRIVE_ENABLE_RELAY", defaults.enable_relay),
            timeout=_float("BLOBDRIVE_TIMEOUT", defaults.timeout),
            max_retries=int(_float("BLOBDRIVE_MAX_RETRIES", defaults.max_retries)),
            rates=rates,
        )
