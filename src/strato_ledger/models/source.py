"""Source registry: feed keys, display labels and classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from strato_ledger.models.transaction import MANUAL_SOURCE

# Feed whose rows are card charges; carries its own normalization rules
CREDIT_CARD_SOURCE = "nubank_cc"

# Color used for labels that match no registered source
FALLBACK_COLOR = "#94a3b8"


class SourceClass(Enum):
    """Closed classification used by the pix/credit breakdown."""

    PIX = "pix"
    CREDIT = "credit"
    OTHER = "other"  # Counted in grand totals only


@dataclass(frozen=True)
class SourceInfo:
    """Display metadata for a source key.

    Attributes:
        key: Source key as used in configuration and on transactions.
        label: Human-readable name shown in breakdowns.
        color: Chart color for this source.
    """

    key: str
    label: str
    color: str = FALLBACK_COLOR

    @classmethod
    def from_dict(cls, key: str, data: dict[str, object]) -> "SourceInfo":
        """Create from a settings.yaml entry."""
        return cls(
            key=key,
            label=str(data.get("label", key)),
            color=str(data.get("color", FALLBACK_COLOR)),
        )


DEFAULT_SOURCES: dict[str, SourceInfo] = {
    "nubank_pj_pix": SourceInfo("nubank_pj_pix", "Nubank PJ", "#492261"),
    "nubank_pf_pix": SourceInfo("nubank_pf_pix", "Nubank PF", "#AB11DE"),
    CREDIT_CARD_SOURCE: SourceInfo(CREDIT_CARD_SOURCE, "Nubank Cartão", "#D4373F"),
    "picpay_pf_pix": SourceInfo("picpay_pf_pix", "PicPay PF", "#15CE6A"),
    "picpay_pj_pix": SourceInfo("picpay_pj_pix", "PicPay PJ", "#0A442E"),
    MANUAL_SOURCE: SourceInfo(MANUAL_SOURCE, "Manual", "#6366f1"),
}


class SourceRegistry:
    """Lookup of source keys to display metadata.

    Unknown keys resolve to the manual entry, so a new feed shows up under
    the manual label until it is registered.
    """

    def __init__(
        self,
        sources: Optional[dict[str, SourceInfo]] = None,
        credit_source: str = CREDIT_CARD_SOURCE,
    ):
        self.sources: dict[str, SourceInfo] = dict(DEFAULT_SOURCES)
        if sources:
            self.sources.update(sources)
        if MANUAL_SOURCE not in self.sources:
            self.sources[MANUAL_SOURCE] = DEFAULT_SOURCES[MANUAL_SOURCE]
        self.credit_source = credit_source

    def info(self, key: str) -> SourceInfo:
        return self.sources.get(key, self.sources[MANUAL_SOURCE])

    def label_for(self, source: str, manual_label: Optional[str] = None) -> str:
        """Display label for a transaction's origin.

        Manual transactions use their free-text label when present.
        """
        if source == MANUAL_SOURCE and manual_label:
            return manual_label
        return self.info(source).label

    def color_for_label(self, label: str) -> str:
        for info in self.sources.values():
            if info.label == label:
                return info.color
        return FALLBACK_COLOR

    def is_credit(self, source: str) -> bool:
        return source == self.credit_source

    def classify(self, source: str, manual_label: Optional[str] = None) -> SourceClass:
        """Classify a transaction origin as PIX, CREDIT or OTHER.

        CREDIT: the source is exactly the credit-card key.
        PIX: not credit, and the key contains "pix", or the source is manual
        and its label mentions pix (case-insensitive).
        """
        if self.is_credit(source):
            return SourceClass.CREDIT
        if "pix" in source:
            return SourceClass.PIX
        if source == MANUAL_SOURCE and manual_label and "pix" in manual_label.lower():
            return SourceClass.PIX
        return SourceClass.OTHER

    @property
    def fetchable_keys(self) -> list[str]:
        """Registered keys that name a remote feed."""
        return [key for key in self.sources if key != MANUAL_SOURCE]
