"""Pattern catalog matching and generic position categorization."""

from move_defi_tracker.core.extractor import calculate_total_value
from move_defi_tracker.core.models import PatternRule, PositionCategory, ProtocolDescriptor, ReceiptTokenRule
from move_defi_tracker.data import load_lp_coin_markers, load_pattern_rules, load_receipt_token_rules

COIN_STORE = "0x1::coin::CoinStore"

DEBT_KEYWORDS = ("borrow", "debt", "loan")
DEBT_FIELDS = ("borrowed", "debt", "loan_notes")


def base_type_tag(type_tag: str) -> str:
    """Strip generic parameters from a type tag."""
    return type_tag.split("<", 1)[0]


def dedup_key(type_tag: str) -> str:
    """
    Key under which a resource is consumed during a scan.

    Coin stores are generic wrappers whose identity is the wrapped coin, so
    they keep their full tag. Everything else collapses to its base type.

    """
    base = base_type_tag(type_tag)
    if base == COIN_STORE:
        return type_tag
    return base


class PatternCatalog:
    """
    Ordered pattern rules used to recognise and categorise DeFi resources.

    Parameters
    ----------
    rules : tuple[PatternRule, ...] | None
        Rules in evaluation order (defaults to data/patterns.yaml)
    receipt_rules : tuple[ReceiptTokenRule, ...] | None
        Receipt token rules (defaults to data/patterns.yaml)

    """

    def __init__(
        self,
        rules: tuple[PatternRule, ...] | None = None,
        receipt_rules: tuple[ReceiptTokenRule, ...] | None = None,
        lp_markers: tuple[str, ...] | None = None,
    ) -> None:
        self.rules = rules if rules is not None else load_pattern_rules()
        self.receipt_rules = receipt_rules if receipt_rules is not None else load_receipt_token_rules()
        lp_markers = lp_markers if lp_markers is not None else load_lp_coin_markers()
        self.lp_markers = tuple(marker.lower() for marker in lp_markers)

    def is_defi_resource(self, type_tag: str) -> bool:
        return any(rule.matches(type_tag) for rule in self.rules)

    def is_lp_coin(self, type_tag: str) -> bool:
        type_lower = type_tag.lower()
        return any(marker in type_lower for marker in self.lp_markers)

    def match_receipt_token(self, type_tag: str) -> ReceiptTokenRule | None:
        for rule in self.receipt_rules:
            if rule.matches(type_tag):
                return rule
        return None

    def categorize(self, type_tag: str, data: dict | None = None) -> PositionCategory:
        """
        Categorise a resource.

        Debt indicators win over every pattern: a resource that looks like
        both a lending position and a debt is a debt. Otherwise the first
        matching pattern decides, and unmatched resources fall back to DeFi.

        Parameters
        ----------
        type_tag : str
            Resource type tag
        data : dict | None
            Resource data

        Returns
        -------
        PositionCategory
            Category, never None

        """
        type_lower = type_tag.lower()
        if any(keyword in type_lower for keyword in DEBT_KEYWORDS):
            return PositionCategory.DEBT

        if isinstance(data, dict):
            debt_node = next((data[field] for field in DEBT_FIELDS if data.get(field)), None)
            if debt_node is not None and calculate_total_value({"value": debt_node}) > 0:
                return PositionCategory.DEBT

        for rule in self.rules:
            if rule.matches(type_tag):
                return rule.category

        return PositionCategory.DEFI


def position_name(type_tag: str, protocol: ProtocolDescriptor | None) -> str:
    """
    Build a readable position name from a type tag.

    Parameters
    ----------
    type_tag : str
        Resource type tag
    protocol : ProtocolDescriptor | None
        Identified protocol

    Returns
    -------
    str
        Display name (e.g., 'Echelon Position', 'lending User Account')

    """
    parts = base_type_tag(type_tag).split("::")
    struct = parts[-1] if parts else ""
    spaced = "".join(f" {char}" if char.isupper() else char for char in struct).strip()

    if protocol:
        if "Account" in spaced or "Position" in spaced:
            return f"{protocol.display_name} Position"
        if "LP" in struct or "Pool" in spaced:
            return f"{protocol.display_name} LP"
        if "Stake" in spaced or "staked" in spaced:
            return f"{protocol.display_name} Staked"
        if "Borrow" in spaced or "Debt" in spaced:
            return f"{protocol.display_name} Debt"
        return f"{protocol.display_name} {spaced}".strip()

    if len(parts) >= 2:
        return f"{parts[-2]} {spaced}".replace("_", " ").strip()

    return spaced or "DeFi Position"
