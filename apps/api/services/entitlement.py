"""Advisory export entitlement evaluation.

The evaluator never touches storage. It tells the caller whether an export is
likely to be permitted so UI messaging can be driven and wasted renders
avoided; the authoritative gate for paid exports is the conditional debit in
``services.credits``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


ANONYMOUS_FREE_EXPORTS = 1


@dataclass(frozen=True)
class EntitlementState:
    """Client-held export counters. Never persisted server-side."""

    anonymous_download_count: int = 0
    has_used_introductory_free_export: bool = False

    def after_anonymous_export(self) -> "EntitlementState":
        return replace(self, anonymous_download_count=max(int(self.anonymous_download_count), 0) + 1)

    def after_introductory_export(self) -> "EntitlementState":
        return replace(self, has_used_introductory_free_export=True)


@dataclass(frozen=True)
class EntitlementInput:
    is_authenticated: bool
    has_used_introductory_free_export: bool = False
    paid_credits: int = 0
    anonymous_download_count: int = 0


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    remaining: int
    bucket: str


def evaluate_entitlement(entitlement: EntitlementInput) -> EntitlementDecision:
    """Decide whether an export is likely allowed and which bucket it draws from."""
    paid_credits = max(int(entitlement.paid_credits), 0)

    if not entitlement.is_authenticated:
        used = max(int(entitlement.anonymous_download_count), 0)
        return EntitlementDecision(
            allowed=used < ANONYMOUS_FREE_EXPORTS,
            remaining=max(0, ANONYMOUS_FREE_EXPORTS - used),
            bucket="free",
        )

    if not entitlement.has_used_introductory_free_export:
        return EntitlementDecision(allowed=True, remaining=paid_credits + 1, bucket="post_login_free")

    return EntitlementDecision(allowed=paid_credits > 0, remaining=paid_credits, bucket="paid_credit")


def evaluate_state(state: EntitlementState, *, is_authenticated: bool, paid_credits: int = 0) -> EntitlementDecision:
    return evaluate_entitlement(
        EntitlementInput(
            is_authenticated=is_authenticated,
            has_used_introductory_free_export=state.has_used_introductory_free_export,
            paid_credits=paid_credits,
            anonymous_download_count=state.anonymous_download_count,
        )
    )
