"""Export orchestration: entitlement -> debit -> render -> counter update."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from config import settings
from services.entitlement import EntitlementState, evaluate_state
from services.errors import Forbidden, InsufficientCredits, Unauthorized

logger = logging.getLogger(__name__)

DebitCallable = Callable[[str], Awaitable[Dict[str, Any]]]

EXPORT_STATUS_EXPORTED = "exported"
EXPORT_STATUS_PURCHASE_REQUIRED = "purchase_required"
EXPORT_STATUS_LIMIT_REACHED = "limit_reached"
EXPORT_STATUS_SESSION_EXPIRED = "session_expired"


class ImageRenderer(ABC):
    """Renders an infographic node to PNG bytes."""

    @abstractmethod
    async def render_image(self, node: Any) -> bytes:
        raise NotImplementedError


@dataclass(frozen=True)
class ExportResult:
    status: str
    state: EntitlementState
    image: Optional[bytes] = None
    credits_remaining: Optional[int] = None
    message: str = ""

    @property
    def exported(self) -> bool:
        return self.status == EXPORT_STATUS_EXPORTED


class ExportOrchestrator:
    """Sequences one export so no counter moves before the credit is secured."""

    def __init__(
        self,
        renderer: ImageRenderer,
        debit: DebitCallable,
        *,
        render_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._renderer = renderer
        self._debit = debit
        self._render_timeout = float(render_timeout_seconds or settings.EXPORT_RENDER_TIMEOUT_SECONDS)

    async def export(
        self,
        node: Any,
        state: EntitlementState,
        *,
        account_id: Optional[str] = None,
        paid_credits: int = 0,
    ) -> ExportResult:
        is_authenticated = bool(account_id)
        decision = evaluate_state(state, is_authenticated=is_authenticated, paid_credits=paid_credits)
        if not decision.allowed:
            if is_authenticated:
                return ExportResult(
                    status=EXPORT_STATUS_PURCHASE_REQUIRED,
                    state=state,
                    credits_remaining=max(int(paid_credits), 0),
                    message="No credits remaining. Please purchase more credits.",
                )
            return ExportResult(
                status=EXPORT_STATUS_LIMIT_REACHED,
                state=state,
                message="Free limit reached. Please sign up to get more credits.",
            )

        credits_remaining: Optional[int] = None
        uses_introductory = is_authenticated and not state.has_used_introductory_free_export
        if is_authenticated and not uses_introductory:
            try:
                debit_result = await self._debit(account_id)
            except InsufficientCredits:
                return ExportResult(
                    status=EXPORT_STATUS_PURCHASE_REQUIRED,
                    state=state,
                    credits_remaining=0,
                    message="No credits remaining. Please purchase more credits.",
                )
            except (Unauthorized, Forbidden):
                return ExportResult(
                    status=EXPORT_STATUS_SESSION_EXPIRED,
                    state=state,
                    message="Session expired. Please login again.",
                )
            credits_remaining = int(debit_result.get("credits_remaining", 0))

        image = await asyncio.wait_for(self._renderer.render_image(node), timeout=self._render_timeout)

        if not is_authenticated:
            next_state = state.after_anonymous_export()
        elif uses_introductory:
            next_state = state.after_introductory_export()
        else:
            next_state = state

        logger.info(
            "export_completed account=%s bucket=%s remaining=%s",
            account_id or "anonymous",
            decision.bucket,
            credits_remaining,
        )
        return ExportResult(
            status=EXPORT_STATUS_EXPORTED,
            state=next_state,
            image=image,
            credits_remaining=credits_remaining,
            message="Infographic downloaded successfully!",
        )
