from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Optional, Sequence

from esim_pricing import config
from esim_pricing.domain.bundle_selection import BundleSelection, prorate, select_in_comparison_set
from esim_pricing.schemas_pricing import Bundle, PricingBreakdown, PricingRequest, PricingRule
from esim_pricing.services.rule_pipeline import apply_rules

logger = logging.getLogger(__name__)


def _bundle_facts(bundle: Bundle) -> dict[str, Any]:
    return bundle.model_dump(mode="json", by_alias=True)


def build_context(
    request: PricingRequest,
    selection: BundleSelection,
    unused_days: int,
) -> dict[str, Any]:
    """Facts the rule conditions are evaluated against."""
    payment_method = (
        request.payment_method.value if request.payment_method else config.DEFAULT_PAYMENT_METHOD
    )
    context: dict[str, Any] = {
        "request": request.model_dump(mode="json", by_alias=True),
        "requestedDays": request.requested_duration_days,
        "numOfEsims": request.num_of_esims,
        "paymentMethod": payment_method,
        "group": request.group,
        "customer": dict(request.customer_attributes),
        "selectedBundle": _bundle_facts(selection.selected_bundle),
        "unusedDays": unused_days,
        "isExactMatch": selection.is_exact_match,
    }
    if request.country_id:
        context["country"] = request.country_id
    if request.region_id:
        context["region"] = request.region_id
    if selection.previous_bundle is not None:
        context["previousBundle"] = _bundle_facts(selection.previous_bundle)
    return context


class PricingEngine:
    """Quote orchestration: selection -> proration -> rule pipeline.

    Stateless; one instance can serve concurrent requests.
    """

    def quote(
        self,
        bundles: Sequence[Bundle],
        request: PricingRequest,
        rules: Sequence[PricingRule],
        *,
        now: Optional[datetime] = None,
    ) -> PricingBreakdown:
        days = request.requested_duration_days
        selection = select_in_comparison_set(bundles, days)
        proration = prorate(bundles, selection, days)
        selected = selection.selected_bundle

        context = build_context(request, selection, proration.unused_days)
        breakdown = apply_rules(
            rules,
            context,
            selected.base_price,
            proration=proration,
            price_ceiling=selected.base_price,
            now=now,
            currency=selected.currency or config.DEFAULT_CURRENCY,
        )

        logger.info(
            "quote: bundle=%s requested=%sd unused=%s final_price=%s %s",
            selected.id,
            days,
            proration.unused_days,
            breakdown.final_price,
            breakdown.currency,
        )
        return breakdown.model_copy(
            update={
                "requested_days": days,
                "selected_bundle_id": selected.id,
                "previous_bundle_id": selection.previous_bundle.id if selection.previous_bundle else None,
                "bundle_name": selected.name,
            }
        )
