"""Tax handling for subscription renewal orders."""

import logging

from salestax.core.exceptions import TaxCloudError
from salestax.schemas.order import TaxCalculationResult
from salestax.services.order_tax_coordinator import OrderTaxCoordinator
from salestax.services.platform import HostPlatform, snapshot_order

logger = logging.getLogger(__name__)


class RenewalTaxService:
    """Quotes and captures renewal orders created from a parent subscription order.

    Renewal orders are copies of the parent, so their tax meta starts from
    whatever the parent had. It is reset before the renewal is quoted.
    """

    def __init__(self, coordinator: OrderTaxCoordinator, platform: HostPlatform):
        self.coordinator = coordinator
        self.platform = platform

    def handle_renewal_order(self, renewal_id: str, parent_id: str) -> TaxCalculationResult:
        """Quote and capture a renewal order.

        Failures are reported as notes on the parent order instead of being
        raised; renewals are created outside any customer request.
        """
        self.coordinator.ledger.reset(renewal_id)

        destination = self.platform.get_order_destination(parent_id)
        order = snapshot_order(self.platform, renewal_id, destination=destination)
        result = self.coordinator.calculate_taxes(order)

        if result.warning:
            self.platform.add_order_note(
                parent_id,
                f"Tax lookup for renewal order {renewal_id} failed. Reason: {result.warning}",
            )
            return result

        try:
            self.coordinator.capture_order(renewal_id)
        except TaxCloudError as exc:
            logger.warning("Capture of renewal order %s failed: %s", renewal_id, exc.message)
            self.platform.add_order_note(
                parent_id,
                f"Tax capture for renewal order {renewal_id} failed. Reason: {exc.message}",
            )
            return result

        self.platform.update_order_status(renewal_id, "completed")
        self.platform.add_order_note(
            parent_id,
            f"TaxCloud was successfully notified of renewal order {renewal_id}.",
        )
        return result

    def remove_duplicate_renewal_taxes(self, renewal_id: str, parent_id: str) -> int:
        """Delete renewal tax rows copied from the parent's recurring TaxCloud taxes.

        A renewal row counts as a duplicate when both its amount and its rate
        match a recurring TaxCloud row on the parent.

        Returns:
            Number of tax rows removed.
        """
        rate_id = self.coordinator.settings.taxcloud_rate_id
        parent_taxes = [
            line
            for line in self.platform.get_order_tax_lines(parent_id)
            if line.recurring and line.rate_id == rate_id
        ]

        to_remove: list[str] = []
        for parent_line in parent_taxes:
            for line in self.platform.get_order_tax_lines(renewal_id):
                if (
                    line.amount == parent_line.amount
                    and line.rate_id == parent_line.rate_id
                    and line.tax_line_id not in to_remove
                ):
                    to_remove.append(line.tax_line_id)

        for tax_line_id in to_remove:
            self.platform.delete_order_tax_line(renewal_id, tax_line_id)

        if to_remove:
            logger.info(
                "Removed %d duplicate tax rows from renewal order %s", len(to_remove), renewal_id
            )
        return len(to_remove)
