"""Import of sales made outside the store into TaxCloud."""

import logging
from collections.abc import Iterator, Sequence

from salestax.schemas.taxcloud import MAX_OFFLINE_BATCH
from salestax.schemas.transaction import OfflineTransaction
from salestax.services.taxcloud.client import TaxCloudClient

logger = logging.getLogger(__name__)


def chunked(
    transactions: Sequence[OfflineTransaction], size: int = MAX_OFFLINE_BATCH
) -> Iterator[list[OfflineTransaction]]:
    for start in range(0, len(transactions), size):
        yield list(transactions[start : start + size])


class OfflineTransactionImporter:
    def __init__(self, client: TaxCloudClient, batch_size: int = MAX_OFFLINE_BATCH):
        if not 0 < batch_size <= MAX_OFFLINE_BATCH:
            raise ValueError(f"batch_size must be between 1 and {MAX_OFFLINE_BATCH}")
        self.client = client
        self.batch_size = batch_size

    def import_transactions(self, transactions: Sequence[OfflineTransaction]) -> int:
        """Send ``transactions`` in sequential batches.

        Stops at the first rejected batch; earlier batches stay imported.

        Returns:
            Number of transactions submitted.
        """
        submitted = 0
        for batch in chunked(transactions, self.batch_size):
            self.client.add_transactions(batch)
            submitted += len(batch)
            logger.info("Imported offline batch (%d/%d)", submitted, len(transactions))
        return submitted
