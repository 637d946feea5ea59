"""
Statement builder - invoices, client statements and product reports.

Figures come straight from the ledger and the aggregator; the trailing
aggregate row of a statement is the same ClientAggregate the on-screen summary
shows for that filter.
"""

from typing import Optional

from factory_ledger.core.config import settings
from factory_ledger.core.errors import NotFoundError, TransactionValidationError
from factory_ledger.models.base import utcnow
from factory_ledger.schemas.statement import (
    Statement,
    StatementHeader,
    StatementLine,
    StatementType,
)
from factory_ledger.schemas.transaction import TransactionFilter, TransactionResponse
from factory_ledger.services.aggregator import Aggregator
from factory_ledger.services.ledger_service import LedgerService
from factory_ledger.services.status_engine import classify


def _line(row: TransactionResponse) -> StatementLine:
    return StatementLine(
        transaction_id=row.id,
        date=row.created_at,
        kind=row.kind,
        client_name=row.client_name,
        quantity=row.quantity,
        quantity_unit=row.quantity_unit,
        rate=row.rate,
        rate_unit=row.rate_unit,
        total_amount=row.total_amount,
        tendered=row.tendered,
        net_advance=row.net_advance,
        payment_status=row.payment_status,
        notes=row.notes,
    )


class StatementBuilder:

    def __init__(
        self,
        ledgers: LedgerService,
        aggregator: Aggregator,
        company_name: Optional[str] = None,
        currency: Optional[str] = None
    ):
        self.ledgers = ledgers
        self.aggregator = aggregator
        self.company_name = company_name or settings.COMPANY_NAME
        self.currency = currency or settings.CURRENCY_LABEL

    async def build_invoice(self, product_type: str, transaction_id: str) -> Statement:
        ledger = await self.ledgers.for_product(product_type)
        row = TransactionResponse.from_transaction(await ledger.get(transaction_id))

        return Statement(
            statement_type=StatementType.INVOICE,
            title=f"Invoice - {row.client_name}",
            company_name=self.company_name,
            currency=self.currency,
            product=ledger.product,
            client_name=row.client_name,
            generated_at=utcnow(),
            header=StatementHeader(
                total_amount=row.total_amount,
                total_tendered=row.tendered,
                net_advance=row.net_advance,
                shortfall=row.shortfall,
                status=row.payment_status,
            ),
            lines=[_line(row)],
        )

    async def build_client_statement(
        self, product_type: str, client_name: str, filter: TransactionFilter
    ) -> Statement:
        client_name = (client_name or "").strip()
        if not client_name:
            raise TransactionValidationError(["clientName is required"])
        scoped = filter.model_copy(update={"client_name": client_name, "exact_client": True})
        return await self._build_from_aggregate(
            StatementType.CLIENT_STATEMENT, product_type, scoped, f"Client Statement - {client_name}"
        )

    async def build_product_report(self, product_type: str, filter: TransactionFilter) -> Statement:
        return await self._build_from_aggregate(
            StatementType.PRODUCT_REPORT, product_type, filter, "Product Report"
        )

    async def _build_from_aggregate(
        self,
        statement_type: StatementType,
        product_type: str,
        filter: TransactionFilter,
        title: str
    ) -> Statement:
        ledger = await self.ledgers.for_product(product_type)
        result = await self.aggregator.collect(product_type, filter)
        if not result.transactions:
            subject = f"client '{filter.client_name}'" if filter.client_name else product_type
            raise NotFoundError(f"No transactions found for {subject}")

        aggregate = result.aggregate
        if len(result.kinds) == 1:
            classification = classify(result.kinds[0], aggregate.total_amount, aggregate.total_tendered)
            header = StatementHeader(
                total_amount=aggregate.total_amount,
                total_tendered=aggregate.total_tendered,
                net_advance=classification.net_advance,
                shortfall=classification.shortfall,
                status=classification.status,
            )
        else:
            header = StatementHeader(
                total_amount=aggregate.total_amount,
                total_tendered=aggregate.total_tendered,
                net_advance=aggregate.net_advance,
                shortfall=aggregate.shortfall,
            )

        return Statement(
            statement_type=statement_type,
            title=title,
            company_name=self.company_name,
            currency=self.currency,
            product=ledger.product,
            client_name=filter.client_name,
            generated_at=utcnow(),
            header=header,
            lines=[_line(row) for row in result.transactions],
            aggregate=aggregate,
        )
