from datetime import date

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from fnb_assistant import models  # noqa: F401
from fnb_assistant.core.config import Settings
from fnb_assistant.core.database import Base, create_session_factory
from fnb_assistant.core.flags import FeatureFlags
from fnb_assistant.models import (
    Alert,
    CashPosition,
    ExpenseEntry,
    FixedCost,
    Ingredient,
    Invoice,
    InvoiceLineItem,
    Product,
    ProductIngredient,
    RevenueEntry,
    ScheduledPayment,
    Supplier,
)
from fnb_assistant.tools.executor import ToolExecutor
from fnb_assistant.tools.registry import init_tools

from helpers import TENANT_A, TENANT_B, TODAY


@pytest.fixture
def settings():
    # every knob spelled out so a developer's .env or shell can't leak in
    return Settings(
        _env_file=None,
        env="test",
        log_level="info",
        debug=False,
        database_url="sqlite+aiosqlite://",
        supabase_url="",
        supabase_anon_key="",
        supabase_jwt_secret="",
        supabase_jwt_audience="authenticated",
        anthropic_api_key="test-key",
        anthropic_base_url="https://api.anthropic.com/v1",
        anthropic_version="2023-06-01",
        llm_model="claude-sonnet-4-20250514",
        llm_max_tokens=2048,
        llm_temperature=0.3,
        llm_timeout_seconds=30.0,
        llm_max_retries=0,
        agent_max_rounds=3,
        agent_max_parallel_tools=5,
        agent_stream_chunk_chars=8,
        default_language="el",
        max_history_messages=10,
        max_message_length=500,
        cors_origins="*",
    )


@pytest.fixture
def flags():
    return FeatureFlags(
        _env_file=None,
        use_auth=False,
        enable_write_tools=True,
        stream_on_round_limit=False,
        create_tables=False,
    )


def _seed(session):
    metro_a = Supplier(id="sup-a1", tenant_id=TENANT_A, name="Metro Foods", afm="099999999")
    fresh_a = Supplier(id="sup-a2", tenant_id=TENANT_A, name="Fresh Farm")
    metro_b = Supplier(id="sup-b1", tenant_id=TENANT_B, name="Metro Foods")
    session.add_all([metro_a, fresh_a, metro_b])

    session.add_all([
        Invoice(id="inv-a1", tenant_id=TENANT_A, supplier_id="sup-a1", invoice_number="A-001",
                total_amount=1000.0, status="approved",
                invoice_date=date(2024, 1, 5), due_date=date(2024, 1, 20)),
        Invoice(id="inv-a2", tenant_id=TENANT_A, supplier_id="sup-a2", invoice_number="A-002",
                total_amount=300.0, status="paid",
                invoice_date=date(2024, 1, 10), due_date=date(2024, 2, 10), paid_date=date(2024, 2, 1)),
        Invoice(id="inv-a3", tenant_id=TENANT_A, supplier_id="sup-a1", invoice_number="A-003",
                total_amount=200.0, status="extracted",
                invoice_date=date(2024, 2, 1), due_date=date(2024, 3, 1)),
        Invoice(id="inv-b1", tenant_id=TENANT_B, supplier_id="sup-b1", invoice_number="B-001",
                total_amount=5000.0, status="approved",
                invoice_date=date(2024, 1, 6), due_date=date(2024, 1, 15)),
    ])
    session.add_all([
        InvoiceLineItem(tenant_id=TENANT_A, invoice_id="inv-a1", description="Flour 25kg",
                        quantity=10, unit_price=20, tax_rate=13, line_total=200),
        InvoiceLineItem(tenant_id=TENANT_A, invoice_id="inv-a1", description="Olive oil 5L",
                        quantity=5, unit_price=16, tax_rate=13, line_total=80),
        InvoiceLineItem(tenant_id=TENANT_B, invoice_id="inv-b1", description="Flour 50kg",
                        quantity=100, unit_price=30, tax_rate=13, line_total=3000),
    ])

    session.add_all([
        RevenueEntry(tenant_id=TENANT_A, amount=300.0, entry_date=date(2024, 1, 5),
                     description="Dine-in", category="dine_in"),
        RevenueEntry(tenant_id=TENANT_A, amount=200.0, entry_date=date(2024, 1, 20),
                     description="Delivery", category="delivery"),
        RevenueEntry(tenant_id=TENANT_B, amount=9999.0, entry_date=date(2024, 1, 10),
                     description="Dine-in", category="dine_in"),
        ExpenseEntry(tenant_id=TENANT_A, amount=120.0, entry_date=date(2024, 1, 7), category="supplies"),
        ExpenseEntry(tenant_id=TENANT_A, amount=100.0, entry_date=date(2023, 12, 12), category="supplies"),
        ExpenseEntry(tenant_id=TENANT_B, amount=777.0, entry_date=date(2024, 1, 7), category="supplies"),
    ])

    session.add_all([
        CashPosition(tenant_id=TENANT_A, cash_on_hand=1000, bank_balance=4000, total_cash=5000,
                     recorded_date=date(2024, 2, 10)),
        CashPosition(tenant_id=TENANT_A, cash_on_hand=800, bank_balance=3000, total_cash=3800,
                     recorded_date=date(2024, 1, 31)),
        CashPosition(tenant_id=TENANT_B, cash_on_hand=9000, bank_balance=90999, total_cash=99999,
                     recorded_date=date(2024, 2, 12)),
        FixedCost(tenant_id=TENANT_A, category="Rent", amount=1500, month=date(2024, 2, 1)),
        FixedCost(tenant_id=TENANT_A, category="Rent", amount=1500, month=date(2024, 1, 1)),
        FixedCost(tenant_id=TENANT_B, category="Rent", amount=4000, month=date(2024, 2, 1)),
        ScheduledPayment(tenant_id=TENANT_A, description="VAT", amount=500, due_date=date(2024, 2, 20)),
        ScheduledPayment(tenant_id=TENANT_A, description="Insurance", amount=250,
                         due_date=date(2024, 1, 20), status="completed"),
    ])

    session.add_all([
        Product(id="prod-a1", tenant_id=TENANT_A, name="Margherita", category="Pizza", type="recipe",
                selling_price_dinein=9.5, selling_price_delivery=11.0, cost_price=2.4),
        Product(id="prod-a2", tenant_id=TENANT_A, name="Cola", category="Drinks", type="resale",
                selling_price_dinein=2.5, selling_price_delivery=3.0),
        Product(id="prod-b1", tenant_id=TENANT_B, name="Margherita", category="Pizza", type="recipe",
                selling_price_dinein=12.0),
        Ingredient(id="ing-a1", tenant_id=TENANT_A, name="Flour", category="Dry", unit="kg",
                   price_per_unit=0.8, supplier_name="Metro Foods", min_stock_level=10, current_stock=5),
        Ingredient(id="ing-a2", tenant_id=TENANT_A, name="Mozzarella", category="Dairy", unit="kg",
                   price_per_unit=7.5, supplier_name="Fresh Farm", min_stock_level=2, current_stock=8),
        Ingredient(id="ing-b1", tenant_id=TENANT_B, name="Flour", category="Dry", unit="kg",
                   price_per_unit=0.9, supplier_name="Metro Foods"),
        ProductIngredient(tenant_id=TENANT_A, product_id="prod-a1", ingredient_id="ing-a1",
                          quantity=0.25, unit="kg"),
        ProductIngredient(tenant_id=TENANT_A, product_id="prod-a1", ingredient_id="ing-a2",
                          quantity=0.12, unit="kg"),
    ])

    session.add_all([
        Alert(tenant_id=TENANT_A, title="Low stock: Flour", severity="warning", status="active"),
        Alert(tenant_id=TENANT_A, title="Old alert", severity="info", status="dismissed"),
        Alert(tenant_id=TENANT_B, title="Cash below threshold", severity="critical", status="active"),
    ])


@pytest.fixture
async def session_factory(tmp_path):
    # File database: concurrent tool calls each open their own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fnb.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_session_factory(engine)
    async with factory() as session:
        _seed(session)
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def executor(session_factory, settings, flags):
    return ToolExecutor(session_factory, settings, flags, registry=init_tools(), clock=lambda: TODAY)
